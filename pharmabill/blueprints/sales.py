"""Sales blueprint: draft building, finalization and invoices (JSON API)."""
from decimal import Decimal
from typing import Any, Dict

from flask import Blueprint, request, jsonify, send_file, current_app

from pharmabill.database import get_session
from pharmabill.exceptions import PharmaError, ValidationError
from pharmabill.services import sale_draft_service, sales_service
from pharmabill.services.invoice_service import render_invoice_pdf, invoice_filename
from pharmabill.services.pricing_service import money
from pharmabill.services.product_service import search_products

sales_bp = Blueprint('sales', __name__, url_prefix='/sales')


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _dec(value) -> str:
    return str(money(value)) if value is not None else None


def _iso(value):
    return value.isoformat() if value is not None else None


def _business_info() -> Dict[str, Any]:
    cfg = current_app.config
    return {
        'name': cfg.get('BUSINESS_NAME', ''),
        'address': cfg.get('BUSINESS_ADDRESS', ''),
        'phone': cfg.get('BUSINESS_PHONE', ''),
        'email': cfg.get('BUSINESS_EMAIL', ''),
        'drug_license': cfg.get('BUSINESS_DRUG_LICENSE', ''),
        'gstin': cfg.get('BUSINESS_GSTIN', ''),
        'place_of_supply': cfg.get('BUSINESS_PLACE_OF_SUPPLY', ''),
        'due_days': cfg.get('INVOICE_DUE_DAYS', 10),
        'footer': cfg.get('INVOICE_FOOTER', ''),
    }


def _gst_rate() -> Decimal:
    return Decimal(str(current_app.config.get('GST_RATE', '12')))


def serialize_product(product) -> Dict[str, Any]:
    return {
        'id': product.id,
        'name': product.name,
        'generic_name': product.generic_name,
        'composition': product.composition,
        'manufacturer': product.manufacturer,
        'category': product.category,
        'batch': product.batch,
        'hsn_code': product.hsn_code,
        'pack_units': product.pack_units,
        'expiry_date': _iso(product.expiry_date),
        'mrp': _dec(product.mrp),
        'price': _dec(product.price),
        'stock': product.stock,
        'gst_percentage': str(product.gst_percentage),
    }


def _serialize_line(line) -> Dict[str, Any]:
    return {
        'product_id': line.product_id,
        'product_name': line.product_name,
        'batch': line.batch,
        'hsn_code': line.hsn_code,
        'pack_units': line.pack_units,
        'expiry_date': _iso(line.expiry_date),
        'mrp': _dec(line.mrp),
        'quantity': line.quantity,
        'unit_price': _dec(line.unit_price),
        'discount_percent': str(line.discount_percent),
        'cgst_rate': str(line.cgst_rate),
        'sgst_rate': str(line.sgst_rate),
        'line_total': _dec(line.line_total),
    }


def serialize_draft(draft, totals) -> Dict[str, Any]:
    rounded = totals.rounded()
    return {
        'id': draft.id,
        'status': draft.status.value,
        'customer_name': draft.customer_name,
        'customer_phone': draft.customer_phone,
        'customer_address': draft.customer_address,
        'doctor_name': draft.doctor_name,
        'discount_percent': str(draft.discount_percent),
        'payment_method': draft.payment_method,
        'payment_status': draft.payment_status,
        'follow_up_date': _iso(draft.follow_up_date),
        'follow_up_notes': draft.follow_up_notes,
        'sale_id': draft.sale_id,
        'items': [_serialize_line(line) for line in draft.lines],
        'totals': {
            'subtotal': str(rounded.subtotal),
            'discount_amount': str(rounded.discount_amount),
            'tax_amount': str(rounded.tax_amount),
            'cgst_amount': str(money(totals.cgst_amount)),
            'sgst_amount': str(money(totals.sgst_amount)),
            'total': str(rounded.total),
            'total_quantity': rounded.total_quantity,
        },
    }


def serialize_sale(sale) -> Dict[str, Any]:
    return {
        'id': sale.id,
        'bill_number': sale.bill_number,
        'customer_name': sale.customer_name,
        'customer_phone': sale.customer_phone,
        'customer_address': sale.customer_address,
        'doctor_name': sale.doctor_name,
        'gst_number': sale.gst_number,
        'items': [_serialize_line(line) for line in sale.lines],
        'discount_percent': str(sale.discount_percent),
        'subtotal': _dec(sale.subtotal),
        'discount_amount': _dec(sale.discount_amount),
        'tax_amount': _dec(sale.tax_amount),
        'total': _dec(sale.total),
        'total_quantity': sale.total_quantity,
        'payment_method': sale.payment_method,
        'status': sale.status,
        'payment_status': sale.payment_status,
        'follow_up_date': _iso(sale.follow_up_date),
        'follow_up_notes': sale.follow_up_notes,
        'created_at': _iso(sale.created_at),
    }


def serialize_customer_sales(group) -> Dict[str, Any]:
    return {
        'customer_name': group.customer_name,
        'customer_phone': group.customer_phone,
        'sale_count': group.sale_count,
        'total_amount': _dec(group.total_amount),
        'last_sale_date': _iso(group.last_sale_date),
        'sales': [
            {'id': s.id, 'bill_number': s.bill_number, 'total': _dec(s.total), 'created_at': _iso(s.created_at)}
            for s in group.sales
        ],
    }


def _draft_response(db_session, draft_id: int, status: int = 200):
    draft, totals = sale_draft_service.get_draft_with_totals(db_session, draft_id, _gst_rate())
    return jsonify(serialize_draft(draft, totals)), status


# ============================================================================
# Product lookup
# ============================================================================

@sales_bp.route('/products/search', methods=['GET'])
def product_search():
    """Autocomplete for line-item entry."""
    db_session = get_session()
    products = search_products(
        db_session,
        request.args.get('q', ''),
        limit=current_app.config.get('PRODUCT_SEARCH_LIMIT', 10),
        include_out_of_stock=request.args.get('in_stock') != '1',
        category=request.args.get('category'),
        manufacturer=request.args.get('manufacturer')
    )
    return jsonify({'products': [serialize_product(p) for p in products]})


# ============================================================================
# Drafts
# ============================================================================

@sales_bp.route('/drafts', methods=['POST'])
def create_draft():
    db_session = get_session()
    try:
        draft = sale_draft_service.create_draft(
            db_session,
            follow_up_days=current_app.config.get('FOLLOW_UP_DAYS', 30),
            **sale_draft_service.check_detail_fields(_json_body())
        )
        db_session.commit()
    except PharmaError:
        db_session.rollback()
        raise
    return _draft_response(db_session, draft.id, 201)


@sales_bp.route('/drafts/<int:draft_id>', methods=['GET'])
def get_draft(draft_id: int):
    return _draft_response(get_session(), draft_id)


@sales_bp.route('/drafts/<int:draft_id>', methods=['PATCH'])
def update_draft(draft_id: int):
    db_session = get_session()
    try:
        sale_draft_service.update_draft_details(
            db_session, draft_id, **sale_draft_service.check_detail_fields(_json_body())
        )
        db_session.commit()
    except PharmaError:
        db_session.rollback()
        raise
    return _draft_response(db_session, draft_id)


@sales_bp.route('/drafts/<int:draft_id>', methods=['DELETE'])
def discard_draft(draft_id: int):
    db_session = get_session()
    sale_draft_service.discard_draft(db_session, draft_id)
    db_session.commit()
    return jsonify({'status': 'ok'})


@sales_bp.route('/drafts/<int:draft_id>/items', methods=['POST'])
def add_item(draft_id: int):
    db_session = get_session()
    data = _json_body()
    if 'product_id' not in data:
        raise ValidationError('product_id is required')
    try:
        sale_draft_service.add_item(
            db_session,
            draft_id,
            data['product_id'],
            data.get('quantity', 1),
            default_cgst=Decimal(str(current_app.config.get('DEFAULT_CGST_RATE', '6'))),
            default_sgst=Decimal(str(current_app.config.get('DEFAULT_SGST_RATE', '6')))
        )
        db_session.commit()
    except PharmaError:
        db_session.rollback()
        raise
    return _draft_response(db_session, draft_id)


@sales_bp.route('/drafts/<int:draft_id>/items/<int:index>', methods=['PATCH'])
def update_item(draft_id: int, index: int):
    db_session = get_session()
    data = _json_body()
    if 'quantity' not in data:
        raise ValidationError('quantity is required')
    try:
        sale_draft_service.update_quantity(db_session, draft_id, index, data['quantity'])
        db_session.commit()
    except PharmaError:
        db_session.rollback()
        raise
    return _draft_response(db_session, draft_id)


@sales_bp.route('/drafts/<int:draft_id>/items/<int:index>', methods=['DELETE'])
def remove_item(draft_id: int, index: int):
    db_session = get_session()
    try:
        sale_draft_service.remove_item(db_session, draft_id, index)
        db_session.commit()
    except PharmaError:
        db_session.rollback()
        raise
    return _draft_response(db_session, draft_id)


@sales_bp.route('/drafts/<int:draft_id>/finalize', methods=['POST'])
def finalize_draft(draft_id: int):
    """Finalize the draft into a numbered sale. Safe to retry."""
    db_session = get_session()
    cfg = current_app.config
    sale = sales_service.finalize_sale(
        db_session,
        draft_id,
        bill_prefix=cfg.get('BILL_NUMBER_PREFIX', 'DHS-2024-'),
        bill_padding=cfg.get('BILL_NUMBER_PADDING', 3),
        gst_rate=_gst_rate(),
        gst_number=cfg.get('BUSINESS_GSTIN'),
        max_retries=cfg.get('FINALIZE_MAX_RETRIES', 3)
    )
    return jsonify(serialize_sale(sale)), 201


# ============================================================================
# Sales
# ============================================================================

@sales_bp.route('/', methods=['GET'])
def list_sales():
    db_session = get_session()
    sales = sales_service.list_sales(db_session, request.args.get('q', ''))
    return jsonify({'sales': [serialize_sale(s) for s in sales]})


@sales_bp.route('/customers', methods=['GET'])
def sales_by_customer():
    """Sales grouped per customer, most recently active first."""
    groups = sales_service.group_sales_by_customer(get_session(), request.args.get('q', ''))
    return jsonify({'customers': [serialize_customer_sales(g) for g in groups]})


@sales_bp.route('/<int:sale_id>', methods=['GET'])
def sale_detail(sale_id: int):
    return jsonify(serialize_sale(sales_service.get_sale(get_session(), sale_id)))


@sales_bp.route('/<int:sale_id>/invoice.pdf', methods=['GET'])
def sale_invoice_pdf(sale_id: int):
    """Download the invoice in A4 (default) or A5."""
    sale = sales_service.get_sale(get_session(), sale_id)
    page_format = request.args.get('format', current_app.config.get('INVOICE_PAGE_FORMAT', 'A4'))
    pdf_buffer = render_invoice_pdf(sale, _business_info(), page_format)
    return send_file(
        pdf_buffer,
        mimetype='application/pdf',
        as_attachment=True,
        download_name=invoice_filename(sale, page_format)
    )
