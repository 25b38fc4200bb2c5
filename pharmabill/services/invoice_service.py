"""Invoice service: read-only projection and PDF rendering of finalized sales."""

from datetime import datetime, timedelta
from io import BytesIO
from typing import Dict, Any
from xml.sax.saxutils import escape

from reportlab.lib.pagesizes import A4, A5
from reportlab.lib import colors
from reportlab.lib.units import mm
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER

from pharmabill.exceptions import ValidationError
from pharmabill.services.pricing_service import money
from pharmabill.utils.formatters import money_inr, date_in, datetime_in, expiry_month, qty_fmt

PAGE_SIZES = {'A4': A4, 'A5': A5}
DEFAULT_DUE_DAYS = 10

ITEM_HEADERS = ['Sn', 'PRODUCT', 'HSN', 'BATCH', 'PACK', 'EXP', 'MRP', 'QTY', 'RATE', 'DISC', 'GST', 'AMOUNT']
# Relative column widths; scaled to the printable width of the page
ITEM_COL_WEIGHTS = [4, 26, 10, 10, 8, 7, 9, 6, 9, 7, 6, 12]


def resolve_page_size(page_format: str):
    key = (page_format or 'A4').upper()
    if key not in PAGE_SIZES:
        raise ValidationError(f'Unsupported page format: {page_format}. Use A4 or A5.')
    return key, PAGE_SIZES[key]


def build_invoice_view(sale, business_info: Dict[str, Any] = None) -> Dict[str, Any]:
    """
    Flatten a finalized sale into the rows and totals printed on the invoice.

    Amounts are strings rounded to 2 decimals, the same values the PDF shows.
    """
    business_info = business_info or {}
    issued_at = sale.created_at or datetime.now()
    due_days = business_info.get('due_days', DEFAULT_DUE_DAYS)

    rows = []
    for index, line in enumerate(sale.lines, start=1):
        rows.append({
            'sn': index,
            'product': line.product_name,
            'hsn': line.hsn_code or '',
            'batch': line.batch or '',
            'pack': line.pack_units or '',
            'expiry': expiry_month(line.expiry_date),
            'mrp': money_inr(line.mrp),
            'quantity': line.quantity,
            'rate': money_inr(line.unit_price),
            'discount': f"{qty_fmt(line.discount_percent)}%",
            'gst': f"{qty_fmt(line.gst_percentage)}%",
            'amount': money_inr(line.line_total),
        })

    return {
        'business': {
            'name': business_info.get('name', ''),
            'address': business_info.get('address', ''),
            'phone': business_info.get('phone', ''),
            'email': business_info.get('email', ''),
            'drug_license': business_info.get('drug_license', ''),
            'gstin': sale.gst_number or business_info.get('gstin', ''),
            'place_of_supply': business_info.get('place_of_supply', ''),
        },
        'invoice': {
            'bill_number': sale.bill_number,
            'date': date_in(issued_at),
            'due_date': date_in(issued_at + timedelta(days=due_days)),
            'payment_method': (sale.payment_method or '').upper(),
        },
        'customer': {
            'name': sale.customer_name,
            'phone': sale.customer_phone or '',
            'address': sale.customer_address or '',
            'doctor': sale.doctor_name or '',
        },
        'rows': rows,
        'totals': {
            'item_count': len(rows),
            'total_quantity': sale.total_quantity,
            'subtotal': money_inr(sale.subtotal),
            'discount': money_inr(sale.discount_amount),
            'gst': money_inr(sale.tax_amount),
            'total': money_inr(money(sale.total)),
        },
    }


def render_invoice_pdf(sale, business_info: Dict[str, Any] = None, page_format: str = 'A4') -> BytesIO:
    """
    Render a finalized sale as a TAX INVOICE PDF.

    Args:
        sale: finalized Sale with lines
        business_info: issuer block (name, address, phone, email,
            drug_license, gstin, place_of_supply, due_days, footer)
        page_format: 'A4' or 'A5'

    Raises:
        ValidationError: unsupported page format
    """
    page_key, page_size = resolve_page_size(page_format)
    view = build_invoice_view(sale, business_info)
    small = page_key == 'A5'

    buffer = BytesIO()
    margin = 10 * mm
    doc = SimpleDocTemplate(
        buffer,
        pagesize=page_size,
        rightMargin=margin,
        leftMargin=margin,
        topMargin=margin,
        bottomMargin=margin,
        title=f"Invoice {view['invoice']['bill_number']}"
    )
    usable_width = page_size[0] - 2 * margin

    elements = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'InvoiceTitle',
        parent=styles['Heading1'],
        fontSize=13 if small else 18,
        textColor=colors.HexColor('#2C3E50'),
        spaceAfter=4,
        alignment=TA_CENTER,
        fontName='Helvetica-Bold'
    )
    header_style = ParagraphStyle(
        'InvoiceHeader',
        parent=styles['Normal'],
        fontSize=7 if small else 9,
        textColor=colors.HexColor('#34495E'),
        alignment=TA_CENTER,
        spaceAfter=1
    )
    body_font = 6 if small else 8

    # 1. Issuer block
    business = view['business']
    elements.append(Paragraph(escape(business['name'] or 'TAX INVOICE'), title_style))
    if business['address']:
        elements.append(Paragraph(f"Address: {escape(business['address'])}", header_style))
    contact_parts = []
    if business['phone']:
        contact_parts.append(f"Contact: {business['phone']}")
    if business['email']:
        contact_parts.append(f"Email: {business['email']}")
    if contact_parts:
        elements.append(Paragraph(escape(" | ".join(contact_parts)), header_style))
    if business['drug_license']:
        elements.append(Paragraph(f"Drug License: {escape(business['drug_license'])}", header_style))
    if business['gstin']:
        elements.append(Paragraph(f"GSTIN: {escape(business['gstin'])}", header_style))
    elements.append(Spacer(1, 4 * mm))

    # 2. Invoice + customer block
    invoice = view['invoice']
    customer = view['customer']
    left = [['TAX INVOICE', ''], ['Customer:', f"{customer['name']} ({customer['phone']})" if customer['phone'] else customer['name']]]
    if customer['address']:
        left.append(['Address:', customer['address']])
    if customer['doctor']:
        left.append(['Doctor:', customer['doctor']])
    right = [
        ['Invoice Number:', invoice['bill_number']],
        ['Invoice Date:', invoice['date']],
        ['Due Date:', invoice['due_date']],
        ['Payment:', invoice['payment_method']],
    ]
    if business['place_of_supply']:
        right.append(['Place of Supply:', business['place_of_supply']])

    rows = max(len(left), len(right))
    left += [['', '']] * (rows - len(left))
    right += [['', '']] * (rows - len(right))
    info_table = Table(
        [l + r for l, r in zip(left, right)],
        colWidths=[usable_width * w for w in (0.14, 0.40, 0.20, 0.26)]
    )
    info_table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTNAME', (2, 0), (2, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), body_font + 1),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('TEXTCOLOR', (0, 0), (-1, -1), colors.HexColor('#34495E')),
    ]))
    elements.append(info_table)
    elements.append(Spacer(1, 3 * mm))

    # 3. Items table
    weight_sum = sum(ITEM_COL_WEIGHTS)
    table_data = [ITEM_HEADERS]
    for row in view['rows']:
        table_data.append([
            str(row['sn']), row['product'][:28], row['hsn'], row['batch'], row['pack'],
            row['expiry'], row['mrp'], str(row['quantity']), row['rate'],
            row['discount'], row['gst'], row['amount'],
        ])
    items_table = Table(
        table_data,
        colWidths=[usable_width * w / weight_sum for w in ITEM_COL_WEIGHTS],
        repeatRows=1
    )
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#3498DB')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), body_font),
        ('ALIGN', (6, 1), (-1, -1), 'RIGHT'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#BDC3C7')),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#ECF0F1')]),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 3 * mm))

    # 4. Totals
    totals = view['totals']
    totals_table = Table([
        [f"TOTAL PRODUCTS: {totals['item_count']}", f"QTY: {totals['total_quantity']}", 'Sub Total', totals['subtotal']],
        ['', '', 'Less: Bill Discount', totals['discount']],
        ['', '', 'GST Amount', totals['gst']],
        ['', '', 'Total Payable', totals['total']],
    ], colWidths=[usable_width * w for w in (0.30, 0.20, 0.30, 0.20)])
    totals_table.setStyle(TableStyle([
        ('FONTSIZE', (0, 0), (-1, -1), body_font + 1),
        ('ALIGN', (3, 0), (3, -1), 'RIGHT'),
        ('FONTNAME', (2, 3), (3, 3), 'Helvetica-Bold'),
        ('FONTSIZE', (2, 3), (3, 3), body_font + 3),
        ('TEXTCOLOR', (2, 3), (3, 3), colors.HexColor('#27AE60')),
        ('LINEABOVE', (2, 3), (3, 3), 1, colors.HexColor('#27AE60')),
    ]))
    elements.append(totals_table)
    elements.append(Spacer(1, 5 * mm))

    # 5. Terms and footer
    footer_style = ParagraphStyle('Footer', parent=styles['Normal'], fontSize=body_font, textColor=colors.HexColor('#95A5A6'))
    footer_text = (
        "<b>Terms &amp; Conditions</b><br/>"
        "1. Goods once sold shall not be taken back.<br/>"
        "2. All the disputes are subject to local jurisdiction."
    )
    if business_info and business_info.get('footer'):
        footer_text += f"<br/><br/>{escape(business_info['footer'])}"
    footer_text += f"<br/><br/>Generated at {datetime_in(datetime.now(), with_seconds=True)}"
    elements.append(Paragraph(footer_text, footer_style))

    doc.build(elements)
    buffer.seek(0)
    return buffer


def invoice_filename(sale, page_format: str = 'A4') -> str:
    page_key, _ = resolve_page_size(page_format)
    return f"{sale.bill_number}-{page_key}.pdf"
