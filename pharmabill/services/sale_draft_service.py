"""Sale Draft Service - line item accumulation for the bill being built."""
import logging
import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from pharmabill.exceptions import (
    BusinessLogicError, NotFoundError, ValidationError,
    OutOfStockError, InsufficientStockError
)
from pharmabill.models import SaleDraft, SaleDraftLine, DraftStatus, PaymentStatus, normalize_payment_method
from pharmabill.services.pricing_service import compute_totals, validate_discount_percent, Totals, DEFAULT_GST_RATE
from pharmabill.services.product_service import lookup_product

logger = logging.getLogger(__name__)

DEFAULT_CGST_RATE = Decimal('6')
DEFAULT_SGST_RATE = Decimal('6')
DEFAULT_FOLLOW_UP_DAYS = 30

DETAIL_FIELDS = (
    'customer_name', 'customer_phone', 'customer_address', 'doctor_name',
    'discount_percent', 'payment_method', 'payment_status',
    'follow_up_date', 'follow_up_notes',
)


def _require_quantity(quantity) -> int:
    if isinstance(quantity, bool):
        raise ValidationError('Quantity must be a whole number')
    try:
        qty = int(quantity)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError('Quantity must be a whole number')
    if qty != quantity and str(qty) != str(quantity).strip():
        raise ValidationError('Quantity must be a whole number')
    return qty


def check_detail_fields(fields: dict) -> dict:
    """Reject keys that are not customer, payment or follow-up fields."""
    unknown = set(fields) - set(DETAIL_FIELDS)
    if unknown:
        raise ValidationError(f'Unknown draft fields: {", ".join(sorted(unknown))}')
    return fields


def _clean_details(fields: dict) -> dict:
    check_detail_fields(fields)

    cleaned = {}
    for key, value in fields.items():
        if key == 'discount_percent':
            cleaned[key] = validate_discount_percent(value)
        elif key == 'payment_method':
            method = normalize_payment_method(value)
            if not method:
                raise ValidationError(f'Invalid payment method: {value}')
            cleaned[key] = method
        elif key == 'payment_status':
            if value not in {s.value for s in PaymentStatus}:
                raise ValidationError(f'Invalid payment status: {value}')
            cleaned[key] = value
        elif key == 'follow_up_date':
            if isinstance(value, str):
                try:
                    value = date.fromisoformat(value) if value else None
                except ValueError:
                    raise ValidationError(f'Invalid follow-up date: {value}')
            cleaned[key] = value
        elif key in ('customer_name', 'customer_phone'):
            cleaned[key] = (value or '').strip()
        else:
            cleaned[key] = value.strip() if isinstance(value, str) and value.strip() else None
    return cleaned


def _require_open_draft(draft: SaleDraft) -> SaleDraft:
    if draft.is_finalized:
        raise BusinessLogicError(f'Draft {draft.id} is already finalized and can no longer be edited.')
    return draft


def _touch(draft: SaleDraft) -> None:
    draft.updated_at = datetime.now()


def create_draft(session: Session, follow_up_days: int = DEFAULT_FOLLOW_UP_DAYS, **details) -> SaleDraft:
    """Start a new sale. Customer fields may be filled now or later."""
    fields = {
        'payment_method': 'cash',
        'discount_percent': Decimal('0'),
        'follow_up_date': date.today() + timedelta(days=follow_up_days),
    }
    fields.update(_clean_details(details))

    draft = SaleDraft(draft_key=uuid.uuid4().hex, status=DraftStatus.DRAFT, **fields)
    session.add(draft)
    session.flush()
    logger.info(f"Draft {draft.id} created")
    return draft


def get_draft(session: Session, draft_id: int) -> SaleDraft:
    draft = session.get(SaleDraft, draft_id)
    if not draft:
        raise NotFoundError(f'Draft {draft_id} not found.')
    return draft


def update_draft_details(session: Session, draft_id: int, **fields) -> SaleDraft:
    """Update customer, discount, payment and follow-up fields."""
    draft = _require_open_draft(get_draft(session, draft_id))
    for key, value in _clean_details(fields).items():
        setattr(draft, key, value)
    _touch(draft)
    session.flush()
    return draft


def add_item(
    session: Session,
    draft_id: int,
    product_id: int,
    quantity: int = 1,
    default_cgst: Decimal = DEFAULT_CGST_RATE,
    default_sgst: Decimal = DEFAULT_SGST_RATE
) -> SaleDraftLine:
    """
    Add a product to the draft, merging with an existing line for it.

    Raises:
        OutOfStockError: product has no stock
        InsufficientStockError: merged quantity would exceed stock; draft unchanged
    """
    draft = _require_open_draft(get_draft(session, draft_id))
    qty = _require_quantity(quantity)
    if qty <= 0:
        raise ValidationError('Quantity must be greater than 0')

    product = lookup_product(session, product_id)
    if not product.active:
        raise BusinessLogicError(f'Product "{product.name}" is not active.')
    if product.stock <= 0:
        raise OutOfStockError(product.name)

    line = next((l for l in draft.lines if l.product_id == product.id), None)

    if line:
        new_qty = line.quantity + qty
        if new_qty > product.stock:
            raise InsufficientStockError(product.name, new_qty, product.stock)
        line.quantity = new_qty
    else:
        if qty > product.stock:
            raise InsufficientStockError(product.name, qty, product.stock)
        line = SaleDraftLine(
            product_id=product.id,
            product_name=product.name,
            batch=product.batch,
            hsn_code=product.hsn_code,
            pack_units=product.pack_units,
            expiry_date=product.expiry_date,
            mrp=product.mrp,
            quantity=qty,
            unit_price=product.price,
            discount_percent=Decimal('0'),
            cgst_rate=product.cgst_rate if product.cgst_rate is not None else default_cgst,
            sgst_rate=product.sgst_rate if product.sgst_rate is not None else default_sgst,
        )
        draft.lines.append(line)

    line.recompute_total()
    _touch(draft)
    session.flush()
    return line


def update_quantity(session: Session, draft_id: int, index: int, quantity: int) -> Optional[SaleDraftLine]:
    """
    Set the quantity of the line at index. quantity <= 0 removes the line.

    Returns the updated line, or None when it was removed.
    """
    draft = _require_open_draft(get_draft(session, draft_id))
    qty = _require_quantity(quantity)

    if qty <= 0:
        remove_item(session, draft_id, index)
        return None

    if index < 0 or index >= len(draft.lines):
        raise NotFoundError(f'Draft {draft_id} has no line {index}.')

    line = draft.lines[index]
    product = lookup_product(session, line.product_id)
    if qty > product.stock:
        raise InsufficientStockError(line.product_name, qty, product.stock)

    line.quantity = qty
    line.recompute_total()
    _touch(draft)
    session.flush()
    return line


def remove_item(session: Session, draft_id: int, index: int) -> None:
    """Remove the line at index. Out-of-range indexes are ignored."""
    draft = _require_open_draft(get_draft(session, draft_id))
    if 0 <= index < len(draft.lines):
        draft.lines.pop(index)
        _touch(draft)
        session.flush()


def discard_draft(session: Session, draft_id: int) -> None:
    """Cancel a draft and drop its lines. A finalized draft keeps its sale."""
    draft = session.get(SaleDraft, draft_id)
    if not draft:
        return
    session.delete(draft)
    session.flush()
    logger.info(f"Draft {draft_id} discarded")


def calculate_draft_totals(draft: SaleDraft, gst_rate=DEFAULT_GST_RATE) -> Totals:
    """Live summary for the draft; unrounded."""
    return compute_totals(draft.lines, draft.discount_percent, gst_rate)


def get_draft_with_totals(session: Session, draft_id: int, gst_rate=DEFAULT_GST_RATE) -> Tuple[SaleDraft, Totals]:
    draft = get_draft(session, draft_id)
    return draft, calculate_draft_totals(draft, gst_rate)
