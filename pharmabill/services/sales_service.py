"""
Sales service with transactional logic.
Turns a draft into an immutable, numbered sale and deducts stock.
"""
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pharmabill.exceptions import (
    NotFoundError, ValidationError,
    InsufficientStockError, ConcurrencyConflictError
)
from pharmabill.models import Sale, SaleLine, SaleDraft, DraftStatus, SaleStatus
from pharmabill.repositories import ProductStore, SaleStore, BillCounterStore
from pharmabill.services.inventory_service import apply_deduction
from pharmabill.services.pricing_service import compute_totals, DEFAULT_GST_RATE

logger = logging.getLogger(__name__)

DEFAULT_BILL_PREFIX = 'DHS-2024-'
DEFAULT_BILL_PADDING = 3
DEFAULT_MAX_RETRIES = 3

CASH_SALE_NAME = 'Cash Sale'
CASH_SALES_GROUP = 'Cash Sales'

# One mutex per store prefix: finalize + deduct run as a single unit in-process
_store_locks: Dict[str, threading.Lock] = {}
_store_locks_guard = threading.Lock()


def _lock_for(prefix: str) -> threading.Lock:
    with _store_locks_guard:
        lock = _store_locks.get(prefix)
        if lock is None:
            lock = _store_locks[prefix] = threading.Lock()
        return lock


def validate_draft(draft: SaleDraft) -> None:
    """Raise ValidationError listing every reason the draft cannot be finalized."""
    causes = []
    if not (draft.customer_name or '').strip():
        causes.append('Customer name is required')
    if not draft.lines:
        causes.append('Add at least one item to the sale')
    if causes:
        raise ValidationError(causes)


def _check_stock(session: Session, draft: SaleDraft) -> None:
    """Hard stock check against locked product rows."""
    required: Dict[int, int] = {}
    names: Dict[int, str] = {}
    for line in draft.lines:
        required[line.product_id] = required.get(line.product_id, 0) + line.quantity
        names[line.product_id] = line.product_name

    products = ProductStore(session).get_many_for_update(required.keys())
    for product_id, qty in required.items():
        product = products.get(product_id)
        if product is None:
            raise NotFoundError(f'Product "{names[product_id]}" no longer exists.')
        if product.stock < qty:
            raise InsufficientStockError(product.name, qty, product.stock)


def _build_sale(draft: SaleDraft, bill_number: str, gst_rate, gst_number) -> Sale:
    """Copy the draft into a new, independently owned Sale."""
    totals = compute_totals(draft.lines, draft.discount_percent, gst_rate).rounded()

    sale = Sale(
        bill_number=bill_number,
        idempotency_key=draft.draft_key,
        customer_name=draft.customer_name.strip(),
        customer_phone=draft.customer_phone or '',
        customer_address=draft.customer_address,
        doctor_name=draft.doctor_name,
        gst_number=gst_number,
        discount_percent=totals.discount_percent,
        subtotal=totals.subtotal,
        discount_amount=totals.discount_amount,
        tax_amount=totals.tax_amount,
        total=totals.total,
        payment_method=draft.payment_method,
        status=SaleStatus.COMPLETED.value,
        payment_status=draft.payment_status,
        follow_up_date=draft.follow_up_date,
        follow_up_notes=draft.follow_up_notes,
        created_at=datetime.now(),
    )
    for position, line in enumerate(draft.lines):
        sale.lines.append(SaleLine(
            position=position,
            product_id=line.product_id,
            product_name=line.product_name,
            batch=line.batch,
            hsn_code=line.hsn_code,
            pack_units=line.pack_units,
            expiry_date=line.expiry_date,
            mrp=line.mrp,
            quantity=line.quantity,
            unit_price=line.unit_price,
            discount_percent=line.discount_percent,
            cgst_rate=line.cgst_rate,
            sgst_rate=line.sgst_rate,
            line_total=line.line_total,
        ))
    return sale


def _finalize_once(session: Session, draft_id: int, bill_prefix: str, bill_padding: int,
                   gst_rate, gst_number) -> Sale:
    draft_key = None
    with _lock_for(bill_prefix):
        try:
            draft = session.get(SaleDraft, draft_id)
            if not draft:
                raise NotFoundError(f'Draft {draft_id} not found.')
            session.refresh(draft)
            draft_key = draft.draft_key

            # 1. Exactly-once: a committed sale for this draft is returned as is
            sales = SaleStore(session)
            existing = sales.get_by_idempotency_key(draft_key)
            if existing:
                logger.info(f"Draft {draft_id} already finalized as {existing.bill_number}")
                return existing

            # 2. Validate draft and stock
            validate_draft(draft)
            _check_stock(session, draft)

            # 3. Allocate bill number and freeze the sale
            bill_number = BillCounterStore(session, bill_prefix, bill_padding).next_bill_number()
            sale = sales.insert(_build_sale(draft, bill_number, gst_rate, gst_number))

            # 4. Inventory
            apply_deduction(session, sale)

            # 5. Close the draft
            draft.status = DraftStatus.FINALIZED
            draft.sale_id = sale.id
            draft.updated_at = datetime.now()

            session.commit()
            logger.info(f"Sale {sale.bill_number} finalized from draft {draft_id}: total {sale.total}")
            return sale

        except IntegrityError as e:
            session.rollback()
            if draft_key:
                existing = SaleStore(session).get_by_idempotency_key(draft_key)
                if existing:
                    return existing
            raise ConcurrencyConflictError(f'Finalization conflicted with another terminal: {e.orig}')
        except Exception:
            session.rollback()
            raise


def finalize_sale(
    session: Session,
    draft_id: int,
    bill_prefix: str = DEFAULT_BILL_PREFIX,
    bill_padding: int = DEFAULT_BILL_PADDING,
    gst_rate: Decimal = DEFAULT_GST_RATE,
    gst_number: str = None,
    max_retries: int = DEFAULT_MAX_RETRIES
) -> Sale:
    """
    Finalize a draft into a Sale.

    Steps:
    1. Return the existing sale if this draft was already finalized
    2. Validate customer name and line items (ValidationError)
    3. Re-check stock on locked rows (InsufficientStockError)
    4. Recompute totals, allocate the bill number, insert Sale + SaleLines
    5. Deduct stock, mark the draft finalized, commit

    ConcurrencyConflictError is retried up to max_retries attempts; each
    attempt re-validates stock. The caller discards the draft afterwards.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return _finalize_once(session, draft_id, bill_prefix, bill_padding, gst_rate, gst_number)
        except ConcurrencyConflictError as e:
            if attempt >= max_retries:
                logger.error(f"Finalize draft {draft_id} gave up after {attempt} attempts: {e.message}")
                raise
            logger.warning(f"Finalize draft {draft_id} attempt {attempt} conflicted, retrying: {e.message}")


def get_sale(session: Session, sale_id: int) -> Sale:
    sale = SaleStore(session).get(sale_id)
    if not sale:
        raise NotFoundError(f'Sale {sale_id} not found.')
    return sale


def list_sales(session: Session, search: str = '', limit: int = 50) -> List[Sale]:
    return SaleStore(session).search(search, limit)


@dataclass
class CustomerSales:
    """Sales of one customer, newest first."""

    customer_name: str
    customer_phone: str
    sales: List[Sale] = field(default_factory=list)
    total_amount: Decimal = Decimal('0.00')
    last_sale_date: datetime = None

    @property
    def sale_count(self) -> int:
        return len(self.sales)


def _customer_key(sale: Sale) -> str:
    if sale.customer_name == CASH_SALE_NAME:
        return CASH_SALES_GROUP
    # Walk-ins without a phone are kept apart by name
    return sale.customer_phone or f'name:{sale.customer_name.strip().lower()}'


def group_sales_by_customer(session: Session, search: str = '') -> List[CustomerSales]:
    """
    Group sales by customer phone, most recently active customer first.

    Sales billed to the generic 'Cash Sale' customer are pooled into one
    'Cash Sales' group with no phone. A group takes the name of its latest
    sale and sums the totals of all of them.
    """
    groups: Dict[str, CustomerSales] = {}
    for sale in SaleStore(session).search(search, limit=None):
        key = _customer_key(sale)
        group = groups.get(key)
        if group is None:
            if key == CASH_SALES_GROUP:
                group = CustomerSales(customer_name=CASH_SALES_GROUP, customer_phone='')
            else:
                group = CustomerSales(customer_name=sale.customer_name, customer_phone=sale.customer_phone)
            groups[key] = group
        group.sales.append(sale)
        group.total_amount += sale.total
        if group.last_sale_date is None or sale.created_at > group.last_sale_date:
            group.last_sale_date = sale.created_at

    return sorted(groups.values(), key=lambda g: g.last_sale_date, reverse=True)
