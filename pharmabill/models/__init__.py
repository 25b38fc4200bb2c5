"""Models package - exports all SQLAlchemy models."""
from pharmabill.models.product import Product
from pharmabill.models.bill_counter import BillCounter
from pharmabill.models.sale import Sale, SaleStatus, PaymentStatus, PaymentMethod, normalize_payment_method
from pharmabill.models.sale_line import SaleLine
from pharmabill.models.sale_draft import SaleDraft, DraftStatus
from pharmabill.models.sale_draft_line import SaleDraftLine

__all__ = [
    'Product', 'BillCounter',
    'Sale', 'SaleStatus', 'PaymentStatus', 'PaymentMethod', 'normalize_payment_method',
    'SaleLine', 'SaleDraft', 'DraftStatus', 'SaleDraftLine',
]
