"""Sale model (finalized invoice)."""
import enum
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, Date, DateTime, Text, event, inspect
from sqlalchemy.orm import relationship, Session
from sqlalchemy.sql import func
from pharmabill.database import Base
from pharmabill.exceptions import BusinessLogicError


class SaleStatus(str, enum.Enum):
    """Sale status; transitions after finalization belong to fulfillment."""
    COMPLETED = 'completed'
    REFUNDED = 'refunded'


class PaymentStatus(str, enum.Enum):
    PAID = 'paid'
    PENDING = 'pending'


class PaymentMethod(str, enum.Enum):
    CASH = 'cash'
    CARD = 'card'
    UPI = 'upi'
    ONLINE = 'online'


def normalize_payment_method(method):
    """Return the canonical lowercase payment method or None if unknown."""
    if method is None:
        return None
    value = str(method).strip().lower()
    return value if value in {m.value for m in PaymentMethod} else None


class Sale(Base):
    """Sale (finalized bill). Immutable after insert except status fields."""

    __tablename__ = 'sale'

    MUTABLE_FIELDS = frozenset({'status', 'payment_status'})

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    bill_number = Column(String(40), nullable=False, unique=True, index=True)

    # Draft identity; a retried finalize finds the sale through it
    idempotency_key = Column(String(64), nullable=False, unique=True, index=True)

    customer_name = Column(String(200), nullable=False)
    customer_phone = Column(String(30), nullable=False, default='')
    customer_address = Column(Text, nullable=True)
    doctor_name = Column(String(200), nullable=True)
    gst_number = Column(String(20), nullable=True)

    discount_percent = Column(Numeric(5, 2), nullable=False, default=0)
    subtotal = Column(Numeric(12, 2), nullable=False)
    discount_amount = Column(Numeric(12, 2), nullable=False)
    tax_amount = Column(Numeric(12, 2), nullable=False)
    total = Column(Numeric(12, 2), nullable=False)

    payment_method = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=SaleStatus.COMPLETED.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PAID.value)

    follow_up_date = Column(Date, nullable=True)
    follow_up_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    lines = relationship('SaleLine', back_populates='sale', order_by='SaleLine.position', cascade='all, delete-orphan')

    @property
    def total_quantity(self):
        return sum(line.quantity for line in self.lines)

    def __repr__(self):
        return f"<Sale(id={self.id}, bill_number='{self.bill_number}', total={self.total})>"


def _changed_frozen_fields(obj, allowed):
    state = inspect(obj)
    changed = []
    for attr in state.mapper.column_attrs:
        if attr.key in allowed:
            continue
        if state.attrs[attr.key].history.has_changes():
            changed.append(attr.key)
    return changed


@event.listens_for(Session, 'before_flush')
def _guard_finalized_sales(session, flush_context, instances):
    """Reject any flush that rewrites a persisted sale or its lines."""
    from pharmabill.models.sale_line import SaleLine

    for obj in session.dirty:
        if isinstance(obj, Sale):
            changed = _changed_frozen_fields(obj, Sale.MUTABLE_FIELDS)
        elif isinstance(obj, SaleLine):
            changed = _changed_frozen_fields(obj, frozenset())
        else:
            continue
        if changed:
            raise BusinessLogicError(
                f'Finalized sales are immutable (attempted to change: {", ".join(sorted(changed))})'
            )

    for obj in session.deleted:
        if isinstance(obj, Sale):
            raise BusinessLogicError('Finalized sales cannot be deleted')
