"""Sale Draft model for the bill being built at the register."""
import enum
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, Date, DateTime, Text, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.sql import func
from pharmabill.database import Base


class DraftStatus(enum.Enum):
    """Draft lifecycle: DRAFT until finalized, then terminal."""
    DRAFT = "DRAFT"
    FINALIZED = "FINALIZED"


class SaleDraft(Base):
    """
    Sale Draft - mutable bill under construction.

    Lines keep insertion order (position) because that is the order they
    are printed on the invoice. draft_key is the identity used to make
    finalization exactly-once: the resulting Sale carries it as its
    idempotency key.
    """

    __tablename__ = 'sale_draft'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    draft_key = Column(String(64), nullable=False, unique=True, index=True)
    status = Column(Enum(DraftStatus, name='draft_status'), nullable=False, default=DraftStatus.DRAFT)

    customer_name = Column(String(200), nullable=False, default='', server_default='')
    customer_phone = Column(String(30), nullable=False, default='', server_default='')
    customer_address = Column(Text, nullable=True)
    doctor_name = Column(String(200), nullable=True)

    # Bill-level discount (applied to entire sale)
    discount_percent = Column(Numeric(5, 2), nullable=False, default=0)
    payment_method = Column(String(20), nullable=False, default='cash')
    payment_status = Column(String(20), nullable=False, default='paid')

    follow_up_date = Column(Date, nullable=True)
    follow_up_notes = Column(Text, nullable=True)

    sale_id = Column(BigInteger().with_variant(Integer, 'sqlite'), ForeignKey('sale.id'), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    lines = relationship(
        'SaleDraftLine',
        back_populates='draft',
        order_by='SaleDraftLine.position',
        collection_class=ordering_list('position'),
        cascade='all, delete-orphan'
    )
    sale = relationship('Sale')

    @property
    def is_finalized(self):
        return self.status == DraftStatus.FINALIZED

    def __repr__(self):
        return f"<SaleDraft(id={self.id}, status={self.status}, lines={len(self.lines)})>"
