"""Sale Draft Line model for items on a bill under construction."""
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, Date, ForeignKey
from sqlalchemy.orm import relationship
from pharmabill.database import Base


class SaleDraftLine(Base):
    """
    Sale Draft Line - one product on the draft.

    Pricing fields are copied from the product when the line is added;
    product_id is a reference for stock checks only.
    """

    __tablename__ = 'sale_draft_line'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    draft_id = Column(BigInteger().with_variant(Integer, 'sqlite'), ForeignKey('sale_draft.id', ondelete='CASCADE'), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    product_id = Column(BigInteger().with_variant(Integer, 'sqlite'), ForeignKey('product.id'), nullable=False, index=True)

    product_name = Column(String(200), nullable=False)
    batch = Column(String(50), nullable=False, default='')
    hsn_code = Column(String(20), nullable=False, default='')
    pack_units = Column(String(50), nullable=False, default='')
    expiry_date = Column(Date, nullable=True)
    mrp = Column(Numeric(10, 2), nullable=False)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    # Informational; only the bill-level discount is applied to totals
    discount_percent = Column(Numeric(5, 2), nullable=False, default=0)
    cgst_rate = Column(Numeric(5, 2), nullable=False)
    sgst_rate = Column(Numeric(5, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)

    # Relationships
    draft = relationship('SaleDraft', back_populates='lines')
    product = relationship('Product')

    def recompute_total(self):
        self.line_total = self.quantity * self.unit_price

    def __repr__(self):
        return f"<SaleDraftLine(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"
