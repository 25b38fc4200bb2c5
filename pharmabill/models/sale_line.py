"""Sale Line model."""
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, Date, ForeignKey
from sqlalchemy.orm import relationship
from pharmabill.database import Base


class SaleLine(Base):
    """Sale Line - pricing fields frozen at sale time."""

    __tablename__ = 'sale_line'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    sale_id = Column(BigInteger().with_variant(Integer, 'sqlite'), ForeignKey('sale.id'), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    product_id = Column(BigInteger().with_variant(Integer, 'sqlite'), ForeignKey('product.id'), nullable=False)

    product_name = Column(String(200), nullable=False)
    batch = Column(String(50), nullable=False, default='')
    hsn_code = Column(String(20), nullable=False, default='')
    pack_units = Column(String(50), nullable=False, default='')
    expiry_date = Column(Date, nullable=True)
    mrp = Column(Numeric(10, 2), nullable=False)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    discount_percent = Column(Numeric(5, 2), nullable=False, default=0)
    cgst_rate = Column(Numeric(5, 2), nullable=False)
    sgst_rate = Column(Numeric(5, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)

    # Relationships
    sale = relationship('Sale', back_populates='lines')

    @property
    def gst_percentage(self):
        return self.cgst_rate + self.sgst_rate

    def __repr__(self):
        return f"<SaleLine(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"
