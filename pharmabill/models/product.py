"""Product model."""
from sqlalchemy import Column, BigInteger, Integer, String, Boolean, Numeric, Date, DateTime, CheckConstraint
from sqlalchemy.sql import func
from pharmabill.database import Base


class Product(Base):
    """Product model (catalog entry with its on-hand stock)."""

    __tablename__ = 'product'
    __table_args__ = (
        CheckConstraint('stock >= 0', name='ck_product_stock_non_negative'),
        CheckConstraint('price <= mrp', name='ck_product_price_le_mrp'),
    )

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False, index=True)
    generic_name = Column(String(200), nullable=False, default='', server_default='')
    composition = Column(String(255), nullable=False, default='', server_default='')
    manufacturer = Column(String(200), nullable=False, default='', server_default='')
    category = Column(String(100), nullable=False, default='', server_default='', index=True)
    batch = Column(String(50), nullable=False, default='', server_default='')
    hsn_code = Column(String(20), nullable=False, default='', server_default='')
    pack_units = Column(String(50), nullable=False, default='', server_default='')
    expiry_date = Column(Date, nullable=True)
    mrp = Column(Numeric(10, 2), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0, server_default='0')
    cgst_rate = Column(Numeric(5, 2), nullable=True)
    sgst_rate = Column(Numeric(5, 2), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock})>"

    @property
    def gst_percentage(self):
        """Combined GST rate shown on invoices."""
        return (self.cgst_rate or 0) + (self.sgst_rate or 0)
