"""Bill number counter model."""
from sqlalchemy import Column, BigInteger, Integer, String, DateTime
from sqlalchemy.sql import func
from pharmabill.database import Base


class BillCounter(Base):
    """
    Bill Counter - one row per store prefix.

    last_value is only ever advanced by a compare-and-swap update, so two
    finalizations can never be handed the same sequence value.
    """

    __tablename__ = 'bill_counter'

    prefix = Column(String(32), primary_key=True)
    last_value = Column(BigInteger().with_variant(Integer, 'sqlite'), nullable=False, default=0, server_default='0')
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<BillCounter(prefix='{self.prefix}', last_value={self.last_value})>"
