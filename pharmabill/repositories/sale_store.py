"""Sale store (persistence)."""
from typing import List, Optional

from sqlalchemy import or_, func
from sqlalchemy.orm import Session, selectinload

from pharmabill.models import Sale


class SaleStore:
    """Finalized sales. Rows are inserted once and never rewritten."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, sale_id: int) -> Optional[Sale]:
        return (self.session.query(Sale)
                .options(selectinload(Sale.lines))
                .filter(Sale.id == sale_id)
                .first())

    def get_by_idempotency_key(self, key: str) -> Optional[Sale]:
        return self.session.query(Sale).filter(Sale.idempotency_key == key).first()

    def insert(self, sale: Sale) -> Sale:
        self.session.add(sale)
        self.session.flush()
        return sale

    def search(self, term: str = '', limit: Optional[int] = 50) -> List[Sale]:
        """Most recent first; term matches customer name, phone or bill number. limit=None returns all."""
        query = self.session.query(Sale)
        term = (term or '').strip()[:100]
        if term:
            pattern = f'%{term.lower()}%'
            query = query.filter(or_(
                func.lower(Sale.customer_name).like(pattern),
                Sale.customer_phone.like(f'%{term}%'),
                func.lower(Sale.bill_number).like(pattern),
            ))
        query = query.order_by(Sale.created_at.desc(), Sale.id.desc())
        if limit is not None:
            query = query.limit(limit)
        return query.all()
