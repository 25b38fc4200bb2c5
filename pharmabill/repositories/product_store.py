"""
Product store (persistence).

Only persistence operations live here: lookups, row locking and the
conditional stock update. Stock rules belong to the services.
"""
from typing import Dict, Iterable, Optional

from sqlalchemy import update, func
from sqlalchemy.orm import Session

from pharmabill.models import Product


class ProductStore:
    """Product rows behind the billing engine."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, product_id: int) -> Optional[Product]:
        return self.session.get(Product, product_id)

    def get_many_for_update(self, product_ids: Iterable[int]) -> Dict[int, Product]:
        """Lock product rows FOR UPDATE (no-op on SQLite) and return them by id."""
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        products = (self.session.query(Product)
                    .filter(Product.id.in_(ids))
                    .order_by(Product.id)
                    .populate_existing()
                    .with_for_update()
                    .all())
        return {p.id: p for p in products}

    def compare_and_swap_stock(self, product_id: int, expected: int, new_stock: int) -> bool:
        """
        Set stock to new_stock only if it still equals expected.

        Returns False when another writer changed the row first.
        """
        if new_stock < 0:
            raise ValueError('stock cannot be negative')

        result = self.session.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock == expected)
            .values(stock=new_stock, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        product = self.session.get(Product, product_id)
        if product is not None:
            self.session.expire(product, ['stock', 'updated_at'])
        return result.rowcount == 1
