"""
Inventory synchronizer.

Applies a finalized sale's quantities against product stock, clamping at
zero. It does not de-duplicate by sale: the finalizer calls it exactly once
per committed sale, and any other caller must do the same.
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, Iterable, List

from sqlalchemy.orm import Session

from pharmabill.exceptions import ConcurrencyConflictError
from pharmabill.repositories import ProductStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockLevel:
    """Detached stock snapshot for in-memory projections."""
    product_id: int
    stock: int
    updated_at: datetime = None


def _quantities_by_product(lines: Iterable) -> Dict[int, int]:
    quantities: Dict[int, int] = {}
    for line in lines:
        quantities[line.product_id] = quantities.get(line.product_id, 0) + int(line.quantity)
    return quantities


def deduct_stock(levels: Iterable[StockLevel], lines: Iterable, now: datetime = None) -> List[StockLevel]:
    """
    Pure projection: return new stock levels after the given sale lines.

    Products not referenced by any line are returned unchanged.
    """
    now = now or datetime.now()
    quantities = _quantities_by_product(lines)
    result = []
    for level in levels:
        qty = quantities.get(level.product_id)
        if qty is None:
            result.append(level)
        else:
            result.append(replace(level, stock=max(0, level.stock - qty), updated_at=now))
    return result


def apply_deduction(session: Session, sale) -> Dict[int, int]:
    """
    Deduct the sale's quantities from stock: stock = max(0, stock - qty).

    Each product is updated with a compare-and-swap on its current stock so
    a concurrent writer is detected rather than overwritten.

    Returns:
        {product_id: new_stock}

    Raises:
        ConcurrencyConflictError: a product's stock changed under us
    """
    store = ProductStore(session)
    quantities = _quantities_by_product(sale.lines)
    products = store.get_many_for_update(quantities.keys())

    new_levels = {}
    for product_id, qty in quantities.items():
        product = products.get(product_id)
        if product is None:
            # Line references a product that no longer exists; nothing to deduct
            logger.warning(f"Sale {sale.bill_number}: product {product_id} missing, skipping deduction")
            continue

        current = product.stock
        new_stock = max(0, current - qty)
        if not store.compare_and_swap_stock(product_id, current, new_stock):
            raise ConcurrencyConflictError(
                f'Stock for "{product.name}" changed during finalization, please retry'
            )
        new_levels[product_id] = new_stock

    logger.info(f"Stock deducted for sale {sale.bill_number}: {new_levels}")
    return new_levels
