"""Product directory: read-only lookup and search for line-item entry."""
from typing import List, Optional

from sqlalchemy import or_, func, case
from sqlalchemy.orm import Session

from pharmabill.exceptions import NotFoundError
from pharmabill.models import Product

DEFAULT_SEARCH_LIMIT = 10

# Relevance points per matching field; a product's score is the sum
EXACT_NAME_SCORE = 100
NAME_PREFIX_SCORE = 80
NAME_CONTAINS_SCORE = 60
GENERIC_NAME_SCORE = 50
COMPOSITION_SCORE = 40
MANUFACTURER_SCORE = 30
HSN_SCORE = 25
CATEGORY_SCORE = 15


def lookup_product(session: Session, product_id: int) -> Product:
    """Get a product by id or raise NotFoundError."""
    product = session.get(Product, product_id)
    if not product:
        raise NotFoundError(f'Product {product_id} not found.')
    return product


def _relevance(term: str):
    name = func.lower(Product.name)
    hsn_term = ''.join(term.split())
    matches = [
        (name == term, EXACT_NAME_SCORE),
        (name.startswith(term, autoescape=True), NAME_PREFIX_SCORE),
        (name.contains(term, autoescape=True), NAME_CONTAINS_SCORE),
        (func.lower(Product.generic_name).contains(term, autoescape=True), GENERIC_NAME_SCORE),
        (func.lower(Product.composition).contains(term, autoescape=True), COMPOSITION_SCORE),
        (func.lower(Product.manufacturer).contains(term, autoescape=True), MANUFACTURER_SCORE),
        (Product.hsn_code.contains(hsn_term, autoescape=True), HSN_SCORE),
        (func.lower(Product.category).contains(term, autoescape=True), CATEGORY_SCORE),
    ]
    score = None
    for cond, points in matches:
        points = case((cond, points), else_=0)
        score = points if score is None else score + points
    return [cond for cond, _ in matches], score


def search_products(
    session: Session,
    term: str,
    limit: int = DEFAULT_SEARCH_LIMIT,
    include_out_of_stock: bool = True,
    category: Optional[str] = None,
    manufacturer: Optional[str] = None
) -> List[Product]:
    """
    Autocomplete search over active products, best match first.

    Case-insensitive substring match on name, generic name, composition,
    manufacturer, HSN code and category. Results are ranked by summed field
    scores (exact name, then name prefix, name, generic name, composition,
    manufacturer, HSN, category), then by name. category and manufacturer
    narrow the results to an exact (case-insensitive) value. A blank term
    returns no results.
    """
    term = (term or '').strip()[:100].lower()
    if not term:
        return []

    conditions, score = _relevance(term)
    query = session.query(Product).filter(Product.active == True, or_(*conditions))  # noqa: E712
    if not include_out_of_stock:
        query = query.filter(Product.stock > 0)
    if category:
        query = query.filter(func.lower(Product.category) == category.strip().lower())
    if manufacturer:
        query = query.filter(func.lower(Product.manufacturer) == manufacturer.strip().lower())

    return query.order_by(score.desc(), Product.name, Product.id).limit(limit).all()
