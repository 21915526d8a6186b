# backend/services/stock.py
from typing import Dict, Iterable

from sqlalchemy.orm import Session

from models.product import Product


def fetch_products(db: Session, product_ids: Iterable[int]) -> Dict[int, Product]:
    """Batch-read products (identity, price, stock) keyed by id."""
    ids = {pid for pid in product_ids if pid is not None}
    if not ids:
        return {}
    rows = db.query(Product).filter(Product.id.in_(list(ids))).all()
    return {p.id: p for p in rows}


def decrement_stock(db: Session, product_id: int, quantity: int) -> int:
    """Subtract ``quantity`` from a product's stock, floored at zero.

    The read and the write are not guarded against concurrent orders: two
    requests can both pass the availability check before either decrements.
    The floor keeps stored stock non-negative but does not prevent overselling.
    """
    product = db.query(Product).filter(Product.id == product_id).first()
    if product is None:
        return 0
    product.stock_quantity = max(0, (product.stock_quantity or 0) - quantity)
    db.commit()
    return product.stock_quantity
