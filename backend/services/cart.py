# backend/services/cart.py
"""Cart storage for signed-in users and guests.

Signed-in users keep their cart in ``cart_items``. A guest cart lives in the
client's local storage; the client posts it with the request and the server
wraps it in ``GuestCart``. Both implement the same small interface so the
routes and the login merge do not care which one they hold.
"""
import json
import logging
import uuid
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy.orm import Session

from config import settings
from models.cart import CartItem
from models.product import Product
from schemas.cart import CartLine, CartSummary
from utils.errors import CartItemNotFoundError, InsufficientStockError, ProductNotFoundError

logger = logging.getLogger(__name__)


def _config_key(data: Optional[Dict[str, Any]]) -> Optional[str]:
    if data is None:
        return None
    return json.dumps(data, sort_keys=True)


def same_line(a: CartLine, product_id: Optional[int], custom: Optional[Dict[str, Any]]) -> bool:
    return a.product_id == product_id and _config_key(a.custom_bouquet_data) == _config_key(custom)


class CartStore(Protocol):
    def items(self) -> List[CartLine]: ...

    def add(self, line: CartLine) -> CartLine: ...

    def update(self, item_id: str, quantity: int) -> Optional[CartLine]: ...

    def remove(self, item_id: str) -> None: ...

    def clear(self) -> None: ...


def _row_to_line(row: CartItem) -> CartLine:
    return CartLine(
        id=str(row.id),
        product_id=row.product_id,
        product_name=row.product_name or (row.product.name if row.product else None),
        quantity=row.quantity,
        price=row.unit_price_snapshot,
        custom_bouquet_data=row.custom_bouquet_data,
    )


class ServerCart:
    """Cart rows persisted for one user."""

    def __init__(self, db: Session, user_id: int):
        self.db = db
        self.user_id = user_id

    def _query(self):
        return self.db.query(CartItem).filter(CartItem.user_id == self.user_id)

    def _row(self, item_id) -> CartItem:
        try:
            row_id = int(item_id)
        except (TypeError, ValueError):
            raise CartItemNotFoundError(item_id)
        row = self._query().filter(CartItem.id == row_id).first()
        if row is None:
            raise CartItemNotFoundError(item_id)
        return row

    def items(self) -> List[CartLine]:
        return [_row_to_line(r) for r in self._query().order_by(CartItem.created_at, CartItem.id).all()]

    def add(self, line: CartLine) -> CartLine:
        # Same product with the same configuration accumulates quantity
        for row in self._query().filter(CartItem.product_id == line.product_id).all():
            if _config_key(row.custom_bouquet_data) == _config_key(line.custom_bouquet_data):
                row.quantity += line.quantity
                self.db.commit()
                self.db.refresh(row)
                return _row_to_line(row)

        row = CartItem(
            user_id=self.user_id,
            product_id=line.product_id,
            product_name=line.product_name,
            custom_bouquet_data=line.custom_bouquet_data,
            quantity=line.quantity,
            unit_price_snapshot=line.price,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return _row_to_line(row)

    def update(self, item_id: str, quantity: int) -> Optional[CartLine]:
        row = self._row(item_id)
        if quantity <= 0:
            self.db.delete(row)
            self.db.commit()
            return None
        row.quantity = quantity
        self.db.commit()
        self.db.refresh(row)
        return _row_to_line(row)

    def remove(self, item_id: str) -> None:
        row = self._row(item_id)
        self.db.delete(row)
        self.db.commit()

    def clear(self) -> None:
        self._query().delete(synchronize_session=False)
        self.db.commit()


class GuestCart:
    """Client-held cart lines, edited in memory and returned to the client."""

    def __init__(self, lines: Optional[List[CartLine]] = None):
        self._lines: List[CartLine] = [line.model_copy() for line in (lines or [])]

    def _index(self, item_id) -> int:
        for i, line in enumerate(self._lines):
            if line.id == str(item_id):
                return i
        raise CartItemNotFoundError(item_id)

    def items(self) -> List[CartLine]:
        return list(self._lines)

    def add(self, line: CartLine) -> CartLine:
        for existing in self._lines:
            if same_line(existing, line.product_id, line.custom_bouquet_data):
                existing.quantity += line.quantity
                return existing
        new_line = line.model_copy(update={"id": line.id or f"local_{uuid.uuid4().hex[:12]}"})
        self._lines.append(new_line)
        return new_line

    def update(self, item_id: str, quantity: int) -> Optional[CartLine]:
        i = self._index(item_id)
        if quantity <= 0:
            self._lines.pop(i)
            return None
        self._lines[i].quantity = quantity
        return self._lines[i]

    def remove(self, item_id: str) -> None:
        self._lines = [line for line in self._lines if line.id != str(item_id)]

    def clear(self) -> None:
        self._lines = []


def cart_for(db: Session, user=None, guest_lines: Optional[List[CartLine]] = None) -> CartStore:
    """Pick the backing store from the caller's identity."""
    if user is not None:
        return ServerCart(db, user.id)
    return GuestCart(guest_lines)


def quantity_in_cart(store: CartStore, product_id: int) -> int:
    return sum(line.quantity for line in store.items() if line.product_id == product_id)


def line_for_product(db: Session, product_id: int, quantity: int, in_cart: int = 0) -> CartLine:
    """Build a cart line for a catalog product, checking it can be bought.

    ``in_cart`` is the quantity of the product already held, so the stock
    check covers the combined amount.
    """
    product = db.query(Product).filter(Product.id == product_id).first()
    if product is None or not product.is_active:
        raise ProductNotFoundError(product_id)
    if quantity + in_cart > (product.stock_quantity or 0):
        raise InsufficientStockError(product.id, product.name, product.stock_quantity or 0)
    return CartLine(
        product_id=product.id,
        product_name=product.name,
        quantity=quantity,
        price=round(float(product.price), 2),
    )


def merge_guest_cart(db: Session, user_id: int, guest: GuestCart) -> int:
    """Fold a guest cart into the user's persisted cart, then empty it.

    Catalog lines are re-priced from the product row; lines for missing or
    inactive products, or beyond available stock, are dropped. Only custom
    bouquets keep the client's price. Returns the number of guest lines merged.
    """
    lines = guest.items()
    if not lines:
        return 0
    server = ServerCart(db, user_id)
    merged = 0
    for line in lines:
        if line.product_id is not None:
            try:
                checked = line_for_product(db, line.product_id, line.quantity,
                                           in_cart=quantity_in_cart(server, line.product_id))
            except (ProductNotFoundError, InsufficientStockError) as exc:
                logger.warning("Skipping guest cart line for product %s: %s", line.product_id, exc.message)
                continue
            line = checked.model_copy(update={"custom_bouquet_data": line.custom_bouquet_data})
        server.add(line)
        merged += 1
    guest.clear()
    logger.info("Merged %d guest cart lines into cart of user %s", merged, user_id)
    return merged


def summarize(lines: List[CartLine]) -> CartSummary:
    subtotal = round(sum(line.price * line.quantity for line in lines), 2)
    tax = round(subtotal * settings.TAX_RATE, 2)
    if not lines or subtotal > settings.FREE_SHIPPING_THRESHOLD:
        shipping = 0.0
    else:
        shipping = settings.SHIPPING_FLAT
    discount = 0.0
    return CartSummary(
        items=lines,
        subtotal=subtotal,
        tax=tax,
        shipping=shipping,
        discount=discount,
        total=round(subtotal + tax + shipping - discount, 2),
        item_count=sum(line.quantity for line in lines),
    )
