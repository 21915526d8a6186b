# backend/services/orders.py
"""Order placement workflow.

Placement is a linear sequence of writes against the database: verify stock,
create the order, create its items (deleting the order again if that fails),
deduct stock, record the first tracking entry and empty the customer's cart.
Only the order and its items are required to succeed; the later steps are
logged on failure and the order stands.
"""
import logging
import secrets
import string
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from models.order import Order, OrderItem, OrderTracking
from models.product import Product
from models.users import User
from schemas.order import OrderCreate, OrderItemIn
from services.cart import ServerCart
from services.stock import decrement_stock, fetch_products
from utils.errors import (
    EmptyOrderError,
    InsufficientStockError,
    OrderValidationError,
    PersistenceError,
    ProductNotFoundError,
)

logger = logging.getLogger(__name__)

ORDER_NUMBER_PREFIX = "PP"
_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
# Allowed drift between client-computed and server-computed amounts
MONEY_TOLERANCE = 0.01

CONFIRMED_DESCRIPTION = "Order confirmed and payment received"


@dataclass
class OrderLine:
    product_id: Optional[int]
    product_name: str
    quantity: int
    unit_price: float
    custom_bouquet_data: Optional[Dict[str, Any]] = None

    @property
    def total_price(self) -> float:
        return round(self.unit_price * self.quantity, 2)


def generate_order_number(now: Optional[float] = None) -> str:
    millis = int((now if now is not None else time.time()) * 1000)
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(7))
    return f"{ORDER_NUMBER_PREFIX}-{millis}-{suffix}"


def check_stock(items: List[OrderItemIn], products: Dict[int, Product]) -> None:
    """Raise if any catalog item is unknown, inactive or short on stock.

    Quantities of repeated lines for the same product are summed before the
    comparison.
    """
    requested: Dict[int, int] = {}
    for item in items:
        if item.product_id is None:
            continue
        product = products.get(item.product_id)
        if product is None or not product.is_active:
            raise ProductNotFoundError(item.product_id)
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

    for product_id, quantity in requested.items():
        product = products[product_id]
        available = product.stock_quantity or 0
        if available < quantity:
            raise InsufficientStockError(product.id, product.name, available)


def build_lines(items: List[OrderItemIn], products: Dict[int, Product]) -> List[OrderLine]:
    # Catalog prices come from the product row, never from the request
    lines = []
    for item in items:
        if item.product_id is not None:
            product = products[item.product_id]
            lines.append(OrderLine(
                product_id=product.id,
                product_name=product.name,
                quantity=item.quantity,
                unit_price=round(float(product.price), 2),
                custom_bouquet_data=item.custom_bouquet_data,
            ))
        else:
            lines.append(OrderLine(
                product_id=None,
                product_name=item.product_name or "Custom Bouquet",
                quantity=item.quantity,
                unit_price=round(float(item.unit_price), 2),
                custom_bouquet_data=item.custom_bouquet_data,
            ))
    return lines


def compute_total(payload: OrderCreate, lines: List[OrderLine]) -> float:
    """Validate the monetary breakdown and return the total to persist."""
    items_sum = round(sum(line.total_price for line in lines), 2)
    if abs(items_sum - payload.subtotal) > MONEY_TOLERANCE:
        raise OrderValidationError(
            f"Subtotal {payload.subtotal:.2f} does not match items total {items_sum:.2f}"
        )

    total = round(
        payload.subtotal + payload.tax_amount + payload.shipping_amount - payload.discount_amount, 2
    )
    if total < 0:
        raise OrderValidationError("Discount exceeds order amount")
    if payload.total_amount is not None and abs(payload.total_amount - total) > MONEY_TOLERANCE:
        raise OrderValidationError(
            f"Total {payload.total_amount:.2f} does not match computed total {total:.2f}"
        )
    return total


def _insert_items(db: Session, order: Order, lines: List[OrderLine]) -> None:
    db.add_all([
        OrderItem(
            order_id=order.id,
            product_id=line.product_id,
            product_name=line.product_name,
            quantity=line.quantity,
            unit_price=line.unit_price,
            total_price=line.total_price,
            custom_bouquet_data=line.custom_bouquet_data,
        )
        for line in lines
    ])
    db.commit()


def _delete_order(db: Session, order_id: int) -> None:
    # Compensating action for a failed item insert
    try:
        order = db.get(Order, order_id)
        if order is not None:
            db.delete(order)
            db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Rollback of order %s failed", order_id)


def _deduct_stock(db: Session, lines: List[OrderLine]) -> None:
    for line in lines:
        if line.product_id is None:
            continue
        try:
            decrement_stock(db, line.product_id, line.quantity)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Error updating stock for product %s", line.product_id)


def _record_confirmation(db: Session, order: Order) -> None:
    try:
        db.add(OrderTracking(order_id=order.id, status="confirmed", description=CONFIRMED_DESCRIPTION))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error creating tracking entry for order %s", order.id)


def _clear_cart(db: Session, user_id: int) -> None:
    try:
        ServerCart(db, user_id).clear()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error clearing cart for user %s", user_id)


def place_order(db: Session, user: User, payload: OrderCreate) -> Order:
    if not payload.items:
        raise EmptyOrderError()

    products = fetch_products(db, [item.product_id for item in payload.items])
    check_stock(payload.items, products)
    lines = build_lines(payload.items, products)
    total = compute_total(payload, lines)

    order_number = generate_order_number()
    now = datetime.now(timezone.utc)
    delivery_address = payload.delivery_address.model_dump()
    billing_address = payload.billing_address.model_dump() if payload.billing_address else delivery_address

    order = Order(
        order_number=order_number,
        user_id=user.id,
        status="confirmed",
        payment_status="paid",
        payment_method=payload.payment_method,
        delivery_address=delivery_address,
        billing_address=billing_address,
        delivery_date=payload.delivery_date,
        delivery_time_slot=payload.delivery_time_slot,
        gift_message=payload.gift_message,
        special_instructions=payload.special_instructions,
        subtotal=round(payload.subtotal, 2),
        tax_amount=round(payload.tax_amount, 2),
        shipping_amount=round(payload.shipping_amount, 2),
        discount_amount=round(payload.discount_amount, 2),
        total_amount=total,
        currency=settings.CURRENCY,
        estimated_delivery=payload.delivery_date or now + timedelta(days=settings.DEFAULT_DELIVERY_DAYS),
        customer_email=str(payload.customer_email),
        customer_name=payload.customer_name,
    )
    try:
        db.add(order)
        db.commit()
        db.refresh(order)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error creating order for user %s", user.id)
        raise PersistenceError("Failed to create order")

    order_id = order.id
    logger.info("Order created: %s (%s)", order_id, order_number)

    try:
        _insert_items(db, order, lines)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error creating order items for order %s", order_id)
        _delete_order(db, order_id)
        raise PersistenceError("Failed to create order items")

    _deduct_stock(db, lines)
    _record_confirmation(db, order)
    _clear_cart(db, user.id)

    db.refresh(order)
    logger.info("Order processing complete: %s", order_number)
    return order
