# backend/services/order_status.py
"""Order status changes by staff and by the owning customer.

Staff (admin or florist) may set any status from the fixed set at any time;
there is no transition table, so corrections such as moving a delivered order
back to ``preparing`` are accepted. Customers can only cancel early orders and
request refunds for finished ones.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.order import ORDER_STATUSES, Order, OrderTracking
from models.users import ROLE_ADMIN, ROLE_FLORIST, User
from utils.errors import (
    AuthorizationDenied,
    InvalidStatusError,
    OrderNotFoundError,
    PersistenceError,
    StatusTransitionError,
)
from utils.tokenJWT import has_role

logger = logging.getLogger(__name__)

VALID_STATUSES = ORDER_STATUSES

STATUS_DESCRIPTIONS = {
    "pending": "Order is pending confirmation",
    "confirmed": "Order confirmed and payment received",
    "preparing": "Your bouquet is being prepared with care",
    "out_for_delivery": "Order is on its way to you",
    "delivered": "Order has been delivered",
    "cancelled": "Order has been cancelled",
}

STAFF_ROLES = (ROLE_ADMIN, ROLE_FLORIST)
CANCELLABLE_FROM = ("pending", "confirmed", "processing")
REFUNDABLE_FROM = ("delivered", "cancelled")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def get_order(db: Session, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


def append_tracking(db: Session, order: Order, status: str, description: str,
                    actor_id: Optional[int] = None, meta: Optional[Dict[str, Any]] = None) -> bool:
    """Add a timeline entry; failures are logged and reported as False."""
    try:
        db.add(OrderTracking(
            order_id=order.id, status=status, description=description,
            created_by=actor_id, meta=meta,
        ))
        db.commit()
        return True
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error creating tracking entry for order %s", order.id)
        return False


def update_order_status(db: Session, actor: User, order_id: int, status: str,
                        tracking_number: Optional[str] = None, notes: Optional[str] = None) -> Order:
    if not has_role(actor, *STAFF_ROLES):
        raise AuthorizationDenied("Admin or florist access required")
    if status not in VALID_STATUSES:
        raise InvalidStatusError(status, VALID_STATUSES)

    order = get_order(db, order_id)
    now = _now()
    try:
        order.status = status
        order.updated_at = now
        if tracking_number:
            order.tracking_number = tracking_number
        if status == "delivered":
            order.delivered_at = now
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating order %s", order_id)
        raise PersistenceError("Failed to update order status")

    append_tracking(
        db, order, status,
        notes or STATUS_DESCRIPTIONS.get(status) or f"Status changed to {status}",
        actor_id=actor.id,
    )
    db.refresh(order)
    logger.info("Order %s status updated to %s by user %s", order_id, status, actor.id)
    return order


def _customer_transition(db: Session, actor: User, order_id: int, allowed_from: Iterable[str],
                         refusal: str, apply: Callable[[Order], None],
                         tracking_status: str, description: Callable[[Order], str],
                         meta: Optional[Dict[str, Any]] = None) -> Order:
    """Set fields on the caller's own order and append one tracking entry."""
    order = get_order(db, order_id)
    if order.user_id != actor.id:
        raise AuthorizationDenied("Access denied")
    if (order.status or "").lower() not in allowed_from:
        raise StatusTransitionError(refusal)

    try:
        apply(order)
        order.updated_at = _now()
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error applying %s to order %s", tracking_status, order_id)
        raise PersistenceError("Failed to update order")

    append_tracking(db, order, tracking_status, description(order), actor_id=actor.id, meta=meta)
    db.refresh(order)
    return order


def cancel_order(db: Session, actor: User, order_id: int, reason: Optional[str] = None) -> Order:
    def _apply(order: Order) -> None:
        order.status = "cancelled"
        order.cancellation_reason = reason

    return _customer_transition(
        db, actor, order_id, CANCELLABLE_FROM, "Order cannot be cancelled", _apply,
        "cancelled", lambda order: "Order cancelled by customer",
        meta={"reason": reason} if reason else None,
    )


def request_refund(db: Session, actor: User, order_id: int, amount: Optional[float] = None,
                   reason: Optional[str] = None) -> Order:
    def _apply(order: Order) -> None:
        requested = amount if amount is not None else order.total_amount
        order.refund_status = "requested"
        order.refund_amount = round(min(requested, order.total_amount), 2)

    return _customer_transition(
        db, actor, order_id, REFUNDABLE_FROM,
        "Order must be delivered or cancelled to request refund", _apply,
        "refund_requested",
        lambda order: f"Refund requested for {order.refund_amount:.2f} {order.currency}",
        meta={"refund_amount": amount, "reason": reason},
    )
