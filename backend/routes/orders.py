# backend/routes/orders.py
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload
import logging

from database import get_db
from utils.tokenJWT import get_current_user, has_role
from utils.audit import write_log, client_ip
from utils.errors import OrderNotFoundError
from models.users import User
from models.order import Order
from schemas.order import (
    OrderCreate, OrderPlacedResponse, OrderResponse, OrdersPage, OrderStatusPatch,
    OrderStatusUpdated, CancelRequest, RefundRequest, TimelineOut, TrackingEntryOut,
)
from services.orders import place_order
from services.order_status import STAFF_ROLES, update_order_status, cancel_order, request_refund
from services.notifications import order_snapshot, send_order_confirmation
from services.timeline import build_timeline, progress_percent

router = APIRouter(prefix="/orders", tags=["Orders"])
logger = logging.getLogger(__name__)


def _is_staff(user: User) -> bool:
    return has_role(user, *STAFF_ROLES)


def _visible_order(db: Session, order_id: int, user: User) -> Order:
    # Owners and staff only; anyone else gets the same answer as for a missing order
    order = db.query(Order).options(joinedload(Order.items)).filter(Order.id == order_id).first()
    if not order or (order.user_id != user.id and not _is_staff(user)):
        raise OrderNotFoundError(order_id)
    return order


def _audit(db: Session, **entry) -> None:
    # The order change is already committed; a failed audit row must not turn it into an error
    try:
        write_log(db, **entry)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error writing audit log %s for user %s", entry.get("action"), entry.get("user_id"))


# Place an order from the submitted items (payment already captured upstream)
@router.post("", response_model=OrderPlacedResponse)
def create_order(
    payload: OrderCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    logger.info("Processing order for user: %s", current_user.id)
    order = place_order(db, current_user, payload)

    # Runs after the response is sent; its outcome never reaches the caller
    background_tasks.add_task(send_order_confirmation, order_snapshot(order))

    _audit(db, user_id=current_user.id, action="ORDER_CREATE", resource="orders", status="SUCCESS",
           ip=client_ip(request),
           meta={"order_id": order.id, "order_number": order.order_number, "total": order.total_amount})

    return OrderPlacedResponse(order_id=order.id, order_number=order.order_number)


# List the caller's orders; staff may list everyone's
@router.get("", response_model=OrdersPage)
def list_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    status: Optional[str] = Query(None),
    all_orders: bool = Query(False, alias="all"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    q = db.query(Order).options(joinedload(Order.items))
    if not (all_orders and _is_staff(current_user)):
        q = q.filter(Order.user_id == current_user.id)
    if status:
        q = q.filter(Order.status == status)
    q = q.order_by(Order.created_at.desc(), Order.id.desc())

    total = q.count()
    rows = q.offset((page - 1) * page_size).limit(page_size).all()
    return {"items": rows, "total": total, "page": page, "page_size": page_size}


@router.get("/{order_id}", response_model=OrderResponse)
def get_order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return _visible_order(db, order_id, current_user)


# Customer-facing delivery timeline plus the raw tracking history
@router.get("/{order_id}/tracking", response_model=TimelineOut)
def get_order_tracking(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    order = _visible_order(db, order_id, current_user)
    entries = list(order.tracking)
    return TimelineOut(
        order_id=order.id,
        order_number=order.order_number,
        status=order.status,
        progress=progress_percent(order.status),
        estimated_delivery=order.estimated_delivery,
        stages=build_timeline(order.status, entries),
        history=[TrackingEntryOut.model_validate(e) for e in entries],
    )


# Staff status change (admin or florist)
@router.patch("/{order_id}/status", response_model=OrderStatusUpdated)
def change_order_status(
    order_id: int,
    payload: OrderStatusPatch,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    old_status = db.query(Order.status).filter(Order.id == order_id).scalar()
    order = update_order_status(db, current_user, order_id, payload.status,
                                tracking_number=payload.tracking_number, notes=payload.notes)

    _audit(db, user_id=current_user.id, action="ORDER_STATUS_CHANGE", resource="orders", status="SUCCESS",
           ip=client_ip(request), meta={"order_id": order.id, "old": old_status, "new": order.status})
    return OrderStatusUpdated(
        order=OrderResponse.model_validate(order),
        message=f"Order status updated to {order.status}",
    )


@router.post("/{order_id}/cancel", response_model=OrderResponse)
def cancel_my_order(
    order_id: int,
    payload: CancelRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    order = cancel_order(db, current_user, order_id, reason=payload.reason)
    _audit(db, user_id=current_user.id, action="ORDER_CANCEL", resource="orders", status="SUCCESS",
           ip=client_ip(request), meta={"order_id": order.id, "reason": payload.reason})
    return order


@router.post("/{order_id}/refund", response_model=OrderResponse)
def request_order_refund(
    order_id: int,
    payload: RefundRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    order = request_refund(db, current_user, order_id, amount=payload.amount, reason=payload.reason)
    _audit(db, user_id=current_user.id, action="REFUND_REQUEST", resource="orders", status="SUCCESS",
           ip=client_ip(request), meta={"order_id": order.id, "amount": order.refund_amount})
    return order
