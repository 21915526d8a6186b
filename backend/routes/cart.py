# backend/routes/cart.py
from typing import List
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from database import get_db
from utils.tokenJWT import get_current_user
from utils.audit import write_log, client_ip
from utils.errors import ValidationFailed
from models.users import User
from schemas.cart import CartAddItem, CartUpdateItem, CartLine, CartSummary, GuestCartPayload, CartMergeResult
from services.cart import (
    CartStore, GuestCart, cart_for, line_for_product, merge_guest_cart, quantity_in_cart, summarize,
)

router = APIRouter(prefix="/cart", tags=["Cart"])


# Guest cart edit: the client's stored lines plus the line to add
class GuestCartAdd(BaseModel):
    items: List[CartLine] = Field(default_factory=list)
    item: CartAddItem


def _line_from_payload(db: Session, store: CartStore, payload: CartAddItem) -> CartLine:
    if payload.product_id is not None:
        # Stock covers what is already in the cart plus this add
        return line_for_product(db, payload.product_id, payload.quantity,
                                in_cart=quantity_in_cart(store, payload.product_id))
    # Custom bouquet from the builder
    if payload.custom_bouquet_data is None or payload.price is None:
        raise ValidationFailed("Custom bouquets require custom_bouquet_data and price")
    return CartLine(
        product_id=None,
        product_name=payload.product_name or "Custom Bouquet",
        quantity=payload.quantity,
        price=round(payload.price, 2),
        custom_bouquet_data=payload.custom_bouquet_data,
    )


def _add(db: Session, store: CartStore, payload: CartAddItem) -> CartLine:
    return store.add(_line_from_payload(db, store, payload))


@router.get("", response_model=CartSummary)
@router.get("/summary", response_model=CartSummary)
def get_cart(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return summarize(cart_for(db, current_user).items())


@router.post("/items", response_model=CartSummary)
def add_to_cart(
    payload: CartAddItem,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    store = cart_for(db, current_user)
    line = _add(db, store, payload)
    out = summarize(store.items())

    write_log(db, user_id=current_user.id, action="CART_ADD", resource="cart", status="SUCCESS",
              ip=client_ip(request),
              meta={"product_id": line.product_id, "quantity": payload.quantity, "total": out.total})
    return out


@router.put("/items/{item_id}", response_model=CartSummary)
def update_cart_item(
    item_id: str,
    payload: CartUpdateItem,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    store = cart_for(db, current_user)
    store.update(item_id, payload.quantity)
    out = summarize(store.items())

    write_log(db, user_id=current_user.id, action="CART_UPDATE", resource="cart", status="SUCCESS",
              ip=client_ip(request), meta={"item_id": item_id, "quantity": payload.quantity, "total": out.total})
    return out


@router.delete("/items/{item_id}", response_model=CartSummary)
def delete_cart_item(
    item_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    store = cart_for(db, current_user)
    store.remove(item_id)
    out = summarize(store.items())

    write_log(db, user_id=current_user.id, action="CART_DELETE", resource="cart", status="SUCCESS",
              ip=client_ip(request), meta={"item_id": item_id, "cart_items": len(out.items)})
    return out


@router.delete("", response_model=CartSummary)
@router.delete("/clear", response_model=CartSummary)
def clear_cart(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    store = cart_for(db, current_user)
    store.clear()
    write_log(db, user_id=current_user.id, action="CART_CLEAR", resource="cart", status="SUCCESS",
              ip=client_ip(request))
    return summarize(store.items())


# Fold a guest cart into the signed-in user's cart
@router.post("/merge", response_model=CartMergeResult)
def merge_cart(
    payload: GuestCartPayload,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    merged = merge_guest_cart(db, current_user.id, GuestCart(payload.items))
    write_log(db, user_id=current_user.id, action="CART_MERGE", resource="cart", status="SUCCESS",
              ip=client_ip(request), meta={"merged": merged})
    return {"merged": merged, "cart": summarize(cart_for(db, current_user).items())}


# Guests keep their cart client-side; these endpoints validate and price it
@router.post("/guest/summary", response_model=CartSummary)
def guest_summary(payload: GuestCartPayload, db: Session = Depends(get_db)):
    return summarize(cart_for(db, None, payload.items).items())


@router.post("/guest/items", response_model=CartSummary)
def guest_add(payload: GuestCartAdd, db: Session = Depends(get_db)):
    store = cart_for(db, None, payload.items)
    _add(db, store, payload.item)
    return summarize(store.items())
