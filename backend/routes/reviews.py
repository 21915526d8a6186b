# backend/routes/reviews.py
from typing import Literal, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from database import get_db
from models.product import Product
from models.review import Review
from models.users import User
from schemas.review import ReviewCreate, ReviewUpdate, ReviewOut, ReviewPage, HelpfulVote, HelpfulCount
from services import reviews as review_service
from utils.audit import write_log, client_ip
from utils.tokenJWT import get_current_user

router = APIRouter(tags=["Reviews"])


def _require_product(db: Session, product_id: int) -> Product:
    product = db.get(Product, product_id)
    if product is None or not product.is_active:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.get("/products/{product_id}/reviews", response_model=ReviewPage)
def list_product_reviews(
    product_id: int,
    rating: Optional[int] = Query(None, ge=1, le=5),
    sort_by: Literal["newest", "oldest", "highest", "lowest", "most_helpful"] = "newest",
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    _require_product(db, product_id)

    query = db.query(Review).filter(Review.product_id == product_id)
    if rating:
        query = query.filter(Review.rating == rating)

    ordering = {
        "newest": (Review.created_at.desc(), Review.id.desc()),
        "oldest": (Review.created_at.asc(), Review.id.asc()),
        "highest": (Review.rating.desc(), Review.id.desc()),
        "lowest": (Review.rating.asc(), Review.id.desc()),
        "most_helpful": (Review.helpful_count.desc(), Review.id.desc()),
    }
    query = query.order_by(*ordering[sort_by])

    total = query.count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return {
        "items": items, "total": total, "page": page, "page_size": page_size,
        "stats": review_service.review_stats(db, product_id),
    }


@router.post("/products/{product_id}/reviews", response_model=ReviewOut, status_code=201)
def create_review(
    product_id: int,
    payload: ReviewCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    _require_product(db, product_id)
    review = review_service.create_review(db, current_user, product_id, payload)
    write_log(db, user_id=current_user.id, action="REVIEW_CREATE", resource="reviews", status="SUCCESS",
              ip=client_ip(request), meta={"review_id": review.id, "product_id": product_id, "rating": review.rating})
    return review


@router.put("/reviews/{review_id}", response_model=ReviewOut)
def update_review(
    review_id: int,
    payload: ReviewUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    review = review_service.update_review(db, current_user, review_id, payload)
    write_log(db, user_id=current_user.id, action="REVIEW_UPDATE", resource="reviews", status="SUCCESS",
              ip=client_ip(request), meta={"review_id": review.id})
    return review


@router.delete("/reviews/{review_id}")
def delete_review(
    review_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    product_id = review_service.delete_review(db, current_user, review_id)
    write_log(db, user_id=current_user.id, action="REVIEW_DELETE", resource="reviews", status="SUCCESS",
              ip=client_ip(request), meta={"review_id": review_id, "product_id": product_id})
    return {"success": True, "message": "Review deleted"}


@router.post("/reviews/{review_id}/helpful", response_model=HelpfulCount)
def mark_review_helpful(
    review_id: int,
    payload: HelpfulVote,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return {"helpful_count": review_service.mark_helpful(db, review_id, payload.helpful)}
