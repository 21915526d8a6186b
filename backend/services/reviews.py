# backend/services/reviews.py
"""Product reviews and the product's derived rating.

One review per user per product is not enforced, and helpful votes are not
tracked per voter; both stay permissive.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from models.order import Order, OrderItem
from models.product import Product
from models.review import Review
from models.users import ROLE_ADMIN, User
from schemas.review import ReviewCreate, ReviewUpdate
from utils.errors import AuthorizationDenied, ProductNotFoundError, ReviewNotFoundError
from utils.tokenJWT import has_role

logger = logging.getLogger(__name__)


def _round_rating(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def recompute_product_rating(db: Session, product_id: int) -> Tuple[float, int]:
    """Write the mean rating and review count onto the product."""
    count, average = db.query(func.count(Review.id), func.avg(Review.rating)).filter(
        Review.product_id == product_id
    ).one()
    rating = _round_rating(average) if count else 0.0
    product = db.get(Product, product_id)
    if product is not None:
        product.rating = rating
        product.review_count = count
        db.commit()
    return rating, count


def has_purchased(db: Session, user_id: int, product_id: int) -> bool:
    return db.query(OrderItem.id).join(Order).filter(
        Order.user_id == user_id,
        Order.status != "cancelled",
        OrderItem.product_id == product_id,
    ).first() is not None


def get_review(db: Session, review_id: int) -> Review:
    review = db.get(Review, review_id)
    if review is None:
        raise ReviewNotFoundError(review_id)
    return review


def create_review(db: Session, user: User, product_id: int, payload: ReviewCreate) -> Review:
    product = db.get(Product, product_id)
    if product is None or not product.is_active:
        raise ProductNotFoundError(product_id)

    review = Review(
        product_id=product_id,
        user_id=user.id,
        rating=payload.rating,
        title=payload.title,
        comment=payload.comment,
        is_verified=has_purchased(db, user.id, product_id),
    )
    db.add(review)
    db.commit()
    db.refresh(review)
    recompute_product_rating(db, product_id)
    return review


def update_review(db: Session, user: User, review_id: int, payload: ReviewUpdate) -> Review:
    review = get_review(db, review_id)
    if review.user_id != user.id:
        raise AuthorizationDenied("You can only edit your own review")

    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(review, field, value)
    db.commit()
    db.refresh(review)
    recompute_product_rating(db, review.product_id)
    return review


def delete_review(db: Session, user: User, review_id: int) -> int:
    review = get_review(db, review_id)
    if review.user_id != user.id and not has_role(user, ROLE_ADMIN):
        raise AuthorizationDenied("You can only delete your own review")

    product_id = review.product_id
    db.delete(review)
    db.commit()
    recompute_product_rating(db, product_id)
    return product_id


def mark_helpful(db: Session, review_id: int, helpful: bool = True) -> int:
    review = get_review(db, review_id)
    if helpful:
        review.helpful_count = (review.helpful_count or 0) + 1
    else:
        review.helpful_count = max(0, (review.helpful_count or 0) - 1)
    db.commit()
    return review.helpful_count


def review_stats(db: Session, product_id: int) -> dict:
    rows = db.query(Review.rating, func.count(Review.id)).filter(
        Review.product_id == product_id
    ).group_by(Review.rating).all()
    distribution = {str(r): 0 for r in range(5, 0, -1)}
    for rating, count in rows:
        distribution[str(rating)] = count
    total = sum(distribution.values())
    average = 0.0
    if total:
        average = _round_rating(sum(int(r) * c for r, c in distribution.items()) / total)
    return {"total_reviews": total, "average_rating": average, "rating_distribution": distribution}
