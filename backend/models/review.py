# backend/models/review.py
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, CheckConstraint, func
from sqlalchemy.orm import relationship
from database import Base

# A customer's rating and comment on a catalog product
class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    rating = Column(Integer, CheckConstraint("rating >= 1 AND rating <= 5"), nullable=False)
    title = Column(String, nullable=True)
    comment = Column(String, nullable=True)

    is_verified = Column(Boolean, nullable=False, default=False) # Author bought the product
    helpful_count = Column(Integer, CheckConstraint("helpful_count >= 0"), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User")
    product = relationship("Product")
