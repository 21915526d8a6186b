# backend/models/product.py
from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, CheckConstraint, func
from database import Base

# Model Product
# A catalog flower/bouquet offered in the storefront.
# Stock is only ever decremented by order placement; rating and review_count
# are derived from the product's reviews and rewritten after each review change.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    sku = Column(String, unique=True, nullable=True, index=True)

    description = Column(String)
    category = Column(String, index=True)

    price = Column(Float, CheckConstraint("price >= 0"), nullable=False)
    original_price = Column(Float, nullable=True)

    stock_quantity = Column(Integer, CheckConstraint("stock_quantity >= 0"), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    # Derived from reviews.
    rating = Column(Float, nullable=False, default=0)
    review_count = Column(Integer, nullable=False, default=0)

    image_url = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
