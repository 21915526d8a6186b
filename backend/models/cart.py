# backend/models/cart.py
from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Float, JSON, func
from sqlalchemy.orm import relationship
from database import Base


# A persisted cart line owned by a signed-in user.
# Either references a catalog product or embeds a custom bouquet configuration.
class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=True) # Null for bespoke bouquets
    custom_bouquet_data = Column(JSON, nullable=True) # Builder choices (flowers, wrap, ribbon, card)
    product_name = Column(String, nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price_snapshot = Column(Float, nullable=False) # Unit price at the moment of addition

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    product = relationship("Product")
