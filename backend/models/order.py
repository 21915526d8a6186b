# backend/models/order.py
from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, JSON, func
from sqlalchemy.orm import relationship
from database import Base

ORDER_STATUSES = (
    "pending",
    "confirmed",
    "preparing",
    "out_for_delivery",
    "delivered",
    "cancelled",
)

class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String, unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String, nullable=False, default="pending", index=True)

    # Payment is captured upstream; only its outcome is recorded here
    payment_status = Column(String, nullable=False, default="pending")
    payment_method = Column(String, nullable=True)

    # Structured addresses (name, lines, city, state, postal code, country, phone)
    delivery_address = Column(JSON, nullable=False)
    billing_address = Column(JSON, nullable=True)

    delivery_date = Column(DateTime(timezone=True), nullable=True)
    delivery_time_slot = Column(String, nullable=True)
    gift_message = Column(String, nullable=True)
    special_instructions = Column(String, nullable=True)

    # Monetary breakdown: total = subtotal + tax + shipping - discount
    subtotal = Column(Float, nullable=False)
    tax_amount = Column(Float, nullable=False, default=0)
    shipping_amount = Column(Float, nullable=False, default=0)
    discount_amount = Column(Float, nullable=False, default=0)
    total_amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")

    tracking_number = Column(String, nullable=True)
    estimated_delivery = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    # Customer-initiated flows
    cancellation_reason = Column(String, nullable=True)
    refund_status = Column(String, nullable=True)
    refund_amount = Column(Float, nullable=True)

    customer_email = Column(String, nullable=True)
    customer_name = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    tracking = relationship(
        "OrderTracking", back_populates="order", cascade="all, delete-orphan",
        order_by="OrderTracking.id",
    )

class OrderItem(Base):
    __tablename__ = "order_items"
    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True) # Null for bespoke bouquets
    product_name = Column(String, nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False) # Snapshot at purchase time
    total_price = Column(Float, nullable=False)
    custom_bouquet_data = Column(JSON, nullable=True)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")

# Append-only timeline of an order's status history
class OrderTracking(Base):
    __tablename__ = "order_tracking"
    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String, nullable=False)
    description = Column(String, nullable=True)
    location = Column(String, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    meta = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    order = relationship("Order", back_populates="tracking")
