from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from typing import Any, Dict, List, Optional
from datetime import datetime


# Structured postal address used for delivery and billing
class Address(BaseModel):
    first_name: str
    last_name: str
    address_line_1: str
    address_line_2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str
    phone: str


# A requested order line: a catalog product or a custom bouquet
class OrderItemIn(BaseModel):
    product_id: Optional[int] = None
    quantity: int = Field(gt=0)
    unit_price: Optional[float] = Field(default=None, ge=0)
    product_name: Optional[str] = None
    custom_bouquet_data: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def _custom_needs_price(self):
        if self.product_id is None:
            if self.custom_bouquet_data is None:
                raise ValueError("Items without product_id must carry custom_bouquet_data")
            if self.unit_price is None:
                raise ValueError("Custom bouquet items require unit_price")
        return self


# Input schema for placing an order
class OrderCreate(BaseModel):
    items: List[OrderItemIn] = Field(default_factory=list)
    delivery_address: Address
    billing_address: Optional[Address] = None
    delivery_date: Optional[datetime] = None
    delivery_time_slot: Optional[str] = None
    gift_message: Optional[str] = None
    special_instructions: Optional[str] = None

    subtotal: float = Field(ge=0)
    tax_amount: float = Field(default=0, ge=0)
    shipping_amount: float = Field(default=0, ge=0)
    discount_amount: float = Field(default=0, ge=0)
    total_amount: Optional[float] = Field(default=None, ge=0)

    payment_method: str
    customer_email: EmailStr
    customer_name: str


# Response returned after a successful placement
class OrderPlacedResponse(BaseModel):
    success: bool = True
    order_id: int
    order_number: str
    message: str = "Order placed successfully"


# Output schema for an individual order line item
class OrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    quantity: int
    unit_price: float
    total_price: float
    custom_bouquet_data: Optional[Dict[str, Any]] = None


class TrackingEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    status: str
    description: Optional[str] = None
    location: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None


# Output schema representing the full order details
class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    user_id: int
    status: str
    payment_status: str
    payment_method: Optional[str] = None
    delivery_address: Dict[str, Any]
    billing_address: Optional[Dict[str, Any]] = None
    delivery_date: Optional[datetime] = None
    delivery_time_slot: Optional[str] = None
    gift_message: Optional[str] = None
    special_instructions: Optional[str] = None
    subtotal: float
    tax_amount: float
    shipping_amount: float
    discount_amount: float
    total_amount: float
    currency: str
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    refund_status: Optional[str] = None
    refund_amount: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[OrderItemOut] = Field(default_factory=list)


# Schema for paginated order lists
class OrdersPage(BaseModel):
    items: List[OrderResponse]
    total: int
    page: int
    page_size: int


# Schema for staff status updates
class OrderStatusPatch(BaseModel):
    status: str
    tracking_number: Optional[str] = None
    notes: Optional[str] = None


class OrderStatusUpdated(BaseModel):
    success: bool = True
    order: OrderResponse
    message: str


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class RefundRequest(BaseModel):
    amount: Optional[float] = Field(default=None, gt=0)
    reason: Optional[str] = None


# Timeline projection
class TimelineStage(BaseModel):
    id: str
    status: str
    label: str
    description: str
    rank: int
    completed: bool
    current: bool
    timestamp: Optional[datetime] = None
    location: Optional[str] = None


class TimelineOut(BaseModel):
    order_id: int
    order_number: str
    status: str
    progress: int
    estimated_delivery: Optional[datetime] = None
    stages: List[TimelineStage]
    history: List[TrackingEntryOut]
