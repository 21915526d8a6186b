from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

# A cart line, server-persisted or held by a guest client
class CartLine(BaseModel):
    id: Optional[str] = None
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    quantity: int = Field(gt=0)
    price: float = Field(ge=0)
    custom_bouquet_data: Optional[Dict[str, Any]] = None

# Request schema for adding a catalog product or a custom bouquet
class CartAddItem(BaseModel):
    product_id: Optional[int] = None
    quantity: int = Field(default=1, gt=0)
    # Custom bouquets carry their own name and price
    custom_bouquet_data: Optional[Dict[str, Any]] = None
    product_name: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)

# Request schema for updating cart item quantity; zero removes the line
class CartUpdateItem(BaseModel):
    quantity: int = Field(ge=0)

# Guest cart posted by the client for merge at login
class GuestCartPayload(BaseModel):
    items: List[CartLine] = Field(default_factory=list)

class CartMergeResult(BaseModel):
    merged: int
    cart: "CartSummary"

# Response schema for the cart with its monetary summary
class CartSummary(BaseModel):
    items: List[CartLine]
    subtotal: float
    tax: float
    shipping: float
    discount: float
    total: float
    item_count: int

CartMergeResult.model_rebuild()
