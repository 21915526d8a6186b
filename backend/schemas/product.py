# backend/schemas/product.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Shared base attributes for product entities
class ProductBase(ORMBase):
    name: str
    sku: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    price: float = Field(ge=0)
    original_price: Optional[float] = Field(default=None, ge=0)
    stock_quantity: int = Field(default=0, ge=0)
    is_active: bool = True
    image_url: Optional[str] = None


# Schema for creating a new product
class ProductCreate(ProductBase):
    pass


# Schema for partial product updates
class ProductEditRequest(ORMBase):
    """Schema for PATCH requests - all fields optional."""
    name: Optional[str] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    stock_quantity: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    image_url: Optional[str] = None
    # rating and review_count are derived from reviews and not editable


# Full product representation including derived fields
class ProductOut(ProductBase):
    id: int
    rating: float = 0
    review_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Paginated response for product listings
class ProductListPage(ORMBase):
    items: List[ProductOut]
    total: int
    page: int
    page_size: int


# Result of a CSV catalog import
class ImportRowError(BaseModel):
    row: int
    error: str


class ProductImportResult(BaseModel):
    imported: int
    updated: int
    errors: List[ImportRowError]
