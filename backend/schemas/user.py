from pydantic import BaseModel, EmailStr
from typing import Optional

from schemas.cart import CartLine

# Shared properties for user models
class UserBase(BaseModel):
    email: EmailStr

# Schema for authentication credentials; a guest cart may ride along for merge
class UserLogin(UserBase):
    password: str
    guest_cart: Optional[list[CartLine]] = None

# Schema for registration requests; new accounts are always customers
class UserCreate(UserBase):
    password: str
    first_name: str
    last_name: str

# Output schema for user profile details
class UserResponse(UserBase):
    id: int
    role: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    class Config:
        from_attributes = True

# Schema for JWT authentication token response
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    merged_cart_items: int = 0

# Schema for administrative role updates
class RoleUpdate(BaseModel):
    role: str
