# backend/models/users.py
from sqlalchemy import Column, Integer, String, DateTime, func
from database import Base

# Roles recognised by the storefront
ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"
ROLE_FLORIST = "florist"
ROLES = (ROLE_CUSTOMER, ROLE_ADMIN, ROLE_FLORIST)

# Represents a user account with authentication details and system role
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default=ROLE_CUSTOMER)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
