# utils/tokenJWT.py
from jose import jwt, JWTError
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from models import users as models
from utils.errors import AuthenticationRequired, AuthenticationInvalid, AuthorizationDenied

# Missing headers are reported by get_current_user so the status is always 401
bearer_scheme = HTTPBearer(auto_error=False)

# Generate a new JWT access token
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

# Retrieve the currently authenticated user based on the JWT token
def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
):
    if credentials is None or not credentials.credentials:
        raise AuthenticationRequired()
    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        email: str = payload.get("sub")
        # Ensure email is present in the token payload
        if email is None:
            raise AuthenticationInvalid()
    except JWTError:
        raise AuthenticationInvalid()

    user = db.query(models.User).filter(models.User.email == email).first()
    if user is None:
        raise AuthenticationInvalid()
    return user

def has_role(user, *roles) -> bool:
    return (getattr(user, "role", None) or "").lower() in roles

# Dependency factory for Role-Based Access Control
def role_required(*allowed_roles):
    def _checker(current_user = Depends(get_current_user)):
        if allowed_roles and not has_role(current_user, *allowed_roles):
            raise AuthorizationDenied()
        return current_user
    return _checker
