# backend/routes/admin.py
from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from typing import List, Optional, Literal
from pydantic import BaseModel
from sqlalchemy.orm import Session
from database import get_db
from models.users import User, ROLES, ROLE_ADMIN
from utils.tokenJWT import role_required
from utils.audit import write_log, client_ip
from schemas.user import RoleUpdate, UserResponse

router = APIRouter(prefix="/admin", tags=["Admin"])

# Schema for paginated user list response
class PaginatedUsersResponse(BaseModel):
    items: List[UserResponse]
    total: int
    page: int
    page_size: int


# List users with filtering, sorting and pagination (Admin only)
@router.get("/users", response_model=PaginatedUsersResponse)
def get_all_users(
    q: Optional[str] = Query(None, description="Search by e-mail"),
    role: Optional[str] = Query(None, description="Filter by role"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    sort_by: Literal["id", "email", "role", "last_name"] = "id",
    order: Literal["asc", "desc"] = "asc",
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    query = db.query(User)

    if q:
        query = query.filter(User.email.ilike(f"%{q.lower()}%"))
    if role:
        query = query.filter(User.role == role.lower())

    sort_map = {
        "id": User.id,
        "email": User.email,
        "role": User.role,
        "last_name": User.last_name,
    }
    col = sort_map.get(sort_by, User.id)
    query = query.order_by(col.asc() if order == "asc" else col.desc())

    total = query.count()
    users = query.offset((page - 1) * page_size).limit(page_size).all()

    return {"items": users, "total": total, "page": page, "page_size": page_size}


# Grant or revoke staff roles (Admin only)
@router.patch("/users/{user_id}/role", response_model=UserResponse)
def update_user_role(
    user_id: int,
    payload: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    new_role = payload.role.strip().lower()
    if new_role not in ROLES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid role. Valid roles: {', '.join(ROLES)}")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    old_role = user.role
    user.role = new_role
    db.commit()
    db.refresh(user)

    write_log(db, user_id=current_user.id, action="ROLE_CHANGE", resource="users", status="SUCCESS",
              ip=client_ip(request), meta={"target_user_id": user.id, "old": old_role, "new": new_role})
    return user
