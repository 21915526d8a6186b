# backend/routes/logs.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional, Any
from datetime import datetime
from pydantic import BaseModel, ConfigDict

from database import get_db
from models.log import Log
from models.users import User, ROLE_ADMIN
from utils.tokenJWT import role_required

router = APIRouter(prefix="/logs", tags=["Logs"])

class LogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[int] = None
    action: str
    resource: str
    status: str
    ip: Optional[str] = None
    ts: Optional[datetime] = None
    meta: Optional[Any] = None

class LogPage(BaseModel):
    items: List[LogResponse]
    total: int
    page: int
    page_size: int

# Audit trail browser (admin only)
@router.get("", response_model=LogPage)
def get_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    action: Optional[str] = Query(None, description="Filter by action"),
    user_id: Optional[int] = Query(None, description="Filter by user id"),
    resource: Optional[str] = Query(None, description="Filter by resource"),
    status: Optional[str] = Query(None, description="SUCCESS or FAIL"),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    query = db.query(Log)

    if action:
        query = query.filter(Log.action.ilike(f"%{action}%"))
    if user_id is not None:
        query = query.filter(Log.user_id == user_id)
    if resource:
        query = query.filter(Log.resource == resource)
    if status:
        query = query.filter(Log.status == status.upper())
    if date_from:
        query = query.filter(Log.ts >= date_from)
    if date_to:
        query = query.filter(Log.ts <= date_to)

    query = query.order_by(Log.ts.desc(), Log.id.desc())

    total = query.count()
    logs = query.offset((page - 1) * page_size).limit(page_size).all()
    return {"items": logs, "total": total, "page": page, "page_size": page_size}
