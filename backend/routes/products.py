# backend/routes/products.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, UploadFile, File
from sqlalchemy import or_
from sqlalchemy.orm import Session
import io
import logging

import pandas as pd

from database import get_db
from utils.tokenJWT import role_required
from utils.audit import write_log, client_ip
from models.users import User, ROLE_ADMIN
from models.product import Product
import schemas.product as product_schemas

router = APIRouter(tags=["Products"])
logger = logging.getLogger(__name__)

REQUIRED_IMPORT_COLUMNS = ("name", "price", "category")
OPTIONAL_IMPORT_COLUMNS = ("description", "original_price", "stock_quantity", "sku", "image_url")


def _norm_sku(sku: Optional[str]) -> Optional[str]:
    if sku is None:
        return None
    s = str(sku).strip().upper()
    return s if s else None


def _get_product_or_404(db: Session, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def _ensure_unique_sku(db: Session, sku: Optional[str], exclude_id: Optional[int] = None):
    if not sku:
        return
    q = db.query(Product).filter(Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first():
        raise HTTPException(status_code=400, detail=f"SKU {sku} already exists")


# =========================
# CATALOG (public)
# =========================
@router.get("/products", response_model=product_schemas.ProductListPage)
def list_products(
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    in_stock: bool = Query(False),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort_by: str = Query("id"),
    order: str = Query("asc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
):
    query = db.query(Product).filter(Product.is_active.is_(True))

    if category:
        query = query.filter(Product.category.ilike(category))
    if search:
        like = f"%{search}%"
        query = query.filter(or_(Product.name.ilike(like), Product.description.ilike(like)))
    if in_stock:
        query = query.filter(Product.stock_quantity > 0)

    allowed = {
        "id": Product.id, "name": Product.name, "price": Product.price,
        "rating": Product.rating, "created_at": Product.created_at,
    }
    sort_col = allowed.get(sort_by.lower(), Product.id)
    query = query.order_by(sort_col.asc() if order == "asc" else sort_col.desc())

    total = query.count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.get("/products/categories", response_model=List[str])
def get_product_categories(db: Session = Depends(get_db)):
    values = db.query(Product.category).filter(
        Product.is_active.is_(True), Product.category.isnot(None), Product.category != ""
    ).distinct().all()
    return sorted(v[0] for v in values)


@router.get("/products/{product_id}", response_model=product_schemas.ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    product = _get_product_or_404(db, product_id)
    if not product.is_active:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


# =========================
# MANAGEMENT (admin)
# =========================
@router.post("/products", response_model=product_schemas.ProductOut, status_code=201)
def create_product(
    payload: product_schemas.ProductCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    data = payload.model_dump()
    data["sku"] = _norm_sku(data.get("sku"))
    _ensure_unique_sku(db, data["sku"])

    product = Product(**data)
    db.add(product)
    db.commit()
    db.refresh(product)

    write_log(db, user_id=current_user.id, action="PRODUCT_CREATE", resource="products", status="SUCCESS",
              ip=client_ip(request), meta={"product_id": product.id, "name": product.name})
    return product


@router.patch("/products/{product_id}", response_model=product_schemas.ProductOut)
def update_product(
    product_id: int,
    payload: product_schemas.ProductEditRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    product = _get_product_or_404(db, product_id)
    changes = payload.model_dump(exclude_unset=True)
    if "sku" in changes:
        changes["sku"] = _norm_sku(changes["sku"])
        _ensure_unique_sku(db, changes["sku"], exclude_id=product.id)

    for field, value in changes.items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)

    write_log(db, user_id=current_user.id, action="PRODUCT_UPDATE", resource="products", status="SUCCESS",
              ip=client_ip(request), meta={"product_id": product.id, "fields": sorted(changes)})
    return product


# Products stay referenced by orders, carts and reviews, so deletion only deactivates
@router.delete("/products/{product_id}")
def deactivate_product(
    product_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    product = _get_product_or_404(db, product_id)
    product.is_active = False
    db.commit()

    write_log(db, user_id=current_user.id, action="PRODUCT_DEACTIVATE", resource="products", status="SUCCESS",
              ip=client_ip(request), meta={"product_id": product.id})
    return {"success": True, "message": "Product deactivated"}


def _cell(row, column):
    value = row.get(column)
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


@router.post("/products/import", response_model=product_schemas.ProductImportResult)
async def import_products(
    request: Request,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ROLE_ADMIN)),
):
    """Bulk create/update products from a CSV file.

    Rows with a SKU that already exists update that product; other rows create
    new products. Rows with missing or invalid required values are skipped and
    reported with their 1-based data row number.
    """
    raw = await file.read()
    try:
        df = pd.read_csv(io.BytesIO(raw), dtype=str, keep_default_na=False, na_values=[""])
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        logger.warning("Unreadable product CSV: %s", e)
        raise HTTPException(status_code=400, detail="Could not read CSV file")

    df.columns = [str(c).strip().lower() for c in df.columns]
    missing = [c for c in REQUIRED_IMPORT_COLUMNS if c not in df.columns]
    if missing:
        raise HTTPException(status_code=400, detail=f"Missing required columns: {', '.join(missing)}")

    imported, updated, errors = 0, 0, []
    for idx, row in enumerate(df.to_dict(orient="records"), start=1):
        name, category, price_raw = _cell(row, "name"), _cell(row, "category"), _cell(row, "price")
        if not name or not category or price_raw is None:
            errors.append({"row": idx, "error": "name, price and category are required"})
            continue
        try:
            price = float(price_raw)
            original_price = _cell(row, "original_price")
            original_price = float(original_price) if original_price is not None else None
            stock = _cell(row, "stock_quantity")
            stock = int(float(stock)) if stock is not None else 0
        except ValueError:
            errors.append({"row": idx, "error": "price, original_price and stock_quantity must be numeric"})
            continue
        if price < 0 or stock < 0 or (original_price is not None and original_price < 0):
            errors.append({"row": idx, "error": "negative values are not allowed"})
            continue

        fields = {
            "name": name,
            "category": category,
            "price": price,
            "original_price": original_price,
            "stock_quantity": stock,
            "description": _cell(row, "description"),
            "image_url": _cell(row, "image_url"),
        }
        sku = _norm_sku(_cell(row, "sku"))
        existing = db.query(Product).filter(Product.sku == sku).first() if sku else None
        if existing:
            for field, value in fields.items():
                setattr(existing, field, value)
            updated += 1
        else:
            db.add(Product(sku=sku, is_active=True, **fields))
            imported += 1
        # Flush per row so a repeated SKU later in the file updates this row
        db.flush()

    db.commit()
    write_log(db, user_id=current_user.id, action="PRODUCT_IMPORT", resource="products", status="SUCCESS",
              ip=client_ip(request), meta={"imported": imported, "updated": updated, "errors": len(errors)})
    return {"imported": imported, "updated": updated, "errors": errors}
