# backend/main.py
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from config import settings
from database import init_db
from utils.errors import (
    ShopError,
    AuthenticationRequired,
    AuthenticationInvalid,
    AuthorizationDenied,
    ValidationFailed,
    EmptyOrderError,
    OrderValidationError,
    InvalidStatusError,
    StatusTransitionError,
    NotFoundError,
    OrderNotFoundError,
    ProductNotFoundError,
    ReviewNotFoundError,
    CartItemNotFoundError,
    ResourceConflict,
    InsufficientStockError,
    PersistenceError,
    ExternalServiceError,
)

# Router imports
from routes.auth import router as auth_router
from routes.admin import router as admin_router
from routes.logs import router as logs_router
from routes.cart import router as cart_router
from routes.orders import router as orders_router
from routes.products import router as products_router
from routes.reviews import router as reviews_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="Petal Place API", version="1.0.0", lifespan=lifespan)

origins = ["http://localhost:5173", "http://127.0.0.1:5173"]
if settings.FRONTEND_URL and settings.FRONTEND_URL not in origins:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS_CODES = {
    AuthenticationRequired: 401,
    AuthenticationInvalid: 401,
    AuthorizationDenied: 403,
    ValidationFailed: 400,
    EmptyOrderError: 400,
    OrderValidationError: 400,
    InvalidStatusError: 400,
    StatusTransitionError: 400,
    NotFoundError: 404,
    OrderNotFoundError: 404,
    ReviewNotFoundError: 404,
    CartItemNotFoundError: 404,
    # A product missing from an order request is a bad request, not a missing resource
    ProductNotFoundError: 400,
    ResourceConflict: 400,
    InsufficientStockError: 400,
    PersistenceError: 500,
    ExternalServiceError: 502,
}


@app.exception_handler(ShopError)
async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
    """Map ShopError subclasses to HTTP responses with a short reason."""
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    if status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "error_type": type(exc).__name__},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Report the first problem only, without echoing submitted values
    errors = exc.errors()
    detail = "Invalid request"
    if errors:
        first = errors[0]
        loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        detail = f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))
    return JSONResponse(status_code=400, content={"detail": detail, "error_type": "ValidationFailed"})


app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(logs_router)
app.include_router(cart_router)
app.include_router(orders_router)
app.include_router(products_router)
app.include_router(reviews_router)


@app.get("/")
def read_root():
    return {"message": "Petal Place API is running"}
