# backend/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from config import settings

# 1. Database URL from settings (.env / environment) with a local SQLite default
SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

# 2. Hosted Postgres URLs often use the legacy "postgres://" scheme
if SQLALCHEMY_DATABASE_URL.startswith("postgres://"):
    SQLALCHEMY_DATABASE_URL = SQLALCHEMY_DATABASE_URL.replace("postgres://", "postgresql://", 1)

# 3. SQLite needs cross-thread access for FastAPI's threadpool
if "sqlite" in SQLALCHEMY_DATABASE_URL:
    connect_args = {"check_same_thread": False}
else:
    connect_args = {}

engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args=connect_args
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db():
    # Import models so every table is registered on Base.metadata
    import models.users  # noqa: F401
    import models.product  # noqa: F401
    import models.cart  # noqa: F401
    import models.order  # noqa: F401
    import models.review  # noqa: F401
    import models.log  # noqa: F401
    Base.metadata.create_all(bind=engine)
