# backend/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar, Optional
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite:///./database_petalplace.db"

    # Transactional email (Resend); sending is skipped when the key is missing
    RESEND_API_KEY: Optional[str] = None
    RESEND_API_URL: str = "https://api.resend.com"
    EMAIL_FROM: str = "Petal Place <onboarding@resend.dev>"
    FRONTEND_URL: str = "http://localhost:5173"

    # Pricing defaults used by the cart summary and order placement
    CURRENCY: str = "USD"
    TAX_RATE: float = 0.1
    FREE_SHIPPING_THRESHOLD: float = 100.0
    SHIPPING_FLAT: float = 10.0
    DEFAULT_DELIVERY_DAYS: int = 3

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra = "ignore"

settings = Settings()
