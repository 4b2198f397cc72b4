from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # App Settings
    APP_NAME: str = "Storefront Backend"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    STORE_NAME: str = "KM Pyrotech"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:5000",
        "http://localhost:5173",
    ]

    # Email/SMTP Settings (Gmail)
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""  # Your Gmail address
    SMTP_PASSWORD: str = ""  # Gmail App Password
    SMTP_FROM_EMAIL: str = ""  # Sender email (defaults to SMTP_USER)
    SMTP_FROM_NAME: str = "KM Pyrotech"

    # Generated documents and uploaded files
    INVOICE_DIR: str = "invoices"
    UPLOAD_DIR: str = "uploads"
    UPLOAD_URL_PREFIX: str = "/uploads"

    # Redis Cache Settings
    REDIS_URL: Optional[str] = None  # e.g., "redis://localhost:6379/0"
    CACHE_ENABLED: bool = True
    PRODUCT_CACHE_TTL: int = 120  # 2 minutes for product listings

    # Order numbering: YYMMDD + zero-padded daily sequence
    ORDER_SEQUENCE_WIDTH: int = 3
    ORDER_ID_MAX_ATTEMPTS: int = 5

    # Home page
    FEATURED_CATEGORIES: list[str] = ["ATOM_BOMB", "SPARKLER_ITEMS"]
    FEATURED_PRODUCTS_LIMIT: int = 6

    # Push notification gateway (FCM relay). Notifications are logged only when unset.
    PUSH_GATEWAY_URL: Optional[str] = None
    PUSH_GATEWAY_KEY: str = ""

    @field_validator('CORS_ORIGINS', 'FEATURED_CATEGORIES', mode='before')
    @classmethod
    def parse_string_list(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [item.strip() for item in v.split(',') if item.strip()]
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return self.CORS_ORIGINS

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
