from decimal import Decimal
from typing import Dict, List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./dev.db"
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    FRONTEND_ORIGINS: List[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"

    # busy timeout for sqlite, pool checkout timeout elsewhere
    DB_TIMEOUT_SECONDS: float = 10.0

    # checkout pricing
    SHIPPING_RATES_CENTS: Dict[str, int] = {
        "standard": 0,
        "express": 999,
        "overnight": 1999,
    }
    DEFAULT_SHIPPING_METHOD: str = "standard"
    TAX_RATE: Decimal = Decimal("0")
    ORDER_NUMBER_ATTEMPTS: int = 3

    # notifications
    ADMIN_EMAIL: Optional[str] = None
    MAIL_FROM: str = "Storefront <no-reply@storefront.local>"
    MAILER_BACKEND: str = "mock"  # mock, smtp
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_TIMEOUT_SECONDS: float = 10.0
    NOTIFY_ASYNC: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
