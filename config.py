# config.py
import os
from dotenv import load_dotenv

load_dotenv()


def _bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _list(name: str, default: str) -> list:
    return [v.strip() for v in os.getenv(name, default).split(",") if v.strip()]


class Settings:
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "Peppino's Ordering API")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL")
    DATABASE_NAME: str = os.getenv("DATABASE_NAME")
    DB_SERVER_SELECTION_TIMEOUT_MS: int = int(os.getenv("DB_SERVER_SELECTION_TIMEOUT_MS", "30000"))
    DB_CONNECT_TIMEOUT_MS: int = int(os.getenv("DB_CONNECT_TIMEOUT_MS", "30000"))
    DB_SOCKET_TIMEOUT_MS: int = int(os.getenv("DB_SOCKET_TIMEOUT_MS", "45000"))

    # Auth
    JWT_SECRET: str = os.getenv("JWT_SECRET", "change-me")
    JWT_REFRESH_SECRET: str = os.getenv("JWT_REFRESH_SECRET", "change-me-too")
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = int(os.getenv("JWT_EXPIRE_MINUTES", str(7 * 24 * 60)))
    JWT_REFRESH_EXPIRE_DAYS: int = int(os.getenv("JWT_REFRESH_EXPIRE_DAYS", "30"))

    # HTTP
    CORS_ORIGINS: list = _list(
        "CORS_ORIGINS",
        "http://localhost:3000,http://localhost:5173,http://localhost:5500,http://localhost:8081",
    )
    RATE_LIMIT: str = os.getenv("RATE_LIMIT", "300/15minutes")
    RATE_LIMIT_ENABLED: bool = _bool("RATE_LIMIT_ENABLED", True)

    # Cloudinary
    CLOUDINARY_CLOUD_NAME: str = os.getenv("CLOUDINARY_CLOUD_NAME")
    CLOUDINARY_API_KEY: str = os.getenv("CLOUDINARY_API_KEY")
    CLOUDINARY_API_SECRET: str = os.getenv("CLOUDINARY_API_SECRET")
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024
    MAX_IMAGES_PER_REQUEST: int = 10

    # Email
    SMTP_SERVER: str = os.getenv("SMTP_SERVER", "smtp.gmail.com")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
    SMTP_EMAIL: str = os.getenv("SMTP_EMAIL")
    SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD")
    ADMIN_NOTIFICATION_EMAIL: str = os.getenv("ADMIN_NOTIFICATION_EMAIL")
    APP_NAME: str = os.getenv("APP_NAME", "Peppino's")

    # Orders
    ORDER_PREFIX: str = os.getenv("ORDER_PREFIX", "PEP")
    TAX_RATE: float = float(os.getenv("TAX_RATE", "0.08"))
    DELIVERY_FEE: float = float(os.getenv("DELIVERY_FEE", "5.99"))
    FREE_DELIVERY_THRESHOLD: float = float(os.getenv("FREE_DELIVERY_THRESHOLD", "50"))
    GUEST_SESSION_TTL_DAYS: int = int(os.getenv("GUEST_SESSION_TTL_DAYS", "7"))

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


settings = Settings()
