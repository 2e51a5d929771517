"""Runtime configuration for the marketplace API (read from env / .env)."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Database
    DATABASE_URL: str = "sqlite:///./db.sqlite"

    # Auth
    JWT_SECRET: str = "dev_jwt_secret"
    JWT_EXPIRES_SECONDS: int = 60 * 60 * 24 * 7  # 7 days
    # every signup gets this role; there is no elevation workflow
    SIGNUP_ROLE: str = "admin"

    # Stripe
    STRIPE_SECRET: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    CURRENCY: str = "usd"

    # S3
    AWS_REGION: str = "us-east-1"
    S3_BUCKET: Optional[str] = None
    PRESIGN_EXPIRES_SECONDS: int = 900  # 15 min

    # Service
    SERVICE_NAME: str = "marketplace-api"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")
