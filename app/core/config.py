"""
Application configuration settings
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import Optional, List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "ErrandBit"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # CORS
    CORS_ORIGINS: List[str] = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: List[str] = ["*"]
    CORS_ALLOW_HEADERS: List[str] = ["*"]

    # Database
    DATABASE_URL: Optional[str] = None

    # Auth (tokens are issued elsewhere, this service only verifies them)
    JWT_SECRET_KEY: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24 * 7

    # Payouts
    PLATFORM_FEE_PERCENT: int = 0  # 0% for now - runners keep the full price
    SATS_PER_USD: int = 2000  # Fixed conversion rate used for ledger amounts

    # LNbits Lightning provider
    LNBITS_URL: str = "https://legend.lnbits.com"
    LNBITS_ADMIN_KEY: Optional[str] = None  # Unset = simulated payouts
    LIGHTNING_TIMEOUT_SECONDS: float = 30.0
    PAYOUT_STALE_SECONDS: float = 60.0  # A processing claim older than this can be taken over

    # Reviews
    MAX_REVIEW_COMMENT_LENGTH: int = 1000

    @field_validator("PLATFORM_FEE_PERCENT")
    @classmethod
    def fee_percent_in_range(cls, v: int) -> int:
        if v < 0 or v > 100:
            raise ValueError("PLATFORM_FEE_PERCENT must be between 0 and 100")
        return v

    @field_validator("SATS_PER_USD")
    @classmethod
    def rate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("SATS_PER_USD must be positive")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
