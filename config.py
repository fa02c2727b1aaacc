import os
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    # Application Settings
    APP_NAME: str = "9thWaka API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"

    # Database Settings
    # DATABASE_URL wins when set (e.g. sqlite:// for tests)
    DATABASE_URL_OVERRIDE: Optional[str] = os.getenv("DATABASE_URL")
    DB_HOST: str = os.getenv("DB_HOST", "localhost")
    DB_PORT: int = int(os.getenv("DB_PORT", "3306"))
    DB_USER: str = os.getenv("DB_USER", "ninthwaka")
    DB_PASSWORD: str = os.getenv("DB_PASSWORD", "ninthwaka")
    DB_NAME: str = os.getenv("DB_NAME", "ninthwaka")

    # JWT Settings
    SECRET_KEY: str = os.getenv("SECRET_KEY", "ninthwaka-dev-secret-change-me")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # CORS Settings
    CORS_ORIGINS: List[str] = ["*"]

    # Redis cache (optional)
    REDIS_URL: str = os.getenv("REDIS_URL", "")
    REDIS_ENABLED: bool = bool(os.getenv("REDIS_URL"))

    # Commission fallback when no platform_settings row exists yet
    COMMISSION_RATE_PERCENT: float = float(os.getenv("COMMISSION_RATE_PERCENT", "10"))

    # Delivery OTP
    DELIVERY_OTP_LENGTH: int = int(os.getenv("DELIVERY_OTP_LENGTH", "4"))
    DELIVERY_OTP_TTL_MINUTES: int = int(os.getenv("DELIVERY_OTP_TTL_MIN", "15"))
    DELIVERY_OTP_MAX_ATTEMPTS: int = 5

    # Tiered pricing defaults (overridable from the admin settings row)
    PRICE_MIN_FARE: float = float(os.getenv("PRICE_MIN_FARE", "800"))
    PRICE_PER_KM_SHORT: float = float(os.getenv("PRICE_PER_KM_SHORT", "100"))
    PRICE_PER_KM_MEDIUM: float = float(os.getenv("PRICE_PER_KM_MEDIUM", "140"))
    PRICE_PER_KM_LONG: float = float(os.getenv("PRICE_PER_KM_LONG", "200"))
    PRICE_SHORT_MAX_KM: float = 8
    PRICE_MEDIUM_MAX_KM: float = 15
    PRICE_ROAD_FACTOR: float = 1.3

    # Weekly payouts
    PAYOUT_INCLUDE_IDLE_RIDERS: bool = os.getenv("PAYOUT_INCLUDE_IDLE_RIDERS", "False").lower() == "true"

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"mysql+pymysql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
