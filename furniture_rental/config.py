from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Database - PostgreSQL for production, SQLite for development
    database_url: str = Field(
        default="sqlite:///./furniture_rental.db",
        alias="DATABASE_URL"
    )

    # Reservation store backend: "sql" (SQLAlchemy) or "memory" (single process, tests)
    store_backend: str = Field(default="sql", alias="STORE_BACKEND")

    # How many times an atomic reservation commit is re-run after a conflict
    transaction_max_retries: int = Field(default=5, alias="TRANSACTION_MAX_RETRIES")

    # ==============================================
    # Availability & Pricing
    # ==============================================
    availability_search_horizon_days: int = Field(default=90, alias="AVAILABILITY_SEARCH_HORIZON_DAYS")
    default_deposit_percent: int = Field(default=30, alias="DEFAULT_DEPOSIT_PERCENT")
    currency: str = Field(default="CLP", alias="CURRENCY")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # CORS - Frontend URLs from environment (comma-separated)
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
        alias="ALLOWED_ORIGINS"
    )

    # Rate limiting (slowapi / limits storage URI, e.g. redis://host:6379)
    rate_limit_storage_uri: str = Field(default="memory://", alias="RATE_LIMIT_STORAGE_URI")
    reservation_create_rate_limit: str = Field(default="30/minute", alias="RESERVATION_CREATE_RATE_LIMIT")

    @field_validator('store_backend')
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ("sql", "memory"):
            raise ValueError("STORE_BACKEND must be 'sql' or 'memory'")
        return v

    @field_validator('transaction_max_retries')
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 1:
            raise ValueError("TRANSACTION_MAX_RETRIES must be at least 1")
        return v

    @field_validator('default_deposit_percent')
    @classmethod
    def validate_deposit_percent(cls, v: int) -> int:
        if not 0 <= v <= 100:
            raise ValueError("DEFAULT_DEPOSIT_PERCENT must be between 0 and 100")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cors_origins(self) -> List[str]:
        """
        Parse allowed origins from comma-separated string.
        Returns a list suitable for CORSMiddleware.
        """
        if not self.allowed_origins:
            return ["http://localhost:5173"]

        origins = []
        seen = set()
        for origin in self.allowed_origins.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in seen:
                seen.add(origin)
                origins.append(origin)

        return origins if origins else ["http://localhost:5173"]

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Initialize settings on module load
settings = get_settings()
