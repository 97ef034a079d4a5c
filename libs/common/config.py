from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production", "test"] = "local"
    LOG_LEVEL: str = "INFO"
    CURRENCY: str = "MZN"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Redis (cache + arq)
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_ENABLED: bool = True
    ORDER_CACHE_TTL_SECONDS: int = 60

    # Supabase
    # Placeholder values keep local/test runs working without a project.
    SUPABASE_URL: str = "http://localhost"
    SUPABASE_ANON_KEY: str = "test-anon-key"
    SUPABASE_SERVICE_ROLE_KEY: str = "test-service-role-key"
    SUPABASE_JWT_SECRET: str = "test-jwt-secret"
    SUPABASE_PRODUCTS_BUCKET: str = "products"
    SUPABASE_LOGOS_BUCKET: str = "store-logos"
    STORAGE_ORPHAN_GRACE_SECONDS: int = 24 * 3600

    # M-Pesa (Vodacom Mozambique OpenAPI)
    MPESA_API_KEY: str = ""
    MPESA_PUBLIC_KEY: str = ""
    MPESA_SERVICE_PROVIDER_CODE: str = "171717"
    MPESA_BASE_URL: str = "https://api.sandbox.vm.co.mz:18352"
    MPESA_C2B_PATH: str = "/ipg/v1x/c2bPayment/singleStage/"
    MPESA_TIMEOUT_SECONDS: float = 30.0
    MSISDN_MIN_LENGTH: int = 9

    # Webhook authenticity: shared secret and/or comma-separated IP allowlist
    MPESA_WEBHOOK_SECRET: Optional[str] = None
    MPESA_WEBHOOK_ALLOWED_IPS: str = ""
    # Reverse proxies in front of the payments service that append to
    # X-Forwarded-For. 0 means the socket peer is the caller.
    TRUSTED_PROXY_HOPS: int = 0

    # Realtime
    REALTIME_BACKEND: Literal["memory", "supabase"] = "memory"

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> str:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+psycopg://", 1)
        return v

    @property
    def webhook_allowed_ips(self) -> set[str]:
        return {ip.strip() for ip in self.MPESA_WEBHOOK_ALLOWED_IPS.split(",") if ip.strip()}


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
