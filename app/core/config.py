from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")
    db_echo: bool = Field(False, alias="DB_ECHO")
    db_pool_recycle_seconds: int = Field(300, alias="DB_POOL_RECYCLE_SECONDS")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    # Login endpoint of the identity service that issues access tokens (OpenAPI docs only).
    identity_token_url: str = Field("/api/v1/auth/login-oauth", alias="IDENTITY_TOKEN_URL")

    # Shared secret used to verify gateway payment signatures (order_ref|transaction_ref).
    payment_gateway_key_id: Optional[str] = Field(None, alias="PAYMENT_GATEWAY_KEY_ID")
    payment_gateway_key_secret: Optional[str] = Field(None, alias="PAYMENT_GATEWAY_KEY_SECRET")

    # Manually collected payments get references with this prefix; gateway references never carry it.
    counter_reference_prefix: str = Field("COUNTER_", alias="COUNTER_REFERENCE_PREFIX")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
