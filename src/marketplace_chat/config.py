from __future__ import annotations

from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven settings; ``.env`` is read when present."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # message store
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300

    # readiness probe and optional cross-process fan-out
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_PUBSUB_CHANNEL: str = "chat.relay"
    RELAY_FANOUT_ENABLED: bool = False

    # bearer credentials
    JWT_VERIFY_MODE: Literal["hs256", "jwks"] = "hs256"
    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWKS_URL: str | None = None
    JWT_USER_CLAIM: str = "userId"

    CORS_ORIGINS: list[str] = ["*"]
    WS_CLOSE_SUPERSEDED: bool = False
    LOG_LEVEL: Literal["critical", "error", "warning", "info", "debug"] = "info"

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _lower_log_level(cls, v: object) -> object:
        return v.lower() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _check_jwt_source(self) -> Settings:
        if self.JWT_VERIFY_MODE == "jwks" and not self.JWKS_URL:
            raise ValueError("JWKS_URL must be set when JWT_VERIFY_MODE=jwks")
        return self

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )


settings = Settings()  # type: ignore[call-arg]
