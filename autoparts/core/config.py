"""Environment-driven configuration for the parts & billing service.

Every knob the service reads lives on ``AppSettings``. Values come from the
process environment first and then from ``.env``/``.env.local`` files, so a
developer can boot the API locally without exporting anything.
"""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "AutoParts Billing"
    LOG_LEVEL: str = "INFO"

    BASE_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parents[2])
    DATA_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parents[2] / "data")

    # ---- Auth seam (tokens are issued elsewhere; we only verify them)
    API_KEY: str = Field(default="", validation_alias=AliasChoices("API_KEY", "API_TOKEN"))
    JWT_SECRET: str = "change-me"
    JWT_ACCESS_TTL_MIN: int = 15
    JWT_REFRESH_TTL_DAYS: int = 7
    AUTH_ALLOW_API_KEY: bool = True
    ALLOWED_ORIGINS: list[str] = Field(default_factory=list)

    # Empty means "derive a SQLite file under DATA_DIR".
    DB_URL: str = Field(default="", validation_alias=AliasChoices("DB_URL", "DATABASE_URL"))

    HOST: str = "0.0.0.0"
    PORT: int = 8089

    # ---- Ledger behaviour
    INVOICE_PREFIX: str = "INV"
    AUDIT_LOG_LIMIT: int = Field(default=1000, gt=0)
    DEFAULT_TAX_RATE: Decimal = Field(default=Decimal("0"), ge=0, le=100)

    @property
    def database_url(self) -> str:
        return self.DB_URL or f"sqlite:///{self.DATA_DIR / 'autoparts.db'}"

    @property
    def mirror_dir(self) -> Path:
        return self.DATA_DIR / "mirror"

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, value: Any) -> list[str]:
        if value in (None, "", []):
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, Iterable):
            return [str(item).strip() for item in value if str(item).strip()]
        raise TypeError("ALLOWED_ORIGINS must be a comma separated string or list")


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    return settings


settings = get_settings()
