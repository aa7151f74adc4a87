"""Central application configuration powered by Pydantic settings."""

from __future__ import annotations

from typing import List

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

DEFAULT_SECRET_KEY = "supersecret"


class Settings(BaseSettings):
    """Application settings loaded from the environment with validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")
    secret_key: str = Field(default=DEFAULT_SECRET_KEY, validation_alias="SECRET_KEY")
    algorithm: str = Field(default="HS256", validation_alias="ALGORITHM")
    access_token_expire_minutes: int = Field(default=30, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    env: str = Field(default="development", validation_alias="ENV")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    display_rules_cache_ttl_seconds: float = Field(
        default=60.0,
        ge=0,
        validation_alias="DISPLAY_RULES_CACHE_TTL_SECONDS",
    )

    @field_validator("env", mode="before")
    @classmethod
    def _normalise_env(cls, value: str | None) -> str:
        if not value:
            return "development"
        return value.lower()

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: str | None) -> str:
        if not value:
            return "INFO"
        return value.upper()

    @model_validator(mode="after")
    def _validate_production_requirements(self) -> "Settings":
        if self.env == "production":
            missing: List[str] = []
            if not self.database_url:
                missing.append("DATABASE_URL")
            if not self.secret_key or self.secret_key == DEFAULT_SECRET_KEY:
                missing.append("SECRET_KEY")

            if missing:
                required = ", ".join(sorted(set(missing)))
                raise ValueError(
                    "Missing required environment variables for production: " + required
                )

        return self


settings = Settings()
