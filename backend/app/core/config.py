"""
Application configuration via environment variables.
"""

import json
import os
from functools import lru_cache
from typing import Any, List, Optional

from pydantic import AliasChoices, Field, computed_field, field_validator, model_validator
from pydantic_settings import BaseSettings

_CORS_ENV = "DRIPCHECK_CORS_ORIGINS"
_DEFAULT_CORS = ["https://www.linkedin.com", "https://linkedin.com"]
_DEFAULT_CORS_RAW = json.dumps(_DEFAULT_CORS)
_DEV_CORS = ["http://localhost:3000", "http://localhost:5000"]


def _parse_cors_origins(v: str) -> List[str]:
    """Parse CORS origins from env string (JSON or comma-separated). Never raises."""
    if not v or not isinstance(v, str):
        return list(_DEFAULT_CORS)
    v = v.strip()
    if not v:
        return list(_DEFAULT_CORS)
    # Try JSON (double-quoted only)
    try:
        parsed = json.loads(v)
        if isinstance(parsed, list):
            return [x.strip() for x in parsed if isinstance(x, str) and x.strip()]
    except (json.JSONDecodeError, TypeError):
        pass
    # Try single-quoted JSON (replace ' with " for valid JSON)
    try:
        normalized = v.replace("'", '"')
        parsed = json.loads(normalized)
        if isinstance(parsed, list):
            return [x.strip() for x in parsed if isinstance(x, str) and x.strip()]
    except (json.JSONDecodeError, TypeError):
        pass
    # Comma-separated
    if "," in v:
        return [origin.strip() for origin in v.split(",") if origin.strip()]
    return [v]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "Drip Check API"
    service_id: str = "drip-check-api"
    environment: str = "production"  # production | development | test
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = Field(default=3000, validation_alias=AliasChoices("DRIPCHECK_PORT", "PORT"))

    # Database (empty => usage/webhook persistence disabled)
    database_url: str = Field(
        default="",
        validation_alias=AliasChoices("DRIPCHECK_DATABASE_URL", "DATABASE_URL"),
    )
    database_min_pool_size: int = 1
    database_max_pool_size: int = 10

    # CORS: read DRIPCHECK_CORS_ORIGINS from os.environ in the validator so
    # pydantic-settings never tries to JSON-decode it.
    cors_origins_raw: str = Field(
        default=_DEFAULT_CORS_RAW,
        description="JSON array or comma-separated origins",
    )

    @model_validator(mode="before")
    @classmethod
    def inject_cors_from_env(cls, data: Any) -> Any:
        env_val = os.environ.get(_CORS_ENV)
        if env_val is not None and isinstance(data, dict):
            data["cors_origins_raw"] = env_val
        return data

    @field_validator("environment", mode="before")
    @classmethod
    def normalize_environment(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            return "production"
        return v.strip().lower()

    @computed_field
    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @computed_field
    @property
    def cors_origins_list(self) -> List[str]:
        """Parsed CORS origins; localhost origins are only added in development."""
        origins = _parse_cors_origins(self.cors_origins_raw)
        if self.is_development:
            origins += [o for o in _DEV_CORS if o not in origins]
        return origins

    # LLM provider
    llm_provider: str = "anthropic"  # anthropic | openai
    anthropic_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("DRIPCHECK_ANTHROPIC_API_KEY", "ANTHROPIC_API_KEY"),
    )
    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("DRIPCHECK_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    llm_model: str = ""  # empty => provider default
    llm_base_url: Optional[str] = None
    llm_max_tokens: int = 1000
    llm_temperature: float = 0.7
    llm_timeout_seconds: float = 30.0
    rewrite_prime_response: bool = True

    @property
    def llm_api_key(self) -> str:
        if self.llm_provider.lower() == "openai":
            return self.openai_api_key or ""
        return self.anthropic_api_key or ""

    # Rate limiting
    daily_request_limit: int = 50
    rate_limit_sweep_minutes: int = 60

    # Premium gate
    premium_cache_ttl_seconds: int = 300
    premium_token_max_age_seconds: int = 24 * 60 * 60
    premium_token_clock_skew_seconds: int = 5 * 60
    # Only honoured when environment == "development"
    dev_premium_bypass: bool = False

    @property
    def premium_bypass_active(self) -> bool:
        return self.is_development and self.dev_premium_bypass

    # ExtensionPay webhooks (signature check skipped when unset)
    extensionpay_webhook_secret: Optional[str] = None

    class Config:
        env_prefix = "DRIPCHECK_"
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
