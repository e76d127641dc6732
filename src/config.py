"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (or a .env file in dev).
Validation runs once at startup: a bad value or a missing production secret
raises a ValidationError and the service refuses to boot.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from functools import lru_cache
from typing import Literal
from urllib.parse import urlparse

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_JWT_SECRET = "dev-secret-key-change-in-production"

_LOG_LEVELS: dict[str, int] = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "verbose": logging.DEBUG,
}


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TEST = "test"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Server
    # ------------------------------------------------------------------ #
    node_env: Environment = Environment.DEVELOPMENT
    port: int = Field(default=3000, ge=1, le=65535)
    api_version: str = "v1"
    cors_origin: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins. In production, set to actual frontend URLs.",
    )

    # ------------------------------------------------------------------ #
    # Database
    # ------------------------------------------------------------------ #
    database_url: str = Field(
        ...,
        description="Async SQLAlchemy database URL (postgresql+asyncpg://...)",
    )
    db_echo_sql: bool = False
    db_pool_size: int = Field(default=5, ge=1)
    db_max_overflow: int = Field(default=10, ge=0)

    # ------------------------------------------------------------------ #
    # Redis
    # ------------------------------------------------------------------ #
    redis_host: str = "localhost"
    redis_port: int = Field(default=6379, ge=1, le=65535)
    redis_password: SecretStr | None = None
    redis_db: int = Field(default=0, ge=0)

    # ------------------------------------------------------------------ #
    # JWT
    # ------------------------------------------------------------------ #
    jwt_secret: SecretStr | None = Field(
        default=None,
        description="HS256 signing secret. Required in production.",
    )
    jwt_access_token_expiry_minutes: int = Field(default=15, ge=1)

    # ------------------------------------------------------------------ #
    # Solana
    # ------------------------------------------------------------------ #
    solana_rpc_url: str = "https://api.devnet.solana.com"
    solana_network: Literal["devnet", "testnet", "mainnet-beta"] = "devnet"

    identity_registry_program_id: str | None = None
    verification_oracle_program_id: str | None = None
    credential_manager_program_id: str | None = None
    reputation_engine_program_id: str | None = None
    staking_manager_program_id: str | None = None

    # ------------------------------------------------------------------ #
    # API Setu (Aadhaar verification gateway)
    # ------------------------------------------------------------------ #
    api_setu_base_url: str = "https://dg-sandbox.setu.co"
    api_setu_client_id: str | None = None
    api_setu_client_secret: SecretStr | None = None

    # ------------------------------------------------------------------ #
    # Security
    # ------------------------------------------------------------------ #
    bcrypt_salt_rounds: int = Field(default=12, ge=10, le=15)
    encryption_key: SecretStr | None = Field(
        default=None,
        description="32-character key for PII encryption. Required in production.",
    )

    # ------------------------------------------------------------------ #
    # Logging / audit
    # ------------------------------------------------------------------ #
    log_level: Literal["error", "warn", "info", "debug", "verbose"] = "debug"
    enable_audit_logging: bool = True

    # ------------------------------------------------------------------ #
    # Data rights
    # ------------------------------------------------------------------ #
    data_rights_response_days: int = Field(
        default=30,
        ge=1,
        description="Statutory response window for access/erasure/correction/portability",
    )
    grievance_response_days: int = Field(default=15, ge=1)
    activity_lookback_days: int = Field(
        default=90,
        ge=1,
        description="How far back audit activity is included in data exports",
    )

    # ------------------------------------------------------------------ #
    # Field validators
    # ------------------------------------------------------------------ #
    @field_validator("solana_rpc_url", "api_setu_base_url")
    @classmethod
    def _require_absolute_uri(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"must be an absolute http(s) URI, got {value!r}")
        return value

    @field_validator("encryption_key")
    @classmethod
    def _check_encryption_key_length(cls, value: SecretStr | None) -> SecretStr | None:
        if value is not None and len(value.get_secret_value()) != 32:
            raise ValueError("ENCRYPTION_KEY must be exactly 32 characters")
        return value

    @field_validator("redis_password", mode="before")
    @classmethod
    def _empty_password_is_none(cls, value: object) -> object:
        # REDIS_PASSWORD= (empty) is allowed and means "no auth"
        if value == "":
            return None
        return value

    # ------------------------------------------------------------------ #
    # Derived / Computed
    # ------------------------------------------------------------------ #
    @model_validator(mode="after")
    def _validate_production_secrets(self) -> Settings:
        """Refuse to start in production without the required secrets.

        JWT_SECRET, API_SETU_CLIENT_ID, API_SETU_CLIENT_SECRET and
        ENCRYPTION_KEY are optional in development and test; in production
        every missing one is reported in a single error.
        """
        if self.node_env != Environment.PRODUCTION:
            if self.jwt_secret is None:
                self.jwt_secret = SecretStr(DEV_JWT_SECRET)
            return self

        missing: list[str] = []
        if self.jwt_secret is None:
            missing.append("JWT_SECRET")
        if not self.api_setu_client_id:
            missing.append("API_SETU_CLIENT_ID")
        if self.api_setu_client_secret is None:
            missing.append("API_SETU_CLIENT_SECRET")
        if self.encryption_key is None:
            missing.append("ENCRYPTION_KEY")

        if missing:
            raise ValueError(
                "Production startup blocked, missing required settings: "
                + ", ".join(missing)
            )
        return self

    @property
    def is_dev(self) -> bool:
        return self.node_env in (Environment.DEVELOPMENT, Environment.TEST)

    @property
    def is_prod(self) -> bool:
        return self.node_env == Environment.PRODUCTION

    @property
    def log_level_value(self) -> int:
        """Stdlib logging level for LOG_LEVEL (warn -> WARNING, verbose -> DEBUG)."""
        return _LOG_LEVELS[self.log_level]

    @property
    def program_ids(self) -> dict[str, str]:
        """Configured on-chain program ids, keyed by program name."""
        candidates = {
            "identity_registry": self.identity_registry_program_id,
            "verification_oracle": self.verification_oracle_program_id,
            "credential_manager": self.credential_manager_program_id,
            "reputation_engine": self.reputation_engine_program_id,
            "staking_manager": self.staking_manager_program_id,
        }
        return {name: pid for name, pid in candidates.items() if pid}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings singleton.

    Use FastAPI dependency injection via Depends(get_settings) in endpoints,
    or call directly in non-request contexts (startup, scripts).
    """
    return Settings()
