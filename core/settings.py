from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


SEVEN_DAYS = 7 * 24 * 60 * 60


def _as_bool(value, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if value is None or value == "":
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


class OfficeSettings(BaseSettings):
    """Centralized application configuration pulled from environment/.env."""

    secret_key: str = Field("dev-secret", alias="SECRET_KEY")
    database_url: Optional[str] = Field(None, alias="DATABASE_URL")
    auto_apply_ddl: bool = Field(True, alias="OFFICE_AUTO_APPLY_DDL")
    enforce_alembic_migrations: bool = Field(False, alias="OFFICE_ENFORCE_ALEMBIC")

    access_token_ttl: int = Field(SEVEN_DAYS, alias="ACCESS_TOKEN_TTL")
    session_ttl: int = Field(SEVEN_DAYS, alias="SESSION_TTL")
    session_cookie_name: str = Field("office_session", alias="SESSION_COOKIE_NAME")
    session_cookie_secure: bool = Field(False, alias="SESSION_COOKIE_SECURE")

    # Tenant layout
    house_namespace: str = Field("studio_office", alias="HOUSE_NAMESPACE")
    house_organization_id: str = Field("studio-office", alias="HOUSE_ORGANIZATION_ID")
    # 'house' keeps unclassified accounts in the house namespace, 'reject' refuses them
    tenant_fallback: str = Field("house", alias="TENANT_FALLBACK")

    # Payroll
    weekly_holiday: int = Field(6, alias="WEEKLY_HOLIDAY")
    payroll_hold_blocks_payment: bool = Field(False, alias="PAYROLL_HOLD_BLOCKS_PAYMENT")

    # Third-party identity provider
    idp_jwks_url: Optional[str] = Field(None, alias="IDP_JWKS_URL")
    idp_audience: Optional[str] = Field(None, alias="IDP_AUDIENCE")
    idp_issuer: Optional[str] = Field(None, alias="IDP_ISSUER")

    login_rate_limit_backend: str = Field("auto", alias="LOGIN_RATE_LIMIT_BACKEND")
    login_rate_limit_redis_url: Optional[str] = Field(None, alias="LOGIN_RATE_LIMIT_REDIS_URL")
    # Redis fail policy: 'open' (allow when Redis down), 'closed' (block), 'memory' (fallback to in-proc)
    login_rate_limit_redis_policy: str = Field("open", alias="LOGIN_RATE_LIMIT_REDIS_POLICY")
    login_rate_limit_window: int = Field(300, alias="LOGIN_RATE_LIMIT_WINDOW")
    login_rate_limit_attempts: int = Field(10, alias="LOGIN_RATE_LIMIT_ATTEMPTS")

    # Build/meta info
    app_version: str = Field("dev", alias="APP_VERSION")
    git_sha: Optional[str] = Field(None, alias="GIT_SHA")
    build_ts: Optional[str] = Field(None, alias="BUILD_TS")

    # uvicorn runner (`python -m app` / `studio-office`)
    host: str = Field("127.0.0.1", alias="OFFICE_HOST")
    port: int = Field(8000, alias="OFFICE_PORT")
    reload: bool = Field(False, alias="OFFICE_RELOAD")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("secret_key", mode="before")
    @classmethod
    def _normalize_secret(cls, value: str | None) -> str:
        val = (value or "dev-secret").strip()
        return val or "dev-secret"

    @field_validator("database_url", "idp_jwks_url", "idp_audience", "idp_issuer", mode="before")
    @classmethod
    def _strip_optional(cls, value: str | None) -> Optional[str]:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("auto_apply_ddl", mode="before")
    @classmethod
    def _parse_auto_ddl(cls, value) -> bool:
        return _as_bool(value, True)

    @field_validator("enforce_alembic_migrations", "session_cookie_secure", "payroll_hold_blocks_payment", mode="before")
    @classmethod
    def _parse_flag(cls, value) -> bool:
        return _as_bool(value, False)

    @field_validator("tenant_fallback", mode="before")
    @classmethod
    def _normalize_fallback(cls, value: str | None) -> str:
        val = (value or "house").strip().lower()
        return val if val in {"house", "reject"} else "house"

    @field_validator("weekly_holiday", mode="before")
    @classmethod
    def _validate_weekday(cls, value) -> int:
        if value is None or value == "":
            return 6
        day = int(value)
        if not 0 <= day <= 6:
            raise ValueError("WEEKLY_HOLIDAY must be between 0 (Monday) and 6 (Sunday)")
        return day

    @field_validator("login_rate_limit_backend", mode="before")
    @classmethod
    def _normalize_backend(cls, value: str | None) -> str:
        val = (value or "auto").strip().lower()
        if val not in {"auto", "memory", "redis"}:
            return "memory"
        return val

    @field_validator("login_rate_limit_redis_policy", mode="before")
    @classmethod
    def _normalize_redis_policy(cls, value: str | None) -> str:
        val = (value or "open").strip().lower()
        if val not in {"open", "closed", "memory"}:
            return "open"
        return val


@lru_cache(maxsize=1)
def get_settings() -> OfficeSettings:
    return OfficeSettings()


def reset_settings_cache() -> None:
    """Testing helper to clear cached settings."""
    get_settings.cache_clear()
