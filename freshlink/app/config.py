from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..modules.documentation.domain.models import DocumentationPaths


class AppConfig(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    deeplink_scheme: str = Field("freshcuts", min_length=1, alias="DEEPLINK_SCHEME")
    default_service_amount: Decimal = Field(Decimal("45.00"), gt=0, alias="DEFAULT_SERVICE_AMOUNT")
    default_currency: str = Field("USD", min_length=3, max_length=3, alias="DEFAULT_CURRENCY")
    max_url_length: int = Field(2048, ge=16, alias="MAX_URL_LENGTH")
    max_query_params: int = Field(50, ge=1, alias="MAX_QUERY_PARAMS")

    rate_limit_enabled: bool = Field(True, alias="RATE_LIMIT_ENABLED")
    rate_limit_max_calls: int = Field(30, ge=1, alias="RATE_LIMIT_MAX_CALLS")
    rate_limit_window_seconds: float = Field(60.0, gt=0, alias="RATE_LIMIT_WINDOW_SECONDS")

    session_enabled: bool = Field(True, alias="SESSION_ENABLED")
    session_timeout: int = Field(1800, ge=1, alias="SESSION_TIMEOUT")
    session_sweep_interval: float = Field(60.0, gt=0, alias="SESSION_SWEEP_INTERVAL")
    session_cookie_name: str = Field("freshcuts_session", alias="SESSION_COOKIE_NAME")

    wiki_enabled: bool = Field(False, alias="WIKI_ENABLED")
    wiki_base_url: str = Field("https://docs.freshcuts.com", alias="WIKI_BASE_URL")
    wiki_api_key: Optional[str] = Field(None, alias="WIKI_API_KEY")
    wiki_cache_timeout: int = Field(300, ge=0, alias="WIKI_CACHE_TIMEOUT")
    wiki_cache_max_entries: int = Field(1000, ge=1, alias="WIKI_CACHE_MAX_ENTRIES")
    wiki_request_timeout: float = Field(5.0, gt=0, alias="WIKI_REQUEST_TIMEOUT")
    wiki_payments_path: str = Field("/docs/payments", alias="WIKI_PAYMENTS_PATH")
    wiki_bookings_path: str = Field("/docs/bookings", alias="WIKI_BOOKINGS_PATH")
    wiki_tips_path: str = Field("/docs/tips", alias="WIKI_TIPS_PATH")
    wiki_navigation_path: str = Field("/docs/navigation", alias="WIKI_NAVIGATION_PATH")

    analytics_enabled: bool = Field(True, alias="ANALYTICS_ENABLED")
    analytics_storage_backend: Literal["sqlite", "local", "http"] = Field(
        "sqlite", alias="ANALYTICS_STORAGE_BACKEND"
    )
    analytics_sqlite_path: Path = Field(Path("./data/analytics.db"), alias="ANALYTICS_SQLITE_PATH")
    analytics_local_dir: Path = Field(Path("./data/analytics"), alias="ANALYTICS_LOCAL_DIR")
    analytics_storage_url: Optional[str] = Field(None, alias="ANALYTICS_STORAGE_URL")
    analytics_bucket: str = Field("freshcuts-analytics", alias="ANALYTICS_BUCKET")
    analytics_storage_token: Optional[str] = Field(None, alias="ANALYTICS_STORAGE_TOKEN")
    analytics_prefix: str = Field("analytics/", alias="ANALYTICS_PREFIX")
    analytics_await_persist: bool = Field(False, alias="ANALYTICS_AWAIT_PERSIST")
    analytics_top_n: int = Field(5, ge=1, le=50, alias="ANALYTICS_TOP_N")

    payment_gateway_url: Optional[str] = Field(None, alias="PAYMENT_GATEWAY_URL")
    payment_gateway_token: Optional[str] = Field(None, alias="PAYMENT_GATEWAY_TOKEN")
    payment_gateway_timeout: float = Field(10.0, gt=0, alias="PAYMENT_GATEWAY_TIMEOUT")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field("INFO", alias="LOG_LEVEL")

    @field_validator("deeplink_scheme")
    @classmethod
    def _strip_scheme_suffix(cls, value: str) -> str:
        # Accept "freshcuts://" as well as "freshcuts"
        return value.strip().removesuffix("://")

    @field_validator("analytics_prefix")
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        value = value.strip().lstrip("/")
        if value and not value.endswith("/"):
            value += "/"
        return value

    @property
    def documentation_paths(self) -> DocumentationPaths:
        return DocumentationPaths(
            payments=self.wiki_payments_path,
            bookings=self.wiki_bookings_path,
            tips=self.wiki_tips_path,
            navigation=self.wiki_navigation_path,
        )

    def ensure_dirs(self) -> None:
        if not self.analytics_enabled:
            return
        if self.analytics_storage_backend == "sqlite":
            self.analytics_sqlite_path.parent.mkdir(parents=True, exist_ok=True)
        elif self.analytics_storage_backend == "local":
            self.analytics_local_dir.mkdir(parents=True, exist_ok=True)
