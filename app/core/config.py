"""Application configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. Required fields (SUPABASE_URL, SUPABASE_SERVICE_KEY)
are validated at load time.
"""

from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment and .env.

    All settings are optional with defaults except the Supabase project URL
    and service key, validated in validate_required.
    """

    # App
    app_name: str = "studyhub-stats"
    app_version: str = "1.0.0"
    debug: bool = False

    # CORS
    allowed_origins: str = "http://localhost:5173,http://localhost:8080"

    # Supabase (PostgREST + auth)
    supabase_url: str = ""
    supabase_service_key: SecretStr = SecretStr("")
    # Verifies user access tokens (HS256) on the HTTP and WebSocket API.
    supabase_jwt_secret: SecretStr = SecretStr("")
    supabase_jwt_audience: str = "authenticated"
    supabase_timeout_seconds: float = 15.0

    # Dashboard stats
    stats_cache_duration_seconds: int = 24 * 60 * 60  # manual refresh only
    stats_count_retry_delay_seconds: float = 0.5
    stats_rpc_timeout_seconds: float = 4.0
    stats_step_timeout_seconds: float = 8.0
    stats_step_delay_seconds: float = 0.15
    stats_refresh_debounce_seconds: float = 0.8
    stats_timezone: str = "UTC"

    # Database webhook: required by POST /webhooks/db-changes (503 when unset); callers send
    # X-Webhook-Signature-256: sha256=<hex(hmac_sha256(secret, body))>.
    db_webhook_secret: SecretStr | None = None

    # Request / middleware
    request_timeout_seconds: int = 60
    request_id_header: str = "X-Request-ID"

    # Redis (durable stats mirror + change feed)
    redis_enabled: bool = True
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: SecretStr | None = None
    cache_ttl_dashboard_stats: int = 7 * 24 * 60 * 60

    # OpenTelemetry
    telemetry_enabled: bool = False
    telemetry_exporter: str = "console"
    telemetry_otlp_endpoint: str | None = None
    telemetry_sample_rate: float = 1.0
    telemetry_environment: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_required(self) -> "Settings":
        """Validate required Supabase settings and stats timings."""
        if not self.supabase_url:
            raise ValueError(
                "SUPABASE_URL is required (e.g. https://<project>.supabase.co). "
                "Set in environment or .env file."
            )
        if not self.supabase_service_key.get_secret_value():
            raise ValueError(
                "SUPABASE_SERVICE_KEY is required. Copy the service_role key from "
                "Project Settings → API."
            )
        origins = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        if "*" in origins:
            raise ValueError(
                "allowed_origins must list explicit origins; '*' is not allowed with credentials"
            )
        if self.debug and self.telemetry_environment == "production":
            raise ValueError("debug must be False when telemetry_environment is production")
        if self.stats_rpc_timeout_seconds > self.stats_step_timeout_seconds:
            raise ValueError(
                "stats_rpc_timeout_seconds must not exceed stats_step_timeout_seconds"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings (single instance per process).

    Validation runs on first call, not at import time. In tests, call
    get_settings.cache_clear() before overriding env vars so the next
    get_settings() uses the new values.

    Returns:
        Loaded and validated Settings instance.
    """
    return Settings()
