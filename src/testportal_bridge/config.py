"""TestPortal Bridge — configuration loaded from environment."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, loaded from .env or environment variables."""

    # ── Token store ───────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./testportal_bridge.db"
    tokens_table: str = "access_tokens"
    token_ttl_seconds: int = 15 * 60
    token_purge_interval_seconds: int = 60

    # ── Allowed caller origins ────────────────────────────
    allowed_origin: str = "https://my.icecampus.com"
    admin_allowed_origin: str = "https://testportalurl.icecampus.com"

    # ── TestPortal API ────────────────────────────────────
    testportal_api_url: str = "https://www.testportal.com/api/v1"
    provider_timeout_seconds: float = 10.0

    # ── Secrets ───────────────────────────────────────────
    testportal_secret_name: str | None = None
    admin_password_secret_name: str | None = None
    secrets_dir: str | None = None
    secret_cache_ttl_seconds: int = 300

    # ── App ───────────────────────────────────────────────
    app_name: str = "TestPortal Bridge"
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton settings instance
settings = Settings()
