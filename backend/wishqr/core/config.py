import json
import os

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "WishQR API"
    environment: str = "local"
    backend_cors_origins_raw: str = ""  # Comma-separated or JSON array

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "allow",
    }

    @property
    def backend_cors_origins(self) -> list[str]:
        """Parse CORS origins from raw string."""
        raw = os.getenv("BACKEND_CORS_ORIGINS", self.backend_cors_origins_raw).strip()
        if not raw:
            return ["*"]
        if raw.startswith("["):
            try:
                parsed = json.loads(raw)
                if isinstance(parsed, list):
                    return [str(item).strip() for item in parsed if str(item).strip()]
            except ValueError:
                pass
        return [item.strip() for item in raw.split(",") if item.strip()]

    # Database: sqlite+aiosqlite:///./wishqr.db (dev) | postgresql+asyncpg://... (prod)
    database_dsn: str = "sqlite+aiosqlite:///./wishqr.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_recycle: int = 1800
    db_pool_timeout: int = 30

    # Identity provider tokens. For RS256/ES256 providers put the PEM public key here.
    jwt_secret_key: str = "CHANGE_ME"
    jwt_algorithm: str = "HS256"
    jwt_audience: str | None = None
    jwt_issuer: str | None = None
    identity_token_expire_minutes: int = 60

    deep_link_scheme: str = "wishlist"
    qr_size: int = 256
    qr_margin: int = 2

    single_wishlist_per_user: bool = False

    rate_limit_enabled: bool = True
    rate_limit_contribute_requests: int = 20
    rate_limit_window_seconds: int = 60
    # Peers whose X-Forwarded-For header is honoured (comma separated hosts).
    trusted_proxies_raw: str = ""

    @property
    def trusted_proxies(self) -> set[str]:
        raw = os.getenv("TRUSTED_PROXIES", self.trusted_proxies_raw)
        return {item.strip() for item in raw.split(",") if item.strip()}

    log_level: str = "INFO"
    log_file: str = ""


settings = Settings()
