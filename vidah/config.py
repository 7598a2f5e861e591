"""
Application configuration using pydantic-settings.
All config is read from the environment (or .env) once at startup.
"""
from functools import lru_cache

from pydantic_settings import BaseSettings

APP_VERSION = "1.0.0"


class Settings(BaseSettings):
    # Application
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    port: int = 5000
    log_level: str = "INFO"
    allowed_origins: str = ""  # Comma-separated CORS origins (auto-includes localhost in dev)

    # Secrets
    session_secret: str
    jwt_secret: str = ""
    admin_jwt_expiry_hours: int = 24
    bcrypt_rounds: int = 12

    # Database
    database_url: str = ""
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # Redis (rate limiting only)
    redis_url: str = "redis://localhost:6379/0"

    # WhatsApp
    whatsapp_phone: str = "5516993247676"

    # Rate limits
    whatsapp_rate_limit: int = 10
    whatsapp_rate_window_seconds: int = 300
    login_rate_limit: int = 5
    login_rate_window_seconds: int = 900
    admin_rate_limit: int = 20
    admin_rate_window_seconds: int = 900

    # Requests with a larger Content-Length are refused with 413
    max_request_body_bytes: int = 10 * 1024 * 1024

    # Sentry
    sentry_dsn: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def token_secret(self) -> str:
        """Key used to sign admin tokens."""
        return self.jwt_secret or self.session_secret

    @property
    def cors_origins(self) -> list[str]:
        origins = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        if not self.is_production:
            origins += ["http://localhost:5000", "http://localhost:5173"]
        return origins


@lru_cache()
def get_settings() -> Settings:
    return Settings()
