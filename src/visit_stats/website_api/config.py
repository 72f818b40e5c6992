"""Environment-based configuration for the API service."""

import logging
import os

from ..storage.connection import ConnectionConfig
from ..storage.counters import VISITS_KEY

logger = logging.getLogger(__name__)


def _flag(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").lower() == "true"


class Settings:
    """API configuration loaded from environment variables."""

    def __init__(self):
        self.env = os.getenv("VISITS_ENV", "development")
        self.debug = self.env != "production"
        self.host = os.getenv("VISITS_HOST", "0.0.0.0")
        self.port = int(os.getenv("VISITS_PORT", "3000"))

        # Redis (timeouts are given in milliseconds)
        self.redis_host = os.getenv("REDIS_HOST", "localhost")
        self.redis_port = int(os.getenv("REDIS_PORT", "6379"))
        self.redis_db = int(os.getenv("REDIS_DB", "0"))
        self.redis_password = os.getenv("REDIS_PASSWORD") or None
        self.redis_connect_timeout_ms = int(os.getenv("REDIS_CONNECT_TIMEOUT", "10000"))
        self.redis_command_timeout_ms = int(os.getenv("REDIS_COMMAND_TIMEOUT", "5000"))
        self.redis_max_retries = int(os.getenv("REDIS_MAX_RETRIES", "3"))
        self.redis_max_pending = int(os.getenv("REDIS_MAX_PENDING", "1000"))
        self.visits_key = os.getenv("VISITS_KEY", VISITS_KEY)

        # Attribution
        self.geoip_db_path = os.getenv("GEOIP_DB_PATH", "")
        # Loopback/private addresses count against this country. Off in production.
        self.local_country = os.getenv("VISITS_LOCAL_COUNTRY", "us" if self.debug else "") or None

        self.allow_reset = _flag("VISITS_ALLOW_RESET", self.debug)

        # CORS
        self.allowed_origins = [
            origin.strip() for origin in os.getenv("CORS_ORIGIN", "*").split(",") if origin.strip()
        ]

        # Rate limiting
        self.rate_limit_per_minute = int(os.getenv("VISITS_RATE_LIMIT", "1500"))

    def connection_config(self) -> ConnectionConfig:
        return ConnectionConfig(
            host=self.redis_host,
            port=self.redis_port,
            db=self.redis_db,
            password=self.redis_password,
            connect_timeout=self.redis_connect_timeout_ms / 1000,
            command_timeout=self.redis_command_timeout_ms / 1000,
            max_retries=self.redis_max_retries,
            max_pending=self.redis_max_pending,
        )


_settings = None


def _get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


class _SettingsProxy:
    """Lazy proxy so settings aren't loaded until first access."""

    def __getattr__(self, name):
        return getattr(_get_settings(), name)


settings = _SettingsProxy()
