"""Environment-driven settings.

Values are read once into a Settings object which is handed to the gateway
factory and the Flask app factory. Nothing here picks a backend on import.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


# ---- Domain constants ----
DAILY_LIMIT = 3
MAX_CHARS = 240
BASE_RATE = 5
INTENT_MULTIPLIER = "1.4"
SACRIFICE_COST = 20
FEED_CAP = 200
HARVEST_DAYS = 9

DEFAULT_LOCAL_STORE_URL = "sqlite:///noospace_local.db"
DEV_SECRET_KEY = "dev-secret-key-change-me"


def _is_production() -> bool:
    return bool(os.getenv("RENDER")) or os.getenv("FLASK_ENV") == "production"


def normalize_db_url(url: str | None) -> str | None:
    url = (url or "").strip()
    if not url:
        return None
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


@dataclass
class Settings:
    remote_url: str | None = None
    local_url: str = DEFAULT_LOCAL_STORE_URL
    remote_timeout: float = 5.0
    secret_key: str = DEV_SECRET_KEY
    rate_limit_storage_url: str = "memory://"
    ratelimit_enabled: bool = True
    testing: bool = False

    @property
    def remote_configured(self) -> bool:
        return bool(self.remote_url)


def load_settings() -> Settings:
    secret_key = os.getenv("SECRET_KEY") or os.getenv("FLASK_SECRET_KEY") or DEV_SECRET_KEY
    if _is_production() and secret_key == DEV_SECRET_KEY:
        raise RuntimeError("SECRET_KEY must be set to a strong random value in production.")

    return Settings(
        remote_url=normalize_db_url(os.getenv("REMOTE_DATABASE_URL") or os.getenv("DATABASE_URL")),
        local_url=os.getenv("LOCAL_STORE_URL", DEFAULT_LOCAL_STORE_URL),
        remote_timeout=float(os.getenv("REMOTE_TIMEOUT_SECONDS", "5")),
        secret_key=secret_key,
        rate_limit_storage_url=os.getenv("RATE_LIMIT_STORAGE_URL", "memory://"),
        ratelimit_enabled=os.getenv("RATELIMIT_ENABLED", "1") == "1",
    )
