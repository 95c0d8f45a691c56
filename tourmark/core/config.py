"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List

from dotenv import load_dotenv

from tourmark.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://apis.data.go.kr/B551011/KorService2"
API_KEY_ENV = "TOUR_API_KEY"
API_KEY_FALLBACK_ENV = "PUBLIC_TOUR_API_KEY"


@dataclass(frozen=True)
class Settings:
    database_url: str
    tour_api_base_url: str = DEFAULT_BASE_URL
    mobile_app: str = "MyTrip"
    request_timeout: float = 10.0
    cache_ttl_seconds: int = 3600
    max_retries: int = 0
    local_bookmarks_path: str = "data/local_bookmarks.json"
    port: int = 8080


@dataclass
class EnvValidation:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def get_tour_api_key() -> str:
    """Resolve the registry credential at call time so a rotated key applies without restart."""
    api_key = os.getenv(API_KEY_ENV) or os.getenv(API_KEY_FALLBACK_ENV)
    if not api_key:
        raise ConfigurationError(f"{API_KEY_ENV} (or {API_KEY_FALLBACK_ENV}) must be set to call the tour API")
    return api_key


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    database_url = os.getenv("DATABASE_URL", "")
    base_url = os.getenv("TOUR_API_BASE_URL", DEFAULT_BASE_URL).rstrip("/")
    mobile_app = os.getenv("TOUR_API_MOBILE_APP", "MyTrip")
    request_timeout = float(os.getenv("TOUR_API_TIMEOUT", "10"))
    cache_ttl_seconds = int(os.getenv("TOUR_API_CACHE_TTL", "3600"))
    max_retries = int(os.getenv("TOUR_API_MAX_RETRIES", "0"))
    local_bookmarks_path = os.getenv("BOOKMARKS_LOCAL_PATH", "data/local_bookmarks.json")
    port = int(os.getenv("PORT", "8080"))

    if not database_url:
        logger.warning("DATABASE_URL is not set; bookmark persistence will fail for signed-in users.")
    if not (os.getenv(API_KEY_ENV) or os.getenv(API_KEY_FALLBACK_ENV)):
        logger.warning("TOUR_API_KEY is not configured; tour API requests will fail.")

    return Settings(
        database_url=database_url,
        tour_api_base_url=base_url,
        mobile_app=mobile_app,
        request_timeout=request_timeout,
        cache_ttl_seconds=cache_ttl_seconds,
        max_retries=max_retries,
        local_bookmarks_path=local_bookmarks_path,
        port=port,
    )


_REQUIRED = {
    "DATABASE_URL": "PostgreSQL DSN holding the users and bookmarks tables",
}
_OPTIONAL = {
    "TOUR_API_BASE_URL": "Override for the KorService2 base URL",
    "TOUR_API_CACHE_TTL": "Response cache window in seconds",
    "BOOKMARKS_LOCAL_PATH": "JSON file backing anonymous bookmarks for the CLI",
}


def validate_env(strict: bool = False) -> EnvValidation:
    """Check every variable the service relies on; optional ones only warn in strict mode."""
    load_dotenv()
    result = EnvValidation()

    if not (os.getenv(API_KEY_ENV) or os.getenv(API_KEY_FALLBACK_ENV)):
        result.errors.append(f"Missing required variable: {API_KEY_ENV} (tour API service key)")

    for name, description in _REQUIRED.items():
        if not os.getenv(name):
            result.errors.append(f"Missing required variable: {name} ({description})")

    if strict:
        for name, description in _OPTIONAL.items():
            if not os.getenv(name):
                result.warnings.append(f"Optional variable not set: {name} ({description})")

    return result
