"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    google_api_key: str
    database_url: str
    worker_port: int = 9000
    max_retry_attempts: int = 5
    retry_base_delay_ms: int = 2000
    retry_max_delay_ms: int = 8000
    pagination_warmup_ms: int = 1500
    max_concurrent_jobs: int = 4
    keycloak_url: str = ""
    keycloak_realm: str = "cusman"
    keycloak_admin_username: str = "admin"
    keycloak_admin_password: str = "admin"
    hunter_api_key: str = ""


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    google_api_key = os.getenv("GOOGLE_API_KEY", "")
    database_url = os.getenv("DATABASE_URL", "")
    worker_port = int(os.getenv("WORKER_PORT", "9000"))
    max_retry_attempts = int(os.getenv("MAX_RETRY_ATTEMPTS", "5"))
    retry_base_delay_ms = int(os.getenv("RETRY_BASE_DELAY_MS", "2000"))
    retry_max_delay_ms = int(os.getenv("RETRY_MAX_DELAY_MS", "8000"))
    pagination_warmup_ms = int(os.getenv("PAGINATION_WARMUP_MS", "1500"))
    max_concurrent_jobs = int(os.getenv("MAX_CONCURRENT_JOBS", "4"))
    keycloak_url = os.getenv("KEYCLOAK_URL", "").rstrip("/")
    keycloak_realm = os.getenv("KEYCLOAK_REALM", "cusman")
    keycloak_admin_username = os.getenv("KEYCLOAK_ADMIN_USERNAME", "admin")
    keycloak_admin_password = os.getenv("KEYCLOAK_ADMIN_PASSWORD", "admin")
    hunter_api_key = os.getenv("HUNTER_API_KEY", "")

    if not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")
    if not google_api_key:
        logger.warning("GOOGLE_API_KEY is not configured; only per-user Places keys will be accepted.")
    if max_concurrent_jobs < 1:
        logger.warning("MAX_CONCURRENT_JOBS=%d is invalid; using 1.", max_concurrent_jobs)
        max_concurrent_jobs = 1

    return Settings(
        google_api_key=google_api_key,
        database_url=database_url,
        worker_port=worker_port,
        max_retry_attempts=max_retry_attempts,
        retry_base_delay_ms=retry_base_delay_ms,
        retry_max_delay_ms=retry_max_delay_ms,
        pagination_warmup_ms=pagination_warmup_ms,
        max_concurrent_jobs=max_concurrent_jobs,
        keycloak_url=keycloak_url,
        keycloak_realm=keycloak_realm,
        keycloak_admin_username=keycloak_admin_username,
        keycloak_admin_password=keycloak_admin_password,
        hunter_api_key=hunter_api_key,
    )
