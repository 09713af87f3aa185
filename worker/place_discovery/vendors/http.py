"""HTTP GET with linear backoff for rate-limited and flaky upstreams."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests

from place_discovery.core.config import Settings

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    base_delay_ms: int = 2000
    max_delay_ms: int = 8000

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_retry_attempts,
            base_delay_ms=settings.retry_base_delay_ms,
            max_delay_ms=settings.retry_max_delay_ms,
        )

    def delay_seconds(self, failed_attempt: int) -> float:
        """Wait applied after ``failed_attempt`` (1-based) before trying again."""
        return min(self.base_delay_ms * failed_attempt, self.max_delay_ms) / 1000.0


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or 500 <= status_code < 600


def get_with_backoff(
    session: requests.Session,
    url: str,
    params: Dict[str, Any],
    policy: RetryPolicy,
    *,
    is_throttled: Optional[Callable[[requests.Response], bool]] = None,
    timeout: int = REQUEST_TIMEOUT,
) -> requests.Response:
    """GET ``url`` retrying 429/5xx (and payload-level throttling) up to ``policy.max_attempts``.

    Network errors and other statuses are returned or raised on the first
    attempt. The last response is returned once the budget is exhausted so
    the caller decides how to surface it.
    """
    attempt = 0
    while True:
        attempt += 1
        response = session.get(url, params=params, timeout=timeout)
        retryable = is_retryable_status(response.status_code) or bool(is_throttled and is_throttled(response))
        if not retryable:
            return response
        if attempt >= policy.max_attempts:
            logger.error("GET %s exhausted %d attempts (last status=%s)", url, attempt, response.status_code)
            return response
        wait = policy.delay_seconds(attempt)
        logger.warning(
            "GET %s throttled or failed with status=%s (attempt %d/%d); retrying in %.1fs",
            url,
            response.status_code,
            attempt,
            policy.max_attempts,
            wait,
        )
        time.sleep(wait)
