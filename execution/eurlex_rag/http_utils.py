"""
HTTP helpers shared by discovery and fetching.

Bounded exponential backoff with jitter around a requests.Session call.
Retries on HTTP 429/5xx and network errors (including timeouts); any other
status is returned to the caller immediately.
"""

import time
import random
import logging
from dataclasses import dataclass
from typing import Optional

import requests

logger = logging.getLogger(__name__)

USER_AGENT = "eurlex-rag-seeder/0.1"

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


@dataclass
class RetryPolicy:
    """Retry/backoff parameters for one class of HTTP calls."""
    attempts: int = 5
    base_delay: float = 0.5  # seconds, doubled per attempt
    jitter: float = 0.2  # max random seconds added to each delay
    timeout: float = 20.0  # per-attempt timeout in seconds

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the given 0-based attempt."""
        return self.base_delay * (2 ** attempt) + random.uniform(0, self.jitter)


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or 500 <= status_code <= 599


def make_session(accept: str = "text/html") -> requests.Session:
    """Create a session with the seeder's default headers."""
    session = requests.Session()
    session.headers.update({
        "User-Agent": USER_AGENT,
        "Accept": accept,
    })
    return session


def request_with_retry(
    session: requests.Session,
    method: str,
    url: str,
    policy: Optional[RetryPolicy] = None,
    **kwargs,
) -> requests.Response:
    """
    Issue an HTTP request, retrying transient failures.

    Args:
        session: Session used for the request
        method: HTTP method ("GET", "POST")
        url: Target URL
        policy: Retry parameters. Uses defaults if not provided.
        **kwargs: Passed through to session.request()

    Returns:
        The first 2xx response, the first non-retryable response, or the last
        retryable response once attempts are exhausted.

    Raises:
        requests.RequestException: if every attempt failed at the network level
    """
    policy = policy or RetryPolicy()
    last_error: Optional[Exception] = None
    last_response: Optional[requests.Response] = None

    for attempt in range(policy.attempts):
        try:
            response = session.request(method, url, timeout=policy.timeout, **kwargs)
        except requests.RequestException as e:
            last_error = e
            logger.warning(
                f"{method} {url} attempt {attempt + 1}/{policy.attempts} failed: {e}"
            )
        else:
            if response.status_code < 400 or not is_retryable_status(response.status_code):
                return response
            last_response = response
            logger.warning(
                f"{method} {url} attempt {attempt + 1}/{policy.attempts} "
                f"returned HTTP {response.status_code}"
            )

        if attempt < policy.attempts - 1:
            time.sleep(policy.delay_for(attempt))

    if last_response is not None:
        return last_response
    raise last_error or requests.RequestException(f"{method} {url} failed after retries")
