"""Bounded retry with exponential backoff for carrier calls."""

import functools
import time

import structlog

from ordering.exceptions import ExternalServiceError

logger = structlog.get_logger(__name__)

DEFAULT_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 1.0


def retry(times=DEFAULT_ATTEMPTS, backoff=DEFAULT_BACKOFF_SECONDS, exceptions=(ExternalServiceError,), sleep=None):
    """Retry the wrapped call up to ``times`` attempts.

    Waits ``backoff * 2**n`` seconds after the n-th failure; the last
    failure is re-raised.
    """
    if times < 1:
        raise ValueError("times must be at least 1")

    def deco(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            for attempt in range(times):
                try:
                    return fn(*args, **kwargs)
                except exceptions as exc:
                    logger.warning(
                        "Carrier call failed",
                        call=getattr(fn, "__name__", repr(fn)),
                        attempt=attempt + 1,
                        attempts=times,
                        error=str(exc),
                    )
                    if attempt == times - 1:
                        raise
                    (sleep or time.sleep)(backoff * (2**attempt))

        return wrapper

    return deco
