"""Módulo de utilidades"""

from .cache import ContentCache
from .backoff import with_retry, retrying, RateLimiter, global_rate_limiter
from .cancellation import CancellationToken

__all__ = [
    "ContentCache",
    "with_retry",
    "retrying",
    "RateLimiter",
    "global_rate_limiter",
    "CancellationToken",
]
