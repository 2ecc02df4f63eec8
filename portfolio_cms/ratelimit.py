"""
Fixed-window rate limiting for dashboard mutations.

The default limiter keeps its counters in a Django cache alias. With a shared
backend (Redis, Memcached) the limit holds across every process serving the
site; with LocMemCache it is per process.

Swap the implementation with PORTFOLIO_CMS["RATE_LIMITER"]; a limiter is any
class with ``hit(key, limit=None, window=None)`` that raises
RateLimitExceeded.
"""
import logging
import math
import time

from django.core.cache import caches
from django.utils.module_loading import import_string

from .conf import cms_settings
from .exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)


class CacheRateLimiter:
    """Counts hits per key in fixed windows using atomic cache operations."""

    def __init__(self, cache_alias=None):
        self.cache = caches[cache_alias or cms_settings.RATE_LIMIT_CACHE]
        self.prefix = f"{cms_settings.CACHE_PREFIX}:ratelimit"

    def hit(self, key, limit=None, window=None):
        """
        Count one operation for ``key``.

        Raises RateLimitExceeded when the key already used ``limit``
        operations in the current window.
        """
        limit = limit or cms_settings.RATE_LIMIT
        window = window or cms_settings.RATE_LIMIT_WINDOW
        count_key = f"{self.prefix}:{key}:count"
        expires_key = f"{self.prefix}:{key}:expires"

        now = time.time()
        # add() is a no-op while the window is open
        if self.cache.add(expires_key, now + window, timeout=window):
            self.cache.set(count_key, 0, timeout=window)
        self.cache.add(count_key, 0, timeout=window)

        try:
            count = self.cache.incr(count_key)
        except ValueError:
            # Counter expired between add() and incr()
            self.cache.set(count_key, 1, timeout=window)
            count = 1

        if count > limit:
            expires_at = self.cache.get(expires_key) or now + window
            retry_after = max(1, math.ceil(expires_at - now))
            logger.warning("Rate limit exceeded for %s, retry in %ss", key, retry_after)
            raise RateLimitExceeded(retry_after)
        return count

    def reset(self, key):
        self.cache.delete_many([
            f"{self.prefix}:{key}:count",
            f"{self.prefix}:{key}:expires",
        ])


def get_rate_limiter():
    """Return an instance of the configured rate limiter."""
    return import_string(cms_settings.RATE_LIMITER)()


def resolve_request_key(request, fallback="anonymous"):
    """Identify the client behind a request, preferring proxy headers."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip() or fallback
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.META.get("REMOTE_ADDR") or fallback
