"""
Configuration settings for django-portfolio-cms.

Override these in your Django settings.py:

    PORTFOLIO_CMS = {
        'REVISIONS_TO_KEEP': 5,
        'RATE_LIMIT': 10,
        'RATE_LIMIT_WINDOW': 60,
        ...
    }

Rate limiting and cache invalidation go through a Django cache alias. Point
RATE_LIMIT_CACHE and CACHE_ALIAS at a shared backend (Redis, Memcached) when
running more than one process.
"""
from django.conf import settings

DEFAULTS = {
    # Posts
    "SUMMARY_MAX_LENGTH": 180,
    "MAX_TAGS": 20,
    "TAG_MAX_LENGTH": 50,
    "SLUG_MAX_LENGTH": 255,
    "POSTS_PER_PAGE": 10,

    # Revisions
    "REVISIONS_TO_KEEP": 5,

    # Content rendering
    "WORDS_PER_MINUTE": 200,
    "HEADING_LEVELS": [1, 2, 3],

    # Rate limiting for dashboard mutations
    "RATE_LIMIT": 10,
    "RATE_LIMIT_WINDOW": 60,
    "RATE_LIMIT_CACHE": "default",
    "RATE_LIMITER": "portfolio_cms.ratelimit.CacheRateLimiter",

    # Cache invalidation
    "CACHE_INVALIDATOR": "portfolio_cms.cache.CacheInvalidator",
    "CACHE_ALIAS": "default",
    "CACHE_PREFIX": "portfolio_cms",

    # Uploads
    "UPLOAD_MAX_SIZE_MB": 10,
    "UPLOAD_PATH_FORMAT": "%Y/%m/",

    # Shared secret for the revalidate endpoint. None disables it.
    "REVALIDATE_SECRET": None,

    # Dashboard roles mapped to Django group names.
    # Superusers always act as "owner".
    "ROLE_GROUPS": {
        "owner": "owner",
        "editor": "editor",
        "viewer": "viewer",
    },
}


class PortfolioCMSSettings:
    """
    Lazy settings object that reads from Django settings.

    Access via: from portfolio_cms.conf import cms_settings
    """

    def __getattr__(self, name):
        if name not in DEFAULTS:
            raise AttributeError(f"Invalid portfolio_cms setting: {name}")

        user_settings = getattr(settings, "PORTFOLIO_CMS", {})
        return user_settings.get(name, DEFAULTS[name])

    @property
    def UPLOAD_MAX_SIZE_BYTES(self):
        """Return the upload limit in bytes."""
        return self.UPLOAD_MAX_SIZE_MB * 1024 * 1024


cms_settings = PortfolioCMSSettings()
