"""
Tag-based cache invalidation for public pages.

Django's cache has no notion of tags, so each tag carries a version counter.
Readers build cache keys that include the current version of their tags;
invalidating a tag bumps its version and every key built from the old
version becomes unreachable.

Paths are not cached here. They are passed on through the
content_invalidated signal for whatever sits in front of the site.
"""
import logging

from django.core.cache import caches
from django.utils.module_loading import import_string
from django.utils.safestring import mark_safe

from .conf import cms_settings
from .signals import content_invalidated

logger = logging.getLogger(__name__)

BLOG_LIST = "blog:list"
BLOG_CATEGORIES = "blog:categories"
LIBRARY_BOOKS = "library:books"
LIBRARY_COURSES = "library:courses"
MEDIA_UPLOADS = "media:uploads"


def blog_post(post_id):
    return f"blog:post:{post_id}"


def blog_path(slug):
    return f"/blog/{slug}"


def _cache():
    return caches[cms_settings.CACHE_ALIAS]


def _version_key(tag):
    return f"{cms_settings.CACHE_PREFIX}:tag:{tag}"


def tag_version(tag):
    """Return the current version of a cache tag."""
    return _cache().get_or_set(_version_key(tag), 1, timeout=None)


class CacheInvalidator:
    """
    Bumps tag versions and announces the change. Fire-and-forget.

    Runs after the change is committed, so failures are logged and never
    raised to the caller.
    """

    def invalidate(self, tags=(), paths=()):
        tags, paths = list(tags), list(paths)
        for tag in tags:
            try:
                self._bump(tag)
            except Exception:
                logger.exception("Failed to invalidate cache tag %s", tag)
        logger.debug("Invalidated tags=%s paths=%s", tags, paths)

        responses = content_invalidated.send_robust(
            sender=self.__class__, tags=tags, paths=paths
        )
        for receiver, response in responses:
            if isinstance(response, Exception):
                logger.warning(
                    "content_invalidated receiver %r failed: %s",
                    receiver,
                    response,
                    exc_info=response,
                )

    def _bump(self, tag):
        cache = _cache()
        key = _version_key(tag)
        try:
            cache.incr(key)
        except ValueError:
            cache.set(key, 2, timeout=None)


def get_invalidator():
    """Return an instance of the configured invalidator."""
    return import_string(cms_settings.CACHE_INVALIDATOR)()


def invalidate(tags=(), paths=()):
    get_invalidator().invalidate(tags=tags, paths=paths)


def cached_render(post):
    """Return the post's rendered HTML, cached until the post is invalidated."""
    key = (
        f"{cms_settings.CACHE_PREFIX}:html:{post.pk}:"
        f"{tag_version(blog_post(post.pk))}"
    )
    return mark_safe(_cache().get_or_set(key, lambda: str(post.content_html), timeout=None))
