"""
Signals sent by django-portfolio-cms.

content_invalidated is sent after content changes with:

    tags  -- cache tags whose entries are stale (e.g. "blog:list")
    paths -- public paths to purge (e.g. "/blog/hello-world")

Connect a receiver to purge a CDN or reverse proxy:

    @receiver(content_invalidated)
    def purge_cdn(sender, tags, paths, **kwargs):
        ...
"""
from django.dispatch import Signal

content_invalidated = Signal()
