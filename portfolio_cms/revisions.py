"""
Bounded revision history for posts.

Every save of a post records a snapshot of its content; only the newest
REVISIONS_TO_KEEP snapshots survive. Eviction is a single DELETE with a
keep-newest-N subquery so concurrent saves cannot leave extra rows behind.
"""
from django.db.models import Subquery

from .conf import cms_settings
from .models import Revision


def record_snapshot(post_id, content_json):
    """Insert a revision holding ``content_json``. Never validates."""
    return Revision.objects.create(post_id=post_id, content_json=content_json)


def prune_excess(post_id, keep=None):
    """
    Delete all but the ``keep`` newest revisions of a post.

    Returns the number of revisions deleted.
    """
    if keep is None:
        keep = cms_settings.REVISIONS_TO_KEEP
    newest = (
        Revision.objects.filter(post_id=post_id)
        .order_by("-created_at", "-id")
        .values("pk")[:keep]
    )
    deleted, _ = (
        Revision.objects.filter(post_id=post_id)
        .exclude(pk__in=Subquery(newest))
        .delete()
    )
    return deleted


def record_and_prune(post_id, content_json, keep=None):
    """Record a snapshot and trim the history back to ``keep`` revisions."""
    revision = record_snapshot(post_id, content_json)
    prune_excess(post_id, keep=keep)
    return revision


def list_revisions(post_id):
    """Return a post's revisions, newest first."""
    return Revision.objects.filter(post_id=post_id).order_by("-created_at", "-id")
