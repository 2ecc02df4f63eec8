"""
Draft/published lifecycle rules.

Posts move freely between draft and published. Only the move into
published is guarded; a draft may be saved however incomplete it is.
"""
from django.utils import timezone

from . import content

PUBLISHED = "published"
DRAFT = "draft"

REQUIRED_FIELDS = {
    "title": "Title is required",
    "slug": "Slug is required",
    "summary": "Summary is required",
}

PUBLISH_REQUIREMENTS = {
    "category_id": "Category is required to publish",
    "content_json": "At least one content block is required",
    "hero_image_url": "Hero image is required to publish",
}


def check_publish_requirements(data):
    """
    Return {field: message} for every publish requirement ``data`` misses.

    An empty dict means the post may be published.
    """
    errors = {}
    for field, message in REQUIRED_FIELDS.items():
        if not (data.get(field) or "").strip():
            errors[field] = message
    if not data.get("category_id"):
        errors["category_id"] = PUBLISH_REQUIREMENTS["category_id"]
    if content.is_empty(data.get("content_json")):
        errors["content_json"] = PUBLISH_REQUIREMENTS["content_json"]
    if not (data.get("hero_image_url") or "").strip():
        errors["hero_image_url"] = PUBLISH_REQUIREMENTS["hero_image_url"]
    return errors


def can_publish(data):
    return not check_publish_requirements(data)


def resolve_published_at(status, requested=None, current=None):
    """
    Decide the publish timestamp for a save.

    status     -- target status of the save
    requested  -- timestamp supplied with the payload, if any
    current    -- published_at of the stored post when it is already published

    Publishing stamps the requested time, else keeps the existing one, else
    uses now. Saving as draft clears it.
    """
    if status != PUBLISHED:
        return None
    if requested:
        return requested
    if current:
        return current
    return timezone.now()
