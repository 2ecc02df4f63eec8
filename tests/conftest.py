"""
Shared fixtures for django-portfolio-cms tests.
"""
import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.cache import caches

from portfolio_cms.models import Category

User = get_user_model()


@pytest.fixture(autouse=True)
def clear_caches():
    """Rate-limit counters and tag versions live in the cache."""
    for cache in caches.all():
        cache.clear()
    yield


@pytest.fixture
def owner(db):
    """Create a superuser, which always acts as owner."""
    return User.objects.create_superuser(
        username="owner",
        email="owner@example.com",
        password="testpass123",
    )


def _user_in_group(username, group_name):
    user = User.objects.create_user(username=username, password="testpass123")
    group, _ = Group.objects.get_or_create(name=group_name)
    user.groups.add(group)
    return user


@pytest.fixture
def editor(db):
    return _user_in_group("editor", "editor")


@pytest.fixture
def viewer(db):
    return _user_in_group("viewer", "viewer")


@pytest.fixture
def category(db):
    return Category.objects.create(name="Engineering", slug="engineering")


@pytest.fixture
def other_category(db):
    return Category.objects.create(name="Notes", slug="notes")


@pytest.fixture
def document():
    """A small non-empty content document."""
    return {
        "type": "doc",
        "content": [
            {
                "type": "heading",
                "attrs": {"level": 2},
                "content": [{"type": "text", "text": "Hello"}],
            },
            {
                "type": "paragraph",
                "content": [
                    {"type": "text", "text": "Hello "},
                    {"type": "text", "text": "world", "marks": [{"type": "bold"}]},
                ],
            },
        ],
    }


@pytest.fixture
def make_payload(category, document):
    """Build an upsert payload, overriding any field."""

    def factory(**overrides):
        payload = {
            "title": "Test post",
            "slug": "test-post",
            "summary": "A short summary",
            "category_id": str(category.pk),
            "tags": ["test"],
            "hero_image_url": "https://cdn.example.com/hero.jpg",
            "content_json": document,
            "status": "published",
            "published_at": None,
        }
        payload.update(overrides)
        return payload

    return factory
