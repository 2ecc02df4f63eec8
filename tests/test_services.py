"""
Tests for the dashboard service layer.
"""
import datetime

import pytest
from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import ValidationError
from django.utils import timezone

from portfolio_cms import services
from portfolio_cms.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    RateLimitExceeded,
)
from portfolio_cms.models import Book, Category, Course, Post, PostTag, Revision
from portfolio_cms.signals import content_invalidated


def tag_names(post_id):
    return set(PostTag.objects.filter(post_id=post_id).values_list("tag", flat=True))


class TestUpsertPost:
    """Tests for services.upsert_post."""

    def test_create_published_post(self, owner, make_payload):
        post_id, ok = services.upsert_post(make_payload(), user=owner)

        assert ok
        post = Post.objects.get(pk=post_id)
        assert post.status == Post.Status.PUBLISHED
        assert post.published_at is not None
        assert post.reading_time_minutes == 1
        assert tag_names(post_id) == {"test"}
        assert post.revisions.count() == 1

    def test_publish_without_hero_image_is_rejected(self, owner, make_payload):
        """Nothing is written when publishing fails validation."""
        with pytest.raises(ValidationError) as excinfo:
            services.upsert_post(make_payload(hero_image_url=""), user=owner)

        assert "hero_image_url" in excinfo.value.message_dict
        assert Post.objects.count() == 0
        assert Revision.objects.count() == 0

    def test_publish_reports_every_missing_field(self, owner, make_payload):
        payload = make_payload(
            category_id=None,
            hero_image_url="",
            content_json={"type": "doc", "content": []},
        )
        with pytest.raises(ValidationError) as excinfo:
            services.upsert_post(payload, user=owner)

        assert set(excinfo.value.message_dict) == {
            "category_id",
            "hero_image_url",
            "content_json",
        }

    def test_draft_may_be_incomplete(self, owner, make_payload):
        payload = make_payload(
            status="draft",
            category_id=None,
            hero_image_url="",
            content_json={"type": "doc", "content": []},
        )
        post_id, ok = services.upsert_post(payload, user=owner)

        post = Post.objects.get(pk=post_id)
        assert ok
        assert post.category is None
        assert post.hero_image_url is None
        assert post.published_at is None

    def test_draft_without_content(self, owner, make_payload):
        post_id, ok = services.upsert_post(
            make_payload(status="draft", content_json=None), user=owner
        )

        assert ok
        assert Post.objects.get(pk=post_id).content_json == {"type": "doc", "content": []}

    def test_publish_without_content_is_rejected(self, owner, make_payload):
        with pytest.raises(ValidationError) as excinfo:
            services.upsert_post(make_payload(content_json=None), user=owner)
        assert "content_json" in excinfo.value.message_dict

    def test_title_required_even_for_drafts(self, owner, make_payload):
        with pytest.raises(ValidationError) as excinfo:
            services.upsert_post(make_payload(status="draft", title=""), user=owner)
        assert "title" in excinfo.value.message_dict

    def test_invalid_hero_url(self, owner, make_payload):
        with pytest.raises(ValidationError) as excinfo:
            services.upsert_post(make_payload(hero_image_url="not a url"), user=owner)
        assert excinfo.value.message_dict["hero_image_url"] == [
            "Hero image URL must be empty or a valid URL."
        ]

    def test_malformed_content_rejected(self, owner, make_payload):
        with pytest.raises(ValidationError) as excinfo:
            services.upsert_post(make_payload(content_json={"type": "paragraph"}), user=owner)
        assert "content_json" in excinfo.value.message_dict

    def test_summary_length(self, owner, make_payload):
        with pytest.raises(ValidationError) as excinfo:
            services.upsert_post(make_payload(summary="x" * 181), user=owner)
        assert "summary" in excinfo.value.message_dict

    def test_slug_is_normalized(self, owner, make_payload):
        post_id, _ = services.upsert_post(make_payload(slug=" Hello World "), user=owner)
        assert Post.objects.get(pk=post_id).slug == "hello-world"

    def test_slug_conflict(self, owner, make_payload):
        services.upsert_post(make_payload(), user=owner)
        with pytest.raises(ValidationError) as excinfo:
            services.upsert_post(make_payload(title="Another"), user=owner)
        assert "slug" in excinfo.value.message_dict
        assert Post.objects.count() == 1

    def test_slug_conflict_reported_with_other_errors(self, owner, make_payload):
        services.upsert_post(make_payload(), user=owner)
        with pytest.raises(ValidationError) as excinfo:
            services.upsert_post(make_payload(title="Another", summary="x" * 181), user=owner)
        errors = excinfo.value.message_dict
        assert errors["slug"] == ["The slug 'test-post' is already in use."]
        assert "summary" in errors

    def test_slug_without_letters(self, owner, make_payload):
        with pytest.raises(ValidationError) as excinfo:
            services.upsert_post(make_payload(slug="!!!"), user=owner)
        assert excinfo.value.message_dict["slug"] == ["Slug must contain letters or numbers."]

    def test_repeated_draft_saves_are_idempotent(self, owner, make_payload):
        payload = make_payload(status="draft")
        post_id, _ = services.upsert_post(payload, user=owner)
        first = Post.objects.get(pk=post_id)

        services.upsert_post({**payload, "id": str(post_id)}, user=owner)

        second = Post.objects.get(pk=post_id)
        assert Post.objects.count() == 1
        assert second.title == first.title
        assert second.slug == first.slug
        assert second.content_json == first.content_json
        assert second.reading_time_minutes == first.reading_time_minutes
        assert tag_names(post_id) == {"test"}
        assert second.revisions.count() == 2

    def test_tags_are_fully_replaced(self, owner, make_payload):
        post_id, _ = services.upsert_post(make_payload(tags=["a", "b", "c"]), user=owner)
        services.upsert_post(make_payload(id=str(post_id), tags=["b", "d"]), user=owner)

        assert tag_names(post_id) == {"b", "d"}
        assert Post.objects.get(pk=post_id).tags == ["b", "d"]

    def test_tags_are_deduplicated(self, owner, make_payload):
        post_id, _ = services.upsert_post(make_payload(tags=["a", " a ", "", "b"]), user=owner)
        assert Post.objects.get(pk=post_id).tags == ["a", "b"]

    def test_revisions_bounded_after_many_saves(self, owner, make_payload):
        post_id, _ = services.upsert_post(make_payload(), user=owner)
        for number in range(6):
            services.upsert_post(
                make_payload(id=str(post_id), summary=f"Summary {number}"), user=owner
            )
        assert Revision.objects.filter(post_id=post_id).count() == 5

    def test_published_at_is_preserved(self, owner, make_payload):
        post_id, _ = services.upsert_post(make_payload(), user=owner)
        published_at = Post.objects.get(pk=post_id).published_at

        services.upsert_post(make_payload(id=str(post_id), title="Edited"), user=owner)

        assert Post.objects.get(pk=post_id).published_at == published_at

    def test_explicit_published_at(self, owner, make_payload):
        when = timezone.now() - datetime.timedelta(days=7)
        post_id, _ = services.upsert_post(make_payload(published_at=when), user=owner)
        assert Post.objects.get(pk=post_id).published_at == when

    def test_unpublishing_clears_published_at(self, owner, make_payload):
        post_id, _ = services.upsert_post(make_payload(), user=owner)
        services.upsert_post(make_payload(id=str(post_id), status="draft"), user=owner)
        assert Post.objects.get(pk=post_id).published_at is None

    def test_unknown_id(self, owner, make_payload):
        with pytest.raises(NotFoundError):
            services.upsert_post(
                make_payload(id="00000000-0000-0000-0000-000000000000"), user=owner
            )

    def test_editor_may_save(self, editor, make_payload):
        _, ok = services.upsert_post(make_payload(), user=editor)
        assert ok

    def test_viewer_is_refused(self, viewer, make_payload):
        with pytest.raises(AuthorizationError):
            services.upsert_post(make_payload(), user=viewer)
        assert Post.objects.count() == 0

    def test_anonymous_is_refused(self, db, make_payload):
        with pytest.raises(AuthorizationError):
            services.upsert_post(make_payload(), user=AnonymousUser())

    def test_rate_limit(self, owner, make_payload):
        payload = make_payload(status="draft")
        post_id, _ = services.upsert_post(payload, user=owner, actor_key="10.0.0.1")
        for _ in range(9):
            services.upsert_post({**payload, "id": str(post_id)}, user=owner, actor_key="10.0.0.1")

        with pytest.raises(RateLimitExceeded) as excinfo:
            services.upsert_post({**payload, "id": str(post_id)}, user=owner, actor_key="10.0.0.1")

        assert 1 <= excinfo.value.retry_after <= 60
        # Another client is unaffected
        services.upsert_post({**payload, "id": str(post_id)}, user=owner, actor_key="10.0.0.2")

    def test_invalidates_cache(self, owner, make_payload):
        received = []

        def handler(sender, tags, paths, **kwargs):
            received.append((tags, paths))

        content_invalidated.connect(handler)
        try:
            post_id, _ = services.upsert_post(make_payload(), user=owner)
            services.upsert_post(make_payload(id=str(post_id), slug="renamed"), user=owner)
        finally:
            content_invalidated.disconnect(handler)

        tags, paths = received[-1]
        assert "blog:list" in tags
        assert f"blog:post:{post_id}" in tags
        assert paths == ["/blog/renamed", "/blog/test-post"]

    def test_failed_purge_does_not_fail_the_save(self, owner, make_payload):
        """The save is committed before invalidation; purge errors are only logged."""

        def purge_cdn(sender, **kwargs):
            raise ConnectionError("CDN down")

        content_invalidated.connect(purge_cdn)
        try:
            post_id, ok = services.upsert_post(make_payload(), user=owner)
        finally:
            content_invalidated.disconnect(purge_cdn)

        assert ok
        assert Post.objects.filter(pk=post_id).count() == 1


class TestDuplicateAndDelete:
    """Tests for duplicate_post, delete_post and restore_revision."""

    def test_duplicate_post(self, owner, make_payload):
        post_id, _ = services.upsert_post(make_payload(tags=["a", "b"]), user=owner)

        copy_id, ok = services.duplicate_post(post_id, user=owner)

        source = Post.objects.get(pk=post_id)
        copy = Post.objects.get(pk=copy_id)
        assert ok
        assert copy.title == "Test post (Copy)"
        assert copy.slug.startswith("test-post-copy-")
        assert copy.status == Post.Status.DRAFT
        assert copy.published_at is None
        assert copy.content_json == source.content_json
        assert copy.category_id == source.category_id
        assert tag_names(copy_id) == {"a", "b"}
        assert copy.revisions.count() == 1

    def test_duplicate_post_with_long_title_and_slug(self, owner, document):
        source = Post.objects.create(
            title="T" * 255, slug="a" * 255, summary="s", content_json=document
        )

        copy_id, _ = services.duplicate_post(source.pk, user=owner)

        copy = Post.objects.get(pk=copy_id)
        assert len(copy.title) == 255
        assert copy.title.endswith(" (Copy)")
        assert len(copy.slug) <= 255
        assert copy.slug.startswith("aaa")
        assert "-copy-" in copy.slug

    def test_duplicate_missing_post(self, owner):
        with pytest.raises(NotFoundError):
            services.duplicate_post("00000000-0000-0000-0000-000000000000", user=owner)

    def test_delete_post_cascades(self, owner, make_payload):
        post_id, _ = services.upsert_post(make_payload(), user=owner)

        assert services.delete_post(post_id, user=owner)

        assert not Post.objects.filter(pk=post_id).exists()
        assert not PostTag.objects.filter(post_id=post_id).exists()
        assert not Revision.objects.filter(post_id=post_id).exists()

    def test_editor_cannot_delete(self, owner, editor, make_payload):
        post_id, _ = services.upsert_post(make_payload(), user=owner)
        with pytest.raises(AuthorizationError):
            services.delete_post(post_id, user=editor)

    def test_restore_revision(self, owner, make_payload, document):
        post_id, _ = services.upsert_post(make_payload(), user=owner)
        first_revision = Revision.objects.get(post_id=post_id)
        edited = {"type": "doc", "content": [{"type": "paragraph", "content": [
            {"type": "text", "text": "Edited"},
        ]}]}
        services.upsert_post(make_payload(id=str(post_id), content_json=edited), user=owner)

        services.restore_revision(first_revision.pk, user=owner)

        post = Post.objects.get(pk=post_id)
        assert post.content_json == document
        assert post.revisions.first().content_json == document
        assert post.revisions.count() == 3


class TestCategories:
    """Tests for category services."""

    def test_upsert_category(self, owner):
        category_id, ok = services.upsert_category({"name": "Research", "slug": "Research Notes"}, user=owner)
        assert ok
        assert Category.objects.get(pk=category_id).slug == "research-notes"

    def test_delete_with_posts_requires_fallback(self, owner, category, make_payload):
        services.upsert_post(make_payload(), user=owner)

        with pytest.raises(ConflictError) as excinfo:
            services.delete_category(category.pk, user=owner)

        assert excinfo.value.message == (
            "Cannot delete category with posts without fallback assignment"
        )
        assert Category.objects.filter(pk=category.pk).exists()

    def test_delete_with_fallback_reassigns(self, owner, category, other_category, make_payload):
        post_id, _ = services.upsert_post(make_payload(), user=owner)

        services.delete_category(category.pk, other_category.pk, user=owner)

        assert not Category.objects.filter(pk=category.pk).exists()
        assert Post.objects.get(pk=post_id).category == other_category

    def test_fallback_must_differ(self, owner, category, make_payload):
        services.upsert_post(make_payload(), user=owner)
        with pytest.raises(ValidationError) as excinfo:
            services.delete_category(category.pk, category.pk, user=owner)
        assert "fallback_category_id" in excinfo.value.message_dict

    def test_delete_unused_category(self, owner, category):
        assert services.delete_category(category.pk, user=owner)
        assert not Category.objects.exists()


class TestLibrary:
    """Tests for book and course services."""

    def test_upsert_and_reorder_books(self, owner):
        first_id, _ = services.upsert_book(
            {"title": "A", "author": "X", "order_index": 0}, user=owner
        )
        second_id, _ = services.upsert_book(
            {"title": "B", "author": "Y", "order_index": 1}, user=owner
        )

        services.reorder_books(
            [str(second_id), "00000000-0000-0000-0000-000000000000", str(first_id)],
            user=owner,
        )

        assert Book.objects.get(pk=second_id).order_index == 0
        assert Book.objects.get(pk=first_id).order_index == 2

    def test_import_courses(self, owner):
        csv_text = "code,name,discipline\nMATH101,Calculus,math\nCS50,Intro to CS,CS\n"
        assert services.import_courses_from_csv(csv_text, user=owner) == 2
        assert Course.objects.get(code="MATH101").discipline == Course.Discipline.MATH

    def test_import_courses_is_all_or_nothing(self, owner):
        csv_text = "code,name,discipline\nMATH101,Calculus,Math\nBIO1,Biology,Biology\n"
        with pytest.raises(ValidationError) as excinfo:
            services.import_courses_from_csv(csv_text, user=owner)
        assert excinfo.value.message_dict["csv"] == ["Row 3: unknown discipline 'Biology'."]
        assert Course.objects.count() == 0

    def test_import_requires_records(self, owner):
        with pytest.raises(ValidationError):
            services.import_courses_from_csv("code,name,discipline\n", user=owner)
