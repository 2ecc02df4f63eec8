"""
Post, Category, tag and revision models for django-portfolio-cms.
"""
import uuid

from django.db import models
from django.db.models import Q
from django.urls import reverse

from .. import content
from ..conf import cms_settings


class Category(models.Model):
    """
    Category for organizing posts.

    Posts hold a weak reference to their category: deleting a category that
    still has posts is refused at the database level (PROTECT) and must go
    through services.delete_category with a fallback.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=100, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "Categories"

    def __str__(self):
        return self.name

    def get_absolute_url(self):
        return reverse("portfolio_cms:category_detail", kwargs={"slug": self.slug})

    @property
    def post_count(self):
        """Return count of published posts in this category."""
        return self.posts.published().count()


class PostQuerySet(models.QuerySet):
    def published(self):
        return self.filter(status=Post.Status.PUBLISHED)

    def drafts(self):
        return self.filter(status=Post.Status.DRAFT)

    def search(self, query):
        return self.filter(Q(title__icontains=query) | Q(summary__icontains=query))

    def with_tag(self, tag):
        return self.filter(tag_links__tag=tag).distinct()


class Post(models.Model):
    """
    Blog post with a draft/published lifecycle.

    The body is a rich-text document (see portfolio_cms.content) stored as
    JSON. Posts are written through services.upsert_post, which keeps the
    tag rows, revision history and caches in step with the post row.
    """

    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        PUBLISHED = "published", "Published"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True)
    summary = models.CharField(max_length=cms_settings.SUMMARY_MAX_LENGTH)
    category = models.ForeignKey(
        Category,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="posts",
    )
    tags = models.JSONField(
        default=list,
        blank=True,
        help_text="Tag names as submitted. Mirrored into PostTag rows for lookups.",
    )
    hero_image_url = models.URLField(max_length=500, null=True, blank=True)
    content_json = models.JSONField(default=dict)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.DRAFT,
    )
    published_at = models.DateTimeField(null=True, blank=True, db_index=True)
    reading_time_minutes = models.PositiveIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PostQuerySet.as_manager()

    class Meta:
        ordering = ["-updated_at"]
        indexes = [
            models.Index(fields=["status", "-published_at"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(status="draft") | Q(published_at__isnull=False),
                name="portfolio_cms_post_published_at_check",
            ),
        ]

    def __str__(self):
        return self.title

    def get_absolute_url(self):
        return reverse("portfolio_cms:post_detail", kwargs={"slug": self.slug})

    @property
    def is_published(self):
        return self.status == self.Status.PUBLISHED

    @property
    def content_html(self):
        return content.render_html(self.content_json)

    @property
    def plain_text(self):
        return content.to_plain_text(self.content_json)

    @property
    def meta_description(self):
        """Summary, or an excerpt of the body when the summary is blank."""
        return self.summary or content.derive_summary(self.content_json)


class PostTag(models.Model):
    """Association row between a post and one tag name."""

    post = models.ForeignKey(
        Post,
        on_delete=models.CASCADE,
        related_name="tag_links",
    )
    tag = models.CharField(max_length=cms_settings.TAG_MAX_LENGTH, db_index=True)

    class Meta:
        ordering = ["tag"]
        constraints = [
            models.UniqueConstraint(
                fields=["post", "tag"],
                name="portfolio_cms_posttag_unique",
            ),
        ]

    def __str__(self):
        return self.tag


class Revision(models.Model):
    """
    Immutable snapshot of a post's content.

    Only the newest REVISIONS_TO_KEEP revisions of a post are retained;
    see portfolio_cms.revisions.
    """

    post = models.ForeignKey(
        Post,
        on_delete=models.CASCADE,
        related_name="revisions",
    )
    content_json = models.JSONField()
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"Revision of {self.post_id} at {self.created_at}"
