"""
Upload models for django-portfolio-cms.

Files live in Django's default storage; rows only keep the path, public URL
and metadata. Uploads are soft-deleted and only while nothing references
them.
"""
import uuid

from django.db import models


class UploadQuerySet(models.QuerySet):
    def active(self):
        return self.filter(deleted=False)


class Upload(models.Model):
    """A file stored through the upload endpoint."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    path = models.CharField(max_length=500)
    public_url = models.URLField(max_length=1000)
    size = models.PositiveIntegerField(help_text="File size in bytes")
    mime = models.CharField(max_length=100)
    width = models.PositiveIntegerField(null=True, blank=True)
    height = models.PositiveIntegerField(null=True, blank=True)
    deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = UploadQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.path

    @property
    def is_image(self):
        return self.mime.startswith("image/")

    @property
    def human_file_size(self):
        """Return human-readable file size."""
        size = self.size
        for unit in ["B", "KB", "MB", "GB"]:
            if size < 1024:
                return f"{size:.1f} {unit}"
            size /= 1024
        return f"{size:.1f} TB"


class UploadReference(models.Model):
    """
    Records that an entity row uses an upload.

    entity_table/entity_id form a loose pointer (e.g. "post" + post id) so
    any model can reference uploads without a foreign key per model.
    """

    upload = models.ForeignKey(
        Upload,
        on_delete=models.CASCADE,
        related_name="references",
    )
    entity_table = models.CharField(max_length=100)
    entity_id = models.UUIDField()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["upload", "entity_table", "entity_id"],
                name="portfolio_cms_uploadreference_unique",
            ),
        ]

    def __str__(self):
        return f"{self.upload_id} used by {self.entity_table}:{self.entity_id}"
