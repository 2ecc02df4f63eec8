"""
Reading list and course models shown on the public portfolio pages.
"""
import uuid

from django.db import models


class Book(models.Model):
    """Book on the reading list, shown in order_index order."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=255)
    author = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    review = models.TextField(blank=True)
    cover_url = models.URLField(max_length=500, blank=True)
    order_index = models.PositiveIntegerField(db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["order_index", "created_at"]

    def __str__(self):
        return f"{self.title} by {self.author}"


class Course(models.Model):
    """Course taken, grouped by discipline."""

    class Discipline(models.TextChoices):
        MATH = "Math", "Math"
        CS = "CS", "Computer Science"
        OTHER = "Other", "Other"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    code = models.CharField(max_length=50)
    name = models.CharField(max_length=255)
    discipline = models.CharField(max_length=10, choices=Discipline.choices)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.code} {self.name}"
