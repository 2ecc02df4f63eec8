"""
Payload validation for dashboard mutations.

The forms are used as schemas: services bind them to a plain dict, and a
failed form becomes one ValidationError listing every invalid field.
"""
from django import forms
from django.core.exceptions import ValidationError
from django.core.validators import URLValidator

from . import content
from .conf import cms_settings
from .models import Book, Category, Course, Post
from .publishing import check_publish_requirements
from .utils import slugify


def raise_for_errors(form):
    """Raise a ValidationError carrying all of a form's errors."""
    if not form.is_valid():
        raise ValidationError(form.errors.as_data())
    return form.cleaned_data


def unique_slug(model, value, max_length, exclude_pk=None):
    """Normalize ``value`` into a slug not yet used by another ``model`` row."""
    slug = slugify(value)[:max_length]
    if not slug:
        raise ValidationError("Slug must contain letters or numbers.", code="invalid")
    taken = model.objects.filter(slug=slug)
    if exclude_pk:
        taken = taken.exclude(pk=exclude_pk)
    if taken.exists():
        raise ValidationError(
            "The slug '%(slug)s' is already in use.",
            code="unique",
            params={"slug": slug},
        )
    return slug


class TagListField(forms.Field):
    """A list of short tag names. Blank names are dropped, duplicates merged."""

    default_error_messages = {
        "invalid": "Tags must be a list of strings.",
        "too_long": "Tags must be %(max_length)s characters or fewer.",
        "too_many": "At most %(max_tags)s tags are allowed.",
    }

    def to_python(self, value):
        if value in self.empty_values:
            return []
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, (list, tuple)) or not all(isinstance(tag, str) for tag in value):
            raise ValidationError(self.error_messages["invalid"], code="invalid")
        tags = []
        for tag in value:
            tag = tag.strip()
            if tag and tag not in tags:
                tags.append(tag)
        return tags

    def validate(self, value):
        super().validate(value)
        max_length = cms_settings.TAG_MAX_LENGTH
        if any(len(tag) > max_length for tag in value):
            raise ValidationError(
                self.error_messages["too_long"],
                code="too_long",
                params={"max_length": max_length},
            )
        if len(value) > cms_settings.MAX_TAGS:
            raise ValidationError(
                self.error_messages["too_many"],
                code="too_many",
                params={"max_tags": cms_settings.MAX_TAGS},
            )


class ContentDocumentField(forms.JSONField):
    """
    JSON field holding a rich-text document (see portfolio_cms.content).

    A missing document cleans to the empty document.
    """

    def to_python(self, value):
        if value in (None, ""):
            return {**content.EMPTY_DOCUMENT, "content": []}
        if isinstance(value, (str, bytes)):
            return content.validate(value)
        return content.validate(super().to_python(value))


class PostPayloadForm(forms.Form):
    """
    Edited-post payload consumed by services.upsert_post.

    title, slug and summary are required for every status. Publishing
    additionally requires a category, a hero image and non-empty content.
    """

    id = forms.UUIDField(required=False)
    title = forms.CharField(max_length=255)
    slug = forms.CharField(max_length=cms_settings.SLUG_MAX_LENGTH)
    summary = forms.CharField(
        max_length=cms_settings.SUMMARY_MAX_LENGTH,
        error_messages={
            "max_length": "Summary must be %(limit_value)d characters or fewer.",
        },
    )
    category_id = forms.UUIDField(required=False)
    tags = TagListField(required=False)
    hero_image_url = forms.CharField(required=False, max_length=500)
    content_json = ContentDocumentField(required=False)
    status = forms.ChoiceField(choices=Post.Status.choices, required=False)
    published_at = forms.DateTimeField(required=False)

    def clean_slug(self):
        return unique_slug(
            Post,
            self.cleaned_data["slug"],
            cms_settings.SLUG_MAX_LENGTH,
            exclude_pk=self.cleaned_data.get("id"),
        )

    def clean_category_id(self):
        category_id = self.cleaned_data.get("category_id")
        if category_id and not Category.objects.filter(pk=category_id).exists():
            raise ValidationError("Select a valid category.", code="invalid_choice")
        return category_id

    def clean_hero_image_url(self):
        url = self.cleaned_data.get("hero_image_url", "")
        if url:
            try:
                URLValidator(schemes=["http", "https"])(url)
            except ValidationError:
                raise ValidationError(
                    "Hero image URL must be empty or a valid URL.",
                    code="invalid",
                )
        return url

    def clean_status(self):
        return self.cleaned_data.get("status") or Post.Status.DRAFT

    def clean(self):
        cleaned_data = super().clean()
        if cleaned_data.get("status") == Post.Status.PUBLISHED:
            for field, message in check_publish_requirements(cleaned_data).items():
                if field not in self.errors:
                    self.add_error(field, ValidationError(message, code="publish_requirement"))
        return cleaned_data


class CategoryPayloadForm(forms.Form):
    id = forms.UUIDField(required=False)
    name = forms.CharField(max_length=100)
    slug = forms.CharField(max_length=100)

    def clean_slug(self):
        return unique_slug(
            Category,
            self.cleaned_data["slug"],
            Category._meta.get_field("slug").max_length,
            exclude_pk=self.cleaned_data.get("id"),
        )


class BookForm(forms.ModelForm):
    class Meta:
        model = Book
        fields = ["title", "author", "description", "review", "cover_url", "order_index"]


class CourseForm(forms.ModelForm):
    class Meta:
        model = Course
        fields = ["code", "name", "discipline"]
