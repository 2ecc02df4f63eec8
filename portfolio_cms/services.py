"""
Service layer for dashboard mutations.

Every function decorated with @mutation takes the acting user and a client
key as keyword arguments, is refused for users without the listed roles and
counts against the client's rate limit before doing anything else:

    post_id, ok = upsert_post(payload, user=request.user, actor_key=ip)

Errors are raised, never returned (see portfolio_cms.exceptions). Nothing
here retries; a failed call must be submitted again in full.
"""
import csv
import io
import logging
import time
import uuid

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction

from . import cache, content, revisions, uploads
from .conf import cms_settings
from .exceptions import ConflictError, NotFoundError, PersistenceError
from .forms import (
    BookForm,
    CategoryPayloadForm,
    CourseForm,
    PostPayloadForm,
    raise_for_errors,
)
from .models import Book, Category, Course, Post, PostTag, Revision
from .permissions import EDITOR, OWNER, mutation
from .publishing import resolve_published_at
from .utils import slugify

logger = logging.getLogger(__name__)

COPY_SUFFIX = " (Copy)"
TITLE_MAX_LENGTH = Post._meta.get_field("title").max_length


def _as_uuid(value, field):
    try:
        return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
    except ValueError:
        raise ValidationError({field: [f"'{value}' is not a valid UUID."]})


def post_to_payload(post, **overrides):
    """Build an upsert payload from a stored post."""
    payload = {
        "id": post.pk,
        "title": post.title,
        "slug": post.slug,
        "summary": post.summary,
        "category_id": post.category_id,
        "tags": list(post.tags),
        "hero_image_url": post.hero_image_url or "",
        "content_json": post.content_json,
        "status": post.status,
        "published_at": post.published_at,
    }
    payload.update(overrides)
    return payload


# Posts ---------------------------------------------------------------------

def sync_tags(post, tags):
    """Replace the post's tag rows with exactly ``tags``."""
    PostTag.objects.filter(post=post).delete()
    PostTag.objects.bulk_create(PostTag(post=post, tag=tag) for tag in tags)


def _post_image_urls(post):
    urls = set(content.collect_image_sources(post.content_json))
    if post.hero_image_url:
        urls.add(post.hero_image_url)
    return urls


def _write_post(data, slug, reading_time):
    if data["id"]:
        post = Post.objects.select_for_update().filter(pk=data["id"]).first()
        if post is None:
            raise NotFoundError(f"Post {data['id']} does not exist")
        current_published_at = post.published_at if post.is_published else None
    else:
        post = Post()
        current_published_at = None

    previous_slug = post.slug
    post.title = data["title"]
    post.slug = slug
    post.summary = data["summary"]
    post.category_id = data["category_id"]
    post.tags = data["tags"]
    post.hero_image_url = data["hero_image_url"] or None
    post.content_json = data["content_json"]
    post.status = data["status"]
    post.published_at = resolve_published_at(
        data["status"], data["published_at"], current_published_at
    )
    post.reading_time_minutes = reading_time
    post.save()
    return post, previous_slug


@mutation(OWNER, EDITOR)
def upsert_post(payload):
    """
    Validate an edited post and persist it.

    Steps: publish validation, slug normalization, reading time, post row,
    tag rows, revision snapshot (history trimmed to REVISIONS_TO_KEEP),
    cache invalidation. The post row, tag rows and revision are written in
    one transaction. Validation errors abort before any write.

    Returns (post_id, True).
    """
    data = raise_for_errors(PostPayloadForm(data=payload))
    slug = data["slug"]
    reading_time = content.estimate_reading_time_minutes(
        content.to_plain_text(data["content_json"])
    )

    try:
        with transaction.atomic():
            post, previous_slug = _write_post(data, slug, reading_time)
            sync_tags(post, data["tags"])
            revisions.record_and_prune(post.pk, post.content_json)
            uploads.sync_references("post", post.pk, _post_image_urls(post))
    except DatabaseError as exc:
        logger.exception("Failed to save post %s", data["id"] or slug)
        raise PersistenceError() from exc

    paths = [cache.blog_path(slug)]
    if previous_slug and previous_slug != slug:
        paths.append(cache.blog_path(previous_slug))
    cache.invalidate(tags=[cache.BLOG_LIST, cache.blog_post(post.pk)], paths=paths)

    logger.info("Saved post %s (%s)", post.pk, post.status)
    return post.pk, True


def _copy_title(title):
    return title[:TITLE_MAX_LENGTH - len(COPY_SUFFIX)] + COPY_SUFFIX


def _copy_slug(slug):
    suffix = f"-copy-{int(time.time() * 1000)}"
    base = slugify(slug)[:cms_settings.SLUG_MAX_LENGTH - len(suffix)].rstrip("-")
    return base + suffix


@mutation(OWNER, EDITOR)
def duplicate_post(post_id):
    """
    Copy a post into a new draft.

    The copy gets a timestamp-suffixed slug, the same tags and content, and
    one fresh revision. History is not copied.

    Returns (new_post_id, True).
    """
    source = Post.objects.filter(pk=_as_uuid(post_id, "id")).first()
    if source is None:
        raise NotFoundError(f"Post {post_id} does not exist")

    try:
        with transaction.atomic():
            copy = Post.objects.create(
                title=_copy_title(source.title),
                slug=_copy_slug(source.slug),
                summary=source.summary,
                category_id=source.category_id,
                tags=list(source.tags),
                hero_image_url=source.hero_image_url,
                content_json=source.content_json,
                status=Post.Status.DRAFT,
                reading_time_minutes=source.reading_time_minutes,
            )
            sync_tags(copy, copy.tags)
            revisions.record_and_prune(copy.pk, copy.content_json)
            uploads.sync_references("post", copy.pk, _post_image_urls(copy))
    except DatabaseError as exc:
        logger.exception("Failed to duplicate post %s", post_id)
        raise PersistenceError() from exc

    cache.invalidate(tags=[cache.BLOG_LIST])
    logger.info("Duplicated post %s as %s", source.pk, copy.pk)
    return copy.pk, True


@mutation(OWNER)
def delete_post(post_id):
    """Delete a post with its tag rows and revisions."""
    post = Post.objects.filter(pk=_as_uuid(post_id, "id")).first()
    if post is None:
        raise NotFoundError(f"Post {post_id} does not exist")

    deleted_pk = post.pk
    with transaction.atomic():
        uploads.sync_references("post", deleted_pk, ())
        post.delete()

    cache.invalidate(
        tags=[cache.BLOG_LIST, cache.blog_post(deleted_pk)],
        paths=[cache.blog_path(post.slug)],
    )
    logger.info("Deleted post %s", post_id)
    return True


def restore_revision(revision_id, *, user, actor_key="anonymous"):
    """
    Put a revision's content back on its post.

    Goes through upsert_post, so the restored content is validated like any
    edit and becomes the newest revision.
    """
    revision = Revision.objects.select_related("post").filter(pk=revision_id).first()
    if revision is None:
        raise NotFoundError(f"Revision {revision_id} does not exist")
    payload = post_to_payload(revision.post, content_json=revision.content_json)
    return upsert_post(payload, user=user, actor_key=actor_key)


# Categories ----------------------------------------------------------------

@mutation(OWNER, EDITOR)
def upsert_category(payload):
    data = raise_for_errors(CategoryPayloadForm(data=payload))
    slug = data["slug"]

    if data["id"]:
        category = Category.objects.filter(pk=data["id"]).first()
        if category is None:
            raise NotFoundError(f"Category {data['id']} does not exist")
    else:
        category = Category()
    category.name = data["name"]
    category.slug = slug
    try:
        category.save()
    except DatabaseError as exc:
        logger.exception("Failed to save category %s", slug)
        raise PersistenceError() from exc

    cache.invalidate(tags=[cache.BLOG_CATEGORIES, cache.BLOG_LIST], paths=["/blog"])
    return category.pk, True


@mutation(OWNER, EDITOR)
def delete_category(category_id, fallback_category_id=None):
    """
    Delete a category.

    A category still used by posts can only be deleted when a fallback
    category is given; its posts are moved to the fallback first.
    """
    category = Category.objects.filter(pk=_as_uuid(category_id, "id")).first()
    if category is None:
        raise NotFoundError(f"Category {category_id} does not exist")

    with transaction.atomic():
        posts = Post.objects.filter(category=category)
        post_count = posts.count()
        if post_count and not fallback_category_id:
            raise ConflictError(
                "Cannot delete category with posts without fallback assignment"
            )
        if post_count:
            fallback_id = _as_uuid(fallback_category_id, "fallback_category_id")
            if fallback_id == category.pk:
                raise ValidationError({
                    "fallback_category_id": ["Fallback must be a different category."],
                })
            fallback = Category.objects.filter(pk=fallback_id).first()
            if fallback is None:
                raise ValidationError({
                    "fallback_category_id": ["Select a valid category."],
                })
            posts.update(category=fallback)
        category.delete()

    cache.invalidate(tags=[cache.BLOG_CATEGORIES, cache.BLOG_LIST], paths=["/blog"])
    logger.info("Deleted category %s, reassigned %d posts", category_id, post_count)
    return True


# Books and courses ---------------------------------------------------------

def _get_instance(model, object_id):
    if not object_id:
        return None
    instance = model.objects.filter(pk=_as_uuid(object_id, "id")).first()
    if instance is None:
        raise NotFoundError(f"{model.__name__} {object_id} does not exist")
    return instance


@mutation(OWNER, EDITOR)
def upsert_book(payload):
    instance = _get_instance(Book, payload.get("id"))
    form = BookForm(data=payload, instance=instance)
    raise_for_errors(form)
    book = form.save()
    cache.invalidate(tags=[cache.LIBRARY_BOOKS], paths=["/books"])
    return book.pk, True


@mutation(OWNER, EDITOR)
def reorder_books(ordered_ids):
    """Set order_index from the position of each id. Unknown ids are ignored."""
    positions = {
        _as_uuid(book_id, "ordered_ids"): index
        for index, book_id in enumerate(ordered_ids)
    }
    with transaction.atomic():
        for book in Book.objects.filter(pk__in=positions):
            book.order_index = positions[book.pk]
            book.save(update_fields=["order_index"])
    cache.invalidate(tags=[cache.LIBRARY_BOOKS], paths=["/books"])
    return True


@mutation(OWNER, EDITOR)
def delete_book(book_id):
    Book.objects.filter(pk=_as_uuid(book_id, "id")).delete()
    cache.invalidate(tags=[cache.LIBRARY_BOOKS], paths=["/books"])
    return True


@mutation(OWNER, EDITOR)
def upsert_course(payload):
    instance = _get_instance(Course, payload.get("id"))
    form = CourseForm(data=payload, instance=instance)
    raise_for_errors(form)
    course = form.save()
    cache.invalidate(tags=[cache.LIBRARY_COURSES], paths=["/courses"])
    return course.pk, True


@mutation(OWNER, EDITOR)
def delete_course(course_id):
    Course.objects.filter(pk=_as_uuid(course_id, "id")).delete()
    cache.invalidate(tags=[cache.LIBRARY_COURSES], paths=["/courses"])
    return True


def _parse_discipline(value):
    for discipline in Course.Discipline.values:
        if discipline.lower() == value.strip().lower():
            return discipline
    return None


@mutation(OWNER, EDITOR)
def import_courses_from_csv(csv_text):
    """
    Create courses from CSV text with a header row and code,name,discipline
    columns. Either every row is imported or none is.

    Returns the number of courses created.
    """
    rows = [row for row in csv.reader(io.StringIO(csv_text or "")) if any(cell.strip() for cell in row)]
    if len(rows) < 2:
        raise ValidationError({
            "csv": ["CSV must include a header row and at least one record."],
        })

    courses, errors = [], []
    for line_number, row in enumerate(rows[1:], start=2):
        cells = [cell.strip() for cell in row]
        if len(cells) < 3 or not all(cells[:3]):
            errors.append(f"Row {line_number}: expected code, name and discipline.")
            continue
        code, name, discipline = cells[:3]
        parsed = _parse_discipline(discipline)
        if parsed is None:
            errors.append(f"Row {line_number}: unknown discipline '{discipline}'.")
            continue
        courses.append(Course(code=code, name=name, discipline=parsed))
    if errors:
        raise ValidationError({"csv": errors})

    Course.objects.bulk_create(courses)
    cache.invalidate(tags=[cache.LIBRARY_COURSES], paths=["/courses"])
    logger.info("Imported %d courses", len(courses))
    return len(courses)
