"""
Django admin configuration for portfolio_cms.

Posts are read-only here: they are written through services.upsert_post so
that tags, revisions and caches stay consistent. The duplicate action goes
through the service layer as well.
"""
from django.contrib import admin, messages
from django.utils.html import format_html

from . import services
from .content import derive_summary
from .exceptions import AuthorizationError, PortfolioCMSError
from .models import (
    Book,
    Category,
    Course,
    Post,
    PostTag,
    Revision,
    Upload,
    UploadReference,
)
from .ratelimit import resolve_request_key


class PostTagInline(admin.TabularInline):
    model = PostTag
    extra = 0
    can_delete = False
    readonly_fields = ["tag"]

    def has_add_permission(self, request, obj=None):
        return False


class RevisionInline(admin.TabularInline):
    """Read-only revision history of a post."""

    model = Revision
    extra = 0
    can_delete = False
    fields = ["created_at", "preview"]
    readonly_fields = ["created_at", "preview"]

    def has_add_permission(self, request, obj=None):
        return False

    def preview(self, obj):
        return derive_summary(obj.content_json, max_length=120)

    preview.short_description = "Content"


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ["name", "slug", "post_count", "updated_at"]
    search_fields = ["name", "slug"]
    prepopulated_fields = {"slug": ("name",)}

    def has_delete_permission(self, request, obj=None):
        # Deleting goes through services.delete_category (fallback reassignment)
        return False


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    list_display = [
        "title",
        "status",
        "category",
        "reading_time_minutes",
        "published_at",
        "updated_at",
    ]
    list_filter = ["status", "category", "published_at"]
    search_fields = ["title", "summary", "slug"]
    date_hierarchy = "updated_at"
    inlines = [PostTagInline, RevisionInline]
    readonly_fields = [
        "title",
        "slug",
        "summary",
        "category",
        "tags",
        "hero_preview",
        "status",
        "published_at",
        "reading_time_minutes",
        "created_at",
        "updated_at",
    ]
    exclude = ["hero_image_url", "content_json"]
    actions = ["duplicate_posts"]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def hero_preview(self, obj):
        if obj.hero_image_url:
            return format_html(
                '<img src="{}" style="max-width: 200px; max-height: 120px;" />',
                obj.hero_image_url,
            )
        return "-"

    hero_preview.short_description = "Hero image"

    @admin.action(description="Duplicate selected posts as drafts")
    def duplicate_posts(self, request, queryset):
        actor_key = resolve_request_key(request)
        count = 0
        for post in queryset:
            try:
                services.duplicate_post(post.pk, user=request.user, actor_key=actor_key)
            except (AuthorizationError, PortfolioCMSError) as exc:
                self.message_user(request, f"{post}: {exc}", level=messages.ERROR)
                break
            count += 1
        self.message_user(request, f"{count} posts duplicated.")


class UploadReferenceInline(admin.TabularInline):
    model = UploadReference
    extra = 0
    readonly_fields = ["entity_table", "entity_id"]


@admin.register(Upload)
class UploadAdmin(admin.ModelAdmin):
    list_display = [
        "thumbnail_preview",
        "path",
        "mime",
        "human_file_size",
        "dimensions",
        "deleted",
        "created_at",
    ]
    list_filter = ["deleted", "mime", "created_at"]
    search_fields = ["path", "public_url"]
    readonly_fields = ["path", "public_url", "size", "mime", "width", "height", "created_at"]
    inlines = [UploadReferenceInline]

    def thumbnail_preview(self, obj):
        if obj.is_image:
            return format_html(
                '<img src="{}" style="max-width: 50px; max-height: 50px;" />',
                obj.public_url,
            )
        return obj.mime

    thumbnail_preview.short_description = "Preview"

    def dimensions(self, obj):
        if obj.width and obj.height:
            return f"{obj.width}x{obj.height}"
        return "-"

    dimensions.short_description = "Size"


@admin.register(Book)
class BookAdmin(admin.ModelAdmin):
    list_display = ["title", "author", "order_index"]
    list_editable = ["order_index"]
    search_fields = ["title", "author"]


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ["code", "name", "discipline", "created_at"]
    list_filter = ["discipline"]
    search_fields = ["code", "name"]
