"""
Views for django-portfolio-cms.

Public pages are plain class-based views. Dashboard mutations are JSON
endpoints that hand the request body to the service layer and translate its
errors into HTTP responses.
"""
import json

from django.core.exceptions import ValidationError
from django.http import Http404, JsonResponse
from django.shortcuts import get_object_or_404
from django.utils.crypto import constant_time_compare
from django.views import View
from django.views.generic import DetailView, ListView

from . import cache, queries, services, uploads
from .conf import cms_settings
from .exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    RateLimitExceeded,
)
from .models import Book, Category, Course, Post
from .permissions import get_role
from .ratelimit import resolve_request_key


class PostListView(ListView):
    """List published posts with pagination."""

    model = Post
    template_name = "portfolio_cms/post_list.html"
    context_object_name = "posts"
    paginate_by = cms_settings.POSTS_PER_PAGE

    def get_queryset(self):
        qs = Post.objects.published().select_related("category").order_by("-published_at")
        query = self.request.GET.get("q", "").strip()
        if query:
            qs = qs.search(query)
        return qs

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["categories"] = Category.objects.all()
        context["query"] = self.request.GET.get("q", "")
        return context


class PostDetailView(DetailView):
    """Display a single post. Drafts are only visible to dashboard users."""

    model = Post
    template_name = "portfolio_cms/post_detail.html"
    context_object_name = "post"

    def get_object(self, queryset=None):
        obj = queries.get_post_by_slug(self.kwargs["slug"])
        if obj is None:
            raise Http404("Post not found")
        if not obj.is_published and get_role(self.request.user) is None:
            raise Http404("Post not found")
        return obj

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["content_html"] = cache.cached_render(self.object)
        context["adjacent"] = queries.get_adjacent_posts(self.object)
        return context


class CategoryPostListView(PostListView):
    """List posts in a specific category."""

    template_name = "portfolio_cms/category_detail.html"

    def get_queryset(self):
        self.category = get_object_or_404(Category, slug=self.kwargs["slug"])
        return super().get_queryset().filter(category=self.category)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["category"] = self.category
        return context


class TagPostListView(PostListView):
    """List posts with a specific tag."""

    template_name = "portfolio_cms/tag_detail.html"

    def get_queryset(self):
        self.tag = self.kwargs["tag"]
        return super().get_queryset().with_tag(self.tag)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["tag"] = self.tag
        return context


class BookListView(ListView):
    model = Book
    template_name = "portfolio_cms/book_list.html"
    context_object_name = "books"


class CourseListView(ListView):
    model = Course
    template_name = "portfolio_cms/course_list.html"
    context_object_name = "courses"

    def get_queryset(self):
        qs = Course.objects.all()
        discipline = self.request.GET.get("discipline")
        if discipline in Course.Discipline.values:
            qs = qs.filter(discipline=discipline)
        return qs


# Dashboard endpoints -------------------------------------------------------

def _error_dict(exc):
    if hasattr(exc, "error_dict"):
        return exc.message_dict
    return {"__all__": exc.messages}


def _has_code(exc, code):
    if not hasattr(exc, "error_dict"):
        return getattr(exc, "code", None) == code
    return any(error.code == code for errors in exc.error_dict.values() for error in errors)


class ServiceView(View):
    """
    Base for JSON endpoints backed by the service layer.

    Subclasses implement handle(request, **kwargs) and return a dict.
    """

    http_method_names = ["post"]

    def post(self, request, *args, **kwargs):
        try:
            return JsonResponse(self.handle(request, **kwargs))
        except ValidationError as exc:
            status = 413 if _has_code(exc, "file_too_large") else 400
            return JsonResponse({"ok": False, "errors": _error_dict(exc)}, status=status)
        except AuthorizationError:
            return JsonResponse({"ok": False, "error": "Unauthorized"}, status=403)
        except NotFoundError as exc:
            return JsonResponse({"ok": False, "error": exc.message}, status=404)
        except ConflictError as exc:
            return JsonResponse({"ok": False, "error": exc.message}, status=409)
        except RateLimitExceeded as exc:
            response = JsonResponse({"ok": False, "error": exc.message}, status=429)
            response["Retry-After"] = str(exc.retry_after)
            return response
        except PersistenceError as exc:
            return JsonResponse({"ok": False, "error": exc.message}, status=500)

    def handle(self, request, **kwargs):
        raise NotImplementedError

    def get_payload(self):
        if not self.request.body:
            return {}
        try:
            payload = json.loads(self.request.body)
        except ValueError:
            raise ValidationError("Request body must be valid JSON.")
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object.")
        return payload

    def actor(self):
        return {
            "user": self.request.user,
            "actor_key": resolve_request_key(self.request),
        }


class PostUpsertView(ServiceView):
    def handle(self, request, **kwargs):
        post_id, ok = services.upsert_post(self.get_payload(), **self.actor())
        return {"ok": ok, "id": post_id}


class PostDuplicateView(ServiceView):
    def handle(self, request, pk, **kwargs):
        post_id, ok = services.duplicate_post(pk, **self.actor())
        return {"ok": ok, "id": post_id}


class PostDeleteView(ServiceView):
    def handle(self, request, pk, **kwargs):
        return {"ok": services.delete_post(pk, **self.actor())}


class RevisionRestoreView(ServiceView):
    def handle(self, request, pk, **kwargs):
        post_id, ok = services.restore_revision(pk, **self.actor())
        return {"ok": ok, "id": post_id}


class CategoryUpsertView(ServiceView):
    def handle(self, request, **kwargs):
        category_id, ok = services.upsert_category(self.get_payload(), **self.actor())
        return {"ok": ok, "id": category_id}


class CategoryDeleteView(ServiceView):
    def handle(self, request, pk, **kwargs):
        fallback = self.get_payload().get("fallback_category_id")
        return {"ok": services.delete_category(pk, fallback, **self.actor())}


class UploadView(ServiceView):
    def handle(self, request, **kwargs):
        result = uploads.ingest_upload(request.FILES.get("file"), **self.actor())
        return {"ok": True, **result}


class UploadDeleteView(ServiceView):
    def handle(self, request, pk, **kwargs):
        return {"ok": uploads.soft_delete_upload(pk, **self.actor())}


class BookUpsertView(ServiceView):
    def handle(self, request, **kwargs):
        book_id, ok = services.upsert_book(self.get_payload(), **self.actor())
        return {"ok": ok, "id": book_id}


class BookReorderView(ServiceView):
    def handle(self, request, **kwargs):
        ordered_ids = self.get_payload().get("ordered_ids") or []
        return {"ok": services.reorder_books(ordered_ids, **self.actor())}


class BookDeleteView(ServiceView):
    def handle(self, request, pk, **kwargs):
        return {"ok": services.delete_book(pk, **self.actor())}


class CourseUpsertView(ServiceView):
    def handle(self, request, **kwargs):
        course_id, ok = services.upsert_course(self.get_payload(), **self.actor())
        return {"ok": ok, "id": course_id}


class CourseDeleteView(ServiceView):
    def handle(self, request, pk, **kwargs):
        return {"ok": services.delete_course(pk, **self.actor())}


class CourseImportView(ServiceView):
    def handle(self, request, **kwargs):
        count = services.import_courses_from_csv(
            self.get_payload().get("csv", ""), **self.actor()
        )
        return {"ok": True, "count": count}


class RevalidateView(View):
    """
    Invalidate cache tags and paths on request of an external system.

    Body: {"secret": "...", "tags": [...], "paths": [...]}. The secret may
    also be passed as ?secret=.
    """

    http_method_names = ["post"]

    def post(self, request, *args, **kwargs):
        try:
            body = json.loads(request.body or b"{}")
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        expected = cms_settings.REVALIDATE_SECRET
        secret = str(body.get("secret") or request.GET.get("secret") or "")
        if not expected or not constant_time_compare(secret, expected):
            return JsonResponse({"ok": False, "error": "Unauthorized"}, status=401)

        tags = [tag for tag in body.get("tags") or [] if isinstance(tag, str)]
        paths = [path for path in body.get("paths") or [] if isinstance(path, str)]
        cache.invalidate(tags=tags, paths=paths)
        return JsonResponse({"ok": True})
