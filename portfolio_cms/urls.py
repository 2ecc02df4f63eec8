"""
URL configuration for django-portfolio-cms.

Include in your project urls.py:

    path('', include('portfolio_cms.urls')),
"""
from django.urls import path

from . import views

app_name = "portfolio_cms"

urlpatterns = [
    # Public pages
    path("blog/", views.PostListView.as_view(), name="post_list"),
    path("blog/<slug:slug>/", views.PostDetailView.as_view(), name="post_detail"),
    path("categories/<slug:slug>/", views.CategoryPostListView.as_view(), name="category_detail"),
    path("tags/<path:tag>/", views.TagPostListView.as_view(), name="tag_detail"),
    path("books/", views.BookListView.as_view(), name="book_list"),
    path("courses/", views.CourseListView.as_view(), name="course_list"),

    # Dashboard: posts
    path("dashboard/api/posts/", views.PostUpsertView.as_view(), name="post_upsert"),
    path("dashboard/api/posts/<uuid:pk>/duplicate/", views.PostDuplicateView.as_view(), name="post_duplicate"),
    path("dashboard/api/posts/<uuid:pk>/delete/", views.PostDeleteView.as_view(), name="post_delete"),
    path("dashboard/api/revisions/<int:pk>/restore/", views.RevisionRestoreView.as_view(), name="revision_restore"),

    # Dashboard: categories
    path("dashboard/api/categories/", views.CategoryUpsertView.as_view(), name="category_upsert"),
    path("dashboard/api/categories/<uuid:pk>/delete/", views.CategoryDeleteView.as_view(), name="category_delete"),

    # Dashboard: media
    path("dashboard/api/uploads/", views.UploadView.as_view(), name="upload"),
    path("dashboard/api/uploads/<uuid:pk>/delete/", views.UploadDeleteView.as_view(), name="upload_delete"),

    # Dashboard: library
    path("dashboard/api/books/", views.BookUpsertView.as_view(), name="book_upsert"),
    path("dashboard/api/books/reorder/", views.BookReorderView.as_view(), name="book_reorder"),
    path("dashboard/api/books/<uuid:pk>/delete/", views.BookDeleteView.as_view(), name="book_delete"),
    path("dashboard/api/courses/", views.CourseUpsertView.as_view(), name="course_upsert"),
    path("dashboard/api/courses/import/", views.CourseImportView.as_view(), name="course_import"),
    path("dashboard/api/courses/<uuid:pk>/delete/", views.CourseDeleteView.as_view(), name="course_delete"),

    # Cache
    path("api/revalidate/", views.RevalidateView.as_view(), name="revalidate"),
]
