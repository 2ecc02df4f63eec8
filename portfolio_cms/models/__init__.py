"""
Models for django-portfolio-cms.

All models are importable from portfolio_cms.models:

    from portfolio_cms.models import Post, Category, Revision, Upload
"""
from .posts import Category, Post, PostTag, Revision
from .media import Upload, UploadReference
from .library import Book, Course

__all__ = [
    # Posts
    "Category",
    "Post",
    "PostTag",
    "Revision",
    # Media
    "Upload",
    "UploadReference",
    # Library
    "Book",
    "Course",
]
