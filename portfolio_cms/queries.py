"""
Read-side queries used by the public pages and the dashboard.
"""
from .conf import cms_settings
from .models import Category, Post


def list_posts(page=1, page_size=None, query=None, category_slug=None, tag=None, status=None):
    """Return one page of posts, most recently updated first."""
    page_size = page_size or cms_settings.POSTS_PER_PAGE
    page = max(1, page)

    posts = Post.objects.select_related("category")
    if status:
        posts = posts.filter(status=status)
    if query:
        posts = posts.search(query)
    if category_slug:
        category = Category.objects.filter(slug=category_slug).first()
        if category:
            posts = posts.filter(category=category)
    if tag:
        posts = posts.with_tag(tag)

    offset = (page - 1) * page_size
    return list(posts.order_by("-updated_at")[offset:offset + page_size])


def get_post_by_slug(slug):
    return Post.objects.select_related("category").filter(slug=slug).first()


def get_post_by_id(post_id):
    return Post.objects.select_related("category").filter(pk=post_id).first()


def get_adjacent_posts(post):
    """
    Return {"previous": post|None, "next": post|None} by publish date.

    Only published posts are considered; an unpublished post has no
    neighbours.
    """
    if not post.is_published or not post.published_at:
        return {"previous": None, "next": None}

    published = Post.objects.published().exclude(pk=post.pk)
    previous = (
        published.filter(published_at__lt=post.published_at)
        .order_by("-published_at")
        .first()
    )
    next_post = (
        published.filter(published_at__gt=post.published_at)
        .order_by("published_at")
        .first()
    )
    return {"previous": previous, "next": next_post}
