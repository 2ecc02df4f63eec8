"""
Rich-text content documents for django-portfolio-cms.

Posts store their body as the JSON tree produced by a ProseMirror/TipTap
editor:

    {
        "type": "doc",
        "content": [
            {"type": "heading", "attrs": {"level": 2}, "content": [
                {"type": "text", "text": "Hello"}
            ]},
            {"type": "paragraph", "content": [
                {"type": "text", "text": "bold", "marks": [{"type": "bold"}]}
            ]},
        ],
    }

Only the shape of the tree is validated. Node types form an open set: a type
without a registered renderer is still accepted and rendered with a fallback,
so documents written by a newer editor keep working.
"""
import html
import json
import re

from django.core.exceptions import ValidationError
from django.utils.html import escape, format_html
from django.utils.safestring import mark_safe

from .conf import cms_settings

DOCUMENT_TYPE = "doc"

EMPTY_DOCUMENT = {"type": DOCUMENT_TYPE, "content": []}

SAFE_URL_PREFIXES = ("http://", "https://", "mailto:", "/")

_TAG_RE = re.compile(r"<[^>]*>")


def validate(raw):
    """
    Check that ``raw`` is a content document and return it normalized.

    Accepts a mapping or a JSON string. The root must be a mapping whose
    ``type`` is ``"doc"``; every node below it must be a mapping with a
    string ``type`` and, when present, a list ``content``.

    Raises ValidationError on the first malformed node.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise ValidationError("Content is not valid JSON.", code="invalid_json")

    if not isinstance(raw, dict):
        raise ValidationError("Content must be an object.", code="invalid_content")
    if raw.get("type") != DOCUMENT_TYPE:
        raise ValidationError(
            f"Content root must have type '{DOCUMENT_TYPE}'.",
            code="invalid_root",
        )

    children = raw.get("content")
    if children is None:
        children = []
    if not isinstance(children, list):
        raise ValidationError("Content children must be a list.", code="invalid_content")

    stack = list(children)
    while stack:
        node = stack.pop()
        if not isinstance(node, dict) or not isinstance(node.get("type"), str):
            raise ValidationError(
                "Every content node must be an object with a string type.",
                code="invalid_node",
            )
        nested = node.get("content")
        if nested is None:
            continue
        if not isinstance(nested, list):
            raise ValidationError(
                f"Children of '{node['type']}' must be a list.",
                code="invalid_node",
            )
        stack.extend(nested)

    return {**raw, "content": children}


def is_empty(doc):
    """Return True if the document is missing or has no child nodes."""
    if not doc:
        return True
    return len(doc.get("content") or []) == 0


# Rendering ---------------------------------------------------------------

_NODE_RENDERERS = {}
_MARK_RENDERERS = {}


def register_node_renderer(node_type, renderer=None):
    """
    Register ``renderer(node) -> str`` for a node type.

    Usable as a decorator. Renderers must escape everything they emit.
    """
    if renderer is None:
        def decorator(func):
            _NODE_RENDERERS[node_type] = func
            return func
        return decorator
    _NODE_RENDERERS[node_type] = renderer
    return renderer


def register_mark_renderer(mark_type, renderer):
    """Register ``renderer(mark, inner_html) -> str`` for a text mark."""
    _MARK_RENDERERS[mark_type] = renderer
    return renderer


def _is_safe_url(url):
    return isinstance(url, str) and url.startswith(SAFE_URL_PREFIXES) and not url.startswith("//")


def _attrs(node):
    attrs = node.get("attrs")
    return attrs if isinstance(attrs, dict) else {}


def render_children(node):
    return "".join(render_node(child) for child in node.get("content") or [])


def render_node(node):
    renderer = _NODE_RENDERERS.get(node.get("type"), _render_unknown)
    return renderer(node)


def _render_unknown(node):
    if node.get("content"):
        return format_html(
            '<div data-node-type="{}">{}</div>',
            node.get("type"),
            mark_safe(render_children(node)),
        )
    if isinstance(node.get("text"), str):
        return _render_text(node)
    return format_html(
        '<div class="unsupported-node" data-node-type="{}"></div>',
        node.get("type"),
    )


def _wrap(tag):
    def renderer(node):
        return f"<{tag}>{render_children(node)}</{tag}>"
    return renderer


def _render_text(node):
    output = escape(node.get("text") or "")
    for mark in node.get("marks") or []:
        if not isinstance(mark, dict):
            continue
        renderer = _MARK_RENDERERS.get(mark.get("type"))
        if renderer is not None:
            output = renderer(mark, output)
    return output


def _render_heading(node):
    levels = cms_settings.HEADING_LEVELS
    try:
        level = int(_attrs(node).get("level", min(levels)))
    except (TypeError, ValueError):
        level = min(levels)
    level = min(max(level, min(levels)), max(levels))
    return f"<h{level}>{render_children(node)}</h{level}>"


def _render_ordered_list(node):
    start = _attrs(node).get("start")
    if isinstance(start, int) and start != 1:
        return format_html('<ol start="{}">{}</ol>', start, mark_safe(render_children(node)))
    return f"<ol>{render_children(node)}</ol>"


def _render_code_block(node):
    language = _attrs(node).get("language")
    code = "".join(
        child.get("text") or "" for child in node.get("content") or []
        if isinstance(child.get("text"), str)
    )
    if isinstance(language, str) and language:
        return format_html(
            '<pre><code class="language-{}">{}</code></pre>', language, code
        )
    return format_html("<pre><code>{}</code></pre>", code)


def _render_image(node):
    attrs = _attrs(node)
    src = attrs.get("src")
    if not _is_safe_url(src):
        return ""
    title = attrs.get("title")
    if isinstance(title, str) and title:
        return format_html(
            '<img src="{}" alt="{}" title="{}">', src, attrs.get("alt") or "", title
        )
    return format_html('<img src="{}" alt="{}">', src, attrs.get("alt") or "")


def _render_link(mark, inner):
    href = _attrs(mark).get("href")
    if not _is_safe_url(href):
        return inner
    return format_html('<a href="{}" rel="noopener noreferrer">{}</a>', href, mark_safe(inner))


register_node_renderer(DOCUMENT_TYPE, render_children)
register_node_renderer("paragraph", _wrap("p"))
register_node_renderer("heading", _render_heading)
register_node_renderer("bulletList", _wrap("ul"))
register_node_renderer("orderedList", _render_ordered_list)
register_node_renderer("listItem", _wrap("li"))
register_node_renderer("blockquote", _wrap("blockquote"))
register_node_renderer("codeBlock", _render_code_block)
register_node_renderer("horizontalRule", lambda node: "<hr>")
register_node_renderer("hardBreak", lambda node: "<br>")
register_node_renderer("image", _render_image)
register_node_renderer("text", _render_text)

register_mark_renderer("bold", lambda mark, inner: f"<strong>{inner}</strong>")
register_mark_renderer("italic", lambda mark, inner: f"<em>{inner}</em>")
register_mark_renderer("strike", lambda mark, inner: f"<s>{inner}</s>")
register_mark_renderer("code", lambda mark, inner: f"<code>{inner}</code>")
register_mark_renderer("link", _render_link)


def render_html(doc):
    """Render a document to sanitized HTML. Empty documents render as ""."""
    if is_empty(doc):
        return mark_safe("")
    return mark_safe(render_children(doc))


# Plain text --------------------------------------------------------------

def to_plain_text(doc):
    """
    Flatten a document to whitespace-joined text.

    The document is rendered to HTML first and the markup stripped, so new
    node types are covered as soon as they have a renderer.
    """
    markup = _TAG_RE.sub(" ", render_html(doc))
    return " ".join(html.unescape(markup).split())


def estimate_reading_time_minutes(text, words_per_minute=None):
    """Return the reading time in whole minutes, never less than 1."""
    words_per_minute = words_per_minute or cms_settings.WORDS_PER_MINUTE
    minutes = len((text or "").split()) / words_per_minute
    return max(1, int(minutes + 0.5))


def derive_summary(doc, max_length=None):
    """Return plain text cut on a word boundary to at most ``max_length`` chars."""
    max_length = max_length or cms_settings.SUMMARY_MAX_LENGTH
    text = to_plain_text(doc)
    if len(text) <= max_length:
        return text
    head = text[:max_length - 1]
    cut = head.rsplit(" ", 1)[0] or head
    return cut.rstrip(" ,.;:") + "…"


def collect_image_sources(doc):
    """Yield the ``src`` of every image node in the document."""
    stack = list((doc or {}).get("content") or [])
    while stack:
        node = stack.pop()
        if not isinstance(node, dict):
            continue
        if node.get("type") == "image":
            src = _attrs(node).get("src")
            if isinstance(src, str) and src:
                yield src
        stack.extend(node.get("content") or [])
