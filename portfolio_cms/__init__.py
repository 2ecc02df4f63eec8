"""
django-portfolio-cms - Blog and portfolio content management for Django.

Features:
- Rich-text (ProseMirror/TipTap JSON) posts rendered to sanitized HTML
- Draft/published lifecycle with publish requirements
- Bounded revision history per post
- Tag-versioned cache invalidation with a signal for downstream purging
- Rate-limited, role-gated dashboard mutations
- Uploads with image dimension extraction and reference-aware soft delete
- Reading list and course catalogue
"""

__version__ = "0.1.0"
