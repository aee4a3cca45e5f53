"""Slug generation for post titles."""

import re
import time

_DISALLOWED_RE = re.compile(r"[^a-z0-9\s-]")
_SEPARATOR_RE = re.compile(r"[\s-]+")

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


def slugify(text: str) -> str:
    """Lower-case *text*, drop punctuation and join words with single hyphens.

    Returns an empty string when nothing URL-safe is left.
    """
    slug = _DISALLOWED_RE.sub("", text.lower().strip())
    slug = _SEPARATOR_RE.sub("-", slug)
    return slug.strip("-")


def slug_for_title(title: str) -> str:
    """Slug for a new or renamed post, falling back to ``post-<unix-ms>``."""
    return slugify(title) or f"post-{int(time.time() * 1000)}"
