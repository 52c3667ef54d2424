"""
# Text Utilities

Slug, excerpt and word-count helpers used by the post and page entities, plus the
millisecond-precision UTC clock used for every persisted timestamp.

Markdown is never rendered here. `strip_markdown()` only removes syntax so that
excerpts and word counts see plain prose; inline HTML is removed with `bleach`.
"""

import html
import re
import secrets
import unicodedata
from datetime import datetime, timezone
from typing import Optional

import bleach

from heimdall.models.constants import DEFAULT_EXCERPT_LENGTH, POST_SLUG_MAX_LENGTH, SLUG_PATTERN

SLUG_RE = re.compile(SLUG_PATTERN)
_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")

_FENCED_CODE_RE = re.compile(r"^(```|~~~).*?^\1[ \t]*$", re.MULTILINE | re.DOTALL)
_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_INLINE_CODE_RE = re.compile(r"`([^`]*)`")
_HEADING_RE = re.compile(r"^[ \t]*#{1,6}[ \t]*", re.MULTILINE)
_BLOCKQUOTE_RE = re.compile(r"^[ \t]*>[ \t]?", re.MULTILINE)
_LIST_MARKER_RE = re.compile(r"^[ \t]*(?:[-*+]|\d+\.)[ \t]+", re.MULTILINE)
_HR_RE = re.compile(r"^[ \t]*(?:[-*_][ \t]*){3,}$", re.MULTILINE)
_BOLD_RE = re.compile(r"(\*\*|__)(.+?)\1")
_ITALIC_STAR_RE = re.compile(r"\*([^*\n]+)\*")
_ITALIC_UNDERSCORE_RE = re.compile(r"(?<!\w)_([^_\n]+)_(?!\w)")
_STRIKE_RE = re.compile(r"~~(.+?)~~")
_WHITESPACE_RE = re.compile(r"\s+")

# CJK unified ideographs (base, extension A, compatibility), kana, and extension B
_CJK_RE = re.compile(
    "[぀-ヿ㐀-䶿一-鿿豈-﫿\U00020000-\U0002a6df]"
)


def utc_now() -> datetime:
    """Current UTC time truncated to millisecond precision, as stored by MongoDB."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return `value` in UTC. Naive datetimes are taken to be UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_valid_slug(slug: str) -> bool:
    return bool(slug) and len(slug) <= POST_SLUG_MAX_LENGTH and SLUG_RE.match(slug) is not None


def generate_slug(text: str) -> str:
    """
    Derive a URL slug from free text.

    Accented Latin letters are folded to ASCII, every other run of characters outside
    `[a-z0-9]` becomes a single hyphen, and the result is trimmed and cut to 255
    characters. Text with no usable characters (an all-CJK title, for instance)
    yields `post-<8 hex chars>`.

    The function is idempotent: `generate_slug(generate_slug(t)) == generate_slug(t)`.
    """
    folded = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii").lower()
    slug = _NON_SLUG_RE.sub("-", folded).strip("-")
    slug = slug[:POST_SLUG_MAX_LENGTH].strip("-")
    if not slug:
        slug = f"post-{secrets.token_hex(4)}"
    return slug


def strip_markdown(markdown: str) -> str:
    """Remove markdown syntax and inline HTML, returning single-spaced plain text."""
    if not markdown:
        return ""

    text = _FENCED_CODE_RE.sub(" ", markdown)
    text = _IMAGE_RE.sub(" ", text)
    text = _LINK_RE.sub(r"\1", text)
    text = _INLINE_CODE_RE.sub(r"\1", text)
    text = _HR_RE.sub(" ", text)
    text = _HEADING_RE.sub("", text)
    text = _BLOCKQUOTE_RE.sub("", text)
    text = _LIST_MARKER_RE.sub("", text)
    text = _BOLD_RE.sub(r"\2", text)
    text = _ITALIC_STAR_RE.sub(r"\1", text)
    text = _ITALIC_UNDERSCORE_RE.sub(r"\1", text)
    text = _STRIKE_RE.sub(r"\1", text)

    text = html.unescape(bleach.clean(text, tags=[], strip=True))
    return _WHITESPACE_RE.sub(" ", text).strip()


def generate_excerpt(markdown: str, limit: int = DEFAULT_EXCERPT_LENGTH) -> str:
    """
    Build a plain-text excerpt from markdown.

    Returns the first `limit` characters of the stripped text, with `...` appended
    when the text was truncated. A non-positive `limit` falls back to 200.
    """
    if limit <= 0:
        limit = DEFAULT_EXCERPT_LENGTH
    text = strip_markdown(markdown)
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def count_words(markdown: str) -> int:
    """
    Count words in markdown source.

    Whitespace-separated tokens containing at least one letter or digit count as one
    word each, and every CJK character counts as a word of its own.
    """
    text = strip_markdown(markdown)
    if not text:
        return 0

    cjk_count = len(_CJK_RE.findall(text))
    remainder = _CJK_RE.sub(" ", text)
    word_count = sum(1 for token in remainder.split() if any(ch.isalnum() for ch in token))
    return cjk_count + word_count
