"""
Tests for slug, excerpt, word count and reading time derivation.
"""

import re
from datetime import datetime, timedelta, timezone

import pytest

from heimdall.models.constants import calculate_reading_time, get_lock_duration, role_rank
from heimdall.utils.text_utils import (
    count_words,
    ensure_utc,
    generate_excerpt,
    generate_slug,
    is_valid_slug,
    strip_markdown,
    utc_now,
)


# ============================================================================
# Slugs
# ============================================================================


@pytest.mark.parametrize(
    "title, expected",
    [
        ("Hello World", "hello-world"),
        ("Hello,   World!!", "hello-world"),
        ("  --Leading and trailing--  ", "leading-and-trailing"),
        ("Café Crème Brûlée", "cafe-creme-brulee"),
        ("Go 1.22 Release", "go-1-22-release"),
    ],
)
def test_generate_slug(title, expected):
    """Test slug derivation from titles."""
    assert generate_slug(title) == expected


def test_generate_slug_without_usable_characters():
    """Test that titles with no ASCII-foldable characters get a random fallback slug."""
    slug = generate_slug("你好世界")
    assert re.fullmatch(r"post-[0-9a-f]{8}", slug)
    assert is_valid_slug(slug)


def test_generate_slug_is_idempotent():
    """Test that slugifying a slug returns it unchanged."""
    for title in ["Hello World", "Café -- Crème", "a" * 300, "  x  y  "]:
        once = generate_slug(title)
        assert generate_slug(once) == once


def test_generate_slug_truncates_to_max_length():
    """Test that long titles produce slugs of at most 255 characters without a trailing hyphen."""
    slug = generate_slug("word " * 100)
    assert len(slug) <= 255
    assert not slug.endswith("-")
    assert is_valid_slug(slug)


def test_is_valid_slug():
    """Test the slug pattern."""
    assert is_valid_slug("hello-world-2")
    assert not is_valid_slug("")
    assert not is_valid_slug("Hello")
    assert not is_valid_slug("hello--world")
    assert not is_valid_slug("-hello")
    assert not is_valid_slug("a" * 256)


# ============================================================================
# Markdown stripping and excerpts
# ============================================================================


def test_strip_markdown_removes_syntax():
    """Test that headings, emphasis and links are reduced to their text."""
    text = strip_markdown("# Title\n\n**bold** and *italic* with [a link](https://example.com)")
    assert text == "Title bold and italic with a link"


def test_strip_markdown_removes_code_blocks_and_html():
    """Test that fenced code and inline HTML do not leak into plain text."""
    markdown = "Intro\n```python\nprint('hidden')\n```\n<b>Outro</b> text"
    assert strip_markdown(markdown) == "Intro Outro text"


def test_generate_excerpt_short_text_is_unchanged():
    """Test that text within the limit is returned without an ellipsis."""
    assert generate_excerpt("## Short\n\nBody text.") == "Short Body text."


def test_generate_excerpt_truncates_with_ellipsis():
    """Test that long text is cut to the limit and suffixed with '...'."""
    excerpt = generate_excerpt("word " * 100)
    assert excerpt.endswith("...")
    assert len(excerpt) == 203


def test_generate_excerpt_non_positive_limit_uses_default():
    """Test that a zero limit falls back to 200 characters."""
    assert generate_excerpt("word " * 100, limit=0) == generate_excerpt("word " * 100)


# ============================================================================
# Word count and reading time
# ============================================================================


@pytest.mark.parametrize(
    "markdown, expected",
    [
        ("", 0),
        ("Hello world", 2),
        ("Hello, world! -- test", 3),
        ("你好世界", 4),
        ("Hello 世界", 3),
        ("# Heading\n\n- one\n- two", 3),
    ],
)
def test_count_words(markdown, expected):
    """Test word counting, with CJK characters counted individually."""
    assert count_words(markdown) == expected


@pytest.mark.parametrize(
    "words, minutes",
    [(0, 1), (1, 1), (200, 1), (201, 2), (1000, 5), (10_000_000, 999)],
)
def test_calculate_reading_time(words, minutes):
    """Test that reading time is ceil(words / 200) clamped to [1, 999]."""
    assert calculate_reading_time(words) == minutes


# ============================================================================
# Lockout policy and misc
# ============================================================================


@pytest.mark.parametrize(
    "fail_count, duration",
    [
        (0, None),
        (2, None),
        (3, timedelta(minutes=15)),
        (4, timedelta(minutes=15)),
        (5, timedelta(minutes=60)),
        (9, timedelta(minutes=60)),
        (10, timedelta(hours=24)),
        (42, timedelta(hours=24)),
    ],
)
def test_get_lock_duration(fail_count, duration):
    """Test the failure thresholds of the lockout policy."""
    assert get_lock_duration(fail_count) == duration


def test_role_rank_orders_roles():
    """Test that owner outranks admin, editor and author, and unknown roles rank last."""
    assert role_rank("owner") < role_rank("admin") < role_rank("editor") < role_rank("author")
    assert role_rank("guest") == 4


def test_utc_now_is_aware_with_millisecond_precision():
    """Test that timestamps match what MongoDB stores."""
    value = utc_now()
    assert value.tzinfo is not None
    assert value.microsecond % 1000 == 0


def test_ensure_utc_reads_naive_values_as_utc():
    """Test normalization of naive and offset datetimes."""
    assert ensure_utc(None) is None
    assert ensure_utc(datetime(2026, 3, 1, 12)) == datetime(2026, 3, 1, 12, tzinfo=timezone.utc)
    plus_two = timezone(timedelta(hours=2))
    converted = ensure_utc(datetime(2026, 3, 1, 14, tzinfo=plus_two))
    assert converted.tzinfo == timezone.utc
    assert converted.hour == 12
