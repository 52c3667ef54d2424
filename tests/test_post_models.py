"""
Tests for the Post entity: derived fields, validation, publishing lifecycle and DTOs.
"""

from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId
from pydantic import ValidationError as PydanticValidationError

from heimdall.exceptions import ValidationError
from heimdall.models.common_models import Tag
from heimdall.models.post_models import Post, PostCreateRequest, PostUpdateRequest, build_tags

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_post(**overrides):
    fields = {
        "title": "Hello World",
        "markdown": "# Hi\n\nFirst post on the new blog.",
        "type": "post",
        "status": "draft",
        "visibility": "public",
        "author_id": str(ObjectId()),
    }
    fields.update(overrides)
    return Post(**fields)


# ============================================================================
# Derived fields
# ============================================================================


def test_prepare_for_insert_derives_fields():
    """Test slug, excerpt, metrics and tag slug derivation."""
    post = make_post(tags=[Tag(name="Go Lang"), Tag(name="Web", slug="web-dev")])
    post.prepare_for_insert()

    assert ObjectId.is_valid(post.id)
    assert post.slug == "hello-world"
    assert post.excerpt == "Hi First post on the new blog."
    assert post.word_count == 7
    assert post.reading_time == 1
    assert [tag.slug for tag in post.tags] == ["go-lang", "web-dev"]
    assert post.created_at is not None and post.created_at == post.updated_at


def test_prepare_for_insert_keeps_supplied_slug_and_excerpt():
    """Test that explicit values are not overwritten."""
    post = make_post(slug="custom", excerpt="Hand written.")
    post.prepare_for_insert()
    assert post.slug == "custom"
    assert post.excerpt == "Hand written."


def test_reading_time_for_long_posts():
    """Test reading time on a 1,000 word post."""
    post = make_post(markdown="word " * 1000)
    post.update_content_metrics()
    assert post.word_count == 1000
    assert post.reading_time == 5


def test_build_tags_does_not_mutate_input():
    """Test that tag slugs are derived on copies."""
    tags = [Tag(name="Python")]
    built = build_tags(tags)
    assert built[0].slug == "python"
    assert tags[0].slug == ""


# ============================================================================
# Validation
# ============================================================================


def test_valid_post_passes_validation():
    """Test that a complete post validates."""
    make_post().validate_for_create(NOW)


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"title": ""}, "title"),
        ({"markdown": ""}, "markdown"),
        ({"author_id": None}, "authorId"),
        ({"author_id": "not-an-id"}, "authorId"),
        ({"title": "x" * 256}, "title"),
        ({"title": "é" * 256}, "title"),
        ({"markdown": "x" * 1_000_001}, "markdown"),
        ({"excerpt": "x" * 501}, "excerpt"),
        ({"meta_title": "x" * 71}, "metaTitle"),
        ({"status": "deleted"}, "status"),
        ({"visibility": "secret"}, "visibility"),
        ({"type": "note"}, "type"),
        ({"slug": "Not A Slug"}, "slug"),
        ({"tags": [Tag(name=f"t{i}") for i in range(21)]}, "tags"),
        ({"tags": [Tag(name="")]}, "tags"),
        ({"tags": [Tag(name="x" * 51)]}, "tags"),
    ],
)
def test_validation_reports_offending_field(overrides, field):
    """Test that the first violated rule names its field."""
    with pytest.raises(ValidationError) as exc_info:
        make_post(**overrides).validate_for_create(NOW)
    assert exc_info.value.field == field


@pytest.mark.parametrize(
    "overrides",
    [
        {"title": "é" * 255},
        {"markdown": "x" * 1_000_000},
        {"excerpt": "x" * 500},
        {"meta_title": "x" * 70},
        {"tags": [Tag(name=f"t{i}") for i in range(20)]},
        {"tags": [Tag(name="x" * 50)]},
    ],
)
def test_validation_accepts_values_at_limits(overrides):
    """Test that limits are inclusive and counted in characters, not bytes."""
    make_post(**overrides).validate_for_create(NOW)


def test_scheduled_post_needs_future_publish_time():
    """Test the scheduling rules."""
    with pytest.raises(ValidationError) as exc_info:
        make_post(status="scheduled").validate_for_create(NOW)
    assert exc_info.value.field == "publishedAt"

    with pytest.raises(ValidationError):
        make_post(status="scheduled", published_at=NOW - timedelta(minutes=1)).validate_for_create(NOW)

    make_post(status="scheduled", published_at=NOW + timedelta(days=1)).validate_for_create(NOW)


def test_naive_publish_time_is_read_as_utc():
    """Test scheduling with datetimes that carry no timezone."""
    naive_future = datetime(2026, 3, 2, 12, 0)
    post = make_post(status="scheduled", published_at=naive_future)
    assert post.published_at == NOW + timedelta(days=1)

    post.validate_for_create(NOW)
    post.validate_for_create(NOW.replace(tzinfo=None))
    assert not post.should_be_published_now(NOW)
    assert post.should_be_published_now(naive_future + timedelta(seconds=1))


def test_assigned_naive_publish_time_still_compares():
    """Test that a naive value assigned after construction does not break the checks."""
    post = make_post(status="scheduled", published_at=NOW + timedelta(days=1))
    post.published_at = datetime(2026, 3, 1, 11, 0)
    assert post.should_be_published_now(NOW)
    with pytest.raises(ValidationError):
        post.validate_for_create(NOW)

    post.schedule(datetime(2026, 3, 5), NOW)
    assert post.published_at == datetime(2026, 3, 5, tzinfo=timezone.utc)


def test_validate_for_update_rejects_negative_view_count():
    """Test partial validation on a provided counter."""
    partial = Post.model_validate({"viewCount": -1})
    with pytest.raises(ValidationError) as exc_info:
        partial.validate_for_update(NOW)
    assert exc_info.value.field == "viewCount"


# ============================================================================
# Lifecycle
# ============================================================================


def test_publish_sets_publish_time_once():
    """Test that publishing keeps an existing publish time."""
    post = make_post()
    post.publish(NOW)
    assert post.is_published()
    assert post.published_at == NOW

    post.unpublish()
    assert post.is_draft()
    assert post.published_at == NOW

    post.publish(NOW + timedelta(days=1))
    assert post.published_at == NOW


def test_schedule_and_due_check():
    """Test scheduling and the due predicate used by the publish sweep."""
    post = make_post()
    post.schedule(NOW + timedelta(hours=1), now=NOW)
    assert post.is_scheduled()
    assert not post.should_be_published_now(NOW)
    assert post.should_be_published_now(NOW + timedelta(hours=2))

    with pytest.raises(ValidationError):
        post.schedule(NOW - timedelta(hours=1), now=NOW)


def test_archive_and_can_be_published():
    """Test soft delete and the publishable states."""
    post = make_post(status="draft")
    assert post.can_be_published()
    post.archive()
    assert post.is_archived()
    assert not post.can_be_published()


def test_increment_view_count():
    """Test the in-memory view counter."""
    post = make_post()
    post.increment_view_count()
    assert post.view_count == 1


# ============================================================================
# DTOs
# ============================================================================


def test_create_request_strips_title_html():
    """Test that markup is removed from titles."""
    request = PostCreateRequest(title="<b>Hello</b> <script>x</script>World", markdown="Body")
    assert "<" not in request.title
    assert request.title.startswith("Hello")


def test_create_request_rejects_invalid_slug():
    """Test request-level slug validation."""
    with pytest.raises(PydanticValidationError):
        PostCreateRequest(title="Hello", markdown="Body", slug="Bad Slug")


def test_create_request_builds_post():
    """Test conversion of a create request into an entity."""
    author = str(ObjectId())
    request = PostCreateRequest(title="Hello", markdown="Body", tags=[{"name": "Go"}])
    post = request.to_post(author)
    assert post.author_id == author
    assert post.status == "draft"
    assert post.visibility == "public"
    assert post.tags[0].name == "Go"


def test_update_request_derives_tag_slugs():
    """Test that the update map carries only provided fields and filled-in tag slugs."""
    fields = PostUpdateRequest(title="New", tags=[{"name": "Rust Lang"}]).to_update_fields()
    assert fields == {"title": "New", "tags": [{"name": "Rust Lang", "slug": "rust-lang"}]}


def test_list_item_carries_author():
    """Test list projection with an embedded author."""
    post = make_post()
    post.prepare_for_insert()
    item = post.to_list_item()
    assert item.slug == "hello-world"
    assert item.author is None
    assert "markdown" not in item.model_dump()
