"""
Tests for the Page entity and its request models.
"""

from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId
from pydantic import ValidationError as PydanticValidationError

from heimdall.exceptions import ValidationError
from heimdall.models.page_models import Page, PageCreateRequest, PageUpdateRequest

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_page(**overrides):
    fields = {
        "title": "About Us",
        "content": "We write software.",
        "status": "draft",
        "author_id": str(ObjectId()),
    }
    fields.update(overrides)
    return Page(**fields)


def test_prepare_for_insert_derives_slug_and_template():
    """Test default template and slug derivation."""
    page = make_page(template="")
    page.prepare_for_insert()
    assert page.slug == "about-us"
    assert page.template == "default"
    assert page.status == "draft"


def test_pages_cannot_be_trashed():
    """Test that `trash` is not a page status."""
    with pytest.raises(ValidationError) as exc_info:
        make_page(status="trash").validate_for_create(NOW)
    assert exc_info.value.field == "status"


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"title": ""}, "title"),
        ({"content": ""}, "content"),
        ({"author_id": ""}, "authorId"),
        ({"template": "t" * 101}, "template"),
        ({"meta_description": "d" * 161}, "metaDescription"),
        ({"status": "scheduled"}, "publishedAt"),
    ],
)
def test_validation_reports_offending_field(overrides, field):
    """Test that the first violated rule names its field."""
    with pytest.raises(ValidationError) as exc_info:
        make_page(**overrides).validate_for_create(NOW)
    assert exc_info.value.field == field


def test_scheduled_page_with_future_time_is_valid():
    """Test that a future publish time satisfies the scheduling rule."""
    make_page(status="scheduled", published_at=NOW + timedelta(hours=3)).validate_for_create(NOW)


def test_to_document_converts_author_id():
    """Test that the author reference is stored as an ObjectId."""
    page = make_page()
    page.prepare_for_insert()
    document = page.to_document()
    assert isinstance(document["authorId"], ObjectId)
    assert document["template"] == "default"


def test_create_request_rejects_trash_status():
    """Test request-level status restriction."""
    with pytest.raises(PydanticValidationError):
        PageCreateRequest(title="About", content="Body", status="trash")


def test_create_request_builds_page():
    """Test conversion of a create request into an entity."""
    author = str(ObjectId())
    page = PageCreateRequest(title="<i>Contact</i>", content="Mail us", template="contact").to_page(author)
    assert page.title == "Contact"
    assert page.template == "contact"
    assert page.author_id == author


def test_update_request_only_carries_provided_fields():
    """Test that the update map is sparse."""
    fields = PageUpdateRequest(template="wide", publishedAt=NOW).to_update_fields()
    assert fields == {"template": "wide", "publishedAt": NOW}


def test_detail_response():
    """Test the detail projection."""
    page = make_page()
    page.prepare_for_insert()
    response = page.to_detail_response()
    assert response.content == "We write software."
    assert response.template == "default"
