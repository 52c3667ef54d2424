"""
Tests for the shared DocumentStore helpers: id parsing, error translation, pagination
and query building blocks.
"""

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError, PyMongoError

from heimdall.exceptions import BackendError, ConflictError, ErrorCode, InputError, NotFoundError, ValidationError
from heimdall.models.common_models import PaginationMeta
from heimdall.models.user_models import User
from heimdall.repositories.base import (
    DocumentStore,
    build_sort,
    duplicate_key_field,
    keyword_query,
    normalize_pagination,
    parse_update_fields,
)


@pytest.fixture
def store(collection):
    return DocumentStore(collection, User, conflict_field="username")


# ============================================================================
# Pure helpers
# ============================================================================


@pytest.mark.parametrize(
    "page, limit, expected",
    [
        (1, 10, (1, 10)),
        (1, 1, (1, 1)),
        (1, 100, (1, 100)),
        (0, 10, (1, 10)),
        (-3, 0, (1, 10)),
        (2, 500, (2, 100)),
        (4, -1, (4, 10)),
    ],
)
def test_normalize_pagination(page, limit, expected):
    """Test page and limit clamping."""
    assert normalize_pagination(page, limit) == expected


def test_pagination_meta_from_clamped_values():
    """Test page counts and navigation flags."""
    meta = PaginationMeta.build(*normalize_pagination(2, 0), total=25)
    assert (meta.page, meta.limit, meta.pages) == (2, 10, 3)
    assert meta.has_next and meta.has_prev
    assert meta.model_dump(by_alias=True)["hasNext"] is True

    empty = PaginationMeta.build(1, 10, total=0)
    assert empty.pages == 0
    assert not empty.has_next and not empty.has_prev


def test_keyword_query_escapes_regex_and_ignores_case():
    """Test that user keywords are matched literally and case-insensitively."""
    query = keyword_query("C++ (intro)", ("title", "excerpt"))
    assert query == {
        "$or": [
            {"title": {"$regex": r"C\+\+\ \(intro\)", "$options": "i"}},
            {"excerpt": {"$regex": r"C\+\+\ \(intro\)", "$options": "i"}},
        ]
    }
    assert keyword_query("ali", ("username",)) == {"username": {"$regex": "ali", "$options": "i"}}


def test_build_sort_falls_back_for_unknown_keys():
    """Test that sort keys outside the allowed set fall back to the default descending."""
    allowed = ["title", "createdAt"]
    assert build_sort("title", False, allowed, "createdAt") == [("title", 1)]
    assert build_sort("title", True, allowed, "createdAt") == [("title", -1)]
    assert build_sort("$where", False, allowed, "createdAt") == [("createdAt", -1)]
    assert build_sort("", False, allowed, "createdAt") == [("createdAt", -1)]


def test_duplicate_key_field_sources():
    """Test that the conflicting field is read from details, then from the message."""
    with_pattern = DuplicateKeyError("E11000", 11000, {"keyPattern": {"email": 1}})
    assert duplicate_key_field(with_pattern, "username") == "email"

    from_message = DuplicateKeyError(
        'E11000 duplicate key error collection: heimdall.posts index: slug_1 dup key: { slug: "x" }', 11000
    )
    assert duplicate_key_field(from_message, "id") == "slug"

    assert duplicate_key_field(DuplicateKeyError("E11000", 11000), "id") == "id"


def test_parse_update_fields():
    """Test the update map guards."""
    with pytest.raises(InputError) as exc_info:
        parse_update_fields(User, {})
    assert exc_info.value.code == ErrorCode.EMPTY_UPDATE

    for key in ("_id", "createdAt", "id"):
        with pytest.raises(ValidationError) as exc_info:
            parse_update_fields(User, {key: "x"})
        assert exc_info.value.field == key

    with pytest.raises(ValidationError):
        parse_update_fields(User, {"isAdmin": True})

    with pytest.raises(ValidationError) as exc_info:
        parse_update_fields(User, {"loginFailCount": "many"})
    assert exc_info.value.field == "loginFailCount"

    partial = parse_update_fields(User, {"displayName": "Alice B.", "bio": "Hi"})
    assert partial.model_fields_set == {"display_name", "bio"}


# ============================================================================
# DocumentStore
# ============================================================================


def test_parse_id():
    """Test empty and malformed ids."""
    with pytest.raises(InputError) as exc_info:
        DocumentStore.parse_id("")
    assert exc_info.value.code == ErrorCode.EMPTY_ID
    assert str(exc_info.value) == "id cannot be empty"

    with pytest.raises(InputError) as exc_info:
        DocumentStore.parse_id("xyz", label="userID")
    assert exc_info.value.code == ErrorCode.INVALID_ID
    assert str(exc_info.value) == "invalid userID format"

    oid = ObjectId()
    assert DocumentStore.parse_id(str(oid)) == oid


@pytest.mark.asyncio
async def test_insert_translates_duplicate_key(store, collection):
    """Test that duplicate keys surface as ConflictError naming the field."""
    collection.insert_one.side_effect = DuplicateKeyError("E11000", 11000, {"keyValue": {"email": "a@b.c"}})
    user = User(username="alice", email="a@b.c")

    with pytest.raises(ConflictError) as exc_info:
        await store.insert(user)
    assert exc_info.value.field == "email"
    assert exc_info.value.code == ErrorCode.EMAIL_EXISTS
    assert exc_info.value.http_status == 409


@pytest.mark.asyncio
async def test_backend_errors_are_wrapped(store, collection):
    """Test that driver errors become BackendError with the cause chained."""
    failure = PyMongoError("connection reset")
    collection.find_one.side_effect = failure

    with pytest.raises(BackendError) as exc_info:
        await store.find_one({"username": "alice"})
    assert exc_info.value.__cause__ is failure
    assert "connection reset" in str(exc_info.value)


@pytest.mark.asyncio
async def test_update_one_without_match_raises_not_found(store, collection):
    """Test that writes matching nothing raise NotFoundError."""
    collection.update_one.return_value.matched_count = 0
    with pytest.raises(NotFoundError):
        await store.update_one({"_id": ObjectId()}, {"$set": {"bio": "x"}})


@pytest.mark.asyncio
async def test_paginate_counts_and_slices(store, collection, make_cursor, user_document):
    """Test skip/limit computation and document decoding."""
    cursor = make_cursor([user_document(), user_document(username="bob")])
    collection.find.return_value = cursor
    collection.count_documents.return_value = 42

    items, total = await store.paginate({"role": "author"}, [("createdAt", -1)], page=3, limit=20)

    assert total == 42
    assert [user.username for user in items] == ["alice", "bob"]
    collection.find.assert_called_once_with({"role": "author"})
    cursor.sort.assert_called_once_with([("createdAt", -1)])
    cursor.skip.assert_called_once_with(40)
    cursor.limit.assert_called_once_with(20)


@pytest.mark.asyncio
async def test_exists_uses_id_projection(store, collection):
    """Test existence checks."""
    collection.find_one.return_value = {"_id": ObjectId()}
    assert await store.exists({"username": "alice"})
    collection.find_one.assert_awaited_once_with({"username": "alice"}, projection={"_id": 1})
