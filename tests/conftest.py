"""
Shared fixtures for the Heimdall test suite.

Repositories are exercised against a mocked Motor collection: every coroutine method is an
`AsyncMock` and `find()` / `aggregate()` return a chainable cursor whose `to_list()` result
can be set per test.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId


def _cursor(documents=None):
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=list(documents or []))
    return cursor


@pytest.fixture
def make_cursor():
    return _cursor


@pytest.fixture
def collection():
    """Mocked `AsyncIOMotorCollection` with write results that match one document."""
    coll = MagicMock()
    coll.name = "test_collection"
    coll.find.return_value = _cursor()
    coll.aggregate.return_value = _cursor()
    coll.insert_one = AsyncMock()
    coll.update_one = AsyncMock(return_value=MagicMock(matched_count=1, modified_count=1))
    coll.find_one = AsyncMock(return_value=None)
    coll.find_one_and_update = AsyncMock(return_value=None)
    coll.count_documents = AsyncMock(return_value=0)
    coll.distinct = AsyncMock(return_value=[])
    coll.create_indexes = AsyncMock(side_effect=lambda indexes: [f"index_{i}" for i in range(len(indexes))])
    return coll


@pytest.fixture
def now():
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def author_id():
    return str(ObjectId())


@pytest.fixture
def user_document():
    """Factory for raw `users` documents as MongoDB returns them."""

    def build(**overrides):
        document = {
            "_id": ObjectId(),
            "username": "alice",
            "email": "alice@example.com",
            "passwordHash": "$2b$12$hash",
            "displayName": "Alice",
            "role": "author",
            "status": "active",
            "loginFailCount": 0,
            "createdAt": datetime(2026, 1, 1, tzinfo=timezone.utc),
            "updatedAt": datetime(2026, 1, 1, tzinfo=timezone.utc),
        }
        document.update(overrides)
        return document

    return build


@pytest.fixture
def post_document():
    """Factory for raw `posts` documents."""

    def build(**overrides):
        document = {
            "_id": ObjectId(),
            "title": "Hello World",
            "slug": "hello-world",
            "excerpt": "First post.",
            "markdown": "First post.",
            "type": "post",
            "status": "published",
            "visibility": "public",
            "authorId": ObjectId(),
            "tags": [{"name": "Go", "slug": "go"}],
            "readingTime": 1,
            "wordCount": 2,
            "viewCount": 0,
            "publishedAt": datetime(2026, 2, 1, tzinfo=timezone.utc),
            "createdAt": datetime(2026, 2, 1, tzinfo=timezone.utc),
            "updatedAt": datetime(2026, 2, 1, tzinfo=timezone.utc),
        }
        document.update(overrides)
        return document

    return build
