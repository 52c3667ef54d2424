"""
# Post Repository

Persistence for blog posts in the `posts` collection.

Besides the uniform CRUD contract this repository serves the public listings
(`get_published_list`, `get_popular_posts`, `get_recent_posts`), the author and tag
listings, the scheduled-publish scan and the atomic view counter.

## Module Attributes

Attributes:
    COLLECTION_NAME (str): `posts`.
    INDEXES (List[IndexModel]): Indexes provisioned by `create_indexes()`.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING, TEXT, IndexModel

from heimdall.exceptions import InputError
from heimdall.managers.logging_manager import get_logger
from heimdall.models.constants import (
    DEFAULT_POPULAR_DAYS,
    DEFAULT_POPULAR_LIMIT,
    DEFAULT_RECENT_LIMIT,
    DEFAULT_SORT_FIELD,
    MAX_PAGE_SIZE,
    POST_SORT_FIELDS,
    PostStatus,
    PostVisibility,
)
from heimdall.models.post_models import Post, PostFilter, build_tags
from heimdall.repositories.base import DocumentStore, build_sort, clamp_limit, keyword_query, parse_update_fields
from heimdall.repositories.publishing import ContentPublisher
from heimdall.utils.text_utils import ensure_utc, utc_now

logger = get_logger(prefix="[PostRepository]")

COLLECTION_NAME = "posts"

INDEXES: List[IndexModel] = [
    IndexModel([("slug", ASCENDING)], unique=True),
    IndexModel([("status", ASCENDING), ("visibility", ASCENDING)]),
    IndexModel([("authorId", ASCENDING), ("status", ASCENDING)]),
    IndexModel([("tags.slug", ASCENDING), ("status", ASCENDING)]),
    IndexModel([("type", ASCENDING)]),
    IndexModel([("publishedAt", DESCENDING)]),
    IndexModel([("createdAt", DESCENDING)]),
    IndexModel([("updatedAt", DESCENDING)]),
    IndexModel([("viewCount", DESCENDING)]),
    IndexModel([("status", ASCENDING), ("publishedAt", ASCENDING)]),
    IndexModel([("title", TEXT), ("excerpt", TEXT), ("markdown", TEXT)]),
]

KEYWORD_FIELDS = ("title", "excerpt", "markdown")

# Derived from markdown, never written directly
DERIVED_FIELDS = ("wordCount", "word_count", "readingTime", "reading_time")


class PostRepository:
    """Data access for `Post` documents."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.store: DocumentStore[Post] = DocumentStore(collection, Post, conflict_field="slug")
        self.publishing: ContentPublisher[Post] = ContentPublisher(self.store)

    # --- CRUD ---

    async def create(self, post: Optional[Post]) -> Post:
        """
        Validate, derive slug/excerpt/metrics and insert a new post.

        Raises:
            InputError: `post` is `None`.
            ValidationError: a field breaks a domain rule.
            ConflictError: the slug is already taken.
            BackendError: any other storage failure.
        """
        if post is None:
            raise InputError("post cannot be empty")
        post.validate_for_create()
        post.prepare_for_insert()
        await self.store.insert(post)
        logger.info("Created post '%s' (%s)", post.slug, post.id)
        return post

    async def get_by_id(self, post_id: str) -> Optional[Post]:
        oid = self.store.parse_id(post_id)
        return await self.store.find_one({"_id": oid})

    async def get_by_slug(self, slug: str) -> Optional[Post]:
        return await self.publishing.get_by_slug(slug)

    async def update(self, post_id: str, fields: Dict[str, Any], now: Optional[datetime] = None) -> None:
        """
        Apply a partial camelCase update.

        A new `markdown` recomputes `wordCount` and `readingTime`; tag slugs left blank are
        derived from the tag names. A draft given a future `publishedAt` becomes `scheduled`.
        """
        oid = self.store.parse_id(post_id)
        now = ensure_utc(now) or utc_now()
        partial = parse_update_fields(Post, fields, protected=DERIVED_FIELDS)
        partial.validate_for_update(now)

        include = set(partial.model_fields_set)
        if "tags" in include:
            partial.tags = build_tags(partial.tags)
        if "markdown" in include:
            partial.update_content_metrics()
            include.update({"word_count", "reading_time"})

        await self.publishing.apply_update(oid, partial, include, now)

    async def delete(self, post_id: str) -> None:
        """Soft delete: the post becomes `archived` and is kept."""
        oid = self.store.parse_id(post_id)
        await self.publishing.archive(oid)
        logger.info("Archived post %s", post_id)

    async def list(self, filter: Optional[PostFilter] = None, page: int = 1, limit: int = 10) -> Tuple[List[Post], int]:
        filter = filter or PostFilter()
        return await self.store.paginate(self.build_query(filter), self.build_sort(filter), page, limit)

    # --- Query building ---

    @staticmethod
    def build_query(filter: PostFilter) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if filter.status:
            query["status"] = filter.status
        if filter.type:
            query["type"] = filter.type
        if filter.visibility:
            query["visibility"] = filter.visibility
        if filter.author_id and ObjectId.is_valid(filter.author_id):
            query["authorId"] = ObjectId(filter.author_id)
        if filter.tag:
            query["tags.slug"] = filter.tag
        if filter.keyword:
            query.update(keyword_query(filter.keyword, KEYWORD_FIELDS))
        return query

    @staticmethod
    def build_sort(filter: PostFilter) -> List[Tuple[str, int]]:
        return build_sort(filter.sort_by, filter.sort_desc, POST_SORT_FIELDS, DEFAULT_SORT_FIELD)

    # --- Listings ---

    async def get_published_list(
        self, filter: Optional[PostFilter] = None, page: int = 1, limit: int = 10
    ) -> Tuple[List[Post], int]:
        """Published public posts only, whatever `filter.status` and `filter.visibility` say."""
        filter = (filter or PostFilter()).model_copy(
            update={"status": PostStatus.PUBLISHED.value, "visibility": PostVisibility.PUBLIC.value}
        )
        return await self.list(filter, page, limit)

    async def get_by_author(
        self, author_id: str, filter: Optional[PostFilter] = None, page: int = 1, limit: int = 10
    ) -> Tuple[List[Post], int]:
        if not author_id:
            raise InputError("author id cannot be empty")
        filter = (filter or PostFilter()).model_copy(update={"author_id": author_id})
        return await self.list(filter, page, limit)

    async def get_by_tag(
        self, tag_slug: str, filter: Optional[PostFilter] = None, page: int = 1, limit: int = 10
    ) -> Tuple[List[Post], int]:
        if not tag_slug:
            raise InputError("tag slug cannot be empty")
        filter = (filter or PostFilter()).model_copy(update={"tag": tag_slug})
        return await self.list(filter, page, limit)

    async def get_scheduled_posts(self, now: Optional[datetime] = None) -> List[Post]:
        """Scheduled posts whose `publishedAt` has passed, unpaginated."""
        return await self.publishing.get_due(now)

    async def get_popular_posts(
        self, limit: int = DEFAULT_POPULAR_LIMIT, days: int = DEFAULT_POPULAR_DAYS, now: Optional[datetime] = None
    ) -> List[Post]:
        """Most viewed published public posts of the last `days` days."""
        limit = clamp_limit(limit, DEFAULT_POPULAR_LIMIT, MAX_PAGE_SIZE)
        if days < 1:
            days = DEFAULT_POPULAR_DAYS
        since = (now or utc_now()) - timedelta(days=days)
        query = {
            "status": PostStatus.PUBLISHED.value,
            "visibility": PostVisibility.PUBLIC.value,
            "publishedAt": {"$gte": since},
        }
        return await self.store.find_many(query, sort=[("viewCount", -1), ("publishedAt", -1)], limit=limit)

    async def get_recent_posts(self, limit: int = DEFAULT_RECENT_LIMIT) -> List[Post]:
        limit = clamp_limit(limit, DEFAULT_RECENT_LIMIT, MAX_PAGE_SIZE)
        query = {"status": PostStatus.PUBLISHED.value, "visibility": PostVisibility.PUBLIC.value}
        return await self.store.find_many(query, sort=[("publishedAt", -1)], limit=limit)

    # --- Writes ---

    async def increment_view_count(self, post_id: str) -> None:
        oid = self.store.parse_id(post_id)
        await self.store.update_one({"_id": oid}, {"$inc": {"viewCount": 1}, "$set": {"updatedAt": utc_now()}})

    async def publish(self, post_id: str, now: Optional[datetime] = None) -> None:
        """Set `published`, keeping an existing `publishedAt` and filling it with now otherwise."""
        oid = self.store.parse_id(post_id)
        await self.publishing.publish(oid, now)
        logger.info("Published post %s", post_id)

    async def unpublish(self, post_id: str) -> None:
        oid = self.store.parse_id(post_id)
        await self.publishing.unpublish(oid)
        logger.info("Unpublished post %s", post_id)

    # --- Slugs ---

    async def is_slug_available(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        return await self.publishing.is_slug_available(slug, exclude_id)

    async def generate_unique_slug(self, base: str, exclude_id: Optional[str] = None) -> str:
        return await self.publishing.generate_unique_slug(base, exclude_id)

    async def create_indexes(self) -> List[str]:
        return await self.store.create_indexes(INDEXES)
