"""
# Page Repository

Persistence for standalone CMS pages in the `pages` collection. Pages share the post
slug rules and publishing lifecycle (see `ContentPublisher`) and add template lookups.

## Module Attributes

Attributes:
    COLLECTION_NAME (str): `pages`.
    INDEXES (List[IndexModel]): Indexes provisioned by `create_indexes()`.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING, TEXT, IndexModel

from heimdall.exceptions import InputError
from heimdall.managers.logging_manager import get_logger
from heimdall.models.constants import (
    DEFAULT_RECENT_LIMIT,
    DEFAULT_SORT_FIELD,
    MAX_PAGE_SIZE,
    PAGE_SORT_FIELDS,
    PostStatus,
)
from heimdall.models.page_models import Page, PageFilter
from heimdall.repositories.base import DocumentStore, build_sort, clamp_limit, keyword_query, parse_update_fields
from heimdall.repositories.publishing import ContentPublisher
from heimdall.utils.text_utils import ensure_utc, utc_now

logger = get_logger(prefix="[PageRepository]")

COLLECTION_NAME = "pages"

INDEXES: List[IndexModel] = [
    IndexModel([("slug", ASCENDING)], unique=True),
    IndexModel([("status", ASCENDING)]),
    IndexModel([("authorId", ASCENDING), ("status", ASCENDING)]),
    IndexModel([("template", ASCENDING), ("status", ASCENDING)]),
    IndexModel([("publishedAt", DESCENDING)]),
    IndexModel([("createdAt", DESCENDING)]),
    IndexModel([("updatedAt", DESCENDING)]),
    IndexModel([("status", ASCENDING), ("publishedAt", ASCENDING)]),
    IndexModel([("title", TEXT), ("content", TEXT)]),
]

KEYWORD_FIELDS = ("title", "content")


class PageRepository:
    """Data access for `Page` documents."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.store: DocumentStore[Page] = DocumentStore(collection, Page, conflict_field="slug")
        self.publishing: ContentPublisher[Page] = ContentPublisher(self.store)

    # --- CRUD ---

    async def create(self, page: Optional[Page]) -> Page:
        if page is None:
            raise InputError("page cannot be empty")
        page.validate_for_create()
        page.prepare_for_insert()
        await self.store.insert(page)
        logger.info("Created page '%s' (%s)", page.slug, page.id)
        return page

    async def get_by_id(self, page_id: str) -> Optional[Page]:
        oid = self.store.parse_id(page_id)
        return await self.store.find_one({"_id": oid})

    async def get_by_slug(self, slug: str) -> Optional[Page]:
        return await self.publishing.get_by_slug(slug)

    async def update(self, page_id: str, fields: Dict[str, Any], now: Optional[datetime] = None) -> None:
        """Apply a partial camelCase update. A draft given a future `publishedAt` becomes `scheduled`."""
        oid = self.store.parse_id(page_id)
        now = ensure_utc(now) or utc_now()
        partial = parse_update_fields(Page, fields)
        partial.validate_for_update(now)

        await self.publishing.apply_update(oid, partial, set(partial.model_fields_set), now)

    async def delete(self, page_id: str) -> None:
        """Soft delete: the page becomes `archived` and is kept."""
        oid = self.store.parse_id(page_id)
        await self.publishing.archive(oid)
        logger.info("Archived page %s", page_id)

    async def list(self, filter: Optional[PageFilter] = None, page: int = 1, limit: int = 10) -> Tuple[List[Page], int]:
        filter = filter or PageFilter()
        return await self.store.paginate(self.build_query(filter), self.build_sort(filter), page, limit)

    # --- Query building ---

    @staticmethod
    def build_query(filter: PageFilter) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if filter.status:
            query["status"] = filter.status
        if filter.template:
            query["template"] = filter.template
        if filter.author_id and ObjectId.is_valid(filter.author_id):
            query["authorId"] = ObjectId(filter.author_id)
        if filter.keyword:
            query.update(keyword_query(filter.keyword, KEYWORD_FIELDS))
        return query

    @staticmethod
    def build_sort(filter: PageFilter) -> List[Tuple[str, int]]:
        return build_sort(filter.sort_by, filter.sort_desc, PAGE_SORT_FIELDS, DEFAULT_SORT_FIELD)

    # --- Listings ---

    async def get_published_list(
        self, filter: Optional[PageFilter] = None, page: int = 1, limit: int = 10
    ) -> Tuple[List[Page], int]:
        filter = (filter or PageFilter()).model_copy(update={"status": PostStatus.PUBLISHED.value})
        return await self.list(filter, page, limit)

    async def get_by_author(
        self, author_id: str, filter: Optional[PageFilter] = None, page: int = 1, limit: int = 10
    ) -> Tuple[List[Page], int]:
        if not author_id:
            raise InputError("author id cannot be empty")
        filter = (filter or PageFilter()).model_copy(update={"author_id": author_id})
        return await self.list(filter, page, limit)

    async def get_by_template(
        self, template: str, filter: Optional[PageFilter] = None, page: int = 1, limit: int = 10
    ) -> Tuple[List[Page], int]:
        if not template:
            raise InputError("template cannot be empty")
        filter = (filter or PageFilter()).model_copy(update={"template": template})
        return await self.list(filter, page, limit)

    async def get_scheduled_pages(self, now: Optional[datetime] = None) -> List[Page]:
        return await self.publishing.get_due(now)

    async def get_recent_pages(self, limit: int = DEFAULT_RECENT_LIMIT) -> List[Page]:
        limit = clamp_limit(limit, DEFAULT_RECENT_LIMIT, MAX_PAGE_SIZE)
        return await self.store.find_many(
            {"status": PostStatus.PUBLISHED.value}, sort=[("publishedAt", -1)], limit=limit
        )

    # --- Writes ---

    async def publish(self, page_id: str, now: Optional[datetime] = None) -> None:
        oid = self.store.parse_id(page_id)
        await self.publishing.publish(oid, now)
        logger.info("Published page %s", page_id)

    async def unpublish(self, page_id: str) -> None:
        oid = self.store.parse_id(page_id)
        await self.publishing.unpublish(oid)
        logger.info("Unpublished page %s", page_id)

    # --- Slugs ---

    async def is_slug_available(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        return await self.publishing.is_slug_available(slug, exclude_id)

    async def generate_unique_slug(self, base: str, exclude_id: Optional[str] = None) -> str:
        return await self.publishing.generate_unique_slug(base, exclude_id)

    async def create_indexes(self) -> List[str]:
        return await self.store.create_indexes(INDEXES)
