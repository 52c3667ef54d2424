"""
# Publishing Helpers

Slug and status operations shared by the post and page repositories. Each repository
composes a `ContentPublisher` around its own `DocumentStore`.

Status writes are single-document updates:

- `publish()` uses an update pipeline so `publishedAt` is only filled when absent,
  keeping the scheduled time of a post published by the sweep.
- `apply_update()` folds the draft to `scheduled` promotion into the field update when
  a future `publishedAt` arrives without a status, so a partial update is one write.
"""

from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, Set

from bson import ObjectId

from heimdall.exceptions import ConflictError, InputError
from heimdall.managers.logging_manager import get_logger
from heimdall.models.constants import POST_SLUG_MAX_LENGTH, UNIQUE_SLUG_MAX_ATTEMPTS, PostStatus
from heimdall.repositories.base import DocumentStore, T
from heimdall.utils.text_utils import ensure_utc, generate_slug, is_valid_slug, utc_now

logger = get_logger(prefix="[Publishing]")


def schedules_draft(partial: Any, include: Set[str], now: datetime) -> bool:
    """Whether an update sets a future `publishedAt` and leaves `status` alone."""
    if "published_at" not in include or "status" in include or partial.published_at is None:
        return False
    return ensure_utc(partial.published_at) > ensure_utc(now)


class ContentPublisher(Generic[T]):
    """Slug lookups and lifecycle writes for a posts-like collection."""

    def __init__(self, store: DocumentStore[T]):
        self.store = store

    # --- Slugs ---

    async def get_by_slug(self, slug: str) -> Optional[T]:
        if not slug:
            raise InputError("slug cannot be empty")
        return await self.store.find_one({"slug": slug})

    async def is_slug_available(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        """Whether no other document uses `slug`. `exclude_id` skips the document being edited."""
        query: Dict[str, Any] = {"slug": slug}
        if exclude_id and ObjectId.is_valid(exclude_id):
            query["_id"] = {"$ne": ObjectId(exclude_id)}
        return not await self.store.exists(query)

    async def generate_unique_slug(self, base: str, exclude_id: Optional[str] = None) -> str:
        """
        First free slug among `base`, `base-1` ... `base-100`.

        `base` is slugified first when it is not already a valid slug.

        Raises:
            ConflictError: every candidate is taken.
        """
        if not is_valid_slug(base):
            base = generate_slug(base)
        if await self.is_slug_available(base, exclude_id):
            return base

        for attempt in range(1, UNIQUE_SLUG_MAX_ATTEMPTS + 1):
            suffix = f"-{attempt}"
            candidate = base[: POST_SLUG_MAX_LENGTH - len(suffix)].rstrip("-") + suffix
            if await self.is_slug_available(candidate, exclude_id):
                return candidate

        logger.warning("No free slug left for base '%s' in '%s'", base, self.store.name)
        raise ConflictError("slug", f"no available slug for {base!r}")

    # --- Status ---

    async def publish(self, oid: ObjectId, now: Optional[datetime] = None) -> None:
        now = ensure_utc(now) or utc_now()
        await self.store.update_one(
            {"_id": oid},
            [
                {
                    "$set": {
                        "status": PostStatus.PUBLISHED.value,
                        "publishedAt": {"$ifNull": ["$publishedAt", now]},
                        "updatedAt": now,
                    }
                }
            ],
        )

    async def unpublish(self, oid: ObjectId) -> None:
        await self.store.update_one(
            {"_id": oid},
            {"$set": {"status": PostStatus.DRAFT.value, "updatedAt": utc_now()}},
        )

    async def archive(self, oid: ObjectId) -> None:
        await self.store.update_one(
            {"_id": oid},
            {"$set": {"status": PostStatus.ARCHIVED.value, "updatedAt": utc_now()}},
        )

    async def apply_update(self, oid: ObjectId, partial: T, include: Set[str], now: datetime) -> None:
        """
        Write the `include`d fields of `partial` in a single update.

        When the update sets a future `publishedAt` without touching `status`, the same
        write moves a draft to `scheduled`. Documents in any other status keep theirs.
        """
        update_set = partial.to_document(include=include)
        update_set["updatedAt"] = now

        if not schedules_draft(partial, include, now):
            await self.store.update_one({"_id": oid}, {"$set": update_set})
            return

        stage: Dict[str, Any] = {key: {"$literal": value} for key, value in update_set.items()}
        stage["status"] = {
            "$cond": [
                {"$eq": ["$status", PostStatus.DRAFT.value]},
                PostStatus.SCHEDULED.value,
                "$status",
            ]
        }
        await self.store.update_one({"_id": oid}, [{"$set": stage}])

    async def get_due(self, now: Optional[datetime] = None) -> List[T]:
        """Scheduled documents whose publish time has come."""
        query = {"status": PostStatus.SCHEDULED.value, "publishedAt": {"$lte": now or utc_now()}}
        return await self.store.find_many(query)
