"""
# Publishable Content Base

Fields and lifecycle shared by posts and pages: slug handling, SEO metadata and the
publishing state machine.

| From → To | Trigger | Side effects |
|---|---|---|
| draft → published | `publish()` | `published_at = now` if absent |
| scheduled → published | scheduled-publish sweep | same |
| draft → scheduled | `schedule(at)` | `published_at = at`, must be in the future |
| any → archived | `archive()` (soft delete) | `updated_at = now` |
| published → draft | `unpublish()` | `published_at` kept |
"""

from datetime import datetime
from typing import ClassVar, Optional, Tuple

from bson import ObjectId

from heimdall.exceptions import ValidationError
from heimdall.models.common_models import MongoModel, check_max_length
from heimdall.models.constants import (
    POST_CANONICAL_URL_MAX_LENGTH,
    POST_FEATURED_IMAGE_MAX_LENGTH,
    POST_META_DESCRIPTION_MAX_LENGTH,
    POST_META_TITLE_MAX_LENGTH,
    POST_SLUG_MAX_LENGTH,
    POST_TITLE_MAX_LENGTH,
    PostStatus,
)
from heimdall.utils.text_utils import ensure_utc, generate_slug, is_valid_slug, utc_now


class PublishableModel(MongoModel):
    """
    Base entity for posts and pages.

    Attributes:
        title (str): 1 to 255 characters.
        slug (str): Unique URL segment matching `SLUG_PATTERN`.
        html (str): Rendered HTML, produced outside this package.
        status (str): Lifecycle state.
        author_id (Optional[str]): Hex id of the owning user.
        published_at (Optional[datetime]): First publication time, or the scheduled time.
    """

    OBJECT_ID_FIELDS: ClassVar[Tuple[str, ...]] = ("id", "author_id")

    title: str = ""
    slug: str = ""
    html: str = ""
    featured_image: str = ""
    status: str = ""
    author_id: Optional[str] = None
    meta_title: str = ""
    meta_description: str = ""
    canonical_url: str = ""
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # --- Shared validation ---

    def _check_common_lengths(self) -> None:
        check_max_length("title", self.title, POST_TITLE_MAX_LENGTH, "title")
        check_max_length("slug", self.slug, POST_SLUG_MAX_LENGTH, "slug")

    def _check_seo_lengths(self) -> None:
        check_max_length("metaTitle", self.meta_title, POST_META_TITLE_MAX_LENGTH, "SEO title")
        check_max_length(
            "metaDescription", self.meta_description, POST_META_DESCRIPTION_MAX_LENGTH, "SEO description"
        )
        check_max_length("canonicalUrl", self.canonical_url, POST_CANONICAL_URL_MAX_LENGTH, "canonical URL")
        check_max_length("featuredImage", self.featured_image, POST_FEATURED_IMAGE_MAX_LENGTH, "featured image URL")

    def _check_slug_format(self) -> None:
        if self.slug and not is_valid_slug(self.slug):
            raise ValidationError("slug", "slug may only contain lowercase letters, digits and single hyphens")

    def _check_author_id(self) -> None:
        if not self.author_id:
            raise ValidationError("authorId", "author id is required")
        if not ObjectId.is_valid(self.author_id):
            raise ValidationError("authorId", "invalid author id format")

    def _check_schedule(self, now: Optional[datetime] = None) -> None:
        if self.status != PostStatus.SCHEDULED:
            return
        if self.published_at is None:
            raise ValidationError("publishedAt", "scheduled content needs a publish time")
        if ensure_utc(self.published_at) <= (ensure_utc(now) or utc_now()):
            raise ValidationError("publishedAt", "scheduled publish time must be in the future")

    # --- Predicates ---

    def is_published(self) -> bool:
        return self.status == PostStatus.PUBLISHED

    def is_draft(self) -> bool:
        return self.status == PostStatus.DRAFT

    def is_scheduled(self) -> bool:
        return self.status == PostStatus.SCHEDULED

    def is_archived(self) -> bool:
        return self.status == PostStatus.ARCHIVED

    def can_be_published(self) -> bool:
        return self.status in (PostStatus.DRAFT, PostStatus.SCHEDULED)

    def should_be_published_now(self, now: Optional[datetime] = None) -> bool:
        if not self.is_scheduled() or self.published_at is None:
            return False
        return ensure_utc(self.published_at) <= (ensure_utc(now) or utc_now())

    # --- Slug ---

    def generate_slug(self) -> str:
        return generate_slug(self.title)

    def ensure_slug(self) -> None:
        """Fill the slug from the title when it is absent."""
        if not self.slug:
            self.slug = self.generate_slug()

    # --- Lifecycle ---

    def _stamp_insert(self) -> None:
        now = utc_now()
        if not self.id:
            self.id = str(ObjectId())
        self.created_at = now
        self.updated_at = now
        if not self.status:
            self.status = PostStatus.DRAFT.value
        self.ensure_slug()

    def prepare_for_update(self) -> None:
        self.updated_at = utc_now()

    def publish(self, now: Optional[datetime] = None) -> None:
        now = ensure_utc(now) or utc_now()
        self.status = PostStatus.PUBLISHED.value
        if self.published_at is None:
            self.published_at = now
        self.updated_at = now

    def unpublish(self) -> None:
        self.status = PostStatus.DRAFT.value
        self.updated_at = utc_now()

    def schedule(self, publish_at: datetime, now: Optional[datetime] = None) -> None:
        """Queue for publication at `publish_at`, which must lie in the future."""
        now = ensure_utc(now) or utc_now()
        publish_at = ensure_utc(publish_at)
        if publish_at <= now:
            raise ValidationError("publishedAt", "scheduled publish time must be in the future")
        self.status = PostStatus.SCHEDULED.value
        self.published_at = publish_at
        self.updated_at = now

    def archive(self) -> None:
        self.status = PostStatus.ARCHIVED.value
        self.updated_at = utc_now()
