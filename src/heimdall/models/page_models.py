"""
# Page Models

Standalone CMS pages ("About", "Contact", ...). A page shares the post's slug rules and
publishing lifecycle but has no tags, excerpt, visibility or view counter. Instead it
names the `template` used to render it (default `"default"`).

Valid page statuses are `draft`, `published`, `scheduled` and `archived`.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from heimdall.models.common_models import (
    ApiModel,
    AuthorInfo,
    check_choice,
    check_max_length,
    check_request_slug,
    clean_plain_text,
    require,
)
from heimdall.models.constants import (
    PAGE_STATUSES,
    PAGE_TEMPLATE_DEFAULT,
    PAGE_TEMPLATE_MAX_LENGTH,
    POST_CANONICAL_URL_MAX_LENGTH,
    POST_CONTENT_MAX_LENGTH,
    POST_FEATURED_IMAGE_MAX_LENGTH,
    POST_META_DESCRIPTION_MAX_LENGTH,
    POST_META_TITLE_MAX_LENGTH,
    POST_SLUG_MAX_LENGTH,
    POST_TITLE_MAX_LENGTH,
    PostStatus,
)
from heimdall.models.content_models import PublishableModel


class Page(PublishableModel):
    """
    CMS page stored in the `pages` collection.

    Attributes:
        content (str): Markdown source, at most 1,000,000 characters.
        template (str): Rendering template name, at most 100 characters.
    """

    content: str = ""
    template: str = PAGE_TEMPLATE_DEFAULT

    def validate_for_create(self, now: Optional[datetime] = None) -> None:
        """Check every creation rule, raising `ValidationError` for the first one violated."""
        require("title", self.title, "title")
        require("content", self.content, "content")
        require("status", self.status, "page status")
        self._check_author_id()

        self._check_common_lengths()
        self._check_lengths()
        self._check_seo_lengths()

        check_choice("status", self.status, PAGE_STATUSES, "page status")
        self._check_slug_format()
        self._check_schedule(now)

    def validate_for_update(self, now: Optional[datetime] = None) -> None:
        provided = self.model_fields_set

        if "title" in provided:
            require("title", self.title, "title")
        if "content" in provided:
            require("content", self.content, "content")
        if "slug" in provided:
            require("slug", self.slug, "slug")
        if "author_id" in provided:
            self._check_author_id()

        self._check_common_lengths()
        self._check_lengths()
        self._check_seo_lengths()

        if "status" in provided:
            check_choice("status", self.status, PAGE_STATUSES, "page status")
        self._check_slug_format()
        if "status" in provided:
            self._check_schedule(now)

    def _check_lengths(self) -> None:
        check_max_length("content", self.content, POST_CONTENT_MAX_LENGTH, "content")
        check_max_length("template", self.template, PAGE_TEMPLATE_MAX_LENGTH, "template")

    def prepare_for_insert(self) -> None:
        self._stamp_insert()
        if not self.template:
            self.template = PAGE_TEMPLATE_DEFAULT

    def to_detail_response(self, author: Optional[AuthorInfo] = None) -> "PageDetailResponse":
        return PageDetailResponse(
            id=self.id or "",
            title=self.title,
            slug=self.slug,
            content=self.content,
            html=self.html,
            author=author,
            status=self.status,
            template=self.template,
            meta_title=self.meta_title,
            meta_description=self.meta_description,
            featured_image=self.featured_image,
            canonical_url=self.canonical_url,
            published_at=self.published_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def to_list_item(self, author: Optional[AuthorInfo] = None) -> "PageListItem":
        return PageListItem(
            id=self.id or "",
            title=self.title,
            slug=self.slug,
            author=author,
            status=self.status,
            template=self.template,
            featured_image=self.featured_image,
            published_at=self.published_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class PageCreateRequest(ApiModel):
    title: str = Field(..., min_length=1, max_length=POST_TITLE_MAX_LENGTH)
    slug: str = Field(default="", max_length=POST_SLUG_MAX_LENGTH)
    content: str = Field(..., min_length=1, max_length=POST_CONTENT_MAX_LENGTH)
    html: str = ""
    status: PostStatus = PostStatus.DRAFT
    template: str = Field(default=PAGE_TEMPLATE_DEFAULT, max_length=PAGE_TEMPLATE_MAX_LENGTH)
    meta_title: str = Field(default="", max_length=POST_META_TITLE_MAX_LENGTH)
    meta_description: str = Field(default="", max_length=POST_META_DESCRIPTION_MAX_LENGTH)
    featured_image: str = Field(default="", max_length=POST_FEATURED_IMAGE_MAX_LENGTH)
    canonical_url: str = Field(default="", max_length=POST_CANONICAL_URL_MAX_LENGTH)
    published_at: Optional[datetime] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return clean_plain_text(v)

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v):
        return check_request_slug(v)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v.value not in PAGE_STATUSES:
            raise ValueError(f"Pages cannot use status {v.value!r}")
        return v

    def to_page(self, author_id: str) -> Page:
        return Page(
            title=self.title,
            slug=self.slug,
            content=self.content,
            html=self.html,
            author_id=author_id,
            status=self.status.value,
            template=self.template or PAGE_TEMPLATE_DEFAULT,
            meta_title=self.meta_title,
            meta_description=self.meta_description,
            featured_image=self.featured_image,
            canonical_url=self.canonical_url,
            published_at=self.published_at,
        )


class PageUpdateRequest(ApiModel):
    """Partial update of a page. Only fields present in the request are written."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=POST_TITLE_MAX_LENGTH)
    slug: Optional[str] = Field(default=None, min_length=1, max_length=POST_SLUG_MAX_LENGTH)
    content: Optional[str] = Field(default=None, min_length=1, max_length=POST_CONTENT_MAX_LENGTH)
    html: Optional[str] = None
    status: Optional[PostStatus] = None
    template: Optional[str] = Field(default=None, max_length=PAGE_TEMPLATE_MAX_LENGTH)
    meta_title: Optional[str] = Field(default=None, max_length=POST_META_TITLE_MAX_LENGTH)
    meta_description: Optional[str] = Field(default=None, max_length=POST_META_DESCRIPTION_MAX_LENGTH)
    featured_image: Optional[str] = Field(default=None, max_length=POST_FEATURED_IMAGE_MAX_LENGTH)
    canonical_url: Optional[str] = Field(default=None, max_length=POST_CANONICAL_URL_MAX_LENGTH)
    published_at: Optional[datetime] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return clean_plain_text(v) if v is not None else v

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v):
        return check_request_slug(v)

    def to_update_fields(self) -> dict:
        fields = self.model_dump(by_alias=True, exclude_none=True, exclude={"published_at"}, mode="json")
        if self.published_at is not None:
            fields["publishedAt"] = self.published_at
        return fields


class PageDetailResponse(ApiModel):
    id: str
    title: str
    slug: str
    content: str = ""
    html: str = ""
    author: Optional[AuthorInfo] = None
    status: str
    template: str = PAGE_TEMPLATE_DEFAULT
    meta_title: str = ""
    meta_description: str = ""
    featured_image: str = ""
    canonical_url: str = ""
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PageListItem(ApiModel):
    id: str
    title: str
    slug: str
    author: Optional[AuthorInfo] = None
    status: str
    template: str = PAGE_TEMPLATE_DEFAULT
    featured_image: str = ""
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PageFilter(ApiModel):
    """Filter for `PageRepository.list()`. Empty strings mean "no filter"."""

    status: str = ""
    template: str = ""
    author_id: str = ""
    keyword: str = ""
    sort_by: str = ""
    sort_desc: bool = True
