"""
# Post Models

This module defines the **blog post** entity, its embedded tags and the request,
response and filter shapes used by the admin API.

## Domain Overview

- **Post**: Markdown article with a unique slug, an embedded tag list, SEO metadata and
  derived metrics (`word_count`, `reading_time`, `excerpt`).
- **Tag**: `{name, slug}` pair embedded in the post; the slug is derived from the name when blank.
- **Visibility**: `public`, `members_only` or `private`. Only public published posts appear in
  public listings, popular and recent queries.

## Derived Fields

Computed in `prepare_for_insert()` (and on markdown updates):
- `slug` from the title when missing.
- `excerpt` as the first 200 characters of the stripped markdown when missing.
- `word_count` (CJK characters count individually) and
  `reading_time = clamp(ceil(word_count / 200), 1, 999)` minutes.

## Usage Example

```python
post = Post(
    title="Hello World", markdown="# Hi\\n\\nFirst post.", type="post",
    status="draft", visibility="public", author_id=str(author.id),
)
post.validate_for_create()
post.prepare_for_insert()
assert post.slug == "hello-world"
```
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from heimdall.exceptions import ValidationError
from heimdall.models.common_models import (
    ApiModel,
    AuthorInfo,
    Tag,
    check_choice,
    check_max_length,
    check_request_slug,
    clean_plain_text,
    require,
)
from heimdall.models.constants import (
    DEFAULT_EXCERPT_LENGTH,
    POST_CANONICAL_URL_MAX_LENGTH,
    POST_CONTENT_MAX_LENGTH,
    POST_EXCERPT_MAX_LENGTH,
    POST_FEATURED_IMAGE_MAX_LENGTH,
    POST_META_DESCRIPTION_MAX_LENGTH,
    POST_META_TITLE_MAX_LENGTH,
    POST_SLUG_MAX_LENGTH,
    POST_STATUSES,
    POST_TAG_MAX_COUNT,
    POST_TAG_NAME_MAX_LENGTH,
    POST_TITLE_MAX_LENGTH,
    POST_TYPES,
    POST_VISIBILITIES,
    PostStatus,
    PostType,
    PostVisibility,
    calculate_reading_time,
)
from heimdall.models.content_models import PublishableModel
from heimdall.utils.text_utils import count_words, generate_excerpt, generate_slug, is_valid_slug, utc_now


def build_tags(tags: List[Tag]) -> List[Tag]:
    """Copy `tags`, deriving each blank slug from the tag name."""
    return [Tag(name=tag.name, slug=tag.slug or generate_slug(tag.name)) for tag in tags]


def validate_tags(tags: List[Tag]) -> None:
    if len(tags) > POST_TAG_MAX_COUNT:
        raise ValidationError("tags", f"a post can have at most {POST_TAG_MAX_COUNT} tags")
    for position, tag in enumerate(tags, start=1):
        if not tag.name:
            raise ValidationError("tags", f"tag #{position} needs a name")
        if len(tag.name) > POST_TAG_NAME_MAX_LENGTH:
            raise ValidationError(
                "tags", f"tag #{position} name must be at most {POST_TAG_NAME_MAX_LENGTH} characters"
            )
        if tag.slug and not is_valid_slug(tag.slug):
            raise ValidationError("tags", f"tag #{position} has an invalid slug")


class Post(PublishableModel):
    """
    Blog post stored in the `posts` collection.

    Attributes:
        excerpt (str): Plain-text summary, at most 500 characters.
        markdown (str): Markdown source, at most 1,000,000 characters.
        type (str): `post` or `page`.
        visibility (str): `public`, `members_only` or `private`.
        tags (List[Tag]): At most 20 embedded tags.
        reading_time (int): Minutes, 1 to 999.
        word_count (int): Words in the markdown source.
        view_count (int): Monotonic, incremented atomically by the repository.
    """

    excerpt: str = ""
    markdown: str = ""
    type: str = ""
    visibility: str = ""
    tags: List[Tag] = Field(default_factory=list)
    reading_time: int = 0
    word_count: int = 0
    view_count: int = 0

    # --- Validation ---

    def validate_for_create(self, now: Optional[datetime] = None) -> None:
        """Check every creation rule, raising `ValidationError` for the first one violated."""
        require("title", self.title, "title")
        require("markdown", self.markdown, "content")
        require("type", self.type, "post type")
        require("status", self.status, "post status")
        require("visibility", self.visibility, "visibility")
        self._check_author_id()

        self._check_common_lengths()
        self._check_lengths()
        self._check_seo_lengths()
        validate_tags(self.tags)

        check_choice("type", self.type, POST_TYPES, "post type")
        check_choice("status", self.status, POST_STATUSES, "post status")
        check_choice("visibility", self.visibility, POST_VISIBILITIES, "visibility")
        self._check_slug_format()
        self._check_schedule(now)

    def validate_for_update(self, now: Optional[datetime] = None) -> None:
        """Check only the fields explicitly set on this instance."""
        provided = self.model_fields_set

        if "title" in provided:
            require("title", self.title, "title")
        if "markdown" in provided:
            require("markdown", self.markdown, "content")
        if "slug" in provided:
            require("slug", self.slug, "slug")
        if "author_id" in provided:
            self._check_author_id()

        self._check_common_lengths()
        self._check_lengths()
        self._check_seo_lengths()
        if "tags" in provided:
            validate_tags(self.tags)

        if "type" in provided:
            check_choice("type", self.type, POST_TYPES, "post type")
        if "status" in provided:
            check_choice("status", self.status, POST_STATUSES, "post status")
        if "visibility" in provided:
            check_choice("visibility", self.visibility, POST_VISIBILITIES, "visibility")
        self._check_slug_format()
        if "status" in provided:
            self._check_schedule(now)
        if "view_count" in provided and self.view_count < 0:
            raise ValidationError("viewCount", "view count cannot be negative")

    def _check_lengths(self) -> None:
        check_max_length("excerpt", self.excerpt, POST_EXCERPT_MAX_LENGTH, "excerpt")
        check_max_length("markdown", self.markdown, POST_CONTENT_MAX_LENGTH, "content")

    # --- Predicates ---

    def is_public(self) -> bool:
        return self.visibility == PostVisibility.PUBLIC

    # --- Content metrics ---

    def calculate_word_count(self) -> int:
        return count_words(self.markdown)

    def calculate_reading_time(self) -> int:
        return calculate_reading_time(self.word_count)

    def update_content_metrics(self) -> None:
        self.word_count = self.calculate_word_count()
        self.reading_time = self.calculate_reading_time()

    def generate_excerpt(self, limit: int = DEFAULT_EXCERPT_LENGTH) -> str:
        return generate_excerpt(self.markdown, limit)

    def ensure_excerpt(self) -> None:
        if not self.excerpt:
            self.excerpt = self.generate_excerpt(DEFAULT_EXCERPT_LENGTH)

    # --- Lifecycle ---

    def prepare_for_insert(self) -> None:
        """Assign id and timestamps, derive slug, excerpt and metrics, fill defaults."""
        self._stamp_insert()
        if not self.type:
            self.type = PostType.POST.value
        if not self.visibility:
            self.visibility = PostVisibility.PUBLIC.value
        self.tags = build_tags(self.tags)
        self.ensure_excerpt()
        self.update_content_metrics()

    def prepare_for_update(self) -> None:
        super().prepare_for_update()
        self.update_content_metrics()

    def increment_view_count(self) -> None:
        self.view_count += 1
        self.updated_at = utc_now()

    # --- Converters ---

    def to_detail_response(self, author: Optional[AuthorInfo] = None) -> "PostDetailResponse":
        return PostDetailResponse(
            id=self.id or "",
            title=self.title,
            slug=self.slug,
            excerpt=self.excerpt,
            markdown=self.markdown,
            html=self.html,
            featured_image=self.featured_image,
            type=self.type,
            status=self.status,
            visibility=self.visibility,
            author=author,
            tags=self.tags,
            meta_title=self.meta_title,
            meta_description=self.meta_description,
            canonical_url=self.canonical_url,
            reading_time=self.reading_time,
            word_count=self.word_count,
            view_count=self.view_count,
            published_at=self.published_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def to_list_item(self, author: Optional[AuthorInfo] = None) -> "PostListItem":
        return PostListItem(
            id=self.id or "",
            title=self.title,
            slug=self.slug,
            excerpt=self.excerpt,
            featured_image=self.featured_image,
            type=self.type,
            status=self.status,
            visibility=self.visibility,
            author=author,
            tags=self.tags,
            reading_time=self.reading_time,
            view_count=self.view_count,
            published_at=self.published_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


# --- Requests ---


class TagInfo(ApiModel):
    name: str = Field(..., min_length=1, max_length=POST_TAG_NAME_MAX_LENGTH)
    slug: str = Field(default="", max_length=POST_SLUG_MAX_LENGTH)


class PostCreateRequest(ApiModel):
    """
    Request model for creating a post.

    Title HTML is stripped. `slug`, `excerpt` and tag slugs are derived when omitted.
    """

    title: str = Field(..., min_length=1, max_length=POST_TITLE_MAX_LENGTH)
    slug: str = Field(default="", max_length=POST_SLUG_MAX_LENGTH)
    excerpt: str = Field(default="", max_length=POST_EXCERPT_MAX_LENGTH)
    markdown: str = Field(..., min_length=1, max_length=POST_CONTENT_MAX_LENGTH)
    html: str = ""
    featured_image: str = Field(default="", max_length=POST_FEATURED_IMAGE_MAX_LENGTH)
    type: PostType = PostType.POST
    status: PostStatus = PostStatus.DRAFT
    visibility: PostVisibility = PostVisibility.PUBLIC
    tags: List[TagInfo] = Field(default_factory=list, max_length=POST_TAG_MAX_COUNT)
    meta_title: str = Field(default="", max_length=POST_META_TITLE_MAX_LENGTH)
    meta_description: str = Field(default="", max_length=POST_META_DESCRIPTION_MAX_LENGTH)
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

    def to_post(self, author_id: str) -> Post:
        return Post(
            title=self.title,
            slug=self.slug,
            excerpt=self.excerpt,
            markdown=self.markdown,
            html=self.html,
            featured_image=self.featured_image,
            type=self.type.value,
            status=self.status.value,
            visibility=self.visibility.value,
            author_id=author_id,
            tags=[Tag(name=tag.name, slug=tag.slug) for tag in self.tags],
            meta_title=self.meta_title,
            meta_description=self.meta_description,
            canonical_url=self.canonical_url,
            published_at=self.published_at,
        )


class PostUpdateRequest(ApiModel):
    """Partial update of a post. Only fields present in the request are written."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=POST_TITLE_MAX_LENGTH)
    slug: Optional[str] = Field(default=None, min_length=1, max_length=POST_SLUG_MAX_LENGTH)
    excerpt: Optional[str] = Field(default=None, max_length=POST_EXCERPT_MAX_LENGTH)
    markdown: Optional[str] = Field(default=None, min_length=1, max_length=POST_CONTENT_MAX_LENGTH)
    html: Optional[str] = None
    featured_image: Optional[str] = Field(default=None, max_length=POST_FEATURED_IMAGE_MAX_LENGTH)
    type: Optional[PostType] = None
    status: Optional[PostStatus] = None
    visibility: Optional[PostVisibility] = None
    tags: Optional[List[TagInfo]] = Field(default=None, max_length=POST_TAG_MAX_COUNT)
    meta_title: Optional[str] = Field(default=None, max_length=POST_META_TITLE_MAX_LENGTH)
    meta_description: Optional[str] = Field(default=None, max_length=POST_META_DESCRIPTION_MAX_LENGTH)
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
        """camelCase field map for `PostRepository.update()`. Blank tag slugs are derived."""
        fields = self.model_dump(by_alias=True, exclude_none=True, exclude={"tags", "published_at"}, mode="json")
        if self.tags is not None:
            fields["tags"] = [tag.model_dump() for tag in build_tags([Tag(**t.model_dump()) for t in self.tags])]
        if self.published_at is not None:
            fields["publishedAt"] = self.published_at
        return fields


# --- Responses ---


class PostDetailResponse(ApiModel):
    id: str
    title: str
    slug: str
    excerpt: str = ""
    markdown: str = ""
    html: str = ""
    featured_image: str = ""
    type: str
    status: str
    visibility: str
    author: Optional[AuthorInfo] = None
    tags: List[Tag] = Field(default_factory=list)
    meta_title: str = ""
    meta_description: str = ""
    canonical_url: str = ""
    reading_time: int = 0
    word_count: int = 0
    view_count: int = 0
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PostListItem(ApiModel):
    id: str
    title: str
    slug: str
    excerpt: str = ""
    featured_image: str = ""
    type: str
    status: str
    visibility: str
    author: Optional[AuthorInfo] = None
    tags: List[Tag] = Field(default_factory=list)
    reading_time: int = 0
    view_count: int = 0
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# --- Filters ---


class PostFilter(ApiModel):
    """
    Filter for `PostRepository.list()` and the listing helpers built on it.

    Empty strings mean "no filter". An `author_id` that is not a valid ObjectId is ignored.
    """

    status: str = ""
    type: str = ""
    visibility: str = ""
    author_id: str = ""
    tag: str = ""
    keyword: str = ""
    sort_by: str = ""
    sort_desc: bool = True
