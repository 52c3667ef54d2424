"""
# Shared Model Building Blocks

Base class and value objects shared by the user, post, page and login-log models.

## Document Mapping

Entities expose snake_case attributes and persist camelCase keys. `MongoModel` keeps
the two in sync through pydantic field aliases:

```python
post = Post(title="Hello", author_id="65a1f0c2e4b0a1b2c3d4e5f6")
post.to_document()      # {"title": "Hello", "authorId": ObjectId("65a1..."), ...}
Post.from_document(doc) # ObjectIds back to 24-char hex strings, datetimes made UTC-aware
```

Identifiers travel as hex strings inside the application and as `ObjectId` inside
MongoDB; the fields listed in `OBJECT_ID_FIELDS` are converted at the boundary.
"""

from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional, Tuple

import bleach
from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from heimdall.exceptions import ValidationError
from heimdall.models.constants import DEFAULT_PAGE_SIZE
from heimdall.utils.text_utils import ensure_utc, is_valid_slug


def to_object_id(value: Any) -> Any:
    """Convert a 24-char hex string to `ObjectId`, leaving anything else untouched."""
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def _normalize_value(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, dict):
        return {key: _normalize_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_normalize_value(item) for item in value]
    return value


class MongoModel(BaseModel):
    """Base for entities persisted as MongoDB documents.

    Attributes:
        id (Optional[str]): Hex form of the document `_id`. `None` until `prepare_for_insert()`.
    """

    OBJECT_ID_FIELDS: ClassVar[Tuple[str, ...]] = ("id",)

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    id: Optional[str] = Field(default=None, alias="_id", description="MongoDB document ID")

    @field_validator("*")
    @classmethod
    def datetimes_in_utc(cls, v: Any) -> Any:
        """Naive datetimes (`datetime.utcnow()`, ISO strings without offset) are read as UTC."""
        return ensure_utc(v) if isinstance(v, datetime) else v

    @classmethod
    def from_document(cls, document: Dict[str, Any]):
        """Build an entity from a raw MongoDB document."""
        return cls.model_validate(_normalize_value(dict(document)))

    def to_document(self, include: Optional[set] = None) -> Dict[str, Any]:
        """Serialize to a MongoDB document keyed by wire names.

        Args:
            include: Attribute names to keep. Used for partial `$set` documents.
        """
        document = self.model_dump(by_alias=True, include=include, mode="python")
        for attr in self.OBJECT_ID_FIELDS:
            key = type(self).model_fields[attr].alias or attr
            if key in document:
                document[key] = to_object_id(document[key])
        if document.get("_id") is None:
            document.pop("_id", None)
        return document

    def wire_name(self, attr: str) -> str:
        return type(self).model_fields[attr].alias or attr


class ApiModel(BaseModel):
    """Base for request, response and filter shapes exchanged with the API layer.

    Attributes are snake_case in Python and camelCase on the wire.
    """

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    @field_validator("*")
    @classmethod
    def datetimes_in_utc(cls, v: Any) -> Any:
        return ensure_utc(v) if isinstance(v, datetime) else v


class Tag(BaseModel):
    """A tag embedded in a post.

    Attributes:
        name (str): Display name, at most 50 characters.
        slug (str): URL segment. Derived from `name` when blank.
    """

    name: str = ""
    slug: str = ""


class AuthorInfo(ApiModel):
    """Compact public projection of a user, embedded in post and page responses."""

    id: str
    username: str
    display_name: str = ""
    profile_image: str = ""
    bio: str = ""


class PaginationMeta(ApiModel):
    """Pagination metadata returned alongside list results."""

    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    total: int = 0
    pages: int = 0
    has_next: bool = False
    has_prev: bool = False

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        pages = (total + limit - 1) // limit if limit > 0 else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            pages=pages,
            has_next=page < pages,
            has_prev=page > 1,
        )


def require(field: str, value: Any, label: str) -> None:
    """Raise a `ValidationError` naming `field` when `value` is empty."""
    if value is None or value == "":
        raise ValidationError(field, f"{label} is required")


def check_max_length(field: str, value: Optional[str], max_length: int, label: str) -> None:
    """Raise a `ValidationError` when `value` is longer than `max_length` characters."""
    if value and len(value) > max_length:
        raise ValidationError(field, f"{label} must be at most {max_length} characters")


def check_choice(field: str, value: Optional[str], choices: List[str], label: str) -> None:
    if value not in choices:
        raise ValidationError(field, f"invalid {label}: {value!r}")


def clean_plain_text(v: str) -> str:
    """Strip every HTML tag from a plain-text request field."""
    return bleach.clean(v, tags=[], strip=True).strip()


def check_request_slug(v: Optional[str]) -> Optional[str]:
    if v and not is_valid_slug(v):
        raise ValueError("Slug may only contain lowercase letters, digits and single hyphens")
    return v
