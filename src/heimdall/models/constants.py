"""
# Domain Constants

Canonical wire values and numeric limits shared by the entities, DTOs and repositories.
Enum values are persisted as plain strings and must never change.

## Module Attributes

Attributes:
    USER_ROLES / USER_STATUSES (List[str]): Valid user roles and statuses.
    POST_STATUSES / POST_TYPES / POST_VISIBILITIES (List[str]): Valid post enumerations.
    PAGE_STATUSES (List[str]): Post statuses minus `trash`.
    LOGIN_STATUSES / LOGIN_FAIL_REASONS / LOGIN_METHODS (List[str]): Login log enumerations.
    LOCKOUT_POLICY (List[Tuple[int, int]]): `(fail_count_threshold, lock_minutes)`, strictest first.
    *_SORT_FIELDS (List[str]): Closed set of sort keys accepted per collection.
"""

import math
from datetime import timedelta
from enum import Enum
from typing import List, Optional, Tuple


class UserRole(str, Enum):
    """Enumeration of user roles, strongest first.

    Attributes:
        OWNER: Site owner, full control.
        ADMIN: Manages users and all content.
        EDITOR: Manages all posts and comments.
        AUTHOR: Manages own posts only.
    """
    OWNER = "owner"
    ADMIN = "admin"
    EDITOR = "editor"
    AUTHOR = "author"


class UserStatus(str, Enum):
    """Enumeration of account states.

    Attributes:
        ACTIVE: Account may log in.
        INACTIVE: Soft-deleted account.
        LOCKED: Locked after repeated login failures.
        SUSPENDED: Disabled by an administrator.
    """
    ACTIVE = "active"
    INACTIVE = "inactive"
    LOCKED = "locked"
    SUSPENDED = "suspended"


class PostStatus(str, Enum):
    """Enumeration of post and page lifecycle states."""
    DRAFT = "draft"
    PUBLISHED = "published"
    SCHEDULED = "scheduled"
    ARCHIVED = "archived"
    TRASH = "trash"


class PostType(str, Enum):
    POST = "post"
    PAGE = "page"


class PostVisibility(str, Enum):
    PUBLIC = "public"
    MEMBERS_ONLY = "members_only"
    PRIVATE = "private"


class LoginStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class LoginFailReason(str, Enum):
    """Enumeration of reasons recorded on failed login attempts."""
    INVALID_PASSWORD = "invalid_password"
    USER_NOT_FOUND = "user_not_found"
    USER_LOCKED = "user_locked"
    USER_INACTIVE = "user_inactive"
    USER_SUSPENDED = "user_suspended"
    TOO_MANY_ATTEMPTS = "too_many_attempts"


class LoginMethod(str, Enum):
    USERNAME = "username"
    EMAIL = "email"


# Constants for validation
USER_ROLES = [role.value for role in UserRole]
USER_STATUSES = [status.value for status in UserStatus]
POST_STATUSES = [status.value for status in PostStatus]
PAGE_STATUSES = ["draft", "published", "scheduled", "archived"]
POST_TYPES = [post_type.value for post_type in PostType]
POST_VISIBILITIES = [visibility.value for visibility in PostVisibility]
LOGIN_STATUSES = [status.value for status in LoginStatus]
LOGIN_FAIL_REASONS = [reason.value for reason in LoginFailReason]
LOGIN_METHODS = [method.value for method in LoginMethod]

# User field limits
USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 32
EMAIL_MAX_LENGTH = 255
DISPLAY_NAME_MAX_LENGTH = 64
BIO_MAX_LENGTH = 500
LOCATION_MAX_LENGTH = 100
WEBSITE_MAX_LENGTH = 255
SOCIAL_HANDLE_MAX_LENGTH = 50
IMAGE_URL_MAX_LENGTH = 255

# Lockout policy, strictest threshold first
LOCKOUT_POLICY: List[Tuple[int, int]] = [
    (10, 1440),
    (5, 60),
    (3, 15),
]

# Post field limits
POST_TITLE_MAX_LENGTH = 255
POST_SLUG_MAX_LENGTH = 255
POST_EXCERPT_MAX_LENGTH = 500
POST_CONTENT_MAX_LENGTH = 1_000_000
POST_META_TITLE_MAX_LENGTH = 70
POST_META_DESCRIPTION_MAX_LENGTH = 160
POST_CANONICAL_URL_MAX_LENGTH = 255
POST_FEATURED_IMAGE_MAX_LENGTH = 255
POST_TAG_MAX_COUNT = 20
POST_TAG_NAME_MAX_LENGTH = 50
SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"
DEFAULT_EXCERPT_LENGTH = 200

# Page field limits
PAGE_TEMPLATE_DEFAULT = "default"
PAGE_TEMPLATE_MAX_LENGTH = 100

# Reading time
WORDS_PER_MINUTE = 200
MIN_READING_TIME = 1
MAX_READING_TIME = 999

# Login log field limits
LOGIN_USERNAME_MAX_LENGTH = 64
IP_ADDRESS_MAX_LENGTH = 45
USER_AGENT_MAX_LENGTH = 512
GEO_FIELD_MAX_LENGTH = 100

# Pagination and query guards
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10
MIN_PAGE_SIZE = 1
MAX_PAGE_SIZE = 100
DEFAULT_POPULAR_LIMIT = 10
DEFAULT_POPULAR_DAYS = 30
DEFAULT_RECENT_LIMIT = 10
DEFAULT_FAILED_LOGIN_LIMIT = 100
MAX_FAILED_LOGIN_LIMIT = 1000
UNIQUE_SLUG_MAX_ATTEMPTS = 100

# Sort keys
USER_SORT_FIELDS = ["username", "createdAt", "lastLoginAt"]
POST_SORT_FIELDS = ["title", "createdAt", "updatedAt", "publishedAt", "viewCount"]
PAGE_SORT_FIELDS = ["title", "createdAt", "updatedAt", "publishedAt"]
LOGIN_LOG_SORT_FIELDS = ["loginAt", "username", "ipAddress", "status"]
DEFAULT_SORT_FIELD = "createdAt"
LOGIN_LOG_DEFAULT_SORT_FIELD = "loginAt"


def get_lock_duration(fail_count: int) -> Optional[timedelta]:
    """Return how long an account is locked after `fail_count` consecutive failures.

    Returns `None` below the first threshold.
    """
    for threshold, minutes in LOCKOUT_POLICY:
        if fail_count >= threshold:
            return timedelta(minutes=minutes)
    return None


def calculate_reading_time(word_count: int) -> int:
    """Minutes needed to read `word_count` words, clamped to [1, 999]."""
    if word_count <= 0:
        return MIN_READING_TIME
    minutes = math.ceil(word_count / WORDS_PER_MINUTE)
    return max(MIN_READING_TIME, min(minutes, MAX_READING_TIME))


def role_rank(role: str) -> int:
    """Position of `role` in the hierarchy, 0 being the strongest. Unknown roles rank last."""
    try:
        return USER_ROLES.index(role)
    except ValueError:
        return len(USER_ROLES)
