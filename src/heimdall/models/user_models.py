"""
# User Models

This module defines the **administrator account** entity together with its request,
response and filter shapes.

## Domain Overview

- **User**: An account of the admin backend with a role (`owner` ⊃ `admin` ⊃ `editor` ⊃ `author`)
  and a status (`active`, `inactive`, `locked`, `suspended`).
- **Lockout**: Consecutive failed logins lock the account for 15 minutes (3 failures),
  60 minutes (5) or 24 hours (10). A successful login or an administrative unlock clears it.
- **Soft delete**: Deleting a user sets its status to `inactive`; the document is kept.

## Lockout State Machine

```
            3+ failures             lock expires + sweep / admin unlock / login
  ACTIVE ──────────────────▶ LOCKED ─────────────────────────────────────────▶ ACTIVE
    │                          │
    │ soft delete              │ (lockedUntil in the future also counts as locked,
    ▼                          │  whatever the status)
  INACTIVE                     ▼
```

## Usage Example

```python
user = User(username="alice", email="alice@example.com", display_name="Alice", role="author")
user.validate_for_create()
for _ in range(3):
    user.increment_login_fail_count()
assert user.is_locked() and not user.can_login()
```
"""

from datetime import datetime
from typing import Optional

from bson import ObjectId
from email_validator import EmailNotValidError, validate_email
from pydantic import EmailStr, Field, field_validator

from heimdall.exceptions import ValidationError
from heimdall.models.common_models import ApiModel, AuthorInfo, MongoModel, check_choice, check_max_length, require
from heimdall.models.constants import (
    BIO_MAX_LENGTH,
    DISPLAY_NAME_MAX_LENGTH,
    EMAIL_MAX_LENGTH,
    IMAGE_URL_MAX_LENGTH,
    LOCATION_MAX_LENGTH,
    SOCIAL_HANDLE_MAX_LENGTH,
    USER_ROLES,
    USER_STATUSES,
    USERNAME_MAX_LENGTH,
    USERNAME_MIN_LENGTH,
    WEBSITE_MAX_LENGTH,
    UserRole,
    UserStatus,
    get_lock_duration,
    role_rank,
)
from heimdall.utils.text_utils import ensure_utc, utc_now


class User(MongoModel):
    """
    Administrator account stored in the `users` collection.

    Attributes:
        username (str): Unique login name, 3 to 32 characters.
        email (str): Unique email address.
        password_hash (str): Hash produced by the authentication layer. Never exposed in responses.
        display_name (str): Public name, at most 64 characters.
        role (str): One of `USER_ROLES`.
        status (str): One of `USER_STATUSES`.
        login_fail_count (int): Consecutive failed logins since the last success.
        locked_until (Optional[datetime]): End of the current temporary lock.
        last_login_at (Optional[datetime]): Time of the last successful login.
        last_login_ip (str): Client address of the last successful login.
    """

    username: str = ""
    email: str = ""
    password_hash: str = ""
    display_name: str = ""
    role: str = ""
    profile_image: str = ""
    cover_image: str = ""
    bio: str = ""
    location: str = ""
    website: str = ""
    twitter: str = ""
    facebook: str = ""
    status: str = ""
    login_fail_count: int = 0
    locked_until: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    last_login_ip: str = Field(default="", alias="lastLoginIP")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # --- Validation ---

    def validate_for_create(self) -> None:
        """Check every creation rule, raising `ValidationError` for the first one violated."""
        require("username", self.username, "username")
        require("email", self.email, "email")
        require("displayName", self.display_name, "display name")
        require("role", self.role, "role")

        self._check_username()
        self._check_email()
        self._check_optional_lengths()
        check_choice("role", self.role, USER_ROLES, "user role")
        if self.status:
            check_choice("status", self.status, USER_STATUSES, "user status")
        if self.login_fail_count < 0:
            raise ValidationError("loginFailCount", "login fail count cannot be negative")

    def validate_for_update(self) -> None:
        """Check only the fields explicitly set on this instance."""
        provided = self.model_fields_set

        if "username" in provided:
            require("username", self.username, "username")
            self._check_username()
        if "email" in provided:
            require("email", self.email, "email")
            self._check_email()
        if "display_name" in provided:
            require("displayName", self.display_name, "display name")
        self._check_optional_lengths()
        if "role" in provided:
            check_choice("role", self.role, USER_ROLES, "user role")
        if "status" in provided:
            check_choice("status", self.status, USER_STATUSES, "user status")
        if "login_fail_count" in provided and self.login_fail_count < 0:
            raise ValidationError("loginFailCount", "login fail count cannot be negative")

    def _check_username(self) -> None:
        if len(self.username) < USERNAME_MIN_LENGTH:
            raise ValidationError("username", f"username must be at least {USERNAME_MIN_LENGTH} characters")
        check_max_length("username", self.username, USERNAME_MAX_LENGTH, "username")

    def _check_email(self) -> None:
        check_max_length("email", self.email, EMAIL_MAX_LENGTH, "email")
        try:
            validate_email(self.email, check_deliverability=False)
        except EmailNotValidError as e:
            raise ValidationError("email", f"invalid email address: {e}") from e

    def _check_optional_lengths(self) -> None:
        check_max_length("displayName", self.display_name, DISPLAY_NAME_MAX_LENGTH, "display name")
        check_max_length("bio", self.bio, BIO_MAX_LENGTH, "bio")
        check_max_length("location", self.location, LOCATION_MAX_LENGTH, "location")
        check_max_length("website", self.website, WEBSITE_MAX_LENGTH, "website URL")
        check_max_length("twitter", self.twitter, SOCIAL_HANDLE_MAX_LENGTH, "Twitter handle")
        check_max_length("facebook", self.facebook, SOCIAL_HANDLE_MAX_LENGTH, "Facebook handle")
        check_max_length("profileImage", self.profile_image, IMAGE_URL_MAX_LENGTH, "profile image URL")
        check_max_length("coverImage", self.cover_image, IMAGE_URL_MAX_LENGTH, "cover image URL")

    # --- Predicates ---

    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    def is_locked(self, now: Optional[datetime] = None) -> bool:
        """Locked by status, or by a lock expiry that has not passed yet."""
        if self.status == UserStatus.LOCKED:
            return True
        if self.locked_until is None:
            return False
        return (ensure_utc(now) or utc_now()) < ensure_utc(self.locked_until)

    def can_login(self, now: Optional[datetime] = None) -> bool:
        return self.is_active() and not self.is_locked(now)

    def is_owner(self) -> bool:
        return self.role == UserRole.OWNER

    def has_role_at_least(self, role: str) -> bool:
        """Whether this user holds `role` or a stronger one. Unknown roles hold nothing."""
        return role_rank(self.role) <= role_rank(role) < len(USER_ROLES)

    def is_admin(self) -> bool:
        return self.has_role_at_least(UserRole.ADMIN.value)

    def is_editor(self) -> bool:
        return self.has_role_at_least(UserRole.EDITOR.value)

    def can_manage_users(self) -> bool:
        return self.has_role_at_least(UserRole.ADMIN.value)

    def can_manage_all_posts(self) -> bool:
        return self.has_role_at_least(UserRole.EDITOR.value)

    def can_manage_comments(self) -> bool:
        return self.has_role_at_least(UserRole.EDITOR.value)

    # --- Lifecycle ---

    def prepare_for_insert(self) -> None:
        now = utc_now()
        if not self.id:
            self.id = str(ObjectId())
        self.created_at = now
        self.updated_at = now
        if not self.status:
            self.status = UserStatus.ACTIVE.value
        if not self.role:
            self.role = UserRole.AUTHOR.value

    def increment_login_fail_count(self, now: Optional[datetime] = None) -> None:
        """Record one failed login and lock the account when a threshold is reached."""
        now = ensure_utc(now) or utc_now()
        self.login_fail_count += 1
        self.updated_at = now

        duration = get_lock_duration(self.login_fail_count)
        if duration is not None:
            self.locked_until = now + duration
            self.status = UserStatus.LOCKED.value

    def reset_login_fail_count(self, now: Optional[datetime] = None) -> None:
        self.login_fail_count = 0
        self.locked_until = None
        if self.status == UserStatus.LOCKED:
            self.status = UserStatus.ACTIVE.value
        self.updated_at = now or utc_now()

    def update_last_login(self, ip_address: str, now: Optional[datetime] = None) -> None:
        """Record a successful login. Clears the failure counter and any lock."""
        now = now or utc_now()
        self.last_login_at = now
        self.last_login_ip = ip_address
        self.reset_login_fail_count(now)

    def lock(self, until: datetime) -> None:
        self.status = UserStatus.LOCKED.value
        self.locked_until = ensure_utc(until)
        self.updated_at = utc_now()

    def unlock(self) -> None:
        """Administrative unlock."""
        self.status = UserStatus.ACTIVE.value
        self.login_fail_count = 0
        self.locked_until = None
        self.updated_at = utc_now()

    # --- Converters ---

    def to_profile_response(self) -> "UserProfileResponse":
        return UserProfileResponse(
            id=self.id or "",
            username=self.username,
            email=self.email,
            display_name=self.display_name,
            role=self.role,
            profile_image=self.profile_image,
            cover_image=self.cover_image,
            bio=self.bio,
            location=self.location,
            website=self.website,
            twitter=self.twitter,
            facebook=self.facebook,
            status=self.status,
            last_login_at=self.last_login_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def to_detail_response(self) -> "UserProfileResponse":
        return self.to_profile_response()

    def to_list_item(self) -> "UserListItem":
        return UserListItem(
            id=self.id or "",
            username=self.username,
            email=self.email,
            display_name=self.display_name,
            role=self.role,
            status=self.status,
            profile_image=self.profile_image,
            last_login_at=self.last_login_at,
            created_at=self.created_at,
        )

    def to_author_info(self) -> AuthorInfo:
        return AuthorInfo(
            id=self.id or "",
            username=self.username,
            display_name=self.display_name,
            profile_image=self.profile_image,
            bio=self.bio,
        )


# --- Requests ---


class UserCreateRequest(ApiModel):
    """
    Request model for creating an account.

    Password hashing happens in the authentication layer; `to_user()` receives the hash.
    """

    username: str = Field(..., min_length=USERNAME_MIN_LENGTH, max_length=USERNAME_MAX_LENGTH)
    email: EmailStr
    display_name: str = Field(..., min_length=1, max_length=DISPLAY_NAME_MAX_LENGTH)
    role: UserRole = UserRole.AUTHOR
    profile_image: str = Field(default="", max_length=IMAGE_URL_MAX_LENGTH)
    cover_image: str = Field(default="", max_length=IMAGE_URL_MAX_LENGTH)
    bio: str = Field(default="", max_length=BIO_MAX_LENGTH)
    location: str = Field(default="", max_length=LOCATION_MAX_LENGTH)
    website: str = Field(default="", max_length=WEBSITE_MAX_LENGTH)
    twitter: str = Field(default="", max_length=SOCIAL_HANDLE_MAX_LENGTH)
    facebook: str = Field(default="", max_length=SOCIAL_HANDLE_MAX_LENGTH)

    @field_validator("username")
    @classmethod
    def normalize_username(cls, v):
        return v.strip()

    def to_user(self, password_hash: str) -> User:
        return User(
            username=self.username,
            email=str(self.email),
            password_hash=password_hash,
            display_name=self.display_name,
            role=self.role.value,
            profile_image=self.profile_image,
            cover_image=self.cover_image,
            bio=self.bio,
            location=self.location,
            website=self.website,
            twitter=self.twitter,
            facebook=self.facebook,
        )


class UserUpdateRequest(ApiModel):
    """Partial update of an account. Only fields present in the request are written."""

    username: Optional[str] = Field(default=None, min_length=USERNAME_MIN_LENGTH, max_length=USERNAME_MAX_LENGTH)
    email: Optional[EmailStr] = None
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=DISPLAY_NAME_MAX_LENGTH)
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None
    profile_image: Optional[str] = Field(default=None, max_length=IMAGE_URL_MAX_LENGTH)
    cover_image: Optional[str] = Field(default=None, max_length=IMAGE_URL_MAX_LENGTH)
    bio: Optional[str] = Field(default=None, max_length=BIO_MAX_LENGTH)
    location: Optional[str] = Field(default=None, max_length=LOCATION_MAX_LENGTH)
    website: Optional[str] = Field(default=None, max_length=WEBSITE_MAX_LENGTH)
    twitter: Optional[str] = Field(default=None, max_length=SOCIAL_HANDLE_MAX_LENGTH)
    facebook: Optional[str] = Field(default=None, max_length=SOCIAL_HANDLE_MAX_LENGTH)

    def to_update_fields(self) -> dict:
        """camelCase field map for `UserRepository.update()`."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# --- Responses ---


class UserProfileResponse(ApiModel):
    """Full public representation of an account. The password hash is never included."""

    id: str
    username: str
    email: str
    display_name: str
    role: str
    profile_image: str = ""
    cover_image: str = ""
    bio: str = ""
    location: str = ""
    website: str = ""
    twitter: str = ""
    facebook: str = ""
    status: str
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserListItem(ApiModel):
    id: str
    username: str
    email: str
    display_name: str
    role: str
    status: str
    profile_image: str = ""
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


# --- Filters ---


class UserFilter(ApiModel):
    """
    Filter for `UserRepository.list()`.

    Empty strings mean "no filter". An allowed `sort_by` sorts ascending unless
    `sort_desc` is set; anything outside `USER_SORT_FIELDS` falls back to `createdAt`
    descending.
    """

    role: str = ""
    status: str = ""
    keyword: str = ""
    sort_by: str = ""
    sort_desc: bool = False
