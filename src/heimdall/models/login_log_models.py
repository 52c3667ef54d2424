"""
# Login Log Models

Audit records of login attempts, written once by the authentication layer and never
modified afterwards.

## Domain Overview

- **Successful attempt**: carries the user id and the issued session id.
- **Failed attempt**: carries a `fail_reason`; the user id is absent when the typed
  username matched no account.
- **Enrichment**: geo (`country`, `region`, `city`) and device (`device_type`, `browser`,
  `os`) fields are filled in memory with `update_location()` / `update_device_info()`
  before the record is inserted.

## Usage Example

```python
log = LoginLog.failure(
    username="alice", login_method="username", ip_address="203.0.113.5",
    user_agent="Mozilla/5.0", fail_reason="invalid_password",
)
log.update_location("NL", "North Holland", "Amsterdam")
await login_log_repository.create(log)
```
"""

import ipaddress
from datetime import datetime
from typing import ClassVar, Optional, Tuple

from bson import ObjectId
from pydantic import BaseModel

from heimdall.exceptions import ValidationError
from heimdall.models.common_models import ApiModel, MongoModel, check_choice, check_max_length, require
from heimdall.models.constants import (
    GEO_FIELD_MAX_LENGTH,
    IP_ADDRESS_MAX_LENGTH,
    LOGIN_FAIL_REASONS,
    LOGIN_METHODS,
    LOGIN_STATUSES,
    LOGIN_USERNAME_MAX_LENGTH,
    USER_AGENT_MAX_LENGTH,
    LoginStatus,
)
from heimdall.utils.text_utils import ensure_utc, utc_now


class LoginLog(MongoModel):
    """
    Login attempt stored in the `loginLogs` collection.

    Attributes:
        user_id (Optional[str]): Hex id of the account, `None` for unknown usernames.
        username (str): Username or email exactly as typed.
        login_method (str): `username` or `email`.
        ip_address (str): Client IPv4 or IPv6 address.
        status (str): `success` or `failed`.
        fail_reason (str): One of `LOGIN_FAIL_REASONS` when the attempt failed.
        session_id (str): Session issued on success.
        login_at (Optional[datetime]): Time of the attempt. Always set once inserted.
        logout_at (Optional[datetime]): End of the session, if known.
        duration (Optional[int]): Session length in seconds.
    """

    OBJECT_ID_FIELDS: ClassVar[Tuple[str, ...]] = ("id", "user_id")

    user_id: Optional[str] = None
    username: str = ""
    login_method: str = ""
    ip_address: str = ""
    user_agent: str = ""
    status: str = ""
    fail_reason: str = ""
    session_id: str = ""
    login_at: Optional[datetime] = None
    logout_at: Optional[datetime] = None
    duration: Optional[int] = None
    country: str = ""
    region: str = ""
    city: str = ""
    device_type: str = ""
    browser: str = ""
    os: str = ""
    created_at: Optional[datetime] = None

    # --- Factories ---

    @classmethod
    def success(
        cls,
        user_id: str,
        username: str,
        login_method: str,
        ip_address: str,
        user_agent: str,
        session_id: str = "",
    ) -> "LoginLog":
        return cls(
            user_id=user_id,
            username=username,
            login_method=login_method,
            ip_address=ip_address,
            user_agent=user_agent,
            status=LoginStatus.SUCCESS.value,
            session_id=session_id,
            login_at=utc_now(),
        )

    @classmethod
    def failure(
        cls,
        username: str,
        login_method: str,
        ip_address: str,
        user_agent: str,
        fail_reason: str,
        user_id: Optional[str] = None,
    ) -> "LoginLog":
        return cls(
            user_id=user_id,
            username=username,
            login_method=login_method,
            ip_address=ip_address,
            user_agent=user_agent,
            status=LoginStatus.FAILED.value,
            fail_reason=fail_reason,
            login_at=utc_now(),
        )

    # --- Validation ---

    def validate_for_create(self) -> None:
        """Check every creation rule, raising `ValidationError` for the first one violated."""
        require("username", self.username, "username")
        require("loginMethod", self.login_method, "login method")
        require("ipAddress", self.ip_address, "IP address")
        require("userAgent", self.user_agent, "user agent")
        require("status", self.status, "login status")

        check_choice("loginMethod", self.login_method, LOGIN_METHODS, "login method")
        check_choice("status", self.status, LOGIN_STATUSES, "login status")

        if self.is_failed():
            require("failReason", self.fail_reason, "fail reason")
            check_choice("failReason", self.fail_reason, LOGIN_FAIL_REASONS, "fail reason")
        if self.is_success() and not (self.user_id and ObjectId.is_valid(self.user_id)):
            raise ValidationError("userId", "a successful login needs a user id")

        check_max_length("username", self.username, LOGIN_USERNAME_MAX_LENGTH, "username")
        self._check_ip_address()
        check_max_length("userAgent", self.user_agent, USER_AGENT_MAX_LENGTH, "user agent")
        check_max_length("country", self.country, GEO_FIELD_MAX_LENGTH, "country")
        check_max_length("region", self.region, GEO_FIELD_MAX_LENGTH, "region")
        check_max_length("city", self.city, GEO_FIELD_MAX_LENGTH, "city")

    def _check_ip_address(self) -> None:
        if len(self.ip_address) > IP_ADDRESS_MAX_LENGTH:
            raise ValidationError("ipAddress", "invalid IP address")
        try:
            ipaddress.ip_address(self.ip_address)
        except ValueError as e:
            raise ValidationError("ipAddress", "invalid IP address") from e

    # --- Predicates ---

    def is_success(self) -> bool:
        return self.status == LoginStatus.SUCCESS

    def is_failed(self) -> bool:
        return self.status == LoginStatus.FAILED

    def is_active_session(self) -> bool:
        return self.is_success() and self.logout_at is None

    def get_session_duration(self, now: Optional[datetime] = None) -> int:
        """
        Session length in seconds.

        Uses the stored `duration`, then `logout_at - login_at`, then the elapsed time of
        a still-active session. Returns 0 when none applies.
        """
        if self.duration is not None:
            return self.duration
        if self.login_at is None:
            return 0
        if self.logout_at is not None:
            return int((ensure_utc(self.logout_at) - ensure_utc(self.login_at)).total_seconds())
        if self.is_active_session():
            return int(((ensure_utc(now) or utc_now()) - ensure_utc(self.login_at)).total_seconds())
        return 0

    # --- Lifecycle ---

    def prepare_for_insert(self) -> None:
        now = utc_now()
        if not self.id:
            self.id = str(ObjectId())
        if self.login_at is None:
            self.login_at = now
        self.created_at = now

    def mark_logout(self, at: Optional[datetime] = None) -> None:
        self.logout_at = ensure_utc(at) or utc_now()
        if self.login_at is not None:
            self.duration = int((self.logout_at - ensure_utc(self.login_at)).total_seconds())

    def update_location(self, country: str, region: str, city: str) -> None:
        self.country = country
        self.region = region
        self.city = city

    def update_device_info(self, device_type: str, browser: str, os: str) -> None:
        self.device_type = device_type
        self.browser = browser
        self.os = os

    def to_list_item(self) -> "LoginLogListItem":
        return LoginLogListItem(
            id=self.id or "",
            user_id=self.user_id or "",
            username=self.username,
            login_method=self.login_method,
            ip_address=self.ip_address,
            status=self.status,
            fail_reason=self.fail_reason,
            country=self.country,
            region=self.region,
            city=self.city,
            device_type=self.device_type,
            browser=self.browser,
            os=self.os,
            login_at=self.login_at,
            logout_at=self.logout_at,
            duration=self.duration,
        )


class LoginLogListItem(ApiModel):
    id: str
    user_id: str = ""
    username: str
    login_method: str
    ip_address: str
    status: str
    fail_reason: str = ""
    country: str = ""
    region: str = ""
    city: str = ""
    device_type: str = ""
    browser: str = ""
    os: str = ""
    login_at: Optional[datetime] = None
    logout_at: Optional[datetime] = None
    duration: Optional[int] = None


class LoginLogFilter(ApiModel):
    """
    Filter for `LoginLogRepository.list()`.

    `username` matches case-insensitively as a substring; every other string field is an
    exact match. `start_time` / `end_time` bound `loginAt` inclusively. Empty values mean
    "no filter" and an invalid `user_id` is ignored.
    """

    user_id: str = ""
    username: str = ""
    status: str = ""
    ip_address: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    country: str = ""
    region: str = ""
    city: str = ""
    device_type: str = ""
    browser: str = ""
    os: str = ""
    sort_by: str = ""
    sort_desc: bool = True


class LoginStatistics(BaseModel):
    """Aggregate counts over a time window, returned by `LoginLogRepository.get_statistics()`."""

    total: int = 0
    success: int = 0
    failed: int = 0
    unique_users: int = 0
    unique_ips: int = 0

    @property
    def success_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return self.success / self.total
