"""
# Login Log Repository

Insert-only persistence for login attempts in the `loginLogs` collection. No method
here modifies a stored log; enrichment happens on the entity before `create()`.

## Module Attributes

Attributes:
    COLLECTION_NAME (str): `loginLogs`.
    INDEXES (List[IndexModel]): Indexes provisioned by `create_indexes()`.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING, IndexModel

from heimdall.exceptions import InputError
from heimdall.managers.logging_manager import get_logger
from heimdall.models.constants import (
    DEFAULT_FAILED_LOGIN_LIMIT,
    LOGIN_LOG_DEFAULT_SORT_FIELD,
    LOGIN_LOG_SORT_FIELDS,
    MAX_FAILED_LOGIN_LIMIT,
    LoginStatus,
)
from heimdall.models.login_log_models import LoginLog, LoginLogFilter, LoginStatistics
from heimdall.repositories.base import DocumentStore, build_sort, clamp_limit, keyword_query

logger = get_logger(prefix="[LoginLogRepository]")

COLLECTION_NAME = "loginLogs"

INDEXES: List[IndexModel] = [
    IndexModel([("userId", ASCENDING), ("loginAt", DESCENDING)]),
    IndexModel([("ipAddress", ASCENDING), ("loginAt", DESCENDING)]),
    IndexModel([("status", ASCENDING), ("loginAt", DESCENDING)]),
    IndexModel([("loginAt", DESCENDING)]),
    IndexModel([("username", ASCENDING)]),
]

EXACT_MATCH_FIELDS = {
    "status": "status",
    "ip_address": "ipAddress",
    "country": "country",
    "region": "region",
    "city": "city",
    "device_type": "deviceType",
    "browser": "browser",
    "os": "os",
}


class LoginLogRepository:
    """Data access for `LoginLog` documents."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.store: DocumentStore[LoginLog] = DocumentStore(collection, LoginLog)

    async def create(self, log: Optional[LoginLog]) -> LoginLog:
        if log is None:
            raise InputError("login log cannot be empty")
        log.validate_for_create()
        log.prepare_for_insert()
        await self.store.insert(log)
        if log.is_failed():
            logger.info("Failed login for '%s' from %s: %s", log.username, log.ip_address, log.fail_reason)
        return log

    async def get_by_id(self, log_id: str) -> Optional[LoginLog]:
        oid = self.store.parse_id(log_id)
        return await self.store.find_one({"_id": oid})

    async def list(
        self, filter: Optional[LoginLogFilter] = None, page: int = 1, limit: int = 10
    ) -> Tuple[List[LoginLog], int]:
        filter = filter or LoginLogFilter()
        return await self.store.paginate(self.build_query(filter), self.build_sort(filter), page, limit)

    @staticmethod
    def build_query(filter: LoginLogFilter) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if filter.user_id and ObjectId.is_valid(filter.user_id):
            query["userId"] = ObjectId(filter.user_id)
        if filter.username:
            query.update(keyword_query(filter.username, ("username",)))
        for attr, key in EXACT_MATCH_FIELDS.items():
            value = getattr(filter, attr)
            if value:
                query[key] = value

        login_at: Dict[str, datetime] = {}
        if filter.start_time is not None:
            login_at["$gte"] = filter.start_time
        if filter.end_time is not None:
            login_at["$lte"] = filter.end_time
        if login_at:
            query["loginAt"] = login_at
        return query

    @staticmethod
    def build_sort(filter: LoginLogFilter) -> List[Tuple[str, int]]:
        return build_sort(filter.sort_by, filter.sort_desc, LOGIN_LOG_SORT_FIELDS, LOGIN_LOG_DEFAULT_SORT_FIELD)

    async def get_by_user_id(self, user_id: str, page: int = 1, limit: int = 10) -> Tuple[List[LoginLog], int]:
        self.store.parse_id(user_id, label="userID")
        return await self.list(LoginLogFilter(user_id=user_id), page, limit)

    async def get_by_ip_address(self, ip_address: str, page: int = 1, limit: int = 10) -> Tuple[List[LoginLog], int]:
        if not ip_address:
            raise InputError("ip address cannot be empty")
        return await self.list(LoginLogFilter(ip_address=ip_address), page, limit)

    async def get_recent_failed_logins(
        self, since: datetime, limit: int = DEFAULT_FAILED_LOGIN_LIMIT
    ) -> List[LoginLog]:
        """Failed attempts at or after `since`, newest first. `limit` is clamped to [1, 1000]."""
        limit = clamp_limit(limit, DEFAULT_FAILED_LOGIN_LIMIT, MAX_FAILED_LOGIN_LIMIT)
        query = {"status": LoginStatus.FAILED.value, "loginAt": {"$gte": since}}
        return await self.store.find_many(query, sort=[("loginAt", -1)], limit=limit)

    async def get_statistics(self, since: Optional[datetime] = None) -> LoginStatistics:
        """Attempt counts and distinct users/IPs, over all logs or those at or after `since`."""
        query: Dict[str, Any] = {}
        if since is not None:
            query["loginAt"] = {"$gte": since}

        total = await self.store.count(query)
        success = await self.store.count({**query, "status": LoginStatus.SUCCESS.value})
        failed = await self.store.count({**query, "status": LoginStatus.FAILED.value})
        users = await self.store.distinct("userId", {**query, "userId": {"$ne": None}})
        ips = await self.store.distinct("ipAddress", query)

        return LoginStatistics(
            total=total,
            success=success,
            failed=failed,
            unique_users=len(users),
            unique_ips=len(ips),
        )

    async def create_indexes(self) -> List[str]:
        return await self.store.create_indexes(INDEXES)
