"""
# User Repository

Persistence for administrator accounts in the `users` collection.

## Lockout Handling

`record_login_failure()` increments `loginFailCount` with a single atomic `$inc` and reads
the new value back. When the new value crosses a lockout threshold, the lock is written
with a second update guarded on that exact counter value, so two concurrent failures
always end with the counter reflecting both attempts and the lock matching the final
count.

`update_login_info()` and `unlock_user()` clear the counter and the lock. Expired locks
are listed by `get_locked_users()` and released by the maintenance sweep.

## Module Attributes

Attributes:
    COLLECTION_NAME (str): `users`.
    INDEXES (List[IndexModel]): Indexes provisioned by `create_indexes()`.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING, IndexModel

from heimdall.exceptions import InputError, NotFoundError
from heimdall.managers.logging_manager import get_logger
from heimdall.models.constants import (
    DEFAULT_SORT_FIELD,
    USER_SORT_FIELDS,
    UserStatus,
    get_lock_duration,
)
from heimdall.models.user_models import User, UserFilter
from heimdall.repositories.base import DocumentStore, build_sort, keyword_query, parse_update_fields
from heimdall.utils.text_utils import ensure_utc, utc_now

logger = get_logger(prefix="[UserRepository]")

COLLECTION_NAME = "users"

INDEXES: List[IndexModel] = [
    IndexModel([("username", ASCENDING)], unique=True),
    IndexModel([("email", ASCENDING)], unique=True),
    IndexModel([("role", ASCENDING), ("status", ASCENDING)]),
    IndexModel([("lockedUntil", ASCENDING)]),
    IndexModel([("createdAt", DESCENDING)]),
]

KEYWORD_FIELDS = ("username", "email", "displayName")


class UserRepository:
    """Data access for `User` documents."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.store: DocumentStore[User] = DocumentStore(collection, User, conflict_field="username")

    # --- CRUD ---

    async def create(self, user: Optional[User]) -> User:
        """
        Validate and insert a new account.

        Raises:
            InputError: `user` is `None`.
            ValidationError: a field breaks a domain rule.
            ConflictError: the username or email is already taken (`field` names which).
            BackendError: any other storage failure.
        """
        if user is None:
            raise InputError("user cannot be empty")
        user.validate_for_create()
        user.prepare_for_insert()
        await self.store.insert(user)
        logger.info("Created user %s (%s)", user.username, user.id)
        return user

    async def get_by_id(self, user_id: str) -> Optional[User]:
        oid = self.store.parse_id(user_id)
        return await self.store.find_one({"_id": oid})

    async def get_by_username(self, username: str) -> Optional[User]:
        if not username:
            raise InputError("username cannot be empty")
        return await self.store.find_one({"username": username})

    async def get_by_email(self, email: str) -> Optional[User]:
        if not email:
            raise InputError("email cannot be empty")
        return await self.store.find_one({"email": email})

    async def update(self, user_id: str, fields: Dict[str, Any]) -> None:
        """Apply a partial camelCase update. `updatedAt` is always stamped."""
        oid = self.store.parse_id(user_id)
        partial = parse_update_fields(User, fields)
        partial.validate_for_update()

        update_set = partial.to_document(include=partial.model_fields_set)
        update_set["updatedAt"] = utc_now()
        await self.store.update_one({"_id": oid}, {"$set": update_set})

    async def delete(self, user_id: str) -> None:
        """Soft delete: the account becomes `inactive` and is kept."""
        oid = self.store.parse_id(user_id)
        await self.store.update_one(
            {"_id": oid},
            {"$set": {"status": UserStatus.INACTIVE.value, "updatedAt": utc_now()}},
        )
        logger.info("Soft-deleted user %s", user_id)

    async def list(self, filter: Optional[UserFilter] = None, page: int = 1, limit: int = 10) -> Tuple[List[User], int]:
        filter = filter or UserFilter()
        return await self.store.paginate(self.build_query(filter), self.build_sort(filter), page, limit)

    # --- Query building ---

    @staticmethod
    def build_query(filter: UserFilter) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if filter.role:
            query["role"] = filter.role
        if filter.status:
            query["status"] = filter.status
        if filter.keyword:
            query.update(keyword_query(filter.keyword, KEYWORD_FIELDS))
        return query

    @staticmethod
    def build_sort(filter: UserFilter) -> List[Tuple[str, int]]:
        return build_sort(filter.sort_by, filter.sort_desc, USER_SORT_FIELDS, DEFAULT_SORT_FIELD)

    # --- Login state ---

    async def update_login_info(self, user_id: str, ip_address: str, now: Optional[datetime] = None) -> None:
        """Record a successful login: stamp the last login, clear the counter and any lock."""
        oid = self.store.parse_id(user_id)
        now = ensure_utc(now) or utc_now()
        pipeline = [
            {
                "$set": {
                    "lastLoginAt": now,
                    "lastLoginIP": ip_address,
                    "loginFailCount": 0,
                    "updatedAt": now,
                    "status": {
                        "$cond": [
                            {"$eq": ["$status", UserStatus.LOCKED.value]},
                            UserStatus.ACTIVE.value,
                            "$status",
                        ]
                    },
                }
            },
            {"$unset": "lockedUntil"},
        ]
        await self.store.update_one({"_id": oid}, pipeline)

    async def record_login_failure(self, user_id: str, now: Optional[datetime] = None) -> User:
        """
        Count one failed login and lock the account when a threshold is crossed.

        Returns:
            User: The account after the increment, including any lock just applied.

        Raises:
            NotFoundError: no account has this id.
        """
        oid = self.store.parse_id(user_id)
        now = ensure_utc(now) or utc_now()

        user = await self.store.find_one_and_update(
            {"_id": oid},
            {"$inc": {"loginFailCount": 1}, "$set": {"updatedAt": now}},
        )
        if user is None:
            raise NotFoundError(f"user {user_id} not found")

        duration = get_lock_duration(user.login_fail_count)
        if duration is None:
            return user

        locked_until = now + duration
        try:
            await self.store.update_one(
                {"_id": oid, "loginFailCount": user.login_fail_count},
                {"$set": {"status": UserStatus.LOCKED.value, "lockedUntil": locked_until, "updatedAt": now}},
            )
        except NotFoundError:
            # A newer failure moved the counter on and writes its own lock.
            logger.debug("Lock for user %s superseded by a concurrent failure", user_id)
            return user

        user.status = UserStatus.LOCKED.value
        user.locked_until = locked_until
        logger.warning(
            "User %s locked until %s after %d failed logins", user_id, locked_until.isoformat(), user.login_fail_count
        )
        return user

    async def lock_user(self, user_id: str, until: datetime) -> None:
        oid = self.store.parse_id(user_id)
        update = {"status": UserStatus.LOCKED.value, "lockedUntil": ensure_utc(until), "updatedAt": utc_now()}
        await self.store.update_one({"_id": oid}, {"$set": update})

    async def unlock_user(self, user_id: str) -> None:
        """Administrative unlock: status `active`, counter reset, lock expiry removed."""
        oid = self.store.parse_id(user_id)
        await self.store.update_one(
            {"_id": oid},
            {
                "$set": {"status": UserStatus.ACTIVE.value, "loginFailCount": 0, "updatedAt": utc_now()},
                "$unset": {"lockedUntil": ""},
            },
        )
        logger.info("Unlocked user %s", user_id)

    async def get_locked_users(self, now: Optional[datetime] = None) -> List[User]:
        """Users still marked `locked` whose lock has already expired."""
        query = {"status": UserStatus.LOCKED.value, "lockedUntil": {"$lte": now or utc_now()}}
        return await self.store.find_many(query)

    async def list_expired_locks(self, now: Optional[datetime] = None) -> List[User]:
        return await self.get_locked_users(now)

    async def count_by_role(self) -> Dict[str, int]:
        results = await self.store.aggregate([{"$group": {"_id": "$role", "count": {"$sum": 1}}}])
        return {result["_id"]: result["count"] for result in results if result.get("_id")}

    async def create_indexes(self) -> List[str]:
        return await self.store.create_indexes(INDEXES)
