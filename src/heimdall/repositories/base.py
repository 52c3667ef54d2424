"""
# Document Store

Generic collection helper composed by every repository. It owns the pieces of the
repository contract that do not depend on the entity type:

- id parsing (`parse_id`) with the "empty" and "invalid format" input errors;
- insert / find / paginate / count / update wrappers around a Motor collection that
  decode documents into entities and log timings through `db_manager`;
- error translation: `DuplicateKeyError` becomes `ConflictError(field)` and every other
  `PyMongoError` becomes `BackendError` with the driver error chained.

Repositories hold a `DocumentStore` rather than inheriting from a base repository; the
entity-specific filter, sort and query logic stays in each repository module.

`asyncio.CancelledError` is never caught here, so task cancellation reaches the caller
unchanged. Per-request deadlines can be applied around any call with
`pymongo.timeout(seconds)`; the resulting timeout errors surface as `BackendError`.
"""

import re
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import ValidationError as PydanticValidationError
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from heimdall.database import db_manager
from heimdall.exceptions import BackendError, ConflictError, ErrorCode, InputError, NotFoundError, ValidationError
from heimdall.managers.logging_manager import get_logger
from heimdall.models.common_models import MongoModel
from heimdall.models.constants import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, MIN_PAGE_SIZE

logger = get_logger(prefix="[DocumentStore]")

T = TypeVar("T", bound=MongoModel)

SortSpec = List[Tuple[str, int]]

_INDEX_NAME_RE = re.compile(r"index: (\S+)")


def normalize_pagination(page: int, limit: int) -> Tuple[int, int]:
    """Clamp `page` to >= 1 and `limit` to [1, 100], an out-of-range low limit meaning the default 10."""
    if page < 1:
        page = DEFAULT_PAGE
    if limit < MIN_PAGE_SIZE:
        limit = DEFAULT_PAGE_SIZE
    if limit > MAX_PAGE_SIZE:
        limit = MAX_PAGE_SIZE
    return page, limit


def clamp_limit(limit: int, default: int, maximum: int) -> int:
    if limit < MIN_PAGE_SIZE:
        return default
    return min(limit, maximum)


def keyword_query(keyword: str, fields: Sequence[str]) -> Dict[str, Any]:
    """Case-insensitive substring match of `keyword` against any of `fields`."""
    pattern = {"$regex": re.escape(keyword), "$options": "i"}
    if len(fields) == 1:
        return {fields[0]: pattern}
    return {"$or": [{field: dict(pattern)} for field in fields]}


def build_sort(sort_by: str, sort_desc: bool, allowed: Sequence[str], default: str) -> SortSpec:
    """Single-key sort on `sort_by`, or `default` descending when the key is not allowed."""
    if sort_by not in allowed:
        return [(default, -1)]
    return [(sort_by, -1 if sort_desc else 1)]


def duplicate_key_field(error: DuplicateKeyError, default: str) -> str:
    """Name of the field whose unique index rejected the write."""
    details = error.details or {}
    for key in ("keyPattern", "keyValue"):
        fields = details.get(key)
        if fields:
            return next(iter(fields))
    match = _INDEX_NAME_RE.search(str(error))
    if match:
        return match.group(1).rsplit("_", 1)[0]
    return default


def parse_update_fields(model: Type[T], fields: Optional[Dict[str, Any]], protected: Sequence[str] = ()) -> T:
    """
    Build a partial entity from a camelCase update map.

    Only the keys present in `fields` end up in the entity's `model_fields_set`, so
    `validate_for_update()` and `to_document(include=...)` see exactly what the caller sent.

    Raises:
        InputError: `fields` is empty.
        ValidationError: a key is unknown or protected, or a value has the wrong type.
    """
    if not fields:
        raise InputError("updates cannot be empty", ErrorCode.EMPTY_UPDATE)

    known = set()
    for attr, info in model.model_fields.items():
        known.add(attr)
        known.add(info.alias or attr)
    blocked = {"id", "_id", "created_at", "createdAt", *protected}
    for key in fields:
        if key in blocked:
            raise ValidationError(key, f"{key} cannot be updated")
        if key not in known:
            raise ValidationError(key, f"unknown field {key!r}")

    try:
        return model.model_validate(fields)
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = str(error["loc"][0]) if error["loc"] else ""
        raise ValidationError(field, error["msg"]) from e


class DocumentStore(Generic[T]):
    """
    Typed access to one MongoDB collection.

    Args:
        collection: Motor collection the store reads and writes.
        model: Entity class used to decode documents.
        conflict_field: Field reported by `ConflictError` when the duplicate-key error does
            not name one.
    """

    def __init__(self, collection: AsyncIOMotorCollection, model: Type[T], conflict_field: str = "id"):
        self.collection = collection
        self.model = model
        self.conflict_field = conflict_field

    @property
    def name(self) -> str:
        return getattr(self.collection, "name", self.model.__name__)

    # --- Ids ---

    @staticmethod
    def parse_id(value: Optional[str], label: str = "id") -> ObjectId:
        """Decode a hex id, raising `InputError` when it is empty or malformed."""
        if not value:
            raise InputError(f"{label} cannot be empty", ErrorCode.EMPTY_ID)
        if not ObjectId.is_valid(value):
            raise InputError(f"invalid {label} format", ErrorCode.INVALID_ID)
        return ObjectId(value)

    def _backend_error(self, operation: str, start_time: float, error: PyMongoError, query=None) -> BackendError:
        db_manager.log_query_error(self.name, operation, start_time, error, query)
        return BackendError(f"{operation} on '{self.name}' failed: {error}")

    # --- Writes ---

    async def insert(self, entity: T) -> T:
        document = entity.to_document()
        start_time = db_manager.log_query_start(self.name, "insert_one", document)
        try:
            await self.collection.insert_one(document)
        except DuplicateKeyError as e:
            field = duplicate_key_field(e, self.conflict_field)
            db_manager.log_query_error(self.name, "insert_one", start_time, e)
            raise ConflictError(field) from e
        except PyMongoError as e:
            raise self._backend_error("insert_one", start_time, e, document) from e
        db_manager.log_query_success(self.name, "insert_one", start_time, 1)
        return entity

    async def update_one(self, query: Dict[str, Any], update: Any) -> int:
        """Apply `update` to the first match. Raises `NotFoundError` when nothing matched."""
        start_time = db_manager.log_query_start(self.name, "update_one", query, update)
        try:
            result = await self.collection.update_one(query, update)
        except DuplicateKeyError as e:
            field = duplicate_key_field(e, self.conflict_field)
            db_manager.log_query_error(self.name, "update_one", start_time, e, query)
            raise ConflictError(field) from e
        except PyMongoError as e:
            raise self._backend_error("update_one", start_time, e, query) from e

        if result.matched_count == 0:
            db_manager.log_query_success(self.name, "update_one", start_time, 0)
            raise NotFoundError(f"no {self.model.__name__.lower()} matched {query}")
        db_manager.log_query_success(self.name, "update_one", start_time, result.modified_count)
        return result.modified_count

    async def find_one_and_update(self, query: Dict[str, Any], update: Dict[str, Any]) -> Optional[T]:
        """Atomically update the first match and return it as modified, or `None`."""
        start_time = db_manager.log_query_start(self.name, "find_one_and_update", query, update)
        try:
            document = await self.collection.find_one_and_update(
                query, update, return_document=ReturnDocument.AFTER
            )
        except PyMongoError as e:
            raise self._backend_error("find_one_and_update", start_time, e, query) from e
        db_manager.log_query_success(self.name, "find_one_and_update", start_time, 0 if document is None else 1)
        return self.model.from_document(document) if document is not None else None

    # --- Reads ---

    async def find_one(self, query: Dict[str, Any]) -> Optional[T]:
        start_time = db_manager.log_query_start(self.name, "find_one", query)
        try:
            document = await self.collection.find_one(query)
        except PyMongoError as e:
            raise self._backend_error("find_one", start_time, e, query) from e
        db_manager.log_query_success(self.name, "find_one", start_time, 0 if document is None else 1)
        return self.model.from_document(document) if document is not None else None

    async def find_many(
        self, query: Dict[str, Any], sort: Optional[SortSpec] = None, skip: int = 0, limit: int = 0
    ) -> List[T]:
        """Decode every match. A `limit` of 0 means no limit."""
        start_time = db_manager.log_query_start(self.name, "find", query, {"sort": sort, "skip": skip, "limit": limit})
        try:
            cursor = self.collection.find(query)
            if sort:
                cursor = cursor.sort(sort)
            if skip:
                cursor = cursor.skip(skip)
            if limit:
                cursor = cursor.limit(limit)
            documents = await cursor.to_list(length=limit or None)
        except PyMongoError as e:
            raise self._backend_error("find", start_time, e, query) from e
        db_manager.log_query_success(self.name, "find", start_time, len(documents))
        return [self.model.from_document(document) for document in documents]

    async def count(self, query: Dict[str, Any]) -> int:
        start_time = db_manager.log_query_start(self.name, "count_documents", query)
        try:
            total = await self.collection.count_documents(query)
        except PyMongoError as e:
            raise self._backend_error("count_documents", start_time, e, query) from e
        db_manager.log_query_success(self.name, "count_documents", start_time, total)
        return total

    async def exists(self, query: Dict[str, Any]) -> bool:
        start_time = db_manager.log_query_start(self.name, "find_one", query)
        try:
            document = await self.collection.find_one(query, projection={"_id": 1})
        except PyMongoError as e:
            raise self._backend_error("find_one", start_time, e, query) from e
        db_manager.log_query_success(self.name, "find_one", start_time, 0 if document is None else 1)
        return document is not None

    async def distinct(self, field: str, query: Dict[str, Any]) -> List[Any]:
        start_time = db_manager.log_query_start(self.name, "distinct", query)
        try:
            values = await self.collection.distinct(field, query)
        except PyMongoError as e:
            raise self._backend_error("distinct", start_time, e, query) from e
        db_manager.log_query_success(self.name, "distinct", start_time, len(values))
        return values

    async def aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Run an aggregation pipeline and return the raw result documents."""
        start_time = db_manager.log_query_start(self.name, "aggregate", {"pipeline": pipeline})
        try:
            results = await self.collection.aggregate(pipeline).to_list(length=None)
        except PyMongoError as e:
            raise self._backend_error("aggregate", start_time, e) from e
        db_manager.log_query_success(self.name, "aggregate", start_time, len(results))
        return results

    async def paginate(self, query: Dict[str, Any], sort: SortSpec, page: int, limit: int) -> Tuple[List[T], int]:
        """Return one page of matches and the total match count. Pagination is clamped first."""
        page, limit = normalize_pagination(page, limit)
        total = await self.count(query)
        items = await self.find_many(query, sort=sort, skip=(page - 1) * limit, limit=limit)
        return items, total

    # --- Indexes ---

    async def create_indexes(self, indexes: List[Any]) -> List[str]:
        start_time = db_manager.log_query_start(self.name, "create_indexes")
        try:
            names = await self.collection.create_indexes(indexes)
        except PyMongoError as e:
            raise self._backend_error("create_indexes", start_time, e) from e
        db_manager.log_query_success(self.name, "create_indexes", start_time, len(names))
        logger.info("Ensured %d indexes on '%s'", len(names), self.name)
        return names
