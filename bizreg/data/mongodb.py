"""
MongoDB Record Store

PyMongo implementation of the ``RecordStore`` contract.

Key behaviours:
- Per-year counters live in their own collection and are advanced with a
  single ``find_one_and_update({"_id": key}, {"$inc": {"seq": 1}}, upsert=True)``
  returning the post-increment document. The server applies the increment
  and the read atomically, so concurrent workers in any number of processes
  never observe the same value.
- ``controlNumber`` carries a unique index; a duplicate-key error on insert
  surfaces as ``UniqueConstraintViolation`` and is never retried.
- Reads (find/count/aggregate) are retried on transient network errors via
  tenacity; writes are not. Every call goes through a per-store pybreaker
  circuit breaker so a dead server fails fast as ``StorageUnavailable``.
- Control-number ordering uses a numeric collation so ``2025-10000`` sorts
  after ``2025-9999``.
"""

import time
from typing import Any, Callable, Dict, List, Optional

import structlog
from bson import ObjectId
from bson.errors import InvalidId
from prometheus_client import Histogram
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.collation import Collation
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError
from pybreaker import CircuitBreakerError

from bizreg.data.exceptions import (
    DatabaseOperationType,
    create_circuit_breaker,
    create_read_retrying,
    handle_database_error,
)
from bizreg.data.predicates import RecordFilter
from bizreg.data.store import GroupKey, RecordStore, SortSpec, strip_managed_fields
from bizreg.utils.datetime_utils import Clock

logger = structlog.get_logger(__name__)

store_operation_duration = Histogram(
    "bizreg_store_operation_duration_seconds",
    "Record store operation duration",
    ["backend", "operation"],
)

NUMERIC_COLLATION = Collation(locale="en", numericOrdering=True)


def _to_object_id(record_id: Any) -> Optional[ObjectId]:
    if isinstance(record_id, ObjectId):
        return record_id
    try:
        return ObjectId(record_id)
    except (InvalidId, TypeError):
        return None


def _from_document(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if document is None:
        return None
    record = dict(document)
    record["id"] = str(record.pop("_id"))
    record.pop("__v", None)
    return record


class MongoRecordStore(RecordStore):
    """
    Record store backed by two MongoDB collections.

    Args:
        database: PyMongo ``Database`` handle
        clock: Application clock (timestamps and month extraction timezone)
        business_collection: Collection holding business records
        counter_collection: Collection holding per-year counters
        retry_attempts: Attempts for idempotent reads (1 disables retry)
        retry_wait_seconds: Base of the exponential wait between attempts
        breaker_fail_max: Consecutive failures before the circuit opens
        breaker_reset_timeout: Seconds before a half-open probe
        client: Owning ``MongoClient``; closed by ``close()`` when given
    """

    backend_name = "mongodb"

    def __init__(
        self,
        database: Database,
        clock: Optional[Clock] = None,
        business_collection: str = "businesses",
        counter_collection: str = "counters",
        retry_attempts: int = 3,
        retry_wait_seconds: float = 0.2,
        breaker_fail_max: int = 5,
        breaker_reset_timeout: float = 30,
        client: Optional[MongoClient] = None,
    ) -> None:
        self.database = database
        self.clock = clock or Clock()
        self.business_collection_name = business_collection
        self.counter_collection_name = counter_collection
        self.businesses: Collection = database[business_collection]
        self.counters: Collection = database[counter_collection]
        self._retry_attempts = retry_attempts
        self._retry_wait_seconds = retry_wait_seconds
        self._breaker = create_circuit_breaker(
            name=f"mongodb:{database.name}",
            fail_max=breaker_fail_max,
            reset_timeout=breaker_reset_timeout,
        )
        self._client = client

    # -- execution helpers --------------------------------------------------

    def _execute(self, operation: str, collection: str, func: Callable[[], Any], retry: bool = False) -> Any:
        start_time = time.perf_counter()
        try:
            if retry:
                for attempt in create_read_retrying(self._retry_attempts, self._retry_wait_seconds):
                    with attempt:
                        return self._breaker.call(func)
            return self._breaker.call(func)
        except (PyMongoError, CircuitBreakerError) as e:
            raise handle_database_error(e, operation, collection) from e
        finally:
            store_operation_duration.labels(backend=self.backend_name, operation=operation).observe(
                time.perf_counter() - start_time
            )

    def _read(self, operation: str, func: Callable[[], Any], collection: Optional[str] = None) -> Any:
        return self._execute(operation, collection or self.business_collection_name, func, retry=True)

    def _write(self, operation: str, func: Callable[[], Any], collection: Optional[str] = None) -> Any:
        return self._execute(operation, collection or self.business_collection_name, func)

    # -- counters -----------------------------------------------------------

    def increment_counter(self, key: str) -> int:
        def increment():
            update = {"$inc": {"seq": 1}}
            try:
                document = self.counters.find_one_and_update(
                    {"_id": key}, update, upsert=True, return_document=ReturnDocument.AFTER
                )
            except DuplicateKeyError:
                # Two first-of-year upserts raced on _id; the loser did not
                # increment anything, so applying the update once more is safe.
                document = self.counters.find_one_and_update(
                    {"_id": key}, update, upsert=True, return_document=ReturnDocument.AFTER
                )
            return int(document["seq"])

        return self._write(DatabaseOperationType.COUNTER.value, increment, self.counter_collection_name)

    def raise_counter_floor(self, key: str, value: int) -> int:
        def apply_floor():
            update = {"$max": {"seq": int(value)}}
            try:
                document = self.counters.find_one_and_update(
                    {"_id": key}, update, upsert=True, return_document=ReturnDocument.AFTER
                )
            except DuplicateKeyError:
                document = self.counters.find_one_and_update(
                    {"_id": key}, update, upsert=True, return_document=ReturnDocument.AFTER
                )
            return int(document["seq"])

        return self._write("raise_counter_floor", apply_floor, self.counter_collection_name)

    # -- records ------------------------------------------------------------

    def insert(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        document = strip_managed_fields(dict(fields))
        document.pop("_id", None)
        now = self.clock.now()
        document["createdAt"] = now
        document["updatedAt"] = now

        result = self._write("insert", lambda: self.businesses.insert_one(document))
        document["_id"] = result.inserted_id
        logger.debug(
            "Document inserted",
            collection=self.business_collection_name,
            document_id=str(result.inserted_id),
        )
        return _from_document(document)

    def find_by_id(self, record_id: str) -> Optional[Dict[str, Any]]:
        object_id = _to_object_id(record_id)
        if object_id is None:
            return None
        return _from_document(self._read("find_by_id", lambda: self.businesses.find_one({"_id": object_id})))

    def find_one(self, predicate: RecordFilter) -> Optional[Dict[str, Any]]:
        query = predicate.to_mongo()
        return _from_document(self._read("find_one", lambda: self.businesses.find_one(query)))

    def find(
        self,
        predicate: RecordFilter,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query = predicate.to_mongo()

        def run_query():
            options: Dict[str, Any] = {}
            if sort is not None and sort.field == "controlNumber":
                options["collation"] = NUMERIC_COLLATION
            cursor = self.businesses.find(query, projection={"__v": False}, **options)
            if sort is None:
                cursor = cursor.sort([("_id", ASCENDING)])
            else:
                direction = DESCENDING if sort.descending else ASCENDING
                cursor = cursor.sort([(sort.field, direction), ("_id", direction)])
            if skip:
                cursor = cursor.skip(skip)
            if limit:
                cursor = cursor.limit(limit)
            return list(cursor)

        documents = self._read("find", run_query)
        logger.debug(
            "Find completed",
            clauses=predicate.describe(),
            result_count=len(documents),
            skip=skip,
            limit=limit,
        )
        return [_from_document(document) for document in documents]

    def count(self, predicate: RecordFilter) -> int:
        query = predicate.to_mongo()
        return self._read("count", lambda: self.businesses.count_documents(query))

    def group_count(self, predicate: RecordFilter, key: GroupKey) -> Dict[Any, int]:
        pipeline: List[Dict[str, Any]] = []
        query = predicate.to_mongo()
        if query:
            pipeline.append({"$match": query})
        pipeline.append({"$group": {"_id": self._group_expression(key), "count": {"$sum": 1}}})

        rows = self._read(DatabaseOperationType.AGGREGATE.value, lambda: list(self.businesses.aggregate(pipeline)))
        return {row["_id"]: int(row["count"]) for row in rows}

    def _group_expression(self, key: GroupKey) -> Any:
        if key is GroupKey.STATUS:
            return "$status"
        if key is GroupKey.CONTROL_YEAR:
            return {"$substrCP": [{"$ifNull": ["$controlNumber", ""]}, 0, 4]}
        if key is GroupKey.CREATED_MONTH:
            return {"$month": {"date": "$createdAt", "timezone": self.clock.timezone_name}}
        raise ValueError(f"Unsupported group key: {key}")

    def update_fields(self, record_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        object_id = _to_object_id(record_id)
        if object_id is None:
            return None
        changes = strip_managed_fields(dict(fields), extra=("controlNumber", "_id"))
        changes["updatedAt"] = self.clock.now()
        document = self._write(
            "update",
            lambda: self.businesses.find_one_and_update(
                {"_id": object_id}, {"$set": changes}, return_document=ReturnDocument.AFTER
            ),
        )
        return _from_document(document)

    def delete(self, record_id: str) -> bool:
        object_id = _to_object_id(record_id)
        if object_id is None:
            return False
        result = self._write("delete", lambda: self.businesses.delete_one({"_id": object_id}))
        return result.deleted_count == 1

    # -- maintenance --------------------------------------------------------

    def ensure_indexes(self) -> None:
        def create_indexes():
            self.businesses.create_index([("controlNumber", ASCENDING)], unique=True, name="controlNumber_unique")
            self.businesses.create_index([("createdAt", DESCENDING)], name="createdAt_desc")
            self.businesses.create_index([("status", ASCENDING)], name="status")

        self._write(DatabaseOperationType.ADMIN.value, create_indexes)
        logger.info("Record store indexes ensured", collection=self.business_collection_name)

    def ping(self) -> bool:
        self._read("ping", lambda: self.database.command("ping"))
        return True

    def close(self) -> None:
        if self._client is not None:
            self._client.close()


def create_mongodb_store(
    uri: str,
    database_name: str,
    clock: Optional[Clock] = None,
    server_selection_timeout_ms: int = 5000,
    max_pool_size: int = 50,
    **store_options,
) -> MongoRecordStore:
    """Build a ``MongoRecordStore`` with its own timezone-aware ``MongoClient``."""
    client = MongoClient(
        uri,
        tz_aware=True,
        serverSelectionTimeoutMS=server_selection_timeout_ms,
        maxPoolSize=max_pool_size,
        appname="bizreg",
    )
    return MongoRecordStore(client[database_name], clock=clock, client=client, **store_options)


__all__ = ["MongoRecordStore", "create_mongodb_store", "NUMERIC_COLLATION"]
