"""
Unit tests for the PyMongo record store against mocked collections.

Validates the exact driver calls behind the atomic counter, duplicate-key
translation, numeric control-number collation, read retry, write no-retry
and the circuit breaker.
"""

from unittest.mock import MagicMock, Mock

import pytest
from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import AutoReconnect, DuplicateKeyError, ServerSelectionTimeoutError

from bizreg.business.pagination import PageRequest, PaginationEngine
from bizreg.data.exceptions import StorageUnavailable, UniqueConstraintViolation
from bizreg.data.mongodb import NUMERIC_COLLATION, MongoRecordStore
from bizreg.data.predicates import OPEN_FILTER, RecordFilter, StatusClause, TextClause
from bizreg.data.store import GroupKey, SortSpec

pytestmark = pytest.mark.unit


@pytest.fixture
def collections():
    return {"businesses": MagicMock(name="businesses"), "counters": MagicMock(name="counters")}


@pytest.fixture
def mock_database(collections):
    database = MagicMock(name="database")
    database.name = "bizreg_test"
    database.__getitem__.side_effect = lambda name: collections[name]
    return database


@pytest.fixture
def mongo_store(mock_database, fixed_clock):
    return MongoRecordStore(mock_database, clock=fixed_clock, retry_attempts=1, retry_wait_seconds=0)


def duplicate_key_error(key="controlNumber", value="2025-0001"):
    return DuplicateKeyError("E11000 duplicate key error", 11000, {"keyValue": {key: value}})


class TestCounters:

    def test_increment_is_single_atomic_upsert(self, mongo_store, collections):
        collections["counters"].find_one_and_update.return_value = {"_id": "controlNumber:2025", "seq": 3}

        assert mongo_store.increment_counter("controlNumber:2025") == 3
        collections["counters"].find_one_and_update.assert_called_once_with(
            {"_id": "controlNumber:2025"},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

    def test_first_of_year_upsert_race_is_applied_once_more(self, mongo_store, collections):
        collections["counters"].find_one_and_update.side_effect = [
            duplicate_key_error("_id", "controlNumber:2025"),
            {"_id": "controlNumber:2025", "seq": 2},
        ]

        assert mongo_store.increment_counter("controlNumber:2025") == 2
        assert collections["counters"].find_one_and_update.call_count == 2

    def test_counter_failure_is_storage_unavailable(self, mongo_store, collections):
        collections["counters"].find_one_and_update.side_effect = AutoReconnect("connection reset")

        with pytest.raises(StorageUnavailable):
            mongo_store.increment_counter("controlNumber:2025")
        assert collections["counters"].find_one_and_update.call_count == 1, "Counter writes are never retried"

    def test_raise_counter_floor_uses_max(self, mongo_store, collections):
        collections["counters"].find_one_and_update.return_value = {"seq": 40}

        assert mongo_store.raise_counter_floor("controlNumber:2024", 40) == 40
        args, kwargs = collections["counters"].find_one_and_update.call_args
        assert args[1] == {"$max": {"seq": 40}}
        assert kwargs["upsert"] is True


class TestRecords:

    def test_insert_returns_record_with_string_id(self, mongo_store, collections, fixed_clock):
        object_id = ObjectId()
        collections["businesses"].insert_one.return_value = Mock(inserted_id=object_id)

        record = mongo_store.insert({"businessName": "Shop", "controlNumber": "2025-0001", "id": "x"})

        assert record["id"] == str(object_id)
        assert "_id" not in record
        assert record["createdAt"] == fixed_clock.now()
        stored = collections["businesses"].insert_one.call_args.args[0]
        assert "id" not in stored

    def test_duplicate_control_number_is_unique_violation(self, mongo_store, collections):
        collections["businesses"].insert_one.side_effect = duplicate_key_error()

        with pytest.raises(UniqueConstraintViolation) as exc_info:
            mongo_store.insert({"controlNumber": "2025-0001"})
        assert exc_info.value.key == "controlNumber"
        assert exc_info.value.value == "2025-0001"
        assert collections["businesses"].insert_one.call_count == 1

    def test_invalid_object_id_is_a_miss(self, mongo_store, collections):
        assert mongo_store.find_by_id("not-an-object-id") is None
        assert mongo_store.update_fields("zzz", {"businessName": "x"}) is None
        assert mongo_store.delete("zzz") is False
        collections["businesses"].find_one.assert_not_called()

    def test_find_by_id(self, mongo_store, collections):
        object_id = ObjectId()
        collections["businesses"].find_one.return_value = {"_id": object_id, "businessName": "Shop", "__v": 0}

        record = mongo_store.find_by_id(str(object_id))

        assert record == {"id": str(object_id), "businessName": "Shop"}
        collections["businesses"].find_one.assert_called_once_with({"_id": object_id})

    def test_control_number_sort_uses_numeric_collation(self, mongo_store, collections):
        cursor = MagicMock(name="cursor")
        cursor.sort.return_value = cursor
        cursor.skip.return_value = cursor
        cursor.limit.return_value = cursor
        cursor.__iter__.return_value = iter([{"_id": ObjectId(), "controlNumber": "2025-0002"}])
        collections["businesses"].find.return_value = cursor

        records = mongo_store.find(OPEN_FILTER, sort=SortSpec("controlNumber", False), skip=20, limit=10)

        assert records[0]["controlNumber"] == "2025-0002"
        find_kwargs = collections["businesses"].find.call_args.kwargs
        assert find_kwargs["collation"] == NUMERIC_COLLATION
        cursor.sort.assert_called_once_with([("controlNumber", ASCENDING), ("_id", ASCENDING)])
        cursor.skip.assert_called_once_with(20)
        cursor.limit.assert_called_once_with(10)

    def test_descending_sort_breaks_ties_by_id_descending(self, mongo_store, collections):
        cursor = MagicMock(name="cursor")
        cursor.sort.return_value = cursor
        cursor.__iter__.return_value = iter([])
        collections["businesses"].find.return_value = cursor

        mongo_store.find(RecordFilter((StatusClause("complete"),)), sort=SortSpec("createdAt", True))

        assert collections["businesses"].find.call_args.args[0] == {"status": "complete"}
        assert "collation" not in collections["businesses"].find.call_args.kwargs
        cursor.sort.assert_called_once_with([("createdAt", DESCENDING), ("_id", DESCENDING)])

    def test_exact_search_is_unaffected_by_numeric_collation(self, mongo_store, collections):
        cursor = MagicMock(name="cursor")
        cursor.sort.return_value = cursor
        cursor.__iter__.return_value = iter([])
        collections["businesses"].find.return_value = cursor
        predicate = RecordFilter((TextClause(("controlNumber",), "2025-7", exact=True),))

        mongo_store.find(predicate, sort=SortSpec("controlNumber", False))

        args, kwargs = collections["businesses"].find.call_args
        assert kwargs["collation"] == NUMERIC_COLLATION
        assert args[0] == {"controlNumber": {"$regex": "^2025\\-7\\z"}}, "Equality would compare numerically"

    def test_update_sets_fields_and_updated_at_only(self, mongo_store, collections, fixed_clock):
        object_id = ObjectId()
        collections["businesses"].find_one_and_update.return_value = {"_id": object_id, "businessName": "New"}

        mongo_store.update_fields(str(object_id), {"businessName": "New", "controlNumber": "2025-0099"})

        args, kwargs = collections["businesses"].find_one_and_update.call_args
        assert args[0] == {"_id": object_id}
        assert args[1] == {"$set": {"businessName": "New", "updatedAt": fixed_clock.now()}}
        assert kwargs["return_document"] == ReturnDocument.AFTER


class TestAggregation:

    def test_group_by_created_month_uses_timezone(self, mock_database, collections, clock_factory, fixed_clock):
        clock = clock_factory(fixed_clock.current, "Asia/Manila")
        store = MongoRecordStore(mock_database, clock=clock, retry_attempts=1)
        collections["businesses"].aggregate.return_value = iter([{"_id": 1, "count": 2}, {"_id": 3, "count": 1}])

        counts = store.group_count(RecordFilter((StatusClause("complete"),)), GroupKey.CREATED_MONTH)

        assert counts == {1: 2, 3: 1}
        pipeline = collections["businesses"].aggregate.call_args.args[0]
        assert pipeline[0] == {"$match": {"status": "complete"}}
        assert pipeline[1]["$group"]["_id"] == {"$month": {"date": "$createdAt", "timezone": "Asia/Manila"}}

    def test_open_filter_skips_match_stage(self, mongo_store, collections):
        collections["businesses"].aggregate.return_value = iter([{"_id": "2025", "count": 4}])

        assert mongo_store.group_count(OPEN_FILTER, GroupKey.CONTROL_YEAR) == {"2025": 4}
        pipeline = collections["businesses"].aggregate.call_args.args[0]
        assert len(pipeline) == 1


class TestResilience:

    def test_reads_are_retried_on_transient_errors(self, mock_database, collections, fixed_clock):
        store = MongoRecordStore(mock_database, clock=fixed_clock, retry_attempts=3, retry_wait_seconds=0)
        collections["businesses"].count_documents.side_effect = [AutoReconnect("blip"), 5]

        assert store.count(OPEN_FILTER) == 5
        assert collections["businesses"].count_documents.call_count == 2

    def test_exhausted_read_is_storage_unavailable(self, mongo_store, collections):
        collections["businesses"].count_documents.side_effect = ServerSelectionTimeoutError("no servers")

        with pytest.raises(StorageUnavailable) as exc_info:
            mongo_store.count(OPEN_FILTER)
        assert exc_info.value.operation == "count"

    def test_inserts_are_not_retried(self, mock_database, collections, fixed_clock):
        store = MongoRecordStore(mock_database, clock=fixed_clock, retry_attempts=3, retry_wait_seconds=0)
        collections["businesses"].insert_one.side_effect = AutoReconnect("reset")

        with pytest.raises(StorageUnavailable):
            store.insert({"controlNumber": "2025-0001"})
        assert collections["businesses"].insert_one.call_count == 1

    def test_open_circuit_fails_fast(self, mock_database, collections, fixed_clock):
        store = MongoRecordStore(mock_database, clock=fixed_clock, retry_attempts=1, breaker_fail_max=2)
        collections["businesses"].count_documents.side_effect = ServerSelectionTimeoutError("down")

        for _ in range(2):
            with pytest.raises(StorageUnavailable):
                store.count(OPEN_FILTER)
        with pytest.raises(StorageUnavailable):
            store.count(OPEN_FILTER)

        assert collections["businesses"].count_documents.call_count == 2

    def test_ping(self, mongo_store, mock_database):
        assert mongo_store.ping() is True
        mock_database.command.assert_called_once_with("ping")


class TestPaging:

    def test_page_past_the_end_skips_find(self, mongo_store, collections):
        collections["businesses"].count_documents.return_value = 3
        page_request = PageRequest(page=10**23, limit=20)

        records, page_info = PaginationEngine(mongo_store).query(OPEN_FILTER, page_request)

        assert records == []
        assert page_info.total == 3
        assert page_info.total_pages == 1
        assert page_info.has_next_page is False
        collections["businesses"].find.assert_not_called()

    def test_page_inside_range_reaches_find(self, mongo_store, collections):
        cursor = MagicMock(name="cursor")
        cursor.sort.return_value = cursor
        cursor.skip.return_value = cursor
        cursor.limit.return_value = cursor
        cursor.__iter__.return_value = iter([{"_id": ObjectId(), "businessName": "Shop"}])
        collections["businesses"].find.return_value = cursor
        collections["businesses"].count_documents.return_value = 21

        records, page_info = PaginationEngine(mongo_store).query(OPEN_FILTER, PageRequest(page=2, limit=20))

        assert [r["businessName"] for r in records] == ["Shop"]
        assert page_info.has_prev_page is True
        cursor.skip.assert_called_once_with(20)
