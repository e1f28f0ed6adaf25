from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError

from app.core.errors import DependencyFailure
from app.core.store import MongoEntityStore, serialize_document, to_object_id


@pytest.fixture
def database():
    return MagicMock()


def test_serialize_document_exposes_string_id():
    object_id = ObjectId()
    assert serialize_document({"_id": object_id, "title": "Lamp"}) == {"id": str(object_id), "title": "Lamp"}
    assert serialize_document(None) is None


def test_to_object_id():
    object_id = ObjectId()
    assert to_object_id(str(object_id)) == object_id
    assert to_object_id(object_id) is object_id
    assert to_object_id("not-an-id") is None
    assert to_object_id(None) is None


def test_create_returns_record_with_id(database):
    object_id = ObjectId()
    database["reports"].insert_one.return_value.inserted_id = object_id

    record = MongoEntityStore(database).create("reports", {"status": "pending"})

    assert record == {"id": str(object_id), "status": "pending"}


def test_filters_translate_id(database):
    first, second = ObjectId(), ObjectId()
    database["products"].find.return_value = []

    MongoEntityStore(database).find("products", {"id": {"$in": [str(first), str(second)]}, "status": "active"})

    database["products"].find.assert_called_once_with({"_id": {"$in": [first, second]}, "status": "active"})


def test_find_sorts_when_order_given(database):
    cursor = MagicMock()
    cursor.sort.return_value = [{"_id": ObjectId(), "title": "Lamp"}]
    database["products"].find.return_value = cursor

    records = MongoEntityStore(database).find("products", order=[("created_at", -1)])

    cursor.sort.assert_called_once_with([("created_at", -1)])
    assert records[0]["title"] == "Lamp"


def test_invalid_id_short_circuits(database):
    store = MongoEntityStore(database)
    assert store.get_by_id("products", "nope") is None
    assert store.update("products", "nope", {"title": "x"}) is None
    database["products"].find_one.assert_not_called()


def test_update_sets_fields(database):
    object_id = ObjectId()
    database["products"].find_one_and_update.return_value = {"_id": object_id, "status": "inactive"}

    record = MongoEntityStore(database).update("products", str(object_id), {"status": "inactive"})

    assert record == {"id": str(object_id), "status": "inactive"}
    args, _ = database["products"].find_one_and_update.call_args
    assert args == ({"_id": object_id}, {"$set": {"status": "inactive"}})


def test_driver_errors_become_dependency_failures(database):
    database["reports"].count_documents.side_effect = ServerSelectionTimeoutError("no servers")

    with pytest.raises(DependencyFailure) as excinfo:
        MongoEntityStore(database).count("reports", {"status": "pending"})
    assert excinfo.value.status_code == 503


def test_destroy_needs_a_target(database):
    with pytest.raises(ValueError):
        MongoEntityStore(database).destroy("reports")


def test_transaction_passes_session_to_calls(database):
    session = database.client.start_session.return_value.__enter__.return_value
    database["reports"].count_documents.return_value = 0
    store = MongoEntityStore(database, use_transactions=True)

    with store.transaction("product:1"):
        store.count("reports")
        # nested sections reuse the open session
        with store.transaction("product:1"):
            store.count("reports")

    session.start_transaction.assert_called_once()
    for call in database["reports"].count_documents.call_args_list:
        assert call.kwargs == {"session": session}
    assert store.count("reports") == 0
    assert database["reports"].count_documents.call_args.kwargs == {}


def test_lock_entries_are_dropped_after_each_section(database):
    store = MongoEntityStore(database)

    with store.transaction("product:1"):
        with store.transaction("product:1"):
            assert store._locks["product:1"][1] == 2
        with store.transaction("appeal:9"):
            assert set(store._locks) == {"product:1", "appeal:9"}
        assert "appeal:9" not in store._locks

    assert store._locks == {}


def test_lock_entry_is_dropped_when_the_section_fails(database):
    store = MongoEntityStore(database)

    with pytest.raises(RuntimeError):
        with store.transaction("report:1"):
            raise RuntimeError("boom")

    assert store._locks == {}
