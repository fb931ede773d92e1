"""
Unit tests for the MongoDB access wrapper.
It asserts expected behavior and guards against regressions in the corresponding component.
These tests are executed by `pytest` locally and in CI and should remain deterministic.
"""

from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo import UpdateOne

from fleetops.api.db_access import DatabaseClient, parse_object_id


def _client() -> tuple[DatabaseClient, MagicMock]:
    mongo = MagicMock()
    return DatabaseClient(mongodb_uri="mongodb://unused", database_name="fleetops", client=mongo), mongo


def test_parse_object_id() -> None:
    object_id = ObjectId()

    assert parse_object_id(str(object_id)) == object_id
    assert parse_object_id(object_id) is object_id
    with pytest.raises(ValueError, match="Invalid identifier"):
        parse_object_id("123")


def test_update_one_combines_set_and_inc() -> None:
    client, mongo = _client()
    collection = mongo["fleetops"]["services"]
    collection.update_one.return_value.matched_count = 1

    matched = client.update_one(
        "services", {"_id": 1}, set_fields={"name": "x"}, inc_fields={"popularity": 1}
    )

    assert matched == 1
    collection.update_one.assert_called_once_with(
        {"_id": 1}, {"$set": {"name": "x"}, "$inc": {"popularity": 1}}
    )


def test_update_one_requires_an_operation() -> None:
    client, _ = _client()
    with pytest.raises(ValueError, match="requires at least one"):
        client.update_one("services", {"_id": 1})


def test_bulk_update_issues_unordered_write() -> None:
    client, mongo = _client()
    collection = mongo["fleetops"]["advanced_features"]
    collection.bulk_write.return_value.matched_count = 2
    collection.bulk_write.return_value.modified_count = 1

    result = client.bulk_update(
        "advanced_features", [({"_id": 1}, {"isEnabled": True}), ({"_id": 2}, {"priority": 3})]
    )

    assert result == (2, 1)
    requests = collection.bulk_write.call_args.args[0]
    assert requests == [
        UpdateOne({"_id": 1}, {"$set": {"isEnabled": True}}),
        UpdateOne({"_id": 2}, {"$set": {"priority": 3}}),
    ]
    assert collection.bulk_write.call_args.kwargs == {"ordered": False}
    assert client.bulk_update("advanced_features", []) == (0, 0)


def test_unsafe_names_are_rejected() -> None:
    client, _ = _client()
    with pytest.raises(ValueError, match="Unsafe MongoDB identifier"):
        client.count("services.$cmd", {})
    with pytest.raises(ValueError, match="Unsafe MongoDB field path"):
        client.group_counts("services", "$where", {})
    with pytest.raises(ValueError, match="Unsafe MongoDB identifier"):
        DatabaseClient(mongodb_uri="mongodb://unused", database_name="fleet-ops", client=MagicMock())


def test_numeric_summary_handles_empty_aggregation() -> None:
    client, mongo = _client()
    collection = mongo["fleetops"]["payments"]
    collection.aggregate.return_value = []

    assert client.numeric_summary("payments", "amount", {}) is None

    collection.aggregate.return_value = [{"_id": None, "average": 12.5, "min": 5, "max": 20}]
    assert client.numeric_summary("payments", "amount", {}) == {"average": 12.5, "min": 5.0, "max": 20.0}


def test_hourly_counts_groups_on_hour_and_drops_missing_timestamps() -> None:
    client, mongo = _client()
    collection = mongo["fleetops"]["tracking_events"]
    collection.aggregate.return_value = [
        {"_id": None, "count": 4},
        {"_id": 8, "count": 2},
        {"_id": 21, "count": 1},
    ]

    rows = client.hourly_counts("tracking_events", "timestamp", {"type": "pageview"})

    pipeline = collection.aggregate.call_args.args[0]
    assert pipeline[0] == {"$match": {"type": "pageview"}}
    assert pipeline[1]["$group"]["_id"] == {"$hour": "$timestamp"}
    assert rows == [{"hour": 8, "count": 2}, {"hour": 21, "count": 1}]
