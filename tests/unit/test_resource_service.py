"""
Unit tests for the shared resource service.
It asserts expected behavior and guards against regressions in the corresponding component.
These tests are executed by `pytest` locally and in CI and should remain deterministic.
"""

from dataclasses import replace
from datetime import UTC, datetime

import pytest
from bson import ObjectId

from fleetops.api.error_handlers import APIError
from fleetops.api.resource_catalog import (
    ADVANCED_FEATURES,
    CLIENTS,
    NEXT_LEVEL_FEATURES,
    PAYMENTS,
    SERVICES,
    TRACKING_EVENTS,
)
from fleetops.api.services.resource_service import ResourceService, field_error_code
from tests.api.support import FakeDBClient, build_test_config


def _service(definition, db: FakeDBClient | None = None) -> ResourceService:
    return ResourceService(definition=definition, db=db or FakeDBClient(), config=build_test_config())


def test_field_error_code() -> None:
    assert field_error_code("isEnabled") == "INVALID_IS_ENABLED"
    assert field_error_code("price") == "INVALID_PRICE"


def test_collection_must_be_allowlisted() -> None:
    rogue = replace(SERVICES, collection="system_users")
    with pytest.raises(ValueError, match="not in allowlist"):
        _service(rogue)


def test_create_applies_defaults_and_ignores_protected_fields() -> None:
    db = FakeDBClient()
    service = _service(PAYMENTS, db)
    client_id = ObjectId()

    created = service.create_item(
        {
            "amount": "19.5",
            "currency": "EUR",
            "clientId": str(client_id),
            "createdBy": "spoofed",
            "_id": "spoofed",
        },
        user_id="user-9",
    )

    assert created["amount"] == 19.5
    assert created["method"] == "card"
    assert created["status"] == "pending"
    assert created["createdBy"] == "user-9"
    assert created["_id"] != "spoofed"
    assert db.collections["payments"][0]["clientId"] == client_id


def test_defaults_are_not_shared_between_documents() -> None:
    db = FakeDBClient()
    service = _service(SERVICES, db)
    payload = {"name": "Wash", "description": "d", "category": "care", "price": 5}

    first = service.create_item(payload, user_id=None)
    service.create_item(payload, user_id=None)
    db.collections["services"][0]["requirements"].append("mutated")

    assert first["requirements"] == []
    assert db.collections["services"][1]["requirements"] == []


def test_missing_required_fields_are_reported_together() -> None:
    with pytest.raises(APIError) as excinfo:
        _service(SERVICES).create_item({"name": "  ", "price": 10}, user_id=None)

    assert excinfo.value.error_code == "MISSING_REQUIRED_FIELDS"
    assert excinfo.value.details == {"missing_fields": ["name", "description", "category"]}


def test_payment_status_transition_stamps_timestamp() -> None:
    payment_id = ObjectId()
    db = FakeDBClient(seed={"payments": [{"_id": payment_id, "amount": 5.0, "status": "pending"}]})

    updated = _service(PAYMENTS, db).set_status(str(payment_id), {"status": "refunded"}, user_id="u-1")

    assert updated["status"] == "refunded"
    assert updated["refundedAt"] == updated["updatedAt"]
    assert "reviewerId" not in updated


def test_soft_deleted_documents_are_hidden() -> None:
    client_id = ObjectId()
    db = FakeDBClient(seed={"clients": [{"_id": client_id, "name": "Acme", "status": "active"}]})
    service = _service(CLIENTS, db)

    service.delete_item(str(client_id), user_id="admin-1")

    stored = db.collections["clients"][0]
    assert stored["deletedBy"] == "admin-1"
    assert stored["status"] == "deleted"
    with pytest.raises(APIError) as excinfo:
        service.get_item(str(client_id))
    assert excinfo.value.error_code == "CLIENT_NOT_FOUND"
    with pytest.raises(APIError):
        service.delete_item(str(client_id), user_id="admin-1")


def test_overview_reports_zero_summary_without_data() -> None:
    stats = _service(SERVICES).overview()

    assert stats == {
        "total": 0,
        "groups": {"category": []},
        "active": 0,
        "inactive": 0,
        "numeric_summary": {"field": "price", "average": 0.0, "min": 0.0, "max": 0.0},
    }


def test_activation_skips_malformed_dependency_ids() -> None:
    feature_id = ObjectId()
    db = FakeDBClient(
        seed={
            "next_level_features": [
                {"_id": feature_id, "name": "Orphan", "isActive": False, "dependencies": ["broken"]}
            ]
        }
    )

    with pytest.raises(APIError) as excinfo:
        _service(NEXT_LEVEL_FEATURES, db).activate(str(feature_id))

    assert excinfo.value.error_code == "DEPENDENCIES_NOT_MET"
    assert excinfo.value.details == {"unmet_dependencies": ["broken"]}


@pytest.mark.parametrize("field_name", ["$where", "createdAt.x", "terms.price", ""])
def test_bulk_update_rejects_unsafe_field_names(field_name: str) -> None:
    db = FakeDBClient()
    service = _service(ADVANCED_FEATURES, db)

    with pytest.raises(APIError) as exc_info:
        service.bulk_update([{"id": str(ObjectId()), "updates": {field_name: True}}])

    assert exc_info.value.status_code == 400
    assert exc_info.value.error_code == "INVALID_FIELD_NAME"


def test_tracking_aggregates_count_by_hour() -> None:
    db = FakeDBClient(
        seed={
            "tracking_events": [
                {"type": "pageview", "timestamp": datetime(2026, 3, 1, 9, 5, tzinfo=UTC)},
                {"type": "pageview", "timestamp": datetime(2026, 3, 1, 9, 45, tzinfo=UTC)},
                {"type": "action", "timestamp": datetime(2026, 3, 1, 17, 0, tzinfo=UTC)},
            ]
        }
    )
    service = _service(TRACKING_EVENTS, db)

    assert service.count_items({"type": "pageview"}) == 2
    assert service.hourly_counts("timestamp") == [{"hour": 9, "count": 2}, {"hour": 17, "count": 1}]
