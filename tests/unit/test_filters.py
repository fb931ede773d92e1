"""
Unit tests for query filter construction and value coercion.
It asserts expected behavior and guards against regressions in the corresponding component.
These tests are executed by `pytest` locally and in CI and should remain deterministic.
"""

from datetime import UTC, datetime

import pytest
from bson import ObjectId

from fleetops.api.filters import NOT_DELETED, build_filters, coerce_value, search_condition
from fleetops.api.resource_catalog import CLIENTS, PAYMENTS, SERVICES, VERIFICATIONS


def test_only_supplied_parameters_become_filters() -> None:
    filters = build_filters(SERVICES, {"category": "maintenance", "status": "", "page": "2"})

    assert filters == {"category": "maintenance"}


def test_range_filters_use_inclusive_bounds() -> None:
    filters = build_filters(SERVICES, {"minPrice": "10", "maxPrice": "49.5"})
    lower_only = build_filters(PAYMENTS, {"minAmount": "5"})

    assert filters == {"price": {"$gte": 10.0, "$lte": 49.5}}
    assert lower_only == {"amount": {"$gte": 5.0}}


def test_datetime_range_assumes_utc_for_naive_values() -> None:
    filters = build_filters(VERIFICATIONS, {"startDate": "2026-04-01"})

    assert filters["createdAt"] == {"$gte": datetime(2026, 4, 1, tzinfo=UTC)}


def test_objectid_filters_are_coerced() -> None:
    user_id = ObjectId()

    assert build_filters(VERIFICATIONS, {"userId": str(user_id)}) == {"userId": user_id}
    with pytest.raises(ValueError, match="Invalid value for 'userId'"):
        build_filters(VERIFICATIONS, {"userId": "not-an-id"})


def test_invalid_numbers_name_the_parameter() -> None:
    with pytest.raises(ValueError, match="Invalid value for 'maxPrice'"):
        build_filters(SERVICES, {"maxPrice": "cheap"})


def test_search_escapes_regex_and_spans_fields() -> None:
    condition = search_condition(("name", "email"), " a.b+ ")

    assert condition == {
        "$or": [
            {"name": {"$regex": r"a\.b\+", "$options": "i"}},
            {"email": {"$regex": r"a\.b\+", "$options": "i"}},
        ]
    }


def test_soft_deleted_resources_hide_deleted_documents() -> None:
    filters = build_filters(CLIENTS, {"search": "acme"}, base={"status": "active"})

    assert filters["status"] == "active"
    assert "$or" in filters
    assert filters["deletedAt"] == NOT_DELETED["deletedAt"]


@pytest.mark.parametrize(
    ("value", "value_type", "expected"),
    [
        ("7", "int", 7),
        (3.0, "int", 3),
        ("2.5", "float", 2.5),
        ("yes", "bool", True),
        ("off", "bool", False),
        (12, "str", "12"),
        (None, "float", None),
    ],
)
def test_coerce_value(value: object, value_type: str, expected: object) -> None:
    assert coerce_value(value, value_type) == expected


@pytest.mark.parametrize(
    ("value", "value_type"),
    [(True, "int"), (2.5, "int"), (True, "float"), ("maybe", "bool"), ("soon", "datetime")],
)
def test_coerce_value_rejects_mismatched_types(value: object, value_type: str) -> None:
    with pytest.raises(ValueError):
        coerce_value(value, value_type)
