"""
Unit tests for the resource catalog.
It asserts expected behavior and guards against regressions in the corresponding component.
These tests are executed by `pytest` locally and in CI and should remain deterministic.
"""

import pytest

from fleetops.api.resource_catalog import (
    MECHANICS,
    RESOURCES,
    SERVICES,
    SUPPORTING_RESOURCES,
    VERIFICATIONS,
    ResourceDefinition,
    StatusPolicy,
    collection_names,
)


def test_catalog_paths_collections_and_labels_are_unique() -> None:
    assert len({definition.path for definition in RESOURCES}) == len(RESOURCES)
    assert len(collection_names()) == len(RESOURCES) + len(SUPPORTING_RESOURCES)
    assert "verification_documents" in collection_names()
    assert len({definition.label for definition in RESOURCES}) == len(RESOURCES)


def test_default_sort_fields_are_sortable() -> None:
    for definition in RESOURCES:
        field = definition.default_sort.split(":", 1)[0]
        assert field in definition.sort_fields, definition.label


def test_group_and_status_fields_are_filterable() -> None:
    for definition in RESOURCES:
        if definition.group_field:
            assert definition.group_field in definition.filter_fields, definition.label
        if definition.status_policy is not None:
            default_status = definition.defaults.get(definition.status_policy.status_field)
            assert default_status in definition.status_policy.allowed, definition.label


def test_sort_fields_and_field_types() -> None:
    assert {"_id", "createdAt", "updatedAt", "price", "category"} <= SERVICES.sort_fields
    assert "submittedAt" in VERIFICATIONS.sort_fields
    assert SERVICES.field_type("price") == "float"
    assert SERVICES.field_type("category") == "str"
    assert SERVICES.field_type("terms") is None
    assert SERVICES.not_found_code == "SERVICE_NOT_FOUND"


def test_mechanic_rating_is_derived_from_totals() -> None:
    assert MECHANICS.present is not None
    assert MECHANICS.present({"ratingTotal": 14, "ratingCount": 3})["rating"] == 4.67
    assert MECHANICS.present({"ratingTotal": 0, "ratingCount": 0})["rating"] is None


def test_unsupported_field_types_are_rejected() -> None:
    with pytest.raises(ValueError, match="unsupported type"):
        ResourceDefinition(
            path="/widgets",
            collection="widgets",
            label="WIDGET",
            display_name="Widget",
            tag="widgets",
            required_fields=("name",),
            field_types={"size": "decimal"},
        )


def test_status_policy_defaults() -> None:
    policy = StatusPolicy(allowed=("open", "closed"))

    assert policy.status_field == "status"
    assert policy.transition_timestamps == {}
    assert policy.reviewed_statuses == ()
    assert StatusPolicy(allowed=("a",)).transition_timestamps is not policy.transition_timestamps


def test_range_filters_use_camel_case_query_names() -> None:
    params = {
        definition.label: [(item.min_param, item.max_param) for item in definition.range_filters]
        for definition in RESOURCES
        if definition.range_filters
    }

    assert params["SERVICE"] == [("minPrice", "maxPrice")]
    assert params["PAYMENT"] == [("minAmount", "maxAmount")]
    assert params["TRACKING_EVENT"] == [("startDate", "endDate")]
    assert params["VERIFICATION"] == [("startDate", "endDate")]
