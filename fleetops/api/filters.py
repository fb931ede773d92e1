# This file turns query-string parameters into MongoDB filter documents.
# Only parameters that were actually supplied become filter keys; everything else is left unconstrained.
# Free-text search becomes a case-insensitive `$or` across the resource's search fields.
# Value coercion is shared with request-body handling so query and payload types agree.

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from fleetops.api.db_access import parse_object_id
from fleetops.api.resource_catalog import ResourceDefinition

_TRUE_VALUES = {"1", "true", "yes", "y", "on"}
_FALSE_VALUES = {"0", "false", "no", "n", "off"}

NOT_DELETED: dict[str, Any] = {"deletedAt": None}


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"expected a boolean, got {value!r}")


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip())
        except ValueError as exc:
            raise ValueError(f"expected an ISO-8601 datetime, got {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _parse_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"expected a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"expected a number, got {value!r}") from exc


def _parse_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"expected an integer, got {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"expected an integer, got {value!r}")
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"expected an integer, got {value!r}") from exc


_COERCERS = {
    "str": lambda value: value if isinstance(value, str) else str(value),
    "int": _parse_int,
    "float": _parse_float,
    "bool": _parse_bool,
    "objectid": parse_object_id,
    "datetime": _parse_datetime,
}


def coerce_value(value: Any, value_type: str) -> Any:
    """Coerce a query or payload value to the declared field type, raising ValueError."""

    if value is None:
        return None
    return _COERCERS[value_type](value)


def search_condition(fields: tuple[str, ...], term: str) -> dict[str, Any]:
    """Case-insensitive substring match of `term` against any of `fields`."""

    pattern = re.escape(term.strip())
    return {"$or": [{field: {"$regex": pattern, "$options": "i"}} for field in fields]}


def build_filters(
    definition: ResourceDefinition,
    query_params: Mapping[str, str],
    *,
    base: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a MongoDB filter from supplied query parameters only."""

    filters: dict[str, Any] = dict(base or {})

    for field, value_type in definition.filter_fields.items():
        raw = query_params.get(field)
        if raw is None or str(raw).strip() == "":
            continue
        try:
            filters[field] = coerce_value(raw, value_type)
        except ValueError as exc:
            raise ValueError(f"Invalid value for '{field}': {exc}") from exc

    for range_filter in definition.range_filters:
        bounds: dict[str, Any] = {}
        for param, operator in (
            (range_filter.min_param, "$gte"),
            (range_filter.max_param, "$lte"),
        ):
            raw = query_params.get(param)
            if raw is None or str(raw).strip() == "":
                continue
            try:
                bounds[operator] = coerce_value(raw, range_filter.value_type)
            except ValueError as exc:
                raise ValueError(f"Invalid value for '{param}': {exc}") from exc
        if bounds:
            filters[range_filter.field] = bounds

    search = query_params.get("search")
    if search and search.strip() and definition.search_fields:
        filters.update(search_condition(definition.search_fields, search))

    if definition.soft_delete:
        filters.update(NOT_DELETED)
    return filters
