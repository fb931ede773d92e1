# This file implements the read/write service shared by every catalog resource.
# It exists so routers stay transport-focused while filters, defaults, and document shaping live in one layer.
# Each service instance is bound to one resource definition and validates its collection against the allowlist.
# Counters use atomic `$inc` updates so concurrent requests never overwrite each other.

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from bson import ObjectId

from fleetops.api.api_config import ApiConfig
from fleetops.api.db_access import DatabaseClient, parse_object_id
from fleetops.api.error_handlers import APIError, not_found
from fleetops.api.filters import NOT_DELETED, coerce_value
from fleetops.api.pagination import PaginationSpec, SortSpec, parse_sort
from fleetops.api.resource_catalog import ResourceDefinition
from fleetops.api.response_envelope import serialize_value

logger = logging.getLogger(__name__)

PROTECTED_FIELDS = frozenset({"_id", "createdAt", "createdBy", "deletedAt"})
ACTIVE_FLAG = "isActive"


def field_error_code(field: str) -> str:
    """Convert `isEnabled` style field names into `INVALID_IS_ENABLED` codes."""

    snake = re.sub(r"(?<!^)(?=[A-Z])", "_", field)
    return f"INVALID_{snake.upper()}"


def _is_safe_field_name(name: Any) -> bool:
    """Top-level document keys only: no operators and no dotted paths into other fields."""

    return isinstance(name, str) and bool(name) and not name.startswith("$") and "." not in name


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class ResourceService:
    """Data retrieval and mutation for one catalog resource."""

    def __init__(self, *, definition: ResourceDefinition, db: DatabaseClient, config: ApiConfig) -> None:
        self.definition = definition
        self.db = db
        self.collection = config.validate_collection_name(definition.collection)

    # Reads

    def list_items(
        self,
        *,
        filters: Mapping[str, Any],
        pagination: PaginationSpec,
        sort: SortSpec,
    ) -> dict[str, Any]:
        total_count = self.db.count(self.collection, filters)
        rows = self.db.find_page(
            self.collection,
            filters,
            sort=sort.as_mongo(),
            skip=pagination.offset,
            limit=pagination.limit,
        )
        return {"rows": [self._present(row) for row in rows], "total_count": total_count}

    def list_all(
        self,
        *,
        filters: Mapping[str, Any],
        sort: SortSpec | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        resolved_sort = sort or self.default_sort()
        rows = self.db.find_all(
            self.collection,
            self._scoped(filters),
            sort=resolved_sort.as_mongo(),
            limit=limit,
        )
        return [self._present(row) for row in rows]

    def get_item(self, item_id: str) -> dict[str, Any]:
        document = self.db.find_one(self.collection, self._id_filter(item_id))
        if document is None:
            raise not_found(self.definition.label, self.definition.display_name)
        return self._present(document)

    def default_sort(self) -> SortSpec:
        return parse_sort(
            requested_sort=None,
            default_sort=self.definition.default_sort,
            allowed_fields=self.definition.sort_fields,
        )

    # Writes

    def create_item(self, payload: Mapping[str, Any], *, user_id: str | None) -> dict[str, Any]:
        missing = [name for name in self.definition.required_fields if _is_missing(payload.get(name))]
        if missing:
            raise APIError(
                status_code=400,
                error_code="MISSING_REQUIRED_FIELDS",
                message=f"Missing required fields: {', '.join(missing)}",
                details={"missing_fields": missing},
            )

        document: dict[str, Any] = copy.deepcopy(dict(self.definition.defaults))
        document.update(self._writable_fields(payload))
        self._check_status_value(document)

        now = _utc_now()
        document["createdAt"] = now
        document["updatedAt"] = now
        document["createdBy"] = user_id
        stamp_field = self.definition.created_timestamp_field
        if stamp_field and document.get(stamp_field) is None:
            document[stamp_field] = now

        inserted_id = self.db.insert_one(self.collection, document)
        document["_id"] = inserted_id
        logger.info("Created %s %s", self.definition.collection, inserted_id)
        return self._present(document)

    def update_item(self, item_id: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        updates = self._writable_fields(payload)
        self._check_status_value(updates)
        updates["updatedAt"] = _utc_now()
        self._update_or_404(item_id, set_fields=updates)
        logger.info("Updated %s %s fields=%s", self.definition.collection, item_id, sorted(updates))
        return self.get_item(item_id)

    def set_status(
        self,
        item_id: str,
        payload: Mapping[str, Any],
        *,
        user_id: str | None,
    ) -> dict[str, Any]:
        policy = self.definition.status_policy
        if policy is None:
            raise APIError(
                status_code=400,
                error_code="INVALID_STATUS",
                message=f"{self.definition.display_name} does not support status changes",
            )

        status = payload.get(policy.status_field)
        if _is_missing(status):
            raise APIError(status_code=400, error_code="MISSING_STATUS", message="Status is required")
        if status not in policy.allowed:
            raise APIError(
                status_code=400,
                error_code="INVALID_STATUS",
                message=f"Invalid status '{status}'",
                details={"allowed": list(policy.allowed)},
            )

        now = _utc_now()
        updates: dict[str, Any] = {policy.status_field: status, "updatedAt": now}
        timestamp_field = policy.transition_timestamps.get(status)
        if timestamp_field:
            updates[timestamp_field] = now
        if status in policy.reviewed_statuses:
            updates["reviewerId"] = payload.get("reviewerId") or user_id
        if payload.get("notes"):
            updates["notes"] = payload["notes"]

        self._update_or_404(item_id, set_fields=updates)
        logger.info("Set %s %s status=%s", self.definition.collection, item_id, status)
        return self.get_item(item_id)

    def set_flag(self, item_id: str, field: str, value: Any) -> dict[str, Any]:
        if not isinstance(value, bool):
            raise APIError(
                status_code=400,
                error_code=field_error_code(field),
                message=f"{field} must be a boolean",
            )
        self._update_or_404(item_id, set_fields={field: value, "updatedAt": _utc_now()})
        return self.get_item(item_id)

    def increment(
        self,
        item_id: str,
        increments: Mapping[str, int | float],
        *,
        extra_fields: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        set_fields = {**(extra_fields or {}), "updatedAt": _utc_now()}
        self._update_or_404(item_id, set_fields=set_fields, inc_fields=increments)
        return self.get_item(item_id)

    def delete_item(self, item_id: str, *, user_id: str | None) -> None:
        id_filter = self._id_filter(item_id)
        if self.definition.soft_delete:
            now = _utc_now()
            matched = self.db.update_one(
                self.collection,
                id_filter,
                set_fields={"deletedAt": now, "deletedBy": user_id, "status": "deleted", "updatedAt": now},
            )
        else:
            matched = self.db.delete_one(self.collection, id_filter)
        if matched == 0:
            raise not_found(self.definition.label, self.definition.display_name)
        logger.info(
            "Deleted %s %s soft=%s", self.definition.collection, item_id, self.definition.soft_delete
        )

    def bulk_update(self, items: Any) -> dict[str, int]:
        if not isinstance(items, list) or not items:
            raise APIError(
                status_code=400,
                error_code="INVALID_UPDATES_ARRAY",
                message="Updates array is required and must not be empty",
            )

        now = _utc_now()
        operations: list[tuple[dict[str, Any], dict[str, Any]]] = []
        for index, item in enumerate(items):
            if not isinstance(item, Mapping) or "id" not in item or not isinstance(
                item.get("updates"), Mapping
            ):
                raise APIError(
                    status_code=400,
                    error_code="INVALID_UPDATES_ARRAY",
                    message="Each entry must contain an 'id' and an 'updates' object",
                    details={"index": index},
                )
            updates = self._writable_fields(item["updates"])
            self._check_status_value(updates)
            operations.append((self._id_filter(str(item["id"])), {**updates, "updatedAt": now}))

        matched, modified = self.db.bulk_update(self.collection, operations)
        logger.info("Bulk updated %s matched=%s modified=%s", self.collection, matched, modified)
        return {"matchedCount": matched, "modifiedCount": modified}

    # Activation with dependency checks

    def activate(self, item_id: str) -> dict[str, Any]:
        document = self.get_item(item_id)
        dependency_ids = [str(value) for value in document.get("dependencies") or []]
        if dependency_ids:
            active = {
                str(row["_id"])
                for row in self.db.find_all(
                    self.collection,
                    self._scoped({"_id": {"$in": self._object_ids(dependency_ids)}, ACTIVE_FLAG: True}),
                    sort=[("_id", 1)],
                )
            }
            unmet = [value for value in dependency_ids if value not in active]
            if unmet:
                raise APIError(
                    status_code=400,
                    error_code="DEPENDENCIES_NOT_MET",
                    message="Required dependencies are not active",
                    details={"unmet_dependencies": unmet},
                )

        now = _utc_now()
        self._update_or_404(
            item_id, set_fields={ACTIVE_FLAG: True, "activatedAt": now, "updatedAt": now}
        )
        return self.get_item(item_id)

    def deactivate(self, item_id: str) -> dict[str, Any]:
        now = _utc_now()
        self._update_or_404(
            item_id, set_fields={ACTIVE_FLAG: False, "deactivatedAt": now, "updatedAt": now}
        )
        return self.get_item(item_id)

    def dependencies(self, item_id: str) -> list[dict[str, Any]]:
        document = self.get_item(item_id)
        dependency_ids = [str(value) for value in document.get("dependencies") or []]
        if not dependency_ids:
            return []
        return self.list_all(filters={"_id": {"$in": self._object_ids(dependency_ids)}})

    # Aggregates

    def group_counts(self, field: str, filters: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        return [
            serialize_value(row)
            for row in self.db.group_counts(self.collection, field, self._scoped(filters or {}))
        ]

    def count_items(self, filters: Mapping[str, Any] | None = None) -> int:
        return self.db.count(self.collection, self._scoped(filters or {}))

    def hourly_counts(self, field: str, filters: Mapping[str, Any] | None = None) -> list[dict[str, int]]:
        return self.db.hourly_counts(self.collection, field, self._scoped(filters or {}))

    def overview(self, filters: Mapping[str, Any] | None = None) -> dict[str, Any]:
        scoped = self._scoped(filters or {})
        total = self.db.count(self.collection, scoped)
        stats: dict[str, Any] = {
            "total": total,
            "groups": {
                field: self.group_counts(field, filters) for field in self.definition.stats_group_fields
            },
        }
        if self.definition.active_criteria:
            active = self.db.count(self.collection, {**scoped, **self.definition.active_criteria})
            stats["active"] = active
            stats["inactive"] = total - active

        numeric_field = self.definition.stats_numeric_field
        if numeric_field:
            summary = self.db.numeric_summary(self.collection, numeric_field, scoped)
            stats["numeric_summary"] = {
                "field": numeric_field,
                **(summary or {"average": 0.0, "min": 0.0, "max": 0.0}),
            }
        return stats

    # Helpers

    def _id_filter(self, item_id: str) -> dict[str, Any]:
        try:
            object_id = parse_object_id(item_id)
        except ValueError as exc:
            raise APIError(
                status_code=400,
                error_code="INVALID_ID",
                message=f"Invalid {self.definition.display_name.lower()} id: {item_id}",
            ) from exc
        return self._scoped({"_id": object_id})

    def _scoped(self, filters: Mapping[str, Any]) -> dict[str, Any]:
        scoped = dict(filters)
        if self.definition.soft_delete:
            scoped.update(NOT_DELETED)
        return scoped

    def _object_ids(self, values: list[str]) -> list[ObjectId]:
        object_ids: list[ObjectId] = []
        for value in values:
            try:
                object_ids.append(parse_object_id(value))
            except ValueError:
                logger.warning("Skipping malformed dependency id %r in %s", value, self.collection)
        return object_ids

    def _update_or_404(
        self,
        item_id: str,
        *,
        set_fields: Mapping[str, Any] | None = None,
        inc_fields: Mapping[str, int | float] | None = None,
    ) -> None:
        matched = self.db.update_one(
            self.collection,
            self._id_filter(item_id),
            set_fields=set_fields,
            inc_fields=inc_fields,
        )
        if matched == 0:
            raise not_found(self.definition.label, self.definition.display_name)

    def _writable_fields(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        for name, value in payload.items():
            if not _is_safe_field_name(name):
                raise APIError(
                    status_code=400,
                    error_code="INVALID_FIELD_NAME",
                    message=f"Invalid field name '{name}'",
                    details={"field": name},
                )
            if name in PROTECTED_FIELDS:
                continue
            value_type = self.definition.field_type(name)
            if name == self.definition.created_timestamp_field:
                value_type = "datetime"
            if value_type is None:
                fields[name] = value
                continue
            try:
                fields[name] = coerce_value(value, value_type)
            except ValueError as exc:
                raise APIError(
                    status_code=400,
                    error_code=field_error_code(name),
                    message=f"Invalid value for '{name}': {exc}",
                ) from exc
        return fields

    def _check_status_value(self, fields: Mapping[str, Any]) -> None:
        policy = self.definition.status_policy
        if policy is None or policy.status_field not in fields:
            return
        if fields[policy.status_field] not in policy.allowed:
            raise APIError(
                status_code=400,
                error_code="INVALID_STATUS",
                message=f"Invalid status '{fields[policy.status_field]}'",
                details={"allowed": list(policy.allowed)},
            )

    def _present(self, document: dict[str, Any]) -> dict[str, Any]:
        shaped = serialize_value(document)
        if self.definition.present is not None:
            shaped = self.definition.present(shaped)
        return shaped
