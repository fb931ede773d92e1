# This file provides shared helpers for API endpoint tests.
# It exists so tests can override the database dependency without touching a real MongoDB.
# The in-memory fake understands the filter operators and update shapes the services emit.
# Centralized test wiring keeps API tests small and focused on behavior.

from __future__ import annotations

import copy
import re
from collections import Counter
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from bson import ObjectId
from fastapi import FastAPI
from fastapi.testclient import TestClient

from fleetops.api.api_config import ApiConfig, build_allowed_collection_names
from fleetops.api.app import app as default_app
from fleetops.api.auth import create_access_token
from fleetops.api.dependencies import get_config, get_database_client

_MISSING = object()


def build_test_config(**overrides: Any) -> ApiConfig:
    """Create deterministic API config for tests."""

    values: dict[str, Any] = {
        "api_name": "Test Fleet API",
        "api_version_path": "/api/v1",
        "schema_version": "1.0.0",
        "host": "0.0.0.0",
        "port": 8000,
        "environment": "test",
        "mongodb_uri": "mongodb://localhost:27017",
        "mongodb_database": "fleetops_test",
        "default_page_size": 2,
        "max_page_size": 5,
        "enable_request_logging": False,
        "request_log_collection_name": "api_request_log",
        "allowed_origins": [],
        "app_version": "0.1.0",
        "auth_enabled": False,
        "jwt_secret": "test-secret",
        "jwt_algorithm": "HS256",
        "rate_limit_enabled": False,
        "rate_limit": "100/15minutes",
        "allowed_collection_names": build_allowed_collection_names("api_request_log"),
    }
    values.update(overrides)
    return ApiConfig(**values)


def auth_headers(config: ApiConfig, *, role: str = "admin", user_id: str = "user-1") -> dict[str, str]:
    token = create_access_token(user_id=user_id, role=role, config=config)
    return {"Authorization": f"Bearer {token}"}


def _lookup(document: Mapping[str, Any], path: str) -> Any:
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _match_operators(value: Any, conditions: Mapping[str, Any]) -> bool:
    for operator, expected in conditions.items():
        if operator == "$options":
            continue
        if operator == "$regex":
            flags = re.IGNORECASE if "i" in conditions.get("$options", "") else 0
            if not isinstance(value, str) or re.search(expected, value, flags) is None:
                return False
        elif operator == "$in":
            if value is _MISSING or value not in expected:
                return False
        elif operator == "$ne":
            if value is not _MISSING and value == expected:
                return False
        elif operator in {"$gte", "$lte", "$gt", "$lt"}:
            if value is _MISSING or value is None:
                return False
            if operator == "$gte" and not value >= expected:
                return False
            if operator == "$lte" and not value <= expected:
                return False
            if operator == "$gt" and not value > expected:
                return False
            if operator == "$lt" and not value < expected:
                return False
        else:
            raise NotImplementedError(f"FakeDBClient does not support {operator}")
    return True


def matches(document: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    """Evaluate the subset of MongoDB query semantics used by the API."""

    for key, condition in filters.items():
        if key == "$or":
            if not any(matches(document, branch) for branch in condition):
                return False
            continue
        value = _lookup(document, key)
        if isinstance(condition, Mapping) and condition and all(
            str(name).startswith("$") for name in condition
        ):
            if not _match_operators(value, condition):
                return False
        elif condition is None:
            if value is not _MISSING and value is not None:
                return False
        elif value is _MISSING or value != condition:
            return False
    return True


def _sort_key(value: Any) -> tuple[int, Any]:
    if value is _MISSING or value is None:
        return (0, 0)
    return (1, value)


class FakeDBClient:
    """In-memory stand-in for `DatabaseClient`."""

    def __init__(
        self,
        *,
        connected: bool = True,
        existing_collections: set[str] | None = None,
        seed: Mapping[str, Sequence[Mapping[str, Any]]] | None = None,
    ) -> None:
        self._connected = connected
        self.collections: dict[str, list[dict[str, Any]]] = {}
        self._existing = set(existing_collections or ())
        self.update_calls: list[dict[str, Any]] = []
        self.request_logs: list[dict[str, Any]] = []
        for name, documents in (seed or {}).items():
            for document in documents:
                self.insert_one(name, dict(document))

    def can_connect(self) -> bool:
        return self._connected

    def collection_exists(self, collection_name: str) -> bool:
        return self._connected and (
            collection_name in self._existing or bool(self.collections.get(collection_name))
        )

    def find_page(
        self,
        collection_name: str,
        filters: Mapping[str, Any],
        *,
        sort: Sequence[tuple[str, int]],
        skip: int,
        limit: int,
    ) -> list[dict[str, Any]]:
        rows = self.find_all(collection_name, filters, sort=sort)
        return rows[skip : skip + limit]

    def find_all(
        self,
        collection_name: str,
        filters: Mapping[str, Any],
        *,
        sort: Sequence[tuple[str, int]],
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        rows = [
            copy.deepcopy(document)
            for document in self.collections.get(collection_name, [])
            if matches(document, filters)
        ]
        for field, direction in reversed(list(sort)):
            rows.sort(key=lambda row: _sort_key(_lookup(row, field)), reverse=direction < 0)
        return rows if limit is None else rows[:limit]

    def count(self, collection_name: str, filters: Mapping[str, Any]) -> int:
        return sum(1 for document in self.collections.get(collection_name, []) if matches(document, filters))

    def find_one(self, collection_name: str, filters: Mapping[str, Any]) -> dict[str, Any] | None:
        for document in self.collections.get(collection_name, []):
            if matches(document, filters):
                return copy.deepcopy(document)
        return None

    def insert_one(self, collection_name: str, document: dict[str, Any]) -> ObjectId:
        inserted_id = document.setdefault("_id", ObjectId())
        self.collections.setdefault(collection_name, []).append(copy.deepcopy(document))
        return inserted_id

    def update_one(
        self,
        collection_name: str,
        filters: Mapping[str, Any],
        *,
        set_fields: Mapping[str, Any] | None = None,
        inc_fields: Mapping[str, int | float] | None = None,
    ) -> int:
        self.update_calls.append(
            {
                "collection": collection_name,
                "filters": dict(filters),
                "set_fields": dict(set_fields or {}),
                "inc_fields": dict(inc_fields or {}),
            }
        )
        for document in self.collections.get(collection_name, []):
            if matches(document, filters):
                document.update(copy.deepcopy(dict(set_fields or {})))
                for field, amount in (inc_fields or {}).items():
                    document[field] = document.get(field, 0) + amount
                return 1
        return 0

    def delete_one(self, collection_name: str, filters: Mapping[str, Any]) -> int:
        documents = self.collections.get(collection_name, [])
        for index, document in enumerate(documents):
            if matches(document, filters):
                del documents[index]
                return 1
        return 0

    def bulk_update(
        self,
        collection_name: str,
        operations: Sequence[tuple[Mapping[str, Any], Mapping[str, Any]]],
    ) -> tuple[int, int]:
        matched = modified = 0
        for filters, set_fields in operations:
            for document in self.collections.get(collection_name, []):
                if matches(document, filters):
                    matched += 1
                    if any(document.get(key, _MISSING) != value for key, value in set_fields.items()):
                        modified += 1
                    document.update(copy.deepcopy(dict(set_fields)))
                    break
        return matched, modified

    def group_counts(
        self, collection_name: str, field: str, filters: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        counts = Counter(
            document.get(field)
            for document in self.collections.get(collection_name, [])
            if matches(document, filters)
        )
        return [
            {"value": value, "count": count}
            for value, count in sorted(counts.items(), key=lambda item: _sort_key(item[0]))
        ]

    def hourly_counts(
        self, collection_name: str, field: str, filters: Mapping[str, Any]
    ) -> list[dict[str, int]]:
        counts = Counter(
            document[field].hour
            for document in self.collections.get(collection_name, [])
            if matches(document, filters) and isinstance(document.get(field), datetime)
        )
        return [{"hour": hour, "count": count} for hour, count in sorted(counts.items())]

    def numeric_summary(
        self, collection_name: str, field: str, filters: Mapping[str, Any]
    ) -> dict[str, float] | None:
        values = [
            float(document[field])
            for document in self.collections.get(collection_name, [])
            if matches(document, filters)
            and isinstance(document.get(field), (int, float))
            and not isinstance(document.get(field), bool)
        ]
        if not values:
            return None
        return {"average": sum(values) / len(values), "min": min(values), "max": max(values)}

    def log_request(self, **kwargs: Any) -> None:
        self.request_logs.append(kwargs)

    def close(self) -> None:
        return None


@contextmanager
def api_test_client(
    *,
    config: ApiConfig | None = None,
    db_client: Any | None = None,
    app: FastAPI | None = None,
    raise_server_exceptions: bool = True,
) -> Iterator[TestClient]:
    """Yield a TestClient with scoped dependency overrides."""

    target_app = app or default_app
    resolved_config = config or build_test_config()
    resolved_db = db_client if db_client is not None else FakeDBClient()

    target_app.dependency_overrides[get_config] = lambda: resolved_config
    target_app.dependency_overrides[get_database_client] = lambda: resolved_db

    try:
        with TestClient(target_app, raise_server_exceptions=raise_server_exceptions) as client:
            yield client
    finally:
        target_app.dependency_overrides.clear()
