# This file wraps MongoDB access so API services never touch pymongo cursors directly.
# It exists to keep query execution details out of router code and make testing easier.
# The client also centralizes collection-existence checks, aggregations, and request logging writes.
# Keeping this layer small makes query behavior easier to audit and troubleshoot.

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient, UpdateOne
from pymongo.database import Database
from pymongo.errors import PyMongoError

from fleetops.common.db import create_mongo_client

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

SortKeys = Sequence[tuple[str, int]]


def parse_object_id(value: Any) -> ObjectId:
    """Convert a 24-character hex string into an ObjectId or raise ValueError."""

    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError) as exc:
        raise ValueError(f"Invalid identifier: {value!r}") from exc


class DatabaseClient:
    """Minimal pymongo wrapper for API read/write access."""

    def __init__(
        self,
        *,
        mongodb_uri: str,
        database_name: str,
        client: MongoClient | None = None,
    ) -> None:
        self._client: MongoClient = client or create_mongo_client(mongodb_uri)
        self._database_name = self._validate_identifier(database_name)
        self._request_log_collection_available: bool | None = None

    @property
    def database(self) -> Database:
        return self._client[self._database_name]

    def can_connect(self) -> bool:
        try:
            self._client.admin.command("ping")
            return True
        except PyMongoError:
            return False

    def collection_exists(self, collection_name: str) -> bool:
        self._validate_identifier(collection_name)
        return collection_name in self.database.list_collection_names(
            filter={"name": collection_name}
        )

    def find_page(
        self,
        collection_name: str,
        filters: Mapping[str, Any],
        *,
        sort: SortKeys,
        skip: int,
        limit: int,
    ) -> list[dict[str, Any]]:
        cursor = (
            self._collection(collection_name)
            .find(dict(filters))
            .sort(list(sort))
            .skip(skip)
            .limit(limit)
        )
        return list(cursor)

    def find_all(
        self,
        collection_name: str,
        filters: Mapping[str, Any],
        *,
        sort: SortKeys,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        cursor = self._collection(collection_name).find(dict(filters)).sort(list(sort))
        if limit is not None:
            cursor = cursor.limit(limit)
        return list(cursor)

    def count(self, collection_name: str, filters: Mapping[str, Any]) -> int:
        return int(self._collection(collection_name).count_documents(dict(filters)))

    def find_one(self, collection_name: str, filters: Mapping[str, Any]) -> dict[str, Any] | None:
        return self._collection(collection_name).find_one(dict(filters))

    def insert_one(self, collection_name: str, document: dict[str, Any]) -> ObjectId:
        result = self._collection(collection_name).insert_one(document)
        return result.inserted_id

    def update_one(
        self,
        collection_name: str,
        filters: Mapping[str, Any],
        *,
        set_fields: Mapping[str, Any] | None = None,
        inc_fields: Mapping[str, int | float] | None = None,
    ) -> int:
        """Apply `$set`/`$inc` to the first matching document and return the matched count."""

        update: dict[str, Any] = {}
        if set_fields:
            update["$set"] = dict(set_fields)
        if inc_fields:
            update["$inc"] = dict(inc_fields)
        if not update:
            raise ValueError("update_one requires at least one of set_fields or inc_fields")
        result = self._collection(collection_name).update_one(dict(filters), update)
        return int(result.matched_count)

    def delete_one(self, collection_name: str, filters: Mapping[str, Any]) -> int:
        result = self._collection(collection_name).delete_one(dict(filters))
        return int(result.deleted_count)

    def bulk_update(
        self,
        collection_name: str,
        operations: Sequence[tuple[Mapping[str, Any], Mapping[str, Any]]],
    ) -> tuple[int, int]:
        """Run `(filter, $set fields)` pairs as one unordered bulk write."""

        if not operations:
            return 0, 0
        requests = [
            UpdateOne(dict(filters), {"$set": dict(set_fields)})
            for filters, set_fields in operations
        ]
        result = self._collection(collection_name).bulk_write(requests, ordered=False)
        return int(result.matched_count), int(result.modified_count)

    def group_counts(
        self, collection_name: str, field: str, filters: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        pipeline: list[dict[str, Any]] = [
            {"$match": dict(filters)},
            {"$group": {"_id": f"${self._validate_field(field)}", "count": {"$sum": 1}}},
            {"$sort": {"_id": 1}},
        ]
        return [
            {"value": row["_id"], "count": int(row["count"])}
            for row in self._collection(collection_name).aggregate(pipeline)
        ]

    def hourly_counts(
        self, collection_name: str, field: str, filters: Mapping[str, Any]
    ) -> list[dict[str, int]]:
        """Document counts bucketed by the UTC hour of a datetime field."""

        pipeline: list[dict[str, Any]] = [
            {"$match": dict(filters)},
            {"$group": {"_id": {"$hour": f"${self._validate_field(field)}"}, "count": {"$sum": 1}}},
            {"$sort": {"_id": 1}},
        ]
        return [
            {"hour": int(row["_id"]), "count": int(row["count"])}
            for row in self._collection(collection_name).aggregate(pipeline)
            if row["_id"] is not None
        ]

    def numeric_summary(
        self, collection_name: str, field: str, filters: Mapping[str, Any]
    ) -> dict[str, float] | None:
        safe_field = self._validate_field(field)
        pipeline: list[dict[str, Any]] = [
            {"$match": dict(filters)},
            {
                "$group": {
                    "_id": None,
                    "average": {"$avg": f"${safe_field}"},
                    "min": {"$min": f"${safe_field}"},
                    "max": {"$max": f"${safe_field}"},
                }
            },
        ]
        rows = list(self._collection(collection_name).aggregate(pipeline))
        if not rows or rows[0].get("average") is None:
            return None
        row = rows[0]
        return {"average": float(row["average"]), "min": float(row["min"]), "max": float(row["max"])}

    def log_request(
        self,
        *,
        collection_name: str,
        request_id: str,
        path: str,
        method: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        safe_collection = self._validate_identifier(collection_name)
        if self._request_log_collection_available is not True:
            self._request_log_collection_available = self.collection_exists(safe_collection)
        if not self._request_log_collection_available:
            return

        self.database[safe_collection].insert_one(
            {
                "requestId": request_id,
                "path": path,
                "method": method,
                "statusCode": status_code,
                "durationMs": duration_ms,
                "createdAt": datetime.now(tz=UTC),
            }
        )

    def close(self) -> None:
        self._client.close()

    def _collection(self, collection_name: str):
        return self.database[self._validate_identifier(collection_name)]

    def _validate_identifier(self, identifier: str) -> str:
        if not _IDENTIFIER_RE.match(identifier):
            raise ValueError(f"Unsafe MongoDB identifier: {identifier!r}")
        return identifier

    def _validate_field(self, field: str) -> str:
        if not all(_IDENTIFIER_RE.match(part) for part in field.split(".")):
            raise ValueError(f"Unsafe MongoDB field path: {field!r}")
        return field
