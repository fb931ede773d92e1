# This file builds success envelopes for API endpoints in a consistent format.
# Every payload carries `success`, `data`, a timestamp, the request id, and version metadata.
# Documents are converted to JSON-safe values here so ObjectIds never reach the encoder.
# This keeps endpoint functions focused on data retrieval instead of repetitive envelope assembly.

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from bson import ObjectId

from fleetops.api.schema_versions import build_version_fields


def utc_now() -> datetime:
    """Return timezone-aware UTC timestamp for response generation."""

    return datetime.now(tz=UTC)


def serialize_value(value: Any) -> Any:
    """Recursively convert ObjectIds to strings inside documents, lists, and dicts."""

    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {key: serialize_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_value(item) for item in value]
    return value


def _base_fields(*, api_version_path: str, schema_version: str, request_id: str) -> dict[str, Any]:
    return {
        "success": True,
        **build_version_fields(api_version_path=api_version_path, schema_version=schema_version),
        "request_id": request_id,
        "timestamp": utc_now(),
    }


def build_list_envelope(
    *,
    api_version_path: str,
    schema_version: str,
    request_id: str,
    data: list[dict[str, Any]],
    pagination: dict[str, Any] | None = None,
    message: str | None = None,
) -> dict[str, Any]:
    """Build standard list response envelope."""

    payload = _base_fields(
        api_version_path=api_version_path,
        schema_version=schema_version,
        request_id=request_id,
    )
    payload["data"] = [serialize_value(item) for item in data]
    if pagination is not None:
        payload["pagination"] = pagination
    if message is not None:
        payload["message"] = message
    return payload


def build_object_envelope(
    *,
    api_version_path: str,
    schema_version: str,
    request_id: str,
    data: dict[str, Any] | list[dict[str, Any]] | None = None,
    message: str | None = None,
) -> dict[str, Any]:
    """Build standard non-list response envelope; `data` is omitted for plain acknowledgements."""

    payload = _base_fields(
        api_version_path=api_version_path,
        schema_version=schema_version,
        request_id=request_id,
    )
    if data is not None:
        payload["data"] = serialize_value(data)
    if message is not None:
        payload["message"] = message
    return payload
