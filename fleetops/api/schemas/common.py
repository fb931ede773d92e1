# This file defines shared schema pieces reused by multiple API endpoints.
# It exists so envelope metadata, pagination, and error payloads stay consistent.
# Shared models reduce duplication and keep contract changes easier to review.
# These classes are also used by tests to validate response shape stability.

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class PaginationMetadata(BaseModel):
    page: int = Field(ge=1)
    limit: int = Field(ge=1)
    total: int = Field(ge=0)
    pages: int = Field(ge=0)
    sort: str


class EnvelopeFields(BaseModel):
    success: bool = True
    message: str | None = None
    api_version: str
    schema_version: str
    request_id: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str
    details: Any | None = None
    request_id: str
    timestamp: datetime


class AcknowledgementResponse(EnvelopeFields):
    """Envelope for writes that return no document, such as deletes."""
