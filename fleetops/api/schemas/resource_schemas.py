# This file defines response and request schemas shared by every catalog resource.
# Resource documents are schemaless in MongoDB, so the item model pins only the identifier.
# All other document fields pass through unchanged, which keeps one contract for all collections.
# Request bodies for status changes, toggles, counters, and bulk updates are typed explicitly.

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from fleetops.api.schemas.common import EnvelopeFields, PaginationMetadata


class ResourceItem(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(alias="_id")


class ResourceListResponse(EnvelopeFields):
    data: list[ResourceItem]
    pagination: PaginationMetadata | None = None


class ResourceItemResponse(EnvelopeFields):
    data: ResourceItem


class GroupCount(BaseModel):
    value: Any | None = None
    count: int


class GroupCountListResponse(EnvelopeFields):
    data: list[GroupCount]


class NumericSummary(BaseModel):
    field: str
    average: float
    min: float
    max: float


class ResourceStats(BaseModel):
    total: int
    active: int | None = None
    inactive: int | None = None
    groups: dict[str, list[GroupCount]]
    numeric_summary: NumericSummary | None = None


class ResourceStatsResponse(EnvelopeFields):
    data: ResourceStats


class BulkUpdateResult(BaseModel):
    matchedCount: int
    modifiedCount: int


class BulkUpdateResponse(EnvelopeFields):
    data: BulkUpdateResult


class PopularityIncrementRequest(BaseModel):
    increment: int = 1


class RatingRequest(BaseModel):
    rating: float = Field(ge=1, le=5)
    comment: str | None = None


class PageViewRequest(BaseModel):
    userId: str | None = None
    sessionId: str | None = None
    page: str | None = None
    referrer: str | None = None
    duration: float | None = None


class ActionRequest(BaseModel):
    userId: str | None = None
    sessionId: str | None = None
    action: str | None = None
    target: str | None = None
    value: Any | None = None


class HourlyCount(BaseModel):
    hour: int = Field(ge=0, le=23)
    count: int


class TrackingAnalytics(BaseModel):
    totalEvents: int
    eventsByType: list[GroupCount]
    eventsByUser: list[GroupCount]
    eventsByHour: list[HourlyCount]


class TrackingAnalyticsResponse(EnvelopeFields):
    data: TrackingAnalytics
