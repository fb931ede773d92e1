# This file declares every resource collection exposed by the API.
# Each definition lists the collection name, required fields, filters, search fields, and defaults.
# The generic router factory and resource service read these definitions instead of per-resource code.
# Adding a resource means adding a definition here and registering it in the app.

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

FIELD_TYPES = frozenset({"str", "int", "float", "bool", "objectid", "datetime"})
BASE_SORT_FIELDS = frozenset({"_id", "createdAt", "updatedAt"})


@dataclass(frozen=True)
class RangeFilter:
    """Query parameters mapped onto `$gte`/`$lte` bounds of one document field."""

    field: str
    min_param: str
    max_param: str
    value_type: str = "float"


@dataclass(frozen=True)
class StatusPolicy:
    """Allowed values of a status field plus timestamps recorded on specific transitions."""

    allowed: tuple[str, ...]
    status_field: str = "status"
    transition_timestamps: Mapping[str, str] = field(default_factory=dict)
    reviewed_statuses: tuple[str, ...] = ()


@dataclass(frozen=True)
class ResourceDefinition:
    """Declarative description of one REST resource backed by a MongoDB collection."""

    path: str
    collection: str
    label: str
    display_name: str
    tag: str
    required_fields: tuple[str, ...]
    filter_fields: Mapping[str, str] = field(default_factory=dict)
    search_fields: tuple[str, ...] = ()
    range_filters: tuple[RangeFilter, ...] = ()
    field_types: Mapping[str, str] = field(default_factory=dict)
    defaults: Mapping[str, Any] = field(default_factory=dict)
    default_sort: str = "createdAt:desc"
    extra_sort_fields: tuple[str, ...] = ()
    group_field: str | None = None
    stats_group_fields: tuple[str, ...] = ()
    stats_numeric_field: str | None = None
    active_criteria: Mapping[str, Any] | None = None
    status_policy: StatusPolicy | None = None
    soft_delete: bool = False
    anonymous_create: bool = False
    write_roles: tuple[str, ...] = ()
    created_timestamp_field: str | None = None
    present: Callable[[dict[str, Any]], dict[str, Any]] | None = None

    def __post_init__(self) -> None:
        for name, value_type in {**self.filter_fields, **self.field_types}.items():
            if value_type not in FIELD_TYPES:
                raise ValueError(f"{self.label}: unsupported type {value_type!r} for {name!r}")
        for range_filter in self.range_filters:
            if range_filter.value_type not in FIELD_TYPES:
                raise ValueError(f"{self.label}: unsupported range type {range_filter.value_type!r}")

    @property
    def not_found_code(self) -> str:
        return f"{self.label}_NOT_FOUND"

    @property
    def sort_fields(self) -> frozenset[str]:
        fields = set(BASE_SORT_FIELDS)
        fields.update(self.extra_sort_fields)
        fields.update(self.filter_fields)
        if self.created_timestamp_field:
            fields.add(self.created_timestamp_field)
        return frozenset(fields)

    def field_type(self, name: str) -> str | None:
        """Declared type of a document field; None leaves payload values untouched."""

        return self.field_types.get(name) or self.filter_fields.get(name)


def _mechanic_rating(document: dict[str, Any]) -> dict[str, Any]:
    count = document.get("ratingCount") or 0
    total = document.get("ratingTotal") or 0
    document["rating"] = round(total / count, 2) if count else None
    return document


SERVICES = ResourceDefinition(
    path="/services",
    collection="services",
    label="SERVICE",
    display_name="Service",
    tag="services",
    required_fields=("name", "description", "category", "price"),
    filter_fields={"category": "str", "status": "str"},
    search_fields=("name", "description", "category"),
    range_filters=(RangeFilter(field="price", min_param="minPrice", max_param="maxPrice"),),
    field_types={"price": "float", "duration": "int", "popularity": "int"},
    defaults=MappingProxyType(
        {
            "duration": 0,
            "requirements": [],
            "includedItems": [],
            "excludedItems": [],
            "terms": {},
            "popularity": 0,
            "status": "active",
        }
    ),
    extra_sort_fields=("name", "price", "popularity"),
    group_field="category",
    stats_group_fields=("category",),
    stats_numeric_field="price",
    active_criteria={"status": "active"},
    status_policy=StatusPolicy(allowed=("active", "inactive")),
)

ADVANCED_FEATURES = ResourceDefinition(
    path="/advanced-features",
    collection="advanced_features",
    label="ADVANCED_FEATURE",
    display_name="Advanced feature",
    tag="advanced-features",
    required_fields=("name", "description", "category"),
    filter_fields={"category": "str", "status": "str", "isEnabled": "bool"},
    search_fields=("name", "description"),
    field_types={"priority": "int", "isEnabled": "bool"},
    defaults=MappingProxyType({"configuration": {}, "isEnabled": False, "priority": 0}),
    extra_sort_fields=("name", "priority"),
    group_field="category",
    stats_group_fields=("category", "priority"),
    active_criteria={"isEnabled": True},
    write_roles=("admin",),
)

NEXT_LEVEL_FEATURES = ResourceDefinition(
    path="/next-level-features",
    collection="next_level_features",
    label="NEXT_LEVEL_FEATURE",
    display_name="Next level feature",
    tag="next-level-features",
    required_fields=("name", "description", "type"),
    filter_fields={"type": "str", "status": "str", "isActive": "bool"},
    search_fields=("name", "description"),
    field_types={"isActive": "bool"},
    defaults=MappingProxyType(
        {"configuration": {}, "isActive": False, "requirements": [], "dependencies": []}
    ),
    extra_sort_fields=("name",),
    group_field="type",
    stats_group_fields=("type",),
    active_criteria={"isActive": True},
    write_roles=("admin",),
)

VERIFICATIONS = ResourceDefinition(
    path="/verifications",
    collection="verifications",
    label="VERIFICATION",
    display_name="Verification",
    tag="verifications",
    required_fields=("type", "userId"),
    filter_fields={"type": "str", "status": "str", "userId": "objectid"},
    range_filters=(
        RangeFilter(
            field="createdAt", min_param="startDate", max_param="endDate", value_type="datetime"
        ),
    ),
    field_types={"userId": "objectid"},
    defaults=MappingProxyType(
        {"documentType": "", "documentData": {}, "additionalInfo": {}, "status": "pending"}
    ),
    stats_group_fields=("status", "type"),
    status_policy=StatusPolicy(
        allowed=("pending", "approved", "rejected"),
        transition_timestamps={"approved": "approvedAt", "rejected": "rejectedAt"},
        reviewed_statuses=("approved", "rejected"),
    ),
    created_timestamp_field="submittedAt",
)

TRACKING_EVENTS = ResourceDefinition(
    path="/tracking/events",
    collection="tracking_events",
    label="TRACKING_EVENT",
    display_name="Tracking event",
    tag="tracking",
    required_fields=("type",),
    filter_fields={"type": "str", "userId": "objectid", "sessionId": "str"},
    range_filters=(
        RangeFilter(
            field="timestamp", min_param="startDate", max_param="endDate", value_type="datetime"
        ),
    ),
    field_types={"userId": "objectid"},
    defaults=MappingProxyType(
        {"userId": None, "sessionId": None, "data": {}, "metadata": {}}
    ),
    default_sort="timestamp:desc",
    stats_group_fields=("type",),
    anonymous_create=True,
    created_timestamp_field="timestamp",
)

CLIENTS = ResourceDefinition(
    path="/clients",
    collection="clients",
    label="CLIENT",
    display_name="Client",
    tag="clients",
    required_fields=("name", "email"),
    filter_fields={"status": "str", "company": "str"},
    search_fields=("name", "email", "phone", "company"),
    defaults=MappingProxyType({"phone": "", "company": "", "vehicles": [], "status": "active"}),
    extra_sort_fields=("name",),
    stats_group_fields=("status",),
    active_criteria={"status": "active"},
    status_policy=StatusPolicy(allowed=("active", "inactive", "suspended")),
    soft_delete=True,
)

EMPLOYEES = ResourceDefinition(
    path="/employees",
    collection="employees",
    label="EMPLOYEE",
    display_name="Employee",
    tag="employees",
    required_fields=("firstName", "lastName", "email", "role"),
    filter_fields={"department": "str", "role": "str", "status": "str"},
    search_fields=("firstName", "lastName", "email", "department"),
    defaults=MappingProxyType({"department": "", "permissions": [], "status": "active"}),
    extra_sort_fields=("lastName",),
    group_field="department",
    stats_group_fields=("department", "role"),
    active_criteria={"status": "active"},
    status_policy=StatusPolicy(allowed=("active", "inactive", "on_leave")),
    soft_delete=True,
    write_roles=("admin", "hr"),
)

MECHANICS = ResourceDefinition(
    path="/mechanics",
    collection="mechanics",
    label="MECHANIC",
    display_name="Mechanic",
    tag="mechanics",
    required_fields=("name", "specialization"),
    filter_fields={"specialization": "str", "status": "str", "city": "str"},
    search_fields=("name", "specialization", "city"),
    field_types={"experienceYears": "int"},
    defaults=MappingProxyType(
        {"certifications": [], "ratingTotal": 0, "ratingCount": 0, "status": "active"}
    ),
    extra_sort_fields=("name", "ratingCount", "experienceYears"),
    group_field="specialization",
    stats_group_fields=("specialization", "status"),
    active_criteria={"status": "active"},
    status_policy=StatusPolicy(allowed=("active", "inactive", "busy")),
    present=_mechanic_rating,
)

PAYMENTS = ResourceDefinition(
    path="/payments",
    collection="payments",
    label="PAYMENT",
    display_name="Payment",
    tag="payments",
    required_fields=("amount", "currency", "clientId"),
    filter_fields={"status": "str", "method": "str", "currency": "str", "clientId": "objectid"},
    range_filters=(RangeFilter(field="amount", min_param="minAmount", max_param="maxAmount"),),
    field_types={"amount": "float", "clientId": "objectid"},
    defaults=MappingProxyType({"method": "card", "status": "pending"}),
    extra_sort_fields=("amount",),
    stats_group_fields=("status", "method"),
    stats_numeric_field="amount",
    status_policy=StatusPolicy(
        allowed=("pending", "completed", "failed", "refunded"),
        transition_timestamps={
            "completed": "completedAt",
            "failed": "failedAt",
            "refunded": "refundedAt",
        },
    ),
    write_roles=("admin", "finance"),
)

COMMUNITIES = ResourceDefinition(
    path="/communities",
    collection="communities",
    label="COMMUNITY",
    display_name="Community",
    tag="communities",
    required_fields=("name", "category"),
    filter_fields={"category": "str", "status": "str"},
    search_fields=("name", "description"),
    field_types={"memberCount": "int"},
    defaults=MappingProxyType({"description": "", "memberCount": 0, "status": "active"}),
    extra_sort_fields=("name", "memberCount"),
    group_field="category",
    stats_group_fields=("category",),
    active_criteria={"status": "active"},
    status_policy=StatusPolicy(allowed=("active", "inactive")),
)

PLATFORM_SETTINGS = ResourceDefinition(
    path="/settings",
    collection="settings",
    label="SETTING",
    display_name="Setting",
    tag="settings",
    required_fields=("key", "value"),
    filter_fields={"category": "str", "key": "str"},
    search_fields=("key", "description"),
    defaults=MappingProxyType({"category": "general", "description": ""}),
    default_sort="key:asc",
    group_field="category",
    stats_group_fields=("category",),
    write_roles=("admin",),
)

NOTIFICATIONS = ResourceDefinition(
    path="/notifications",
    collection="notifications",
    label="NOTIFICATION",
    display_name="Notification",
    tag="notifications",
    required_fields=("recipientId", "title", "message"),
    filter_fields={"recipientId": "objectid", "type": "str", "status": "str"},
    search_fields=("title", "message"),
    field_types={"recipientId": "objectid"},
    defaults=MappingProxyType({"type": "info", "channel": "in_app", "status": "unread"}),
    stats_group_fields=("type", "status"),
    status_policy=StatusPolicy(allowed=("unread", "read"), transition_timestamps={"read": "readAt"}),
)

VERIFICATION_DOCUMENTS = ResourceDefinition(
    path="/verifications/documents",
    collection="verification_documents",
    label="DOCUMENT",
    display_name="Document",
    tag="verifications",
    required_fields=("userId", "documentType", "documentUrl"),
    filter_fields={"status": "str", "documentType": "str", "userId": "objectid"},
    field_types={"userId": "objectid", "expiryDate": "datetime"},
    defaults=MappingProxyType(
        {"documentNumber": "", "expiryDate": None, "additionalData": {}, "status": "pending"}
    ),
    status_policy=StatusPolicy(
        allowed=("pending", "approved", "rejected"),
        transition_timestamps={"approved": "approvedAt", "rejected": "rejectedAt"},
        reviewed_statuses=("approved", "rejected"),
    ),
    created_timestamp_field="submittedAt",
)

RESOURCES: tuple[ResourceDefinition, ...] = (
    SERVICES,
    ADVANCED_FEATURES,
    NEXT_LEVEL_FEATURES,
    VERIFICATIONS,
    TRACKING_EVENTS,
    CLIENTS,
    EMPLOYEES,
    MECHANICS,
    PAYMENTS,
    COMMUNITIES,
    PLATFORM_SETTINGS,
    NOTIFICATIONS,
)


# Served only through extension routes, never through the generic router factory.
SUPPORTING_RESOURCES: tuple[ResourceDefinition, ...] = (VERIFICATION_DOCUMENTS,)


def collection_names() -> set[str]:
    return {definition.collection for definition in (*RESOURCES, *SUPPORTING_RESOURCES)}
