# This file defines tracking routes beyond the generic `/tracking/events` resource.
# Page views and user actions are recorded anonymously as typed tracking events.
# Timelines, sessions, and analytics read the same collection with fixed orderings and aggregates.
# Analytics accept the same `type`, `startDate`, and `endDate` filters as the event list.

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request

from fleetops.api.api_config import ApiConfig
from fleetops.api.auth import UserContext, get_current_user, get_optional_user
from fleetops.api.dependencies import get_config, resource_service_dependency
from fleetops.api.error_handlers import APIError
from fleetops.api.pagination import SortSpec
from fleetops.api.resource_catalog import TRACKING_EVENTS
from fleetops.api.routers.resources import (
    ERROR_RESPONSES,
    object_response,
    path_object_id,
    resolve_filters,
)
from fleetops.api.routing import InstrumentedRoute
from fleetops.api.schemas.resource_schemas import (
    ActionRequest,
    PageViewRequest,
    ResourceItemResponse,
    ResourceListResponse,
    TrackingAnalyticsResponse,
)
from fleetops.api.services.resource_service import ResourceService

router = APIRouter(
    prefix="/tracking",
    tags=[TRACKING_EVENTS.tag],
    responses=ERROR_RESPONSES,
    route_class=InstrumentedRoute,
)
ServiceDep = Annotated[ResourceService, Depends(resource_service_dependency(TRACKING_EVENTS))]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]
UserDep = Annotated[UserContext, Depends(get_current_user)]
OptionalUserDep = Annotated[UserContext | None, Depends(get_optional_user)]


def _client_fields(request: Request) -> dict[str, Any]:
    return {
        "ipAddress": request.client.host if request.client else None,
        "userAgent": request.headers.get("user-agent"),
    }


def _record_event(
    *,
    request: Request,
    service: ResourceService,
    config: ApiConfig,
    user: UserContext | None,
    event_type: str,
    user_id: str | None,
    session_id: str | None,
    data: dict[str, Any],
    message: str,
) -> dict[str, object]:
    event = {
        "type": event_type,
        "userId": user_id or None,
        "sessionId": session_id or None,
        "data": data,
        **_client_fields(request),
    }
    created = service.create_item(event, user_id=user.id if user else None)
    return object_response(request=request, config=config, data=created, message=message)


@router.post(
    "/pageview", status_code=201, response_model=ResourceItemResponse, response_model_exclude_unset=True
)
def track_page_view(
    payload: PageViewRequest,
    request: Request,
    service: ServiceDep,
    config: ConfigDep,
    user: OptionalUserDep,
) -> dict[str, object]:
    if not payload.page or not payload.page.strip():
        raise APIError(status_code=400, error_code="MISSING_PAGE", message="Page is required")
    return _record_event(
        request=request,
        service=service,
        config=config,
        user=user,
        event_type="pageview",
        user_id=payload.userId,
        session_id=payload.sessionId,
        data={
            "page": payload.page,
            "referrer": payload.referrer or "",
            "duration": payload.duration or 0,
        },
        message="Page view tracked successfully",
    )


@router.post(
    "/action", status_code=201, response_model=ResourceItemResponse, response_model_exclude_unset=True
)
def track_action(
    payload: ActionRequest,
    request: Request,
    service: ServiceDep,
    config: ConfigDep,
    user: OptionalUserDep,
) -> dict[str, object]:
    if not payload.action or not payload.action.strip():
        raise APIError(status_code=400, error_code="MISSING_ACTION", message="Action is required")
    return _record_event(
        request=request,
        service=service,
        config=config,
        user=user,
        event_type="action",
        user_id=payload.userId,
        session_id=payload.sessionId,
        data={"action": payload.action, "target": payload.target or "", "value": payload.value},
        message="User action tracked successfully",
    )


@router.get(
    "/user/{user_id}/timeline", response_model=ResourceListResponse, response_model_exclude_unset=True
)
def user_timeline(
    user_id: str,
    request: Request,
    service: ServiceDep,
    config: ConfigDep,
    _user: UserDep,
) -> dict[str, object]:
    owner_id = path_object_id(user_id, what="user")
    filters = resolve_filters(TRACKING_EVENTS, request.query_params)
    filters["userId"] = owner_id
    rows = service.list_all(filters=filters, sort=SortSpec(field="timestamp", order="desc"))
    return object_response(request=request, config=config, data=rows)


@router.get(
    "/sessions/{session_id}", response_model=ResourceListResponse, response_model_exclude_unset=True
)
def session_events(
    session_id: str,
    request: Request,
    service: ServiceDep,
    config: ConfigDep,
    _user: UserDep,
) -> dict[str, object]:
    rows = service.list_all(
        filters={"sessionId": session_id}, sort=SortSpec(field="timestamp", order="asc")
    )
    return object_response(request=request, config=config, data=rows)


@router.get("/analytics", response_model=TrackingAnalyticsResponse, response_model_exclude_unset=True)
def tracking_analytics(
    request: Request,
    service: ServiceDep,
    config: ConfigDep,
    _user: UserDep,
) -> dict[str, object]:
    filters = resolve_filters(TRACKING_EVENTS, request.query_params)
    analytics = {
        "totalEvents": service.count_items(filters),
        "eventsByType": service.group_counts("type", filters),
        "eventsByUser": service.group_counts(
            "userId", {**filters, "userId": filters.get("userId", {"$ne": None})}
        ),
        "eventsByHour": service.hourly_counts("timestamp", filters),
    }
    return object_response(request=request, config=config, data=analytics)
