# This file defines service-catalog routes that go beyond standard CRUD.
# It exists so popularity counters and category listings stay next to the service resource.
# Popularity changes are applied with an atomic `$inc` so concurrent bumps are never lost.
# These routes are mounted after the generic service router, whose routes take precedence.

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query, Request

from fleetops.api.api_config import ApiConfig
from fleetops.api.auth import UserContext, get_current_user
from fleetops.api.dependencies import get_config, resource_service_dependency
from fleetops.api.pagination import SortSpec
from fleetops.api.resource_catalog import SERVICES
from fleetops.api.routers.resources import ERROR_RESPONSES, object_response
from fleetops.api.routing import InstrumentedRoute
from fleetops.api.schemas.resource_schemas import (
    GroupCountListResponse,
    PopularityIncrementRequest,
    ResourceItemResponse,
    ResourceListResponse,
)
from fleetops.api.services.resource_service import ResourceService

router = APIRouter(
    prefix=SERVICES.path,
    tags=[SERVICES.tag],
    responses=ERROR_RESPONSES,
    route_class=InstrumentedRoute,
)
ServiceDep = Annotated[ResourceService, Depends(resource_service_dependency(SERVICES))]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]
UserDep = Annotated[UserContext, Depends(get_current_user)]

POPULARITY_SORT = SortSpec(field="popularity", order="desc")


@router.get("/popular/list", response_model=ResourceListResponse, response_model_exclude_unset=True)
def popular_services(
    request: Request,
    service: ServiceDep,
    config: ConfigDep,
    _user: UserDep,
    limit: int = Query(default=10, ge=1, le=100),
) -> dict[str, object]:
    rows = service.list_all(filters=SERVICES.active_criteria or {}, sort=POPULARITY_SORT, limit=limit)
    return object_response(request=request, config=config, data=rows)


@router.get(
    "/categories/list", response_model=GroupCountListResponse, response_model_exclude_unset=True
)
def service_categories(
    request: Request,
    service: ServiceDep,
    config: ConfigDep,
    _user: UserDep,
) -> dict[str, object]:
    return object_response(request=request, config=config, data=service.group_counts("category"))


@router.patch(
    "/{item_id}/popularity", response_model=ResourceItemResponse, response_model_exclude_unset=True
)
def bump_popularity(
    item_id: str,
    request: Request,
    service: ServiceDep,
    config: ConfigDep,
    _user: UserDep,
    payload: Annotated[PopularityIncrementRequest | None, Body()] = None,
) -> dict[str, object]:
    increment = payload.increment if payload is not None else 1
    updated = service.increment(item_id, {"popularity": increment})
    return object_response(
        request=request,
        config=config,
        data=updated,
        message="Service popularity updated successfully",
    )
