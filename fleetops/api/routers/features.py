# This file defines feature-management routes for advanced and next-level features.
# Advanced features expose enable toggles, an enabled listing, and bulk updates.
# Next-level features expose activation guarded by a dependency check, plus dependency lookups.
# These routes are mounted after the generic routers, so `/type/{value}` wins over `/{id}/dependencies`.

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Request

from fleetops.api.api_config import ApiConfig
from fleetops.api.auth import UserContext, get_current_user, require_roles
from fleetops.api.dependencies import get_config, resource_service_dependency
from fleetops.api.pagination import SortSpec
from fleetops.api.resource_catalog import ADVANCED_FEATURES, NEXT_LEVEL_FEATURES
from fleetops.api.routers.resources import ERROR_RESPONSES, object_response
from fleetops.api.routing import InstrumentedRoute
from fleetops.api.schemas.resource_schemas import (
    BulkUpdateResponse,
    ResourceItemResponse,
    ResourceListResponse,
)
from fleetops.api.services.resource_service import ResourceService

ConfigDep = Annotated[ApiConfig, Depends(get_config)]
UserDep = Annotated[UserContext, Depends(get_current_user)]

advanced_router = APIRouter(
    prefix=ADVANCED_FEATURES.path,
    tags=[ADVANCED_FEATURES.tag],
    responses=ERROR_RESPONSES,
    route_class=InstrumentedRoute,
)
AdvancedServiceDep = Annotated[
    ResourceService, Depends(resource_service_dependency(ADVANCED_FEATURES))
]
AdvancedWriterDep = Annotated[UserContext, Depends(require_roles(*ADVANCED_FEATURES.write_roles))]

next_level_router = APIRouter(
    prefix=NEXT_LEVEL_FEATURES.path,
    tags=[NEXT_LEVEL_FEATURES.tag],
    responses=ERROR_RESPONSES,
    route_class=InstrumentedRoute,
)
NextLevelServiceDep = Annotated[
    ResourceService, Depends(resource_service_dependency(NEXT_LEVEL_FEATURES))
]
NextLevelWriterDep = Annotated[
    UserContext, Depends(require_roles(*NEXT_LEVEL_FEATURES.write_roles))
]


@advanced_router.get(
    "/enabled/list", response_model=ResourceListResponse, response_model_exclude_unset=True
)
def enabled_features(
    request: Request,
    service: AdvancedServiceDep,
    config: ConfigDep,
    _user: UserDep,
) -> dict[str, object]:
    rows = service.list_all(
        filters={"isEnabled": True}, sort=SortSpec(field="priority", order="desc")
    )
    return object_response(request=request, config=config, data=rows)


@advanced_router.patch(
    "/bulk-update", response_model=BulkUpdateResponse, response_model_exclude_unset=True
)
def bulk_update_features(
    request: Request,
    service: AdvancedServiceDep,
    config: ConfigDep,
    _user: AdvancedWriterDep,
    payload: Annotated[dict[str, Any], Body()],
) -> dict[str, object]:
    result = service.bulk_update(payload.get("features"))
    return object_response(
        request=request,
        config=config,
        data=result,
        message="Advanced features updated successfully",
    )


@advanced_router.patch(
    "/{item_id}/toggle", response_model=ResourceItemResponse, response_model_exclude_unset=True
)
def toggle_feature(
    item_id: str,
    request: Request,
    service: AdvancedServiceDep,
    config: ConfigDep,
    _user: AdvancedWriterDep,
    payload: Annotated[dict[str, Any], Body()],
) -> dict[str, object]:
    updated = service.set_flag(item_id, "isEnabled", payload.get("isEnabled"))
    state = "enabled" if updated["isEnabled"] else "disabled"
    return object_response(
        request=request,
        config=config,
        data=updated,
        message=f"Advanced feature {state} successfully",
    )


@next_level_router.get(
    "/active/list", response_model=ResourceListResponse, response_model_exclude_unset=True
)
def active_features(
    request: Request,
    service: NextLevelServiceDep,
    config: ConfigDep,
    _user: UserDep,
) -> dict[str, object]:
    rows = service.list_all(filters=NEXT_LEVEL_FEATURES.active_criteria or {})
    return object_response(request=request, config=config, data=rows)


@next_level_router.patch(
    "/{item_id}/activate", response_model=ResourceItemResponse, response_model_exclude_unset=True
)
def activate_feature(
    item_id: str,
    request: Request,
    service: NextLevelServiceDep,
    config: ConfigDep,
    _user: NextLevelWriterDep,
) -> dict[str, object]:
    updated = service.activate(item_id)
    return object_response(
        request=request,
        config=config,
        data=updated,
        message="Next level feature activated successfully",
    )


@next_level_router.patch(
    "/{item_id}/deactivate", response_model=ResourceItemResponse, response_model_exclude_unset=True
)
def deactivate_feature(
    item_id: str,
    request: Request,
    service: NextLevelServiceDep,
    config: ConfigDep,
    _user: NextLevelWriterDep,
) -> dict[str, object]:
    updated = service.deactivate(item_id)
    return object_response(
        request=request,
        config=config,
        data=updated,
        message="Next level feature deactivated successfully",
    )


@next_level_router.get(
    "/{item_id}/dependencies", response_model=ResourceListResponse, response_model_exclude_unset=True
)
def feature_dependencies(
    item_id: str,
    request: Request,
    service: NextLevelServiceDep,
    config: ConfigDep,
    _user: UserDep,
) -> dict[str, object]:
    return object_response(request=request, config=config, data=service.dependencies(item_id))
