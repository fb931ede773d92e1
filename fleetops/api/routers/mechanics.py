# This file defines mechanic rating submission.
# Ratings are accumulated with one atomic `$inc` on `ratingTotal` and `ratingCount`.
# The average `rating` is derived on read, so concurrent submissions never lose an update.

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from fleetops.api.api_config import ApiConfig
from fleetops.api.auth import UserContext, get_current_user
from fleetops.api.dependencies import get_config, resource_service_dependency
from fleetops.api.resource_catalog import MECHANICS
from fleetops.api.routers.resources import ERROR_RESPONSES, object_response
from fleetops.api.routing import InstrumentedRoute
from fleetops.api.schemas.resource_schemas import RatingRequest, ResourceItemResponse
from fleetops.api.services.resource_service import ResourceService

router = APIRouter(
    prefix=MECHANICS.path,
    tags=[MECHANICS.tag],
    responses=ERROR_RESPONSES,
    route_class=InstrumentedRoute,
)
ServiceDep = Annotated[ResourceService, Depends(resource_service_dependency(MECHANICS))]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]
UserDep = Annotated[UserContext, Depends(get_current_user)]


@router.post(
    "/{item_id}/ratings", response_model=ResourceItemResponse, response_model_exclude_unset=True
)
def rate_mechanic(
    item_id: str,
    payload: RatingRequest,
    request: Request,
    service: ServiceDep,
    config: ConfigDep,
    user: UserDep,
) -> dict[str, object]:
    updated = service.increment(
        item_id,
        {"ratingTotal": payload.rating, "ratingCount": 1},
        extra_fields={"lastRatedAt": datetime.now(tz=UTC), "lastRatedBy": user.id},
    )
    return object_response(
        request=request, config=config, data=updated, message="Rating recorded successfully"
    )
