# This file defines verification review queues, per-user history, and document submissions.
# The pending queue is served oldest first so reviewers work submissions in arrival order.
# Verification status changes go through the generic `PATCH /{id}/status` route; documents have their own.
# These routes are mounted after the generic verification router.

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Query, Request

from fleetops.api.api_config import ApiConfig
from fleetops.api.auth import UserContext, get_current_user
from fleetops.api.dependencies import get_config, resource_service_dependency
from fleetops.api.pagination import SortSpec
from fleetops.api.resource_catalog import VERIFICATION_DOCUMENTS, VERIFICATIONS
from fleetops.api.routers.resources import (
    ERROR_RESPONSES,
    object_response,
    paged_list_response,
    path_object_id,
    resolve_filters,
    resolve_paging,
)
from fleetops.api.routing import InstrumentedRoute
from fleetops.api.schemas.resource_schemas import ResourceItemResponse, ResourceListResponse
from fleetops.api.services.resource_service import ResourceService

router = APIRouter(
    prefix=VERIFICATIONS.path,
    tags=[VERIFICATIONS.tag],
    responses=ERROR_RESPONSES,
    route_class=InstrumentedRoute,
)
ServiceDep = Annotated[ResourceService, Depends(resource_service_dependency(VERIFICATIONS))]
DocumentServiceDep = Annotated[
    ResourceService, Depends(resource_service_dependency(VERIFICATION_DOCUMENTS))
]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]
UserDep = Annotated[UserContext, Depends(get_current_user)]

PENDING_SORT = "createdAt:asc"


@router.get("/pending/list", response_model=ResourceListResponse, response_model_exclude_unset=True)
def pending_verifications(
    request: Request,
    service: ServiceDep,
    config: ConfigDep,
    _user: UserDep,
    page: int = Query(default=1),
    limit: int | None = Query(default=None),
) -> dict[str, object]:
    pagination, sort_spec = resolve_paging(
        definition=VERIFICATIONS,
        config=config,
        page=page,
        limit=limit,
        sort=None,
        default_sort=PENDING_SORT,
    )
    return paged_list_response(
        request=request,
        config=config,
        service=service,
        filters=resolve_filters(VERIFICATIONS, {}, base={"status": "pending"}),
        pagination=pagination,
        sort_spec=sort_spec,
    )


@router.get("/user/{user_id}", response_model=ResourceListResponse, response_model_exclude_unset=True)
def user_verifications(
    user_id: str,
    request: Request,
    service: ServiceDep,
    config: ConfigDep,
    _user: UserDep,
    page: int = Query(default=1),
    limit: int | None = Query(default=None),
    sort: str | None = Query(default=None),
) -> dict[str, object]:
    owner_id = path_object_id(user_id, what="user")
    pagination, sort_spec = resolve_paging(
        definition=VERIFICATIONS, config=config, page=page, limit=limit, sort=sort
    )
    filters = resolve_filters(VERIFICATIONS, request.query_params)
    filters["userId"] = owner_id
    return paged_list_response(
        request=request,
        config=config,
        service=service,
        filters=filters,
        pagination=pagination,
        sort_spec=sort_spec,
    )


@router.post(
    "/document",
    status_code=201,
    response_model=ResourceItemResponse,
    response_model_exclude_unset=True,
)
def submit_document(
    request: Request,
    service: DocumentServiceDep,
    config: ConfigDep,
    user: UserDep,
    payload: Annotated[dict[str, Any], Body()],
) -> dict[str, object]:
    created = service.create_item(payload, user_id=user.id)
    return object_response(
        request=request,
        config=config,
        data=created,
        message="Document submitted for verification successfully",
    )


@router.get(
    "/documents/{user_id}", response_model=ResourceListResponse, response_model_exclude_unset=True
)
def user_documents(
    user_id: str,
    request: Request,
    service: DocumentServiceDep,
    config: ConfigDep,
    _user: UserDep,
) -> dict[str, object]:
    owner_id = path_object_id(user_id, what="user")
    filters = resolve_filters(VERIFICATION_DOCUMENTS, request.query_params)
    filters["userId"] = owner_id
    rows = service.list_all(filters=filters, sort=SortSpec(field="createdAt", order="desc"))
    return object_response(request=request, config=config, data=rows)


@router.patch(
    "/documents/{item_id}/status",
    response_model=ResourceItemResponse,
    response_model_exclude_unset=True,
)
def set_document_status(
    item_id: str,
    request: Request,
    service: DocumentServiceDep,
    config: ConfigDep,
    user: UserDep,
    payload: Annotated[dict[str, Any], Body()],
) -> dict[str, object]:
    updated = service.set_status(item_id, payload, user_id=user.id)
    return object_response(
        request=request,
        config=config,
        data=updated,
        message=f"Document verification status updated to {updated['status']}",
    )
