# This file builds the standard CRUD router for any resource in the catalog.
# It exists so list, search, stats, grouping, read, create, update, status, and delete routes are written once.
# The router enforces deterministic pagination and allowlisted sorting for repeatable results.
# Resource-specific sub-routes live in their own modules and are mounted after this router.

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from bson import ObjectId
from fastapi import APIRouter, Body, Depends, Query, Request

from fleetops.api.api_config import ApiConfig
from fleetops.api.auth import UserContext, get_current_user, get_optional_user, require_roles
from fleetops.api.db_access import parse_object_id
from fleetops.api.dependencies import get_config, resource_service_dependency
from fleetops.api.error_handlers import APIError
from fleetops.api.filters import build_filters, coerce_value, search_condition
from fleetops.api.pagination import (
    PaginationSpec,
    SortSpec,
    compute_total_pages,
    normalize_pagination,
    parse_sort,
)
from fleetops.api.resource_catalog import ResourceDefinition
from fleetops.api.response_envelope import build_list_envelope, build_object_envelope
from fleetops.api.routing import InstrumentedRoute
from fleetops.api.schemas.common import AcknowledgementResponse, ErrorResponse, PaginationMetadata
from fleetops.api.schemas.resource_schemas import (
    ResourceItemResponse,
    ResourceListResponse,
    ResourceStatsResponse,
)
from fleetops.api.services.resource_service import ResourceService


ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status_code: {"model": ErrorResponse} for status_code in (400, 401, 403, 404, 429)
}


def invalid_query(exc: ValueError) -> APIError:
    return APIError(status_code=400, error_code="INVALID_QUERY_PARAM", message=str(exc))


def path_object_id(value: str, *, what: str) -> ObjectId:
    """Parse an ObjectId taken from the URL path, raising 400 INVALID_ID."""

    try:
        return parse_object_id(value)
    except ValueError as exc:
        raise APIError(
            status_code=400,
            error_code="INVALID_ID",
            message=f"Invalid {what} id: {value}",
        ) from exc


def resolve_paging(
    *,
    definition: ResourceDefinition,
    config: ApiConfig,
    page: int,
    limit: int | None,
    sort: str | None,
    default_sort: str | None = None,
) -> tuple[PaginationSpec, SortSpec]:
    try:
        pagination = normalize_pagination(
            page=page,
            limit=limit,
            default_limit=config.default_page_size,
            max_limit=config.max_page_size,
        )
        sort_spec = parse_sort(
            requested_sort=sort,
            default_sort=default_sort or definition.default_sort,
            allowed_fields=definition.sort_fields,
        )
    except ValueError as exc:
        raise invalid_query(exc) from exc
    return pagination, sort_spec


def resolve_filters(
    definition: ResourceDefinition,
    query_params: Mapping[str, str],
    *,
    base: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    try:
        return build_filters(definition, query_params, base=base)
    except ValueError as exc:
        raise invalid_query(exc) from exc


def paged_list_response(
    *,
    request: Request,
    config: ApiConfig,
    service: ResourceService,
    filters: Mapping[str, Any],
    pagination: PaginationSpec,
    sort_spec: SortSpec,
) -> dict[str, object]:
    result = service.list_items(filters=filters, pagination=pagination, sort=sort_spec)
    total = int(result["total_count"])
    pagination_meta = PaginationMetadata(
        page=pagination.page,
        limit=pagination.limit,
        total=total,
        pages=compute_total_pages(total_count=total, limit=pagination.limit),
        sort=sort_spec.as_text,
    )
    return build_list_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=list(result["rows"]),
        pagination=pagination_meta.model_dump(),
    )


def object_response(
    *,
    request: Request,
    config: ApiConfig,
    data: Any = None,
    message: str | None = None,
) -> dict[str, object]:
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=data,
        message=message,
    )


def build_resource_router(definition: ResourceDefinition) -> APIRouter:
    """Create the standard router for one catalog resource."""

    router = APIRouter(
        prefix=definition.path,
        tags=[definition.tag],
        responses=ERROR_RESPONSES,
        route_class=InstrumentedRoute,
    )
    service_dep = resource_service_dependency(definition)
    writer_dep = require_roles(*definition.write_roles)
    creator_dep = get_optional_user if definition.anonymous_create else writer_dep
    name = definition.display_name

    @router.get(
        "",
        response_model=ResourceListResponse,
        response_model_exclude_unset=True,
        name=f"list_{definition.collection}",
    )
    def list_items(
        request: Request,
        service: ResourceService = Depends(service_dep),
        config: ApiConfig = Depends(get_config),
        _user: UserContext = Depends(get_current_user),
        page: int = Query(default=1),
        limit: int | None = Query(default=None),
        sort: str | None = Query(default=None),
    ) -> dict[str, object]:
        pagination, sort_spec = resolve_paging(
            definition=definition, config=config, page=page, limit=limit, sort=sort
        )
        filters = resolve_filters(definition, request.query_params)
        return paged_list_response(
            request=request,
            config=config,
            service=service,
            filters=filters,
            pagination=pagination,
            sort_spec=sort_spec,
        )

    if definition.search_fields:

        @router.get(
            "/search/query",
            response_model=ResourceListResponse,
            response_model_exclude_unset=True,
            name=f"search_{definition.collection}",
        )
        def search_items(
            request: Request,
            service: ResourceService = Depends(service_dep),
            config: ApiConfig = Depends(get_config),
            _user: UserContext = Depends(get_current_user),
            q: str | None = Query(default=None),
            page: int = Query(default=1),
            limit: int | None = Query(default=None),
            sort: str | None = Query(default=None),
        ) -> dict[str, object]:
            if q is None or not q.strip():
                raise APIError(
                    status_code=400,
                    error_code="MISSING_QUERY",
                    message="Search query 'q' is required",
                )
            pagination, sort_spec = resolve_paging(
                definition=definition, config=config, page=page, limit=limit, sort=sort
            )
            filters = resolve_filters(
                definition,
                request.query_params,
                base=search_condition(definition.search_fields, q),
            )
            return paged_list_response(
                request=request,
                config=config,
                service=service,
                filters=filters,
                pagination=pagination,
                sort_spec=sort_spec,
            )

    @router.get(
        "/stats/overview",
        response_model=ResourceStatsResponse,
        response_model_exclude_unset=True,
        name=f"stats_{definition.collection}",
    )
    def stats_overview(
        request: Request,
        service: ResourceService = Depends(service_dep),
        config: ApiConfig = Depends(get_config),
        _user: UserContext = Depends(get_current_user),
    ) -> dict[str, object]:
        return object_response(request=request, config=config, data=service.overview())

    if definition.group_field:
        group_field = definition.group_field

        @router.get(
            f"/{group_field}/{{value}}",
            response_model=ResourceListResponse,
            response_model_exclude_unset=True,
            name=f"list_{definition.collection}_by_{group_field}",
        )
        def list_by_group(
            value: str,
            request: Request,
            service: ResourceService = Depends(service_dep),
            config: ApiConfig = Depends(get_config),
            _user: UserContext = Depends(get_current_user),
            page: int = Query(default=1),
            limit: int | None = Query(default=None),
            sort: str | None = Query(default=None),
        ) -> dict[str, object]:
            pagination, sort_spec = resolve_paging(
                definition=definition, config=config, page=page, limit=limit, sort=sort
            )
            try:
                group_value = coerce_value(value, definition.field_type(group_field) or "str")
            except ValueError as exc:
                raise invalid_query(exc) from exc
            filters = resolve_filters(definition, request.query_params)
            filters[group_field] = group_value
            return paged_list_response(
                request=request,
                config=config,
                service=service,
                filters=filters,
                pagination=pagination,
                sort_spec=sort_spec,
            )

    @router.get(
        "/{item_id}",
        response_model=ResourceItemResponse,
        response_model_exclude_unset=True,
        name=f"get_{definition.collection}_item",
    )
    def get_item(
        item_id: str,
        request: Request,
        service: ResourceService = Depends(service_dep),
        config: ApiConfig = Depends(get_config),
        _user: UserContext = Depends(get_current_user),
    ) -> dict[str, object]:
        return object_response(request=request, config=config, data=service.get_item(item_id))

    @router.post(
        "",
        status_code=201,
        response_model=ResourceItemResponse,
        response_model_exclude_unset=True,
        name=f"create_{definition.collection}_item",
    )
    def create_item(
        request: Request,
        payload: dict[str, Any] = Body(...),
        service: ResourceService = Depends(service_dep),
        config: ApiConfig = Depends(get_config),
        user: UserContext | None = Depends(creator_dep),
    ) -> dict[str, object]:
        created = service.create_item(payload, user_id=user.id if user else None)
        return object_response(
            request=request, config=config, data=created, message=f"{name} created successfully"
        )

    @router.put(
        "/{item_id}",
        response_model=ResourceItemResponse,
        response_model_exclude_unset=True,
        name=f"update_{definition.collection}_item",
    )
    def update_item(
        item_id: str,
        request: Request,
        payload: dict[str, Any] = Body(...),
        service: ResourceService = Depends(service_dep),
        config: ApiConfig = Depends(get_config),
        _user: UserContext = Depends(writer_dep),
    ) -> dict[str, object]:
        updated = service.update_item(item_id, payload)
        return object_response(
            request=request, config=config, data=updated, message=f"{name} updated successfully"
        )

    if definition.status_policy is not None:

        @router.patch(
            "/{item_id}/status",
            response_model=ResourceItemResponse,
            response_model_exclude_unset=True,
            name=f"set_{definition.collection}_status",
        )
        def set_status(
            item_id: str,
            request: Request,
            payload: dict[str, Any] = Body(...),
            service: ResourceService = Depends(service_dep),
            config: ApiConfig = Depends(get_config),
            user: UserContext = Depends(writer_dep),
        ) -> dict[str, object]:
            updated = service.set_status(item_id, payload, user_id=user.id)
            status = updated.get(definition.status_policy.status_field)
            return object_response(
                request=request,
                config=config,
                data=updated,
                message=f"{name} status updated to {status}",
            )

    @router.delete(
        "/{item_id}",
        response_model=AcknowledgementResponse,
        response_model_exclude_unset=True,
        name=f"delete_{definition.collection}_item",
    )
    def delete_item(
        item_id: str,
        request: Request,
        service: ResourceService = Depends(service_dep),
        config: ApiConfig = Depends(get_config),
        user: UserContext = Depends(writer_dep),
    ) -> dict[str, object]:
        service.delete_item(item_id, user_id=user.id)
        return object_response(request=request, config=config, message=f"{name} deleted successfully")

    return router
