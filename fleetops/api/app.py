# This file builds the FastAPI application and registers all API routers.
# It exists so startup behavior, middleware, and error handling are configured in one place.
# The app adds request IDs, timing headers, rate limiting, and optional request logging for operations visibility.
# Keeping bootstrap logic centralized makes deployment and testing more predictable.

from __future__ import annotations

import logging
import time
import uuid

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from pymongo.errors import PyMongoError
from starlette.middleware.base import RequestResponseEndpoint

from fleetops.api.api_config import ApiConfig, get_api_config
from fleetops.api.db_access import DatabaseClient
from fleetops.api.dependencies import get_database_client
from fleetops.api.error_handlers import register_error_handlers
from fleetops.api.rate_limit import install_rate_limiting
from fleetops.api.resource_catalog import RESOURCES
from fleetops.api.routers.features import advanced_router, next_level_router
from fleetops.api.routers.health import router as health_router
from fleetops.api.routers.mechanics import router as mechanics_router
from fleetops.api.routers.resources import build_resource_router
from fleetops.api.routers.services import router as services_router
from fleetops.api.routers.tracking import router as tracking_router
from fleetops.api.routers.verifications import router as verifications_router
from fleetops.api.routing import InstrumentedRoute
from fleetops.common.logging import configure_logging

logger = logging.getLogger(__name__)

API_HTTP_REQUESTS_TOTAL = Counter(
    "api_http_requests_total",
    "Total number of HTTP requests processed by the API.",
    ["method", "path", "status_code"],
)
API_HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "api_http_request_duration_seconds",
    "API request duration in seconds.",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)
API_HTTP_INFLIGHT_REQUESTS = Gauge(
    "api_http_inflight_requests",
    "Number of API requests currently being processed.",
    ["method"],
)

# Requests that match no route (404s) share one label.
UNMATCHED_ROUTE_LABEL = "unmatched"

# Mounted after the generic routers, so generic templates such as `/type/{value}` take precedence.
RESOURCE_EXTENSION_ROUTERS = (
    services_router,
    advanced_router,
    next_level_router,
    verifications_router,
    tracking_router,
    mechanics_router,
)


def _route_label(request: Request) -> str:
    """Route template such as `/api/v1/services/{item_id}` so ids do not explode label cardinality."""

    return getattr(request.state, "route_template", None) or UNMATCHED_ROUTE_LABEL


def _resolve_database_client(app: FastAPI) -> DatabaseClient:
    provider = app.dependency_overrides.get(get_database_client, get_database_client)
    return provider()


def create_app(config: ApiConfig | None = None) -> FastAPI:
    """Create configured FastAPI application instance."""

    configure_logging()
    config = config or get_api_config()

    app = FastAPI(
        title=config.api_name,
        description=(
            "Versioned REST API over the fleet operations MongoDB collections. "
            "Every resource shares one list/search/stats/CRUD contract and a uniform response envelope."
        ),
        version=config.app_version,
        openapi_tags=[
            {"name": "health", "description": "Service liveness, readiness, and version metadata."},
            *(
                {"name": definition.tag, "description": f"{definition.display_name} records."}
                for definition in RESOURCES
            ),
        ],
    )
    app.state.config = config

    if config.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    install_rate_limiting(app, config)

    @app.middleware("http")
    async def request_context_middleware(
        request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        method_label = request.method
        started = time.perf_counter()
        status_code = 500
        API_HTTP_INFLIGHT_REQUESTS.labels(method=method_label).inc()
        try:
            response: Response = await call_next(request)
            status_code = response.status_code
            duration_ms = (time.perf_counter() - started) * 1000.0

            response.headers["x-request-id"] = request_id
            response.headers["x-response-time-ms"] = f"{duration_ms:.2f}"

            if config.enable_request_logging:
                try:
                    _resolve_database_client(app).log_request(
                        collection_name=config.request_log_collection_name,
                        request_id=request_id,
                        path=request.url.path,
                        method=request.method,
                        status_code=response.status_code,
                        duration_ms=duration_ms,
                    )
                except PyMongoError:
                    logger.warning("Request log write failed for %s", request_id, exc_info=True)

            return response
        finally:
            path_label = _route_label(request)
            duration_s = time.perf_counter() - started
            API_HTTP_REQUESTS_TOTAL.labels(
                method=method_label,
                path=path_label,
                status_code=str(status_code),
            ).inc()
            API_HTTP_REQUEST_DURATION_SECONDS.labels(
                method=method_label,
                path=path_label,
            ).observe(duration_s)
            API_HTTP_INFLIGHT_REQUESTS.labels(method=method_label).dec()

    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.router.add_api_route(
        "/metrics", metrics, include_in_schema=False, route_class_override=InstrumentedRoute
    )

    @app.on_event("startup")
    def startup_checks() -> None:
        try:
            app.state.db_connected_at_startup = _resolve_database_client(app).can_connect()
        except (PyMongoError, RuntimeError, ValueError):
            logger.warning("MongoDB connectivity check failed at startup", exc_info=True)
            app.state.db_connected_at_startup = False
        logger.info(
            "API started env=%s db_connected=%s",
            config.environment,
            app.state.db_connected_at_startup,
        )

    @app.on_event("shutdown")
    def close_database_client() -> None:
        if get_database_client.cache_info().currsize:
            get_database_client().close()

    register_error_handlers(app)

    app.include_router(health_router)
    for definition in RESOURCES:
        app.include_router(build_resource_router(definition), prefix=config.api_version_path)
    for extension_router in RESOURCE_EXTENSION_ROUTERS:
        app.include_router(extension_router, prefix=config.api_version_path)

    return app


app = create_app()
