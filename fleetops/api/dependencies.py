# This file provides dependency factories for FastAPI routes and middleware.
# It exists so the database client is created once and shared through dependency injection.
# Resource services are built per request from the injected config and database client.
# The setup keeps routers thin and makes endpoint tests easy to override.

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request

from fleetops.api.api_config import ApiConfig, get_api_config
from fleetops.api.db_access import DatabaseClient
from fleetops.api.resource_catalog import ResourceDefinition
from fleetops.api.services.resource_service import ResourceService


@lru_cache(maxsize=1)
def get_database_client() -> DatabaseClient:
    config = get_api_config()
    return DatabaseClient(mongodb_uri=config.mongodb_uri, database_name=config.mongodb_database)


def get_config(request: Request) -> ApiConfig:
    config = getattr(request.app.state, "config", None)
    return config if config is not None else get_api_config()


def resource_service_dependency(
    definition: ResourceDefinition,
) -> Callable[..., ResourceService]:
    """Build the dependency that yields a service bound to `definition`."""

    def _provide(
        config: Annotated[ApiConfig, Depends(get_config)],
        db: Annotated[DatabaseClient, Depends(get_database_client)],
    ) -> ResourceService:
        return ResourceService(definition=definition, db=db, config=config)

    _provide.__name__ = f"get_{definition.collection}_service"
    return _provide
