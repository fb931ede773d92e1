# This file configures request rate limiting for the API with slowapi.
# Every route shares one default limit, counted per client address and route template.
# Limits come from `ApiConfig.rate_limit` so deployments can tune them without code edits.
# The check runs inside each route handler, so it does not depend on how routers are mounted.

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from limits import RateLimitItem, parse
from slowapi import Limiter
from slowapi.util import get_remote_address

from fleetops.api.api_config import ApiConfig
from fleetops.api.error_handlers import APIError

logger = logging.getLogger(__name__)


def build_limiter(config: ApiConfig) -> Limiter:
    return Limiter(
        key_func=get_remote_address,
        default_limits=[config.rate_limit],
        enabled=config.rate_limit_enabled,
    )


def install_rate_limiting(app: FastAPI, config: ApiConfig) -> Limiter:
    """Attach a limiter and its parsed default limit to `app.state`."""

    limiter = build_limiter(config)
    app.state.limiter = limiter
    app.state.rate_limit_item = parse(config.rate_limit)
    return limiter


def enforce_rate_limit(request: Request, route_template: str) -> None:
    """Count one hit for the caller on `route_template`; raise 429 once the limit is spent."""

    limiter: Limiter | None = getattr(request.app.state, "limiter", None)
    if limiter is None or not limiter.enabled:
        return

    limit_item: RateLimitItem = request.app.state.rate_limit_item
    client_key = get_remote_address(request)
    if limiter.limiter.hit(limit_item, client_key, route_template):
        return

    logger.warning("Rate limit exceeded for %s %s (%s)", request.method, route_template, client_key)
    raise APIError(
        status_code=429,
        error_code="RATE_LIMIT_EXCEEDED",
        message="Too many requests, please try again later.",
        details={"limit": str(limit_item)},
    )
