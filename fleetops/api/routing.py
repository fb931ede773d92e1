# This file defines the route class shared by every API router.
# It records the matched route template on `request.state` before the endpoint runs.
# Metrics label requests with that template and the rate limiter counts hits against it.
# Templates are rebuilt from the request path so they stay correct however routers are nested.

from __future__ import annotations

from collections.abc import Callable, Coroutine
from typing import Any

from fastapi import Request, Response
from fastapi.routing import APIRoute

from fleetops.api.rate_limit import enforce_rate_limit


def _segments(path: str) -> list[str]:
    stripped = path.strip("/")
    return stripped.split("/") if stripped else []


def route_template(path: str, path_format: str) -> str:
    """Full template for `path`, keeping the leading segments a parent router's prefix consumed.

    `path_format` is either the complete template (`/api/v1/services/{item_id}`) or the part
    below an including router (`/{item_id}`). Path parameters never span a `/`, so the
    segment counts line up.
    """

    template_segments = _segments(path_format)
    path_segments = _segments(path)
    consumed = max(len(path_segments) - len(template_segments), 0)
    return "/" + "/".join([*path_segments[:consumed], *template_segments])


class InstrumentedRoute(APIRoute):
    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        handler = super().get_route_handler()
        path_format = self.path_format

        async def instrumented_handler(request: Request) -> Response:
            template = route_template(request.url.path, path_format)
            request.state.route_template = template
            enforce_rate_limit(request, template)
            return await handler(request)

        return instrumented_handler
