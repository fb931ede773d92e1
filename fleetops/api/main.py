"""Uvicorn entrypoint for the fleet operations API."""

from __future__ import annotations

import uvicorn

from fleetops.api.api_config import get_api_config


def run() -> None:
    config = get_api_config()
    uvicorn.run(
        "fleetops.api.app:app",
        host=config.host,
        port=config.port,
        log_level="info",
    )


if __name__ == "__main__":
    run()
