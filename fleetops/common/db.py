"""
MongoDB connection utilities.
It centralizes cross-cutting concerns like settings, logging, and database access used by the API.
Clients are created lazily so importing the package never opens a socket.
"""

from __future__ import annotations

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from fleetops.common.settings import get_settings

DEFAULT_SERVER_SELECTION_TIMEOUT_MS = 5000


def create_mongo_client(
    uri: str, *, server_selection_timeout_ms: int = DEFAULT_SERVER_SELECTION_TIMEOUT_MS
) -> MongoClient:
    """Create a MongoDB client with timezone-aware datetime decoding."""

    return MongoClient(
        uri,
        tz_aware=True,
        serverSelectionTimeoutMS=server_selection_timeout_ms,
        appname=get_settings().PROJECT_NAME,
    )


def test_connection() -> bool:
    """Return True if the configured MongoDB deployment answers a ping."""

    settings = get_settings()
    client = create_mongo_client(settings.MONGODB_URI)
    try:
        client.admin.command("ping")
        return True
    except PyMongoError:
        return False
    finally:
        client.close()
