# This file defines runtime settings for the API layer in one place.
# It exists so versioning, pagination, auth, rate limiting, and MongoDB names can be configured without code edits.
# The config loader reads environment variables and applies safe defaults for local development.
# It also validates collection names against the resource catalog before any query uses them.

from __future__ import annotations

import os
import re
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from fleetops.api.resource_catalog import collection_names

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_RATE_LIMIT_RE = re.compile(r"^\d+\s*(/|per)\s*\d*\s*[a-z]+$")


class ApiConfig(BaseModel):
    """Typed API runtime configuration."""

    model_config = ConfigDict(extra="ignore")

    api_name: str = "Fleet Operations Resource API"
    api_version_path: str = "/api/v1"
    schema_version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 8000
    environment: str = "local"
    mongodb_uri: str
    mongodb_database: str = "fleetops"
    default_page_size: int = 10
    max_page_size: int = 100
    enable_request_logging: bool = False
    request_log_collection_name: str = "api_request_log"
    allowed_origins: list[str] = Field(default_factory=list)
    app_version: str = "0.1.0"
    auth_enabled: bool = True
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    rate_limit_enabled: bool = True
    rate_limit: str = "100/15minutes"
    allowed_collection_names: set[str] = Field(default_factory=set)

    @field_validator("api_version_path")
    @classmethod
    def validate_api_version_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("api_version_path must start with '/'.")
        parts = [part for part in value.split("/") if part]
        if len(parts) < 2 or parts[-1].startswith("v") is False:
            raise ValueError("api_version_path must look like '/api/v1'.")
        return value.rstrip("/")

    @field_validator("mongodb_database", "request_log_collection_name")
    @classmethod
    def validate_identifier(cls, value: str) -> str:
        if not _IDENTIFIER_RE.match(value):
            raise ValueError(f"Unsafe MongoDB identifier: {value!r}")
        return value

    @field_validator("default_page_size", "max_page_size")
    @classmethod
    def validate_positive_ints(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Value must be greater than 0.")
        return value

    @field_validator("rate_limit")
    @classmethod
    def validate_rate_limit(cls, value: str) -> str:
        if not _RATE_LIMIT_RE.match(value.strip().lower()):
            raise ValueError(f"rate_limit must look like '100/15minutes', got {value!r}")
        return value.strip()

    def validate_collection_name(self, collection_name: str) -> str:
        if not _IDENTIFIER_RE.match(collection_name):
            raise ValueError(f"Unsafe MongoDB identifier: {collection_name!r}")
        if collection_name not in self.allowed_collection_names:
            raise ValueError(f"Collection name is not in allowlist: {collection_name!r}")
        return collection_name


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "y", "on"}:
        return True
    if value in {"0", "false", "no", "n", "off"}:
        return False
    raise ValueError(f"{name} must be boolean-like, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_list(name: str, default: list[str] | None = None) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default or [])
    return [item.strip() for item in raw.split(",") if item.strip()]


def build_allowed_collection_names(request_log_collection_name: str) -> set[str]:
    """Collections the API may touch: the resource catalog plus the request log."""

    names = collection_names()
    names.add(request_log_collection_name)
    for name in names:
        if not _IDENTIFIER_RE.match(name):
            raise ValueError(f"Unsafe MongoDB identifier in allowlist: {name!r}")
    return names


def load_api_config(*, load_env: bool = True) -> ApiConfig:
    """Load API configuration from `.env` and process environment."""

    if load_env:
        load_dotenv()

    config_values: dict[str, object] = {
        "api_name": os.getenv("API_NAME", "Fleet Operations Resource API"),
        "api_version_path": os.getenv("API_VERSION_PATH", "/api/v1"),
        "schema_version": os.getenv("API_SCHEMA_VERSION", "1.0.0"),
        "host": os.getenv("API_HOST", "0.0.0.0"),
        "port": _env_int("API_PORT", 8000),
        "environment": os.getenv("ENV", "local"),
        "mongodb_uri": os.getenv("MONGODB_URI", ""),
        "mongodb_database": os.getenv("MONGODB_DATABASE", "fleetops"),
        "default_page_size": _env_int("API_DEFAULT_PAGE_SIZE", 10),
        "max_page_size": _env_int("API_MAX_PAGE_SIZE", 100),
        "enable_request_logging": _env_bool("API_ENABLE_REQUEST_LOGGING", False),
        "request_log_collection_name": os.getenv(
            "API_REQUEST_LOG_COLLECTION_NAME", "api_request_log"
        ),
        "allowed_origins": _env_list("API_ALLOWED_ORIGINS", []),
        "app_version": os.getenv("APP_VERSION", "0.1.0"),
        "auth_enabled": _env_bool("API_AUTH_ENABLED", True),
        "jwt_secret": os.getenv("JWT_SECRET", ""),
        "jwt_algorithm": os.getenv("JWT_ALGORITHM", "HS256"),
        "rate_limit_enabled": _env_bool("API_RATE_LIMIT_ENABLED", True),
        "rate_limit": os.getenv("API_RATE_LIMIT", "100/15minutes"),
    }
    if not config_values["mongodb_uri"]:
        raise RuntimeError("MONGODB_URI is required for API startup.")
    if config_values["auth_enabled"] and not config_values["jwt_secret"]:
        raise RuntimeError("JWT_SECRET is required when API_AUTH_ENABLED is true.")

    config_values["allowed_collection_names"] = build_allowed_collection_names(
        str(config_values["request_log_collection_name"])
    )

    return ApiConfig.model_validate(config_values)


@lru_cache(maxsize=1)
def get_api_config() -> ApiConfig:
    """Cached accessor for API config."""

    return load_api_config()
