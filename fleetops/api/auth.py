# This file resolves the caller identity for resource routes from a Bearer JWT.
# It exists so every router shares one user context shape and one set of 401/403 rules.
# Tokens are verified with python-jose using the configured secret and algorithm.
# When auth is disabled (local and test setups) a fixed system user is attached instead.

from __future__ import annotations

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel, Field

from fleetops.api.api_config import ApiConfig
from fleetops.api.dependencies import get_config
from fleetops.api.error_handlers import APIError

bearer_scheme = HTTPBearer(auto_error=False)
ConfigDep = Annotated[ApiConfig, Depends(get_config)]
CredentialsDep = Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)]


class UserContext(BaseModel):
    id: str
    role: str
    permissions: list[str] = Field(default_factory=list)


SYSTEM_USER = UserContext(id="system", role="admin", permissions=["*"])


def _unauthorized(message: str) -> APIError:
    return APIError(status_code=401, error_code="UNAUTHORIZED", message=message)


def decode_access_token(token: str, *, config: ApiConfig) -> UserContext:
    """Verify a JWT and map its claims onto a user context."""

    try:
        claims = jwt.decode(token, config.jwt_secret, algorithms=[config.jwt_algorithm])
    except JWTError as exc:
        raise _unauthorized("Invalid or expired access token.") from exc

    user_id = claims.get("sub") or claims.get("userId")
    if not user_id:
        raise _unauthorized("Access token has no subject.")
    permissions = claims.get("permissions") or []
    if not isinstance(permissions, list):
        raise _unauthorized("Access token permissions must be a list.")
    return UserContext(
        id=str(user_id),
        role=str(claims.get("role") or "user"),
        permissions=[str(item) for item in permissions],
    )


def create_access_token(
    *,
    user_id: str,
    role: str,
    config: ApiConfig,
    permissions: list[str] | None = None,
) -> str:
    """Issue a signed token; used by operators and tests to obtain credentials."""

    claims = {"sub": user_id, "role": role, "permissions": permissions or []}
    return jwt.encode(claims, config.jwt_secret, algorithm=config.jwt_algorithm)


def get_optional_user(config: ConfigDep, credentials: CredentialsDep) -> UserContext | None:
    if not config.auth_enabled:
        return SYSTEM_USER
    if credentials is None:
        return None
    return decode_access_token(credentials.credentials, config=config)


def get_current_user(
    user: Annotated[UserContext | None, Depends(get_optional_user)],
) -> UserContext:
    if user is None:
        raise _unauthorized("Authentication required.")
    return user


def require_roles(*roles: str) -> Callable[..., UserContext]:
    """Dependency factory: any authenticated user when `roles` is empty, else one of `roles`."""

    allowed = frozenset(roles)

    def _check(user: Annotated[UserContext, Depends(get_current_user)]) -> UserContext:
        if allowed and user.role not in allowed and "*" not in user.permissions:
            raise APIError(
                status_code=403,
                error_code="FORBIDDEN",
                message="You do not have permission to perform this action.",
                details={"required_roles": sorted(allowed)},
            )
        return user

    return _check
