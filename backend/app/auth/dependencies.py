from __future__ import annotations

from typing import Any, Optional

import jwt  # type: ignore[import]
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import InvalidAudienceError, InvalidIssuerError, InvalidTokenError  # type: ignore[import]

from backend.app import config
from backend.app.auth.schemas import AuthContext

_bearer_scheme = HTTPBearer(auto_error=False)


def _get_app_secret() -> str:
    if not config.APP_JWT_SECRET:
        raise RuntimeError("APP_JWT_SECRET environment variable is not configured")
    return config.APP_JWT_SECRET


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _coerce_timestamp(value: Any) -> Optional[int]:
    if isinstance(value, str) and value.isdigit():
        return int(value)
    if isinstance(value, int):
        return value
    return None


def decode_token(token: str) -> AuthContext:
    secret = _get_app_secret()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            secret,
            algorithms=[config.APP_JWT_ALGORITHM],
            audience=config.APP_JWT_AUDIENCE,
            issuer=config.APP_JWT_ISSUER,
            options={
                "require": ["exp", "iat", "sub"],
            },
        )
    except InvalidAudienceError as exc:
        raise _unauthorized("Invalid token audience") from exc
    except InvalidIssuerError as exc:
        raise _unauthorized("Invalid token issuer") from exc
    except InvalidTokenError as exc:
        raise _unauthorized("Invalid authentication credentials") from exc

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise _unauthorized("Invalid token subject")

    role = payload.get("role", "user")
    if not isinstance(role, str):
        role = str(role)

    email = payload.get("email")
    if not isinstance(email, str):
        email = None

    return AuthContext(
        subject=subject,
        role=role,
        email=email,
        issued_at=_coerce_timestamp(payload.get("iat")),
        expires_at=_coerce_timestamp(payload.get("exp")),
        raw_token=token,
        claims=payload,
    )


async def require_authenticated_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthContext:
    if credentials is None:
        raise _unauthorized("Missing bearer token")

    context = decode_token(credentials.credentials)
    request.state.auth = context
    return context


async def optional_authenticated_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Optional[AuthContext]:
    """Resolve the caller if a valid token is present; anonymous otherwise."""

    if credentials is None:
        return None

    try:
        context = decode_token(credentials.credentials)
    except (HTTPException, RuntimeError):
        return None

    request.state.auth = context
    return context


async def require_researcher(
    auth_context: AuthContext = Depends(require_authenticated_user),
) -> AuthContext:
    """Downloads and reviews are attributed to a numeric researcher id."""

    if auth_context.researcher_id is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Researcher account required")
    return auth_context
