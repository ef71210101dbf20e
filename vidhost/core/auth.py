from __future__ import annotations

from dataclasses import dataclass

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import Settings, get_settings
from .errors import Unauthenticated


security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    scopes: tuple[str, ...] = ()


def decode_token(token: str, settings: Settings) -> dict:
    try:
        return jwt.decode(
            token,
            settings.secrets.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"verify_aud": settings.jwt_audience is not None, "require": ["sub"]},
        )
    except jwt.PyJWTError as exc:
        raise Unauthenticated("invalid_token") from exc


async def get_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> AuthContext:
    if not credentials:
        raise Unauthenticated("missing_authorization")

    payload = decode_token(credentials.credentials, settings)
    user_id = payload.get("sub")
    if not user_id:
        raise Unauthenticated("subject_required")

    scopes = payload.get("scopes") or ()
    if isinstance(scopes, str):
        scopes = scopes.split()
    context = AuthContext(user_id=str(user_id), scopes=tuple(scopes))
    request.state.auth = context
    return context


__all__ = ["AuthContext", "decode_token", "get_auth_context"]
