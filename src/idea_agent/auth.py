"""Authentication helpers resolving caller identity for API access control."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader
from firebase_admin import auth as firebase_auth

from idea_agent.config import AppSettings, get_settings

API_KEY_HEADER = APIKeyHeader(name="x-api-key", auto_error=False)

# Service callers authenticated by API key may act on behalf of an end user.
USER_ID_HEADER = "x-user-id"


@dataclass(slots=True)
class AuthContext:
    """Identity attached to a request after authentication."""

    method: str
    uid: str | None = None
    is_admin: bool = False

    @property
    def label(self) -> str:
        return self.uid or self.method


def get_app_settings(request: Request) -> AppSettings:
    """Prefer the settings the application was built with over the environment."""

    return getattr(request.app.state, "settings", None) or get_settings()


async def resolve_auth_context(
    request: Request,
    api_key_header: str | None = Depends(API_KEY_HEADER),
    settings: AppSettings = Depends(get_app_settings),
) -> AuthContext:
    """Authorize a request using an API key or Firebase ID token.

    Anonymous access is allowed unless ``require_authentication`` is set, in which
    case the caller must present a configured key or a valid ID token.
    """

    configured_key = (settings.api_key or "").strip() or None
    admin_key = (settings.admin_api_key or "").strip() or None
    provided_key = (api_key_header or "").strip() or None
    if not provided_key:
        auth_header = (request.headers.get("authorization") or "").strip()
        if auth_header.lower().startswith("apikey "):
            provided_key = auth_header[7:].strip() or None

    if provided_key is not None:
        if admin_key is not None and provided_key == admin_key:
            context = AuthContext(method="admin_key", is_admin=True)
        elif configured_key is not None and provided_key == configured_key:
            on_behalf = (request.headers.get(USER_ID_HEADER) or "").strip() or None
            context = AuthContext(method="api_key", uid=on_behalf)
        else:
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
        request.state.auth_context = context
        return context

    token = _extract_bearer_token(request)
    if token:
        decoded = await _verify_id_token(token, request, settings)
        context = AuthContext(
            method="firebase",
            uid=decoded.get("uid"),
            is_admin=bool(decoded.get("admin")),
        )
        request.state.auth_context = context
        request.scope.setdefault("user", decoded)
        return context

    if settings.require_authentication:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    context = AuthContext(method="anonymous")
    request.state.auth_context = context
    return context


async def require_user(context: AuthContext = Depends(resolve_auth_context)) -> AuthContext:
    """Require a caller with a resolvable user identity."""

    if context.uid is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="User identity required")
    return context


async def require_admin(context: AuthContext = Depends(resolve_auth_context)) -> AuthContext:
    """Require an administrative caller for prompt management."""

    if not context.is_admin:
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail="Administrator access required")
    return context


def _extract_bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization") or ""
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


async def _verify_id_token(token: str, request: Request, settings: AppSettings) -> Dict[str, Any]:
    firebase_handle = getattr(request.app.state, "firebase", None)
    firebase_app = getattr(firebase_handle, "app", None)
    try:
        return await asyncio.to_thread(
            firebase_auth.verify_id_token,
            token,
            app=firebase_app,
            check_revoked=settings.firebase_auth_check_revoked,
        )
    except firebase_auth.ExpiredIdTokenError as exc:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Authentication token expired") from exc
    except firebase_auth.RevokedIdTokenError as exc:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Authentication token revoked") from exc
    except Exception as exc:  # pragma: no cover - other Firebase auth errors
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication token") from exc
