"""Tests validating caller authentication and Firebase initialisation."""
from __future__ import annotations

import pytest
from fastapi import FastAPI, HTTPException
from starlette.requests import Request

from idea_agent import auth as auth_module
from idea_agent.auth import require_admin, require_user, resolve_auth_context
from idea_agent.config import AppSettings
from idea_agent.db import firebase as firebase_module

from stubs import make_settings


def _request(headers: dict[str, str] | None = None) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/v1/ideas",
        "headers": [(key.lower().encode(), value.encode()) for key, value in (headers or {}).items()],
        "app": FastAPI(),
    }
    return Request(scope)


@pytest.mark.asyncio
async def test_admin_key_takes_precedence_over_service_key() -> None:
    settings = make_settings(api_key="service", admin_api_key="admin")

    admin = await resolve_auth_context(_request(), "admin", settings)
    service = await resolve_auth_context(_request({"x-user-id": "user-7"}), "service", settings)
    via_header = await resolve_auth_context(_request({"authorization": "ApiKey service"}), None, settings)

    assert admin.is_admin and admin.method == "admin_key"
    assert service.uid == "user-7" and not service.is_admin
    assert via_header.method == "api_key" and via_header.uid is None


@pytest.mark.asyncio
async def test_unknown_key_is_rejected_and_anonymous_allowed_by_default() -> None:
    settings = make_settings(api_key="service")

    with pytest.raises(HTTPException) as excinfo:
        await resolve_auth_context(_request(), "nope", settings)
    anonymous = await resolve_auth_context(_request(), None, settings)

    assert excinfo.value.status_code == 401
    assert anonymous.method == "anonymous"
    with pytest.raises(HTTPException):
        await require_user(anonymous)
    with pytest.raises(HTTPException) as forbidden:
        await require_admin(anonymous)
    assert forbidden.value.status_code == 403


@pytest.mark.asyncio
async def test_required_authentication_rejects_anonymous_callers() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await resolve_auth_context(_request(), None, make_settings(require_authentication=True))

    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_bearer_tokens_resolve_firebase_identity(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def _fake_verify(token: str, app=None, check_revoked: bool = False):
        captured["token"] = token
        captured["check_revoked"] = check_revoked
        captured["app"] = app
        return {"uid": "firebase-user", "admin": True}

    monkeypatch.setattr(auth_module.firebase_auth, "verify_id_token", _fake_verify)

    context = await resolve_auth_context(
        _request({"authorization": "Bearer id-token"}),
        None,
        make_settings(firebase_auth_check_revoked=True),
    )

    assert context.method == "firebase"
    assert context.uid == "firebase-user"
    assert context.is_admin is True
    assert captured == {"token": "id-token", "check_revoked": True, "app": None}


def test_initialize_firebase_uses_explicit_credentials(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path,
) -> None:
    """Firebase initialisation should leverage provided certificate and project ID."""

    captured: dict[str, object] = {}

    def _raise_value_error(name: str | None = None):
        raise ValueError("no app")

    monkeypatch.setattr(firebase_module.firebase_admin, "get_app", _raise_value_error)

    fake_app = object()

    def _fake_initialize_app(*, credential=None, options=None, name="[DEFAULT]"):
        captured["options"] = options
        captured["name"] = name
        return fake_app

    monkeypatch.setattr(firebase_module.firebase_admin, "initialize_app", _fake_initialize_app)

    def _fake_certificate(path: str):
        captured["certificate_path"] = path
        return object()

    monkeypatch.setattr(firebase_module.credentials, "Certificate", _fake_certificate)

    def _fake_client(*, app):
        captured["firestore_app"] = app
        return object()

    monkeypatch.setattr(firebase_module.firestore, "client", _fake_client)

    credential_path = tmp_path / "service-account.json"
    settings = AppSettings(
        firebase_project_id="idea-lab",
        firebase_credentials_path=str(credential_path),
        firebase_app_name="idea-agent",
    )

    handle = firebase_module.initialize_firebase(settings)

    assert captured["certificate_path"] == str(credential_path)
    assert captured["options"] == {"projectId": "idea-lab"}
    assert captured["name"] == "idea-agent"
    assert captured["firestore_app"] is fake_app
    assert handle.app is fake_app
    assert handle.collections.prompts == settings.firestore_prompts_collection
