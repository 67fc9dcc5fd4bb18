"""Firebase initialization helpers for the idea generation service."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import firebase_admin
from firebase_admin import credentials, firestore

from idea_agent.config import AppSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FirestoreCollections:
    """Collection names for generation requests, generated ideas and prompt overrides."""

    requests: str = "generation_requests"
    ideas: str = "generated_ideas"
    prompts: str = "admin_prompts"

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "FirestoreCollections":
        return cls(
            requests=settings.firestore_requests_collection,
            ideas=settings.firestore_ideas_collection,
            prompts=settings.firestore_prompts_collection,
        )


@dataclass(slots=True)
class FirebaseHandle:
    """Firebase app, its Firestore client and the collections the service writes to."""

    app: firebase_admin.App
    client: firestore.Client
    collections: FirestoreCollections

    async def dispose(self) -> None:
        """Delete the Firebase app so a later initialisation starts clean."""

        def _delete_app() -> None:
            try:
                firebase_admin.delete_app(self.app)
            except ValueError:
                # Already deleted.
                pass

        await asyncio.to_thread(_delete_app)


def _load_credential(settings: AppSettings) -> Optional[credentials.Base]:
    if settings.firebase_credentials_path:
        return credentials.Certificate(settings.firebase_credentials_path)
    try:
        return credentials.ApplicationDefault()
    except Exception:
        logger.warning("Application default credentials unavailable; using SDK discovery")
        return None


def initialize_firebase(settings: AppSettings) -> FirebaseHandle:
    """Reuse or create the named Firebase app and return a handle for Firestore access."""

    options: Dict[str, Any] = {}
    if settings.firebase_project_id:
        options["projectId"] = settings.firebase_project_id

    app_name = settings.firebase_app_name or "[DEFAULT]"
    try:
        app = firebase_admin.get_app(app_name)
    except ValueError:
        app = firebase_admin.initialize_app(
            credential=_load_credential(settings),
            options=options or None,
            name=app_name,
        )
        logger.info("Initialised Firebase app %s for project %s", app_name, settings.firebase_project_id or "<default>")

    return FirebaseHandle(
        app=app,
        client=firestore.client(app=app),
        collections=FirestoreCollections.from_settings(settings),
    )
