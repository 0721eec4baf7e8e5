"""Firestore and Firebase Auth implementations of the store interfaces.

Emulator hosts must be exported (see ``ImportConfig.apply_emulator_env``)
before ``get_firebase_app`` initialises the app.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import firebase_admin
from firebase_admin import auth, firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from gsdta.exceptions import BackendError
from gsdta.logutils import get_logger

from .store import Document, DocumentStore, IdentityProvider, UserRecord, WriteBatch

logger = get_logger(__name__)


def get_firebase_app(project_id: str) -> firebase_admin.App:
    """Return the default Firebase app, initialising it for ``project_id`` if needed."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    try:
        app = firebase_admin.initialize_app(options={"projectId": project_id})
    except (ValueError, OSError) as exc:
        raise BackendError(f"Could not initialise Firebase for {project_id}: {exc}") from exc

    logger.info("Firebase app initialised", extra={"extra_data": {"project_id": project_id}})
    return app


class FirestoreWriteBatch(WriteBatch):
    def __init__(self, client: Any) -> None:
        super().__init__()
        self._client = client

    def commit(self) -> int:
        total = len(self)
        for chunk in self.chunks():
            batch = self._client.batch()
            for op, collection, doc_id, data, merge in chunk:
                ref = self._client.collection(collection).document(doc_id)
                if op == "set":
                    batch.set(ref, data, merge=merge)
                else:
                    batch.update(ref, data)
            batch.commit()
        self._ops.clear()
        return total


class FirestoreDocumentStore(DocumentStore):
    """Document store over a Firestore client."""

    def __init__(self, app: firebase_admin.App):
        self._client = firestore.client(app)

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        _, ref = self._client.collection(collection).add(data)
        return ref.id

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        self._client.collection(collection).document(doc_id).set(data, merge=merge)

    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self._client.collection(collection).document(doc_id).update(data)

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        snapshot = self._client.collection(collection).document(doc_id).get()
        if not snapshot.exists:
            return None
        return Document(snapshot.id, snapshot.to_dict() or {})

    def where(self, collection: str, limit: Optional[int] = None, **equals: Any) -> List[Document]:
        query = self._client.collection(collection)
        for field_name, value in equals.items():
            query = query.where(filter=FieldFilter(field_name, "==", value))
        if limit is not None:
            query = query.limit(limit)
        return [Document(snap.id, snap.to_dict() or {}) for snap in query.stream()]

    def stream(self, collection: str) -> List[Document]:
        return [
            Document(snap.id, snap.to_dict() or {})
            for snap in self._client.collection(collection).stream()
        ]

    def batch(self) -> FirestoreWriteBatch:
        return FirestoreWriteBatch(self._client)


class FirebaseIdentityProvider(IdentityProvider):
    """Identity provider over Firebase Auth."""

    def __init__(self, app: firebase_admin.App):
        self._app = app

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        try:
            user = auth.get_user_by_email(email, app=self._app)
        except auth.UserNotFoundError:
            return None
        return UserRecord(
            uid=user.uid,
            email=user.email,
            display_name=user.display_name,
            email_verified=user.email_verified,
        )

    def create_user(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
        email_verified: bool = False,
    ) -> UserRecord:
        user = auth.create_user(
            email=email,
            password=password,
            display_name=display_name,
            email_verified=email_verified,
            app=self._app,
        )
        return UserRecord(
            uid=user.uid,
            email=user.email,
            display_name=user.display_name,
            email_verified=user.email_verified,
        )
