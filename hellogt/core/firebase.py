import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import firebase_admin
from firebase_admin import auth, credentials, firestore, firestore_async
from firebase_admin import exceptions as firebase_exceptions
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from hellogt.config import settings
from hellogt.core.errors import AuthenticationRequired, StoreUnavailable
from hellogt.db.store import (
    ArrayRemove,
    ArrayUnion,
    ChangeCallback,
    ChangeType,
    DOCUMENT_ID,
    Document,
    DocumentChange,
    DocumentStore,
    Filter,
    SERVER_TIMESTAMP,
    Subscription,
)


logger = logging.getLogger(__name__)

# Global Firebase app instance
firebase_app: Optional[firebase_admin.App] = None


def init_firebase() -> Optional[firebase_admin.App]:
    """Initialize Firebase Admin SDK."""
    global firebase_app

    if firebase_app is not None:
        return firebase_app

    # Check if Firebase credentials are configured
    if not settings.firebase_configured:
        logger.warning("Firebase credentials not configured - skipping initialization")
        return None

    # Create credentials from environment variables
    cred_dict = {
        "type": "service_account",
        "project_id": settings.FIREBASE_PROJECT_ID,
        "private_key": settings.FIREBASE_PRIVATE_KEY.replace("\\n", "\n"),
        "client_email": settings.FIREBASE_CLIENT_EMAIL,
        "token_uri": "https://oauth2.googleapis.com/token",
    }

    try:
        cred = credentials.Certificate(cred_dict)
        firebase_app = firebase_admin.initialize_app(cred, {"projectId": settings.FIREBASE_PROJECT_ID})
        logger.info("Firebase initialized for project %s", settings.FIREBASE_PROJECT_ID)
        return firebase_app
    except (ValueError, firebase_exceptions.FirebaseError) as e:
        logger.error("Firebase initialization failed: %s", e)
        return None


def verify_id_token(token: str) -> str:
    """
    Verify a Firebase ID token sent by the mobile client.
    Returns the user's uid.
    """
    if firebase_app is None:
        raise AuthenticationRequired("Firebase authentication is not configured")
    try:
        decoded = auth.verify_id_token(token, app=firebase_app)
    except (ValueError, firebase_exceptions.FirebaseError) as e:
        raise AuthenticationRequired(f"Invalid ID token: {e}") from e
    return decoded["uid"]


def _to_firestore_value(value: Any) -> Any:
    if isinstance(value, ArrayUnion):
        return firestore.ArrayUnion(list(value.values))
    if isinstance(value, ArrayRemove):
        return firestore.ArrayRemove(list(value.values))
    if value is SERVER_TIMESTAMP:
        return firestore.SERVER_TIMESTAMP
    return value


class _WatchSubscription(Subscription):
    def __init__(self, watch):
        self._watch = watch

    def cancel(self) -> None:
        if self._watch is not None:
            self._watch.unsubscribe()
            self._watch = None


class FirestoreDocumentStore(DocumentStore):
    """
    DocumentStore over Cloud Firestore.
    Reads and writes use the async client; listeners use the sync client's
    watch API, whose callbacks fire on a background thread and are handed
    back to the event loop before touching any state.
    """

    def __init__(self, app: firebase_admin.App, in_filter_limit: int = 30):
        self.db = firestore_async.client(app)
        self.watch_db = firestore.client(app)
        self.in_filter_limit = in_filter_limit

    def _build_query(self, client, collection: str, filters: Sequence[Filter]):
        ref = client.collection(collection)
        query = ref
        for f in filters:
            if f.field == DOCUMENT_ID:
                value = [ref.document(v) for v in f.value] if f.op == "in" else ref.document(f.value)
                query = query.where(filter=FieldFilter(DOCUMENT_ID, f.op, value))
            else:
                query = query.where(filter=FieldFilter(f.field, f.op, f.value))
        return query

    async def get(self, collection: str, document_id: str) -> Optional[Document]:
        try:
            snapshot = await self.db.collection(collection).document(document_id).get()
        except google_exceptions.GoogleAPIError as e:
            raise StoreUnavailable(f"get {collection}/{document_id} failed: {e}") from e
        if not snapshot.exists:
            return None
        return Document(id=snapshot.id, data=snapshot.to_dict() or {})

    async def upsert(self, collection: str, document_id: str, fields: Dict[str, Any], merge: bool = False) -> None:
        payload = {key: _to_firestore_value(value) for key, value in fields.items()}
        try:
            await self.db.collection(collection).document(document_id).set(payload, merge=merge)
        except google_exceptions.GoogleAPIError as e:
            raise StoreUnavailable(f"write {collection}/{document_id} failed: {e}") from e

    async def query(self, collection: str, filters: Sequence[Filter] = ()) -> List[Document]:
        batches = self._split_in_filters(filters)
        documents: Dict[str, Document] = {}
        try:
            for batch in batches:
                async for snapshot in self._build_query(self.db, collection, batch).stream():
                    documents[snapshot.id] = Document(id=snapshot.id, data=snapshot.to_dict() or {})
        except google_exceptions.GoogleAPIError as e:
            raise StoreUnavailable(f"query {collection} failed: {e}") from e
        return list(documents.values())

    def _split_in_filters(self, filters: Sequence[Filter]) -> List[List[Filter]]:
        """Split an oversized "in" filter into several queries."""
        for index, f in enumerate(filters):
            if f.op == "in" and len(f.value) > self.in_filter_limit:
                rest = list(filters[:index]) + list(filters[index + 1:])
                return [
                    rest + [Filter(f.field, "in", f.value[start:start + self.in_filter_limit])]
                    for start in range(0, len(f.value), self.in_filter_limit)
                ]
        return [list(filters)]

    def subscribe(self, collection: str, filters: Sequence[Filter], on_change: ChangeCallback) -> Subscription:
        loop = asyncio.get_running_loop()

        def _on_snapshot(_documents, changes, _read_time):
            converted = [
                DocumentChange(
                    type=ChangeType(change.type.name.lower()),
                    id=change.document.id,
                    data=change.document.to_dict() or {},
                )
                for change in changes
            ]
            if converted:
                loop.call_soon_threadsafe(on_change, converted)

        watch = self._build_query(self.watch_db, collection, filters).on_snapshot(_on_snapshot)
        logger.info("Listening to %s", collection)
        return _WatchSubscription(watch)
