import asyncio
import copy
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from hellogt.db.store import (
    ArrayRemove,
    ArrayUnion,
    ChangeCallback,
    ChangeType,
    Document,
    DocumentChange,
    DocumentStore,
    Filter,
    SERVER_TIMESTAMP,
    Subscription,
)


logger = logging.getLogger(__name__)


def _matches_all(filters: Sequence[Filter], document_id: str, data: Dict[str, Any]) -> bool:
    return all(f.matches(document_id, data) for f in filters)


def _resolve_field(current: Any, value: Any) -> Any:
    if isinstance(value, ArrayUnion):
        existing = list(current) if isinstance(current, list) else []
        for item in value.values:
            if item not in existing:
                existing.append(item)
        return existing
    if isinstance(value, ArrayRemove):
        existing = list(current) if isinstance(current, list) else []
        return [item for item in existing if item not in value.values]
    if value is SERVER_TIMESTAMP:
        return datetime.now(timezone.utc)
    return copy.deepcopy(value)


class _MemorySubscription(Subscription):
    def __init__(self, store: "InMemoryDocumentStore", collection: str, filters: Sequence[Filter],
                 on_change: ChangeCallback, loop: asyncio.AbstractEventLoop):
        self.store = store
        self.collection = collection
        self.filters = list(filters)
        self.on_change = on_change
        self.loop = loop
        self.active = True

    def deliver(self, changes: List[DocumentChange]) -> None:
        if changes:
            self.loop.call_soon(self._dispatch, changes)

    def _dispatch(self, changes: List[DocumentChange]) -> None:
        # A change scheduled before cancel() is dropped
        if self.active:
            self.on_change(changes)

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self.store._subscriptions.remove(self)


class InMemoryDocumentStore(DocumentStore):
    """
    Process-local document store.
    Used when Firebase is not configured and as the test backend.
    Change pushes are scheduled on the event loop after the write returns,
    like a real listener.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._subscriptions: List[_MemorySubscription] = []

    def _collection(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    async def get(self, collection: str, document_id: str) -> Optional[Document]:
        data = self._collection(collection).get(document_id)
        if data is None:
            return None
        return Document(id=document_id, data=copy.deepcopy(data))

    async def upsert(self, collection: str, document_id: str, fields: Dict[str, Any], merge: bool = False) -> None:
        documents = self._collection(collection)
        before = documents.get(document_id)

        base = copy.deepcopy(before) if (merge and before is not None) else {}
        for key, value in fields.items():
            base[key] = _resolve_field(base.get(key), value)
        documents[document_id] = base

        self._notify(collection, document_id, before, base)

    async def query(self, collection: str, filters: Sequence[Filter] = ()) -> List[Document]:
        return [
            Document(id=doc_id, data=copy.deepcopy(data))
            for doc_id, data in self._collection(collection).items()
            if _matches_all(filters, doc_id, data)
        ]

    def subscribe(self, collection: str, filters: Sequence[Filter], on_change: ChangeCallback) -> Subscription:
        loop = asyncio.get_running_loop()
        subscription = _MemorySubscription(self, collection, filters, on_change, loop)
        self._subscriptions.append(subscription)

        initial = [
            DocumentChange(ChangeType.ADDED, doc_id, copy.deepcopy(data))
            for doc_id, data in self._collection(collection).items()
            if _matches_all(subscription.filters, doc_id, data)
        ]
        subscription.deliver(initial)
        logger.debug("Subscribed to %s with %d filters", collection, len(subscription.filters))
        return subscription

    def _notify(self, collection: str, document_id: str,
                before: Optional[Dict[str, Any]], after: Dict[str, Any]) -> None:
        for subscription in list(self._subscriptions):
            if subscription.collection != collection:
                continue
            was_visible = before is not None and _matches_all(subscription.filters, document_id, before)
            is_visible = _matches_all(subscription.filters, document_id, after)
            if is_visible:
                change_type = ChangeType.MODIFIED if was_visible else ChangeType.ADDED
                subscription.deliver([DocumentChange(change_type, document_id, copy.deepcopy(after))])
            elif was_visible:
                subscription.deliver([DocumentChange(ChangeType.REMOVED, document_id, copy.deepcopy(before))])
