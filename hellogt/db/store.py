"""
Document store contract consumed by the core.
Backed by Firestore in production and by InMemoryDocumentStore in development/tests.
"""

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence


# Filter field that targets the document key instead of a stored field
DOCUMENT_ID = "__name__"


class ChangeType(str, enum.Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class Document:
    id: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DocumentChange:
    type: ChangeType
    id: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Filter:
    field: str
    op: str
    value: Any

    def matches(self, document_id: str, data: Dict[str, Any]) -> bool:
        current = document_id if self.field == DOCUMENT_ID else data.get(self.field)
        if self.op == "==":
            return current == self.value
        if self.op == "in":
            return current in self.value
        raise ValueError(f"Unsupported filter operator: {self.op}")


def eq(field_name: str, value: Any) -> Filter:
    return Filter(field_name, "==", value)


def is_in(field_name: str, values: Sequence[Any]) -> Filter:
    return Filter(field_name, "in", list(values))


# ==================== Field Directives ====================

@dataclass(frozen=True)
class ArrayUnion:
    """Add values to an array field, skipping ones already present."""
    values: tuple

    def __init__(self, values: Sequence[Any]):
        object.__setattr__(self, "values", tuple(values))


@dataclass(frozen=True)
class ArrayRemove:
    """Remove every occurrence of the values from an array field."""
    values: tuple

    def __init__(self, values: Sequence[Any]):
        object.__setattr__(self, "values", tuple(values))


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


ChangeCallback = Callable[[List[DocumentChange]], None]


class Subscription(ABC):
    @abstractmethod
    def cancel(self) -> None:
        """Detach the listener. Safe to call more than once."""


class DocumentStore(ABC):
    """
    Generic key-document store with queries and push subscriptions.
    Every I/O method raises StoreUnavailable on backend failure.
    """

    @abstractmethod
    async def get(self, collection: str, document_id: str) -> Optional[Document]:
        ...

    @abstractmethod
    async def upsert(
        self,
        collection: str,
        document_id: str,
        fields: Dict[str, Any],
        merge: bool = False,
    ) -> None:
        """
        Write a document. With merge=True only the given fields change and
        ArrayUnion/ArrayRemove apply against the stored array.
        """

    @abstractmethod
    async def query(self, collection: str, filters: Sequence[Filter] = ()) -> List[Document]:
        ...

    @abstractmethod
    def subscribe(
        self,
        collection: str,
        filters: Sequence[Filter],
        on_change: ChangeCallback,
    ) -> Subscription:
        """
        Push added/modified/removed changes for documents matching filters.
        The current matching documents arrive first as `added` changes.
        Callbacks always run on the event loop that created the subscription.
        """
