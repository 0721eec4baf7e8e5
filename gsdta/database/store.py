"""Document store and identity provider interfaces.

The importer talks to two collaborators: a document store with
collection/document CRUD, batched writes and equality queries, and an
identity provider that can look up and create password accounts. Both
Firestore/Firebase Auth and the local SQLite store implement these.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

# Firestore rejects batches with more than 500 operations
MAX_BATCH_SIZE = 500


@dataclass
class Document:
    """A stored document: its ID and field data."""

    id: str
    data: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


@dataclass
class UserRecord:
    """An identity-provider account."""

    uid: str
    email: str
    display_name: Optional[str] = None
    email_verified: bool = False


class WriteBatch(ABC):
    """Collects writes and commits them together.

    Implementations split the operations into chunks of at most
    ``MAX_BATCH_SIZE`` when committing.
    """

    def __init__(self) -> None:
        self._ops: List[Tuple[str, str, str, Dict[str, Any], bool]] = []

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        self._ops.append(("set", collection, doc_id, data, merge))

    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self._ops.append(("update", collection, doc_id, data, False))

    def __len__(self) -> int:
        return len(self._ops)

    def chunks(self) -> Iterator[List[Tuple[str, str, str, Dict[str, Any], bool]]]:
        for start in range(0, len(self._ops), MAX_BATCH_SIZE):
            yield self._ops[start : start + MAX_BATCH_SIZE]

    @abstractmethod
    def commit(self) -> int:
        """Apply all queued writes. Returns the number of operations."""


class DocumentStore(ABC):
    """Collection/document storage."""

    @abstractmethod
    def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Create a document with a generated ID and return the ID."""

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        """Create or overwrite a document; with ``merge`` only the given fields change."""

    @abstractmethod
    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Change fields of an existing document. Raises KeyError if it does not exist."""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        """Fetch one document, or None."""

    @abstractmethod
    def where(self, collection: str, limit: Optional[int] = None, **equals: Any) -> List[Document]:
        """Documents whose top-level fields equal all of ``equals``."""

    @abstractmethod
    def stream(self, collection: str) -> List[Document]:
        """All documents in a collection."""

    @abstractmethod
    def batch(self) -> WriteBatch:
        """Start a batched write."""

    def count(self, collection: str) -> int:
        return len(self.stream(collection))

    def close(self) -> None:
        """Release backend resources."""


class IdentityProvider(ABC):
    """Password-account provider (Firebase Auth or the local users table)."""

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        """Look up an account by email; None when there is no such account."""

    @abstractmethod
    def create_user(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
        email_verified: bool = False,
    ) -> UserRecord:
        """Create a password account."""
