"""Storage for GSDTA school documents."""

from .local import SQLiteDocumentStore, SQLiteIdentityProvider
from .repository import Repository
from .store import Document, DocumentStore, IdentityProvider, UserRecord

__all__ = [
    "Document",
    "DocumentStore",
    "IdentityProvider",
    "Repository",
    "SQLiteDocumentStore",
    "SQLiteIdentityProvider",
    "UserRecord",
]
