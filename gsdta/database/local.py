"""SQLite implementations of the document store and identity provider."""

import hashlib
import json
import re
import secrets
import sqlite3
import uuid
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .connection import DB_PATH, close_pool, get_db, init_database
from .store import Document, DocumentStore, IdentityProvider, UserRecord, WriteBatch

_FIELD_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_PBKDF2_ROUNDS = 100_000


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Cannot serialize {type(value).__name__}")


def _dumps(data: Dict[str, Any]) -> str:
    return json.dumps(data, default=_json_default)


def _deep_merge(base: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
    """Merge nested maps the way Firestore ``set(..., merge=True)`` does."""
    merged = dict(base)
    for key, value in changes.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _query_value(value: Any) -> Any:
    # json_extract yields 1/0 for JSON booleans
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class SQLiteWriteBatch(WriteBatch):
    """Batch that applies each chunk in a single transaction."""

    def __init__(self, store: "SQLiteDocumentStore") -> None:
        super().__init__()
        self._store = store

    def commit(self) -> int:
        total = len(self)
        for chunk in self.chunks():
            with get_db(self._store.db_path) as conn:
                for op, collection, doc_id, data, merge in chunk:
                    if op == "set":
                        self._store._write(conn, collection, doc_id, data, merge)
                    else:
                        self._store._update(conn, collection, doc_id, data)
        self._ops.clear()
        return total


class SQLiteDocumentStore(DocumentStore):
    """Document store backed by the ``documents`` table.

    Attributes:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path or DB_PATH)
        init_database(self.db_path)

    # ==================== WRITES ====================

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex[:20]
        with get_db(self.db_path) as conn:
            conn.execute(
                "INSERT INTO documents (collection, id, data) VALUES (?, ?, ?)",
                (collection, doc_id, _dumps(data)),
            )
        return doc_id

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        with get_db(self.db_path) as conn:
            self._write(conn, collection, doc_id, data, merge)

    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        with get_db(self.db_path) as conn:
            self._update(conn, collection, doc_id, data)

    def batch(self) -> SQLiteWriteBatch:
        return SQLiteWriteBatch(self)

    def _read(self, conn: sqlite3.Connection, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        row = conn.execute(
            "SELECT data FROM documents WHERE collection = ? AND id = ?", (collection, doc_id)
        ).fetchone()
        return json.loads(row["data"]) if row else None

    def _write(
        self,
        conn: sqlite3.Connection,
        collection: str,
        doc_id: str,
        data: Dict[str, Any],
        merge: bool,
    ) -> None:
        if merge:
            existing = self._read(conn, collection, doc_id)
            if existing is not None:
                data = _deep_merge(existing, data)
        conn.execute(
            """
            INSERT INTO documents (collection, id, data) VALUES (?, ?, ?)
            ON CONFLICT(collection, id) DO UPDATE SET
                data = excluded.data,
                updated_at = CURRENT_TIMESTAMP
            """,
            (collection, doc_id, _dumps(data)),
        )

    def _update(
        self, conn: sqlite3.Connection, collection: str, doc_id: str, data: Dict[str, Any]
    ) -> None:
        existing = self._read(conn, collection, doc_id)
        if existing is None:
            raise KeyError(f"No document {collection}/{doc_id}")
        existing.update(data)
        conn.execute(
            "UPDATE documents SET data = ?, updated_at = CURRENT_TIMESTAMP "
            "WHERE collection = ? AND id = ?",
            (_dumps(existing), collection, doc_id),
        )

    # ==================== READS ====================

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        with get_db(self.db_path) as conn:
            data = self._read(conn, collection, doc_id)
        return Document(doc_id, data) if data is not None else None

    def where(self, collection: str, limit: Optional[int] = None, **equals: Any) -> List[Document]:
        sql = "SELECT id, data FROM documents WHERE collection = ?"
        params: List[Any] = [collection]

        for field_name, value in equals.items():
            if not _FIELD_NAME.match(field_name):
                raise ValueError(f"Invalid field name: {field_name!r}")
            sql += " AND json_extract(data, ?) = ?"
            params.extend([f"$.{field_name}", _query_value(value)])

        sql += " ORDER BY rowid"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        with get_db(self.db_path) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [Document(row["id"], json.loads(row["data"])) for row in rows]

    def stream(self, collection: str) -> List[Document]:
        return self.where(collection)

    def count(self, collection: str) -> int:
        with get_db(self.db_path) as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS cnt FROM documents WHERE collection = ?", (collection,)
            ).fetchone()
        return int(row["cnt"])

    def close(self) -> None:
        close_pool(self.db_path)


def hash_password(password: str, salt: Optional[bytes] = None) -> str:
    """PBKDF2-SHA256 hash in ``pbkdf2_sha256$<salt>$<digest>`` form."""
    salt = salt or secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _PBKDF2_ROUNDS)
    return f"pbkdf2_sha256${salt.hex()}${digest.hex()}"


class SQLiteIdentityProvider(IdentityProvider):
    """Password accounts in the ``auth_users`` table."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path or DB_PATH)
        init_database(self.db_path)

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        with get_db(self.db_path) as conn:
            row = conn.execute("SELECT * FROM auth_users WHERE email = ?", (email,)).fetchone()
        if not row:
            return None
        return UserRecord(
            uid=row["uid"],
            email=row["email"],
            display_name=row["display_name"],
            email_verified=bool(row["email_verified"]),
        )

    def create_user(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
        email_verified: bool = False,
    ) -> UserRecord:
        uid = uuid.uuid4().hex[:28]
        try:
            with get_db(self.db_path) as conn:
                conn.execute(
                    """
                    INSERT INTO auth_users (uid, email, password_hash, display_name, email_verified)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (uid, email, hash_password(password), display_name, int(email_verified)),
                )
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Account already exists: {email}") from e
        return UserRecord(uid=uid, email=email, display_name=display_name, email_verified=email_verified)

    def count(self) -> int:
        with get_db(self.db_path) as conn:
            return int(conn.execute("SELECT COUNT(*) AS cnt FROM auth_users").fetchone()["cnt"])
