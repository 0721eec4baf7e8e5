"""Connection management for the local SQLite document store.

The local store keeps Firestore-shaped documents as JSON rows so the
importer can run offline and in tests. Connections are pooled and use WAL
mode so a status query can read while an import writes.
"""

import os
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Iterator, Optional

from dotenv import load_dotenv

from gsdta.logutils import get_logger

load_dotenv()

logger = get_logger(__name__)

DEFAULT_DB_PATH = Path(__file__).parent.parent.parent / "gsdta.db"
DB_PATH = Path(os.getenv("DATABASE_PATH", str(DEFAULT_DB_PATH)))
SCHEMA_PATH = Path(__file__).parent / "schema.sql"

_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
_POOL_TIMEOUT = float(os.getenv("DB_POOL_TIMEOUT", "30.0"))


class ConnectionPool:
    """Thread-safe SQLite connection pool with WAL mode."""

    def __init__(self, db_path: Path, pool_size: int = 5, timeout: float = 30.0):
        """Initialize the connection pool.

        Args:
            db_path: Path to the SQLite database file
            pool_size: Maximum number of connections to open
            timeout: Seconds to wait for a free connection
        """
        self._db_path = self._validate_path(db_path)
        self._pool_size = pool_size
        self._timeout = timeout
        self._pool: Queue[sqlite3.Connection] = Queue(maxsize=pool_size)
        self._lock = threading.Lock()
        self._created = 0

    @staticmethod
    def _validate_path(db_path: Path) -> Path:
        """Reject relative paths that climb out of the working tree.

        Raises:
            ValueError: If the path contains ``..`` components
        """
        if ".." in Path(db_path).parts:
            raise ValueError(f"Invalid database path: {db_path}")
        return Path(db_path).resolve()

    def _create_connection(self) -> sqlite3.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            timeout=self._timeout,
        )
        conn.row_factory = sqlite3.Row

        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA busy_timeout = 5000")
        conn.execute("PRAGMA synchronous = NORMAL")

        return conn

    def get_connection(self) -> sqlite3.Connection:
        """Take a connection from the pool, opening one if under capacity.

        Raises:
            TimeoutError: If no connection frees up within the timeout
        """
        try:
            conn = self._pool.get_nowait()
        except Empty:
            with self._lock:
                if self._created < self._pool_size:
                    self._created += 1
                    logger.debug("Opening pooled connection", extra={"extra_data": {"open": self._created}})
                    return self._create_connection()
            try:
                conn = self._pool.get(block=True, timeout=self._timeout)
            except Empty:
                logger.error(
                    "Connection pool exhausted",
                    extra={"extra_data": {"timeout": self._timeout, "pool_size": self._pool_size}},
                )
                raise TimeoutError(f"Connection pool exhausted after {self._timeout}s") from None

        try:
            conn.execute("SELECT 1")
            return conn
        except sqlite3.Error:
            logger.debug("Dead connection detected, reopening")
            return self._create_connection()

    def return_connection(self, conn: sqlite3.Connection) -> None:
        try:
            self._pool.put_nowait(conn)
        except Full:
            conn.close()

    def close_all(self) -> None:
        """Close every pooled connection."""
        while True:
            try:
                conn = self._pool.get_nowait()
            except Empty:
                break
            try:
                conn.close()
            except sqlite3.Error:
                pass
        with self._lock:
            self._created = 0


_pools: dict[Path, ConnectionPool] = {}
_pools_lock = threading.Lock()


def _get_pool(db_path: Optional[Path] = None) -> ConnectionPool:
    path = Path(db_path or DB_PATH).resolve()

    with _pools_lock:
        if path not in _pools:
            _pools[path] = ConnectionPool(path, _POOL_SIZE, _POOL_TIMEOUT)
        return _pools[path]


def close_pool(db_path: Optional[Path] = None) -> None:
    """Close and forget the pool for a database path."""
    path = Path(db_path or DB_PATH).resolve()
    with _pools_lock:
        pool = _pools.pop(path, None)
    if pool:
        pool.close_all()


@contextmanager
def get_db(db_path: Optional[Path] = None) -> Iterator[sqlite3.Connection]:
    """Pooled connection that commits on success and rolls back on error.

    Example:
        with get_db() as conn:
            rows = conn.execute("SELECT id FROM documents WHERE collection = ?", ("students",))
    """
    pool = _get_pool(db_path)
    conn = pool.get_connection()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.return_connection(conn)


def init_database(db_path: Optional[Path] = None, force: bool = False) -> Path:
    """Create the document and account tables.

    Args:
        db_path: Path to database file (uses default if not provided)
        force: Delete an existing database first

    Returns:
        Path to the database file
    """
    path = Path(db_path or DB_PATH)

    if force:
        close_pool(path)
        for suffix in ("", "-wal", "-shm"):
            candidate = path.with_name(path.name + suffix)
            if candidate.exists():
                candidate.unlink()
        logger.info("Removed existing database", extra={"extra_data": {"path": str(path)}})

    with get_db(path) as conn:
        conn.executescript(SCHEMA_PATH.read_text())

    logger.debug("Database ready", extra={"extra_data": {"path": str(path)}})
    return path


def verify_database(db_path: Optional[Path] = None) -> dict:
    """Report tables, per-collection document counts and account count."""
    path = Path(db_path or DB_PATH)

    if not path.exists():
        return {"exists": False, "tables": [], "error": "Database file not found"}

    try:
        with get_db(path) as conn:
            tables = [
                row["name"]
                for row in conn.execute(
                    "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
                )
            ]
            if "documents" not in tables:
                return {"exists": True, "path": str(path), "tables": tables, "collections": {}}

            collections = {
                row["collection"]: row["cnt"]
                for row in conn.execute(
                    "SELECT collection, COUNT(*) AS cnt FROM documents "
                    "GROUP BY collection ORDER BY collection"
                )
            }
            accounts = conn.execute("SELECT COUNT(*) AS cnt FROM auth_users").fetchone()["cnt"]

            return {
                "exists": True,
                "path": str(path),
                "tables": tables,
                "collections": collections,
                "accounts": accounts,
            }
    except sqlite3.Error as e:
        return {"exists": True, "error": str(e)}
