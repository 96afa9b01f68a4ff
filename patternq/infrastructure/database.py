"""SQLite access for PatternQ

Learned patterns, upload attempts and pattern application history live in ONE
SQLite database (patternq/data/patternq.db unless PATTERNQ_DB_PATH points
elsewhere).

Provides:
- A fixed-size connection pool (WAL mode, sqlite3.Row rows)
- get_db_connection() / db_transaction() context managers
- retry_on_db_lock() for SQLITE_BUSY contention between upload workers
- DatabaseUnavailableError when no usable connection can be handed out
"""

from __future__ import annotations

import atexit
import os
import random
import sqlite3
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from functools import lru_cache, wraps
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Any, TypeVar

from patternq.config import (
    DB_CONNECT_TIMEOUT,
    DB_POOL_SIZE,
    DB_POOL_TIMEOUT,
    DB_RETRY_BASE_DELAY,
    DB_RETRY_JITTER,
    DB_RETRY_MAX,
    DB_RETRY_MAX_DELAY,
)
from patternq.observability.logging import get_logger
from patternq.observability.telemetry import counter, log_event

F = TypeVar("F", bound=Callable[..., Any])

DB_PATH = Path(__file__).parent.parent / "data" / "patternq.db"

logger = get_logger(__name__)


class DatabaseUnavailableError(RuntimeError):
    """Pool closed or exhausted, or the database failed its integrity check."""


def retry_on_db_lock(
    max_retries: int = DB_RETRY_MAX,
    base_delay: float = DB_RETRY_BASE_DELAY,
    max_delay: float = DB_RETRY_MAX_DELAY,
) -> Callable[[F], F]:
    """
    Decorator to retry database writes on SQLITE_BUSY errors

    Concurrent upload workers write to the same file; a "database is locked"
    error is retried with exponential backoff and jitter. Integrity errors
    (the owner/hash uniqueness rule) are never retried.

    Side Effects:
        - Sleeps between retries
        - Logs a warning per retry
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            last_error: Exception | None = None
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except sqlite3.OperationalError as e:
                    last_error = e
                    message = str(e).lower()
                    if "locked" not in message and "busy" not in message:
                        raise
                    if attempt >= max_retries:
                        logger.error("Database lock retry exhausted after %d attempts: %s", max_retries, e)
                        raise

                    delay = min(base_delay * (2**attempt), max_delay)
                    sleep_time = delay + random.uniform(0, delay * DB_RETRY_JITTER)
                    logger.warning(
                        "Database locked (attempt %d/%d), retrying in %.2fs: %s",
                        attempt + 1,
                        max_retries,
                        sleep_time,
                        e,
                    )
                    time.sleep(sleep_time)

            raise last_error  # type: ignore[misc]

        return wrapper  # type: ignore[return-value]

    return decorator


class DatabaseConnectionPool:
    """
    Thread-safe, fixed-size connection pool for SQLite

    A caller that cannot get a connection within `timeout` seconds gets
    DatabaseUnavailableError; the pool never grows past pool_size.
    """

    def __init__(self, db_path: Path, pool_size: int = DB_POOL_SIZE, timeout: float = DB_POOL_TIMEOUT):
        self.db_path = db_path
        self.pool_size = pool_size
        self.timeout = timeout
        self.pool: Queue[sqlite3.Connection] = Queue(maxsize=pool_size)
        self.closed = False

        for _ in range(pool_size):
            self.pool.put(self._create_connection())

        atexit.register(self.close_all)

    def _create_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=DB_CONNECT_TIMEOUT, check_same_thread=False)

        try:
            status = conn.execute("PRAGMA quick_check(1)").fetchone()[0]
        except sqlite3.DatabaseError as e:
            status = str(e)
        if status != "ok":
            conn.close()
            counter("database.corruption_detected")
            logger.critical("Database integrity check failed for %s: %s", self.db_path, status)
            raise DatabaseUnavailableError(f"Database integrity check failed: {status}")

        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        conn.row_factory = sqlite3.Row
        return conn

    def get_connection(self) -> sqlite3.Connection:
        """
        Take a connection from the pool

        Raises:
            DatabaseUnavailableError: Pool closed, or no connection freed up in time
        """
        if self.closed:
            raise DatabaseUnavailableError("Connection pool has been closed")

        try:
            return self.pool.get(block=True, timeout=self.timeout)
        except Empty:
            counter("database.pool_exhausted")
            log_event("database.pool_exhausted", pool_size=self.pool_size)
            raise DatabaseUnavailableError(
                f"No database connection free within {self.timeout}s (pool_size={self.pool_size})"
            ) from None

    def return_connection(self, conn: sqlite3.Connection) -> None:
        if self.closed:
            conn.close()
            return
        try:
            self.pool.put_nowait(conn)
        except Full:
            conn.close()

    def close_all(self) -> None:
        """Close all pooled connections."""
        self.closed = True
        while True:
            try:
                self.pool.get_nowait().close()
            except Empty:
                break


@lru_cache(maxsize=1)
def get_pool() -> DatabaseConnectionPool:
    """Global connection pool (singleton via @lru_cache)."""
    return DatabaseConnectionPool(get_db_path(), pool_size=DB_POOL_SIZE)


def reset_pool() -> None:
    """
    Close and forget the global pool so the next call re-reads PATTERNQ_DB_PATH.

    Used by tests that point each case at its own temporary database.
    """
    if get_pool.cache_info().currsize:
        get_pool().close_all()
    get_pool.cache_clear()


def get_db_path() -> Path:
    """PATTERNQ_DB_PATH if set, else the packaged default location."""
    if env_path := os.getenv("PATTERNQ_DB_PATH"):
        return Path(env_path)
    return DB_PATH


@contextmanager
def get_db_connection() -> Generator[sqlite3.Connection, None, None]:
    """
    Get pooled database connection (context manager)

    Usage:
        with get_db_connection() as conn:
            rows = conn.execute("SELECT * FROM learned_patterns").fetchall()

    Raises:
        FileNotFoundError: If database doesn't exist (run init_database() first)
        DatabaseUnavailableError: If the pool cannot hand out a connection
    """
    db_path = get_db_path()

    if not db_path.exists():
        raise FileNotFoundError(
            f"Database not found: {db_path}\n"
            "Run: python -c 'from patternq.infrastructure.database import init_database; init_database()'"
        )

    pool = get_pool()
    conn = pool.get_connection()
    try:
        yield conn
    finally:
        pool.return_connection(conn)


@contextmanager
def db_transaction() -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database transactions

    Commits on success, rolls back on error.
    """
    with get_db_connection() as conn:
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise


def init_database() -> None:
    """
    Initialize database with schema (idempotent)

    Safe to run multiple times - uses CREATE TABLE IF NOT EXISTS.
    """
    from patternq.infrastructure.database_schema import init_database as _init_database

    _init_database(get_db_path())
