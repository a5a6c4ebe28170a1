"""
PostgreSQL connection pool management using psycopg3

This module provides a connection pool for efficient database access
with automatic connection lifecycle management, plus the transaction
boundary used for atomic chunk commits.
"""
import os
import time
from contextlib import contextmanager

import psycopg
from psycopg import IsolationLevel, OperationalError, errors
from psycopg.conninfo import conninfo_to_dict
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool, PoolTimeout

from src.core.errors import PersistenceError

ISOLATION_LEVELS = {
    "read_committed": IsolationLevel.READ_COMMITTED,
    "repeatable_read": IsolationLevel.REPEATABLE_READ,
    "serializable": IsolationLevel.SERIALIZABLE,
}

# Conflicts and timeouts that can succeed when the whole transaction is replayed
TRANSIENT_ERRORS = (
    errors.SerializationFailure,
    errors.DeadlockDetected,
    errors.QueryCanceled,
    errors.LockNotAvailable,
    PoolTimeout,
)


def to_persistence_error(error: psycopg.Error) -> PersistenceError:
    """
    Map a psycopg error to PersistenceError.

    Serialization failures, deadlocks, lock timeouts, statement timeouts
    and waits for a pooled connection that time out are transient; everything else (constraint violations, missing tables,
    lost connections) is fatal.
    """
    transient = isinstance(error, TRANSIENT_ERRORS)
    sqlstate = getattr(error, "sqlstate", None) or "-"
    return PersistenceError(f"[{sqlstate}] {error}".strip(), transient=transient)


class DatabaseConnectionPool:
    """
    PostgreSQL connection pool manager using psycopg3

    Provides efficient connection pooling with automatic reconnection
    and connection lifecycle management.
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        database: str | None = None,
        user: str | None = None,
        password: str | None = None,
        min_size: int = 2,
        max_size: int = 10,
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize database connection pool

        Args:
            host: Database host (defaults to env var DB_HOST)
            port: Database port (defaults to env var DB_PORT)
            database: Database name (defaults to env var DB_NAME)
            user: Database user (defaults to env var DB_USER)
            password: Database password (defaults to env var DB_PASSWORD)
            min_size: Minimum pool size
            max_size: Maximum pool size, at least the number of workers
            timeout: Connection timeout in seconds
        """
        self.host = host or os.getenv("DB_HOST", "localhost")
        self.port = port or int(os.getenv("DB_PORT", "5432"))
        self.database = database or os.getenv("DB_NAME", "carddemo")
        self.user = user or os.getenv("DB_USER", "migration")
        self.password = password or os.getenv("DB_PASSWORD")

        # Security: Require password to be explicitly set
        if not self.password:
            raise ValueError(
                "Database password must be provided. "
                "Set DB_PASSWORD environment variable or pass to constructor."
            )

        self.min_size = min_size
        self.max_size = max_size
        self.timeout = timeout

        self.conninfo = (
            f"host={self.host} "
            f"port={self.port} "
            f"dbname={self.database} "
            f"user={self.user} "
            f"password={self.password} "
            f"connect_timeout={int(self.timeout)}"
        )

        self._pool: ConnectionPool | None = None

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "DatabaseConnectionPool":
        """Build a pool from a postgresql:// URL (test containers, DATABASE_URL)."""
        info = conninfo_to_dict(url)
        return cls(
            host=info.get("host"),
            port=int(info["port"]) if info.get("port") else None,
            database=info.get("dbname"),
            user=info.get("user"),
            password=info.get("password"),
            **kwargs,
        )

    def open(self, max_retries: int = 3, retry_delay: float = 2.0) -> None:
        """
        Open the connection pool with retry logic.

        Args:
            max_retries: Maximum number of connection attempts
            retry_delay: Delay between retries in seconds

        Raises:
            OperationalError: If connection fails after all retries
        """
        if self._pool is None:
            self._pool = ConnectionPool(
                conninfo=self.conninfo,
                min_size=self.min_size,
                max_size=self.max_size,
                timeout=self.timeout,
                kwargs={"row_factory": dict_row},  # Return rows as dictionaries
                open=False,
            )

            for attempt in range(1, max_retries + 1):
                try:
                    self._pool.open(wait=True, timeout=self.timeout)
                    return
                except (OperationalError, PoolTimeout) as e:
                    if attempt < max_retries:
                        time.sleep(retry_delay)
                    else:
                        self._pool = None
                        raise OperationalError(
                            f"Failed to connect to database after {max_retries} attempts: {e}"
                        ) from e

    def close(self) -> None:
        """Close the connection pool"""
        if self._pool is not None:
            self._pool.close()
            self._pool = None

    @contextmanager
    def get_connection(self):
        """
        Get a connection from the pool

        Yields:
            psycopg.Connection: Database connection

        Raises:
            RuntimeError: If pool is not open
        """
        if self._pool is None:
            raise RuntimeError("Connection pool is not open. Call open() first.")

        with self._pool.connection() as conn:
            yield conn

    @contextmanager
    def get_cursor(self):
        """
        Get a cursor from a pooled connection

        Yields:
            psycopg.Cursor: Database cursor
        """
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                yield cur

    @contextmanager
    def transaction(self, isolation: str = "serializable", timeout_seconds: float | None = None):
        """
        Run a block inside one database transaction.

        The isolation level is set before the transaction starts and the
        statement timeout is scoped to the transaction with
        ``set_config(..., true)``. Commits on clean exit, rolls back on error.

        Args:
            isolation: read_committed, repeatable_read or serializable
            timeout_seconds: Statement timeout for every statement in the block

        Yields:
            psycopg.Connection inside the open transaction

        Raises:
            PersistenceError: For any database error, transient or not
        """
        level = ISOLATION_LEVELS[isolation]
        try:
            with self.get_connection() as conn:
                previous = conn.isolation_level
                conn.isolation_level = level
                try:
                    with conn.transaction():
                        if timeout_seconds is not None:
                            with conn.cursor() as cur:
                                cur.execute(
                                    "SELECT set_config('statement_timeout', %s, true)",
                                    (f"{int(timeout_seconds * 1000)}ms",),
                                )
                        yield conn
                finally:
                    if not conn.closed:
                        conn.isolation_level = previous
        except psycopg.Error as e:
            raise to_persistence_error(e) from e

    def execute_query(self, query, params: tuple | None = None) -> list[dict]:
        """
        Execute a SELECT query and return results

        Args:
            query: SQL SELECT query
            params: Query parameters (optional)

        Returns:
            List of dictionaries (one per row)
        """
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                rows = cur.fetchall()
            conn.commit()
            return rows

    def execute_command(self, command, params: tuple | None = None) -> int:
        """
        Execute an INSERT/UPDATE/DELETE command

        Args:
            command: SQL command
            params: Command parameters (optional)

        Returns:
            Number of rows affected
        """
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(command, params)
                rowcount = cur.rowcount
            conn.commit()
            return rowcount

    def execute_batch(self, command, params_list: list[tuple]) -> None:
        """
        Execute a command in batch mode for multiple parameter sets

        Args:
            command: SQL command
            params_list: List of parameter tuples
        """
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.executemany(command, params_list)
            conn.commit()

    def __enter__(self):
        """Context manager entry"""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        self.close()
        return False
