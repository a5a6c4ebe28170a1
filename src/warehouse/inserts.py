"""
Batched inserts of migrated rows inside one transaction per chunk.

Rows are inserted with plain INSERT (no ON CONFLICT): a key that already
exists in the target table aborts the chunk.
"""

from contextlib import contextmanager
from typing import Any, Iterator

from psycopg import sql

from .connection import DatabaseConnectionPool


class PostgresBatchInserter:
    """BatchInserter bound to one open transaction."""

    def __init__(self, conn):
        self.conn = conn

    def insert_rows(self, table: str, columns: list[str], rows: list[tuple[Any, ...]]) -> int:
        """
        Insert rows with a single executemany.

        Args:
            table: Target table
            columns: Column names, in the order of each row tuple
            rows: Row tuples

        Returns:
            Number of rows inserted
        """
        if not rows:
            return 0

        query = sql.SQL("INSERT INTO {table} ({columns}) VALUES ({values})").format(
            table=sql.Identifier(table),
            columns=sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            values=sql.SQL(", ").join([sql.Placeholder()] * len(columns)),
        )

        with self.conn.cursor() as cur:
            cur.executemany(query, rows)

        return len(rows)


class PostgresUnitOfWork:
    """
    UnitOfWorkFactory over the connection pool.

    Each transaction() call checks out a connection, applies the isolation
    level and statement timeout, and yields an inserter bound to it.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    @contextmanager
    def transaction(self, isolation: str, timeout_seconds: float) -> Iterator[PostgresBatchInserter]:
        with self.pool.transaction(isolation, timeout_seconds) as conn:
            yield PostgresBatchInserter(conn)
