"""
Monthly range-partition management for the transactions table.

The only DDL the pipeline issues: CREATE TABLE ... PARTITION OF for the
month a chunk needs.
"""

from datetime import datetime

import psycopg
from psycopg import errors, sql

from src.core.errors import PartitionError
from src.observability.logger import get_logger

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)


class PostgresPartitionManager:
    """
    Creates missing monthly partitions.

    Each creation runs in its own transaction holding a transaction-scoped
    advisory lock on the partition name, so concurrent processes serialize
    on the same month. A partition that appears concurrently anyway
    (DuplicateTable) counts as already present.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        """
        Initialize partition manager.

        Args:
            pool: Database connection pool
        """
        self.pool = pool

    def ensure_partition(self, table: str, partition_name: str, start: datetime, end: datetime) -> bool:
        """
        Create ``partition_name`` as a partition of ``table`` for ``[start, end)``.

        Args:
            table: Partitioned parent table
            partition_name: Child table name ("transactions_2024_03")
            start: Inclusive lower bound
            end: Exclusive upper bound

        Returns:
            True if the partition was created by this call

        Raises:
            PartitionError: If the partition cannot be created
        """
        create = sql.SQL(
            "CREATE TABLE IF NOT EXISTS {partition} PARTITION OF {table} "
            "FOR VALUES FROM ({start}) TO ({end})"
        ).format(
            partition=sql.Identifier(partition_name),
            table=sql.Identifier(table),
            start=sql.Literal(start),
            end=sql.Literal(end),
        )

        try:
            with self.pool.get_connection() as conn:
                with conn.transaction():
                    with conn.cursor() as cur:
                        cur.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (partition_name,))
                        cur.execute("SELECT to_regclass(%s) AS oid", (partition_name,))
                        row = cur.fetchone()
                        if row and row["oid"] is not None:
                            return False
                        cur.execute(create)
        except (errors.DuplicateTable, errors.UniqueViolation):
            logger.debug(f"Partition {partition_name} created concurrently")
            return False
        except psycopg.Error as e:
            raise PartitionError(partition_name, str(e)) from e

        logger.info(
            f"Created partition {partition_name}",
            extra={"table": table, "partition": partition_name,
                   "range_start": start.isoformat(), "range_end": end.isoformat()},
        )
        return True

    def list_partitions(self, table: str) -> list[str]:
        """
        List the partitions currently attached to a table.

        Returns:
            Partition names, sorted
        """
        query = """
            SELECT child.relname AS name
            FROM pg_inherits
            JOIN pg_class parent ON pg_inherits.inhparent = parent.oid
            JOIN pg_class child ON pg_inherits.inhrelid = child.oid
            WHERE parent.relname = %s
            ORDER BY child.relname
        """
        return [row["name"] for row in self.pool.execute_query(query, (table,))]
