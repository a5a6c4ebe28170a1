"""
Audit sinks: quarantined lines and job-run records.

Quarantine rows are written in their own transaction, outside the chunk's
data transaction, so the audit trail survives a data rollback.
"""

import psycopg
from psycopg.types.json import Jsonb

from src.core.errors import PersistenceError
from src.core.models import JobRun, QuarantineRecord
from src.observability.logger import get_logger

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)


class QuarantineWriter:
    """
    Handles writing skipped legacy lines to the quarantine table.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        """
        Initialize quarantine writer.

        Args:
            pool: Database connection pool
        """
        self.pool = pool

    def write_quarantine(self, records: list[QuarantineRecord]) -> int:
        """
        Insert a batch of records into quarantine.

        Args:
            records: List of QuarantineRecord instances

        Returns:
            Number of records quarantined

        Raises:
            PersistenceError: If the insert fails
        """
        if not records:
            return 0

        query = """
            INSERT INTO quarantine_record (
                job_id, record_type, line_number, record_key, raw_line,
                error_kind, failed_rules, error_messages, quarantined_at, reviewed
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """

        data_tuples = [
            (
                record.job_id,
                record.record_type,
                record.line_number,
                record.record_key,
                record.raw_line,
                record.error_kind,
                record.failed_rules,
                record.error_messages,
                record.quarantined_at,
                record.reviewed,
            )
            for record in records
        ]

        try:
            self.pool.execute_batch(query, data_tuples)
        except psycopg.Error as e:
            raise PersistenceError(f"Quarantine write failed: {e}", transient=False) from e

        logger.debug(f"Quarantined {len(records)} records", extra={"job_id": records[0].job_id})
        return len(records)

    def count_quarantined(self, job_id: str) -> int:
        result = self.pool.execute_query(
            "SELECT COUNT(*) AS total FROM quarantine_record WHERE job_id = %s",
            (job_id,),
        )
        return result[0]["total"]


class JobRunWriter:
    """
    Persists JobRun rows. Saving the same job twice updates it in place.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def save_job_run(self, job_run: JobRun) -> None:
        """
        Upsert a job run.

        Raises:
            PersistenceError: If the write fails
        """
        query = """
            INSERT INTO migration_job_run (
                job_id, record_type, source_file, status, started_at,
                finished_at, counts, failure_point, chunk_size,
                committed_chunks, resumed_from
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (job_id) DO UPDATE SET
                status = EXCLUDED.status,
                finished_at = EXCLUDED.finished_at,
                counts = EXCLUDED.counts,
                failure_point = EXCLUDED.failure_point,
                committed_chunks = EXCLUDED.committed_chunks
        """

        failure_point = job_run.failure_point.model_dump() if job_run.failure_point else None

        try:
            self.pool.execute_command(
                query,
                (
                    job_run.job_id,
                    job_run.record_type,
                    job_run.source_file,
                    job_run.status.value,
                    job_run.started_at,
                    job_run.finished_at,
                    Jsonb(job_run.counts),
                    Jsonb(failure_point) if failure_point else None,
                    job_run.chunk_size,
                    job_run.committed_chunks,
                    job_run.resumed_from,
                ),
            )
        except psycopg.Error as e:
            raise PersistenceError(f"Job run write failed: {e}", transient=False) from e

        logger.info(
            f"Saved job run {job_run.job_id}",
            extra={"job_id": job_run.job_id, "status": job_run.status.value},
        )

    def get_job_run(self, job_id: str) -> JobRun | None:
        """
        Load a saved job run, e.g. to resume it.

        Raises:
            PersistenceError: If the read fails
        """
        try:
            result = self.pool.execute_query(
                """
                SELECT job_id, record_type, source_file, status, started_at,
                       finished_at, counts, failure_point, chunk_size,
                       committed_chunks, resumed_from
                FROM migration_job_run
                WHERE job_id = %s
                """,
                (job_id,),
            )
        except psycopg.Error as e:
            raise PersistenceError(f"Job run read failed: {e}", transient=False) from e

        return JobRun.model_validate(result[0]) if result else None
