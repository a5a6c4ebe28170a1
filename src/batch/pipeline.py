"""
Migration pipeline orchestration.

Coordinates the flow: read → decode → validate → resolve → load
"""

import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel

from src.batch.loader import PartitionAwareBulkLoader, RetryPolicy
from src.batch.readers import Chunk, FixedWidthReader
from src.core.decoder import decode
from src.core.errors import CrossReferenceError, FormatError, PersistenceError, RecordValidationError
from src.core.layouts import get_layout
from src.core.models import (
    BatchResult,
    CrossReferenceResult,
    ErrorKind,
    FailurePoint,
    JobRun,
    JobStatus,
    PersistableRow,
    QuarantineRecord,
    RecordState,
    RecordType,
)
from src.core.models.record_state import advance
from src.core.ports import (
    AccountLookup,
    CardLookup,
    JobRunStore,
    PartitionManager,
    QuarantineSink,
    ReferenceCodeLookup,
    UnitOfWorkFactory,
    XrefLookup,
)
from src.core.resolver import CrossReferenceResolver, ReferenceCodeCache, ResolutionCache
from src.core.rules import PRIMARY_KEY_FIELDS, build_rule_engine
from src.core.rules.rule_engine import RuleEngine
from src.core.settings import MigrationSettings
from src.observability.logger import get_logger, log_operation
from src.observability.metrics import (
    chunk_load_duration_seconds,
    chunks_in_flight,
    increment_counter,
    record_chunk_committed,
    record_fatal_chunk,
    record_skip,
    track_duration,
    validation_warnings_total,
)

logger = get_logger(__name__)

DUPLICATE_KEY = "duplicate key"

TARGET_TABLES: dict[RecordType, str] = {
    RecordType.CARD: "cards",
    RecordType.ACCOUNT: "accounts",
    RecordType.TRANSACTION: "transactions",
    RecordType.XREF: "card_xref",
}

RESUMABLE_STATUSES = (JobStatus.FAILED, JobStatus.CANCELLED)


@dataclass
class PipelinePorts:
    """
    Collaborators the pipeline reads from and writes to.

    xref_lookup, quarantine_sink and job_store are optional. Without an
    xref lookup transactions load with no customer; without the sinks
    skipped lines and job runs are only counted and logged, and runs
    cannot be resumed.
    """

    card_lookup: CardLookup
    account_lookup: AccountLookup
    reference_lookup: ReferenceCodeLookup
    partition_manager: PartitionManager
    uow_factory: UnitOfWorkFactory
    xref_lookup: XrefLookup | None = None
    quarantine_sink: QuarantineSink | None = None
    job_store: JobRunStore | None = None

    @classmethod
    def from_store(cls, store: Any) -> "PipelinePorts":
        """Use one object implementing every port (e.g. InMemoryWarehouse)."""
        return cls(
            card_lookup=store,
            account_lookup=store,
            reference_lookup=store,
            partition_manager=store,
            uow_factory=store,
            xref_lookup=store,
            quarantine_sink=store,
            job_store=store,
        )


@dataclass
class RunContext:
    """Per-run shared state. A new one is built for every run()."""

    job_id: str
    engine: RuleEngine
    resolver: CrossReferenceResolver
    loader: PartitionAwareBulkLoader
    result: BatchResult = field(default_factory=BatchResult)
    failure: FailurePoint | None = None
    seen_keys: set[str] = field(default_factory=set)
    committed_chunks: set[int] = field(default_factory=set)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def claim_key(self, key: str) -> bool:
        """Register a primary key; False when an earlier record of this run had it."""
        with self.lock:
            if key in self.seen_keys:
                return False
            self.seen_keys.add(key)
            return True

    def commit(self, chunk: Chunk) -> None:
        with self.lock:
            self.committed_chunks.add(chunk.index)

    def fail(self, chunk: Chunk, error: Exception) -> None:
        """Keep the first fatal failure as the job's failure point."""
        with self.lock:
            if self.failure is None:
                self.failure = FailurePoint(
                    chunk_index=chunk.index,
                    first_line_number=chunk.first_line_number,
                    message=str(error),
                )


@dataclass
class _Skip:
    kind: ErrorKind
    rules: list[str]
    messages: list[str]


@dataclass
class LineOutcome:
    """
    Where one line ended up.

    state is RESOLVED (row set) or SKIPPED (skip set) when the line leaves
    _process_line, then LOADED or FAILED_FATAL once its chunk settles.
    """

    line_number: int
    line: str
    state: RecordState
    row: PersistableRow | None = None
    skip: _Skip | None = None
    record_key: str | None = None

    def finish(self, state: RecordState) -> None:
        self.state = advance(self.state, state)


def to_persistable_row(
    entity: BaseModel,
    record_type: RecordType,
    record_ref: str,
    reference: CrossReferenceResult | None = None,
) -> PersistableRow:
    """
    Map a typed record onto its target table columns.

    Transactions also carry the resolved account and customer, and are
    partitioned by processed_timestamp.
    """
    values = entity.model_dump()
    partition_timestamp = None

    if record_type == RecordType.TRANSACTION:
        values["account_id"] = reference.account_id if reference else None
        values["customer_id"] = reference.customer_id if reference else None
        partition_timestamp = values["processed_timestamp"]

    return PersistableRow(
        table=TARGET_TABLES[record_type],
        record_ref=record_ref,
        values=values,
        partition_timestamp=partition_timestamp,
    )


class MigrationPipeline:
    """
    Orchestrates the migration of one legacy file into PostgreSQL.

    Flow per chunk (one worker runs a chunk end to end):
    1. Decode each line with the record layout
    2. Validate and build the typed record
    3. Resolve cross references (cards → account, xrefs → card,
       transactions → card → account and customer)
    4. Skip keys already seen in this run
    5. Quarantine every skipped line
    6. Load all surviving rows in one transaction

    A fatal failure (load or lookup) stops the reader, lets in-flight
    chunks finish, and marks the job failed with the counts accumulated
    so far. A failed or cancelled job can be resumed: chunks it committed
    are replayed for duplicate detection only and every other chunk runs
    again.
    """

    def __init__(
        self,
        record_type: RecordType | str,
        ports: PipelinePorts,
        settings: MigrationSettings | None = None,
        validation_rules_path: str | Path | None = None,
        today: Callable[[], date] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize migration pipeline.

        Args:
            record_type: card, account, transaction or xref
            ports: Lookups, loader ports and audit sinks
            settings: Pipeline tunables (defaults when None)
            validation_rules_path: Optional YAML overriding the default rules
            today: Clock override for date rules
            sleep: Backoff sleep, injected for tests
        """
        self.record_type = RecordType(record_type)
        self.ports = ports
        self.settings = settings or MigrationSettings()
        self.validation_rules_path = validation_rules_path
        self.today = today
        self.sleep = sleep
        self.layout = get_layout(self.record_type)

        self._cancel_event = threading.Event()

    def cancel(self) -> None:
        """Stop reading new chunks; chunks already submitted still finish."""
        logger.warning("Cancellation requested", extra={"record_type": self.record_type.value})
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def run(
        self,
        input_path: str | Path,
        job_id: str | None = None,
        resume_job_id: str | None = None,
    ) -> JobRun:
        """
        Migrate a fixed-width file.

        Args:
            input_path: Legacy file for this pipeline's record type
            job_id: Run identifier (a new UUID when None)
            resume_job_id: Failed or cancelled job whose committed chunks
                           should not be loaded again

        Returns:
            Final JobRun: completed, failed (with failure point) or cancelled

        Raises:
            FileNotFoundError: If the input file does not exist
            ValueError: If resume_job_id cannot be resumed by this pipeline
        """
        reader = FixedWidthReader(input_path)
        previous = self._resumable_job(resume_job_id, input_path) if resume_job_id else None
        self._cancel_event.clear()

        ctx = self._new_context(job_id or str(uuid.uuid4()))
        skip_chunks = frozenset(previous.committed_chunks) if previous else frozenset()
        job = JobRun(
            job_id=ctx.job_id,
            record_type=self.record_type.value,
            source_file=str(input_path),
            chunk_size=self.settings.chunk_size,
            resumed_from=previous.job_id if previous else None,
        )
        self._save_job(job)

        with log_operation(
            f"Migrating {self.record_type.value} file",
            logger=logger,
            job_id=ctx.job_id,
            source_file=str(input_path),
            resumed_from=job.resumed_from,
        ):
            try:
                self._run_chunks(ctx, reader, skip_chunks)
            except Exception as e:
                # Unexpected errors still leave an audit row behind
                job.status = JobStatus.FAILED
                job.failure_point = ctx.failure or FailurePoint(
                    chunk_index=0, first_line_number=1, message=str(e)
                )
                self._finish_job(job, ctx, skip_chunks)
                raise

        if ctx.failure is not None:
            job.status = JobStatus.FAILED
            job.failure_point = ctx.failure
        elif self.cancelled:
            job.status = JobStatus.CANCELLED
        else:
            job.status = JobStatus.COMPLETED

        self._finish_job(job, ctx, skip_chunks)

        log = logger.error if job.status == JobStatus.FAILED else logger.info
        log(f"Job {job.job_id} {job.status.value}", extra=job.summary())
        return job

    def _finish_job(self, job: JobRun, ctx: RunContext, skip_chunks: frozenset[int]) -> None:
        job.finished_at = datetime.now(timezone.utc)
        job.counts = ctx.result.snapshot()
        with ctx.lock:
            job.committed_chunks = sorted(skip_chunks | ctx.committed_chunks)
        self._save_job(job)

    def _resumable_job(self, job_id: str, input_path: str | Path) -> JobRun:
        """Load the job to resume and check it matches this pipeline."""
        if self.ports.job_store is None:
            raise ValueError("Resuming a job needs a job store")

        previous = self.ports.job_store.get_job_run(job_id)
        if previous is None:
            raise ValueError(f"Job {job_id} not found")
        if previous.record_type != self.record_type.value:
            raise ValueError(
                f"Job {job_id} migrated {previous.record_type} records, not {self.record_type.value}"
            )
        if previous.status not in RESUMABLE_STATUSES:
            raise ValueError(f"Job {job_id} is {previous.status.value}; only failed or cancelled jobs resume")
        if previous.chunk_size != self.settings.chunk_size:
            raise ValueError(
                f"Job {job_id} used chunk_size={previous.chunk_size}, "
                f"this run uses {self.settings.chunk_size}; chunk boundaries would not line up"
            )
        if previous.source_file != str(input_path):
            logger.warning(
                f"Resuming job {job_id} from a different path",
                extra={"previous_source": previous.source_file, "source_file": str(input_path)},
            )

        logger.info(
            f"Resuming job {job_id}",
            extra={"committed_chunks": len(previous.committed_chunks), "status": previous.status.value},
        )
        return previous

    def _new_context(self, job_id: str) -> RunContext:
        reference_codes = ReferenceCodeCache(self.ports.reference_lookup)
        engine = build_rule_engine(
            self.record_type,
            self.settings,
            reference_codes=reference_codes,
            rules_path=self.validation_rules_path,
            today=self.today,
        )
        resolver = CrossReferenceResolver(
            self.ports.card_lookup,
            self.ports.account_lookup,
            cache=ResolutionCache(),
            xref_lookup=self.ports.xref_lookup,
        )
        retry = self.settings.retry
        loader = PartitionAwareBulkLoader(
            self.ports.uow_factory,
            self.ports.partition_manager,
            retry_policy=RetryPolicy(
                max_attempts=retry.max_attempts,
                base_delay=retry.base_delay,
                multiplier=retry.multiplier,
                max_delay=retry.max_delay,
            ),
            timeout_seconds=self.settings.transaction_timeout_seconds,
            sleep=self.sleep,
        )
        return RunContext(job_id=job_id, engine=engine, resolver=resolver, loader=loader)

    def _run_chunks(self, ctx: RunContext, reader: FixedWidthReader, skip_chunks: frozenset[int]) -> None:
        """Read chunks and hand them to workers, at most in_flight_limit at a time."""
        in_flight = threading.BoundedSemaphore(self.settings.in_flight_limit)
        futures: list[Future] = []

        def release(_future: Future) -> None:
            chunks_in_flight.labels(record_type=self.record_type.value).dec()
            in_flight.release()

        with ThreadPoolExecutor(
            max_workers=self.settings.max_workers,
            thread_name_prefix=f"migrate-{self.record_type.value}",
        ) as executor:
            for chunk in reader.chunks(self.settings.chunk_size):
                if chunk.index in skip_chunks:
                    if self.cancelled:
                        break
                    ctx.result.record_seen(len(chunk))
                    self._replay_chunk(ctx, chunk)
                    continue

                if not self._acquire(in_flight):
                    logger.info(
                        f"Stopped reading before chunk {chunk.index}",
                        extra={"chunk_index": chunk.index, "first_line": chunk.first_line_number},
                    )
                    break

                ctx.result.record_seen(len(chunk))
                chunks_in_flight.labels(record_type=self.record_type.value).inc()
                future = executor.submit(self._process_chunk, ctx, chunk)
                future.add_done_callback(release)
                futures.append(future)
                futures = self._reap(futures)

            for future in futures:
                future.result()

    @staticmethod
    def _reap(futures: list[Future]) -> list[Future]:
        """Drop finished futures, re-raising any unexpected worker error."""
        pending = []
        for future in futures:
            if future.done():
                future.result()
            else:
                pending.append(future)
        return pending

    def _acquire(self, semaphore: threading.BoundedSemaphore) -> bool:
        """Wait for a free slot; False once the run is cancelled."""
        while not self._cancel_event.is_set():
            if semaphore.acquire(timeout=0.1):
                if self._cancel_event.is_set():
                    semaphore.release()
                    return False
                return True
        return False

    def _replay_chunk(self, ctx: RunContext, chunk: Chunk) -> None:
        """
        Re-run a chunk an earlier job committed, claiming its keys only.

        Nothing is loaded or quarantined, so later chunks see the same
        duplicates they would have seen in one uninterrupted run.
        """
        try:
            for line_number, line in chunk.lines:
                self._process_line(ctx, line_number, line)
        except PersistenceError as e:
            self._fail_chunk(ctx, chunk, e, rows=len(chunk))
            return

        ctx.result.record_already_loaded(len(chunk))
        ctx.commit(chunk)
        logger.debug(
            f"Chunk {chunk.index} already loaded",
            extra={"chunk_index": chunk.index, "first_line": chunk.first_line_number},
        )

    def _process_chunk(self, ctx: RunContext, chunk: Chunk) -> None:
        outcomes: list[LineOutcome] = []
        skips_counted = False

        logger.debug(
            f"Processing chunk {chunk.index}",
            extra={"chunk_index": chunk.index, "first_line": chunk.first_line_number, "lines": len(chunk)},
        )

        try:
            for line_number, line in chunk.lines:
                outcomes.append(self._process_line(ctx, line_number, line))

            skipped = [o for o in outcomes if o.state == RecordState.SKIPPED]
            resolved = [o for o in outcomes if o.state == RecordState.RESOLVED]
            self._count_skips(ctx, skipped)
            skips_counted = True

            self._quarantine(ctx, skipped)
            self._load(ctx, chunk, resolved)

        except PersistenceError as e:
            for outcome in outcomes:
                if outcome.state == RecordState.RESOLVED:
                    outcome.finish(RecordState.FAILED_FATAL)
            unsettled = len(chunk) - (sum(o.state == RecordState.SKIPPED for o in outcomes) if skips_counted else 0)
            self._fail_chunk(ctx, chunk, e, rows=unsettled)

    def _count_skips(self, ctx: RunContext, skipped: list[LineOutcome]) -> None:
        for outcome in skipped:
            skip = outcome.skip
            ctx.result.record_skip(skip.kind, skip.messages)
            logger.debug(
                f"Skipped {self.record_type.value}:{outcome.line_number}",
                extra={"kind": skip.kind.value, "reasons": skip.messages},
            )
            record_skip(self.record_type.value, skip.kind.value)

    def _quarantine(self, ctx: RunContext, skipped: list[LineOutcome]) -> None:
        if not skipped or not self.settings.quarantine_enabled or self.ports.quarantine_sink is None:
            return

        self.ports.quarantine_sink.write_quarantine([
            QuarantineRecord(
                job_id=ctx.job_id,
                record_type=self.record_type.value,
                line_number=o.line_number,
                record_key=o.record_key,
                raw_line=o.line,
                error_kind=o.skip.kind.value,
                failed_rules=o.skip.rules,
                error_messages=o.skip.messages,
            )
            for o in skipped
        ])

    def _load(self, ctx: RunContext, chunk: Chunk, resolved: list[LineOutcome]) -> None:
        with track_duration(chunk_load_duration_seconds, record_type=self.record_type.value):
            report = ctx.loader.load_chunk([o.row for o in resolved])

        for outcome in resolved:
            outcome.finish(RecordState.LOADED)
        loaded = sum(o.state == RecordState.LOADED for o in resolved)

        ctx.result.record_succeeded(loaded)
        ctx.commit(chunk)
        record_chunk_committed(self.record_type.value, loaded, max(report.attempts - 1, 0))
        logger.info(
            f"Committed chunk {chunk.index}",
            extra={
                "chunk_index": chunk.index,
                "rows": report.rows_inserted,
                "attempts": report.attempts,
                "partitions": report.partitions_ensured,
            },
        )

    def _fail_chunk(self, ctx: RunContext, chunk: Chunk, error: PersistenceError, rows: int) -> None:
        ctx.result.record_fatal(rows)
        record_fatal_chunk(self.record_type.value, rows)
        ctx.fail(chunk, error)
        self._cancel_event.set()
        logger.error(
            f"Chunk {chunk.index} failed: {error}",
            extra={
                "chunk_index": chunk.index,
                "first_line": chunk.first_line_number,
                "rows": rows,
                "transient": error.transient,
            },
            exc_info=True,
        )

    def _process_line(self, ctx: RunContext, line_number: int, line: str) -> LineOutcome:
        """
        Run one line through decode → validate → resolve.

        Returns:
            LineOutcome in state RESOLVED (with its row) or SKIPPED (with the
            reason); record_key is the raw primary key text when the line
            could be decoded

        Raises:
            PersistenceError: If a lookup port cannot be queried
        """
        outcome = LineOutcome(line_number, line, RecordState.PENDING)

        def skipped(kind: ErrorKind, rules: list[str], messages: list[str]) -> LineOutcome:
            outcome.skip = _Skip(kind, rules, messages)
            outcome.finish(RecordState.SKIPPED)
            return outcome

        try:
            raw = decode(line, self.record_type, line_number)
        except FormatError as e:
            return skipped(ErrorKind.FORMAT, [e.kind.value], [e.message])
        outcome.finish(RecordState.DECODED)
        outcome.record_key = raw.get(PRIMARY_KEY_FIELDS[self.record_type])

        try:
            entity, result = ctx.engine.build(raw)
        except RecordValidationError as e:
            kind = ErrorKind.VALIDATION
            if any(o.error_kind == ErrorKind.FORMAT for o in e.outcomes):
                kind = ErrorKind.FORMAT
            return skipped(
                kind,
                [o.rule_name or "validation" for o in e.outcomes],
                [o.message for o in e.outcomes],
            )
        outcome.finish(RecordState.VALIDATED)

        for warning in result.warnings:
            increment_counter(validation_warnings_total, 1, record_type=self.record_type.value, rule_name=warning.rule_name)
            logger.debug(f"Warning on {raw.record_ref}: {warning.message}")

        try:
            reference = self._resolve(ctx, entity)
        except CrossReferenceError as e:
            return skipped(ErrorKind.REFERENCE, ["cross_reference"], [e.result.reason])

        if not ctx.claim_key(entity.primary_key):
            return skipped(ErrorKind.VALIDATION, ["duplicate_key"], [DUPLICATE_KEY])

        outcome.row = to_persistable_row(entity, self.record_type, raw.record_ref, reference)
        outcome.finish(RecordState.RESOLVED)
        return outcome

    def _resolve(self, ctx: RunContext, entity: BaseModel) -> CrossReferenceResult | None:
        """Resolve the entity's parent record; raises CrossReferenceError when it is missing or inactive."""
        if self.record_type == RecordType.CARD:
            reference = ctx.resolver.resolve_account(entity.account_id)
        elif self.record_type == RecordType.XREF:
            reference = ctx.resolver.resolve_xref(entity.card_number, entity.account_id)
        elif self.record_type == RecordType.TRANSACTION:
            reference = ctx.resolver.resolve(entity.card_number)
        else:
            return None

        if not reference.valid:
            raise CrossReferenceError(reference)
        return reference

    def _save_job(self, job: JobRun) -> None:
        if self.ports.job_store is not None:
            self.ports.job_store.save_job_run(job)
