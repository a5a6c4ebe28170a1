"""
Integration tests for the PostgreSQL adapters and a full migration run.

Requires Docker: every test runs against a testcontainers PostgreSQL
initialized with docker/init-db.sql.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from src.batch.loader import PartitionAwareBulkLoader, RetryPolicy, month_bounds
from src.batch.pipeline import MigrationPipeline
from src.cli.migrate_cli import build_postgres_ports
from src.core.errors import PersistenceError
from src.core.models import FailurePoint, JobRun, JobStatus, PersistableRow, QuarantineRecord
from src.core.settings import MigrationSettings
from src.warehouse.audit import JobRunWriter, QuarantineWriter
from src.warehouse.inserts import PostgresUnitOfWork
from src.warehouse.lookups import PostgresLookups
from src.warehouse.partitions import PostgresPartitionManager

TODAY = date(2025, 6, 15)
VALID_CARD = "4532015112830366"
ACCOUNT_ID = "00000000001"
CUSTOMER_ID = "000000001"


def seed(pool, card_active=True):
    pool.execute_batch(
        "INSERT INTO transaction_types (transaction_type, description) VALUES (%s, %s)",
        [("01", "Purchase"), ("02", "Payment")],
    )
    pool.execute_batch(
        "INSERT INTO transaction_categories (transaction_category, description) VALUES (%s, %s)",
        [("0001", "Regular Sales Draft"), ("0002", "Regular Cash Advance")],
    )
    pool.execute_command(
        """
        INSERT INTO accounts (account_id, active_status, current_balance, credit_limit,
                              cash_credit_limit, cycle_credit, cycle_debit, open_date)
        VALUES (%s, TRUE, 0, 1000, 500, 0, 0, '2014-11-20')
        """,
        (ACCOUNT_ID,),
    )
    pool.execute_command(
        """
        INSERT INTO cards (card_number, account_id, cvv, embossed_name, expiration_date, active_status)
        VALUES (%s, %s, '123', 'JOHN DOE', '2027-06-15', %s)
        """,
        (VALID_CARD, ACCOUNT_ID, card_active),
    )
    pool.execute_command(
        "INSERT INTO card_xref (card_number, customer_id, account_id) VALUES (%s, %s, %s)",
        (VALID_CARD, CUSTOMER_ID, ACCOUNT_ID),
    )


def type_row(code: str) -> PersistableRow:
    return PersistableRow(
        table="transaction_types",
        record_ref=f"type:{code}",
        values={"transaction_type": code, "description": f"Type {code}"},
    )


@pytest.mark.integration
class TestPostgresLookups:
    """Card, account, cross-reference and reference code lookups"""

    def test_find_card_and_account(self, clean_db):
        seed(clean_db)
        lookups = PostgresLookups(clean_db)

        card = lookups.find_card(VALID_CARD)
        account = lookups.find_account(ACCOUNT_ID)
        xref = lookups.find_xref(VALID_CARD)

        assert card.account_id == ACCOUNT_ID
        assert card.active is True
        assert account.active is True
        assert xref.customer_id == CUSTOMER_ID
        assert xref.account_id == ACCOUNT_ID

    def test_missing_rows(self, clean_db):
        lookups = PostgresLookups(clean_db)

        assert lookups.find_card(VALID_CARD) is None
        assert lookups.find_account(ACCOUNT_ID) is None
        assert lookups.find_xref(VALID_CARD) is None

    def test_load_codes(self, clean_db):
        seed(clean_db)
        lookups = PostgresLookups(clean_db)

        assert lookups.load_codes("transaction_type") == {"01", "02"}
        assert lookups.load_codes("transaction_category") == {"0001", "0002"}
        with pytest.raises(ValueError):
            lookups.load_codes("merchant_type")


@pytest.mark.integration
class TestPostgresPartitionManager:
    """Monthly partition creation"""

    def test_create_then_exists(self, clean_db):
        manager = PostgresPartitionManager(clean_db)
        start, end = month_bounds("2024-03")

        assert manager.ensure_partition("transactions", "transactions_2024_03", start, end) is True
        assert manager.ensure_partition("transactions", "transactions_2024_03", start, end) is False
        assert manager.list_partitions("transactions") == ["transactions_2024_03"]

    def test_concurrent_creation(self, clean_db):
        manager = PostgresPartitionManager(clean_db)
        start, end = month_bounds("2024-05")

        with ThreadPoolExecutor(max_workers=4) as executor:
            results = list(executor.map(
                lambda _: manager.ensure_partition("transactions", "transactions_2024_05", start, end),
                range(4),
            ))

        assert results.count(True) == 1
        assert manager.list_partitions("transactions") == ["transactions_2024_05"]


@pytest.mark.integration
class TestBulkLoaderOnPostgres:
    """Atomic chunk commits through PostgresUnitOfWork"""

    @pytest.fixture
    def loader(self, clean_db):
        return PartitionAwareBulkLoader(
            PostgresUnitOfWork(clean_db),
            PostgresPartitionManager(clean_db),
            retry_policy=RetryPolicy(max_attempts=3, base_delay=0.01),
        )

    def test_commit_chunk(self, clean_db, loader):
        report = loader.load_chunk([type_row(f"{n:02d}") for n in range(10)])

        assert report.rows_inserted == 10
        assert len(clean_db.execute_query("SELECT * FROM transaction_types")) == 10

    def test_duplicate_rolls_back_chunk(self, clean_db, loader):
        rows = [type_row(f"{n:02d}") for n in range(9)] + [type_row("03")]

        with pytest.raises(PersistenceError) as exc_info:
            loader.load_chunk(rows)

        assert not exc_info.value.transient
        assert clean_db.execute_query("SELECT * FROM transaction_types") == []

    def test_existing_key_aborts_chunk(self, clean_db, loader):
        loader.load_chunk([type_row("01")])

        with pytest.raises(PersistenceError):
            loader.load_chunk([type_row("02"), type_row("01")])

        assert len(clean_db.execute_query("SELECT * FROM transaction_types")) == 1


@pytest.mark.integration
class TestAuditWriters:
    """Quarantine and job run persistence"""

    def test_write_quarantine(self, clean_db):
        writer = QuarantineWriter(clean_db)
        records = [
            QuarantineRecord(
                job_id="job-1",
                record_type="card",
                line_number=n,
                record_key=None,
                raw_line="X" * 149,
                error_kind="format",
                failed_rules=["length_mismatch"],
                error_messages=["Line is 149 bytes, expected 150"],
            )
            for n in range(1, 4)
        ]

        assert writer.write_quarantine(records) == 3
        assert writer.count_quarantined("job-1") == 3

        [row] = clean_db.execute_query("SELECT * FROM quarantine_record WHERE line_number = 2")
        assert row["failed_rules"] == ["length_mismatch"]
        assert row["reviewed"] is False

    def test_save_job_run_upserts(self, clean_db):
        writer = JobRunWriter(clean_db)
        job = JobRun(job_id="job-2", record_type="transaction", source_file="dailytran.txt", chunk_size=10)
        writer.save_job_run(job)

        job.status = JobStatus.FAILED
        job.finished_at = datetime.now(timezone.utc)
        job.counts = {"total_seen": 20, "succeeded": 10, "failed_fatal": 10}
        job.failure_point = FailurePoint(chunk_index=1, first_line_number=11, message="boom")
        job.committed_chunks = [0]
        writer.save_job_run(job)

        saved = writer.get_job_run("job-2")
        assert saved.status == JobStatus.FAILED
        assert saved.counts["failed_fatal"] == 10
        assert saved.failure_point.first_line_number == 11
        assert saved.chunk_size == 10
        assert saved.committed_chunks == [0]
        assert writer.get_job_run("job-3") is None
        assert len(clean_db.execute_query("SELECT * FROM migration_job_run")) == 1


@pytest.mark.integration
@pytest.mark.slow
class TestMigrationOnPostgres:
    """Full runs against PostgreSQL"""

    def _pipeline(self, pool, record_type, **settings):
        return MigrationPipeline(
            record_type,
            build_postgres_ports(pool),
            settings=MigrationSettings(**settings),
            today=lambda: TODAY,
        )

    def test_accounts_then_cards_then_transactions(self, clean_db, legacy_file, account_line, card_line,
                                                   xref_line, transaction_line):
        seed(clean_db)

        accounts = self._pipeline(clean_db, "account").run(legacy_file([account_line()], "acct.txt"))
        cards = self._pipeline(clean_db, "card").run(
            legacy_file([card_line(card_number="4111111111111111", account_id="00000000002")], "card.txt")
        )
        xrefs = self._pipeline(clean_db, "xref").run(
            legacy_file(
                [xref_line(card_number="4111111111111111", customer_id="000000002", account_id="00000000002")],
                "xref.txt",
            )
        )
        transactions = self._pipeline(clean_db, "transaction", chunk_size=2).run(
            legacy_file(
                [transaction_line(transaction_id=f"{n:016d}") for n in range(5)]
                + [transaction_line(transaction_id="0000000000000099", card_number="4111111111111111")],
                "tran.txt",
            )
        )

        assert accounts.status == cards.status == xrefs.status == transactions.status == JobStatus.COMPLETED
        assert transactions.counts["succeeded"] == 6

        [account] = clean_db.execute_query("SELECT * FROM accounts WHERE account_id = '00000000002'")
        assert account["current_balance"] == Decimal("1940.00")

        rows = clean_db.execute_query(
            "SELECT account_id, customer_id, amount FROM transactions ORDER BY transaction_id"
        )
        assert rows[0]["account_id"] == ACCOUNT_ID
        assert rows[0]["customer_id"] == CUSTOMER_ID
        assert rows[0]["amount"] == Decimal("-91.90")
        assert rows[-1]["account_id"] == "00000000002"
        assert rows[-1]["customer_id"] == "000000002"

        assert PostgresPartitionManager(clean_db).list_partitions("transactions") == ["transactions_2024_03"]
        job = JobRunWriter(clean_db).get_job_run(transactions.job_id)
        assert job.status == JobStatus.COMPLETED
        assert job.committed_chunks == [0, 1, 2]

    def test_skips_are_quarantined(self, clean_db, legacy_file, transaction_line):
        seed(clean_db)
        lines = [
            transaction_line(),
            transaction_line(transaction_id="0000000000000002", transaction_type="99"),
            transaction_line(transaction_id="0000000000000003", card_number="4111111111111111"),
        ]

        job = self._pipeline(clean_db, "transaction").run(legacy_file(lines))

        assert job.counts["succeeded"] == 1
        assert job.counts["skipped_by_kind"] == {"format": 0, "validation": 1, "reference": 1}
        rows = clean_db.execute_query(
            "SELECT line_number, error_kind, failed_rules FROM quarantine_record "
            "WHERE job_id = %s ORDER BY line_number",
            (job.job_id,),
        )
        assert [(r["line_number"], r["error_kind"]) for r in rows] == [(2, "validation"), (3, "reference")]

    def test_resume_after_fatal_chunk(self, clean_db, legacy_file, transaction_line):
        seed(clean_db)
        # A plain table squatting on the April partition name makes April inserts fail
        clean_db.execute_command("CREATE TABLE transactions_2024_04 (transaction_id VARCHAR(16))")
        april = [
            transaction_line(
                transaction_id=f"{n:016d}",
                original_timestamp="2024-04-02 10:37:00.000000",
                processed_timestamp="2024-04-02 10:38:00.000000",
            )
            for n in range(2, 4)
        ]
        path = legacy_file([transaction_line(transaction_id=f"{n:016d}") for n in range(2)] + april)
        pipeline = self._pipeline(clean_db, "transaction", chunk_size=2, max_workers=1, max_in_flight=1)

        first = pipeline.run(path)
        assert first.status == JobStatus.FAILED
        assert first.failure_point.chunk_index == 1

        clean_db.execute_command("DROP TABLE transactions_2024_04")
        second = pipeline.run(path, resume_job_id=first.job_id)

        assert second.status == JobStatus.COMPLETED
        assert second.counts["already_loaded"] == 2
        assert second.counts["succeeded"] == 2
        assert len(clean_db.execute_query("SELECT * FROM transactions")) == 4
        saved = JobRunWriter(clean_db).get_job_run(second.job_id)
        assert saved.resumed_from == first.job_id
        assert saved.committed_chunks == [0, 1]
