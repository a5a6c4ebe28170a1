"""
End-to-end test for transaction migration.

Tests the complete flow: fixed-width file → decode → validate → resolve
card → partitioned load, including a fatal partition failure mid-run and
resuming the failed job.
"""

import pytest

from src.batch.pipeline import MigrationPipeline, PipelinePorts
from src.core.models import JobStatus
from src.core.settings import MigrationSettings
from src.warehouse.memory_store import InMemoryWarehouse

VALID_CARD = "4532015112830366"
ACCOUNT_ID = "00000000001"
CUSTOMER_ID = "000000001"


@pytest.fixture
def store(memory_store):
    memory_store.add_card(VALID_CARD, ACCOUNT_ID)
    memory_store.add_card("5555555555554444", ACCOUNT_ID, active=False)
    return memory_store


def run(store, path, today, record_type="transaction", resume_job_id=None, **settings):
    pipeline = MigrationPipeline(
        record_type,
        PipelinePorts.from_store(store),
        settings=MigrationSettings(**{"chunk_size": 3, "max_workers": 2, **settings}),
        today=today,
        sleep=lambda _: None,
    )
    return pipeline.run(path, resume_job_id=resume_job_id)


def month_line(transaction_line, n, month):
    return transaction_line(
        transaction_id=f"{n:016d}",
        original_timestamp=f"2024-{month:02d}-10 09:00:00.000000",
        processed_timestamp=f"2024-{month:02d}-10 09:30:00.000000",
    )


@pytest.mark.e2e
def test_transactions_across_months(store, legacy_file, transaction_line, today):
    """Each month gets exactly one partition and every row lands."""
    lines = [month_line(transaction_line, n, 1 + n % 4) for n in range(12)]

    job = run(store, legacy_file(lines), today)

    assert job.status == JobStatus.COMPLETED
    assert job.counts["succeeded"] == 12
    assert sorted(store.partitions["transactions"]) == [
        "transactions_2024_01",
        "transactions_2024_02",
        "transactions_2024_03",
        "transactions_2024_04",
    ]
    assert store.partition_creations == 4
    assert all(r["account_id"] == ACCOUNT_ID for r in store.rows("transactions"))


@pytest.mark.e2e
def test_dirty_transaction_file(store, legacy_file, transaction_line, today):
    """Skipped transactions are quarantined with their category."""
    lines = [
        transaction_line(),
        transaction_line(transaction_id="0000000000000002", amount="00000009190X"),
        transaction_line(transaction_id="0000000000000003", card_number="5555555555554444"),
        transaction_line(transaction_id="0000000000000004", card_number="4111111111111111"),
        transaction_line(transaction_id="0000000000000005", transaction_category="0009"),
        transaction_line(transaction_id="0000000000000006", merchant_name=""),
    ]

    job = run(store, legacy_file(lines), today, max_workers=1)

    assert job.counts["succeeded"] == 1
    assert job.counts["skipped_by_kind"] == {"format": 1, "validation": 2, "reference": 2}
    assert job.counts["skip_reasons"]["card inactive"] == 1
    assert job.counts["skip_reasons"]["card not found"] == 1
    assert len(store.quarantined) == 5


@pytest.mark.e2e
def test_partition_failure_stops_the_job(store, legacy_file, transaction_line, today):
    """
    Lines 1-3 are March, 4-6 April (partition creation fails), 7-9 March.

    The March chunk before the failure stays committed; the job is failed
    with the failing chunk as its failure point.
    """
    store.fail_partition("transactions_2024_04")
    lines = (
        [month_line(transaction_line, n, 3) for n in range(3)]
        + [month_line(transaction_line, n, 4) for n in range(3, 6)]
        + [month_line(transaction_line, n, 3) for n in range(6, 9)]
    )

    job = run(store, legacy_file(lines), today, max_workers=1, max_in_flight=1)

    assert job.status == JobStatus.FAILED
    assert job.failure_point.chunk_index == 1
    assert job.failure_point.first_line_number == 4
    assert job.counts["succeeded"] == 3
    assert job.counts["failed_fatal"] == 3
    assert len(store.rows("transactions")) == 3
    assert store.job_runs[job.job_id].status == JobStatus.FAILED


@pytest.mark.e2e
def test_transient_conflicts_do_not_fail_the_job(store, legacy_file, transaction_line, today):
    """Serialization conflicts are retried and the job completes."""
    store.fail_next_commits(2)
    lines = [month_line(transaction_line, n, 3) for n in range(9)]

    job = run(store, legacy_file(lines), today)

    assert job.status == JobStatus.COMPLETED
    assert job.counts["succeeded"] == 9
    assert len(store.rows("transactions")) == 9


@pytest.mark.e2e
def test_resume_completes_the_failed_job(store, legacy_file, transaction_line, today):
    """After the partition problem is fixed, resuming loads the rest exactly once."""
    store.fail_partition("transactions_2024_04")
    lines = (
        [month_line(transaction_line, n, 3) for n in range(3)]
        + [month_line(transaction_line, n, 4) for n in range(3, 6)]
        + [month_line(transaction_line, n, 3) for n in range(6, 9)]
    )
    path = legacy_file(lines)
    failed = run(store, path, today, max_workers=1, max_in_flight=1)

    store.clear_faults()
    resumed = run(store, path, today, resume_job_id=failed.job_id)

    assert resumed.status == JobStatus.COMPLETED
    assert resumed.counts["already_loaded"] == 3
    assert resumed.counts["succeeded"] == 6
    assert sorted(r["transaction_id"] for r in store.rows("transactions")) == [f"{n:016d}" for n in range(9)]
    assert store.job_runs[failed.job_id].status == JobStatus.FAILED


@pytest.mark.e2e
def test_customer_comes_from_the_cross_reference_file(
    legacy_file, account_line, card_line, xref_line, transaction_line, today
):
    """Accounts, cards, cross-references, then transactions: every link is loaded, none seeded."""
    store = InMemoryWarehouse()
    store.add_reference_codes("transaction_type", ["01"])
    store.add_reference_codes("transaction_category", ["0001"])

    steps = [
        ("account", [account_line(account_id=ACCOUNT_ID)]),
        ("card", [card_line()]),
        ("xref", [xref_line()]),
        ("transaction", [transaction_line()]),
    ]
    for record_type, lines in steps:
        job = run(store, legacy_file(lines, name=f"{record_type}.txt"), today, record_type=record_type)
        assert job.status == JobStatus.COMPLETED
        assert job.counts["succeeded"] == 1, record_type

    [row] = store.rows("transactions")
    assert row["account_id"] == ACCOUNT_ID
    assert row["customer_id"] == CUSTOMER_ID
