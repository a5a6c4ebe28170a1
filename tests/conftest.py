"""
Pytest configuration and fixtures for carddemo-migration tests

This module provides shared fixtures for unit, integration, and E2E tests.
"""
import os
from datetime import date
from typing import Callable, Generator

import psycopg
from psycopg import sql
import pytest
from testcontainers.postgres import PostgresContainer

from src.core.decoder import encode
from src.warehouse.connection import DatabaseConnectionPool
from src.warehouse.memory_store import InMemoryWarehouse

# Fixed clock so that date rules are deterministic
TODAY = date(2025, 6, 15)

VALID_CARD = "4532015112830366"
ACCOUNT_ID = "00000000001"
CUSTOMER_ID = "000000001"


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full pipeline"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance with initialized database
    """
    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_migration",
        password="test_password",
        dbname="test_carddemo",
        driver=None,
    ) as postgres:
        init_sql_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)),
            "docker",
            "init-db.sql"
        )

        with open(init_sql_path, 'r') as f:
            init_sql = f.read()

        with psycopg.connect(postgres.get_connection_url()) as conn:
            with conn.cursor() as cur:
                cur.execute(init_sql)
            conn.commit()

        yield postgres


@pytest.fixture(scope="function")
def db_pool(postgres_container) -> Generator[DatabaseConnectionPool, None, None]:
    """
    Provide an open connection pool against the test container

    Yields:
        DatabaseConnectionPool
    """
    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_carddemo",
        user="test_migration",
        password="test_password",
        min_size=1,
        max_size=8,
    )
    pool.open()
    yield pool
    pool.close()


@pytest.fixture(scope="function")
def clean_db(db_pool) -> Generator[DatabaseConnectionPool, None, None]:
    """
    Provide a clean database: drop transaction partitions, truncate all tables

    Yields:
        DatabaseConnectionPool over the clean database
    """
    with db_pool.get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(
                "SELECT inhrelid::regclass::text AS name FROM pg_inherits "
                "WHERE inhparent = 'transactions'::regclass"
            )
            for row in cur.fetchall():
                cur.execute(sql.SQL("DROP TABLE {}").format(sql.Identifier(row["name"])))

            cur.execute(
                "TRUNCATE TABLE transactions, card_xref, cards, accounts, transaction_types, "
                "transaction_categories, quarantine_record, migration_job_run CASCADE"
            )
        conn.commit()

    yield db_pool


# =======================
# IN-MEMORY STORE FIXTURES
# =======================

@pytest.fixture(scope="function")
def memory_store() -> InMemoryWarehouse:
    """
    In-memory warehouse seeded with reference codes and one active account.

    No cards or cross-references are seeded, so card migrations start from
    an empty cards table.
    """
    store = InMemoryWarehouse()
    store.add_reference_codes("transaction_type", ["01", "02"])
    store.add_reference_codes("transaction_category", ["0001", "0002"])
    store.add_account(ACCOUNT_ID, active=True)
    return store


@pytest.fixture(scope="function")
def today() -> Callable[[], date]:
    return lambda: TODAY


# =======================
# FIXED-WIDTH LINE BUILDERS
# =======================

@pytest.fixture(scope="session")
def card_line() -> Callable[..., str]:
    """Build a 150-byte card line; keyword arguments override fields."""

    def build(**overrides) -> str:
        values = {
            "card_number": VALID_CARD,
            "account_id": ACCOUNT_ID,
            "cvv": "123",
            "embossed_name": "JOHN DOE",
            "expiration_date": "2027-06-15",
            "active_status": "Y",
        }
        values.update(overrides)
        return encode(values, "card")

    return build


@pytest.fixture(scope="session")
def account_line() -> Callable[..., str]:
    """Build a 300-byte account line; keyword arguments override fields."""

    def build(**overrides) -> str:
        values = {
            "account_id": "00000000002",
            "active_status": "Y",
            "current_balance": "00000194000{",
            "credit_limit": "00000202000{",
            "cash_credit_limit": "00000102000{",
            "open_date": "2014-11-20",
            "expiration_date": "2027-05-20",
            "reissue_date": "2025-05-20",
            "cycle_credit": "00000000000{",
            "cycle_debit": "00000000000{",
            "address_zip": "98101",
            "group_id": "DEFAULT",
        }
        values.update(overrides)
        return encode(values, "account")

    return build


@pytest.fixture(scope="session")
def transaction_line() -> Callable[..., str]:
    """Build a 350-byte transaction line; keyword arguments override fields."""

    def build(**overrides) -> str:
        values = {
            "transaction_id": "0000000000683580",
            "transaction_type": "01",
            "transaction_category": "0001",
            "transaction_source": "POS TERM",
            "description": "Purchase at Abshire-Lowe",
            "amount": "00000009190}",
            "merchant_id": "800000000",
            "merchant_name": "Abshire-Lowe",
            "merchant_city": "Seattle",
            "merchant_zip": "98101",
            "card_number": VALID_CARD,
            "original_timestamp": "2024-03-12 10:37:00.000000",
            "processed_timestamp": "2024-03-12 10:38:00.000000",
        }
        values.update(overrides)
        return encode(values, "transaction")

    return build


@pytest.fixture(scope="session")
def xref_line() -> Callable[..., str]:
    """Build a 50-byte card cross-reference line; keyword arguments override fields."""

    def build(**overrides) -> str:
        values = {
            "card_number": VALID_CARD,
            "customer_id": CUSTOMER_ID,
            "account_id": ACCOUNT_ID,
        }
        values.update(overrides)
        return encode(values, "xref")

    return build


@pytest.fixture(scope="function")
def legacy_file(tmp_path) -> Callable[[list[str]], str]:
    """Write lines to a temporary fixed-width file and return its path."""

    def write(lines: list[str], name: str = "legacy.txt") -> str:
        path = tmp_path / name
        path.write_text("".join(line + "\n" for line in lines), encoding="ascii")
        return str(path)

    return write


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture(scope="session", autouse=True)
def test_env_vars():
    """
    Set test environment variables

    This fixture loads test.env and sets environment variables
    """
    from dotenv import load_dotenv

    env_path = os.path.join(
        os.path.dirname(os.path.dirname(__file__)),
        "config",
        "test.env"
    )

    if os.path.exists(env_path):
        load_dotenv(env_path, override=True)
