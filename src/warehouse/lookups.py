"""
Read-only lookups against cards, accounts, card_xref and the transaction reference tables.
"""

import psycopg
from psycopg import sql

from src.core.errors import PersistenceError
from src.core.ports import AccountInfo, CardInfo, XrefInfo

from .connection import DatabaseConnectionPool

# code_set -> (table, column)
REFERENCE_TABLES = {
    "transaction_type": ("transaction_types", "transaction_type"),
    "transaction_category": ("transaction_categories", "transaction_category"),
}


class PostgresLookups:
    """
    Implements CardLookup, AccountLookup, XrefLookup and ReferenceCodeLookup over the pool.

    Database errors surface as fatal PersistenceError: a lookup that cannot
    run is not a property of the record being resolved.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def find_card(self, card_number: str) -> CardInfo | None:
        query = """
            SELECT card_number, account_id, active_status
            FROM cards
            WHERE card_number = %s
        """
        rows = self._query(query, (card_number,))
        if not rows:
            return None
        row = rows[0]
        return CardInfo(row["card_number"], row["account_id"], bool(row["active_status"]))

    def find_account(self, account_id: str) -> AccountInfo | None:
        query = """
            SELECT account_id, active_status
            FROM accounts
            WHERE account_id = %s
        """
        rows = self._query(query, (account_id,))
        if not rows:
            return None
        row = rows[0]
        return AccountInfo(row["account_id"], bool(row["active_status"]))

    def find_xref(self, card_number: str) -> XrefInfo | None:
        query = """
            SELECT card_number, customer_id, account_id
            FROM card_xref
            WHERE card_number = %s
        """
        rows = self._query(query, (card_number,))
        if not rows:
            return None
        row = rows[0]
        return XrefInfo(row["card_number"], row["customer_id"], row["account_id"])

    def load_codes(self, code_set: str) -> set[str]:
        if code_set not in REFERENCE_TABLES:
            raise ValueError(f"Unknown reference code set: {code_set}")

        table, column = REFERENCE_TABLES[code_set]
        query = sql.SQL("SELECT {column} AS code FROM {table}").format(
            column=sql.Identifier(column),
            table=sql.Identifier(table),
        )
        return {row["code"] for row in self._query(query, None)}

    def _query(self, query, params: tuple | None) -> list[dict]:
        try:
            return self.pool.execute_query(query, params)
        except psycopg.Error as e:
            raise PersistenceError(f"Lookup failed: {e}", transient=False) from e
