"""
Cross-reference resolution: card -> account -> customer.

Lookups go through injected ports. Results are memoized in per-run caches
that the orchestrator creates and shares between worker threads.
"""

import threading

from src.core.models import CrossReferenceResult
from src.core.ports import AccountLookup, CardLookup, ReferenceCodeLookup, XrefLookup
from src.observability.logger import get_logger

logger = get_logger(__name__)

CARD_NOT_FOUND = "card not found"
CARD_INACTIVE = "card inactive"
ACCOUNT_NOT_FOUND_OR_INACTIVE = "account not found/inactive"
CARD_ACCOUNT_MISMATCH = "card linked to a different account"


class ResolutionCache:
    """
    Thread-safe, append-only memo of resolution results.

    Two threads may resolve the same key concurrently; both compute the same
    result and the last write wins.
    """

    def __init__(self):
        self._results: dict[str, CrossReferenceResult] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> CrossReferenceResult | None:
        with self._lock:
            result = self._results.get(key)
            if result is None:
                self.misses += 1
            else:
                self.hits += 1
            return result

    def put(self, key: str, result: CrossReferenceResult) -> None:
        with self._lock:
            self._results[key] = result

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)


class ReferenceCodeCache:
    """
    Per-run cache of reference code sets (transaction types and categories).

    Each set is loaded once, on first use, under the cache lock.
    """

    def __init__(self, lookup: ReferenceCodeLookup):
        self.lookup = lookup
        self._sets: dict[str, frozenset[str]] = {}
        self._lock = threading.Lock()

    def codes(self, code_set: str) -> frozenset[str]:
        with self._lock:
            if code_set not in self._sets:
                self._sets[code_set] = frozenset(self.lookup.load_codes(code_set))
                logger.debug(f"Loaded {len(self._sets[code_set])} {code_set} codes")
            return self._sets[code_set]

    def exists(self, code_set: str, code: str) -> bool:
        return code in self.codes(code_set)


class CrossReferenceResolver:
    """
    Resolves card numbers and account ids to their owning entities.

    The customer of a card comes from the card cross-reference table; a
    card without a cross-reference row resolves with no customer.

    Args:
        card_lookup: Port for the cards table
        account_lookup: Port for the accounts table
        cache: Per-run ResolutionCache, shared between workers
        xref_lookup: Port for the card_xref table (customers unresolved when None)
    """

    def __init__(
        self,
        card_lookup: CardLookup,
        account_lookup: AccountLookup,
        cache: ResolutionCache | None = None,
        xref_lookup: XrefLookup | None = None,
    ):
        self.card_lookup = card_lookup
        self.account_lookup = account_lookup
        self.xref_lookup = xref_lookup
        self.cache = cache if cache is not None else ResolutionCache()

    def resolve(self, card_number: str) -> CrossReferenceResult:
        """
        Resolve a card to its active account and customer.

        Returns:
            Invalid result with "card not found", "card inactive" or
            "account not found/inactive"; otherwise valid(account_id, customer_id)
        """
        key = f"card:{card_number}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        card = self.card_lookup.find_card(card_number)
        if card is None:
            result = CrossReferenceResult.rejected(CARD_NOT_FOUND)
        elif not card.active:
            result = CrossReferenceResult.rejected(CARD_INACTIVE)
        else:
            result = self._resolve_account(card.account_id)
            if result.valid:
                result = CrossReferenceResult.resolved(
                    card.account_id, self._customer_of(card_number, card.account_id)
                )

        self.cache.put(key, result)
        return result

    def resolve_account(self, account_id: str) -> CrossReferenceResult:
        """Resolve an account id; the account must exist and be active."""
        key = f"account:{account_id}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        result = self._resolve_account(account_id)
        self.cache.put(key, result)
        return result

    def resolve_xref(self, card_number: str, account_id: str) -> CrossReferenceResult:
        """
        Check a cross-reference line against the cards table.

        The card must exist and belong to account_id. Inactive cards keep
        their link.
        """
        key = f"xref:{card_number}:{account_id}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        card = self.card_lookup.find_card(card_number)
        if card is None:
            result = CrossReferenceResult.rejected(CARD_NOT_FOUND)
        elif card.account_id != account_id:
            result = CrossReferenceResult.rejected(CARD_ACCOUNT_MISMATCH)
        else:
            result = CrossReferenceResult.resolved(account_id)

        self.cache.put(key, result)
        return result

    def _resolve_account(self, account_id: str) -> CrossReferenceResult:
        account = self.account_lookup.find_account(account_id)
        if account is None or not account.active:
            return CrossReferenceResult.rejected(ACCOUNT_NOT_FOUND_OR_INACTIVE)
        return CrossReferenceResult.resolved(account.account_id)

    def _customer_of(self, card_number: str, account_id: str) -> str | None:
        if self.xref_lookup is None:
            return None
        xref = self.xref_lookup.find_xref(card_number)
        if xref is None:
            return None
        if xref.account_id != account_id:
            logger.warning(
                f"Cross-reference for card {card_number[-4:]} names account {xref.account_id}, "
                f"card belongs to {account_id}; customer left unresolved"
            )
            return None
        return xref.customer_id
