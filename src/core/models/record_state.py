"""
Per-record state machine for the migration pipeline.
"""

from enum import Enum


class RecordState(str, Enum):
    """
    PENDING -> DECODED -> VALIDATED -> RESOLVED -> LOADED.

    SKIPPED is reachable from any stage before LOADED. FAILED_FATAL is reached
    only from the load stage (partition creation or exhausted persistence).
    """

    PENDING = "pending"
    DECODED = "decoded"
    VALIDATED = "validated"
    RESOLVED = "resolved"
    LOADED = "loaded"
    SKIPPED = "skipped"
    FAILED_FATAL = "failed_fatal"

    @property
    def is_terminal(self) -> bool:
        return self in (RecordState.LOADED, RecordState.SKIPPED, RecordState.FAILED_FATAL)


_TRANSITIONS: dict[RecordState, set[RecordState]] = {
    RecordState.PENDING: {RecordState.DECODED, RecordState.SKIPPED},
    RecordState.DECODED: {RecordState.VALIDATED, RecordState.SKIPPED},
    RecordState.VALIDATED: {RecordState.RESOLVED, RecordState.SKIPPED},
    RecordState.RESOLVED: {RecordState.LOADED, RecordState.FAILED_FATAL},
    RecordState.LOADED: set(),
    RecordState.SKIPPED: set(),
    RecordState.FAILED_FATAL: set(),
}


def advance(current: RecordState, target: RecordState) -> RecordState:
    """
    Move a record to its next state.

    Raises:
        ValueError: If the transition is not allowed
    """
    if target not in _TRANSITIONS[current]:
        raise ValueError(f"Illegal record state transition {current.value} -> {target.value}")
    return target
