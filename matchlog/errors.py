"""
Exception taxonomy for the match timeline engine.

Every rejected operation raises one of these with the list of reasons it
failed; the aggregate is left in its last valid state.
"""
from typing import Iterable, List, Optional, Union


class MatchLogError(Exception):
    """Base class for all tracker errors."""

    def __init__(self, errors: Union[str, Iterable[str]], message: Optional[str] = None):
        if isinstance(errors, str):
            errors = [errors]
        self.errors: List[str] = list(errors)
        super().__init__(message or "; ".join(self.errors))


class LedgerValidationError(MatchLogError, ValueError):
    """Malformed goal/event payload, invalid type, time or team name."""


class LedgerIndexError(MatchLogError, IndexError):
    """Index outside the current bounds of a ledger list."""


class InvariantViolationError(MatchLogError):
    """An operation would break a ledger invariant."""


class SystemEventProtectedError(MatchLogError):
    """Attempt to edit or delete a phase-marker system event."""


class ClockStateError(MatchLogError):
    """Clock transition not valid from the current state."""


class PersistenceError(MatchLogError):
    """The persistence store failed; in-memory state is unaffected."""
