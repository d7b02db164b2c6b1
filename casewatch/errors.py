"""Exception hierarchy.

Selection errors abort a draw and reach the caller. Persistence errors stay
inside the monitoring layer, where they are logged and degrade to ``None``,
an unhealthy report, or a requeued batch.
"""


class CaseWatchError(Exception):
    """Base class for all package errors."""


class SelectionError(CaseWatchError):
    """A reward draw could not be completed."""


class ConfigurationError(SelectionError):
    """Malformed or degenerate rarity distribution or item weights."""


class EmptyPoolError(SelectionError):
    """The chosen rarity tier has no eligible item."""

    def __init__(self, rarity: str, case_id: str = ""):
        self.rarity = rarity
        self.case_id = case_id
        suffix = f" in case {case_id}" if case_id else ""
        super().__init__(f"No items found for rarity: {rarity}{suffix}")


class CaseNotFoundError(SelectionError):
    def __init__(self, case_id: str):
        self.case_id = case_id
        super().__init__(f"Case type not found or inactive: {case_id}")


class PersistenceError(CaseWatchError):
    """Metric store write or query failed."""


class TransientFlushFailure(PersistenceError):
    """A flush failed and its batch was put back into the buffer."""

    def __init__(self, batch_size: int, cause: BaseException):
        self.batch_size = batch_size
        self.cause = cause
        super().__init__(f"Failed to flush {batch_size} metrics, requeued: {cause}")
