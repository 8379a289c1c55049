"""Exceptions raised by the ledger core."""


class LedgerError(Exception):
    """Base error for ledger operations."""
    pass


class NotFoundError(LedgerError):
    """A referenced record does not exist."""
    pass


class InvalidTransitionError(LedgerError):
    """Transaction status change that the lifecycle does not allow."""
    pass


class StatementParseError(LedgerError):
    """The statement could not be parsed at all."""
    pass


class JobFailedError(LedgerError):
    """An aggregation job aborted; its status record holds the message."""

    def __init__(self, job: str, message: str):
        super().__init__(f"{job}: {message}")
        self.job = job
        self.message = message
