"""Points ledger exceptions."""


class PointsError(Exception):
    """Base exception for points ledger operations."""


class LedgerStorageError(PointsError):
    """Raised when the ledger store fails mid-credit.

    Nothing was committed; the credit is safe to retry.
    """


class LockAcquisitionError(PointsError):
    """Raised when the per-event lock cannot be acquired in time."""

    def __init__(self, key: str, message: str = "timed out waiting for lock") -> None:
        self.key = key
        super().__init__(f"[{key}] {message}")
