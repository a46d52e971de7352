"""Typed errors for the offline queue and synchronization engine."""


class OfflineSyncError(Exception):
    """Base class for offline queue related errors."""


class StorageUnavailableError(OfflineSyncError):
    """Raised when the durable store cannot be read or written."""


class InvalidOperationError(OfflineSyncError):
    """Raised when an operation cannot be turned into a queue entry."""


class OfflineError(OfflineSyncError):
    """Raised when a sync is requested while the remote API is unreachable."""


class ReplayError(OfflineSyncError):
    """Raised when replaying a queued operation against the remote API fails.

    ``retryable`` is False only when the failure is known to be permanent,
    e.g. a client error with ``fail_fast_on_client_errors`` enabled.
    """

    def __init__(self, message: str, *, retryable: bool = True, status_code: int | None = None):
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code
