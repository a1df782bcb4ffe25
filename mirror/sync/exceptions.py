"""
Exceptions for sync operations.

Anything raised out of the engine is fatal to the run; per-container
problems are recorded as soft failures on the summary instead.
"""


class SyncError(Exception):
    """Base exception for sync operations."""

    def __init__(self, message: str, object_id: str | None = None, operation: str | None = None):
        super().__init__(message)
        self.object_id = object_id
        self.operation = operation

    def __str__(self):
        message = super().__str__()
        context = ", ".join(
            f"{name}={value}"
            for name, value in (("id", self.object_id), ("operation", self.operation))
            if value
        )
        return f"{message} ({context})" if context else message


class SyncAbortedError(SyncError):
    """Sync was aborted before it could start (e.g., root disabled)."""

    pass


class StoreError(SyncError):
    """Failed to write to the local store."""

    pass


class StructuralError(SyncError):
    """A remote object lacked a field the mirror schema requires."""

    pass


class RetriesExhaustedError(SyncError):
    """A transient remote error persisted through every retry attempt."""

    def __init__(self, message: str, attempts: int, last_error: Exception):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error
