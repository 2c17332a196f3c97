"""Single exception type for storage failures, tagged by category."""

from __future__ import annotations

from enum import Enum


class ErrorType(str, Enum):
    CONNECTION_FAILED = "CONNECTION_FAILED"
    QUERY_EXECUTION_FAILED = "QUERY_EXECUTION_FAILED"
    DATA_ACCESS_FAILED = "DATA_ACCESS_FAILED"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    TRANSACTION_FAILED = "TRANSACTION_FAILED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class StorageError(Exception):
    """Raised by every database-facing layer.

    The original driver exception, when there is one, is chained as
    ``__cause__`` by the ``raise ... from exc`` at the call site.
    """

    def __init__(self, message: str, error_type: ErrorType = ErrorType.UNKNOWN_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type

    def __str__(self) -> str:
        return f"[{self.error_type.value}] {self.message}"
