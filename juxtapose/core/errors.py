from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    FETCH = "fetch"
    VALIDATION = "validation"
    STORAGE = "storage"
    INTERNAL = "internal"


@dataclass(frozen=True)
class SyncError:
    kind: ErrorKind
    error_code: str
    message: str
    retryable: bool = False

    def describe(self) -> str:
        return f"{self.error_code}: {self.message}"


class CompressionError(ValueError):
    """Raised when a payload is not valid gzip-compressed UTF-8 text."""


class DatabaseOperationError(RuntimeError):
    """A metadata store call failed; ``error_code`` names the SQLSTATE class."""

    def __init__(self, *, error_code: str, sqlstate: str | None, retryable: bool) -> None:
        super().__init__(error_code)
        self.error_code = error_code
        self.sqlstate = sqlstate
        self.retryable = retryable

    def as_sync_error(self) -> SyncError:
        detail = f"{self.error_code} (sqlstate {self.sqlstate})" if self.sqlstate else self.error_code
        return SyncError(ErrorKind.STORAGE, "METADATA_STORE_FAILED", detail, retryable=self.retryable)
