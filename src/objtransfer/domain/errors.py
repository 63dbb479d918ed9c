"""
Transfer error taxonomy and classification.

Every failure that reaches a Transport boundary is turned into a
``TransferError`` so the dispatcher can relay a uniform ``Error`` notification.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    FILE_NOT_FOUND = "file_not_found"
    PERMISSION_DENIED = "permission_denied"
    NETWORK_TIMEOUT = "network_timeout"
    SERVER_ERROR = "server_error"
    UNKNOWN = "unknown"


class TransferError(Exception):
    """Base exception for transfer failures."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


class LocalFileNotFoundError(TransferError):
    kind = ErrorKind.FILE_NOT_FOUND


class PermissionDeniedError(TransferError):
    kind = ErrorKind.PERMISSION_DENIED


class NetworkTimeoutError(TransferError):
    """The stall watchdog fired or the connection timed out."""

    kind = ErrorKind.NETWORK_TIMEOUT


class StreamAbortedError(TransferError):
    """Raised by a part reader whose stream was aborted (pause or stall)."""

    kind = ErrorKind.NETWORK_TIMEOUT


class ServerError(TransferError):
    """The storage service answered with an error status."""

    kind = ErrorKind.SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None,
                 cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.status_code = status_code

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


def classify_exception(exc: BaseException) -> TransferError:
    """Map an arbitrary exception onto the transfer taxonomy."""
    if isinstance(exc, TransferError):
        return exc
    if isinstance(exc, FileNotFoundError):
        return LocalFileNotFoundError(str(exc), cause=exc)
    if isinstance(exc, PermissionError):
        return PermissionDeniedError(str(exc), cause=exc)
    if isinstance(exc, TimeoutError):
        return NetworkTimeoutError(str(exc) or "network connection timed out", cause=exc)

    status_code = getattr(exc, "status_code", None)
    if status_code is None:
        # requests.HTTPError keeps the status on its response
        status_code = getattr(getattr(exc, "response", None), "status_code", None)
    if isinstance(status_code, int):
        return ServerError(f"Server code = {status_code}", status_code=status_code, cause=exc)

    message = str(exc) or type(exc).__name__
    return TransferError(message, cause=exc)
