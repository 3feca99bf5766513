"""Error taxonomy and classification for outbound provider calls.

Provider adapters should raise :class:`ProviderError`. Its kind is given
explicitly or derived from the status code and message. Anything else reaching the retry controller (httpx
exceptions, builtin socket errors, SDK errors exposing ``code`` or
``status_code``) is mapped onto the same closed set of kinds by
:func:`classify_error`.
"""

import asyncio
import socket
from enum import Enum
from typing import Optional

import httpx


class ErrorKind(str, Enum):
    """Closed set of failure kinds."""

    CONNECTION_RESET = "connection_reset"
    HOST_NOT_FOUND = "host_not_found"
    CONNECTION_REFUSED = "connection_refused"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    CLIENT_ERROR = "client_error"
    AUTHENTICATION = "authentication"
    EMPTY_RESPONSE = "empty_response"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset({
    ErrorKind.CONNECTION_RESET,
    ErrorKind.HOST_NOT_FOUND,
    ErrorKind.CONNECTION_REFUSED,
    ErrorKind.TIMEOUT,
    ErrorKind.RATE_LIMITED,
    ErrorKind.SERVER_ERROR,
})

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

# Error codes as reported by Node-style SDKs and some HTTP clients
_CODE_KINDS = {
    "ECONNRESET": ErrorKind.CONNECTION_RESET,
    "ENOTFOUND": ErrorKind.HOST_NOT_FOUND,
    "ECONNREFUSED": ErrorKind.CONNECTION_REFUSED,
    "ETIMEDOUT": ErrorKind.TIMEOUT,
    "TIMEOUT": ErrorKind.TIMEOUT,
    "RATE_LIMITED": ErrorKind.RATE_LIMITED,
    "SERVER_ERROR": ErrorKind.SERVER_ERROR,
}

_DNS_FAILURE_MARKERS = (
    "Name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "No address associated",
)


class ProviderError(Exception):
    """Raised by provider adapters for a failed generation call."""

    def __init__(
        self,
        message: str,
        kind: Optional[ErrorKind] = None,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        provider: Optional[str] = None,
    ):
        super().__init__(message)
        if kind is None:
            kind = _derive_kind(message, status_code)
        self.kind = kind
        self.status_code = status_code
        self.retry_after = retry_after
        self.provider = provider

    @property
    def retryable(self) -> bool:
        """Check if this error is worth another attempt."""
        return self.kind in RETRYABLE_KINDS

    @classmethod
    def from_status(
        cls,
        status_code: int,
        message: str,
        retry_after: Optional[float] = None,
        provider: Optional[str] = None,
    ) -> "ProviderError":
        """Build an error for an HTTP status code."""
        return cls(
            message,
            kind=kind_for_status(status_code),
            status_code=status_code,
            retry_after=retry_after,
            provider=provider,
        )


def kind_for_status(status_code: int) -> ErrorKind:
    """Map an HTTP status code onto an error kind."""
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code in RETRYABLE_STATUS_CODES:
        return ErrorKind.SERVER_ERROR
    if status_code in (401, 403):
        return ErrorKind.AUTHENTICATION
    if 400 <= status_code < 500:
        return ErrorKind.CLIENT_ERROR
    return ErrorKind.UNKNOWN


def _kind_from_type(error: BaseException) -> Optional[ErrorKind]:
    if isinstance(error, httpx.HTTPStatusError):
        return kind_for_status(error.response.status_code)
    if isinstance(error, httpx.TimeoutException):
        return ErrorKind.TIMEOUT
    if isinstance(error, httpx.ConnectError):
        if any(marker in str(error) for marker in _DNS_FAILURE_MARKERS):
            return ErrorKind.HOST_NOT_FOUND
        return ErrorKind.CONNECTION_REFUSED
    if isinstance(error, (httpx.NetworkError, httpx.RemoteProtocolError)):
        return ErrorKind.CONNECTION_RESET
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(error, socket.gaierror):
        return ErrorKind.HOST_NOT_FOUND
    if isinstance(error, ConnectionResetError):
        return ErrorKind.CONNECTION_RESET
    if isinstance(error, ConnectionRefusedError):
        return ErrorKind.CONNECTION_REFUSED
    return None


def _kind_from_code(error: BaseException) -> Optional[ErrorKind]:
    code = getattr(error, "code", None)
    if isinstance(code, str):
        return _CODE_KINDS.get(code)
    return None


def _kind_from_status(error: BaseException) -> Optional[ErrorKind]:
    for attr in ("status_code", "status"):
        status = getattr(error, attr, None)
        if isinstance(status, int) and not isinstance(status, bool):
            return kind_for_status(status)
    return None


def _kind_from_message(message: str) -> Optional[ErrorKind]:
    if "timeout" in message:
        return ErrorKind.TIMEOUT
    if "rate limit" in message:
        return ErrorKind.RATE_LIMITED
    return None


def _first_retryable(kinds: list[ErrorKind]) -> ErrorKind:
    for kind in kinds:
        if kind in RETRYABLE_KINDS:
            return kind
    return kinds[0] if kinds else ErrorKind.UNKNOWN


def _derive_kind(message: str, status_code: Optional[int]) -> ErrorKind:
    kinds = [
        kind
        for kind in (
            kind_for_status(status_code) if status_code is not None else None,
            _kind_from_message(message),
        )
        if kind is not None and kind != ErrorKind.UNKNOWN
    ]
    return _first_retryable(kinds)


def classify_error(error: BaseException) -> ErrorKind:
    """Classify an exception into an :class:`ErrorKind`.

    A :class:`ProviderError` with a known kind is trusted as-is. For any other
    exception every signal is inspected (exception type, ``code``,
    ``status_code``/``status``, message text) and the first retryable kind
    wins, so an error is retryable if any one signal says so.
    """
    if isinstance(error, ProviderError) and error.kind != ErrorKind.UNKNOWN:
        return error.kind

    kinds = [
        kind
        for kind in (
            _kind_from_type(error),
            _kind_from_code(error),
            _kind_from_status(error),
            _kind_from_message(str(error)),
        )
        if kind is not None
    ]
    return _first_retryable(kinds)


def is_retryable(error: BaseException) -> bool:
    """Check if an exception should be retried."""
    return classify_error(error) in RETRYABLE_KINDS
