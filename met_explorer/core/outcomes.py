"""Classified outcomes for outbound calls.

Every outbound call resolves to a ``CallOutcome``: either a payload or a
``CallFailure`` tagged with one of a small, stable set of failure kinds.
Failures carry a ``user_safe`` flag.  When it is False the raw ``message`` is
diagnostic text (exception strings, validation errors) that is logged but
never shown; ``user_message`` substitutes a paraphrase instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FailureKind(Enum):
    """Failure taxonomy for outbound calls and host delivery."""

    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"
    HTTP_STATUS = "http_status"
    SHAPE_MISMATCH = "shape_mismatch"
    HOST_REJECTED = "host_rejected"


# Paraphrases used whenever a failure's own message is internal-only
GENERIC_MESSAGES: Dict[FailureKind, str] = {
    FailureKind.TIMEOUT: "The Met collection API did not respond in time. Please try again.",
    FailureKind.UNREACHABLE: (
        "Could not reach the Met collection API. Check your connection and try again."
    ),
    FailureKind.HTTP_STATUS: "The Met collection API rejected the request.",
    FailureKind.SHAPE_MISMATCH: "Received an unexpected response from the Met collection API.",
    FailureKind.HOST_REJECTED: "The host did not accept the update.",
}


@dataclass(frozen=True)
class CallFailure:
    """A classified failure.

    Attributes
    ----------
    kind : FailureKind
        Which branch of the taxonomy this failure belongs to.
    message : str
        Either a curated, user-facing sentence (``user_safe=True``) or raw
        diagnostic text (``user_safe=False``).
    user_safe : bool
        Whether ``message`` may be shown to an end user verbatim.
    status_code : int, optional
        HTTP status for ``HTTP_STATUS`` failures.
    """

    kind: FailureKind
    message: str
    user_safe: bool = False
    status_code: Optional[int] = None

    @property
    def user_message(self) -> str:
        """Text that is always safe to display."""
        if self.user_safe:
            return self.message
        return GENERIC_MESSAGES[self.kind]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (internal message included, for logs)."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "user_safe": self.user_safe,
            "status_code": self.status_code,
            "user_message": self.user_message,
        }


@dataclass(frozen=True)
class CallOutcome(Generic[T]):
    """Either a successful payload or a classified failure."""

    value: Optional[T] = None
    failure: Optional[CallFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T) -> "CallOutcome[T]":
        return cls(value=value)

    @classmethod
    def failed(cls, failure: CallFailure) -> "CallOutcome[T]":
        return cls(failure=failure)

    def unwrap(self) -> T:
        """Return the payload or raise ``MetApiError`` with the failure."""
        if self.failure is not None:
            raise MetApiError(self.failure)
        return self.value  # type: ignore[return-value]


class MetApiError(Exception):
    """Raised when a page-level or detail call fails.

    ``str(error)`` is always the user-safe message; the classified failure
    is available on ``error.failure``.
    """

    def __init__(self, failure: CallFailure) -> None:
        super().__init__(failure.user_message)
        self.failure = failure

    @property
    def kind(self) -> FailureKind:
        return self.failure.kind

    @property
    def status_code(self) -> Optional[int]:
        return self.failure.status_code


def status_message(status_code: int) -> str:
    """Pick a human-readable message for a failing HTTP status."""
    if status_code == 404:
        return "The requested item was not found in the Met collection."
    if status_code == 429:
        return (
            "The Met collection API is rate limiting requests right now. "
            "Please wait a moment and try again."
        )
    if status_code >= 500:
        return (
            f"The Met collection API is having problems (status {status_code}). "
            "Please try again later."
        )
    return f"The Met collection API rejected the request (status {status_code})."


def classify_status(status_code: int) -> CallFailure:
    """Classify a non-success HTTP status."""
    return CallFailure(
        kind=FailureKind.HTTP_STATUS,
        message=status_message(status_code),
        user_safe=True,
        status_code=status_code,
    )


def timeout_failure(timeout: float) -> CallFailure:
    return CallFailure(
        kind=FailureKind.TIMEOUT,
        message=f"The Met collection API did not respond within {timeout:g}s.",
        user_safe=True,
    )


def shape_failure(detail: str) -> CallFailure:
    return CallFailure(kind=FailureKind.SHAPE_MISMATCH, message=detail, user_safe=False)


def classify_exception(exception: BaseException, timeout: float) -> CallFailure:
    """Classify an exception raised while issuing a call.

    Args:
        exception: The exception raised by the transport or the timeout race
        timeout: The per-call timeout that was in force

    Returns:
        CallFailure for the matching taxonomy branch
    """
    if isinstance(exception, (TimeoutError, httpx.TimeoutException)):
        return timeout_failure(timeout)

    if isinstance(exception, httpx.HTTPStatusError):
        return classify_status(exception.response.status_code)

    if isinstance(exception, (httpx.TransportError, httpx.InvalidURL, OSError)):
        return CallFailure(
            kind=FailureKind.UNREACHABLE,
            message=f"{type(exception).__name__}: {exception}",
            user_safe=False,
        )

    # Anything else (a ValueError from unencodable params) is an unusable call
    return shape_failure(f"{type(exception).__name__}: {exception}")
