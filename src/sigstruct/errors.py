# src/sigstruct/errors.py
"""
Error classes for sigstruct.

Every error raised by the pipeline derives from ``StructuredOutputError``.
The ``retryable`` flag is advisory: the retry handler asks the active
strategy (``handle_error``) for the final decision.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import TYPE_CHECKING, Any, List, Optional, Sequence

import httpx

if TYPE_CHECKING:
    from .attempts import AttemptRecord


class StructuredOutputError(Exception):
    """
    Base exception for all structured output errors.

    Attributes:
        message: Error description
        raw_output: The raw output that failed (if any)
        retryable: Whether the same strategy may be attempted again
    """

    def __init__(
        self,
        message: str,
        *,
        raw_output: Any = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.raw_output = raw_output
        self.retryable = retryable


class ConfigurationError(StructuredOutputError):
    """
    Raised for unknown formats, unknown strategies or contradictory options.

    Configuration errors fail fast: they are never retried and never
    recorded as an attempt.
    """

    def __init__(self, message: str):
        super().__init__(message, retryable=False)


class ContractError(ConfigurationError):
    """
    Raised when a type contract cannot be built.

    This occurs when:
    - A struct references a name that is never defined
    - A struct (directly or indirectly) contains itself
    - Field or variant names are duplicated
    - A union variant already declares the discriminator field
    """


class TransportError(StructuredOutputError):
    """
    Wraps a failure surfaced by the transport collaborator.

    Use ``TransportError.wrap`` to build one from an arbitrary exception;
    it classifies the cause as retryable or not.
    """

    def __init__(
        self,
        message: str,
        *,
        retryable: bool = True,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, retryable=retryable)
        self.cause = cause

    @classmethod
    def wrap(cls, exc: BaseException) -> "TransportError":
        if isinstance(exc, TransportError):
            return exc
        return cls(
            f"{type(exc).__name__}: {exc}",
            retryable=classify_transport_error(exc),
            cause=exc,
        )


_RETRYABLE_STATUS = {408, 409, 425, 429}


def classify_transport_error(exc: BaseException) -> bool:
    """Return True if *exc* looks like a transient transport failure."""
    if isinstance(exc, TransportError):
        return exc.retryable
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status in _RETRYABLE_STATUS or status >= 500
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
        return True
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return True
    return False


class ExtractionFailure(StructuredOutputError):
    """
    Raised when a strategy cannot locate a payload in a response.

    This occurs when:
    - The response has no content and no tool call
    - None of the extraction patterns produced decodable text
    """

    def __init__(
        self,
        message: str,
        *,
        strategy_id: Optional[str] = None,
        raw_output: Any = None,
    ):
        super().__init__(message, raw_output=raw_output, retryable=False)
        self.strategy_id = strategy_id


class ToolCallDeclined(ExtractionFailure):
    """Raised when the provider answered with text instead of the forced tool call."""


class DecodeError(StructuredOutputError):
    """
    Raised when a payload was found but is not valid in its data format.

    Attributes:
        snippet: Text surrounding the failure position
        offset: Byte offset (UTF-8) of the failure in the decoded text
        data_format: Name of the data format being decoded
    """

    def __init__(
        self,
        message: str,
        *,
        snippet: str = "",
        offset: int = 0,
        data_format: Optional[str] = None,
    ):
        super().__init__(message, raw_output=snippet, retryable=False)
        self.snippet = snippet
        self.offset = offset
        self.data_format = data_format

    def __str__(self) -> str:
        return f"{self.message} (at byte {self.offset}: {self.snippet!r})"


class CoercionErrorKind(str, Enum):
    """Why a decoded payload did not match the declared type."""

    TYPE_MISMATCH = "type_mismatch"
    INVALID_ENUM_VALUE = "invalid_enum_value"
    MISSING_FIELD = "missing_field"
    UNRESOLVED_UNION = "unresolved_union"


class CoercionError(StructuredOutputError):
    """
    Raised when a decoded payload does not match the declared type.

    Example:
        # Schema expects price: float, payload has "price": "cheap"
        CoercionError(
            CoercionErrorKind.TYPE_MISMATCH,
            "expected float, got str",
            path="$.price",
        )
    """

    def __init__(
        self,
        kind: CoercionErrorKind,
        message: str,
        *,
        path: str = "$",
        raw_output: Any = None,
    ):
        super().__init__(
            f"{path}: {message}", raw_output=raw_output, retryable=False
        )
        self.kind = kind
        self.path = path


class PipelineError(StructuredOutputError):
    """
    Terminal error: every permitted strategy failed, or the call was
    cancelled between attempts.

    Attributes:
        attempts: Full attempt history, in execution order
        cancelled: True when the caller's timeout fired before exhaustion
    """

    def __init__(
        self,
        message: str,
        *,
        attempts: Sequence["AttemptRecord"] = (),
        cancelled: bool = False,
    ):
        super().__init__(message, retryable=False)
        self.attempts: List["AttemptRecord"] = list(attempts)
        self.cancelled = cancelled

    @property
    def strategy_ids(self) -> List[str]:
        """Distinct strategy ids in the order they were attempted."""
        seen: List[str] = []
        for record in self.attempts:
            if record.strategy_id not in seen:
                seen.append(record.strategy_id)
        return seen

    def __str__(self) -> str:
        if not self.attempts:
            return self.message
        lines = [self.message]
        for record in self.attempts:
            lines.append(
                f"  - {record.strategy_id}#{record.attempt_number}: "
                f"{record.outcome.value}: {record.error}"
            )
        return "\n".join(lines)
