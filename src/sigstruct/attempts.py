# src/sigstruct/attempts.py
"""Per-call attempt history."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class AttemptOutcome(str, Enum):
    """How a single strategy attempt ended."""

    SUCCESS = "success"
    RETRYABLE = "retryable"
    FALLBACK_REQUIRED = "fallback_required"
    FATAL = "fatal"


@dataclass(frozen=True)
class AttemptRecord:
    """
    One entry of the attempt history.

    ``value`` is set only for SUCCESS, ``error`` only for the others.
    """

    strategy_id: str
    attempt_number: int
    outcome: AttemptOutcome
    error: Optional[BaseException] = None
    value: Any = None
    elapsed: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.outcome is AttemptOutcome.SUCCESS
