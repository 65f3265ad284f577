# src/sigstruct/retry/backoff.py
"""Exponential backoff with jitter and a cap."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Callable


@dataclass(frozen=True)
class BackoffPolicy:
    """
    ``delay(n) = min(base * 2 ** (n - 1), maximum)`` plus up to
    ``jitter * delay`` of random spread, never above ``maximum``.

    A base of 0 disables sleeping entirely.
    """

    base: float = 0.5
    maximum: float = 10.0
    jitter: float = 0.1
    rng: Callable[[], float] = field(default=random.random, compare=False, repr=False)

    def delay(self, attempt_number: int) -> float:
        if self.base <= 0:
            return 0.0
        delay = min(self.base * (2 ** max(attempt_number - 1, 0)), self.maximum)
        if self.jitter:
            delay += delay * self.jitter * self.rng()
        return min(delay, self.maximum)
