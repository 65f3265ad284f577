# src/sigstruct/retry/handler.py
"""
RetryHandler: runs one call across a chain of strategies.

Per attempt the outcome is one of:

- SUCCESS: stop and return the value
- RETRYABLE: transient transport failure; retry the same strategy after
  a backoff sleep while its budget lasts, then move on
- FALLBACK_REQUIRED: the strategy's ``handle_error`` accepted the error;
  move on to the next strategy without retrying in place
- FATAL: stop immediately with ``PipelineError``

``ConfigurationError`` is never an attempt outcome; it propagates as-is.
Cancellation is checked between attempts only.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from ..attempts import AttemptOutcome, AttemptRecord
from ..errors import ConfigurationError, PipelineError, TransportError
from ..strategies.base import BaseStrategy
from .backoff import BackoffPolicy

logger = logging.getLogger(__name__)

AttemptFn = Callable[[BaseStrategy, int], Awaitable[Any]]


@dataclass
class RetryOutcome:
    value: Any
    strategy_id: str
    attempts: List[AttemptRecord] = field(default_factory=list)


class RetryHandler:
    """
    Args:
        backoff: Delay policy between attempts of the same strategy
        sleep: Async sleep function (override in tests)
        clock: Monotonic time source used for deadlines
    """

    def __init__(
        self,
        backoff: Optional[BackoffPolicy] = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.backoff = backoff or BackoffPolicy()
        self._sleep = sleep
        self._clock = clock

    def budget(self, strategy: BaseStrategy, max_attempts: Optional[int]) -> int:
        return max_attempts if max_attempts is not None else strategy.default_max_attempts

    async def run(
        self,
        chain: Sequence[BaseStrategy],
        attempt: AttemptFn,
        *,
        max_attempts: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> RetryOutcome:
        """
        Try each strategy in *chain* until one succeeds.

        Args:
            chain: Strategies in fallback order
            attempt: ``await attempt(strategy, attempt_number)`` performs one attempt
            max_attempts: Per-strategy budget; None uses each strategy's default
            timeout: Seconds until the call is cancelled (checked between attempts)

        Raises:
            PipelineError: Every strategy failed, a fatal error occurred, or
                the deadline passed
            ConfigurationError: Invalid configuration discovered mid-call
        """
        if not chain:
            raise ConfigurationError("No strategies to attempt")

        deadline = self._clock() + timeout if timeout is not None else None
        history: List[AttemptRecord] = []

        for index, strategy in enumerate(chain):
            budget = self.budget(strategy, max_attempts)
            if index > 0:
                logger.info(
                    "Falling back to strategy '%s' (%d/%d)", strategy.id, index + 1, len(chain)
                )

            for number in range(1, budget + 1):
                if history:
                    self._check_deadline(deadline, history)

                started = self._clock()
                try:
                    value = await attempt(strategy, number)
                except ConfigurationError:
                    raise
                except Exception as e:
                    outcome = self._classify(strategy, e)
                    history.append(AttemptRecord(
                        strategy_id=strategy.id,
                        attempt_number=number,
                        outcome=outcome,
                        error=e,
                        elapsed=self._clock() - started,
                    ))

                    if outcome is AttemptOutcome.FATAL:
                        logger.error("Strategy '%s' failed fatally: %s", strategy.id, e)
                        raise PipelineError(
                            f"Strategy '{strategy.id}' failed with a non-recoverable error: {e}",
                            attempts=history,
                        ) from e

                    if outcome is AttemptOutcome.FALLBACK_REQUIRED:
                        logger.info("Strategy '%s' cannot recover: %s", strategy.id, e)
                        break

                    if number < budget:
                        delay = self.backoff.delay(number)
                        logger.warning(
                            "Strategy '%s' attempt %d/%d failed, retrying in %.2fs: %s",
                            strategy.id,
                            number,
                            budget,
                            delay,
                            e,
                        )
                        if delay > 0:
                            await self._sleep(delay)
                    continue

                history.append(AttemptRecord(
                    strategy_id=strategy.id,
                    attempt_number=number,
                    outcome=AttemptOutcome.SUCCESS,
                    value=value,
                    elapsed=self._clock() - started,
                ))
                return RetryOutcome(value=value, strategy_id=strategy.id, attempts=history)

        ids = ", ".join(s.id for s in chain)
        logger.error("All strategies exhausted after %d attempts (%s)", len(history), ids)
        raise PipelineError(
            f"All strategies failed after {len(history)} attempts",
            attempts=history,
        )

    def _classify(self, strategy: BaseStrategy, error: Exception) -> AttemptOutcome:
        if isinstance(error, TransportError) and error.retryable:
            return AttemptOutcome.RETRYABLE
        if strategy.handle_error(error):
            return AttemptOutcome.FALLBACK_REQUIRED
        return AttemptOutcome.FATAL

    def _check_deadline(self, deadline: Optional[float], history: List[AttemptRecord]) -> None:
        if deadline is not None and self._clock() >= deadline:
            logger.error("Deadline passed after %d attempts", len(history))
            raise PipelineError(
                f"Cancelled after {len(history)} attempts: timeout reached",
                attempts=history,
                cancelled=True,
            )
