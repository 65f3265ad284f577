"""Tests for RetryHandler and BackoffPolicy."""

import asyncio

import pytest

from sigstruct.attempts import AttemptOutcome
from sigstruct.codec import DataFormat
from sigstruct.errors import (
    ConfigurationError,
    DecodeError,
    ExtractionFailure,
    PipelineError,
    TransportError,
)
from sigstruct.retry import BackoffPolicy, RetryHandler
from sigstruct.strategies import BaseStrategy


class _Strategy(BaseStrategy):

    def __init__(self, strategy_id, default_max_attempts=3):
        super().__init__()
        self.id = strategy_id
        self.default_max_attempts = default_max_attempts

    def is_available(self, provider, model):
        return True

    def prepare_request(self, schema, message, *, data_format=DataFormat.JSON):
        return message

    def extract(self, response, *, data_format=DataFormat.JSON):
        return response.content


class Script:
    """Attempt function that replays outcomes and records calls."""

    def __init__(self, *outcomes, clock=None, step=0.0):
        self.outcomes = list(outcomes)
        self.calls = []
        self.clock = clock
        self.step = step

    async def __call__(self, strategy, number):
        self.calls.append((strategy.id, number))
        if self.clock is not None:
            self.clock.advance(self.step)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def handler(sleeps, clock):
    return RetryHandler(BackoffPolicy(base=0.5, jitter=0), sleep=sleeps, clock=clock)


@pytest.fixture
def chain():
    return [_Strategy("a"), _Strategy("b"), _Strategy("c")]


def timeout_error():
    return TransportError.wrap(asyncio.TimeoutError())


# ═══════════════════════════════════════════════════════════════════════════════
# BackoffPolicy
# ═══════════════════════════════════════════════════════════════════════════════


class TestBackoffPolicy:

    def test_exponential(self):
        policy = BackoffPolicy(base=0.5, maximum=10, jitter=0)
        assert [policy.delay(n) for n in (1, 2, 3, 4)] == [0.5, 1.0, 2.0, 4.0]

    def test_capped(self):
        policy = BackoffPolicy(base=1, maximum=3, jitter=0)
        assert policy.delay(5) == 3

    def test_jitter(self):
        policy = BackoffPolicy(base=1, maximum=10, jitter=0.1, rng=lambda: 0.5)
        assert policy.delay(1) == pytest.approx(1.05)

    def test_zero_base_disables(self):
        assert BackoffPolicy(base=0).delay(3) == 0.0


# ═══════════════════════════════════════════════════════════════════════════════
# Outcomes
# ═══════════════════════════════════════════════════════════════════════════════


class TestRetryHandler:

    @pytest.mark.asyncio
    async def test_first_success(self, handler, chain):
        script = Script("value")
        outcome = await handler.run(chain, script)
        assert outcome.value == "value"
        assert outcome.strategy_id == "a"
        assert [r.outcome for r in outcome.attempts] == [AttemptOutcome.SUCCESS]

    @pytest.mark.asyncio
    async def test_retryable_then_success(self, handler, chain, sleeps):
        script = Script(timeout_error(), timeout_error(), "value")
        outcome = await handler.run(chain, script)
        assert outcome.strategy_id == "a"
        assert script.calls == [("a", 1), ("a", 2), ("a", 3)]
        assert sleeps.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_exhaustion_records_every_attempt(self, handler, chain, sleeps):
        script = Script(*[timeout_error() for _ in range(6)])
        with pytest.raises(PipelineError) as exc_info:
            await handler.run(chain, script, max_attempts=2)
        err = exc_info.value
        assert len(err.attempts) == 6
        assert err.strategy_ids == ["a", "b", "c"]
        assert all(r.outcome is AttemptOutcome.RETRYABLE for r in err.attempts)
        assert not err.cancelled
        assert sleeps.delays == [0.5, 0.5, 0.5]
        assert "All strategies failed after 6 attempts" in str(err)

    @pytest.mark.asyncio
    async def test_payload_error_falls_back_without_retry(self, handler, chain, sleeps):
        script = Script(DecodeError("bad json"), ExtractionFailure("nothing"), "value")
        outcome = await handler.run(chain, script)
        assert outcome.strategy_id == "c"
        assert script.calls == [("a", 1), ("b", 1), ("c", 1)]
        assert [r.outcome for r in outcome.attempts] == [
            AttemptOutcome.FALLBACK_REQUIRED,
            AttemptOutcome.FALLBACK_REQUIRED,
            AttemptOutcome.SUCCESS,
        ]
        assert sleeps.delays == []

    @pytest.mark.asyncio
    async def test_fatal_stops_immediately(self, handler, chain):
        script = Script(TransportError("401 Unauthorized", retryable=False), "value")
        with pytest.raises(PipelineError) as exc_info:
            await handler.run(chain, script)
        assert script.calls == [("a", 1)]
        assert exc_info.value.attempts[0].outcome is AttemptOutcome.FATAL

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_fatal(self, handler, chain):
        with pytest.raises(PipelineError) as exc_info:
            await handler.run(chain, Script(RuntimeError("boom")))
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_configuration_error_propagates(self, handler, chain):
        with pytest.raises(ConfigurationError):
            await handler.run(chain, Script(ConfigurationError("bad option")))

    @pytest.mark.asyncio
    async def test_empty_chain(self, handler):
        with pytest.raises(ConfigurationError):
            await handler.run([], Script())

    @pytest.mark.asyncio
    async def test_default_budgets_per_strategy(self, handler):
        chain = [_Strategy("a", default_max_attempts=1), _Strategy("b", default_max_attempts=2)]
        script = Script(timeout_error(), timeout_error(), timeout_error())
        with pytest.raises(PipelineError) as exc_info:
            await handler.run(chain, script)
        assert [(r.strategy_id, r.attempt_number) for r in exc_info.value.attempts] == [
            ("a", 1), ("b", 1), ("b", 2),
        ]

    @pytest.mark.asyncio
    async def test_timeout_cancels_between_attempts(self, sleeps, clock, chain):
        handler = RetryHandler(BackoffPolicy(base=0), sleep=sleeps, clock=clock)
        script = Script(*[timeout_error() for _ in range(9)], clock=clock, step=5)
        with pytest.raises(PipelineError) as exc_info:
            await handler.run(chain, script, timeout=8)
        err = exc_info.value
        assert err.cancelled
        assert len(err.attempts) == 2
        assert "timeout" in str(err)

    @pytest.mark.asyncio
    async def test_elapsed_is_recorded(self, handler, chain, clock):
        script = Script("value", clock=clock, step=1.5)
        outcome = await handler.run(chain, script)
        assert outcome.attempts[0].elapsed == 1.5
        assert outcome.attempts[0].succeeded
