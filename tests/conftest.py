"""
Pytest configuration and fixtures for sigstruct tests.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to path for imports
src_dir = Path(__file__).parent.parent / "src"
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from sigstruct.cache import CapabilityCache  # noqa: E402
from sigstruct.config import PipelineSettings  # noqa: E402
from sigstruct.pipeline import StructuredOutputPipeline  # noqa: E402
from sigstruct.transport import ScriptedTransport  # noqa: E402
from sigstruct.types import (  # noqa: E402
    FLOAT, INTEGER, STRING, Struct, StructField, TaggedUnion,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    """Fresh cache driven by the fake clock (capability 100s, schema 10s)."""
    return CapabilityCache(capability_ttl=100, schema_ttl=10, clock=clock)


@pytest.fixture
def product():
    return Struct("Product", (
        StructField("title", STRING),
        StructField("price", FLOAT),
    ))


@pytest.fixture
def buy():
    return Struct("Buy", (
        StructField("sku", STRING),
        StructField("qty", INTEGER),
    ))


@pytest.fixture
def refund():
    return Struct("Refund", (StructField("order_id", STRING),))


@pytest.fixture
def order_action(buy, refund):
    return TaggedUnion((buy, refund))


@pytest.fixture
def transport():
    return ScriptedTransport()


@pytest.fixture
def make_pipeline(transport):
    """Factory for pipelines that never sleep between attempts."""

    def _make(**overrides):
        settings = overrides.pop("settings", None) or PipelineSettings(backoff_base=0)
        return StructuredOutputPipeline(overrides.pop("transport", transport), settings=settings, **overrides)

    return _make
