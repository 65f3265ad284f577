# src/sigstruct/strategies/registry.py
"""
StrategyRegistry and StrategySelector.

Selection rules:

1. A forced strategy id is returned unconditionally (it must be
   registered).
2. Otherwise strategies are filtered by availability, evaluated through
   the capability cache with the strategy id as the probe name.
3. Highest priority wins; ties go to the strategy registered first.
4. If nothing is available, the universal strategy is used.
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, List, Optional

from ..cache.capability_cache import CapabilityCache
from ..codec.base import DataFormat, PayloadCodec
from ..errors import ConfigurationError
from .base import BaseStrategy
from .enhanced_prompting import EnhancedPrompting
from .native import NativeStructuredOutput
from .pattern_extraction import PatternExtraction
from .tool_use import DEFAULT_TOOL_NAME, ToolUse

logger = logging.getLogger(__name__)


class StrategyRegistry:
    """Ordered, append-only collection of strategies."""

    def __init__(self, strategies: Optional[Iterable[BaseStrategy]] = None):
        self._strategies: List[BaseStrategy] = []
        for strategy in strategies or ():
            self.register(strategy)

    @classmethod
    def default(
        cls,
        codec: Optional[PayloadCodec] = None,
        *,
        tool_name: str = DEFAULT_TOOL_NAME,
    ) -> "StrategyRegistry":
        """Registry with the four built-in strategies."""
        codec = codec or PayloadCodec()
        return cls([
            NativeStructuredOutput(codec),
            ToolUse(codec, tool_name=tool_name),
            PatternExtraction(codec),
            EnhancedPrompting(codec),
        ])

    def register(self, strategy: BaseStrategy) -> BaseStrategy:
        if not strategy.id:
            raise ConfigurationError(f"{type(strategy).__name__} has no id")
        if any(s.id == strategy.id for s in self._strategies):
            raise ConfigurationError(f"Strategy '{strategy.id}' is already registered")
        self._strategies.append(strategy)
        return strategy

    def get(self, strategy_id: str) -> BaseStrategy:
        for strategy in self._strategies:
            if strategy.id == strategy_id:
                return strategy
        known = ", ".join(self.ids) or "none"
        raise ConfigurationError(
            f"Unknown strategy '{strategy_id}'. Registered strategies: {known}"
        )

    @property
    def ids(self) -> List[str]:
        return [s.id for s in self._strategies]

    @property
    def universal(self) -> Optional[BaseStrategy]:
        for strategy in self._strategies:
            if strategy.universal:
                return strategy
        return None

    def __iter__(self) -> Iterator[BaseStrategy]:
        return iter(list(self._strategies))

    def __len__(self) -> int:
        return len(self._strategies)


class StrategySelector:
    def __init__(self, registry: StrategyRegistry, cache: CapabilityCache):
        self.registry = registry
        self.cache = cache

    def is_available(self, strategy: BaseStrategy, provider: str, model: str) -> bool:
        if strategy.universal:
            return True
        return self.cache.fetch_capability(
            provider,
            model,
            strategy.id,
            lambda: strategy.is_available(provider, model),
        )

    def available(
        self,
        provider: str,
        model: str,
        data_format: Optional[DataFormat] = None,
    ) -> List[BaseStrategy]:
        """Available strategies, best first (stable on registration order)."""
        found = [
            s for s in self.registry
            if self.is_available(s, provider, model)
            and (data_format is None or s.supports_data_format(data_format))
        ]
        return sorted(found, key=lambda s: -s.priority)

    def select(
        self,
        provider: str,
        model: str,
        forced_strategy_id: Optional[str] = None,
        data_format: Optional[DataFormat] = None,
    ) -> BaseStrategy:
        return self.chain(provider, model, forced_strategy_id, data_format)[0]

    def chain(
        self,
        provider: str,
        model: str,
        forced_strategy_id: Optional[str] = None,
        data_format: Optional[DataFormat] = None,
    ) -> List[BaseStrategy]:
        """
        Strategies to try for one call, in order.

        A forced strategy yields a chain of exactly that strategy.

        Raises:
            ConfigurationError: Unknown forced id, a forced strategy that
                cannot carry *data_format*, or no usable strategy at all
        """
        if forced_strategy_id is not None:
            strategy = self.registry.get(forced_strategy_id)
            if data_format is not None:
                strategy.check_data_format(data_format)
            logger.debug("Using forced strategy '%s'", strategy.id)
            return [strategy]

        chain = self.available(provider, model, data_format)
        universal = self.registry.universal
        if universal is not None and universal not in chain:
            if data_format is None or universal.supports_data_format(data_format):
                chain.append(universal)
        if not chain:
            raise ConfigurationError(
                f"No strategy available for {provider}/{model} and no universal strategy registered"
            )

        logger.debug(
            "Selected strategy '%s' for %s/%s (chain: %s)",
            chain[0].id,
            provider,
            model,
            ", ".join(s.id for s in chain),
        )
        return chain
