# src/sigstruct/pipeline.py
"""
StructuredOutputPipeline: typed contract in, typed value out.

Flow for one call::

    descriptor + (provider, model)
        -> selector builds the strategy chain (capability cache)
        -> per attempt: compile schema (schema cache), prepare request,
           send via transport, extract, decode, coerce
        -> retry handler retries in place or falls back on failure

Usage::

    pipeline = StructuredOutputPipeline(LLMTransport(llm))
    product = await pipeline.run(Product, "openai", "gpt-4o", messages)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence, Union

from .attempts import AttemptRecord
from .cache.capability_cache import CapabilityCache
from .codec.base import DataFormat, PayloadCodec
from .coercion.engine import TypeCoercionEngine
from .config import PipelineSettings, RunOptions
from .errors import ConfigurationError, TransportError
from .retry.backoff import BackoffPolicy
from .retry.handler import RetryHandler
from .schema.compiler import SchemaCompiler, SchemaDocument, SchemaFormat
from .strategies.base import BaseStrategy
from .strategies.registry import StrategyRegistry, StrategySelector
from .transport.base import BaseTransport, OutgoingMessage, RawResponse
from .types.descriptors import (
    Array, EnumType, Nilable, Primitive, Ref, Struct, TaggedUnion,
    TypeDescriptor, ensure_resolved, fingerprint,
)
from .types.introspect import descriptor_for

logger = logging.getLogger(__name__)

_DESCRIPTOR_TYPES = (Primitive, EnumType, Struct, Array, Nilable, TaggedUnion, Ref)


@dataclass
class PipelineResult:
    value: Any
    strategy_id: str
    attempts: List[AttemptRecord] = field(default_factory=list)


class StructuredOutputPipeline:
    """
    Args:
        transport: Sends prepared messages to the provider
        settings: Pipeline-wide defaults
        cache: Capability/schema cache; share one between pipelines to
            share probe results
        registry: Strategies to choose from (defaults to the built-in four)
    """

    def __init__(
        self,
        transport: BaseTransport,
        *,
        settings: Optional[PipelineSettings] = None,
        cache: Optional[CapabilityCache] = None,
        registry: Optional[StrategyRegistry] = None,
        compiler: Optional[SchemaCompiler] = None,
        codec: Optional[PayloadCodec] = None,
        coercion: Optional[TypeCoercionEngine] = None,
        retry_handler: Optional[RetryHandler] = None,
    ):
        self.transport = transport
        self.settings = settings or PipelineSettings()
        self.cache = cache or CapabilityCache(
            capability_ttl=self.settings.capability_ttl,
            schema_ttl=self.settings.schema_ttl,
        )
        self.codec = codec or PayloadCodec()
        self.registry = registry or StrategyRegistry.default(
            self.codec, tool_name=self.settings.tool_name
        )
        self.selector = StrategySelector(self.registry, self.cache)
        self.compiler = compiler or SchemaCompiler()
        self.coercion = coercion or TypeCoercionEngine()
        self.retry_handler = retry_handler or RetryHandler(
            BackoffPolicy(
                base=self.settings.backoff_base,
                maximum=self.settings.backoff_max,
                jitter=self.settings.backoff_jitter,
            )
        )

    async def run(
        self,
        type_descriptor: Any,
        provider: str,
        model: str,
        messages: Sequence[Mapping[str, Any]],
        options: Union[RunOptions, Mapping[str, Any], None] = None,
    ) -> Any:
        """
        Return the typed value for one call.

        Raises:
            PipelineError: Every permitted strategy failed (or timed out)
            ConfigurationError: Invalid contract or options
        """
        result = await self.execute(type_descriptor, provider, model, messages, options)
        return result.value

    async def execute(
        self,
        type_descriptor: Any,
        provider: str,
        model: str,
        messages: Sequence[Mapping[str, Any]],
        options: Union[RunOptions, Mapping[str, Any], None] = None,
    ) -> PipelineResult:
        """Like ``run``, but also report the winning strategy and attempt history."""
        opts = RunOptions.parse(options)
        descriptor = self.descriptor(type_descriptor)
        data_format = opts.data_format or self.settings.data_format
        max_attempts = opts.max_attempts_per_strategy or self.settings.max_attempts_per_strategy

        chain = self.selector.chain(provider, model, opts.forced_strategy_id, data_format)

        async def attempt(strategy: BaseStrategy, number: int) -> Any:
            return await self._attempt(
                strategy, descriptor, provider, model, messages, opts, data_format
            )

        outcome = await self.retry_handler.run(
            chain, attempt, max_attempts=max_attempts, timeout=opts.timeout
        )
        return PipelineResult(
            value=outcome.value,
            strategy_id=outcome.strategy_id,
            attempts=outcome.attempts,
        )

    def descriptor(self, type_descriptor: Any) -> TypeDescriptor:
        """Accept a descriptor tree or a Python type (pydantic model, dataclass, ...)."""
        if isinstance(type_descriptor, _DESCRIPTOR_TYPES):
            return ensure_resolved(type_descriptor)
        try:
            return descriptor_for(type_descriptor, self.settings.discriminator_field)
        except TypeError as e:
            raise ConfigurationError(f"Cannot build a contract from {type_descriptor!r}: {e}") from e

    def schema_for(
        self,
        descriptor: TypeDescriptor,
        strategy: BaseStrategy,
        provider: str,
        opts: RunOptions,
    ) -> SchemaDocument:
        schema_format = strategy.schema_format_for(opts.schema_format or self.settings.schema_format)
        dialect = provider if schema_format is SchemaFormat.JSON else None
        return self.cache.fetch_schema(
            fingerprint(descriptor),
            dialect,
            schema_format.value,
            lambda: self.compiler.compile(descriptor, schema_format, provider=dialect),
            cache_params=opts.cache_params,
        )

    async def _attempt(
        self,
        strategy: BaseStrategy,
        descriptor: TypeDescriptor,
        provider: str,
        model: str,
        messages: Sequence[Mapping[str, Any]],
        opts: RunOptions,
        data_format: DataFormat,
    ) -> Any:
        schema = self.schema_for(descriptor, strategy, provider, opts)
        outgoing = OutgoingMessage.build(provider, model, messages, opts.request_params)
        prepared = strategy.prepare_request(schema, outgoing, data_format=data_format)

        try:
            raw = await self.transport.send(prepared)
        except (ConfigurationError, TransportError):
            raise
        except Exception as e:
            raise TransportError.wrap(e) from e
        response = RawResponse.coerce(raw)

        payload = strategy.extract(response, data_format=data_format)
        tree = self.codec.decode(payload, data_format)
        return self.coercion.coerce(tree, descriptor)
