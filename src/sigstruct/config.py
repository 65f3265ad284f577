# src/sigstruct/config.py
"""
Pipeline settings and per-call options.

Design:
    - ``PipelineSettings`` holds process-wide defaults; ``from_env()``
      reads ``SIGSTRUCT_*`` overrides.
    - ``RunOptions`` is per call; ``extra = "forbid"`` catches typos
      immediately.
    - Every validation failure surfaces as ``ConfigurationError``.
"""

from __future__ import annotations

import os
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .codec.base import DataFormat
from .errors import ConfigurationError
from .schema.compiler import SchemaFormat
from .types.descriptors import DEFAULT_DISCRIMINATOR

ENV_PREFIX = "SIGSTRUCT_"


class PipelineSettings(BaseModel):
    """
    Defaults shared by every call made through one pipeline.

    Usage::

        settings = PipelineSettings(max_attempts_per_strategy=2, backoff_base=0)
        settings = PipelineSettings.from_env()   # SIGSTRUCT_BACKOFF_BASE=0 ...
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_attempts_per_strategy: Optional[int] = Field(
        None, ge=1,
        description="Attempts per strategy. None = each strategy's own default.",
    )
    backoff_base: float = Field(
        0.5, ge=0.0,
        description="Base delay in seconds between attempts of one strategy. 0 disables sleeping.",
    )
    backoff_max: float = Field(
        10.0, ge=0.0,
        description="Upper bound for a single backoff delay.",
    )
    backoff_jitter: float = Field(
        0.1, ge=0.0, le=1.0,
        description="Random jitter as a fraction of the computed delay.",
    )
    capability_ttl: float = Field(
        24 * 60 * 60, gt=0,
        description="Seconds a capability probe stays cached.",
    )
    schema_ttl: float = Field(
        60 * 60, gt=0,
        description="Seconds a compiled schema stays cached.",
    )
    discriminator_field: str = Field(
        DEFAULT_DISCRIMINATOR, min_length=1,
        description="Field naming the variant in union payloads.",
    )
    schema_format: Optional[SchemaFormat] = Field(
        None,
        description="Schema format override. None = each strategy's preferred format.",
    )
    data_format: DataFormat = Field(
        DataFormat.JSON,
        description="Payload format requested from text-based strategies.",
    )
    tool_name: str = Field(
        "json_output", min_length=1,
        description="Name of the forced tool used by the tool-use strategy.",
    )

    @field_validator("schema_format", mode="before")
    @classmethod
    def _schema_format(cls, value: Any) -> Any:
        return None if value is None else SchemaFormat.parse(value)

    @field_validator("data_format", mode="before")
    @classmethod
    def _data_format(cls, value: Any) -> Any:
        return DataFormat.parse(value)

    @classmethod
    def from_env(
        cls,
        prefix: str = ENV_PREFIX,
        environ: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "PipelineSettings":
        """Build settings from ``<prefix><FIELD>`` environment variables."""
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for name in cls.model_fields:
            raw = environ.get(f"{prefix}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        values.update(overrides)
        return _build(cls, values)


class RunOptions(BaseModel):
    """
    Per-call options for ``StructuredOutputPipeline.run``.

    All fields are optional; unset fields fall back to the pipeline's
    ``PipelineSettings``.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    forced_strategy_id: Optional[str] = Field(
        None, min_length=1,
        description="Use exactly this strategy, skipping availability checks and fallback.",
    )
    schema_format: Optional[SchemaFormat] = Field(
        None,
        description="Schema format for strategies that accept either.",
    )
    data_format: Optional[DataFormat] = Field(
        None,
        description="Payload format requested from the provider.",
    )
    max_attempts_per_strategy: Optional[int] = Field(
        None, ge=1,
        description="Overrides every strategy's default attempt budget.",
    )
    timeout: Optional[float] = Field(
        None, gt=0,
        description="Overall deadline in seconds, checked between attempts.",
    )
    cache_params: Dict[str, Any] = Field(
        default_factory=dict,
        description="Extra key material folded into the schema cache key.",
    )
    request_params: Dict[str, Any] = Field(
        default_factory=dict,
        description="Extra parameters forwarded to the transport (temperature, ...).",
    )

    @field_validator("schema_format", mode="before")
    @classmethod
    def _schema_format(cls, value: Any) -> Any:
        return None if value is None else SchemaFormat.parse(value)

    @field_validator("data_format", mode="before")
    @classmethod
    def _data_format(cls, value: Any) -> Any:
        return None if value is None else DataFormat.parse(value)

    @classmethod
    def parse(cls, options: Union["RunOptions", Mapping[str, Any], None]) -> "RunOptions":
        """Accept a RunOptions, a plain mapping or None."""
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        if isinstance(options, Mapping):
            return _build(cls, dict(options))
        raise ConfigurationError(
            f"Invalid options type: {type(options).__name__}. Expected RunOptions or dict."
        )


def _build(model: type, values: Dict[str, Any]) -> Any:
    try:
        return model(**values)
    except ConfigurationError:
        raise
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or model.__name__}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid {model.__name__}: {problems}") from None
