# src/sigstruct/strategies/base.py
"""
Strategy interface.

A strategy decides how the schema travels to the provider
(``prepare_request``) and where the payload comes back
(``extract``). Strategies are registered once and never mutated: all
per-call state lives in the arguments.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from ..codec.base import DataFormat, PayloadCodec
from ..errors import (
    CoercionError,
    ConfigurationError,
    DecodeError,
    ExtractionFailure,
)
from ..schema.compiler import SchemaDocument, SchemaFormat
from ..transport.base import OutgoingMessage, RawResponse

logger = logging.getLogger(__name__)


class BaseStrategy(ABC):
    """
    Abstract extraction strategy.

    Subclasses **must** set ``id`` and ``priority`` and implement
    ``is_available``, ``prepare_request`` and ``extract``.

    Class attributes:
        id: Stable identifier, also used as the capability probe name
        priority: Higher wins during selection
        default_max_attempts: Attempt budget when the caller sets none
        universal: Always available; the selector's last resort
        data_formats: Payload formats the strategy can carry
        preferred_schema_format: Schema format used unless overridden
        schema_format_fixed: True when the provider dictates the format
    """

    id: str = ""
    priority: int = 0
    default_max_attempts: int = 3
    universal: bool = False
    data_formats: Tuple[DataFormat, ...] = (DataFormat.JSON, DataFormat.TOON)
    preferred_schema_format: SchemaFormat = SchemaFormat.JSON
    schema_format_fixed: bool = False

    def __init__(self, codec: Optional[PayloadCodec] = None):
        self.codec = codec or PayloadCodec()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, priority={self.priority})"

    # ------------------------------------------------------------------ #
    # Capability                                                          #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def is_available(self, provider: str, model: str) -> bool:
        raise NotImplementedError

    def supports_data_format(self, data_format: DataFormat) -> bool:
        return data_format in self.data_formats

    def check_data_format(self, data_format: DataFormat) -> None:
        """
        Raises:
            ConfigurationError: If this strategy cannot carry *data_format*
        """
        if not self.supports_data_format(data_format):
            supported = ", ".join(f.value for f in self.data_formats)
            raise ConfigurationError(
                f"Strategy '{self.id}' cannot carry {data_format.value} payloads "
                f"(supported: {supported})"
            )

    def schema_format_for(self, requested: Optional[SchemaFormat]) -> SchemaFormat:
        """Resolve the schema format, honouring *requested* where allowed."""
        if requested is None or requested is self.preferred_schema_format:
            return self.preferred_schema_format
        if self.schema_format_fixed:
            logger.warning(
                "Strategy '%s' requires %s schemas; ignoring requested %s",
                self.id,
                self.preferred_schema_format.value,
                requested.value,
            )
            return self.preferred_schema_format
        return requested

    # ------------------------------------------------------------------ #
    # Request / response                                                  #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def prepare_request(
        self,
        schema: SchemaDocument,
        message: OutgoingMessage,
        *,
        data_format: DataFormat = DataFormat.JSON,
    ) -> OutgoingMessage:
        """Return a copy of *message* carrying *schema* the way this strategy needs."""
        raise NotImplementedError

    @abstractmethod
    def extract(
        self,
        response: RawResponse,
        *,
        data_format: DataFormat = DataFormat.JSON,
    ) -> str:
        """
        Return the payload text found in *response*.

        Raises:
            ExtractionFailure: If no payload can be located
        """
        raise NotImplementedError

    def handle_error(self, error: BaseException) -> bool:
        """
        Return True if *error* is recoverable by moving to another strategy.

        Payload problems (nothing extracted, undecodable, wrong shape) are
        always recoverable.
        """
        return isinstance(error, (ExtractionFailure, DecodeError, CoercionError))

    # ------------------------------------------------------------------ #
    # Helpers                                                             #
    # ------------------------------------------------------------------ #

    def _failure(self, message: str, response: RawResponse) -> ExtractionFailure:
        return ExtractionFailure(message, strategy_id=self.id, raw_output=response.content)


def format_label(data_format: DataFormat) -> str:
    return data_format.value.upper()
