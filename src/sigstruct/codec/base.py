# src/sigstruct/codec/base.py
"""
PayloadCodec: value trees <-> payload text.

A value tree is what a decoder produces before any typing is applied:
dicts, lists, strings, numbers, booleans and ``None``.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Union

from ..errors import ConfigurationError, DecodeError
from .json_codec import decode_json, encode_json, locate_json
from .toon import decode_toon, encode_toon

logger = logging.getLogger(__name__)


class DataFormat(str, Enum):
    """
    Wire format of the payload itself.

    JSON is standard nested-object notation; TOON is the compact
    line-oriented notation with tabular record arrays.
    """

    JSON = "json"
    TOON = "toon"

    @classmethod
    def parse(cls, value: Union["DataFormat", str]) -> "DataFormat":
        """
        Convert a string to a DataFormat.

        Raises:
            ConfigurationError: If the value names no known format
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            known = ", ".join(f.value for f in cls)
            raise ConfigurationError(
                f"Unknown data format '{value}'. Known formats: {known}"
            ) from None


class PayloadCodec:
    """Encodes and decodes value trees in every supported data format."""

    def encode(self, value: Any, data_format: Union[DataFormat, str] = DataFormat.JSON) -> str:
        fmt = DataFormat.parse(data_format)
        if fmt is DataFormat.JSON:
            return encode_json(value)
        return encode_toon(value)

    def decode(self, text: str, data_format: Union[DataFormat, str] = DataFormat.JSON) -> Any:
        """
        Decode *text* into a value tree.

        Commentary around the payload is tolerated, as are single-quoted
        strings.

        Raises:
            DecodeError: Structured failure with snippet and byte offset
            ConfigurationError: Unknown data format
        """
        fmt = DataFormat.parse(data_format)
        try:
            if fmt is DataFormat.JSON:
                return decode_json(text)
            return decode_toon(text)
        except DecodeError as e:
            logger.debug("Failed to decode %s payload: %s", fmt.value, e)
            raise
        except (ValueError, TypeError, IndexError) as e:
            raise DecodeError(
                f"Invalid {fmt.value} payload: {e}",
                snippet=(text or "")[:48],
                offset=0,
                data_format=fmt.value,
            ) from e

    def locate(self, text: str, data_format: Union[DataFormat, str] = DataFormat.JSON) -> str:
        """
        Return the payload portion of *text*, without surrounding commentary.

        Raises:
            DecodeError: If *text* holds no decodable payload
        """
        fmt = DataFormat.parse(data_format)
        if fmt is DataFormat.JSON:
            try:
                _, start, end = locate_json(text)
            except (ValueError, TypeError) as e:
                raise DecodeError(
                    f"Invalid json payload: {e}",
                    snippet=(text or "")[:48],
                    offset=0,
                    data_format=fmt.value,
                ) from e
            return text[start:end]
        self.decode(text, fmt)
        return text.strip()
