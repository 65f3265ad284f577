# src/sigstruct/codec/__init__.py
"""Payload codecs: JSON and TOON."""

from .base import DataFormat, PayloadCodec
from .json_codec import decode_json, encode_json, locate_json
from .toon import decode_toon, encode_toon

__all__ = [
    "DataFormat",
    "PayloadCodec",
    "encode_json",
    "decode_json",
    "locate_json",
    "encode_toon",
    "decode_toon",
]
