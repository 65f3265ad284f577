# src/sigstruct/strategies/__init__.py
"""Extraction strategies, their registry and the selector."""

from .base import BaseStrategy
from .capabilities import (
    NATIVE_SUPPORT,
    TOOL_USE_SUPPORT,
    supports_native_output,
    supports_pattern_extraction,
    supports_tool_use,
)
from .enhanced_prompting import EnhancedPrompting, example_value
from .native import NativeStructuredOutput
from .pattern_extraction import PatternExtraction
from .patterns import extract_payload
from .registry import StrategyRegistry, StrategySelector
from .tool_use import ToolUse

__all__ = [
    "BaseStrategy",
    "NativeStructuredOutput",
    "ToolUse",
    "PatternExtraction",
    "EnhancedPrompting",
    "StrategyRegistry",
    "StrategySelector",
    "NATIVE_SUPPORT",
    "TOOL_USE_SUPPORT",
    "supports_native_output",
    "supports_tool_use",
    "supports_pattern_extraction",
    "extract_payload",
    "example_value",
]
