# src/sigstruct/strategies/capabilities.py
"""
Known provider capabilities.

Model names are matched by prefix, case-insensitively. A model name may
carry a ``provider/`` prefix (``openai/gpt-4o``), which is ignored.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from ..schema.json_schema import normalize_provider

# Models known to support native structured output
NATIVE_SUPPORT: Dict[str, List[str]] = {
    "openai": ["gpt-4o", "gpt-4.1", "gpt-4-turbo", "gpt-5", "o1", "o3", "o4"],
    "gemini": ["gemini-1.5-pro", "gemini-1.5-flash", "gemini-2", "gemini-3"],
    "xai": ["grok"],
    "ollama": [""],
}

# Models known to honour a forced tool call
TOOL_USE_SUPPORT: Dict[str, List[str]] = {
    "anthropic": ["claude-3", "claude-4", "claude-sonnet-4", "claude-opus-4", "claude-haiku-4"],
    "openai": ["gpt-4", "gpt-5", "o1", "o3", "o4"],
    "gemini": ["gemini"],
    "xai": ["grok"],
}

# Providers whose plain-text responses the pattern heuristics are tuned for
PATTERN_EXTRACTION_PROVIDERS = ("anthropic", "openai", "gemini", "ollama", "xai")


def _base_model(model: str, provider: str) -> str:
    model_lower = model.lower()
    if "/" in model_lower:
        prefix, rest = model_lower.split("/", 1)
        if normalize_provider(prefix) == provider:
            return rest
    return model_lower


def _matches(table: Dict[str, List[str]], provider: Optional[str], model: str) -> bool:
    prov = normalize_provider(provider)
    if not prov or not model:
        return False
    base = _base_model(model, prov)
    return any(base.startswith(prefix) for prefix in table.get(prov, []))


def supports_native_output(provider: Optional[str], model: str) -> bool:
    """Check if a model supports native structured output."""
    return _matches(NATIVE_SUPPORT, provider, model)


def supports_tool_use(provider: Optional[str], model: str) -> bool:
    return _matches(TOOL_USE_SUPPORT, provider, model)


def supports_pattern_extraction(provider: Optional[str], model: str) -> bool:
    return normalize_provider(provider) in PATTERN_EXTRACTION_PROVIDERS
