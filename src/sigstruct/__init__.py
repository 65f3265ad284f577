"""
sigstruct - typed values from free-form model output.

Declare a contract, pick a provider and model, and get back a typed
value. sigstruct compiles the contract into a provider-appropriate
schema, chooses an extraction strategy, and falls back to the next one
when a response cannot be decoded or coerced.
"""

# Load project .env (if present) so SIGSTRUCT_* settings are picked up
# by PipelineSettings.from_env().
try:
    from pathlib import Path
    from dotenv import load_dotenv

    _repo_root = Path(__file__).resolve().parents[2]
    _env_path = _repo_root / ".env"
    if _env_path.exists():
        load_dotenv(_env_path, override=False)
except Exception:
    # Never fail import due to dotenv loading.
    pass

from .attempts import AttemptOutcome, AttemptRecord
from .cache import CapabilityCache
from .codec import DataFormat, PayloadCodec
from .coercion import TypeCoercionEngine
from .config import PipelineSettings, RunOptions
from .errors import (
    CoercionError,
    CoercionErrorKind,
    ConfigurationError,
    ContractError,
    DecodeError,
    ExtractionFailure,
    PipelineError,
    StructuredOutputError,
    ToolCallDeclined,
    TransportError,
)
from .pipeline import PipelineResult, StructuredOutputPipeline
from .schema import SchemaCompiler, SchemaDocument, SchemaFormat
from .strategies import (
    BaseStrategy,
    EnhancedPrompting,
    NativeStructuredOutput,
    PatternExtraction,
    StrategyRegistry,
    StrategySelector,
    ToolUse,
)
from .transport import BaseTransport, LLMTransport, OutgoingMessage, RawResponse, ScriptedTransport
from .types import Record, descriptor_for

__version__ = "0.1.0"

__all__ = [
    "StructuredOutputPipeline",
    "PipelineResult",
    "PipelineSettings",
    "RunOptions",
    "AttemptOutcome",
    "AttemptRecord",
    "CapabilityCache",
    "DataFormat",
    "PayloadCodec",
    "TypeCoercionEngine",
    "SchemaCompiler",
    "SchemaDocument",
    "SchemaFormat",
    "BaseStrategy",
    "NativeStructuredOutput",
    "ToolUse",
    "PatternExtraction",
    "EnhancedPrompting",
    "StrategyRegistry",
    "StrategySelector",
    "BaseTransport",
    "LLMTransport",
    "ScriptedTransport",
    "OutgoingMessage",
    "RawResponse",
    "Record",
    "descriptor_for",
    # Errors
    "StructuredOutputError",
    "ConfigurationError",
    "ContractError",
    "TransportError",
    "ExtractionFailure",
    "ToolCallDeclined",
    "DecodeError",
    "CoercionError",
    "CoercionErrorKind",
    "PipelineError",
]
