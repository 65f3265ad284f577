"""Tests for the four built-in strategies."""

import json
import logging

import pytest
from pydantic import BaseModel

from sigstruct.codec import DataFormat, PayloadCodec
from sigstruct.errors import (
    CoercionError,
    CoercionErrorKind,
    ConfigurationError,
    DecodeError,
    ExtractionFailure,
    ToolCallDeclined,
    TransportError,
)
from sigstruct.schema import SchemaCompiler, SchemaFormat
from sigstruct.strategies import (
    EnhancedPrompting,
    NativeStructuredOutput,
    PatternExtraction,
    ToolUse,
    example_value,
    extract_payload,
)
from sigstruct.transport import OutgoingMessage, RawResponse, ScriptedTransport


@pytest.fixture
def compiler():
    return SchemaCompiler()


@pytest.fixture
def message():
    return OutgoingMessage.build("openai", "gpt-4o", [{"role": "user", "content": "Describe the mug."}])


def with_provider(message, provider):
    return OutgoingMessage.build(provider, message.model, message.messages)


# ═══════════════════════════════════════════════════════════════════════════════
# Shared behaviour
# ═══════════════════════════════════════════════════════════════════════════════


class TestBaseBehaviour:

    def test_payload_errors_trigger_fallback(self):
        strategy = PatternExtraction()
        assert strategy.handle_error(ExtractionFailure("nothing"))
        assert strategy.handle_error(DecodeError("bad"))
        assert strategy.handle_error(CoercionError(CoercionErrorKind.MISSING_FIELD, "missing"))
        assert not strategy.handle_error(TransportError("401 Unauthorized", retryable=False))
        assert not strategy.handle_error(RuntimeError("boom"))

    def test_fixed_schema_format_ignores_request(self, caplog):
        with caplog.at_level(logging.WARNING, logger="sigstruct.strategies.base"):
            fmt = NativeStructuredOutput().schema_format_for(SchemaFormat.BAML)
        assert fmt is SchemaFormat.JSON
        assert "ignoring requested baml" in caplog.text

    def test_flexible_schema_format_honours_request(self):
        strategy = PatternExtraction()
        assert strategy.schema_format_for(None) is SchemaFormat.BAML
        assert strategy.schema_format_for(SchemaFormat.JSON) is SchemaFormat.JSON


# ═══════════════════════════════════════════════════════════════════════════════
# NativeStructuredOutput
# ═══════════════════════════════════════════════════════════════════════════════


class TestNativeStructuredOutput:

    def test_openai_response_format(self, compiler, product, message):
        schema = compiler.compile(product, provider="openai")
        prepared = NativeStructuredOutput().prepare_request(schema, message)
        assert prepared.params["response_format"] == {
            "type": "json_schema",
            "json_schema": {"name": "Product", "strict": True, "schema": schema.content},
        }
        assert prepared.messages == message.messages
        assert message.params == {}

    def test_gemini_generation_config(self, compiler, product, message):
        schema = compiler.compile(product, provider="gemini")
        prepared = NativeStructuredOutput().prepare_request(schema, with_provider(message, "google"))
        assert prepared.params["generation_config"] == {
            "response_mime_type": "application/json",
            "response_schema": schema.content,
        }

    def test_ollama_format(self, compiler, product, message):
        schema = compiler.compile(product)
        prepared = NativeStructuredOutput().prepare_request(schema, with_provider(message, "ollama"))
        assert prepared.params == {"format": schema.content}

    def test_rejects_toon(self, compiler, product, message):
        with pytest.raises(ConfigurationError):
            NativeStructuredOutput().prepare_request(
                compiler.compile(product), message, data_format=DataFormat.TOON
            )

    def test_extract_parsed(self):
        text = NativeStructuredOutput().extract(ScriptedTransport.parsed({"title": "Mug", "price": 9.99}))
        assert json.loads(text) == {"title": "Mug", "price": 9.99}

    def test_extract_parsed_model(self):
        class Product(BaseModel):
            title: str

        text = NativeStructuredOutput().extract(ScriptedTransport.parsed(Product(title="Mug")))
        assert json.loads(text) == {"title": "Mug"}

    def test_extract_content(self):
        text = NativeStructuredOutput().extract(RawResponse.from_text('  {"title": "Mug"}\n'))
        assert text == '{"title": "Mug"}'

    def test_extract_empty(self):
        with pytest.raises(ExtractionFailure) as exc_info:
            NativeStructuredOutput().extract(RawResponse.from_text("  "))
        assert exc_info.value.strategy_id == "native_structured_output"

    def test_schema_rejection_triggers_fallback(self):
        strategy = NativeStructuredOutput()
        assert strategy.handle_error(
            TransportError("Invalid schema for response_format 'Product'", retryable=False)
        )
        assert not strategy.handle_error(TransportError("401 Unauthorized", retryable=False))


# ═══════════════════════════════════════════════════════════════════════════════
# ToolUse
# ═══════════════════════════════════════════════════════════════════════════════


class TestToolUse:

    def test_anthropic_tool_shape(self, compiler, product, message):
        schema = compiler.compile(product, provider="anthropic")
        prepared = ToolUse().prepare_request(schema, with_provider(message, "anthropic"))
        assert prepared.params["tools"] == [{
            "name": "json_output",
            "description": "Output the result in the required JSON format",
            "input_schema": schema.content,
        }]
        assert prepared.params["tool_choice"] == {"type": "tool", "name": "json_output"}
        assert prepared.messages[-1]["content"] == (
            "Describe the mug.\n\nPlease use the json_output tool to provide your response."
        )

    def test_openai_function_shape(self, compiler, product, message):
        schema = compiler.compile(product, provider="openai")
        prepared = ToolUse(tool_name="emit").prepare_request(schema, message)
        tool = prepared.params["tools"][0]
        assert tool["type"] == "function"
        assert tool["function"]["name"] == "emit"
        assert tool["function"]["parameters"] == schema.content
        assert prepared.params["tool_choice"] == {"type": "function", "function": {"name": "emit"}}

    def test_extract_dict_arguments(self):
        text = ToolUse().extract(ScriptedTransport.tool("json_output", {"title": "Mug"}))
        assert json.loads(text) == {"title": "Mug"}

    def test_extract_string_arguments(self):
        text = ToolUse().extract(ScriptedTransport.tool("json_output", '{"title": "Mug"}'))
        assert text == '{"title": "Mug"}'

    def test_extract_inline_xml(self):
        content = (
            "<tool_use><name>json_output</name>"
            '<input>{"title": "Mug"}</input></tool_use>'
        )
        assert ToolUse().extract(RawResponse.from_text(content)) == '{"title": "Mug"}'

    def test_text_answer_is_declined(self):
        with pytest.raises(ToolCallDeclined, match="instead of calling"):
            ToolUse().extract(RawResponse.from_text('{"title": "Mug"}'))

    def test_other_tool_is_declined(self):
        with pytest.raises(ToolCallDeclined, match="got: search"):
            ToolUse().extract(ScriptedTransport.tool("search", {"q": "mug"}))

    def test_tool_rejection_triggers_fallback(self):
        assert ToolUse().handle_error(
            TransportError("invalid_request_error: tools are not supported", retryable=False)
        )


# ═══════════════════════════════════════════════════════════════════════════════
# PatternExtraction
# ═══════════════════════════════════════════════════════════════════════════════


class TestPatternExtraction:

    def test_instruction_carries_baml(self, compiler, product, message):
        schema = compiler.compile(product, SchemaFormat.BAML)
        prepared = PatternExtraction().prepare_request(schema, message)
        content = prepared.messages[-1]["content"]
        assert content.startswith("Describe the mug.\n\nRespond with a JSON value")
        assert "```baml\nclass Product {" in content
        assert "single ```json fenced block" in content

    def test_fenced_json(self):
        content = 'Here is the product:\n```json\n{"title": "Mug", "price": 9.99}\n```\nEnjoy!'
        assert PatternExtraction().extract(RawResponse.from_text(content)) == (
            '{"title": "Mug", "price": 9.99}'
        )

    def test_output_header(self):
        content = 'Notes {not json}\n## Output values\n{"a": 1}\n'
        assert PatternExtraction().extract(RawResponse.from_text(content)) == '{"a": 1}'

    def test_skips_undecodable_fence(self):
        content = '```json\nnot available\n```\nFixed:\n```json\n{"a": 1}\n```'
        assert PatternExtraction().extract(RawResponse.from_text(content)) == '{"a": 1}'

    def test_unfenced_payload_is_trimmed(self):
        content = 'Sure! {"title": "Mug", "price": 9.99} Let me know if you need more.'
        assert extract_payload(content, DataFormat.JSON, PayloadCodec()) == (
            '{"title": "Mug", "price": 9.99}'
        )

    def test_output_header_with_trailing_prose(self):
        content = '## Output values\n{"a": 1}\nThat is all.'
        assert PatternExtraction().extract(RawResponse.from_text(content)) == '{"a": 1}'

    def test_untagged_fence(self):
        content = 'Result:\n```\n{"a": 1}\n```'
        assert extract_payload(content, DataFormat.JSON, PayloadCodec()) == '{"a": 1}'

    def test_nothing_found(self):
        with pytest.raises(ExtractionFailure, match="No decodable json payload"):
            PatternExtraction().extract(RawResponse.from_text("I cannot help with that."))

    def test_empty_response(self):
        with pytest.raises(ExtractionFailure, match="no text content"):
            PatternExtraction().extract(RawResponse.from_text(None))

    def test_toon_payload(self, compiler, product, message):
        strategy = PatternExtraction()
        prepared = strategy.prepare_request(
            compiler.compile(product, "baml"), message, data_format=DataFormat.TOON
        )
        assert "single ```toon fenced block" in prepared.messages[-1]["content"]
        content = "Sure:\n```toon\ntitle: Mug\nprice: 9.99\n```"
        text = strategy.extract(RawResponse.from_text(content), data_format=DataFormat.TOON)
        assert text == "title: Mug\nprice: 9.99"


# ═══════════════════════════════════════════════════════════════════════════════
# EnhancedPrompting
# ═══════════════════════════════════════════════════════════════════════════════


class TestEnhancedPrompting:

    def test_always_available(self):
        strategy = EnhancedPrompting()
        assert strategy.universal
        assert strategy.is_available("acme", "anything")

    def test_instruction(self, compiler, product, message):
        prepared = EnhancedPrompting().prepare_request(compiler.compile(product), message)
        content = prepared.messages[-1]["content"]
        assert '{"title": "example string", "price": 3.14}' in content
        assert "Required fields: title, price" in content
        assert '"required": [' in content
        assert "4. Is wrapped in ```json``` markdown code blocks" in content

    def test_adds_system_message(self, compiler, product, message):
        prepared = EnhancedPrompting().prepare_request(compiler.compile(product), message)
        assert prepared.messages[0] == {
            "role": "system",
            "content": "You are a helpful assistant that always responds with valid JSON when requested.",
        }
        assert len(prepared.messages) == 2

    def test_keeps_existing_system_message(self, compiler, product):
        message = OutgoingMessage.build("acme", "m1", [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Describe the mug."},
        ])
        prepared = EnhancedPrompting().prepare_request(compiler.compile(product), message)
        assert [m["role"] for m in prepared.messages] == ["system", "user"]
        assert prepared.messages[0]["content"] == "Be brief."

    def test_toon_example(self, compiler, product, message):
        prepared = EnhancedPrompting().prepare_request(
            compiler.compile(product), message, data_format=DataFormat.TOON
        )
        content = prepared.messages[-1]["content"]
        assert "```toon\ntitle: example string\nprice: 3.14\n```" in content
        assert "valid TOON" in prepared.messages[0]["content"]

    def test_example_for_union(self, order_action):
        assert example_value(order_action) == {"_type": "Buy", "sku": "example string", "qty": 42}

    def test_extracts_bare_json(self):
        content = 'Sure! {"title": "Mug", "price": 9.99}'
        assert json.loads(EnhancedPrompting().extract(RawResponse.from_text(content))) == {
            "title": "Mug", "price": 9.99,
        }
