"""
Tests for the Anthropic Messages adapter using a queued MockTransport.
"""
import json

import pytest

from aisdk.catalog import ProviderDefinition, SdkType
from aisdk.exceptions import AuthenticationError, HttpStatusError, ProviderError
from aisdk.providers.anthropic import build_anthropic_model, convert_to_anthropic_messages, map_stop_reason
from aisdk.registry import Credentials
from aisdk.testing import MockTransport
from aisdk.types import (
    AssistantMessage,
    CallOptions,
    Error,
    Finish,
    FunctionTool,
    JsonOutput,
    ProviderTool,
    ReasoningContent,
    ReasoningPart,
    ReasoningStart,
    ResponseFormat,
    ResponseMetadata,
    StreamStart,
    SystemMessage,
    TextPart,
    ToolCallPart,
    ToolChoice,
    ToolMessage,
    ToolResultPart,
    UserMessage,
)

TOOL_STREAM = [
    {"type": "message_start", "message": {"id": "msg_1", "model": "claude-sonnet-4-5", "usage": {"input_tokens": 10, "output_tokens": 1}}},
    {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
    {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Checking"}},
    {"type": "content_block_stop", "index": 0},
    {"type": "content_block_start", "index": 1, "content_block": {"type": "tool_use", "id": "toolu_1", "name": "get_weather", "input": {}}},
    {"type": "content_block_delta", "index": 1, "delta": {"type": "input_json_delta", "partial_json": '{"city":'}},
    {"type": "content_block_delta", "index": 1, "delta": {"type": "input_json_delta", "partial_json": '"Paris"}'}},
    {"type": "content_block_stop", "index": 1},
    {"type": "message_delta", "delta": {"stop_reason": "tool_use"}, "usage": {"output_tokens": 20}},
    {"type": "message_stop"},
]


def _model(transport, headers=None, name="anthropic"):
    definition = ProviderDefinition(name=name, sdk_type=SdkType.ANTHROPIC, headers=headers or {})
    return build_anthropic_model(definition, "claude-sonnet-4-5", Credentials(api_key="sk-ant"), transport)


def _options(text="What's the weather in Paris?", **kwargs):
    return CallOptions(prompt=[UserMessage(content=[TextPart(text=text)])], **kwargs)


@pytest.mark.asyncio
async def test_stream_text_and_tool_call():
    transport = MockTransport().add_sse(TOOL_STREAM)
    model = _model(transport)

    stream = await model.do_stream(_options())
    parts = [p async for p in stream]

    assert isinstance(parts[0], StreamStart)
    assert isinstance(parts[1], ResponseMetadata)
    assert parts[1].id == "msg_1"
    call = next(p for p in parts if isinstance(p, ToolCallPart))
    assert call.tool_call_id == "toolu_1"
    assert json.loads(call.input) == {"city": "Paris"}

    finish = parts[-1]
    assert isinstance(finish, Finish)
    assert finish.finish_reason == "tool_calls"
    assert finish.usage.input_tokens == 10
    assert finish.usage.output_tokens == 20
    assert finish.usage.total_tokens == 30
    assert finish.provider_metadata == {"anthropic": {"stopReason": "tool_use"}}
    assert transport.streams[0].closed


@pytest.mark.asyncio
async def test_stream_tool_call_without_arguments():
    frames = [
        {"type": "message_start", "message": {"id": "msg_2", "model": "claude-sonnet-4-5", "usage": {"input_tokens": 5, "output_tokens": 1}}},
        {"type": "content_block_start", "index": 0, "content_block": {"type": "tool_use", "id": "toolu_2", "name": "get_time", "input": {}}},
        {"type": "content_block_delta", "index": 0, "delta": {"type": "input_json_delta", "partial_json": ""}},
        {"type": "content_block_stop", "index": 0},
        {"type": "message_delta", "delta": {"stop_reason": "tool_use"}, "usage": {"output_tokens": 3}},
        {"type": "message_stop"},
    ]
    transport = MockTransport().add_sse(frames)

    stream = await _model(transport).do_stream(_options("What time is it?"))
    parts = [p async for p in stream]

    calls = [p for p in parts if isinstance(p, ToolCallPart)]
    assert len(calls) == 1
    assert calls[0].tool_call_id == "toolu_2"
    assert calls[0].tool_name == "get_time"
    assert calls[0].input == ""
    assert parts[-1].finish_reason == "tool_calls"


@pytest.mark.asyncio
async def test_generate_collects_stream():
    transport = MockTransport().add_sse(TOOL_STREAM)
    response = await _model(transport).do_generate(_options())

    assert response.text == "Checking"
    assert response.tool_calls[0].tool_name == "get_weather"
    assert response.finish_reason == "tool_calls"
    assert response.request_body["model"] == "claude-sonnet-4-5"


@pytest.mark.asyncio
async def test_request_wire_format():
    transport = MockTransport().add_sse([{"type": "message_stop"}])
    model = _model(transport)
    options = _options(
        max_output_tokens=500,
        temperature=0.2,
        seed=7,
        tools=[FunctionTool(name="get_weather", description="Weather", input_schema={"type": "object"})],
        tool_choice=ToolChoice.tool("get_weather"),
        provider_options={"anthropic": {"disableParallelToolUse": True}},
    )
    stream = await model.do_stream(options)
    parts = [p async for p in stream]

    request = transport.requests[0]
    assert request.url == "https://api.anthropic.com/v1/messages"
    assert request.headers["x-api-key"] == "sk-ant"
    assert request.headers["anthropic-version"] == "2023-06-01"
    assert request.headers["accept"] == "text/event-stream"

    body = request.json()
    assert body["stream"] is True
    assert body["max_tokens"] == 500
    assert body["temperature"] == 0.2
    assert body["tools"] == [{"name": "get_weather", "input_schema": {"type": "object"}, "description": "Weather"}]
    assert body["tool_choice"] == {"type": "tool", "name": "get_weather", "disable_parallel_tool_use": True}
    assert "seed" not in body
    assert parts[0].warnings[0].setting == "seed"


@pytest.mark.asyncio
async def test_thinking_budget_raises_max_tokens():
    transport = MockTransport().add_sse([{"type": "message_stop"}])
    options = _options(temperature=0.7, provider_options={"anthropic": {"thinking": {"type": "enabled", "budgetTokens": 2000}}})
    await _model(transport).do_stream(options)

    body = transport.requests[0].json()
    assert body["thinking"] == {"type": "enabled", "budget_tokens": 2000}
    assert body["max_tokens"] == 2001
    assert "temperature" not in body


@pytest.mark.asyncio
async def test_json_response_format_uses_tool():
    frames = [
        {"type": "content_block_start", "index": 0, "content_block": {"type": "tool_use", "id": "t1", "name": "json", "input": {}}},
        {"type": "content_block_delta", "index": 0, "delta": {"type": "input_json_delta", "partial_json": '{"answer":42}'}},
        {"type": "content_block_stop", "index": 0},
        {"type": "message_delta", "delta": {"stop_reason": "tool_use"}},
        {"type": "message_stop"},
    ]
    transport = MockTransport().add_sse(frames)
    schema = {"type": "object", "properties": {"answer": {"type": "number"}}}
    response = await _model(transport).do_generate(_options(response_format=ResponseFormat(type="json", json_schema=schema)))

    assert json.loads(response.text) == {"answer": 42}
    assert response.tool_calls == []
    assert response.finish_reason == "stop"
    body = transport.requests[0].json()
    assert body["tool_choice"] == {"type": "tool", "name": "json", "disable_parallel_tool_use": True}
    assert body["tools"][0]["input_schema"] == schema


@pytest.mark.asyncio
async def test_reasoning_with_signature():
    frames = [
        {"type": "content_block_start", "index": 0, "content_block": {"type": "thinking", "thinking": ""}},
        {"type": "content_block_delta", "index": 0, "delta": {"type": "thinking_delta", "thinking": "Let me think"}},
        {"type": "content_block_delta", "index": 0, "delta": {"type": "signature_delta", "signature": "sig123"}},
        {"type": "content_block_stop", "index": 0},
        {"type": "content_block_start", "index": 1, "content_block": {"type": "text", "text": ""}},
        {"type": "content_block_delta", "index": 1, "delta": {"type": "text_delta", "text": "42"}},
        {"type": "content_block_stop", "index": 1},
        {"type": "message_delta", "delta": {"stop_reason": "end_turn"}},
        {"type": "message_stop"},
    ]
    transport = MockTransport().add_sse(frames)
    response = await _model(transport).do_generate(_options())

    assert response.content[0] == ReasoningContent(text="Let me think", provider_metadata={"anthropic": {"signature": "sig123"}})
    assert response.text == "42"
    assert response.finish_reason == "stop"


@pytest.mark.asyncio
async def test_redacted_thinking_metadata():
    frames = [
        {"type": "content_block_start", "index": 0, "content_block": {"type": "redacted_thinking", "data": "opaque"}},
        {"type": "content_block_stop", "index": 0},
        {"type": "message_stop"},
    ]
    transport = MockTransport().add_sse(frames)
    stream = await _model(transport).do_stream(_options())
    parts = [p async for p in stream]

    start = next(p for p in parts if isinstance(p, ReasoningStart))
    assert start.provider_metadata == {"anthropic": {"redactedData": "opaque"}}


@pytest.mark.asyncio
async def test_stream_error_frame():
    frames = [{"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}]
    transport = MockTransport().add_sse(frames)
    stream = await _model(transport).do_stream(_options())
    parts = [p async for p in stream]
    assert isinstance(parts[-1], Error)
    assert parts[-1].error == {"message": "Overloaded"}

    transport.add_sse(frames)
    with pytest.raises(ProviderError, match="Overloaded"):
        await _model(transport).do_generate(_options())


@pytest.mark.asyncio
async def test_http_errors_are_mapped():
    transport = MockTransport().add_error(HttpStatusError(401, '{"error": {"message": "invalid x-api-key"}}'))
    with pytest.raises(AuthenticationError):
        await _model(transport).do_stream(_options())


@pytest.mark.asyncio
async def test_provider_tool_beta_merges_with_definition_header():
    transport = MockTransport().add_sse([{"type": "message_stop"}])
    model = _model(transport, headers={"anthropic-beta": "files-api-2025-04-14"})
    tools = [ProviderTool(id="anthropic.tool_search_regex_20251119", name="tool_search")]
    await model.do_stream(_options(tools=tools))

    request = transport.requests[0]
    assert request.headers["anthropic-beta"] == "files-api-2025-04-14,advanced-tool-use-2025-11-20"
    assert request.json()["tools"] == [{"type": "tool_search_tool_regex_20251119", "name": "tool_search_tool_regex"}]


@pytest.mark.asyncio
async def test_options_header_defaults_and_overrides():
    options_header = json.dumps({"anthropic": {"thinking": {"type": "disabled"}, "metadata": {"user_id": "u1"}, "model": "evil"}})
    transport = MockTransport().add_sse([{"type": "message_stop"}])
    model = _model(transport, headers={"x-ai-sdk-options": options_header})
    await model.do_stream(_options())

    request = transport.requests[0]
    body = request.json()
    assert body["thinking"] == {"type": "disabled"}
    assert body["metadata"] == {"user_id": "u1"}
    assert body["model"] == "claude-sonnet-4-5"
    assert "x-ai-sdk-options" not in request.headers


def test_convert_messages_merges_tool_results():
    prompt = [
        SystemMessage(content="Be brief."),
        UserMessage(content=[TextPart(text="Weather?")]),
        AssistantMessage(content=[
            ReasoningPart(text="need tool", provider_options={"anthropic": {"signature": "s1"}}),
            ToolCallPart(tool_call_id="c1", tool_name="get_weather", input='{"city":"Paris"}'),
        ]),
        ToolMessage(content=[ToolResultPart(tool_call_id="c1", tool_name="get_weather", output=JsonOutput(value={"temp": 20}))]),
    ]
    system, messages, warnings, last_has_reasoning = convert_to_anthropic_messages(prompt, "anthropic")

    assert system == [{"type": "text", "text": "Be brief."}]
    assert messages[1] == {
        "role": "assistant",
        "content": [
            {"type": "thinking", "thinking": "need tool", "signature": "s1"},
            {"type": "tool_use", "id": "c1", "name": "get_weather", "input": {"city": "Paris"}},
        ],
    }
    assert messages[2] == {"role": "user", "content": [{"type": "tool_result", "tool_use_id": "c1", "content": '{"temp":20}'}]}
    assert warnings == []
    assert last_has_reasoning


def test_map_stop_reason():
    assert map_stop_reason("end_turn", False, False) == "stop"
    assert map_stop_reason("tool_use", True, False) == "tool_calls"
    assert map_stop_reason("tool_use", False, True) == "stop"
    assert map_stop_reason("max_tokens", False, False) == "length"
    assert map_stop_reason("refusal", False, False) == "content_filter"
    assert map_stop_reason(None, False, False) == "unknown"
