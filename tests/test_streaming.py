"""
Tests for the SSE -> events -> parts pipeline and the stream collector.
"""
import json

import pytest

from aisdk.exceptions import NetworkError, ProviderError
from aisdk.providers.base import guard_stream
from aisdk.streaming import (
    EventMapperConfig,
    EventMapperHooks,
    StreamCollectorConfig,
    collect_stream_to_response,
    map_events_to_parts,
    sse_to_events,
)
from aisdk.streaming.events import (
    DataEvent,
    DoneEvent,
    ErrorEvent,
    RawEvent,
    ReasoningDeltaEvent,
    ReasoningEndEvent,
    ReasoningStartEvent,
    TextDeltaEvent,
    TokenUsage,
    ToolCallDeltaEvent,
    ToolCallEndEvent,
    ToolCallStartEvent,
    UsageEvent,
)
from aisdk.types import (
    Error,
    Finish,
    ReasoningContent,
    ReasoningDelta,
    ReasoningEnd,
    ReasoningSignature,
    ReasoningStart,
    SourceUrl,
    StreamResponse,
    StreamStart,
    TextContent,
    TextDelta,
    TextEnd,
    TextStart,
    ToolCallPart,
    ToolInputDelta,
    ToolInputEnd,
    ToolInputStart,
    UnsupportedSettingWarning,
    Usage,
)


class JsonChunkParser:
    """Minimal parser: {"text": ...}, {"think": ...}, {"done": true}, {"error": ...}."""

    def try_from_sse(self, event):
        if event.data == "[DONE]":
            return [DoneEvent()]
        chunk = json.loads(event.data)
        if "error" in chunk:
            return [ErrorEvent(message=chunk["error"])]
        if "think" in chunk:
            return [ReasoningDeltaEvent(delta=chunk["think"])]
        if "text" in chunk:
            return [TextDeltaEvent(delta=chunk["text"])]
        return None


class ByteStream:
    def __init__(self, chunks):
        self.chunks = [c.encode("utf-8") if isinstance(c, str) else c for c in chunks]
        self.closed = False

    def __aiter__(self):
        return self._gen()

    async def _gen(self):
        for chunk in self.chunks:
            yield chunk

    async def aclose(self):
        self.closed = True


async def _collect(agen):
    return [item async for item in agen]


async def _aiter(items):
    for item in items:
        yield item


@pytest.mark.asyncio
async def test_sse_to_events_stops_at_done():
    stream = ByteStream(['data: {"text": "Hel"}\n\n', 'data: {"text": "lo"}\n\ndata: [DONE]\n\n', 'data: {"text": "late"}\n\n'])
    events = await _collect(sse_to_events(stream, JsonChunkParser()))

    assert [type(e) for e in events] == [TextDeltaEvent, TextDeltaEvent, DoneEvent]
    assert "".join(e.delta for e in events if isinstance(e, TextDeltaEvent)) == "Hello"
    assert stream.closed


@pytest.mark.asyncio
async def test_sse_to_events_reports_unexpected_eof():
    stream = ByteStream(['data: {"text": "partial"}'])
    events = await _collect(sse_to_events(stream, JsonChunkParser()))

    assert isinstance(events[0], TextDeltaEvent)
    assert isinstance(events[-1], ErrorEvent)
    assert events[-1].message == "Unexpected EOF"


@pytest.mark.asyncio
async def test_sse_to_events_stops_at_error():
    stream = ByteStream(['data: {"error": "overloaded"}\n\n', 'data: {"text": "x"}\n\n'])
    events = await _collect(sse_to_events(stream, JsonChunkParser()))

    assert len(events) == 1
    assert events[0].message == "overloaded"


@pytest.mark.asyncio
async def test_sse_to_events_synthesizes_reasoning_boundaries():
    stream = ByteStream(['data: {"think": "hmm"}\n\n', "data: [DONE]\n\n"])
    events = await _collect(sse_to_events(stream, JsonChunkParser()))

    assert [type(e) for e in events] == [ReasoningStartEvent, ReasoningDeltaEvent, ReasoningEndEvent, DoneEvent]
    assert events[0].id == "reasoning:0"


@pytest.mark.asyncio
async def test_sse_to_events_raw_chunks():
    stream = ByteStream(['data: {"text": "a"}\n\n', "data: [DONE]\n\n"])
    events = await _collect(sse_to_events(stream, JsonChunkParser(), include_raw=True))

    assert isinstance(events[0], RawEvent)
    assert events[0].raw_value == {"text": "a"}
    assert isinstance(events[2], RawEvent)
    assert events[2].raw_value == "[DONE]"


@pytest.mark.asyncio
async def test_mapper_text_and_finish():
    events = [
        TextDeltaEvent(delta="Hi"),
        TextDeltaEvent(delta=" there"),
        UsageEvent(usage=TokenUsage(input_tokens=3, output_tokens=2, total_tokens=5, cache_read_tokens=1)),
        DoneEvent(),
    ]
    warning = UnsupportedSettingWarning(setting="topK")
    parts = await _collect(map_events_to_parts(_aiter(events), EventMapperConfig(warnings=[warning])))

    assert isinstance(parts[0], StreamStart)
    assert parts[0].warnings == [warning]
    assert isinstance(parts[1], TextStart) and parts[1].id == "text-1"
    assert [p.delta for p in parts if isinstance(p, TextDelta)] == ["Hi", " there"]
    assert isinstance(parts[-2], TextEnd)
    finish = parts[-1]
    assert isinstance(finish, Finish)
    assert finish.finish_reason == "stop"
    assert finish.usage.total_tokens == 5
    assert finish.usage.cached_input_tokens == 1


@pytest.mark.asyncio
async def test_mapper_tool_call_lifecycle():
    events = [
        ToolCallStartEvent(id="call_1", name="get_weather"),
        ToolCallDeltaEvent(id="call_1", args_json='{"city":'),
        ToolCallDeltaEvent(id="call_1", args_json='"Paris"}'),
        ToolCallEndEvent(id="call_1"),
        DoneEvent(),
    ]
    parts = await _collect(map_events_to_parts(_aiter(events), EventMapperConfig()))

    kinds = [type(p) for p in parts]
    assert kinds == [StreamStart, ToolInputStart, ToolInputDelta, ToolInputDelta, ToolInputEnd, ToolCallPart, Finish]
    call = parts[5]
    assert call.tool_call_id == "call_1"
    assert call.tool_name == "get_weather"
    assert json.loads(call.input) == {"city": "Paris"}
    assert parts[-1].finish_reason == "tool_calls"


@pytest.mark.asyncio
async def test_mapper_treats_json_tool_as_text():
    events = [
        ToolCallStartEvent(id="t", name="json"),
        ToolCallDeltaEvent(id="t", args_json='{"a":1}'),
        ToolCallEndEvent(id="t"),
        DoneEvent(),
    ]
    cfg = EventMapperConfig(treat_tool_names_as_text={"json"})
    parts = await _collect(map_events_to_parts(_aiter(events), cfg))

    assert [type(p) for p in parts] == [StreamStart, TextStart, TextDelta, TextEnd, Finish]
    assert parts[-1].finish_reason == "stop"


@pytest.mark.asyncio
async def test_mapper_hooks():
    def on_data(state, key, value):
        state.extra = value
        return [SourceUrl(id="s1", url=value)]

    def on_finish(state):
        return "length", {"test": {"seen": state.extra}}

    hooks = EventMapperHooks(
        reasoning_start_metadata=lambda state: {"test": {"kind": "thinking"}},
        data=on_data,
        finish=on_finish,
    )
    events = [
        ReasoningStartEvent(id="r1"),
        ReasoningDeltaEvent(delta="thinking"),
        ReasoningEndEvent(),
        DataEvent(key="citation", value="https://example.com"),
        DoneEvent(),
    ]
    parts = await _collect(map_events_to_parts(_aiter(events), EventMapperConfig(hooks=hooks)))

    assert isinstance(parts[1], ReasoningStart)
    assert parts[1].provider_metadata == {"test": {"kind": "thinking"}}
    assert isinstance(parts[2], ReasoningDelta) and parts[2].id == "r1"
    assert isinstance(parts[3], ReasoningEnd)
    assert isinstance(parts[4], SourceUrl)
    assert parts[-1].finish_reason == "length"
    assert parts[-1].provider_metadata == {"test": {"seen": "https://example.com"}}


@pytest.mark.asyncio
async def test_mapper_error_is_terminal():
    events = [TextDeltaEvent(delta="a"), ErrorEvent(message="boom"), TextDeltaEvent(delta="b")]
    parts = await _collect(map_events_to_parts(_aiter(events), EventMapperConfig()))

    assert isinstance(parts[-1], Error)
    assert parts[-1].error == {"message": "boom"}
    assert not any(isinstance(p, TextDelta) and p.delta == "b" for p in parts)


@pytest.mark.asyncio
async def test_mapper_error_closes_open_blocks():
    events = [
        TextDeltaEvent(delta="a"),
        ReasoningStartEvent(id="r1"),
        ToolCallStartEvent(id="t1", name="lookup"),
        ErrorEvent(message="boom"),
    ]
    parts = await _collect(map_events_to_parts(_aiter(events), EventMapperConfig()))

    assert [type(p) for p in parts[-4:]] == [TextEnd, ReasoningEnd, ToolInputEnd, Error]
    assert [p.id for p in parts[-4:-1]] == ["text-1", "r1", "t1"]
    assert not any(isinstance(p, ToolCallPart) for p in parts)


@pytest.mark.asyncio
async def test_mapper_emits_tool_call_without_arguments():
    events = [ToolCallStartEvent(id="t1", name="now"), ToolCallEndEvent(id="t1"), DoneEvent()]
    parts = await _collect(map_events_to_parts(_aiter(events), EventMapperConfig()))

    assert [type(p) for p in parts] == [StreamStart, ToolInputStart, ToolInputEnd, ToolCallPart, Finish]
    assert parts[3].tool_name == "now"
    assert parts[3].input == ""
    assert parts[-1].finish_reason == "tool_calls"


@pytest.mark.asyncio
async def test_guard_stream_closes_open_blocks_on_transport_error():
    async def parts():
        yield StreamStart()
        yield TextStart(id="0")
        yield TextDelta(id="0", delta="partial")
        yield ReasoningStart(id="r")
        yield ReasoningEnd(id="r")
        raise NetworkError("connection reset")

    out = await _collect(guard_stream(parts()))

    assert [type(p) for p in out[-2:]] == [TextEnd, Error]
    assert out[-2].id == "0"
    assert out[-1].error == {"message": "network: connection reset"}
    assert sum(isinstance(p, ReasoningEnd) for p in out) == 1


@pytest.mark.asyncio
async def test_guard_stream_closes_open_blocks_before_error_part():
    upstream = [StreamStart(), ToolInputStart(id="c1", tool_name="f"), ToolInputDelta(id="c1", delta="{"), Error(error={"message": "bad chunk"})]
    out = await _collect(guard_stream(_aiter(upstream)))

    assert [type(p) for p in out] == [StreamStart, ToolInputStart, ToolInputDelta, ToolInputEnd, Error]
    assert out[3].id == "c1"


def _stream(parts, headers=None):
    return StreamResponse(stream=_aiter(parts), response_headers=headers)


@pytest.mark.asyncio
async def test_collect_text_and_usage():
    parts = [
        StreamStart(warnings=[UnsupportedSettingWarning(setting="seed")]),
        TextStart(id="0"),
        TextDelta(id="0", delta="Hello"),
        TextDelta(id="0", delta=" world"),
        TextEnd(id="0"),
        Finish(usage=Usage(input_tokens=1, output_tokens=2, total_tokens=3), finish_reason="stop"),
    ]
    response = await collect_stream_to_response(_stream(parts, {"x-request-id": "abc"}))

    assert response.text == "Hello world"
    assert response.content == [TextContent(text="Hello world")]
    assert response.finish_reason == "stop"
    assert response.usage.total_tokens == 3
    assert response.response_headers == {"x-request-id": "abc"}
    assert response.warnings[0].setting == "seed"


@pytest.mark.asyncio
async def test_collect_filters_optional_parts():
    call = ToolCallPart(tool_call_id="c1", tool_name="f", input="{}")
    parts = [
        StreamStart(),
        ReasoningStart(id="r"),
        ReasoningDelta(id="r", delta="why"),
        ReasoningSignature(signature="sig"),
        ReasoningEnd(id="r"),
        call,
        Finish(finish_reason="tool_calls"),
    ]

    bare = await collect_stream_to_response(_stream(parts))
    assert bare.content == []

    cfg = StreamCollectorConfig(allow_reasoning=True, reasoning_metadata_scope="anthropic", allow_tool_calls=True)
    full = await collect_stream_to_response(_stream(parts), cfg)
    assert full.content[0] == ReasoningContent(text="why", provider_metadata={"anthropic": {"signature": "sig"}})
    assert full.tool_calls == [call]
    assert full.finish_reason == "tool_calls"


@pytest.mark.asyncio
async def test_collect_error_handling():
    parts = [StreamStart(), Error(error={"message": "bad"}), Finish()]
    lenient = await collect_stream_to_response(_stream(parts))
    assert lenient.finish_reason == "unknown"

    with pytest.raises(ProviderError, match="bad"):
        await collect_stream_to_response(_stream(parts), StreamCollectorConfig(fail_on_error=True))
