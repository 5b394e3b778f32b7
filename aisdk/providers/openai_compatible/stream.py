"""
SSE stream handling for chat- and completion-style endpoints.

Both endpoints share framing (`data: {...}` chunks terminated by
`data: [DONE]`), so one generator serves both modes.
"""
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from ...streaming.sse import SseDecoder
from ...types import (
    CallWarning,
    Error,
    Finish,
    FinishReason,
    ProviderMetadata,
    Raw,
    ReasoningDelta,
    ReasoningEnd,
    ReasoningStart,
    ResponseMetadata,
    StreamStart,
    TextDelta,
    TextEnd,
    TextStart,
    ToolCallPart,
    ToolInputDelta,
    ToolInputEnd,
    ToolInputStart,
    Usage,
)
from ...utils import parse_json_loose
from ..base import set_metadata_value, usage_from_openai

logger = logging.getLogger("aisdk.providers.openai_compatible")

CHAT = "chat"
COMPLETION = "completion"

TEXT_ID = "txt-0"
REASONING_ID = "reasoning-0"
COMPLETION_TEXT_ID = "0"


def map_finish_reason(reason: Optional[str]) -> FinishReason:
    if reason == "stop":
        return "stop"
    if reason == "length":
        return "length"
    if reason == "content_filter":
        return "content_filter"
    if reason in ("function_call", "tool_calls"):
        return "tool_calls"
    return "unknown"


class StreamSettings:
    def __init__(self, warnings: List[CallWarning], include_raw: bool, include_usage: bool, provider_scope_name: str):
        self.warnings = warnings
        self.include_raw = include_raw
        self.include_usage = include_usage
        self.provider_scope_name = provider_scope_name


class ToolDeltaError(Exception):
    """A malformed tool-call delta. Terminates the stream with an `Error` part."""


class _ToolCallSlot:
    def __init__(self):
        self.id: Optional[str] = None
        self.name: Optional[str] = None
        self.args = ""
        self.started = False
        self.finished = False


class _StreamState:
    def __init__(self, mode: str):
        self.mode = mode
        self.text_open = False
        self.reasoning_open = False
        self.completion_started = False
        self.tool_calls: Dict[int, _ToolCallSlot] = {}
        self.usage = Usage()
        self.finish_reason: FinishReason = "unknown"
        self.provider_metadata: Optional[ProviderMetadata] = None


def response_metadata_from_chunk(chunk: Dict[str, Any]) -> ResponseMetadata:
    created = chunk.get("created")
    timestamp_ms = created * 1000 if isinstance(created, int) and not isinstance(created, bool) else None
    model = chunk.get("model")
    chunk_id = chunk.get("id")
    return ResponseMetadata(
        id=chunk_id if isinstance(chunk_id, str) else None,
        timestamp_ms=timestamp_ms,
        model_id=model if isinstance(model, str) else None,
    )


def _update_usage(state: _StreamState, settings: StreamSettings, chunk: Dict[str, Any]) -> None:
    if not settings.include_usage:
        return
    raw = chunk.get("usage")
    usage = usage_from_openai(raw)
    if usage is None:
        return
    state.usage.input_tokens = usage.input_tokens
    state.usage.output_tokens = usage.output_tokens
    state.usage.total_tokens = usage.total_tokens
    if usage.cached_input_tokens is not None:
        state.usage.cached_input_tokens = usage.cached_input_tokens
    if usage.reasoning_tokens is not None:
        state.usage.reasoning_tokens = usage.reasoning_tokens

    details = raw.get("completion_tokens_details")
    if isinstance(details, dict):
        for key, name in (("accepted_prediction_tokens", "acceptedPredictionTokens"), ("rejected_prediction_tokens", "rejectedPredictionTokens")):
            if isinstance(details.get(key), int):
                state.provider_metadata = set_metadata_value(state.provider_metadata, settings.provider_scope_name, name, details[key])


def _first_choice(chunk: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    choices = chunk.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return None


def _completion_delta(chunk: Dict[str, Any], state: _StreamState) -> List[Any]:
    parts: List[Any] = []
    choice = _first_choice(chunk)
    if choice is None:
        return parts
    if isinstance(choice.get("finish_reason"), str):
        state.finish_reason = map_finish_reason(choice["finish_reason"])
    text = choice.get("text")
    if isinstance(text, str) and text:
        parts.append(TextDelta(id=COMPLETION_TEXT_ID, delta=text))
    return parts


def _close_tool(slot: _ToolCallSlot, parts: List[Any]) -> None:
    parts.append(ToolInputEnd(id=slot.id))
    parts.append(ToolCallPart(tool_call_id=slot.id, tool_name=slot.name, input=slot.args))
    slot.finished = True


def _args_complete(args: str) -> bool:
    sentinel = object()
    return args.strip() != "" and parse_json_loose(args, sentinel) is not sentinel


def _chat_delta(chunk: Dict[str, Any], state: _StreamState) -> List[Any]:
    parts: List[Any] = []
    choice = _first_choice(chunk)
    if choice is None:
        return parts
    if isinstance(choice.get("finish_reason"), str):
        state.finish_reason = map_finish_reason(choice["finish_reason"])

    delta = choice.get("delta")
    if not isinstance(delta, dict):
        return parts

    reasoning = delta.get("reasoning_content")
    if reasoning is None:
        reasoning = delta.get("reasoning")
    if isinstance(reasoning, str):
        if not state.reasoning_open:
            state.reasoning_open = True
            parts.append(ReasoningStart(id=REASONING_ID))
        if reasoning:
            parts.append(ReasoningDelta(id=REASONING_ID, delta=reasoning))

    content = delta.get("content")
    if isinstance(content, str):
        if not state.text_open:
            state.text_open = True
            parts.append(TextStart(id=TEXT_ID))
        if content:
            parts.append(TextDelta(id=TEXT_ID, delta=content))

    for tc in delta.get("tool_calls") or []:
        index = tc.get("index") if isinstance(tc, dict) else None
        if not isinstance(index, int):
            raise ToolDeltaError("Expected 'index' to be a number.")
        slot = state.tool_calls.setdefault(index, _ToolCallSlot())
        func = tc.get("function")
        if not isinstance(func, dict):
            raise ToolDeltaError("Expected 'function.name' to be a string.")
        fragment = func.get("arguments") if isinstance(func.get("arguments"), str) else None

        if not slot.started:
            if not isinstance(tc.get("id"), str):
                raise ToolDeltaError("Expected 'id' to be a string.")
            if not isinstance(func.get("name"), str):
                raise ToolDeltaError("Expected 'function.name' to be a string.")
            slot.id = tc["id"]
            slot.name = func["name"]
            slot.started = True
            parts.append(ToolInputStart(id=slot.id, tool_name=slot.name))
            if fragment:
                parts.append(ToolInputDelta(id=slot.id, delta=fragment))
                slot.args += fragment
            if not slot.finished and _args_complete(slot.args):
                _close_tool(slot, parts)
            continue

        if slot.finished or not fragment:
            continue
        slot.args += fragment
        parts.append(ToolInputDelta(id=slot.id, delta=fragment))
        if _args_complete(slot.args):
            _close_tool(slot, parts)

    return parts


def _finish_parts(state: _StreamState) -> List[Any]:
    parts: List[Any] = []
    if state.mode == CHAT:
        if state.reasoning_open:
            parts.append(ReasoningEnd(id=REASONING_ID))
        if state.text_open:
            parts.append(TextEnd(id=TEXT_ID))
        for slot in state.tool_calls.values():
            if slot.started and not slot.finished:
                _close_tool(slot, parts)
    elif state.completion_started:
        parts.append(TextEnd(id=COMPLETION_TEXT_ID))
    parts.append(Finish(usage=state.usage, finish_reason=state.finish_reason, provider_metadata=state.provider_metadata))
    return parts


async def build_stream(byte_stream: AsyncIterator[bytes], settings: StreamSettings, mode: str) -> AsyncIterator[Any]:
    """
    Map an OpenAI-style SSE byte stream to canonical stream parts.

    A stream that ends without `[DONE]` still finishes with the state seen so
    far; malformed chunks end it with an `Error` part.
    """
    state = _StreamState(mode)
    decoder = SseDecoder()
    first_chunk = True

    def handle(event) -> Tuple[List[Any], bool]:
        nonlocal first_chunk
        if event.data.strip() == "[DONE]":
            return _finish_parts(state), True
        try:
            chunk = json.loads(event.data)
        except ValueError:
            logger.debug("Received a chunk that is not valid JSON")
            return [Error(error={"message": "invalid json chunk"})], True
        if not isinstance(chunk, dict):
            return [Error(error={"message": "invalid json chunk"})], True

        parts: List[Any] = []
        if settings.include_raw:
            parts.append(Raw(raw_value=chunk))
        if "error" in chunk and chunk.get("error") is not None:
            parts.append(Error(error=chunk["error"]))
            return parts, True

        if first_chunk:
            first_chunk = False
            parts.append(response_metadata_from_chunk(chunk))
            if mode == COMPLETION:
                parts.append(TextStart(id=COMPLETION_TEXT_ID))
                state.completion_started = True

        _update_usage(state, settings, chunk)
        if mode == CHAT:
            try:
                parts.extend(_chat_delta(chunk, state))
            except ToolDeltaError as e:
                parts.append(Error(error={"message": str(e)}))
                return parts, True
        else:
            parts.extend(_completion_delta(chunk, state))
        return parts, False

    yield StreamStart(warnings=settings.warnings)
    try:
        async for data in byte_stream:
            for event in decoder.push(data):
                parts, done = handle(event)
                for part in parts:
                    yield part
                if done:
                    return
        for event in decoder.finish():
            parts, done = handle(event)
            for part in parts:
                yield part
            if done:
                return
        for part in _finish_parts(state):
            yield part
    finally:
        aclose = getattr(byte_stream, "aclose", None)
        if aclose is not None:
            await aclose()
