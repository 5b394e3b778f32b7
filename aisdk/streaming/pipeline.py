import json
import logging
from typing import AsyncIterator, List, Optional, Protocol

from .events import (
    DoneEvent,
    ErrorEvent,
    Event,
    RawEvent,
    ReasoningDeltaEvent,
    ReasoningEndEvent,
    ReasoningStartEvent,
)
from .sse import SseDecoder, SseEvent

logger = logging.getLogger("aisdk.streaming")

REASONING_ID = "reasoning:0"


class ProviderChunk(Protocol):
    """Per-stream parser turning one SSE frame into zero or more events."""

    def try_from_sse(self, event: SseEvent) -> Optional[List[Event]]:
        ...


def raw_value_of(event: SseEvent):
    try:
        return json.loads(event.data)
    except ValueError:
        return event.data


async def sse_to_events(
    byte_stream: AsyncIterator[bytes],
    parser: ProviderChunk,
    include_raw: bool = False,
) -> AsyncIterator[Event]:
    """
    Decode an SSE byte stream into provider events.

    Stops after the first `ErrorEvent` or `DoneEvent`. If the byte stream ends
    without one, the trailing frame is flushed and `Unexpected EOF` is reported.
    """
    decoder = SseDecoder()
    reasoning_open = False

    def normalize(sse_events: List[SseEvent]):
        nonlocal reasoning_open
        for sse_event in sse_events:
            if include_raw:
                yield RawEvent(raw_value=raw_value_of(sse_event)), False
            for event in parser.try_from_sse(sse_event) or []:
                if isinstance(event, ReasoningStartEvent):
                    reasoning_open = True
                    yield event, False
                elif isinstance(event, ReasoningDeltaEvent):
                    if not reasoning_open:
                        reasoning_open = True
                        yield ReasoningStartEvent(id=REASONING_ID), False
                    yield event, False
                elif isinstance(event, ReasoningEndEvent):
                    reasoning_open = False
                    yield event, False
                elif isinstance(event, DoneEvent):
                    if reasoning_open:
                        reasoning_open = False
                        yield ReasoningEndEvent(), False
                    yield event, True
                    return
                elif isinstance(event, ErrorEvent):
                    yield event, True
                    return
                else:
                    yield event, False

    try:
        async for chunk in byte_stream:
            for event, stop in normalize(decoder.push(chunk)):
                yield event
                if stop:
                    return
        for event, stop in normalize(decoder.finish()):
            yield event
            if stop:
                return
    finally:
        aclose = getattr(byte_stream, "aclose", None)
        if aclose is not None:
            await aclose()

    logger.debug("SSE stream ended without a terminal event")
    yield ErrorEvent(message="Unexpected EOF")
