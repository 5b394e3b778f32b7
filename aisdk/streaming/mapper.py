"""
Provider events -> canonical stream parts.

Providers customize the mapping through `EventMapperHooks`: small callables
invoked at fixed points, each receiving the mutable `EventMapperState`.
"""
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Set, Tuple

from ..types import (
    CallWarning,
    Error,
    Finish,
    FinishReason,
    ProviderMetadata,
    Raw,
    ReasoningDelta,
    ReasoningEnd,
    ReasoningStart,
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
from .events import (
    DataEvent,
    DoneEvent,
    ErrorEvent,
    Event,
    RawEvent,
    ReasoningDeltaEvent,
    ReasoningEndEvent,
    ReasoningStartEvent,
    TextDeltaEvent,
    ToolCallDeltaEvent,
    ToolCallEndEvent,
    ToolCallStartEvent,
    UsageEvent,
)


class EventMapperState:
    def __init__(self, extra: Any = None):
        self.text_open: Optional[str] = None
        self.reasoning_open: Optional[str] = None
        self.tool_args: Dict[str, str] = {}
        self.tool_names: Dict[str, str] = {}
        self.open_tools: Dict[str, bool] = {}
        self.usage = Usage()
        self.has_tool_calls = False
        self.extra = extra


class EventMapperHooks:
    def __init__(
        self,
        text_start_metadata: Optional[Callable[[EventMapperState], Optional[ProviderMetadata]]] = None,
        reasoning_start_metadata: Optional[Callable[[EventMapperState], Optional[ProviderMetadata]]] = None,
        tool_start_metadata: Optional[Callable[[EventMapperState, str, str], Optional[ProviderMetadata]]] = None,
        tool_end_metadata: Optional[Callable[[EventMapperState, str], Optional[ProviderMetadata]]] = None,
        data: Optional[Callable[[EventMapperState, str, Any], Optional[List[Any]]]] = None,
        finish: Optional[Callable[[EventMapperState], Tuple[FinishReason, Optional[ProviderMetadata]]]] = None,
    ):
        self.text_start_metadata = text_start_metadata
        self.reasoning_start_metadata = reasoning_start_metadata
        self.tool_start_metadata = tool_start_metadata
        self.tool_end_metadata = tool_end_metadata
        self.data = data
        self.finish = finish


class EventMapperConfig:
    def __init__(
        self,
        warnings: Optional[List[CallWarning]] = None,
        treat_tool_names_as_text: Optional[Set[str]] = None,
        default_text_id: str = "text-1",
        finish_reason_fallback: FinishReason = "stop",
        initial_extra: Any = None,
        hooks: Optional[EventMapperHooks] = None,
    ):
        self.warnings = list(warnings or [])
        self.treat_tool_names_as_text = set(treat_tool_names_as_text or ())
        self.default_text_id = default_text_id
        self.finish_reason_fallback = finish_reason_fallback
        self.initial_extra = initial_extra
        self.hooks = hooks or EventMapperHooks()


async def map_events_to_parts(events: AsyncIterator[Event], cfg: EventMapperConfig) -> AsyncIterator[Any]:
    state = EventMapperState(cfg.initial_extra)
    hooks = cfg.hooks

    def as_text(tool_id: str) -> bool:
        name = state.tool_names.get(tool_id)
        return name is not None and name in cfg.treat_tool_names_as_text

    def close_open_parts() -> List[Any]:
        closing: List[Any] = []
        if state.text_open is not None:
            closing.append(TextEnd(id=state.text_open))
            state.text_open = None
        if state.reasoning_open is not None:
            closing.append(ReasoningEnd(id=state.reasoning_open))
            state.reasoning_open = None
        for tool_id, text_like in state.open_tools.items():
            closing.append(TextEnd(id=tool_id) if text_like else ToolInputEnd(id=tool_id))
        state.open_tools.clear()
        return closing

    yield StreamStart(warnings=cfg.warnings)

    try:
        async for event in events:
            if isinstance(event, TextDeltaEvent):
                if state.text_open is None:
                    text_id = cfg.default_text_id
                    md = hooks.text_start_metadata(state) if hooks.text_start_metadata else None
                    yield TextStart(id=text_id, provider_metadata=md)
                    state.text_open = text_id
                yield TextDelta(id=state.text_open, delta=event.delta)

            elif isinstance(event, ReasoningStartEvent):
                state.reasoning_open = event.id
                md = hooks.reasoning_start_metadata(state) if hooks.reasoning_start_metadata else None
                yield ReasoningStart(id=event.id, provider_metadata=md)

            elif isinstance(event, ReasoningDeltaEvent):
                yield ReasoningDelta(id=state.reasoning_open or "reasoning-1", delta=event.delta)

            elif isinstance(event, ReasoningEndEvent):
                if state.reasoning_open is not None:
                    yield ReasoningEnd(id=state.reasoning_open)
                    state.reasoning_open = None

            elif isinstance(event, ToolCallStartEvent):
                state.tool_names[event.id] = event.name
                state.open_tools[event.id] = event.name in cfg.treat_tool_names_as_text
                if event.name in cfg.treat_tool_names_as_text:
                    md = hooks.text_start_metadata(state) if hooks.text_start_metadata else None
                    yield TextStart(id=event.id, provider_metadata=md)
                else:
                    state.has_tool_calls = True
                    md = hooks.tool_start_metadata(state, event.id, event.name) if hooks.tool_start_metadata else None
                    yield ToolInputStart(id=event.id, tool_name=event.name, provider_metadata=md)

            elif isinstance(event, ToolCallDeltaEvent):
                state.tool_args[event.id] = state.tool_args.get(event.id, "") + event.args_json
                if as_text(event.id):
                    yield TextDelta(id=event.id, delta=event.args_json)
                else:
                    yield ToolInputDelta(id=event.id, delta=event.args_json)

            elif isinstance(event, ToolCallEndEvent):
                state.open_tools.pop(event.id, None)
                if as_text(event.id):
                    yield TextEnd(id=event.id)
                    continue
                yield ToolInputEnd(id=event.id)
                md = hooks.tool_end_metadata(state, event.id) if hooks.tool_end_metadata else None
                if event.id in state.tool_args or event.id in state.tool_names:
                    args = state.tool_args.pop(event.id, "")
                    name = state.tool_names.pop(event.id, "")
                    yield ToolCallPart(
                        tool_call_id=event.id,
                        tool_name=name,
                        input=args,
                        provider_metadata=md,
                    )

            elif isinstance(event, UsageEvent):
                u = event.usage
                state.usage.input_tokens = u.input_tokens
                state.usage.output_tokens = u.output_tokens
                state.usage.total_tokens = u.total_tokens
                state.usage.cached_input_tokens = u.cache_read_tokens
                if u.reasoning_tokens is not None:
                    state.usage.reasoning_tokens = u.reasoning_tokens

            elif isinstance(event, RawEvent):
                yield Raw(raw_value=event.raw_value)

            elif isinstance(event, DataEvent):
                if hooks.data is not None:
                    for part in hooks.data(state, event.key, event.value) or []:
                        yield part

            elif isinstance(event, ErrorEvent):
                for part in close_open_parts():
                    yield part
                yield Error(error={"message": event.message})
                return

            elif isinstance(event, DoneEvent):
                for part in close_open_parts():
                    yield part
                if hooks.finish is not None:
                    finish_reason, md = hooks.finish(state)
                elif state.has_tool_calls:
                    finish_reason, md = "tool_calls", None
                else:
                    finish_reason, md = cfg.finish_reason_fallback, None
                yield Finish(usage=state.usage.model_copy(), finish_reason=finish_reason, provider_metadata=md)
                return
    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()

