"""Provider-level events produced by chunk parsers before canonical mapping."""
from typing import Any, Optional, Union

from pydantic import BaseModel


class TokenUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cache_read_tokens: Optional[int] = None
    cache_write_tokens: Optional[int] = None
    reasoning_tokens: Optional[int] = None


class TextDeltaEvent(BaseModel):
    delta: str


class ReasoningStartEvent(BaseModel):
    id: str


class ReasoningDeltaEvent(BaseModel):
    delta: str


class ReasoningEndEvent(BaseModel):
    pass


class UsageEvent(BaseModel):
    usage: TokenUsage


class ToolCallStartEvent(BaseModel):
    id: str
    name: str


class ToolCallDeltaEvent(BaseModel):
    id: str
    args_json: str


class ToolCallEndEvent(BaseModel):
    id: str


class DataEvent(BaseModel):
    """Provider-specific payload handed to the mapper's `data` hook."""
    key: str
    value: Any = None


class ErrorEvent(BaseModel):
    message: str


class RawEvent(BaseModel):
    raw_value: Any = None


class DoneEvent(BaseModel):
    pass


Event = Union[
    TextDeltaEvent,
    ReasoningStartEvent,
    ReasoningDeltaEvent,
    ReasoningEndEvent,
    UsageEvent,
    ToolCallStartEvent,
    ToolCallDeltaEvent,
    ToolCallEndEvent,
    DataEvent,
    ErrorEvent,
    RawEvent,
    DoneEvent,
]
