from typing import Annotated, Any, AsyncIterator, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field

ProviderOptions = Dict[str, Dict[str, Any]]
ProviderMetadata = Dict[str, Dict[str, Any]]

FinishReason = Literal["stop", "length", "content_filter", "tool_calls", "error", "other", "unknown"]

# --- Data content -----------------------------------------------------------

class Base64Data(BaseModel):
    type: Literal["base64"] = "base64"
    base64: str

class BytesData(BaseModel):
    type: Literal["bytes"] = "bytes"
    data: bytes

class UrlData(BaseModel):
    type: Literal["url"] = "url"
    url: str

DataContent = Annotated[Union[Base64Data, BytesData, UrlData], Field(discriminator="type")]

# --- Prompt -----------------------------------------------------------------

class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str
    provider_options: Optional[ProviderOptions] = None

class FilePart(BaseModel):
    type: Literal["file"] = "file"
    data: DataContent
    media_type: str
    filename: Optional[str] = None
    provider_options: Optional[ProviderOptions] = None

class ReasoningPart(BaseModel):
    type: Literal["reasoning"] = "reasoning"
    text: str
    provider_options: Optional[ProviderOptions] = None

class ToolCallPart(BaseModel):
    """A tool invocation requested by the model. `input` is a JSON string."""
    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str
    tool_name: str
    input: str
    provider_executed: bool = False
    provider_metadata: Optional[ProviderMetadata] = None
    dynamic: bool = False
    provider_options: Optional[ProviderOptions] = None

class TextOutput(BaseModel):
    type: Literal["text"] = "text"
    value: str

class JsonOutput(BaseModel):
    type: Literal["json"] = "json"
    value: Any = None

class ErrorTextOutput(BaseModel):
    type: Literal["error-text"] = "error-text"
    value: str

class ErrorJsonOutput(BaseModel):
    type: Literal["error-json"] = "error-json"
    value: Any = None

class ContentOutputText(BaseModel):
    type: Literal["text"] = "text"
    text: str

class ContentOutputMedia(BaseModel):
    type: Literal["media"] = "media"
    data: str
    media_type: str

class ContentOutput(BaseModel):
    type: Literal["content"] = "content"
    value: List[Annotated[Union[ContentOutputText, ContentOutputMedia], Field(discriminator="type")]]

ToolResultOutput = Annotated[
    Union[TextOutput, JsonOutput, ErrorTextOutput, ErrorJsonOutput, ContentOutput],
    Field(discriminator="type"),
]

class ToolResultPart(BaseModel):
    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str
    tool_name: str
    output: ToolResultOutput
    provider_options: Optional[ProviderOptions] = None

class ToolApprovalResponsePart(BaseModel):
    type: Literal["tool-approval-response"] = "tool-approval-response"
    approval_id: str
    approved: bool
    reason: Optional[str] = None

UserPart = Annotated[Union[TextPart, FilePart], Field(discriminator="type")]
AssistantPart = Annotated[
    Union[TextPart, ReasoningPart, FilePart, ToolCallPart, ToolResultPart],
    Field(discriminator="type"),
]
ToolPart = Annotated[Union[ToolResultPart, ToolApprovalResponsePart], Field(discriminator="type")]

class SystemMessage(BaseModel):
    role: Literal["system"] = "system"
    content: str
    provider_options: Optional[ProviderOptions] = None

class UserMessage(BaseModel):
    role: Literal["user"] = "user"
    content: List[UserPart]
    provider_options: Optional[ProviderOptions] = None

class AssistantMessage(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: List[AssistantPart]
    provider_options: Optional[ProviderOptions] = None

class ToolMessage(BaseModel):
    role: Literal["tool"] = "tool"
    content: List[ToolPart]
    provider_options: Optional[ProviderOptions] = None

PromptMessage = Annotated[
    Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage],
    Field(discriminator="role"),
]

# --- Tools & call options ---------------------------------------------------

class FunctionTool(BaseModel):
    type: Literal["function"] = "function"
    name: str
    description: Optional[str] = None
    input_schema: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})
    strict: Optional[bool] = None
    provider_options: Optional[ProviderOptions] = None

class ProviderTool(BaseModel):
    """A provider-hosted tool, e.g. id="google.google_search"."""
    type: Literal["provider"] = "provider"
    id: str
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)

Tool = Annotated[Union[FunctionTool, ProviderTool], Field(discriminator="type")]

class ToolChoice(BaseModel):
    type: Literal["auto", "none", "required", "tool"] = "auto"
    tool_name: Optional[str] = None

    @classmethod
    def tool(cls, name: str) -> "ToolChoice":
        return cls(type="tool", tool_name=name)

class ResponseFormat(BaseModel):
    type: Literal["text", "json"] = "text"
    json_schema: Optional[Dict[str, Any]] = None
    name: Optional[str] = None
    description: Optional[str] = None

class CallOptions(BaseModel):
    prompt: List[PromptMessage]
    max_output_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    stop_sequences: Optional[List[str]] = None
    seed: Optional[int] = None
    response_format: Optional[ResponseFormat] = None
    tools: Optional[List[Tool]] = None
    tool_choice: Optional[ToolChoice] = None
    include_raw_chunks: bool = False
    headers: Dict[str, str] = Field(default_factory=dict)
    provider_options: ProviderOptions = Field(default_factory=dict)

# --- Warnings & usage -------------------------------------------------------

class UnsupportedSettingWarning(BaseModel):
    type: Literal["unsupported-setting"] = "unsupported-setting"
    setting: str
    details: Optional[str] = None

class UnsupportedToolWarning(BaseModel):
    type: Literal["unsupported-tool"] = "unsupported-tool"
    tool_name: str
    details: Optional[str] = None

class OtherWarning(BaseModel):
    type: Literal["other"] = "other"
    message: str

CallWarning = Annotated[
    Union[UnsupportedSettingWarning, UnsupportedToolWarning, OtherWarning],
    Field(discriminator="type"),
]

class Usage(BaseModel):
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    reasoning_tokens: Optional[int] = None
    cached_input_tokens: Optional[int] = None

# --- Content & stream parts -------------------------------------------------

class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str
    provider_metadata: Optional[ProviderMetadata] = None

class ReasoningContent(BaseModel):
    type: Literal["reasoning"] = "reasoning"
    text: str
    provider_metadata: Optional[ProviderMetadata] = None

class GeneratedFile(BaseModel):
    type: Literal["file"] = "file"
    media_type: str
    data: str

class SourceUrl(BaseModel):
    type: Literal["source-url"] = "source-url"
    id: str
    url: str
    title: Optional[str] = None
    provider_metadata: Optional[ProviderMetadata] = None

class ToolApprovalRequest(BaseModel):
    type: Literal["tool-approval-request"] = "tool-approval-request"
    approval_id: str
    tool_call_id: str
    provider_metadata: Optional[ProviderMetadata] = None

class ToolResult(BaseModel):
    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str
    tool_name: str
    result: Any = None
    is_error: Optional[bool] = None
    preliminary: Optional[bool] = None
    provider_metadata: Optional[ProviderMetadata] = None

Content = Annotated[
    Union[TextContent, ReasoningContent, GeneratedFile, SourceUrl, ToolCallPart, ToolApprovalRequest, ToolResult],
    Field(discriminator="type"),
]

class StreamStart(BaseModel):
    type: Literal["stream-start"] = "stream-start"
    warnings: List[CallWarning] = Field(default_factory=list)

class TextStart(BaseModel):
    type: Literal["text-start"] = "text-start"
    id: str
    provider_metadata: Optional[ProviderMetadata] = None

class TextDelta(BaseModel):
    type: Literal["text-delta"] = "text-delta"
    id: str
    delta: str
    provider_metadata: Optional[ProviderMetadata] = None

class TextEnd(BaseModel):
    type: Literal["text-end"] = "text-end"
    id: str
    provider_metadata: Optional[ProviderMetadata] = None

class ReasoningStart(BaseModel):
    type: Literal["reasoning-start"] = "reasoning-start"
    id: str
    provider_metadata: Optional[ProviderMetadata] = None

class ReasoningDelta(BaseModel):
    type: Literal["reasoning-delta"] = "reasoning-delta"
    id: str
    delta: str
    provider_metadata: Optional[ProviderMetadata] = None

class ReasoningEnd(BaseModel):
    type: Literal["reasoning-end"] = "reasoning-end"
    id: str
    provider_metadata: Optional[ProviderMetadata] = None

class ReasoningSignature(BaseModel):
    type: Literal["reasoning-signature"] = "reasoning-signature"
    id: Optional[str] = None
    signature: str
    provider_metadata: Optional[ProviderMetadata] = None

class ToolInputStart(BaseModel):
    type: Literal["tool-input-start"] = "tool-input-start"
    id: str
    tool_name: str
    provider_executed: bool = False
    provider_metadata: Optional[ProviderMetadata] = None

class ToolInputDelta(BaseModel):
    type: Literal["tool-input-delta"] = "tool-input-delta"
    id: str
    delta: str
    provider_executed: bool = False
    provider_metadata: Optional[ProviderMetadata] = None

class ToolInputEnd(BaseModel):
    type: Literal["tool-input-end"] = "tool-input-end"
    id: str
    provider_executed: bool = False
    provider_metadata: Optional[ProviderMetadata] = None

class ResponseMetadata(BaseModel):
    type: Literal["response-metadata"] = "response-metadata"
    id: Optional[str] = None
    timestamp_ms: Optional[int] = None
    model_id: Optional[str] = None

class Raw(BaseModel):
    type: Literal["raw"] = "raw"
    raw_value: Any = None

class Error(BaseModel):
    type: Literal["error"] = "error"
    error: Any = None

class Finish(BaseModel):
    type: Literal["finish"] = "finish"
    usage: Usage = Field(default_factory=Usage)
    finish_reason: FinishReason = "unknown"
    provider_metadata: Optional[ProviderMetadata] = None

StreamPart = Annotated[
    Union[
        StreamStart,
        TextStart, TextDelta, TextEnd,
        ReasoningStart, ReasoningDelta, ReasoningEnd, ReasoningSignature,
        ToolInputStart, ToolInputDelta, ToolInputEnd, ToolCallPart,
        ToolResult, ToolApprovalRequest,
        GeneratedFile, SourceUrl,
        ResponseMetadata, Raw, Error, Finish,
    ],
    Field(discriminator="type"),
]

# --- Responses --------------------------------------------------------------

class GenerateResponse(BaseModel):
    content: List[Content] = Field(default_factory=list)
    finish_reason: FinishReason = "unknown"
    usage: Usage = Field(default_factory=Usage)
    provider_metadata: Optional[ProviderMetadata] = None
    request_body: Optional[Any] = None
    response_headers: Optional[Dict[str, str]] = None
    response_body: Optional[Any] = None
    warnings: List[CallWarning] = Field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(c.text for c in self.content if isinstance(c, TextContent))

    @property
    def tool_calls(self) -> List[ToolCallPart]:
        return [c for c in self.content if isinstance(c, ToolCallPart)]


class StreamResponse:
    """
    Result of `do_stream`. Iterate with `async for part in response`.
    Closing the response releases the underlying HTTP stream.
    """
    def __init__(
        self,
        stream: AsyncIterator[Any],
        request_body: Optional[Any] = None,
        response_headers: Optional[Dict[str, str]] = None,
    ):
        self.stream = stream
        self.request_body = request_body
        self.response_headers = response_headers

    def __aiter__(self):
        return self.stream.__aiter__()

    async def aclose(self) -> None:
        aclose = getattr(self.stream, "aclose", None)
        if aclose is not None:
            await aclose()
