from typing import Dict, List, Optional

from ..exceptions import ProviderError
from ..types import (
    Error,
    Finish,
    FinishReason,
    GeneratedFile,
    GenerateResponse,
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
    ToolApprovalRequest,
    ToolCallPart,
    ToolResult,
    Usage,
)
from ..utils import dumps_compact


class StreamCollectorConfig:
    """Controls which optional part kinds are kept when collapsing a stream."""

    def __init__(
        self,
        allow_reasoning: bool = False,
        reasoning_metadata_scope: Optional[str] = None,
        allow_tool_calls: bool = False,
        allow_tool_results: bool = False,
        allow_files: bool = False,
        allow_source_urls: bool = False,
        fail_on_error: bool = False,
    ):
        self.allow_reasoning = allow_reasoning
        self.reasoning_metadata_scope = reasoning_metadata_scope
        self.allow_tool_calls = allow_tool_calls
        self.allow_tool_results = allow_tool_results
        self.allow_files = allow_files
        self.allow_source_urls = allow_source_urls
        self.fail_on_error = fail_on_error


async def collect_stream_to_response(
    stream_resp: StreamResponse,
    cfg: Optional[StreamCollectorConfig] = None,
) -> GenerateResponse:
    """Consume a stream-part sequence into a single GenerateResponse."""
    cfg = cfg or StreamCollectorConfig()
    content: List = []
    text_buf: Dict[str, str] = {}
    reasoning_buf: Dict[str, str] = {}
    reasoning_signature: Optional[str] = None
    usage = Usage()
    finish_reason: FinishReason = "unknown"
    warnings: List = []

    try:
        async for part in stream_resp:
            if isinstance(part, StreamStart):
                warnings = list(part.warnings)
            elif isinstance(part, TextStart):
                text_buf.setdefault(part.id, "")
            elif isinstance(part, TextDelta):
                text_buf[part.id] = text_buf.get(part.id, "") + part.delta
            elif isinstance(part, TextEnd):
                text = text_buf.pop(part.id, None)
                if text:
                    content.append(TextContent(text=text, provider_metadata=part.provider_metadata))
            elif isinstance(part, ReasoningStart) and cfg.allow_reasoning:
                reasoning_buf.setdefault(part.id, "")
            elif isinstance(part, ReasoningDelta) and cfg.allow_reasoning:
                reasoning_buf[part.id] = reasoning_buf.get(part.id, "") + part.delta
            elif isinstance(part, ReasoningEnd) and cfg.allow_reasoning:
                text = reasoning_buf.pop(part.id, None)
                if text:
                    metadata = None
                    if reasoning_signature is not None and cfg.reasoning_metadata_scope:
                        metadata = {cfg.reasoning_metadata_scope: {"signature": reasoning_signature}}
                    content.append(ReasoningContent(text=text, provider_metadata=metadata))
            elif isinstance(part, ReasoningSignature) and cfg.allow_reasoning:
                reasoning_signature = part.signature
            elif isinstance(part, (ToolCallPart, ToolApprovalRequest)) and cfg.allow_tool_calls:
                content.append(part)
            elif isinstance(part, ToolResult) and cfg.allow_tool_results:
                content.append(part.model_copy(update={"preliminary": None}))
            elif isinstance(part, GeneratedFile) and cfg.allow_files:
                content.append(part)
            elif isinstance(part, SourceUrl) and cfg.allow_source_urls:
                content.append(part)
            elif isinstance(part, Finish):
                usage = part.usage
                finish_reason = part.finish_reason
                break
            elif isinstance(part, Error) and cfg.fail_on_error:
                raise ProviderError(500, dumps_compact(part.error))
    finally:
        await stream_resp.aclose()

    return GenerateResponse(
        content=content,
        finish_reason=finish_reason,
        usage=usage,
        response_headers=stream_resp.response_headers,
        warnings=warnings,
    )
