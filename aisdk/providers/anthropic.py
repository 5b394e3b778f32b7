"""
Anthropic Messages API.

Generation always streams; `do_generate` collects the stream. JSON response
format is served by forcing a `json` tool whose input is surfaced as text.
"""
import base64
import json
import logging
import os
import platform
from typing import Any, Dict, List, Optional, Set, Tuple

from ..catalog import ProviderDefinition, SdkType
from ..options import build_call_options
from ..registry import Credentials, ProviderRegistration, build_provider_transport_config
from ..streaming.collect import StreamCollectorConfig, collect_stream_to_response
from ..streaming.events import (
    DataEvent,
    DoneEvent,
    ErrorEvent,
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
from ..streaming.mapper import EventMapperConfig, EventMapperHooks, EventMapperState, map_events_to_parts
from ..streaming.pipeline import sse_to_events
from ..streaming.sse import SseEvent
from ..transport.base import HttpTransport, TransportConfig
from ..transport.http import HttpxTransport
from ..types import (
    BytesData,
    CallOptions,
    CallWarning,
    ContentOutput,
    ErrorJsonOutput,
    ErrorTextOutput,
    FilePart,
    FinishReason,
    FunctionTool,
    GenerateResponse,
    JsonOutput,
    OtherWarning,
    ReasoningPart,
    ReasoningSignature,
    ResponseMetadata,
    StreamResponse,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    UnsupportedToolWarning,
    UrlData,
)
from ..utils import build_url, data_to_base64, dumps_compact, normalize_media_type, parse_json_loose
from ..version import __version__
from .base import HeaderOptions, build_headers, open_stream, stream_response, unsupported, usage_from_anthropic, with_user_agent

logger = logging.getLogger("aisdk.providers.anthropic")

DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
ANTHROPIC_VERSION = "2023-06-01"
API_KEY_ENV = "ANTHROPIC_API_KEY"
DEFAULT_MAX_TOKENS = 1024
DEFAULT_IDLE_TIMEOUT = 300.0
STAINLESS_TIMEOUT_SECS = 600
OAUTH_BETA = "oauth-2025-04-20,fine-grained-tool-streaming-2025-05-14"

METADATA_SCOPE = "anthropic"
JSON_TOOL_NAME = "json"
OVERRIDE_DISALLOW = ["model", "messages", "system", "stream"]
SUPPORTED_URLS = {"image/*": [r"^https?://.*$"]}

# provider tool id -> (wire type, wire name, beta, {arg: wire arg})
PROVIDER_TOOLS: Dict[str, Tuple[str, str, Optional[str], Dict[str, str]]] = {
    "anthropic.code_execution_20250522": ("code_execution_20250522", "code_execution", "code-execution-2025-05-22", {}),
    "anthropic.code_execution_20250825": ("code_execution_20250825", "code_execution", "code-execution-2025-08-25", {}),
    "anthropic.computer_20250124": ("computer_20250124", "computer", "computer-use-2025-01-24", {
        "displayWidthPx": "display_width_px", "displayHeightPx": "display_height_px", "displayNumber": "display_number",
    }),
    "anthropic.computer_20241022": ("computer_20241022", "computer", "computer-use-2024-10-22", {
        "displayWidthPx": "display_width_px", "displayHeightPx": "display_height_px", "displayNumber": "display_number",
    }),
    "anthropic.text_editor_20250124": ("text_editor_20250124", "str_replace_editor", "computer-use-2025-01-24", {}),
    "anthropic.text_editor_20241022": ("text_editor_20241022", "str_replace_editor", "computer-use-2024-10-22", {}),
    "anthropic.text_editor_20250429": ("text_editor_20250429", "str_replace_based_edit_tool", "computer-use-2025-01-24", {}),
    "anthropic.text_editor_20250728": ("text_editor_20250728", "str_replace_based_edit_tool", None, {"maxCharacters": "max_characters"}),
    "anthropic.bash_20250124": ("bash_20250124", "bash", "computer-use-2025-01-24", {}),
    "anthropic.bash_20241022": ("bash_20241022", "bash", "computer-use-2024-10-22", {}),
    "anthropic.memory_20250818": ("memory_20250818", "memory", "context-management-2025-06-27", {}),
    "anthropic.web_fetch_20250910": ("web_fetch_20250910", "web_fetch", "web-fetch-2025-09-10", {
        "maxUses": "max_uses", "allowedDomains": "allowed_domains", "blockedDomains": "blocked_domains",
        "citations": "citations", "maxContentTokens": "max_content_tokens",
    }),
    "anthropic.web_search_20250305": ("web_search_20250305", "web_search", None, {
        "maxUses": "max_uses", "allowedDomains": "allowed_domains", "blockedDomains": "blocked_domains",
        "userLocation": "user_location",
    }),
    "anthropic.tool_search_regex_20251119": ("tool_search_tool_regex_20251119", "tool_search_tool_regex", "advanced-tool-use-2025-11-20", {}),
    "anthropic.tool_search_bm25_20251119": ("tool_search_tool_bm25_20251119", "tool_search_tool_bm25", "advanced-tool-use-2025-11-20", {}),
}


def oauth_required_headers() -> Dict[str, str]:
    return {
        "accept": "application/json",
        "accept-language": "*",
        "anthropic-beta": OAUTH_BETA,
        "anthropic-dangerous-direct-browser-access": "true",
        "connection": "keep-alive",
        "sec-fetch-mode": "cors",
        "user-agent": f"aisdk/{__version__} (oauth)",
        "x-app": "cli",
        "x-stainless-arch": platform.machine(),
        "x-stainless-lang": "python",
        "x-stainless-os": platform.system(),
        "x-stainless-package-version": __version__,
        "x-stainless-retry-count": "0",
        "x-stainless-runtime": "python",
        "x-stainless-runtime-version": platform.python_version(),
        "x-stainless-timeout": str(STAINLESS_TIMEOUT_SECS),
    }


def default_headers_from_credentials(api_key: Optional[str], bearer: Optional[str]) -> Dict[str, str]:
    """OAuth bearer tokens need the browser-access headers; API keys go in `x-api-key`."""
    headers = {
        "anthropic-version": ANTHROPIC_VERSION,
        "content-type": "application/json",
        "x-stainless-timeout": str(STAINLESS_TIMEOUT_SECS),
    }
    if bearer:
        headers["authorization"] = bearer if bearer.lower().startswith("bearer ") else f"Bearer {bearer}"
        headers.update(oauth_required_headers())
    elif api_key:
        headers["x-api-key"] = api_key
    return headers


class AnthropicConfig:
    def __init__(
        self,
        provider_scope_name: str,
        base_url: str,
        headers: Dict[str, str],
        http: HttpTransport,
        transport_cfg: Optional[TransportConfig] = None,
        option_headers: Optional[Dict[str, str]] = None,
        provider_name: str = "anthropic.messages",
    ):
        self.provider_name = provider_name
        self.provider_scope_name = provider_scope_name
        self.base_url = base_url
        self.headers = headers
        self.http = http
        self.transport_cfg = transport_cfg or TransportConfig()
        self.option_headers = dict(option_headers or {})
        self.supported_urls = dict(SUPPORTED_URLS)


# --- Prompt conversion -------------------------------------------------------

def _anthropic_scope(provider_options) -> Dict[str, Any]:
    """The `anthropic` scope, falling back to any scope whose name mentions it."""
    options = provider_options or {}
    if isinstance(options.get(METADATA_SCOPE), dict):
        return options[METADATA_SCOPE]
    for key, value in options.items():
        if METADATA_SCOPE in key.lower() and isinstance(value, dict):
            return value
    return {}


def _cache_control(provider_options) -> Optional[Any]:
    scoped = _anthropic_scope(provider_options)
    return scoped.get("cacheControl", scoped.get("cache_control"))


def _reasoning_metadata(provider_options) -> Tuple[Optional[str], Optional[str]]:
    candidates = [_anthropic_scope(provider_options)] + [v for v in (provider_options or {}).values() if isinstance(v, dict)]
    for scoped in candidates:
        signature = scoped.get("signature")
        redacted = scoped.get("redactedData", scoped.get("redacted_data"))
        if signature or redacted:
            return signature, redacted
    return None, None


def _persisted_reasoning(provider_options) -> Optional[Tuple[str, Optional[str]]]:
    scoped = _anthropic_scope(provider_options)
    text = scoped.get("persistedReasoningText", scoped.get("persisted_reasoning_text"))
    if not isinstance(text, str) or not text.strip():
        return None
    signature = scoped.get("persistedReasoningSignature", scoped.get("persisted_reasoning_signature"))
    return text.strip(), signature or None


def _with_cache_control(block: Dict[str, Any], cache_control) -> Dict[str, Any]:
    if cache_control is not None:
        block["cache_control"] = cache_control
    return block


def _file_block(part: FilePart, scope: str, cache_control) -> Optional[Dict[str, Any]]:
    file_options = (part.provider_options or {}).get(scope) or {}
    if part.media_type.startswith("image/"):
        if isinstance(part.data, UrlData):
            source = {"type": "url", "url": part.data.url}
        else:
            source = {"type": "base64", "media_type": normalize_media_type(part.media_type), "data": data_to_base64(part.data)}
        return _with_cache_control({"type": "image", "source": source}, cache_control)

    if part.media_type == "application/pdf":
        if isinstance(part.data, UrlData):
            source = {"type": "url", "url": part.data.url}
        else:
            source = {"type": "base64", "media_type": "application/pdf", "data": data_to_base64(part.data)}
    elif part.media_type == "text/plain":
        if isinstance(part.data, UrlData):
            source = {"type": "url", "url": part.data.url}
        elif isinstance(part.data, BytesData):
            source = {"type": "text", "media_type": "text/plain", "data": part.data.data.decode("utf-8", errors="replace")}
        else:
            source = {"type": "text", "media_type": "text/plain", "data": base64.b64decode(part.data.base64).decode("utf-8", errors="replace")}
    else:
        return None

    block: Dict[str, Any] = {"type": "document", "source": source}
    title = file_options.get("title") or part.filename
    if title:
        block["title"] = title
    if file_options.get("context"):
        block["context"] = file_options["context"]
    citations = file_options.get("citations")
    if isinstance(citations, dict) and citations.get("enabled"):
        block["citations"] = {"enabled": True}
    return _with_cache_control(block, cache_control)


def _tool_result_content(output) -> Any:
    if isinstance(output, ContentOutput):
        blocks = []
        for item in output.value:
            if item.type == "text":
                blocks.append({"type": "text", "text": item.text})
            else:
                blocks.append({"type": "image", "source": {"type": "base64", "media_type": item.media_type, "data": item.data}})
        return blocks
    if isinstance(output, (JsonOutput, ErrorJsonOutput)):
        return dumps_compact(output.value)
    return output.value


def _group_by_role(prompt: List[Any]) -> List[Tuple[str, List[Any]]]:
    groups: List[Tuple[str, List[Any]]] = []
    for message in prompt:
        if groups and groups[-1][0] == message.role:
            groups[-1][1].append(message)
        else:
            groups.append((message.role, [message]))
    return groups


def convert_to_anthropic_messages(prompt: List[Any], scope: str) -> Tuple[Optional[List[Dict[str, Any]]], List[Dict[str, Any]], List[CallWarning], bool]:
    """
    Returns (system blocks, messages, warnings, last assistant had reasoning).
    Consecutive messages with the same role are merged into one Anthropic message.
    """
    system: List[Dict[str, Any]] = []
    messages: List[Dict[str, Any]] = []
    warnings: List[CallWarning] = []
    last_assistant_has_reasoning = True

    for role, group in _group_by_role(prompt):
        if role == "system":
            for message in group:
                if message.content:
                    system.append(_with_cache_control({"type": "text", "text": message.content}, _cache_control(message.provider_options)))

        elif role == "user":
            content = []
            for message in group:
                for idx, part in enumerate(message.content):
                    is_last = idx == len(message.content) - 1
                    cache_control = _cache_control(part.provider_options)
                    if cache_control is None and is_last:
                        cache_control = _cache_control(message.provider_options)
                    if isinstance(part, TextPart):
                        content.append(_with_cache_control({"type": "text", "text": part.text}, cache_control))
                        continue
                    block = _file_block(part, scope, cache_control)
                    if block is None:
                        warnings.append(OtherWarning(message=f"unsupported file media type: {part.media_type}"))
                    else:
                        content.append(block)
            if content:
                messages.append({"role": "user", "content": content})

        elif role == "assistant":
            content = []
            for message in group:
                reasoning_entries = []
                other_entries = []
                for idx, part in enumerate(message.content):
                    is_last = idx == len(message.content) - 1
                    cache_control = _cache_control(part.provider_options)
                    if cache_control is None and is_last:
                        cache_control = _cache_control(message.provider_options)

                    if isinstance(part, TextPart):
                        other_entries.append(_with_cache_control({"type": "text", "text": part.text}, cache_control))
                    elif isinstance(part, ReasoningPart):
                        signature, redacted = _reasoning_metadata(part.provider_options)
                        if redacted:
                            entry = {"type": "redacted_thinking", "data": redacted}
                        else:
                            entry = {"type": "thinking", "thinking": part.text}
                        if signature:
                            entry["signature"] = signature
                        reasoning_entries.append(_with_cache_control(entry, cache_control))
                    elif isinstance(part, FilePart):
                        if part.media_type.startswith("image/"):
                            other_entries.append(_file_block(part, scope, cache_control))
                    elif isinstance(part, ToolCallPart):
                        other_entries.append(_with_cache_control({
                            "type": "tool_use",
                            "id": part.tool_call_id,
                            "name": part.tool_name,
                            "input": parse_json_loose(part.input, {}),
                        }, cache_control))
                    elif isinstance(part, ToolResultPart):
                        logger.debug(f"Skipping provider-executed tool result for {part.tool_name}")

                if not reasoning_entries:
                    persisted = _persisted_reasoning(message.provider_options)
                    if persisted is not None:
                        entry = {"type": "thinking", "thinking": persisted[0]}
                        if persisted[1]:
                            entry["signature"] = persisted[1]
                        reasoning_entries.append(entry)
                last_assistant_has_reasoning = bool(reasoning_entries)
                content.extend(reasoning_entries)
                content.extend(other_entries)
            if content:
                messages.append({"role": "assistant", "content": content})

        elif role == "tool":
            entries = []
            for message in group:
                for part in message.content:
                    if not isinstance(part, ToolResultPart):
                        continue
                    entry = {"type": "tool_result", "tool_use_id": part.tool_call_id, "content": _tool_result_content(part.output)}
                    if isinstance(part.output, (ErrorTextOutput, ErrorJsonOutput)):
                        entry["is_error"] = True
                    entries.append(entry)
            if not entries:
                continue
            previous = messages[-1] if messages else None
            if previous is not None and previous["role"] == "user" and all(b.get("type") == "tool_result" for b in previous["content"]):
                previous["content"].extend(entries)
            else:
                messages.append({"role": "user", "content": entries})

    return (system or None), messages, warnings, last_assistant_has_reasoning


def build_tools(tools, scope_warnings: List[CallWarning]) -> Tuple[List[Dict[str, Any]], Set[str]]:
    wire_tools: List[Dict[str, Any]] = []
    betas: Set[str] = set()
    for tool in tools or []:
        if isinstance(tool, FunctionTool):
            entry: Dict[str, Any] = {"name": tool.name, "input_schema": tool.input_schema}
            if tool.description:
                entry["description"] = tool.description
            wire_tools.append(entry)
            continue
        spec = PROVIDER_TOOLS.get(tool.id)
        if spec is None:
            scope_warnings.append(UnsupportedToolWarning(tool_name=tool.id))
            continue
        wire_type, wire_name, beta, arg_map = spec
        entry = {"type": wire_type, "name": wire_name}
        for arg, wire_arg in arg_map.items():
            if tool.args.get(arg) is not None:
                entry[wire_arg] = tool.args[arg]
        if beta:
            betas.add(beta)
        wire_tools.append(entry)
    return wire_tools, betas


# --- Streaming --------------------------------------------------------------

class AnthropicChunkParser:
    """`ProviderChunk` for Messages API SSE frames."""

    def __init__(self):
        self.blocks: Dict[int, Tuple[str, Optional[str]]] = {}
        self.usage: Dict[str, Any] = {}

    def _usage_event(self, usage: Dict[str, Any]) -> UsageEvent:
        self.usage.update({k: v for k, v in usage.items() if v is not None})
        normalized = usage_from_anthropic(self.usage)
        return UsageEvent(usage=TokenUsage(
            input_tokens=normalized.input_tokens or 0,
            output_tokens=normalized.output_tokens or 0,
            total_tokens=normalized.total_tokens or 0,
            cache_read_tokens=normalized.cached_input_tokens,
            cache_write_tokens=self.usage.get("cache_creation_input_tokens"),
        ))

    def _drain(self) -> List[Any]:
        events = [ToolCallEndEvent(id=tool_id) for kind, tool_id in self.blocks.values() if kind == "tool" and tool_id]
        self.blocks.clear()
        return events

    def try_from_sse(self, event: SseEvent) -> Optional[List[Any]]:
        if event.event == "message_stop":
            return self._drain() + [DoneEvent()]
        try:
            frame = json.loads(event.data)
        except ValueError:
            return None
        if not isinstance(frame, dict):
            return None

        frame_type = frame.get("type")
        index = frame.get("index")

        if frame_type == "message_start":
            message = frame.get("message") or {}
            events: List[Any] = [DataEvent(key="response_metadata", value={"id": message.get("id"), "model": message.get("model")})]
            if isinstance(message.get("usage"), dict):
                events.append(self._usage_event(message["usage"]))
            return events

        if frame_type == "message_delta":
            events = []
            stop_reason = (frame.get("delta") or {}).get("stop_reason")
            if stop_reason:
                events.append(DataEvent(key="stop_reason", value=stop_reason))
            if isinstance(frame.get("usage"), dict):
                events.append(self._usage_event(frame["usage"]))
            return events

        if frame_type == "content_block_start":
            block = frame.get("content_block") or {}
            block_type = block.get("type")
            if block_type == "tool_use" and block.get("id") and block.get("name"):
                self.blocks[index] = ("tool", block["id"])
                events = [ToolCallStartEvent(id=block["id"], name=block["name"])]
                if block.get("input"):
                    events.append(ToolCallDeltaEvent(id=block["id"], args_json=dumps_compact(block["input"])))
                return events
            if block_type in ("thinking", "redacted_thinking"):
                self.blocks[index] = ("reasoning", None)
                events = []
                if block_type == "redacted_thinking" and block.get("data"):
                    events.append(DataEvent(key="redacted_thinking", value=block["data"]))
                events.append(ReasoningStartEvent(id=str(index if index is not None else 0)))
                return events
            if block_type == "text":
                self.blocks[index] = ("text", None)
                if block.get("text"):
                    return [TextDeltaEvent(delta=block["text"])]
            return None

        if frame_type == "content_block_delta":
            delta = frame.get("delta") or {}
            delta_type = delta.get("type")
            if delta_type == "text_delta" and delta.get("text") is not None:
                return [TextDeltaEvent(delta=delta["text"])]
            if delta_type == "thinking_delta" and delta.get("thinking"):
                return [ReasoningDeltaEvent(delta=delta["thinking"])]
            if delta_type == "signature_delta" and delta.get("signature"):
                return [DataEvent(key="reasoning_signature", value=delta["signature"])]
            if delta_type == "input_json_delta":
                kind, tool_id = self.blocks.get(index, (None, None))
                if kind == "tool":
                    return [ToolCallDeltaEvent(id=tool_id, args_json=delta.get("partial_json") or "")]
            return None

        if frame_type == "content_block_stop":
            kind, tool_id = self.blocks.pop(index, (None, None))
            if kind == "tool":
                return [ToolCallEndEvent(id=tool_id)]
            if kind == "reasoning":
                return [ReasoningEndEvent()]
            return None

        if frame_type == "message_stop":
            return self._drain() + [DoneEvent()]

        if frame_type == "error":
            error = frame.get("error") or {}
            return [ErrorEvent(message=error.get("message") or dumps_compact(frame))]

        return None


class AnthropicStreamState:
    def __init__(self, uses_json_tool: bool):
        self.uses_json_tool = uses_json_tool
        self.metadata_sent = False
        self.stop_reason: Optional[str] = None
        self.pending_redacted: Optional[str] = None


def map_stop_reason(stop_reason: Optional[str], has_tool_calls: bool, uses_json_tool: bool) -> FinishReason:
    if stop_reason in ("end_turn", "stop_sequence", "pause_turn"):
        return "stop"
    if stop_reason == "tool_use":
        return "stop" if uses_json_tool else "tool_calls"
    if stop_reason in ("max_tokens", "model_context_window_exceeded"):
        return "length"
    if stop_reason == "refusal":
        return "content_filter"
    return "tool_calls" if has_tool_calls else "unknown"


def _anthropic_data_hook(state: EventMapperState, key: str, value: Any) -> Optional[List[Any]]:
    extra: AnthropicStreamState = state.extra
    if key == "response_metadata":
        if extra.metadata_sent:
            return None
        extra.metadata_sent = True
        return [ResponseMetadata(id=value.get("id"), model_id=value.get("model"))]
    if key == "stop_reason":
        extra.stop_reason = value
    elif key == "redacted_thinking":
        extra.pending_redacted = value
    elif key == "reasoning_signature":
        return [ReasoningSignature(id=state.reasoning_open, signature=value)]
    return None


def _reasoning_start_metadata(state: EventMapperState):
    redacted = state.extra.pending_redacted
    if redacted is None:
        return None
    state.extra.pending_redacted = None
    return {METADATA_SCOPE: {"redactedData": redacted}}


def _anthropic_finish(state: EventMapperState):
    extra: AnthropicStreamState = state.extra
    reason = map_stop_reason(extra.stop_reason, state.has_tool_calls, extra.uses_json_tool)
    md = {METADATA_SCOPE: {"stopReason": extra.stop_reason}} if extra.stop_reason else None
    return reason, md


class AnthropicMessagesLanguageModel:
    def __init__(self, model_id: str, config: AnthropicConfig):
        self._model_id = model_id
        self.config = config

    def specification_version(self) -> str:
        return "v2"

    def provider_name(self) -> str:
        return self.config.provider_name

    def model_id(self) -> str:
        return self._model_id

    def supported_urls(self) -> Dict[str, List[str]]:
        return dict(self.config.supported_urls)

    def build_request_url(self) -> str:
        return build_url(self.config.base_url, "/messages")

    def build_request_body(self, options: CallOptions) -> Tuple[Dict[str, Any], List[CallWarning], Set[str], bool]:
        """Returns (body, warnings, beta flags, uses json tool)."""
        warnings: List[CallWarning] = []
        if options.frequency_penalty is not None:
            warnings.append(unsupported("frequencyPenalty"))
        if options.presence_penalty is not None:
            warnings.append(unsupported("presencePenalty"))
        if options.seed is not None:
            warnings.append(unsupported("seed"))

        json_tool = None
        rf = options.response_format
        if rf is not None and rf.type == "json":
            if rf.json_schema is not None:
                json_tool = {"name": JSON_TOOL_NAME, "description": "Respond with a JSON object.", "input_schema": rf.json_schema}
            else:
                warnings.append(unsupported("responseFormat", "JSON response format requires a schema. The response format is ignored."))

        scoped = (options.provider_options or {}).get(self.config.provider_scope_name) or {}
        thinking = scoped.get("thinking") if isinstance(scoped.get("thinking"), dict) else None
        disable_parallel = scoped.get("disableParallelToolUse", scoped.get("disable_parallel_tool_use"))

        system, messages, message_warnings, last_has_reasoning = convert_to_anthropic_messages(options.prompt, self.config.provider_scope_name)
        warnings.extend(message_warnings)

        betas: Set[str] = set()
        if json_tool is not None:
            tools = [json_tool]
            if options.tools:
                warnings.append(unsupported("tools", "JSON response format does not support tools. The provided tools are ignored."))
        else:
            tools, betas = build_tools(options.tools, warnings)

        body: Dict[str, Any] = {
            "model": self._model_id,
            "messages": messages,
            "max_tokens": options.max_output_tokens or DEFAULT_MAX_TOKENS,
        }
        if system:
            body["system"] = system
        if tools:
            body["tools"] = tools

        if json_tool is not None:
            body["tool_choice"] = {"type": "tool", "name": JSON_TOOL_NAME, "disable_parallel_tool_use": True}
        elif options.tool_choice is not None:
            choice_type = options.tool_choice.type
            if choice_type == "none":
                body.pop("tools", None)
            else:
                choice: Dict[str, Any] = {"type": {"auto": "auto", "required": "any", "tool": "tool"}[choice_type]}
                if choice_type == "tool":
                    choice["name"] = options.tool_choice.tool_name
                if isinstance(disable_parallel, bool):
                    choice["disable_parallel_tool_use"] = disable_parallel
                body["tool_choice"] = choice

        for key, value in (
            ("temperature", options.temperature),
            ("top_p", options.top_p),
            ("top_k", options.top_k),
            ("stop_sequences", options.stop_sequences),
        ):
            if value is not None:
                body[key] = value

        if thinking is not None:
            if thinking.get("type") == "enabled":
                budget = thinking.get("budgetTokens", thinking.get("budget_tokens")) or 0
                body["thinking"] = {"type": "enabled", "budget_tokens": budget}
                # max_tokens must exceed the thinking budget
                body["max_tokens"] = max(body["max_tokens"], budget + 1)
                for key in ("temperature", "top_p", "top_k"):
                    body.pop(key, None)
                if any(m["role"] == "assistant" for m in messages) and not last_has_reasoning:
                    warnings.append(OtherWarning(
                        message="Anthropic thinking is enabled but the latest assistant message has no reasoning content with a signature. "
                        "The request may be rejected."
                    ))
            elif thinking.get("type") == "disabled":
                body["thinking"] = {"type": "disabled"}

        return body, warnings, betas, json_tool is not None

    def _headers(self, call_headers: Dict[str, str], betas: Set[str]) -> Dict[str, str]:
        headers = build_headers(self.config.headers, call_headers)
        beta_values: List[str] = []
        for token in headers.pop("anthropic-beta", "").split(","):
            if token.strip() and token.strip() not in beta_values:
                beta_values.append(token.strip())
        for beta in sorted(betas):
            if beta not in beta_values:
                beta_values.append(beta)
        if beta_values:
            headers["anthropic-beta"] = ",".join(beta_values)
        headers["accept"] = "text/event-stream"
        headers.setdefault("content-type", "application/json")
        return headers

    async def do_generate(self, options: CallOptions) -> GenerateResponse:
        stream = await self.do_stream(options)
        response = await collect_stream_to_response(stream, StreamCollectorConfig(
            allow_reasoning=True,
            reasoning_metadata_scope=METADATA_SCOPE,
            allow_tool_calls=True,
            allow_tool_results=True,
            allow_files=True,
            allow_source_urls=True,
            fail_on_error=True,
        ))
        response.request_body = stream.request_body
        return response

    async def do_stream(self, options: CallOptions) -> StreamResponse:
        scope = self.config.provider_scope_name
        header_options = HeaderOptions(scope, self.config.option_headers, options.headers)
        options = build_call_options(options, scope, header_options.defaults)
        body, warnings, betas, uses_json_tool = self.build_request_body(options)
        header_options.apply_overrides(body, OVERRIDE_DISALLOW)
        body["stream"] = True

        headers = self._headers(options.headers, betas)
        url = self.build_request_url()
        logger.debug(
            f"POST {url} model={self._model_id} system_entries={len(body.get('system') or [])} "
            f"message_entries={len(body['messages'])}"
        )
        byte_stream, response_headers = await open_stream(self.config.http, url, headers, body, self.config.transport_cfg)
        events = sse_to_events(byte_stream, AnthropicChunkParser(), options.include_raw_chunks)
        parts = map_events_to_parts(events, EventMapperConfig(
            warnings=warnings,
            treat_tool_names_as_text={JSON_TOOL_NAME} if uses_json_tool else None,
            default_text_id="text-1",
            finish_reason_fallback="unknown",
            initial_extra=AnthropicStreamState(uses_json_tool),
            hooks=EventMapperHooks(
                reasoning_start_metadata=_reasoning_start_metadata,
                data=_anthropic_data_hook,
                finish=_anthropic_finish,
            ),
        ))
        return stream_response(parts, body, response_headers)


def build_anthropic_model(definition: ProviderDefinition, model: str, credentials: Credentials, transport=None) -> AnthropicMessagesLanguageModel:
    api_key = credentials.as_api_key() or os.getenv(API_KEY_ENV)
    headers = default_headers_from_credentials(api_key, credentials.as_bearer())
    option_headers = {}
    for key, value in definition.headers.items():
        if key.lower().startswith("x-ai-sdk-"):
            option_headers[key.lower()] = value
        else:
            headers[key.lower()] = value
    if "authorization" not in headers:
        with_user_agent(headers, "anthropic")

    config = AnthropicConfig(
        provider_scope_name=definition.name,
        base_url=definition.base_url.strip() or DEFAULT_BASE_URL,
        headers=headers,
        http=transport or HttpxTransport(),
        transport_cfg=build_provider_transport_config(definition, DEFAULT_IDLE_TIMEOUT),
        option_headers=option_headers,
    )
    return AnthropicMessagesLanguageModel(model, config)


def _anthropic_reasoning_scope(ctx) -> Optional[List[str]]:
    return [METADATA_SCOPE]


REGISTRATIONS = [
    ProviderRegistration(
        id="anthropic",
        sdk_type=SdkType.ANTHROPIC,
        build=build_anthropic_model,
        reasoning_scope=_anthropic_reasoning_scope,
    ),
]
