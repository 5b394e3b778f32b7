"""
OpenAI Responses API (`/responses`).

Streaming goes through the shared SSE pipeline: `ResponsesChunkParser` turns
each frame into provider events and the mapper hooks below turn the
item-scoped payloads (text, reasoning summaries, web search) into parts.
"""
import json
import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from ..capabilities import get_model_capabilities
from ..catalog import ProviderDefinition, SdkType
from ..exceptions import ProviderError
from ..options import build_call_options
from ..registry import Credentials, ProviderRegistration, build_provider_transport_config, collect_query_params
from ..streaming.events import (
    DataEvent,
    DoneEvent,
    ErrorEvent,
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
    AssistantMessage,
    CallOptions,
    CallWarning,
    ContentOutput,
    ErrorJsonOutput,
    FilePart,
    FinishReason,
    FunctionTool,
    GenerateResponse,
    JsonOutput,
    OtherWarning,
    ProviderTool,
    ReasoningContent,
    ReasoningDelta,
    ReasoningEnd,
    ReasoningPart,
    ReasoningStart,
    ResponseMetadata,
    SourceUrl,
    StreamResponse,
    SystemMessage,
    TextContent,
    TextDelta,
    TextEnd,
    TextPart,
    TextStart,
    ToolCallPart,
    ToolMessage,
    ToolResult,
    ToolResultPart,
    UnsupportedToolWarning,
    UrlData,
    Usage,
    UserMessage,
)
from ..utils import build_url, data_to_url, dumps_compact, lowercase_headers, normalize_media_type
from .base import (
    HeaderOptions,
    build_headers,
    definition_headers,
    open_stream,
    post_json,
    stream_response,
    unsupported,
    usage_from_openai,
    with_user_agent,
)

logger = logging.getLogger("aisdk.providers.openai")

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_ENDPOINT_PATH = "/responses"
DEFAULT_IDLE_TIMEOUT = 45.0
TOP_LOGPROBS_MAX = 20

RESERVED_HEADERS = ("content-type", "accept", "authorization", "x-api-key")
OVERRIDE_DISALLOW = ["model", "input", "stream", "tools", "tool_choice"]

SUPPORTED_URLS = {"image/*": [r"^https?://.*$"], "application/pdf": [r"^https?://.*$"]}
FILE_ID_PREFIXES = ["file-"]

BUILTIN_TOOL_TYPES = {
    "openai.web_search": "web_search",
    "openai.web_search_preview": "web_search_preview",
    "openai.file_search": "file_search",
    "openai.code_interpreter": "code_interpreter",
    "openai.image_generation": "image_generation",
}


class ResponsesModelConfig:
    def __init__(self, model_id: str):
        self.is_reasoning_model = (
            model_id.startswith(("o1", "o3", "o4-mini", "codex-mini", "computer-use-preview"))
            or (model_id.startswith("gpt-5") and not model_id.startswith("gpt-5-chat"))
        )
        self.system_message_mode = "developer" if self.is_reasoning_model else "system"
        self.supports_flex_processing = (
            model_id.startswith(("o3", "o4-mini"))
            or (model_id.startswith("gpt-5") and not model_id.startswith("gpt-5-chat"))
        )
        self.supports_priority_processing = (
            model_id.startswith(("gpt-4", "gpt-5-mini", "o3", "o4-mini"))
            or (model_id.startswith("gpt-5") and not model_id.startswith(("gpt-5-nano", "gpt-5-chat")))
        )
        self.supports_non_reasoning_parameters = model_id.startswith(("gpt-5.1", "gpt-5.2"))


class OpenAIConfig:
    def __init__(
        self,
        provider_name: str,
        provider_scope_name: str,
        base_url: str,
        headers: Dict[str, str],
        http: HttpTransport,
        endpoint_path: str = DEFAULT_ENDPOINT_PATH,
        transport_cfg: Optional[TransportConfig] = None,
        query_params=None,
        option_headers: Optional[Dict[str, str]] = None,
        supported_urls: Optional[Dict[str, List[str]]] = None,
        file_id_prefixes: Optional[List[str]] = None,
    ):
        self.provider_name = provider_name
        self.provider_scope_name = provider_scope_name
        self.base_url = base_url
        self.endpoint_path = endpoint_path
        self.headers = headers
        self.http = http
        self.transport_cfg = transport_cfg or TransportConfig()
        self.query_params = list(query_params or [])
        self.option_headers = dict(option_headers or {})
        self.supported_urls = supported_urls if supported_urls is not None else dict(SUPPORTED_URLS)
        self.file_id_prefixes = file_id_prefixes


class ResponsesProviderOptions:
    """Typed view over `provider_options[scope]` for the Responses API."""

    def __init__(self, scoped: Dict[str, Any]):
        def get(key, kind):
            value = scoped.get(key)
            if kind is int and isinstance(value, bool):
                return None
            return value if isinstance(value, kind) else None

        self.conversation = get("conversation", str)
        self.metadata = scoped.get("metadata")
        self.max_tool_calls = get("maxToolCalls", int)
        self.parallel_tool_calls = get("parallelToolCalls", bool)
        self.previous_response_id = get("previousResponseId", str)
        self.store = get("store", bool)
        self.user = get("user", str)
        self.instructions = get("instructions", str)
        self.service_tier = get("serviceTier", str)
        include = scoped.get("include")
        self.include = [i for i in include if isinstance(i, str)] if isinstance(include, list) else None
        self.text_verbosity = get("textVerbosity", str)
        self.prompt_cache_key = get("promptCacheKey", str)
        self.prompt_cache_retention = get("promptCacheRetention", str)
        self.safety_identifier = get("safetyIdentifier", str)
        mode = scoped.get("systemMessageMode")
        self.system_message_mode = mode if mode in ("remove", "system", "developer") else None
        self.force_reasoning = get("forceReasoning", bool)
        self.strict_json_schema = get("strictJsonSchema", bool)
        self.truncation = get("truncation", str)
        self.reasoning_effort = get("reasoningEffort", str)
        self.reasoning_summary = get("reasoningSummary", str)

        logprobs = scoped.get("logprobs")
        self.logprobs_bool = logprobs if isinstance(logprobs, bool) else None
        self.logprobs_n = logprobs if isinstance(logprobs, int) and not isinstance(logprobs, bool) else None

    @property
    def logprobs_requested(self) -> bool:
        return self.logprobs_bool is True or (self.logprobs_n or 0) > 0


def _item_option(provider_options, scope: str, key: str) -> Optional[str]:
    scoped = (provider_options or {}).get(scope)
    if isinstance(scoped, dict) and isinstance(scoped.get(key), str):
        return scoped[key]
    return None


def tool_output_to_value(output) -> Any:
    if isinstance(output, (JsonOutput, ErrorJsonOutput)):
        return dumps_compact(output.value)
    if isinstance(output, ContentOutput):
        parts = []
        for item in output.value:
            if item.type == "text":
                parts.append({"type": "input_text", "text": item.text})
            elif item.media_type.startswith("image/"):
                parts.append({"type": "input_image", "image_url": f"data:{item.media_type};base64,{item.data}"})
            else:
                parts.append({"type": "input_file", "filename": "data", "file_data": f"data:{item.media_type};base64,{item.data}"})
        return parts
    return output.value


def _user_file_part(part: FilePart, idx: int, file_id_prefixes: Optional[List[str]]) -> Optional[Dict[str, Any]]:
    if part.media_type.startswith("image/"):
        url = data_to_url(part.data, normalize_media_type(part.media_type))
        if not isinstance(part.data, UrlData) and file_id_prefixes:
            raw = getattr(part.data, "base64", None)
            if raw and any(raw.startswith(p) for p in file_id_prefixes):
                return {"type": "input_image", "file_id": raw}
        return {"type": "input_image", "image_url": url}
    if part.media_type == "application/pdf":
        if isinstance(part.data, UrlData):
            return {"type": "input_file", "file_url": part.data.url}
        raw = getattr(part.data, "base64", None)
        if raw and file_id_prefixes and any(raw.startswith(p) for p in file_id_prefixes):
            return {"type": "input_file", "file_id": raw}
        return {
            "type": "input_file",
            "filename": part.filename or f"part-{idx}.pdf",
            "file_data": data_to_url(part.data, "application/pdf"),
        }
    return None


def convert_to_responses_input(
    prompt: List[Any],
    system_mode: str,
    scope: str,
    store: bool = True,
    file_id_prefixes: Optional[List[str]] = None,
) -> Tuple[List[Dict[str, Any]], List[CallWarning]]:
    """
    Lower the canonical prompt to Responses `input` items.

    With `store` enabled, assistant items that carry an OpenAI `itemId` are sent
    as `item_reference`s instead of being replayed in full.
    """
    items: List[Dict[str, Any]] = []
    warnings: List[CallWarning] = []

    for message in prompt:
        if isinstance(message, SystemMessage):
            if system_mode == "remove":
                warnings.append(OtherWarning(message="system messages are removed for this model"))
            else:
                items.append({"role": system_mode, "content": message.content})

        elif isinstance(message, UserMessage):
            parts = []
            for idx, part in enumerate(message.content):
                if isinstance(part, TextPart):
                    parts.append({"type": "input_text", "text": part.text})
                    continue
                converted = _user_file_part(part, idx, file_id_prefixes)
                if converted is None:
                    warnings.append(OtherWarning(message=f"unsupported file media type: {part.media_type}"))
                else:
                    parts.append(converted)
            if parts:
                items.append({"role": "user", "content": parts})

        elif isinstance(message, AssistantMessage):
            reasoning_index: Dict[str, int] = {}
            referenced = set()
            for part in message.content:
                if isinstance(part, TextPart):
                    item_id = _item_option(part.provider_options, scope, "itemId")
                    if store and item_id:
                        items.append({"type": "item_reference", "id": item_id})
                        continue
                    entry = {"role": "assistant", "content": [{"type": "output_text", "text": part.text}]}
                    if item_id:
                        entry["id"] = item_id
                    items.append(entry)

                elif isinstance(part, ToolCallPart):
                    item_id = _item_option(part.provider_options, scope, "itemId")
                    if part.provider_executed or (store and item_id):
                        if store and item_id:
                            items.append({"type": "item_reference", "id": item_id})
                        continue
                    entry = {
                        "type": "function_call",
                        "call_id": part.tool_call_id,
                        "name": part.tool_name,
                        "arguments": part.input,
                    }
                    if item_id:
                        entry["id"] = item_id
                    items.append(entry)

                elif isinstance(part, ToolResultPart):
                    if store:
                        item_id = _item_option(part.provider_options, scope, "itemId") or part.tool_call_id
                        items.append({"type": "item_reference", "id": item_id})
                    else:
                        warnings.append(OtherWarning(
                            message=f"Results for OpenAI tool {part.tool_name} are not sent to the API when store is false"
                        ))

                elif isinstance(part, ReasoningPart):
                    item_id = _item_option(part.provider_options, scope, "itemId")
                    encrypted = _item_option(part.provider_options, scope, "reasoningEncryptedContent")
                    if item_id is None:
                        warnings.append(OtherWarning(
                            message=f"Non-OpenAI reasoning parts are not supported. Skipping reasoning part: {part.text}"
                        ))
                        continue
                    if store:
                        if item_id not in referenced:
                            referenced.add(item_id)
                            items.append({"type": "item_reference", "id": item_id})
                        continue
                    summary = [{"type": "summary_text", "text": part.text}] if part.text else []
                    if item_id in reasoning_index:
                        existing = items[reasoning_index[item_id]]
                        if not summary:
                            warnings.append(OtherWarning(
                                message=f"Cannot append empty reasoning part to existing reasoning sequence. Skipping reasoning part: {item_id}"
                            ))
                            continue
                        existing["summary"].extend(summary)
                        if encrypted:
                            existing["encrypted_content"] = encrypted
                        continue
                    entry = {"type": "reasoning", "id": item_id, "summary": summary}
                    if encrypted:
                        entry["encrypted_content"] = encrypted
                    reasoning_index[item_id] = len(items)
                    items.append(entry)

        elif isinstance(message, ToolMessage):
            for part in message.content:
                if not isinstance(part, ToolResultPart):
                    logger.debug(f"Skipping {part.type} part in tool message")
                    continue
                items.append({
                    "type": "function_call_output",
                    "call_id": part.tool_call_id,
                    "output": tool_output_to_value(part.output),
                })

    return items, warnings


def _snake(key: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in key)


def build_provider_tool(tool: ProviderTool) -> Optional[Dict[str, Any]]:
    tool_type = BUILTIN_TOOL_TYPES.get(tool.id)
    if tool_type is None:
        return None
    entry: Dict[str, Any] = {"type": tool_type}
    for key, value in tool.args.items():
        entry[_snake(key)] = value
    return entry


def normalize_object_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    if isinstance(schema, dict) and schema.get("type") == "object" and "properties" not in schema:
        return {**schema, "properties": {}}
    return schema


def _function_tool_strict(tool: FunctionTool) -> Optional[bool]:
    if tool.strict is not None:
        return tool.strict
    for scope in ("openai", "openai.responses"):
        scoped = (tool.provider_options or {}).get(scope)
        if isinstance(scoped, dict) and isinstance(scoped.get("strict"), bool):
            return scoped["strict"]
    return None


def map_tool_choice(tool_choice) -> Any:
    if tool_choice is None:
        return None
    if tool_choice.type != "tool":
        return tool_choice.type
    if tool_choice.tool_name in BUILTIN_TOOL_TYPES.values():
        return {"type": tool_choice.tool_name}
    return {"type": "function", "name": tool_choice.tool_name}


def map_finish_reason(hint: Optional[str], has_function_calls: bool) -> FinishReason:
    if hint is None:
        return "tool_calls" if has_function_calls else "stop"
    if hint == "max_output_tokens":
        return "length"
    if hint == "content_filter":
        return "content_filter"
    return "tool_calls" if has_function_calls else "other"


def _scope_metadata(scope: str, **values) -> Dict[str, Dict[str, Any]]:
    return {scope: {k: v for k, v in values.items() if v is not None}}


def _source_from_annotation(annotation: Any) -> Optional[SourceUrl]:
    if not isinstance(annotation, dict) or annotation.get("type") != "url_citation":
        return None
    url = annotation.get("url")
    if not isinstance(url, str):
        return None
    return SourceUrl(id=str(uuid.uuid4()), url=url, title=annotation.get("title"))


def _web_search_parts(item: Dict[str, Any]) -> Tuple[ToolCallPart, ToolResult]:
    call_id = item.get("id", "")
    action = item.get("action") if isinstance(item.get("action"), dict) else {}
    call = ToolCallPart(
        tool_call_id=call_id,
        tool_name="web_search",
        input=dumps_compact(action),
        provider_executed=True,
    )
    result = ToolResult(
        tool_call_id=call_id,
        tool_name="web_search",
        result={"status": item.get("status"), "action": action or None},
    )
    return call, result


def extract_response_content(data: Dict[str, Any], scope: str) -> Tuple[List[Any], bool]:
    content: List[Any] = []
    has_function_calls = False
    output = data.get("output")
    if not isinstance(output, list):
        return content, False

    for item in output:
        if not isinstance(item, dict):
            continue
        item_type = item.get("type")
        if item_type == "message":
            text = ""
            sources = []
            for part in item.get("content") or []:
                if isinstance(part, dict) and part.get("type") == "output_text":
                    text += part.get("text") or ""
                    for annotation in part.get("annotations") or []:
                        source = _source_from_annotation(annotation)
                        if source is not None:
                            sources.append(source)
            if text:
                content.append(TextContent(text=text, provider_metadata=_scope_metadata(scope, itemId=item.get("id"))))
            content.extend(sources)
        elif item_type == "reasoning":
            summaries = [s.get("text") or "" for s in item.get("summary") or [] if isinstance(s, dict)]
            md = _scope_metadata(scope, itemId=item.get("id"), reasoningEncryptedContent=item.get("encrypted_content"))
            for text in summaries or [""]:
                content.append(ReasoningContent(text=text, provider_metadata=md))
        elif item_type == "function_call":
            if isinstance(item.get("call_id"), str) and isinstance(item.get("name"), str):
                content.append(ToolCallPart(
                    tool_call_id=item["call_id"],
                    tool_name=item["name"],
                    input=item.get("arguments") or "",
                    provider_metadata=_scope_metadata(scope, itemId=item.get("id")) if item.get("id") else None,
                ))
                has_function_calls = True
        elif item_type == "web_search_call":
            content.extend(_web_search_parts(item))
        else:
            logger.debug(f"Ignoring Responses output item of type {item_type}")
    return content, has_function_calls


# --- Streaming --------------------------------------------------------------

class ResponsesChunkParser:
    """`ProviderChunk` for Responses SSE frames."""

    def __init__(self):
        self.tool_calls: Dict[int, str] = {}
        self.tool_deltas_seen = set()

    def try_from_sse(self, event: SseEvent) -> Optional[List[Any]]:
        data = event.data.strip()
        if not data or data == "[DONE]":
            return None
        try:
            chunk = json.loads(data)
        except ValueError as e:
            return [ErrorEvent(message=f"Invalid JSON chunk: {e}")]
        chunk_type = chunk.get("type") if isinstance(chunk, dict) else None
        if not isinstance(chunk_type, str):
            return [ErrorEvent(message="Invalid chunk: missing type")]

        item = chunk.get("item") if isinstance(chunk.get("item"), dict) else {}
        output_index = chunk.get("output_index")

        if chunk_type == "response.created":
            response = chunk.get("response") or {}
            created = response.get("created_at")
            return [DataEvent(key="response_metadata", value={
                "id": response.get("id"),
                "model": response.get("model"),
                "created_at": int(created * 1000) if isinstance(created, (int, float)) else None,
            })]

        if chunk_type == "response.output_item.added":
            item_type = item.get("type")
            if item_type == "function_call" and item.get("call_id") and item.get("name"):
                call_id = item["call_id"]
                if isinstance(output_index, int):
                    self.tool_calls[output_index] = call_id
                return [
                    DataEvent(key="tool_item_id", value={"call_id": call_id, "item_id": item.get("id")}),
                    ToolCallStartEvent(id=call_id, name=item["name"]),
                ]
            if item_type == "message":
                return [DataEvent(key="message_added", value={"item_id": item.get("id")})]
            if item_type == "reasoning":
                return [DataEvent(key="reasoning_added", value={
                    "item_id": item.get("id"),
                    "encrypted_content": item.get("encrypted_content"),
                })]
            return None

        if chunk_type == "response.output_text.delta":
            if chunk.get("item_id") and chunk.get("delta"):
                return [DataEvent(key="text_delta", value={"item_id": chunk["item_id"], "delta": chunk["delta"]})]
            return None

        if chunk_type == "response.output_text.annotation.added":
            return [DataEvent(key="annotation", value=chunk.get("annotation"))]

        if chunk_type == "response.reasoning_summary_part.added":
            return [DataEvent(key="reasoning_part_added", value={
                "item_id": chunk.get("item_id"),
                "summary_index": chunk.get("summary_index", 0),
            })]

        if chunk_type == "response.reasoning_summary_text.delta":
            return [DataEvent(key="reasoning_delta", value={
                "item_id": chunk.get("item_id"),
                "summary_index": chunk.get("summary_index", 0),
                "delta": chunk.get("delta") or "",
            })]

        if chunk_type == "response.function_call_arguments.delta":
            call_id = self.tool_calls.get(output_index)
            if call_id is None or not chunk.get("delta"):
                return None
            self.tool_deltas_seen.add(call_id)
            return [ToolCallDeltaEvent(id=call_id, args_json=chunk["delta"])]

        if chunk_type == "response.output_item.done":
            item_type = item.get("type")
            if item_type == "function_call":
                call_id = self.tool_calls.pop(output_index, None) or item.get("call_id")
                if not call_id:
                    return None
                events = []
                if call_id not in self.tool_deltas_seen:
                    events.append(ToolCallDeltaEvent(id=call_id, args_json=item.get("arguments") or ""))
                self.tool_deltas_seen.discard(call_id)
                events.append(ToolCallEndEvent(id=call_id))
                return events
            if item_type == "message":
                return [DataEvent(key="message_done", value={"item_id": item.get("id")})]
            if item_type == "reasoning":
                return [DataEvent(key="reasoning_done", value={
                    "item_id": item.get("id"),
                    "encrypted_content": item.get("encrypted_content"),
                })]
            if item_type == "web_search_call":
                return [DataEvent(key="web_search_done", value=item)]
            return None

        if chunk_type in ("response.completed", "response.incomplete"):
            response = chunk.get("response") or {}
            events: List[Any] = []
            usage = usage_from_openai(response.get("usage"))
            if usage is not None:
                events.append(UsageEvent(usage=TokenUsage(
                    input_tokens=usage.input_tokens or 0,
                    output_tokens=usage.output_tokens or 0,
                    total_tokens=usage.total_tokens or 0,
                    cache_read_tokens=usage.cached_input_tokens,
                    reasoning_tokens=usage.reasoning_tokens,
                )))
            details = response.get("incomplete_details")
            events.append(DataEvent(key="response_finished", value={
                "id": response.get("id"),
                "service_tier": response.get("service_tier"),
                "incomplete_reason": details.get("reason") if isinstance(details, dict) else None,
            }))
            events.append(DoneEvent())
            return events

        if chunk_type == "response.failed":
            error = (chunk.get("response") or {}).get("error") or {}
            return [ErrorEvent(message=error.get("message") or "response failed")]

        if chunk_type == "error":
            error = chunk.get("error") if isinstance(chunk.get("error"), dict) else chunk
            return [ErrorEvent(message=error.get("message") or dumps_compact(chunk))]

        return None


class ResponsesStreamState:
    def __init__(self, scope: str):
        self.scope = scope
        self.metadata_sent = False
        self.open_text: List[str] = []
        self.open_reasoning: Dict[str, List[str]] = {}
        self.tool_items: Dict[str, str] = {}
        self.response_id: Optional[str] = None
        self.service_tier: Optional[str] = None
        self.incomplete_reason: Optional[str] = None


def _responses_data_hook(state: EventMapperState, key: str, value: Any) -> Optional[List[Any]]:
    extra: ResponsesStreamState = state.extra
    scope = extra.scope
    value = value if isinstance(value, dict) else {}

    if key == "response_metadata":
        extra.response_id = value.get("id") or extra.response_id
        if extra.metadata_sent:
            return None
        extra.metadata_sent = True
        return [ResponseMetadata(id=value.get("id"), timestamp_ms=value.get("created_at"), model_id=value.get("model"))]

    if key == "tool_item_id":
        if value.get("item_id"):
            extra.tool_items[value["call_id"]] = value["item_id"]
        return None

    if key == "message_added":
        item_id = value.get("item_id") or f"msg-{len(extra.open_text)}"
        extra.open_text.append(item_id)
        return [TextStart(id=item_id, provider_metadata=_scope_metadata(scope, itemId=item_id))]

    if key == "text_delta":
        item_id = value["item_id"]
        parts = []
        if item_id not in extra.open_text:
            extra.open_text.append(item_id)
            parts.append(TextStart(id=item_id, provider_metadata=_scope_metadata(scope, itemId=item_id)))
        parts.append(TextDelta(id=item_id, delta=value["delta"]))
        return parts

    if key == "annotation":
        source = _source_from_annotation(value)
        return [source] if source is not None else None

    if key == "message_done":
        item_id = value.get("item_id")
        if item_id in extra.open_text:
            extra.open_text.remove(item_id)
            return [TextEnd(id=item_id, provider_metadata=_scope_metadata(scope, itemId=item_id))]
        return None

    if key == "reasoning_added":
        item_id = value.get("item_id")
        if not item_id:
            return None
        part_id = f"{item_id}:0"
        extra.open_reasoning[item_id] = [part_id]
        md = _scope_metadata(scope, itemId=item_id, reasoningEncryptedContent=value.get("encrypted_content"))
        return [ReasoningStart(id=part_id, provider_metadata=md)]

    if key == "reasoning_part_added":
        item_id = value.get("item_id")
        index = value.get("summary_index") or 0
        opened = extra.open_reasoning.setdefault(item_id, [])
        part_id = f"{item_id}:{index}"
        if part_id in opened:
            return None
        opened.append(part_id)
        return [ReasoningStart(id=part_id, provider_metadata=_scope_metadata(scope, itemId=item_id))]

    if key == "reasoning_delta":
        item_id = value.get("item_id")
        part_id = f"{item_id}:{value.get('summary_index') or 0}"
        parts = []
        opened = extra.open_reasoning.setdefault(item_id, [])
        if part_id not in opened:
            opened.append(part_id)
            parts.append(ReasoningStart(id=part_id, provider_metadata=_scope_metadata(scope, itemId=item_id)))
        parts.append(ReasoningDelta(id=part_id, delta=value.get("delta") or ""))
        return parts

    if key == "reasoning_done":
        item_id = value.get("item_id")
        md = _scope_metadata(scope, itemId=item_id, reasoningEncryptedContent=value.get("encrypted_content"))
        return [ReasoningEnd(id=part_id, provider_metadata=md) for part_id in extra.open_reasoning.pop(item_id, [])]

    if key == "web_search_done":
        return list(_web_search_parts(value))

    if key == "response_finished":
        extra.response_id = value.get("id") or extra.response_id
        extra.service_tier = value.get("service_tier")
        extra.incomplete_reason = value.get("incomplete_reason")
        parts: List[Any] = [TextEnd(id=item_id) for item_id in extra.open_text]
        extra.open_text = []
        for ids in extra.open_reasoning.values():
            parts.extend(ReasoningEnd(id=part_id) for part_id in ids)
        extra.open_reasoning = {}
        return parts

    return None


def _tool_item_metadata(state: EventMapperState, tool_id: str, *_):
    item_id = state.extra.tool_items.get(tool_id)
    return _scope_metadata(state.extra.scope, itemId=item_id) if item_id else None


def _responses_finish(state: EventMapperState):
    extra: ResponsesStreamState = state.extra
    reason = map_finish_reason(extra.incomplete_reason, state.has_tool_calls)
    md = None
    if extra.response_id or extra.service_tier:
        md = _scope_metadata(extra.scope, responseId=extra.response_id, serviceTier=extra.service_tier)
    return reason, md


def build_stream_mapper_config(warnings: List[CallWarning], scope: str) -> EventMapperConfig:
    return EventMapperConfig(
        warnings=warnings,
        initial_extra=ResponsesStreamState(scope),
        hooks=EventMapperHooks(
            tool_start_metadata=_tool_item_metadata,
            tool_end_metadata=_tool_item_metadata,
            data=_responses_data_hook,
            finish=_responses_finish,
        ),
    )


# --- Model ------------------------------------------------------------------

class OpenAIResponsesLanguageModel:
    """
    Language model backed by the Responses API.

    Reasoning models (o-series, gpt-5 except gpt-5-chat) get system prompts
    under the `developer` role and drop sampling knobs with a warning.
    """

    def __init__(self, model_id: str, config: OpenAIConfig):
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

    def endpoint_url(self) -> str:
        base = self.config.base_url.rstrip("/")
        path = self.config.endpoint_path.lstrip("/")
        if base.endswith("/v1") and path.startswith("v1/"):
            path = path[len("v1/"):]
        return build_url(base, path, self.config.query_params)

    def build_request_body(self, options: CallOptions, header_options: Optional[HeaderOptions] = None) -> Tuple[Dict[str, Any], List[CallWarning]]:
        warnings: List[CallWarning] = []
        for value, setting in (
            (options.top_k, "topK"),
            (options.seed, "seed"),
            (options.presence_penalty, "presencePenalty"),
            (options.frequency_penalty, "frequencyPenalty"),
            (options.stop_sequences, "stopSequences"),
        ):
            if value is not None:
                warnings.append(unsupported(setting))

        scope = self.config.provider_scope_name
        scoped = (options.provider_options or {}).get(scope)
        prov = ResponsesProviderOptions(scoped if isinstance(scoped, dict) else {})
        model_cfg = ResponsesModelConfig(self._model_id)
        caps = get_model_capabilities(scope, self._model_id)
        if caps is not None and caps.reasoning is not None:
            model_cfg.is_reasoning_model = caps.reasoning
            model_cfg.system_message_mode = "developer" if caps.reasoning else "system"
        is_reasoning = prov.force_reasoning if prov.force_reasoning is not None else model_cfg.is_reasoning_model
        system_mode = prov.system_message_mode or ("developer" if is_reasoning else model_cfg.system_message_mode)

        tool_ids = {t.id for t in options.tools or [] if isinstance(t, ProviderTool)}
        input_items, message_warnings = convert_to_responses_input(
            options.prompt,
            system_mode,
            scope,
            store=prov.store if prov.store is not None else True,
            file_id_prefixes=self.config.file_id_prefixes,
        )
        warnings.extend(message_warnings)

        if prov.conversation and prov.previous_response_id:
            warnings.append(unsupported("conversation", "conversation and previousResponseId cannot be used together"))

        include = list(prov.include) if prov.include is not None else None

        def add_include(key: str) -> None:
            nonlocal include
            include = include or []
            if key not in include:
                include.append(key)

        if prov.logprobs_requested:
            add_include("message.output_text.logprobs")
        if tool_ids & {"openai.web_search", "openai.web_search_preview"}:
            add_include("web_search_call.action.sources")
        if "openai.code_interpreter" in tool_ids:
            add_include("code_interpreter_call.outputs")
        if prov.store is False and is_reasoning:
            add_include("reasoning.encrypted_content")

        text: Optional[Dict[str, Any]] = None
        rf = options.response_format
        if rf is not None and rf.type == "json":
            if rf.json_schema is not None:
                fmt = {
                    "type": "json_schema",
                    "strict": prov.strict_json_schema if prov.strict_json_schema is not None else True,
                    "name": rf.name or "response",
                    "description": rf.description,
                    "schema": rf.json_schema,
                }
            else:
                fmt = {"type": "json_object"}
            text = {"format": fmt}
        if prov.text_verbosity is not None:
            text = dict(text or {})
            text["verbosity"] = prov.text_verbosity

        body: Dict[str, Any] = {"model": self._model_id}
        if prov.instructions is not None:
            body["instructions"] = prov.instructions
        body["input"] = input_items
        for key, value in (
            ("temperature", options.temperature),
            ("top_p", options.top_p),
            ("max_output_tokens", options.max_output_tokens),
            ("text", text),
            ("metadata", prov.metadata),
            ("conversation", prov.conversation),
            ("max_tool_calls", prov.max_tool_calls),
            ("parallel_tool_calls", prov.parallel_tool_calls),
            ("previous_response_id", prov.previous_response_id),
            ("store", prov.store),
            ("user", prov.user),
            ("prompt_cache_key", prov.prompt_cache_key),
            ("prompt_cache_retention", prov.prompt_cache_retention),
            ("safety_identifier", prov.safety_identifier),
            ("truncation", prov.truncation),
        ):
            if value is not None:
                body[key] = value

        tools = []
        for tool in options.tools or []:
            if isinstance(tool, FunctionTool):
                entry = {
                    "type": "function",
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": normalize_object_schema(tool.input_schema),
                }
                strict = _function_tool_strict(tool)
                if strict is not None:
                    entry["strict"] = strict
                tools.append(entry)
            else:
                built = build_provider_tool(tool)
                if built is None:
                    warnings.append(UnsupportedToolWarning(tool_name=tool.name, details=f"unsupported provider tool id {tool.id}"))
                else:
                    tools.append(built)
        if tools:
            body["tools"] = tools
        tool_choice = map_tool_choice(options.tool_choice)
        if tool_choice is not None:
            body["tool_choice"] = tool_choice

        if prov.logprobs_n is not None:
            body["top_logprobs"] = max(1, min(prov.logprobs_n, TOP_LOGPROBS_MAX))
        elif prov.logprobs_bool:
            body["top_logprobs"] = TOP_LOGPROBS_MAX
        if include is not None:
            body["include"] = include

        if is_reasoning:
            allow_sampling = prov.reasoning_effort == "none" and model_cfg.supports_non_reasoning_parameters
            if not allow_sampling:
                if body.pop("temperature", None) is not None:
                    warnings.append(unsupported("temperature", "temperature is not supported for reasoning models"))
                if body.pop("top_p", None) is not None:
                    warnings.append(unsupported("topP", "topP is not supported for reasoning models"))
            reasoning = {}
            if prov.reasoning_effort is not None:
                reasoning["effort"] = prov.reasoning_effort
            if prov.reasoning_summary is not None:
                reasoning["summary"] = prov.reasoning_summary
            if reasoning:
                body["reasoning"] = reasoning
        else:
            if prov.reasoning_effort is not None:
                warnings.append(unsupported("reasoningEffort", "reasoningEffort is not supported for non-reasoning models"))
            if prov.reasoning_summary is not None:
                warnings.append(unsupported("reasoningSummary", "reasoningSummary is not supported for non-reasoning models"))

        if prov.service_tier == "flex" and not model_cfg.supports_flex_processing:
            warnings.append(unsupported("serviceTier", "flex processing is only available for o3, o4-mini, and gpt-5 models"))
        elif prov.service_tier == "priority" and not model_cfg.supports_priority_processing:
            warnings.append(unsupported("serviceTier", "priority processing is only available for supported models (gpt-4, gpt-5, gpt-5-mini, o3, o4-mini)"))
        elif prov.service_tier is not None:
            body["service_tier"] = prov.service_tier

        if header_options is not None:
            header_options.apply_overrides(body, OVERRIDE_DISALLOW)
            # explicit call-site effort beats header defaults
            if is_reasoning and prov.reasoning_effort is not None:
                if not isinstance(body.get("reasoning"), dict):
                    body["reasoning"] = {}
                body["reasoning"]["effort"] = prov.reasoning_effort

        return body, warnings

    def _prepare(self, options: CallOptions) -> Tuple[CallOptions, Dict[str, Any], List[CallWarning], Dict[str, str]]:
        scope = self.config.provider_scope_name
        header_options = HeaderOptions(scope, self.config.option_headers, options.headers)
        options = build_call_options(options, scope, header_options.defaults)
        body, warnings = self.build_request_body(options, header_options)
        headers = build_headers(
            {"content-type": "application/json", "accept": "application/json"},
            self.config.headers,
            options.headers,
        )
        return options, body, warnings, headers

    async def do_generate(self, options: CallOptions) -> GenerateResponse:
        options, body, warnings, headers = self._prepare(options)
        url = self.endpoint_url()
        logger.debug(f"POST {url} model={self._model_id}")
        data, response_headers = await post_json(self.config.http, url, headers, body, self.config.transport_cfg)

        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else None
            raise ProviderError(400, message or dumps_compact(error))

        scope = self.config.provider_scope_name
        response = data.get("response") if isinstance(data.get("response"), dict) else {}
        content, has_function_calls = extract_response_content(data, scope)
        usage = usage_from_openai(data.get("usage") or response.get("usage")) or Usage()
        details = data.get("incomplete_details")
        finish_reason = map_finish_reason(details.get("reason") if isinstance(details, dict) else None, has_function_calls)

        response_id = data.get("id") or response.get("id")
        tier = data.get("service_tier") or response.get("service_tier")
        provider_metadata = _scope_metadata(scope, responseId=response_id, serviceTier=tier) if (response_id or tier) else None

        return GenerateResponse(
            content=content,
            finish_reason=finish_reason,
            usage=usage,
            provider_metadata=provider_metadata,
            request_body=body,
            response_headers=lowercase_headers(response_headers) or None,
            response_body=data,
            warnings=warnings,
        )

    async def do_stream(self, options: CallOptions) -> StreamResponse:
        options, body, warnings, headers = self._prepare(options)
        body["stream"] = True
        headers["accept"] = "text/event-stream"
        url = self.endpoint_url()
        logger.debug(f"POST {url} model={self._model_id} (stream)")
        byte_stream, response_headers = await open_stream(self.config.http, url, headers, body, self.config.transport_cfg)
        events = sse_to_events(byte_stream, ResponsesChunkParser(), options.include_raw_chunks)
        parts = map_events_to_parts(events, build_stream_mapper_config(warnings, self.config.provider_scope_name))
        return stream_response(parts, body, response_headers)


# --- Registration -----------------------------------------------------------

def _option_headers(headers: Dict[str, str]) -> Dict[str, str]:
    return {k: v for k, v in headers.items() if k.lower().startswith("x-ai-sdk-")}


def build_openai_model(definition: ProviderDefinition, model: str, credentials: Credentials, transport=None) -> OpenAIResponsesLanguageModel:
    headers = {"content-type": "application/json", "accept": "application/json"}
    if credentials.as_bearer():
        headers["authorization"] = credentials.as_bearer()
    elif credentials.as_api_key():
        headers["authorization"] = f"Bearer {credentials.as_api_key()}"
    headers.update(definition_headers(definition.headers, RESERVED_HEADERS))
    with_user_agent(headers, "openai")

    config = OpenAIConfig(
        provider_name="openai.responses",
        provider_scope_name=definition.name,
        base_url=definition.base_url.strip() or DEFAULT_BASE_URL,
        endpoint_path=definition.endpoint_path or DEFAULT_ENDPOINT_PATH,
        headers=headers,
        http=transport or HttpxTransport(),
        transport_cfg=build_provider_transport_config(definition, DEFAULT_IDLE_TIMEOUT),
        query_params=collect_query_params(definition),
        option_headers=_option_headers(definition.headers),
        file_id_prefixes=list(FILE_ID_PREFIXES),
    )
    return OpenAIResponsesLanguageModel(model, config)


def _openai_reasoning_scope(ctx) -> Optional[List[str]]:
    return ["openai"]


REGISTRATIONS = [
    ProviderRegistration(
        id="openai",
        sdk_type=SdkType.OPENAI,
        build=build_openai_model,
        reasoning_scope=_openai_reasoning_scope,
    ),
]
