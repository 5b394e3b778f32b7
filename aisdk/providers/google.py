"""
Google Generative AI (Gemini) `generateContent` API.

`GoogleGenerativeAILanguageModel` is shared with Vertex AI; the two differ
only in base URL, authentication and which provider-option scopes they read.
"""
import logging
import os
import re
import uuid
from typing import Any, Dict, List, Optional, Tuple

from ..catalog import ProviderDefinition, SdkType
from ..exceptions import InvalidArgumentError
from ..options import build_call_options, deep_merge, is_internal_sdk_header, merge_options_with_disallow
from ..registry import Credentials, ProviderRegistration, build_provider_transport_config, collect_query_params
from ..streaming.events import DataEvent, DoneEvent, ErrorEvent, TokenUsage, UsageEvent
from ..streaming.mapper import EventMapperConfig, EventMapperHooks, EventMapperState, map_events_to_parts
from ..streaming.pipeline import sse_to_events
from ..streaming.sse import SseEvent
from ..transport.base import HttpTransport, TransportConfig
from ..transport.http import HttpxTransport
from ..types import (
    CallOptions,
    CallWarning,
    ContentOutput,
    FilePart,
    FinishReason,
    FunctionTool,
    GeneratedFile,
    GenerateResponse,
    OtherWarning,
    ReasoningContent,
    ReasoningDelta,
    ReasoningEnd,
    ReasoningPart,
    ReasoningStart,
    SourceUrl,
    StreamResponse,
    TextContent,
    TextDelta,
    TextEnd,
    TextPart,
    TextStart,
    ToolCallPart,
    ToolInputDelta,
    ToolInputEnd,
    ToolInputStart,
    ToolResult,
    ToolResultPart,
    UnsupportedToolWarning,
    UrlData,
    Usage,
)
from ..utils import build_url, data_to_base64, dumps_compact, normalize_media_type, parse_json_loose, without_null_fields
from .base import HeaderOptions, build_headers, open_stream, post_json, stream_response, usage_from_google, with_user_agent

logger = logging.getLogger("aisdk.providers.google")

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_IDLE_TIMEOUT = 45.0
API_KEY_ENV = "GOOGLE_GENERATIVE_AI_API_KEY"

RESERVED_HEADERS = {"content-type", "accept", "authorization", "x-api-key", "x-goog-api-key"}
OVERRIDE_DISALLOW = ["contents", "systemInstruction"]

# provider option keys lifted into typed fields; everything else is a request override
TYPED_OPTION_KEYS = {
    "responseModalities", "response_modalities",
    "thinkingConfig", "thinking_config",
    "cachedContent", "cached_content",
    "structuredOutputs", "structured_outputs",
    "safetySettings", "safety_settings",
    "audioTimestamp", "audio_timestamp",
    "labels", "threshold",
    "generationConfig", "generation_config",
}

CONTENT_FILTER_REASONS = {"IMAGE_SAFETY", "RECITATION", "SAFETY", "BLOCKLIST", "PROHIBITED_CONTENT", "SPII"}
CODE_EXECUTION_TOOL = "code_execution"


class GoogleConfig:
    def __init__(
        self,
        provider_name: str,
        provider_scope_name: str,
        base_url: str,
        headers: Dict[str, str],
        http: HttpTransport,
        option_scopes: Optional[List[str]] = None,
        transport_cfg: Optional[TransportConfig] = None,
        supported_urls: Optional[Dict[str, List[str]]] = None,
        query_params: Optional[List[Tuple[str, str]]] = None,
        option_headers: Optional[Dict[str, str]] = None,
        warn_on_include_thoughts: bool = True,
    ):
        self.provider_name = provider_name
        self.provider_scope_name = provider_scope_name
        self.base_url = base_url
        self.headers = headers
        self.http = http
        self.option_scopes = option_scopes or ["google"]
        self.transport_cfg = transport_cfg or TransportConfig()
        self.supported_urls = supported_urls or {}
        self.query_params = list(query_params or [])
        self.option_headers = dict(option_headers or {})
        self.warn_on_include_thoughts = warn_on_include_thoughts

    @property
    def metadata_scope(self) -> str:
        return self.option_scopes[0]


def first_scope(provider_options, scopes: List[str]) -> Optional[Dict[str, Any]]:
    for scope in scopes:
        value = (provider_options or {}).get(scope)
        if isinstance(value, dict):
            return value
    return None


def _option(scoped: Dict[str, Any], camel: str, snake: str):
    return scoped.get(camel, scoped.get(snake))


# --- Schemas & tools ---------------------------------------------------------

def _is_empty_object_schema(schema: Any) -> bool:
    return (
        isinstance(schema, dict)
        and schema.get("type") == "object"
        and not schema.get("properties")
        and "additionalProperties" not in schema
    )


def convert_json_schema_to_openapi_schema(schema: Any) -> Any:
    """
    JSON Schema (draft-07) -> the OpenAPI 3.0 subset Gemini accepts.
    Empty object schemas convert to None.
    """
    if _is_empty_object_schema(schema):
        return None
    if isinstance(schema, bool):
        return {"type": "boolean", "properties": {}, "const": schema}
    if not isinstance(schema, dict):
        return None

    out: Dict[str, Any] = {}
    for key in ("description", "required", "format"):
        if key in schema:
            out[key] = schema[key]
    if "const" in schema:
        out["enum"] = [schema["const"]]

    schema_type = schema.get("type")
    if isinstance(schema_type, list):
        if "null" in schema_type:
            non_null = [t for t in schema_type if t != "null"]
            out["type"] = non_null[0] if non_null else "object"
            out["nullable"] = True
        else:
            out["type"] = schema_type
    elif isinstance(schema_type, str):
        out["type"] = schema_type

    if "enum" in schema:
        out["enum"] = schema["enum"]

    if isinstance(schema.get("properties"), dict):
        properties = {}
        for name, prop in schema["properties"].items():
            converted = convert_json_schema_to_openapi_schema(prop)
            if converted is not None:
                properties[name] = converted
        out["properties"] = properties

    if "items" in schema:
        items = schema["items"]
        if isinstance(items, list):
            out["items"] = [convert_json_schema_to_openapi_schema(i) for i in items]
        else:
            out["items"] = convert_json_schema_to_openapi_schema(items)

    if isinstance(schema.get("allOf"), list):
        out["allOf"] = [convert_json_schema_to_openapi_schema(s) for s in schema["allOf"]]

    if isinstance(schema.get("anyOf"), list):
        def is_null(s):
            return isinstance(s, dict) and s.get("type") == "null"

        has_null = any(is_null(s) for s in schema["anyOf"])
        non_null = [convert_json_schema_to_openapi_schema(s) for s in schema["anyOf"] if not is_null(s)]
        if has_null and len(non_null) == 1 and isinstance(non_null[0], dict):
            single = dict(non_null[0])
            single["nullable"] = True
            return single
        out["anyOf"] = non_null
        if has_null:
            out["nullable"] = True

    if isinstance(schema.get("oneOf"), list):
        out["oneOf"] = [convert_json_schema_to_openapi_schema(s) for s in schema["oneOf"]]

    if "minLength" in schema:
        out["minLength"] = schema["minLength"]
    return out


class ModelFamily:
    """Feature gates derived from a Gemini model id."""

    def __init__(self, model_id: str):
        model = model_id.lower()
        is_latest = model in ("gemini-flash-latest", "gemini-flash-lite-latest", "gemini-pro-latest")
        self.is_gemini2_or_newer = "gemini-2" in model or "gemini-3" in model or is_latest
        self.supports_dynamic_retrieval = "gemini-1.5-flash" in model and "-8b" not in model
        self.supports_file_search = "gemini-2.5" in model
        self.is_gemma = model.startswith("gemma-")


def _provider_tool_entry(tool, family: ModelFamily) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """(tool entry, unsupported details); both None means an unknown tool id."""
    if tool.id == "google.google_search":
        if family.is_gemini2_or_newer:
            return {"googleSearch": {}}, None
        if family.supports_dynamic_retrieval:
            dynamic = {}
            if isinstance(tool.args.get("mode"), str):
                dynamic["mode"] = tool.args["mode"]
            if isinstance(tool.args.get("dynamicThreshold"), (int, float)):
                dynamic["dynamicThreshold"] = tool.args["dynamicThreshold"]
            return {"googleSearchRetrieval": {"dynamicRetrievalConfig": dynamic}}, None
        return {"googleSearchRetrieval": {}}, None

    gated = {
        "google.enterprise_web_search": ({"enterpriseWebSearch": {}}, "Enterprise Web Search requires Gemini 2.0 or newer."),
        "google.url_context": ({"urlContext": {}}, "The URL context tool is not supported with other Gemini models than Gemini 2."),
        "google.code_execution": ({"codeExecution": {}}, "The code execution tools is not supported with other Gemini models than Gemini 2."),
        "google.google_maps": ({"googleMaps": {}}, "The Google Maps grounding tool is not supported with Gemini models other than Gemini 2 or newer."),
    }
    if tool.id in gated:
        entry, details = gated[tool.id]
        return (entry, None) if family.is_gemini2_or_newer else (None, details)

    if tool.id == "google.file_search":
        if family.supports_file_search:
            return {"fileSearch": dict(tool.args)}, None
        return None, "The file search tool is only supported with Gemini 2.5 models."

    if tool.id == "google.vertex_rag_store":
        if not family.is_gemini2_or_newer:
            return None, "The RAG store tool is not supported with other Gemini models than Gemini 2."
        resources = {}
        if isinstance(tool.args.get("ragCorpus"), str):
            resources["rag_corpus"] = tool.args["ragCorpus"]
        store: Dict[str, Any] = {"rag_resources": resources}
        if isinstance(tool.args.get("topK"), int):
            store["similarity_top_k"] = tool.args["topK"]
        return {"retrieval": {"vertex_rag_store": store}}, None

    return None, None


def prepare_tools(tools, tool_choice, model_id: str) -> Tuple[Optional[List[Dict[str, Any]]], Optional[Dict[str, Any]], List[CallWarning]]:
    """
    Returns (tools, toolConfig, warnings). Provider tools take precedence:
    when any are present, function tools are not sent.
    """
    warnings: List[CallWarning] = []
    if not tools:
        return None, None, warnings

    function_tools = [t for t in tools if isinstance(t, FunctionTool)]
    provider_tools = [t for t in tools if not isinstance(t, FunctionTool)]
    if function_tools and provider_tools:
        warnings.append(OtherWarning(message="Unsupported combination of function and provider-defined tools."))

    if provider_tools:
        family = ModelFamily(model_id)
        entries = []
        for tool in provider_tools:
            entry, details = _provider_tool_entry(tool, family)
            if entry is not None:
                entries.append(entry)
            else:
                warnings.append(UnsupportedToolWarning(tool_name=tool.id, details=details))
        return (entries or None), None, warnings

    declarations = [
        {
            "name": t.name,
            "description": t.description or "",
            "parameters": convert_json_schema_to_openapi_schema(t.input_schema),
        }
        for t in function_tools
    ]

    tool_config = None
    if tool_choice is not None:
        if tool_choice.type == "tool":
            tool_config = {"functionCallingConfig": {"mode": "ANY", "allowedFunctionNames": [tool_choice.tool_name]}}
        else:
            mode = {"auto": "AUTO", "none": "NONE", "required": "ANY"}[tool_choice.type]
            tool_config = {"functionCallingConfig": {"mode": mode}}
    return [{"functionDeclarations": declarations}], tool_config, warnings


# --- Prompt conversion -------------------------------------------------------

def _thought_signature(provider_options, scopes: List[str]) -> Optional[str]:
    scoped = first_scope(provider_options, scopes) or {}
    signature = scoped.get("thoughtSignature")
    return signature if isinstance(signature, str) else None


def _with_signature(part: Dict[str, Any], signature: Optional[str]) -> Dict[str, Any]:
    if signature:
        part["thoughtSignature"] = signature
    return part


def _user_file_part(part: FilePart) -> Dict[str, Any]:
    media_type = normalize_media_type(part.media_type)
    if isinstance(part.data, UrlData):
        return {"fileData": {"mimeType": media_type, "fileUri": part.data.url}}
    return {"inlineData": {"mimeType": media_type, "data": data_to_base64(part.data)}}


def _function_responses(part: ToolResultPart) -> List[Dict[str, Any]]:
    output = part.output
    if not isinstance(output, ContentOutput):
        return [{"functionResponse": {"name": part.tool_name, "response": {"name": part.tool_name, "content": output.value}}}]
    parts = []
    for item in output.value:
        if item.type == "text":
            parts.append({"functionResponse": {"name": part.tool_name, "response": {"name": part.tool_name, "content": item.text}}})
        else:
            parts.append({"inlineData": {"mimeType": item.media_type, "data": item.data}})
            parts.append({"text": "Tool executed successfully and returned this image as a response"})
    return parts


def convert_to_google_prompt(prompt: List[Any], is_gemma: bool, scopes: List[str]) -> Tuple[Optional[Dict[str, Any]], List[Dict[str, Any]]]:
    """
    Returns (systemInstruction, contents). Gemma models take no system
    instruction, so the system text is prepended to the first user turn.
    """
    system_parts: List[Dict[str, Any]] = []
    contents: List[Dict[str, Any]] = []
    system_allowed = True

    for message in prompt:
        if message.role == "system":
            if not system_allowed:
                raise InvalidArgumentError("system messages are only supported at the beginning of the conversation")
            system_parts.append({"text": message.content})
            continue
        system_allowed = False

        if message.role == "user":
            parts = []
            for part in message.content:
                if isinstance(part, TextPart):
                    parts.append({"text": part.text})
                else:
                    parts.append(_user_file_part(part))
            contents.append({"role": "user", "parts": parts})

        elif message.role == "assistant":
            parts = []
            for part in message.content:
                signature = _thought_signature(part.provider_options, scopes)
                if isinstance(part, TextPart):
                    if part.text:
                        parts.append(_with_signature({"text": part.text}, signature))
                elif isinstance(part, ReasoningPart):
                    if part.text:
                        parts.append(_with_signature({"text": part.text, "thought": True}, signature))
                elif isinstance(part, FilePart):
                    if isinstance(part.data, UrlData):
                        raise InvalidArgumentError("File data URLs in assistant messages are not supported")
                    parts.append({"inlineData": {"mimeType": part.media_type, "data": data_to_base64(part.data)}})
                elif isinstance(part, ToolCallPart):
                    parts.append(_with_signature(
                        {"functionCall": {"name": part.tool_name, "args": parse_json_loose(part.input, {})}},
                        signature,
                    ))
            contents.append({"role": "model", "parts": parts})

        elif message.role == "tool":
            parts = []
            for part in message.content:
                if isinstance(part, ToolResultPart):
                    parts.extend(_function_responses(part))
            contents.append({"role": "user", "parts": parts})

    if is_gemma and system_parts and contents and contents[0]["role"] == "user":
        system_text = "\n\n".join(p["text"] for p in system_parts)
        contents[0]["parts"].insert(0, {"text": system_text + "\n\n"})
        return None, contents

    return ({"parts": system_parts} if system_parts else None), contents


# --- Response mapping ------------------------------------------------------------

def map_finish_reason(reason: Optional[str], has_tool_calls: bool) -> FinishReason:
    if reason == "STOP":
        return "tool_calls" if has_tool_calls else "stop"
    if reason == "MAX_TOKENS":
        return "length"
    if reason in CONTENT_FILTER_REASONS:
        return "content_filter"
    if reason in ("FINISH_REASON_UNSPECIFIED", "OTHER"):
        return "other"
    if reason == "MALFORMED_FUNCTION_CALL":
        return "error"
    return "unknown"


def candidate_metadata(candidate: Dict[str, Any], usage_metadata: Optional[Dict[str, Any]], scope: str) -> Dict[str, Any]:
    inner = {
        "groundingMetadata": candidate.get("groundingMetadata"),
        "urlContextMetadata": candidate.get("urlContextMetadata"),
        "safetyRatings": candidate.get("safetyRatings"),
    }
    if usage_metadata:
        inner["usageMetadata"] = usage_metadata
    return {scope: inner}


def grounding_sources(candidate: Dict[str, Any]) -> List[Tuple[str, Optional[str]]]:
    sources = []
    for chunk in (candidate.get("groundingMetadata") or {}).get("groundingChunks") or []:
        web = chunk.get("web") if isinstance(chunk, dict) else None
        if isinstance(web, dict) and isinstance(web.get("uri"), str):
            sources.append((web["uri"], web.get("title")))
    return sources


def _signature_metadata(part: Dict[str, Any], scope: str) -> Optional[Dict[str, Any]]:
    signature = part.get("thoughtSignature")
    return {scope: {"thoughtSignature": signature}} if isinstance(signature, str) else None


def extract_generate_content(data: Dict[str, Any], scope: str) -> List[Any]:
    candidates = data.get("candidates") or []
    candidate = candidates[0] if candidates and isinstance(candidates[0], dict) else {}
    content: List[Any] = []
    last_code_call = None

    for part in (candidate.get("content") or {}).get("parts") or []:
        if isinstance(part.get("executableCode"), dict) and part["executableCode"].get("code") is not None:
            last_code_call = str(uuid.uuid4())
            content.append(ToolCallPart(
                tool_call_id=last_code_call,
                tool_name=CODE_EXECUTION_TOOL,
                input=dumps_compact(part["executableCode"]),
                provider_executed=True,
            ))
        elif isinstance(part.get("codeExecutionResult"), dict) and last_code_call is not None:
            result = part["codeExecutionResult"]
            content.append(ToolResult(
                tool_call_id=last_code_call,
                tool_name=CODE_EXECUTION_TOOL,
                result={"outcome": result.get("outcome"), "output": result.get("output")},
                is_error=False,
            ))
            last_code_call = None
        elif isinstance(part.get("text"), str) and part["text"]:
            md = _signature_metadata(part, scope)
            if part.get("thought"):
                content.append(ReasoningContent(text=part["text"], provider_metadata=md))
            else:
                content.append(TextContent(text=part["text"], provider_metadata=md))
        elif isinstance(part.get("functionCall"), dict):
            call = part["functionCall"]
            content.append(ToolCallPart(
                tool_call_id=str(uuid.uuid4()),
                tool_name=call.get("name") or "",
                input=dumps_compact(call.get("args") if call.get("args") is not None else {}),
                provider_options=_signature_metadata(part, scope),
            ))
        elif isinstance(part.get("inlineData"), dict):
            inline = part["inlineData"]
            content.append(GeneratedFile(media_type=inline.get("mimeType") or "", data=inline.get("data") or ""))

    for url, title in grounding_sources(candidate):
        content.append(SourceUrl(id=str(uuid.uuid4()), url=url, title=title))
    return content


# --- Streaming --------------------------------------------------------------

class GoogleChunkParser:
    """
    `ProviderChunk` for `streamGenerateContent?alt=sse`. The API has no
    terminal frame, so the chunk carrying `finishReason` ends the stream.
    """

    def try_from_sse(self, event: SseEvent) -> Optional[List[Any]]:
        data = parse_json_loose(event.data, None)
        if not isinstance(data, dict):
            return None
        if isinstance(data.get("error"), dict):
            return [ErrorEvent(message=data["error"].get("message") or dumps_compact(data["error"]))]

        events: List[Any] = []
        usage_metadata = data.get("usageMetadata")
        if isinstance(usage_metadata, dict):
            usage = usage_from_google(usage_metadata)
            events.append(DataEvent(key="usage_metadata", value=usage_metadata))
            events.append(UsageEvent(usage=TokenUsage(
                input_tokens=usage.input_tokens or 0,
                output_tokens=usage.output_tokens or 0,
                total_tokens=usage.total_tokens or 0,
                cache_read_tokens=usage.cached_input_tokens,
                reasoning_tokens=usage.reasoning_tokens,
            )))

        finished = False
        for candidate in data.get("candidates") or []:
            if not isinstance(candidate, dict):
                continue
            for part in (candidate.get("content") or {}).get("parts") or []:
                if isinstance(part, dict):
                    events.append(DataEvent(key="part", value=part))
            if candidate.get("groundingMetadata"):
                events.append(DataEvent(key="grounding", value=candidate))
            if candidate.get("finishReason"):
                events.append(DataEvent(key="finish", value=candidate))
                finished = True
        if finished:
            events.append(DoneEvent())
        return events


class GoogleStreamState:
    def __init__(self, scope: str):
        self.scope = scope
        self.text_id: Optional[str] = None
        self.reasoning_id: Optional[str] = None
        self.block_counter = 0
        self.last_code_call: Optional[str] = None
        self.emitted_urls = set()
        self.usage_metadata: Optional[Dict[str, Any]] = None
        self.finish_reason: Optional[str] = None
        self.metadata: Optional[Dict[str, Any]] = None

    def next_id(self, prefix: str) -> str:
        block_id = f"{prefix}-{self.block_counter}"
        self.block_counter += 1
        return block_id

    def close_text(self) -> List[Any]:
        if self.text_id is None:
            return []
        text_id, self.text_id = self.text_id, None
        return [TextEnd(id=text_id)]

    def close_reasoning(self) -> List[Any]:
        if self.reasoning_id is None:
            return []
        reasoning_id, self.reasoning_id = self.reasoning_id, None
        return [ReasoningEnd(id=reasoning_id)]


def _tool_call_parts(tool_id: str, name: str, args: str, provider_executed: bool, provider_options=None) -> List[Any]:
    return [
        ToolInputStart(id=tool_id, tool_name=name, provider_executed=provider_executed),
        ToolInputDelta(id=tool_id, delta=args, provider_executed=provider_executed),
        ToolInputEnd(id=tool_id, provider_executed=provider_executed),
        ToolCallPart(
            tool_call_id=tool_id,
            tool_name=name,
            input=args,
            provider_executed=provider_executed,
            provider_options=provider_options,
        ),
    ]


def _stream_part(state: EventMapperState, extra: GoogleStreamState, part: Dict[str, Any]) -> List[Any]:
    scope = extra.scope
    if isinstance(part.get("executableCode"), dict) and part["executableCode"].get("code") is not None:
        tool_id = str(uuid.uuid4())
        extra.last_code_call = tool_id
        state.has_tool_calls = True
        return _tool_call_parts(tool_id, CODE_EXECUTION_TOOL, dumps_compact(part["executableCode"]), True)

    if isinstance(part.get("codeExecutionResult"), dict) and extra.last_code_call is not None:
        result = part["codeExecutionResult"]
        tool_id, extra.last_code_call = extra.last_code_call, None
        return [ToolResult(
            tool_call_id=tool_id,
            tool_name=CODE_EXECUTION_TOOL,
            result={"outcome": result.get("outcome"), "output": result.get("output")},
            is_error=False,
            preliminary=False,
        )]

    if isinstance(part.get("text"), str) and part["text"]:
        md = _signature_metadata(part, scope)
        if part.get("thought"):
            parts = extra.close_text()
            if extra.reasoning_id is None:
                extra.reasoning_id = extra.next_id("r")
                parts.append(ReasoningStart(id=extra.reasoning_id, provider_metadata=md))
            parts.append(ReasoningDelta(id=extra.reasoning_id, delta=part["text"], provider_metadata=md))
            return parts
        parts = extra.close_reasoning()
        if extra.text_id is None:
            extra.text_id = extra.next_id("t")
            parts.append(TextStart(id=extra.text_id, provider_metadata=md))
        parts.append(TextDelta(id=extra.text_id, delta=part["text"], provider_metadata=md))
        return parts

    if isinstance(part.get("inlineData"), dict):
        inline = part["inlineData"]
        return [GeneratedFile(media_type=inline.get("mimeType") or "", data=inline.get("data") or "")]

    if isinstance(part.get("functionCall"), dict):
        call = part["functionCall"]
        state.has_tool_calls = True
        args = dumps_compact(call.get("args") if call.get("args") is not None else {})
        return _tool_call_parts(str(uuid.uuid4()), call.get("name") or "", args, False, _signature_metadata(part, scope))

    return []


def _google_data_hook(state: EventMapperState, key: str, value: Any) -> Optional[List[Any]]:
    extra: GoogleStreamState = state.extra
    if key == "usage_metadata":
        extra.usage_metadata = value
        return None
    if key == "part":
        return _stream_part(state, extra, value)
    if key == "grounding":
        parts = []
        for url, title in grounding_sources(value):
            if url not in extra.emitted_urls:
                extra.emitted_urls.add(url)
                parts.append(SourceUrl(id=str(uuid.uuid4()), url=url, title=title))
        return parts
    if key == "finish":
        extra.finish_reason = value.get("finishReason")
        extra.metadata = candidate_metadata(value, extra.usage_metadata, extra.scope)
        return extra.close_text() + extra.close_reasoning()
    return None


def _google_finish(state: EventMapperState):
    extra: GoogleStreamState = state.extra
    return map_finish_reason(extra.finish_reason, state.has_tool_calls), extra.metadata


class GoogleGenerativeAILanguageModel:
    def __init__(self, model_id: str, config: GoogleConfig):
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

    def model_path(self) -> str:
        return self._model_id if "/" in self._model_id else f"models/{self._model_id}"

    def url_generate(self) -> str:
        return build_url(self.config.base_url, f"{self.model_path()}:generateContent", self.config.query_params)

    def url_stream(self) -> str:
        url = build_url(self.config.base_url, f"{self.model_path()}:streamGenerateContent") + "?alt=sse"
        return build_url(url, "", self.config.query_params)

    def build_request_body(self, options: CallOptions, header_options: Optional[HeaderOptions] = None) -> Tuple[Dict[str, Any], List[CallWarning]]:
        warnings: List[CallWarning] = []
        family = ModelFamily(self._model_id)
        raw = first_scope(options.provider_options, self.config.option_scopes)
        scoped = dict(raw or {})

        thinking = _option(scoped, "thinkingConfig", "thinking_config")
        if isinstance(thinking, dict):
            thinking = {
                "thinkingBudget": _option(thinking, "thinkingBudget", "thinking_budget"),
                "includeThoughts": _option(thinking, "includeThoughts", "include_thoughts"),
            }
            if self.config.warn_on_include_thoughts and thinking["includeThoughts"] is True:
                warnings.append(OtherWarning(message=(
                    "The 'includeThoughts' option is only supported with the Google Vertex provider and might not be "
                    f"supported or could behave unexpectedly with the current Google provider ({self.config.provider_name})."
                )))

        system_instruction, contents = convert_to_google_prompt(options.prompt, family.is_gemma, self.config.option_scopes)
        tools, tool_config, tool_warnings = prepare_tools(options.tools, options.tool_choice, self._model_id)
        warnings.extend(tool_warnings)

        generation_config: Dict[str, Any] = {
            "maxOutputTokens": options.max_output_tokens,
            "temperature": options.temperature,
            "topK": options.top_k,
            "topP": options.top_p,
            "frequencyPenalty": options.frequency_penalty,
            "presencePenalty": options.presence_penalty,
            "stopSequences": options.stop_sequences,
            "seed": options.seed,
        }
        rf = options.response_format
        if rf is not None and rf.type == "json":
            generation_config["responseMimeType"] = "application/json"
            structured = _option(scoped, "structuredOutputs", "structured_outputs")
            if rf.json_schema is not None and structured is not False:
                generation_config["responseSchema"] = convert_json_schema_to_openapi_schema(rf.json_schema)

        extra_generation = _option(scoped, "generationConfig", "generation_config")
        if isinstance(extra_generation, dict):
            deep_merge(generation_config, extra_generation)
        modalities = _option(scoped, "responseModalities", "response_modalities")
        if modalities is not None:
            generation_config["responseModalities"] = modalities
        if isinstance(thinking, dict):
            generation_config["thinkingConfig"] = thinking
        audio_timestamp = _option(scoped, "audioTimestamp", "audio_timestamp")
        if audio_timestamp is not None:
            generation_config["audioTimestamp"] = audio_timestamp

        body: Dict[str, Any] = {"generationConfig": generation_config, "contents": contents}
        if not family.is_gemma and system_instruction is not None:
            body["systemInstruction"] = system_instruction
        for key, value in (
            ("threshold", scoped.get("threshold")),
            ("safetySettings", _option(scoped, "safetySettings", "safety_settings")),
            ("cachedContent", _option(scoped, "cachedContent", "cached_content")),
            ("labels", scoped.get("labels")),
            ("tools", tools),
            ("toolConfig", tool_config),
        ):
            if value is not None:
                body[key] = value

        overrides = {k: v for k, v in scoped.items() if k not in TYPED_OPTION_KEYS}
        if overrides:
            logger.info(f"Applying provider request overrides {sorted(overrides)}")
            merge_options_with_disallow(body, overrides, OVERRIDE_DISALLOW)
        if header_options is not None:
            header_options.apply_overrides(body, OVERRIDE_DISALLOW)

        return without_null_fields(body), warnings

    def _prepare(self, options: CallOptions) -> Tuple[CallOptions, Dict[str, Any], List[CallWarning], Dict[str, str]]:
        scope = self.config.provider_scope_name
        header_options = HeaderOptions(scope, self.config.option_headers, options.headers)
        options = build_call_options(options, scope, header_options.defaults)
        body, warnings = self.build_request_body(options, header_options)
        headers = build_headers(self.config.headers, options.headers)
        return options, body, warnings, headers

    async def do_generate(self, options: CallOptions) -> GenerateResponse:
        options, body, warnings, headers = self._prepare(options)
        url = self.url_generate()
        logger.debug(f"POST {url} contents={len(body['contents'])}")
        data, response_headers = await post_json(self.config.http, url, headers, body, self.config.transport_cfg)

        scope = self.config.metadata_scope
        candidates = data.get("candidates") or []
        candidate = candidates[0] if candidates and isinstance(candidates[0], dict) else {}
        content = extract_generate_content(data, scope)
        has_tool_calls = any(isinstance(c, ToolCallPart) for c in content)
        usage_metadata = data.get("usageMetadata")

        return GenerateResponse(
            content=content,
            finish_reason=map_finish_reason(candidate.get("finishReason"), has_tool_calls),
            usage=usage_from_google(usage_metadata) or Usage(),
            provider_metadata=candidate_metadata(candidate, usage_metadata, scope) if candidate else None,
            request_body=body,
            response_headers=response_headers,
            response_body=data,
            warnings=warnings,
        )

    async def do_stream(self, options: CallOptions) -> StreamResponse:
        options, body, warnings, headers = self._prepare(options)
        headers["accept"] = "text/event-stream"
        url = self.url_stream()
        logger.debug(f"POST {url} (stream) contents={len(body['contents'])}")
        byte_stream, response_headers = await open_stream(self.config.http, url, headers, body, self.config.transport_cfg)
        events = sse_to_events(byte_stream, GoogleChunkParser(), options.include_raw_chunks)
        parts = map_events_to_parts(events, EventMapperConfig(
            warnings=warnings,
            finish_reason_fallback="unknown",
            initial_extra=GoogleStreamState(self.config.metadata_scope),
            hooks=EventMapperHooks(data=_google_data_hook, finish=_google_finish),
        ))
        return stream_response(parts, body, response_headers)


def split_definition_headers(headers: Dict[str, str]) -> Tuple[Dict[str, str], Dict[str, str]]:
    """(wire headers, internal option headers)."""
    wire: Dict[str, str] = {}
    internal: Dict[str, str] = {}
    for key, value in headers.items():
        lower = key.lower()
        if is_internal_sdk_header(lower):
            internal[lower] = value
        elif lower not in RESERVED_HEADERS:
            wire[lower] = value
    return wire, internal


def google_supported_urls(base_url: str) -> Dict[str, List[str]]:
    return {"*": [
        f"^{re.escape(base_url)}/files/.*$",
        r"^https://(?:www\.)?youtube\.com/watch\?v=[\w-]+(?:&[\w=&.-]*)?$",
        r"^https://youtu\.be/[\w-]+(?:\?[\w=&.-]*)?$",
    ]}


def build_google_model(definition: ProviderDefinition, model: str, credentials: Credentials, transport=None) -> GoogleGenerativeAILanguageModel:
    api_key = credentials.as_api_key() or os.getenv(API_KEY_ENV)
    base_url = definition.base_url.strip() or DEFAULT_BASE_URL

    headers = {"content-type": "application/json", "accept": "application/json"}
    if api_key:
        headers["x-goog-api-key"] = api_key
    wire, internal = split_definition_headers(definition.headers)
    headers.update(wire)
    with_user_agent(headers, "google")

    config = GoogleConfig(
        provider_name="google.gen-ai",
        provider_scope_name=definition.name,
        base_url=base_url,
        headers=headers,
        http=transport or HttpxTransport(),
        option_scopes=["google"],
        transport_cfg=build_provider_transport_config(definition, DEFAULT_IDLE_TIMEOUT),
        supported_urls=google_supported_urls(base_url),
        query_params=collect_query_params(definition),
        option_headers=internal,
        warn_on_include_thoughts=True,
    )
    return GoogleGenerativeAILanguageModel(model, config)


REGISTRATIONS = [
    ProviderRegistration(
        id="google",
        sdk_type=SdkType.GOOGLE,
        matches=lambda definition: definition.sdk_type == SdkType.GOOGLE,
        build=build_google_model,
    ),
]
