"""
AI Gateway passthrough.

Call options are forwarded in the camelCase language-model wire format and
the gateway answers with ready-made content or JSON stream-part frames.
"""
import logging
import os
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional, Set, Tuple

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from ..catalog import ProviderDefinition, SdkType
from ..exceptions import display_body_for_error
from ..options import build_call_options, is_internal_sdk_header, merge_options_with_disallow, request_overrides_from_json
from ..registry import Credentials, ProviderRegistration, build_provider_transport_config, filter_provider_bootstrap_headers
from ..streaming.sse import SseDecoder
from ..transport.base import HttpTransport, TransportConfig
from ..transport.http import HttpxTransport
from ..types import (
    Base64Data,
    BytesData,
    CallOptions,
    CallWarning,
    Error,
    FilePart,
    Finish,
    FinishReason,
    GeneratedFile,
    GenerateResponse,
    OtherWarning,
    ProviderTool,
    Raw,
    ReasoningContent,
    ReasoningDelta,
    ReasoningEnd,
    ReasoningStart,
    ResponseMetadata,
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
    ToolResult,
    UnsupportedSettingWarning,
    UnsupportedToolWarning,
    Usage,
    UrlData,
)
from ..utils import build_url, data_to_base64, dumps_compact, parse_json_loose
from .base import post_json, open_stream, stream_response

logger = logging.getLogger("aisdk.providers.gateway")

DEFAULT_BASE_URL = "https://ai-gateway.vercel.sh/v1/ai"
LANGUAGE_MODEL_PATH = "/language-model"
PROTOCOL_VERSION = "0.0.1"
DEFAULT_IDLE_TIMEOUT = 45.0

SPEC_VERSION_HEADER = "ai-language-model-specification-version"
MODEL_ID_HEADER = "ai-language-model-id"
STREAMING_HEADER = "ai-language-model-streaming"
AUTH_METHOD_HEADER = "ai-gateway-auth-method"
PROTOCOL_HEADER = "ai-gateway-protocol-version"

API_KEY_ENV = "AI_GATEWAY_API_KEY"
OIDC_ENV = "VERCEL_OIDC_TOKEN"

RESERVED_HEADERS = ["content-type", "accept", "authorization", "x-api-key", AUTH_METHOD_HEADER, PROTOCOL_HEADER]
OVERRIDE_DISALLOW = ["model", "prompt", "stream", "tools", "input"]

FIELD_RENAMES = {"json_schema": "schema"}

O11Y_ENVS = (
    ("VERCEL_DEPLOYMENT_ID", "ai-o11y-deployment-id"),
    ("VERCEL_ENV", "ai-o11y-environment"),
    ("VERCEL_REGION", "ai-o11y-region"),
)


def parse_gateway_error_message(body: str) -> Optional[str]:
    """`{"error": {"message", "type"}}`; falls back to the sanitized body."""
    data = parse_json_loose(body, default=None)
    err = data.get("error") if isinstance(data, dict) else None
    if isinstance(err, dict):
        if isinstance(err.get("message"), str):
            return err["message"]
        if isinstance(err.get("type"), str):
            return f"{err['type']} error"
    return display_body_for_error(body) if body.strip() else None


class GatewayAuth:
    def __init__(self, token: str, method: str):
        self.token = token
        self.method = method

    def header_value(self) -> str:
        return self.token if self.token.lower().startswith("bearer ") else f"Bearer {self.token}"


def _strip_bearer(token: str) -> str:
    return token[len("bearer "):] if token.lower().startswith("bearer ") else token


def resolve_auth(credentials: Credentials) -> Optional[GatewayAuth]:
    api_key = (credentials.api_key or "").strip()
    if api_key:
        return GatewayAuth(api_key, "api-key")
    bearer = (credentials.bearer or "").strip()
    if bearer:
        return GatewayAuth(_strip_bearer(bearer), "oidc")
    env_key = (os.getenv(API_KEY_ENV) or "").strip()
    if env_key:
        return GatewayAuth(env_key, "api-key")
    oidc = (os.getenv(OIDC_ENV) or "").strip()
    if oidc:
        return GatewayAuth(_strip_bearer(oidc), "oidc")
    return None


def observability_headers() -> Dict[str, str]:
    headers: Dict[str, str] = {}
    for env_name, header in O11Y_ENVS:
        value = os.getenv(env_name)
        if value:
            headers[header] = value
    request_id = os.getenv("VERCEL_REQUEST_ID") or os.getenv("X_VERCEL_ID")
    if request_id:
        headers["ai-o11y-request-id"] = request_id
    return headers


# --- Call options serialization ---------------------------------------------

def _file_data(part: FilePart) -> str:
    if isinstance(part.data, UrlData):
        return part.data.url
    if isinstance(part.data, Base64Data) and part.data.base64.startswith("data:"):
        return part.data.base64
    return f"data:{part.media_type};base64,{data_to_base64(part.data)}"


def to_wire(value: Any) -> Any:
    """camelCase JSON for SDK models; dict keys of caller data are kept as-is."""
    if isinstance(value, FilePart):
        out = {"type": "file", "data": _file_data(value), "mediaType": value.media_type}
        if value.filename is not None:
            out["filename"] = value.filename
        if value.provider_options is not None:
            out["providerOptions"] = value.provider_options
        return out
    if isinstance(value, ProviderTool):
        return {"type": "provider-defined", "id": value.id, "name": value.name, "args": value.args}
    if isinstance(value, (BytesData, Base64Data)):
        return data_to_base64(value)
    if isinstance(value, BaseModel):
        out: Dict[str, Any] = {}
        for name in type(value).model_fields:
            field_value = getattr(value, name)
            if field_value is None:
                continue
            key = FIELD_RENAMES.get(name, to_camel(name))
            out[key] = to_wire(field_value)
        return out
    if isinstance(value, list):
        return [to_wire(v) for v in value]
    if isinstance(value, dict):
        return {k: to_wire(v) for k, v in value.items()}
    return value


def serialize_call_options(options: CallOptions) -> Dict[str, Any]:
    return to_wire(options)


# --- Response parsing -------------------------------------------------------

def parse_finish_reason(value: Any) -> FinishReason:
    if not isinstance(value, str):
        return "unknown"
    normalized = value.lower()
    if normalized == "stop":
        return "stop"
    if normalized == "length":
        return "length"
    if normalized in ("content_filter", "content-filter"):
        return "content_filter"
    if normalized in ("tool-calls", "tool_calls"):
        return "tool_calls"
    if normalized == "error":
        return "error"
    return "other"


def parse_usage(value: Any) -> Usage:
    if not isinstance(value, dict):
        return Usage()

    def pick(*keys: str) -> Optional[int]:
        for key in keys:
            if isinstance(value.get(key), int) and not isinstance(value.get(key), bool):
                return value[key]
        return None

    return Usage(
        input_tokens=pick("inputTokens", "prompt_tokens"),
        output_tokens=pick("outputTokens", "completion_tokens"),
        total_tokens=pick("totalTokens", "total_tokens"),
        reasoning_tokens=pick("reasoningTokens", "reasoning_tokens"),
        cached_input_tokens=pick("cachedInputTokens", "cached_input_tokens"),
    )


def parse_provider_metadata(value: Any) -> Optional[Dict[str, Dict[str, Any]]]:
    if not isinstance(value, dict):
        return None
    out = {k: dict(v) for k, v in value.items() if isinstance(v, dict)}
    return out or None


def parse_call_warnings(value: Any) -> List[CallWarning]:
    warnings: List[CallWarning] = []
    for item in value if isinstance(value, list) else []:
        if not isinstance(item, dict):
            continue
        kind = item.get("type")
        details = item.get("details") if isinstance(item.get("details"), str) else None
        if kind == "unsupported-setting" and isinstance(item.get("setting"), str):
            warnings.append(UnsupportedSettingWarning(setting=item["setting"], details=details))
        elif kind == "unsupported-tool":
            tool = item.get("tool") if isinstance(item.get("tool"), dict) else {}
            if isinstance(tool.get("name"), str):
                warnings.append(UnsupportedToolWarning(tool_name=tool["name"], details=details))
        elif kind == "other" and isinstance(item.get("message"), str):
            warnings.append(OtherWarning(message=item["message"]))
    return warnings


def parse_response_metadata(value: Dict[str, Any]) -> ResponseMetadata:
    timestamp = value.get("timestamp")
    timestamp_ms = None
    if isinstance(timestamp, str):
        try:
            timestamp_ms = int(datetime.fromisoformat(timestamp.replace("Z", "+00:00")).timestamp() * 1000)
        except ValueError:
            timestamp_ms = None
    elif isinstance(timestamp, int):
        timestamp_ms = timestamp
    return ResponseMetadata(id=value.get("id"), model_id=value.get("modelId"), timestamp_ms=timestamp_ms)


def _tool_input(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else dumps_compact(value)


def parse_content_item(item: Any) -> Optional[Any]:
    if not isinstance(item, dict):
        return None
    kind = item.get("type")
    metadata = parse_provider_metadata(item.get("providerMetadata"))
    if kind == "text":
        return TextContent(text=item.get("text") or "", provider_metadata=metadata)
    if kind == "reasoning":
        return ReasoningContent(text=item.get("text") or "", provider_metadata=metadata)
    if kind == "tool-call":
        return ToolCallPart(
            tool_call_id=item.get("toolCallId") or "",
            tool_name=item.get("toolName") or "",
            input=_tool_input(item.get("input")),
            provider_executed=bool(item.get("providerExecuted")),
            provider_metadata=metadata,
        )
    if kind == "tool-result":
        return ToolResult(
            tool_call_id=item.get("toolCallId") or "",
            tool_name=item.get("toolName") or "",
            result=item.get("result"),
            is_error=item.get("isError"),
            provider_metadata=metadata,
        )
    if kind == "file" and isinstance(item.get("data"), str):
        return GeneratedFile(media_type=item.get("mediaType") or "application/octet-stream", data=item["data"])
    if kind == "source" and item.get("sourceType") == "url" and item.get("url"):
        return SourceUrl(id=item.get("id") or item["url"], url=item["url"], title=item.get("title"), provider_metadata=metadata)
    logger.debug(f"Skipping unknown gateway content type: {kind}")
    return None


def parse_content(value: Any) -> List[Any]:
    items = value if isinstance(value, list) else [value] if value is not None else []
    return [c for c in (parse_content_item(i) for i in items) if c is not None]


# --- Stream decoding --------------------------------------------------------

class GatewayStreamState:
    """Turns gateway JSON frames into stream parts, repairing missing ids and starts."""

    def __init__(self, include_raw: bool = False):
        self.include_raw = include_raw
        self.stream_started = False
        self.finished = False
        self.text_counter = 0
        self.reasoning_counter = 0
        self.current_text_id: Optional[str] = None
        self.current_reasoning_id: Optional[str] = None
        self.active_text: Set[str] = set()
        self.active_reasoning: Set[str] = set()

    def _text_id(self, provided: Any) -> str:
        if isinstance(provided, str):
            self.current_text_id = provided
        elif self.current_text_id is None:
            self.text_counter += 1
            self.current_text_id = f"text-{self.text_counter}"
        return self.current_text_id

    def _reasoning_id(self, provided: Any) -> str:
        if isinstance(provided, str):
            self.current_reasoning_id = provided
        elif self.current_reasoning_id is None:
            self.reasoning_counter += 1
            self.current_reasoning_id = f"reasoning-{self.reasoning_counter}"
        return self.current_reasoning_id

    def process_chunk(self, value: Any) -> List[Any]:
        parts: List[Any] = []
        if not isinstance(value, dict):
            if self.include_raw:
                parts.append(Raw(raw_value=value))
            return parts
        kind = value.get("type") or ""
        metadata = parse_provider_metadata(value.get("providerMetadata"))

        if kind == "stream-start":
            self.stream_started = True
            return [StreamStart(warnings=parse_call_warnings(value.get("warnings")))]
        if not self.stream_started:
            self.stream_started = True
            parts.append(StreamStart())

        if kind == "text-start":
            part_id = self._text_id(value.get("id"))
            if part_id not in self.active_text:
                self.active_text.add(part_id)
                parts.append(TextStart(id=part_id, provider_metadata=metadata))
        elif kind == "text-delta":
            delta = value.get("textDelta") or value.get("delta") or ""
            if delta:
                part_id = self._text_id(value.get("id"))
                if part_id not in self.active_text:
                    self.active_text.add(part_id)
                    parts.append(TextStart(id=part_id, provider_metadata=metadata))
                parts.append(TextDelta(id=part_id, delta=delta, provider_metadata=metadata))
        elif kind == "text-end":
            part_id = self._text_id(value.get("id"))
            if part_id in self.active_text:
                self.active_text.discard(part_id)
                parts.append(TextEnd(id=part_id, provider_metadata=metadata))
            self.current_text_id = None
        elif kind == "reasoning-start":
            part_id = self._reasoning_id(value.get("id"))
            if part_id not in self.active_reasoning:
                self.active_reasoning.add(part_id)
                parts.append(ReasoningStart(id=part_id, provider_metadata=metadata))
        elif kind == "reasoning-delta":
            delta = value.get("reasoningDelta") or value.get("delta") or ""
            if delta:
                part_id = self._reasoning_id(value.get("id"))
                if part_id not in self.active_reasoning:
                    self.active_reasoning.add(part_id)
                    parts.append(ReasoningStart(id=part_id, provider_metadata=metadata))
                parts.append(ReasoningDelta(id=part_id, delta=delta, provider_metadata=metadata))
        elif kind == "reasoning-end":
            part_id = self._reasoning_id(value.get("id"))
            if part_id in self.active_reasoning:
                self.active_reasoning.discard(part_id)
                parts.append(ReasoningEnd(id=part_id, provider_metadata=metadata))
            self.current_reasoning_id = None
        elif kind in ("tool-input-start", "tool-input-delta", "tool-input-end"):
            part_id = value.get("id")
            if isinstance(part_id, str):
                executed = bool(value.get("providerExecuted"))
                if kind == "tool-input-start":
                    parts.append(ToolInputStart(id=part_id, tool_name=value.get("toolName") or "", provider_executed=executed, provider_metadata=metadata))
                elif kind == "tool-input-end":
                    parts.append(ToolInputEnd(id=part_id, provider_executed=executed, provider_metadata=metadata))
                elif value.get("delta"):
                    parts.append(ToolInputDelta(id=part_id, delta=value["delta"], provider_executed=executed, provider_metadata=metadata))
        elif kind in ("tool-call", "tool-result", "source"):
            item = parse_content_item(value)
            if item is not None and (kind != "tool-call" or value.get("toolCallId")):
                parts.append(item)
            elif self.include_raw:
                parts.append(Raw(raw_value=value))
        elif kind == "file":
            item = parse_content_item(value)
            if item is not None:
                parts.append(item)
            elif self.include_raw:
                parts.append(Raw(raw_value=value))
        elif kind == "response-metadata":
            parts.append(parse_response_metadata(value))
        elif kind == "finish":
            if not self.finished:
                self.finished = True
                parts.append(Finish(
                    usage=parse_usage(value.get("usage")),
                    finish_reason=parse_finish_reason(value.get("finishReason", value.get("finish_reason"))),
                    provider_metadata=metadata,
                ))
        elif kind == "error":
            parts.append(Error(error=value.get("error", "Gateway error")))
        elif kind == "raw":
            if self.include_raw and "rawValue" in value:
                parts.append(Raw(raw_value=value["rawValue"]))
        elif self.include_raw:
            parts.append(Raw(raw_value=value))
        return parts


_UNPARSEABLE = object()


async def decode_gateway_stream(byte_stream: AsyncIterator[bytes], include_raw: bool = False) -> AsyncIterator[Any]:
    decoder = SseDecoder()
    state = GatewayStreamState(include_raw)

    def frames(events):
        for event in events:
            if not event.data or event.data == "[DONE]":
                continue
            value = parse_json_loose(event.data, default=_UNPARSEABLE)
            if value is _UNPARSEABLE:
                if include_raw:
                    yield Raw(raw_value=event.data)
                continue
            yield from state.process_chunk(value)

    try:
        async for chunk in byte_stream:
            for part in frames(decoder.push(chunk)):
                yield part
        for part in frames(decoder.finish()):
            yield part
    finally:
        aclose = getattr(byte_stream, "aclose", None)
        if aclose is not None:
            await aclose()


# --- Model ------------------------------------------------------------------

class GatewayConfig:
    def __init__(
        self,
        provider_scope_name: str,
        base_url: str,
        endpoint_path: Optional[str],
        headers: Dict[str, str],
        http: HttpTransport,
        transport_cfg: TransportConfig,
        query_params: Optional[List[Tuple[str, str]]] = None,
        default_options=None,
        request_defaults: Any = None,
        auth: Optional[GatewayAuth] = None,
        provider_name: str = "gateway",
    ):
        self.provider_name = provider_name
        self.provider_scope_name = provider_scope_name
        self.base_url = base_url
        self.endpoint_path = endpoint_path
        self.headers = headers
        self.http = http
        self.transport_cfg = transport_cfg
        self.query_params = query_params or []
        self.default_options = default_options
        self.request_defaults = request_defaults
        self.auth = auth
        self.supported_urls: Dict[str, List[str]] = {"*/*": [r"^.*$"]}

    def language_endpoint(self) -> str:
        if self.endpoint_path:
            return f"{self.base_url.rstrip('/')}{self.endpoint_path}"
        return self.base_url


class GatewayLanguageModel:
    def __init__(self, model_id: str, config: GatewayConfig):
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
        return build_url(self.config.language_endpoint(), "", self.config.query_params)

    def build_headers(self, call_headers: Dict[str, str], streaming: bool) -> Dict[str, str]:
        headers = {"content-type": "application/json", "accept": "application/json"}
        headers.update(self.config.headers)
        headers[SPEC_VERSION_HEADER] = "2"
        headers[MODEL_ID_HEADER] = self._model_id
        headers[STREAMING_HEADER] = "true" if streaming else "false"
        if self.config.auth is not None:
            headers["authorization"] = self.config.auth.header_value()
            headers[AUTH_METHOD_HEADER] = self.config.auth.method
        headers.update(observability_headers())
        for key, value in (call_headers or {}).items():
            if is_internal_sdk_header(key) or not value.strip():
                continue
            headers[key.lower()] = value
        return headers

    def build_body(self, options: CallOptions) -> Dict[str, Any]:
        body = serialize_call_options(options)
        if self.config.request_defaults is not None:
            overrides = request_overrides_from_json(self.config.provider_scope_name, self.config.request_defaults)
            if overrides:
                merge_options_with_disallow(body, overrides, OVERRIDE_DISALLOW)
        return body

    async def do_generate(self, options: CallOptions) -> GenerateResponse:
        options = build_call_options(options, self.config.provider_scope_name, self.config.default_options)
        body = self.build_body(options)
        url = self.endpoint_url()
        logger.debug(f"POST {url} model={self._model_id}")
        data, response_headers = await post_json(
            self.config.http, url, self.build_headers(options.headers, False), body, self.config.transport_cfg,
            parse_gateway_error_message,
        )
        if not isinstance(data, dict):
            data = {}
        return GenerateResponse(
            content=parse_content(data.get("content")),
            finish_reason=parse_finish_reason(data.get("finishReason", data.get("finish_reason"))),
            usage=parse_usage(data.get("usage")),
            provider_metadata=parse_provider_metadata(data.get("providerMetadata", data.get("provider_metadata"))),
            request_body=body,
            response_headers=response_headers,
            response_body=data,
            warnings=parse_call_warnings(data.get("warnings")),
        )

    async def do_stream(self, options: CallOptions) -> StreamResponse:
        options = build_call_options(options, self.config.provider_scope_name, self.config.default_options)
        body = self.build_body(options)
        url = self.endpoint_url()
        logger.debug(f"POST {url} (stream) model={self._model_id}")
        headers = self.build_headers(options.headers, True)
        byte_stream, response_headers = await open_stream(
            self.config.http, url, headers, body, self.config.transport_cfg, parse_gateway_error_message
        )
        parts = decode_gateway_stream(byte_stream, options.include_raw_chunks)
        return stream_response(parts, body, response_headers, parse_gateway_error_message)


def normalize_endpoint_path(path: str, base_url: str) -> Optional[str]:
    trimmed = path.strip()
    if trimmed:
        return trimmed if trimmed.startswith("/") else f"/{trimmed}"
    if base_url.rstrip("/").endswith(LANGUAGE_MODEL_PATH):
        return None
    return LANGUAGE_MODEL_PATH


def build_gateway_model(definition: ProviderDefinition, model: str, credentials: Credentials, transport=None) -> GatewayLanguageModel:
    base_url = definition.base_url.strip().rstrip("/") or DEFAULT_BASE_URL
    bootstrap = filter_provider_bootstrap_headers(definition.headers, definition.name, RESERVED_HEADERS)
    headers = {PROTOCOL_HEADER: PROTOCOL_VERSION}
    headers.update(bootstrap.headers)
    auth = resolve_auth(credentials)

    config = GatewayConfig(
        provider_scope_name=definition.name,
        base_url=base_url,
        endpoint_path=normalize_endpoint_path(definition.endpoint_path, base_url),
        headers=headers,
        http=transport or HttpxTransport(),
        transport_cfg=build_provider_transport_config(definition, DEFAULT_IDLE_TIMEOUT),
        query_params=list(definition.query_params.items()),
        default_options=bootstrap.default_options,
        request_defaults=bootstrap.request_defaults,
        auth=auth,
    )
    logger.info(f"Configured gateway model={model} auth={auth.method if auth else 'none'}")
    return GatewayLanguageModel(model, config)


REGISTRATIONS = [
    ProviderRegistration(
        id="gateway",
        sdk_type=SdkType.GATEWAY,
        build=build_gateway_model,
    ),
]
