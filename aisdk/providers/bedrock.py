"""
Amazon Bedrock Converse API.

Requests are authenticated with a Bedrock API key or AWS SigV4. Streaming
replays the Converse result as stream parts.
"""
import json
import logging
import os
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional, Set, Tuple
from urllib.parse import quote

from ..catalog import ProviderDefinition, SdkType
from ..exceptions import AuthenticationError, InvalidArgumentError
from ..options import build_call_options, is_internal_sdk_header, parse_header_options
from ..registry import Credentials, ProviderRegistration, build_provider_transport_config
from ..transport.base import HttpTransport, TransportConfig
from ..transport.http import HttpxTransport
from ..types import (
    AssistantMessage,
    CallOptions,
    CallWarning,
    ContentOutput,
    ContentOutputMedia,
    ErrorJsonOutput,
    FilePart,
    Finish,
    FinishReason,
    FunctionTool,
    GenerateResponse,
    JsonOutput,
    OtherWarning,
    ProviderOptions,
    ReasoningContent,
    ReasoningDelta,
    ReasoningEnd,
    ReasoningPart,
    ReasoningStart,
    StreamResponse,
    StreamStart,
    TextContent,
    TextDelta,
    TextEnd,
    TextPart,
    TextStart,
    ToolCallPart,
    ToolChoice,
    ToolInputDelta,
    ToolInputEnd,
    ToolInputStart,
    ToolMessage,
    ToolResultPart,
    UnsupportedToolWarning,
    Usage,
    UrlData,
)
from ..utils import data_to_base64, dumps_compact, url_host
from .base import build_headers, post_json, unsupported
from .bedrock_signing import SigV4Credentials, prepare_signed_request

logger = logging.getLogger("aisdk.providers.bedrock")

DEFAULT_BASE_URL_FMT = "https://bedrock-runtime.{region}.amazonaws.com"
DEFAULT_REGION = "us-east-1"
DEFAULT_IDLE_TIMEOUT = 45.0
API_KEY_ENV = "AWS_BEARER_TOKEN_BEDROCK"
REGION_HEADERS = ("x-aws-region", "aws-region", "x-region")

METADATA_SCOPE = "bedrock"
JSON_TOOL_NAME = "json"
REASONING_EXTRA_TOKENS = 4096

IMAGE_FORMATS = {
    "image/jpeg": "jpeg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}

DOCUMENT_FORMATS = {
    "application/pdf": "pdf",
    "text/csv": "csv",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/vnd.ms-excel": "xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "text/html": "html",
    "text/plain": "txt",
    "text/markdown": "md",
}

ANTHROPIC_MODEL_MARKERS = ("anthropic", "claude", "sonnet", "haiku", "opus")


def parse_bedrock_error_message(body: str) -> Optional[str]:
    """Bedrock error bodies are `{"message": ...}`, sometimes with only a `type`."""
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    for key in ("message", "Message", "type"):
        if isinstance(data.get(key), str):
            return data[key]
    return None


class BedrockConfig:
    def __init__(
        self,
        provider_scope_name: str,
        base_url: str,
        region: str,
        headers: Dict[str, str],
        http: HttpTransport,
        transport_cfg: TransportConfig,
        api_key: Optional[str] = None,
        sigv4: Optional[SigV4Credentials] = None,
        default_options: Optional[ProviderOptions] = None,
        provider_name: str = "amazon-bedrock.converse",
    ):
        self.provider_name = provider_name
        self.provider_scope_name = provider_scope_name
        self.base_url = base_url
        self.region = region
        self.headers = headers
        self.http = http
        self.transport_cfg = transport_cfg
        self.api_key = api_key
        self.sigv4 = sigv4
        self.default_options = default_options
        self.supported_urls: Dict[str, List[str]] = {}

    @property
    def auth_mode(self) -> str:
        return "api-key" if self.api_key else "sigv4"

    def endpoint_for_model(self, model_id: str, suffix: str) -> str:
        return f"{self.base_url.rstrip('/')}/model/{quote(model_id, safe='')}{suffix}"


# --- Prompt conversion ------------------------------------------------------

def _bedrock_options(provider_options: Optional[ProviderOptions]) -> Dict[str, Any]:
    scoped = (provider_options or {}).get(METADATA_SCOPE)
    return scoped if isinstance(scoped, dict) else {}


def has_cache_point(provider_options: Optional[ProviderOptions]) -> bool:
    marker = _bedrock_options(provider_options)
    value = marker.get("cachePoint", marker.get("cache_point"))
    return isinstance(value, dict) and "type" in value


def _cache_point() -> Dict[str, Any]:
    return {"cachePoint": {"type": "default"}}


def _image_format(media_type: str) -> str:
    fmt = IMAGE_FORMATS.get(media_type)
    if fmt is None:
        raise InvalidArgumentError(f"Unsupported image MIME type for Amazon Bedrock: {media_type}")
    return fmt


def _document_format(media_type: str) -> str:
    fmt = DOCUMENT_FORMATS.get(media_type)
    if fmt is None:
        raise InvalidArgumentError(f"Unsupported document MIME type for Amazon Bedrock: {media_type}")
    return fmt


def _file_block(part: FilePart, position: int) -> Dict[str, Any]:
    if isinstance(part.data, UrlData):
        raise InvalidArgumentError("Amazon Bedrock does not support file content by URL references")
    if not part.media_type:
        raise InvalidArgumentError("File message parts require a MIME type for Amazon Bedrock")
    data = data_to_base64(part.data)
    if part.media_type.startswith("image/"):
        return {"image": {"format": _image_format(part.media_type), "source": {"bytes": data}}}
    return {
        "document": {
            "format": _document_format(part.media_type),
            "name": part.filename or f"document-{position}",
            "source": {"bytes": data},
        }
    }


def _tool_result_block(part: ToolResultPart) -> Dict[str, Any]:
    output = part.output
    content: List[Dict[str, Any]] = []
    if isinstance(output, ContentOutput):
        for item in output.value:
            if isinstance(item, ContentOutputMedia):
                if not item.media_type.startswith("image/"):
                    raise InvalidArgumentError(f"Unsupported media type in tool result: {item.media_type}")
                content.append({"image": {"format": _image_format(item.media_type), "source": {"bytes": item.data}}})
            else:
                content.append({"text": item.text})
    elif isinstance(output, (JsonOutput, ErrorJsonOutput)):
        content.append({"text": dumps_compact(output.value)})
    else:
        content.append({"text": output.value})
    return {"toolResult": {"toolUseId": part.tool_call_id, "content": content}}


def _group_into_blocks(prompt: List[Any]) -> List[Tuple[str, List[Any]]]:
    """Consecutive messages grouped as system / user (user + tool) / assistant blocks."""
    blocks: List[Tuple[str, List[Any]]] = []
    for message in prompt:
        kind = "user" if message.role == "tool" else message.role
        if blocks and blocks[-1][0] == kind:
            blocks[-1][1].append(message)
        else:
            blocks.append((kind, [message]))
    return blocks


def _reasoning_block(part: ReasoningPart, text: str) -> Optional[Dict[str, Any]]:
    meta = _bedrock_options(part.provider_options)
    signature = meta.get("signature")
    if signature:
        return {"reasoningContent": {"reasoningText": {"text": text, "signature": signature}}}
    redacted = meta.get("redactedData", meta.get("redacted_data"))
    if redacted:
        return {"reasoningContent": {"redactedReasoning": {"data": redacted}}}
    if text:
        return {"reasoningContent": {"reasoningText": {"text": text}}}
    return None


def convert_to_bedrock_prompt(prompt: List[Any]) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """Returns (system blocks, messages)."""
    blocks = _group_into_blocks(prompt)
    system: List[Dict[str, Any]] = []
    messages: List[Dict[str, Any]] = []

    for block_index, (kind, block) in enumerate(blocks):
        if kind == "system":
            if messages:
                raise InvalidArgumentError(
                    "Multiple system message blocks separated by other roles are not supported by Amazon Bedrock"
                )
            for message in block:
                if not message.content.strip():
                    continue
                system.append({"text": message.content})
                if has_cache_point(message.provider_options):
                    system.append(_cache_point())

        elif kind == "user":
            content: List[Dict[str, Any]] = []
            for message in block:
                if isinstance(message, ToolMessage):
                    for part in message.content:
                        if isinstance(part, ToolResultPart):
                            content.append(_tool_result_block(part))
                else:
                    for part in message.content:
                        if isinstance(part, TextPart):
                            if part.text:
                                content.append({"text": part.text})
                        elif isinstance(part, FilePart):
                            content.append(_file_block(part, len(content) + 1))
                if has_cache_point(message.provider_options):
                    content.append(_cache_point())
            if content:
                messages.append({"role": "user", "content": content})

        else:
            content = []
            last_block = block_index == len(blocks) - 1
            for message_index, message in enumerate(block):
                last_message = last_block and message_index == len(block) - 1
                for part_index, part in enumerate(message.content):
                    # the final assistant text is trimmed; trailing whitespace is rejected
                    is_last = last_message and part_index == len(message.content) - 1
                    if isinstance(part, TextPart):
                        if not part.text.strip():
                            continue
                        content.append({"text": part.text.strip() if is_last else part.text})
                    elif isinstance(part, ReasoningPart):
                        entry = _reasoning_block(part, part.text.strip() if is_last else part.text)
                        if entry is not None:
                            content.append(entry)
                    elif isinstance(part, ToolCallPart):
                        tool_input: Any = None
                        if part.input.strip():
                            try:
                                tool_input = json.loads(part.input)
                            except ValueError:
                                tool_input = part.input
                        content.append({"toolUse": {"toolUseId": part.tool_call_id, "name": part.tool_name, "input": tool_input}})
                    elif isinstance(part, FilePart):
                        raise InvalidArgumentError(
                            "Assistant file content is not supported when pre-filling Bedrock conversations"
                        )
                if has_cache_point(message.provider_options):
                    content.append(_cache_point())
            if content:
                messages.append({"role": "assistant", "content": content})

    return system, messages


def filter_prompt_if_no_tools(prompt: List[Any], has_tools: bool) -> Tuple[List[Any], Optional[CallWarning]]:
    """Drop tool calls and tool results when no tools are sent; Converse rejects them."""
    if has_tools:
        return list(prompt), None
    mutated = False
    filtered: List[Any] = []
    for message in prompt:
        if isinstance(message, ToolMessage):
            mutated = True
            continue
        if isinstance(message, AssistantMessage):
            parts = [p for p in message.content if not isinstance(p, ToolCallPart)]
            if len(parts) != len(message.content):
                mutated = True
            if not parts:
                continue
            message = message.model_copy(update={"content": parts})
        filtered.append(message)
    if not mutated:
        return filtered, None
    return filtered, unsupported(
        "toolContent",
        "Tool calls and results removed because no tools were provided for Amazon Bedrock.",
    )


def prepare_tools(tools: List[FunctionTool], tool_choice) -> Optional[Dict[str, Any]]:
    if not tools or (tool_choice is not None and tool_choice.type == "none"):
        return None
    specs = []
    for tool in tools:
        spec: Dict[str, Any] = {"name": tool.name, "inputSchema": {"json": tool.input_schema}}
        if tool.description:
            spec["description"] = tool.description
        specs.append({"toolSpec": spec})
    config: Dict[str, Any] = {"tools": specs}
    if tool_choice is not None:
        if tool_choice.type == "auto":
            config["toolChoice"] = {"auto": {}}
        elif tool_choice.type == "required":
            config["toolChoice"] = {"any": {}}
        elif tool_choice.type == "tool":
            config["toolChoice"] = {"tool": {"name": tool_choice.tool_name}}
    return config


# --- Response mapping -------------------------------------------------------

def map_finish_reason(reason: Optional[str]) -> FinishReason:
    if reason in ("stop", "stop_sequence", "end_turn"):
        return "stop"
    if reason in ("max_tokens", "length"):
        return "length"
    if reason in ("content_filtered", "content-filter", "guardrail_intervened"):
        return "content_filter"
    if reason in ("tool_use", "tool-calls"):
        return "tool_calls"
    if reason == "error":
        return "error"
    return "unknown"


def map_usage(usage: Any) -> Usage:
    if not isinstance(usage, dict):
        return Usage()
    return Usage(
        input_tokens=usage.get("inputTokens"),
        output_tokens=usage.get("outputTokens"),
        total_tokens=usage.get("totalTokens"),
        cached_input_tokens=usage.get("cacheReadInputTokens"),
    )


def map_response_content(parts: List[Any], uses_json_tool: bool) -> List[Any]:
    content: List[Any] = []
    for part in parts:
        if not isinstance(part, dict):
            continue
        text = part.get("text")
        if isinstance(text, str) and text and not uses_json_tool:
            content.append(TextContent(text=text))

        reasoning = part.get("reasoningContent")
        if isinstance(reasoning, dict):
            if isinstance(reasoning.get("reasoningText"), dict):
                reasoning_text = reasoning["reasoningText"]
                metadata = None
                if reasoning_text.get("signature"):
                    metadata = {METADATA_SCOPE: {"signature": reasoning_text["signature"]}}
                content.append(ReasoningContent(text=reasoning_text.get("text") or "", provider_metadata=metadata))
            elif isinstance(reasoning.get("redactedReasoning"), dict):
                redacted = reasoning["redactedReasoning"].get("data")
                metadata = {METADATA_SCOPE: {"redactedData": redacted} if redacted else {}}
                content.append(ReasoningContent(text="", provider_metadata=metadata))

        tool_use = part.get("toolUse")
        if isinstance(tool_use, dict):
            call_id = tool_use.get("toolUseId") or str(uuid.uuid4())
            tool_input = dumps_compact(tool_use.get("input"))
            if uses_json_tool:
                content.append(TextContent(text=tool_input))
            else:
                content.append(ToolCallPart(
                    tool_call_id=call_id,
                    tool_name=tool_use.get("name") or f"tool-{call_id}",
                    input=tool_input,
                ))
    return content


def build_provider_metadata(data: Dict[str, Any], uses_json_tool: bool) -> Optional[ProviderOptions]:
    trace = data.get("trace")
    usage = data.get("usage")
    if trace is None and usage is None and not uses_json_tool:
        return None
    inner: Dict[str, Any] = {}
    if trace is not None:
        inner["trace"] = trace
    if isinstance(usage, dict) and usage.get("cacheWriteInputTokens") is not None:
        inner["usage"] = {"cacheWriteInputTokens": usage["cacheWriteInputTokens"]}
    if uses_json_tool:
        inner["isJsonResponseFromTool"] = True
    return {METADATA_SCOPE: inner}


async def replay_as_stream(response: GenerateResponse) -> AsyncIterator[Any]:
    """Stream parts equivalent to a completed Converse response."""
    yield StreamStart(warnings=response.warnings)
    for index, item in enumerate(response.content):
        part_id = str(index)
        if isinstance(item, TextContent):
            yield TextStart(id=part_id)
            yield TextDelta(id=part_id, delta=item.text)
            yield TextEnd(id=part_id)
        elif isinstance(item, ReasoningContent):
            yield ReasoningStart(id=part_id, provider_metadata=item.provider_metadata)
            if item.text:
                yield ReasoningDelta(id=part_id, delta=item.text)
            yield ReasoningEnd(id=part_id, provider_metadata=item.provider_metadata)
        elif isinstance(item, ToolCallPart):
            yield ToolInputStart(id=item.tool_call_id, tool_name=item.tool_name)
            yield ToolInputDelta(id=item.tool_call_id, delta=item.input)
            yield ToolInputEnd(id=item.tool_call_id)
            yield item
    yield Finish(usage=response.usage, finish_reason=response.finish_reason, provider_metadata=response.provider_metadata)


# --- Model ------------------------------------------------------------------

class BedrockLanguageModel:
    def __init__(self, model_id: str, config: BedrockConfig):
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

    def build_command(self, options: CallOptions) -> Tuple[Dict[str, Any], List[CallWarning], bool, Set[str]]:
        """Returns (converse command, warnings, uses json tool, anthropic betas)."""
        warnings: List[CallWarning] = []
        if options.frequency_penalty is not None:
            warnings.append(unsupported("frequencyPenalty"))
        if options.presence_penalty is not None:
            warnings.append(unsupported("presencePenalty"))
        if options.seed is not None:
            warnings.append(unsupported("seed"))

        bedrock_opts = _bedrock_options(options.provider_options)

        json_tool = None
        rf = options.response_format
        if rf is not None and rf.type == "json":
            if rf.json_schema is not None:
                json_tool = FunctionTool(name=JSON_TOOL_NAME, description="Respond with a JSON object.", input_schema=rf.json_schema)
            else:
                warnings.append(unsupported("responseFormat", "JSON response format requires a schema; request ignored."))

        tools: List[FunctionTool] = []
        for tool in options.tools or []:
            if isinstance(tool, FunctionTool):
                tools.append(tool)
            else:
                warnings.append(UnsupportedToolWarning(tool_name=tool.name, details="provider tools are not supported"))

        tool_choice = options.tool_choice
        if json_tool is not None:
            if tools:
                warnings.append(OtherWarning(
                    message="JSON response format does not support additional tools. Provided tools are ignored."
                ))
            tools = [json_tool]
            tool_choice = ToolChoice(type="tool", tool_name=JSON_TOOL_NAME)

        tool_config = prepare_tools(tools, tool_choice)
        prompt, prompt_warning = filter_prompt_if_no_tools(options.prompt, tool_config is not None)
        if prompt_warning is not None:
            warnings.append(prompt_warning)

        system, messages = convert_to_bedrock_prompt(prompt)
        command: Dict[str, Any] = {}
        if system:
            command["system"] = system
        command["messages"] = messages

        inference: Dict[str, Any] = {}
        if options.max_output_tokens is not None:
            inference["maxTokens"] = options.max_output_tokens
        if options.temperature is not None:
            inference["temperature"] = options.temperature
        if options.top_p is not None:
            inference["topP"] = options.top_p
        if options.top_k is not None:
            inference["topK"] = options.top_k
        if options.stop_sequences:
            inference["stopSequences"] = list(options.stop_sequences)

        additional: Dict[str, Any] = {}
        reasoning = bedrock_opts.get("reasoningConfig", bedrock_opts.get("reasoning_config"))
        if isinstance(reasoning, dict) and reasoning.get("type") == "enabled":
            budget = reasoning.get("budgetTokens", reasoning.get("budget_tokens")) or 0
            if budget > 0:
                additional["thinking"] = {"type": "enabled", "budget_tokens": budget}
                if "maxTokens" in inference:
                    inference["maxTokens"] += budget
                else:
                    inference["maxTokens"] = budget + REASONING_EXTRA_TOKENS
            for key in ("temperature", "topP", "topK"):
                if inference.pop(key, None) is not None:
                    warnings.append(unsupported(key, f"{key} is not supported when reasoning is enabled"))

        if inference:
            command["inferenceConfig"] = inference
        if tool_config is not None:
            command["toolConfig"] = tool_config

        extra = bedrock_opts.get("additionalModelRequestFields", bedrock_opts.get("additional_model_request_fields"))
        if isinstance(extra, dict):
            additional.update(extra)
        for key, alias in (("guardrailConfig", "guardrail_config"), ("guardrailStreamConfig", "guardrail_stream_config")):
            value = bedrock_opts.get(key, bedrock_opts.get(alias))
            if isinstance(value, dict):
                command[key] = value
        if additional:
            command["additionalModelRequestFields"] = additional

        betas: Set[str] = set()
        for beta in bedrock_opts.get("anthropicBeta") or []:
            if isinstance(beta, str) and beta.strip():
                betas.add(beta.strip())

        return command, warnings, json_tool is not None, betas

    def _headers(self, call_headers: Dict[str, str], betas: Set[str]) -> Dict[str, str]:
        headers = build_headers(self.config.headers, call_headers)
        if betas:
            existing = [b.strip() for b in headers.get("anthropic-beta", "").split(",") if b.strip()]
            headers["anthropic-beta"] = ",".join(existing + sorted(b for b in betas if b not in existing))
        return headers

    async def do_generate(self, options: CallOptions) -> GenerateResponse:
        options = build_call_options(options, self.config.provider_scope_name, self.config.default_options)
        command, warnings, uses_json_tool, betas = self.build_command(options)
        url = self.config.endpoint_for_model(self._model_id, "/converse")
        payload, headers = prepare_signed_request(
            url,
            self._headers(options.headers, betas),
            command,
            self.config.transport_cfg,
            self.config.region,
            credentials=self.config.sigv4,
            api_key=self.config.api_key,
        )
        logger.info(f"POST {url} auth={self.config.auth_mode} messages={len(command['messages'])}")
        data, response_headers = await post_json(
            self.config.http, url, headers, payload, self.config.transport_cfg, parse_bedrock_error_message
        )
        if not isinstance(data, dict):
            data = {}

        message = (data.get("output") or {}).get("message") or {}
        return GenerateResponse(
            content=map_response_content(message.get("content") or [], uses_json_tool),
            finish_reason=map_finish_reason(data.get("stopReason")),
            usage=map_usage(data.get("usage")),
            provider_metadata=build_provider_metadata(data, uses_json_tool),
            request_body=command,
            response_headers=response_headers,
            response_body=data,
            warnings=warnings,
        )

    async def do_stream(self, options: CallOptions) -> StreamResponse:
        """Calls /converse once and replays the complete response as stream parts."""
        response = await self.do_generate(options)
        return StreamResponse(
            stream=replay_as_stream(response),
            request_body=response.request_body,
            response_headers=response.response_headers,
        )


# --- Registration -----------------------------------------------------------

def region_hint(definition: ProviderDefinition) -> Optional[str]:
    region = definition.query_params.get("region")
    if region and region.strip():
        return region.strip()
    headers = {k.lower(): v for k, v in definition.headers.items()}
    for key in REGION_HEADERS:
        value = headers.get(key)
        if value and value.strip():
            return value.strip()
    return None


def region_from_url(url: str) -> Optional[str]:
    host = url_host(url)
    if not host:
        return None
    if host.startswith("bedrock-runtime."):
        return host[len("bedrock-runtime."):].split(".")[0]
    segments = host.split(".")
    if len(segments) >= 3:
        return segments[1]
    return None


def resolve_api_key(credentials: Credentials) -> Optional[str]:
    key = credentials.as_api_key()
    if not (key and key.strip()) and credentials.bearer:
        key = credentials.bearer.strip()
        if key.lower().startswith("bearer "):
            key = key[len("bearer "):]
    if key and key.strip():
        return key.strip()
    env = os.getenv(API_KEY_ENV)
    return env.strip() if env and env.strip() else None


def sigv4_from_env() -> SigV4Credentials:
    access_key = os.getenv("AWS_ACCESS_KEY_ID")
    secret_key = os.getenv("AWS_SECRET_ACCESS_KEY")
    if not access_key or not secret_key:
        raise AuthenticationError("missing AWS credentials: set AWS_BEARER_TOKEN_BEDROCK or AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY")
    return SigV4Credentials(access_key, secret_key, os.getenv("AWS_SESSION_TOKEN") or None)


def build_bedrock_model(definition: ProviderDefinition, model: str, credentials: Credentials, transport=None) -> BedrockLanguageModel:
    region = region_hint(definition)
    if definition.base_url.strip():
        base_url = definition.base_url.strip()
        region = region or region_from_url(base_url)
    else:
        region = region or DEFAULT_REGION
        base_url = DEFAULT_BASE_URL_FMT.format(region=region)
    region = region or os.getenv("AWS_REGION") or DEFAULT_REGION

    api_key = resolve_api_key(credentials)
    sigv4 = None if api_key else sigv4_from_env()

    headers = {"content-type": "application/json", "accept": "application/json"}
    default_options = None
    for key, value in definition.headers.items():
        if is_internal_sdk_header(key):
            if default_options is None:
                default_options, _ = parse_header_options(definition.name, {key: value})
            continue
        headers[key.lower()] = value

    config = BedrockConfig(
        provider_scope_name=definition.name,
        base_url=base_url,
        region=region,
        headers=headers,
        http=transport or HttpxTransport(),
        transport_cfg=build_provider_transport_config(definition, DEFAULT_IDLE_TIMEOUT),
        api_key=api_key,
        sigv4=sigv4,
        default_options=default_options,
    )
    logger.info(f"Configured Amazon Bedrock model={model} region={region} provider_scope={definition.name}")
    return BedrockLanguageModel(model, config)


def _bedrock_reasoning_scope(ctx) -> Optional[List[str]]:
    model = (ctx.model_id or "").lower()
    if not model or not any(marker in model for marker in ANTHROPIC_MODEL_MARKERS):
        return None
    return ["anthropic", METADATA_SCOPE]


REGISTRATIONS = [
    ProviderRegistration(
        id="amazon-bedrock",
        sdk_type=SdkType.AMAZON_BEDROCK,
        build=build_bedrock_model,
        reasoning_scope=_bedrock_reasoning_scope,
    ),
]
