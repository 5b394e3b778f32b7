import logging
from typing import Any, Dict, List, Optional, Tuple

from ...capabilities import get_model_capabilities
from ...options import build_call_options
from ...streaming.collect import StreamCollectorConfig, collect_stream_to_response
from ...types import (
    AssistantMessage,
    CallOptions,
    CallWarning,
    ContentOutput,
    FilePart,
    FunctionTool,
    GenerateResponse,
    JsonOutput,
    ErrorJsonOutput,
    ReasoningPart,
    StreamResponse,
    SystemMessage,
    TextPart,
    ToolCallPart,
    ToolChoice,
    ToolMessage,
    ToolResultPart,
    UnsupportedToolWarning,
    UserMessage,
)
from ...utils import build_url, data_to_url, dumps_compact
from ..base import build_headers, open_stream, stream_response, unsupported
from .options import OpenAICompatibleConfig, split_provider_options
from .stream import CHAT, StreamSettings, build_stream

logger = logging.getLogger("aisdk.providers.openai_compatible")

CHAT_OPTION_KEYS = {"user": str, "reasoningEffort": str, "textVerbosity": str}


def _scope_metadata(scope: str, provider_options) -> Dict[str, Any]:
    if not provider_options:
        return {}
    scoped = provider_options.get(scope)
    return dict(scoped) if isinstance(scoped, dict) else {}


def _tool_output_text(output) -> str:
    if isinstance(output, (JsonOutput, ErrorJsonOutput)):
        return dumps_compact(output.value)
    if isinstance(output, ContentOutput):
        return dumps_compact([item.model_dump() for item in output.value])
    return output.value


def convert_to_chat_messages(scope: str, prompt: List[Any]) -> List[Dict[str, Any]]:
    """
    Lower the canonical prompt to chat-completions messages. Entries found under
    `provider_options[scope]` are copied onto the message or content part.
    """
    messages: List[Dict[str, Any]] = []
    for message in prompt:
        if isinstance(message, SystemMessage):
            messages.append({"role": "system", "content": message.content, **_scope_metadata(scope, message.provider_options)})

        elif isinstance(message, UserMessage):
            if len(message.content) == 1 and isinstance(message.content[0], TextPart):
                part = message.content[0]
                meta = _scope_metadata(scope, message.provider_options)
                meta.update(_scope_metadata(scope, part.provider_options))
                messages.append({"role": "user", "content": part.text, **meta})
                continue
            parts = []
            for part in message.content:
                meta = _scope_metadata(scope, part.provider_options)
                if isinstance(part, TextPart):
                    parts.append({"type": "text", "text": part.text, **meta})
                elif isinstance(part, FilePart) and part.media_type.startswith("image/"):
                    parts.append({"type": "image_url", "image_url": {"url": data_to_url(part.data, part.media_type)}, **meta})
                else:
                    logger.debug(f"Dropping unsupported user file part ({part.media_type})")
            messages.append({"role": "user", "content": parts, **_scope_metadata(scope, message.provider_options)})

        elif isinstance(message, AssistantMessage):
            text = ""
            tool_calls = []
            for part in message.content:
                if isinstance(part, (TextPart, ReasoningPart)):
                    text += part.text
                elif isinstance(part, ToolCallPart):
                    tool_calls.append({
                        "type": "function",
                        "id": part.tool_call_id,
                        "function": {"name": part.tool_name, "arguments": part.input},
                    })
            entry: Dict[str, Any] = {"role": "assistant"}
            if text:
                entry["content"] = text
            if tool_calls:
                entry["tool_calls"] = tool_calls
            entry.update(_scope_metadata(scope, message.provider_options))
            messages.append(entry)

        elif isinstance(message, ToolMessage):
            for part in message.content:
                if not isinstance(part, ToolResultPart):
                    continue
                messages.append({
                    "role": "tool",
                    "tool_call_id": part.tool_call_id,
                    "content": _tool_output_text(part.output),
                    **_scope_metadata(scope, message.provider_options),
                })
    return messages


def prepare_tools(tools, tool_choice: Optional[ToolChoice]) -> Tuple[Optional[List[Dict[str, Any]]], Any, List[CallWarning]]:
    warnings: List[CallWarning] = []
    function_tools = []
    for tool in tools or []:
        if isinstance(tool, FunctionTool):
            function_tools.append({
                "type": "function",
                "function": {"name": tool.name, "description": tool.description, "parameters": tool.input_schema},
            })
        else:
            warnings.append(UnsupportedToolWarning(tool_name=tool.name, details="provider tools are not supported"))

    choice = None
    if tool_choice is not None:
        if tool_choice.type == "tool":
            choice = {"type": "function", "function": {"name": tool_choice.tool_name}}
        else:
            choice = tool_choice.type
    return (function_tools or None), choice, warnings


class OpenAICompatibleChatLanguageModel:
    """Chat-completions model for any OpenAI-compatible server."""

    def __init__(self, model_id: str, config: OpenAICompatibleConfig):
        self._model_id = model_id
        self.config = config

    def specification_version(self) -> str:
        return "v2"

    def provider_name(self) -> str:
        return "openai-compatible"

    def model_id(self) -> str:
        return self._model_id

    def supported_urls(self) -> Dict[str, List[str]]:
        return dict(self.config.supported_urls)

    def build_request_url(self) -> str:
        return build_url(self.config.base_url, "/chat/completions", self.config.query_params)

    def build_request_body(self, options: CallOptions) -> Tuple[Dict[str, Any], List[CallWarning]]:
        warnings: List[CallWarning] = []
        if options.top_k is not None:
            warnings.append(unsupported("topK"))
        temperature = options.temperature
        caps = get_model_capabilities(self.config.provider_scope_name, self._model_id)
        if temperature is not None and caps is not None and caps.temperature is False:
            warnings.append(unsupported("temperature", f"temperature is not supported by {self._model_id}"))
            temperature = None

        response_format = None
        if options.response_format is not None and options.response_format.type == "json":
            rf = options.response_format
            if self.config.supports_structured_outputs:
                if rf.json_schema is not None:
                    response_format = {
                        "type": "json_schema",
                        "json_schema": {"schema": rf.json_schema, "name": rf.name or "response", "description": rf.description},
                    }
                else:
                    response_format = {"type": "json_object"}
            else:
                warnings.append(unsupported("responseFormat", "JSON response format schema is only supported with structuredOutputs"))
                response_format = {"type": "json_object"}

        scopes = ["openai-compatible", self.config.provider_scope_name]
        known, extras = split_provider_options(options.provider_options, scopes, CHAT_OPTION_KEYS)
        tools, tool_choice, tool_warnings = prepare_tools(options.tools, options.tool_choice)
        warnings.extend(tool_warnings)

        body: Dict[str, Any] = {
            "model": self._model_id,
            "messages": convert_to_chat_messages(self.config.provider_scope_name, options.prompt),
            "user": known.get("user"),
            "max_tokens": options.max_output_tokens,
            "temperature": temperature,
            "top_p": options.top_p,
            "frequency_penalty": options.frequency_penalty,
            "presence_penalty": options.presence_penalty,
            "stop": options.stop_sequences,
            "seed": options.seed,
            "tools": tools,
            "tool_choice": tool_choice,
            "response_format": response_format,
            "reasoning_effort": known.get("reasoningEffort"),
            "verbosity": known.get("textVerbosity"),
        }
        body = {k: v for k, v in body.items() if v is not None}
        if extras:
            logger.debug(f"Adding provider extras to chat body: {sorted(extras)}")
            body.update(extras)
        return body, warnings

    async def do_generate(self, options: CallOptions) -> GenerateResponse:
        stream = await self.do_stream(options)
        response = await collect_stream_to_response(stream, StreamCollectorConfig(allow_reasoning=True, allow_tool_calls=True))
        response.request_body = stream.request_body
        return response

    async def do_stream(self, options: CallOptions) -> StreamResponse:
        options = build_call_options(options, self.config.provider_scope_name, self.config.default_options)
        body, warnings = self.build_request_body(options)
        body["stream"] = True
        if self.config.include_usage:
            body["stream_options"] = {"include_usage": True}

        headers = build_headers({"content-type": "application/json"}, self.config.headers, options.headers)
        url = self.build_request_url()
        logger.debug(f"POST {url} model={self._model_id}")
        byte_stream, response_headers = await open_stream(self.config.http, url, headers, body, self.config.transport_cfg)
        settings = StreamSettings(
            warnings=warnings,
            include_raw=options.include_raw_chunks,
            include_usage=self.config.include_usage,
            provider_scope_name=self.config.provider_scope_name,
        )
        return stream_response(build_stream(byte_stream, settings, CHAT), body, response_headers)
