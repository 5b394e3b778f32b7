import logging
from typing import Any, Dict, List, Tuple

from ...exceptions import ProviderError
from ...options import build_call_options
from ...streaming.collect import collect_stream_to_response
from ...types import (
    CallOptions,
    CallWarning,
    FilePart,
    GenerateResponse,
    ReasoningPart,
    StreamResponse,
    SystemMessage,
    TextPart,
    ToolMessage,
    UserMessage,
)
from ...utils import build_url
from ..base import build_headers, open_stream, stream_response, unsupported
from .options import OpenAICompatibleConfig, split_provider_options
from .stream import COMPLETION, StreamSettings, build_stream

logger = logging.getLogger("aisdk.providers.openai_compatible")

COMPLETION_OPTION_KEYS = {"echo": bool, "logitBias": dict, "suffix": str, "user": str}


def convert_to_completion_prompt(prompt: List[Any], user_label: str = "user", assistant_label: str = "assistant") -> Tuple[str, List[str]]:
    """
    Flatten a chat prompt into a single completion prompt.
    Returns the text and the stop sequence that ends the assistant turn.
    """
    text = ""
    messages = list(prompt)
    if messages and isinstance(messages[0], SystemMessage):
        text += f"{messages[0].content}\n\n"
        messages = messages[1:]

    for message in messages:
        if isinstance(message, SystemMessage):
            raise ProviderError(400, f"Unexpected system message in prompt: {message.content}")
        if isinstance(message, ToolMessage):
            raise ProviderError(400, "Unsupported functionality: tool messages in completion prompt")
        buf = ""
        for part in message.content:
            if isinstance(part, (TextPart, ReasoningPart)):
                buf += part.text
            elif isinstance(part, FilePart):
                where = "completion prompt" if isinstance(message, UserMessage) else "assistant message"
                raise ProviderError(400, f"Unsupported functionality: file parts in {where}")
            else:
                raise ProviderError(400, "Unsupported functionality: tool-call messages in completion prompt")
        label = user_label if isinstance(message, UserMessage) else assistant_label
        text += f"{label}:\n{buf}\n\n"

    text += f"{assistant_label}:\n"
    return text, [f"\n{user_label}:"]


class OpenAICompatibleCompletionLanguageModel:
    """Legacy `/completions` model. Tools and JSON output are not available."""

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
        return build_url(self.config.base_url, "/completions", self.config.query_params)

    def build_request_body(self, options: CallOptions) -> Tuple[Dict[str, Any], List[CallWarning]]:
        warnings: List[CallWarning] = []
        if options.top_k is not None:
            warnings.append(unsupported("topK"))
        if options.tools:
            warnings.append(unsupported("tools"))
        if options.tool_choice is not None:
            warnings.append(unsupported("toolChoice"))
        if options.response_format is not None and options.response_format.type == "json":
            warnings.append(unsupported("responseFormat", "JSON response format is not supported."))

        scopes = ["openai-compatible", self.config.provider_scope_name]
        known, extras = split_provider_options(options.provider_options, scopes, COMPLETION_OPTION_KEYS)
        prompt, stops = convert_to_completion_prompt(options.prompt)
        stops.extend(options.stop_sequences or [])

        body: Dict[str, Any] = {
            "model": self._model_id,
            "echo": known.get("echo"),
            "logit_bias": known.get("logitBias"),
            "suffix": known.get("suffix"),
            "user": known.get("user"),
            "max_tokens": options.max_output_tokens,
            "temperature": options.temperature,
            "top_p": options.top_p,
            "frequency_penalty": options.frequency_penalty,
            "presence_penalty": options.presence_penalty,
            "seed": options.seed,
        }
        body = {k: v for k, v in body.items() if v is not None}
        body.update(extras or {})
        body["prompt"] = prompt
        if stops:
            body["stop"] = stops
        return body, warnings

    async def do_generate(self, options: CallOptions) -> GenerateResponse:
        stream = await self.do_stream(options)
        response = await collect_stream_to_response(stream)
        response.request_body = stream.request_body
        return response

    async def do_stream(self, options: CallOptions) -> StreamResponse:
        options = build_call_options(options, self.config.provider_scope_name, self.config.default_options)
        body, warnings = self.build_request_body(options)
        body["stream"] = True
        if self.config.include_usage:
            body["stream_options"] = {"include_usage": True}

        headers = build_headers({"content-type": "application/json"}, self.config.headers, options.headers)
        byte_stream, response_headers = await open_stream(self.config.http, self.build_request_url(), headers, body, self.config.transport_cfg)
        settings = StreamSettings(
            warnings=warnings,
            include_raw=options.include_raw_chunks,
            include_usage=self.config.include_usage,
            provider_scope_name=self.config.provider_scope_name,
        )
        return stream_response(build_stream(byte_stream, settings, COMPLETION), body, response_headers)
