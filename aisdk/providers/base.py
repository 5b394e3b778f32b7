"""
Helpers shared by every provider adapter: header assembly, transport calls
with error classification, and stream wrapping.
"""
import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Tuple

from ..version import __version__
from ..exceptions import TransportError, error_to_json, map_transport_error, parse_openai_error_message
from ..options import merge_options_with_disallow, parse_header_options, strip_internal_headers
from ..transport.base import HttpTransport, MultipartForm, TransportConfig
from ..types import (
    Error,
    ProviderOptions,
    ReasoningEnd,
    ReasoningStart,
    StreamResponse,
    TextEnd,
    TextStart,
    ToolInputEnd,
    ToolInputStart,
    UnsupportedSettingWarning,
    Usage,
)
from ..utils import merge_headers

logger = logging.getLogger("aisdk.providers")

MessageParser = Callable[[str], Optional[str]]


def user_agent_suffix(family: str) -> str:
    return f"ai-sdk/{family}/{__version__}"


def with_user_agent(headers: Dict[str, str], family: str) -> Dict[str, str]:
    suffix = user_agent_suffix(family)
    current = headers.get("user-agent")
    headers["user-agent"] = f"{current} {suffix}" if current else suffix
    return headers


def build_headers(*layers: Optional[Dict[str, str]]) -> Dict[str, str]:
    """
    Merge header layers (later wins, case-folded) and drop internal
    `x-ai-sdk-*` headers so they never reach the wire.
    """
    return strip_internal_headers(merge_headers(*layers))


def definition_headers(headers: Dict[str, str], reserved: Tuple[str, ...] = ()) -> Dict[str, str]:
    blocked = {h.lower() for h in reserved}
    return {k: v for k, v in strip_internal_headers(merge_headers(headers)).items() if k not in blocked}


class HeaderOptions:
    """Provider defaults and request overrides parsed from the internal options header."""

    def __init__(self, scope: str, *header_layers: Optional[Dict[str, str]]):
        merged: Dict[str, str] = {}
        for layer in header_layers:
            merged.update(layer or {})
        self.scope = scope
        self.defaults, self.overrides = parse_header_options(scope, merged)

    def apply_overrides(self, body: Dict[str, Any], disallow: List[str]) -> Dict[str, Any]:
        if self.overrides:
            logger.debug(f"Applying request overrides for scope '{self.scope}': {sorted(self.overrides)}")
            merge_options_with_disallow(body, self.overrides, disallow)
        return body


def unsupported(setting: str, details: Optional[str] = None) -> UnsupportedSettingWarning:
    return UnsupportedSettingWarning(setting=setting, details=details)


async def post_json(
    http: HttpTransport,
    url: str,
    headers: Dict[str, str],
    body: Any,
    cfg: TransportConfig,
    parse_message: Optional[MessageParser] = parse_openai_error_message,
) -> Tuple[Any, Dict[str, str]]:
    try:
        return await http.post_json(url, headers, body, cfg)
    except TransportError as e:
        raise map_transport_error(e, parse_message) from e


async def post_multipart(
    http: HttpTransport,
    url: str,
    headers: Dict[str, str],
    form: MultipartForm,
    cfg: TransportConfig,
    parse_message: Optional[MessageParser] = parse_openai_error_message,
) -> Tuple[Any, Dict[str, str]]:
    try:
        return await http.post_multipart(url, headers, form, cfg)
    except TransportError as e:
        raise map_transport_error(e, parse_message) from e


async def get_bytes(http: HttpTransport, url: str, headers: Dict[str, str], cfg: TransportConfig) -> Tuple[bytes, Dict[str, str]]:
    try:
        return await http.get_bytes(url, headers, cfg)
    except TransportError as e:
        raise map_transport_error(e) from e


async def open_stream(
    http: HttpTransport,
    url: str,
    headers: Dict[str, str],
    body: Any,
    cfg: TransportConfig,
    parse_message: Optional[MessageParser] = parse_openai_error_message,
) -> Tuple[AsyncIterator[bytes], Dict[str, str]]:
    """Open an SSE response; HTTP failures before the first byte raise mapped errors."""
    try:
        resp = await http.post_json_stream(url, headers, body, cfg)
    except TransportError as e:
        raise map_transport_error(e, parse_message) from e
    return http.into_stream(resp)


_START_TO_END = {TextStart: TextEnd, ReasoningStart: ReasoningEnd, ToolInputStart: ToolInputEnd}
_END_TYPES = (TextEnd, ReasoningEnd, ToolInputEnd)


async def guard_stream(parts: AsyncIterator[Any], parse_message: Optional[MessageParser] = None) -> AsyncIterator[Any]:
    """
    Turn transport failures raised mid-stream into a terminal `Error` part so
    the last part a consumer sees is always `Finish` or `Error`.

    Text, reasoning and tool-input blocks still open when an `Error` goes out
    are closed first.
    """
    open_parts: Dict[Tuple[type, str], Any] = {}

    def close_open_parts() -> List[Any]:
        closing = [end_type(id=part_id) for (end_type, part_id) in open_parts]
        open_parts.clear()
        return closing

    try:
        async for part in parts:
            end_type = _START_TO_END.get(type(part))
            if end_type is not None:
                open_parts[(end_type, part.id)] = part
            elif isinstance(part, _END_TYPES):
                open_parts.pop((type(part), part.id), None)
            elif isinstance(part, Error):
                for closing in close_open_parts():
                    yield closing
            yield part
    except TransportError as e:
        mapped = map_transport_error(e, parse_message)
        logger.debug(f"Stream terminated by transport error: {mapped}")
        for closing in close_open_parts():
            yield closing
        yield Error(error=error_to_json(mapped))
    finally:
        aclose = getattr(parts, "aclose", None)
        if aclose is not None:
            await aclose()


def stream_response(parts: AsyncIterator[Any], body: Any, headers: Dict[str, str], parse_message: Optional[MessageParser] = None) -> StreamResponse:
    return StreamResponse(stream=guard_stream(parts, parse_message), request_body=body, response_headers=headers)


def set_metadata_value(metadata: Optional[ProviderOptions], scope: str, key: str, value: Any) -> ProviderOptions:
    metadata = metadata if metadata is not None else {}
    metadata.setdefault(scope, {})[key] = value
    return metadata


def _int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    return None


def usage_from_openai(data: Any) -> Optional[Usage]:
    """Chat-completions and Responses usage: prompt/completion or input/output tokens."""
    if not isinstance(data, dict):
        return None
    input_tokens = _int(data.get("prompt_tokens", data.get("input_tokens")))
    output_tokens = _int(data.get("completion_tokens", data.get("output_tokens")))
    total = _int(data.get("total_tokens"))
    if total is None and input_tokens is not None and output_tokens is not None:
        total = input_tokens + output_tokens
    usage = Usage(input_tokens=input_tokens, output_tokens=output_tokens, total_tokens=total)
    for details_key in ("prompt_tokens_details", "input_tokens_details"):
        details = data.get(details_key)
        if isinstance(details, dict) and _int(details.get("cached_tokens")) is not None:
            usage.cached_input_tokens = _int(details.get("cached_tokens"))
    for details_key in ("completion_tokens_details", "output_tokens_details"):
        details = data.get(details_key)
        if isinstance(details, dict) and _int(details.get("reasoning_tokens")) is not None:
            usage.reasoning_tokens = _int(details.get("reasoning_tokens"))
    return usage


def usage_from_anthropic(data: Any) -> Optional[Usage]:
    if not isinstance(data, dict):
        return None
    input_tokens = _int(data.get("input_tokens"))
    output_tokens = _int(data.get("output_tokens"))
    cache_read = _int(data.get("cache_read_input_tokens"))
    total = None
    if input_tokens is not None or output_tokens is not None:
        total = (input_tokens or 0) + (output_tokens or 0)
    return Usage(input_tokens=input_tokens, output_tokens=output_tokens, total_tokens=total, cached_input_tokens=cache_read)


def usage_from_google(data: Any) -> Optional[Usage]:
    if not isinstance(data, dict):
        return None
    input_tokens = _int(data.get("promptTokenCount"))
    output_tokens = _int(data.get("candidatesTokenCount"))
    total = _int(data.get("totalTokenCount"))
    if total is None and (input_tokens is not None or output_tokens is not None):
        total = (input_tokens or 0) + (output_tokens or 0)
    return Usage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=total,
        reasoning_tokens=_int(data.get("thoughtsTokenCount")),
        cached_input_tokens=_int(data.get("cachedContentTokenCount")),
    )
