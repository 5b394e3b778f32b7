"""
Testing utilities for aisdk applications.
Use these tools to verify your code without making real API calls.
"""
import json
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple, Union

from .transport.base import MultipartForm, TransportConfig
from .types import CallOptions, Finish, GenerateResponse, StreamResponse, StreamStart, TextContent, TextDelta, TextEnd, TextStart, Usage


class MockRequest:
    def __init__(self, method: str, url: str, headers: Dict[str, str], body: Any = None, stream: bool = False):
        self.method = method
        self.url = url
        self.headers = {k.lower(): v for k, v in headers.items()}
        self.body = body
        self.stream = stream

    def json(self) -> Any:
        """Request body as JSON, decoding pre-encoded (signed) bodies."""
        if isinstance(self.body, (bytes, bytearray)):
            return json.loads(bytes(self.body).decode("utf-8"))
        return self.body


class _StreamHandle:
    def __init__(self, chunks: List[bytes], headers: Dict[str, str]):
        self.chunks = chunks
        self.headers = headers
        self.closed = False


class MockTransport:
    """
    In-memory HttpTransport. Queue responses with the `add_*` helpers; each call
    pops the next one in order and records the request in `requests`.
    """

    def __init__(self):
        self._queue: List[Tuple[str, Any, Dict[str, str]]] = []
        self.requests: List[MockRequest] = []
        self.streams: List[_StreamHandle] = []

    def add_json(self, data: Any, headers: Optional[Dict[str, str]] = None) -> "MockTransport":
        self._queue.append(("json", data, headers or {}))
        return self

    def add_stream(self, chunks: List[Union[bytes, str]], headers: Optional[Dict[str, str]] = None) -> "MockTransport":
        encoded = [c.encode("utf-8") if isinstance(c, str) else c for c in chunks]
        self._queue.append(("stream", encoded, headers or {"content-type": "text/event-stream"}))
        return self

    def add_sse(self, payloads: List[Any], done: bool = False, headers: Optional[Dict[str, str]] = None) -> "MockTransport":
        """Queue one SSE frame per payload (dicts are JSON-encoded)."""
        frames = [f"data: {p if isinstance(p, str) else json.dumps(p)}\n\n" for p in payloads]
        if done:
            frames.append("data: [DONE]\n\n")
        return self.add_stream(frames, headers)

    def add_bytes(self, data: bytes, headers: Optional[Dict[str, str]] = None) -> "MockTransport":
        self._queue.append(("bytes", data, headers or {}))
        return self

    def add_error(self, error: Exception) -> "MockTransport":
        self._queue.append(("error", error, {}))
        return self

    def _next(self, expected: str) -> Tuple[Any, Dict[str, str]]:
        if not self._queue:
            raise AssertionError("MockTransport: no queued response left")
        kind, payload, headers = self._queue.pop(0)
        if kind == "error":
            raise payload
        if kind != expected:
            raise AssertionError(f"MockTransport: expected a queued {expected} response, got {kind}")
        return payload, dict(headers)

    async def post_json(self, url: str, headers: Dict[str, str], body: Any, cfg: TransportConfig) -> Tuple[Any, Dict[str, str]]:
        self.requests.append(MockRequest("POST", url, headers, body))
        return self._next("json")

    async def post_json_stream(self, url: str, headers: Dict[str, str], body: Any, cfg: TransportConfig) -> _StreamHandle:
        self.requests.append(MockRequest("POST", url, headers, body, stream=True))
        chunks, response_headers = self._next("stream")
        handle = _StreamHandle(chunks, response_headers)
        self.streams.append(handle)
        return handle

    def into_stream(self, resp: _StreamHandle) -> Tuple[AsyncIterator[bytes], Dict[str, str]]:
        async def gen():
            try:
                for chunk in resp.chunks:
                    yield chunk
            finally:
                resp.closed = True

        return gen(), resp.headers

    async def post_multipart(self, url: str, headers: Dict[str, str], form: MultipartForm, cfg: TransportConfig) -> Tuple[Any, Dict[str, str]]:
        self.requests.append(MockRequest("POST", url, headers, form))
        return self._next("json")

    async def get_bytes(self, url: str, headers: Dict[str, str], cfg: TransportConfig) -> Tuple[bytes, Dict[str, str]]:
        self.requests.append(MockRequest("GET", url, headers))
        return self._next("bytes")


class MockLanguageModel:
    """
    A language model that returns pre-configured responses.
    Useful for unit testing your application logic.
    """

    def __init__(self, model_id: str = "mock-model", provider: str = "mock"):
        self._model_id = model_id
        self._provider = provider
        self._responses: List[Union[GenerateResponse, Exception]] = []
        self._streams: List[Union[List[Any], Exception]] = []
        self.calls: List[CallOptions] = []

    def specification_version(self) -> str:
        return "v2"

    def provider_name(self) -> str:
        return self._provider

    def model_id(self) -> str:
        return self._model_id

    def supported_urls(self) -> Dict[str, List[str]]:
        return {}

    def add_response(self, text: str, finish_reason: str = "stop") -> "MockLanguageModel":
        """Queue a text response for `do_generate`."""
        self._responses.append(GenerateResponse(
            content=[TextContent(text=text)],
            finish_reason=finish_reason,
            usage=Usage(total_tokens=10),
        ))
        return self

    def add_generate_response(self, response: GenerateResponse) -> "MockLanguageModel":
        self._responses.append(response)
        return self

    def add_stream(self, parts: List[Any]) -> "MockLanguageModel":
        self._streams.append(list(parts))
        return self

    def add_text_stream(self, *deltas: str) -> "MockLanguageModel":
        parts: List[Any] = [StreamStart(), TextStart(id="0")]
        parts.extend(TextDelta(id="0", delta=d) for d in deltas)
        parts.extend([TextEnd(id="0"), Finish(finish_reason="stop")])
        return self.add_stream(parts)

    def add_error(self, error: Exception) -> "MockLanguageModel":
        """Queue an error for the next call of either kind."""
        self._responses.append(error)
        self._streams.append(error)
        return self

    async def do_generate(self, options: CallOptions) -> GenerateResponse:
        self.calls.append(options)
        if not self._responses:
            return GenerateResponse(content=[TextContent(text="Mock Response")], finish_reason="stop")
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            if self._streams and self._streams[0] is item:
                self._streams.pop(0)
            raise item
        return item

    async def do_stream(self, options: CallOptions) -> StreamResponse:
        self.calls.append(options)
        parts = self._streams.pop(0) if self._streams else [StreamStart(), Finish()]
        if isinstance(parts, Exception):
            if self._responses and self._responses[0] is parts:
                self._responses.pop(0)
            raise parts

        async def gen():
            for part in parts:
                yield part

        return StreamResponse(stream=gen())
