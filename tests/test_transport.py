"""
Tests for HttpxTransport against an in-process httpx.MockTransport.
"""
import json

import httpx
import pytest

from aisdk.exceptions import (
    ConnectTimeoutError,
    HttpStatusError,
    IdleReadTimeoutError,
    NetworkError,
    RateLimitError,
    SerializationError,
    map_transport_error,
)
from aisdk.transport import HttpxTransport, MultipartForm, TransportConfig
from aisdk.transport import base as transport_base


def _transport(handler):
    return HttpxTransport(httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.mark.asyncio
async def test_post_json_sends_compact_body_without_nulls():
    seen = {}

    def handler(request):
        seen["body"] = request.content
        seen["headers"] = request.headers
        return httpx.Response(200, json={"ok": True}, headers={"x-request-id": "r1"})

    transport = _transport(handler)
    data, headers = await transport.post_json(
        "https://api.test/v1/chat", {"Authorization": "Bearer k"}, {"a": None, "b": [None, 1], "c": "é"}, TransportConfig()
    )

    assert data == {"ok": True}
    assert headers["x-request-id"] == "r1"
    assert seen["body"] == '{"b":[null,1],"c":"é"}'.encode("utf-8")
    assert seen["headers"]["content-type"] == "application/json"
    assert seen["headers"]["authorization"] == "Bearer k"


@pytest.mark.asyncio
async def test_post_json_keeps_nulls_when_configured():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={})

    await _transport(handler).post_json("https://api.test", {}, {"a": None}, TransportConfig(strip_null_fields=False))
    assert seen["body"] == {"a": None}


@pytest.mark.asyncio
async def test_pre_encoded_body_is_sent_unchanged():
    payload = b'{"signed" : true}'
    seen = {}

    def handler(request):
        seen["body"] = request.content
        return httpx.Response(200, json={})

    await _transport(handler).post_json("https://api.test", {}, payload, TransportConfig())
    assert seen["body"] == payload


@pytest.mark.asyncio
async def test_http_error_carries_status_and_retry_after():
    def handler(request):
        return httpx.Response(429, json={"error": {"message": "slow"}}, headers={"retry-after": "3"})

    with pytest.raises(HttpStatusError) as exc_info:
        await _transport(handler).post_json("https://api.test", {}, {}, TransportConfig())

    err = exc_info.value
    assert err.status == 429
    assert err.retry_after_ms == 3000
    assert json.loads(err.body) == {"error": {"message": "slow"}}


@pytest.mark.asyncio
async def test_non_finite_retry_after_still_maps_to_rate_limit():
    def handler(request):
        return httpx.Response(429, content=b"", headers={"retry-after-ms": "inf", "retry-after": "1e400"})

    with pytest.raises(HttpStatusError) as exc_info:
        await _transport(handler).post_json("https://api.test", {}, {}, TransportConfig())

    assert exc_info.value.retry_after_ms is None
    mapped = map_transport_error(exc_info.value)
    assert isinstance(mapped, RateLimitError)
    assert mapped.retry_after_ms is None


@pytest.mark.asyncio
async def test_invalid_json_response():
    def handler(request):
        return httpx.Response(200, content=b"not json")

    with pytest.raises(SerializationError):
        await _transport(handler).post_json("https://api.test", {}, {}, TransportConfig())


@pytest.mark.asyncio
async def test_unserializable_body():
    transport = _transport(lambda request: httpx.Response(200, json={}))
    with pytest.raises(SerializationError):
        await transport.post_json("https://api.test", {}, {"x": object()}, TransportConfig())


@pytest.mark.asyncio
async def test_connection_errors_are_classified():
    def connect_timeout(request):
        raise httpx.ConnectTimeout("slow connect", request=request)

    def read_timeout(request):
        raise httpx.ReadTimeout("slow read", request=request)

    def refused(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ConnectTimeoutError):
        await _transport(connect_timeout).post_json("https://api.test", {}, {}, TransportConfig(connect_timeout=2.0))
    with pytest.raises(IdleReadTimeoutError):
        await _transport(read_timeout).post_json("https://api.test", {}, {}, TransportConfig())
    with pytest.raises(NetworkError):
        await _transport(refused).post_json("https://api.test", {}, {}, TransportConfig())


@pytest.mark.asyncio
async def test_stream_yields_bytes_and_headers():
    def handler(request):
        assert request.headers["accept"] == "text/event-stream"
        return httpx.Response(200, content=b"data: a\n\ndata: b\n\n", headers={"content-type": "text/event-stream"})

    transport = _transport(handler)
    resp = await transport.post_json_stream("https://api.test", {}, {"stream": True}, TransportConfig())
    byte_stream, headers = transport.into_stream(resp)
    body = b"".join([chunk async for chunk in byte_stream])

    assert headers["content-type"] == "text/event-stream"
    assert body == b"data: a\n\ndata: b\n\n"


@pytest.mark.asyncio
async def test_stream_error_before_first_byte():
    def handler(request):
        return httpx.Response(500, content=b"oops")

    with pytest.raises(HttpStatusError) as exc_info:
        await _transport(handler).post_json_stream("https://api.test", {}, {}, TransportConfig())
    assert exc_info.value.status == 500


@pytest.mark.asyncio
async def test_multipart_and_get_bytes():
    seen = {}

    def handler(request):
        if request.method == "GET":
            return httpx.Response(200, content=b"\x89PNG")
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = request.content
        return httpx.Response(200, json={"data": []})

    transport = _transport(handler)
    form = MultipartForm()
    form.push_text("model", "dall-e-2")
    form.push_bytes("image", b"IMG", filename="a.png", content_type="image/png")
    data, _ = await transport.post_multipart("https://api.test/images/edits", {}, form, TransportConfig())

    assert data == {"data": []}
    assert seen["content_type"].startswith("multipart/form-data")
    assert b'name="model"' in seen["body"]
    assert b'filename="a.png"' in seen["body"]

    content, _ = await transport.get_bytes("https://cdn.test/a.png", {}, TransportConfig())
    assert content == b"\x89PNG"


@pytest.mark.asyncio
async def test_observer_receives_redacted_events(monkeypatch):
    monkeypatch.setattr(transport_base, "_observer", None)
    events = []
    assert transport_base.set_transport_observer(events.append)
    assert not transport_base.set_transport_observer(lambda event: None)

    transport = _transport(lambda request: httpx.Response(200, json={"id": 1}))
    await transport.post_json("https://api.test", {"Authorization": "Bearer secret"}, {"q": 1}, TransportConfig())

    assert len(events) == 1
    event = events[0]
    assert event.status == 200
    assert event.request_headers["Authorization"] == "<redacted>"
    assert event.request_body == {"q": 1}
    assert event.response_body == {"id": 1}
    assert event.latency is not None
