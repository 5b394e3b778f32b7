import asyncio
import json
import logging
import time
from typing import Any, AsyncIterator, Dict, Optional, Tuple

import httpx

from ..exceptions import (
    BodyReadError,
    ConnectTimeoutError,
    HttpStatusError,
    IdleReadTimeoutError,
    NetworkError,
    OtherTransportError,
    RequestCancelledError,
    RequestTimeoutError,
    SerializationError,
    StreamClosedError,
    TransportError,
    retry_after_from_headers,
)
from ..utils import without_null_fields
from .base import Headers, MultipartForm, TransportConfig, TransportEvent, emit_transport_event

logger = logging.getLogger("aisdk.transport")

SENSITIVE_HEADERS = {"authorization", "x-api-key", "api-key", "x-goog-api-key", "x-amz-security-token"}
SNAPSHOT_LIMIT = 8192


def _redact(headers: Dict[str, str]) -> Dict[str, str]:
    return {k: ("<redacted>" if k.lower() in SENSITIVE_HEADERS else v) for k, v in headers.items()}


def _snapshot(body: Any) -> Any:
    if isinstance(body, (bytes, bytearray)):
        text = bytes(body[:SNAPSHOT_LIMIT]).decode("utf-8", errors="replace")
        return text
    if isinstance(body, str):
        return body[:SNAPSHOT_LIMIT]
    return body


class HttpxStream:
    """Open streaming response returned by `post_json_stream`."""

    def __init__(self, response: httpx.Response, cfg: TransportConfig, event: TransportEvent):
        self.response = response
        self.cfg = cfg
        self.event = event


class HttpxTransport:
    """
    Production HttpTransport using httpx.AsyncClient.
    Connect and per-chunk idle-read timeouts map to httpx's connect/read timeouts.
    """
    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.aclient = client or httpx.AsyncClient(follow_redirects=True)

    async def aclose(self) -> None:
        await self.aclient.aclose()

    def _timeout(self, cfg: TransportConfig) -> httpx.Timeout:
        return httpx.Timeout(cfg.request_timeout, connect=cfg.connect_timeout, read=cfg.idle_read_timeout)

    def _encode_body(self, body: Any, cfg: TransportConfig) -> bytes:
        if isinstance(body, (bytes, bytearray)):
            return bytes(body)
        if cfg.strip_null_fields:
            body = without_null_fields(body)
        try:
            return json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SerializationError(str(e)) from e

    def _handle_error(self, e: Exception, cfg: TransportConfig, context: str = "") -> TransportError:
        """Map httpx errors to transport errors."""
        if isinstance(e, TransportError):
            return e
        if isinstance(e, httpx.ConnectTimeout):
            logger.error(f"{context}: connect timeout after {cfg.connect_timeout}s")
            return ConnectTimeoutError(cfg.connect_timeout)
        if isinstance(e, httpx.ReadTimeout):
            logger.error(f"{context}: idle read timeout after {cfg.idle_read_timeout}s")
            return IdleReadTimeoutError(cfg.idle_read_timeout)
        if isinstance(e, httpx.StreamClosed):
            return StreamClosedError()
        if isinstance(e, (httpx.ReadError, httpx.RemoteProtocolError, httpx.DecodingError)):
            logger.error(f"{context}: body read error: {e}")
            return BodyReadError(str(e))
        if isinstance(e, httpx.RequestError):
            logger.error(f"{context}: network error: {e}")
            return NetworkError(str(e))
        logger.error(f"{context}: unexpected error: {e}")
        return OtherTransportError(str(e))

    async def _raise_for_status(self, response: httpx.Response, event: TransportEvent) -> None:
        if response.status_code < 400:
            return
        await response.aread()
        body = response.text
        headers = dict(response.headers.items())
        err = HttpStatusError(
            response.status_code,
            body=body,
            retry_after_ms=retry_after_from_headers(headers),
            headers=headers,
        )
        logger.error(f"HTTP Error {err}")
        event.error = str(err)
        event.response_size = len(response.content)
        raise err

    def _event(self, method: str, url: str, headers: Headers, body: Any, is_stream: bool) -> TransportEvent:
        return TransportEvent(
            started_at=time.time(),
            method=method,
            url=url,
            request_headers=_redact(headers),
            request_body=_snapshot(body),
            is_stream=is_stream,
        )

    def _finish_event(self, event: TransportEvent, response: Optional[httpx.Response]) -> None:
        event.latency = time.time() - event.started_at
        if response is not None:
            event.status = response.status_code
            event.response_headers = dict(response.headers.items())
        emit_transport_event(event)

    async def _send(self, request: httpx.Request, cfg: TransportConfig, stream: bool) -> httpx.Response:
        coro = self.aclient.send(request, stream=stream)
        if cfg.request_timeout is not None and not stream:
            try:
                return await asyncio.wait_for(coro, cfg.request_timeout)
            except asyncio.TimeoutError as e:
                raise RequestTimeoutError(f"request timed out after {cfg.request_timeout}s") from e
        return await coro

    async def post_json(self, url: str, headers: Headers, body: Any, cfg: TransportConfig) -> Tuple[Any, Headers]:
        content = self._encode_body(body, cfg)
        logger.debug(f"POST {url} payload={content[:SNAPSHOT_LIMIT]!r}")
        event = self._event("POST", url, headers, body, is_stream=False)
        request = self.aclient.build_request(
            "POST", url, content=content, headers=self._with_json_headers(headers), timeout=self._timeout(cfg)
        )
        response = None
        try:
            response = await self._send(request, cfg, stream=False)
            await self._raise_for_status(response, event)
            event.response_size = len(response.content)
            try:
                data = response.json()
            except ValueError as e:
                raise SerializationError(f"invalid JSON response: {e}") from e
            event.response_body = data
            return data, dict(response.headers.items())
        except asyncio.CancelledError:
            event.error = str(RequestCancelledError())
            raise
        except (TransportError, SerializationError, RequestTimeoutError) as e:
            event.error = event.error or str(e)
            raise
        except Exception as e:
            err = self._handle_error(e, cfg, "POST failed")
            event.error = str(err)
            raise err from e
        finally:
            self._finish_event(event, response)

    async def post_json_stream(self, url: str, headers: Headers, body: Any, cfg: TransportConfig) -> HttpxStream:
        content = self._encode_body(body, cfg)
        logger.debug(f"STREAM {url} payload={content[:SNAPSHOT_LIMIT]!r}")
        event = self._event("POST", url, headers, body, is_stream=True)
        request_headers = self._with_json_headers(headers)
        request_headers.setdefault("accept", "text/event-stream")
        request = self.aclient.build_request(
            "POST", url, content=content, headers=request_headers, timeout=self._timeout(cfg)
        )
        response = None
        try:
            response = await self._send(request, cfg, stream=True)
            await self._raise_for_status(response, event)
        except BaseException as e:
            if response is not None:
                await response.aclose()
            if isinstance(e, asyncio.CancelledError):
                event.error = str(RequestCancelledError())
                self._finish_event(event, response)
                raise
            err = e if isinstance(e, (TransportError, RequestTimeoutError)) else self._handle_error(e, cfg, "Stream failed")
            event.error = event.error or str(err)
            self._finish_event(event, response)
            if err is e:
                raise
            raise err from e
        return HttpxStream(response, cfg, event)

    def into_stream(self, resp: HttpxStream) -> Tuple[AsyncIterator[bytes], Headers]:
        return self._iter_bytes(resp), dict(resp.response.headers.items())

    async def _iter_bytes(self, resp: HttpxStream) -> AsyncIterator[bytes]:
        size = 0
        try:
            async for chunk in resp.response.aiter_bytes():
                if chunk:
                    size += len(chunk)
                    yield chunk
        except asyncio.CancelledError:
            resp.event.error = str(RequestCancelledError())
            raise
        except httpx.HTTPError as e:
            err = self._handle_error(e, resp.cfg, "Stream read failed")
            resp.event.error = str(err)
            raise err from e
        finally:
            await resp.response.aclose()
            resp.event.response_size = size
            self._finish_event(resp.event, resp.response)

    async def post_multipart(self, url: str, headers: Headers, form: MultipartForm, cfg: TransportConfig) -> Tuple[Any, Headers]:
        data: Dict[str, Any] = {}
        files = []
        for field in form.fields:
            if field.data is not None:
                files.append((field.name, (field.filename or "file", field.data, field.content_type or "application/octet-stream")))
            else:
                data.setdefault(field.name, []).append(field.text or "")
        logger.debug(f"MULTIPART {url} fields={[f.name for f in form.fields]}")
        event = self._event("POST", url, headers, {"fields": [f.name for f in form.fields]}, is_stream=False)
        request = self.aclient.build_request(
            "POST", url, data=data, files=files or None, headers=headers, timeout=self._timeout(cfg)
        )
        response = None
        try:
            response = await self._send(request, cfg, stream=False)
            await self._raise_for_status(response, event)
            event.response_size = len(response.content)
            try:
                payload = response.json()
            except ValueError as e:
                raise SerializationError(f"invalid JSON response: {e}") from e
            return payload, dict(response.headers.items())
        except (TransportError, SerializationError, RequestTimeoutError, asyncio.CancelledError):
            raise
        except Exception as e:
            err = self._handle_error(e, cfg, "Multipart POST failed")
            event.error = str(err)
            raise err from e
        finally:
            self._finish_event(event, response)

    async def get_bytes(self, url: str, headers: Headers, cfg: TransportConfig) -> Tuple[bytes, Headers]:
        logger.debug(f"GET {url}")
        event = self._event("GET", url, headers, None, is_stream=False)
        request = self.aclient.build_request("GET", url, headers=headers, timeout=self._timeout(cfg))
        response = None
        try:
            response = await self._send(request, cfg, stream=False)
            await self._raise_for_status(response, event)
            event.response_size = len(response.content)
            return response.content, dict(response.headers.items())
        except (TransportError, RequestTimeoutError, asyncio.CancelledError):
            raise
        except Exception as e:
            err = self._handle_error(e, cfg, "GET failed")
            event.error = str(err)
            raise err from e
        finally:
            self._finish_event(event, response)

    def _with_json_headers(self, headers: Headers) -> Dict[str, str]:
        out = {k.lower(): v for k, v in headers.items()}
        out.setdefault("content-type", "application/json")
        return out
