import json
import logging
import math
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("aisdk.errors")


class SdkError(Exception):
    """Base exception for all aisdk errors."""

    def format_details(self) -> str:
        return str(self)


class AuthenticationError(SdkError):
    """Raised when API credentials are invalid (401/403)."""

    def __init__(self, message: str = "unauthorized"):
        super().__init__(message)


class RateLimitError(SdkError):
    """Raised when the API rate limit is exceeded (425/429)."""

    def __init__(self, retry_after_ms: Optional[int] = None, source: Optional["TransportError"] = None):
        super().__init__("rate limited")
        self.retry_after_ms = retry_after_ms
        self.source = source

    def format_details(self) -> str:
        if isinstance(self.source, HttpStatusError):
            return f"http status {self.source.status}: {self.source.sanitized}"
        msg = "rate limited"
        if self.retry_after_ms is not None:
            msg += f" (retry after {self.retry_after_ms}ms)"
        return msg


class RequestTimeoutError(SdkError):
    """Raised on 408 responses and connect/idle-read timeouts."""

    def __init__(self, message: str = "timeout"):
        super().__init__(message)


class RequestCancelledError(SdkError):
    """Raised when the caller abandons an in-flight request."""

    def __init__(self, message: str = "cancelled"):
        super().__init__(message)


class ProviderError(SdkError):
    """Raised when the provider reports an application failure."""

    def __init__(self, status: int, message: str, source: Optional["TransportError"] = None):
        super().__init__(f"upstream error (status {status}): {message}")
        self.status = status
        self.message = message
        self.source = source

    def format_details(self) -> str:
        msg = f"http status {self.status}: {self.message}"
        if isinstance(self.source, HttpStatusError):
            sanitized = self.source.sanitized
            if sanitized and sanitized not in self.message:
                msg += f" [body: {sanitized}]"
        return msg


class SerializationError(SdkError):
    """Raised when a payload cannot be encoded or decoded."""

    def __init__(self, message: str):
        super().__init__(f"serde error: {message}")


class InvalidArgumentError(SdkError):
    """Raised when the caller passes an unusable argument."""

    def __init__(self, message: str):
        super().__init__(f"invalid argument: {message}")
        self.message = message


class TransportError(SdkError):
    """Base class for failures raised by an HttpTransport."""

    status: Optional[int] = None
    retry_after_ms: Optional[int] = None

    def sanitized_message(self) -> str:
        return str(self)


class HttpStatusError(TransportError):
    """Non-2xx response. `body` is sensitive and must only be displayed via `sanitized`."""

    def __init__(
        self,
        status: int,
        body: str = "",
        retry_after_ms: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.status = status
        self.body = body
        self.retry_after_ms = retry_after_ms
        self.headers = headers or {}
        if body.strip():
            self.sanitized = display_body_for_error(body)
            super().__init__(f"http status {status}: {self.sanitized}")
        else:
            self.sanitized = f"http status {status}"
            super().__init__(self.sanitized)

    def sanitized_message(self) -> str:
        return f"http status {self.status}"

    def format_details(self) -> str:
        lines = [f"http status {self.status}"]
        if self.retry_after_ms is not None:
            lines.append(f"retry after: {self.retry_after_ms}ms")
        lines.append(f"body: {self.sanitized}")
        return "\n".join(lines)


class NetworkError(TransportError):
    """Raised when the network connection fails."""

    def __init__(self, message: str):
        super().__init__(f"network: {message}")


class ConnectTimeoutError(TransportError):
    def __init__(self, timeout: Optional[float]):
        self.timeout = timeout
        super().__init__(f"connect timeout after {timeout}s")


class IdleReadTimeoutError(TransportError):
    def __init__(self, timeout: Optional[float]):
        self.timeout = timeout
        super().__init__(f"idle read timeout after {timeout}s")


class BodyReadError(TransportError):
    def __init__(self, message: str):
        super().__init__(f"body read error: {message}")


class StreamClosedError(TransportError):
    def __init__(self):
        super().__init__("stream closed")


class OtherTransportError(TransportError):
    def __init__(self, message: str):
        super().__init__(f"other: {message}")


def display_body_for_error(body: str) -> str:
    """Return a log-safe rendition of an HTTP body: minified JSON or a byte count."""
    trimmed = body.strip()
    if trimmed.startswith("{") or trimmed.startswith("["):
        try:
            return json.dumps(json.loads(trimmed), separators=(",", ":"), ensure_ascii=False)
        except ValueError:
            pass
    return f"{len(body.encode('utf-8'))} bytes"


def parse_retry_after_ms(value: Optional[str], now: Optional[datetime] = None) -> Optional[int]:
    """Parse a Retry-After header given either as delta-seconds or an HTTP-date."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        ms = float(value) * 1000
        return int(ms) if math.isfinite(ms) and ms >= 0 else None
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0, int((when - now).total_seconds() * 1000))


def retry_after_from_headers(headers: Dict[str, str]) -> Optional[int]:
    for name in ("retry-after-ms", "retry-after"):
        for key, value in headers.items():
            if key.lower() == name:
                if name == "retry-after-ms":
                    try:
                        ms = float(value)
                    except ValueError:
                        continue
                    if math.isfinite(ms) and ms >= 0:
                        return int(ms)
                    continue
                return parse_retry_after_ms(value)
    return None


def parse_openai_error_message(body: str) -> Optional[str]:
    """Extract `error.message` from `{"error": {"message": ...}}` bodies."""
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and isinstance(err.get("message"), str):
            return err["message"]
        if isinstance(err, str):
            return err
        if isinstance(data.get("message"), str):
            return data["message"]
    return None


def map_transport_error(
    err: TransportError,
    parse_message: Optional[Callable[[str], Optional[str]]] = None,
) -> SdkError:
    """Classify a transport failure into the caller-facing taxonomy."""
    if isinstance(err, HttpStatusError):
        status = err.status
        if status in (401, 403):
            return AuthenticationError()
        if status == 408:
            return RequestTimeoutError()
        if status in (425, 429):
            return RateLimitError(retry_after_ms=err.retry_after_ms, source=err)
        message = None
        if parse_message is not None and err.body:
            try:
                message = parse_message(err.body)
            except Exception as e:
                logger.debug(f"Error body parser failed: {e}")
        return ProviderError(status, message or f"http status {status}", source=err)
    if isinstance(err, (ConnectTimeoutError, IdleReadTimeoutError)):
        return RequestTimeoutError(str(err))
    return err


def error_to_json(err: BaseException) -> Dict[str, Any]:
    """JSON payload used for `Error` stream parts."""
    if isinstance(err, SdkError):
        return {"message": err.format_details()}
    return {"message": str(err)}
