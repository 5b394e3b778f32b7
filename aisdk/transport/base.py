import logging
import threading
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Protocol, Tuple, Union

from pydantic import BaseModel

logger = logging.getLogger("aisdk.transport")

Headers = Dict[str, str]


class TransportConfig(BaseModel):
    """Per-call transport settings. Durations are seconds."""
    request_timeout: Optional[float] = None
    connect_timeout: float = 10.0
    idle_read_timeout: float = 45.0
    strip_null_fields: bool = True


class MultipartField(BaseModel):
    name: str
    text: Optional[str] = None
    data: Optional[bytes] = None
    filename: Optional[str] = None
    content_type: Optional[str] = None


class MultipartForm:
    def __init__(self):
        self.fields: List[MultipartField] = []

    def push_text(self, name: str, value: str) -> None:
        self.fields.append(MultipartField(name=name, text=value))

    def push_bytes(self, name: str, data: bytes, filename: Optional[str] = None, content_type: Optional[str] = None) -> None:
        self.fields.append(MultipartField(name=name, data=data, filename=filename, content_type=content_type))


class HttpTransport(Protocol):
    """
    Abstract interface for network transport.

    `body` for `post_json`/`post_json_stream` is either a JSON-compatible value
    or pre-encoded bytes that must be sent unchanged (signed requests).
    """

    async def post_json(self, url: str, headers: Headers, body: Any, cfg: TransportConfig) -> Tuple[Any, Headers]:
        """POST a JSON body and return (parsed JSON, response headers)."""
        ...

    async def post_json_stream(self, url: str, headers: Headers, body: Any, cfg: TransportConfig) -> Any:
        """POST a JSON body and return a handle for `into_stream`."""
        ...

    def into_stream(self, resp: Any) -> Tuple[AsyncIterator[bytes], Headers]:
        """Split a stream handle into its byte iterator and response headers."""
        ...

    async def post_multipart(self, url: str, headers: Headers, form: MultipartForm, cfg: TransportConfig) -> Tuple[Any, Headers]:
        ...

    async def get_bytes(self, url: str, headers: Headers, cfg: TransportConfig) -> Tuple[bytes, Headers]:
        ...


class TransportEvent(BaseModel):
    started_at: float
    latency: Optional[float] = None
    method: str
    url: str
    status: Optional[int] = None
    request_headers: Dict[str, str] = {}
    response_headers: Dict[str, str] = {}
    request_body: Optional[Union[Dict[str, Any], List[Any], str]] = None
    response_body: Optional[Union[Dict[str, Any], List[Any], str]] = None
    response_size: Optional[int] = None
    error: Optional[str] = None
    is_stream: bool = False


TransportObserver = Callable[[TransportEvent], Any]

_observer: Optional[TransportObserver] = None
_observer_lock = threading.Lock()


def set_transport_observer(observer: TransportObserver) -> bool:
    """Register the process-wide observer. Only the first registration wins."""
    global _observer
    with _observer_lock:
        if _observer is not None:
            return False
        _observer = observer
        return True


def get_transport_observer() -> Optional[TransportObserver]:
    return _observer


def emit_transport_event(event: TransportEvent) -> None:
    observer = _observer
    if observer is None:
        return
    try:
        observer(event)
    except Exception as e:
        logger.warning(f"Transport observer raised: {e}")
