import base64
import copy
import json
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlencode, urlsplit

from .types import Base64Data, BytesData, UrlData


def prune_null_fields(value: Any) -> Any:
    """
    Remove object fields whose value is None, recursively and in place.
    Arrays keep their null elements so indices never shift.
    """
    if isinstance(value, dict):
        for key in list(value.keys()):
            child = value[key]
            if child is None:
                del value[key]
            else:
                prune_null_fields(child)
    elif isinstance(value, list):
        for item in value:
            prune_null_fields(item)
    return value


def without_null_fields(value: Any) -> Any:
    return prune_null_fields(copy.deepcopy(value))


def parse_json_loose(text: Optional[str], default: Any = None) -> Any:
    """Parse a JSON string, returning `default` when empty or malformed."""
    if text is None or not text.strip():
        return {} if default is None else default
    try:
        return json.loads(text)
    except ValueError:
        return {} if default is None else default


def dumps_compact(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def lowercase_headers(headers: Optional[Dict[str, str]]) -> Dict[str, str]:
    return {k.lower(): v for k, v in (headers or {}).items()}


def merge_headers(*layers: Optional[Dict[str, str]]) -> Dict[str, str]:
    """Case-folded merge; later layers win and each header appears once."""
    merged: Dict[str, str] = {}
    for layer in layers:
        for key, value in (layer or {}).items():
            merged[key.lower()] = value
    return merged


def build_url(base_url: str, path: str = "", query: Optional[Iterable[Tuple[str, str]]] = None) -> str:
    url = base_url.rstrip("/")
    if path:
        url = f"{url}/{path.lstrip('/')}"
    params: List[Tuple[str, str]] = list(query or [])
    if params:
        sep = "&" if "?" in url else "?"
        url = f"{url}{sep}{urlencode(params)}"
    return url


def url_host(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    return host or None


def data_to_base64(data) -> Optional[str]:
    """Base64 payload for inline data content; None for URL content."""
    if isinstance(data, Base64Data):
        return data.base64
    if isinstance(data, BytesData):
        return base64.b64encode(data.data).decode("utf-8")
    return None


def data_to_bytes(data) -> Optional[bytes]:
    if isinstance(data, BytesData):
        return data.data
    if isinstance(data, Base64Data):
        return base64.b64decode(data.base64)
    return None


def data_to_url(data, media_type: str) -> str:
    """URL for the content, as-is for URL data or a base64 data URL otherwise."""
    if isinstance(data, UrlData):
        return data.url
    return f"data:{media_type};base64,{data_to_base64(data)}"


def normalize_media_type(media_type: str) -> str:
    if media_type == "image/*":
        return "image/jpeg"
    return media_type
