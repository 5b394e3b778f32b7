"""
TTL-cached lookup of model capabilities from a JSON provider index.

Source precedence: AI_SDK_PROVIDERS_INDEX_JSON, then AI_SDK_PROVIDERS_INDEX_PATH,
then the default cache file unless AI_SDK_CAPS_DISABLE_DISK is set.
"""
import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel

logger = logging.getLogger("aisdk.capabilities")

CACHE_TTL_SECONDS = 300.0
ENV_INDEX_JSON = "AI_SDK_PROVIDERS_INDEX_JSON"
ENV_INDEX_PATH = "AI_SDK_PROVIDERS_INDEX_PATH"
ENV_DISABLE_DISK = "AI_SDK_CAPS_DISABLE_DISK"


class ModelCapabilities(BaseModel):
    reasoning: Optional[bool] = None
    temperature: Optional[bool] = None
    supports_responses_api: Optional[bool] = None


class _CacheEntry:
    def __init__(self, value: Any, fetched_at: float):
        self.value = value
        self.fetched_at = fetched_at


_cache: Optional[_CacheEntry] = None
_cache_lock = threading.Lock()


def default_index_path() -> Path:
    base = os.environ.get("XDG_CACHE_HOME") or os.path.join(os.path.expanduser("~"), ".cache")
    return Path(base) / "aisdk" / "api" / "api.json"


def _read_json_file(path: Path) -> Optional[Any]:
    try:
        with open(path, "rb") as f:
            return json.loads(f.read())
    except (OSError, ValueError) as e:
        logger.debug(f"Capability index not readable at {path}: {e}")
        return None


def _read_index_from_env() -> Optional[Any]:
    inline = os.environ.get(ENV_INDEX_JSON, "")
    if inline.strip():
        try:
            return json.loads(inline)
        except ValueError:
            logger.warning(f"{ENV_INDEX_JSON} is not valid JSON")
    path = os.environ.get(ENV_INDEX_PATH)
    if path:
        return _read_json_file(Path(path))
    return None


def _disk_disabled() -> bool:
    flag = os.environ.get(ENV_DISABLE_DISK, "")
    return flag == "1" or flag.lower() == "true"


def _read_index_from_disk() -> Optional[Any]:
    if _disk_disabled():
        return None
    return _read_json_file(default_index_path())


def load_index() -> Optional[Any]:
    """Return the cached index, refreshing it once the TTL has elapsed."""
    global _cache
    entry = _cache
    if entry is not None and time.monotonic() - entry.fetched_at < CACHE_TTL_SECONDS:
        return entry.value
    value = _read_index_from_env()
    if value is None:
        value = _read_index_from_disk()
    if value is None:
        return None
    with _cache_lock:
        _cache = _CacheEntry(value, time.monotonic())
    return value


def clear_cache() -> None:
    global _cache
    with _cache_lock:
        _cache = None


def _as_bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def _supports_responses(model: dict, caps: dict) -> Optional[bool]:
    for key in ("responses_api", "supports_responses_api", "responses"):
        flag = _as_bool(caps.get(key))
        if flag is not None:
            return flag
    endpoints = model.get("endpoints")
    if isinstance(endpoints, dict):
        return _as_bool(endpoints.get("responses"))
    if isinstance(endpoints, list):
        if any(isinstance(e, str) and e.lower() == "responses" for e in endpoints):
            return True
    return None


def get_model_capabilities(provider: str, model: str) -> Optional[ModelCapabilities]:
    """Case-insensitive lookup; `model` may carry a "provider/" prefix."""
    index = load_index()
    if not isinstance(index, dict):
        return None
    providers = index.get("providers")
    if not isinstance(providers, list):
        return None
    wanted_provider = provider.lower()
    wanted_model = model.split("/", 1)[1] if "/" in model else model
    wanted_model = wanted_model.lower()

    for entry in providers:
        if not isinstance(entry, dict):
            continue
        names = [entry.get("id"), entry.get("provider")]
        if not any(isinstance(n, str) and n.lower() == wanted_provider for n in names):
            continue
        for m in entry.get("models") or []:
            if not isinstance(m, dict):
                continue
            model_id = m.get("id")
            if not isinstance(model_id, str) or model_id.lower() != wanted_model:
                continue
            caps = m.get("capabilities") if isinstance(m.get("capabilities"), dict) else {}
            return ModelCapabilities(
                reasoning=_as_bool(caps.get("reasoning")),
                temperature=_as_bool(caps.get("temperature")),
                supports_responses_api=_supports_responses(m, caps),
            )
    return None
