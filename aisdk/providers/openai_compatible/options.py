from typing import Any, Dict, List, Optional, Tuple

from ...transport.base import HttpTransport, TransportConfig
from ...types import ProviderOptions

DEFAULT_MAX_EMBEDDINGS_PER_CALL = 2048


class OpenAICompatibleConfig:
    """Settings shared by the chat, completion, embedding and image models."""

    def __init__(
        self,
        provider_scope_name: str,
        base_url: str,
        headers: Dict[str, str],
        http: HttpTransport,
        transport_cfg: Optional[TransportConfig] = None,
        query_params: Optional[List[Tuple[str, str]]] = None,
        include_usage: bool = True,
        supports_structured_outputs: bool = False,
        supported_urls: Optional[Dict[str, List[str]]] = None,
        default_options: Optional[ProviderOptions] = None,
        max_embeddings_per_call: Optional[int] = DEFAULT_MAX_EMBEDDINGS_PER_CALL,
        supports_parallel_calls: bool = True,
    ):
        self.provider_scope_name = provider_scope_name
        self.base_url = base_url.rstrip("/")
        self.headers = headers
        self.http = http
        self.transport_cfg = transport_cfg or TransportConfig()
        self.query_params = list(query_params or [])
        self.include_usage = include_usage
        self.supports_structured_outputs = supports_structured_outputs
        self.supported_urls = supported_urls or {}
        self.default_options = default_options
        self.max_embeddings_per_call = max_embeddings_per_call
        self.supports_parallel_calls = supports_parallel_calls


def split_provider_options(
    provider_options: Optional[ProviderOptions],
    scopes: List[str],
    known: Dict[str, type],
) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]]]:
    """
    Read the typed `known` keys from every scope (later scopes win) and return
    the remaining keys of the last scope as body extras.
    """
    provider_options = provider_options or {}
    merged: Dict[str, Any] = {}
    found = False
    for name in scopes:
        scoped = provider_options.get(name)
        if not isinstance(scoped, dict):
            continue
        found = True
        for key, kind in known.items():
            value = scoped.get(key)
            if isinstance(value, kind) and not (kind is int and isinstance(value, bool)):
                merged[key] = value
    if not found:
        return {}, None

    last = provider_options.get(scopes[-1])
    if not isinstance(last, dict):
        return merged, None
    extras = {k: v for k, v in last.items() if k not in known}
    return merged, extras
