"""
Provider registry.

Each provider module exposes a `REGISTRATIONS` list; `registrations()` gathers
them once into an immutable tuple the first time it is called.
"""
import json
import logging
import re
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel

from .catalog import ProviderDefinition, SdkType
from .exceptions import InvalidArgumentError
from .options import is_internal_sdk_header, provider_defaults_from_json
from .transport.base import TransportConfig
from .types import ProviderOptions
from .utils import url_host

logger = logging.getLogger("aisdk.registry")


class Credentials:
    """Caller credentials: an API key, a bearer token, or nothing."""

    def __init__(self, api_key: Optional[str] = None, bearer: Optional[str] = None):
        self.api_key = api_key
        self.bearer = bearer

    @classmethod
    def none(cls) -> "Credentials":
        return cls()

    def as_api_key(self) -> Optional[str]:
        return self.api_key

    def as_bearer(self) -> Optional[str]:
        if self.bearer is None:
            return None
        if self.bearer.lower().startswith("bearer "):
            return self.bearer
        return f"Bearer {self.bearer}"

    def __repr__(self) -> str:
        kind = "ApiKey" if self.api_key else "Bearer" if self.bearer else "None"
        return f"Credentials({kind})"


class ReasoningScopeContext:
    def __init__(self, provider_id: str, sdk_type: SdkType, model_id: Optional[str] = None, base_url: Optional[str] = None):
        self.provider_id = provider_id
        self.sdk_type = sdk_type
        self.model_id = model_id
        self.base_url = base_url


class ProviderRegistration:
    def __init__(
        self,
        id: str,
        sdk_type: SdkType,
        build: Callable[..., Any],
        matches: Optional[Callable[[ProviderDefinition], bool]] = None,
        reasoning_scope: Optional[Callable[[ReasoningScopeContext], Optional[List[str]]]] = None,
        build_embedding: Optional[Callable[..., Any]] = None,
        build_image: Optional[Callable[..., Any]] = None,
    ):
        self.id = id
        self.sdk_type = sdk_type
        self.build = build
        self.matches = matches
        self.reasoning_scope = reasoning_scope
        self.build_embedding = build_embedding
        self.build_image = build_image

    def accepts(self, definition: ProviderDefinition) -> bool:
        if self.matches is not None:
            return self.matches(definition)
        return definition.sdk_type == self.sdk_type


@lru_cache(maxsize=None)
def registrations() -> Tuple[ProviderRegistration, ...]:
    from .providers import all_registrations

    regs = tuple(all_registrations())
    logger.debug(f"Loaded {len(regs)} provider registrations")
    return regs


def sdk_type_from_id(id: str) -> Optional[SdkType]:
    needle = id.strip().lower()
    if not needle:
        return None
    for reg in registrations():
        if reg.id.lower() == needle:
            return reg.sdk_type
    return None


def find_registration(definition: ProviderDefinition) -> Optional[ProviderRegistration]:
    for reg in registrations():
        if reg.id.lower() == definition.name.lower() and reg.accepts(definition):
            return reg
    for reg in registrations():
        if reg.accepts(definition):
            return reg
    return None


def build_language_model(definition: ProviderDefinition, model: str, credentials: Optional[Credentials] = None, transport=None):
    reg = find_registration(definition)
    if reg is None:
        raise InvalidArgumentError(f"no provider registered for sdk type '{definition.sdk_type.value}'")
    logger.debug(f"Building {reg.id} model '{model}' for provider '{definition.name}'")
    return reg.build(definition, model, credentials or Credentials.none(), transport)


def build_embedding_model(definition: ProviderDefinition, model: str, credentials: Optional[Credentials] = None, transport=None):
    reg = find_registration(definition)
    if reg is None or reg.build_embedding is None:
        raise InvalidArgumentError(f"provider '{definition.name}' does not support embedding models")
    return reg.build_embedding(definition, model, credentials or Credentials.none(), transport)


def build_image_model(definition: ProviderDefinition, model: str, credentials: Optional[Credentials] = None, transport=None):
    reg = find_registration(definition)
    if reg is None or reg.build_image is None:
        raise InvalidArgumentError(f"provider '{definition.name}' does not support image models")
    return reg.build_image(definition, model, credentials or Credentials.none(), transport)


# --- Bootstrap helpers ------------------------------------------------------

class ProviderBootstrapHeaders(BaseModel):
    headers: Dict[str, str] = {}
    default_options: Optional[ProviderOptions] = None
    request_defaults: Optional[Any] = None


def filter_provider_bootstrap_headers(headers: Dict[str, str], provider_scope: str, reserved_headers: List[str]) -> ProviderBootstrapHeaders:
    """
    Lowercase headers, drop reserved ones, and lift the first parseable internal
    header into provider defaults plus raw request defaults.
    """
    blocked = {h.lower() for h in reserved_headers}
    filtered: Dict[str, str] = {}
    default_options = None
    request_defaults = None
    for key, value in headers.items():
        if is_internal_sdk_header(key):
            if request_defaults is None:
                try:
                    parsed = json.loads(value)
                except ValueError:
                    continue
                default_options = provider_defaults_from_json(provider_scope, parsed)
                request_defaults = parsed
            continue
        lower = key.lower()
        if lower in blocked:
            continue
        filtered[lower] = value
    return ProviderBootstrapHeaders(headers=filtered, default_options=default_options, request_defaults=request_defaults)


def collect_query_params(definition: ProviderDefinition) -> List[Tuple[str, str]]:
    return list(definition.query_params.items())


def build_provider_transport_config(definition: ProviderDefinition, default_idle_timeout: Optional[float] = None) -> TransportConfig:
    cfg = TransportConfig()
    if default_idle_timeout is not None:
        cfg.idle_read_timeout = default_idle_timeout
    if definition.stream_idle_timeout_ms and definition.stream_idle_timeout_ms > 0:
        cfg.idle_read_timeout = definition.stream_idle_timeout_ms / 1000.0
    return cfg


# --- Reasoning scopes -------------------------------------------------------

def normalize_provider_id(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")


def reasoning_scope_aliases(
    provider_id: str,
    sdk_type: Union[SdkType, str],
    model_id: Optional[str] = None,
    base_url: Optional[str] = None,
) -> Optional[List[str]]:
    """
    Every provider-options scope reasoning metadata should be stored under.
    Returns None when no registered provider claims a reasoning scope.
    """
    sdk_type = SdkType(sdk_type)
    ctx = ReasoningScopeContext(provider_id, sdk_type, model_id, base_url)
    aliases: List[str] = []
    seen = set()
    handled = False

    def push(value: Optional[str]) -> None:
        trimmed = (value or "").strip()
        if trimmed and trimmed.lower() not in seen:
            seen.add(trimmed.lower())
            aliases.append(trimmed)

    for reg in registrations():
        if not (reg.id.lower() == provider_id.lower() or reg.sdk_type == sdk_type):
            continue
        if reg.reasoning_scope is None:
            continue
        extra = reg.reasoning_scope(ctx)
        if extra is not None:
            for alias in extra:
                push(alias)
            handled = True

    if not handled:
        return None
    push(provider_id)
    push(normalize_provider_id(provider_id))
    host = url_host(base_url.strip()) if base_url and base_url.strip() else None
    if host:
        push(host.lower())
    return aliases


def _options_for_aliases(aliases: List[str], scope: Dict[str, Any]) -> Optional[ProviderOptions]:
    if not aliases or not scope:
        return None
    return {alias: dict(scope) for alias in aliases}


def reasoning_stream_options(
    provider_id: str,
    sdk_type: Union[SdkType, str],
    model_id: Optional[str] = None,
    base_url: Optional[str] = None,
    signature: Optional[str] = None,
    redacted_data: Optional[str] = None,
) -> Optional[ProviderOptions]:
    aliases = reasoning_scope_aliases(provider_id, sdk_type, model_id, base_url)
    if aliases is None:
        return None
    scope: Dict[str, Any] = {}
    if signature:
        scope["signature"] = signature
    if redacted_data:
        scope["redactedData"] = redacted_data
    return _options_for_aliases(aliases, scope)


def persisted_reasoning_options(
    provider_id: str,
    sdk_type: Union[SdkType, str],
    model_id: Optional[str],
    base_url: Optional[str],
    text: str,
    signature: Optional[str] = None,
) -> Optional[ProviderOptions]:
    aliases = reasoning_scope_aliases(provider_id, sdk_type, model_id, base_url)
    if aliases is None or not text.strip():
        return None
    scope: Dict[str, Any] = {"persistedReasoningText": text}
    if signature:
        scope["persistedReasoningSignature"] = signature
    return _options_for_aliases(aliases, scope)
