"""
Provider-options algebra.

Three layers feed a request, highest precedence first:
call-site `provider_options`, provider defaults parsed from `x-ai-sdk-options`,
and request-body overrides from the same header merged into the built body.
"""
import copy
import json
import logging
from typing import Any, Dict, Iterable, Optional, Tuple

from .types import ProviderOptions

logger = logging.getLogger("aisdk.options")

INTERNAL_HEADER_PREFIX = "x-ai-sdk-"
OPTIONS_HEADER = "x-ai-sdk-options"


def is_internal_sdk_header(key: str) -> bool:
    return key.lower().startswith(INTERNAL_HEADER_PREFIX)


def strip_internal_headers(headers: Dict[str, str]) -> Dict[str, str]:
    return {k: v for k, v in headers.items() if not is_internal_sdk_header(k)}


def extract_options_from_headers(headers: Dict[str, str]) -> Optional[Any]:
    for key, value in headers.items():
        if key.lower() == OPTIONS_HEADER:
            try:
                return json.loads(value)
            except ValueError:
                logger.warning(f"Ignoring malformed {OPTIONS_HEADER} header")
                return None
    return None


def deep_merge(target: Any, other: Any) -> Any:
    """Merge `other` into `target`. Objects merge recursively; otherwise `other` replaces."""
    if isinstance(target, dict) and isinstance(other, dict):
        for key, value in other.items():
            if key in target:
                target[key] = deep_merge(target[key], value)
            else:
                target[key] = copy.deepcopy(value)
        return target
    return copy.deepcopy(other)


def merge_options_with_disallow(body: Dict[str, Any], options: Any, disallow: Iterable[str]) -> Dict[str, Any]:
    """Apply request-body overrides, skipping structural keys."""
    if not isinstance(body, dict) or not isinstance(options, dict):
        return body
    blocked = set(disallow)
    for key, value in options.items():
        if key in blocked:
            continue
        if key in body:
            body[key] = deep_merge(body[key], value)
        else:
            body[key] = copy.deepcopy(value)
    return body


def merge_json_defaults(target: Any, defaults: Any) -> Any:
    """Fill holes in `target` from `defaults`. Existing terminal values always win."""
    if isinstance(target, dict) and isinstance(defaults, dict):
        for key, value in defaults.items():
            if key in target:
                merge_json_defaults(target[key], value)
            else:
                target[key] = copy.deepcopy(value)
    return target


def _scoped_object(scope: str, value: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(value, dict):
        return None
    scoped = value.get(scope)
    return scoped if isinstance(scoped, dict) else None


def provider_defaults_from_json(scope: str, value: Any) -> Optional[ProviderOptions]:
    """Only `value[scope]` as an object is accepted; aliases are never implied."""
    scoped = _scoped_object(scope, value)
    if scoped is None:
        return None
    return {scope: copy.deepcopy(scoped)}


def request_overrides_from_json(scope: str, value: Any) -> Optional[Dict[str, Any]]:
    scoped = _scoped_object(scope, value)
    if scoped is None:
        return None
    return copy.deepcopy(scoped)


def merge_provider_defaults(target: ProviderOptions, defaults: ProviderOptions) -> ProviderOptions:
    for scope, scope_defaults in defaults.items():
        entry = target.setdefault(scope, {})
        merge_json_defaults(entry, scope_defaults)
    return target


def _with_scope_defaults(opts, scope: str, defaults: Optional[ProviderOptions]):
    if not defaults or scope not in defaults:
        return opts
    merged = copy.deepcopy(opts.provider_options)
    merge_provider_defaults(merged, {scope: defaults[scope]})
    return opts.model_copy(update={"provider_options": merged})


def build_call_options(opts, scope: str, defaults: Optional[ProviderOptions]):
    return _with_scope_defaults(opts, scope, defaults)


def build_embed_options(opts, scope: str, defaults: Optional[ProviderOptions]):
    return _with_scope_defaults(opts, scope, defaults)


def build_image_options(opts, scope: str, defaults: Optional[ProviderOptions]):
    return _with_scope_defaults(opts, scope, defaults)


def parse_header_options(scope: str, headers: Dict[str, str]) -> Tuple[Optional[ProviderOptions], Optional[Dict[str, Any]]]:
    """Returns (provider defaults, request overrides) for `scope` from internal headers."""
    raw = extract_options_from_headers(headers)
    if raw is None:
        return None, None
    return provider_defaults_from_json(scope, raw), request_overrides_from_json(scope, raw)


def scope_options(provider_options: Optional[ProviderOptions], *scopes: str) -> Dict[str, Any]:
    """Collect options under the given scopes; earlier scopes win on conflicts."""
    result: Dict[str, Any] = {}
    for scope in reversed(scopes):
        scoped = (provider_options or {}).get(scope)
        if isinstance(scoped, dict):
            deep_merge(result, scoped)
    return result
