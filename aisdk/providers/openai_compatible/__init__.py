"""
OpenAI-compatible provider family: chat, legacy completions, embeddings and
images against any server that speaks the OpenAI wire format.
"""
import logging
from typing import Any, Dict, Optional, Tuple

from ...catalog import ProviderDefinition, SdkType
from ...exceptions import InvalidArgumentError
from ...options import extract_options_from_headers, provider_defaults_from_json
from ...registry import Credentials, ProviderRegistration, build_provider_transport_config, collect_query_params
from ...transport.http import HttpxTransport
from ..base import definition_headers, with_user_agent
from .chat import OpenAICompatibleChatLanguageModel
from .completion import OpenAICompatibleCompletionLanguageModel
from .embedding import OpenAICompatibleEmbeddingModel
from .image import OpenAICompatibleImageModel
from .options import DEFAULT_MAX_EMBEDDINGS_PER_CALL, OpenAICompatibleConfig

logger = logging.getLogger("aisdk.providers.openai_compatible")

RESERVED_HEADERS = ("content-type", "accept", "authorization", "x-api-key")

CHAT_URLS = {"text/*": [r"^https?://.*/v1/chat/completions$"]}
COMPLETION_URLS = {"text/*": [r"^https?://.*/v1/completions$", r"^https?://.*/v1/chat/completions$"]}


def _credential_headers(credentials: Credentials) -> Dict[str, str]:
    headers = {"content-type": "application/json", "accept": "application/json"}
    if credentials.as_bearer():
        headers["authorization"] = credentials.as_bearer()
    elif credentials.as_api_key():
        headers["authorization"] = f"Bearer {credentials.as_api_key()}"
    return headers


def _settings_section(definition: ProviderDefinition) -> Dict[str, Any]:
    raw = extract_options_from_headers(definition.headers)
    if isinstance(raw, dict) and isinstance(raw.get(definition.name), dict):
        return raw[definition.name]
    return {}


def parse_provider_settings(definition: ProviderDefinition) -> Tuple[bool, bool]:
    """(include_usage, supports_structured_outputs) from the definition's options header."""
    section = _settings_section(definition)
    include_usage = section.get("include_usage")
    structured = section.get("supports_structured_outputs")
    return (
        include_usage if isinstance(include_usage, bool) else True,
        structured if isinstance(structured, bool) else False,
    )


def parse_embedding_settings(definition: ProviderDefinition) -> Tuple[Optional[int], bool]:
    section = _settings_section(definition)
    max_per_call = section.get("max_embeddings_per_call")
    parallel = section.get("supports_parallel_calls")
    return (
        max_per_call if isinstance(max_per_call, int) and not isinstance(max_per_call, bool) else DEFAULT_MAX_EMBEDDINGS_PER_CALL,
        parallel if isinstance(parallel, bool) else True,
    )


def build_config(definition: ProviderDefinition, credentials: Credentials, transport=None, **kwargs) -> OpenAICompatibleConfig:
    base_url = definition.base_url.strip()
    if not base_url:
        raise InvalidArgumentError(f"openai-compatible provider '{definition.name}' requires base_url")

    headers = _credential_headers(credentials)
    headers.update(definition_headers(definition.headers, RESERVED_HEADERS))
    with_user_agent(headers, "openai-compatible")

    raw = extract_options_from_headers(definition.headers)
    default_options = provider_defaults_from_json(definition.name, raw) if raw is not None else None
    if default_options:
        logger.debug(f"Provider '{definition.name}' carries default options: {sorted(default_options[definition.name])}")

    return OpenAICompatibleConfig(
        provider_scope_name=definition.name,
        base_url=base_url,
        headers=headers,
        http=transport or HttpxTransport(),
        transport_cfg=build_provider_transport_config(definition),
        query_params=collect_query_params(definition),
        default_options=default_options,
        **kwargs,
    )


def build_chat_model(definition: ProviderDefinition, model: str, credentials: Credentials, transport=None) -> OpenAICompatibleChatLanguageModel:
    include_usage, structured = parse_provider_settings(definition)
    config = build_config(
        definition,
        credentials,
        transport,
        include_usage=include_usage,
        supports_structured_outputs=structured,
        supported_urls=CHAT_URLS,
    )
    return OpenAICompatibleChatLanguageModel(model, config)


def build_completion_model(definition: ProviderDefinition, model: str, credentials: Credentials, transport=None) -> OpenAICompatibleCompletionLanguageModel:
    include_usage, _ = parse_provider_settings(definition)
    config = build_config(definition, credentials, transport, include_usage=include_usage, supported_urls=COMPLETION_URLS)
    return OpenAICompatibleCompletionLanguageModel(model, config)


def build_embedding_model(definition: ProviderDefinition, model: str, credentials: Credentials, transport=None) -> OpenAICompatibleEmbeddingModel:
    max_per_call, parallel = parse_embedding_settings(definition)
    config = build_config(
        definition,
        credentials,
        transport,
        max_embeddings_per_call=max_per_call,
        supports_parallel_calls=parallel,
    )
    return OpenAICompatibleEmbeddingModel(model, config)


def build_image_model(definition: ProviderDefinition, model: str, credentials: Credentials, transport=None) -> OpenAICompatibleImageModel:
    return OpenAICompatibleImageModel(model, build_config(definition, credentials, transport))


def _sdk_type_is(sdk_type: SdkType):
    return lambda definition: definition.sdk_type == sdk_type


REGISTRATIONS = [
    ProviderRegistration(
        id="openai-compatible",
        sdk_type=SdkType.OPENAI_COMPATIBLE,
        matches=_sdk_type_is(SdkType.OPENAI_COMPATIBLE),
        build=build_chat_model,
        build_embedding=build_embedding_model,
        build_image=build_image_model,
    ),
    ProviderRegistration(
        id="openai-compatible-chat",
        sdk_type=SdkType.OPENAI_COMPATIBLE_CHAT,
        matches=_sdk_type_is(SdkType.OPENAI_COMPATIBLE_CHAT),
        build=build_chat_model,
        build_embedding=build_embedding_model,
        build_image=build_image_model,
    ),
    ProviderRegistration(
        id="openai-compatible-completion",
        sdk_type=SdkType.OPENAI_COMPATIBLE_COMPLETION,
        matches=_sdk_type_is(SdkType.OPENAI_COMPATIBLE_COMPLETION),
        build=build_completion_model,
        build_embedding=build_embedding_model,
    ),
    ProviderRegistration(
        id="groq",
        sdk_type=SdkType.GROQ,
        build=build_chat_model,
    ),
]

__all__ = [
    "OpenAICompatibleChatLanguageModel",
    "OpenAICompatibleCompletionLanguageModel",
    "OpenAICompatibleConfig",
    "OpenAICompatibleEmbeddingModel",
    "OpenAICompatibleImageModel",
    "REGISTRATIONS",
    "build_chat_model",
    "build_completion_model",
    "build_embedding_model",
    "build_image_model",
]
