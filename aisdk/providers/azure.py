"""Azure OpenAI, served through the Responses model with Azure URL and auth rules."""
import logging
import os
from typing import Dict, List, Optional, Tuple

from ..catalog import ProviderDefinition, SdkType
from ..exceptions import InvalidArgumentError
from ..options import is_internal_sdk_header
from ..registry import Credentials, ProviderRegistration, build_provider_transport_config
from ..transport.http import HttpxTransport
from .base import with_user_agent
from .openai import DEFAULT_IDLE_TIMEOUT, SUPPORTED_URLS, OpenAIConfig, OpenAIResponsesLanguageModel

logger = logging.getLogger("aisdk.providers.azure")

DEFAULT_ENDPOINT_PATH = "/v1/responses"
DEFAULT_BASE_URL_FMT = "https://{resource}.openai.azure.com/openai"
DEFAULT_API_VERSION = "v1"

RESOURCE_ENV = "AZURE_RESOURCE_NAME"
API_KEY_ENV = "AZURE_API_KEY"
API_KEY_ENV_FALLBACK = "AZURE_OPENAI_API_KEY"
TOKEN_ENV = "AZURE_BEARER_TOKEN"
ENDPOINT_ENV = "AZURE_OPENAI_ENDPOINT"
API_VERSION_ENV = "AZURE_API_VERSION"
DEPLOYMENT_URLS_ENV = "AZURE_USE_DEPLOYMENT_URLS"

RESERVED_HEADERS = {"content-type", "accept", "authorization", "api-key", "x-api-key"}
DEPLOYMENT_HEADERS = {"x-azure-use-deployment-urls", "azure-use-deployment-urls"}


def parse_bool(value: Optional[str]) -> Optional[bool]:
    normalized = (value or "").strip().lower()
    if normalized in ("1", "true", "yes", "on"):
        return True
    if normalized in ("0", "false", "no", "off"):
        return False
    return None


def _env(name: str) -> Optional[str]:
    value = os.getenv(name)
    return value if value and value.strip() else None


def filter_headers(headers: Dict[str, str]) -> Tuple[Dict[str, str], Dict[str, str], Optional[bool]]:
    """Split definition headers into (wire headers, internal option headers, deployment flag)."""
    wire: Dict[str, str] = {}
    internal: Dict[str, str] = {}
    use_deployments = None
    for key, value in headers.items():
        lower = key.lower()
        if is_internal_sdk_header(lower):
            internal[lower] = value
        elif lower in DEPLOYMENT_HEADERS:
            if use_deployments is None:
                use_deployments = parse_bool(value)
        elif lower not in RESERVED_HEADERS:
            wire[lower] = value
    return wire, internal, use_deployments


def resolve_api_key(credentials: Credentials) -> Optional[str]:
    key = credentials.as_api_key()
    if not key and credentials.bearer:
        key = credentials.bearer.strip()
        if key.lower().startswith("bearer "):
            key = key[len("bearer "):]
    if key and key.strip():
        return key
    return _env(API_KEY_ENV) or _env(API_KEY_ENV_FALLBACK)


def resolve_bearer_token(credentials: Credentials) -> Optional[str]:
    if credentials.bearer is not None:
        return credentials.as_bearer() if credentials.bearer.strip() else None
    token = _env(TOKEN_ENV)
    if token is None:
        return None
    return token if token.lower().startswith("bearer ") else f"Bearer {token.strip()}"


def resolve_api_version(definition: ProviderDefinition) -> str:
    for key, value in definition.query_params.items():
        if key.lower() == "api-version" and value.strip():
            return value
    return _env(API_VERSION_ENV) or DEFAULT_API_VERSION


def resolve_base_prefix(definition: ProviderDefinition) -> str:
    if definition.base_url.strip():
        return definition.base_url.strip().rstrip("/")
    endpoint = _env(ENDPOINT_ENV)
    if endpoint:
        return endpoint.strip().rstrip("/")
    resource = _env(RESOURCE_ENV)
    if resource:
        return DEFAULT_BASE_URL_FMT.format(resource=resource.strip())
    raise InvalidArgumentError(
        f"Azure base URL not configured; set base_url, {ENDPOINT_ENV}, or {RESOURCE_ENV}"
    )


def normalize_endpoint_path(path: str) -> str:
    trimmed = path.strip()
    if not trimmed:
        return DEFAULT_ENDPOINT_PATH
    return trimmed if trimmed.startswith("/") else f"/{trimmed}"


def strip_v1_prefix(path: str) -> str:
    trimmed = path.lstrip("/")
    if trimmed.startswith("v1/"):
        trimmed = trimmed[len("v1/"):]
    return f"/{trimmed}"


def resolve_urls(definition: ProviderDefinition, model: str, use_deployment_urls: bool) -> Tuple[str, str]:
    """
    (base_url, endpoint_path). In deployment mode the model becomes the
    deployment segment and the `/v1` prefix is dropped from the path.
    """
    base_url = resolve_base_prefix(definition)
    endpoint_path = normalize_endpoint_path(definition.endpoint_path)
    if (
        use_deployment_urls
        and "/deployments/" not in base_url
        and not endpoint_path.lstrip("/").startswith("deployments/")
    ):
        base_url = f"{base_url}/deployments/{model}"
        endpoint_path = strip_v1_prefix(endpoint_path)
    return base_url, endpoint_path


def build_azure_model(definition: ProviderDefinition, model: str, credentials: Credentials, transport=None) -> OpenAIResponsesLanguageModel:
    wire_headers, option_headers, use_deployments = filter_headers(definition.headers)
    if use_deployments is None:
        use_deployments = parse_bool(os.getenv(DEPLOYMENT_URLS_ENV))
    use_deployments = bool(use_deployments)

    base_url, endpoint_path = resolve_urls(definition, model, use_deployments)
    api_version = resolve_api_version(definition)
    query_params: List[Tuple[str, str]] = [
        (k, v) for k, v in definition.query_params.items() if k.lower() != "api-version"
    ]
    query_params.append(("api-version", api_version))

    headers = {"content-type": "application/json", "accept": "application/json"}
    api_key = resolve_api_key(credentials)
    if api_key:
        headers["api-key"] = api_key
    bearer = resolve_bearer_token(credentials)
    if bearer:
        headers["authorization"] = bearer
    headers.update(wire_headers)
    with_user_agent(headers, "azure")

    config = OpenAIConfig(
        provider_name="azure.responses",
        provider_scope_name=definition.name,
        base_url=base_url,
        endpoint_path=endpoint_path,
        headers=headers,
        http=transport or HttpxTransport(),
        transport_cfg=build_provider_transport_config(definition, DEFAULT_IDLE_TIMEOUT),
        query_params=query_params,
        option_headers=option_headers,
        supported_urls=dict(SUPPORTED_URLS),
        file_id_prefixes=["assistant-"],
    )
    model_impl = OpenAIResponsesLanguageModel(model, config)
    logger.info(
        f"Configured Azure scope={definition.name} endpoint={model_impl.endpoint_url()} "
        f"api_version={api_version} deployment_mode={use_deployments}"
    )
    return model_impl


def _is_azure(definition: ProviderDefinition) -> bool:
    return definition.sdk_type == SdkType.AZURE or definition.name.lower() == "azure"


REGISTRATIONS = [
    ProviderRegistration(
        id="azure",
        sdk_type=SdkType.AZURE,
        matches=_is_azure,
        build=build_azure_model,
    ),
]
