"""Google Vertex AI: the Gemini wire format behind Vertex URLs and auth."""
import logging
import os
from typing import Optional

from ..catalog import ProviderDefinition, SdkType
from ..exceptions import InvalidArgumentError
from ..registry import Credentials, ProviderRegistration, build_provider_transport_config, collect_query_params
from ..transport.http import HttpxTransport
from .base import with_user_agent
from .google import DEFAULT_IDLE_TIMEOUT, GoogleConfig, GoogleGenerativeAILanguageModel, split_definition_headers

logger = logging.getLogger("aisdk.providers.google_vertex")

DEFAULT_API_VERSION = "v1beta1"
PROJECT_ENV = "GOOGLE_VERTEX_PROJECT"
LOCATION_ENV = "GOOGLE_VERTEX_LOCATION"
ACCESS_TOKEN_ENVS = ("GOOGLE_VERTEX_ACCESS_TOKEN", "GOOGLE_CLOUD_ACCESS_TOKEN")
API_KEY_ENV = "GOOGLE_VERTEX_API_KEY"

SUPPORTED_URLS = {"*": [r"^https?://.*$", r"^gs://.*$"]}


def resolve_base_url(definition: ProviderDefinition) -> str:
    configured = definition.base_url.strip()
    if configured:
        return configured.rstrip("/")

    project = (os.getenv(PROJECT_ENV) or "").strip()
    location = (os.getenv(LOCATION_ENV) or "").strip()
    if not project or not location:
        raise InvalidArgumentError(
            f"Missing Google Vertex configuration: set provider base_url or {PROJECT_ENV} and {LOCATION_ENV}"
        )
    host = "aiplatform.googleapis.com" if location.lower() == "global" else f"{location}-aiplatform.googleapis.com"
    return f"https://{host}/{DEFAULT_API_VERSION}/projects/{project}/locations/{location}/publishers/google"


def _bearer(credentials: Credentials) -> Optional[str]:
    token = credentials.as_bearer()
    if token:
        return token
    for name in ACCESS_TOKEN_ENVS:
        value = os.getenv(name)
        if value and value.strip():
            value = value.strip()
            return value if value.lower().startswith("bearer ") else f"Bearer {value}"
    return None


def build_google_vertex_model(definition: ProviderDefinition, model: str, credentials: Credentials, transport=None) -> GoogleGenerativeAILanguageModel:
    base_url = resolve_base_url(definition)

    headers = {"content-type": "application/json", "accept": "application/json"}
    bearer = _bearer(credentials)
    if bearer:
        headers["authorization"] = bearer
    else:
        # express mode
        api_key = credentials.as_api_key() or os.getenv(API_KEY_ENV)
        if api_key:
            headers["x-goog-api-key"] = api_key
    wire, internal = split_definition_headers(definition.headers)
    headers.update(wire)
    with_user_agent(headers, "google-vertex")

    config = GoogleConfig(
        provider_name="google.vertex",
        provider_scope_name=definition.name,
        base_url=base_url,
        headers=headers,
        http=transport or HttpxTransport(),
        option_scopes=["google-vertex", "google"],
        transport_cfg=build_provider_transport_config(definition, DEFAULT_IDLE_TIMEOUT),
        supported_urls=dict(SUPPORTED_URLS),
        query_params=collect_query_params(definition),
        option_headers=internal,
        warn_on_include_thoughts=False,
    )
    logger.debug(f"Configured Vertex scope={definition.name} base_url={base_url} auth={'bearer' if bearer else 'api-key'}")
    return GoogleGenerativeAILanguageModel(model, config)


REGISTRATIONS = [
    ProviderRegistration(
        id="google-vertex",
        sdk_type=SdkType.GOOGLE_VERTEX,
        matches=lambda definition: definition.sdk_type == SdkType.GOOGLE_VERTEX,
        build=build_google_vertex_model,
    ),
]
