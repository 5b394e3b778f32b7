import logging
import os
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv

from .catalog import ProviderCatalog, ProviderDefinition, SdkType, default_catalog
from .exceptions import InvalidArgumentError
from .registry import Credentials, build_embedding_model, build_image_model, build_language_model
from .resilience.retries import RetryConfig, retry_with_backoff
from .types import CallOptions, GenerateResponse, StreamResponse

load_dotenv()

logger = logging.getLogger("aisdk.client")

# these builders resolve their own environment credentials (bearer vs api key)
SELF_RESOLVING = {SdkType.GOOGLE_VERTEX, SdkType.GATEWAY}


class Client:
    """
    Entry point: resolves "provider:model" against the catalog, picks up
    credentials and hands back ready-to-call model adapters.
    """

    def __init__(
        self,
        api_keys: Optional[Dict[str, str]] = None,
        catalog: Optional[ProviderCatalog] = None,
        transport=None,
        retry: Optional[RetryConfig] = None,
        debug: bool = False,
    ):
        self.api_keys = dict(api_keys or {})
        self.catalog = catalog or default_catalog()
        self.transport = transport
        self.retry = retry or RetryConfig.quick()

        if debug:
            logging.basicConfig(
                level=logging.DEBUG,
                format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            logging.getLogger("aisdk").setLevel(logging.DEBUG)

    def add_provider(self, definition: ProviderDefinition) -> None:
        self.catalog.add_provider(definition)

    def _resolve(self, spec: str, model: Optional[str]) -> Tuple[ProviderDefinition, str]:
        if model is None:
            if ":" in spec:
                spec, model = spec.split(":", 1)
            else:
                found = self.catalog.find_provider_for_model(spec)
                if found is None:
                    raise InvalidArgumentError(
                        f"Unknown model '{spec}'. Try using 'provider:model_name' syntax (e.g. 'openai:gpt-4o')."
                    )
                return found
        definition = self.catalog.get_provider(spec)
        if definition is None:
            raise InvalidArgumentError(f"unknown provider '{spec}'")
        return definition, model

    def credentials_for(self, definition: ProviderDefinition) -> Credentials:
        explicit = self.api_keys.get(definition.name)
        if explicit:
            return Credentials(api_key=explicit)
        if definition.sdk_type in SELF_RESOLVING:
            return Credentials.none()
        for name in definition.env:
            value = os.getenv(name)
            if value and value.strip():
                logger.debug(f"Using credentials from {name} for provider '{definition.name}'")
                return Credentials(api_key=value.strip())
        return Credentials.none()

    def language_model(self, spec: str, model: Optional[str] = None):
        definition, model_id = self._resolve(spec, model)
        return build_language_model(definition, model_id, self.credentials_for(definition), self.transport)

    def embedding_model(self, spec: str, model: Optional[str] = None):
        definition, model_id = self._resolve(spec, model)
        return build_embedding_model(definition, model_id, self.credentials_for(definition), self.transport)

    def image_model(self, spec: str, model: Optional[str] = None):
        definition, model_id = self._resolve(spec, model)
        return build_image_model(definition, model_id, self.credentials_for(definition), self.transport)

    async def generate(self, spec: str, options: CallOptions) -> GenerateResponse:
        """`do_generate` with retries on rate limits, timeouts and 5xx."""
        lm = self.language_model(spec)
        return await retry_with_backoff(lambda: lm.do_generate(options), self.retry)

    async def stream(self, spec: str, options: CallOptions) -> StreamResponse:
        """`do_stream`; only opening the stream is retried."""
        lm = self.language_model(spec)
        return await retry_with_backoff(lambda: lm.do_stream(options), self.retry)
