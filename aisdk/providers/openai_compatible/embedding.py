import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ...exceptions import InvalidArgumentError, SerializationError
from ...models.embedding import EmbedOptions, EmbedResponse, EmbedUsage
from ...options import build_embed_options
from ...utils import build_url, lowercase_headers
from ..base import build_headers, post_json
from .options import OpenAICompatibleConfig, split_provider_options

logger = logging.getLogger("aisdk.providers.openai_compatible")

EMBEDDING_OPTION_KEYS = {"dimensions": int, "user": str}


class OpenAICompatibleEmbeddingModel:
    def __init__(self, model_id: str, config: OpenAICompatibleConfig):
        self._model_id = model_id
        self.config = config

    def specification_version(self) -> str:
        return "v2"

    def provider_name(self) -> str:
        return "openai-compatible"

    def model_id(self) -> str:
        return self._model_id

    def max_embeddings_per_call(self) -> Optional[int]:
        return self.config.max_embeddings_per_call

    def supports_parallel_calls(self) -> bool:
        return self.config.supports_parallel_calls

    def build_request_body(self, options: EmbedOptions) -> Dict[str, Any]:
        scopes = ["openai-compatible", self.config.provider_scope_name]
        known, extras = split_provider_options(options.provider_options, scopes, EMBEDDING_OPTION_KEYS)
        body: Dict[str, Any] = {
            "model": self._model_id or None,
            "input": list(options.values),
            "encoding_format": "float",
        }
        if "dimensions" in known:
            body["dimensions"] = known["dimensions"]
        if "user" in known:
            body["user"] = known["user"]
        body.update(extras or {})
        return body

    async def do_embed(self, options: EmbedOptions) -> EmbedResponse:
        options = build_embed_options(options, self.config.provider_scope_name, self.config.default_options)
        limit = self.config.max_embeddings_per_call
        if limit is not None and len(options.values) > limit:
            raise InvalidArgumentError(f"too many embedding values: {len(options.values)} (max {limit} per call)")

        body = self.build_request_body(options)
        headers = build_headers({"content-type": "application/json", "accept": "application/json"}, self.config.headers, options.headers)
        url = build_url(self.config.base_url, "/embeddings", self.config.query_params)
        data, response_headers = await post_json(self.config.http, url, headers, body, self.config.transport_cfg)

        try:
            embeddings: List[List[float]] = [item["embedding"] for item in data["data"]]
            usage_data = data.get("usage") or {}
            usage = EmbedUsage(tokens=usage_data.get("prompt_tokens")) if data.get("usage") is not None else None
            return EmbedResponse(
                embeddings=embeddings,
                usage=usage,
                provider_metadata=data.get("providerMetadata"),
                response_headers=lowercase_headers(response_headers) or None,
                response_body=data,
                request_body=body,
            )
        except (KeyError, TypeError, ValidationError) as e:
            raise SerializationError(f"unexpected embedding response: {e}") from e
