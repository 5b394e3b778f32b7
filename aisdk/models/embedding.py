from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field

from ..types import ProviderMetadata, ProviderOptions

Embedding = List[float]


class EmbedOptions(BaseModel):
    values: List[str]
    headers: Dict[str, str] = Field(default_factory=dict)
    provider_options: ProviderOptions = Field(default_factory=dict)


class EmbedUsage(BaseModel):
    tokens: Optional[int] = None


class EmbedResponse(BaseModel):
    embeddings: List[Embedding] = Field(default_factory=list)
    usage: Optional[EmbedUsage] = None
    provider_metadata: Optional[ProviderMetadata] = None
    response_headers: Optional[Dict[str, str]] = None
    response_body: Optional[Any] = None
    request_body: Optional[Any] = None


class EmbeddingModel(Protocol):
    def specification_version(self) -> str:
        return "v2"

    def provider_name(self) -> str:
        ...

    def model_id(self) -> str:
        ...

    def max_embeddings_per_call(self) -> Optional[int]:
        return None

    def supports_parallel_calls(self) -> bool:
        return True

    async def do_embed(self, options: EmbedOptions) -> EmbedResponse:
        ...
