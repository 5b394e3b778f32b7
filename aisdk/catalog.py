"""Static description of known providers, their endpoints and models."""
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator


class SdkType(str, Enum):
    OPENAI = "openai"
    AZURE = "azure"
    OPENAI_COMPATIBLE = "openai-compatible"
    OPENAI_COMPATIBLE_CHAT = "openai-compatible-chat"
    OPENAI_COMPATIBLE_COMPLETION = "openai-compatible-completion"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    GOOGLE_VERTEX = "google-vertex"
    GROQ = "groq"
    GATEWAY = "gateway"
    AMAZON_BEDROCK = "amazon-bedrock"


class CatalogCapabilities(BaseModel):
    attachment: bool = False
    reasoning: bool = False
    temperature: bool = True
    tool_call: bool = False
    computer_use: bool = False
    audio: bool = False
    json_mode: bool = False
    vision: bool = False


class ModelModalities(BaseModel):
    input: List[str] = Field(default_factory=list)
    output: List[str] = Field(default_factory=list)

    @field_validator("input", "output", mode="before")
    @classmethod
    def _one_or_many(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v


class ModelLimits(BaseModel):
    context: Optional[int] = None
    output: Optional[int] = None
    context_input: Optional[int] = None
    context_output: Optional[int] = None

    def get_context(self) -> Optional[int]:
        return self.context_input if self.context_input is not None else self.context

    def get_output(self) -> Optional[int]:
        return self.context_output if self.context_output is not None else self.output


class ModelCost(BaseModel):
    input: Optional[float] = None
    output: Optional[float] = None
    cache_read: Optional[float] = None
    cache_write: Optional[float] = None


class ModelInfo(BaseModel):
    id: str
    display_name: str = ""
    provider: Optional[str] = None
    description: Optional[str] = None
    capabilities: Optional[CatalogCapabilities] = None
    modalities: Optional[ModelModalities] = None
    limits: Optional[ModelLimits] = None
    cost: Optional[ModelCost] = None
    open_weights: Optional[bool] = None


class ProviderDefinition(BaseModel):
    name: str
    display_name: str = ""
    sdk_type: SdkType
    base_url: str = ""
    env: List[str] = Field(default_factory=list)
    npm: Optional[str] = None
    doc: Optional[str] = None
    endpoint_path: str = ""
    headers: Dict[str, str] = Field(default_factory=dict)
    query_params: Dict[str, str] = Field(default_factory=dict)
    stream_idle_timeout_ms: Optional[int] = None
    auth_type: str = "bearer"
    models: Dict[str, ModelInfo] = Field(default_factory=dict)
    preserve_model_prefix: bool = True

    @field_validator("env", mode="before")
    @classmethod
    def _env_list(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v


class ProviderCatalog:
    def __init__(self, providers: Optional[Dict[str, ProviderDefinition]] = None):
        self._providers: Dict[str, ProviderDefinition] = dict(providers or {})

    def add_provider(self, provider: ProviderDefinition) -> None:
        self._providers[provider.name] = provider

    def get_provider(self, name: str) -> Optional[ProviderDefinition]:
        return self._providers.get(name)

    def providers(self) -> Dict[str, ProviderDefinition]:
        return dict(self._providers)

    def find_provider_for_model(self, model: str) -> Optional[Tuple[ProviderDefinition, str]]:
        """Resolve "provider/model" first, then any provider listing `model`."""
        if "/" in model:
            provider, model_name = model.split("/", 1)
            definition = self._providers.get(provider)
            if definition is not None and model_name in definition.models:
                return definition, definition.models[model_name].id
        for definition in self._providers.values():
            if model in definition.models:
                return definition, definition.models[model].id
        return None


def _def(name: str, display_name: str, sdk_type: SdkType, base_url: str, env: Union[str, List[str]], endpoint_path: str = "", **kwargs) -> ProviderDefinition:
    return ProviderDefinition(
        name=name,
        display_name=display_name,
        sdk_type=sdk_type,
        base_url=base_url,
        env=env,
        endpoint_path=endpoint_path,
        **kwargs,
    )


BUILTIN_PROVIDERS: List[ProviderDefinition] = [
    _def("openai", "OpenAI", SdkType.OPENAI, "https://api.openai.com/v1", "OPENAI_API_KEY", "/responses"),
    _def("azure", "Azure OpenAI", SdkType.AZURE, "", ["AZURE_API_KEY", "AZURE_OPENAI_API_KEY"], "/v1/responses", auth_type="api-key"),
    _def("anthropic", "Anthropic", SdkType.ANTHROPIC, "https://api.anthropic.com/v1", "ANTHROPIC_API_KEY", "/messages", auth_type="api-key"),
    _def("google", "Google Generative AI", SdkType.GOOGLE, "https://generativelanguage.googleapis.com/v1beta", "GOOGLE_GENERATIVE_AI_API_KEY", auth_type="api-key"),
    _def("google-vertex", "Google Vertex AI", SdkType.GOOGLE_VERTEX, "", ["GOOGLE_VERTEX_ACCESS_TOKEN", "GOOGLE_VERTEX_API_KEY"]),
    _def("amazon-bedrock", "Amazon Bedrock", SdkType.AMAZON_BEDROCK, "", "AWS_BEARER_TOKEN_BEDROCK", auth_type="sigv4"),
    _def("gateway", "AI Gateway", SdkType.GATEWAY, "https://ai-gateway.vercel.sh/v1/ai", ["AI_GATEWAY_API_KEY", "VERCEL_OIDC_TOKEN"], "/language-model"),
    _def("groq", "Groq", SdkType.GROQ, "https://api.groq.com/openai/v1", "GROQ_API_KEY", "/chat/completions"),
    _def("openai-compatible", "OpenAI Compatible", SdkType.OPENAI_COMPATIBLE, "", "OPENAI_COMPATIBLE_API_KEY", "/chat/completions"),
]


def default_catalog() -> ProviderCatalog:
    return ProviderCatalog({d.name: d.model_copy(deep=True) for d in BUILTIN_PROVIDERS})
