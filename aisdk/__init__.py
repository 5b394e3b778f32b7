from .client import Client
from .catalog import ModelInfo, ProviderCatalog, ProviderDefinition, SdkType, default_catalog
from .registry import Credentials, build_embedding_model, build_image_model, build_language_model
from .models import EmbeddingModel, EmbedOptions, EmbedResponse, ImageModel, ImageOptions, ImageResponse, LanguageModel
from .types import (
    AssistantMessage,
    Base64Data,
    BytesData,
    CallOptions,
    FilePart,
    Finish,
    FunctionTool,
    GenerateResponse,
    ProviderTool,
    ReasoningPart,
    ResponseFormat,
    StreamResponse,
    SystemMessage,
    TextPart,
    ToolCallPart,
    ToolChoice,
    ToolMessage,
    ToolResultPart,
    UrlData,
    Usage,
    UserMessage,
)
from .streaming import collect_stream_to_response
from .resilience import RetryConfig, retry_with_backoff
from .transport import HttpTransport, HttpxTransport, TransportConfig, set_transport_observer
from .testing import MockLanguageModel, MockTransport
from .exceptions import (
    AuthenticationError,
    InvalidArgumentError,
    ProviderError,
    RateLimitError,
    RequestCancelledError,
    RequestTimeoutError,
    SdkError,
    SerializationError,
    TransportError,
)
from .version import __version__

__all__ = [
    "Client",
    "ModelInfo",
    "ProviderCatalog",
    "ProviderDefinition",
    "SdkType",
    "default_catalog",
    "Credentials",
    "build_language_model",
    "build_embedding_model",
    "build_image_model",
    "LanguageModel",
    "EmbeddingModel",
    "EmbedOptions",
    "EmbedResponse",
    "ImageModel",
    "ImageOptions",
    "ImageResponse",
    "SystemMessage",
    "UserMessage",
    "AssistantMessage",
    "ToolMessage",
    "TextPart",
    "FilePart",
    "ReasoningPart",
    "ToolCallPart",
    "ToolResultPart",
    "Base64Data",
    "BytesData",
    "UrlData",
    "CallOptions",
    "FunctionTool",
    "ProviderTool",
    "ToolChoice",
    "ResponseFormat",
    "GenerateResponse",
    "StreamResponse",
    "Finish",
    "Usage",
    "collect_stream_to_response",
    "RetryConfig",
    "retry_with_backoff",
    "HttpTransport",
    "HttpxTransport",
    "TransportConfig",
    "set_transport_observer",
    "MockLanguageModel",
    "MockTransport",
    "SdkError",
    "AuthenticationError",
    "RateLimitError",
    "RequestTimeoutError",
    "RequestCancelledError",
    "ProviderError",
    "TransportError",
    "SerializationError",
    "InvalidArgumentError",
    "__version__",
]
