"""
Tests for Client provider routing, credential lookup and retries.
"""
import logging

import pytest

from aisdk import Client
from aisdk.catalog import ModelInfo, ProviderCatalog, ProviderDefinition, SdkType
from aisdk.exceptions import HttpStatusError, InvalidArgumentError, ProviderError
from aisdk.resilience import RetryConfig
from aisdk.testing import MockTransport
from aisdk.types import CallOptions, Finish, TextDelta, TextPart, UserMessage

GEMINI_RESPONSE = {
    "candidates": [{"content": {"role": "model", "parts": [{"text": "Hi!"}]}, "finishReason": "STOP"}],
    "usageMetadata": {"promptTokenCount": 2, "candidatesTokenCount": 1, "totalTokenCount": 3},
}

NO_WAIT = RetryConfig(max_retries=2, initial_interval=0.0, max_interval=0.0)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("GROQ_API_KEY", "GOOGLE_GENERATIVE_AI_API_KEY", "GOOGLE_VERTEX_API_KEY", "OPENAI_COMPATIBLE_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def _options():
    return CallOptions(prompt=[UserMessage(content=[TextPart(text="Hello")])])


def _local_catalog():
    catalog = ProviderCatalog()
    catalog.add_provider(ProviderDefinition(
        name="local",
        sdk_type=SdkType.OPENAI_COMPATIBLE,
        base_url="http://localhost:8000/v1",
        env=["LOCAL_API_KEY"],
        models={"llama3": ModelInfo(id="meta-llama-3")},
    ))
    return catalog


def test_resolves_provider_colon_model():
    client = Client(api_keys={"groq": "gsk"})
    model = client.language_model("groq:llama-3.1-8b")

    assert model.model_id() == "llama-3.1-8b"
    assert model.config.headers["authorization"] == "Bearer gsk"
    assert model.config.base_url == "https://api.groq.com/openai/v1"


def test_resolves_bare_and_prefixed_catalog_models():
    client = Client(catalog=_local_catalog())
    assert client.language_model("llama3").model_id() == "meta-llama-3"
    assert client.language_model("local/llama3").model_id() == "meta-llama-3"
    assert client.language_model("local", "custom").model_id() == "custom"


def test_unknown_model_and_provider():
    client = Client(catalog=_local_catalog())
    with pytest.raises(InvalidArgumentError, match="provider:model_name"):
        client.language_model("gpt-99")
    with pytest.raises(InvalidArgumentError, match="unknown provider"):
        client.language_model("nope:model")


def test_credentials_from_environment(clean_env):
    clean_env.setenv("GROQ_API_KEY", "  env-key  ")
    client = Client()
    model = client.language_model("groq:llama-3.1-8b")
    assert model.config.headers["authorization"] == "Bearer env-key"

    explicit = Client(api_keys={"groq": "explicit"})
    assert explicit.credentials_for(explicit.catalog.get_provider("groq")).api_key == "explicit"


def test_self_resolving_providers_skip_env_lookup(clean_env):
    clean_env.setenv("GOOGLE_VERTEX_API_KEY", "vertex-key")
    client = Client()
    credentials = client.credentials_for(client.catalog.get_provider("google-vertex"))
    assert credentials.api_key is None
    assert credentials.bearer is None


def test_embedding_and_image_models():
    client = Client(catalog=_local_catalog())
    assert client.embedding_model("local:text-embed").model_id() == "text-embed"
    assert client.image_model("local:sd-xl").model_id() == "sd-xl"

    with pytest.raises(InvalidArgumentError, match="does not support embedding"):
        Client(api_keys={"anthropic": "k"}).embedding_model("anthropic:claude-sonnet-4-5")


def test_add_provider_and_debug_logging():
    client = Client(catalog=ProviderCatalog(), debug=True)
    client.add_provider(ProviderDefinition(name="mine", sdk_type=SdkType.OPENAI_COMPATIBLE, base_url="http://x/v1"))
    assert client.language_model("mine:m").model_id() == "m"
    assert logging.getLogger("aisdk").level == logging.DEBUG


@pytest.mark.asyncio
async def test_generate_retries_server_errors():
    transport = MockTransport()
    transport.add_error(HttpStatusError(503, '{"error": {"message": "overloaded"}}'))
    transport.add_json(GEMINI_RESPONSE)
    client = Client(api_keys={"google": "g-key"}, transport=transport, retry=NO_WAIT)

    response = await client.generate("google:gemini-2.5-flash", _options())

    assert response.text == "Hi!"
    assert len(transport.requests) == 2


@pytest.mark.asyncio
async def test_generate_does_not_retry_client_errors():
    transport = MockTransport().add_error(HttpStatusError(400, '{"error": {"message": "bad request"}}'))
    client = Client(api_keys={"google": "g-key"}, transport=transport, retry=NO_WAIT)

    with pytest.raises(ProviderError, match="bad request"):
        await client.generate("google:gemini-2.5-flash", _options())
    assert len(transport.requests) == 1


@pytest.mark.asyncio
async def test_generate_gives_up_after_max_retries():
    transport = MockTransport()
    for _ in range(3):
        transport.add_error(HttpStatusError(500, '{"error": {"message": "boom"}}'))
    client = Client(api_keys={"google": "g-key"}, transport=transport, retry=NO_WAIT)

    with pytest.raises(ProviderError, match="boom"):
        await client.generate("google:gemini-2.5-flash", _options())
    assert len(transport.requests) == 3


@pytest.mark.asyncio
async def test_stream_retries_opening():
    transport = MockTransport()
    transport.add_error(HttpStatusError(502, ""))
    transport.add_sse([GEMINI_RESPONSE])
    client = Client(api_keys={"google": "g-key"}, transport=transport, retry=NO_WAIT)

    stream = await client.stream("google:gemini-2.5-flash", _options())
    parts = [p async for p in stream]

    assert [p.delta for p in parts if isinstance(p, TextDelta)] == ["Hi!"]
    assert isinstance(parts[-1], Finish)
    assert len(transport.requests) == 2
