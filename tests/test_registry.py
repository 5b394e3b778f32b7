"""
Tests for the catalog, provider registry and bootstrap helpers.
"""
import json

import pytest

from aisdk.catalog import ModelInfo, ProviderCatalog, ProviderDefinition, SdkType, default_catalog
from aisdk.exceptions import InvalidArgumentError
from aisdk.providers.anthropic import AnthropicMessagesLanguageModel
from aisdk.providers.openai_compatible import OpenAICompatibleChatLanguageModel, OpenAICompatibleCompletionLanguageModel
from aisdk.registry import (
    Credentials,
    build_embedding_model,
    build_image_model,
    build_language_model,
    build_provider_transport_config,
    filter_provider_bootstrap_headers,
    find_registration,
    normalize_provider_id,
    persisted_reasoning_options,
    reasoning_scope_aliases,
    reasoning_stream_options,
    registrations,
    sdk_type_from_id,
)
from aisdk.testing import MockTransport


def _compat(name="local", sdk_type=SdkType.OPENAI_COMPATIBLE, **kwargs):
    return ProviderDefinition(name=name, sdk_type=sdk_type, base_url="http://localhost:8000/v1", **kwargs)


def test_registrations_are_cached_and_unique():
    regs = registrations()
    assert regs is registrations()
    ids = [r.id for r in regs]
    assert len(ids) == len(set(ids))
    for expected in ("openai", "azure", "anthropic", "google", "google-vertex", "amazon-bedrock", "gateway", "groq"):
        assert expected in ids


def test_sdk_type_from_id():
    assert sdk_type_from_id("groq") == SdkType.GROQ
    assert sdk_type_from_id(" OpenAI-Compatible-Chat ") == SdkType.OPENAI_COMPATIBLE_CHAT
    assert sdk_type_from_id("") is None
    assert sdk_type_from_id("nope") is None


def test_find_registration_prefers_matching_name():
    azure_named = ProviderDefinition(name="azure", sdk_type=SdkType.OPENAI)
    assert find_registration(azure_named).id == "azure"
    assert find_registration(ProviderDefinition(name="my-openai", sdk_type=SdkType.OPENAI)).id == "openai"


def test_build_language_model_dispatches_on_sdk_type():
    transport = MockTransport()
    chat = build_language_model(_compat(), "llama3", Credentials(api_key="k"), transport)
    completion = build_language_model(_compat(sdk_type=SdkType.OPENAI_COMPATIBLE_COMPLETION), "llama3", None, transport)
    claude = build_language_model(
        ProviderDefinition(name="anthropic", sdk_type=SdkType.ANTHROPIC, base_url="https://api.anthropic.com/v1"),
        "claude-sonnet-4-5",
        Credentials(api_key="k"),
        transport,
    )

    assert isinstance(chat, OpenAICompatibleChatLanguageModel)
    assert chat.model_id() == "llama3"
    assert isinstance(completion, OpenAICompatibleCompletionLanguageModel)
    assert isinstance(claude, AnthropicMessagesLanguageModel)


def test_build_embedding_and_image_support():
    transport = MockTransport()
    assert build_embedding_model(_compat(), "embed", None, transport).model_id() == "embed"
    assert build_image_model(_compat(), "img", None, transport).model_id() == "img"
    with pytest.raises(InvalidArgumentError):
        build_embedding_model(ProviderDefinition(name="anthropic", sdk_type=SdkType.ANTHROPIC), "claude", None, transport)
    with pytest.raises(InvalidArgumentError):
        build_image_model(_compat(sdk_type=SdkType.OPENAI_COMPATIBLE_COMPLETION), "img", None, transport)


def test_openai_compatible_requires_base_url():
    with pytest.raises(InvalidArgumentError):
        build_language_model(ProviderDefinition(name="x", sdk_type=SdkType.OPENAI_COMPATIBLE), "m", None, MockTransport())


def test_filter_provider_bootstrap_headers():
    headers = {
        "Authorization": "Bearer caller",
        "X-Custom": "1",
        "x-ai-sdk-options": json.dumps({"gateway": {"order": ["a"]}, "other": {}}),
        "x-ai-sdk-extra": json.dumps({"ignored": True}),
    }
    result = filter_provider_bootstrap_headers(headers, "gateway", ["authorization"])

    assert result.headers == {"x-custom": "1"}
    assert result.default_options == {"gateway": {"order": ["a"]}}
    assert result.request_defaults == {"gateway": {"order": ["a"]}, "other": {}}


def test_filter_provider_bootstrap_headers_skips_malformed():
    headers = {"x-ai-sdk-options": "{broken", "x-ai-sdk-second": json.dumps({"s": {"a": 1}})}
    result = filter_provider_bootstrap_headers(headers, "s", [])
    assert result.default_options == {"s": {"a": 1}}
    assert result.headers == {}


def test_transport_config_idle_timeout():
    definition = _compat(stream_idle_timeout_ms=1500)
    assert build_provider_transport_config(definition).idle_read_timeout == 1.5
    assert build_provider_transport_config(_compat(), default_idle_timeout=30.0).idle_read_timeout == 30.0
    assert build_provider_transport_config(_compat()).idle_read_timeout == 45.0


def test_reasoning_scope_aliases():
    assert reasoning_scope_aliases("anthropic", "anthropic", base_url="https://api.anthropic.com/v1") == [
        "anthropic",
        "api.anthropic.com",
    ]
    assert reasoning_scope_aliases("My Claude", SdkType.ANTHROPIC) == ["anthropic", "My Claude", "my-claude"]
    assert reasoning_scope_aliases("google", SdkType.GOOGLE) is None


def test_bedrock_reasoning_scope_depends_on_model():
    assert reasoning_scope_aliases("amazon-bedrock", SdkType.AMAZON_BEDROCK, model_id="anthropic.claude-3-7-sonnet") == [
        "anthropic",
        "bedrock",
        "amazon-bedrock",
    ]
    assert reasoning_scope_aliases("amazon-bedrock", SdkType.AMAZON_BEDROCK, model_id="amazon.nova-pro-v1:0") is None


def test_reasoning_options():
    assert reasoning_stream_options("openai", SdkType.OPENAI, signature="sig") == {"openai": {"signature": "sig"}}
    assert reasoning_stream_options("openai", SdkType.OPENAI) is None
    assert persisted_reasoning_options("anthropic", SdkType.ANTHROPIC, None, None, "  ") is None
    assert persisted_reasoning_options("anthropic", SdkType.ANTHROPIC, None, None, "why", "s") == {
        "anthropic": {"persistedReasoningText": "why", "persistedReasoningSignature": "s"}
    }


def test_normalize_provider_id():
    assert normalize_provider_id("  My Provider (EU) ") == "my-provider-eu"


def test_catalog_lookup():
    catalog = ProviderCatalog()
    catalog.add_provider(_compat(models={"llama3": ModelInfo(id="llama3:8b")}))

    assert catalog.find_provider_for_model("llama3")[1] == "llama3:8b"
    definition, model = catalog.find_provider_for_model("local/llama3")
    assert definition.name == "local"
    assert model == "llama3:8b"
    assert catalog.find_provider_for_model("missing") is None


def test_default_catalog_is_independent():
    first = default_catalog()
    first.get_provider("openai").headers["x"] = "1"
    assert default_catalog().get_provider("openai").headers == {}
    assert default_catalog().get_provider("anthropic").env == ["ANTHROPIC_API_KEY"]


def test_credentials():
    assert Credentials(bearer="tok").as_bearer() == "Bearer tok"
    assert Credentials(bearer="Bearer tok").as_bearer() == "Bearer tok"
    assert Credentials.none().as_api_key() is None
    assert "secret" not in repr(Credentials(api_key="secret"))
