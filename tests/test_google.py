"""
Tests for the Gemini adapter (Generative Language API and Vertex AI).
"""
import json

import pytest

from aisdk.catalog import ProviderDefinition, SdkType
from aisdk.exceptions import InvalidArgumentError, ProviderError, HttpStatusError
from aisdk.providers.google import (
    convert_json_schema_to_openapi_schema,
    convert_to_google_prompt,
    map_finish_reason,
    prepare_tools,
    build_google_model,
)
from aisdk.providers.google_vertex import build_google_vertex_model
from aisdk.registry import Credentials
from aisdk.testing import MockTransport
from aisdk.types import (
    CallOptions,
    Finish,
    FunctionTool,
    ProviderTool,
    ReasoningDelta,
    ReasoningStart,
    ResponseFormat,
    SourceUrl,
    SystemMessage,
    TextDelta,
    TextEnd,
    TextPart,
    ToolCallPart,
    UnsupportedToolWarning,
    UserMessage,
)

TEXT_RESPONSE = {
    "candidates": [{"content": {"role": "model", "parts": [{"text": "Hello there"}]}, "finishReason": "STOP"}],
    "usageMetadata": {"promptTokenCount": 4, "candidatesTokenCount": 2, "totalTokenCount": 6, "thoughtsTokenCount": 1},
}


def _model(transport, model="gemini-2.5-flash", headers=None):
    definition = ProviderDefinition(name="google", sdk_type=SdkType.GOOGLE, headers=headers or {})
    return build_google_model(definition, model, Credentials(api_key="g-key"), transport)


def _options(**kwargs):
    prompt = [SystemMessage(content="Be brief."), UserMessage(content=[TextPart(text="Hi")])]
    return CallOptions(prompt=prompt, **kwargs)


@pytest.mark.asyncio
async def test_generate_text():
    transport = MockTransport().add_json(TEXT_RESPONSE)
    response = await _model(transport).do_generate(_options(max_output_tokens=100, temperature=0.5))

    assert response.text == "Hello there"
    assert response.finish_reason == "stop"
    assert response.usage.input_tokens == 4
    assert response.usage.total_tokens == 6
    assert response.usage.reasoning_tokens == 1

    request = transport.requests[0]
    assert request.url == "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent"
    assert request.headers["x-goog-api-key"] == "g-key"
    body = request.json()
    assert body["systemInstruction"] == {"parts": [{"text": "Be brief."}]}
    assert body["contents"] == [{"role": "user", "parts": [{"text": "Hi"}]}]
    assert body["generationConfig"] == {"maxOutputTokens": 100, "temperature": 0.5}


@pytest.mark.asyncio
async def test_generate_function_call():
    data = {
        "candidates": [{
            "content": {"parts": [{"functionCall": {"name": "lookup", "args": {"q": "x"}}, "thoughtSignature": "sig"}]},
            "finishReason": "STOP",
        }],
    }
    transport = MockTransport().add_json(data)
    tools = [FunctionTool(name="lookup", input_schema={"type": "object", "properties": {"q": {"type": "string"}}})]
    response = await _model(transport).do_generate(_options(tools=tools))

    call = response.tool_calls[0]
    assert call.tool_name == "lookup"
    assert json.loads(call.input) == {"q": "x"}
    assert call.provider_options == {"google": {"thoughtSignature": "sig"}}
    assert response.finish_reason == "tool_calls"
    assert transport.requests[0].json()["tools"] == [{
        "functionDeclarations": [{"name": "lookup", "description": "", "parameters": {"type": "object", "properties": {"q": {"type": "string"}}}}]
    }]


@pytest.mark.asyncio
async def test_generate_error_is_mapped():
    transport = MockTransport().add_error(HttpStatusError(400, '{"error": {"code": 400, "message": "API key not valid"}}'))
    with pytest.raises(ProviderError, match="API key not valid"):
        await _model(transport).do_generate(_options())


@pytest.mark.asyncio
async def test_stream_text_with_grounding():
    frames = [
        {"candidates": [{"content": {"parts": [{"text": "Hel"}]}}]},
        {
            "candidates": [{
                "content": {"parts": [{"text": "lo"}]},
                "finishReason": "STOP",
                "groundingMetadata": {"groundingChunks": [{"web": {"uri": "https://example.com", "title": "Example"}}]},
            }],
            "usageMetadata": {"promptTokenCount": 3, "candidatesTokenCount": 2, "totalTokenCount": 5},
        },
    ]
    transport = MockTransport().add_sse(frames)
    stream = await _model(transport).do_stream(_options())
    parts = [p async for p in stream]

    assert transport.requests[0].url.endswith("/models/gemini-2.5-flash:streamGenerateContent?alt=sse")
    assert "".join(p.delta for p in parts if isinstance(p, TextDelta)) == "Hello"
    assert len({p.id for p in parts if isinstance(p, TextDelta)}) == 1
    assert any(isinstance(p, TextEnd) for p in parts)
    source = next(p for p in parts if isinstance(p, SourceUrl))
    assert source.url == "https://example.com"

    finish = parts[-1]
    assert isinstance(finish, Finish)
    assert finish.finish_reason == "stop"
    assert finish.usage.total_tokens == 5
    assert finish.provider_metadata["google"]["usageMetadata"]["totalTokenCount"] == 5


@pytest.mark.asyncio
async def test_stream_thoughts_then_text():
    frames = [
        {"candidates": [{"content": {"parts": [{"text": "pondering", "thought": True}]}}]},
        {"candidates": [{"content": {"parts": [{"text": "Answer"}]}, "finishReason": "MAX_TOKENS"}]},
    ]
    transport = MockTransport().add_sse(frames)
    stream = await _model(transport).do_stream(_options())
    parts = [p async for p in stream]

    start = next(p for p in parts if isinstance(p, ReasoningStart))
    assert start.id == "r-0"
    assert next(p for p in parts if isinstance(p, ReasoningDelta)).delta == "pondering"
    assert parts[-1].finish_reason == "length"


@pytest.mark.asyncio
async def test_stream_function_call():
    frames = [{"candidates": [{"content": {"parts": [{"functionCall": {"name": "lookup", "args": {}}}]}, "finishReason": "STOP"}]}]
    transport = MockTransport().add_sse(frames)
    stream = await _model(transport).do_stream(_options())
    parts = [p async for p in stream]

    call = next(p for p in parts if isinstance(p, ToolCallPart))
    assert call.input == "{}"
    assert parts[-1].finish_reason == "tool_calls"


@pytest.mark.asyncio
async def test_provider_options_and_json_format():
    transport = MockTransport().add_json(TEXT_RESPONSE)
    schema = {"type": "object", "properties": {"name": {"type": "string"}}, "required": ["name"]}
    options = _options(
        response_format=ResponseFormat(type="json", json_schema=schema),
        provider_options={"google": {"thinkingConfig": {"thinkingBudget": 0}, "safetySettings": [{"category": "X", "threshold": "BLOCK_NONE"}]}},
    )
    await _model(transport).do_generate(options)

    body = transport.requests[0].json()
    config = body["generationConfig"]
    assert config["responseMimeType"] == "application/json"
    assert config["responseSchema"] == {"required": ["name"], "type": "object", "properties": {"name": {"type": "string"}}}
    assert config["thinkingConfig"] == {"thinkingBudget": 0}
    assert body["safetySettings"] == [{"category": "X", "threshold": "BLOCK_NONE"}]


def test_json_schema_conversion():
    schema = {
        "type": "object",
        "properties": {
            "a": {"type": ["string", "null"]},
            "b": {"type": "object"},
            "c": {"anyOf": [{"type": "integer"}, {"type": "null"}]},
            "d": {"const": "fixed"},
        },
    }
    assert convert_json_schema_to_openapi_schema(schema) == {
        "type": "object",
        "properties": {
            "a": {"type": "string", "nullable": True},
            "c": {"type": "integer", "nullable": True},
            "d": {"enum": ["fixed"]},
        },
    }
    assert convert_json_schema_to_openapi_schema({"type": "object"}) is None


def test_provider_tools_are_gated_by_model():
    search = ProviderTool(id="google.google_search", name="google_search")
    tools, config, warnings = prepare_tools([search], None, "gemini-2.5-pro")
    assert tools == [{"googleSearch": {}}]
    assert config is None
    assert warnings == []

    url_context = ProviderTool(id="google.url_context", name="url_context")
    tools, _, warnings = prepare_tools([url_context], None, "gemini-1.0-pro")
    assert tools is None
    assert isinstance(warnings[0], UnsupportedToolWarning)


def test_gemma_gets_system_text_inline():
    prompt = [SystemMessage(content="Rules"), UserMessage(content=[TextPart(text="Go")])]
    system, contents = convert_to_google_prompt(prompt, True, ["google"])
    assert system is None
    assert contents[0]["parts"] == [{"text": "Rules\n\n"}, {"text": "Go"}]


def test_late_system_message_is_rejected():
    prompt = [UserMessage(content=[TextPart(text="Go")]), SystemMessage(content="Rules")]
    with pytest.raises(InvalidArgumentError):
        convert_to_google_prompt(prompt, False, ["google"])


def test_map_finish_reason():
    assert map_finish_reason("STOP", False) == "stop"
    assert map_finish_reason("SAFETY", False) == "content_filter"
    assert map_finish_reason("OTHER", False) == "other"
    assert map_finish_reason("MALFORMED_FUNCTION_CALL", False) == "error"
    assert map_finish_reason(None, False) == "unknown"


# --- Vertex ------------------------------------------------------------------

@pytest.fixture
def vertex_env(monkeypatch):
    for name in ("GOOGLE_VERTEX_ACCESS_TOKEN", "GOOGLE_CLOUD_ACCESS_TOKEN", "GOOGLE_VERTEX_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GOOGLE_VERTEX_PROJECT", "my-project")
    monkeypatch.setenv("GOOGLE_VERTEX_LOCATION", "us-central1")
    return monkeypatch


@pytest.mark.asyncio
async def test_vertex_url_and_bearer(vertex_env):
    vertex_env.setenv("GOOGLE_VERTEX_ACCESS_TOKEN", "ya29.token")
    transport = MockTransport().add_json(TEXT_RESPONSE)
    definition = ProviderDefinition(name="google-vertex", sdk_type=SdkType.GOOGLE_VERTEX)
    model = build_google_vertex_model(definition, "gemini-2.5-pro", Credentials.none(), transport)
    options = _options(provider_options={"google-vertex": {"labels": {"team": "a"}}, "google": {"labels": {"team": "b"}}})
    await model.do_generate(options)

    request = transport.requests[0]
    assert request.url == (
        "https://us-central1-aiplatform.googleapis.com/v1beta1/projects/my-project/locations/us-central1"
        "/publishers/google/models/gemini-2.5-pro:generateContent"
    )
    assert request.headers["authorization"] == "Bearer ya29.token"
    assert "x-goog-api-key" not in request.headers
    assert request.json()["labels"] == {"team": "a"}
    assert model.provider_name() == "google.vertex"


def test_vertex_express_mode_and_global_location(vertex_env):
    vertex_env.setenv("GOOGLE_VERTEX_LOCATION", "global")
    definition = ProviderDefinition(name="google-vertex", sdk_type=SdkType.GOOGLE_VERTEX)
    model = build_google_vertex_model(definition, "gemini-2.5-pro", Credentials(api_key="express"), MockTransport())

    assert model.config.headers["x-goog-api-key"] == "express"
    assert model.config.base_url.startswith("https://aiplatform.googleapis.com/v1beta1/projects/my-project/locations/global")


def test_vertex_requires_project_and_location(vertex_env):
    vertex_env.delenv("GOOGLE_VERTEX_PROJECT")
    definition = ProviderDefinition(name="google-vertex", sdk_type=SdkType.GOOGLE_VERTEX)
    with pytest.raises(InvalidArgumentError):
        build_google_vertex_model(definition, "gemini-2.5-pro", Credentials.none(), MockTransport())
