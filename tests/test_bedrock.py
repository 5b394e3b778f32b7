"""
Tests for the Amazon Bedrock Converse adapter and SigV4 signing.
"""
import json
from datetime import datetime, timezone

import pytest

from aisdk.catalog import ProviderDefinition, SdkType
from aisdk.exceptions import AuthenticationError, HttpStatusError, InvalidArgumentError, ProviderError
from aisdk.providers.bedrock import (
    build_bedrock_model,
    convert_to_bedrock_prompt,
    filter_prompt_if_no_tools,
    map_finish_reason,
    region_from_url,
)
from aisdk.providers.bedrock_signing import SigV4Credentials, prepare_signed_request, sign_request, signing_key
from aisdk.registry import Credentials
from aisdk.testing import MockTransport
from aisdk.transport import TransportConfig
from aisdk.types import (
    AssistantMessage,
    CallOptions,
    Finish,
    FunctionTool,
    JsonOutput,
    ReasoningContent,
    ReasoningPart,
    ResponseFormat,
    StreamStart,
    SystemMessage,
    TextContent,
    TextDelta,
    TextPart,
    ToolCallPart,
    ToolMessage,
    ToolResultPart,
    UserMessage,
)

MODEL = "anthropic.claude-3-5-sonnet-20240620-v1:0"

CONVERSE_RESPONSE = {
    "output": {"message": {"role": "assistant", "content": [
        {"text": "Let me check."},
        {"toolUse": {"toolUseId": "tu_1", "name": "lookup", "input": {"q": "x"}}},
    ]}},
    "stopReason": "tool_use",
    "usage": {"inputTokens": 3, "outputTokens": 4, "totalTokens": 7},
}


@pytest.fixture
def aws_env(monkeypatch):
    for name in ("AWS_BEARER_TOKEN_BEDROCK", "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_SESSION_TOKEN", "AWS_REGION"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def _definition(**kwargs):
    return ProviderDefinition(name="amazon-bedrock", sdk_type=SdkType.AMAZON_BEDROCK, **kwargs)


def _prompt():
    return [SystemMessage(content="Be brief."), UserMessage(content=[TextPart(text="Hello")])]


@pytest.mark.asyncio
async def test_generate_with_api_key(aws_env):
    transport = MockTransport().add_json(CONVERSE_RESPONSE)
    model = build_bedrock_model(_definition(), MODEL, Credentials(api_key="brk-key"), transport)
    tools = [FunctionTool(name="lookup", description="Search", input_schema={"type": "object"})]

    response = await model.do_generate(CallOptions(prompt=_prompt(), tools=tools, max_output_tokens=200))

    assert response.content[0] == TextContent(text="Let me check.")
    call = response.content[1]
    assert isinstance(call, ToolCallPart)
    assert call.tool_call_id == "tu_1"
    assert json.loads(call.input) == {"q": "x"}
    assert response.finish_reason == "tool_calls"
    assert response.usage.total_tokens == 7

    request = transport.requests[0]
    assert request.url == "https://bedrock-runtime.us-east-1.amazonaws.com/model/anthropic.claude-3-5-sonnet-20240620-v1%3A0/converse"
    assert request.headers["authorization"] == "Bearer brk-key"
    assert isinstance(request.body, bytes)
    assert request.json() == {
        "system": [{"text": "Be brief."}],
        "messages": [{"role": "user", "content": [{"text": "Hello"}]}],
        "inferenceConfig": {"maxTokens": 200},
        "toolConfig": {"tools": [{"toolSpec": {"name": "lookup", "inputSchema": {"json": {"type": "object"}}, "description": "Search"}}]},
    }


@pytest.mark.asyncio
async def test_generate_signs_with_sigv4(aws_env):
    aws_env.setenv("AWS_ACCESS_KEY_ID", "AKIDEXAMPLE")
    aws_env.setenv("AWS_SECRET_ACCESS_KEY", "secret")
    aws_env.setenv("AWS_SESSION_TOKEN", "session")
    transport = MockTransport().add_json(CONVERSE_RESPONSE)
    model = build_bedrock_model(_definition(query_params={"region": "eu-west-1"}), MODEL, Credentials.none(), transport)

    await model.do_generate(CallOptions(prompt=_prompt()))

    request = transport.requests[0]
    assert request.url.startswith("https://bedrock-runtime.eu-west-1.amazonaws.com/")
    assert request.headers["authorization"].startswith("AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/")
    assert "/eu-west-1/bedrock/aws4_request" in request.headers["authorization"]
    assert request.headers["host"] == "bedrock-runtime.eu-west-1.amazonaws.com"
    assert request.headers["x-amz-security-token"] == "session"
    assert "x-amz-date" in request.headers
    assert model.config.auth_mode == "sigv4"


def test_missing_credentials(aws_env):
    with pytest.raises(AuthenticationError):
        build_bedrock_model(_definition(), MODEL, Credentials.none(), MockTransport())


@pytest.mark.asyncio
async def test_stream_replays_converse_result(aws_env):
    transport = MockTransport().add_json(CONVERSE_RESPONSE)
    model = build_bedrock_model(_definition(), MODEL, Credentials(api_key="k"), transport)

    stream = await model.do_stream(CallOptions(prompt=_prompt()))
    parts = [p async for p in stream]

    assert isinstance(parts[0], StreamStart)
    assert next(p for p in parts if isinstance(p, TextDelta)).delta == "Let me check."
    assert next(p for p in parts if isinstance(p, ToolCallPart)).tool_name == "lookup"
    assert isinstance(parts[-1], Finish)
    assert parts[-1].finish_reason == "tool_calls"
    assert stream.request_body["messages"][0]["role"] == "user"


@pytest.mark.asyncio
async def test_json_response_uses_tool(aws_env):
    data = {
        "output": {"message": {"content": [{"toolUse": {"toolUseId": "j", "name": "json", "input": {"answer": 42}}}]}},
        "stopReason": "tool_use",
    }
    transport = MockTransport().add_json(data)
    model = build_bedrock_model(_definition(), MODEL, Credentials(api_key="k"), transport)
    schema = {"type": "object", "properties": {"answer": {"type": "number"}}}

    response = await model.do_generate(CallOptions(prompt=_prompt(), response_format=ResponseFormat(type="json", json_schema=schema)))

    assert json.loads(response.text) == {"answer": 42}
    assert response.tool_calls == []
    assert response.provider_metadata == {"bedrock": {"isJsonResponseFromTool": True}}
    tool_config = transport.requests[0].json()["toolConfig"]
    assert tool_config["toolChoice"] == {"tool": {"name": "json"}}


@pytest.mark.asyncio
async def test_error_message_is_parsed(aws_env):
    transport = MockTransport().add_error(HttpStatusError(400, '{"message": "Malformed input request"}'))
    model = build_bedrock_model(_definition(), MODEL, Credentials(api_key="k"), transport)
    with pytest.raises(ProviderError, match="Malformed input request"):
        await model.do_generate(CallOptions(prompt=_prompt()))


@pytest.mark.asyncio
async def test_anthropic_betas_merge_with_definition_header(aws_env):
    transport = MockTransport().add_json(CONVERSE_RESPONSE)
    model = build_bedrock_model(_definition(headers={"anthropic-beta": "b0"}), MODEL, Credentials(api_key="k"), transport)

    await model.do_generate(CallOptions(prompt=_prompt(), provider_options={"bedrock": {"anthropicBeta": ["b2", "b1", " "]}}))

    assert transport.requests[0].headers["anthropic-beta"] == "b0,b1,b2"


def test_reasoning_config_adds_budget(aws_env):
    model = build_bedrock_model(_definition(), MODEL, Credentials(api_key="k"), MockTransport())
    options = CallOptions(
        prompt=_prompt(),
        max_output_tokens=1000,
        temperature=0.5,
        seed=1,
        provider_options={"bedrock": {"reasoningConfig": {"type": "enabled", "budgetTokens": 2048}}},
    )
    command, warnings, uses_json_tool, betas = model.build_command(options)

    assert command["inferenceConfig"] == {"maxTokens": 3048}
    assert command["additionalModelRequestFields"] == {"thinking": {"type": "enabled", "budget_tokens": 2048}}
    assert [w.setting for w in warnings] == ["seed", "temperature"]
    assert not uses_json_tool
    assert betas == set()


def test_convert_prompt_groups_tool_results_and_trims_last_text():
    prompt = [
        SystemMessage(content="Rules", provider_options={"bedrock": {"cachePoint": {"type": "default"}}}),
        UserMessage(content=[TextPart(text="Hi")]),
        AssistantMessage(content=[
            ReasoningPart(text="think", provider_options={"bedrock": {"signature": "sig"}}),
            ToolCallPart(tool_call_id="t1", tool_name="lookup", input='{"q":1}'),
        ]),
        ToolMessage(content=[ToolResultPart(tool_call_id="t1", tool_name="lookup", output=JsonOutput(value={"r": 2}))]),
        UserMessage(content=[TextPart(text="and?")]),
        AssistantMessage(content=[TextPart(text="Sure  ")]),
    ]
    system, messages = convert_to_bedrock_prompt(prompt)

    assert system == [{"text": "Rules"}, {"cachePoint": {"type": "default"}}]
    assert messages[1] == {"role": "assistant", "content": [
        {"reasoningContent": {"reasoningText": {"text": "think", "signature": "sig"}}},
        {"toolUse": {"toolUseId": "t1", "name": "lookup", "input": {"q": 1}}},
    ]}
    assert messages[2] == {"role": "user", "content": [
        {"toolResult": {"toolUseId": "t1", "content": [{"text": '{"r":2}'}]}},
        {"text": "and?"},
    ]}
    assert messages[3] == {"role": "assistant", "content": [{"text": "Sure"}]}


def test_late_system_block_is_rejected():
    prompt = [UserMessage(content=[TextPart(text="Hi")]), SystemMessage(content="Rules")]
    with pytest.raises(InvalidArgumentError):
        convert_to_bedrock_prompt(prompt)


def test_tool_content_dropped_without_tools():
    prompt = [
        AssistantMessage(content=[ToolCallPart(tool_call_id="t1", tool_name="lookup", input="{}")]),
        ToolMessage(content=[ToolResultPart(tool_call_id="t1", tool_name="lookup", output=JsonOutput(value=1))]),
        UserMessage(content=[TextPart(text="next")]),
    ]
    filtered, warning = filter_prompt_if_no_tools(prompt, has_tools=False)
    assert len(filtered) == 1
    assert warning.setting == "toolContent"
    assert filter_prompt_if_no_tools(prompt, has_tools=True)[1] is None


def test_reasoning_response_metadata(aws_env):
    from aisdk.providers.bedrock import map_response_content

    content = map_response_content([
        {"reasoningContent": {"reasoningText": {"text": "why", "signature": "s"}}},
        {"reasoningContent": {"redactedReasoning": {"data": "opaque"}}},
    ], uses_json_tool=False)
    assert content == [
        ReasoningContent(text="why", provider_metadata={"bedrock": {"signature": "s"}}),
        ReasoningContent(text="", provider_metadata={"bedrock": {"redactedData": "opaque"}}),
    ]


def test_map_finish_reason():
    assert map_finish_reason("end_turn") == "stop"
    assert map_finish_reason("max_tokens") == "length"
    assert map_finish_reason("guardrail_intervened") == "content_filter"
    assert map_finish_reason("tool_use") == "tool_calls"
    assert map_finish_reason("mystery") == "unknown"


def test_region_from_url():
    assert region_from_url("https://bedrock-runtime.ap-south-1.amazonaws.com") == "ap-south-1"
    assert region_from_url("https://vpce.us-west-2.example.com") == "us-west-2"
    assert region_from_url("not a url") is None


# --- SigV4 ----------------------------------------------------------------------

def test_signing_key_known_vector():
    key = signing_key("wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY", "20120215", "us-east-1", "iam")
    assert key.hex() == "f4780e2d9f65fa895f9c67b32ce1baf0b0d8a43505a000a1a9e090d414db404d"


def test_sign_request_known_vector():
    credentials = SigV4Credentials("AKIDEXAMPLE", "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY")
    signed = sign_request(
        "GET",
        "https://example.amazonaws.com/",
        {},
        b"",
        "us-east-1",
        credentials,
        service="service",
        now=datetime(2015, 8, 30, 12, 36, 0, tzinfo=timezone.utc),
    )
    assert signed["x-amz-date"] == "20150830T123600Z"
    assert signed["authorization"] == (
        "AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/20150830/us-east-1/service/aws4_request, "
        "SignedHeaders=host;x-amz-date, "
        "Signature=5fa00fa31553b73ebf1942676e86291e8372ff2a2260956d9b8aae1d763fbf31"
    )


def test_prepare_signed_request_encodes_once():
    now = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    payload, headers = prepare_signed_request(
        "https://bedrock-runtime.us-east-1.amazonaws.com/model/m/converse",
        {"X-Custom": "1"},
        {"messages": [], "unused": None},
        TransportConfig(),
        "us-east-1",
        credentials=SigV4Credentials("AKID", "secret"),
        now=now,
    )
    assert payload == b'{"messages":[]}'
    assert headers["x-custom"] == "1"
    assert "content-type;host;x-amz-date;x-custom" in headers["authorization"]

    _, bearer_headers = prepare_signed_request("https://x.test", {}, {}, TransportConfig(), "us-east-1", api_key="brk")
    assert bearer_headers["authorization"] == "Bearer brk"
