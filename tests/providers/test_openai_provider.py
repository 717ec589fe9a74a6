import json

import httpx
import pytest

from detail_service.core.errors import AuthenticationError, MissingAPIKey, RateLimitError, UpstreamError
from detail_service.protocol.prompts import REASONING_SYSTEM_PROMPT
from detail_service.providers.openai.provider import (
    OpenAICompatibleProvider,
    delta_content,
    parse_sse_line,
)

MESSAGES = [{"role": "user", "content": "why is the sky blue?"}]


def sse_body(*deltas, done=True):
    lines = [": keep-alive", ""]
    for d in deltas:
        chunk = {"choices": [{"delta": {"content": d}, "finish_reason": None}]}
        lines.append(f"data: {json.dumps(chunk)}")
        lines.append("")
    if done:
        lines.append("data: [DONE]")
        lines.append("")
    return "\n".join(lines).encode("utf-8")


class Recorder:
    def __init__(self, status=200, body=b""):
        self.status = status
        self.body = body
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, content=self.body)


def make_provider(recorder, **kwargs):
    args = dict(
        name="openai",
        base_url="https://api.example.com/v1/",
        model="gpt-test",
        key_source="client",
        transport=httpx.MockTransport(recorder),
    )
    args.update(kwargs)
    return OpenAICompatibleProvider(**args)


async def collect(provider, api_key=None):
    return [d async for d in provider.stream(MESSAGES, api_key=api_key)]


def test_parse_sse_line():
    assert parse_sse_line("data: {\"a\": 1}") == "{\"a\": 1}"
    assert parse_sse_line("data:[DONE]") == "[DONE]"
    assert parse_sse_line(": comment") is None
    assert parse_sse_line("event: ping") is None
    assert parse_sse_line("") is None


def test_delta_content():
    assert delta_content({"choices": [{"delta": {"content": "hi"}}]}) == "hi"
    assert delta_content({"choices": [{"delta": {"role": "assistant"}}]}) == ""
    assert delta_content({"choices": []}) == ""


def test_invalid_key_source():
    with pytest.raises(ValueError):
        OpenAICompatibleProvider(name="x", base_url="u", model="m", key_source="header")


@pytest.mark.asyncio
async def test_streams_deltas_and_sends_request():
    recorder = Recorder(body=sse_body("Step-by-step ", "reasoning:", "\nok"))
    provider = make_provider(recorder, max_tokens=1000, temperature=0.7)

    assert await collect(provider, api_key="sk-client") == ["Step-by-step ", "reasoning:", "\nok"]

    request = recorder.requests[0]
    assert str(request.url) == "https://api.example.com/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-client"
    payload = json.loads(request.content)
    assert payload == {
        "model": "gpt-test",
        "messages": MESSAGES,
        "stream": True,
        "max_tokens": 1000,
        "temperature": 0.7,
    }


@pytest.mark.asyncio
async def test_stops_at_done_and_skips_malformed():
    body = b"data: not-json\n\n" + sse_body("a") + sse_body("b") + b"data: {\"choices\": [{\"delta\": {\"content\": \"late\"}}]}\n"
    provider = make_provider(Recorder(body=body))
    assert await collect(provider, api_key="k") == ["a"]


@pytest.mark.asyncio
async def test_server_key_and_system_prompt(monkeypatch):
    monkeypatch.setenv("DEEPSEEK_TEST_KEY", "sk-server")
    recorder = Recorder(body=sse_body("x"))
    provider = make_provider(
        recorder, name="deepseek", key_source="server", api_key_env="DEEPSEEK_TEST_KEY", system_prompt=True
    )
    assert provider.requires_client_key is False

    await collect(provider, api_key="ignored")

    request = recorder.requests[0]
    assert request.headers["Authorization"] == "Bearer sk-server"
    messages = json.loads(request.content)["messages"]
    assert messages[0] == {"role": "system", "content": REASONING_SYSTEM_PROMPT}
    assert messages[1:] == MESSAGES


@pytest.mark.asyncio
async def test_custom_system_prompt_text():
    recorder = Recorder(body=sse_body("x"))
    provider = make_provider(recorder, system_prompt="Be brief.")
    await collect(provider, api_key="k")
    assert json.loads(recorder.requests[0].content)["messages"][0]["content"] == "Be brief."


@pytest.mark.asyncio
async def test_missing_client_key():
    recorder = Recorder(body=sse_body("x"))
    provider = make_provider(recorder)
    assert provider.requires_client_key is True
    with pytest.raises(MissingAPIKey) as exc_info:
        await collect(provider)
    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "OpenAI API key is required"
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_missing_server_key(monkeypatch):
    monkeypatch.delenv("UNSET_TEST_KEY", raising=False)
    provider = make_provider(Recorder(), key_source="server", api_key_env="UNSET_TEST_KEY")
    with pytest.raises(MissingAPIKey) as exc_info:
        await collect(provider)
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,error",
    [(401, AuthenticationError), (429, RateLimitError), (500, UpstreamError), (400, UpstreamError)],
)
async def test_error_statuses(status, error):
    provider = make_provider(Recorder(status=status, body=b'{"error": {"message": "nope"}}'))
    with pytest.raises(error) as exc_info:
        await collect(provider, api_key="k")
    assert exc_info.value.status_code == status
    assert "nope" in exc_info.value.details


@pytest.mark.asyncio
async def test_error_inside_stream():
    body = sse_body("partial", done=False) + b'data: {"error": {"message": "overloaded"}}\n\n'
    provider = make_provider(Recorder(body=body))
    seen = []
    with pytest.raises(UpstreamError) as exc_info:
        async for delta in provider.stream(MESSAGES, api_key="k"):
            seen.append(delta)
    assert seen == ["partial"]
    assert exc_info.value.details == "overloaded"
