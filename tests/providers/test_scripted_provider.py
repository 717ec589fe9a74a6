import pytest

from detail_service.protocol.prompts import build_messages
from detail_service.protocol.sections import classify
from detail_service.providers.scripted.provider import ScriptedProvider


@pytest.mark.asyncio
async def test_streams_script_in_chunks():
    provider = ScriptedProvider(script="abcdefghij", chunk_size=4)
    chunks = [c async for c in provider.stream([{"role": "user", "content": "hi"}])]
    assert chunks == ["abcd", "efgh", "ij"]


@pytest.mark.asyncio
async def test_default_script_splits_into_sections():
    provider = ScriptedProvider(chunk_size=3)
    messages = build_messages("why is the sky blue?", [{"title": "t", "url": "u", "content": "c"}])
    text = "".join([c async for c in provider.stream(messages)])
    result = classify(text)
    assert "why is the sky blue?" in result.reasoning
    assert result.final_answer == "This is a scripted answer to: why is the sky blue?"


@pytest.mark.asyncio
async def test_without_question_line_uses_whole_message():
    provider = ScriptedProvider(script="{query}")
    chunks = [c async for c in provider.stream([{"role": "user", "content": " plain "}])]
    assert "".join(chunks) == "plain"
