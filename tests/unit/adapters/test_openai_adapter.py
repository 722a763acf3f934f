"""Tests for OpenAIReplyAdapter — no network, the client is replaced by a stub."""

from types import SimpleNamespace

import httpx
import openai
import pytest

from supportdesk.adapters.llm.openai_adapter import OpenAIReplyAdapter
from supportdesk.domain.errors import UpstreamUnavailableError


class _StubCompletions:
    def __init__(self, content=None, error=None):
        self._content = content
        self._error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self._error is not None:
            raise self._error
        message = SimpleNamespace(content=self._content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _adapter_with(completions) -> OpenAIReplyAdapter:
    adapter = OpenAIReplyAdapter(api_key="sk-test", model="test-model")
    adapter._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return adapter


def test_unconfigured_without_key():
    assert not OpenAIReplyAdapter(api_key="").configured


@pytest.mark.asyncio
async def test_unconfigured_raises_upstream_unavailable():
    with pytest.raises(UpstreamUnavailableError):
        await OpenAIReplyAdapter(api_key="").generate_reply("hi")


@pytest.mark.asyncio
async def test_reply_is_stripped_and_prompted():
    completions = _StubCompletions(content="  Restart the router.  ")
    reply = await _adapter_with(completions).generate_reply("Internet is down")

    assert reply == "Restart the router."
    call = completions.calls[0]
    assert call["model"] == "test-model"
    assert call["messages"][0]["role"] == "system"
    assert call["messages"][1] == {"role": "user", "content": "Internet is down"}


@pytest.mark.asyncio
async def test_api_error_becomes_upstream_unavailable():
    error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.test/v1/chat"))
    with pytest.raises(UpstreamUnavailableError):
        await _adapter_with(_StubCompletions(error=error)).generate_reply("hi")


@pytest.mark.asyncio
async def test_empty_reply_becomes_upstream_unavailable():
    with pytest.raises(UpstreamUnavailableError):
        await _adapter_with(_StubCompletions(content="   ")).generate_reply("hi")
