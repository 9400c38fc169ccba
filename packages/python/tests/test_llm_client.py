from types import SimpleNamespace

import httpx
import pytest
from openai import APIConnectionError

from moodreel_core.errors import CompletionError
from moodreel_core.llm_client import LlmClient, parse_json_content


class _FakeCompletions:
    def __init__(self, content=None, exc=None):
        self.content = content
        self.exc = exc
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.exc is not None:
            raise self.exc
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(completions: _FakeCompletions) -> LlmClient:
    fake = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return LlmClient(model="test-model", client=fake)


def test_parse_json_content_strips_fences():
    assert parse_json_content('```json\n{"a": 1}\n```') == {"a": 1}
    with pytest.raises(CompletionError):
        parse_json_content("not json")


@pytest.mark.asyncio
async def test_complete_requests_json_object():
    completions = _FakeCompletions(content='{"scores": {"joy": 80}}')
    data = await _client(completions).complete(system="sys", user="usr", temperature=0.3)
    assert data == {"scores": {"joy": 80}}
    assert completions.kwargs["model"] == "test-model"
    assert completions.kwargs["response_format"] == {"type": "json_object"}
    assert completions.kwargs["messages"][0] == {"role": "system", "content": "sys"}


@pytest.mark.asyncio
async def test_complete_rejects_non_object_json():
    with pytest.raises(CompletionError):
        await _client(_FakeCompletions(content="[1, 2]")).complete(system="s", user="u")


@pytest.mark.asyncio
async def test_complete_wraps_transport_errors():
    exc = APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
    with pytest.raises(CompletionError):
        await _client(_FakeCompletions(exc=exc)).complete(system="s", user="u")
