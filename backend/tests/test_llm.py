import pytest


def _client_with(create):
    class _Completions:
        pass

    class _Chat:
        completions = _Completions()

    class _Client:
        chat = _Chat()

    _Client.chat.completions.create = create
    return _Client()


@pytest.mark.asyncio
async def test_complete_chat_empty_messages_short_circuit():
    from mockinterview.generation.llm import complete_chat

    result = await complete_chat([])
    assert result == ""


@pytest.mark.asyncio
async def test_complete_chat_success_with_mock(monkeypatch: pytest.MonkeyPatch):
    from mockinterview.generation import llm

    seen = {}

    class _Msg:
        content = "  Given an array of integers, return the indices of two numbers that add to a target.  "

    class _Choice:
        message = _Msg()

    class _Response:
        choices = [_Choice()]

    async def _fake_create(*args, **kwargs):
        seen.update(kwargs)
        return _Response()

    monkeypatch.setattr(llm, "_client", _client_with(_fake_create))

    result = await llm.complete_chat([{"role": "user", "content": "ask"}], temperature=0.9, max_tokens=120)
    assert result.startswith("Given an array")
    assert not result.endswith(" ")
    assert seen["temperature"] == 0.9
    assert seen["max_tokens"] == 120


@pytest.mark.asyncio
async def test_complete_chat_returns_empty_after_failures(monkeypatch: pytest.MonkeyPatch):
    from mockinterview.generation import llm

    calls = []

    async def _boom(*args, **kwargs):
        calls.append(1)
        raise RuntimeError("forced")

    monkeypatch.setattr(llm, "_client", _client_with(_boom))

    result = await llm.complete_chat([{"role": "user", "content": "ask"}], retries=1, timeout_sec=0.1)
    assert result == ""
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_complete_chat_without_api_key_returns_empty(monkeypatch: pytest.MonkeyPatch):
    from mockinterview.generation import llm

    monkeypatch.setattr(llm, "_client", None)
    monkeypatch.setattr(llm, "OPENAI_API_KEY", "")

    result = await llm.complete_chat([{"role": "user", "content": "ask"}])
    assert result == ""
    assert llm._client is None
