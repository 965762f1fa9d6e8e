from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import httpx
import openai
import pytest

from chatrelay.core.settings import Settings
from chatrelay.errors import UpstreamError
from chatrelay.services.completion_client import (
    MockCompletionClient,
    OpenAICompletionClient,
    build_completion_client,
    map_openai_error,
)

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _chunk(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class FakeSdkStream:
    def __init__(self, chunks: list[SimpleNamespace]) -> None:
        self._chunks = chunks
        self.closed = False

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk

    async def close(self) -> None:
        self.closed = True


class FakeOpenAIClient:
    def __init__(self, chunks: list[SimpleNamespace] | None = None, error: Exception | None = None) -> None:
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._chat_create))
        self.stream = FakeSdkStream(chunks or [])
        self.error = error
        self.called_with: dict | None = None
        self.closed = False

    async def _chat_create(self, **kwargs):
        self.called_with = kwargs
        if self.error is not None:
            raise self.error
        return self.stream

    async def close(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_openai_client_requests_stream_and_yields_utf8_text_fragments() -> None:
    fake = FakeOpenAIClient(
        chunks=[
            _chunk("He"),
            _chunk(None),
            SimpleNamespace(choices=[]),
            _chunk("llo"),
            _chunk("!"),
        ]
    )
    client = OpenAICompletionClient(api_key="x", client=fake)  # type: ignore[arg-type]
    messages = [{"role": "user", "content": "hi"}]

    stream = await client.open_stream(model="gpt-test", messages=messages)
    chunks = [chunk async for chunk in stream]
    await stream.aclose()

    assert fake.called_with == {"model": "gpt-test", "messages": messages, "stream": True}
    assert chunks == [b"He", b"llo", b"!"]
    assert fake.stream.closed is True


@pytest.mark.asyncio
async def test_openai_client_maps_rejected_call_to_upstream_error() -> None:
    error = openai.AuthenticationError(
        "invalid api key",
        response=httpx.Response(401, request=_REQUEST),
        body=None,
    )
    client = OpenAICompletionClient(api_key="x", client=FakeOpenAIClient(error=error))  # type: ignore[arg-type]

    with pytest.raises(UpstreamError) as exc:
        await client.open_stream(model="gpt-test", messages=[{"role": "user", "content": "hi"}])

    assert exc.value.status_code == 502


def test_map_openai_error_statuses() -> None:
    rate_limited = openai.RateLimitError("quota", response=httpx.Response(429, request=_REQUEST), body=None)
    bad_request = openai.BadRequestError("too long", response=httpx.Response(400, request=_REQUEST), body=None)
    server_error = openai.InternalServerError("boom", response=httpx.Response(503, request=_REQUEST), body=None)

    assert map_openai_error(openai.APITimeoutError(request=_REQUEST)).status_code == 504
    assert map_openai_error(rate_limited).status_code == 429
    assert map_openai_error(bad_request).status_code == 502
    assert "400" in map_openai_error(bad_request).message
    assert map_openai_error(server_error).status_code == 502
    assert map_openai_error(openai.APIConnectionError(request=_REQUEST)).status_code == 502


@pytest.mark.asyncio
async def test_openai_client_close_releases_sdk_client() -> None:
    fake = FakeOpenAIClient()
    client = OpenAICompletionClient(api_key="x", client=fake)  # type: ignore[arg-type]

    await client.close()

    assert fake.closed is True


@pytest.mark.asyncio
async def test_mock_client_cycles_responses_and_streams_whole_text(tmp_path: Path) -> None:
    responses = tmp_path / "responses.md"
    responses.write_text("Hello there, friend.\n\n--- message ---\n\nSecond  answer\nwith lines.", encoding="utf-8")
    client = MockCompletionClient(str(responses))

    first = await client.open_stream(model="gpt-test", messages=[])
    first_chunks = [chunk async for chunk in first]
    second = await client.open_stream(model="gpt-test", messages=[])
    second_text = b"".join([chunk async for chunk in second]).decode("utf-8")
    third = await client.open_stream(model="gpt-test", messages=[])
    third_text = b"".join([chunk async for chunk in third]).decode("utf-8")

    assert len(first_chunks) == 3
    assert b"".join(first_chunks).decode("utf-8") == "Hello there, friend."
    assert second_text == "Second  answer\nwith lines."
    assert third_text == "Hello there, friend."


@pytest.mark.asyncio
async def test_mock_stream_stops_after_close(tmp_path: Path) -> None:
    responses = tmp_path / "responses.md"
    responses.write_text("one two three four", encoding="utf-8")
    stream = await MockCompletionClient(str(responses)).open_stream(model="gpt-test", messages=[])

    received: list[bytes] = []
    async for chunk in stream:
        received.append(chunk)
        await stream.aclose()

    assert received == [b"one"]


def test_mock_client_rejects_empty_file(tmp_path: Path) -> None:
    responses = tmp_path / "responses.md"
    responses.write_text("\n\n--- message ---\n\n", encoding="utf-8")

    with pytest.raises(ValueError):
        MockCompletionClient(str(responses))


def test_build_completion_client_requires_api_key_for_real_upstream() -> None:
    with pytest.raises(ValueError):
        build_completion_client(Settings(OPENAI_API_KEY=None, CHAT_USE_MOCK_UPSTREAM=False))

    assert isinstance(build_completion_client(Settings(OPENAI_API_KEY="sk-test")), OpenAICompletionClient)


def test_build_completion_client_uses_mock_when_enabled(tmp_path: Path) -> None:
    responses = tmp_path / "responses.md"
    responses.write_text("canned", encoding="utf-8")

    client = build_completion_client(
        Settings(CHAT_USE_MOCK_UPSTREAM=True, CHAT_MOCK_RESPONSES_FILE=str(responses))
    )

    assert isinstance(client, MockCompletionClient)
