from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
import logging
from pathlib import Path
import re
from typing import Any

from openai import APIError, APIStatusError, APITimeoutError, AsyncOpenAI, AsyncStream, RateLimitError
from openai.types.chat import ChatCompletionChunk

from chatrelay.core.settings import Settings
from chatrelay.errors import UpstreamError
from chatrelay.services.contracts import CompletionClientProtocol

logger = logging.getLogger(__name__)

_MOCK_MESSAGE_DELIMITER = "\n\n--- message ---\n\n"
_MOCK_FRAGMENT_PATTERN = re.compile(r"\s*\S+")


def map_openai_error(exc: Exception) -> UpstreamError:
    if isinstance(exc, APITimeoutError):
        return UpstreamError(str(exc), status_code=504)
    if isinstance(exc, RateLimitError):
        return UpstreamError(str(exc), status_code=429)
    if isinstance(exc, APIStatusError):
        # Any other upstream rejection, 4xx included, is a relay-side failure for the caller.
        return UpstreamError(f"upstream returned {exc.status_code}: {exc}", status_code=502)
    return UpstreamError(str(exc) or "upstream completion call failed", status_code=502)


class OpenAICompletionStream:
    """Adapts an SDK chunk stream to raw UTF-8 text fragments."""

    def __init__(self, stream: AsyncStream[ChatCompletionChunk]) -> None:
        self._stream = stream

    async def __aiter__(self) -> AsyncIterator[bytes]:
        async for chunk in self._stream:
            if not chunk.choices:
                continue
            text = chunk.choices[0].delta.content
            if text:
                yield text.encode("utf-8")

    async def aclose(self) -> None:
        await self._stream.close()


class OpenAICompletionClient:
    def __init__(
        self,
        api_key: str,
        timeout_seconds: float = 60.0,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
            max_retries=0,
        )

    async def open_stream(self, *, model: str, messages: list[dict[str, Any]]) -> OpenAICompletionStream:
        try:
            stream = await self._client.chat.completions.create(model=model, messages=messages, stream=True)
        except APIError as exc:
            raise map_openai_error(exc) from exc
        return OpenAICompletionStream(stream)

    async def close(self) -> None:
        await self._client.close()


class MockCompletionStream:
    def __init__(self, fragments: list[str], delay_seconds: float = 0.0) -> None:
        self._fragments = fragments
        self._delay_seconds = delay_seconds
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for fragment in self._fragments:
            if self.closed:
                return
            yield fragment.encode("utf-8")
            if self._delay_seconds:
                await asyncio.sleep(self._delay_seconds)

    async def aclose(self) -> None:
        self.closed = True


def _load_mock_messages(messages_file: str) -> list[str]:
    path = Path(messages_file)
    raw_content = path.read_text(encoding="utf-8")
    parsed_messages = [chunk.strip() for chunk in raw_content.split(_MOCK_MESSAGE_DELIMITER)]
    messages = [message for message in parsed_messages if message]
    if not messages:
        raise ValueError(
            f"No mock messages found in {path}. Use delimiter {_MOCK_MESSAGE_DELIMITER!r} between messages."
        )
    return messages


class MockCompletionClient:
    """File-driven offline upstream that cycles through canned responses word by word."""

    def __init__(self, messages_file: str, delay_seconds: float = 0.0) -> None:
        self._messages = _load_mock_messages(messages_file)
        self._delay_seconds = delay_seconds
        self._next_index = 0
        logger.info("loaded mock completion responses", extra={"responses_count": len(self._messages)})

    async def open_stream(self, *, model: str, messages: list[dict[str, Any]]) -> MockCompletionStream:
        logger.debug("serving mock completion", extra={"model": model, "messages_count": len(messages)})
        response = self._messages[self._next_index]
        self._next_index = (self._next_index + 1) % len(self._messages)
        return MockCompletionStream(_MOCK_FRAGMENT_PATTERN.findall(response), delay_seconds=self._delay_seconds)

    async def close(self) -> None:
        return None


def build_completion_client(settings: Settings) -> CompletionClientProtocol:
    if settings.chat_use_mock_upstream:
        logger.info("using mock completion client", extra={"responses_file": settings.chat_mock_responses_file})
        return MockCompletionClient(settings.chat_mock_responses_file, delay_seconds=0.02)

    if not settings.openai_api_key:
        raise ValueError("OPENAI_API_KEY required unless CHAT_USE_MOCK_UPSTREAM is enabled")
    logger.info("using OpenAI completion client", extra={"model": settings.chat_model})
    return OpenAICompletionClient(
        settings.openai_api_key,
        timeout_seconds=settings.upstream_timeout_seconds,
        base_url=settings.openai_base_url,
    )
