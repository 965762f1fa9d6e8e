from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
import logging

from chatrelay.api.schemas.chat import Turn
from chatrelay.core.settings import Settings
from chatrelay.errors import InputError, StreamInterrupted
from chatrelay.services.contracts import CompletionClientProtocol, CompletionStream

logger = logging.getLogger(__name__)


class RelayedStream:
    """Response body over one upstream stream.

    ``aclose`` releases the upstream exactly once, also when iteration never
    started because the response was abandoned before its first byte.
    """

    def __init__(self, stream: CompletionStream) -> None:
        self._stream = stream
        self._chunks = self._relay()
        self._released = False
        self.forwarded_bytes = 0

    def __aiter__(self) -> RelayedStream:
        return self

    async def __anext__(self) -> bytes:
        return await self._chunks.__anext__()

    async def aclose(self) -> None:
        await self._chunks.aclose()
        await self._release()

    async def _release(self) -> None:
        if self._released:
            return
        self._released = True
        # Runs inside a cancelled task on disconnect; the close must still complete.
        await asyncio.shield(self._stream.aclose())

    async def _relay(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._stream:
                if not chunk:
                    continue
                self.forwarded_bytes += len(chunk)
                yield chunk
        except (asyncio.CancelledError, GeneratorExit):
            logger.info("client disconnected mid-stream", extra={"forwarded_bytes": self.forwarded_bytes})
            raise
        except Exception as exc:
            logger.exception("upstream stream failed", extra={"forwarded_bytes": self.forwarded_bytes})
            raise StreamInterrupted("upstream stream ended unexpectedly") from exc
        else:
            logger.info("upstream stream complete", extra={"forwarded_bytes": self.forwarded_bytes})
        finally:
            await self._release()


class StreamRelay:
    """Forwards a transcript upstream and relays the streamed answer byte for byte.

    Opening and forwarding are separate steps so that a failed upstream call
    surfaces as an ordinary error response before any body byte is written.
    Once forwarding starts the relay never inspects or rewrites the stream, and
    there is exactly one upstream attempt per request.
    """

    def __init__(self, completion_client: CompletionClientProtocol, settings: Settings) -> None:
        self._completion_client = completion_client
        self._model = settings.chat_model

    async def open(self, messages: Sequence[Turn] | None) -> CompletionStream:
        if not messages:
            raise InputError("messages must be a non-empty list")
        payload = [{"role": turn.role, "content": turn.content} for turn in messages]
        logger.info("opening upstream stream", extra={"model": self._model, "messages_count": len(payload)})
        return await self._completion_client.open_stream(model=self._model, messages=payload)

    def forward(self, stream: CompletionStream) -> RelayedStream:
        return RelayedStream(stream)
