"""Client-side transcript state for one chat view.

``IncrementalMessageReducer`` folds relayed byte chunks into a transcript:
the first chunk of an exchange appends an assistant turn, every later chunk
replaces that turn with ``previous + text``. ``ChatSession`` owns the
transcript, enforces one exchange at a time and applies the scroll policy.
"""

from __future__ import annotations

import codecs
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Protocol

from chatrelay.api.schemas.chat import Turn
from chatrelay.errors import ExchangeInProgressError, InputError

logger = logging.getLogger(__name__)


class ExchangeState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    FINALIZED = "finalized"
    FAILED = "failed"


class IncrementalMessageReducer:
    """Applies one exchange's stream chunks to a transcript it does not own."""

    def __init__(self, transcript: list[Turn]) -> None:
        self._transcript = transcript
        # Chunk boundaries may split a multi-byte character; the decoder carries the remainder.
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._chunks_received = 0
        self._closed = False
        self._finalized: Turn | None = None

    @property
    def chunks_received(self) -> int:
        return self._chunks_received

    @property
    def pending_content(self) -> str | None:
        if not self._chunks_received:
            return None
        return self._transcript[-1].content

    def apply(self, chunk: bytes) -> None:
        if self._closed:
            raise RuntimeError("exchange already ended; no further chunks can be applied")
        if not chunk:
            return
        text = self._decoder.decode(chunk)
        if self._chunks_received == 0:
            self._transcript.append(Turn(role="assistant", content=text))
        else:
            self._extend_last(text)
        self._chunks_received += 1

    def finalize(self) -> Turn | None:
        """End the exchange; repeated calls return the same turn and change nothing."""
        if self._closed:
            return self._finalized
        self._closed = True
        tail = self._decoder.decode(b"", final=True)
        if not self._chunks_received:
            return None
        if tail:
            self._extend_last(tail)
        self._finalized = self._transcript[-1]
        return self._finalized

    def abandon(self) -> str | None:
        self._closed = True
        return self.pending_content

    def _extend_last(self, text: str) -> None:
        previous = self._transcript[-1]
        self._transcript[-1] = Turn(role="assistant", content=previous.content + text)


class Viewport(Protocol):
    def is_at_bottom(self) -> bool:
        """Whether the view currently shows the end of the transcript."""

    def content_resized(self, transcript: list[Turn]) -> None:
        """Recompute content extent after the transcript changed."""

    def scroll_to_bottom(self) -> None:
        """Move the view to the end of the content."""


@dataclass
class ScrollRegion:
    """Line-based viewport: content height is the rendered line count of the transcript."""

    client_height: float
    scroll_top: float = 0.0
    scroll_height: float = 0.0
    line_height: float = 1.0
    turn_padding_lines: int = 1
    tolerance: float = 10.0

    def is_at_bottom(self) -> bool:
        return self.scroll_top + self.client_height >= self.scroll_height - self.tolerance

    def content_resized(self, transcript: list[Turn]) -> None:
        lines = sum(turn.content.count("\n") + 1 + self.turn_padding_lines for turn in transcript)
        self.scroll_height = lines * self.line_height

    def scroll_to_bottom(self) -> None:
        self.scroll_top = max(0.0, self.scroll_height - self.client_height)


class ChatSession:
    """Transcript and exchange state owned by one chat view."""

    def __init__(
        self,
        *,
        conversation_id: str | None = None,
        transcript: list[Turn] | None = None,
        viewport: Viewport | None = None,
    ) -> None:
        self.conversation_id = conversation_id
        self.transcript: list[Turn] = list(transcript or [])
        self.state = ExchangeState.IDLE
        self.exchange_index: int | None = None
        self.exchange_position: int | None = None
        self._abandoned: set[int] = set()
        self._viewport = viewport
        self._reducer: IncrementalMessageReducer | None = None
        if viewport is not None:
            viewport.content_resized(self.transcript)
            viewport.scroll_to_bottom()

    @property
    def streaming(self) -> bool:
        return self.state is ExchangeState.STREAMING

    @property
    def incomplete(self) -> bool:
        """A failed exchange left a partial assistant turn on screen."""
        return self.state is ExchangeState.FAILED and self._reducer is not None and self._reducer.chunks_received > 0

    @property
    def history(self) -> list[Turn]:
        """Transcript without the turns of failed exchanges; what upstream and the store see."""
        return [turn for index, turn in enumerate(self.transcript) if index not in self._abandoned]

    def submit(self, content: str) -> Turn:
        if self.streaming:
            raise ExchangeInProgressError("an assistant response is still streaming")
        if not content.strip():
            raise InputError("message must not be blank")
        turn = Turn(role="user", content=content)
        self._update_view(lambda: self.transcript.append(turn))
        self.exchange_index = len(self.transcript) - 1
        self.exchange_position = self.exchange_index - len(self._abandoned)
        self._reducer = IncrementalMessageReducer(self.transcript)
        self.state = ExchangeState.STREAMING
        return turn

    def feed(self, chunk: bytes) -> None:
        reducer = self._require_streaming()
        self._update_view(lambda: reducer.apply(chunk))

    def finish(self) -> Turn | None:
        if self.state is ExchangeState.FINALIZED and self._reducer is not None:
            return self._reducer.finalize()
        reducer = self._require_streaming()
        result: list[Turn | None] = []
        self._update_view(lambda: result.append(reducer.finalize()))
        self.state = ExchangeState.FINALIZED
        logger.debug("exchange finalized", extra={"chunks_received": reducer.chunks_received})
        return result[0]

    def fail(self) -> str | None:
        """Stop the exchange, keeping any partial assistant turn visible.

        The failed exchange's turns stay on screen but drop out of ``history``.
        """
        if not self.streaming or self._reducer is None:
            return None
        partial = self._reducer.abandon()
        self._abandoned.update(range(self.exchange_index, len(self.transcript)))
        self.state = ExchangeState.FAILED
        logger.info("exchange failed", extra={"partial_length": len(partial) if partial else 0})
        return partial

    def _require_streaming(self) -> IncrementalMessageReducer:
        if not self.streaming or self._reducer is None:
            raise RuntimeError(f"no exchange is streaming (state={self.state.value})")
        return self._reducer

    def _update_view(self, update) -> None:
        if self._viewport is None:
            update()
            return
        follow = self._viewport.is_at_bottom()
        update()
        self._viewport.content_resized(self.transcript)
        if follow:
            self._viewport.scroll_to_bottom()
