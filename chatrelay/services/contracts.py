from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from typing import Any, Protocol

import asyncpg

from chatrelay.api.schemas.auth import Principal
from chatrelay.api.schemas.chat import Turn


class DatabaseServiceProtocol(Protocol):
    """Abstraction for async SQL execution against the chat Postgres store."""

    async def connect(self) -> None:
        """Initialize underlying DB resources before request handling begins."""

    async def disconnect(self) -> None:
        """Release open DB resources during application shutdown."""

    async def fetchrow(self, query: str, *args: object) -> asyncpg.Record | None:
        """Execute a query and return a single row, or ``None`` when no row matches."""

    async def fetch(self, query: str, *args: object) -> Sequence[asyncpg.Record]:
        """Execute a query and return all matching rows."""

    async def execute(self, query: str, *args: object) -> str:
        """Execute a write statement and return the backend status string."""


class ConversationServiceProtocol(Protocol):
    """Persistence contract for conversations and their ordered messages."""

    async def create_conversation(self, user_id: str, title: str) -> asyncpg.Record:
        """Create a conversation owned by ``user_id`` and return its row."""

    async def list_conversations(self, user_id: str) -> Sequence[asyncpg.Record]:
        """Return the user's conversations, newest first."""

    async def get_conversation(self, user_id: str, conversation_id: str) -> asyncpg.Record | None:
        """Load a conversation only when it exists and belongs to ``user_id``."""

    async def rename_conversation(self, user_id: str, conversation_id: str, title: str) -> asyncpg.Record | None:
        """Change a conversation title; ``None`` when not found for this user."""

    async def delete_conversation(self, user_id: str, conversation_id: str) -> bool:
        """Delete a conversation and its messages; ``False`` when not found for this user."""

    async def create_message(
        self,
        *,
        conversation_id: str,
        message_num: int,
        role: str,
        content: str,
    ) -> asyncpg.Record:
        """Insert or idempotently overwrite the message at ``message_num``."""

    async def list_messages(self, conversation_id: str) -> Sequence[asyncpg.Record]:
        """Return all messages of a conversation ordered by ``message_num`` ascending."""


class IdentityServiceProtocol(Protocol):
    """Identity-provider session verification contract."""

    def issue_access_token(self, principal: Principal) -> str:
        """Issue a signed session token for the given principal."""

    def principal_from_token(self, token: str | None) -> Principal | None:
        """Validate a session token and return its principal, or ``None`` if invalid."""


class CompletionStream(Protocol):
    """Live upstream byte stream; must be closed to release the connection."""

    def __aiter__(self) -> AsyncIterator[bytes]:
        """Iterate UTF-8 text fragments in arrival order."""

    async def aclose(self) -> None:
        """Release the upstream connection, also when iteration stopped early."""


class CompletionClientProtocol(Protocol):
    """Upstream completion service producing a streamed plain-text answer."""

    async def open_stream(self, *, model: str, messages: list[dict[str, Any]]) -> CompletionStream:
        """Start one streaming completion; raises ``UpstreamError`` if it cannot start."""

    async def close(self) -> None:
        """Release client resources during shutdown."""


class StreamRelayProtocol(Protocol):
    """Relay contract used by the chat endpoint."""

    async def open(self, messages: Sequence[Turn] | None) -> CompletionStream:
        """Validate the transcript and open the upstream stream."""

    def forward(self, stream: CompletionStream) -> CompletionStream:
        """Wrap the upstream stream as a response body yielding its bytes unmodified.

        Closing the body releases the upstream stream, also when it was never iterated.
        """
