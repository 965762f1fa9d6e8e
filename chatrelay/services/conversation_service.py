from __future__ import annotations

from collections.abc import Sequence
import logging
import uuid

import asyncpg

from chatrelay.services.contracts import DatabaseServiceProtocol

logger = logging.getLogger(__name__)


def _is_conversation_id(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


class ConversationService:
    """Application service for conversation and message persistence."""

    def __init__(self, database: DatabaseServiceProtocol) -> None:
        self._database = database

    async def create_conversation(self, user_id: str, title: str) -> asyncpg.Record:
        row = await self._database.fetchrow(
            """
            INSERT INTO conversations (user_id, title)
            VALUES ($1, $2)
            RETURNING id::text AS conversation_id, user_id, title, created_at
            """,
            user_id,
            title,
        )
        assert row is not None
        logger.info("conversation created", extra={"conversation_id": row["conversation_id"]})
        return row

    async def list_conversations(self, user_id: str) -> Sequence[asyncpg.Record]:
        return await self._database.fetch(
            """
            SELECT id::text AS conversation_id, user_id, title, created_at
            FROM conversations
            WHERE user_id = $1
            ORDER BY created_at DESC
            """,
            user_id,
        )

    async def get_conversation(self, user_id: str, conversation_id: str) -> asyncpg.Record | None:
        """Ownership-scoped lookup; another user's conversation reads as missing."""
        if not _is_conversation_id(conversation_id):
            return None
        return await self._database.fetchrow(
            """
            SELECT id::text AS conversation_id, user_id, title, created_at
            FROM conversations
            WHERE id = $1::uuid AND user_id = $2
            """,
            conversation_id,
            user_id,
        )

    async def rename_conversation(self, user_id: str, conversation_id: str, title: str) -> asyncpg.Record | None:
        if not _is_conversation_id(conversation_id):
            return None
        return await self._database.fetchrow(
            """
            UPDATE conversations
            SET title = $3
            WHERE id = $1::uuid AND user_id = $2
            RETURNING id::text AS conversation_id, user_id, title, created_at
            """,
            conversation_id,
            user_id,
            title,
        )

    async def delete_conversation(self, user_id: str, conversation_id: str) -> bool:
        if not _is_conversation_id(conversation_id):
            return False
        status = await self._database.execute(
            "DELETE FROM conversations WHERE id = $1::uuid AND user_id = $2",
            conversation_id,
            user_id,
        )
        deleted = status.endswith(" 1")
        logger.info("conversation delete", extra={"conversation_id": conversation_id, "deleted": deleted})
        return deleted

    async def create_message(
        self,
        *,
        conversation_id: str,
        message_num: int,
        role: str,
        content: str,
    ) -> asyncpg.Record:
        """Persist a message at its transcript position; re-sending a position overwrites it."""
        row = await self._database.fetchrow(
            """
            INSERT INTO messages (conversation_id, message_num, role, content)
            VALUES ($1::uuid, $2, $3, $4)
            ON CONFLICT (conversation_id, message_num)
            DO UPDATE SET role = EXCLUDED.role, content = EXCLUDED.content
            RETURNING conversation_id::text AS conversation_id, message_num, role, content, created_at
            """,
            conversation_id,
            message_num,
            role,
            content,
        )
        assert row is not None
        return row

    async def list_messages(self, conversation_id: str) -> Sequence[asyncpg.Record]:
        return await self._database.fetch(
            """
            SELECT conversation_id::text AS conversation_id, message_num, role, content, created_at
            FROM messages
            WHERE conversation_id = $1::uuid
            ORDER BY message_num ASC
            """,
            conversation_id,
        )
