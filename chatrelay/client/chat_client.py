from __future__ import annotations

import logging
from typing import Any

import httpx

from chatrelay.api.schemas.chat import Turn
from chatrelay.api.schemas.conversations import ConversationResponse, MessageResponse
from chatrelay.client.reducer import ChatSession, ExchangeState, Viewport
from chatrelay.errors import StreamInterrupted, UpstreamError, error_from_status

logger = logging.getLogger(__name__)


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, dict) and "detail" in payload:
        return str(payload["detail"])
    return str(payload)


def _raise_for_error(response: httpx.Response) -> None:
    if response.is_success:
        return
    raise error_from_status(response.status_code, _error_detail(response))


class ChatClient:
    """HTTP client for the chat relay and the conversation store."""

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout_seconds: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._http = http_client or httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
        )

    async def __aenter__(self) -> ChatClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def send(self, session: ChatSession, content: str) -> Turn | None:
        """Run one exchange: submit, stream the answer into the session, then persist it.

        Both turns are persisted only after the stream finished cleanly. A
        failure leaves the session ``failed``; a partial answer stays in the
        transcript and is reported through ``StreamInterrupted``. Turns of
        earlier failed exchanges are neither sent upstream nor counted in
        ``message_num``, so stored positions stay contiguous.
        """
        session.submit(content)
        payload = {"messages": [turn.model_dump() for turn in session.history]}

        try:
            async with self._http.stream("POST", "/api/chat", json=payload) as response:
                if response.status_code != httpx.codes.OK:
                    await response.aread()
                    raise error_from_status(response.status_code, _error_detail(response))
                await self._consume(session, response)
            assistant_turn = session.finish()
        except httpx.TransportError as exc:
            logger.warning("chat relay request failed before streaming", extra={"error": str(exc)})
            raise UpstreamError(f"chat relay request failed: {exc}") from exc
        finally:
            if session.state is ExchangeState.STREAMING:
                session.fail()

        await self._persist_exchange(session, assistant_turn)
        return assistant_turn

    async def _consume(self, session: ChatSession, response: httpx.Response) -> None:
        try:
            async for chunk in response.aiter_bytes():
                session.feed(chunk)
        except httpx.TransportError as exc:
            partial = session.fail()
            logger.warning(
                "chat stream interrupted",
                extra={"partial_length": len(partial) if partial else 0, "error": str(exc)},
            )
            raise StreamInterrupted("response stream ended before completion", partial=partial) from exc

    async def _persist_exchange(self, session: ChatSession, assistant_turn: Turn | None) -> None:
        if session.conversation_id is None or session.exchange_index is None or session.exchange_position is None:
            return
        user_turn = session.transcript[session.exchange_index]
        position = session.exchange_position
        await self.create_message(session.conversation_id, position, user_turn)
        if assistant_turn is not None:
            await self.create_message(session.conversation_id, position + 1, assistant_turn)
        logger.debug(
            "exchange persisted",
            extra={"conversation_id": session.conversation_id, "message_num": position},
        )

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        response = await self._http.request(method, url, **kwargs)
        _raise_for_error(response)
        return response

    async def list_conversations(self) -> list[ConversationResponse]:
        response = await self._request("GET", "/api/conversations")
        return [ConversationResponse.model_validate(item) for item in response.json()]

    async def create_conversation(self, title: str | None = None) -> ConversationResponse:
        body = {"title": title} if title else None
        response = await self._request("POST", "/api/conversations", json=body)
        return ConversationResponse.model_validate(response.json())

    async def rename_conversation(self, conversation_id: str, title: str) -> ConversationResponse:
        response = await self._request("PUT", f"/api/conversations/{conversation_id}", json={"title": title})
        return ConversationResponse.model_validate(response.json())

    async def delete_conversation(self, conversation_id: str) -> None:
        await self._request("DELETE", f"/api/conversations/{conversation_id}")

    async def list_messages(self, conversation_id: str) -> list[MessageResponse]:
        response = await self._request("GET", f"/api/conversations/{conversation_id}/messages")
        return [MessageResponse.model_validate(item) for item in response.json()]

    async def create_message(self, conversation_id: str, message_num: int, turn: Turn) -> MessageResponse:
        response = await self._request(
            "POST",
            f"/api/conversations/{conversation_id}/messages",
            json={"message_num": message_num, "role": turn.role, "content": turn.content},
        )
        return MessageResponse.model_validate(response.json())

    async def load_session(self, conversation_id: str, viewport: Viewport | None = None) -> ChatSession:
        messages = await self.list_messages(conversation_id)
        transcript = [Turn(role=message.role, content=message.content) for message in messages]
        return ChatSession(conversation_id=conversation_id, transcript=transcript, viewport=viewport)
