"""Shared test utilities and fixtures for chat relay tests."""

from __future__ import annotations

from datetime import UTC, datetime
from types import SimpleNamespace

import pytest
import punq

from chatrelay.api.schemas.auth import Principal
from chatrelay.core.settings import Settings
from chatrelay.services.identity_service import IdentityService

CONVERSATION_ID = "6f1c2a4e-8d0b-4c36-9a57-0c1f5e7d2b90"
CREATED_AT = datetime(2026, 2, 19, 12, 0, tzinfo=UTC)


class FakeDatabaseService:
    """Shared fake DB service used at the external DB boundary in unit tests."""

    def __init__(self) -> None:
        self.fetchrow_calls: list[tuple[str, tuple]] = []
        self.fetch_calls: list[tuple[str, tuple]] = []
        self.execute_calls: list[tuple[str, tuple]] = []
        self.execute_status = "DELETE 1"

    async def fetchrow(self, query: str, *args):
        self.fetchrow_calls.append((query, args))
        if "INSERT INTO conversations" in query:
            return {"conversation_id": CONVERSATION_ID, "user_id": args[0], "title": args[1], "created_at": CREATED_AT}
        if "UPDATE conversations" in query:
            return {"conversation_id": args[0], "user_id": args[1], "title": args[2], "created_at": CREATED_AT}
        if "INSERT INTO messages" in query:
            return {
                "conversation_id": args[0],
                "message_num": args[1],
                "role": args[2],
                "content": args[3],
                "created_at": CREATED_AT,
            }
        if "FROM conversations" in query:
            return {"conversation_id": args[0], "user_id": args[1], "title": "New Conversation", "created_at": CREATED_AT}
        return None

    async def fetch(self, query: str, *args):
        self.fetch_calls.append((query, args))
        if "FROM messages" in query:
            return [
                {"conversation_id": args[0], "message_num": 0, "role": "user", "content": "hi", "created_at": CREATED_AT},
                {"conversation_id": args[0], "message_num": 1, "role": "assistant", "content": "Hello!", "created_at": CREATED_AT},
            ]
        return [{"conversation_id": CONVERSATION_ID, "user_id": args[0], "title": "New Conversation", "created_at": CREATED_AT}]

    async def execute(self, query: str, *args):
        self.execute_calls.append((query, args))
        return self.execute_status


class FakeCompletionStream:
    """Upstream stream double yielding fixed chunks, optionally failing after them."""

    def __init__(self, chunks: list[bytes], error: Exception | None = None) -> None:
        self.chunks = chunks
        self.error = error
        self.yielded: list[bytes] = []
        self.closed = False
        self.close_calls = 0

    async def __aiter__(self):
        for chunk in self.chunks:
            self.yielded.append(chunk)
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self) -> None:
        self.close_calls += 1
        self.closed = True


class FakeCompletionClient:
    """Completion client double recording every upstream request."""

    def __init__(
        self,
        chunks: list[bytes] | None = None,
        *,
        open_error: Exception | None = None,
        stream_error: Exception | None = None,
    ) -> None:
        self.chunks = chunks or []
        self.open_error = open_error
        self.stream_error = stream_error
        self.calls: list[dict[str, object]] = []
        self.streams: list[FakeCompletionStream] = []
        self.closed = False

    async def open_stream(self, *, model: str, messages: list[dict[str, object]]) -> FakeCompletionStream:
        self.calls.append({"model": model, "messages": messages})
        if self.open_error is not None:
            raise self.open_error
        stream = FakeCompletionStream(list(self.chunks), error=self.stream_error)
        self.streams.append(stream)
        return stream

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_database_service() -> FakeDatabaseService:
    return FakeDatabaseService()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        APP_ENV="local",
        CHAT_MODEL="gpt-test",
        AUTH_JWT_SECRET="test-secret-with-safe-length-1234567890",
    )


@pytest.fixture
def identity_service(test_settings: Settings) -> IdentityService:
    return IdentityService(test_settings)


@pytest.fixture
def principal() -> Principal:
    return Principal(user_id="user_2abc", session_id="sess_1")


@pytest.fixture
def auth_headers(identity_service: IdentityService, principal: Principal) -> dict[str, str]:
    return {"Authorization": f"Bearer {identity_service.issue_access_token(principal)}"}


def build_test_request(container: punq.Container, *, headers: dict[str, str] | None = None, cookies: dict[str, str] | None = None):
    """Build a request-shaped object using a real punq container in app state."""

    return SimpleNamespace(
        app=SimpleNamespace(state=SimpleNamespace(container=container)),
        headers=headers or {},
        cookies=cookies or {},
    )


def build_test_container(bindings: dict[object, object]) -> punq.Container:
    """Create a punq container and bind protocol/service keys to test doubles."""

    container = punq.Container()
    for key, value in bindings.items():
        container.register(key, instance=value)
    return container
