from __future__ import annotations

import punq
from fastapi import Request

from chatrelay.core.settings import Settings
from chatrelay.services.completion_client import build_completion_client
from chatrelay.services.contracts import (
    CompletionClientProtocol,
    ConversationServiceProtocol,
    DatabaseServiceProtocol,
    IdentityServiceProtocol,
    StreamRelayProtocol,
)
from chatrelay.services.conversation_service import ConversationService
from chatrelay.services.database_service import DatabaseService
from chatrelay.services.identity_service import IdentityService
from chatrelay.services.stream_relay import StreamRelay


def build_container(settings: Settings) -> punq.Container:
    container = punq.Container()
    container.register(Settings, instance=settings)

    container.register(
        DatabaseServiceProtocol,
        factory=lambda: DatabaseService(
            dsn=settings.chat_db_dsn,
            reshape_schema_query=settings.reshape_schema_query,
            min_pool_size=settings.chat_db_pool_min_size,
            max_pool_size=settings.chat_db_pool_max_size,
        ),
        scope=punq.Scope.singleton,
    )
    container.register(
        CompletionClientProtocol,
        factory=lambda: build_completion_client(settings),
        scope=punq.Scope.singleton,
    )
    container.register(IdentityServiceProtocol, factory=IdentityService, scope=punq.Scope.singleton)
    container.register(ConversationServiceProtocol, factory=ConversationService, scope=punq.Scope.singleton)
    container.register(StreamRelayProtocol, factory=StreamRelay, scope=punq.Scope.singleton)

    return container


def get_container(request: Request) -> punq.Container:
    return request.app.state.container
