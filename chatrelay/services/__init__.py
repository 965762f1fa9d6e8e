"""Service layer orchestrating application use-cases."""

from chatrelay.services.completion_client import MockCompletionClient, OpenAICompletionClient, build_completion_client
from chatrelay.services.conversation_service import ConversationService
from chatrelay.services.database_service import DatabaseService
from chatrelay.services.identity_service import IdentityService
from chatrelay.services.stream_relay import StreamRelay

__all__ = [
    "ConversationService",
    "DatabaseService",
    "IdentityService",
    "MockCompletionClient",
    "OpenAICompletionClient",
    "StreamRelay",
    "build_completion_client",
]
