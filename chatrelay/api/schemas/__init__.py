from chatrelay.api.schemas.auth import Principal
from chatrelay.api.schemas.chat import ChatRequest, Turn, TurnRole
from chatrelay.api.schemas.conversations import (
    ConversationCreateRequest,
    ConversationResponse,
    ConversationUpdateRequest,
    MessageCreateRequest,
    MessageResponse,
)

__all__ = [
    "ChatRequest",
    "ConversationCreateRequest",
    "ConversationResponse",
    "ConversationUpdateRequest",
    "MessageCreateRequest",
    "MessageResponse",
    "Principal",
    "Turn",
    "TurnRole",
]
