from datetime import datetime

from pydantic import BaseModel, Field

from chatrelay.api.schemas.chat import TurnRole

DEFAULT_CONVERSATION_TITLE = "New Conversation"


class ConversationCreateRequest(BaseModel):
    title: str = Field(default=DEFAULT_CONVERSATION_TITLE, min_length=1, max_length=200)


class ConversationUpdateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200, description="New conversation title")


class ConversationResponse(BaseModel):
    conversation_id: str = Field(..., description="Opaque conversation identifier")
    user_id: str = Field(..., description="Owning user identifier")
    title: str = Field(..., description="User-editable conversation title")
    created_at: datetime = Field(..., description="Conversation creation timestamp")


class MessageCreateRequest(BaseModel):
    message_num: int = Field(..., ge=0, description="Position of the turn in the conversation transcript")
    role: TurnRole
    content: str


class MessageResponse(BaseModel):
    conversation_id: str
    message_num: int = Field(..., description="Per-conversation ordering key (ascending is display order)")
    role: TurnRole
    content: str
    created_at: datetime | None = None
