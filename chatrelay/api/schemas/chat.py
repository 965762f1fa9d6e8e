from typing import Literal

from pydantic import BaseModel, Field

TurnRole = Literal["user", "assistant", "system"]


class Turn(BaseModel):
    role: TurnRole = Field(..., description="Speaker of the turn")
    content: str = Field(..., description="Plain-text turn content")


class ChatRequest(BaseModel):
    messages: list[Turn] | None = Field(
        default=None,
        description="Full conversation transcript in display order; the last turn is usually the newest user turn",
    )
