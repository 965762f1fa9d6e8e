from pydantic import BaseModel, Field


class Principal(BaseModel):
    user_id: str = Field(..., description="Opaque identity-provider user identifier")
    session_id: str | None = Field(default=None, description="Identity-provider session identifier, when present")
