"""Pydantic schemas for conversations and the chat API."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ConversationRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ConversationTurn(BaseModel):
    role: ConversationRole
    content: str

    def to_message(self) -> dict[str, str]:
        """Chat-completions message dict for this turn."""
        return {"role": self.role.value, "content": self.content}


class AgentResponse(BaseModel):
    message: str


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
    user_id: int


class MessageResponse(BaseModel):
    id: int
    user_id: int
    message: str
    is_agent_response: bool
    created_at: datetime | None = None

    def to_turn(self) -> ConversationTurn:
        role = ConversationRole.ASSISTANT if self.is_agent_response else ConversationRole.USER
        return ConversationTurn(role=role, content=self.message)


class ChatResponse(BaseModel):
    user_message: MessageResponse
    agent_message: MessageResponse
