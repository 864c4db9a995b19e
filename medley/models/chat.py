# medley/models/chat.py

from enum import Enum
from uuid import uuid4
from pydantic import BaseModel, Field


class ChatRole(str, Enum):
    USER = "user"
    MODEL = "model"
    SYSTEM = "system"


class ChatMessage(BaseModel):
    """
    One entry of the conversation history.

    The id is independent of the content so the display layer can target a
    message and update it in place while it streams.
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    role: ChatRole
    text: str = ""
    is_streaming: bool = False

    @property
    def is_placeholder(self) -> bool:
        # Rendered as a typing indicator
        return self.is_streaming and not self.text
