from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class MessageOut(BaseModel):

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    conversation_id: str
    sender_id: str
    content: str
    read_at: Optional[datetime] = None
    created_at: datetime


class ConversationView(BaseModel):

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    participant1_id: str
    participant2_id: str
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    other_user_id: str
    other_user_name: str = "Unknown User"
    other_user_photo: Optional[str] = None
    unread_count: int = 0


class CreateConversationIn(BaseModel):

    other_user_id: str = Field(min_length=1)


class SendMessageIn(BaseModel):

    content: str = Field(min_length=1)


class SocketFrameIn(BaseModel):
    """A client frame on the conversation socket."""

    type: Literal["typing", "message", "read"]
    is_typing: bool = False
    content: str = ""


class RealtimeEvent(BaseModel):
    """Envelope for everything published on the realtime bus."""

    event: Literal["INSERT", "UPDATE", "DELETE", "typing"]
    table: Optional[str] = None
    new: Optional[Dict[str, Any]] = None
    old: Optional[Dict[str, Any]] = None
    payload: Optional[Dict[str, Any]] = None
