from datetime import datetime
from typing import Optional, TypedDict


class MessageDocument(TypedDict, total=False):
    _id: str
    conversation_id: str
    sender_id: str
    content: str
    # set once by the receiving participant, never cleared
    read_at: Optional[datetime]
    created_at: datetime
