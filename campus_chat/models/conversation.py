from datetime import datetime
from typing import Optional, TypedDict


class ConversationDocument(TypedDict, total=False):
    _id: str
    participant1_id: str
    participant2_id: str
    # sorted "a:b" of the two participants, unique
    pair_key: str
    last_message: Optional[str]
    last_message_at: Optional[datetime]
    created_at: datetime
