from datetime import datetime
from typing import Any, Dict, Optional, TypedDict


class NotificationDocument(TypedDict, total=False):
    _id: str
    user_id: str
    notification_type: str
    title: str
    body: str
    data: Dict[str, Any]
    is_read: bool
    action_url: Optional[str]
    created_at: datetime
