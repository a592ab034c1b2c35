from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationOut(BaseModel):

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    user_id: str
    type: str = "system"
    notification_type: str = "system"
    title: str = ""
    body: str = ""
    message: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False
    action_url: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "NotificationOut":
        """Normalize a stored row; older rows carry `type`/`message` instead of `notification_type`/`body`."""
        kind = doc.get("notification_type") or doc.get("type") or "system"
        body = doc.get("body") or doc.get("message") or ""
        return cls(
            id=str(doc.get("_id", doc.get("id"))),
            user_id=doc["user_id"],
            type=kind,
            notification_type=kind,
            title=doc.get("title") or "",
            body=body,
            message=body,
            data=doc.get("data") or {},
            is_read=bool(doc.get("is_read", False)),
            action_url=doc.get("action_url") or None,
            created_at=doc.get("created_at"),
        )


class PushIn(BaseModel):

    user_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    body: str = Field(min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)


class DeviceRegisterIn(BaseModel):

    platform: str = "fcm"
    token: str = Field(min_length=1)
