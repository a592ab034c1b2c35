from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from campus_chat.core.config import settings
from campus_chat.database.connection import get_client, mongo_db_dependency
from campus_chat.repositories.conversation_repository import ConversationRepository
from campus_chat.repositories.device_repository import DeviceRepository
from campus_chat.repositories.message_repository import MessageRepository
from campus_chat.repositories.notification_repository import NotificationRepository
from campus_chat.repositories.profile_repository import ProfileRepository
from campus_chat.services.chat_service import ChatService
from campus_chat.services.notification_service import NotificationService
from campus_chat.utils.notifications import push_dependency
from campus_chat.utils.realtime_bus import bus_dependency
from campus_chat.utils.security import decode_access_token


bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme)) -> dict:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return {"_id": sub}


def user_id_from_ws_token(token: str | None) -> str | None:
    if not token:
        return None
    try:
        return decode_access_token(token).get("sub")
    except JWTError:
        return None


def get_notification_service(
    db=Depends(mongo_db_dependency),
    bus=Depends(bus_dependency),
    push=Depends(push_dependency),
) -> NotificationService:
    return NotificationService(NotificationRepository(db), DeviceRepository(db), bus, push)


def get_chat_service(
    db=Depends(mongo_db_dependency),
    bus=Depends(bus_dependency),
    notification_service: NotificationService = Depends(get_notification_service),
) -> ChatService:
    client = get_client() if settings.MONGO_TRANSACTIONS else None
    return ChatService(
        MessageRepository(db),
        ConversationRepository(db),
        ProfileRepository(db),
        bus,
        notification_service=notification_service,
        client=client,
    )
