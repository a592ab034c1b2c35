import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from campus_chat.core.config import settings
from campus_chat.core.logging import configure_logging
from campus_chat.database.connection import close_mongo_connection, connect_to_mongo, get_database
from campus_chat.repositories.conversation_repository import ConversationRepository
from campus_chat.repositories.device_repository import DeviceRepository
from campus_chat.repositories.message_repository import MessageRepository
from campus_chat.repositories.notification_repository import NotificationRepository
from campus_chat.routers.chat import router as ws_router
from campus_chat.routers.conversations import router as conversations_router
from campus_chat.routers.devices import router as devices_router
from campus_chat.routers.notifications import router as notifications_router
from campus_chat.routers.presence import router as presence_router
from campus_chat.routers.profiles import router as profiles_router
from campus_chat.services.errors import ChatError, NotParticipantError
from campus_chat.utils.realtime_bus import close_bus, get_bus


logger = logging.getLogger(__name__)


async def ensure_indexes() -> None:
    db = get_database()
    await ConversationRepository(db).ensure_indexes()
    await MessageRepository(db).ensure_indexes()
    await NotificationRepository(db).ensure_indexes()
    await DeviceRepository(db).ensure_indexes()


@asynccontextmanager
async def lifespan(app: FastAPI):

    configure_logging(debug=settings.DEBUG)
    await connect_to_mongo()
    await ensure_indexes()
    await get_bus()
    logger.info("campus-chat started environment=%s", settings.ENVIRONMENT)
    try:
        yield
    finally:
        await close_bus()
        await close_mongo_connection()


app = FastAPI(title="Campus Chat", lifespan=lifespan)


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError):
    status_code = 403 if isinstance(exc, NotParticipantError) else 404
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


app.include_router(conversations_router)
app.include_router(notifications_router)
app.include_router(devices_router)
app.include_router(presence_router)
app.include_router(profiles_router)
app.include_router(ws_router)


@app.get("/health")
async def health():
    return {"ok": True}
