import asyncio
import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from campus_chat.core.config import settings
from campus_chat.schemas.chat import SocketFrameIn
from campus_chat.services.chat_service import ChatService
from campus_chat.services.errors import ConversationNotFoundError, NotParticipantError
from campus_chat.utils.dependencies import get_chat_service, user_id_from_ws_token
from campus_chat.utils.realtime_bus import bus_dependency, message_channel, notification_channel, typing_channel
from campus_chat.utils.websocket_manager import manager


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["realtime"])


async def _presence_heartbeat(bus, user_id: str) -> None:
    ttl = settings.PRESENCE_TTL_SECONDS
    while True:
        try:
            await bus.set_presence(user_id, ttl_seconds=ttl)
        except Exception:
            logger.warning("Presence heartbeat failed for user=%s", user_id, exc_info=True)
        await asyncio.sleep(ttl / 2)


async def _teardown(subscriptions, tasks) -> None:
    for sub in subscriptions:
        await sub.cancel()
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


@router.websocket("/conversations/{conversation_id}")
async def conversation_socket(websocket: WebSocket, conversation_id: str, service: ChatService = Depends(get_chat_service), bus=Depends(bus_dependency)):
    # JWT comes in the query string: ?token=...
    user_id = user_id_from_ws_token(websocket.query_params.get("token"))
    if not user_id:
        await websocket.close(code=4401)
        return
    try:
        await service.get_conversation_for(conversation_id, user_id)
    except ConversationNotFoundError:
        await websocket.close(code=4404)
        return
    except NotParticipantError:
        await websocket.close(code=4403)
        return

    await manager.connect(user_id, websocket)
    subscriptions = [
        await bus.subscribe(message_channel(conversation_id), websocket.send_text),
        await bus.subscribe(typing_channel(conversation_id), websocket.send_text),
    ]
    tasks = [asyncio.create_task(sub.run()) for sub in subscriptions]
    tasks.append(asyncio.create_task(_presence_heartbeat(bus, user_id)))
    try:
        while True:
            data = await websocket.receive_text()
            try:
                frame = SocketFrameIn.model_validate_json(data)
            except ValidationError:
                await websocket.send_text(json.dumps({"type": "error", "detail": "Invalid frame"}))
                continue
            if frame.type == "typing":
                await service.broadcast_typing(conversation_id, user_id, frame.is_typing)
            elif frame.type == "message":
                try:
                    await service.send_message(conversation_id, user_id, frame.content)
                except ValueError as e:
                    await websocket.send_text(json.dumps({"type": "error", "detail": str(e)}))
            else:
                await service.mark_read(conversation_id, user_id)
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(user_id, websocket)
        await _teardown(subscriptions, tasks)


@router.websocket("/notifications")
async def notifications_socket(websocket: WebSocket, bus=Depends(bus_dependency)):
    user_id = user_id_from_ws_token(websocket.query_params.get("token"))
    if not user_id:
        await websocket.close(code=4401)
        return

    await manager.connect(user_id, websocket)
    subscription = await bus.subscribe(notification_channel(user_id), websocket.send_text)
    tasks = [asyncio.create_task(subscription.run()), asyncio.create_task(_presence_heartbeat(bus, user_id))]
    try:
        while True:
            # client frames are only keepalives
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(user_id, websocket)
        await _teardown([subscription], tasks)
