import logging

from fastapi import APIRouter, Depends

from campus_chat.utils.realtime_bus import bus_dependency
from campus_chat.utils.websocket_manager import manager


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/presence", tags=["chat"])


@router.get("/{user_id}")
async def presence(user_id: str, bus=Depends(bus_dependency)):
    """Online if this worker holds a socket for the user or the shared presence key is alive."""
    online = manager.is_connected(user_id)
    if not online:
        try:
            online = await bus.is_online(user_id)
        except Exception:
            logger.warning("Presence lookup failed for %s", user_id, exc_info=True)
            online = False
    return {"user_id": user_id, "online": bool(online)}
