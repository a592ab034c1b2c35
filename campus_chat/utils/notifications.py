import asyncio
import logging
from typing import Any, Dict, List, Optional

from pyfcm import FCMNotification

from campus_chat.core.config import settings


logger = logging.getLogger(__name__)


class NoopPush:

    async def send(self, tokens: List[str], title: str, body: str, data: Optional[Dict[str, Any]] = None) -> int:
        logger.debug("Push disabled; dropping %d notification(s) titled %r", len(tokens), title)
        return 0


class FcmPush:

    def __init__(self, service_account_file: str, project_id: str) -> None:
        self._client = FCMNotification(service_account_file=service_account_file, project_id=project_id)

    async def send(self, tokens: List[str], title: str, body: str, data: Optional[Dict[str, Any]] = None) -> int:
        if not tokens:
            return 0
        # FCM data payloads only carry string values
        payload = {str(k): str(v) for k, v in (data or {}).items()}
        sent = 0
        for token in tokens:
            try:
                # pyfcm is sync
                await asyncio.to_thread(
                    self._client.notify,
                    fcm_token=token,
                    notification_title=title,
                    notification_body=body,
                    data_payload=payload,
                )
                sent += 1
            except Exception:
                logger.warning("FCM delivery failed for token %.12s...", token, exc_info=True)
        return sent


_push = None


async def get_push():
    global _push
    if _push is not None:
        return _push
    if not (settings.FCM_SERVICE_ACCOUNT_FILE and settings.FCM_PROJECT_ID):
        logger.info("FCM not configured; push notifications disabled")
        _push = NoopPush()
        return _push
    _push = FcmPush(settings.FCM_SERVICE_ACCOUNT_FILE, settings.FCM_PROJECT_ID)
    return _push


async def push_dependency():
    return await get_push()
