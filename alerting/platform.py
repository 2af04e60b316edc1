"""Headless stand-ins for the platform notification and audio layers."""

import logging
import uuid

from .config import PERMISSION_GRANTED
from .models import NotificationPayload

logger = logging.getLogger(__name__)


class LoggingNotificationPlatform:
    """Writes notifications to the log. Permission status is fixed at construction."""

    def __init__(self, permission_status: str = PERMISSION_GRANTED):
        self.permission_status = permission_status

    async def get_permission_status(self) -> str:
        return self.permission_status

    async def request_permission(self) -> str:
        return self.permission_status

    async def present(self, payload: NotificationPayload) -> str:
        notification_id = uuid.uuid4().hex
        logger.warning(f"[{notification_id}] {payload.title}: {payload.body!r}")
        return notification_id

    async def cancel(self, notification_id: str) -> None:
        logger.info(f"[{notification_id}] dismissed")

    async def cancel_all(self) -> None:
        logger.info("All notifications dismissed")


class LoggingAudioPlayer:
    async def play(self) -> None:
        logger.info("Alert tone on")

    async def stop(self) -> None:
        logger.info("Alert tone off")
