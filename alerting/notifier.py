import logging
from datetime import datetime
from typing import Protocol

from .audio import AudioController
from .config import (
    CUE_DURATION_MS,
    DEFAULT_RECOMMENDATION_TEXT,
    PERMISSION_GRANTED,
    RISK_EMOJI,
    TEST_ALERT_CONFIDENCE,
    TEST_ALERT_RECOMMENDATIONS,
)
from .errors import NotificationFailure, PermissionDenied
from .models import AlertNotification, NotificationPayload, RiskLevel

logger = logging.getLogger(__name__)


class NotificationPlatform(Protocol):
    """Platform notification/permission layer."""

    async def get_permission_status(self) -> str: ...

    async def request_permission(self) -> str: ...

    async def present(self, payload: NotificationPayload) -> str: ...

    async def cancel(self, notification_id: str) -> None: ...

    async def cancel_all(self) -> None: ...


class NotificationDispatcher:
    """Delivers approved alerts and starts the audio cue for high/critical risk."""

    def __init__(
        self,
        platform: NotificationPlatform,
        audio: AudioController,
        cue_duration_ms: int = CUE_DURATION_MS,
    ):
        self.platform = platform
        self.audio = audio
        self.cue_duration_ms = cue_duration_ms

    async def dispatch(self, notification: AlertNotification) -> str:
        """
        Present the notification and return its platform id.

        Fails closed: raises PermissionDenied (and never starts audio) unless the
        platform reports "granted", after asking once if needed.
        """
        await self._ensure_permission()

        payload = build_payload(notification)
        try:
            notification_id = await self.platform.present(payload)
        except Exception as e:
            raise NotificationFailure(f"failed to present notification {notification.id}: {e}") from e

        logger.info(
            f"Fire alert sent: {notification_id} "
            f"(device={notification.device_id}, risk={notification.risk_level.value})"
        )

        # Moderate alerts are delivered silently
        if notification.risk_level.is_high_band:
            await self.audio.play_cue(self.cue_duration_ms)

        return notification_id

    async def send_test_alert(
        self, device_id: str, now: datetime, risk_level: RiskLevel = RiskLevel.HIGH
    ) -> str:
        """Deliver a fixed sample alert outside any gate; same permission and cue rules as dispatch."""
        notification = AlertNotification(
            device_id=device_id,
            risk_level=risk_level,
            confidence_score=TEST_ALERT_CONFIDENCE,
            recommendations=list(TEST_ALERT_RECOMMENDATIONS),
            created_at=now,
        )
        logger.info(f"Sending test alert for device {device_id}")
        return await self.dispatch(notification)

    async def cancel_notification(self, notification_id: str) -> None:
        try:
            await self.platform.cancel(notification_id)
        except Exception as e:
            logger.error(f"Error canceling notification {notification_id}: {e}")
            return
        logger.info(f"Notification canceled: {notification_id}")

    async def cancel_all_notifications(self) -> None:
        try:
            await self.platform.cancel_all()
        except Exception as e:
            logger.error(f"Error canceling all notifications: {e}")
            return
        logger.info("All notifications canceled")

    async def _ensure_permission(self) -> None:
        status = await self.platform.get_permission_status()
        if status == PERMISSION_GRANTED:
            return

        status = await self.platform.request_permission()
        if status != PERMISSION_GRANTED:
            logger.warning(f"Notification permission not granted: {status}")
            raise PermissionDenied(status)


def build_payload(notification: AlertNotification) -> NotificationPayload:
    """Title, body and data block shown by the presentation layer."""
    level = notification.risk_level
    emoji = RISK_EMOJI.get(level.value, "⚪")
    advice = ", ".join(notification.recommendations) or DEFAULT_RECOMMENDATION_TEXT

    body = (
        f"Risk Level: {level.value.upper()}\n"
        f"Confidence: {round(notification.confidence_score * 100)}%\n"
        f"{advice}"
    )

    return NotificationPayload(
        title=f"{emoji} Fire Risk Alert",
        body=body,
        data={
            "type": "fire_alert",
            "notification_id": notification.id,
            "device_id": notification.device_id,
            "risk_level": level.value,
            "confidence_score": notification.confidence_score,
            "recommendations": list(notification.recommendations),
            "timestamp": notification.created_at.isoformat(),
        },
        priority="high" if level == RiskLevel.CRITICAL else "default",
        sticky=level == RiskLevel.CRITICAL,
    )
