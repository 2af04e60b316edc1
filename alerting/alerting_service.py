import logging
from typing import Dict, Iterable, List, Optional

from .audio import AudioController, AudioPlayer
from .classifier import HttpRiskClassifier, RiskClassifier
from .config import DEFAULT_DEVICE_ID, THINGSPEAK_API_KEY, THINGSPEAK_CHANNEL_ID
from .engine import AlertEngine, ReadingSource
from .models import EngineSettings
from .notifier import NotificationDispatcher, NotificationPlatform
from .platform import LoggingAudioPlayer, LoggingNotificationPlatform
from .telemetry import TelemetryFetcher

logger = logging.getLogger(__name__)


class AlertingService:
    """High-level service owning one independent AlertEngine per device/channel."""

    def __init__(self, engines: Optional[Iterable[AlertEngine]] = None):
        self.engines: Dict[str, AlertEngine] = {}
        for engine in engines or []:
            self.add(engine)

    def add(self, engine: AlertEngine) -> None:
        if engine.device_id in self.engines:
            raise ValueError(f"engine for device {engine.device_id} already registered")
        self.engines[engine.device_id] = engine

    def get(self, device_id: str) -> Optional[AlertEngine]:
        return self.engines.get(device_id)

    def device_ids(self) -> List[str]:
        return sorted(self.engines)

    async def start_all(self) -> None:
        for engine in self.engines.values():
            await engine.start()

    async def stop_all(self) -> None:
        for engine in self.engines.values():
            await engine.stop()
            # Release HTTP clients owned by the default collaborators
            for collaborator in (engine.fetcher, engine.classifier):
                aclose = getattr(collaborator, "aclose", None)
                if aclose is not None:
                    await aclose()
        logger.info(f"Stopped {len(self.engines)} engine(s)")

    @staticmethod
    def build_engine(
        device_id: str,
        channel_id: str,
        api_key: str,
        classifier: Optional[RiskClassifier] = None,
        platform: Optional[NotificationPlatform] = None,
        player: Optional[AudioPlayer] = None,
        settings: Optional[EngineSettings] = None,
        fetcher: Optional[ReadingSource] = None,
    ) -> AlertEngine:
        """Wire a ThingSpeak-backed engine. Collaborators default to the HTTP classifier
        and the logging platform stand-ins; a custom reading source replaces ThingSpeak."""
        audio = AudioController(player or LoggingAudioPlayer())
        dispatcher = NotificationDispatcher(platform or LoggingNotificationPlatform(), audio)
        return AlertEngine(
            device_id=device_id,
            fetcher=fetcher or TelemetryFetcher(device_id, channel_id=channel_id, api_key=api_key),
            classifier=classifier or HttpRiskClassifier(),
            dispatcher=dispatcher,
            settings=settings,
        )

    @classmethod
    def from_environment(cls) -> "AlertingService":
        """Single engine for the channel configured through the environment."""
        if not THINGSPEAK_CHANNEL_ID:
            logger.warning("THINGSPEAK_CHANNEL_ID not set, no engine configured")
            return cls()
        return cls([cls.build_engine(DEFAULT_DEVICE_ID, THINGSPEAK_CHANNEL_ID, THINGSPEAK_API_KEY)])
