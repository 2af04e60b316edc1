import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from .alert_gate import AlertGate
from .classifier import RiskClassifier
from .config import CLASSIFIER_TIMEOUT_SECONDS
from .deduplicator import Deduplicator
from .errors import ClassifierFailure, FetchFailure, NotificationFailure, PermissionDenied
from .models import (
    AlertNotification,
    DataQuality,
    EngineSettings,
    EngineStatus,
    RiskLevel,
    SensorReading,
    SettingsUpdate,
    TickOutcome,
    TickReport,
)
from .notifier import NotificationDispatcher

logger = logging.getLogger(__name__)


class ReadingSource(Protocol):
    async def fetch(self) -> SensorReading: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AlertEngine:
    """
    Per-device alerting pipeline: fetch → dedup → classify → gate → dispatch.

    Ticks are serialized; a tick requested while another is running is skipped. Every
    tick error is contained and logged so the poll loop keeps going.
    """

    def __init__(
        self,
        device_id: str,
        fetcher: ReadingSource,
        classifier: RiskClassifier,
        dispatcher: NotificationDispatcher,
        settings: Optional[EngineSettings] = None,
        classifier_timeout: float = CLASSIFIER_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.device_id = device_id
        self.fetcher = fetcher
        self.classifier = classifier
        self.dispatcher = dispatcher
        self.settings = settings or EngineSettings()
        self.classifier_timeout = classifier_timeout
        self.clock = clock

        self.deduplicator = Deduplicator()
        self.gate = AlertGate(self.settings.gate_config())
        self.dispatcher.cue_duration_ms = self.settings.cue_duration_ms

        self.last_tick: Optional[TickReport] = None
        self._tick_lock = asyncio.Lock()
        self._loop_task: Optional[asyncio.Task] = None
        self._interval_changed = asyncio.Event()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def start(self) -> None:
        """Start polling: one tick immediately, then one per poll interval."""
        if self.running:
            logger.warning(f"Engine {self.device_id} already polling")
            return
        self._loop_task = asyncio.create_task(self._poll_loop())
        logger.info(f"Engine {self.device_id} started (interval {self.settings.poll_interval_seconds}s)")

    async def stop(self, cancel_notifications: bool = True) -> None:
        """Stop the periodic timer, silence any playing cue and clear delivered notifications."""
        task, self._loop_task = self._loop_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self.dispatcher.audio.stop_cue()
        if cancel_notifications:
            await self.dispatcher.cancel_all_notifications()
        logger.info(f"Engine {self.device_id} stopped")

    def update_settings(self, update: SettingsUpdate) -> EngineSettings:
        """Apply a runtime change. Gate counters survive; an interval change restarts only the timer."""
        changes = update.model_dump(exclude_unset=True)
        new_settings = EngineSettings(**{**self.settings.model_dump(), **changes})
        interval_changed = new_settings.poll_interval_seconds != self.settings.poll_interval_seconds

        self.settings = new_settings
        self.gate.reconfigure(new_settings.gate_config())
        self.dispatcher.cue_duration_ms = new_settings.cue_duration_ms

        if interval_changed:
            logger.info(f"Engine {self.device_id} poll interval now {new_settings.poll_interval_seconds}s")
            self._interval_changed.set()
        return self.settings

    async def stop_cue(self) -> None:
        await self.dispatcher.audio.stop_cue()

    async def send_test_alert(self, risk_level: RiskLevel = RiskLevel.HIGH) -> str:
        """Deliver a sample alert directly. Gate counters, cooldown and dedup are not touched."""
        return await self.dispatcher.send_test_alert(self.device_id, self.clock(), risk_level)

    async def cancel_notification(self, notification_id: str) -> None:
        await self.dispatcher.cancel_notification(notification_id)

    async def cancel_all_notifications(self) -> None:
        await self.dispatcher.cancel_all_notifications()

    def status(self) -> EngineStatus:
        return EngineStatus(
            device_id=self.device_id,
            running=self.running,
            settings=self.settings,
            gate=self.gate.state,
            last_accepted_timestamp=self.deduplicator.last_timestamp,
            cue_playing=self.dispatcher.audio.is_playing,
            last_tick=self.last_tick,
        )

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------
    async def run_tick(self) -> TickReport:
        """Run one pipeline pass unless one is already in progress."""
        if self._tick_lock.locked():
            logger.warning(f"Engine {self.device_id}: previous tick still running, skipping")
            return TickReport(outcome=TickOutcome.SKIPPED, at=self.clock(), reason="tick in progress")

        async with self._tick_lock:
            report = await self._tick()
        self.last_tick = report
        return report

    async def _tick(self) -> TickReport:
        # 1. Fetch (timeouts already replaced by the fallback reading)
        try:
            reading = await self.fetcher.fetch()
        except FetchFailure as e:
            logger.error(f"Engine {self.device_id}: fetch failed: {e}")
            return self._report(TickOutcome.FETCH_FAILED, error=str(e))
        except Exception as e:
            logger.exception(f"Engine {self.device_id}: unexpected fetch error")
            return self._report(TickOutcome.FETCH_FAILED, error=repr(e))

        # 2. Dedup; fallback readings are evaluated but never move the watermark
        if reading.data_quality == DataQuality.FALLBACK:
            logger.info(f"Engine {self.device_id}: evaluating fallback reading")
        elif not self.deduplicator.accept(reading):
            logger.debug(f"Engine {self.device_id}: sample {reading.timestamp.isoformat()} already processed")
            return self._report(TickOutcome.DUPLICATE, reading=reading)

        # 3. Classify; any failure leaves the gate untouched
        try:
            assessment = await asyncio.wait_for(self.classifier.classify(reading), timeout=self.classifier_timeout)
        except asyncio.TimeoutError:
            error = f"classifier timed out after {self.classifier_timeout}s"
            logger.error(f"Engine {self.device_id}: {error}")
            return self._report(TickOutcome.CLASSIFIER_FAILED, reading=reading, error=error)
        except ClassifierFailure as e:
            logger.error(f"Engine {self.device_id}: classifier failed: {e}")
            return self._report(TickOutcome.CLASSIFIER_FAILED, reading=reading, error=str(e))
        except Exception as e:
            logger.exception(f"Engine {self.device_id}: unexpected classifier error")
            return self._report(TickOutcome.CLASSIFIER_FAILED, reading=reading, error=repr(e))

        # 4. Gate
        now = self.clock()
        decision = self.gate.decide(assessment, now)
        if not decision.approved:
            return self._report(TickOutcome.SUPPRESSED, reading=reading, assessment=assessment, reason=decision.reason)

        # 5. Dispatch
        notification = AlertNotification.from_assessment(self.device_id, assessment, now)
        try:
            notification_id = await self.dispatcher.dispatch(notification)
        except PermissionDenied as e:
            return self._report(
                TickOutcome.PERMISSION_DENIED, reading=reading, assessment=assessment,
                reason=decision.reason, error=str(e),
            )
        except NotificationFailure as e:
            logger.error(f"Engine {self.device_id}: {e}")
            return self._report(
                TickOutcome.DISPATCH_FAILED, reading=reading, assessment=assessment,
                reason=decision.reason, error=str(e),
            )
        except Exception as e:
            logger.exception(f"Engine {self.device_id}: unexpected dispatch error")
            return self._report(
                TickOutcome.DISPATCH_FAILED, reading=reading, assessment=assessment,
                reason=decision.reason, error=repr(e),
            )

        return self._report(
            TickOutcome.DISPATCHED, reading=reading, assessment=assessment,
            reason=decision.reason, notification_id=notification_id,
        )

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------
    async def _poll_loop(self) -> None:
        while True:
            try:
                await self.run_tick()
            except Exception:
                logger.exception(f"Engine {self.device_id}: unexpected tick error")
            await self._wait_interval()

    async def _wait_interval(self) -> None:
        """Sleep one poll interval; a settings change restarts the wait with the new interval."""
        while True:
            self._interval_changed.clear()
            try:
                await asyncio.wait_for(self._interval_changed.wait(), timeout=self.settings.poll_interval_seconds)
            except asyncio.TimeoutError:
                return

    def _report(self, outcome: TickOutcome, **fields) -> TickReport:
        return TickReport(outcome=outcome, at=self.clock(), **fields)
