import asyncio
import logging
from typing import Optional, Protocol

from .config import CUE_DURATION_MS

logger = logging.getLogger(__name__)


class AudioPlayer(Protocol):
    """Platform audio layer. Only start/stop are used."""

    async def play(self) -> None: ...

    async def stop(self) -> None: ...


class AudioController:
    """
    Timed alert tone lifecycle: Idle -> Playing -> Idle.

    At most one cue plays at a time. The stop-timer is an asyncio task used as a
    cancellation handle, so a stale timer can never stop a newer cue.
    """

    def __init__(self, player: AudioPlayer):
        self.player = player
        self._playing = False
        self._stop_timer: Optional[asyncio.Task] = None

    @property
    def is_playing(self) -> bool:
        return self._playing

    async def play_cue(self, duration_ms: int = CUE_DURATION_MS) -> bool:
        """Start a cue and arm its stop-timer. Returns False when one is already playing."""
        if self._playing:
            logger.info("Alert cue already playing")
            return False

        self._playing = True
        try:
            await self.player.play()
        except Exception as e:
            logger.error(f"Failed to play alert cue: {e}")
            self._playing = False
            return False

        # Stopped while playback was starting
        if not self._playing:
            return False

        logger.info(f"Playing alert cue for {duration_ms}ms")
        self._stop_timer = asyncio.create_task(self._stop_after(duration_ms / 1000.0))
        return True

    async def stop_cue(self) -> None:
        """Idempotent: cancel any pending timer and stop playback if playing."""
        timer, self._stop_timer = self._stop_timer, None
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()
        await self._halt()

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------
    async def _stop_after(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
        self._stop_timer = None
        await self._halt()

    async def _halt(self) -> None:
        if not self._playing:
            return
        self._playing = False
        try:
            await self.player.stop()
        except Exception as e:
            logger.error(f"Failed to stop alert cue: {e}")
        logger.info("Alert cue stopped")
