"""ThingSpeak telemetry fetcher.

Pulls the most recent raw sample for a channel and normalizes it. A provider that
does not answer within the timeout yields the fallback reading so the pipeline always
has something to evaluate; every other failure surfaces as FetchFailure.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx

from .config import (
    FETCH_TIMEOUT_SECONDS,
    HISTORY_RESULTS,
    THINGSPEAK_API_KEY,
    THINGSPEAK_BASE_URL,
    THINGSPEAK_CHANNEL_ID,
)
from .errors import FetchFailure, FetchTimeout, ReadingValidationError
from .models import SensorReading
from .normalizer import SampleNormalizer

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TelemetryFetcher:
    def __init__(
        self,
        device_id: str,
        channel_id: str = THINGSPEAK_CHANNEL_ID,
        api_key: str = THINGSPEAK_API_KEY,
        base_url: str = THINGSPEAK_BASE_URL,
        timeout: float = FETCH_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.device_id = device_id
        self.channel_id = channel_id
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.clock = clock
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch(self) -> SensorReading:
        """Latest reading, or the fallback reading when the provider times out.

        Raises:
            FetchFailure: HTTP error, transport error, malformed payload, or a
                sample that fails normalization.
        """
        try:
            feeds = await self._get_feeds(results=1)
        except FetchTimeout as e:
            logger.warning(f"Telemetry fetch timed out for device {self.device_id}, using fallback reading: {e}")
            return SampleNormalizer.fallback_reading(self.device_id, self.clock())

        if not feeds:
            raise FetchFailure("No data available from telemetry provider")

        try:
            return SampleNormalizer.normalize(feeds[-1], self.device_id)
        except ReadingValidationError as e:
            raise FetchFailure(f"Unusable telemetry sample: {e}") from e

    async def fetch_history(self, results: int = HISTORY_RESULTS) -> List[SensorReading]:
        """Last `results` samples in chronological order; unusable samples are skipped."""
        try:
            feeds = await self._get_feeds(results=results)
        except FetchTimeout as e:
            raise FetchFailure(str(e)) from e

        readings = []
        for feed in feeds:
            try:
                readings.append(SampleNormalizer.normalize(feed, self.device_id))
            except ReadingValidationError as e:
                logger.warning(f"Skipping historical sample {feed.get('entry_id')}: {e}")

        return sorted(readings, key=lambda r: r.timestamp)

    async def get_channel_info(self) -> Dict[str, Any]:
        """Channel metadata (name, field labels, last entry id)."""
        try:
            data = await self._get_json(f"/channels/{self.channel_id}.json", {"api_key": self.api_key})
        except FetchTimeout as e:
            raise FetchFailure(str(e)) from e
        if not isinstance(data, dict):
            raise FetchFailure("Malformed channel info payload")
        return data.get("channel", data)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------
    async def _get_feeds(self, results: int) -> List[Dict[str, Any]]:
        data = await self._get_json(
            f"/channels/{self.channel_id}/feeds.json",
            {"api_key": self.api_key, "results": results},
        )
        feeds = data.get("feeds") if isinstance(data, dict) else None
        if not isinstance(feeds, list) or not all(isinstance(f, dict) for f in feeds):
            raise FetchFailure("Malformed telemetry payload: 'feeds' list missing")
        return feeds

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Any:
        """GET with a hard timeout. Timeouts raise FetchTimeout, everything else FetchFailure."""
        url = f"{self.base_url}{path}"
        try:
            response = await asyncio.wait_for(self._client.get(url, params=params), timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise FetchTimeout(f"no response from {url} within {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise FetchFailure(f"Telemetry API error: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise FetchFailure(f"Telemetry request failed: {e}") from e
        except ValueError as e:
            raise FetchFailure(f"Telemetry response is not valid JSON: {e}") from e
