import logging
from typing import Any, Dict, Optional, Protocol

import httpx
from pydantic import ValidationError

from .config import CLASSIFIER_BASE_URL, CLASSIFIER_TIMEOUT_SECONDS
from .errors import ClassifierFailure
from .models import RiskAssessment, SensorReading

logger = logging.getLogger(__name__)

REQUEST_FIELDS = (
    "temperature",
    "humidity",
    "smoke_level",
    "air_quality",
    "wind_speed",
    "wind_direction",
    "atmospheric_pressure",
    "uv_index",
    "soil_moisture",
    "rainfall",
)


class RiskClassifier(Protocol):
    async def classify(self, reading: SensorReading) -> RiskAssessment: ...


def build_request(reading: SensorReading) -> Dict[str, Any]:
    """Flatten a reading into the parameters the prediction service expects."""
    params: Dict[str, Any] = {name: getattr(reading, name) for name in REQUEST_FIELDS}
    params["device_id"] = reading.device_id
    return params


class HttpRiskClassifier:
    """
    Adapter for the remote prediction service.

    Shapes the request and passes failures up as ClassifierFailure. No retry and no
    caching: the next scheduled tick is the retry.
    """

    def __init__(
        self,
        base_url: str = CLASSIFIER_BASE_URL,
        timeout: float = CLASSIFIER_TIMEOUT_SECONDS,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = headers or {}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def classify(self, reading: SensorReading) -> RiskAssessment:
        url = f"{self.base_url}/predictions"
        logger.debug(f"Requesting risk assessment for device {reading.device_id} at {reading.timestamp.isoformat()}")
        try:
            response = await self._client.post(url, json=build_request(reading), headers=self.headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise ClassifierFailure(f"Prediction API error: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise ClassifierFailure(f"Prediction request failed: {e!r}") from e
        except ValueError as e:
            raise ClassifierFailure(f"Prediction response is not valid JSON: {e}") from e

        # Some deployments wrap the result: {"prediction": {...}}
        if isinstance(data, dict) and isinstance(data.get("prediction"), dict):
            data = data["prediction"]

        try:
            return RiskAssessment.model_validate(data)
        except ValidationError as e:
            raise ClassifierFailure(f"Malformed prediction payload: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
