"""
Configuration constants for the wildfire alerting engine.

This module contains all tunable parameters for polling, normalization, gating and
alert delivery. Deployment-specific values are read from the environment, with a
.env file at the repository root loaded first when present.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
_env_file = Path(__file__).parent.parent.resolve() / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

# ============================================================================
# Telemetry Source Configuration
# ============================================================================

THINGSPEAK_BASE_URL = os.getenv("THINGSPEAK_BASE_URL", "https://api.thingspeak.com")
THINGSPEAK_CHANNEL_ID = os.getenv("THINGSPEAK_CHANNEL_ID", "")
THINGSPEAK_API_KEY = os.getenv("THINGSPEAK_API_KEY", "")

DEFAULT_DEVICE_ID = os.getenv("ALERT_DEVICE_ID", "1")

FETCH_TIMEOUT_SECONDS = 10.0
HISTORY_RESULTS = 100

# ============================================================================
# Risk Classifier Configuration
# ============================================================================

CLASSIFIER_BASE_URL = os.getenv("CLASSIFIER_BASE_URL", "http://localhost:5000/api")
CLASSIFIER_TIMEOUT_SECONDS = 15.0  # Mobile-network budget of the prediction service

# ============================================================================
# Polling & Gate Configuration
# ============================================================================

POLL_INTERVAL_SECONDS = 30.0

RISK_THRESHOLD = "moderate"
ALERT_COOLDOWN_SECONDS = 60.0
REQUIRED_CONSECUTIVE_HIGH_RISK = 2

# ============================================================================
# Alert Delivery Configuration
# ============================================================================

CUE_DURATION_MS = 10_000
PERMISSION_GRANTED = "granted"

RISK_EMOJI = {
    "low": "🟢",
    "moderate": "🟡",
    "high": "🟠",
    "critical": "🔴",
}
DEFAULT_RECOMMENDATION_TEXT = "Monitor conditions closely"

# Manual test alert sent from the host surface
TEST_ALERT_CONFIDENCE = 0.85
TEST_ALERT_RECOMMENDATIONS = ["This is a test alert", "Sound should play for 10 seconds"]

# ============================================================================
# Sample Normalization Configuration
# ============================================================================

# Provider field -> canonical field
THINGSPEAK_FIELD_MAP = {
    "field1": "temperature",
    "field2": "humidity",
    "field3": "smoke_level",
    "field4": "air_quality",
    "field5": "wind_speed",
    "field6": "wind_direction",
    "field7": "atmospheric_pressure",
    "field8": "uv_index",
    "field9": "soil_moisture",
    "field10": "rainfall",
}

PRIMARY_FIELDS = ("temperature", "humidity", "smoke_level")

# Secondary field -> default used when absent or unparsable
SECONDARY_DEFAULTS = {
    "air_quality": 50.0,
    "wind_speed": 5.0,
    "wind_direction": 0.0,
    "atmospheric_pressure": 1013.25,
    "uv_index": 5.0,
    "soil_moisture": 50.0,
    "rainfall": 0.0,
}

# Safe-looking values substituted when the provider times out
FALLBACK_TEMPERATURE = 25.5  # °C
FALLBACK_HUMIDITY = 45.2  # %
FALLBACK_SMOKE_LEVEL = 15.0  # ppm
