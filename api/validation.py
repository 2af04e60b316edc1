from fastapi import HTTPException

from alerting.alerting_service import AlertingService
from alerting.engine import AlertEngine
from alerting.models import SettingsUpdate


def get_engine_or_404(service: AlertingService, device_id: str) -> AlertEngine:
    """Resolve the engine for a device or answer 404."""
    engine = service.get(device_id)
    if engine is None:
        raise HTTPException(status_code=404, detail=f"No alerting engine for device '{device_id}'.")
    return engine


def validate_settings_update(update: SettingsUpdate) -> None:
    """Guardrail around the engine: reject updates that change nothing."""
    if not update.model_fields_set:
        raise HTTPException(
            status_code=422,
            detail="Settings update cannot be empty. Please provide at least one setting."
        )
