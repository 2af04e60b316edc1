from typing import List

from fastapi import APIRouter, HTTPException, Request

from alerting.alerting_service import AlertingService
from alerting.errors import NotificationFailure, PermissionDenied
from alerting.models import EngineSettings, EngineStatus, RiskLevel, SettingsUpdate, TickReport
from .validation import get_engine_or_404, validate_settings_update

router = APIRouter()


def _service(request: Request) -> AlertingService:
    return request.app.state.alerting


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/engines", response_model=List[str])
def list_engines(request: Request):
    return _service(request).device_ids()


@router.get("/engines/{device_id}", response_model=EngineStatus)
def engine_status(device_id: str, request: Request):
    return get_engine_or_404(_service(request), device_id).status()


@router.patch("/engines/{device_id}/settings", response_model=EngineSettings)
async def update_settings(device_id: str, update: SettingsUpdate, request: Request):
    engine = get_engine_or_404(_service(request), device_id)

    # Validate the update before touching engine state
    validate_settings_update(update)

    return engine.update_settings(update)


@router.post("/engines/{device_id}/tick", response_model=TickReport)
async def run_tick(device_id: str, request: Request):
    return await get_engine_or_404(_service(request), device_id).run_tick()


@router.post("/engines/{device_id}/cue/stop", response_model=EngineStatus)
async def stop_cue(device_id: str, request: Request):
    engine = get_engine_or_404(_service(request), device_id)
    await engine.stop_cue()
    return engine.status()


@router.post("/engines/{device_id}/alerts/test")
async def send_test_alert(device_id: str, request: Request, risk_level: RiskLevel = RiskLevel.HIGH):
    """Deliver a sample alert right away, outside the alert gate."""
    engine = get_engine_or_404(_service(request), device_id)
    try:
        notification_id = await engine.send_test_alert(risk_level)
    except PermissionDenied as e:
        raise HTTPException(status_code=403, detail=str(e))
    except NotificationFailure as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"device_id": device_id, "notification_id": notification_id, "risk_level": risk_level.value}


@router.delete("/engines/{device_id}/alerts/{notification_id}", status_code=204)
async def cancel_notification(device_id: str, notification_id: str, request: Request):
    await get_engine_or_404(_service(request), device_id).cancel_notification(notification_id)


@router.delete("/engines/{device_id}/alerts", status_code=204)
async def cancel_all_notifications(device_id: str, request: Request):
    await get_engine_or_404(_service(request), device_id).cancel_all_notifications()
