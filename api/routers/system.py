from fastapi import APIRouter, Depends
from dependency_injector.wiring import inject, Provide
from datetime import datetime, timezone

from app.containers import AppContainer
from core.config.settings import Settings
from services.gateway.broker import KiteBrokerClient
from services.gateway.session import SessionState

router = APIRouter(tags=["System"])


@router.get("/health")
@inject
def health(
    settings: Settings = Depends(Provide[AppContainer.settings]),
    session: SessionState = Depends(Provide[AppContainer.session_state]),
    broker: KiteBrokerClient = Depends(Provide[AppContainer.broker_client]),
):
    """Liveness plus whether the broker client and session are usable."""
    broker_ready = broker.is_initialized()
    return {
        "status": "healthy" if broker_ready else "degraded",
        "app": settings.app_name,
        "version": settings.version,
        "broker_initialized": broker_ready,
        "session_active": session.is_active,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
