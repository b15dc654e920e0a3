from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from dependency_injector.wiring import inject, Provide

from app.containers import AppContainer
from core.logging import get_api_logger_safe, get_audit_logger_safe
from services.gateway.gateway import TradingGateway
from services.gateway.session import SessionState

router = APIRouter(tags=["Authentication"])

# Initialize loggers
api_logger = get_api_logger_safe("auth_api")
audit_logger = get_audit_logger_safe("auth_audit")


@router.get("/auth/login")
@inject
def get_login_url(
    gateway: TradingGateway = Depends(Provide[AppContainer.gateway]),
):
    """Kite login URL; Kite redirects back to /auth/callback with a request_token."""
    url = gateway.get_login_url()
    if not url:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Kite client not initialized. Check ZERODHA__API_KEY.",
        )
    return {"login_url": url}


@router.get("/auth/callback")
@inject
def login_callback(
    request: Request,
    request_token: str = Query(..., min_length=1),
    gateway: TradingGateway = Depends(Provide[AppContainer.gateway]),
):
    """
    Redirect target registered with the Kite app. Exchanges the request_token
    for a session and returns the session envelope.
    """
    client_ip = request.client.host if request.client else "unknown"
    envelope = gateway.exchange_session(request_token)

    audit_logger.info("Session exchange attempted",
                      client_ip=client_ip,
                      success=envelope.ok,
                      user_id=envelope.payload.get("user_id"),
                      action="SESSION_EXCHANGE")
    return envelope.to_dict()


@router.get("/auth/status")
@inject
def get_auth_status(
    session: SessionState = Depends(Provide[AppContainer.session_state]),
):
    """Current session state. Never includes tokens."""
    return {"provider": "zerodha", **session.snapshot().to_dict()}
