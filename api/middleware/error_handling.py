from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from core.logging import get_error_logger_safe
from datetime import datetime, timezone

logger = get_error_logger_safe("api.middleware.error_handling")


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Global error handling middleware.

    HTTPException never reaches this point; Starlette's ExceptionMiddleware
    turns it into a response inside call_next.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(
                "Unhandled API exception",
                path=request.url.path,
                method=request.method,
                error=str(e),
                exc_info=True
            )

            return JSONResponse(
                status_code=500,
                content={
                    "status": "failed",
                    "error": "Internal server error",
                    "error_type": "UNEXPECTED_ERROR",
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "path": request.url.path
                }
            )
