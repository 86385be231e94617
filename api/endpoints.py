"""
API endpoint implementations for CalTrigger.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from caltrigger.runtime.state import get_runtime_context, RuntimeStateError

from .models import (
    RescanResponse,
    StatusResponse,
    SystemLogResponse,
)
from .exceptions import APIException
from .utils import create_error_response
from .services import (
    get_system_activity_log,
    get_system_status,
    rescan_calendar,
)

# Create API router
router = APIRouter(prefix="/api", tags=["CalTrigger API"])


#######################################################################
## Health & Status Endpoints
#######################################################################

@router.get("/health")
async def health_check():
    """
    Lightweight health check endpoint for Docker healthcheck and monitoring.

    Use /api/status for triggers, calendars, and the last poll cycle.
    """
    try:
        runtime = get_runtime_context()
        scheduler_running = runtime.scheduler.running if runtime.scheduler else False

        return JSONResponse(
            status_code=200,
            content={
                "status": "healthy",
                "scheduler_running": scheduler_running
            }
        )
    except RuntimeStateError:
        # Runtime not initialized yet - still starting up
        return JSONResponse(
            status_code=503,
            content={
                "status": "starting",
                "scheduler_running": False
            }
        )


@router.get("/status", response_model=StatusResponse)
async def get_status():
    """
    Get current scheduler status, installed triggers and calendars, and the
    outcome of the last poll cycle.
    """
    return await get_system_status()


@router.get("/system/activity-log", response_model=SystemLogResponse)
async def system_activity_log(limit_bytes: int = 65_536):
    """Return the tail of the activity log."""
    return await get_system_activity_log(limit_bytes)


#######################################################################
## Calendar Endpoints
#######################################################################

@router.post("/rescan", response_model=RescanResponse)
async def rescan():
    """
    Fetch the calendar immediately and resynchronize all triggers.

    A feed outage is reported as a skipped cycle; the existing triggers stay
    in place.
    """
    cycle = await rescan_calendar()

    if cycle.skipped:
        message = f"Calendar feed unavailable, existing triggers kept: {cycle.skipped_reason}"
    else:
        message = (
            f"Rescan completed successfully: {cycle.events_fetched} events, "
            f"{cycle.triggers_scheduled} triggers scheduled, "
            f"{cycle.triggers_suppressed} suppressed"
        )

    return RescanResponse(success=not cycle.skipped, cycle=cycle, message=message)


def register_exception_handlers(app):
    """Register exception handlers with the FastAPI app."""

    @app.exception_handler(APIException)
    async def api_exception_handler(request, exc: APIException):
        """Handle API-specific exceptions with proper error responses."""
        return create_error_response(exc)

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc: Exception):
        """Handle unexpected exceptions with generic error responses."""
        return create_error_response(exc)
