"""
Cron trigger routes.

Endpoints:
- GET /api/cron/ping - Run one ping cycle (called by the external timer)
- POST /api/cron/ping - Same, for manual triggering
"""

import logging

import sentry_sdk
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from core.exceptions import AuthorizationError
from core.notifications.cron import run_ping_cycle
from web_api.auth import verify_cron_request

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"])


@router.api_route("/ping", methods=["GET", "POST"])
async def cron_ping(request: Request):
    """Authorize the caller, then run one ping cycle and return its summary."""
    try:
        verify_cron_request(request)
    except AuthorizationError as e:
        logger.warning(f"Rejected cron request: {e}")
        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    try:
        return await run_ping_cycle()
    except Exception as e:
        logger.error(f"Cron ping error: {e}")
        sentry_sdk.capture_exception(e)
        return JSONResponse(
            {"error": "Failed to process pings", "details": str(e)},
            status_code=500,
        )
