"""
Health check endpoint.
"""
from fastapi import APIRouter
from datetime import datetime
from fastapi.responses import JSONResponse

from shared.utils.logging_config import get_logger
from shared.config.settings import settings

logger = get_logger(__name__)

router = APIRouter()

@router.get("/")
async def health_check_():
    """Basic health check - is service alive?"""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "service": settings.api_title,
        "version": settings.api_version
    }

# Readiness: Check if delivery channels are configured
@router.get("/ready")
async def readiness_check():
    """Readiness check - channels missing configuration are skipped, not fatal."""
    services_ready = {
        "repository": settings.repository_type,
        "email_channel": bool(settings.smtp_host and settings.smtp_user and settings.smtp_pass),
        "sms_channel": bool(settings.roamtech_api_key and settings.roamtech_partner_id and settings.shortcode),
        "lifecycle": settings.notification_lifecycle,
        "hr_timeout_hours": settings.get_hr_timeout_hours(),
    }

    return JSONResponse(
        status_code=200,
        content={
            "status": "ready",
            "service": settings.api_title,
            "version": settings.api_version,
            "timestamp": datetime.now().isoformat(),
            "services": services_ready,
        }
    )
