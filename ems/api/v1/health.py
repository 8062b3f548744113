"""
Health check endpoint
"""
from fastapi import APIRouter
from ems.core.constants import SERVICE_NAME
from ems.services.audit_service import audit_trail

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint

    Returns service status and the audit backlog.
    """
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "audit_pending": audit_trail.pending(),
    }
