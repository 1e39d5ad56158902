"""Health check endpoints."""

from fastapi import APIRouter, Depends

from stellramp import __version__
from stellramp.anchor.service import RampService, get_ramp_service
from stellramp.config import get_settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "stellramp"}


@router.get("/health/detailed")
async def detailed_health(service: RampService = Depends(get_ramp_service)):
    """Detailed health check with anchor and network info."""
    settings = get_settings()
    anchor_available = service.anchor_available()
    return {
        "status": "healthy" if anchor_available else "degraded",
        "service": "stellramp",
        "version": __version__,
        "anchor": {
            "available": anchor_available,
            "network": service.network_name,
            "in_flight": await service.in_flight_counts(),
        },
        "config": settings.get_safe_dict(),
    }
