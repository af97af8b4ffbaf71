"""Health and readiness endpoints."""

from fastapi import APIRouter, Depends, Request

from privacyguard.core.config import Settings, get_settings
from privacyguard.schemas.common import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check(request: Request, settings: Settings = Depends(get_settings)) -> HealthResponse:
    """Return service health, environment and pipeline readiness."""
    coordinator = getattr(request.app.state, "coordinator", None)
    return HealthResponse(
        status="ok",
        environment=settings.environment,
        pipeline_ready=coordinator is not None,
        in_flight=len(coordinator.in_flight) if coordinator is not None else 0,
    )
