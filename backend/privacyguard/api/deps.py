"""Request-scoped access to the pipeline objects built at startup."""

from fastapi import HTTPException, Request

from privacyguard.pipeline.coordinator import ProcessingCoordinator


def get_coordinator(request: Request) -> ProcessingCoordinator:
    coordinator = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise HTTPException(status_code=503, detail="Pipeline not initialised")
    return coordinator
