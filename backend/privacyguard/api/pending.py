"""Pending queue inspection and suggested policy URLs."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from privacyguard.api.deps import get_coordinator
from privacyguard.pipeline.coordinator import ProcessingCoordinator
from privacyguard.pipeline.exceptions import StoreError
from privacyguard.schemas.assessment import PendingEntry, PendingStatus

router = APIRouter(prefix="/pending", tags=["pending"])


class SuggestedUrlsBody(BaseModel):
    """Request body for replacing a domain's suggested policy URLs."""

    urls: list[str] = Field(..., description="Policy URLs to try before path probing")


@router.get("", response_model=list[PendingEntry])
async def list_pending(
    request: Request,
    status: PendingStatus | None = Query(default=None, description="Filter by status"),
    limit: int = Query(default=100, ge=1, le=1000),
) -> list[PendingEntry]:
    """Queued domains, oldest first."""
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Store not initialised")
    try:
        return await store.get_pending(status, limit=limit)
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e


@router.put("/{domain}/suggested_urls")
async def set_suggested_urls(
    domain: str,
    body: SuggestedUrlsBody,
    coordinator: ProcessingCoordinator = Depends(get_coordinator),
) -> dict[str, str | bool]:
    """Record policy URLs to try first for a queued domain."""
    try:
        updated = await coordinator.set_suggested_urls(domain, body.urls)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    if not updated:
        raise HTTPException(status_code=404, detail=f"{domain} is not in the pending queue")
    return {"domain": domain, "updated": True}


@router.delete("/{domain}")
async def delete_pending(
    domain: str,
    actor: str | None = Query(default=None, description="Who removed it"),
    coordinator: ProcessingCoordinator = Depends(get_coordinator),
) -> dict[str, str | bool]:
    """Remove a domain from the pending queue."""
    try:
        deleted = await coordinator.delete_pending(domain, actor=actor)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    if not deleted:
        raise HTTPException(status_code=404, detail=f"{domain} is not in the pending queue")
    return {"domain": domain, "deleted": True}
