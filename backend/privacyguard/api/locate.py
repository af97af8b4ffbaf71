"""Diagnostic lookup: find a domain's privacy policy without classifying it."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from privacyguard.api.deps import get_coordinator
from privacyguard.pipeline.coordinator import ProcessingCoordinator
from privacyguard.utils.url_utils import normalize_domain

router = APIRouter(tags=["locate"])


@router.get("/locate", summary="Locate privacy policy for a domain")
async def locate(
    domain: str = Query(..., min_length=1, description="Domain or URL"),
    coordinator: ProcessingCoordinator = Depends(get_coordinator),
) -> dict[str, Any]:
    """Try candidate URLs and report which one (if any) holds the policy."""
    key = normalize_domain(domain)
    if not key:
        raise HTTPException(status_code=422, detail=f"Invalid domain: {domain!r}")
    outcome = await coordinator.locator.locate(key)
    agreement = outcome.agreement
    return {
        "domain": key,
        "found": agreement is not None,
        "source_url": agreement.source_url if agreement else None,
        "length": len(agreement.text) if agreement else 0,
        "pinned_fallback": agreement.pinned_fallback if agreement else False,
        "attempts": [
            {"url": a.url, "source": a.source, "error": a.error, "text_length": a.text_length}
            for a in outcome.attempts
        ],
    }
