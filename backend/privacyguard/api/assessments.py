"""Assessment status, reporting, processing triggers and admin edits."""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from privacyguard.api.deps import get_coordinator
from privacyguard.pipeline.coordinator import ProcessingCoordinator
from privacyguard.pipeline.exceptions import ClassificationError, StoreError
from privacyguard.schemas.assessment import (
    Assessment,
    CategoryRisk,
    DomainStatus,
    ProcessResult,
    RiskLevel,
)

router = APIRouter(prefix="/assessments", tags=["assessments"])
logger = logging.getLogger(__name__)

# Keeps background batch tasks referenced until they finish.
_background_tasks: set[asyncio.Task] = set()


class ReportBody(BaseModel):
    """Request body for reporting an unassessed domain."""

    domain: str = Field(..., min_length=1, description="Domain or URL seen by the client")
    suggested_urls: list[str] = Field(default_factory=list, description="Known policy URLs")


class ManualAssessmentBody(BaseModel):
    """Request body for assessing supplied policy text."""

    text: str = Field(..., min_length=1, description="Plain-text privacy policy")
    actor: str | None = Field(default=None, description="Who triggered the assessment")


class AssessmentUpdateBody(BaseModel):
    """Request body for editing a stored assessment; omitted fields are kept."""

    risk_level: RiskLevel | None = Field(default=None, description="Overall risk")
    summary: str | None = Field(default=None, description="Replacement summary")
    categories: dict[str, CategoryRisk] | None = Field(
        default=None, description="Per-category risks to replace, by category name"
    )
    actor: str | None = Field(default=None, description="Who made the edit")


@router.get("/{domain}", response_model=DomainStatus)
async def get_status(
    domain: str, coordinator: ProcessingCoordinator = Depends(get_coordinator)
) -> DomainStatus:
    """Assessed, queued, failed, not found, or unknown."""
    try:
        return await coordinator.status(domain)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e


@router.post("/report")
async def report(
    body: ReportBody, coordinator: ProcessingCoordinator = Depends(get_coordinator)
) -> dict[str, str | bool]:
    """Queue a domain for assessment unless it is already assessed."""
    try:
        queued = await coordinator.report(body.domain, body.suggested_urls or None)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    return {"domain": body.domain, "queued": queued}


@router.post("/process_all", status_code=202)
async def process_all(
    concurrency: int | None = Query(default=None, ge=1, description="Max concurrent domains"),
    coordinator: ProcessingCoordinator = Depends(get_coordinator),
) -> JSONResponse:
    """Start a batch over the pending queue in the background."""
    task = asyncio.create_task(coordinator.process_all(concurrency))
    _background_tasks.add(task)
    task.add_done_callback(_on_batch_done)
    return JSONResponse(
        status_code=202,
        content={
            "status": "processing",
            "message": "Batch started in background. Check the audit log or domain status for results.",
        },
    )


def _on_batch_done(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background batch failed: %s", exc)


@router.post("/{domain}/process", response_model=ProcessResult)
async def process_one(
    domain: str, coordinator: ProcessingCoordinator = Depends(get_coordinator)
) -> ProcessResult:
    """Run the pipeline for one domain and wait for the outcome."""
    return await coordinator.process_one(domain)


@router.post("/{domain}/manual", response_model=Assessment)
async def assess_manually(
    domain: str,
    body: ManualAssessmentBody,
    coordinator: ProcessingCoordinator = Depends(get_coordinator),
) -> Assessment:
    """Classify supplied text and store it as a manual assessment."""
    try:
        return await coordinator.assess_text(domain, body.text, actor=body.actor)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except ClassificationError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e


@router.patch("/{domain}", response_model=Assessment)
async def update_assessment(
    domain: str,
    body: AssessmentUpdateBody,
    coordinator: ProcessingCoordinator = Depends(get_coordinator),
) -> Assessment:
    """Edit a stored assessment and mark it as a manual override."""
    try:
        updated = await coordinator.update_assessment(
            domain,
            risk_level=body.risk_level,
            summary=body.summary,
            categories=body.categories,
            actor=body.actor,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    if updated is None:
        raise HTTPException(status_code=404, detail=f"No assessment for {domain}")
    return updated


@router.delete("/{domain}")
async def delete_assessment(
    domain: str,
    actor: str | None = Query(default=None, description="Who deleted it"),
    coordinator: ProcessingCoordinator = Depends(get_coordinator),
) -> dict[str, str | bool]:
    """Delete a stored assessment."""
    try:
        deleted = await coordinator.delete_assessment(domain, actor=actor)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    if not deleted:
        raise HTTPException(status_code=404, detail=f"No assessment for {domain}")
    return {"domain": domain, "deleted": True}
