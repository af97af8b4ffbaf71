"""Drives a domain from the pending queue to a stored assessment."""

import asyncio
import logging
from typing import Any

from privacyguard.pipeline.classifier import PolicyClassifier, compute_text_hash
from privacyguard.pipeline.in_flight import InFlightRegistry
from privacyguard.pipeline.locator import AgreementLocator
from privacyguard.schemas.assessment import (
    PRIVACY_CATEGORIES,
    Assessment,
    AuditAction,
    AuditLogEntry,
    BatchSummary,
    CategoryRisk,
    DomainState,
    DomainStatus,
    PendingStatus,
    ProcessResult,
    ProcessStatus,
    RiskLevel,
    utc_now,
)
from privacyguard.store import AssessmentStore
from privacyguard.utils.url_utils import normalize_domain

logger = logging.getLogger(__name__)


class ProcessingCoordinator:
    """
    Runs Locate -> Dedup-check -> Classify-or-Copy -> Persist -> Dequeue per domain.

    At most one run per domain key is active at a time across process_one and
    process_all; the shared InFlightRegistry enforces it.
    """

    def __init__(
        self,
        store: AssessmentStore,
        locator: AgreementLocator,
        classifier: PolicyClassifier,
        *,
        in_flight: InFlightRegistry | None = None,
        batch_concurrency: int = 3,
        pending_batch_limit: int = 100,
    ) -> None:
        self._store = store
        self._locator = locator
        self._classifier = classifier
        self._in_flight = in_flight if in_flight is not None else InFlightRegistry()
        self._batch_concurrency = batch_concurrency
        self._pending_batch_limit = pending_batch_limit

    @property
    def in_flight(self) -> InFlightRegistry:
        return self._in_flight

    @property
    def locator(self) -> AgreementLocator:
        return self._locator

    # ---------------------------
    # Single domain
    # ---------------------------

    async def process_one(self, domain: str, actor: str | None = None) -> ProcessResult:
        """Process one domain now. Returns Already Processing if a run is active for it."""
        key = normalize_domain(domain)
        if not key:
            return ProcessResult(
                domain=domain, success=False, status=ProcessStatus.FAILED, error="Invalid domain"
            )
        if not self._in_flight.try_acquire(key):
            return _already_processing(key)
        try:
            return await self._process(key, actor)
        finally:
            self._in_flight.release(key)

    async def _process(self, domain: str, actor: str | None = None) -> ProcessResult:
        logger.info("Processing %s", domain)
        try:
            await self._store.set_pending_status(domain, PendingStatus.PROCESSING)
            await self._audit(AuditAction.PROCESSING_STARTED, actor, domain=domain)

            existing = await self._store.get_assessment(domain)
            if existing is not None:
                await self._dequeue(domain)
                await self._audit(AuditAction.ALREADY_ASSESSED, actor, domain=domain)
                return ProcessResult(
                    domain=domain,
                    success=True,
                    status=ProcessStatus.ALREADY_ASSESSED,
                    risk_level=existing.classification.risk_level,
                )

            outcome = await self._locator.locate(domain)
            if outcome.agreement is None:
                await self._store.set_pending_status(domain, PendingStatus.NOT_FOUND)
                await self._audit(
                    AuditAction.AGREEMENT_NOT_FOUND,
                    actor,
                    domain=domain,
                    attempted_urls=outcome.attempted_urls,
                )
                return ProcessResult(
                    domain=domain,
                    success=False,
                    status=ProcessStatus.NOT_FOUND,
                    error="No privacy policy found",
                )

            agreement = outcome.agreement
            content_hash = compute_text_hash(agreement.text)
            duplicate = await self._store.find_assessment_by_content_hash(
                content_hash, exclude_domain=domain
            )
            if duplicate is not None:
                classification = duplicate.classification.model_copy(deep=True)
                await self._store.upsert_assessment(
                    Assessment(
                        domain=domain,
                        source_url=agreement.source_url,
                        content_hash=content_hash,
                        classification=classification,
                    )
                )
                await self._dequeue(domain)
                await self._audit(
                    AuditAction.ASSESSMENT_COPIED,
                    actor,
                    domain=domain,
                    source_domain=duplicate.domain,
                    content_hash=content_hash,
                )
                logger.info("Copied assessment for %s from %s", domain, duplicate.domain)
                return ProcessResult(
                    domain=domain,
                    success=True,
                    status=ProcessStatus.COMPLETED,
                    copied=True,
                    source_domain=duplicate.domain,
                    risk_level=classification.risk_level,
                )

            classification = await self._classifier.assess(agreement.text, label=domain)
            await self._store.upsert_assessment(
                Assessment(
                    domain=domain,
                    source_url=agreement.source_url,
                    content_hash=content_hash,
                    classification=classification,
                )
            )
            await self._dequeue(domain)
            await self._audit(
                AuditAction.ASSESSMENT_COMPLETED,
                actor,
                domain=domain,
                source_url=agreement.source_url,
                risk_level=classification.risk_level.value,
            )
            logger.info("Assessed %s: %s", domain, classification.risk_level.value)
            return ProcessResult(
                domain=domain,
                success=True,
                status=ProcessStatus.COMPLETED,
                risk_level=classification.risk_level,
            )
        except Exception as e:
            logger.exception("Processing %s failed", domain)
            await self._record_failure(domain, actor, str(e))
            return ProcessResult(
                domain=domain, success=False, status=ProcessStatus.FAILED, error=str(e)
            )

    async def _record_failure(self, domain: str, actor: str | None, error: str) -> None:
        try:
            await self._store.set_pending_status(domain, PendingStatus.FAILED)
            await self._audit(AuditAction.ASSESSMENT_FAILED, actor, domain=domain, error=error)
        except Exception:
            logger.exception("Could not record failure for %s", domain)

    async def _dequeue(self, domain: str) -> None:
        try:
            await self._store.remove_pending(domain)
        except Exception as e:
            logger.warning("Could not remove %s from pending queue: %s", domain, e)

    async def _audit(self, action: AuditAction, actor: str | None = None, **details: Any) -> None:
        await self._store.append_audit_log(
            AuditLogEntry(action=action, actor=actor, details=details)
        )

    # ---------------------------
    # Batch
    # ---------------------------

    async def process_all(self, concurrency: int | None = None) -> BatchSummary:
        """
        Process every Pending entry with at most *concurrency* runs active.

        Domains already in flight are skipped. Per-domain failures never abort the
        batch; a failure to read the queue or write batch audit entries does.
        """
        limit = concurrency if concurrency is not None else self._batch_concurrency
        if limit < 1:
            raise ValueError("concurrency must be at least 1")

        try:
            entries = await self._store.get_pending(
                PendingStatus.PENDING, limit=self._pending_batch_limit
            )
            summary = BatchSummary(total=len(entries))
            await self._audit(AuditAction.BATCH_STARTED, count=len(entries))
            logger.info("Batch started: %d pending, concurrency %d", len(entries), limit)

            semaphore = asyncio.Semaphore(limit)
            tasks: list[asyncio.Task[ProcessResult]] = []
            for entry in entries:
                key = normalize_domain(entry.domain) or entry.domain
                # Claim before the first await so nothing can interleave.
                if not self._in_flight.try_acquire(key):
                    summary.record(_already_processing(key))
                    continue
                tasks.append(asyncio.create_task(self._run_claimed(key, semaphore)))

            for result in await asyncio.gather(*tasks, return_exceptions=True):
                if isinstance(result, BaseException):
                    logger.error("Batch item raised: %s", result)
                    summary.record_failure()
                else:
                    summary.record(result)

            await self._audit(AuditAction.BATCH_COMPLETED, **summary.model_dump())
            logger.info("Batch completed: %s", summary.model_dump())
            return summary
        except Exception as e:
            logger.exception("Batch processing failed")
            try:
                await self._audit(AuditAction.BATCH_FAILED, error=str(e))
            except Exception:
                logger.exception("Could not record batch failure")
            raise

    async def _run_claimed(self, domain: str, semaphore: asyncio.Semaphore) -> ProcessResult:
        try:
            async with semaphore:
                return await self._process(domain)
        finally:
            self._in_flight.release(domain)

    # ---------------------------
    # Queue and manual operations
    # ---------------------------

    async def report(self, domain: str, suggested_urls: list[str] | None = None) -> bool:
        """
        Queue an unassessed domain. Returns False when it is already assessed.
        Suggested URLs are recorded on an existing entry too.
        """
        key = _require_key(domain)
        if await self._store.get_assessment(key) is not None:
            return False
        created = await self._store.add_pending(key, suggested_urls)
        if created:
            logger.info("Queued %s", key)
        elif suggested_urls:
            await self._store.set_suggested_urls(key, suggested_urls)
        return True

    async def set_suggested_urls(self, domain: str, urls: list[str]) -> bool:
        return await self._store.set_suggested_urls(_require_key(domain), urls)

    async def assess_text(
        self, domain: str, text: str, actor: str | None = None
    ) -> Assessment:
        """Classify supplied policy text and store it as a manual assessment."""
        key = _require_key(domain)
        classification = await self._classifier.assess(text, label=key)
        assessment = Assessment(
            domain=key,
            content_hash=compute_text_hash(text),
            classification=classification,
            manual_override=True,
        )
        await self._store.upsert_assessment(assessment)
        await self._dequeue(key)
        await self._audit(
            AuditAction.ASSESSMENT_TRIGGERED,
            actor,
            domain=key,
            risk_level=classification.risk_level.value,
        )
        return assessment

    # ---------------------------
    # Admin edits
    # ---------------------------

    async def update_assessment(
        self,
        domain: str,
        *,
        risk_level: RiskLevel | None = None,
        summary: str | None = None,
        categories: dict[str, CategoryRisk] | None = None,
        actor: str | None = None,
    ) -> Assessment | None:
        """
        Edit a stored verdict in place. Supplied categories replace the stored ones
        by name; omitted fields are kept. Returns None when the domain has no
        assessment. Raises ValueError for a category outside PRIVACY_CATEGORIES.
        """
        key = _require_key(domain)
        unknown = sorted(set(categories or {}) - set(PRIVACY_CATEGORIES))
        if unknown:
            raise ValueError(f"Unknown categories: {', '.join(unknown)}")
        existing = await self._store.get_assessment(key)
        if existing is None:
            return None

        classification = existing.classification.model_copy(deep=True)
        if categories:
            classification.categories.update(
                {name: risk.model_copy() for name, risk in categories.items()}
            )
        if risk_level is not None:
            classification.risk_level = risk_level
        if summary is not None:
            classification.summary = summary
        updated = existing.model_copy(
            update={
                "classification": classification,
                "manual_override": True,
                "last_updated": utc_now(),
            }
        )
        await self._store.upsert_assessment(updated)
        await self._audit(
            AuditAction.ASSESSMENT_UPDATED,
            actor,
            domain=key,
            risk_level=classification.risk_level.value,
        )
        logger.info("Assessment for %s edited by %s", key, actor or "unknown")
        return updated

    async def delete_assessment(self, domain: str, actor: str | None = None) -> bool:
        key = _require_key(domain)
        deleted = await self._store.delete_assessment(key)
        if deleted:
            await self._audit(AuditAction.ASSESSMENT_DELETED, actor, domain=key)
        return deleted

    async def delete_pending(self, domain: str, actor: str | None = None) -> bool:
        """Drop a domain from the pending queue. Returns False if it was not queued."""
        key = _require_key(domain)
        if await self._store.get_pending_entry(key) is None:
            return False
        await self._store.remove_pending(key)
        await self._audit(AuditAction.PENDING_DELETED, actor, domain=key)
        return True

    async def status(self, domain: str) -> DomainStatus:
        key = _require_key(domain)
        in_flight = key in self._in_flight
        assessment = await self._store.get_assessment(key)
        if assessment is not None:
            return DomainStatus(
                domain=key, state=DomainState.ASSESSED, in_flight=in_flight, assessment=assessment
            )
        pending = await self._store.get_pending_entry(key)
        if pending is None:
            state = DomainState.UNKNOWN
        elif pending.status == PendingStatus.FAILED:
            state = DomainState.FAILED
        elif pending.status == PendingStatus.NOT_FOUND:
            state = DomainState.NOT_FOUND
        else:
            state = DomainState.QUEUED
        return DomainStatus(domain=key, state=state, in_flight=in_flight, pending=pending)


def _require_key(domain: str) -> str:
    key = normalize_domain(domain)
    if not key:
        raise ValueError(f"Invalid domain: {domain!r}")
    return key


def _already_processing(domain: str) -> ProcessResult:
    return ProcessResult(
        domain=domain,
        success=False,
        status=ProcessStatus.ALREADY_PROCESSING,
        error="Already being processed",
    )
