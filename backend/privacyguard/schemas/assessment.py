"""Pydantic models for pending entries, assessments, risk classifications and audit entries."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------
# Risk levels and categories
# ---------------------------

class RiskLevel(str, Enum):
    """Risk labels, ordered by severity: High > Medium > Low > Unknown."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    UNKNOWN = "Unknown"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY: dict[RiskLevel, int] = {
    RiskLevel.HIGH: 3,
    RiskLevel.MEDIUM: 2,
    RiskLevel.LOW: 1,
    RiskLevel.UNKNOWN: 0,
}

PRIVACY_CATEGORIES: tuple[str, ...] = (
    "Data Collection & Use",
    "Third-Party Sharing & Selling",
    "Data Storage & Security",
    "User Rights & Control",
    "AI & Automated Decision-Making",
    "Policy Changes & Updates",
)


def max_severity(levels: list[RiskLevel]) -> RiskLevel:
    """Most severe level in *levels*; Unknown for an empty list."""
    overall = RiskLevel.UNKNOWN
    for level in levels:
        if level.severity > overall.severity:
            overall = level
    return overall


class CategoryRisk(BaseModel):
    risk: RiskLevel = Field(..., description="One of: High, Medium, Low, Unknown")
    explanation: str = Field("", description="Why this risk was assigned")


class RiskClassification(BaseModel):
    """Per-category risk verdict plus overall risk and a free-text summary."""

    categories: dict[str, CategoryRisk] = Field(default_factory=dict)
    risk_level: RiskLevel = RiskLevel.UNKNOWN
    summary: str = ""


# ---------------------------
# Stored records
# ---------------------------

class PendingStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"
    NOT_FOUND = "Not Found"


class PendingEntry(BaseModel):
    """A domain reported as unassessed and waiting in the queue."""

    domain: str
    first_seen: datetime = Field(default_factory=utc_now)
    status: PendingStatus = PendingStatus.PENDING
    suggested_policy_urls: list[str] = Field(default_factory=list)


class Assessment(BaseModel):
    """One stored verdict per domain key."""

    domain: str
    source_url: Optional[str] = None
    content_hash: Optional[str] = None
    classification: RiskClassification
    last_updated: datetime = Field(default_factory=utc_now)
    manual_override: bool = False


class AuditAction(str, Enum):
    PROCESSING_STARTED = "unassessed_url_processing"
    ALREADY_ASSESSED = "already_assessed"
    AGREEMENT_NOT_FOUND = "agreement_not_found"
    ASSESSMENT_COMPLETED = "assessment_completed"
    ASSESSMENT_COPIED = "assessment_copied"
    ASSESSMENT_FAILED = "assessment_failed"
    ASSESSMENT_TRIGGERED = "assessment_triggered"
    ASSESSMENT_UPDATED = "assessment_updated"
    ASSESSMENT_DELETED = "assessment_deleted"
    PENDING_DELETED = "unassessed_url_deleted"
    BATCH_STARTED = "assessment_trigger_started"
    BATCH_COMPLETED = "assessment_trigger_completed"
    BATCH_FAILED = "assessment_trigger_failed"


class AuditLogEntry(BaseModel):
    action: AuditAction
    actor: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
    details: dict[str, Any] = Field(default_factory=dict)


# ---------------------------
# Processing outcomes
# ---------------------------

class ProcessStatus(str, Enum):
    COMPLETED = "Completed"
    NOT_FOUND = "Not Found"
    FAILED = "Failed"
    ALREADY_ASSESSED = "Already Assessed"
    ALREADY_PROCESSING = "Already Processing"


class ProcessResult(BaseModel):
    domain: str
    success: bool
    status: ProcessStatus
    copied: bool = False
    source_domain: Optional[str] = None
    risk_level: Optional[RiskLevel] = None
    error: Optional[str] = None


class BatchSummary(BaseModel):
    """Counts for one batch run; processed = successful + failed + not_found + skipped."""

    total: int = 0
    processed: int = 0
    successful: int = 0
    failed: int = 0
    not_found: int = 0
    skipped: int = 0

    def record(self, result: ProcessResult) -> None:
        self.processed += 1
        if result.status == ProcessStatus.ALREADY_PROCESSING:
            self.skipped += 1
        elif result.success:
            self.successful += 1
        elif result.status == ProcessStatus.NOT_FOUND:
            self.not_found += 1
        else:
            self.failed += 1

    def record_failure(self) -> None:
        self.processed += 1
        self.failed += 1


class DomainState(str, Enum):
    """User-visible state of a domain."""

    ASSESSED = "assessed"
    QUEUED = "queued"
    FAILED = "failed"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"


class DomainStatus(BaseModel):
    domain: str
    state: DomainState
    in_flight: bool = False
    assessment: Optional[Assessment] = None
    pending: Optional[PendingEntry] = None
