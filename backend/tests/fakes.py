"""Test doubles shared across the unit tests."""

import json

import httpx

from privacyguard.pipeline.exceptions import GatewayError
from privacyguard.schemas.assessment import (
    PRIVACY_CATEGORIES,
    Assessment,
    AuditLogEntry,
    PendingEntry,
    PendingStatus,
)
from privacyguard.store import AssessmentStore
from privacyguard.utils.llm_gateway import ClassificationGateway, GatewayResponse


class InMemoryStore(AssessmentStore):
    """Dict-backed AssessmentStore for unit tests."""

    def __init__(self) -> None:
        self.assessments: dict[str, Assessment] = {}
        self.pending: dict[str, PendingEntry] = {}
        self.audit: list[AuditLogEntry] = []

    async def get_assessment(self, domain: str) -> Assessment | None:
        return self.assessments.get(domain)

    async def upsert_assessment(self, assessment: Assessment) -> None:
        self.assessments[assessment.domain] = assessment

    async def delete_assessment(self, domain: str) -> bool:
        return self.assessments.pop(domain, None) is not None

    async def find_assessment_by_content_hash(
        self, content_hash: str, exclude_domain: str | None = None
    ) -> Assessment | None:
        for domain, assessment in sorted(self.assessments.items()):
            if domain != exclude_domain and assessment.content_hash == content_hash:
                return assessment
        return None

    async def add_pending(self, domain: str, suggested_urls: list[str] | None = None) -> bool:
        if domain in self.pending:
            return False
        self.pending[domain] = PendingEntry(
            domain=domain, suggested_policy_urls=list(suggested_urls or [])
        )
        return True

    async def get_pending(
        self, status: PendingStatus | None = None, limit: int = 100
    ) -> list[PendingEntry]:
        entries = sorted(self.pending.values(), key=lambda e: e.first_seen)
        if status is not None:
            entries = [e for e in entries if e.status == status]
        return entries[:limit]

    async def get_pending_entry(self, domain: str) -> PendingEntry | None:
        return self.pending.get(domain)

    async def set_pending_status(self, domain: str, status: PendingStatus) -> None:
        entry = self.pending.setdefault(domain, PendingEntry(domain=domain))
        entry.status = status

    async def remove_pending(self, domain: str) -> None:
        self.pending.pop(domain, None)

    async def get_suggested_urls(self, domain: str) -> list[str]:
        entry = self.pending.get(domain)
        return list(entry.suggested_policy_urls) if entry else []

    async def set_suggested_urls(self, domain: str, urls: list[str]) -> bool:
        entry = self.pending.get(domain)
        if entry is None:
            return False
        entry.suggested_policy_urls = list(urls)
        return True

    async def append_audit_log(self, entry: AuditLogEntry) -> None:
        self.audit.append(entry)

    async def get_audit_log(self, limit: int = 100) -> list[AuditLogEntry]:
        return self.audit[-limit:]

    def actions(self) -> list[str]:
        return [entry.action.value for entry in self.audit]


class ScriptedGateway(ClassificationGateway):
    """Returns queued responses in order; an exception in the queue is raised instead."""

    def __init__(self, *responses: str | Exception) -> None:
        self._responses = list(responses)
        self.prompts: list[str] = []

    async def classify(self, prompt: str) -> GatewayResponse:
        self.prompts.append(prompt)
        if not self._responses:
            raise GatewayError("No scripted response left")
        item = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(item, Exception):
            raise item
        return GatewayResponse(text=item)

    @property
    def calls(self) -> int:
        return len(self.prompts)


def make_classification_json(
    overall: str = "Low",
    summary: str = "Reasonable policy.",
    risks: dict[str, str] | None = None,
) -> str:
    risks = risks or {category: "Low" for category in PRIVACY_CATEGORIES}
    return json.dumps(
        {
            "categories": {
                name: {"risk": risk, "explanation": f"{name} is {risk.lower()}"}
                for name, risk in risks.items()
            },
            "overallRisk": overall,
            "summary": summary,
        }
    )


def make_policy_html(paragraphs: int = 20) -> str:
    body = "".join(
        f"<p>Paragraph {i}: we collect account data and share it with processors "
        "under contract, retain it while your account is active, and let you delete it.</p>"
        for i in range(paragraphs)
    )
    return f"<html><head><script>var x = 1;</script></head><body>{body}</body></html>"


def mock_transport(routes: dict[str, tuple[int, str]]) -> httpx.MockTransport:
    """Serve fixed (status, body) per URL; anything else is a 404."""

    def handler(request: httpx.Request) -> httpx.Response:
        status, body = routes.get(str(request.url), (404, "not found"))
        return httpx.Response(status, text=body)

    return httpx.MockTransport(handler)
