import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest

from fakes import InMemoryStore, ScriptedGateway, make_classification_json, make_policy_html, mock_transport
from privacyguard.pipeline.classifier import PolicyClassifier
from privacyguard.pipeline.coordinator import ProcessingCoordinator
from privacyguard.pipeline.exceptions import StoreError
from privacyguard.pipeline.locator import AgreementLocator, LocatedAgreement, LocateOutcome
from privacyguard.pipeline.retry import RetryPolicy
from privacyguard.schemas.assessment import (
    Assessment,
    CategoryRisk,
    DomainState,
    PendingStatus,
    ProcessStatus,
    RiskClassification,
    RiskLevel,
)
from privacyguard.store import AssessmentStore
from privacyguard.utils.fetch_page import DocumentFetcher
from privacyguard.utils.llm_gateway import GatewayResponse


def _make_classifier(gateway: ScriptedGateway) -> PolicyClassifier:
    async def no_sleep(_: float) -> None:
        return None

    return PolicyClassifier(
        gateway,
        chunk_delay_seconds=0.0,
        retry_policy=RetryPolicy(max_retries=0, initial_delay_seconds=0.0),
        sleep=no_sleep,
    )


def _make_coordinator(
    store: AssessmentStore,
    gateway: ScriptedGateway,
    routes: dict[str, tuple[int, str]] | None = None,
    *,
    transport: httpx.MockTransport | None = None,
) -> ProcessingCoordinator:
    locator = AgreementLocator(
        DocumentFetcher(transport=transport or mock_transport(routes or {})), store=store
    )
    return ProcessingCoordinator(store, locator, _make_classifier(gateway))


class _StubLocator:
    """Returns a fixed agreement after an async pause, tracking overlap."""

    def __init__(self, text: str = "policy text " * 100, delay: float = 0.01) -> None:
        self._text = text
        self._delay = delay
        self.active = 0
        self.max_active = 0
        self.calls: list[str] = []

    async def locate(self, domain: str) -> LocateOutcome:
        self.calls.append(domain)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self._delay)
        finally:
            self.active -= 1
        return LocateOutcome(
            agreement=LocatedAgreement(text=f"{domain} {self._text}", source_url=f"https://{domain}/privacy")
        )


def _make_stub_coordinator(
    store: AssessmentStore, gateway: ScriptedGateway, locator: _StubLocator
) -> ProcessingCoordinator:
    return ProcessingCoordinator(store, locator, _make_classifier(gateway))  # type: ignore[arg-type]


class TestEndToEnd:
    def test_completed_assessment(self, store: InMemoryStore) -> None:
        html = make_policy_html(70)
        assert len(html) >= 10_000
        asyncio.run(store.add_pending("example.com"))
        gateway = ScriptedGateway(make_classification_json(overall="Low"))
        coordinator = _make_coordinator(
            store, gateway, {"https://example.com/privacy": (200, html)}
        )

        result = asyncio.run(coordinator.process_one("example.com"))

        assert result.success
        assert result.status == ProcessStatus.COMPLETED
        assessment = store.assessments["example.com"]
        assert assessment.classification.risk_level == RiskLevel.LOW
        assert assessment.source_url == "https://example.com/privacy"
        assert "example.com" not in store.pending
        assert store.actions().count("assessment_completed") == 1

    def test_queue_removal_failure_keeps_completed_result(self, store: InMemoryStore) -> None:
        asyncio.run(store.add_pending("example.com"))
        store.remove_pending = AsyncMock(side_effect=StoreError("remove_pending failed: down"))  # type: ignore[method-assign]
        gateway = ScriptedGateway(make_classification_json(overall="Low"))
        coordinator = _make_coordinator(
            store, gateway, {"https://example.com/privacy": (200, make_policy_html())}
        )

        result = asyncio.run(coordinator.process_one("example.com"))

        assert result.success
        assert result.status == ProcessStatus.COMPLETED
        assert store.assessments["example.com"].classification.risk_level == RiskLevel.LOW
        assert store.actions().count("assessment_completed") == 1
        assert "assessment_failed" not in store.actions()
        store.remove_pending.assert_awaited_once_with("example.com")
        assert "example.com" not in coordinator.in_flight

    def test_not_found_when_no_candidate_is_long_enough(self, store: InMemoryStore) -> None:
        asyncio.run(store.add_pending("example.com"))
        gateway = ScriptedGateway(make_classification_json())
        coordinator = _make_coordinator(
            store, gateway, {"https://example.com/privacy": (200, "<p>Tiny.</p>")}
        )

        result = asyncio.run(coordinator.process_one("example.com"))

        assert not result.success
        assert result.status == ProcessStatus.NOT_FOUND
        assert store.pending["example.com"].status == PendingStatus.NOT_FOUND
        assert store.assessments == {}
        assert gateway.calls == 0
        not_found = [e for e in store.audit if e.action.value == "agreement_not_found"]
        assert "https://example.com/privacy" in not_found[0].details["attempted_urls"]

    def test_network_errors_degrade_to_not_found(self, store: InMemoryStore) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        asyncio.run(store.add_pending("example.com"))
        coordinator = _make_coordinator(
            store, ScriptedGateway(make_classification_json()), transport=httpx.MockTransport(handler)
        )

        result = asyncio.run(coordinator.process_one("example.com"))

        assert result.status == ProcessStatus.NOT_FOUND
        assert store.pending["example.com"].status == PendingStatus.NOT_FOUND
        assert store.assessments == {}

    def test_unparseable_classification_fails(self, store: InMemoryStore) -> None:
        asyncio.run(store.add_pending("example.com"))
        coordinator = _make_coordinator(
            store,
            ScriptedGateway("This is not JSON."),
            {"https://example.com/privacy": (200, make_policy_html())},
        )

        result = asyncio.run(coordinator.process_one("example.com"))

        assert not result.success
        assert result.status == ProcessStatus.FAILED
        assert store.pending["example.com"].status == PendingStatus.FAILED
        failed = [e for e in store.audit if e.action.value == "assessment_failed"]
        assert "No JSON object" in failed[0].details["error"]


class TestShortCircuits:
    def test_already_assessed(self, store: InMemoryStore) -> None:
        store.assessments["example.com"] = Assessment(
            domain="example.com",
            classification=RiskClassification(risk_level=RiskLevel.MEDIUM),
        )
        asyncio.run(store.add_pending("example.com"))
        gateway = ScriptedGateway(make_classification_json())

        result = asyncio.run(_make_coordinator(store, gateway).process_one("https://www.example.com/"))

        assert result.success
        assert result.status == ProcessStatus.ALREADY_ASSESSED
        assert result.risk_level == RiskLevel.MEDIUM
        assert "example.com" not in store.pending
        assert gateway.calls == 0

    def test_invalid_domain(self, store: InMemoryStore) -> None:
        result = asyncio.run(
            _make_coordinator(store, ScriptedGateway(make_classification_json())).process_one("")
        )

        assert result.status == ProcessStatus.FAILED
        assert store.audit == []

    def test_already_processing(self, store: InMemoryStore) -> None:
        coordinator = _make_coordinator(store, ScriptedGateway(make_classification_json()))
        coordinator.in_flight.try_acquire("example.com")

        result = asyncio.run(coordinator.process_one("example.com"))

        assert not result.success
        assert result.status == ProcessStatus.ALREADY_PROCESSING
        assert store.audit == []

    def test_in_flight_released_after_failure(self, store: InMemoryStore) -> None:
        coordinator = _make_coordinator(store, ScriptedGateway("nope"))

        asyncio.run(coordinator.process_one("example.com"))

        assert "example.com" not in coordinator.in_flight


class TestDeduplication:
    def test_identical_text_is_copied_without_classifying(self, store: InMemoryStore) -> None:
        html = make_policy_html()
        gateway = ScriptedGateway(make_classification_json(overall="High", risks={"Data Collection & Use": "High"}))
        coordinator = _make_coordinator(
            store,
            gateway,
            {
                "https://first.com/privacy": (200, html),
                "https://second.com/privacy": (200, html),
            },
        )

        first = asyncio.run(coordinator.process_one("first.com"))
        second = asyncio.run(coordinator.process_one("second.com"))

        assert first.status == ProcessStatus.COMPLETED and not first.copied
        assert second.status == ProcessStatus.COMPLETED
        assert second.copied
        assert second.source_domain == "first.com"
        assert gateway.calls == 1
        copied = store.assessments["second.com"]
        assert copied.classification == store.assessments["first.com"].classification
        assert copied.content_hash == store.assessments["first.com"].content_hash
        assert "assessment_copied" in store.actions()


class TestProcessAll:
    def test_summary_partitions_results(self, store: InMemoryStore) -> None:
        for domain in ("good.com", "missing.com", "broken.com"):
            asyncio.run(store.add_pending(domain))
        html = make_policy_html()
        broken_html = make_policy_html(25)
        gateway = _RoutingGateway(
            {"good.com": make_classification_json(), "broken.com": "not json"}
        )
        coordinator = ProcessingCoordinator(
            store,
            AgreementLocator(
                DocumentFetcher(
                    transport=mock_transport(
                        {
                            "https://good.com/privacy": (200, html.replace("Paragraph", "good.com")),
                            "https://broken.com/privacy": (200, broken_html.replace("Paragraph", "broken.com")),
                        }
                    )
                )
            ),
            _make_classifier(gateway),
        )

        summary = asyncio.run(coordinator.process_all(2))

        assert summary.total == 3
        assert summary.successful == 1
        assert summary.not_found == 1
        assert summary.failed == 1
        assert summary.processed == summary.successful + summary.failed + summary.not_found + summary.skipped
        assert store.actions()[0] == "assessment_trigger_started"
        assert store.actions()[-1] == "assessment_trigger_completed"

    def test_in_flight_domain_is_skipped(self, store: InMemoryStore) -> None:
        asyncio.run(store.add_pending("a.com"))
        asyncio.run(store.add_pending("b.com"))
        locator = _StubLocator()
        coordinator = _make_stub_coordinator(store, ScriptedGateway(make_classification_json()), locator)
        coordinator.in_flight.try_acquire("a.com")

        summary = asyncio.run(coordinator.process_all(3))

        assert summary.skipped == 1
        assert summary.successful == 1
        assert summary.failed == 0
        assert locator.calls == ["b.com"]

    def test_concurrency_is_bounded(self, store: InMemoryStore) -> None:
        for i in range(6):
            asyncio.run(store.add_pending(f"site{i}.com"))
        locator = _StubLocator()
        coordinator = _make_stub_coordinator(store, ScriptedGateway(make_classification_json()), locator)

        summary = asyncio.run(coordinator.process_all(2))

        assert summary.successful == 6
        assert locator.max_active == 2
        assert len(coordinator.in_flight) == 0

    def test_single_trigger_and_batch_do_not_double_process(self, store: InMemoryStore) -> None:
        asyncio.run(store.add_pending("a.com"))
        locator = _StubLocator()
        gateway = ScriptedGateway(make_classification_json())
        coordinator = _make_stub_coordinator(store, gateway, locator)

        async def race() -> tuple:
            return await asyncio.gather(coordinator.process_all(2), coordinator.process_one("a.com"))

        summary, single = asyncio.run(race())

        assert single.status == ProcessStatus.ALREADY_PROCESSING
        assert summary.successful == 1
        assert gateway.calls == 1
        assert locator.calls == ["a.com"]

    def test_single_trigger_first_then_batch(self, store: InMemoryStore) -> None:
        asyncio.run(store.add_pending("a.com"))
        locator = _StubLocator()
        gateway = ScriptedGateway(make_classification_json())
        coordinator = _make_stub_coordinator(store, gateway, locator)

        async def race() -> tuple:
            return await asyncio.gather(coordinator.process_one("a.com"), coordinator.process_all(2))

        single, summary = asyncio.run(race())

        assert single.status == ProcessStatus.COMPLETED
        assert gateway.calls == 1
        assert summary.successful == 0

    def test_queue_read_failure_aborts_batch(self, store: InMemoryStore) -> None:
        async def broken(*args: object, **kwargs: object) -> list:
            raise RuntimeError("store offline")

        store.get_pending = broken  # type: ignore[method-assign]
        coordinator = _make_stub_coordinator(store, ScriptedGateway(make_classification_json()), _StubLocator())

        with pytest.raises(RuntimeError, match="store offline"):
            asyncio.run(coordinator.process_all())

        assert store.actions() == ["assessment_trigger_failed"]

    def test_rejects_zero_concurrency(self, store: InMemoryStore) -> None:
        coordinator = _make_stub_coordinator(store, ScriptedGateway(make_classification_json()), _StubLocator())

        with pytest.raises(ValueError):
            asyncio.run(coordinator.process_all(0))


class TestQueueOperations:
    def test_report_queues_unassessed_domain(self, store: InMemoryStore) -> None:
        coordinator = _make_coordinator(store, ScriptedGateway(make_classification_json()))

        queued = asyncio.run(coordinator.report("https://www.example.com/page", ["https://example.com/p"]))

        assert queued
        assert store.pending["example.com"].suggested_policy_urls == ["https://example.com/p"]

    def test_report_skips_assessed_domain(self, store: InMemoryStore) -> None:
        store.assessments["example.com"] = Assessment(
            domain="example.com", classification=RiskClassification()
        )
        coordinator = _make_coordinator(store, ScriptedGateway(make_classification_json()))

        assert not asyncio.run(coordinator.report("example.com"))
        assert store.pending == {}

    def test_report_updates_suggested_urls_on_existing_entry(self, store: InMemoryStore) -> None:
        asyncio.run(store.add_pending("example.com"))
        coordinator = _make_coordinator(store, ScriptedGateway(make_classification_json()))

        asyncio.run(coordinator.report("example.com", ["https://example.com/legal"]))

        assert store.pending["example.com"].suggested_policy_urls == ["https://example.com/legal"]

    def test_report_rejects_invalid_domain(self, store: InMemoryStore) -> None:
        coordinator = _make_coordinator(store, ScriptedGateway(make_classification_json()))

        with pytest.raises(ValueError):
            asyncio.run(coordinator.report("   "))

    def test_assess_text_stores_manual_override(self, store: InMemoryStore) -> None:
        asyncio.run(store.add_pending("example.com"))
        coordinator = _make_coordinator(store, ScriptedGateway(make_classification_json(overall="Medium")))

        assessment = asyncio.run(coordinator.assess_text("example.com", "Pasted policy.", actor="admin"))

        assert assessment.manual_override
        assert store.assessments["example.com"] == assessment
        assert "example.com" not in store.pending
        assert store.audit[-1].action.value == "assessment_triggered"
        assert store.audit[-1].actor == "admin"


class TestAdminEdits:
    def _seed(self, store: InMemoryStore) -> Assessment:
        assessment = Assessment(
            domain="example.com",
            content_hash="h1",
            classification=RiskClassification(
                categories={"Data Collection & Use": CategoryRisk(risk=RiskLevel.LOW, explanation="Minimal.")},
                risk_level=RiskLevel.LOW,
                summary="Fine.",
            ),
        )
        store.assessments["example.com"] = assessment
        return assessment

    def test_update_sets_override_and_keeps_omitted_fields(self, store: InMemoryStore) -> None:
        original = self._seed(store)
        coordinator = _make_coordinator(store, ScriptedGateway(make_classification_json()))

        updated = asyncio.run(
            coordinator.update_assessment(
                "www.example.com",
                risk_level=RiskLevel.HIGH,
                categories={
                    "Third-Party Sharing & Selling": CategoryRisk(risk=RiskLevel.HIGH, explanation="Sells data.")
                },
                actor="admin",
            )
        )

        assert updated is not None
        assert updated.manual_override
        assert updated.last_updated >= original.last_updated
        assert updated.content_hash == "h1"
        assert updated.classification.risk_level == RiskLevel.HIGH
        assert updated.classification.summary == "Fine."
        assert set(updated.classification.categories) == {
            "Data Collection & Use",
            "Third-Party Sharing & Selling",
        }
        assert store.assessments["example.com"] == updated
        assert original.classification.risk_level == RiskLevel.LOW
        assert store.audit[-1].action.value == "assessment_updated"
        assert store.audit[-1].actor == "admin"
        assert store.audit[-1].details == {"domain": "example.com", "risk_level": "High"}

    def test_update_missing_assessment(self, store: InMemoryStore) -> None:
        coordinator = _make_coordinator(store, ScriptedGateway(make_classification_json()))

        assert asyncio.run(coordinator.update_assessment("example.com", summary="x")) is None
        assert store.audit == []

    def test_update_rejects_unknown_category(self, store: InMemoryStore) -> None:
        self._seed(store)
        coordinator = _make_coordinator(store, ScriptedGateway(make_classification_json()))

        with pytest.raises(ValueError, match="Unknown categories"):
            asyncio.run(
                coordinator.update_assessment(
                    "example.com", categories={"Cookies": CategoryRisk(risk=RiskLevel.HIGH)}
                )
            )
        assert not store.assessments["example.com"].manual_override

    def test_delete_assessment(self, store: InMemoryStore) -> None:
        self._seed(store)
        coordinator = _make_coordinator(store, ScriptedGateway(make_classification_json()))

        assert asyncio.run(coordinator.delete_assessment("example.com", actor="admin"))
        assert "example.com" not in store.assessments
        assert store.actions() == ["assessment_deleted"]
        assert not asyncio.run(coordinator.delete_assessment("example.com"))
        assert store.actions() == ["assessment_deleted"]

    def test_delete_pending(self, store: InMemoryStore) -> None:
        asyncio.run(store.add_pending("example.com"))
        coordinator = _make_coordinator(store, ScriptedGateway(make_classification_json()))

        assert asyncio.run(coordinator.delete_pending("https://example.com/x", actor="admin"))
        assert "example.com" not in store.pending
        assert store.actions() == ["unassessed_url_deleted"]
        assert not asyncio.run(coordinator.delete_pending("example.com"))


class TestStatus:
    @pytest.mark.parametrize(
        ("pending_status", "state"),
        [
            (PendingStatus.PENDING, DomainState.QUEUED),
            (PendingStatus.PROCESSING, DomainState.QUEUED),
            (PendingStatus.FAILED, DomainState.FAILED),
            (PendingStatus.NOT_FOUND, DomainState.NOT_FOUND),
        ],
    )
    def test_pending_states(
        self, store: InMemoryStore, pending_status: PendingStatus, state: DomainState
    ) -> None:
        asyncio.run(store.set_pending_status("example.com", pending_status))
        coordinator = _make_coordinator(store, ScriptedGateway(make_classification_json()))

        assert asyncio.run(coordinator.status("example.com")).state == state

    def test_assessed(self, store: InMemoryStore) -> None:
        store.assessments["example.com"] = Assessment(
            domain="example.com", classification=RiskClassification()
        )
        coordinator = _make_coordinator(store, ScriptedGateway(make_classification_json()))

        status = asyncio.run(coordinator.status("www.example.com"))

        assert status.state == DomainState.ASSESSED
        assert status.assessment is not None

    def test_unknown(self, store: InMemoryStore) -> None:
        coordinator = _make_coordinator(store, ScriptedGateway(make_classification_json()))

        assert asyncio.run(coordinator.status("example.com")).state == DomainState.UNKNOWN


class _RoutingGateway(ScriptedGateway):
    """Answers by looking for a domain name inside the prompt."""

    def __init__(self, answers: dict[str, str]) -> None:
        super().__init__()
        self._answers = answers

    async def classify(self, prompt: str) -> GatewayResponse:
        self.prompts.append(prompt)
        for domain, answer in self._answers.items():
            if domain in prompt:
                return GatewayResponse(text=answer)
        return await super().classify(prompt)
