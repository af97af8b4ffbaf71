import json

import pytest

from fakes import make_classification_json
from privacyguard.pipeline.parser import (
    ParsedClassification,
    ParseFailure,
    normalize_risk_level,
    parse_classification,
)
from privacyguard.schemas.assessment import RiskLevel


class TestNormalizeRiskLevel:
    @pytest.mark.parametrize(
        ("label", "expected"),
        [
            ("High", RiskLevel.HIGH),
            ("very HIGH risk", RiskLevel.HIGH),
            ("medium", RiskLevel.MEDIUM),
            ("Moderate", RiskLevel.MEDIUM),
            ("low", RiskLevel.LOW),
            ("Unknown", RiskLevel.UNKNOWN),
            ("n/a", RiskLevel.UNKNOWN),
            (None, RiskLevel.UNKNOWN),
            (3, RiskLevel.UNKNOWN),
        ],
    )
    def test_maps_labels(self, label: object, expected: RiskLevel) -> None:
        assert normalize_risk_level(label) == expected


class TestParseClassification:
    def test_parses_valid_payload(self) -> None:
        outcome = parse_classification(make_classification_json(overall="low"))

        assert isinstance(outcome, ParsedClassification)
        assert outcome.classification.risk_level == RiskLevel.LOW
        assert outcome.classification.summary == "Reasonable policy."
        assert outcome.classification.categories["Data Collection & Use"].risk == RiskLevel.LOW

    def test_tolerates_code_fences_and_prose(self) -> None:
        raw = "Here you go:\n```json\n" + make_classification_json(overall="High") + "\n```"

        outcome = parse_classification(raw)

        assert isinstance(outcome, ParsedClassification)
        assert outcome.classification.risk_level == RiskLevel.HIGH

    def test_non_json_is_failure(self) -> None:
        outcome = parse_classification("I cannot help with that.")

        assert isinstance(outcome, ParseFailure)
        assert "No JSON object" in outcome.message

    def test_broken_json_is_failure(self) -> None:
        outcome = parse_classification('{"categories": {,}')

        assert isinstance(outcome, ParseFailure)
        assert "Invalid JSON" in outcome.message

    @pytest.mark.parametrize("missing", ["categories", "overallRisk", "summary"])
    def test_missing_required_field_is_failure(self, missing: str) -> None:
        payload = json.loads(make_classification_json())
        del payload[missing]

        outcome = parse_classification(json.dumps(payload))

        assert isinstance(outcome, ParseFailure)
        assert missing in outcome.message

    def test_empty_summary_is_failure(self) -> None:
        payload = json.loads(make_classification_json())
        payload["summary"] = ""

        assert isinstance(parse_classification(json.dumps(payload)), ParseFailure)

    def test_category_without_risk_is_failure(self) -> None:
        payload = json.loads(make_classification_json())
        payload["categories"]["Data Collection & Use"] = {"explanation": "no risk given"}

        assert isinstance(parse_classification(json.dumps(payload)), ParseFailure)
