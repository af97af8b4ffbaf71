"""Validates raw classification output against the expected response schema."""

import json
import re
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from privacyguard.schemas.assessment import CategoryRisk, RiskClassification, RiskLevel

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def normalize_risk_level(label: Any) -> RiskLevel:
    """Map a free-text label onto a RiskLevel by case-insensitive substring match."""
    if not isinstance(label, str):
        return RiskLevel.UNKNOWN
    level = label.lower()
    if "high" in level:
        return RiskLevel.HIGH
    if "medium" in level or "moderate" in level:
        return RiskLevel.MEDIUM
    if "low" in level:
        return RiskLevel.LOW
    return RiskLevel.UNKNOWN


class _RawCategory(BaseModel):
    model_config = ConfigDict(extra="ignore")

    risk: str
    explanation: str = ""

    @field_validator("explanation", mode="before")
    @classmethod
    def _coerce_explanation(cls, value: Any) -> str:
        return "" if value is None else str(value)


class _RawClassification(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    categories: dict[str, _RawCategory]
    overall_risk: str = Field(..., alias="overallRisk", min_length=1)
    summary: str = Field(..., min_length=1)


@dataclass(frozen=True)
class ParsedClassification:
    classification: RiskClassification


@dataclass(frozen=True)
class ParseFailure:
    message: str
    raw: str


ParseOutcome = ParsedClassification | ParseFailure


def parse_classification(raw: str) -> ParseOutcome:
    """
    Parse gateway text into a RiskClassification.

    The first-to-last brace span is taken as the JSON object so surrounding prose or
    code fences are tolerated. Missing categories/overallRisk/summary is a failure.
    """
    match = _JSON_OBJECT_RE.search(raw or "")
    if match is None:
        return ParseFailure("No JSON object found in classification response", raw or "")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        return ParseFailure(f"Invalid JSON in classification response: {exc}", raw)
    try:
        parsed = _RawClassification.model_validate(data)
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        return ParseFailure(f"Invalid classification structure: {errors}", raw)

    categories = {
        name: CategoryRisk(risk=normalize_risk_level(entry.risk), explanation=entry.explanation)
        for name, entry in parsed.categories.items()
    }
    return ParsedClassification(
        RiskClassification(
            categories=categories,
            risk_level=normalize_risk_level(parsed.overall_risk),
            summary=parsed.summary,
        )
    )
