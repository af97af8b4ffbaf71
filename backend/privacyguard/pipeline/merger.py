"""Combine per-chunk classifications into one document-level verdict."""

import logging

from privacyguard.schemas.assessment import (
    PRIVACY_CATEGORIES,
    CategoryRisk,
    RiskClassification,
    RiskLevel,
    max_severity,
)

logger = logging.getLogger(__name__)

NOT_ADDRESSED = "Not addressed"
SUMMARY_PREFIX = "This privacy policy assessment is based on analysis of multiple sections."


def combine_classifications(classifications: list[RiskClassification]) -> RiskClassification:
    """
    Merge classifications with a severity-only-escalates rule.

    A category entry is replaced only by a strictly more severe, non-Unknown entry,
    so the first chunk to report the highest severity supplies the explanation.
    Categories outside PRIVACY_CATEGORIES are ignored.
    """
    combined: dict[str, CategoryRisk] = {
        category: CategoryRisk(risk=RiskLevel.UNKNOWN, explanation=NOT_ADDRESSED)
        for category in PRIVACY_CATEGORIES
    }

    for classification in classifications:
        for category, entry in classification.categories.items():
            current = combined.get(category)
            if current is None:
                logger.debug("Ignoring unrecognised category %r", category)
                continue
            if entry.risk != RiskLevel.UNKNOWN and entry.risk.severity > current.risk.severity:
                combined[category] = CategoryRisk(risk=entry.risk, explanation=entry.explanation)

    summaries = [c.summary or "No summary available" for c in classifications]
    summary = " ".join([SUMMARY_PREFIX, *summaries])

    return RiskClassification(
        categories=combined,
        risk_level=max_severity([entry.risk for entry in combined.values()]),
        summary=summary,
    )
