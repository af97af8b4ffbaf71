"""Prompts for classifying a Privacy Policy into risk categories."""

from privacyguard.schemas.assessment import PRIVACY_CATEGORIES

_RISK_DEFINITIONS = """Risk definitions:
- High: Severe concerns (selling data, minimal control)
- Medium: Moderate concerns with opt-outs
- Low: User-friendly, privacy-conscious
- Unknown: Not mentioned"""

_RESPONSE_FORMAT = """Respond with JSON only:
{{
  "categories": {{
    "Category Name": {{
      "risk": "High/Medium/Low/Unknown",
      "explanation": "Brief explanation"
    }}
  }},
  "overallRisk": "High/Medium/Low/Unknown",
  "summary": "{summary_hint}"
}}"""

POLICY_ASSESSMENT_PROMPT = """Analyze this privacy policy and assess risks for users.

Categories to evaluate (High/Medium/Low/Unknown risk):
{categories}

{risk_definitions}

Privacy Policy:
{policy}

{response_format}
"""

CHUNK_ASSESSMENT_PROMPT = """Analyze CHUNK {chunk_number}/{total_chunks} of this privacy policy.

Only assess categories addressed in this chunk (High/Medium/Low/Unknown risk):
{categories}

{risk_definitions}

Privacy Policy Chunk {chunk_number}/{total_chunks}:
{policy}

{response_format}
"""


def _category_list() -> str:
    return "\n".join(f"- {category}" for category in PRIVACY_CATEGORIES)


def build_assessment_prompt(policy_text: str) -> str:
    """Prompt for classifying a whole document in one call."""
    return POLICY_ASSESSMENT_PROMPT.format(
        categories=_category_list(),
        risk_definitions=_RISK_DEFINITIONS,
        policy=policy_text,
        response_format=_RESPONSE_FORMAT.format(summary_hint="Brief overall summary"),
    )


def build_chunk_prompt(chunk_text: str, chunk_number: int, total_chunks: int) -> str:
    """Prompt for classifying one chunk of a long document."""
    return CHUNK_ASSESSMENT_PROMPT.format(
        chunk_number=chunk_number,
        total_chunks=total_chunks,
        categories=_category_list(),
        risk_definitions=_RISK_DEFINITIONS,
        policy=chunk_text,
        response_format=_RESPONSE_FORMAT.format(
            summary_hint="Brief summary of this chunk's content"
        ),
    )
