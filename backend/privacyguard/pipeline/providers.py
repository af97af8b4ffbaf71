"""Pinned provider profiles: extra candidate paths and a fallback policy per provider."""

import logging
from pathlib import Path

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from privacyguard.utils.url_utils import domain_matches

logger = logging.getLogger(__name__)

BUNDLED_PROFILES_PATH = Path(__file__).resolve().parent.parent / "data" / "providers.json"


class ProviderProfile(BaseModel):
    """
    A provider whose domains get special probing.

    Matching domains try *paths* before the generic list, then *canonical_url*;
    if all of that fails, *fallback_text* is used so these domains are never
    reported as not found.
    """

    name: str
    domains: list[str] = Field(..., min_length=1)
    paths: list[str] = Field(default_factory=list)
    canonical_url: str | None = None
    fallback_text: str | None = None

    def matches(self, domain: str) -> bool:
        return domain_matches(domain, self.domains)


_PROFILES = TypeAdapter(list[ProviderProfile])


def load_provider_profiles(path: Path | None = None) -> list[ProviderProfile]:
    """Load profiles from *path*, or the bundled table. Raises ValueError if malformed."""
    if path is None:
        path = BUNDLED_PROFILES_PATH
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ValueError(f"Cannot read provider profiles: {e}") from e
    try:
        profiles = _PROFILES.validate_json(raw)
    except ValidationError as e:
        raise ValueError(f"Invalid provider profiles: {e}") from e
    logger.info("Loaded %d provider profile(s)", len(profiles))
    return profiles


def find_profile(domain: str, profiles: list[ProviderProfile]) -> ProviderProfile | None:
    for profile in profiles:
        if profile.matches(domain):
            return profile
    return None
