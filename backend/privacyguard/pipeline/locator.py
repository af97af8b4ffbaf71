"""Discover a domain's privacy policy by probing suggested URLs and well-known paths."""

import logging
from dataclasses import dataclass, field

from privacyguard.pipeline.providers import ProviderProfile, find_profile
from privacyguard.store import AssessmentStore
from privacyguard.utils.fetch_page import DocumentFetcher, FetchFailure, html_to_text

logger = logging.getLogger(__name__)

COMMON_AGREEMENT_PATHS: tuple[str, ...] = (
    "/privacy",
    "/terms",
    "/privacy-policy",
    "/legal/privacy-policy",
    "/legal/privacy",
    "/legal/terms",
    "/about/privacy",
    "/about/terms",
    "/privacy-notice",
    "/data-policy",
)


@dataclass(frozen=True)
class LocateAttempt:
    """One candidate URL tried and why it was rejected (error is None for the accepted one)."""

    url: str
    source: str
    error: str | None = None
    text_length: int = 0


@dataclass(frozen=True)
class LocatedAgreement:
    text: str
    source_url: str
    pinned_fallback: bool = False


@dataclass
class LocateOutcome:
    agreement: LocatedAgreement | None
    attempts: list[LocateAttempt] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.agreement is not None

    @property
    def attempted_urls(self) -> list[str]:
        return [attempt.url for attempt in self.attempts]


class AgreementLocator:
    """
    Find the policy text for a domain key.

    Candidates are tried in order: suggested URLs recorded for the domain, the
    provider-specific paths (if the domain matches a pinned provider), the common
    paths, then the provider's canonical URL. The first candidate returning HTTP 200
    whose extracted text is longer than *min_length* wins. A matching provider
    with fallback text never comes back empty-handed.
    """

    def __init__(
        self,
        fetcher: DocumentFetcher,
        *,
        store: AssessmentStore | None = None,
        profiles: list[ProviderProfile] | None = None,
        common_paths: tuple[str, ...] = COMMON_AGREEMENT_PATHS,
        min_length: int = 500,
    ) -> None:
        self._fetcher = fetcher
        self._store = store
        self._profiles = list(profiles or [])
        self._common_paths = common_paths
        self._min_length = min_length

    async def locate(self, domain: str) -> LocateOutcome:
        outcome = LocateOutcome(agreement=None)
        if not domain:
            return outcome

        for url in await self._suggested_urls(domain):
            if await self._try(url, "suggested", outcome):
                return outcome

        profile = find_profile(domain, self._profiles)
        paths = [*profile.paths, *self._common_paths] if profile else list(self._common_paths)
        logger.info(
            "Probing %d paths for %s (provider: %s)",
            len(paths), domain, profile.name if profile else "none",
        )
        for path in paths:
            if await self._try(f"https://{domain}{path}", "path", outcome):
                return outcome

        if profile is not None:
            canonical = profile.canonical_url
            if canonical and await self._try(canonical, "canonical", outcome):
                return outcome
            if profile.fallback_text:
                logger.info("Using pinned %s policy text for %s", profile.name, domain)
                outcome.agreement = LocatedAgreement(
                    text=profile.fallback_text,
                    source_url=profile.canonical_url or f"https://{domain}",
                    pinned_fallback=True,
                )
                return outcome

        logger.info("No agreement found for %s after %d attempts", domain, len(outcome.attempts))
        return outcome

    async def _suggested_urls(self, domain: str) -> list[str]:
        if self._store is None:
            return []
        try:
            return await self._store.get_suggested_urls(domain)
        except Exception as e:
            logger.warning("Could not read suggested policy URLs for %s: %s", domain, e)
            return []

    async def _try(self, url: str, source: str, outcome: LocateOutcome) -> bool:
        result = await self._fetcher.get(url)
        if isinstance(result, FetchFailure):
            outcome.attempts.append(LocateAttempt(url=url, source=source, error=result.reason))
            return False
        if result.status != 200 or not result.body:
            outcome.attempts.append(
                LocateAttempt(url=url, source=source, error=f"HTTP {result.status}")
            )
            return False

        text = html_to_text(result.body)
        if len(text) <= self._min_length:
            logger.debug("Text too short at %s (%d chars)", url, len(text))
            outcome.attempts.append(
                LocateAttempt(
                    url=url, source=source, error="text too short", text_length=len(text)
                )
            )
            return False

        logger.info("Found agreement at %s (%s, %d chars)", url, source, len(text))
        outcome.attempts.append(LocateAttempt(url=url, source=source, text_length=len(text)))
        outcome.agreement = LocatedAgreement(text=text, source_url=url)
        return True
