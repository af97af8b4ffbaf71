"""Wires the pipeline from application settings."""

from privacyguard.core.config import Settings
from privacyguard.pipeline.classifier import PolicyClassifier
from privacyguard.pipeline.coordinator import ProcessingCoordinator
from privacyguard.pipeline.in_flight import InFlightRegistry
from privacyguard.pipeline.locator import AgreementLocator
from privacyguard.pipeline.providers import load_provider_profiles
from privacyguard.pipeline.retry import RetryPolicy
from privacyguard.store import AssessmentStore
from privacyguard.utils.fetch_page import DocumentFetcher
from privacyguard.utils.llm_gateway import ClassificationGateway, create_gateway


def build_coordinator(
    settings: Settings,
    store: AssessmentStore,
    *,
    gateway: ClassificationGateway | None = None,
    fetcher: DocumentFetcher | None = None,
) -> ProcessingCoordinator:
    """Create a coordinator with its locator and classifier from *settings*."""
    locator = AgreementLocator(
        fetcher
        or DocumentFetcher(
            timeout_seconds=settings.fetch_timeout_seconds,
            max_redirects=settings.fetch_max_redirects,
            verify=settings.fetch_verify_tls,
            retries=settings.fetch_retries,
        ),
        store=store,
        profiles=load_provider_profiles(settings.provider_profiles_path),
        min_length=settings.min_agreement_length,
    )
    classifier = PolicyClassifier(
        gateway or create_gateway(settings),
        token_threshold=settings.classifier_token_threshold,
        char_threshold=settings.classifier_char_threshold,
        chunk_max_chars=settings.chunk_max_chars,
        chunk_delay_seconds=settings.chunk_delay_seconds,
        retry_policy=RetryPolicy(
            max_retries=settings.llm_max_retries,
            initial_delay_seconds=settings.llm_initial_retry_delay_seconds,
        ),
    )
    return ProcessingCoordinator(
        store,
        locator,
        classifier,
        in_flight=InFlightRegistry(),
        batch_concurrency=settings.batch_concurrency,
        pending_batch_limit=settings.pending_batch_limit,
    )
