"""Application utilities."""

from privacyguard.utils.fetch_page import DocumentFetcher, FetchedDocument, FetchFailure, html_to_text
from privacyguard.utils.url_utils import normalize_domain, registrable_domain

__all__ = [
    "DocumentFetcher",
    "FetchedDocument",
    "FetchFailure",
    "html_to_text",
    "normalize_domain",
    "registrable_domain",
]
