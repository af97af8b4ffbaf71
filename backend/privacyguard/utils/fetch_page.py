"""Utility to download a candidate policy page by URL and extract its text content."""

import logging
import re
from dataclasses import dataclass

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# Some origins reject clients that do not look like a browser.
BROWSER_HEADERS: dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}


def html_to_text(html: str) -> str:
    """
    Extract plain text from HTML: strip tags and normalize whitespace.
    Removes script, style, and other non-visible elements.
    """
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")

    for tag in soup(["script", "style", "noscript", "iframe", "svg"]):
        tag.decompose()

    text = soup.get_text(separator=" ", strip=True)
    text = re.sub(r"\s+", " ", text)
    return text.strip()


@dataclass(frozen=True)
class FetchedDocument:
    url: str
    status: int
    body: str


@dataclass(frozen=True)
class FetchFailure:
    url: str
    reason: str
    status: int | None = None


FetchResult = FetchedDocument | FetchFailure


class DocumentFetcher:
    """
    HTTP GET with a bounded timeout, bounded redirects and browser-like headers.
    Failed connection attempts are retried *retries* times by the transport.

    Network errors and timeouts come back as FetchFailure values; nothing is raised
    for an individual URL.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 15.0,
        max_redirects: int = 5,
        headers: dict[str, str] | None = None,
        verify: bool = True,
        retries: int = 1,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout_seconds
        self._max_redirects = max_redirects
        self._headers = dict(headers or BROWSER_HEADERS)
        self._verify = verify
        self._retries = retries
        self._transport = transport

    def _make_transport(self) -> httpx.AsyncBaseTransport:
        if self._transport is not None:
            return self._transport
        return httpx.AsyncHTTPTransport(verify=self._verify, retries=self._retries)

    async def get(self, url: str) -> FetchResult:
        """Fetch *url*; return the body on any response, or a FetchFailure on transport errors."""
        try:
            async with httpx.AsyncClient(
                follow_redirects=True,
                max_redirects=self._max_redirects,
                timeout=self._timeout,
                headers=self._headers,
                transport=self._make_transport(),
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException as e:
            logger.info("Timed out fetching %s: %s", url, e)
            return FetchFailure(url=url, reason=f"timeout: {e}")
        except httpx.TooManyRedirects as e:
            logger.info("Too many redirects fetching %s", url)
            return FetchFailure(url=url, reason=f"too many redirects: {e}")
        except httpx.HTTPError as e:
            logger.info("Error fetching %s: %s", url, e)
            return FetchFailure(url=url, reason=str(e) or type(e).__name__)
        return FetchedDocument(url=url, status=response.status_code, body=response.text)
