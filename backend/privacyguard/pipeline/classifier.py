"""Classify privacy-policy text into per-category risk levels."""

import asyncio
import hashlib
import logging
import math
from collections.abc import Awaitable, Callable

from privacyguard.pipeline.chunker import split_text
from privacyguard.pipeline.exceptions import ClassificationError, GatewayError
from privacyguard.pipeline.merger import combine_classifications
from privacyguard.pipeline.parser import ParseFailure, parse_classification
from privacyguard.pipeline.prompts import build_assessment_prompt, build_chunk_prompt
from privacyguard.pipeline.retry import RetryPolicy, call_with_retry
from privacyguard.schemas.assessment import RiskClassification
from privacyguard.utils.llm_gateway import ClassificationGateway

logger = logging.getLogger(__name__)


def estimate_tokens(text: str) -> int:
    """
    Conservative token estimate from word and character counts.

    Roughly 1.5 tokens per word, a 30% safety margin, a further 20% when the
    average word is long (legal and technical prose), plus a fixed prompt overhead.
    """
    if not text:
        return 0
    char_count = len(text)
    word_count = len(text.split())
    if word_count == 0:
        return math.ceil(char_count / 4) + 50
    complexity = 1.2 if char_count / word_count > 6 else 1.0
    return math.ceil(word_count * 1.5 * 1.3 * complexity) + 50


def compute_text_hash(text: str) -> str:
    """SHA-256 hex digest of the extracted text; the join key for deduplication."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class PolicyClassifier:
    """Runs the direct or chunked classification path against a gateway."""

    def __init__(
        self,
        gateway: ClassificationGateway,
        *,
        token_threshold: int = 2000,
        char_threshold: int = 7000,
        chunk_max_chars: int = 6000,
        chunk_delay_seconds: float = 10.0,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._gateway = gateway
        self._token_threshold = token_threshold
        self._char_threshold = char_threshold
        self._chunk_max_chars = chunk_max_chars
        self._chunk_delay = chunk_delay_seconds
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    def needs_chunking(self, text: str) -> bool:
        return (
            estimate_tokens(text) >= self._token_threshold
            or len(text) >= self._char_threshold
        )

    def split_for_classification(self, text: str) -> list[str]:
        """Chunks of at most chunk_max_chars whose token estimate stays under the threshold."""
        return self._fit(text, self._chunk_max_chars)

    def _fit(self, text: str, max_size: int) -> list[str]:
        fitted: list[str] = []
        for chunk in split_text(text, max_size):
            if estimate_tokens(chunk) < self._token_threshold or len(chunk.split()) <= 1:
                fitted.append(chunk)
            else:
                fitted.extend(self._fit(chunk, max(1, min(max_size, len(chunk)) // 2)))
        return fitted

    async def assess(self, text: str, label: str = "unknown") -> RiskClassification:
        """
        Classify *text*. Raises ClassificationError on unparseable output or once
        the gateway keeps failing after all retries.
        """
        if not text or not text.strip():
            raise ClassificationError(f"No policy text to classify for {label}")

        if not self.needs_chunking(text):
            logger.info("Classifying %s directly (%d chars)", label, len(text))
            return await self._classify_prompt(build_assessment_prompt(text), label)

        chunks = self.split_for_classification(text)
        logger.info("Classifying %s in %d chunks (%d chars)", label, len(chunks), len(text))
        results: list[RiskClassification] = []
        for index, chunk in enumerate(chunks, start=1):
            if index > 1 and self._chunk_delay > 0:
                await self._sleep(self._chunk_delay)
            prompt = build_chunk_prompt(chunk, index, len(chunks))
            results.append(
                await self._classify_prompt(prompt, f"{label} chunk {index}/{len(chunks)}")
            )
        return combine_classifications(results)

    async def _classify_prompt(self, prompt: str, label: str) -> RiskClassification:
        try:
            response = await call_with_retry(
                lambda: self._gateway.classify(prompt),
                self._retry_policy,
                label=label,
                sleep=self._sleep,
            )
        except GatewayError as e:
            raise ClassificationError(f"Classification gateway failed for {label}: {e}") from e

        outcome = parse_classification(response.text)
        if isinstance(outcome, ParseFailure):
            logger.warning("Unparseable classification for %s: %s", label, outcome.message)
            raise ClassificationError(outcome.message)
        return outcome.classification
