"""Assessment, pending-queue and audit-log storage in Valkey."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from privacyguard.pipeline.exceptions import StoreError
from privacyguard.queries import dump_json, get_json, load_json, set_json
from privacyguard.schemas.assessment import (
    Assessment,
    AuditLogEntry,
    PendingEntry,
    PendingStatus,
    utc_now,
)

logger = logging.getLogger(__name__)

ASSESSMENT_PREFIX = "assessment:"
HASH_INDEX_PREFIX = "assessment:hash:"
PENDING_PREFIX = "pending:"
PENDING_INDEX_KEY = "pending:index"
AUDIT_LOG_KEY = "audit:log"


class AssessmentStore(ABC):
    """Contract for the durable store behind the pipeline. Keys are normalized domains."""

    @abstractmethod
    async def get_assessment(self, domain: str) -> Assessment | None: ...

    @abstractmethod
    async def upsert_assessment(self, assessment: Assessment) -> None: ...

    @abstractmethod
    async def delete_assessment(self, domain: str) -> bool:
        """Remove the assessment and its hash-index membership. Returns False if absent."""

    @abstractmethod
    async def find_assessment_by_content_hash(
        self, content_hash: str, exclude_domain: str | None = None
    ) -> Assessment | None: ...

    @abstractmethod
    async def add_pending(self, domain: str, suggested_urls: list[str] | None = None) -> bool:
        """Create a Pending entry if none exists. Returns True when created."""

    @abstractmethod
    async def get_pending(
        self, status: PendingStatus | None = None, limit: int = 100
    ) -> list[PendingEntry]:
        """Pending entries oldest first, optionally filtered by status."""

    @abstractmethod
    async def get_pending_entry(self, domain: str) -> PendingEntry | None: ...

    @abstractmethod
    async def set_pending_status(self, domain: str, status: PendingStatus) -> None:
        """Update the entry's status, creating the entry when absent."""

    @abstractmethod
    async def remove_pending(self, domain: str) -> None: ...

    @abstractmethod
    async def get_suggested_urls(self, domain: str) -> list[str]: ...

    @abstractmethod
    async def set_suggested_urls(self, domain: str, urls: list[str]) -> bool:
        """Replace suggested URLs on an existing entry. Returns False if not queued."""

    @abstractmethod
    async def append_audit_log(self, entry: AuditLogEntry) -> None: ...

    @abstractmethod
    async def get_audit_log(self, limit: int = 100) -> list[AuditLogEntry]:
        """Most recent entries, oldest first."""


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (RedisError, ValidationError, ValueError) as e:
        logger.error("Store operation %s failed: %s", operation, e)
        raise StoreError(f"{operation} failed: {e}") from e


def _decode(value: bytes | str) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


class RedisAssessmentStore(AssessmentStore):
    """
    Valkey-backed store.

    Assessments are JSON under ``assessment:{domain}`` with a set per content hash
    (``assessment:hash:{hash}``) listing the domains that share it. Pending entries
    are JSON under ``pending:{domain}``, ordered by a sorted set scored by first-seen
    time. The audit log is an append-only list.
    """

    def __init__(self, client: Redis) -> None:
        self._client = client

    async def get_assessment(self, domain: str) -> Assessment | None:
        with _store_errors("get_assessment"):
            return await get_json(self._client, f"{ASSESSMENT_PREFIX}{domain}", Assessment)

    async def upsert_assessment(self, assessment: Assessment) -> None:
        key = f"{ASSESSMENT_PREFIX}{assessment.domain}"
        with _store_errors("upsert_assessment"):
            previous = await get_json(self._client, key, Assessment)
            async with self._client.pipeline(transaction=True) as pipe:
                stale_hash = previous.content_hash if previous else None
                if stale_hash and stale_hash != assessment.content_hash:
                    pipe.srem(f"{HASH_INDEX_PREFIX}{stale_hash}", assessment.domain)
                pipe.set(key, dump_json(assessment))
                if assessment.content_hash:
                    pipe.sadd(f"{HASH_INDEX_PREFIX}{assessment.content_hash}", assessment.domain)
                await pipe.execute()
        logger.info("Stored assessment for %s", assessment.domain)

    async def delete_assessment(self, domain: str) -> bool:
        key = f"{ASSESSMENT_PREFIX}{domain}"
        with _store_errors("delete_assessment"):
            previous = await get_json(self._client, key, Assessment)
            if previous is None:
                return False
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                if previous.content_hash:
                    pipe.srem(f"{HASH_INDEX_PREFIX}{previous.content_hash}", domain)
                await pipe.execute()
        logger.info("Deleted assessment for %s", domain)
        return True

    async def find_assessment_by_content_hash(
        self, content_hash: str, exclude_domain: str | None = None
    ) -> Assessment | None:
        with _store_errors("find_assessment_by_content_hash"):
            members = await self._client.smembers(f"{HASH_INDEX_PREFIX}{content_hash}")
            for domain in sorted(_decode(m) for m in members):
                if domain == exclude_domain:
                    continue
                assessment = await get_json(
                    self._client, f"{ASSESSMENT_PREFIX}{domain}", Assessment
                )
                if assessment is not None and assessment.content_hash == content_hash:
                    return assessment
        return None

    async def add_pending(self, domain: str, suggested_urls: list[str] | None = None) -> bool:
        entry = PendingEntry(domain=domain, suggested_policy_urls=list(suggested_urls or []))
        with _store_errors("add_pending"):
            created = await set_json(
                self._client, f"{PENDING_PREFIX}{domain}", entry, only_if_absent=True
            )
            if created:
                await self._client.zadd(
                    PENDING_INDEX_KEY, {domain: entry.first_seen.timestamp()}, nx=True
                )
        return created

    async def get_pending(
        self, status: PendingStatus | None = None, limit: int = 100
    ) -> list[PendingEntry]:
        out: list[PendingEntry] = []
        with _store_errors("get_pending"):
            domains = [_decode(d) for d in await self._client.zrange(PENDING_INDEX_KEY, 0, -1)]
            if not domains:
                return out
            raws = await self._client.mget([f"{PENDING_PREFIX}{d}" for d in domains])
            for domain, raw in zip(domains, raws):
                entry = load_json(raw, PendingEntry)
                if entry is None:
                    logger.warning("Pending index references missing entry %s", domain)
                    continue
                if status is not None and entry.status != status:
                    continue
                out.append(entry)
                if len(out) >= limit:
                    break
        return out

    async def get_pending_entry(self, domain: str) -> PendingEntry | None:
        with _store_errors("get_pending_entry"):
            return await get_json(self._client, f"{PENDING_PREFIX}{domain}", PendingEntry)

    async def set_pending_status(self, domain: str, status: PendingStatus) -> None:
        with _store_errors("set_pending_status"):
            entry = await get_json(self._client, f"{PENDING_PREFIX}{domain}", PendingEntry)
            if entry is None:
                entry = PendingEntry(domain=domain, first_seen=utc_now())
            entry.status = status
            await set_json(self._client, f"{PENDING_PREFIX}{domain}", entry)
            await self._client.zadd(
                PENDING_INDEX_KEY, {domain: entry.first_seen.timestamp()}, nx=True
            )

    async def remove_pending(self, domain: str) -> None:
        with _store_errors("remove_pending"):
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.delete(f"{PENDING_PREFIX}{domain}")
                pipe.zrem(PENDING_INDEX_KEY, domain)
                await pipe.execute()

    async def get_suggested_urls(self, domain: str) -> list[str]:
        entry = await self.get_pending_entry(domain)
        return list(entry.suggested_policy_urls) if entry else []

    async def set_suggested_urls(self, domain: str, urls: list[str]) -> bool:
        with _store_errors("set_suggested_urls"):
            entry = await get_json(self._client, f"{PENDING_PREFIX}{domain}", PendingEntry)
            if entry is None:
                return False
            entry.suggested_policy_urls = list(urls)
            await set_json(self._client, f"{PENDING_PREFIX}{domain}", entry)
        return True

    async def append_audit_log(self, entry: AuditLogEntry) -> None:
        with _store_errors("append_audit_log"):
            await self._client.rpush(AUDIT_LOG_KEY, dump_json(entry))

    async def get_audit_log(self, limit: int = 100) -> list[AuditLogEntry]:
        with _store_errors("get_audit_log"):
            raws: list[Any] = await self._client.lrange(AUDIT_LOG_KEY, -limit, -1)
            return [entry for entry in (load_json(r, AuditLogEntry) for r in raws) if entry]
