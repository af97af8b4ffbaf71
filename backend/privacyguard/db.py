"""Valkey (Redis-compatible) connection management."""

from redis.asyncio import Redis

from privacyguard.core.config import Settings, get_settings

_client: Redis | None = None


def connect(settings: Settings | None = None) -> Redis:
    """Create and store the Valkey connection (call on app startup)."""
    global _client
    settings = settings or get_settings()
    _client = Redis(
        host=settings.valkey_host,
        port=settings.valkey_port,
        db=settings.valkey_db,
        password=settings.valkey_password or None,
        decode_responses=False,
    )
    return _client


async def close() -> None:
    """Close the Valkey connection (call on app shutdown)."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
