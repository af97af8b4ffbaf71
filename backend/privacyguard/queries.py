"""Key-value queries: set and get JSON by key (Valkey-backed), with Pydantic support."""

import json
from typing import Any, TypeVar

from pydantic import BaseModel
from redis.asyncio import Redis

T = TypeVar("T", bound=BaseModel)


def dump_json(value: BaseModel | Any) -> bytes:
    """Serialize a Pydantic model (via model_dump_json) or any JSON-serializable value."""
    if isinstance(value, BaseModel):
        return value.model_dump_json().encode("utf-8")
    return json.dumps(value).encode("utf-8")


def load_json(raw: bytes | str | None, model: type[T]) -> T | None:
    """Parse raw JSON and validate into the given Pydantic model; None passes through."""
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    return model.model_validate(json.loads(raw))


async def set_json(
    client: Redis,
    key: str,
    value: BaseModel | Any,
    *,
    ttl_seconds: int | None = None,
    only_if_absent: bool = False,
) -> bool:
    """
    Store a value under the given key as JSON.
    Returns False when only_if_absent is set and the key already exists.
    """
    result = await client.set(key, dump_json(value), ex=ttl_seconds, nx=only_if_absent)
    return bool(result)


async def get_json(client: Redis, key: str, model: type[T]) -> T | None:
    """
    Retrieve a value by key, parse as JSON, and validate into the given Pydantic model.
    Returns an instance of the model or None if the key is missing.
    """
    return load_json(await client.get(key), model)
