"""Idempotency key storage: ``idempotency_key -> (order_id, fingerprint)`` with expiry."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from utils.cache_service import LRUCache
from utils.error_handling import InfrastructureError


@dataclass(frozen=True)
class IdempotencyRecord:
    """Order issued under a key, and a digest of the request that issued it."""

    order_id: str
    fingerprint: str


class IdempotencyBackend(ABC):
    """Interface for idempotency record persistence."""

    @abstractmethod
    def get(self, key: str) -> Optional[IdempotencyRecord]:
        """Return the record if it exists and has not expired."""
        ...

    @abstractmethod
    def put(self, key: str, record: IdempotencyRecord, ttl_seconds: int) -> None:
        """Bind ``key`` to ``record`` for ``ttl_seconds``."""
        ...


class InMemoryIdempotencyBackend(IdempotencyBackend):
    """LRU cache backend; bounded in size as well as time. Scoped to one process."""

    def __init__(self, max_size: int = 10_000, ttl_seconds: int = 86400):
        self.cache = LRUCache(max_size=max_size, ttl_seconds=ttl_seconds)

    def get(self, key: str) -> Optional[IdempotencyRecord]:
        return self.cache.get(key)

    def put(self, key: str, record: IdempotencyRecord, ttl_seconds: int) -> None:
        self.cache.set(key, record, ttl_seconds=ttl_seconds)


class DynamoDbIdempotencyBackend(IdempotencyBackend):
    """Table keyed by ``idempotency_key`` with ``expires_at`` as the TTL attribute."""

    def __init__(self, table_name: str, dynamodb: Any = None, config: Any = None):
        resource = dynamodb or boto3.resource("dynamodb", config=config)
        self.table = resource.Table(table_name)

    def get(self, key: str) -> Optional[IdempotencyRecord]:
        try:
            resp = self.table.get_item(Key={"idempotency_key": key})
        except (ClientError, BotoCoreError) as exc:
            raise InfrastructureError("Idempotency store unavailable") from exc
        item = resp.get("Item")
        # DynamoDB reaps expired rows lazily, so expiry is enforced on read too.
        if not item or int(item.get("expires_at", 0)) <= int(time.time()):
            return None
        return IdempotencyRecord(order_id=item["order_id"], fingerprint=item.get("fingerprint", ""))

    def put(self, key: str, record: IdempotencyRecord, ttl_seconds: int) -> None:
        try:
            self.table.put_item(
                Item={
                    "idempotency_key": key,
                    "order_id": record.order_id,
                    "fingerprint": record.fingerprint,
                    "expires_at": int(time.time()) + ttl_seconds,
                }
            )
        except (ClientError, BotoCoreError) as exc:
            raise InfrastructureError("Idempotency store unavailable") from exc
