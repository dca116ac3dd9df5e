"""
Redis cache of active-rule lookups for the Pricing Service.
"""

import json
from typing import Optional
from datetime import datetime

import redis.asyncio as redis

from shared.logging import get_logger
from shared.errors import UpstreamUnavailableError
from ..catalog.models import RuleRecord


class ActiveRuleCache:
    """Caches the record ``get_active`` returned for a (type reference, kind).

    Entries expire after ``ttl_seconds``; local create/activate calls also
    drop every entry of the affected kind. Cache failures never fail a
    lookup: they read as a miss.
    """

    KEY_PREFIX = "rule:active:"

    def __init__(self, redis_url: str, ttl_seconds: int = 300, client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self.ttl_seconds = ttl_seconds
        self.logger = get_logger("pricing.cache.redis")
        self.redis: Optional[redis.Redis] = client

    async def start(self):
        """Start the Redis cache."""
        if self.redis is not None:
            return
        try:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )
            await self.redis.ping()
            self.logger.info("Redis rule cache started")

        except redis.RedisError as e:
            self.logger.error("Failed to start Redis rule cache", error=str(e))
            raise UpstreamUnavailableError("redis", str(e)) from e

    async def stop(self):
        """Stop the Redis cache."""
        if self.redis:
            await self.redis.aclose()
            self.logger.info("Redis rule cache stopped")

    def _key(self, type_alias: str, kind: str) -> str:
        return f"{self.KEY_PREFIX}{kind}:{type_alias}"

    async def get(self, type_alias: str, kind: str) -> Optional[RuleRecord]:
        """Cached record for (type reference, kind), if any."""
        try:
            cached = await self.redis.get(self._key(type_alias, kind))
            if not cached:
                return None
            data = json.loads(cached)
            return RuleRecord(
                id=data["id"],
                type_alias=data["typeAlias"],
                kind=data["kind"],
                body=data["body"],
                version=data["version"],
                is_active=data["isActive"],
                created_at=datetime.fromisoformat(data["createdAt"])
            )
        except (redis.RedisError, ValueError, KeyError, TypeError) as e:
            self.logger.error("Error reading cached rule", type_alias=type_alias, kind=kind, error=str(e))
            return None

    async def set(self, type_alias: str, kind: str, record: RuleRecord) -> bool:
        """Cache the record served for (type reference, kind)."""
        try:
            data = {
                "id": record.id,
                "typeAlias": record.type_alias,
                "kind": record.kind,
                "body": record.body,
                "version": record.version,
                "isActive": record.is_active,
                "createdAt": record.created_at.isoformat()
            }
            await self.redis.setex(self._key(type_alias, kind), self.ttl_seconds, json.dumps(data))
            return True
        except (redis.RedisError, TypeError, ValueError) as e:
            self.logger.error("Error caching rule", type_alias=type_alias, kind=kind, error=str(e))
            return False

    async def invalidate_kind(self, kind: str) -> int:
        """Drop every cached lookup for ``kind``."""
        try:
            keys = [key async for key in self.redis.scan_iter(match=f"{self.KEY_PREFIX}{kind}:*")]
            if keys:
                await self.redis.delete(*keys)
                self.logger.info("Invalidated cached rules", kind=kind, count=len(keys))
            return len(keys)
        except redis.RedisError as e:
            self.logger.error("Error invalidating cached rules", kind=kind, error=str(e))
            return 0

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            await self.redis.ping()
            return True
        except redis.RedisError:
            return False
