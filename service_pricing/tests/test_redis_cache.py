"""
Unit tests for the active-rule Redis cache.
"""

import pytest
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import redis.asyncio as redis

from service_pricing.app.cache.redis_cache import ActiveRuleCache
from service_pricing.app.catalog.models import RuleRecord


class TestActiveRuleCache:
    """Test cases for ActiveRuleCache."""

    @pytest.fixture
    def redis_client(self):
        """Mock Redis client."""
        client = MagicMock()
        client.get = AsyncMock(return_value=None)
        client.setex = AsyncMock(return_value=True)
        client.delete = AsyncMock(return_value=1)
        client.ping = AsyncMock(return_value=True)
        return client

    @pytest.fixture
    def cache(self, redis_client):
        """Create ActiveRuleCache over the mock client."""
        return ActiveRuleCache("redis://localhost:6379/0", ttl_seconds=120, client=redis_client)

    @pytest.fixture
    def record(self):
        """Sample rule record."""
        return RuleRecord(
            id="r-1",
            type_alias="PHONE",
            kind="pricing",
            body={"basePrice": 500, "adjustments": []},
            version=2,
            is_active=True,
            created_at=datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        )

    @pytest.mark.asyncio
    async def test_set_and_get(self, cache, redis_client, record):
        """Test a cached record comes back intact."""
        assert await cache.set("t1", "pricing", record) is True

        key, ttl, payload = redis_client.setex.call_args.args
        assert key == "rule:active:pricing:t1"
        assert ttl == 120

        redis_client.get.return_value = payload
        cached = await cache.get("t1", "pricing")

        assert cached == record
        redis_client.get.assert_called_with("rule:active:pricing:t1")

    @pytest.mark.asyncio
    async def test_get_miss(self, cache):
        """Test a missing key is a miss."""
        assert await cache.get("t1", "pricing") is None

    @pytest.mark.asyncio
    async def test_get_error_is_miss(self, cache, redis_client):
        """Test Redis errors degrade to a miss."""
        redis_client.get.side_effect = redis.ConnectionError("down")

        assert await cache.get("t1", "pricing") is None

    @pytest.mark.asyncio
    async def test_get_corrupt_entry_is_miss(self, cache, redis_client):
        """Test an unreadable entry degrades to a miss."""
        redis_client.get.return_value = json.dumps({"id": "r-1"})

        assert await cache.get("t1", "pricing") is None

    @pytest.mark.asyncio
    async def test_set_error(self, cache, redis_client, record):
        """Test a failed write reports False instead of raising."""
        redis_client.setex.side_effect = redis.TimeoutError("slow")

        assert await cache.set("t1", "pricing", record) is False

    @pytest.mark.asyncio
    async def test_invalidate_kind(self, cache, redis_client):
        """Test invalidation deletes every key of the kind."""
        keys = ["rule:active:pricing:t1", "rule:active:pricing:PHONE"]

        async def scan_iter(match):
            assert match == "rule:active:pricing:*"
            for key in keys:
                yield key

        redis_client.scan_iter = scan_iter

        assert await cache.invalidate_kind("pricing") == 2
        redis_client.delete.assert_called_once_with(*keys)

    @pytest.mark.asyncio
    async def test_health_check(self, cache, redis_client):
        """Test health check pings Redis."""
        assert await cache.health_check() is True

        redis_client.ping.side_effect = redis.ConnectionError("down")
        assert await cache.health_check() is False
