"""
Unit tests for the remote rule registry client.
"""

import pytest
import httpx

from shared.errors import RuleNotFoundError, UpstreamUnavailableError
from shared.retry import RetryConfig
from service_pricing.app.adapters.registry_client import RegistryClient


FAST_RETRY = RetryConfig(max_attempts=3, base_delay=0, jitter=False)


def make_client(handler, **kwargs):
    return RegistryClient(
        "http://registry:8080/",
        retry_config=FAST_RETRY,
        transport=httpx.MockTransport(handler),
        **kwargs
    )


class TestRegistryClient:
    """Test cases for RegistryClient."""

    @pytest.fixture
    def rule_document(self):
        """Registry rule document."""
        return {
            "id": "r-42",
            "typeAlias": "PHONE",
            "kind": "pricing",
            "version": 3,
            "isActive": True,
            "body": {"basePrice": 500, "adjustments": []},
            "createdAt": "2024-05-01T10:00:00Z",
        }

    @pytest.mark.asyncio
    async def test_get_active_success(self, rule_document):
        """Test a 200 response becomes a RuleRecord."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=rule_document)

        record = await make_client(handler).get_active("PHONE", "pricing")

        assert record.id == "r-42"
        assert record.version == 3
        assert record.body == {"basePrice": 500, "adjustments": []}
        assert seen[0].url.path == "/rules/active"
        assert seen[0].url.params["typeAlias"] == "PHONE"
        assert seen[0].url.params["kind"] == "pricing"

    @pytest.mark.asyncio
    async def test_get_active_formula_document(self):
        """Test a flattened {formula} document keeps the formula as body."""
        def handler(request):
            return httpx.Response(200, json={"_id": "r-7", "formula": {"basePrice": 90}})

        record = await make_client(handler).get_active("t1", "pricing")

        assert record.id == "r-7"
        assert record.body == {"formula": {"basePrice": 90}}
        assert record.type_alias == "t1"
        assert record.kind == "pricing"

    @pytest.mark.asyncio
    async def test_get_active_not_found(self):
        """Test a 404 maps to RuleNotFoundError without retrying."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404, json={"error": "not found"})

        with pytest.raises(RuleNotFoundError):
            await make_client(handler).get_active("PHONE", "pricing")

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_get_active_empty_payload(self):
        """Test an empty document is treated as no rule."""
        def handler(request):
            return httpx.Response(200, json={})

        with pytest.raises(RuleNotFoundError):
            await make_client(handler).get_active("PHONE", "pricing")

    @pytest.mark.asyncio
    async def test_get_active_retries_gateway_errors(self, rule_document):
        """Test 502-504 responses are retried."""
        responses = [httpx.Response(503), httpx.Response(502), httpx.Response(200, json=rule_document)]

        def handler(request):
            return responses.pop(0)

        record = await make_client(handler).get_active("PHONE", "pricing")

        assert record.id == "r-42"
        assert responses == []

    @pytest.mark.asyncio
    async def test_get_active_unavailable_after_retries(self):
        """Test exhausted retries map to UpstreamUnavailableError."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await make_client(handler).get_active("PHONE", "pricing")

        assert exc_info.value.status_code == 503
        assert exc_info.value.message == "registry: Registry unavailable"

    @pytest.mark.asyncio
    async def test_circuit_opens_after_failures(self):
        """Test the breaker opens and short-circuits later calls."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(504)

        client = make_client(handler)
        with pytest.raises(UpstreamUnavailableError):
            await client.get_active("PHONE", "pricing")

        assert client.circuit_breaker.is_open()
        assert await client.health_check() is False

        with pytest.raises(UpstreamUnavailableError):
            await client.get_active("PHONE", "pricing")
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_health_recovers_after_timeout(self):
        """Test health reports ready once the recovery timeout has elapsed."""
        def handler(request):
            return httpx.Response(504)

        client = make_client(handler)
        with pytest.raises(UpstreamUnavailableError):
            await client.get_active("PHONE", "pricing")
        assert await client.health_check() is False

        client.circuit_breaker.recovery_timeout = 0.0

        assert await client.health_check() is True
        assert client.circuit_breaker.is_open()

    @pytest.mark.asyncio
    async def test_unexpected_status(self):
        """Test other error statuses are reported as upstream failures."""
        def handler(request):
            return httpx.Response(500)

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await make_client(handler).get_active("PHONE", "pricing")

        assert exc_info.value.details == {"status_code": 500}

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        """Test a non-JSON body is reported as an upstream failure."""
        def handler(request):
            return httpx.Response(200, content=b"<html>")

        with pytest.raises(UpstreamUnavailableError):
            await make_client(handler).get_active("PHONE", "pricing")
