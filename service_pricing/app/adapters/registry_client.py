"""
Remote rule registry client for the Pricing Service.
"""

from typing import Optional

import httpx

from shared.logging import get_logger
from shared.errors import RuleNotFoundError, UpstreamUnavailableError
from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException
from shared.retry import retry_on_exception, RetryConfig, RetryError
from ..catalog.models import RuleRecord

_UNAVAILABLE_STATUSES = (502, 503, 504)


class RegistryUnavailable(Exception):
    """Transient registry failure worth retrying."""


class RegistryClient:
    """Fetches active rules from a remote registry's ``/rules/active``."""

    def __init__(self, registry_url: str, timeout: float = 8.0,
                 retry_config: Optional[RetryConfig] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.registry_url = registry_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.logger = get_logger("pricing.registry_client")
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=3,
            recovery_timeout=30.0,
            expected_exception=(httpx.TransportError, RegistryUnavailable),
            name="rule_registry"
        )
        self.retry_config = retry_config or RetryConfig(
            max_attempts=3,
            base_delay=0.5,
            max_delay=4.0,
            exponential_base=2.0,
            jitter=True
        )
        self._fetch = retry_on_exception(
            (httpx.TransportError, RegistryUnavailable), config=self.retry_config
        )(self._fetch_once)

    async def get_active(self, type_alias: str, kind: str) -> RuleRecord:
        """Active rule for (type, kind) as served by the registry."""
        try:
            payload = await self._fetch(type_alias, kind)
        except RetryError as e:
            self.logger.error("Rule registry unreachable", type_alias=type_alias, kind=kind,
                              error=str(e.last_exception))
            raise UpstreamUnavailableError(
                "registry", "Registry unavailable", details={"error": str(e.last_exception)}
            ) from e
        except CircuitBreakerOpenException as e:
            raise UpstreamUnavailableError("registry", str(e)) from e

        if not isinstance(payload, dict) or not payload:
            raise RuleNotFoundError(details={"typeAlias": type_alias, "kind": kind})

        record = RuleRecord.from_document(payload)
        record.type_alias = record.type_alias or type_alias
        record.kind = record.kind or kind
        return record

    async def _fetch_once(self, type_alias: str, kind: str):
        return await self.circuit_breaker.call(self._request, type_alias, kind)

    async def _request(self, type_alias: str, kind: str):
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(
                f"{self.registry_url}/rules/active",
                params={"typeAlias": type_alias, "kind": kind}
            )

        if response.status_code == 404:
            raise RuleNotFoundError(details={"typeAlias": type_alias, "kind": kind})
        if response.status_code in _UNAVAILABLE_STATUSES:
            raise RegistryUnavailable(f"registry returned {response.status_code}")
        if response.status_code != 200:
            self.logger.error("Unexpected registry response", status_code=response.status_code)
            raise UpstreamUnavailableError(
                "registry",
                "Error retrieving pricing rule",
                details={"status_code": response.status_code}
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamUnavailableError("registry", "Invalid registry payload") from e

    async def health_check(self) -> bool:
        return self.circuit_breaker.allows_calls()
