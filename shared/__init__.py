"""
Shared utilities for the Trade-In Pricing Layer.

This package aggregates common building blocks consumed by the services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with trace and request correlation
- metrics: Prometheus metrics helpers
- tracing: OpenTelemetry tracing setup and span helpers
- observability: Logging, metrics and tracing wired together per service
- errors: Canonical error types and responses
- retry: Retry decorator with backoff
- circuit_breaker: Resilient external call protection
- base_service: FastAPI service shell (health, metrics, error handlers)

Do not import from service_* packages into shared/.
"""
