"""
Shared utilities for the Catalog Gateway.

This package aggregates common building blocks consumed by the gateway
service:

- config: Service configuration via pydantic-settings, validated at startup
- logging: Structured logging with trace and tenant correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry decorators for backend clients
- circuit_breaker: Resilient backend call protection
- tracing: OpenTelemetry setup and operation spans

Do not import from service_* packages into shared/.
"""
