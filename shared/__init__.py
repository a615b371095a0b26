"""
Shared utilities for the parcel routing service.

This package aggregates common building blocks consumed by the routing
service and its tooling:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request/batch correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- test_helpers: Factories for departments, rules and raw parcel records

Runtime modules here must not import from service_* packages;
test_helpers is the only exception.
"""
