"""
Core telemetry pipeline.

- masking: sensitive data redaction
- correlation: request/correlation ids and the request-scoped logger
- snapshot: per-request resource readings and deltas
- aggregator: business statistics over product collections
- events: masked business event records
- metrics: Prometheus registry
"""
