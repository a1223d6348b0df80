"""Prometheus metrics for parameter resolution.

Labels are limited to low-cardinality outcomes; app names and image
references are never used as label values.
"""
from prometheus_client import Counter

# Validation outcomes
validations_total = Counter(
    "gkedeploy_validations_total",
    "Validated deployment intents by outcome",
    ["outcome"]
)

validation_warnings_total = Counter(
    "gkedeploy_validation_warnings_total",
    "Warnings reported while validating deployment intents"
)

# Registry lookups
digest_lookups_total = Counter(
    "gkedeploy_digest_lookups_total",
    "Sidecar image digest lookups by outcome",
    ["outcome"]
)


def record_validation(valid: bool, warning_count: int = 0) -> None:
    validations_total.labels(outcome="valid" if valid else "invalid").inc()
    if warning_count:
        validation_warnings_total.inc(warning_count)


def record_digest_lookup(outcome: str) -> None:
    digest_lookups_total.labels(outcome=outcome).inc()
