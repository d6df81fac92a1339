"""Prometheus metrics for the inquiry relay.

Defines operational metrics for admission control, the relay pool and delivery.
"""

from prometheus_client import Counter, Histogram, Gauge

# Admission control
admission_rejections_total = Counter(
    "inquiry_admission_rejections_total",
    "Requests rejected by admission control",
    ["limiter"]  # limiter: burst|abuse
)

# Delivery
deliveries_total = Counter(
    "inquiry_deliveries_total",
    "Inquiry delivery outcomes",
    ["category", "outcome"]  # outcome: success|fatal|exhausted
)

delivery_attempts_total = Counter(
    "inquiry_delivery_attempts_total",
    "Individual relay send attempts",
    ["outcome"]  # outcome: success|transient|fatal
)

delivery_duration_seconds = Histogram(
    "inquiry_delivery_duration_seconds",
    "Wall time of a full delivery including retries and backoff",
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]
)

# Relay pool
relay_connections_open = Gauge(
    "inquiry_relay_connections_open",
    "Open connections to the SMTP relay"
)

relay_connections_retired_total = Counter(
    "inquiry_relay_connections_retired_total",
    "Relay connections closed after reaching the per-connection message cap"
)
