"""Observability module.

Structured logging with request correlation, Prometheus metrics and health
checks.
"""
