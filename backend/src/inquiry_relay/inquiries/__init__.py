"""Inquiry submission API, schemas and message formatting."""
