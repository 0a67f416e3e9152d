"""
Telemetry Module
================

Observability for the analytics API.

Components:
- sentry.py: Error tracking

Usage:
    from restaurant_analytics.telemetry import init_sentry, capture_exception
"""

from restaurant_analytics.telemetry.sentry import capture_exception, init_sentry

__all__ = [
    "init_sentry",
    "capture_exception",
]
