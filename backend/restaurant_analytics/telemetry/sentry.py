"""
Sentry Error Tracking
=====================

Error tracking for the analytics API using Sentry.

Related files:
- restaurant_analytics/main.py: initializes Sentry in create_app() and
  reports QueryExecutionError from the exception handler

Environment Variables:
- SENTRY_DSN: Sentry project DSN (Sentry stays disabled when unset)
- ENVIRONMENT: Environment name (production, staging, development)
"""

from __future__ import annotations

import logging
import os
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.redis import RedisIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sentry_sdk.utils import BadDsn

from restaurant_analytics.deps import Settings, get_settings

logger = logging.getLogger(__name__)


def init_sentry(settings: Optional[Settings] = None) -> bool:
    """
    Initialize the Sentry SDK for FastAPI.

    Call once in create_app(), before the FastAPI app is built.

    Returns:
        True if Sentry was initialized, False when no DSN is configured or
        the DSN is malformed.
    """
    settings = settings or get_settings()
    if not settings.SENTRY_DSN:
        return False

    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                SqlalchemyIntegration(),
                RedisIntegration(),
                LoggingIntegration(
                    level=logging.INFO,        # INFO+ as breadcrumbs
                    event_level=logging.ERROR,  # ERROR+ as events
                ),
            ],
            traces_sample_rate=0.1,
            send_default_pii=False,
            release=os.environ.get("RELEASE_VERSION"),
        )
    except BadDsn as e:
        logger.error(f"[SENTRY] Invalid SENTRY_DSN, error tracking disabled: {e}")
        return False

    logger.info(f"[SENTRY] Initialized for {settings.ENVIRONMENT} environment")
    return True


def capture_exception(exception: Exception, extra: Optional[dict] = None) -> None:
    """
    Report a handled exception to Sentry with extra context.

    A no-op when Sentry was not initialized.

    Example:
        capture_exception(exc, extra={"endpoint": "metrics"})
    """
    with sentry_sdk.new_scope() as scope:
        for key, value in (extra or {}).items():
            scope.set_extra(key, value)
        sentry_sdk.capture_exception(exception)
