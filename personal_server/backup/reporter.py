"""Error tracking for backup runs."""

import logging
from typing import Any, Dict, Optional

import sentry_sdk

logger = logging.getLogger(__name__)

FLUSH_TIMEOUT = 2.0


class Reporter:
    """Receives backup telemetry. This base implementation drops everything."""

    enabled = False

    def capture_workload_failure(self, workload: str, error: Exception) -> None:
        pass

    def capture_failure(self, error: Exception, stage: Optional[str] = None) -> None:
        pass

    def capture_success(self, info: Dict[str, Any]) -> None:
        pass

    def flush(self, timeout: float = FLUSH_TIMEOUT) -> None:
        pass


class SentryReporter(Reporter):
    """Sends backup events to Sentry."""

    enabled = True

    def __init__(self, dsn: str):
        # Frame locals hold passphrases and passwords written to subprocess stdin
        sentry_sdk.init(
            dsn=dsn,
            send_default_pii=False,
            include_local_variables=False,
            traces_sample_rate=0.0,
        )

    def capture_workload_failure(self, workload: str, error: Exception) -> None:
        sentry_sdk.capture_exception(error, tags={"workload": workload})

    def capture_failure(self, error: Exception, stage: Optional[str] = None) -> None:
        sentry_sdk.capture_exception(error, tags={"stage": stage or "unknown"})

    def capture_success(self, info: Dict[str, Any]) -> None:
        sentry_sdk.capture_message(
            f"Backup completed successfully: {info.get('archive_name', '')}",
            level="info",
            contexts={"backup_info": info},
        )

    def flush(self, timeout: float = FLUSH_TIMEOUT) -> None:
        sentry_sdk.flush(timeout=timeout)


def create_reporter(dsn: Optional[str]) -> Reporter:
    """
    Build the reporter for a DSN.

    Returns a no-op reporter when no DSN is configured or when Sentry cannot
    be initialized.
    """
    if not dsn:
        return Reporter()

    try:
        reporter = SentryReporter(dsn)
    except Exception as e:
        logger.warning("Failed to initialize Sentry, continuing without error tracking: %s", type(e).__name__)
        return Reporter()

    logger.debug("Sentry error tracking enabled")
    return reporter
