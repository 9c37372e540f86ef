"""
Consent Sync Monitoring

Structured logging setup and per-workflow log context.
"""

from consent_sync.monitoring.logging import (
    configure_from_settings,
    configure_logging,
    log_duration,
    redact_consent_data,
    sync_cycle,
)

__all__ = [
    "configure_from_settings",
    "configure_logging",
    "log_duration",
    "redact_consent_data",
    "sync_cycle",
]
