"""
Consent Sync - Consent State Synchronization Engine

Reconciles a device-local record of a user's GDPR/CCPA consent with a remote
consent service and drives the report-a-choice protocol.
"""

# Set before the imports below; config reads it as the sdk_version default
__version__ = "1.0.0"

from consent_sync.config import settings
from consent_sync.coordinator import ConsentCoordinator, LoadMessagesResult

__all__ = ["ConsentCoordinator", "LoadMessagesResult", "settings", "__version__"]
