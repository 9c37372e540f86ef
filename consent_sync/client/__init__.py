"""
Consent Service Client

Interface, HTTP implementation and failure taxonomy for the remote consent
service.
"""

from consent_sync.client.errors import (
    ConsentServiceError,
    ConsentSyncError,
    InvalidResponseConsentError,
    InvalidResponseError,
    LoadMessagesError,
    ReportActionError,
    TransportError,
    UnsupportedCampaignError,
)
from consent_sync.client.http import ConsentServiceClient
from consent_sync.client.protocol import ConsentServiceProtocol

__all__ = [
    "ConsentServiceClient",
    "ConsentServiceProtocol",
    "ConsentSyncError",
    "ConsentServiceError",
    "TransportError",
    "InvalidResponseError",
    "InvalidResponseConsentError",
    "UnsupportedCampaignError",
    "LoadMessagesError",
    "ReportActionError",
]
