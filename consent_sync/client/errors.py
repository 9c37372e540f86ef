"""
Consent Sync Errors

Failure taxonomy shared by the consent service client and the coordinator:

- TransportError: no usable response (network failure, timeout, HTTP error)
- InvalidResponseError: a response arrived but could not be decoded
- InvalidResponseConsentError: decoded, but for the wrong campaign type
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from consent_sync.models.actions import ConsentAction
    from consent_sync.models.campaigns import CampaignType


class ConsentSyncError(Exception):
    """Base exception for consent synchronization errors."""
    pass


class ConsentServiceError(ConsentSyncError):
    """A remote consent service operation failed."""

    code = "sp_metric_generic_error"

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        campaign_type: CampaignType | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.campaign_type = campaign_type
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging and error metrics."""
        return {
            "code": self.code,
            "message": str(self),
            "operation": self.operation,
            "campaign_type": self.campaign_type.value if self.campaign_type else None,
            "cause": type(self.cause).__name__ if self.cause else None,
        }


class TransportError(ConsentServiceError):
    """Raised when no usable response was received."""

    code = "sp_metric_connection_error"

    def __init__(self, message: str, *, status_code: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.status_code = status_code


class InvalidResponseError(ConsentServiceError):
    """Raised when a response cannot be interpreted as the expected type."""

    code = "sp_metric_invalid_response_api"


class InvalidResponseConsentError(InvalidResponseError):
    """Raised when a response belongs to a different campaign type than asked."""

    code = "sp_metric_invalid_consent_response"


class UnsupportedCampaignError(ConsentSyncError):
    """Raised when an action targets a campaign that cannot take choices."""

    def __init__(self, campaign_type: CampaignType):
        super().__init__(f"Campaign {campaign_type.value} is not configured or cannot take choices")
        self.campaign_type = campaign_type


class LoadMessagesError(ConsentSyncError):
    """
    Raised when load_messages cannot complete.

    Only the messages stage is fatal; earlier stage results are attached so
    callers can see which stages degraded before the failure.
    """

    def __init__(self, cause: ConsentServiceError, stages: list[Any] | None = None):
        super().__init__(f"Unable to load messages: {cause}")
        self.cause = cause
        self.stages = stages or []


class ReportActionError(ConsentSyncError):
    """Raised when a user's choice could not be recorded by the consent service."""

    def __init__(self, cause: ConsentServiceError, action: ConsentAction | None = None):
        super().__init__(f"Unable to report action: {cause}")
        self.cause = cause
        self.action = action
