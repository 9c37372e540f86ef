"""
Campaign Configuration Models

A campaign is one consent regime the caller asks the engine to track.
"""

from enum import Enum
from typing import Any

from pydantic import Field

from consent_sync.models.base import ConsentModel


class CampaignType(str, Enum):
    """Consent regimes tracked independently by the coordinator."""

    GDPR = "GDPR"      # EU / TCF
    CCPA = "CCPA"      # US state privacy
    IOS14 = "ios14"    # Device advertising (tracking transparency) opt-out

    @classmethod
    def _missing_(cls, value: object) -> "CampaignType | None":
        # The service is not consistent about casing
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.lower():
                    return member
        return None


class CampaignEnv(str, Enum):
    """Campaign environment the messages are served from."""

    PUBLIC = "prod"
    STAGE = "stage"


class IDFAStatus(str, Enum):
    """Device advertising identifier authorization status."""

    UNKNOWN = "unknown"
    ACCEPTED = "accepted"
    DENIED = "denied"
    UNAVAILABLE = "unavailable"


class CampaignConfig(ConsentModel):
    """Per-campaign options supplied by the publisher."""

    targeting_params: dict[str, str] = Field(default_factory=dict)


class Campaigns(ConsentModel):
    """The set of campaigns requested for a property."""

    gdpr: CampaignConfig | None = None
    ccpa: CampaignConfig | None = None
    ios14: CampaignConfig | None = None
    environment: CampaignEnv = CampaignEnv.PUBLIC

    def config_for(self, campaign_type: CampaignType) -> CampaignConfig | None:
        if campaign_type == CampaignType.GDPR:
            return self.gdpr
        elif campaign_type == CampaignType.CCPA:
            return self.ccpa
        elif campaign_type == CampaignType.IOS14:
            return self.ios14
        raise ValueError(f"Unknown campaign type: {campaign_type}")

    def requested(self, campaign_type: CampaignType) -> bool:
        return self.config_for(campaign_type) is not None

    def targeting_params(self, campaign_type: CampaignType) -> dict[str, Any] | None:
        config = self.config_for(campaign_type)
        return config.targeting_params if config is not None else None
