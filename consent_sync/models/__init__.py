"""
Consent Sync Models

Pydantic models for consent records, campaign configuration, user actions
and the consent service's request/response payloads.
"""

from consent_sync.models.actions import ActionType, ConsentAction
from consent_sync.models.base import ConsentModel, UTCDateTime
from consent_sync.models.campaigns import (
    CampaignConfig,
    CampaignEnv,
    Campaigns,
    CampaignType,
    IDFAStatus,
)
from consent_sync.models.consent import (
    CampaignConsent,
    CCPAConsent,
    CCPAStatus,
    CCPAUserData,
    ConsentStatus,
    GDPRConsent,
    GDPRMetaData,
    GDPRUserData,
    GranularStatus,
    LastMessage,
    UserData,
)
from consent_sync.models.requests import (
    AppliesMetaData,
    AppleTrackingPayload,
    CampaignsAppliesMetaData,
    CCPAChoiceBody,
    CCPAMessagesCampaign,
    ChoiceAllMetaData,
    ChoiceBody,
    ConsentStatusCampaign,
    ConsentStatusMetaData,
    CustomConsentRequest,
    ErrorMetricsRequest,
    GDPRChoiceBody,
    GDPRMessagesCampaign,
    IOS14MessagesCampaign,
    IDFAStatusReportRequest,
    MessagesBody,
    MessagesCampaigns,
    MessagesRequest,
    MetaDataCampaign,
    MetaDataRequest,
    PvDataCCPA,
    PvDataGDPR,
    PvDataRequest,
)
from consent_sync.models.responses import (
    Campaign,
    CCPAChoiceAll,
    CCPAMetaDataResponse,
    ChoiceAllResponse,
    ChoiceResponse,
    ConsentStatusData,
    ConsentStatusResponse,
    CustomConsentResponse,
    GDPRChoiceAll,
    GDPRMetaDataResponse,
    MessageMetaData,
    MessagesResponse,
    MetaDataResponse,
    PostPayload,
    UserConsent,
    parse_user_consent,
)

__all__ = [
    # Base
    "ConsentModel",
    "UTCDateTime",
    # Campaigns
    "CampaignType",
    "CampaignEnv",
    "CampaignConfig",
    "Campaigns",
    "IDFAStatus",
    # Consent records
    "CampaignConsent",
    "GDPRConsent",
    "CCPAConsent",
    "CCPAStatus",
    "ConsentStatus",
    "GranularStatus",
    "LastMessage",
    "GDPRMetaData",
    "UserData",
    "GDPRUserData",
    "CCPAUserData",
    # Actions
    "ActionType",
    "ConsentAction",
    # Requests
    "MetaDataCampaign",
    "MetaDataRequest",
    "ConsentStatusCampaign",
    "ConsentStatusMetaData",
    "GDPRMessagesCampaign",
    "CCPAMessagesCampaign",
    "IOS14MessagesCampaign",
    "MessagesCampaigns",
    "MessagesBody",
    "MessagesRequest",
    "AppliesMetaData",
    "CampaignsAppliesMetaData",
    "PvDataGDPR",
    "PvDataCCPA",
    "PvDataRequest",
    "ChoiceAllMetaData",
    "ChoiceBody",
    "GDPRChoiceBody",
    "CCPAChoiceBody",
    "CustomConsentRequest",
    "ErrorMetricsRequest",
    "AppleTrackingPayload",
    "IDFAStatusReportRequest",
    # Responses
    "GDPRMetaDataResponse",
    "CCPAMetaDataResponse",
    "MetaDataResponse",
    "ConsentStatusData",
    "ConsentStatusResponse",
    "MessageMetaData",
    "Campaign",
    "MessagesResponse",
    "PostPayload",
    "GDPRChoiceAll",
    "CCPAChoiceAll",
    "ChoiceAllResponse",
    "ChoiceResponse",
    "CustomConsentResponse",
    "UserConsent",
    "parse_user_consent",
]
