"""
Request Models

Bodies and query payloads for every consent service operation. All of them
are serialized with ConsentModel.to_wire(), so absent values never reach the
wire.
"""

from typing import Any
from uuid import uuid4

from pydantic import Field

from consent_sync.models.base import ConsentModel, UTCDateTime
from consent_sync.models.campaigns import CampaignEnv, CampaignType, IDFAStatus
from consent_sync.models.consent import CCPAStatus, ConsentStatus, GranularStatus


# =============================================================================
# Metadata
# =============================================================================

class MetaDataCampaign(ConsentModel):
    has_local_data: bool = False
    date_created: UTCDateTime | None = None
    uuid: str | None = None


class MetaDataRequest(ConsentModel):
    gdpr: MetaDataCampaign | None = None
    ccpa: MetaDataCampaign | None = None


# =============================================================================
# Consent status
# =============================================================================

class ConsentStatusCampaign(ConsentModel):
    has_local_data: bool = True
    applies: bool | None = None
    date_created: UTCDateTime | None = None
    uuid: str | None = None


class ConsentStatusMetaData(ConsentModel):
    gdpr: ConsentStatusCampaign | None = None
    ccpa: ConsentStatusCampaign | None = None


# =============================================================================
# Messages
# =============================================================================

class GDPRMessagesCampaign(ConsentModel):
    targeting_params: dict[str, Any] | None = None
    has_local_data: bool = False
    consent_status: ConsentStatus | None = None


class CCPAMessagesCampaign(ConsentModel):
    targeting_params: dict[str, Any] | None = None
    has_local_data: bool = False
    status: CCPAStatus | None = None


class IOS14MessagesCampaign(ConsentModel):
    targeting_params: dict[str, Any] | None = None
    idfa_status: IDFAStatus = IDFAStatus.UNKNOWN


class MessagesCampaigns(ConsentModel):
    gdpr: GDPRMessagesCampaign | None = None
    ccpa: CCPAMessagesCampaign | None = None
    ios14: IOS14MessagesCampaign | None = None


class MessagesBody(ConsentModel):
    property_href: str
    account_id: int
    campaigns: MessagesCampaigns
    local_state: Any = None
    consent_language: str | None = None
    campaign_env: CampaignEnv = CampaignEnv.PUBLIC
    idfa_status: IDFAStatus = IDFAStatus.UNKNOWN
    auth_id: str | None = None


class AppliesMetaData(ConsentModel):
    applies: bool | None = None


class CampaignsAppliesMetaData(ConsentModel):
    gdpr: AppliesMetaData | None = None
    ccpa: AppliesMetaData | None = None


class MessagesRequest(ConsentModel):
    body: MessagesBody
    metadata: CampaignsAppliesMetaData
    non_keyed_local_state: Any = None


# =============================================================================
# Page-view telemetry
# =============================================================================

class PvDataGDPR(ConsentModel):
    applies: bool | None = None
    uuid: str | None = None
    account_id: int
    site_id: int
    consent_status: ConsentStatus | None = None
    pub_data: dict[str, Any] = Field(default_factory=dict)
    sample_rate: int
    euconsent: str | None = None
    msg_id: int | None = None
    category_id: int | None = None
    sub_category_id: int | None = None
    prtn_uuid: str | None = Field(default=None, alias="prtnUUID")


class PvDataCCPA(ConsentModel):
    applies: bool | None = None
    uuid: str | None = None
    account_id: int
    site_id: int
    consent_status: ConsentStatus | None = None
    pub_data: dict[str, Any] = Field(default_factory=dict)
    message_id: int | None = None
    sample_rate: int


class PvDataRequest(ConsentModel):
    gdpr: PvDataGDPR | None = None
    ccpa: PvDataCCPA | None = None


# =============================================================================
# Choices
# =============================================================================

class ChoiceAllMetaData(ConsentModel):
    gdpr: AppliesMetaData | None = None
    ccpa: AppliesMetaData | None = None


class ChoiceBody(ConsentModel):
    """Fields shared by every choice submission."""

    auth_id: str | None = None
    uuid: str | None = None
    property_id: str
    message_id: str
    pub_data: dict[str, Any] = Field(default_factory=dict)
    pm_save_and_exit_variables: dict[str, Any] | None = None
    sample_rate: int | None = None
    local_state: Any = None


class GDPRChoiceBody(ChoiceBody):
    consent_all_ref: str | None = None
    vendor_list_id: str | None = None
    granular_status: GranularStatus | None = None
    idfa_status: IDFAStatus | None = None


class CCPAChoiceBody(ChoiceBody):
    pass


class CustomConsentRequest(ConsentModel):
    consent_uuid: str = Field(alias="consentUUID")
    property_id: int
    vendors: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    leg_int_categories: list[str] = Field(default_factory=list)


class ErrorMetricsRequest(ConsentModel):
    code: str
    account_id: str
    description: str
    sdk_version: str
    os_version: str = Field(alias="OSVersion")
    device_family: str
    property_id: str
    property_name: str
    campaign_type: CampaignType | None = None


# =============================================================================
# App tracking authorization
# =============================================================================

class AppleTrackingPayload(ConsentModel):
    apple_choice: IDFAStatus
    apple_msg_id: int | None = None
    message_partition_uuid: str | None = Field(default=None, alias="messagePartitionUUID")


class IDFAStatusReportRequest(ConsentModel):
    """Outcome of the app tracking authorization prompt, reported once per answer."""

    account_id: int
    property_id: int
    uuid: str | None = None
    uuid_type: CampaignType | None = None
    request_uuid: str = Field(default_factory=lambda: str(uuid4()), alias="requestUUID")
    ios_version: str | None = None
    apple_tracking: AppleTrackingPayload
