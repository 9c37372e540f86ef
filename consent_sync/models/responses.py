"""
Response Models

Payloads returned by the consent service. Campaign-bearing responses carry a
`userConsent` object whose shape depends on the campaign type; it is decoded
into the matching consent record here so consumers always see a typed
GDPRConsent or CCPAConsent.
"""

from typing import Any

from pydantic import Field, model_validator

from consent_sync.models.base import ConsentModel, UTCDateTime
from consent_sync.models.campaigns import CampaignType
from consent_sync.models.consent import (
    CCPAConsent,
    CCPAStatus,
    GDPRConsent,
    GranularStatus,
)

UserConsent = GDPRConsent | CCPAConsent


def parse_user_consent(campaign_type: CampaignType | str, raw: Any) -> UserConsent | None:
    """
    Decode a raw userConsent payload for the given campaign type.

    Raises:
        ValueError: if the campaign type carries no known consent shape
    """
    if raw is None or isinstance(raw, (GDPRConsent, CCPAConsent)):
        return raw
    campaign_type = CampaignType(campaign_type)
    if campaign_type == CampaignType.GDPR:
        return GDPRConsent.model_validate(raw)
    elif campaign_type == CampaignType.CCPA:
        return CCPAConsent.model_validate(raw)
    elif campaign_type == CampaignType.IOS14:
        return None
    raise ValueError(f"No consent shape for campaign type {campaign_type}")


def _decode_user_consent(data: Any, *type_keys: str) -> Any:
    if not isinstance(data, dict):
        return data
    for consent_key in ("userConsent", "user_consent"):
        raw = data.get(consent_key)
        if raw is None:
            continue
        campaign_type = next((data[k] for k in type_keys if data.get(k) is not None), None)
        if campaign_type is None:
            raise ValueError("userConsent without a campaign type")
        return {**data, consent_key: parse_user_consent(campaign_type, raw)}
    return data


# =============================================================================
# Metadata
# =============================================================================

class GDPRMetaDataResponse(ConsentModel):
    applies: bool
    additions_change_date: UTCDateTime
    legal_basis_change_date: UTCDateTime


class CCPAMetaDataResponse(ConsentModel):
    applies: bool


class MetaDataResponse(ConsentModel):
    gdpr: GDPRMetaDataResponse | None = None
    ccpa: CCPAMetaDataResponse | None = None


# =============================================================================
# Consent status
# =============================================================================

class ConsentStatusData(ConsentModel):
    gdpr: GDPRConsent | None = None
    ccpa: CCPAConsent | None = None


class ConsentStatusResponse(ConsentModel):
    consent_status_data: ConsentStatusData = Field(default_factory=ConsentStatusData)
    local_state: Any = Field(default_factory=dict)


# =============================================================================
# Messages
# =============================================================================

class MessageMetaData(ConsentModel):
    message_id: int
    category_id: int
    sub_category_id: int
    message_partition_uuid: str | None = Field(default=None, alias="messagePartitionUUID")


class Campaign(ConsentModel):
    """One campaign entry of a messages response."""

    type: CampaignType
    message: dict[str, Any] | None = None
    message_meta_data: MessageMetaData | None = None
    url: str | None = None
    user_consent: UserConsent | None = None

    @model_validator(mode="before")
    @classmethod
    def decode_user_consent(cls, data: Any) -> Any:
        return _decode_user_consent(data, "type")


class MessagesResponse(ConsentModel):
    campaigns: list[Campaign] = Field(default_factory=list)
    local_state: Any = Field(default_factory=dict)
    non_keyed_local_state: Any = Field(default_factory=dict)


# =============================================================================
# Choices
# =============================================================================

class PostPayload(ConsentModel):
    """Enrichment needed to post a deterministic accept/reject-all choice."""

    consent_all_ref: str | None = None
    vendor_list_id: str | None = None
    granular_status: GranularStatus | None = None


class GDPRChoiceAll(ConsentModel):
    consented_all: bool | None = None
    date_created: UTCDateTime | None = None
    euconsent: str | None = None
    grants: dict[str, Any] = Field(default_factory=dict)
    post_payload: PostPayload | None = None


class CCPAChoiceAll(ConsentModel):
    status: CCPAStatus | None = None
    uspstring: str | None = None
    rejected_vendors: list[str] = Field(default_factory=list)
    rejected_categories: list[str] = Field(default_factory=list)
    date_created: UTCDateTime | None = None


class ChoiceAllResponse(ConsentModel):
    gdpr: GDPRChoiceAll | None = None
    ccpa: CCPAChoiceAll | None = None


class ChoiceResponse(ConsentModel):
    """Result of posting a choice: the updated consent and new local state."""

    campaign_type: CampaignType
    local_state: Any = Field(default_factory=dict)
    user_consent: UserConsent | None = None

    @model_validator(mode="before")
    @classmethod
    def decode_user_consent(cls, data: Any) -> Any:
        return _decode_user_consent(data, "campaignType", "campaign_type")


class CustomConsentResponse(ConsentModel):
    grants: dict[str, Any] = Field(default_factory=dict)
    vendors: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    leg_int_categories: list[str] = Field(default_factory=list)
