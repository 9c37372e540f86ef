"""
Consent Record Models

The per-campaign local snapshot of applicability, status and identity used to
synchronize with the consent service.
"""

from enum import Enum
from typing import Any

from pydantic import Field

from consent_sync.models.base import ConsentModel, UTCDateTime


class GranularStatus(ConsentModel):
    """Fine-grained vendor/purpose consent summary."""

    vendor_consent: str | None = None
    vendor_leg_int: str | None = None
    purpose_consent: str | None = None
    purpose_leg_int: str | None = None
    previous_opt_in_all: bool | None = None
    default_consent: bool | None = None


class ConsentStatus(ConsentModel):
    """
    Structured consent status shared by GDPR and CCPA records.

    vendor_list_additions and legal_basis_changes are only meaningful for
    GDPR: they flag that the vendor list or legal basis changed after the
    user's last decision.
    """

    rejected_any: bool | None = None
    rejected_li: bool | None = Field(default=None, alias="rejectedLI")
    consented_all: bool | None = None
    consented_to_any: bool | None = None
    rejected_all: bool | None = None
    has_consent_data: bool | None = None
    vendor_list_additions: bool | None = None
    legal_basis_changes: bool | None = None
    granular_status: GranularStatus | None = None


class LastMessage(ConsentModel):
    """Metadata of the last message shown, used to attribute reported actions."""

    id: int | None = None
    category_id: int | None = None
    sub_category_id: int | None = None
    partition_uuid: str | None = None


class GDPRMetaData(ConsentModel):
    """Server-side change dates from the metadata call."""

    additions_change_date: UTCDateTime
    legal_basis_change_date: UTCDateTime


class CampaignConsent(ConsentModel):
    """Fields common to every consent record."""

    uuid: str | None = None
    applies: bool | None = None
    date_created: UTCDateTime | None = None
    child_pm_id: str | None = None
    consent_status: ConsentStatus = Field(default_factory=ConsentStatus)
    last_message: LastMessage | None = None
    # Local only: a reported choice has not reached the server yet
    needs_resync: bool = False


class GDPRConsent(CampaignConsent):
    """GDPR consent record (TCF string, grants, TC data)."""

    euconsent: str = ""
    grants: dict[str, Any] = Field(default_factory=dict)
    tc_data: dict[str, Any] = Field(default_factory=dict, alias="TCData")


class CCPAStatus(str, Enum):
    """Summary of the user's CCPA choice."""

    REJECTED_ALL = "rejectedAll"
    REJECTED_SOME = "rejectedSome"
    REJECTED_NONE = "rejectedNone"
    CONSENTED_ALL = "consentedAll"
    LINKED_NO_ACTION = "linkedNoAction"


class CCPAConsent(CampaignConsent):
    """CCPA consent record (US privacy string, rejected vendors/categories)."""

    status: CCPAStatus | None = None
    rejected_vendors: list[str] = Field(default_factory=list)
    rejected_categories: list[str] = Field(default_factory=list)
    uspstring: str = ""


class GDPRUserData(ConsentModel):
    consents: GDPRConsent | None = None
    applies: bool = False


class CCPAUserData(ConsentModel):
    consents: CCPAConsent | None = None
    applies: bool = False


class UserData(ConsentModel):
    """Snapshot of consent per requested campaign handed back to callers."""

    gdpr: GDPRUserData | None = None
    ccpa: CCPAUserData | None = None
