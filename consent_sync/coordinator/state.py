"""
Coordinator State

The versioned local consent state owned by the coordinator, and the rules
for merging each kind of server response into it.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import Field

from consent_sync.client.errors import InvalidResponseConsentError
from consent_sync.coordinator.results import MessageToDisplay
from consent_sync.models.base import ConsentModel
from consent_sync.models.campaigns import Campaigns, CampaignType
from consent_sync.models.consent import (
    CampaignConsent,
    CCPAConsent,
    CCPAUserData,
    GDPRConsent,
    GDPRMetaData,
    GDPRUserData,
    GranularStatus,
    LastMessage,
    UserData,
)
from consent_sync.models.responses import (
    ChoiceResponse,
    ConsentStatusResponse,
    CustomConsentResponse,
    MessagesResponse,
    MetaDataResponse,
)

logger = structlog.get_logger(__name__)


class CoordinatorState(ConsentModel):
    """
    Local consent state for one coordinator.

    A record exists only for campaigns that were requested. local_state and
    non_keyed_local_state are opaque and relayed verbatim.
    """

    gdpr: GDPRConsent | None = None
    ccpa: CCPAConsent | None = None
    gdpr_metadata: GDPRMetaData | None = None
    ios14_last_message: LastMessage | None = None
    was_sampled: bool | None = None
    local_state: Any = Field(default_factory=dict)
    non_keyed_local_state: Any = Field(default_factory=dict)

    @classmethod
    def for_campaigns(cls, campaigns: Campaigns) -> CoordinatorState:
        """Empty records for every requested GDPR/CCPA campaign."""
        return cls(
            gdpr=GDPRConsent() if campaigns.gdpr is not None else None,
            ccpa=CCPAConsent() if campaigns.ccpa is not None else None,
        )

    def record_for(self, campaign_type: CampaignType) -> CampaignConsent | None:
        if campaign_type == CampaignType.GDPR:
            return self.gdpr
        elif campaign_type == CampaignType.CCPA:
            return self.ccpa
        elif campaign_type == CampaignType.IOS14:
            return None
        raise ValueError(f"Unknown campaign type: {campaign_type}")

    # =========================================================================
    # Invariants
    # =========================================================================

    def update_gdpr_status(self) -> bool:
        """
        Flag a GDPR decision made before the latest vendor-list or legal-basis
        change.

        A newly raised flag revokes consented_all and records
        previous_opt_in_all. Records without a creation date are never stale.

        Returns:
            True if a flag was newly raised
        """
        gdpr, metadata = self.gdpr, self.gdpr_metadata
        if gdpr is None or metadata is None or gdpr.date_created is None:
            return False

        status = gdpr.consent_status
        newly_flagged = False
        if gdpr.date_created < metadata.additions_change_date and not status.vendor_list_additions:
            status.vendor_list_additions = True
            newly_flagged = True
        if gdpr.date_created < metadata.legal_basis_change_date and not status.legal_basis_changes:
            status.legal_basis_changes = True
            newly_flagged = True

        if newly_flagged and status.consented_all:
            status.consented_all = False
            status.granular_status = (status.granular_status or GranularStatus()).model_copy(
                update={"previous_opt_in_all": True}
            )

        if newly_flagged:
            logger.info(
                "gdpr_consent_stale",
                vendor_list_additions=status.vendor_list_additions,
                legal_basis_changes=status.legal_basis_changes,
            )
        return newly_flagged

    # =========================================================================
    # Response merges
    # =========================================================================

    def apply_meta_data(self, response: MetaDataResponse) -> None:
        if response.gdpr is not None:
            if self.gdpr is not None:
                self.gdpr.applies = response.gdpr.applies
            self.gdpr_metadata = GDPRMetaData(
                additions_change_date=response.gdpr.additions_change_date,
                legal_basis_change_date=response.gdpr.legal_basis_change_date,
            )
        if response.ccpa is not None and self.ccpa is not None:
            self.ccpa.applies = response.ccpa.applies

    def apply_consent_status(self, response: ConsentStatusResponse) -> None:
        self.local_state = response.local_state
        data = response.consent_status_data
        if data.gdpr is not None and self.gdpr is not None:
            self.gdpr = _replace_record(self.gdpr, data.gdpr)
        if data.ccpa is not None and self.ccpa is not None:
            self.ccpa = _replace_record(self.ccpa, data.ccpa)

    def apply_messages(self, response: MessagesResponse) -> list[MessageToDisplay]:
        """Store the new local state and return the renderable messages."""
        self.local_state = response.local_state
        self.non_keyed_local_state = response.non_keyed_local_state

        messages = []
        for campaign in response.campaigns:
            message = MessageToDisplay.from_campaign(campaign)
            if message is None:
                continue
            messages.append(message)

            last_message = LastMessage(
                id=message.metadata.message_id,
                category_id=message.metadata.category_id,
                sub_category_id=message.metadata.sub_category_id,
                partition_uuid=message.metadata.message_partition_uuid,
            )
            if message.type == CampaignType.GDPR:
                if self.gdpr is not None:
                    self.gdpr.last_message = last_message
            elif message.type == CampaignType.CCPA:
                if self.ccpa is not None:
                    self.ccpa.last_message = last_message
            elif message.type == CampaignType.IOS14:
                self.ios14_last_message = last_message
            else:
                raise InvalidResponseConsentError(
                    f"Unexpected campaign type {message.type}", operation="get_messages"
                )
        return messages

    def apply_choice(self, response: ChoiceResponse) -> None:
        """Merge the consent returned for a posted choice."""
        consent = response.user_consent
        if isinstance(consent, GDPRConsent) and self.gdpr is not None:
            self.gdpr = _replace_record(self.gdpr, consent)
        elif isinstance(consent, CCPAConsent) and self.ccpa is not None:
            self.ccpa = _replace_record(self.ccpa, consent)
        else:
            raise InvalidResponseConsentError(
                f"Choice response carries no consent for {response.campaign_type.value}",
                operation="post_choice",
                campaign_type=response.campaign_type,
            )
        if "local_state" in response.model_fields_set:
            self.local_state = response.local_state

    def apply_custom_consent(self, response: CustomConsentResponse) -> None:
        if self.gdpr is not None:
            self.gdpr.grants = response.grants

    def mark_needs_resync(self, campaign_type: CampaignType) -> None:
        record = self.record_for(campaign_type)
        if record is not None:
            record.needs_resync = True

    # =========================================================================
    # Snapshots
    # =========================================================================

    def user_data(self, campaigns: Campaigns) -> UserData:
        """Deep-copied consent snapshot for the requested campaigns."""
        gdpr = self.gdpr.model_copy(deep=True) if self.gdpr is not None else None
        ccpa = self.ccpa.model_copy(deep=True) if self.ccpa is not None else None
        return UserData(
            gdpr=GDPRUserData(consents=gdpr, applies=bool(gdpr and gdpr.applies))
            if campaigns.gdpr is not None else None,
            ccpa=CCPAUserData(consents=ccpa, applies=bool(ccpa and ccpa.applies))
            if campaigns.ccpa is not None else None,
        )


def _replace_record(current: Any, incoming: Any) -> Any:
    """
    Replace a record's consent fields with the server's.

    applies falls back to the local value when the server omits it; the last
    shown message is local knowledge and always survives. A replaced record
    is in sync by definition.
    """
    return incoming.model_copy(
        update={
            "applies": incoming.applies if incoming.applies is not None else current.applies,
            "last_message": current.last_message,
            "needs_resync": False,
        },
        deep=True,
    )
