"""
Coordinator Results

Per-stage outcomes of a synchronization cycle and the values handed back to
callers. Intermediate stages degrade instead of failing; the workflow driver
folds their results into LoadMessagesResult.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from consent_sync.client.errors import ConsentServiceError
from consent_sync.models.campaigns import CampaignType
from consent_sync.models.consent import CCPAConsent, GDPRConsent, UserData
from consent_sync.models.responses import Campaign, MessageMetaData


class CoordinatorPhase(str, Enum):
    """Where the coordinator is in its load_messages workflow."""
    IDLE = "idle"
    METADATA_PENDING = "metadata_pending"
    CONSENT_STATUS_PENDING = "consent_status_pending"
    MESSAGES_PENDING = "messages_pending"
    DONE = "done"
    FAILED = "failed"


class SyncStage(str, Enum):
    """Remote calls made by the coordinator."""
    META_DATA = "meta_data"
    CONSENT_STATUS = "consent_status"
    MESSAGES = "messages"
    CHOICE_ALL = "choice_all"
    POST_CHOICE = "post_choice"


class StageOutcome(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"      # Not required given current state
    DEGRADED = "degraded"    # Failed, workflow continued with stale data
    FATAL = "fatal"          # Failed, workflow aborted


@dataclass
class StageResult:
    """Outcome of one stage of a workflow."""

    stage: SyncStage
    outcome: StageOutcome
    error: ConsentServiceError | None = None

    @property
    def ok(self) -> bool:
        return self.outcome in (StageOutcome.SUCCESS, StageOutcome.SKIPPED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "outcome": self.outcome.value,
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass
class MessageToDisplay:
    """A consent message the presentation layer should render."""

    message: dict[str, Any]
    metadata: MessageMetaData
    url: str
    type: CampaignType
    child_pm_id: str | None = None

    @classmethod
    def from_campaign(cls, campaign: Campaign) -> MessageToDisplay | None:
        """Build a display entry, or None when the campaign has nothing renderable."""
        if campaign.message is None or campaign.message_meta_data is None or not campaign.url:
            return None

        consent = campaign.user_consent
        if isinstance(consent, (GDPRConsent, CCPAConsent)):
            child_pm_id = consent.child_pm_id
        else:
            child_pm_id = None

        return cls(
            message=campaign.message,
            metadata=campaign.message_meta_data,
            url=campaign.url,
            type=campaign.type,
            child_pm_id=child_pm_id,
        )


@dataclass
class LoadMessagesResult:
    """Messages to display plus the consent snapshot after a sync cycle."""

    messages: list[MessageToDisplay]
    user_data: UserData
    stages: list[StageResult] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        """True when an intermediate stage failed and stale data was used."""
        return any(not s.ok for s in self.stages)
