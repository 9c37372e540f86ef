"""
User Action Models

A user action is the privacy choice the presentation layer reports back.
"""

from enum import IntEnum
from typing import Any

from pydantic import Field

from consent_sync.models.base import ConsentModel
from consent_sync.models.campaigns import CampaignType


class ActionType(IntEnum):
    """Choice types, numbered as the consent service expects them in URLs."""

    SAVE_AND_EXIT = 1
    PM_CANCEL = 2
    CUSTOM = 9
    ACCEPT_ALL = 11
    SHOW_PRIVACY_MANAGER = 12
    REJECT_ALL = 13
    DISMISS = 15

    @property
    def is_choice_all(self) -> bool:
        """Deterministic choices that need the eligibility payload."""
        return self in (ActionType.ACCEPT_ALL, ActionType.REJECT_ALL)

    @property
    def choice_all_path(self) -> str:
        if self == ActionType.ACCEPT_ALL:
            return "consent-all"
        if self == ActionType.REJECT_ALL:
            return "reject-all"
        raise ValueError(f"{self.name} has no choice-all endpoint")


class ConsentAction(ConsentModel):
    """A user's privacy decision targeting one campaign."""

    type: ActionType
    campaign_type: CampaignType
    publisher_data: dict[str, Any] = Field(default_factory=dict)
    # Privacy manager save-and-exit variables (custom choices only)
    pm_payload: dict[str, Any] | None = None
