"""
Consent Sync - Test Fixtures

Shared pytest fixtures for all test modules.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

# =============================================================================
# TEST ENVIRONMENT SETUP
# =============================================================================

os.environ["CONSENT_SYNC_APP_ENV"] = "testing"
os.environ["CONSENT_SYNC_CAMPAIGN_ENV"] = "prod"

from consent_sync.coordinator import ConsentCoordinator  # noqa: E402
from consent_sync.models import (  # noqa: E402
    CampaignConfig,
    Campaigns,
    CampaignType,
    CCPAConsent,
    ChoiceAllResponse,
    ChoiceResponse,
    ConsentStatusResponse,
    CustomConsentResponse,
    GDPRConsent,
    MessagesResponse,
    MetaDataResponse,
)
from consent_sync.storage import InMemoryStorage  # noqa: E402

ACCOUNT_ID = 22
PROPERTY_ID = 16893
PROPERTY_NAME = "https://example.com"

OLD_DATE = datetime(2023, 1, 1, tzinfo=UTC)
NEW_DATE = datetime(2024, 6, 1, tzinfo=UTC)


# =============================================================================
# Payload factories
# =============================================================================


async def _post_choice_ok(campaign_type, action_type, body) -> ChoiceResponse:
    if campaign_type == CampaignType.GDPR:
        consent = GDPRConsent(uuid="gdpr-uuid", euconsent="CPxyz", date_created=NEW_DATE)
    else:
        consent = CCPAConsent(uuid="ccpa-uuid", uspstring="1YYN", date_created=NEW_DATE)
    return ChoiceResponse(
        campaign_type=campaign_type,
        user_consent=consent,
        local_state={"after": "choice"},
    )


@pytest.fixture
def old_date() -> datetime:
    """A decision date older than every vendor list change."""
    return OLD_DATE


@pytest.fixture
def gdpr_meta_data():
    """Factory for metadata responses carrying GDPR change dates."""

    def _make(applies: bool = True, change_date: datetime = NEW_DATE) -> MetaDataResponse:
        return MetaDataResponse.model_validate({
            "gdpr": {
                "applies": applies,
                "additionsChangeDate": change_date.isoformat(),
                "legalBasisChangeDate": change_date.isoformat(),
            }
        })

    return _make


@pytest.fixture
def message_campaign():
    """Factory for raw messages-response campaign entries."""

    def _make(
        campaign_type: str = "GDPR",
        message_id: int = 101,
        url: str | None = "https://notice.example.com/index.html",
        user_consent: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        return {
            "type": campaign_type,
            "message": {"message_json": {"type": "Notice"}},
            "messageMetaData": {
                "messageId": message_id,
                "categoryId": 1,
                "subCategoryId": 5,
                "messagePartitionUUID": "partition-1",
            },
            "url": url,
            "userConsent": user_consent,
        }

    return _make


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def campaigns() -> Campaigns:
    """GDPR and CCPA campaigns with distinct targeting params."""
    return Campaigns(
        gdpr=CampaignConfig(targeting_params={"page": "gdpr-home"}),
        ccpa=CampaignConfig(targeting_params={"page": "ccpa-home"}),
    )


@pytest.fixture
def fake_client() -> MagicMock:
    """Consent service double returning empty, successful responses."""
    client = MagicMock()
    client.meta_data = AsyncMock(return_value=MetaDataResponse())
    client.consent_status = AsyncMock(return_value=ConsentStatusResponse())
    client.get_messages = AsyncMock(return_value=MessagesResponse())
    client.choice_all = AsyncMock(return_value=ChoiceAllResponse())
    client.post_choice = AsyncMock(side_effect=_post_choice_ok)
    client.pv_data = AsyncMock(return_value=None)
    client.custom_consent_gdpr = AsyncMock(return_value=CustomConsentResponse())
    client.error_metrics = AsyncMock(return_value=None)
    client.report_idfa_status = AsyncMock(return_value=None)
    return client


@pytest.fixture
def make_coordinator(campaigns, fake_client):
    """Factory for coordinators wired to the fake client."""

    def _make(**kwargs: Any) -> ConsentCoordinator:
        kwargs.setdefault("campaigns", campaigns)
        kwargs.setdefault("client", fake_client)
        kwargs.setdefault("storage", InMemoryStorage())
        return ConsentCoordinator(
            account_id=ACCOUNT_ID,
            property_id=PROPERTY_ID,
            property_name=PROPERTY_NAME,
            **kwargs,
        )

    return _make
