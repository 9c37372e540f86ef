"""
Protocol Definition for the Consent Service

The coordinator depends on this interface rather than on the HTTP client so
tests and alternative transports can stand in for the real service. Every
operation raises a ConsentServiceError subclass on failure.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from consent_sync.models.actions import ActionType
from consent_sync.models.campaigns import CampaignType
from consent_sync.models.requests import (
    ChoiceAllMetaData,
    ChoiceBody,
    ConsentStatusMetaData,
    CustomConsentRequest,
    ErrorMetricsRequest,
    IDFAStatusReportRequest,
    MessagesRequest,
    MetaDataRequest,
    PvDataRequest,
)
from consent_sync.models.responses import (
    ChoiceAllResponse,
    ChoiceResponse,
    ConsentStatusResponse,
    CustomConsentResponse,
    MessagesResponse,
    MetaDataResponse,
)


@runtime_checkable
class ConsentServiceProtocol(Protocol):
    """Remote consent service operations used by the coordinator."""

    async def meta_data(
        self,
        account_id: int,
        property_id: int,
        metadata: MetaDataRequest,
    ) -> MetaDataResponse: ...

    async def consent_status(
        self,
        property_id: int,
        metadata: ConsentStatusMetaData,
        auth_id: str | None = None,
    ) -> ConsentStatusResponse: ...

    async def get_messages(self, request: MessagesRequest) -> MessagesResponse: ...

    async def choice_all(
        self,
        action_type: ActionType,
        account_id: int,
        property_id: int,
        metadata: ChoiceAllMetaData,
    ) -> ChoiceAllResponse: ...

    async def post_choice(
        self,
        campaign_type: CampaignType,
        action_type: ActionType,
        body: ChoiceBody,
    ) -> ChoiceResponse: ...

    async def pv_data(self, body: PvDataRequest) -> None: ...

    async def custom_consent_gdpr(self, request: CustomConsentRequest) -> CustomConsentResponse: ...

    async def error_metrics(self, request: ErrorMetricsRequest) -> None: ...

    async def report_idfa_status(self, request: IDFAStatusReportRequest) -> None: ...
