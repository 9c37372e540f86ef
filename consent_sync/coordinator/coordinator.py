"""
Consent State Coordinator

Owns the local consent state and sequences the remote calls that keep it in
sync with the consent service:

    load_messages:  meta-data -> consent-status? -> (staleness) -> messages?
                    plus a sampled, fire-and-forget page-view ping
    report_action:  choice-all eligibility? -> post choice
    report_idfa_status: fire-and-forget app tracking authorization report

Only one workflow runs at a time per coordinator.
"""

from __future__ import annotations

import asyncio
import platform
import random
from collections.abc import Awaitable, Coroutine
from typing import Any, TypeVar

import structlog

from consent_sync.client.errors import (
    ConsentServiceError,
    ConsentSyncError,
    LoadMessagesError,
    ReportActionError,
    TransportError,
    UnsupportedCampaignError,
)
from consent_sync.client.http import ConsentServiceClient
from consent_sync.client.protocol import ConsentServiceProtocol
from consent_sync.config import get_settings
from consent_sync.coordinator.results import (
    CoordinatorPhase,
    LoadMessagesResult,
    MessageToDisplay,
    StageOutcome,
    StageResult,
    SyncStage,
)
from consent_sync.coordinator.sampling import sample
from consent_sync.coordinator.state import CoordinatorState
from consent_sync.models.actions import ConsentAction
from consent_sync.models.campaigns import Campaigns, CampaignType, IDFAStatus
from consent_sync.models.consent import CampaignConsent, UserData
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
    IDFAStatusReportRequest,
    IOS14MessagesCampaign,
    MessagesBody,
    MessagesCampaigns,
    MessagesRequest,
    MetaDataCampaign,
    MetaDataRequest,
    PvDataCCPA,
    PvDataGDPR,
    PvDataRequest,
)
from consent_sync.models.responses import ChoiceAllResponse
from consent_sync.monitoring.logging import sync_cycle
from consent_sync.storage import ConsentStorage, InMemoryStorage

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ConsentCoordinator:
    """
    Synchronizes local consent state with the consent service.

    Usage:
        coordinator = ConsentCoordinator(
            account_id=22,
            property_id=16893,
            property_name="https://example.com",
            campaigns=Campaigns(gdpr=CampaignConfig()),
        )
        result = await coordinator.load_messages()
        ...
        user_data = await coordinator.report_action(action)
    """

    def __init__(
        self,
        account_id: int,
        property_id: int,
        property_name: str,
        campaigns: Campaigns,
        *,
        auth_id: str | None = None,
        language: str | None = None,
        idfa_status: IDFAStatus = IDFAStatus.UNKNOWN,
        pub_data: dict[str, Any] | None = None,
        storage: ConsentStorage | None = None,
        client: ConsentServiceProtocol | None = None,
        sample_rate: int | None = None,
        rng: random.Random | None = None,
        call_timeout: float | None = None,
    ):
        """
        Args:
            account_id: Publisher account
            property_id: Property the messages belong to
            property_name: Property href as registered with the service
            campaigns: Campaigns to track; records are created for each
            auth_id: Authenticated user id, settable between calls
            language: Message language, None for the service default
            idfa_status: Device advertising authorization status
            pub_data: Publisher data sent with the page-view ping
            storage: Storage collaborator providing the migration signal
            client: Consent service implementation (HTTP client by default)
            sample_rate: Page-view sampling percentage (settings default)
            rng: Random source for sampling
            call_timeout: Per remote call timeout in seconds (settings default)
        """
        current = get_settings()
        self.account_id = account_id
        self.property_id = property_id
        self.property_name = property_name
        self.campaigns = campaigns
        self.auth_id = auth_id
        self.language = language
        self.idfa_status = idfa_status
        self.pub_data = pub_data or {}
        self.storage = storage if storage is not None else InMemoryStorage()
        self.sample_rate = sample_rate if sample_rate is not None else current.sample_rate
        self.call_timeout = call_timeout if call_timeout is not None else current.call_timeout_seconds
        self._rng = rng
        self._owns_client = client is None
        self.client: ConsentServiceProtocol = client if client is not None else ConsentServiceClient(
            account_id=account_id,
            property_name=property_name,
            campaign_env=campaigns.environment.value,
        )

        self.state = CoordinatorState.for_campaigns(campaigns)
        self.phase = CoordinatorPhase.IDLE
        self._lock = asyncio.Lock()
        self._background_tasks: set[asyncio.Task[None]] = set()
        self._logger = logger.bind(account_id=account_id, property_id=property_id)

    # =========================================================================
    # Decisions
    # =========================================================================

    @property
    def migrating_user(self) -> bool:
        """
        Whether data from a previous major SDK version was found.

        Reading this consumes the signal: it is True at most once per
        installation.
        """
        return self.storage.consume_migration_signal()

    @property
    def should_call_consent_status(self) -> bool:
        return self.auth_id is not None or self.migrating_user

    @property
    def should_call_messages(self) -> bool:
        gdpr, ccpa = self.state.gdpr, self.state.ccpa
        return (
            (gdpr is not None and gdpr.applies is True and gdpr.consent_status.consented_all is not True)
            or (ccpa is not None and ccpa.applies is True)
            or self.campaigns.ios14 is not None
        )

    def was_sampled(self) -> bool:
        """Sampling decision for this coordinator, drawn once and cached."""
        if self.state.was_sampled is None:
            self.state.was_sampled = sample(self.sample_rate, self._rng)
        return self.state.was_sampled

    @property
    def user_data(self) -> UserData:
        return self.state.user_data(self.campaigns)

    # =========================================================================
    # Request shaping
    # =========================================================================

    def meta_data_params(self) -> MetaDataRequest:
        def campaign(record: CampaignConsent | None) -> MetaDataCampaign | None:
            if record is None:
                return None
            return MetaDataCampaign(
                has_local_data=record.uuid is not None,
                date_created=record.date_created,
                uuid=record.uuid,
            )

        return MetaDataRequest(gdpr=campaign(self.state.gdpr), ccpa=campaign(self.state.ccpa))

    def consent_status_params(self) -> ConsentStatusMetaData:
        def campaign(record: CampaignConsent | None) -> ConsentStatusCampaign | None:
            if record is None:
                return None
            return ConsentStatusCampaign(
                has_local_data=True,
                applies=record.applies,
                date_created=record.date_created,
                uuid=record.uuid,
            )

        return ConsentStatusMetaData(
            gdpr=campaign(self.state.gdpr), ccpa=campaign(self.state.ccpa)
        )

    def messages_params(self) -> MessagesRequest:
        gdpr, ccpa = self.state.gdpr, self.state.ccpa
        campaigns = MessagesCampaigns(
            gdpr=GDPRMessagesCampaign(
                targeting_params=self.campaigns.targeting_params(CampaignType.GDPR),
                has_local_data=gdpr.uuid is not None,
                consent_status=gdpr.consent_status,
            ) if gdpr is not None else None,
            ccpa=CCPAMessagesCampaign(
                targeting_params=self.campaigns.targeting_params(CampaignType.CCPA),
                has_local_data=ccpa.uuid is not None,
                status=ccpa.status,
            ) if ccpa is not None else None,
            ios14=IOS14MessagesCampaign(
                targeting_params=self.campaigns.targeting_params(CampaignType.IOS14),
                idfa_status=self.idfa_status,
            ) if self.campaigns.ios14 is not None else None,
        )
        return MessagesRequest(
            body=MessagesBody(
                property_href=self.property_name,
                account_id=self.account_id,
                campaigns=campaigns,
                local_state=self.state.local_state,
                consent_language=self.language,
                campaign_env=self.campaigns.environment,
                idfa_status=self.idfa_status,
                auth_id=self.auth_id,
            ),
            metadata=CampaignsAppliesMetaData(
                gdpr=AppliesMetaData(applies=gdpr.applies) if gdpr is not None else None,
                ccpa=AppliesMetaData(applies=ccpa.applies) if ccpa is not None else None,
            ),
            non_keyed_local_state=self.state.non_keyed_local_state,
        )

    def pv_data_body(self) -> PvDataRequest:
        gdpr, ccpa = self.state.gdpr, self.state.ccpa
        body = PvDataRequest()
        if gdpr is not None:
            last = gdpr.last_message
            body.gdpr = PvDataGDPR(
                applies=gdpr.applies,
                uuid=gdpr.uuid,
                account_id=self.account_id,
                site_id=self.property_id,
                consent_status=gdpr.consent_status,
                pub_data=self.pub_data,
                sample_rate=self.sample_rate,
                euconsent=gdpr.euconsent or None,
                msg_id=last.id if last else None,
                category_id=last.category_id if last else None,
                sub_category_id=last.sub_category_id if last else None,
                prtn_uuid=last.partition_uuid if last else None,
            )
        if ccpa is not None:
            body.ccpa = PvDataCCPA(
                applies=ccpa.applies,
                uuid=ccpa.uuid,
                account_id=self.account_id,
                site_id=self.property_id,
                consent_status=ccpa.consent_status,
                pub_data=self.pub_data,
                message_id=ccpa.last_message.id if ccpa.last_message else None,
                sample_rate=self.sample_rate,
            )
        return body

    def choice_all_metadata(self) -> ChoiceAllMetaData:
        gdpr, ccpa = self.state.gdpr, self.state.ccpa
        return ChoiceAllMetaData(
            gdpr=AppliesMetaData(applies=bool(gdpr.applies)) if gdpr is not None else None,
            ccpa=AppliesMetaData(applies=bool(ccpa.applies)) if ccpa is not None else None,
        )

    def choice_body(
        self,
        action: ConsentAction,
        eligibility: ChoiceAllResponse | None,
    ) -> ChoiceBody:
        """Build the post body for an action, enriched by the eligibility payload."""
        record = self._record_for_action(action)
        last = record.last_message
        common: dict[str, Any] = {
            "auth_id": self.auth_id,
            "uuid": record.uuid,
            "property_id": str(self.property_id),
            "message_id": str(last.id if last and last.id is not None else 0),
            "pub_data": action.publisher_data,
            "pm_save_and_exit_variables": action.pm_payload,
            "sample_rate": self.sample_rate,
            "local_state": self.state.local_state,
        }
        if action.campaign_type == CampaignType.GDPR:
            gdpr = eligibility.gdpr if eligibility is not None else None
            payload = gdpr.post_payload if gdpr is not None else None
            return GDPRChoiceBody(
                **common,
                consent_all_ref=payload.consent_all_ref if payload else None,
                vendor_list_id=payload.vendor_list_id if payload else None,
                granular_status=payload.granular_status if payload else None,
                idfa_status=self.idfa_status,
            )
        elif action.campaign_type == CampaignType.CCPA:
            return CCPAChoiceBody(**common)
        raise UnsupportedCampaignError(action.campaign_type)

    def _record_for_action(self, action: ConsentAction) -> CampaignConsent:
        record = self.state.record_for(action.campaign_type)
        if record is None:
            raise UnsupportedCampaignError(action.campaign_type)
        return record

    # =========================================================================
    # Remote call wrappers
    # =========================================================================

    async def _invoke(self, operation: str, call: Awaitable[T]) -> T:
        """
        Await a remote call, bounded by call_timeout.

        Timeouts surface as TransportError. Anything a collaborator raises
        outside the ConsentSyncError hierarchy is wrapped so stages can fold
        it; cancellation propagates untouched.
        """
        try:
            if self.call_timeout is None:
                return await call
            return await asyncio.wait_for(call, timeout=self.call_timeout)
        except TimeoutError as e:
            raise TransportError(
                f"{operation} timed out after {self.call_timeout}s", operation=operation, cause=e
            ) from e
        except ConsentSyncError:
            raise
        except Exception as e:
            raise ConsentServiceError(
                f"{operation} failed ({type(e).__name__})", operation=operation, cause=e
            ) from e

    def _fire_and_forget(self, operation: str, call: Coroutine[Any, Any, None]) -> None:
        async def runner() -> None:
            try:
                await self._invoke(operation, call)
            except ConsentSyncError as e:
                self._logger.debug(f"{operation}_failed", error=str(e))

        task = asyncio.create_task(runner())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def drain(self) -> None:
        """Wait for in-flight fire-and-forget calls."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

    async def close(self) -> None:
        """Drain background calls and close the HTTP client if owned."""
        await self.drain()
        if self._owns_client and isinstance(self.client, ConsentServiceClient):
            await self.client.close()

    # =========================================================================
    # load_messages
    # =========================================================================

    async def load_messages(self) -> LoadMessagesResult:
        """
        Run one synchronization cycle.

        Returns:
            Messages to display and the consent snapshot

        Raises:
            LoadMessagesError: if the messages call failed
        """
        async with self._lock:
            with sync_cycle("load_messages", property_id=self.property_id):
                return await self._load_messages()

    async def _load_messages(self) -> LoadMessagesResult:
        self._send_pv_data()

        stages: list[StageResult] = []
        self.phase = CoordinatorPhase.METADATA_PENDING
        stages.append(await self._meta_data_stage())

        self.phase = CoordinatorPhase.CONSENT_STATUS_PENDING
        stages.append(await self._consent_status_stage())

        self.state.update_gdpr_status()

        self.phase = CoordinatorPhase.MESSAGES_PENDING
        try:
            messages_stage, messages = await self._messages_stage()
        except ConsentServiceError as e:
            self.phase = CoordinatorPhase.FAILED
            stages.append(StageResult(SyncStage.MESSAGES, StageOutcome.FATAL, e))
            self._logger.error(
                "messages_failed", stages=[s.to_dict() for s in stages], **e.to_dict()
            )
            self._report_error(e)
            raise LoadMessagesError(e, stages) from e

        stages.append(messages_stage)
        self.phase = CoordinatorPhase.DONE
        self._logger.info(
            "messages_loaded",
            messages=len(messages),
            stages=[s.outcome.value for s in stages],
        )
        return LoadMessagesResult(messages=messages, user_data=self.user_data, stages=stages)

    async def _meta_data_stage(self) -> StageResult:
        try:
            response = await self._invoke(
                "meta_data",
                self.client.meta_data(self.account_id, self.property_id, self.meta_data_params()),
            )
        except ConsentServiceError as e:
            self._logger.warning("meta_data_failed", **e.to_dict())
            return StageResult(SyncStage.META_DATA, StageOutcome.DEGRADED, e)

        self.state.apply_meta_data(response)
        return StageResult(SyncStage.META_DATA, StageOutcome.SUCCESS)

    async def _consent_status_stage(self) -> StageResult:
        if not self.should_call_consent_status:
            return StageResult(SyncStage.CONSENT_STATUS, StageOutcome.SKIPPED)

        try:
            response = await self._invoke(
                "consent_status",
                self.client.consent_status(
                    self.property_id, self.consent_status_params(), self.auth_id
                ),
            )
        except ConsentServiceError as e:
            self._logger.warning("consent_status_failed", **e.to_dict())
            return StageResult(SyncStage.CONSENT_STATUS, StageOutcome.DEGRADED, e)

        self.state.apply_consent_status(response)
        return StageResult(SyncStage.CONSENT_STATUS, StageOutcome.SUCCESS)

    async def _messages_stage(self) -> tuple[StageResult, list[MessageToDisplay]]:
        if not self.should_call_messages:
            return StageResult(SyncStage.MESSAGES, StageOutcome.SKIPPED), []

        response = await self._invoke("get_messages", self.client.get_messages(self.messages_params()))
        messages = self.state.apply_messages(response)
        return StageResult(SyncStage.MESSAGES, StageOutcome.SUCCESS), messages

    def _send_pv_data(self) -> None:
        if self.was_sampled():
            self._fire_and_forget("pv_data", self.client.pv_data(self.pv_data_body()))

    def _report_error(self, error: ConsentServiceError) -> None:
        request = ErrorMetricsRequest(
            code=error.code,
            account_id=str(self.account_id),
            description=str(error),
            sdk_version=get_settings().sdk_version,
            os_version=platform.platform(),
            device_family=platform.machine() or "unknown",
            property_id=str(self.property_id),
            property_name=self.property_name,
            campaign_type=error.campaign_type,
        )
        self._fire_and_forget("error_metrics", self.client.error_metrics(request))

    # =========================================================================
    # report_action
    # =========================================================================

    async def report_action(self, action: ConsentAction) -> UserData:
        """
        Record a user's choice with the consent service.

        Returns:
            The consent snapshot after the choice was recorded

        Raises:
            UnsupportedCampaignError: if the action's campaign was not requested
            ReportActionError: if the choice could not be posted; the record is
                flagged with needs_resync
        """
        self._record_for_action(action)

        async with self._lock:
            with sync_cycle("report_action", property_id=self.property_id):
                return await self._report_action(action)

    async def _report_action(self, action: ConsentAction) -> UserData:
        eligibility_stage, eligibility = await self._choice_all_stage(action)
        body = self.choice_body(action, eligibility)

        try:
            response = await self._invoke(
                "post_choice",
                self.client.post_choice(action.campaign_type, action.type, body),
            )
            self.state.apply_choice(response)
        except ConsentServiceError as e:
            self.state.mark_needs_resync(action.campaign_type)
            self._logger.error(
                "post_choice_failed",
                action_type=action.type.name,
                **{**e.to_dict(), "campaign_type": action.campaign_type.value},
            )
            raise ReportActionError(e, action) from e

        self._logger.info(
            "choice_recorded",
            action_type=action.type.name,
            campaign_type=action.campaign_type.value,
            eligibility=eligibility_stage.outcome.value,
        )
        return self.user_data

    async def _choice_all_stage(
        self, action: ConsentAction
    ) -> tuple[StageResult, ChoiceAllResponse | None]:
        if not action.type.is_choice_all:
            return StageResult(SyncStage.CHOICE_ALL, StageOutcome.SKIPPED), None

        try:
            response = await self._invoke(
                "choice_all",
                self.client.choice_all(
                    action.type, self.account_id, self.property_id, self.choice_all_metadata()
                ),
            )
        except ConsentServiceError as e:
            self._logger.warning("choice_all_failed", **e.to_dict())
            return StageResult(SyncStage.CHOICE_ALL, StageOutcome.DEGRADED, e), None

        return StageResult(SyncStage.CHOICE_ALL, StageOutcome.SUCCESS), response

    # =========================================================================
    # Custom consent
    # =========================================================================

    async def custom_consent(
        self,
        vendors: list[str],
        categories: list[str],
        leg_int_categories: list[str],
    ) -> UserData:
        """
        Grant consent to specific GDPR vendors and purposes.

        Raises:
            UnsupportedCampaignError: if GDPR was not requested
            ConsentSyncError: if no GDPR consent uuid exists yet
            ReportActionError: if the consent service call failed
        """
        async with self._lock:
            # Read after acquiring; a workflow holding the lock may replace the record
            gdpr = self.state.gdpr
            if gdpr is None:
                raise UnsupportedCampaignError(CampaignType.GDPR)
            if gdpr.uuid is None:
                raise ConsentSyncError("Custom consent requires a GDPR consent uuid; call load_messages first")

            request = CustomConsentRequest(
                consent_uuid=gdpr.uuid,
                property_id=self.property_id,
                vendors=vendors,
                categories=categories,
                leg_int_categories=leg_int_categories,
            )
            with sync_cycle("custom_consent", property_id=self.property_id):
                try:
                    response = await self._invoke(
                        "custom_consent_gdpr", self.client.custom_consent_gdpr(request)
                    )
                except ConsentServiceError as e:
                    self._logger.error("custom_consent_failed", **e.to_dict())
                    raise ReportActionError(e) from e

                self.state.apply_custom_consent(response)
                self._logger.info("custom_consent_recorded", vendors=len(vendors), categories=len(categories))
            return self.user_data

    # =========================================================================
    # App tracking authorization
    # =========================================================================

    def report_idfa_status(self, status: IDFAStatus, os_version: str | None = None) -> None:
        """
        Record the answer to the app tracking prompt and report it.

        The report is fire-and-forget and attributed to the consent uuid of
        the GDPR record, falling back to CCPA. Must be called from a running
        event loop; use drain() to wait for delivery.
        """
        self.idfa_status = status

        uuid, uuid_type = None, None
        for campaign_type in (CampaignType.GDPR, CampaignType.CCPA):
            record = self.state.record_for(campaign_type)
            if record is not None and record.uuid is not None:
                uuid, uuid_type = record.uuid, campaign_type
                break

        last = self.state.ios14_last_message
        request = IDFAStatusReportRequest(
            account_id=self.account_id,
            property_id=self.property_id,
            uuid=uuid,
            uuid_type=uuid_type,
            ios_version=os_version or platform.release(),
            apple_tracking=AppleTrackingPayload(
                apple_choice=status,
                apple_msg_id=last.id if last else None,
                message_partition_uuid=last.partition_uuid if last else None,
            ),
        )
        self._logger.info(
            "idfa_status_recorded",
            idfa_status=status.value,
            uuid_type=uuid_type.value if uuid_type else None,
        )
        self._fire_and_forget("report_idfa_status", self.client.report_idfa_status(request))
