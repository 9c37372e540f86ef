"""
Consent Service HTTP Client

httpx implementation of ConsentServiceProtocol against the consent service's
v2 wrapper API. GET operations carry their JSON payloads as query
parameters; POST operations send them as the request body.
"""

from __future__ import annotations

import json
from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from consent_sync.client.errors import (
    InvalidResponseConsentError,
    InvalidResponseError,
    TransportError,
    UnsupportedCampaignError,
)
from consent_sync.config import get_settings
from consent_sync.models.actions import ActionType
from consent_sync.models.base import ConsentModel
from consent_sync.models.campaigns import CampaignType
from consent_sync.models.consent import CCPAConsent, GDPRConsent
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
from consent_sync.monitoring.logging import log_duration

logger = structlog.get_logger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)


def _as_query_json(model: ConsentModel) -> str:
    return json.dumps(model.to_wire(), separators=(",", ":"))


class ConsentServiceClient:
    """
    HTTP client for the consent service endpoints.

    The underlying httpx.AsyncClient is created lazily and reused; call
    close() (or use the client as an async context manager) when done.
    """

    WRAPPER_PATH = "/wrapper"

    def __init__(
        self,
        account_id: int,
        property_name: str,
        base_url: str | None = None,
        campaign_env: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        current = get_settings()
        self.account_id = account_id
        self.property_name = property_name
        self._base_url = (base_url or current.base_url).rstrip("/")
        self._env = campaign_env or current.campaign_env
        self._timeout = timeout or current.request_timeout_seconds
        self._http_client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self) -> ConsentServiceClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client (lazy initialization)."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=False,
            )
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    def _url(self, path: str) -> str:
        return f"{self._base_url}{self.WRAPPER_PATH}{path}"

    # =========================================================================
    # Transport helpers
    # =========================================================================

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: ConsentModel | None = None,
        campaign_type: CampaignType | None = None,
    ) -> httpx.Response:
        query = {"env": self._env, **(params or {})}
        client = self._get_client()
        # httpx exception text includes the URL, and with it any authId
        try:
            with log_duration(logger, operation, path=path):
                response = await client.request(
                    method,
                    self._url(path),
                    params=query,
                    json=body.to_wire() if body is not None else None,
                )
                response.raise_for_status()
        except httpx.TimeoutException as e:
            raise TransportError(
                f"{operation} timed out", operation=operation, campaign_type=campaign_type, cause=e
            ) from e
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"{operation} failed with HTTP {e.response.status_code}",
                status_code=e.response.status_code,
                operation=operation,
                campaign_type=campaign_type,
                cause=e,
            ) from e
        except httpx.RequestError as e:
            raise TransportError(
                f"{operation} request failed ({type(e).__name__})",
                operation=operation,
                campaign_type=campaign_type,
                cause=e,
            ) from e
        return response

    def _decode(
        self,
        operation: str,
        response: httpx.Response,
        model: type[ResponseT],
        campaign_type: CampaignType | None = None,
        defaults: dict[str, Any] | None = None,
    ) -> ResponseT:
        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponseError(
                f"{operation} returned invalid JSON", operation=operation, campaign_type=campaign_type, cause=e
            ) from e
        if defaults and isinstance(data, dict):
            data = {**defaults, **data}
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise InvalidResponseError(
                f"{operation} returned an unexpected shape",
                operation=operation,
                campaign_type=campaign_type,
                cause=e,
            ) from e

    # =========================================================================
    # Operations
    # =========================================================================

    async def meta_data(
        self,
        account_id: int,
        property_id: int,
        metadata: MetaDataRequest,
    ) -> MetaDataResponse:
        response = await self._request(
            "meta_data",
            "GET",
            "/v2/meta-data",
            params={
                "accountId": account_id,
                "propertyId": property_id,
                "metadata": _as_query_json(metadata),
            },
        )
        return self._decode("meta_data", response, MetaDataResponse)

    async def consent_status(
        self,
        property_id: int,
        metadata: ConsentStatusMetaData,
        auth_id: str | None = None,
    ) -> ConsentStatusResponse:
        params: dict[str, Any] = {
            "propertyId": property_id,
            "metadata": _as_query_json(metadata),
        }
        if auth_id is not None:
            params["authId"] = auth_id
        response = await self._request("consent_status", "GET", "/v2/consent-status", params=params)
        return self._decode("consent_status", response, ConsentStatusResponse)

    async def get_messages(self, request: MessagesRequest) -> MessagesResponse:
        params: dict[str, Any] = {
            "body": _as_query_json(request.body),
            "metadata": _as_query_json(request.metadata),
        }
        if request.non_keyed_local_state is not None:
            params["nonKeyedLocalState"] = json.dumps(request.non_keyed_local_state, separators=(",", ":"))
        response = await self._request("get_messages", "GET", "/v2/messages", params=params)
        return self._decode("get_messages", response, MessagesResponse)

    async def choice_all(
        self,
        action_type: ActionType,
        account_id: int,
        property_id: int,
        metadata: ChoiceAllMetaData,
    ) -> ChoiceAllResponse:
        response = await self._request(
            "choice_all",
            "GET",
            f"/v2/choice/{action_type.choice_all_path}",
            params={
                "accountId": account_id,
                "propertyId": property_id,
                "metadata": _as_query_json(metadata),
            },
        )
        return self._decode("choice_all", response, ChoiceAllResponse)

    async def post_choice(
        self,
        campaign_type: CampaignType,
        action_type: ActionType,
        body: ChoiceBody,
    ) -> ChoiceResponse:
        if campaign_type == CampaignType.GDPR:
            segment, expected = "gdpr", GDPRConsent
        elif campaign_type == CampaignType.CCPA:
            segment, expected = "ccpa", CCPAConsent
        else:
            raise UnsupportedCampaignError(campaign_type)

        operation = f"post_{segment}_choice"
        response = await self._request(
            operation,
            "POST",
            f"/v2/choice/{segment}/{int(action_type)}",
            body=body,
            campaign_type=campaign_type,
        )
        result = self._decode(
            operation,
            response,
            ChoiceResponse,
            campaign_type=campaign_type,
            defaults={"campaignType": campaign_type.value},
        )
        if result.campaign_type != campaign_type or not isinstance(result.user_consent, expected):
            raise InvalidResponseConsentError(
                f"{operation} returned consent for {result.campaign_type.value}",
                operation=operation,
                campaign_type=campaign_type,
            )
        return result

    async def pv_data(self, body: PvDataRequest) -> None:
        await self._request("pv_data", "POST", "/v2/pv-data", body=body)

    async def custom_consent_gdpr(self, request: CustomConsentRequest) -> CustomConsentResponse:
        response = await self._request(
            "custom_consent_gdpr",
            "POST",
            "/tcfv2/v1/gdpr/custom-consent",
            params={"inApp": "true"},
            body=request,
            campaign_type=CampaignType.GDPR,
        )
        return self._decode(
            "custom_consent_gdpr", response, CustomConsentResponse, campaign_type=CampaignType.GDPR
        )

    async def error_metrics(self, request: ErrorMetricsRequest) -> None:
        await self._request("error_metrics", "POST", "/metrics/v1/custom-metrics", body=request)

    async def report_idfa_status(self, request: IDFAStatusReportRequest) -> None:
        await self._request("report_idfa_status", "POST", "/metrics/v1/apple-tracking", body=request)
