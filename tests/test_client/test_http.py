"""
Tests for the consent service HTTP client.
"""

import json

import httpx
import pytest
from structlog.testing import capture_logs

from consent_sync.client import (
    ConsentServiceClient,
    InvalidResponseConsentError,
    InvalidResponseError,
    TransportError,
    UnsupportedCampaignError,
)
from consent_sync.models import (
    ActionType,
    AppleTrackingPayload,
    CampaignType,
    CampaignsAppliesMetaData,
    CCPAChoiceBody,
    CCPAConsent,
    ChoiceAllMetaData,
    ConsentStatusMetaData,
    CustomConsentRequest,
    GDPRChoiceBody,
    GDPRConsent,
    IDFAStatus,
    IDFAStatusReportRequest,
    MessagesBody,
    MessagesCampaigns,
    MessagesRequest,
    MetaDataCampaign,
    MetaDataRequest,
    PvDataRequest,
)

BASE_URL = "https://cdn.test"
AUTH_ID = "SECRET-AUTH-ID-42"


def make_client(handler, **kwargs) -> ConsentServiceClient:
    return ConsentServiceClient(
        account_id=22,
        property_name="https://example.com",
        base_url=BASE_URL,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        **kwargs,
    )


class TestGetOperations:
    """Tests for operations that send payloads as query parameters."""

    @pytest.mark.asyncio
    async def test_meta_data(self):
        """Test metadata request shape and decoding."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json={
                "gdpr": {
                    "applies": True,
                    "additionsChangeDate": "2024-01-01T00:00:00Z",
                    "legalBasisChangeDate": "2024-02-01T00:00:00Z",
                },
                "ccpa": {"applies": False},
            })

        client = make_client(handler)
        response = await client.meta_data(
            22, 16893, MetaDataRequest(gdpr=MetaDataCampaign(has_local_data=False))
        )

        request = seen["request"]
        assert request.method == "GET"
        assert request.url.path == "/wrapper/v2/meta-data"
        assert request.url.params["env"] == "prod"
        assert request.url.params["accountId"] == "22"
        assert request.url.params["propertyId"] == "16893"
        assert json.loads(request.url.params["metadata"]) == {"gdpr": {"hasLocalData": False}}
        assert response.gdpr.applies is True
        assert response.gdpr.legal_basis_change_date.month == 2
        assert response.ccpa.applies is False

    @pytest.mark.asyncio
    async def test_consent_status_with_auth_id(self):
        """Test authId is sent only when present."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={
                "consentStatusData": {"gdpr": {"uuid": "server-uuid"}},
                "localState": {"gdpr": {"mmsCookies": []}},
            })

        client = make_client(handler)
        response = await client.consent_status(16893, ConsentStatusMetaData(), auth_id="user-1")
        await client.consent_status(16893, ConsentStatusMetaData())

        assert seen[0].url.params["authId"] == "user-1"
        assert "authId" not in seen[1].url.params
        assert response.consent_status_data.gdpr.uuid == "server-uuid"
        assert response.local_state == {"gdpr": {"mmsCookies": []}}

    @pytest.mark.asyncio
    async def test_get_messages(self):
        """Test messages request carries body, metadata and non-keyed state."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json={
                "campaigns": [{
                    "type": "GDPR",
                    "message": {"message_json": {}},
                    "messageMetaData": {"messageId": 7, "categoryId": 1, "subCategoryId": 5},
                    "url": "https://notice.example.com",
                    "userConsent": {"uuid": "u", "childPmId": "pm-1"},
                }],
                "localState": {"k": 1},
                "nonKeyedLocalState": {"n": 2},
            })

        client = make_client(handler)
        request = MessagesRequest(
            body=MessagesBody(
                property_href="https://example.com",
                account_id=22,
                campaigns=MessagesCampaigns(),
            ),
            metadata=CampaignsAppliesMetaData(),
            non_keyed_local_state={"n": 1},
        )
        response = await client.get_messages(request)

        params = seen["request"].url.params
        assert seen["request"].url.path == "/wrapper/v2/messages"
        assert json.loads(params["body"])["propertyHref"] == "https://example.com"
        assert json.loads(params["nonKeyedLocalState"]) == {"n": 1}
        assert isinstance(response.campaigns[0].user_consent, GDPRConsent)
        assert response.non_keyed_local_state == {"n": 2}

    @pytest.mark.asyncio
    async def test_choice_all_path(self):
        """Test eligibility fetch path per action type."""
        paths = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return httpx.Response(200, json={
                "gdpr": {"postPayload": {"consentAllRef": "ref-1", "vendorListId": "vl"}},
            })

        client = make_client(handler)
        response = await client.choice_all(ActionType.REJECT_ALL, 22, 16893, ChoiceAllMetaData())
        await client.choice_all(ActionType.ACCEPT_ALL, 22, 16893, ChoiceAllMetaData())

        assert paths == ["/wrapper/v2/choice/reject-all", "/wrapper/v2/choice/consent-all"]
        assert response.gdpr.post_payload.consent_all_ref == "ref-1"

    @pytest.mark.asyncio
    async def test_campaign_env_override(self):
        """Test the env query parameter follows the campaign environment."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["env"] = request.url.params["env"]
            return httpx.Response(200, json={})

        client = make_client(handler, campaign_env="stage")
        await client.meta_data(22, 16893, MetaDataRequest())

        assert seen["env"] == "stage"


class TestPostOperations:
    """Tests for operations that send JSON bodies."""

    @pytest.mark.asyncio
    async def test_post_gdpr_choice(self):
        """Test GDPR choice path, body and default campaign type."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json={
                "userConsent": {"uuid": "u", "euconsent": "CP"},
                "localState": {"after": True},
            })

        client = make_client(handler)
        body = GDPRChoiceBody(property_id="16893", message_id="0", consent_all_ref="ref-1")
        response = await client.post_choice(CampaignType.GDPR, ActionType.REJECT_ALL, body)

        request = seen["request"]
        assert request.method == "POST"
        assert request.url.path == "/wrapper/v2/choice/gdpr/13"
        assert json.loads(request.content)["consentAllRef"] == "ref-1"
        assert response.campaign_type == CampaignType.GDPR
        assert isinstance(response.user_consent, GDPRConsent)
        assert response.local_state == {"after": True}

    @pytest.mark.asyncio
    async def test_post_ccpa_choice(self):
        """Test CCPA choices share the operation with their own segment."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            return httpx.Response(200, json={
                "campaignType": "CCPA",
                "userConsent": {"uuid": "u", "status": "rejectedAll"},
            })

        client = make_client(handler)
        body = CCPAChoiceBody(property_id="16893", message_id="0")
        response = await client.post_choice(CampaignType.CCPA, ActionType.SAVE_AND_EXIT, body)

        assert seen["path"] == "/wrapper/v2/choice/ccpa/1"
        assert isinstance(response.user_consent, CCPAConsent)

    @pytest.mark.asyncio
    async def test_post_choice_campaign_mismatch(self):
        """Test consent for a different campaign is rejected."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={
                "campaignType": "CCPA",
                "userConsent": {"uuid": "u"},
            })

        client = make_client(handler)
        with pytest.raises(InvalidResponseConsentError) as exc_info:
            await client.post_choice(
                CampaignType.GDPR,
                ActionType.ACCEPT_ALL,
                GDPRChoiceBody(property_id="1", message_id="0"),
            )

        assert exc_info.value.campaign_type == CampaignType.GDPR
        assert exc_info.value.code == "sp_metric_invalid_consent_response"

    @pytest.mark.asyncio
    async def test_post_choice_unsupported_campaign(self):
        """Test the device advertising campaign cannot take choices."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        client = make_client(handler)
        with pytest.raises(UnsupportedCampaignError):
            await client.post_choice(
                CampaignType.IOS14,
                ActionType.ACCEPT_ALL,
                GDPRChoiceBody(property_id="1", message_id="0"),
            )

    @pytest.mark.asyncio
    async def test_custom_consent(self):
        """Test custom consent path and grants decoding."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json={"grants": {"vendor-1": {"vendorGrant": True}}})

        client = make_client(handler)
        response = await client.custom_consent_gdpr(
            CustomConsentRequest(consent_uuid="u", property_id=16893, vendors=["vendor-1"])
        )

        request = seen["request"]
        assert request.url.path == "/wrapper/tcfv2/v1/gdpr/custom-consent"
        assert request.url.params["inApp"] == "true"
        assert json.loads(request.content)["consentUUID"] == "u"
        assert response.grants == {"vendor-1": {"vendorGrant": True}}

    @pytest.mark.asyncio
    async def test_pv_data_ignores_body(self):
        """Test telemetry succeeds on any 2xx response."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(204)

        client = make_client(handler)
        assert await client.pv_data(PvDataRequest()) is None


    @pytest.mark.asyncio
    async def test_report_idfa_status(self):
        """Test the tracking authorization report path and body."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json={})

        client = make_client(handler)
        await client.report_idfa_status(IDFAStatusReportRequest(
            account_id=22,
            property_id=16893,
            uuid="gdpr-uuid",
            uuid_type=CampaignType.GDPR,
            ios_version="17.4",
            apple_tracking=AppleTrackingPayload(
                apple_choice=IDFAStatus.ACCEPTED, apple_msg_id=9, message_partition_uuid="p-1"
            ),
        ))

        request = seen["request"]
        body = json.loads(request.content)
        assert request.method == "POST"
        assert request.url.path == "/wrapper/metrics/v1/apple-tracking"
        assert request.url.params["env"] == "prod"
        assert body["accountId"] == 22
        assert body["uuidType"] == "GDPR"
        assert body["iosVersion"] == "17.4"
        assert body["requestUUID"]
        assert body["appleTracking"] == {
            "appleChoice": "accepted",
            "appleMsgId": 9,
            "messagePartitionUUID": "p-1",
        }


class TestFailures:
    """Tests for the failure taxonomy."""

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        """Test non-2xx responses raise TransportError with the status."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"err": "boom"})

        client = make_client(handler)
        with pytest.raises(TransportError) as exc_info:
            await client.meta_data(22, 16893, MetaDataRequest())

        assert exc_info.value.status_code == 500
        assert exc_info.value.operation == "meta_data"

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Test network failures raise TransportError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(TransportError) as exc_info:
            await client.get_messages(MessagesRequest(
                body=MessagesBody(property_href="p", account_id=1, campaigns=MessagesCampaigns()),
                metadata=CampaignsAppliesMetaData(),
            ))

        assert exc_info.value.code == "sp_metric_connection_error"

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test transport timeouts raise TransportError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("too slow", request=request)

        client = make_client(handler)
        with pytest.raises(TransportError):
            await client.consent_status(16893, ConsentStatusMetaData())

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        """Test undecodable bodies raise InvalidResponseError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>not json</html>")

        client = make_client(handler)
        with pytest.raises(InvalidResponseError):
            await client.meta_data(22, 16893, MetaDataRequest())

    @pytest.mark.asyncio
    async def test_unexpected_shape(self):
        """Test schema mismatches raise InvalidResponseError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"gdpr": {"applies": "sometimes"}})

        client = make_client(handler)
        with pytest.raises(InvalidResponseError) as exc_info:
            await client.meta_data(22, 16893, MetaDataRequest())

        assert not isinstance(exc_info.value, InvalidResponseConsentError)

    @pytest.mark.asyncio
    async def test_http_error_hides_auth_id(self):
        """Test a failed authenticated call keeps the auth id out of errors and logs."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"err": "boom"})

        client = make_client(handler)
        with capture_logs() as logs:
            with pytest.raises(TransportError) as exc_info:
                await client.consent_status(16893, ConsentStatusMetaData(), auth_id=AUTH_ID)

        error = exc_info.value
        assert error.status_code == 500
        assert AUTH_ID not in str(error)
        assert AUTH_ID not in json.dumps(error.to_dict())
        assert [entry["event"] for entry in logs] == ["consent_status_failed"]
        assert AUTH_ID not in repr(logs)

    @pytest.mark.asyncio
    async def test_connection_error_hides_auth_id(self):
        """Test transport exception text, which names the URL, is not propagated."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError(f"cannot reach {request.url}", request=request)

        client = make_client(handler)
        with capture_logs() as logs:
            with pytest.raises(TransportError) as exc_info:
                await client.consent_status(16893, ConsentStatusMetaData(), auth_id=AUTH_ID)

        error = exc_info.value
        assert str(error) == "consent_status request failed (ConnectError)"
        assert error.to_dict()["cause"] == "ConnectError"
        assert AUTH_ID not in repr(logs)


class TestLifecycle:
    """Tests for client lifecycle."""

    @pytest.mark.asyncio
    async def test_injected_client_not_closed(self):
        """Test a caller-supplied httpx client stays open."""
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        client = ConsentServiceClient(22, "https://example.com", http_client=http_client)

        await client.close()

        assert not http_client.is_closed
        await http_client.aclose()

    @pytest.mark.asyncio
    async def test_owned_client_closed(self):
        """Test the lazily created client is closed on exit."""
        async with ConsentServiceClient(22, "https://example.com") as client:
            http_client = client._get_client()

        assert http_client.is_closed
