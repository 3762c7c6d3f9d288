import httpx
import pytest

from alphamarket.domain.errors import GatewayError
from alphamarket.infrastructure.kyc.sandbox import SandboxKycClient

AADHAAR = "2345 6789 0123"


@pytest.fixture
def subscription(client, investor, strategy) -> dict:
    return client.post(f"/api/strategies/{strategy['id']}/subscribe", headers=investor.headers).json()


def _status(client, investor, subscription):
    r = client.get("/api/ekyc/status", params={"subscriptionId": subscription["id"]}, headers=investor.headers)
    assert r.status_code == 200
    return r.json()


def _send_otp(client, investor, subscription, aadhaar=AADHAAR):
    return client.post(
        "/api/ekyc/aadhaar/otp",
        json={"subscriptionId": subscription["id"], "aadhaarNumber": aadhaar},
        headers=investor.headers,
    )


def _verify_otp(client, investor, subscription, otp="123456", reference_id="ref-1"):
    return client.post(
        "/api/ekyc/aadhaar/verify",
        json={"subscriptionId": subscription["id"], "referenceId": reference_id, "otp": otp},
        headers=investor.headers,
    )


def _verify_pan(client, investor, subscription):
    return client.post(
        "/api/ekyc/pan/verify",
        json={"subscriptionId": subscription["id"], "pan": "abcpe1234f", "nameAsPan": "Asha Rao", "dateOfBirth": "1990-01-01"},
        headers=investor.headers,
    )


def test_pan_before_aadhaar_is_rejected(client, investor, subscription, kyc):
    r = _verify_pan(client, investor, subscription)
    assert r.status_code == 400
    assert r.json()["detail"] == "Complete Aadhaar verification before PAN verification"
    kyc.verify_pan.assert_not_awaited()


def test_full_ekyc_flow(client, investor, subscription, kyc):
    assert _status(client, investor, subscription)["step"] == "aadhaar"

    r = _send_otp(client, investor, subscription)
    assert r.status_code == 200
    assert r.json() == {"referenceId": "ref-1", "message": "OTP sent successfully"}
    kyc.send_aadhaar_otp.assert_awaited_once_with("234567890123")

    status = _status(client, investor, subscription)
    assert status["aadhaar"]["status"] == "otp_sent"
    assert status["aadhaar"]["last4"] == "0123"

    r = _verify_otp(client, investor, subscription)
    assert r.status_code == 200
    assert r.json()["name"] == "Asha Rao"
    assert _status(client, investor, subscription)["step"] == "pan"

    r = _verify_pan(client, investor, subscription)
    assert r.status_code == 200
    assert r.json() == {
        "pan": "ABCPE1234F", "status": "valid", "category": "individual",
        "nameMatch": True, "dobMatch": True, "aadhaarLinked": True,
    }
    kyc.verify_pan.assert_awaited_once_with("ABCPE1234F", "Asha Rao", "1990-01-01")

    status = _status(client, investor, subscription)
    assert status["ekycDone"] is True
    assert status["step"] == "complete"
    assert status["pan"]["panName"] == "ASHA RAO"

    subs = client.get("/api/investor/subscriptions", headers=investor.headers).json()
    assert subs[0]["ekycDone"] is True


def test_bad_input_never_reaches_the_provider(client, investor, subscription, kyc):
    r = _send_otp(client, investor, subscription, aadhaar="1234 5678 9012")
    assert r.status_code == 400
    kyc.send_aadhaar_otp.assert_not_awaited()

    _send_otp(client, investor, subscription)
    r = _verify_otp(client, investor, subscription, otp="12345")
    assert r.status_code == 400
    assert r.json()["detail"] == "OTP must be 6 digits"

    r = _verify_otp(client, investor, subscription, reference_id="unknown-ref")
    assert r.status_code == 400
    kyc.verify_aadhaar_otp.assert_not_awaited()


def test_upstream_rejection_is_recorded_and_retryable(client, investor, subscription, kyc):
    _send_otp(client, investor, subscription)
    kyc.verify_aadhaar_otp.side_effect = GatewayError("Invalid OTP", upstream_status=422)

    r = _verify_otp(client, investor, subscription)
    assert r.status_code == 502
    assert r.json()["detail"] == "Invalid OTP"
    assert _status(client, investor, subscription)["aadhaar"]["status"] == "failed"

    # A fresh OTP can be requested and verified.
    kyc.verify_aadhaar_otp.side_effect = None
    kyc.send_aadhaar_otp.return_value = {"reference_id": "ref-2", "message": "OTP sent successfully"}
    assert _send_otp(client, investor, subscription).status_code == 200
    assert _verify_otp(client, investor, subscription, reference_id="ref-2").status_code == 200
    assert _status(client, investor, subscription)["step"] == "pan"


def test_invalid_pan_status_leaves_ekyc_open(client, investor, subscription, kyc):
    _send_otp(client, investor, subscription)
    _verify_otp(client, investor, subscription)
    kyc.verify_pan.return_value = {"pan": "ABCPE1234F", "status": "invalid", "name_match": False}

    r = _verify_pan(client, investor, subscription)
    assert r.status_code == 200
    assert r.json()["status"] == "invalid"
    status = _status(client, investor, subscription)
    assert status["ekycDone"] is False
    assert status["step"] == "pan"
    assert status["pan"]["status"] == "failed"


def test_someone_elses_subscription_is_not_found(client, make_account, subscription):
    stranger = make_account("stranger")
    r = client.get("/api/ekyc/status", params={"subscriptionId": subscription["id"]}, headers=stranger.headers)
    assert r.status_code == 404
    assert r.json()["detail"] == "Subscription not found"


# --- Sandbox client ---

def _sandbox(handler) -> SandboxKycClient:
    return SandboxKycClient("key", "secret", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_sandbox_client_authenticates_once_and_parses_otp_response():
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if request.url.path == "/authenticate":
            assert request.headers["x-api-key"] == "key"
            return httpx.Response(200, json={"code": 200, "data": {"access_token": "tok"}})
        assert request.headers["Authorization"] == "tok"
        return httpx.Response(200, json={"code": 200, "transaction_id": "tx-9", "data": {"reference_id": 12345, "message": "OTP sent"}})

    client = _sandbox(handler)
    first = await client.send_aadhaar_otp("234567890123")
    await client.send_aadhaar_otp("234567890123")

    assert first == {"reference_id": "12345", "message": "OTP sent", "transaction_id": "tx-9"}
    assert paths == ["/authenticate", "/kyc/aadhaar/okyc/otp", "/kyc/aadhaar/okyc/otp"]


@pytest.mark.asyncio
async def test_sandbox_client_surfaces_body_level_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/authenticate":
            return httpx.Response(200, json={"code": 200, "data": {"access_token": "tok"}})
        return httpx.Response(200, json={"code": 422, "data": {"message": "Invalid Aadhaar Card"}})

    with pytest.raises(GatewayError, match="Invalid Aadhaar Card") as exc_info:
        await _sandbox(handler).send_aadhaar_otp("234567890123")
    assert exc_info.value.upstream_status == 422


@pytest.mark.asyncio
async def test_sandbox_client_requires_credentials():
    with pytest.raises(GatewayError, match="not configured"):
        await SandboxKycClient(None, None).authenticate()
