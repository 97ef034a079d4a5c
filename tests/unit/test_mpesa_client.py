"""Unit tests for the M-Pesa C2B client (gateway mocked with httpx.MockTransport)."""

import base64
import json
from decimal import Decimal

import httpx
import pytest
from services.payments_service.mpesa_client import (
    COMMUNICATION_FAILURE,
    MpesaClient,
    MpesaValidationError,
    build_bearer_token,
    normalize_msisdn,
    validate_payment_request,
)
from tests.stubs import MPESA_SANDBOX_PUBLIC_KEY


def _client(handler) -> MpesaClient:
    return MpesaClient(
        api_key="sandbox-api-key",
        public_key=MPESA_SANDBOX_PUBLIC_KEY,
        service_provider_code="171717",
        base_url="https://mpesa.test",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.unit
def test_bearer_token_is_rsa_ciphertext_of_key_size():
    token = build_bearer_token("sandbox-api-key", MPESA_SANDBOX_PUBLIC_KEY)
    # 4096-bit key -> 512-byte ciphertext
    assert len(base64.b64decode(token)) == 512


@pytest.mark.unit
def test_normalize_msisdn_strips_formatting():
    assert normalize_msisdn("+258 84-123 4567") == "258841234567"


@pytest.mark.unit
@pytest.mark.parametrize(
    "amount,msisdn",
    [
        (Decimal("0"), "258841234567"),
        (Decimal("-5"), "258841234567"),
        (Decimal("100"), "8412"),
        (Decimal("100"), "25884abc4567"),
        (Decimal("100"), ""),
    ],
)
def test_validation_rejects_bad_input(amount, msisdn):
    with pytest.raises(MpesaValidationError):
        validate_payment_request(amount, msisdn)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invalid_phone_never_reaches_gateway():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(201, json={"output_ResponseCode": "INS-0"})

    with pytest.raises(MpesaValidationError):
        await _client(handler).initiate_c2b_payment(
            Decimal("1500.00"), "123", "order-id", "ORD-REF"
        )
    assert calls == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_accepted_request_builds_c2b_payload():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            201,
            json={
                "output_ResponseCode": "0",
                "output_ResponseDesc": "Request processed successfully",
                "output_ConversationID": "conv-1",
            },
        )

    order_id = "3f1c2b7a-9d7e-4e53-8f3c-5d1a2b3c4d5e"
    result = await _client(handler).initiate_c2b_payment(
        Decimal("1500.00"), "258841111111", order_id, "ORD-20260101-ABCDEFGH"
    )

    assert result.success is True
    assert result.response["output_ConversationID"] == "conv-1"
    assert result.error is None
    assert seen["url"] == "https://mpesa.test/ipg/v1x/c2bPayment/singleStage/"
    assert seen["auth"].startswith("Bearer ")
    assert seen["body"] == {
        "input_TransactionReference": "ORD-3f1c2b7a",
        "input_CustomerMSISDN": "258841111111",
        "input_Amount": "1500.00",
        "input_ThirdPartyReference": "ORD-20260101-ABCDEFGH",
        "input_ServiceProviderCode": "171717",
    }


@pytest.mark.unit
@pytest.mark.asyncio
async def test_gateway_rejection_surfaces_description():
    def handler(request):
        return httpx.Response(
            400,
            json={"output_ResponseCode": "INS-2006", "output_ResponseDesc": "Insufficient balance"},
        )

    result = await _client(handler).initiate_c2b_payment(
        Decimal("10"), "258841234567", "order", "REF"
    )

    assert result.success is False
    assert result.error == "Insufficient balance"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_rejection_without_description_uses_default():
    def handler(request):
        return httpx.Response(422, json={"output_ResponseCode": "INS-13"})

    result = await _client(handler).initiate_c2b_payment(
        Decimal("10"), "258841234567", "order", "REF"
    )

    assert result.success is False
    assert result.error == "unknown error"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_transport_error_reports_communication_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    result = await _client(handler).initiate_c2b_payment(
        Decimal("10"), "258841234567", "order", "REF"
    )

    assert result.success is False
    assert result.error == COMMUNICATION_FAILURE
    assert result.to_dict() == {"success": False, "error": COMMUNICATION_FAILURE}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_non_json_response_reports_communication_failure():
    def handler(request):
        return httpx.Response(502, text="<html>Bad gateway</html>")

    result = await _client(handler).initiate_c2b_payment(
        Decimal("10"), "258841234567", "order", "REF"
    )

    assert result.success is False
    assert result.error == COMMUNICATION_FAILURE


@pytest.mark.unit
def test_client_requires_credentials():
    with pytest.raises(ValueError):
        MpesaClient(api_key="", public_key="")
