"""
M-Pesa (Vodacom Mozambique OpenAPI) client for C2B payment initiation.

``initiate_c2b_payment`` asks the gateway to push a PIN prompt to the buyer's
phone. Gateway acceptance (``output_ResponseCode == "0"``) only means the
prompt was sent; the outcome arrives later on the confirmation webhook.
"""

import base64
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

import httpx
import rsa
from libs.common.config import get_settings

logger = logging.getLogger(__name__)

MPESA_ACCEPTED_CODE = "0"
COMMUNICATION_FAILURE = "communication failure"
UNKNOWN_GATEWAY_ERROR = "unknown error"

_MSISDN_RE = re.compile(r"^\d+$")


@dataclass
class PaymentInitiationResult:
    """Outcome of asking the gateway to push a payment prompt."""

    success: bool
    response: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success}
        if self.response is not None:
            data["response"] = self.response
        if self.error is not None:
            data["error"] = self.error
        return data


class MpesaError(Exception):
    """Base exception for M-Pesa client errors."""

    def __init__(
        self, message: str, status_code: int = None, response_data: dict = None
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


class MpesaValidationError(MpesaError):
    """Rejected locally, before any request is sent."""


def normalize_msisdn(msisdn: str) -> str:
    """Strip spaces, dashes and a leading ``+``."""
    return re.sub(r"[\s\-]", "", msisdn or "").lstrip("+")


def validate_payment_request(amount: Decimal, msisdn: str) -> str:
    """
    Check amount and phone number; return the normalised MSISDN.

    Raises:
        MpesaValidationError: amount is not positive or the MSISDN is too short
            or not numeric
    """
    if amount is None or Decimal(amount) <= 0:
        raise MpesaValidationError("Amount must be greater than zero")
    normalized = normalize_msisdn(msisdn)
    min_length = get_settings().MSISDN_MIN_LENGTH
    if len(normalized) < min_length or not _MSISDN_RE.match(normalized):
        raise MpesaValidationError(
            f"Enter a valid M-Pesa phone number (at least {min_length} digits)"
        )
    return normalized


def build_bearer_token(api_key: str, public_key: str) -> str:
    """
    Encrypt the API key with the gateway's RSA public key (PKCS#1 v1.5) and
    base64 it, as the OpenAPI expects in ``Authorization: Bearer``.

    ``public_key`` is the base64 DER (SubjectPublicKeyInfo) string from the
    developer portal.
    """
    der = base64.b64decode(public_key)
    key = rsa.PublicKey.load_pkcs1_openssl_der(der)
    return base64.b64encode(rsa.encrypt(api_key.encode("utf-8"), key)).decode("ascii")


class MpesaClient:
    """Async client for the C2B single-stage payment API."""

    def __init__(
        self,
        api_key: str = None,
        public_key: str = None,
        service_provider_code: str = None,
        base_url: str = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.api_key = api_key or settings.MPESA_API_KEY
        self.public_key = public_key or settings.MPESA_PUBLIC_KEY
        self.service_provider_code = (
            service_provider_code or settings.MPESA_SERVICE_PROVIDER_CODE
        )
        self.base_url = (base_url or settings.MPESA_BASE_URL).rstrip("/")
        self.timeout = settings.MPESA_TIMEOUT_SECONDS
        self._transport = transport
        if not self.api_key or not self.public_key:
            raise ValueError("MPESA_API_KEY and MPESA_PUBLIC_KEY are required")

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {build_bearer_token(self.api_key, self.public_key)}",
            "Content-Type": "application/json",
            "Origin": "*",
        }

    async def _request(self, method: str, endpoint: str, json_data: dict) -> dict:
        """Make a request and return the decoded JSON body (whatever the HTTP status)."""
        url = f"{self.base_url}{endpoint}"
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            response = await client.request(
                method=method, url=url, headers=self._headers(), json=json_data
            )
        try:
            data = response.json()
        except ValueError:
            raise MpesaError(
                "Gateway returned a non-JSON response",
                status_code=response.status_code,
            )
        if not response.is_success:
            logger.warning(
                f"M-Pesa API error: {response.status_code} - "
                f"{data.get('output_ResponseCode')} {data.get('output_ResponseDesc')}"
            )
        return data

    @staticmethod
    def transaction_reference(order_id: str) -> str:
        """Short gateway-side reference derived from the order id."""
        return f"ORD-{str(order_id).replace('-', '')[:8]}"

    async def initiate_c2b_payment(
        self,
        amount: Decimal,
        msisdn: str,
        order_id: str,
        third_party_ref: str,
    ) -> PaymentInitiationResult:
        """
        Push a payment prompt for ``amount`` to ``msisdn``.

        Never raises for gateway outcomes: validation failures raise
        ``MpesaValidationError`` before any request; transport errors and
        gateway rejections come back as ``success=False``.
        """
        normalized = validate_payment_request(amount, msisdn)
        payload = {
            "input_TransactionReference": self.transaction_reference(order_id),
            "input_CustomerMSISDN": normalized,
            "input_Amount": f"{Decimal(amount):.2f}",
            "input_ThirdPartyReference": third_party_ref,
            "input_ServiceProviderCode": self.service_provider_code,
        }

        try:
            data = await self._request(
                "POST", get_settings().MPESA_C2B_PATH, json_data=payload
            )
        except (httpx.HTTPError, MpesaError) as e:
            logger.error(
                f"M-Pesa initiation for {third_party_ref} failed: {e}",
                extra={"extra_fields": {"third_party_ref": third_party_ref}},
            )
            return PaymentInitiationResult(success=False, error=COMMUNICATION_FAILURE)

        if data.get("output_ResponseCode") == MPESA_ACCEPTED_CODE:
            logger.info(
                f"M-Pesa prompt sent for {third_party_ref}",
                extra={"extra_fields": {
                    "conversation_id": data.get("output_ConversationID"),
                }},
            )
            return PaymentInitiationResult(success=True, response=data)

        return PaymentInitiationResult(
            success=False,
            response=data,
            error=data.get("output_ResponseDesc") or UNKNOWN_GATEWAY_ERROR,
        )


def get_mpesa_client() -> MpesaClient:
    """FastAPI dependency / factory for the configured client."""
    return MpesaClient()
