"""Pydantic schemas for payments service."""

import uuid
from decimal import Decimal
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class MpesaInitiateRequest(BaseModel):
    """``{amount, msisdn, orderId, thirdPartyRef}``"""

    model_config = ConfigDict(populate_by_name=True)

    amount: Decimal
    msisdn: str
    order_id: uuid.UUID = Field(..., alias="orderId")
    third_party_ref: str = Field(..., alias="thirdPartyRef", min_length=1)


class MpesaInitiateResponse(BaseModel):
    success: bool
    response: Optional[dict[str, Any]] = None
    error: Optional[str] = None


class MpesaCallback(BaseModel):
    """
    Gateway result callback. Accepts the M-Pesa ``input_*`` field names and
    plain camelCase names.
    """

    model_config = ConfigDict(extra="ignore")

    result_code: Optional[str] = Field(
        None, validation_alias=AliasChoices("input_ResultCode", "resultCode")
    )
    third_party_reference: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("input_ThirdPartyReference", "thirdPartyReference"),
    )
    transaction_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("input_TransactionID", "transactionId")
    )
    conversation_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices(
            "input_OriginalConversationID", "input_ConversationID", "conversationId"
        ),
    )

    @field_validator("*", mode="before")
    @classmethod
    def coerce_to_str(cls, v: Any) -> Optional[str]:
        # Some gateway environments send numeric result codes
        return None if v is None else str(v)


class MpesaCallbackAck(BaseModel):
    """Acknowledgement envelope returned to the gateway for every callback."""

    output_OriginalConversationID: Optional[str] = None
    output_ResponseDesc: str
    output_ResponseCode: str = "0"
    output_ThirdPartyConversationID: Optional[str] = None
