"""
Pydantic schemas for payment initiation, confirmation and gateway webhooks.
"""
from decimal import Decimal
from typing import Optional
from pydantic import AliasChoices, BaseModel, Field, ConfigDict

from models.purchase_request import PurchaseRequestStatus


class ProcessPaymentRequest(BaseModel):
     """Request body for POST /purchase-requests/{id}/process-payment."""

     gateway_payment_id: str = Field(
          ...,
          min_length=1,
          max_length=100,
          validation_alias=AliasChoices("gateway_payment_id", "gatewayPaymentId"),
          description="Payment id returned by the gateway checkout",
     )
     gateway_signature: str = Field(
          ...,
          min_length=1,
          max_length=256,
          validation_alias=AliasChoices("gateway_signature", "gatewaySignature"),
          description="Gateway HMAC over order id and payment id",
     )

     model_config = ConfigDict(
          extra="forbid",
          json_schema_extra={
               "example": {
                    "gateway_payment_id": "pay_29QQoUBi66xm2f",
                    "gateway_signature": "9ef4dffbfd84f1318f6739a3ce19f9d85851857ae648f114332d8401e0949a3d",
               }
          }
     )


class PaymentInitiationResponse(BaseModel):
     """Response for POST /purchase-requests/{id}/initiate-payment."""

     purchase_request_id: int
     gateway_order_id: str
     purchase_price: Decimal
     amount: int = Field(..., description="Amount in minor currency units, as sent to the gateway")
     currency: str
     key_id: str = Field(..., description="Public gateway key for the client checkout")
     status: PurchaseRequestStatus


class PaymentOutcomeResponse(BaseModel):
     """Response for POST /purchase-requests/{id}/process-payment."""

     purchase_request_id: int
     status: PurchaseRequestStatus
     gateway_payment_id: Optional[str] = None
     already_processed: bool = False
     failure_reason: Optional[str] = None
     error: Optional[str] = Field(None, description="Machine code when the payment was not accepted")
     transaction_hash: Optional[str] = Field(None, description="Ledger transaction hash")


class WebhookPaymentEntity(BaseModel):
     id: str = Field(..., min_length=1)
     order_id: str = Field(..., min_length=1)
     status: Optional[str] = None
     error_description: Optional[str] = None

     model_config = ConfigDict(extra="ignore")


class WebhookPaymentWrapper(BaseModel):
     entity: WebhookPaymentEntity

     model_config = ConfigDict(extra="ignore")


class WebhookPayload(BaseModel):
     payment: Optional[WebhookPaymentWrapper] = None

     model_config = ConfigDict(extra="ignore")


class GatewayWebhookEvent(BaseModel):
     """Inbound gateway webhook (Razorpay event envelope)."""

     event: str = Field(..., min_length=1)
     payload: WebhookPayload = Field(default_factory=WebhookPayload)

     model_config = ConfigDict(extra="ignore")

     @property
     def payment_entity(self) -> Optional[WebhookPaymentEntity]:
          return self.payload.payment.entity if self.payload.payment else None


class WebhookAck(BaseModel):
     event: str
     result: str
     purchase_request_id: Optional[int] = None
