# routers/payments.py
"""
Purchase payment API.

POST /purchase-requests/{id}/initiate-payment: create (or return) the gateway order.
POST /purchase-requests/{id}/process-payment: client callback after checkout.
POST /webhooks/payment-gateway: gateway webhook; converges on the same
idempotent completion path as the client callback.

A failed signature check is answered with 200 and status PAYMENT_FAILED:
the tenant sees "payment failed", not a server error.
"""
from fastapi import APIRouter, Depends, Header, Request
from typing import Optional

from dependencies import get_current_principal, get_gateway, get_payment_processor
from schemas.payment import (
     PaymentInitiationResponse,
     PaymentOutcomeResponse,
     ProcessPaymentRequest,
     WebhookAck,
)
from services.access_policy import Principal
from services.payment_gateway import PaymentGatewayAdapter
from services.payment_processor import PaymentProcessor

router = APIRouter(prefix="/api", tags=["payments"])


@router.post(
     "/purchase-requests/{request_id}/initiate-payment",
     response_model=PaymentInitiationResponse,
     summary="Create the gateway order for an approved purchase request"
)
def initiate_payment(
     request_id: int,
     principal: Principal = Depends(get_current_principal),
     processor: PaymentProcessor = Depends(get_payment_processor),
     gateway: PaymentGatewayAdapter = Depends(get_gateway),
):
     """
     Returns the order id, the price and the amount in minor units the
     client passes to the gateway checkout. Repeated calls while the
     payment is pending return the same order.
     """
     initiation = processor.initiate_payment(principal, request_id)
     return PaymentInitiationResponse(
          purchase_request_id=initiation.request.id,
          gateway_order_id=initiation.gateway_order_id,
          purchase_price=initiation.request.purchase_price,
          amount=initiation.amount_minor_units,
          currency=initiation.currency,
          key_id=gateway.key_id,
          status=initiation.request.status,
     )


@router.post(
     "/purchase-requests/{request_id}/process-payment",
     response_model=PaymentOutcomeResponse,
     summary="Confirm a gateway payment"
)
def process_payment(
     request_id: int,
     body: ProcessPaymentRequest,
     principal: Principal = Depends(get_current_principal),
     processor: PaymentProcessor = Depends(get_payment_processor),
):
     """
     1. Verifies the gateway signature over (order id, payment id).
     2. Ignores duplicates of an already applied payment.
     3. Marks the request PAYMENT_COMPLETED and the property sold together.
     """
     outcome = processor.process_payment(
          principal,
          request_id,
          body.gateway_payment_id,
          body.gateway_signature,
     )
     request = outcome.request
     return PaymentOutcomeResponse(
          purchase_request_id=request.id,
          status=outcome.status,
          gateway_payment_id=request.gateway_payment_id,
          already_processed=outcome.already_processed,
          failure_reason=request.failure_reason,
          error=outcome.error.code if outcome.error else None,
          transaction_hash=outcome.transaction_hash,
     )


@router.post(
     "/webhooks/payment-gateway",
     response_model=WebhookAck,
     summary="Payment gateway webhook"
)
async def payment_gateway_webhook(
     request: Request,
     x_razorpay_signature: Optional[str] = Header(None),
     processor: PaymentProcessor = Depends(get_payment_processor),
):
     """
     Receives gateway payment events. The raw body is needed for the
     signature check, so it is read directly instead of parsed by FastAPI.
     """
     body = await request.body()
     result = processor.process_webhook_event(body, x_razorpay_signature or "")
     return WebhookAck(
          event=result.event,
          result=result.result,
          purchase_request_id=result.purchase_request_id,
     )
