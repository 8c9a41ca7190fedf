# services/payment_processor.py
"""
Payment Processor - drives a purchase request through payment.

initiate_payment:  APPROVED / PAYMENT_FAILED -> PAYMENT_PENDING (gateway order)
process_payment:   PAYMENT_PENDING -> PAYMENT_COMPLETED / PAYMENT_FAILED

The client-side callback (process_payment) and the gateway webhook
(process_webhook_event) converge on the same completion path, so a
duplicate delivery of the same gateway payment is a no-op no matter which
channel arrives first.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import PurchaseRequest, PurchaseRequestStatus
from schemas.payment import GatewayWebhookEvent
from services.access_policy import Principal, require_tenant_of
from services.errors import (
     AuthorizationError,
     ConcurrencyConflict,
     ConflictError,
     InvalidStateTransition,
     SignatureVerificationFailed,
     ValidationError,
)
from services.ledger_service import append_payment_record
from services.payment_gateway import PAYMENT_CURRENCY, PaymentGatewayAdapter, to_minor_units
from services.purchase_request_service import run_with_conflict_retry
from services.purchase_request_store import PurchaseRequestStore

logger = logging.getLogger(__name__)

INITIATABLE = (PurchaseRequestStatus.APPROVED, PurchaseRequestStatus.PAYMENT_FAILED)
SUCCESS_EVENTS = ("payment.captured", "order.paid")
FAILURE_EVENTS = ("payment.failed",)


@dataclass(frozen=True)
class PaymentInitiation:
     request: PurchaseRequest
     gateway_order_id: str
     amount_minor_units: int
     currency: str
     created: bool  # False when an existing pending order was returned


@dataclass(frozen=True)
class PaymentOutcome:
     request: PurchaseRequest
     status: PurchaseRequestStatus
     already_processed: bool = False
     error: Optional[SignatureVerificationFailed] = None
     transaction_hash: Optional[str] = None

     @property
     def succeeded(self) -> bool:
          return self.status == PurchaseRequestStatus.PAYMENT_COMPLETED


@dataclass(frozen=True)
class WebhookResult:
     event: str
     result: str  # processed, duplicate, failed, ignored
     purchase_request_id: Optional[int] = None


class PaymentProcessor:
     """Initiates and confirms purchase payments."""

     def __init__(self, db: Session, gateway: PaymentGatewayAdapter, currency: str = PAYMENT_CURRENCY):
          self.db = db
          self.gateway = gateway
          self.currency = currency
          self.store = PurchaseRequestStore(db)

     # ------------------------------------------------------------------
     # Initiate
     # ------------------------------------------------------------------

     def initiate_payment(self, principal: Principal, request_id: int) -> PaymentInitiation:
          """
          Create a gateway order for an approved (or previously failed)
          request and move it to PAYMENT_PENDING.

          Calling again while PAYMENT_PENDING returns the existing order, so a
          double click never produces two orders. If two calls race, the
          loser's conditional write conflicts, it re-reads, and it returns
          the winner's order.

          Raises:
               AuthorizationError: caller is not the requesting tenant
               InvalidStateTransition: request is not APPROVED/PAYMENT_FAILED
               ConflictError: the property has been sold in the meantime
               GatewayUnavailable: gateway still failing after retries
          """

          def _initiate(retrying: bool) -> PaymentInitiation:
               request = self.store.reload(request_id) if retrying else self.store.get(request_id)
               require_tenant_of(principal, request)

               if request.status == PurchaseRequestStatus.PAYMENT_PENDING and request.gateway_order_id:
                    logger.info(
                         "Purchase request %s already has pending order %s; returning it",
                         request.id, request.gateway_order_id,
                    )
                    return self._initiation(request, created=False)

               if request.status not in INITIATABLE:
                    raise InvalidStateTransition(request.status, PurchaseRequestStatus.PAYMENT_PENDING)

               prop = self.store.get_property(request.property_id, refresh=True)
               if prop.sold or self.store.has_completed_purchase(request.property_id):
                    raise ConflictError(f"Property {request.property_id} has already been sold")

               amount = to_minor_units(request.purchase_price)
               order = self.gateway.create_order(
                    amount,
                    self.currency,
                    {"request_id": request.id, "property_id": request.property_id},
               )

               try:
                    self.store.transition(
                         request,
                         PurchaseRequestStatus.PAYMENT_PENDING,
                         gateway_order_id=order.order_id,
                         failure_reason=None,
                         payment_attempts=request.payment_attempts + 1,
                    )
               except ConcurrencyConflict:
                    logger.warning(
                         "Gateway order %s for request %s lost a concurrent initiation and is unused",
                         order.order_id, request.id,
                    )
                    raise
               self.db.commit()
               return self._initiation(request, created=True)

          return run_with_conflict_retry(self.db, _initiate)

     def _initiation(self, request: PurchaseRequest, created: bool) -> PaymentInitiation:
          return PaymentInitiation(
               request=request,
               gateway_order_id=request.gateway_order_id,
               amount_minor_units=to_minor_units(request.purchase_price),
               currency=self.currency,
               created=created,
          )

     # ------------------------------------------------------------------
     # Confirm
     # ------------------------------------------------------------------

     def process_payment(
          self,
          principal: Principal,
          request_id: int,
          gateway_payment_id: str,
          gateway_signature: str,
     ) -> PaymentOutcome:
          """
          Confirm a payment reported by the client after the gateway checkout.

          A bad signature is a business outcome: the request moves to
          PAYMENT_FAILED and the returned outcome carries the
          SignatureVerificationFailed error instead of raising it.
          """
          if not gateway_payment_id or not gateway_payment_id.strip():
               raise ValidationError("gateway_payment_id is required")
          if not gateway_signature or not gateway_signature.strip():
               raise ValidationError("gateway_signature is required")

          return self._confirm(
               request_id,
               gateway_payment_id.strip(),
               signature=gateway_signature.strip(),
               principal=principal,
          )

     def _confirm(
          self,
          request_id: int,
          gateway_payment_id: str,
          signature: Optional[str] = None,
          principal: Optional[Principal] = None,
          pre_verified_order_id: Optional[str] = None,
     ) -> PaymentOutcome:
          # Order id whose signature check already passed; a retry after a
          # concurrency conflict does not go back to the gateway.
          verified = {"order_id": pre_verified_order_id}

          def _process(retrying: bool) -> PaymentOutcome:
               request = self.store.reload(request_id) if retrying else self.store.get(request_id)
               if principal is not None:
                    require_tenant_of(principal, request)

               prior = self._prior_outcome(request, gateway_payment_id)
               if prior is not None:
                    return prior

               if request.status != PurchaseRequestStatus.PAYMENT_PENDING:
                    raise InvalidStateTransition(request.status, PurchaseRequestStatus.PAYMENT_COMPLETED)

               if verified["order_id"] != request.gateway_order_id:
                    if signature is None:
                         raise ConflictError(
                              f"Payment {gateway_payment_id} belongs to a superseded gateway order"
                         )
                    if not self.gateway.verify_signature(request.gateway_order_id, gateway_payment_id, signature):
                         return self._record_failure(
                              request,
                              SignatureVerificationFailed(
                                   f"Signature verification failed for payment {gateway_payment_id}"
                              ),
                         )
                    verified["order_id"] = request.gateway_order_id

               return self._complete(request, gateway_payment_id)

          return run_with_conflict_retry(self.db, _process)

     def _prior_outcome(self, request: PurchaseRequest, gateway_payment_id: str) -> Optional[PaymentOutcome]:
          """Idempotency guard for duplicate confirmations of one gateway payment."""
          if (
               request.status == PurchaseRequestStatus.PAYMENT_COMPLETED
               and request.gateway_payment_id == gateway_payment_id
          ):
               logger.info(
                    "Payment %s already completed purchase request %s; ignoring duplicate",
                    gateway_payment_id, request.id,
               )
               entry = request.ledger_entry
               return PaymentOutcome(
                    request=request,
                    status=request.status,
                    already_processed=True,
                    transaction_hash=entry.transaction_hash if entry else None,
               )

          other = self.store.find_completed_by_payment_id(gateway_payment_id)
          if other is not None and other.id != request.id:
               raise ConflictError(
                    f"Gateway payment {gateway_payment_id} already completed purchase request {other.id}"
               )
          return None

     def _record_failure(self, request: PurchaseRequest, error: SignatureVerificationFailed) -> PaymentOutcome:
          self.store.transition(
               request,
               PurchaseRequestStatus.PAYMENT_FAILED,
               failure_reason=error.message[:500],
          )
          self.db.commit()
          logger.warning("Purchase request %s payment failed: %s", request.id, error.message)
          return PaymentOutcome(request=request, status=request.status, error=error)

     def _complete(self, request: PurchaseRequest, gateway_payment_id: str) -> PaymentOutcome:
          """Request, property flip and ledger entry commit together or not at all."""
          now = datetime.now(timezone.utc)
          try:
               self.store.transition(
                    request,
                    PurchaseRequestStatus.PAYMENT_COMPLETED,
                    gateway_payment_id=gateway_payment_id,
                    payment_date=now,
                    failure_reason=None,
               )
               self.store.mark_property_sold(request.property_id, request.tenant_id, now)
               entry = append_payment_record(self.db, request, now)
               self.db.commit()
          except IntegrityError as e:
               # Another writer stored this payment id or took the ledger tip first; re-read decides.
               self.db.rollback()
               raise ConcurrencyConflict(f"Concurrent completion of payment {gateway_payment_id}") from e

          logger.info(
               "Purchase request %s completed with payment %s; property %s sold",
               request.id, gateway_payment_id, request.property_id,
          )
          return PaymentOutcome(
               request=request,
               status=request.status,
               transaction_hash=entry.transaction_hash,
          )

     # ------------------------------------------------------------------
     # Webhook
     # ------------------------------------------------------------------

     def process_webhook_event(self, body: bytes, signature: str) -> WebhookResult:
          """
          Handle an inbound gateway webhook.

          The body signature authenticates the delivery, so success events
          complete the request without a per-payment signature.

          Raises:
               AuthorizationError: webhook signature missing or invalid
               ValidationError: body does not match the webhook schema
          """
          if not self.gateway.verify_webhook_signature(body, signature):
               raise AuthorizationError("Invalid webhook signature")

          try:
               event = GatewayWebhookEvent.model_validate_json(body)
          except PydanticValidationError as e:
               raise ValidationError(f"Malformed webhook payload: {e.errors()}") from e

          payment = event.payment_entity
          if payment is None or event.event not in SUCCESS_EVENTS + FAILURE_EVENTS:
               logger.info("Ignoring webhook event %s", event.event)
               return WebhookResult(event=event.event, result="ignored")

          request = self.store.find_by_gateway_order_id(payment.order_id)
          if request is None:
               logger.warning("Webhook %s for unknown order %s", event.event, payment.order_id)
               return WebhookResult(event=event.event, result="ignored")

          if event.event in SUCCESS_EVENTS:
               try:
                    outcome = self._confirm(
                         request.id,
                         payment.id,
                         pre_verified_order_id=payment.order_id,
                    )
               except InvalidStateTransition as e:
                    logger.warning("Webhook %s for request %s not applied: %s", event.event, request.id, e.message)
                    return WebhookResult(event=event.event, result="ignored", purchase_request_id=request.id)
               result = "duplicate" if outcome.already_processed else "processed"
               return WebhookResult(event=event.event, result=result, purchase_request_id=request.id)

          return self._webhook_failure(request.id, payment.order_id, payment.error_description)

     def _webhook_failure(self, request_id: int, order_id: str, description: Optional[str]) -> WebhookResult:
          def _fail(retrying: bool) -> WebhookResult:
               request = self.store.reload(request_id) if retrying else self.store.get(request_id)
               if request.status != PurchaseRequestStatus.PAYMENT_PENDING or request.gateway_order_id != order_id:
                    logger.info("Stale payment.failed for request %s (status %s)", request.id, request.status.value)
                    return WebhookResult(event="payment.failed", result="ignored", purchase_request_id=request.id)
               reason = description or "Payment failed at gateway"
               self.store.transition(request, PurchaseRequestStatus.PAYMENT_FAILED, failure_reason=reason[:500])
               self.db.commit()
               logger.warning("Purchase request %s payment failed at gateway: %s", request.id, reason)
               return WebhookResult(event="payment.failed", result="failed", purchase_request_id=request.id)

          return run_with_conflict_retry(self.db, _fail)
