# services/invoice_service.py
"""
Invoice Service - receipt view for completed purchases.

An invoice is derived, never stored: it is recomputed from the completed
purchase request each time, with no side effects and no gateway calls, so
the same request always yields the same document.
"""
import hashlib
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy.orm import Session

from models import PurchaseRequest, PurchaseRequestStatus
from schemas.invoice import InvoiceParty, InvoiceProperty, PurchaseInvoice
from services.access_policy import Principal, require_party_to
from services.errors import InvalidStateTransition
from services.payment_gateway import PAYMENT_CURRENCY
from services.purchase_request_store import PurchaseRequestStore


def compute_receipt_id(request_id: int, gateway_payment_id: str) -> str:
     digest = hashlib.sha256(f"{request_id}|{gateway_payment_id}".encode("utf-8")).hexdigest()
     return f"RCPT-{request_id:06d}-{digest[:10].upper()}"


def _as_utc(value: datetime) -> datetime:
     # SQLite hands back naive datetimes; payment dates are always stored in UTC
     if value.tzinfo is None:
          return value.replace(tzinfo=timezone.utc)
     return value.astimezone(timezone.utc)


class InvoiceService:
     """Service class for invoice derivation."""

     @staticmethod
     def derive_invoice(request: PurchaseRequest, currency: str = PAYMENT_CURRENCY) -> PurchaseInvoice:
          """
          Build the receipt for a completed request.

          Raises:
               InvalidStateTransition: request has not reached PAYMENT_COMPLETED
          """
          if request.status != PurchaseRequestStatus.PAYMENT_COMPLETED:
               raise InvalidStateTransition(
                    request.status,
                    PurchaseRequestStatus.PAYMENT_COMPLETED,
                    message=f"Invoice is only available for completed purchases (status: {request.status.value})",
               )

          tenant = request.tenant
          prop = request.property
          return PurchaseInvoice(
               receipt_id=compute_receipt_id(request.id, request.gateway_payment_id),
               purchase_request_id=request.id,
               tenant=InvoiceParty(
                    id=tenant.id,
                    name=tenant.full_name,
                    email=tenant.email,
               ),
               property=InvoiceProperty(
                    id=prop.id,
                    title=prop.title,
                    address=prop.address,
               ),
               purchase_price=Decimal(request.purchase_price).quantize(Decimal("0.01")),
               currency=currency,
               payment_date=_as_utc(request.payment_date),
               gateway_payment_id=request.gateway_payment_id,
               gateway_order_id=request.gateway_order_id,
          )

     @staticmethod
     def build_invoice(db: Session, principal: Principal, request_id: int) -> PurchaseInvoice:
          """
          Invoice for either party of a completed purchase request.

          Raises:
               NotFoundError, AuthorizationError, InvalidStateTransition
          """
          request = PurchaseRequestStore(db).get(request_id)
          require_party_to(principal, request)
          return InvoiceService.derive_invoice(request)
