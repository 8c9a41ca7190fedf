# services/purchase_request_service.py
"""
Purchase Request Service - creation, landlord decisions and cancellation.

Payment transitions live in services/payment_processor.py; both go through
PurchaseRequestStore.transition() so every edge is version-checked.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, List, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import Lease, PurchaseRequest, PurchaseRequestStatus, UserRole
from services.access_policy import (
     Principal,
     require_landlord_of,
     require_party_to,
     require_role,
     require_tenant_of,
)
from services.errors import ConcurrencyConflict, ConflictError, InvalidStateTransition, ValidationError
from services.purchase_request_store import PurchaseRequestStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

LANDLORD_DECISIONS = (PurchaseRequestStatus.APPROVED, PurchaseRequestStatus.REJECTED)
CANCELLABLE = (PurchaseRequestStatus.PENDING, PurchaseRequestStatus.APPROVED)


@dataclass(frozen=True)
class PurchaseRequestPage:
     items: List[PurchaseRequest]
     total: int
     page: int
     size: int


def run_with_conflict_retry(db: Session, operation: Callable[[bool], T]) -> T:
     """
     Run a unit of work, retrying once after a ConcurrencyConflict.

     `operation` receives `retrying` (False on the first attempt) and must
     re-read whatever state it depends on. A second conflict is surfaced.
     """
     try:
          return operation(False)
     except ConcurrencyConflict:
          db.rollback()
          logger.info("Concurrency conflict, re-reading state and retrying once")
     except Exception:
          db.rollback()
          raise
     try:
          return operation(True)
     except Exception:
          db.rollback()
          raise


def parse_status(value) -> PurchaseRequestStatus:
     if isinstance(value, PurchaseRequestStatus):
          return value
     try:
          return PurchaseRequestStatus(str(value).upper())
     except ValueError:
          raise ValidationError(f"Unknown purchase request status: {value!r}")


class PurchaseRequestService:
     """Service class for purchase-request business rules."""

     def __init__(self, db: Session):
          self.db = db
          self.store = PurchaseRequestStore(db)

     def create_request(self, principal: Principal, property_id: int) -> PurchaseRequest:
          """
          File a purchase request for a property.

          The price is snapshotted from the listing now and never re-read,
          so later price edits do not affect an in-progress purchase.

          Raises:
               AuthorizationError: caller is not a tenant
               NotFoundError: property doesn't exist
               ConflictError: property not on sale, owned or exclusively
                    leased by the tenant, or the tenant already has an
                    open request for it
          """
          require_role(principal, UserRole.TENANT)
          prop = self.store.get_property(property_id)

          if not prop.is_for_sale:
               raise ConflictError(f"Property {property_id} is not available for sale")

          if prop.owner_id == principal.user_id:
               raise ConflictError("You cannot purchase a property you already own")

          if self._has_exclusive_lease(principal.user_id, property_id):
               raise ConflictError("You already hold an active exclusive lease on this property")

          existing = self.store.find_active_for_tenant(principal.user_id, property_id)
          if existing is not None:
               raise ConflictError(
                    f"You already have an open purchase request (#{existing.id}) for this property"
               )

          request = PurchaseRequest(
               property_id=prop.id,
               tenant_id=principal.user_id,
               landlord_id=prop.owner_id,
               status=PurchaseRequestStatus.PENDING,
               purchase_price=prop.sale_price,
               request_date=datetime.now(timezone.utc),
               payment_attempts=0,
               version=1,
          )
          try:
               self.store.add(request)
               self.db.commit()
          except IntegrityError as e:
               # A concurrent submission inserted the open request first
               self.db.rollback()
               logger.info(
                    "Duplicate purchase request by tenant %s for property %s rejected by the database",
                    principal.user_id, property_id,
               )
               raise ConflictError("You already have an open purchase request for this property") from e
          except Exception:
               self.db.rollback()
               raise

          logger.info(
               "Purchase request %s created by tenant %s for property %s at %s",
               request.id, principal.user_id, property_id, request.purchase_price,
          )
          return request

     def update_status(
          self,
          principal: Principal,
          request_id: int,
          new_status,
          notes: Optional[str] = None,
     ) -> PurchaseRequest:
          """
          Landlord decision: PENDING -> APPROVED or PENDING -> REJECTED.

          Any other requested transition raises InvalidStateTransition with
          the current and requested states. Notes are stored verbatim.
          """
          target = parse_status(new_status)

          def _decide(retrying: bool) -> PurchaseRequest:
               request = self.store.reload(request_id) if retrying else self.store.get(request_id)
               require_landlord_of(principal, request)

               if target not in LANDLORD_DECISIONS or request.status != PurchaseRequestStatus.PENDING:
                    raise InvalidStateTransition(request.status, target)

               if target == PurchaseRequestStatus.APPROVED:
                    prop = self.store.get_property(request.property_id, refresh=True)
                    if prop.sold or self.store.has_completed_purchase(request.property_id):
                         raise ConflictError(f"Property {request.property_id} has already been sold")

               self.store.transition(request, target, response_notes=notes)
               self.db.commit()
               return request

          return run_with_conflict_retry(self.db, _decide)

     def cancel_request(self, principal: Principal, request_id: int) -> PurchaseRequest:
          """
          Tenant withdraws a request. Only PENDING and APPROVED requests can
          be cancelled; once a gateway order exists the request is out of
          this service's hands.
          """

          def _cancel(retrying: bool) -> PurchaseRequest:
               request = self.store.reload(request_id) if retrying else self.store.get(request_id)
               require_tenant_of(principal, request)

               if request.status not in CANCELLABLE:
                    raise InvalidStateTransition(request.status, PurchaseRequestStatus.CANCELLED)

               self.store.transition(request, PurchaseRequestStatus.CANCELLED)
               self.db.commit()
               return request

          return run_with_conflict_retry(self.db, _cancel)

     def get_request(self, principal: Principal, request_id: int) -> PurchaseRequest:
          request = self.store.get(request_id)
          require_party_to(principal, request)
          return request

     # ------------------------------------------------------------------
     # Listings
     # ------------------------------------------------------------------

     def list_for_tenant(self, principal: Principal) -> List[PurchaseRequest]:
          require_role(principal, UserRole.TENANT)
          items, _ = self.store.list_for_tenant(principal.user_id)
          return items

     def list_for_landlord(self, principal: Principal) -> List[PurchaseRequest]:
          require_role(principal, UserRole.LANDLORD)
          items, _ = self.store.list_for_landlord(principal.user_id)
          return items

     def page_for_tenant(self, principal: Principal, page: int, size: int) -> PurchaseRequestPage:
          require_role(principal, UserRole.TENANT)
          items, total = self.store.list_for_tenant(principal.user_id, page=page, size=size)
          return PurchaseRequestPage(items=items, total=total, page=page, size=size)

     def page_for_landlord(self, principal: Principal, page: int, size: int) -> PurchaseRequestPage:
          require_role(principal, UserRole.LANDLORD)
          items, total = self.store.list_for_landlord(principal.user_id, page=page, size=size)
          return PurchaseRequestPage(items=items, total=total, page=page, size=size)

     def purchased_properties(self, principal: Principal) -> List[PurchaseRequest]:
          """Completed purchases made by the calling tenant."""
          require_role(principal, UserRole.TENANT)
          items, _ = self.store.list_for_tenant(
               principal.user_id, statuses=[PurchaseRequestStatus.PAYMENT_COMPLETED]
          )
          return items

     def sold_properties(self, principal: Principal) -> List[PurchaseRequest]:
          """Completed sales of the calling landlord's properties."""
          require_role(principal, UserRole.LANDLORD)
          items, _ = self.store.list_for_landlord(
               principal.user_id, statuses=[PurchaseRequestStatus.PAYMENT_COMPLETED]
          )
          return items

     def _has_exclusive_lease(self, tenant_id: int, property_id: int) -> bool:
          today = date.today()
          stmt = select(Lease).where(
               Lease.tenant_id == tenant_id,
               Lease.property_id == property_id,
               Lease.exclusive.is_(True),
               Lease.start_date <= today,
               Lease.end_date >= today,
          )
          return self.db.scalars(stmt).first() is not None
