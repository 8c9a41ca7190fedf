# services/purchase_request_store.py
"""
Durable store for purchase requests.

All state changes go through `transition()`, which issues

     UPDATE purchase_requests SET ..., version = version + 1
     WHERE id = :id AND version = :expected

and raises ConcurrencyConflict when no row matched. Callers own the
transaction (commit/rollback) so a transition and its side effects
(property flip, ledger entry) land together.
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from models import Property, PurchaseRequest, PurchaseRequestStatus
from models.purchase_request import ACTIVE_STATUSES, can_transition
from services.errors import ConcurrencyConflict, ConflictError, InvalidStateTransition, NotFoundError

logger = logging.getLogger(__name__)


class PurchaseRequestStore:
     """SQLAlchemy-backed persistence for PurchaseRequest rows."""

     def __init__(self, db: Session):
          self.db = db

     # ------------------------------------------------------------------
     # Reads
     # ------------------------------------------------------------------

     def get(self, request_id: int) -> PurchaseRequest:
          request = self.db.get(PurchaseRequest, request_id)
          if request is None:
               raise NotFoundError(f"Purchase request with ID {request_id} not found")
          return request

     def reload(self, request_id: int) -> PurchaseRequest:
          """Re-read the row, discarding whatever this session had cached."""
          request = self.db.get(PurchaseRequest, request_id, populate_existing=True)
          if request is None:
               raise NotFoundError(f"Purchase request with ID {request_id} not found")
          return request

     def get_property(self, property_id: int, refresh: bool = False) -> Property:
          prop = self.db.get(Property, property_id, populate_existing=refresh)
          if prop is None:
               raise NotFoundError(f"Property with ID {property_id} not found")
          return prop

     def find_active_for_tenant(self, tenant_id: int, property_id: int) -> Optional[PurchaseRequest]:
          stmt = (
               select(PurchaseRequest)
               .where(
                    PurchaseRequest.tenant_id == tenant_id,
                    PurchaseRequest.property_id == property_id,
                    PurchaseRequest.status.in_(ACTIVE_STATUSES),
               )
               .limit(1)
          )
          return self.db.scalars(stmt).first()

     def find_completed_by_payment_id(self, gateway_payment_id: str) -> Optional[PurchaseRequest]:
          stmt = select(PurchaseRequest).where(
               PurchaseRequest.gateway_payment_id == gateway_payment_id,
               PurchaseRequest.status == PurchaseRequestStatus.PAYMENT_COMPLETED,
          )
          return self.db.scalars(stmt).first()

     def find_by_gateway_order_id(self, gateway_order_id: str) -> Optional[PurchaseRequest]:
          stmt = select(PurchaseRequest).where(PurchaseRequest.gateway_order_id == gateway_order_id)
          return self.db.scalars(stmt).first()

     def has_completed_purchase(self, property_id: int) -> bool:
          stmt = select(func.count(PurchaseRequest.id)).where(
               PurchaseRequest.property_id == property_id,
               PurchaseRequest.status == PurchaseRequestStatus.PAYMENT_COMPLETED,
          )
          return self.db.scalar(stmt) > 0

     def _list(
          self,
          column,
          user_id: int,
          statuses: Optional[Iterable[PurchaseRequestStatus]] = None,
          page: Optional[int] = None,
          size: Optional[int] = None,
     ) -> Tuple[List[PurchaseRequest], int]:
          filters = [column == user_id]
          if statuses:
               filters.append(PurchaseRequest.status.in_(list(statuses)))

          total = self.db.scalar(select(func.count(PurchaseRequest.id)).where(*filters))

          stmt = (
               select(PurchaseRequest)
               .where(*filters)
               .order_by(PurchaseRequest.request_date.desc(), PurchaseRequest.id.desc())
          )
          if page is not None and size is not None:
               stmt = stmt.offset((page - 1) * size).limit(size)
          return list(self.db.scalars(stmt).all()), total

     def list_for_tenant(self, tenant_id: int, **kwargs) -> Tuple[List[PurchaseRequest], int]:
          return self._list(PurchaseRequest.tenant_id, tenant_id, **kwargs)

     def list_for_landlord(self, landlord_id: int, **kwargs) -> Tuple[List[PurchaseRequest], int]:
          return self._list(PurchaseRequest.landlord_id, landlord_id, **kwargs)

     # ------------------------------------------------------------------
     # Writes
     # ------------------------------------------------------------------

     def add(self, request: PurchaseRequest) -> PurchaseRequest:
          self.db.add(request)
          self.db.flush()  # Flush to get the ID without committing
          return request

     def transition(
          self,
          request: PurchaseRequest,
          target: PurchaseRequestStatus,
          **changes,
     ) -> PurchaseRequest:
          """
          Apply one state-machine edge with a version-conditional UPDATE.

          Raises:
               InvalidStateTransition: `target` is not reachable from the
                    status read into `request`.
               ConcurrencyConflict: another writer bumped the version first.
          """
          current = request.status
          if not can_transition(current, target):
               raise InvalidStateTransition(current, target)

          expected_version = request.version
          values = dict(changes)
          values["status"] = target
          values["version"] = expected_version + 1

          result = self.db.execute(
               update(PurchaseRequest)
               .where(
                    PurchaseRequest.id == request.id,
                    PurchaseRequest.version == expected_version,
               )
               .values(**values)
               .execution_options(synchronize_session=False)
          )
          if result.rowcount != 1:
               logger.warning(
                    "Version conflict on purchase request %s (expected version %s, %s -> %s)",
                    request.id, expected_version, current.value, target.value,
               )
               raise ConcurrencyConflict(
                    f"Purchase request {request.id} was modified concurrently; re-read and retry"
               )

          self.db.refresh(request)
          logger.info(
               "Purchase request %s: %s -> %s (version %s)",
               request.id, current.value, target.value, request.version,
          )
          return request

     def mark_property_sold(self, property_id: int, buyer_id: int, sold_at: datetime) -> None:
          """
          Flip the property's availability in the caller's transaction.

          Raises:
               ConflictError: the property was already sold.
          """
          result = self.db.execute(
               update(Property)
               .where(Property.id == property_id, Property.sold.is_(False))
               .values(sold=True, available=False, buyer_id=buyer_id, sold_at=sold_at)
               .execution_options(synchronize_session=False)
          )
          if result.rowcount != 1:
               raise ConflictError(f"Property {property_id} has already been sold")
          logger.info("Property %s marked sold to user %s", property_id, buyer_id)
