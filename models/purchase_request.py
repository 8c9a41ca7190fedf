# models/purchase_request.py
"""
PurchaseRequest model - one tenant's intent to buy one property, tracked
through landlord approval and payment.

Rows are never deleted; terminal requests remain as the audit trail.
Every transition bumps `version` and is written conditionally on the
previously read version (see services/purchase_request_store.py).
"""
import enum
from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, ForeignKey, Enum, Index, text
from sqlalchemy.orm import relationship
from .base import Base, TimestampMixin


class PurchaseRequestStatus(str, enum.Enum):
     """Lifecycle states of a purchase request."""
     PENDING = "PENDING"
     APPROVED = "APPROVED"
     REJECTED = "REJECTED"
     CANCELLED = "CANCELLED"
     PAYMENT_PENDING = "PAYMENT_PENDING"
     PAYMENT_COMPLETED = "PAYMENT_COMPLETED"
     PAYMENT_FAILED = "PAYMENT_FAILED"


TERMINAL_STATUSES = frozenset({
     PurchaseRequestStatus.REJECTED,
     PurchaseRequestStatus.CANCELLED,
     PurchaseRequestStatus.PAYMENT_COMPLETED,
     PurchaseRequestStatus.PAYMENT_FAILED,
})

# Requests in these states still block a new request by the same tenant.
# PAYMENT_FAILED is terminal for the attempt but the request can be retried.
ACTIVE_STATUSES = frozenset({
     PurchaseRequestStatus.PENDING,
     PurchaseRequestStatus.APPROVED,
     PurchaseRequestStatus.PAYMENT_PENDING,
     PurchaseRequestStatus.PAYMENT_FAILED,
})

OPEN_REQUEST_FILTER = "status IN ({})".format(
     ", ".join(f"'{s.value}'" for s in sorted(ACTIVE_STATUSES, key=lambda s: s.value))
)

ALLOWED_TRANSITIONS = {
     PurchaseRequestStatus.PENDING: frozenset({
          PurchaseRequestStatus.APPROVED,
          PurchaseRequestStatus.REJECTED,
          PurchaseRequestStatus.CANCELLED,
     }),
     PurchaseRequestStatus.APPROVED: frozenset({
          PurchaseRequestStatus.CANCELLED,
          PurchaseRequestStatus.PAYMENT_PENDING,
     }),
     PurchaseRequestStatus.PAYMENT_PENDING: frozenset({
          PurchaseRequestStatus.PAYMENT_COMPLETED,
          PurchaseRequestStatus.PAYMENT_FAILED,
     }),
     PurchaseRequestStatus.PAYMENT_FAILED: frozenset({
          PurchaseRequestStatus.PAYMENT_PENDING,
     }),
     PurchaseRequestStatus.REJECTED: frozenset(),
     PurchaseRequestStatus.CANCELLED: frozenset(),
     PurchaseRequestStatus.PAYMENT_COMPLETED: frozenset(),
}


def can_transition(current: PurchaseRequestStatus, target: PurchaseRequestStatus) -> bool:
     return target in ALLOWED_TRANSITIONS.get(current, frozenset())


class PurchaseRequest(TimestampMixin, Base):
     __tablename__ = "purchase_requests"
     __table_args__ = (
          # At most one open request per tenant and property
          Index(
               "uq_purchase_requests_open_per_tenant",
               "tenant_id",
               "property_id",
               unique=True,
               sqlite_where=text(OPEN_REQUEST_FILTER),
               mssql_where=text(OPEN_REQUEST_FILTER),
               postgresql_where=text(OPEN_REQUEST_FILTER),
          ),
     )

     id = Column(Integer, primary_key=True, autoincrement=True)

     # Weak references to externally owned entities
     property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
     tenant_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
     landlord_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

     status = Column(
          Enum(PurchaseRequestStatus, name="purchase_request_status", create_constraint=True),
          default=PurchaseRequestStatus.PENDING,
          nullable=False,
          index=True
     )

     # Snapshotted from the property at creation, never re-read
     purchase_price = Column(Numeric(14, 2), nullable=False)
     request_date = Column(DateTime(timezone=True), nullable=False)
     response_notes = Column(Text, nullable=True)

     # Gateway
     gateway_order_id = Column(String(100), nullable=True, index=True)
     gateway_payment_id = Column(String(100), nullable=True, unique=True)
     payment_date = Column(DateTime(timezone=True), nullable=True)
     failure_reason = Column(String(500), nullable=True)
     payment_attempts = Column(Integer, default=0, nullable=False)

     # Optimistic concurrency control
     version = Column(Integer, default=1, nullable=False)

     # Declared before the `property` relationship, which shadows the builtin
     @property
     def is_terminal(self) -> bool:
          return self.status in TERMINAL_STATUSES

     # Relationships
     property = relationship("Property", back_populates="purchase_requests")
     tenant = relationship("User", foreign_keys=[tenant_id])
     landlord = relationship("User", foreign_keys=[landlord_id])
     ledger_entry = relationship("PaymentLedger", back_populates="purchase_request", uselist=False)

     def __repr__(self):
          return (
               f"<PurchaseRequest(id={self.id}, property_id={self.property_id}, "
               f"status='{self.status.value}', version={self.version})>"
          )
