# models/payment_ledger.py
"""
PaymentLedger model - blockchain-like immutable record of completed
purchase payments.

Each record stores a SHA-256 hash of
(purchase_request_id + tenant_id + amount + gateway_payment_id + timestamp)
and a reference to the previous record's hash, forming a chain.
Records are append-only; modification is prevented at the application layer.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from .base import Base


class PaymentLedger(Base):
     """
     Immutable payment ledger entry. Created in the same transaction that
     moves a purchase request to PAYMENT_COMPLETED.
     """
     __tablename__ = "purchase_payment_ledger"

     id = Column(Integer, primary_key=True, autoincrement=True)
     purchase_request_id = Column(
          Integer,
          ForeignKey("purchase_requests.id", ondelete="RESTRICT"),
          nullable=False,
          unique=True,  # One ledger entry per completed purchase
          index=True
     )
     gateway_payment_id = Column(String(100), nullable=False, unique=True)
     transaction_hash = Column(String(64), nullable=False, unique=True, index=True)  # SHA-256 hex length
     previous_hash = Column(String(64), nullable=False, unique=True, index=True)  # "0" for genesis; one child per parent
     timestamp = Column(DateTime, nullable=False)

     # Relationships
     purchase_request = relationship("PurchaseRequest", back_populates="ledger_entry", uselist=False)

     def __repr__(self):
          return f"<PaymentLedger(id={self.id}, purchase_request_id={self.purchase_request_id}, hash={self.transaction_hash[:16]}...)>"
