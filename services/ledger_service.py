# services/ledger_service.py
"""
Payment Ledger Service - blockchain-like immutable purchase payment records.

When a purchase request reaches PAYMENT_COMPLETED:
1. Compute SHA-256 hash from request_id + tenant_id + amount + gateway_payment_id + timestamp
2. Store record with reference to previous record's hash (chain)
3. Ledger records are append-only; no update/delete

Verification: recompute hash and compare with stored hash; optionally verify chain.
"""
import hashlib
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy import desc

from models import PaymentLedger, PurchaseRequest
from services.errors import ConflictError


# Genesis block: no previous record
GENESIS_HASH = "0"


def _normalize_amount(amount: Decimal) -> str:
     """Normalize amount to canonical string for hashing (2 decimal places)."""
     return str(Decimal(amount).quantize(Decimal("0.01")))


def _normalize_timestamp(ts: datetime) -> str:
     """Normalize timestamp to ISO format (naive UTC, seconds) for deterministic hashing."""
     return ts.replace(tzinfo=None, microsecond=0).isoformat()


def compute_transaction_hash(
     purchase_request_id: int,
     tenant_id: int,
     amount: Decimal,
     gateway_payment_id: str,
     timestamp: datetime
) -> str:
     """
     Compute SHA-256 hash for a payment record.

     Input string: request_id|tenant_id|amount|payment_id|timestamp (canonical format).
     Returns 64-char hex string.
     """
     payload = "|".join([
          str(purchase_request_id),
          str(tenant_id),
          _normalize_amount(amount),
          gateway_payment_id,
          _normalize_timestamp(timestamp)
     ])
     return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def get_previous_hash(db: Session) -> str:
     """Get the transaction_hash of the most recent ledger entry, or GENESIS_HASH if empty."""
     last = db.query(PaymentLedger).order_by(desc(PaymentLedger.id)).limit(1).first()
     if last is None:
          return GENESIS_HASH
     return last.transaction_hash


def append_payment_record(
     db: Session,
     request: PurchaseRequest,
     timestamp: datetime
) -> PaymentLedger:
     """
     Append an immutable payment record to the ledger, in the caller's
     transaction.

     Raises:
          ConflictError: If the request or payment already has a ledger entry.
     """
     existing = (
          db.query(PaymentLedger)
          .filter(
               (PaymentLedger.purchase_request_id == request.id)
               | (PaymentLedger.gateway_payment_id == request.gateway_payment_id)
          )
          .first()
     )
     if existing:
          raise ConflictError(
               f"Ledger entry already exists for purchase request {existing.purchase_request_id}"
          )

     timestamp = timestamp.replace(tzinfo=None, microsecond=0)
     transaction_hash = compute_transaction_hash(
          request.id, request.tenant_id, request.purchase_price, request.gateway_payment_id, timestamp
     )
     entry = PaymentLedger(
          purchase_request_id=request.id,
          gateway_payment_id=request.gateway_payment_id,
          transaction_hash=transaction_hash,
          previous_hash=get_previous_hash(db),
          timestamp=timestamp
     )
     db.add(entry)
     db.flush()
     return entry


def _recompute(db: Session, entry: PaymentLedger) -> Optional[str]:
     request = db.get(PurchaseRequest, entry.purchase_request_id)
     if request is None:
          return None
     return compute_transaction_hash(
          request.id,
          request.tenant_id,
          request.purchase_price,
          entry.gateway_payment_id,
          entry.timestamp
     )


def verify_ledger_entry(db: Session, purchase_request_id: int) -> Tuple[bool, str]:
     """
     Verify the ledger entry of a purchase request by recomputing the hash.

     Returns:
          (success: bool, message: str)
     """
     entry = (
          db.query(PaymentLedger)
          .filter(PaymentLedger.purchase_request_id == purchase_request_id)
          .first()
     )
     if entry is None:
          return False, "Ledger entry not found"

     computed = _recompute(db, entry)
     if computed is None:
          return False, "Purchase request not found"
     if computed != entry.transaction_hash:
          return False, f"Hash mismatch: stored={entry.transaction_hash[:16]}..., computed={computed[:16]}..."

     if entry.previous_hash != GENESIS_HASH:
          prev_entry = (
               db.query(PaymentLedger)
               .filter(PaymentLedger.id < entry.id)
               .order_by(desc(PaymentLedger.id))
               .limit(1)
               .first()
          )
          if prev_entry is None:
               return False, "Previous chain link not found"
          if prev_entry.transaction_hash != entry.previous_hash:
               return False, "Chain broken: previous_hash does not match previous record"

     return True, "Verification passed"


def verify_full_chain(db: Session) -> Tuple[bool, str, int]:
     """
     Verify the entire ledger chain from first to last entry.

     Returns:
          (all_valid: bool, message: str, entries_checked: int)
     """
     entries = db.query(PaymentLedger).order_by(PaymentLedger.id).all()
     if not entries:
          return True, "Chain is empty (no entries)", 0

     prev_hash = GENESIS_HASH
     checked = 0

     for entry in entries:
          if entry.previous_hash != prev_hash:
               return False, f"Chain broken at id={entry.id}: previous_hash mismatch", checked
          computed = _recompute(db, entry)
          if computed is None:
               return False, f"Purchase request not found for ledger id={entry.id}", checked
          if computed != entry.transaction_hash:
               return False, f"Hash mismatch at ledger id={entry.id}", checked
          prev_hash = entry.transaction_hash
          checked += 1

     return True, "Full chain verification passed", checked
