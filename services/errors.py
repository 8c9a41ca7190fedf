# services/errors.py
"""
Domain errors raised by the purchase workflow services.

Each error carries the HTTP status it maps to and a stable machine code;
main.py renders them into the JSON error envelope. Services never raise
HTTPException themselves.
"""
from typing import Optional


class PurchaseWorkflowError(Exception):
     """Base class for every business error of the purchase workflow."""

     status_code = 400
     code = "PURCHASE_WORKFLOW_ERROR"

     def __init__(self, message: str):
          super().__init__(message)
          self.message = message

     def to_dict(self) -> dict:
          return {"error": self.code, "detail": self.message}


class ValidationError(PurchaseWorkflowError):
     """Missing or malformed input."""
     status_code = 422
     code = "VALIDATION_ERROR"


class AuthorizationError(PurchaseWorkflowError):
     """Wrong role, or the caller is not a party to the request."""
     status_code = 403
     code = "FORBIDDEN"


class NotFoundError(PurchaseWorkflowError):
     status_code = 404
     code = "NOT_FOUND"


class InvalidStateTransition(PurchaseWorkflowError):
     """The requested transition is not an edge of the state machine."""
     status_code = 409
     code = "INVALID_STATE_TRANSITION"

     def __init__(self, current_status, requested_status, message: Optional[str] = None):
          self.current_status = getattr(current_status, "value", current_status)
          self.requested_status = getattr(requested_status, "value", requested_status)
          super().__init__(
               message
               or f"Cannot move purchase request from {self.current_status} to {self.requested_status}"
          )

     def to_dict(self) -> dict:
          data = super().to_dict()
          data["current_status"] = self.current_status
          data["requested_status"] = self.requested_status
          return data


class ConflictError(PurchaseWorkflowError):
     """Duplicate active request, property no longer on sale, or payment reused."""
     status_code = 409
     code = "CONFLICT"


class ConcurrencyConflict(PurchaseWorkflowError):
     """Version mismatch on a conditional write."""
     status_code = 409
     code = "CONCURRENCY_CONFLICT"


class SignatureVerificationFailed(PurchaseWorkflowError):
     """
     Gateway signature did not match. Recorded as PAYMENT_FAILED on the
     request and reported in a successful response, never as an HTTP error.
     """
     status_code = 200
     code = "SIGNATURE_VERIFICATION_FAILED"


class GatewayUnavailable(PurchaseWorkflowError):
     """Transient gateway failure (network error, timeout, 5xx)."""
     status_code = 503
     code = "GATEWAY_UNAVAILABLE"
