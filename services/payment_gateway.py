# services/payment_gateway.py
"""
Payment gateway adapter.

The purchase workflow only needs two things from the gateway: create an
order for an amount, and verify the signature the gateway attaches to a
payment confirmation. RazorpayGateway implements that contract over the
Razorpay REST API (Basic auth with key id/secret, HMAC-SHA256 signatures).

Network failures, timeouts and 5xx responses surface as GatewayUnavailable
after a bounded number of retries with exponential backoff.
"""
import hashlib
import hmac
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

import requests
from dotenv import load_dotenv
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from services.errors import GatewayUnavailable, ValidationError

load_dotenv()

logger = logging.getLogger(__name__)

RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "")
RAZORPAY_WEBHOOK_SECRET = os.getenv("RAZORPAY_WEBHOOK_SECRET", "")
RAZORPAY_BASE_URL = os.getenv("RAZORPAY_BASE_URL", "https://api.razorpay.com/v1")
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "INR")
GATEWAY_TIMEOUT_SECONDS = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "10"))
GATEWAY_MAX_ATTEMPTS = int(os.getenv("GATEWAY_MAX_ATTEMPTS", "3"))

MINOR_UNITS_PER_MAJOR = 100


def to_minor_units(amount: Decimal) -> int:
     """
     Convert a major-unit amount (e.g. rupees) to minor units (paise)
     using exact decimal arithmetic.

     Raises:
          ValidationError: negative amounts, or amounts with a fraction
               of a minor unit.
     """
     if not isinstance(amount, Decimal):
          amount = Decimal(str(amount))
     if amount < 0:
          raise ValidationError(f"Amount must not be negative: {amount}")
     minor = amount * MINOR_UNITS_PER_MAJOR
     if minor != minor.to_integral_value():
          raise ValidationError(f"Amount {amount} has more precision than the currency allows")
     return int(minor)


@dataclass(frozen=True)
class GatewayOrder:
     order_id: str
     amount: int
     currency: str
     receipt: Optional[str] = None
     raw: Dict[str, Any] = field(default_factory=dict, compare=False)


class PaymentGatewayAdapter(ABC):
     """Contract the purchase workflow expects from a payment gateway."""

     key_id: str = ""

     @abstractmethod
     def create_order(self, amount_minor_units: int, currency: str, metadata: Dict[str, Any]) -> GatewayOrder:
          """Reserve an amount at the gateway. Raises GatewayUnavailable on transient failure."""

     @abstractmethod
     def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
          """Check the signature the gateway issued for (order_id, payment_id)."""

     @abstractmethod
     def verify_webhook_signature(self, body: bytes, signature: str) -> bool:
          """Check the signature header of an inbound webhook delivery."""


def _hmac_sha256(secret: str, payload: bytes) -> str:
     return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


class RazorpayGateway(PaymentGatewayAdapter):
     """Razorpay Orders API + signature verification."""

     def __init__(
          self,
          key_id: str = RAZORPAY_KEY_ID,
          key_secret: str = RAZORPAY_KEY_SECRET,
          webhook_secret: str = RAZORPAY_WEBHOOK_SECRET,
          base_url: str = RAZORPAY_BASE_URL,
          timeout: float = GATEWAY_TIMEOUT_SECONDS,
          max_attempts: int = GATEWAY_MAX_ATTEMPTS,
          backoff_multiplier: float = 0.5,
          http: Optional[requests.Session] = None,
     ):
          self.key_id = key_id
          self.key_secret = key_secret
          self.webhook_secret = webhook_secret
          self.base_url = base_url.rstrip("/")
          self.timeout = timeout
          self.max_attempts = max_attempts
          self.backoff_multiplier = backoff_multiplier
          self.http = http or requests.Session()

     def _retrying(self) -> Retrying:
          return Retrying(
               retry=retry_if_exception_type(GatewayUnavailable),
               stop=stop_after_attempt(self.max_attempts),
               wait=wait_exponential(multiplier=self.backoff_multiplier, min=0, max=8),
               reraise=True,
          )

     def _post(self, path: str, payload: dict) -> dict:
          try:
               response = self.http.post(
                    f"{self.base_url}{path}",
                    json=payload,
                    auth=(self.key_id, self.key_secret),
                    timeout=self.timeout,
               )
          except (requests.ConnectionError, requests.Timeout) as e:
               logger.warning("Payment gateway unreachable: %s", e)
               raise GatewayUnavailable(f"Payment gateway unreachable: {e}") from e

          if response.status_code >= 500 or response.status_code == 429:
               logger.warning("Payment gateway returned %s", response.status_code)
               raise GatewayUnavailable(f"Payment gateway returned HTTP {response.status_code}")

          if response.status_code not in (200, 201):
               # 4xx: our request is wrong; retrying will not help
               raise ValidationError(f"Payment gateway rejected the order: {response.text}")

          return response.json()

     def create_order(self, amount_minor_units: int, currency: str, metadata: Dict[str, Any]) -> GatewayOrder:
          request_id = metadata.get("request_id")
          payload = {
               "amount": amount_minor_units,
               "currency": currency,
               "receipt": f"PR-{request_id}",
               "notes": {key: str(value) for key, value in metadata.items()},
          }

          for attempt in self._retrying():
               with attempt:
                    n = attempt.retry_state.attempt_number
                    if n > 1:
                         logger.info("Retrying gateway order for request %s (attempt %s)", request_id, n)
                    data = self._post("/orders", payload)

          logger.info("Gateway order %s created for request %s", data["id"], request_id)
          return GatewayOrder(
               order_id=data["id"],
               amount=data.get("amount", amount_minor_units),
               currency=data.get("currency", currency),
               receipt=data.get("receipt"),
               raw=data,
          )

     def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
          if not (order_id and payment_id and signature):
               return False
          expected = _hmac_sha256(self.key_secret, f"{order_id}|{payment_id}".encode())
          return hmac.compare_digest(expected, signature)

     def verify_webhook_signature(self, body: bytes, signature: str) -> bool:
          if not signature or not self.webhook_secret:
               return False
          expected = _hmac_sha256(self.webhook_secret, body)
          return hmac.compare_digest(expected, signature)
