"""
Pydantic schemas for the purchase receipt (invoice view).
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class InvoiceParty(BaseModel):
     """Buyer shown on the receipt."""
     id: int
     name: str
     email: Optional[str] = None

     model_config = ConfigDict(frozen=True)


class InvoiceProperty(BaseModel):
     """Purchased property shown on the receipt."""
     id: int
     title: str
     address: Optional[str] = None

     model_config = ConfigDict(frozen=True)


class PurchaseInvoice(BaseModel):
     """Receipt for a completed purchase; derived, never stored."""
     receipt_id: str = Field(..., description="Deterministic receipt number")
     purchase_request_id: int
     tenant: InvoiceParty
     property: InvoiceProperty
     purchase_price: Decimal = Field(..., description="Price snapshotted when the request was filed")
     currency: str
     payment_date: datetime
     gateway_payment_id: str
     gateway_order_id: Optional[str] = None

     model_config = ConfigDict(
          frozen=True,
          json_schema_extra={
               "example": {
                    "receipt_id": "RCPT-000042-3F9A0C1B2D",
                    "purchase_request_id": 42,
                    "tenant": {"id": 7, "name": "Asha Rao", "email": "asha@example.com"},
                    "property": {"id": 42, "title": "Sea View Villa", "address": "12 Marine Drive"},
                    "purchase_price": "5000000.00",
                    "currency": "INR",
                    "payment_date": "2026-01-31T10:30:00Z",
                    "gateway_payment_id": "pay_1",
                    "gateway_order_id": "ord_1"
               }
          }
     )
