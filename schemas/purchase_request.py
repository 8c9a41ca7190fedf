"""
Pydantic schemas for Purchase Request API request/response validation.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import AliasChoices, BaseModel, Field, ConfigDict, field_validator

from models.purchase_request import PurchaseRequestStatus


class StatusUpdateRequest(BaseModel):
     """Landlord decision on a pending request."""
     status: PurchaseRequestStatus = Field(..., description="APPROVED or REJECTED")
     response_notes: Optional[str] = Field(
          None,
          max_length=2000,
          validation_alias=AliasChoices("response_notes", "responseNotes"),
          description="Stored verbatim on the request",
     )

     @field_validator("status", mode="before")
     @classmethod
     def normalize_status(cls, value):
          """Accept status names in any case, as the service layer does."""
          if isinstance(value, str):
               return value.strip().upper()
          return value

     model_config = ConfigDict(
          extra="forbid",
          json_schema_extra={
               "example": {
                    "status": "APPROVED",
                    "response_notes": "Deal accepted"
               }
          }
     )


class PurchaseRequestResponse(BaseModel):
     """Schema for purchase request response."""
     id: int
     property_id: int
     tenant_id: int
     landlord_id: int
     status: PurchaseRequestStatus
     purchase_price: Decimal
     request_date: datetime
     response_notes: Optional[str] = None
     gateway_order_id: Optional[str] = None
     gateway_payment_id: Optional[str] = None
     payment_date: Optional[datetime] = None
     failure_reason: Optional[str] = None
     payment_attempts: int = 0
     version: int

     # Optional related data
     property_title: Optional[str] = None
     tenant_name: Optional[str] = None
     tenant_email: Optional[str] = None

     model_config = ConfigDict(
          from_attributes=True,
          json_schema_extra={
               "example": {
                    "id": 1,
                    "property_id": 42,
                    "tenant_id": 7,
                    "landlord_id": 3,
                    "status": "PENDING",
                    "purchase_price": "5000000.00",
                    "request_date": "2026-01-31T10:30:00Z",
                    "version": 1,
                    "property_title": "Sea View Villa",
                    "tenant_name": "Asha Rao",
                    "tenant_email": "asha@example.com"
               }
          }
     )


class PurchaseRequestPageResponse(BaseModel):
     """Schema for paginated purchase request list response."""
     requests: List[PurchaseRequestResponse]
     total: int
     page: int = 1
     size: int = 20
