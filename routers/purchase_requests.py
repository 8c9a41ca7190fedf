# routers/purchase_requests.py
"""
Purchase request API routes.

Role-based access:
- Tenant: files, cancels and pays for own requests
- Landlord: approves / rejects requests on own properties
- Either party: reads the request and its invoice

Domain errors raised by the services are rendered by the handlers
registered in main.py.
"""
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_session
from dependencies import get_current_principal, get_purchase_request_service
from models import PurchaseRequest
from schemas.invoice import PurchaseInvoice
from schemas.purchase_request import (
     PurchaseRequestPageResponse,
     PurchaseRequestResponse,
     StatusUpdateRequest,
)
from services.access_policy import Principal
from services.errors import AuthorizationError
from services.invoice_service import InvoiceService
from services.ledger_service import verify_full_chain, verify_ledger_entry
from services.purchase_request_service import PurchaseRequestService

router = APIRouter(prefix="/api/purchase-requests", tags=["purchase-requests"])


def build_request_response(request: PurchaseRequest) -> PurchaseRequestResponse:
     """Build response with related property/tenant data."""
     response = PurchaseRequestResponse.model_validate(request)
     if request.property is not None:
          response.property_title = request.property.title
     if request.tenant is not None:
          response.tenant_name = request.tenant.full_name
          response.tenant_email = request.tenant.email
     return response


def _build_list(requests: List[PurchaseRequest]) -> List[PurchaseRequestResponse]:
     return [build_request_response(r) for r in requests]


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

@router.get(
     "/tenant",
     response_model=List[PurchaseRequestResponse],
     summary="List the calling tenant's purchase requests"
)
def get_tenant_requests(
     principal: Principal = Depends(get_current_principal),
     service: PurchaseRequestService = Depends(get_purchase_request_service),
):
     return _build_list(service.list_for_tenant(principal))


@router.get(
     "/tenant/paged",
     response_model=PurchaseRequestPageResponse,
     summary="Page through the calling tenant's purchase requests"
)
def get_tenant_requests_paged(
     page: int = Query(1, ge=1, description="Page number"),
     size: int = Query(20, ge=1, le=100, description="Items per page"),
     principal: Principal = Depends(get_current_principal),
     service: PurchaseRequestService = Depends(get_purchase_request_service),
):
     result = service.page_for_tenant(principal, page, size)
     return PurchaseRequestPageResponse(
          requests=_build_list(result.items),
          total=result.total,
          page=result.page,
          size=result.size,
     )


@router.get(
     "/tenant/purchased-properties",
     response_model=List[PurchaseRequestResponse],
     summary="Completed purchases of the calling tenant"
)
def get_purchased_properties(
     principal: Principal = Depends(get_current_principal),
     service: PurchaseRequestService = Depends(get_purchase_request_service),
):
     return _build_list(service.purchased_properties(principal))


@router.get(
     "/landlord",
     response_model=List[PurchaseRequestResponse],
     summary="List purchase requests on the calling landlord's properties"
)
def get_landlord_requests(
     principal: Principal = Depends(get_current_principal),
     service: PurchaseRequestService = Depends(get_purchase_request_service),
):
     return _build_list(service.list_for_landlord(principal))


@router.get(
     "/landlord/paged",
     response_model=PurchaseRequestPageResponse,
     summary="Page through purchase requests on the calling landlord's properties"
)
def get_landlord_requests_paged(
     page: int = Query(1, ge=1, description="Page number"),
     size: int = Query(20, ge=1, le=100, description="Items per page"),
     principal: Principal = Depends(get_current_principal),
     service: PurchaseRequestService = Depends(get_purchase_request_service),
):
     result = service.page_for_landlord(principal, page, size)
     return PurchaseRequestPageResponse(
          requests=_build_list(result.items),
          total=result.total,
          page=result.page,
          size=result.size,
     )


@router.get(
     "/landlord/sold-properties",
     response_model=List[PurchaseRequestResponse],
     summary="Completed sales of the calling landlord's properties"
)
def get_sold_properties(
     principal: Principal = Depends(get_current_principal),
     service: PurchaseRequestService = Depends(get_purchase_request_service),
):
     return _build_list(service.sold_properties(principal))


# ---------------------------------------------------------------------------
# Payment ledger verification (blockchain-like)
# ---------------------------------------------------------------------------

@router.get(
     "/ledger/verify-chain",
     summary="Verify full payment ledger chain"
)
def verify_ledger_chain(
     db: Session = Depends(get_session),
     principal: Principal = Depends(get_current_principal),
):
     """
     Recompute hashes for all ledger entries and verify the chain.
     Admin only.
     """
     if not principal.is_admin:
          raise AuthorizationError("Only administrators can verify the full ledger chain")
     valid, message, count = verify_full_chain(db)
     return {
          "verified": valid,
          "message": message,
          "entries_checked": count,
     }


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

@router.post(
     "/{property_id}",
     response_model=PurchaseRequestResponse,
     status_code=status.HTTP_201_CREATED,
     summary="File a purchase request for a property"
)
def create_purchase_request(
     property_id: int,
     principal: Principal = Depends(get_current_principal),
     service: PurchaseRequestService = Depends(get_purchase_request_service),
):
     """
     Tenant asks to buy a property. The sale price is snapshotted on the
     request and the request starts in PENDING.
     """
     return build_request_response(service.create_request(principal, property_id))


@router.put(
     "/{request_id}/status",
     response_model=PurchaseRequestResponse,
     summary="Approve or reject a purchase request"
)
def update_request_status(
     request_id: int,
     body: StatusUpdateRequest,
     principal: Principal = Depends(get_current_principal),
     service: PurchaseRequestService = Depends(get_purchase_request_service),
):
     """
     - **status**: APPROVED or REJECTED (only from PENDING)
     - **response_notes**: optional note for the tenant
     """
     request = service.update_status(principal, request_id, body.status, body.response_notes)
     return build_request_response(request)


@router.post(
     "/{request_id}/cancel",
     response_model=PurchaseRequestResponse,
     summary="Cancel a purchase request"
)
def cancel_purchase_request(
     request_id: int,
     principal: Principal = Depends(get_current_principal),
     service: PurchaseRequestService = Depends(get_purchase_request_service),
):
     return build_request_response(service.cancel_request(principal, request_id))


@router.get(
     "/{request_id}",
     response_model=PurchaseRequestResponse,
     summary="Get purchase request by ID"
)
def get_purchase_request(
     request_id: int,
     principal: Principal = Depends(get_current_principal),
     service: PurchaseRequestService = Depends(get_purchase_request_service),
):
     return build_request_response(service.get_request(principal, request_id))


@router.get(
     "/{request_id}/invoice",
     response_model=PurchaseInvoice,
     summary="Receipt for a completed purchase"
)
def get_invoice(
     request_id: int,
     db: Session = Depends(get_session),
     principal: Principal = Depends(get_current_principal),
):
     return InvoiceService.build_invoice(db, principal, request_id)


@router.get(
     "/{request_id}/ledger/verify",
     summary="Verify the payment ledger entry of a purchase"
)
def verify_request_ledger(
     request_id: int,
     db: Session = Depends(get_session),
     principal: Principal = Depends(get_current_principal),
     service: PurchaseRequestService = Depends(get_purchase_request_service),
):
     """
     Recompute the hash from request_id + tenant_id + amount + payment id +
     timestamp and compare with the stored hash. Also verifies the
     previous_hash chain link.
     """
     service.get_request(principal, request_id)  # party check
     valid, message = verify_ledger_entry(db, request_id)
     return {
          "verified": valid,
          "message": message,
          "purchase_request_id": request_id,
     }
