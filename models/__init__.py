from .base import Base
from .user import User, UserRole
from .property import Property, ListingType
from .lease import Lease
from .purchase_request import PurchaseRequest, PurchaseRequestStatus
from .payment_ledger import PaymentLedger

__all__ = [
     "Base",
     "User",
     "UserRole",
     "Property",
     "ListingType",
     "Lease",
     "PurchaseRequest",
     "PurchaseRequestStatus",
     "PaymentLedger",
]
