# services/__init__.py
from .access_policy import Principal
from .purchase_request_store import PurchaseRequestStore
from .purchase_request_service import PurchaseRequestService
from .payment_gateway import PaymentGatewayAdapter, RazorpayGateway, to_minor_units
from .payment_processor import PaymentProcessor
from .invoice_service import InvoiceService
from .ledger_service import (
     compute_transaction_hash,
     get_previous_hash,
     append_payment_record,
     verify_ledger_entry,
     verify_full_chain,
     GENESIS_HASH,
)

__all__ = [
     "Principal",
     "PurchaseRequestStore",
     "PurchaseRequestService",
     "PaymentGatewayAdapter",
     "RazorpayGateway",
     "to_minor_units",
     "PaymentProcessor",
     "InvoiceService",
     "compute_transaction_hash",
     "get_previous_hash",
     "append_payment_record",
     "verify_ledger_entry",
     "verify_full_chain",
     "GENESIS_HASH",
]
