from .purchase_request import (
     StatusUpdateRequest,
     PurchaseRequestResponse,
     PurchaseRequestPageResponse,
)
from .payment import (
     ProcessPaymentRequest,
     PaymentInitiationResponse,
     PaymentOutcomeResponse,
     GatewayWebhookEvent,
     WebhookAck,
)
from .invoice import PurchaseInvoice

__all__ = [
     "StatusUpdateRequest",
     "PurchaseRequestResponse",
     "PurchaseRequestPageResponse",
     "ProcessPaymentRequest",
     "PaymentInitiationResponse",
     "PaymentOutcomeResponse",
     "GatewayWebhookEvent",
     "WebhookAck",
     "PurchaseInvoice",
]
