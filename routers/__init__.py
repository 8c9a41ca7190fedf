# routers/__init__.py
from .purchase_requests import router as purchase_requests_router
from .payments import router as payments_router

__all__ = [
     "purchase_requests_router",
     "payments_router",
]
