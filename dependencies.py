# dependencies.py
"""
FastAPI dependencies shared by the routers: token verification, the
caller's Principal, and the payment gateway / service wiring.
"""
import os
from functools import lru_cache

from fastapi import Depends, HTTPException, Request
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from dotenv import load_dotenv

from database import get_session
from models import UserRole
from services.access_policy import Principal
from services.payment_gateway import PaymentGatewayAdapter, RazorpayGateway
from services.payment_processor import PaymentProcessor
from services.purchase_request_service import PurchaseRequestService

load_dotenv()
SECRET_KEY = os.getenv("JWT_SECRET")
ALGORITHM = "HS256"

KNOWN_ROLES = {role.value for role in UserRole}


# Token Auth Dependency
def verify_token(request: Request) -> dict:
    auth = request.headers.get("Authorization")
    if not auth or not auth.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing token")
    token = auth.split(" ")[1]
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return payload
    except JWTError:
        raise HTTPException(status_code=403, detail="Invalid token")


def get_current_principal(token: dict = Depends(verify_token)) -> Principal:
    """Build the explicit caller identity from the verified token claims."""
    user_id = token.get("id")
    role = str(token.get("role", "")).upper()
    if user_id is None or role not in KNOWN_ROLES:
        raise HTTPException(status_code=403, detail="Token is missing user id or role")
    try:
        return Principal(user_id=int(user_id), role=role)
    except (TypeError, ValueError):
        raise HTTPException(status_code=403, detail="Invalid user id in token")


@lru_cache(maxsize=1)
def get_gateway() -> PaymentGatewayAdapter:
    return RazorpayGateway()


def get_purchase_request_service(db: Session = Depends(get_session)) -> PurchaseRequestService:
    return PurchaseRequestService(db)


def get_payment_processor(
    db: Session = Depends(get_session),
    gateway: PaymentGatewayAdapter = Depends(get_gateway),
) -> PaymentProcessor:
    return PaymentProcessor(db, gateway)
