"""
Pytest configuration and shared fixtures.

Adds the project root to the Python path, points the application at an
in-memory database before anything imports `database`, and provides a
file-backed SQLite database per test so two sessions can race on it.
"""

import hashlib
import hmac
import os
import sys
from decimal import Decimal
from pathlib import Path

import pytest

# Must be set before database.py / dependencies.py are imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from jose import jwt  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from database import create_db_engine, init_db  # noqa: E402
from models import ListingType, Property, User, UserRole  # noqa: E402
from services.access_policy import Principal  # noqa: E402
from services.errors import GatewayUnavailable  # noqa: E402
from services.payment_gateway import GatewayOrder, PaymentGatewayAdapter  # noqa: E402

WEBHOOK_SECRET = "whsec_test"
VALID_SIGNATURE = "sig_valid"

ADMIN_ID = 1
LANDLORD_ID = 3
OTHER_LANDLORD_ID = 4
TENANT_ID = 7
OTHER_TENANT_ID = 8

PROPERTY_ID = 42
RENTAL_PROPERTY_ID = 43
OTHER_LANDLORD_PROPERTY_ID = 44
PROPERTY_PRICE = Decimal("5000000.00")


def sign_webhook(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class FakeGateway(PaymentGatewayAdapter):
    """In-process gateway: sequential order ids, one accepted payment signature."""

    key_id = "rzp_test_fake"

    def __init__(self):
        self.orders = []
        self.signature_checks = []
        self.failures_before_success = 0

    def create_order(self, amount_minor_units, currency, metadata):
        if self.failures_before_success:
            self.failures_before_success -= 1
            raise GatewayUnavailable("Payment gateway returned HTTP 503")
        order = GatewayOrder(
            order_id=f"ord_{len(self.orders) + 1}",
            amount=amount_minor_units,
            currency=currency,
            receipt=f"PR-{metadata.get('request_id')}",
        )
        self.orders.append((order, dict(metadata)))
        return order

    def verify_signature(self, order_id, payment_id, signature):
        self.signature_checks.append((order_id, payment_id, signature))
        return signature == VALID_SIGNATURE

    def verify_webhook_signature(self, body, signature):
        if not signature:
            return False
        return hmac.compare_digest(sign_webhook(body), signature)


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'purchase.db'}")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory, seed):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def seed(session_factory):
    """Users and listings shared by every test."""
    session = session_factory()
    session.add_all([
        User(id=ADMIN_ID, email="admin@example.com", first_name="Ada", last_name="Min", role=UserRole.ADMIN.value),
        User(id=LANDLORD_ID, email="lal@example.com", first_name="Lal", last_name="Singh", role=UserRole.LANDLORD.value),
        User(id=OTHER_LANDLORD_ID, email="meera@example.com", first_name="Meera", last_name="Iyer", role=UserRole.LANDLORD.value),
        User(id=TENANT_ID, email="asha@example.com", first_name="Asha", last_name="Rao", role=UserRole.TENANT.value),
        User(id=OTHER_TENANT_ID, email="ravi@example.com", first_name="Ravi", last_name="Kumar", role=UserRole.TENANT.value),
    ])
    session.flush()
    session.add_all([
        Property(
            id=PROPERTY_ID,
            title="Sea View Villa",
            address="12 Marine Drive",
            owner_id=LANDLORD_ID,
            listing_type=ListingType.SALE.value,
            sale_price=PROPERTY_PRICE,
        ),
        Property(
            id=RENTAL_PROPERTY_ID,
            title="Garden Flat",
            address="3 Park Lane",
            owner_id=LANDLORD_ID,
            listing_type=ListingType.RENT.value,
            sale_price=None,
        ),
        Property(
            id=OTHER_LANDLORD_PROPERTY_ID,
            title="Hill Cottage",
            address="9 Ridge Road",
            owner_id=OTHER_LANDLORD_ID,
            listing_type=ListingType.BOTH.value,
            sale_price=Decimal("19.99"),
        ),
    ])
    session.commit()
    session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def tenant():
    return Principal(user_id=TENANT_ID, role=UserRole.TENANT.value)


@pytest.fixture
def other_tenant():
    return Principal(user_id=OTHER_TENANT_ID, role=UserRole.TENANT.value)


@pytest.fixture
def landlord():
    return Principal(user_id=LANDLORD_ID, role=UserRole.LANDLORD.value)


@pytest.fixture
def other_landlord():
    return Principal(user_id=OTHER_LANDLORD_ID, role=UserRole.LANDLORD.value)


@pytest.fixture
def admin():
    return Principal(user_id=ADMIN_ID, role=UserRole.ADMIN.value)


def make_token(user_id: int, role: str) -> str:
    return jwt.encode({"id": user_id, "role": role}, os.environ["JWT_SECRET"], algorithm="HS256")


def auth_header(user_id: int, role: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


@pytest.fixture
def client(session_factory, seed, gateway):
    from fastapi.testclient import TestClient

    from database import get_session
    from dependencies import get_gateway
    from main import app

    def override_get_session():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
