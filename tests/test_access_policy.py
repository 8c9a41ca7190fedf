"""
Tests for `services/access_policy.py`.
"""

from decimal import Decimal

import pytest

from models import PurchaseRequest, PurchaseRequestStatus, UserRole
from services.access_policy import (
    Principal,
    is_landlord_of,
    is_party_to,
    is_tenant_of,
    require_landlord_of,
    require_party_to,
    require_role,
    require_tenant_of,
)
from services.errors import AuthorizationError


@pytest.fixture
def request_row() -> PurchaseRequest:
    return PurchaseRequest(
        id=1,
        property_id=42,
        tenant_id=7,
        landlord_id=3,
        status=PurchaseRequestStatus.PENDING,
        purchase_price=Decimal("100.00"),
        version=1,
    )


def test_tenant_and_landlord_of_request(request_row) -> None:
    tenant = Principal(user_id=7, role=UserRole.TENANT.value)
    landlord = Principal(user_id=3, role=UserRole.LANDLORD.value)

    assert is_tenant_of(tenant, request_row)
    assert not is_landlord_of(tenant, request_row)
    assert is_landlord_of(landlord, request_row)
    assert is_party_to(tenant, request_row) and is_party_to(landlord, request_row)

    require_tenant_of(tenant, request_row)
    require_landlord_of(landlord, request_row)
    require_party_to(landlord, request_row)


def test_matching_id_with_wrong_role_is_not_a_party(request_row) -> None:
    # User 7 acting as a landlord is not the landlord of this request
    impostor = Principal(user_id=7, role=UserRole.LANDLORD.value)

    assert not is_landlord_of(impostor, request_row)
    assert not is_party_to(impostor, request_row)
    with pytest.raises(AuthorizationError):
        require_landlord_of(impostor, request_row)


def test_outsiders_are_refused(request_row) -> None:
    for outsider in (Principal(8, "TENANT"), Principal(4, "LANDLORD"), Principal(1, "ADMIN")):
        with pytest.raises(AuthorizationError):
            require_party_to(outsider, request_row)
        with pytest.raises(AuthorizationError):
            require_tenant_of(outsider, request_row)


def test_require_role() -> None:
    require_role(Principal(1, "ADMIN"), UserRole.ADMIN)
    with pytest.raises(AuthorizationError):
        require_role(Principal(7, "TENANT"), UserRole.LANDLORD)
