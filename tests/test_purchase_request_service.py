"""
Tests for `services/purchase_request_service.py`.

Covers:
- Creation rules: tenant only, listing on sale, not own property, no
  exclusive lease, one open request per tenant and property.
- Landlord decisions and tenant cancellation as state-machine edges.
- Version-conditional writes between two sessions.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import (
    LANDLORD_ID,
    OTHER_LANDLORD_PROPERTY_ID,
    PROPERTY_ID,
    PROPERTY_PRICE,
    RENTAL_PROPERTY_ID,
    TENANT_ID,
)
from models import Lease, Property, PurchaseRequest, PurchaseRequestStatus
from services.errors import (
    AuthorizationError,
    ConcurrencyConflict,
    ConflictError,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from services.purchase_request_service import PurchaseRequestService, parse_status
from services.purchase_request_store import PurchaseRequestStore


@pytest.fixture
def service(db):
    return PurchaseRequestService(db)


def test_create_request_snapshots_price_and_starts_pending(service, tenant) -> None:
    request = service.create_request(tenant, PROPERTY_ID)

    assert request.id is not None
    assert request.status == PurchaseRequestStatus.PENDING
    assert request.purchase_price == PROPERTY_PRICE
    assert request.tenant_id == TENANT_ID
    assert request.landlord_id == LANDLORD_ID
    assert request.version == 1
    assert request.payment_attempts == 0
    assert request.gateway_order_id is None


def test_price_change_after_creation_does_not_touch_request(service, db, tenant) -> None:
    request = service.create_request(tenant, PROPERTY_ID)

    prop = db.get(Property, PROPERTY_ID)
    prop.sale_price = Decimal("6000000.00")
    db.commit()

    assert service.store.reload(request.id).purchase_price == PROPERTY_PRICE


def test_create_request_requires_tenant_role(service, landlord) -> None:
    with pytest.raises(AuthorizationError):
        service.create_request(landlord, PROPERTY_ID)


def test_create_request_unknown_property(service, tenant) -> None:
    with pytest.raises(NotFoundError):
        service.create_request(tenant, 9999)


def test_create_request_rejects_property_not_for_sale(service, tenant) -> None:
    with pytest.raises(ConflictError):
        service.create_request(tenant, RENTAL_PROPERTY_ID)


def test_create_request_rejects_sold_property(service, db, tenant) -> None:
    prop = db.get(Property, PROPERTY_ID)
    prop.sold = True
    prop.available = False
    db.commit()

    with pytest.raises(ConflictError):
        service.create_request(tenant, PROPERTY_ID)


def test_create_request_rejects_own_property(service, db, tenant) -> None:
    prop = db.get(Property, PROPERTY_ID)
    prop.owner_id = TENANT_ID
    db.commit()

    with pytest.raises(ConflictError):
        service.create_request(tenant, PROPERTY_ID)


def test_create_request_rejects_exclusive_lease_holder(service, db, tenant) -> None:
    today = date.today()
    db.add(Lease(
        property_id=PROPERTY_ID,
        tenant_id=TENANT_ID,
        start_date=today - timedelta(days=30),
        end_date=today + timedelta(days=300),
        exclusive=True,
    ))
    db.commit()

    with pytest.raises(ConflictError):
        service.create_request(tenant, PROPERTY_ID)


def test_expired_lease_does_not_block(service, db, tenant) -> None:
    today = date.today()
    db.add(Lease(
        property_id=PROPERTY_ID,
        tenant_id=TENANT_ID,
        start_date=today - timedelta(days=400),
        end_date=today - timedelta(days=35),
        exclusive=True,
    ))
    db.commit()

    assert service.create_request(tenant, PROPERTY_ID).status == PurchaseRequestStatus.PENDING


def test_duplicate_open_request_is_rejected(service, tenant) -> None:
    service.create_request(tenant, PROPERTY_ID)

    with pytest.raises(ConflictError):
        service.create_request(tenant, PROPERTY_ID)


def test_new_request_allowed_after_cancel(service, tenant) -> None:
    first = service.create_request(tenant, PROPERTY_ID)
    service.cancel_request(tenant, first.id)

    second = service.create_request(tenant, PROPERTY_ID)
    assert second.id != first.id


def test_other_tenants_can_request_same_property(service, tenant, other_tenant) -> None:
    service.create_request(tenant, PROPERTY_ID)
    assert service.create_request(other_tenant, PROPERTY_ID).status == PurchaseRequestStatus.PENDING


def test_landlord_approves_with_notes(service, tenant, landlord) -> None:
    request = service.create_request(tenant, PROPERTY_ID)

    approved = service.update_status(landlord, request.id, "APPROVED", "Deal accepted")

    assert approved.status == PurchaseRequestStatus.APPROVED
    assert approved.response_notes == "Deal accepted"
    assert approved.version == 2


def test_landlord_rejects(service, tenant, landlord) -> None:
    request = service.create_request(tenant, PROPERTY_ID)

    rejected = service.update_status(landlord, request.id, PurchaseRequestStatus.REJECTED, "Price too low")

    assert rejected.status == PurchaseRequestStatus.REJECTED
    assert rejected.is_terminal


def test_only_owning_landlord_decides(service, tenant, other_landlord) -> None:
    request = service.create_request(tenant, PROPERTY_ID)

    with pytest.raises(AuthorizationError):
        service.update_status(other_landlord, request.id, "APPROVED")


def test_tenant_cannot_approve(service, tenant) -> None:
    request = service.create_request(tenant, PROPERTY_ID)

    with pytest.raises(AuthorizationError):
        service.update_status(tenant, request.id, "APPROVED")


def test_landlord_cannot_jump_to_payment_completed(service, tenant, landlord) -> None:
    request = service.create_request(tenant, PROPERTY_ID)

    with pytest.raises(InvalidStateTransition) as excinfo:
        service.update_status(landlord, request.id, "PAYMENT_COMPLETED")

    assert excinfo.value.current_status == "PENDING"
    assert excinfo.value.requested_status == "PAYMENT_COMPLETED"
    assert service.store.reload(request.id).status == PurchaseRequestStatus.PENDING


def test_decision_on_decided_request_is_invalid(service, tenant, landlord) -> None:
    request = service.create_request(tenant, PROPERTY_ID)
    service.update_status(landlord, request.id, "REJECTED")

    with pytest.raises(InvalidStateTransition):
        service.update_status(landlord, request.id, "APPROVED")


def test_unknown_status_value(service, tenant, landlord) -> None:
    request = service.create_request(tenant, PROPERTY_ID)

    with pytest.raises(ValidationError):
        service.update_status(landlord, request.id, "SOLD")


def test_parse_status_accepts_lowercase() -> None:
    assert parse_status("approved") == PurchaseRequestStatus.APPROVED


@pytest.mark.parametrize("decide", [None, "APPROVED"])
def test_tenant_cancels_pending_or_approved(service, tenant, landlord, decide) -> None:
    request = service.create_request(tenant, PROPERTY_ID)
    if decide:
        service.update_status(landlord, request.id, decide)

    cancelled = service.cancel_request(tenant, request.id)

    assert cancelled.status == PurchaseRequestStatus.CANCELLED


def test_cancel_rejected_request_is_invalid(service, tenant, landlord) -> None:
    request = service.create_request(tenant, PROPERTY_ID)
    service.update_status(landlord, request.id, "REJECTED")

    with pytest.raises(InvalidStateTransition) as excinfo:
        service.cancel_request(tenant, request.id)

    assert excinfo.value.current_status == "REJECTED"


def test_only_requesting_tenant_cancels(service, tenant, other_tenant, landlord) -> None:
    request = service.create_request(tenant, PROPERTY_ID)

    with pytest.raises(AuthorizationError):
        service.cancel_request(other_tenant, request.id)
    with pytest.raises(AuthorizationError):
        service.cancel_request(landlord, request.id)


def test_get_request_limited_to_parties(service, tenant, other_tenant, landlord, other_landlord, admin) -> None:
    request = service.create_request(tenant, PROPERTY_ID)

    assert service.get_request(tenant, request.id).id == request.id
    assert service.get_request(landlord, request.id).id == request.id
    for outsider in (other_tenant, other_landlord, admin):
        with pytest.raises(AuthorizationError):
            service.get_request(outsider, request.id)


def test_listings_and_paging(service, tenant, landlord, other_landlord) -> None:
    first = service.create_request(tenant, PROPERTY_ID)
    second = service.create_request(tenant, OTHER_LANDLORD_PROPERTY_ID)

    assert {r.id for r in service.list_for_tenant(tenant)} == {first.id, second.id}
    assert [r.id for r in service.list_for_landlord(landlord)] == [first.id]
    assert [r.id for r in service.list_for_landlord(other_landlord)] == [second.id]

    page = service.page_for_tenant(tenant, page=1, size=1)
    assert page.total == 2
    assert len(page.items) == 1

    assert service.purchased_properties(tenant) == []
    assert service.sold_properties(landlord) == []

    with pytest.raises(AuthorizationError):
        service.list_for_landlord(tenant)


def test_stale_version_write_conflicts(session_factory, seed, tenant, landlord) -> None:
    """Two sessions read version 1; the second conditional write must lose."""

    setup = PurchaseRequestService(session_factory())
    request_id = setup.create_request(tenant, PROPERTY_ID).id
    setup.db.close()

    first = session_factory()
    second = session_factory()
    try:
        store_a = PurchaseRequestStore(first)
        store_b = PurchaseRequestStore(second)
        seen_by_a = store_a.get(request_id)
        seen_by_b = store_b.get(request_id)

        store_a.transition(seen_by_a, PurchaseRequestStatus.APPROVED)
        first.commit()

        with pytest.raises(ConcurrencyConflict):
            store_b.transition(seen_by_b, PurchaseRequestStatus.CANCELLED)
        second.rollback()

        assert store_b.reload(request_id).status == PurchaseRequestStatus.APPROVED
        assert store_b.reload(request_id).version == 2
    finally:
        first.close()
        second.close()


def test_cancel_retries_once_after_conflict(session_factory, seed, tenant, landlord) -> None:
    """A cancel racing an approval re-reads and still lands from APPROVED."""

    setup = PurchaseRequestService(session_factory())
    request_id = setup.create_request(tenant, PROPERTY_ID).id
    setup.db.close()

    racing = session_factory()
    service = PurchaseRequestService(session_factory())
    try:
        service.store.get(request_id)  # cache version 1 in this session
        PurchaseRequestService(racing).update_status(landlord, request_id, "APPROVED")

        cancelled = service.cancel_request(tenant, request_id)

        assert cancelled.status == PurchaseRequestStatus.CANCELLED
        assert cancelled.version == 3
    finally:
        racing.close()
        service.db.close()


def test_concurrent_duplicate_submission_conflicts(session_factory, seed, tenant, monkeypatch) -> None:
    """A double submit that slips past the open-request check is stopped by the database."""

    service = PurchaseRequestService(session_factory())
    other_click = PurchaseRequestService(session_factory())
    real_find = service.store.find_active_for_tenant

    def find_then_lose_race(tenant_id, property_id):
        found = real_find(tenant_id, property_id)
        # The other submission commits after this one has checked
        other_click.create_request(tenant, property_id)
        return found

    monkeypatch.setattr(service.store, "find_active_for_tenant", find_then_lose_race)
    try:
        with pytest.raises(ConflictError):
            service.create_request(tenant, PROPERTY_ID)

        open_requests, total = PurchaseRequestStore(other_click.db).list_for_tenant(TENANT_ID)
        assert total == 1
        assert open_requests[0].status == PurchaseRequestStatus.PENDING
    finally:
        service.db.close()
        other_click.db.close()


def test_open_request_index_allows_closed_duplicates(db, seed) -> None:
    def row(status):
        return PurchaseRequest(
            property_id=PROPERTY_ID,
            tenant_id=TENANT_ID,
            landlord_id=LANDLORD_ID,
            status=status,
            purchase_price=PROPERTY_PRICE,
            request_date=datetime.now(timezone.utc),
            version=1,
        )

    db.add_all([row(PurchaseRequestStatus.CANCELLED), row(PurchaseRequestStatus.REJECTED), row(PurchaseRequestStatus.PENDING)])
    db.commit()

    db.add(row(PurchaseRequestStatus.PAYMENT_FAILED))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()
