"""
Tests for the purchase request state machine in `models/purchase_request.py`.
"""

import inspect

import pytest

from models import PurchaseRequest
from models.purchase_request import (
    ACTIVE_STATUSES,
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    PurchaseRequestStatus,
    can_transition,
)

S = PurchaseRequestStatus


@pytest.mark.parametrize(
    "path",
    [
        [S.PENDING, S.APPROVED, S.PAYMENT_PENDING, S.PAYMENT_COMPLETED],
        [S.PENDING, S.APPROVED, S.PAYMENT_PENDING, S.PAYMENT_FAILED, S.PAYMENT_PENDING, S.PAYMENT_COMPLETED],
        [S.PENDING, S.REJECTED],
        [S.PENDING, S.CANCELLED],
        [S.PENDING, S.APPROVED, S.CANCELLED],
    ],
)
def test_lifecycle_paths_are_allowed(path) -> None:
    for current, target in zip(path, path[1:]):
        assert can_transition(current, target), f"{current.value} -> {target.value}"


@pytest.mark.parametrize(
    "current,target",
    [
        (S.PENDING, S.PAYMENT_PENDING),
        (S.PENDING, S.PAYMENT_COMPLETED),
        (S.APPROVED, S.PAYMENT_COMPLETED),
        (S.APPROVED, S.REJECTED),
        (S.PAYMENT_PENDING, S.CANCELLED),
        (S.PAYMENT_FAILED, S.CANCELLED),
        (S.PAYMENT_FAILED, S.PAYMENT_COMPLETED),
        (S.REJECTED, S.APPROVED),
        (S.CANCELLED, S.PENDING),
    ],
)
def test_illegal_edges_are_refused(current, target) -> None:
    assert not can_transition(current, target)


def test_completed_is_absorbing() -> None:
    assert ALLOWED_TRANSITIONS[S.PAYMENT_COMPLETED] == frozenset()
    assert all(not can_transition(S.PAYMENT_COMPLETED, target) for target in S)


def test_every_status_has_an_entry() -> None:
    assert set(ALLOWED_TRANSITIONS) == set(S)


def test_payment_failed_still_blocks_a_new_request() -> None:
    assert S.PAYMENT_FAILED in ACTIVE_STATUSES
    assert S.PAYMENT_FAILED in TERMINAL_STATUSES
    assert not ACTIVE_STATUSES & {S.REJECTED, S.CANCELLED, S.PAYMENT_COMPLETED}


@pytest.mark.parametrize(
    "status,terminal",
    [
        (S.PENDING, False),
        (S.APPROVED, False),
        (S.PAYMENT_PENDING, False),
        (S.REJECTED, True),
        (S.CANCELLED, True),
        (S.PAYMENT_COMPLETED, True),
        (S.PAYMENT_FAILED, True),
    ],
)
def test_is_terminal_on_model(status, terminal) -> None:
    request = PurchaseRequest(tenant_id=7, property_id=42, landlord_id=3, status=status, version=1)

    assert request.is_terminal is terminal


def test_property_relationship_and_is_terminal_coexist() -> None:
    assert isinstance(inspect.getattr_static(PurchaseRequest, "is_terminal"), property)
    assert PurchaseRequest.property.property.mapper.class_.__name__ == "Property"
