from decimal import Decimal

import pytest

from domain.common.exceptions import DomainValidationException, InvalidStateTransitionException
from domain.refund.entity import Refund, RefundStatus


def _refund(**kwargs):
    return Refund(id=1, order_id=1, user_id=1, amount=Decimal("10"), reason="not useful", **kwargs)


def test_amount_must_be_positive():
    with pytest.raises(DomainValidationException):
        Refund(id=None, order_id=1, user_id=1, amount=Decimal("0"), reason="x")


def test_approve_then_processing_then_complete():
    refund = _refund()
    refund.approve("ok")
    assert refund.status == RefundStatus.APPROVED
    assert refund.processed_at is not None
    assert refund.notes == "ok"
    refund.mark_processing()
    assert refund.is_open
    refund.complete(provider_refund_id="re_1")
    assert refund.status == RefundStatus.COMPLETED
    assert refund.completed_at is not None
    assert refund.provider_refund_id == "re_1"


def test_approved_can_complete_directly():
    refund = _refund(status=RefundStatus.APPROVED)
    refund.complete()
    assert refund.status == RefundStatus.COMPLETED


def test_reject_requires_reason():
    refund = _refund()
    with pytest.raises(DomainValidationException):
        refund.reject("   ")
    refund.reject("outside refund window")
    assert refund.status == RefundStatus.REJECTED
    assert not refund.is_open


@pytest.mark.parametrize(
    "status, action",
    [
        (RefundStatus.PENDING, "complete"),
        (RefundStatus.PENDING, "mark_processing"),
        (RefundStatus.REJECTED, "approve"),
        (RefundStatus.COMPLETED, "complete"),
        (RefundStatus.PROCESSING, "approve"),
    ],
)
def test_illegal_transitions_raise(status, action):
    refund = _refund(status=status)
    with pytest.raises(InvalidStateTransitionException):
        getattr(refund, action)()
    assert refund.status == status
