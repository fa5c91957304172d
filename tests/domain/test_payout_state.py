from decimal import Decimal

import pytest

from domain.common.exceptions import DomainValidationException, InvalidStateTransitionException
from domain.payout.entity import PayoutMethod, PayoutMethodType, PayoutRequest, PayoutStatus


def _payout(**kwargs):
    return PayoutRequest(id=1, wallet_id=1, amount=Decimal("40"), **kwargs)


def test_amount_must_be_positive():
    with pytest.raises(DomainValidationException):
        PayoutRequest(id=None, wallet_id=1, amount=Decimal("0"))


def test_method_label_is_required():
    with pytest.raises(DomainValidationException):
        PayoutMethod(id=None, wallet_id=1, type=PayoutMethodType.PAYPAL, label="  ")
    method = PayoutMethod(id=None, wallet_id=1, type=PayoutMethodType.PAYPAL, label=" Main ", details=None)
    assert method.label == "Main"
    assert method.details == {}


def test_approve_then_processing_then_paid():
    payout = _payout()
    payout.approve(" checked ")
    assert payout.status == PayoutStatus.APPROVED
    assert payout.admin_note == "checked"
    payout.mark_processing()
    assert payout.admin_note == "checked"
    payout.mark_paid(external_reference=" TRX-9 ")
    assert payout.status == PayoutStatus.PAID
    assert payout.processed_at is not None
    assert payout.external_reference == "TRX-9"


def test_pending_can_go_straight_to_processing():
    payout = _payout()
    payout.mark_processing()
    assert payout.status == PayoutStatus.PROCESSING


def test_pending_cannot_be_paid():
    payout = _payout()
    with pytest.raises(InvalidStateTransitionException):
        payout.mark_paid()
    assert payout.processed_at is None


@pytest.mark.parametrize("status", [PayoutStatus.PAID, PayoutStatus.REJECTED])
def test_terminal_states_are_final(status):
    payout = _payout(status=status)
    for move in (payout.approve, payout.mark_processing, payout.reject, payout.mark_paid):
        with pytest.raises(InvalidStateTransitionException):
            move()


def test_processing_can_be_rejected_but_not_reapproved():
    payout = _payout(status=PayoutStatus.PROCESSING)
    assert not payout.can_transition_to(PayoutStatus.APPROVED)
    payout.reject("bank details wrong")
    assert payout.status == PayoutStatus.REJECTED
    assert payout.admin_note == "bank details wrong"
