from decimal import Decimal

from domain.common.money import to_minor_units
from infrastructure.external.payments import get_payment_gateway
from infrastructure.external.payments.base import BasePaymentClient
from shared.codes.payment_codes import CHARGE_SUCCEEDED


class _MapClient(BasePaymentClient):
    provider = "stripe"


def test_provider_status_mapping():
    c = _MapClient()
    assert c._map_status("succeeded") == CHARGE_SUCCEEDED
    assert c._map_status("processing") == "pending"
    assert c._map_status("requires_payment_method") == "pending"
    assert c._map_status("canceled") == "canceled"
    assert c._map_status("something_new") == "something_new"


def test_minor_units_round_half_up():
    assert to_minor_units(Decimal("199.99")) == 19999
    assert to_minor_units(Decimal("10.005")) == 1001
    assert to_minor_units(Decimal("1500"), "JPY") == 1500


def test_gateway_factory_returns_none_without_stripe_key():
    assert get_payment_gateway() is None
