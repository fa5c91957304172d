from decimal import Decimal

from domain.earnings.commission import aggregate_commission, calculate_commission, resolve_rate


def test_split_keeps_full_precision():
    split = calculate_commission(Decimal("199.99"), Decimal("10"), default_rate=Decimal("10"))
    assert split.platform_commission == Decimal("19.999")
    assert split.teacher_earning == Decimal("179.991")
    assert split.platform_commission + split.teacher_earning == Decimal("199.99")


def test_missing_teacher_rate_uses_platform_default():
    split = calculate_commission(Decimal("100"), None, default_rate=Decimal("15"))
    assert split.rate == Decimal("15")
    assert split.platform_commission == Decimal("15")
    assert split.teacher_earning == Decimal("85")


def test_rate_is_clamped():
    assert resolve_rate(Decimal("-5"), Decimal("10")) == Decimal("0")
    assert resolve_rate(Decimal("150"), Decimal("10")) == Decimal("100")
    split = calculate_commission(Decimal("50"), Decimal("120"), default_rate=Decimal("10"))
    assert split.teacher_earning == Decimal("0")


def test_zero_amount():
    split = calculate_commission(Decimal("0"), Decimal("20"), default_rate=Decimal("10"))
    assert split.platform_commission == 0
    assert split.teacher_earning == 0


def test_aggregate_uses_each_line_rate():
    split = aggregate_commission(
        [(Decimal("100"), Decimal("20")), (Decimal("50"), None)],
        default_rate=Decimal("10"),
    )
    assert split.amount == Decimal("150")
    assert split.platform_commission == Decimal("25")
    assert split.teacher_earning == Decimal("125")


def test_aggregate_of_nothing_reports_default_rate():
    split = aggregate_commission([], default_rate=Decimal("10"))
    assert split.amount == 0
    assert split.rate == Decimal("10")
