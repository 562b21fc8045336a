import pytest
from decimal import Decimal
from ledger_core.tools.money import is_balanced, minor_units, round_money, sum_money, to_decimal

def test_round_half_up_not_bankers():
    assert round_money(Decimal("2.345")) == Decimal("2.35")
    assert round_money(Decimal("2.355")) == Decimal("2.36")
    assert round_money(Decimal("-2.345")) == Decimal("-2.35")

def test_round_to_currency_minor_unit():
    assert round_money(Decimal("1234.5"), "JPY") == Decimal("1235")
    assert round_money(Decimal("1.2345"), "KWD") == Decimal("1.235")
    assert round_money(Decimal("1.005"), "MYR") == Decimal("1.01")
    assert minor_units("usd") == 2

def test_to_decimal_uses_repr_for_floats():
    assert to_decimal(0.1) == Decimal("0.1")
    assert to_decimal("12.50") == Decimal("12.50")
    assert to_decimal(None) == Decimal("0")

def test_to_decimal_rejects_garbage():
    with pytest.raises(ValueError):
        to_decimal("twelve")

def test_balance_tolerance_is_one_cent():
    assert is_balanced(Decimal("100.00"), Decimal("100.01"))
    assert not is_balanced(Decimal("100.00"), Decimal("100.02"))
    assert sum_money([]) == Decimal("0")
