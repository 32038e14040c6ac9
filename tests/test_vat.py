from decimal import Decimal

import pytest

from oliveshop.services.vat_calculator import VatCalculator


@pytest.fixture()
def vat() -> VatCalculator:
    return VatCalculator(Decimal("0.20"))


def test_extract_vat_amount_from_inclusive_price(vat: VatCalculator):
    assert vat.extract_vat_amount(Decimal("12.00")) == Decimal("2.00")
    assert vat.extract_vat_amount(Decimal("24.00")) == Decimal("4.00")


def test_extract_vat_exclusive_price(vat: VatCalculator):
    assert vat.extract_vat_exclusive_price(Decimal("12.00")) == Decimal("10.00")


def test_add_vat(vat: VatCalculator):
    assert vat.add_vat(Decimal("10.00")) == Decimal("12.00")


def test_results_have_two_decimal_places(vat: VatCalculator):
    amount = vat.extract_vat_amount(Decimal("9.99"))

    assert amount == Decimal("1.67")
    assert amount.as_tuple().exponent == -2
    assert vat.extract_vat_exclusive_price(Decimal("9.99")) == Decimal("8.33")


def test_half_up_rounding(vat: VatCalculator):
    # 0.0125 * 1.2 = 0.015
    assert vat.add_vat(Decimal("0.0125")) == Decimal("0.02")


def test_none_inputs_yield_zero(vat: VatCalculator):
    assert vat.extract_vat_amount(None) == Decimal("0.00")
    assert vat.extract_vat_exclusive_price(None) == Decimal("0.00")
    assert vat.add_vat(None) == Decimal("0.00")


def test_zero_rate_has_no_vat():
    calculator = VatCalculator("0")

    assert calculator.extract_vat_amount(Decimal("15.00")) == Decimal("0.00")
    assert calculator.add_vat(Decimal("15.00")) == Decimal("15.00")


def test_accepts_int_and_string_amounts(vat: VatCalculator):
    assert vat.extract_vat_amount(60) == Decimal("10.00")
    assert vat.add_vat("5") == Decimal("6.00")


def test_inclusive_price_round_trip(vat: VatCalculator):
    inclusive = vat.add_vat(Decimal("25.50"))

    assert inclusive == Decimal("30.60")
    assert vat.extract_vat_exclusive_price(inclusive) == Decimal("25.50")


def test_exclusive_plus_vat_within_one_cent_of_price(vat: VatCalculator):
    for cents in range(0, 20000, 7):
        price = Decimal(cents) / 100
        exclusive = vat.extract_vat_exclusive_price(price)
        amount = vat.extract_vat_amount(price)

        assert abs(exclusive + amount - price) <= Decimal("0.01"), price
