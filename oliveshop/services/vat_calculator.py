"""
VAT arithmetic for VAT-inclusive shop prices.

All amounts are ``Decimal`` and every public result carries exactly two
decimal places (half-up rounding). VAT-exclusive price and VAT amount are
rounded independently, so ``extract_vat_exclusive_price(p) +
extract_vat_amount(p)`` may differ from ``p`` by one cent.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

Number = Union[Decimal, int, str]

CENTS = Decimal("0.01")
INTERMEDIATE = Decimal("0.0001")
ZERO = Decimal("0.00")


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class VatCalculator:
    def __init__(self, vat_rate: Number):
        self._vat_rate = _to_decimal(vat_rate)
        self._multiplier = Decimal("1") + self._vat_rate

    @property
    def vat_rate(self) -> Decimal:
        return self._vat_rate

    def extract_vat_amount(self, price: Optional[Number]) -> Decimal:
        """VAT contained in a VAT-inclusive price."""
        if price is None:
            return ZERO
        price = _to_decimal(price)
        exclusive = (price / self._multiplier).quantize(INTERMEDIATE, rounding=ROUND_HALF_UP)
        return (price - exclusive).quantize(CENTS, rounding=ROUND_HALF_UP)

    def extract_vat_exclusive_price(self, price: Optional[Number]) -> Decimal:
        if price is None:
            return ZERO
        return (_to_decimal(price) / self._multiplier).quantize(CENTS, rounding=ROUND_HALF_UP)

    def add_vat(self, exclusive_price: Optional[Number]) -> Decimal:
        if exclusive_price is None:
            return ZERO
        return (_to_decimal(exclusive_price) * self._multiplier).quantize(CENTS, rounding=ROUND_HALF_UP)
