from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Mapping, Optional

import structlog

from oliveshop.core.config import ShippingZoneConfig

logger = structlog.get_logger()


@dataclass(frozen=True)
class ShippingBracket:
    max_weight_grams: int
    cost: Decimal


@dataclass(frozen=True)
class ShippingZone:
    key: str
    name: str
    brackets: List[ShippingBracket]


@dataclass
class ShippingQuote:
    zone: Optional[str]
    zone_name: Optional[str]
    weight_grams: int
    cost: Optional[Decimal] = None
    bracket: Optional[ShippingBracket] = None
    error: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.error is None and self.cost is not None


class ShippingCalculator:
    """Weight-bracket shipping rates per destination zone."""

    def __init__(self, zones: Mapping[str, ShippingZoneConfig]):
        self._zones: Dict[str, ShippingZone] = {}
        for key, config in zones.items():
            brackets = sorted(
                (
                    ShippingBracket(max_weight_grams=b.max_weight_grams, cost=Decimal(b.cost))
                    for b in config.brackets
                ),
                key=lambda b: b.max_weight_grams,
            )
            normalized = key.lower()
            self._zones[normalized] = ShippingZone(key=normalized, name=config.name, brackets=brackets)

    def _get_zone(self, zone: Optional[str]) -> Optional[ShippingZone]:
        if zone is None:
            return None
        return self._zones.get(zone.lower())

    @staticmethod
    def _find_bracket(zone: ShippingZone, weight_grams: int) -> Optional[ShippingBracket]:
        for bracket in zone.brackets:
            if weight_grams <= bracket.max_weight_grams:
                return bracket
        return None

    def calculate_shipping_cost(self, zone: Optional[str], weight_grams: int) -> Optional[Decimal]:
        """Cost for ``weight_grams`` in ``zone``, or None when unknown zone or too heavy."""
        shipping_zone = self._get_zone(zone)
        if shipping_zone is None:
            logger.warning("shipping_zone_unknown", zone=zone)
            return None

        bracket = self._find_bracket(shipping_zone, weight_grams)
        if bracket is None:
            logger.warning("shipping_weight_exceeded", zone=shipping_zone.key, weight_grams=weight_grams)
            return None
        return bracket.cost

    def calculate_shipping_with_details(self, zone: Optional[str], weight_grams: int) -> ShippingQuote:
        shipping_zone = self._get_zone(zone)
        if shipping_zone is None:
            return ShippingQuote(
                zone=zone,
                zone_name=None,
                weight_grams=weight_grams,
                error=f"Invalid shipping zone: {zone}",
            )

        bracket = self._find_bracket(shipping_zone, weight_grams)
        if bracket is None:
            return ShippingQuote(
                zone=shipping_zone.key,
                zone_name=shipping_zone.name,
                weight_grams=weight_grams,
                error=f"Weight {weight_grams}g exceeds maximum shipping weight for zone {shipping_zone.name}",
            )

        return ShippingQuote(
            zone=shipping_zone.key,
            zone_name=shipping_zone.name,
            weight_grams=weight_grams,
            cost=bracket.cost,
            bracket=bracket,
        )

    def get_available_zones(self) -> Dict[str, str]:
        return {key: zone.name for key, zone in self._zones.items()}

    def get_zone_brackets(self, zone: Optional[str]) -> List[ShippingBracket]:
        shipping_zone = self._get_zone(zone)
        return list(shipping_zone.brackets) if shipping_zone else []
