from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from oliveshop.core.config import ShippingBracketConfig, ShippingZoneConfig
from oliveshop.services.shipping_calculator import ShippingCalculator


@pytest.fixture()
def calculator() -> ShippingCalculator:
    return ShippingCalculator(
        {
            "Domestic": ShippingZoneConfig(
                name="Domestic",
                brackets=[
                    # Deliberately unsorted
                    ShippingBracketConfig(max_weight_grams=2000, cost=Decimal("10.00")),
                    ShippingBracketConfig(max_weight_grams=500, cost=Decimal("5.00")),
                    ShippingBracketConfig(max_weight_grams=1000, cost=Decimal("7.50")),
                ],
            ),
            "eu": ShippingZoneConfig(
                name="European Union",
                brackets=[ShippingBracketConfig(max_weight_grams=1000, cost=Decimal("12.00"))],
            ),
        }
    )


@pytest.mark.parametrize(
    "weight,expected",
    [(-10, "5.00"), (0, "5.00"), (250, "5.00"), (500, "5.00"), (501, "7.50"), (1000, "7.50"), (2000, "10.00")],
)
def test_smallest_bracket_that_fits(calculator: ShippingCalculator, weight: int, expected: str):
    assert calculator.calculate_shipping_cost("domestic", weight) == Decimal(expected)


def test_zone_lookup_is_case_insensitive(calculator: ShippingCalculator):
    assert calculator.calculate_shipping_cost("DOMESTIC", 100) == Decimal("5.00")
    assert calculator.calculate_shipping_cost("Eu", 100) == Decimal("12.00")


def test_unknown_zone_or_overweight_returns_none(calculator: ShippingCalculator):
    assert calculator.calculate_shipping_cost("mars", 100) is None
    assert calculator.calculate_shipping_cost(None, 100) is None
    assert calculator.calculate_shipping_cost("domestic", 2001) is None


def test_details_for_valid_quote(calculator: ShippingCalculator):
    quote = calculator.calculate_shipping_with_details("domestic", 750)

    assert quote.is_valid
    assert quote.cost == Decimal("7.50")
    assert quote.zone_name == "Domestic"
    assert quote.bracket.max_weight_grams == 1000


def test_details_report_errors(calculator: ShippingCalculator):
    unknown = calculator.calculate_shipping_with_details("mars", 100)
    assert not unknown.is_valid
    assert unknown.error == "Invalid shipping zone: mars"

    heavy = calculator.calculate_shipping_with_details("eu", 1500)
    assert not heavy.is_valid
    assert heavy.error == "Weight 1500g exceeds maximum shipping weight for zone European Union"


def test_available_zones_and_brackets(calculator: ShippingCalculator):
    assert calculator.get_available_zones() == {"domestic": "Domestic", "eu": "European Union"}
    assert [b.max_weight_grams for b in calculator.get_zone_brackets("domestic")] == [500, 1000, 2000]
    assert calculator.get_zone_brackets("mars") == []


def test_shipping_zones_endpoint(client: TestClient):
    response = client.get("/api/v1/shipping/zones")

    assert response.status_code == 200
    keys = {zone["key"] for zone in response.json()["data"]}
    assert {"domestic", "eu", "row"} <= keys


def test_shipping_quote_endpoint(client: TestClient):
    response = client.get("/api/v1/shipping/quote", params={"zone": "eu", "weight_grams": 800})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["cost"] == 18.0
    assert data["bracket"]["max_weight_grams"] == 1000


def test_shipping_quote_rejects_unknown_zone(client: TestClient):
    response = client.get("/api/v1/shipping/quote", params={"zone": "moon", "weight_grams": 100})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid shipping zone: moon"
