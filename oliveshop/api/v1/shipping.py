from typing import Optional

from fastapi import APIRouter, Depends, Query

from oliveshop.api.deps import get_shipping_calculator
from oliveshop.core.exceptions import ValidationFailed
from oliveshop.services.shipping_calculator import ShippingCalculator
from oliveshop.utils.response import success

router = APIRouter()


@router.get("/zones")
def list_zones(shipping_calculator: ShippingCalculator = Depends(get_shipping_calculator)):
    zones = [
        {
            "key": key,
            "name": name,
            "brackets": [
                {"max_weight_grams": bracket.max_weight_grams, "cost": bracket.cost}
                for bracket in shipping_calculator.get_zone_brackets(key)
            ],
        }
        for key, name in shipping_calculator.get_available_zones().items()
    ]
    return success(data=zones, message="Shipping zones retrieved successfully")


@router.get("/quote")
def quote(
    zone: str = Query(..., min_length=1, max_length=50),
    weight_grams: int = Query(...),
    shipping_calculator: ShippingCalculator = Depends(get_shipping_calculator),
):
    """Shipping cost for a parcel weight; 400 when the zone or weight cannot be served"""
    result = shipping_calculator.calculate_shipping_with_details(zone, weight_grams)
    if not result.is_valid:
        raise ValidationFailed(result.error or "Shipping not available")

    bracket: Optional[dict] = None
    if result.bracket is not None:
        bracket = {"max_weight_grams": result.bracket.max_weight_grams, "cost": result.bracket.cost}
    return success(
        data={
            "zone": result.zone,
            "zone_name": result.zone_name,
            "weight_grams": result.weight_grams,
            "cost": result.cost,
            "bracket": bracket,
        },
        message="Shipping quote calculated",
    )
