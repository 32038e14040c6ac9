from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from oliveshop.api.deps import get_cart_service, get_shipping_calculator, get_vat_calculator
from oliveshop.core.exceptions import (
    CartItemNotFound,
    CartNotFound,
    InsufficientStock,
    ValidationFailed,
    VariantNotFound,
)
from oliveshop.models.cart import Cart, CartItem
from oliveshop.services.cart_service import CartService


@pytest.fixture()
def cart_service() -> CartService:
    return get_cart_service(get_vat_calculator(), get_shipping_calculator())


# --------------------------------------------------
# Service
# --------------------------------------------------
def test_add_item_recalculates_totals(db_session: Session, cart_service: CartService, make_variant):
    variant = make_variant(price="12.00", stock=10, shipping_weight="400.000")
    cart = cart_service.create_cart(db_session)

    cart = cart_service.add_item(db_session, cart.id, variant.id, 2)

    assert len(cart.items) == 1
    assert cart.items[0].price_snapshot == Decimal("12.00")
    assert cart.subtotal == Decimal("24.00")
    assert cart.vat_amount == Decimal("4.00")
    # 800g in the domestic zone
    assert cart.shipping_cost == Decimal("7.50")
    assert cart.total == Decimal("31.50")


def test_adding_same_variant_merges_line(db_session: Session, cart_service: CartService, make_variant):
    variant = make_variant(stock=5)
    cart = cart_service.create_cart(db_session)

    cart_service.add_item(db_session, cart.id, variant.id, 2)
    cart = cart_service.add_item(db_session, cart.id, variant.id, 3)

    assert len(cart.items) == 1
    assert cart.items[0].qty == 5


def test_merged_quantity_cannot_exceed_available(db_session: Session, cart_service: CartService, make_variant):
    variant = make_variant(stock=5)
    cart = cart_service.create_cart(db_session)
    cart_service.add_item(db_session, cart.id, variant.id, 4)

    with pytest.raises(InsufficientStock) as exc_info:
        cart_service.add_item(db_session, cart.id, variant.id, 2)

    assert exc_info.value.message == "Insufficient stock. Available: 5, requested: 2, total requested: 6"
    assert db_session.query(CartItem).one().qty == 4


def test_add_item_rejects_non_positive_quantity(db_session: Session, cart_service: CartService, make_variant):
    variant = make_variant()
    cart = cart_service.create_cart(db_session)

    with pytest.raises(ValidationFailed, match="Quantity must be greater than 0"):
        cart_service.add_item(db_session, cart.id, variant.id, 0)


def test_add_item_unknown_cart_or_variant(db_session: Session, cart_service: CartService, make_variant):
    variant = make_variant()
    cart = cart_service.create_cart(db_session)

    with pytest.raises(CartNotFound):
        cart_service.add_item(db_session, 9999, variant.id, 1)
    with pytest.raises(VariantNotFound):
        cart_service.add_item(db_session, cart.id, 9999, 1)


def test_price_snapshot_survives_price_change(db_session: Session, cart_service: CartService, make_variant):
    variant = make_variant(price="10.00")
    cart = cart_service.create_cart(db_session)
    cart_service.add_item(db_session, cart.id, variant.id, 1)

    variant.price = Decimal("15.00")
    db_session.commit()
    cart = cart_service.add_item(db_session, cart.id, variant.id, 1)

    assert cart.items[0].price_snapshot == Decimal("10.00")
    assert cart.subtotal == Decimal("20.00")


def test_update_quantity_and_zero_removes(db_session: Session, cart_service: CartService, make_variant):
    variant = make_variant(stock=10)
    cart = cart_service.create_cart(db_session)
    cart_service.add_item(db_session, cart.id, variant.id, 1)

    cart = cart_service.update_item_quantity(db_session, cart.id, variant.id, 3)
    assert cart.items[0].qty == 3

    cart = cart_service.update_item_quantity(db_session, cart.id, variant.id, 0)
    assert cart.items == []
    assert cart.subtotal == Decimal("0.00")
    # a recomputed empty cart weighs 0g, which is still in the first domestic bracket
    assert cart.shipping_cost == Decimal("5.00")
    assert cart.total == Decimal("5.00")


def test_update_quantity_errors(db_session: Session, cart_service: CartService, make_variant):
    variant = make_variant(stock=2)
    cart = cart_service.create_cart(db_session)

    with pytest.raises(ValidationFailed, match="Quantity cannot be negative"):
        cart_service.update_item_quantity(db_session, cart.id, variant.id, -1)
    with pytest.raises(CartItemNotFound):
        cart_service.update_item_quantity(db_session, cart.id, variant.id, 1)

    cart_service.add_item(db_session, cart.id, variant.id, 1)
    with pytest.raises(InsufficientStock):
        cart_service.update_item_quantity(db_session, cart.id, variant.id, 3)


def test_remove_missing_item_is_noop(db_session: Session, cart_service: CartService, make_variant):
    variant = make_variant()
    cart = cart_service.create_cart(db_session)
    cart_service.add_item(db_session, cart.id, variant.id, 1)

    cart = cart_service.remove_item(db_session, cart.id, 9999)

    assert len(cart.items) == 1


def test_clear_cart_zeroes_totals(db_session: Session, cart_service: CartService, make_variant):
    variant = make_variant()
    cart = cart_service.create_cart(db_session)
    cart_service.add_item(db_session, cart.id, variant.id, 2)

    cart = cart_service.clear_cart(db_session, cart.id)

    assert cart.items == []
    assert cart.subtotal == Decimal("0.00")
    assert cart.shipping_cost == Decimal("0.00")
    assert cart.total == Decimal("0.00")


def test_overweight_cart_has_zero_shipping(db_session: Session, cart_service: CartService, make_variant):
    variant = make_variant(price="5.00", stock=20, shipping_weight="1500.000")
    cart = cart_service.create_cart(db_session)

    cart = cart_service.add_item(db_session, cart.id, variant.id, 2)

    assert cart.shipping_cost == Decimal("0.00")
    assert cart.total == cart.subtotal


def test_purge_stale_carts_only_removes_old_empty_carts(
    db_session: Session, cart_service: CartService, make_variant
):
    variant = make_variant()
    old_empty = cart_service.create_cart(db_session)
    old_with_items = cart_service.create_cart(db_session)
    fresh_empty = cart_service.create_cart(db_session)
    cart_service.add_item(db_session, old_with_items.id, variant.id, 1)

    old = datetime.utcnow() - timedelta(days=30)
    old_empty.created_at = old
    old_with_items.created_at = old
    db_session.commit()

    deleted = cart_service.purge_stale_carts(db_session, datetime.utcnow() - timedelta(days=7))

    assert deleted == 1
    remaining = {cart_id for (cart_id,) in db_session.query(Cart.id).all()}
    assert remaining == {old_with_items.id, fresh_empty.id}


# --------------------------------------------------
# HTTP
# --------------------------------------------------
def test_get_cart_without_cookie_is_404(client: TestClient):
    response = client.get("/api/v1/cart")

    assert response.status_code == 404
    assert response.json()["message"] == "Cart not found"


def test_add_item_creates_cart_and_sets_cookie(client: TestClient, make_variant):
    variant = make_variant(price="12.00")

    response = client.post("/api/v1/cart/items", json={"variant_id": variant.id, "quantity": 2})

    assert response.status_code == 200
    assert "cartId" in response.cookies
    data = response.json()["data"]
    assert data["item_count"] == 2
    assert data["subtotal"] == 24.0
    assert data["items"][0]["price_snapshot"] == 12.0
    assert all(isinstance(data[key], float) for key in ("subtotal", "vat_amount", "shipping_cost", "total"))

    cart_response = client.get("/api/v1/cart")
    assert cart_response.status_code == 200
    assert cart_response.json()["data"]["id"] == data["id"]


def test_create_cart_reuses_existing(client: TestClient):
    first = client.post("/api/v1/cart")
    second = client.post("/api/v1/cart")

    assert first.status_code == 201
    assert second.json()["data"]["id"] == first.json()["data"]["id"]


def test_invalid_cookie_is_treated_as_no_cart(client: TestClient):
    client.cookies.set("cartId", "not-a-number")

    response = client.get("/api/v1/cart")

    assert response.status_code == 404


def test_patch_item_sets_quantity(client: TestClient, make_variant):
    variant = make_variant(stock=10)

    added = client.patch(f"/api/v1/cart/items/{variant.id}", json={"quantity": 2})
    assert added.status_code == 200
    assert added.json()["data"]["items"][0]["qty"] == 2

    updated = client.patch(f"/api/v1/cart/items/{variant.id}", json={"quantity": 5})
    assert updated.json()["data"]["items"][0]["qty"] == 5

    removed = client.patch(f"/api/v1/cart/items/{variant.id}", json={"quantity": 0})
    assert removed.json()["data"]["items"] == []


def test_patch_negative_quantity_is_400(client: TestClient, make_variant):
    variant = make_variant()

    response = client.patch(f"/api/v1/cart/items/{variant.id}", json={"quantity": -1})

    assert response.status_code == 400
    assert response.json()["message"] == "Quantity cannot be negative"


def test_add_more_than_available_is_409(client: TestClient, make_variant):
    variant = make_variant(stock=1)

    response = client.post("/api/v1/cart/items", json={"variant_id": variant.id, "quantity": 3})

    assert response.status_code == 409
    payload = response.json()
    assert payload["message"] == "Insufficient stock. Available: 1, requested: 3"
    assert payload["errors"][0]["available_quantity"] == 1


def test_delete_item_and_clear(client: TestClient, make_variant):
    first = make_variant()
    second = make_variant()
    client.post("/api/v1/cart/items", json={"variant_id": first.id, "quantity": 1})
    client.post("/api/v1/cart/items", json={"variant_id": second.id, "quantity": 1})

    response = client.delete(f"/api/v1/cart/items/{first.id}")
    assert [item["variant_id"] for item in response.json()["data"]["items"]] == [second.id]

    cleared = client.delete("/api/v1/cart")
    assert cleared.status_code == 200
    assert cleared.json()["data"]["items"] == []
