from decimal import Decimal

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from oliveshop.models.audit_log import AuditLog
from oliveshop.models.cart import Cart
from oliveshop.models.product import Variant

VARIANT_PAYLOAD = {
    "sku": "PICUAL-500",
    "title": "Picual 500ml",
    "price": "14.90",
    "weight": "460.000",
    "shipping_weight": "700.000",
    "stock_qty": 25,
}


def _create_product(client: TestClient, **overrides) -> dict:
    payload = {"title": "Picual Early Harvest", "type": "extra-virgin", "description": "Green and peppery"}
    payload.update(overrides)
    response = client.post("/api/v1/admin/products", json=payload)
    assert response.status_code == 201, response.json()
    return response.json()["data"]


def _create_lot(client: TestClient, product_id: int, **overrides) -> dict:
    payload = {"harvest_year": 2025, "season": "AUTUMN", "storage_type": "DRY", "press_date": "2025-11-03"}
    payload.update(overrides)
    response = client.post(f"/api/v1/admin/products/{product_id}/lots", json=payload)
    assert response.status_code == 201, response.json()
    return response.json()["data"]


def _create_variant(client: TestClient, product_id: int, **overrides) -> dict:
    payload = {**VARIANT_PAYLOAD, **overrides}
    response = client.post(f"/api/v1/admin/products/{product_id}/variants", json=payload)
    assert response.status_code == 201, response.json()
    return response.json()["data"]


# --------------------------------------------------
# Products
# --------------------------------------------------
def test_create_product_derives_slug(admin_client: TestClient, db_session: Session):
    product = _create_product(admin_client)

    assert product["slug"] == "picual-early-harvest"
    assert product["status"] == "ACTIVE"
    assert product["variant_count"] == 0

    audit = db_session.query(AuditLog).filter(AuditLog.action == "PRODUCT_CREATE").one()
    assert audit.entity_type == "Product"
    assert audit.entity_id == product["id"]


def test_duplicate_slug_conflicts(admin_client: TestClient):
    _create_product(admin_client, slug="arbequina")

    response = admin_client.post(
        "/api/v1/admin/products",
        json={"title": "Another", "type": "blend", "slug": "arbequina"},
    )

    assert response.status_code == 409
    assert response.json()["message"] == "Product with slug 'arbequina' already exists"


def test_invalid_slug_is_422(admin_client: TestClient):
    response = admin_client.post(
        "/api/v1/admin/products",
        json={"title": "Bad", "type": "blend", "slug": "Not A Slug"},
    )

    assert response.status_code == 422
    assert response.json()["message"] == "Validation failed"


def test_update_and_list_products(admin_client: TestClient):
    product = _create_product(admin_client)

    response = admin_client.patch(
        f"/api/v1/admin/products/{product['id']}",
        json={"title": "Picual Late Harvest", "status": "INACTIVE"},
    )
    assert response.status_code == 200
    assert response.json()["data"]["title"] == "Picual Late Harvest"
    assert response.json()["data"]["status"] == "INACTIVE"

    listing = admin_client.get("/api/v1/admin/products", params={"page": 1, "limit": 10})
    assert listing.json()["meta"]["total"] == 1


def test_product_with_variants_cannot_be_deleted(admin_client: TestClient):
    product = _create_product(admin_client)
    _create_variant(admin_client, product["id"])

    response = admin_client.delete(f"/api/v1/admin/products/{product['id']}")

    assert response.status_code == 409
    assert response.json()["message"] == "Cannot delete product with existing variants. Delete variants first."


def test_delete_empty_product(admin_client: TestClient):
    product = _create_product(admin_client)

    response = admin_client.delete(f"/api/v1/admin/products/{product['id']}")
    assert response.status_code == 200

    missing = admin_client.get(f"/api/v1/admin/products/{product['id']}")
    assert missing.status_code == 404


# --------------------------------------------------
# Variants
# --------------------------------------------------
def test_create_variant_with_lot(admin_client: TestClient):
    product = _create_product(admin_client)
    lot = _create_lot(admin_client, product["id"])

    variant = _create_variant(admin_client, product["id"], lot_id=lot["id"])

    assert variant["lot_id"] == lot["id"]
    assert variant["stock_qty"] == 25
    assert variant["reserved_qty"] == 0
    assert variant["version"] == 1
    assert variant["price"] == 14.9


def test_variant_lot_must_belong_to_product(admin_client: TestClient):
    product = _create_product(admin_client)
    other = _create_product(admin_client, title="Hojiblanca")
    foreign_lot = _create_lot(admin_client, other["id"])

    response = admin_client.post(
        f"/api/v1/admin/products/{product['id']}/variants",
        json={**VARIANT_PAYLOAD, "lot_id": foreign_lot["id"]},
    )

    assert response.status_code == 400
    assert response.json()["message"] == f"Lot {foreign_lot['id']} does not belong to product {product['id']}"


def test_duplicate_sku_conflicts(admin_client: TestClient):
    product = _create_product(admin_client)
    _create_variant(admin_client, product["id"])

    response = admin_client.post(f"/api/v1/admin/products/{product['id']}/variants", json=VARIANT_PAYLOAD)

    assert response.status_code == 409


def test_update_variant_stock_goes_through_ledger(admin_client: TestClient):
    product = _create_product(admin_client)
    variant = _create_variant(admin_client, product["id"])

    response = admin_client.patch(
        f"/api/v1/admin/variants/{variant['id']}",
        json={"stock_qty": 40, "title": "Picual 500ml tin"},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["stock_qty"] == 40
    assert data["title"] == "Picual 500ml tin"
    assert data["version"] == 2


def test_stock_cannot_drop_below_reserved(admin_client: TestClient, db_session: Session):
    product = _create_product(admin_client)
    variant = _create_variant(admin_client, product["id"], stock_qty=5)
    admin_client.post("/api/v1/cart/items", json={"variant_id": variant["id"], "quantity": 4})
    checkout = admin_client.post(
        "/api/v1/checkout/legacy",
        json={"email": "buyer@example.com", "address": "7 Grove Street, Seville"},
    )
    assert checkout.status_code == 201

    response = admin_client.patch(f"/api/v1/admin/variants/{variant['id']}", json={"stock_qty": 3})

    assert response.status_code == 409
    assert response.json()["message"] == "Cannot set stock below reserved quantity (4 reserved)"

    delete = admin_client.delete(f"/api/v1/admin/variants/{variant['id']}")
    assert delete.status_code == 409
    assert delete.json()["message"] == "Cannot delete variant with reserved stock (4 reserved)"


def test_delete_variant_removes_cart_lines(admin_client: TestClient, db_session: Session):
    product = _create_product(admin_client)
    kept = _create_variant(admin_client, product["id"], sku="PICUAL-250", price="8.00")
    removed = _create_variant(admin_client, product["id"])
    admin_client.post("/api/v1/cart/items", json={"variant_id": kept["id"], "quantity": 1})
    cart = admin_client.post("/api/v1/cart/items", json={"variant_id": removed["id"], "quantity": 1})
    cart_id = cart.json()["data"]["id"]

    response = admin_client.delete(f"/api/v1/admin/variants/{removed['id']}")

    assert response.status_code == 200
    db_session.expire_all()
    assert db_session.get(Variant, removed["id"]) is None
    refreshed = db_session.get(Cart, cart_id)
    assert [item.variant_id for item in refreshed.items] == [kept["id"]]
    assert refreshed.subtotal == Decimal("8.00")


# --------------------------------------------------
# Lots
# --------------------------------------------------
def test_lot_crud(admin_client: TestClient):
    product = _create_product(admin_client)
    lot = _create_lot(admin_client, product["id"])

    listing = admin_client.get(f"/api/v1/admin/products/{product['id']}/lots")
    assert [item["id"] for item in listing.json()["data"]] == [lot["id"]]

    updated = admin_client.patch(f"/api/v1/admin/lots/{lot['id']}", json={"season": "WINTER"})
    assert updated.json()["data"]["season"] == "WINTER"
    assert updated.json()["data"]["harvest_year"] == 2025

    deleted = admin_client.delete(f"/api/v1/admin/lots/{lot['id']}")
    assert deleted.status_code == 200
    assert admin_client.get(f"/api/v1/admin/lots/{lot['id']}").status_code == 404


def test_lot_in_use_cannot_be_deleted(admin_client: TestClient):
    product = _create_product(admin_client)
    lot = _create_lot(admin_client, product["id"])
    _create_variant(admin_client, product["id"], lot_id=lot["id"])

    response = admin_client.delete(f"/api/v1/admin/lots/{lot['id']}")

    assert response.status_code == 409
    assert response.json()["message"] == "Cannot delete lot referenced by 1 variant(s)"


def test_harvest_year_out_of_range_is_422(admin_client: TestClient):
    product = _create_product(admin_client)

    response = admin_client.post(
        f"/api/v1/admin/products/{product['id']}/lots",
        json={"harvest_year": 1850, "season": "AUTUMN", "storage_type": "DRY"},
    )

    assert response.status_code == 422


# --------------------------------------------------
# Dashboard & maintenance
# --------------------------------------------------
def test_dashboard_stats(admin_client: TestClient):
    product = _create_product(admin_client)
    _create_variant(admin_client, product["id"], sku="LOW-1", stock_qty=2)
    plenty = _create_variant(admin_client, product["id"], sku="PLENTY-1", stock_qty=50)
    admin_client.post("/api/v1/cart/items", json={"variant_id": plenty["id"], "quantity": 1})
    admin_client.post(
        "/api/v1/checkout/legacy",
        json={"email": "buyer@example.com", "address": "7 Grove Street, Seville"},
    )

    response = admin_client.get("/api/v1/admin/dashboard")

    assert response.status_code == 200
    assert response.json()["data"] == {
        "total_products": 1,
        "total_orders": 1,
        "pending_orders": 1,
        "low_stock_items": 1,
    }


def test_cleanup_stale_carts_endpoint(admin_client: TestClient, db_session: Session):
    response = admin_client.post("/api/v1/admin/maintenance/cleanup-stale-carts")

    assert response.status_code == 200
    assert response.json()["data"] == {"deleted_carts": 0}
    assert db_session.query(AuditLog).filter(AuditLog.action == "CART_CLEANUP").count() == 1
