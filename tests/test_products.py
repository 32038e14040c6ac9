from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from oliveshop.models.product import ProductStatus


def test_list_only_active_products(client: TestClient, db_session: Session, make_variant):
    visible = make_variant()
    hidden = make_variant()
    hidden.product.status = ProductStatus.DRAFT
    db_session.commit()

    response = client.get("/api/v1/products")

    assert response.status_code == 200
    slugs = [product["slug"] for product in response.json()["data"]]
    assert slugs == [visible.product.slug]


def test_summary_price_range_and_stock_status(client: TestClient, make_variant):
    first = make_variant(price="9.50", stock=3)
    make_variant(price="21.00", stock=0, product=first.product)

    response = client.get("/api/v1/products")

    summary = response.json()["data"][0]
    assert summary["min_price"] == 9.5
    assert summary["max_price"] == 21.0
    assert summary["stock_status"] == "LOW_STOCK"


def test_filters(client: TestClient, make_variant):
    cheap = make_variant(price="6.00", stock=10, harvest_year=2024, product_type="blend")
    pricey = make_variant(price="30.00", stock=0, harvest_year=2025)

    by_type = client.get("/api/v1/products", params={"type": "blend"}).json()["data"]
    assert [p["id"] for p in by_type] == [cheap.product_id]

    by_year = client.get("/api/v1/products", params={"harvest_year": 2025}).json()["data"]
    assert [p["id"] for p in by_year] == [pricey.product_id]

    by_price = client.get("/api/v1/products", params={"min_price": "10", "max_price": "50"}).json()["data"]
    assert [p["id"] for p in by_price] == [pricey.product_id]

    in_stock = client.get("/api/v1/products", params={"in_stock": "true"}).json()["data"]
    assert [p["id"] for p in in_stock] == [cheap.product_id]


def test_filter_validation(client: TestClient):
    inverted = client.get("/api/v1/products", params={"min_price": "20", "max_price": "10"})
    assert inverted.status_code == 400
    assert inverted.json()["message"] == "Minimum price cannot be greater than maximum price"

    negative = client.get("/api/v1/products", params={"min_price": "-1"})
    assert negative.status_code == 400
    assert negative.json()["message"] == "Minimum price cannot be negative"

    year = client.get("/api/v1/products", params={"harvest_year": 1800})
    assert year.status_code == 400
    assert year.json()["message"] == "Harvest year must be between 1900 and 2030"


def test_product_detail_by_slug(client: TestClient, make_variant):
    variant = make_variant(price="12.00", stock=20, harvest_year=2025)

    response = client.get(f"/api/v1/products/{variant.product.slug}")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["title"] == variant.product.title
    assert data["lots"][0]["harvest_year"] == 2025
    detail_variant = data["variants"][0]
    assert detail_variant["sku"] == variant.sku
    assert detail_variant["available_qty"] == 20
    assert detail_variant["in_stock"] is True
    assert detail_variant["stock_status"] == "IN_STOCK"
    assert detail_variant["lot"]["season"] == "AUTUMN"


def test_unknown_or_inactive_slug_is_404(client: TestClient, db_session: Session, make_variant):
    variant = make_variant()
    variant.product.status = ProductStatus.INACTIVE
    db_session.commit()

    inactive = client.get(f"/api/v1/products/{variant.product.slug}")
    assert inactive.status_code == 404

    missing = client.get("/api/v1/products/no-such-oil")
    assert missing.status_code == 404
    assert missing.json()["message"] == "Product not found with slug: no-such-oil"


def test_combined_filters_apply_to_a_single_variant(client: TestClient, make_variant):
    cheap_sold_out = make_variant(price="5.00", stock=0, harvest_year=2024)
    make_variant(price="50.00", stock=10, harvest_year=2025, product=cheap_sold_out.product)

    between = client.get("/api/v1/products", params={"min_price": "20", "max_price": "30"}).json()["data"]
    assert between == []

    cheap_in_stock = client.get("/api/v1/products", params={"max_price": "10", "in_stock": "true"}).json()["data"]
    assert cheap_in_stock == []

    cheap_2025 = client.get("/api/v1/products", params={"max_price": "10", "harvest_year": 2025}).json()["data"]
    assert cheap_2025 == []

    pricey_2025 = client.get(
        "/api/v1/products", params={"min_price": "40", "harvest_year": 2025, "in_stock": "true"}
    ).json()["data"]
    assert [p["id"] for p in pricey_2025] == [cheap_sold_out.product_id]
