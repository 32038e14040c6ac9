import os
import tempfile
from collections.abc import Callable, Generator
from decimal import Decimal
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

os.environ["ENVIRONMENT"] = "development"
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-the-olive-shop-suite")
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite:///{os.path.join(tempfile.gettempdir(), 'oliveshop-test-app.db')}",
)
os.environ["ORDER_EMAILS_ENABLED"] = "false"

import oliveshop.models  # noqa: E402,F401
from oliveshop.core.security import hash_password  # noqa: E402
from oliveshop.db.base_class import Base  # noqa: E402
from oliveshop.db.session import get_db  # noqa: E402
from oliveshop.main import app  # noqa: E402
from oliveshop.models.product import Lot, Product, ProductStatus, Season, StorageType, Variant  # noqa: E402
from oliveshop.models.user import User, UserRole  # noqa: E402

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "StrongPass1"


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    db_file = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    db_file.close()

    engine = create_engine(
        f"sqlite:///{db_file.name}",
        connect_args={"check_same_thread": False},
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
        os.unlink(db_file.name)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.state.limiter.reset()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def make_variant(db_session: Session) -> Callable[..., Variant]:
    """Factory for an ACTIVE product with one variant (and optionally a lot)."""
    counter = {"n": 0}

    def _make(
        *,
        price: str = "12.00",
        stock: int = 10,
        shipping_weight: str = "400.000",
        title: Optional[str] = None,
        product: Optional[Product] = None,
        harvest_year: Optional[int] = None,
        product_type: str = "extra-virgin",
    ) -> Variant:
        counter["n"] += 1
        n = counter["n"]
        if product is None:
            product = Product(
                slug=f"olive-oil-{n}",
                title=f"Olive Oil {n}",
                type=product_type,
                description="Cold pressed",
                status=ProductStatus.ACTIVE,
            )
            db_session.add(product)
            db_session.flush()

        lot_id = None
        if harvest_year is not None:
            lot = Lot(
                product_id=product.id,
                harvest_year=harvest_year,
                season=Season.AUTUMN,
                storage_type=StorageType.DRY,
            )
            db_session.add(lot)
            db_session.flush()
            lot_id = lot.id

        variant = Variant(
            product_id=product.id,
            lot_id=lot_id,
            sku=f"OIL-{n:03d}",
            title=title or f"Olive Oil {n} 500ml",
            price=Decimal(price),
            weight=Decimal("500.000"),
            shipping_weight=Decimal(shipping_weight),
            stock_qty=stock,
            reserved_qty=0,
            version=1,
        )
        db_session.add(variant)
        db_session.commit()
        db_session.refresh(variant)
        return variant

    return _make


@pytest.fixture()
def admin_user(db_session: Session) -> User:
    user = User(
        email=ADMIN_EMAIL,
        full_name="Shop Admin",
        password_hash=hash_password(ADMIN_PASSWORD),
        role=UserRole.ADMIN,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def admin_client(client: TestClient, admin_user: User) -> TestClient:
    response = client.post(
        "/api/v1/auth/login",
        json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    return client
