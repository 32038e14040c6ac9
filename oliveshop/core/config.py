from decimal import Decimal
from pydantic_settings import BaseSettings
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Dict, List, Optional


class ShippingBracketConfig(BaseModel):
    max_weight_grams: int
    cost: Decimal


class ShippingZoneConfig(BaseModel):
    name: str
    brackets: List[ShippingBracketConfig] = []


def _default_shipping_zones() -> Dict[str, ShippingZoneConfig]:
    def zone(name: str, costs: List[str]) -> ShippingZoneConfig:
        return ShippingZoneConfig(
            name=name,
            brackets=[
                ShippingBracketConfig(max_weight_grams=grams, cost=Decimal(cost))
                for grams, cost in zip((500, 1000, 2000), costs)
            ],
        )

    return {
        "domestic": zone("Domestic", ["5.00", "7.50", "10.00"]),
        "eu": zone("European Union", ["12.00", "18.00", "25.00"]),
        "row": zone("Rest of World", ["20.00", "30.00", "45.00"]),
    }


class Settings(BaseSettings):
    # Project Info
    PROJECT_NAME: str = "Olive Shop API"
    API_V1_STR: str = "/api/v1"

    # Database
    DATABASE_URL: str

    # Security
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
    ]

    # Email
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    EMAILS_FROM_EMAIL: str = "orders@example.com"
    EMAILS_FROM_NAME: str = "Olive Shop"
    ORDER_EMAILS_ENABLED: bool = False

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Monitoring
    SENTRY_DSN: str = ""

    # Celery & Redis (Task Queue)
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    # Admin bootstrap
    DEFAULT_ADMIN_EMAIL: str = "admin@example.com"
    DEFAULT_ADMIN_PASSWORD: str = ""

    # Shop
    VAT_RATE: Decimal = Decimal("0.20")
    SHIPPING_ZONES: Dict[str, ShippingZoneConfig] = Field(default_factory=_default_shipping_zones)
    DEFAULT_SHIPPING_ZONE: str = "domestic"
    LOW_STOCK_THRESHOLD: int = 5

    # Cart
    CART_COOKIE_NAME: str = "cartId"
    CART_COOKIE_MAX_AGE_DAYS: int = 7
    CART_RETENTION_DAYS: int = 7

    # Concurrency
    STOCK_UPDATE_MAX_ATTEMPTS: int = 3
    ORDER_NUMBER_MAX_ATTEMPTS: int = 10

    @field_validator("ENVIRONMENT")
    @classmethod
    def normalize_environment(cls, value: str) -> str:
        return value.lower().strip()

    @field_validator("SHIPPING_ZONES")
    @classmethod
    def normalize_zone_keys(cls, value: Dict[str, ShippingZoneConfig]) -> Dict[str, ShippingZoneConfig]:
        return {key.lower().strip(): zone for key, zone in value.items()}

    @field_validator("VAT_RATE")
    @classmethod
    def validate_vat_rate(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("VAT_RATE cannot be negative")
        return value

    @model_validator(mode="after")
    def validate_production_secret(self):
        if self.ENVIRONMENT == "production":
            normalized_secret = (self.SECRET_KEY or "").strip()
            if len(normalized_secret) < 32 or "change-me" in normalized_secret.lower():
                raise ValueError("SECRET_KEY must be at least 32 chars and not use placeholders in production")
        return self

    @property
    def cart_cookie_max_age_seconds(self) -> int:
        return self.CART_COOKIE_MAX_AGE_DAYS * 24 * 60 * 60

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
        "extra": "ignore",
    }


settings = Settings()
