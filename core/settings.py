"""
Payment/commerce settings using pydantic-settings v2 with nested env keys.

Kept apart from core.config.Settings so the webhook and API clients can be
configured independently (``PAYMENTS__PAYMONGO__SECRET_KEY``,
``PAYMENTS__SHOPIFY__SHOP`` ...). Plain ``PAYMONGO_SECRET_KEY`` style
variables are accepted as aliases for the three secrets.
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, BaseModel, Field, model_validator


class PaymentTimeouts(BaseModel):
    connect: float = 3.0
    read: float = 10.0
    write: float = 10.0
    total: float = 15.0


class PaymentRetry(BaseModel):
    max: int = 2
    base_backoff: float = 0.2


# 锁的过期时间须覆盖一次完整履约（建单超时 + 账本读写）
LOCK_EXPIRY_MARGIN_SECONDS = 10.0


class WebhookSettings(BaseModel):
    signature_header: str = "Paymongo-Signature"
    lock_timeout_seconds: int = 60
    lock_blocking_timeout_seconds: int = 10


class PayMongoSettings(BaseModel):
    secret_key: Optional[str] = None
    webhook_secret: Optional[str] = None
    base_url: str = "https://api.paymongo.com/v1"


class ShopifySettings(BaseModel):
    shop: Optional[str] = None
    access_token: Optional[str] = None
    api_version: str = "2025-10"


class DogProfileSettings(BaseModel):
    cache_ttl_seconds: int = 3600
    cache_max_entries: int = 1024
    metafield_namespace: str = "mcduffy"
    metafield_key: str = "dog_profile"


class PaymentSettings(BaseSettings):
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    fulfillment_timeout_seconds: float = 20.0

    paymongo: PayMongoSettings = Field(default_factory=PayMongoSettings)
    shopify: ShopifySettings = Field(default_factory=ShopifySettings)
    dog_profiles: DogProfileSettings = Field(default_factory=DogProfileSettings)

    # Flat aliases used by existing deployments
    paymongo_secret_key: Optional[str] = Field(default=None, validation_alias=AliasChoices("PAYMONGO_SECRET_KEY"))
    paymongo_webhook_secret: Optional[str] = Field(default=None, validation_alias=AliasChoices("PAYMONGO_WEBHOOK_SECRET"))
    shopify_shop: Optional[str] = Field(default=None, validation_alias=AliasChoices("SHOPIFY_SHOP"))
    shopify_access_token: Optional[str] = Field(default=None, validation_alias=AliasChoices("SHOPIFY_ADMIN_ACCESS_TOKEN"))

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PAYMENTS__",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    @model_validator(mode="after")
    def _check_lock_outlives_fulfillment(self) -> "PaymentSettings":
        required = self.fulfillment_timeout_seconds + LOCK_EXPIRY_MARGIN_SECONDS
        if self.webhook.lock_timeout_seconds <= required:
            raise ValueError(
                f"webhook.lock_timeout_seconds ({self.webhook.lock_timeout_seconds}) must exceed "
                f"fulfillment_timeout_seconds + {LOCK_EXPIRY_MARGIN_SECONDS:g} ({required:g})"
            )
        return self

    @property
    def webhook_secret(self) -> Optional[str]:
        return self.paymongo.webhook_secret or self.paymongo_webhook_secret

    @property
    def paymongo_api_key(self) -> Optional[str]:
        return self.paymongo.secret_key or self.paymongo_secret_key

    @property
    def shop_domain(self) -> Optional[str]:
        return self.shopify.shop or self.shopify_shop

    @property
    def shop_access_token(self) -> Optional[str]:
        return self.shopify.access_token or self.shopify_access_token


payment_settings = PaymentSettings()
