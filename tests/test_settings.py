import pytest
from pydantic import ValidationError

from core.settings import PaymentSettings, WebhookSettings


def test_defaults_keep_lock_longer_than_fulfillment():
    settings = PaymentSettings()
    assert settings.webhook.lock_timeout_seconds > settings.fulfillment_timeout_seconds


def test_lock_must_outlive_fulfillment_timeout():
    with pytest.raises(ValidationError) as excinfo:
        PaymentSettings(fulfillment_timeout_seconds=60)
    assert "lock_timeout_seconds" in str(excinfo.value)

    with pytest.raises(ValidationError):
        PaymentSettings(webhook=WebhookSettings(lock_timeout_seconds=30), fulfillment_timeout_seconds=20)


def test_longer_lock_accepts_longer_fulfillment():
    settings = PaymentSettings(
        webhook=WebhookSettings(lock_timeout_seconds=120),
        fulfillment_timeout_seconds=60,
    )
    assert settings.fulfillment_timeout_seconds == 60
