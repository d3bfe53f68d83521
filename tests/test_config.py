import pytest
from pydantic import ValidationError as SettingsError

from restaurant_orders.core.config import EnvironmentMode, Settings, get_settings
from restaurant_orders.services.notifications import (
    GatewayMessagingService,
    KitchenDisplayHub,
    RedisKitchenDisplayHub,
    get_kitchen_hub,
    get_messaging_service,
    get_order_notifier,
    reset_notification_services,
)


@pytest.fixture
def fresh_services():
    reset_notification_services()
    yield
    reset_notification_services()


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.api_port == 3000
    assert settings.order_number_prefix == "UD"
    assert settings.default_order_source == "walk-in"
    assert settings.allow_unknown_statuses is True
    assert not settings.messaging_enabled


def test_port_alias_and_env_mode(monkeypatch):
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("ENV_MODE", "Production")

    settings = Settings(_env_file=None)

    assert settings.api_port == 8080
    assert settings.env_mode is EnvironmentMode.PRODUCTION


def test_invalid_env_mode(monkeypatch):
    monkeypatch.setenv("ENV_MODE", "qa")
    with pytest.raises(SettingsError):
        Settings(_env_file=None)


def test_production_config_lists_missing_settings():
    settings = Settings(
        _env_file=None,
        env_mode="production",
        database_url="sqlite+aiosqlite:///:memory:",
        messaging_phone_id="123",
    )
    assert settings.validate_production_config() == ["MESSAGING_ACCESS_TOKEN", "DATABASE_URL"]

    assert Settings(_env_file=None, env_mode="development").validate_production_config() == []


def test_messaging_disabled_without_credentials(fresh_services):
    assert get_messaging_service() is None
    assert get_order_notifier().messaging_enabled is False
    assert type(get_kitchen_hub()) is KitchenDisplayHub


def test_factories_follow_settings(fresh_services, monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "messaging_phone_id", "10987")
    monkeypatch.setattr(settings, "messaging_access_token", "secret")
    monkeypatch.setattr(settings, "redis_url", "redis://localhost:6379/0")

    messaging = get_messaging_service()
    hub = get_kitchen_hub()

    assert isinstance(messaging, GatewayMessagingService)
    assert messaging.messages_url == "https://graph.facebook.com/v18.0/10987/messages"
    assert isinstance(hub, RedisKitchenDisplayHub)
    assert hub.channel == "kds:events"
    assert get_order_notifier().hub is hub
    assert get_messaging_service() is messaging
