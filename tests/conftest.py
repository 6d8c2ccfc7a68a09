"""Shared fixtures for orderflow tests."""

import os
from decimal import Decimal

import pytest
from loguru import logger

from orderflow.app import create_app
from orderflow.config import OrderFlowConfig, reset_config
from orderflow.handlers import set_app
from orderflow.messaging.notifications import InMemoryNotificationChannel
from orderflow.sources import (
    MAX_ITEMS_PER_ORDER,
    NOTIFICATION_API_KEY,
    StaticConfigSource,
    StaticSecretSource,
)
from orderflow.storage.schemas import Order

TEST_API_KEY = "test-notification-key"


@pytest.fixture(autouse=True)
def reset_config_fixture(monkeypatch):
    """Reset configuration, environment, and logging before each test."""
    for var in list(os.environ):
        if var.startswith("ORDERFLOW_"):
            monkeypatch.delenv(var, raising=False)
    reset_config()
    set_app(None)
    logger.enable("orderflow")
    yield
    reset_config()
    set_app(None)
    logger.enable("orderflow")


@pytest.fixture
def make_order():
    """Factory for orders with sensible defaults."""

    def _make(**overrides) -> Order:
        fields = {
            "order_id": "order-1",
            "customer_name": "Alice",
            "items": ["widget", "gadget"],
            "total": Decimal("49.99"),
        }
        fields.update(overrides)
        return Order(**fields)

    return _make


@pytest.fixture
def build_app():
    """Factory for an in-memory app with no retry delays."""

    def _build(max_items: int = 100, api_key: str = TEST_API_KEY, **config_overrides):
        settings = {"retry_delay": 0, "storage_backend": "memory"}
        settings.update(config_overrides)
        return create_app(
            OrderFlowConfig(**settings),
            notifications=InMemoryNotificationChannel(),
            config_source=StaticConfigSource({MAX_ITEMS_PER_ORDER: max_items}),
            secret_source=StaticSecretSource({NOTIFICATION_API_KEY: api_key}),
        )

    return _build


@pytest.fixture
def app(build_app):
    """In-memory app with default settings."""
    return build_app()
