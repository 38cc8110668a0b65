"""Shared test fixtures."""

import os
from collections.abc import Generator
from pathlib import Path
from unittest.mock import MagicMock

import pytest

import routeros_mqtt.config as config_module
from routeros_mqtt.broker.client import MQTTClientConfig
from routeros_mqtt.router.client import RouterOSClientConfig


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Point .env at tmp_path and drop any ROUTEROS_MQTT_* variables."""
    for key in list(os.environ):
        if key.startswith("ROUTEROS_MQTT_"):
            monkeypatch.delenv(key)
    env_file = tmp_path / ".env"
    monkeypatch.setattr(config_module, "_ENV_FILE", env_file)
    yield env_file


@pytest.fixture
def router_config() -> RouterOSClientConfig:
    return RouterOSClientConfig(address="192.168.88.1:8729", username="api", password="secret")


@pytest.fixture
def mqtt_config() -> MQTTClientConfig:
    return MQTTClientConfig(broker="tcp://localhost:1883")


@pytest.fixture
def router_client() -> MagicMock:
    """A RouterOSClient stand-in returning an empty registration table."""
    client = MagicMock()
    client.print_registration_table.return_value = []
    return client


@pytest.fixture
def mqtt_client() -> MagicMock:
    return MagicMock()
