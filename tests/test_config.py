"""Tests for bridge configuration."""

import pytest
from pydantic import ValidationError

from routeros_mqtt.config import Settings, load_config


class TestDefaults:
    def test_broker_default(self):
        assert Settings().broker == "tcp://localhost:1883"

    def test_topic_prefix_default_empty(self):
        assert Settings().topic_prefix == ""

    def test_poll_interval_default(self):
        assert Settings().poll_interval == 30.0

    def test_tls_verification_disabled_by_default(self):
        assert Settings().tls_verify is False
        assert Settings().router_config().verify_tls is False


class TestSources:
    def test_env_var(self, monkeypatch):
        monkeypatch.setenv("ROUTEROS_MQTT_ADDRESS", "10.0.0.1:8729")
        assert Settings().address == "10.0.0.1:8729"

    def test_dotenv_file(self, isolated_env):
        isolated_env.write_text("ROUTEROS_MQTT_TOPIC_PREFIX=home/router\n", encoding="utf-8")
        assert Settings().topic_prefix == "home/router"

    def test_env_overrides_dotenv(self, isolated_env, monkeypatch):
        isolated_env.write_text("ROUTEROS_MQTT_USERNAME=fromfile\n", encoding="utf-8")
        monkeypatch.setenv("ROUTEROS_MQTT_USERNAME", "fromenv")
        assert Settings().username == "fromenv"

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("ROUTEROS_MQTT_BROKER", "tcp://env:1883")
        assert load_config(broker="tcp://cli:1883").broker == "tcp://cli:1883"


class TestValidation:
    def test_log_level_normalised(self):
        assert Settings(log_level=" DEBUG ").log_level == "debug"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(log_level="chatty")

    def test_poll_interval_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(poll_interval=0)

    def test_zero_query_timeout_disables_deadline(self):
        assert Settings(query_timeout=0).query_timeout is None

    @pytest.mark.parametrize("prefix", ["home/+", "home/#", "#"])
    def test_wildcard_topic_prefix_rejected(self, prefix):
        with pytest.raises(ValidationError):
            Settings(topic_prefix=prefix)

    def test_plain_topic_prefix_accepted(self):
        assert Settings(topic_prefix="home/router").topic_prefix == "home/router"


class TestConnectionConfigs:
    def test_router_config(self):
        s = Settings(address="r1:8729", username="u", password="p", tls_verify=True)
        cfg = s.router_config()
        assert cfg.address == "r1:8729"
        assert cfg.username == "u"
        assert cfg.password == "p"
        assert cfg.verify_tls is True

    def test_broker_config(self):
        s = Settings(broker="ssl://mq:8883", mqtt_client_id="bridge", publish_timeout=5)
        cfg = s.broker_config()
        assert cfg.broker == "ssl://mq:8883"
        assert cfg.client_id == "bridge"
        assert cfg.publish_timeout == 5
