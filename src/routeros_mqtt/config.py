"""Bridge configuration via environment variables, .env file and CLI flags."""

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings
from pydantic_settings.sources import DotEnvSettingsSource, PydanticBaseSettingsSource

from routeros_mqtt.broker.client import MQTTClientConfig
from routeros_mqtt.router.client import RouterOSClientConfig

# Path to .env file (patch in tests to use tmp_path / ".env")
_ENV_FILE: Path = Path(".env")

_LOG_LEVELS = ("critical", "error", "warning", "info", "debug")


class Settings(BaseSettings):
    model_config = {
        "env_prefix": "ROUTEROS_MQTT_",
        "env_file_encoding": "utf-8",
    }

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Load .env from _ENV_FILE (patchable in tests)
        return (
            init_settings,
            env_settings,
            DotEnvSettingsSource(
                settings_cls,
                env_file=_ENV_FILE,
                env_file_encoding="utf-8",
            ),
            file_secret_settings,
        )

    # RouterOS API (TLS endpoint, host:port)
    address: str = ""
    username: str = ""
    password: str = ""

    # RouterOS devices ship self-signed certificates, so verification is off
    # unless explicitly enabled. Set ROUTEROS_MQTT_TLS_VERIFY=true for a
    # router with a certificate issued by a trusted CA.
    tls_verify: bool = False

    # MQTT
    broker: str = "tcp://localhost:1883"
    topic_prefix: str = ""
    mqtt_client_id: str = ""
    mqtt_connect_timeout: float = 10.0
    publish_timeout: float = 10.0

    # Logging
    log_level: str = "info"
    debug: bool = False

    # Polling
    poll_interval: float = 30.0  # seconds between polls
    query_timeout: float | None = 20.0  # deadline for one registration table query

    @field_validator("log_level", mode="before")
    @classmethod
    def parse_log_level(cls, v: object) -> str:
        level = str(v).strip().lower()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v!r}")
        return level

    @field_validator("topic_prefix")
    @classmethod
    def check_topic_prefix(cls, v: str) -> str:
        """MQTT wildcards are not allowed in a publish topic."""
        if "+" in v or "#" in v:
            raise ValueError(f"topic_prefix must not contain MQTT wildcards: {v!r}")
        return v

    @field_validator("poll_interval")
    @classmethod
    def check_poll_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("poll_interval must be positive")
        return v

    @field_validator("query_timeout")
    @classmethod
    def normalise_query_timeout(cls, v: float | None) -> float | None:
        """A zero or negative timeout disables the query deadline."""
        if v is None or v <= 0:
            return None
        return v

    def router_config(self) -> RouterOSClientConfig:
        return RouterOSClientConfig(
            address=self.address,
            username=self.username,
            password=self.password,
            verify_tls=self.tls_verify,
        )

    def broker_config(self) -> MQTTClientConfig:
        return MQTTClientConfig(
            broker=self.broker,
            client_id=self.mqtt_client_id,
            connect_timeout=self.mqtt_connect_timeout,
            publish_timeout=self.publish_timeout,
        )


def load_config(**overrides: object) -> Settings:
    """Load configuration; explicit overrides win over environment and .env."""
    return Settings(**overrides)  # type: ignore[arg-type]
