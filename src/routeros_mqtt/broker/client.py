"""MQTT publishing via paho-mqtt.

The paho network loop runs in its own thread (loop_start) and owns
reconnection to the broker after the initial handshake succeeds.
"""

import logging
import threading
from dataclasses import dataclass
from urllib.parse import urlsplit

import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)

# scheme -> (tls, transport, default port)
_SCHEMES: dict[str, tuple[bool, str, int]] = {
    "tcp": (False, "tcp", 1883),
    "mqtt": (False, "tcp", 1883),
    "ssl": (True, "tcp", 8883),
    "tls": (True, "tcp", 8883),
    "mqtts": (True, "tcp", 8883),
    "ws": (False, "websockets", 80),
    "wss": (True, "websockets", 443),
}


class BrokerConnectionError(Exception):
    """The initial connection to the MQTT broker failed or timed out."""


class BrokerPublishError(Exception):
    """A message could not be handed to the MQTT client."""


@dataclass
class MQTTClientConfig:
    broker: str = "tcp://localhost:1883"
    client_id: str = ""
    connect_timeout: float = 10.0
    publish_timeout: float = 10.0


@dataclass
class BrokerAddress:
    host: str
    port: int
    tls: bool
    transport: str


def parse_broker_url(url: str) -> BrokerAddress:
    """Parse e.g. "tcp://localhost:1883" into connection parameters."""
    if "://" not in url:
        url = "tcp://" + url
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    if scheme not in _SCHEMES:
        raise ValueError(f"Unsupported broker scheme: {scheme!r}")
    if not parts.hostname:
        raise ValueError(f"Broker URL has no host: {url!r}")
    tls, transport, default_port = _SCHEMES[scheme]
    return BrokerAddress(
        host=parts.hostname,
        port=parts.port or default_port,
        tls=tls,
        transport=transport,
    )


def prefixify(topic_prefix: str, subtopic: str) -> str:
    """Prepend the topic prefix unless it is blank."""
    if topic_prefix.strip():
        return f"{topic_prefix}/{subtopic}"
    return subtopic


class MQTTPublisher:
    """Fire-and-forget publisher around a connected paho client."""

    def __init__(self, client: mqtt.Client, broker: str, publish_timeout: float = 10.0) -> None:
        self.client = client
        self.broker = broker
        self.publish_timeout = publish_timeout

    def publish(self, topic: str, payload: str, retained: bool = False) -> None:
        """Publish at QoS 0 and block until paho has handed the message off."""
        try:
            info = self.client.publish(topic, payload, qos=0, retain=retained)
        except ValueError as e:
            # Wildcards in the topic, payload too large or invalid QoS
            raise BrokerPublishError(f"Publish to {topic} rejected: {e}") from e
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise BrokerPublishError(
                f"Publish to {topic} failed: {mqtt.error_string(info.rc)}"
            )
        try:
            info.wait_for_publish(timeout=self.publish_timeout)
        except (RuntimeError, ValueError) as e:
            raise BrokerPublishError(f"Publish to {topic} failed: {e}") from e
        if not info.is_published():
            raise BrokerPublishError(f"Publish to {topic} not sent within {self.publish_timeout}s")

    def close(self) -> None:
        self.client.loop_stop()
        self.client.disconnect()


def create_mqtt_client(config: MQTTClientConfig) -> MQTTPublisher:
    """Connect to the broker and start the paho network loop.

    Raises BrokerConnectionError if the CONNACK is refused or does not
    arrive within config.connect_timeout seconds.
    """
    logger.info("Creating MQTT client for %s", config.broker)
    try:
        address = parse_broker_url(config.broker)
    except ValueError as e:
        raise BrokerConnectionError(str(e)) from e

    client = mqtt.Client(
        mqtt.CallbackAPIVersion.VERSION2,
        client_id=config.client_id,
        transport=address.transport,
    )
    if address.tls:
        client.tls_set()
    client.reconnect_delay_set(min_delay=1, max_delay=120)

    connack = threading.Event()
    refused: list[str] = []

    def _on_connect(client, userdata, flags, reason_code, properties) -> None:  # type: ignore[no-untyped-def]
        if reason_code.is_failure:
            logger.error("MQTT broker %s refused connection: %s", config.broker, reason_code)
            refused.append(str(reason_code))
        else:
            logger.info("Connected to MQTT broker %s", config.broker)
        connack.set()

    def _on_disconnect(client, userdata, flags, reason_code, properties) -> None:  # type: ignore[no-untyped-def]
        logger.warning("Disconnected from MQTT broker %s: %s", config.broker, reason_code)

    client.on_connect = _on_connect
    client.on_disconnect = _on_disconnect

    try:
        client.connect(address.host, address.port, keepalive=60)
    except (OSError, ValueError) as e:
        raise BrokerConnectionError(f"Could not connect to broker {config.broker}: {e}") from e

    client.loop_start()
    if not connack.wait(config.connect_timeout) or refused:
        client.loop_stop()
        client.disconnect()
        reason = refused[0] if refused else f"no CONNACK within {config.connect_timeout}s"
        raise BrokerConnectionError(f"Could not connect to broker {config.broker}: {reason}")

    return MQTTPublisher(client, config.broker, config.publish_timeout)
