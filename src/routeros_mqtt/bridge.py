"""RouterOS → MQTT bridge.

Polls the router's wireless registration table at a fixed interval and
publishes it as JSON. A failed query schedules a reconnect of the
RouterOS session, performed after the full sleep interval.
"""

import asyncio
import logging
from collections.abc import Callable

from routeros_mqtt.broker.client import (
    BrokerPublishError,
    MQTTClientConfig,
    MQTTPublisher,
    create_mqtt_client,
    prefixify,
)
from routeros_mqtt.config import Settings
from routeros_mqtt.router.client import (
    RouterOSClient,
    RouterOSClientConfig,
    RouterQueryError,
    create_routeros_client,
)
from routeros_mqtt.router.models import records_from_rows, serialize_records

logger = logging.getLogger(__name__)

WIFI_CLIENTS_SUBTOPIC = "routeros/wificlients"


class RouterOSMQTTBridge:
    """Owns the router session and runs the poll/publish loop.

    Only the loop task replaces or closes the router session once the
    bridge is started; stop() asks the task to finish and waits for it.
    """

    def __init__(
        self,
        mqtt_client: MQTTPublisher,
        router_client: RouterOSClient | None,
        topic_prefix: str,
        router_config: RouterOSClientConfig,
        mqtt_config: MQTTClientConfig,
        poll_interval: float = 30.0,
        query_timeout: float | None = None,
        router_factory: Callable[[RouterOSClientConfig], RouterOSClient] = create_routeros_client,
    ) -> None:
        self.mqtt_client = mqtt_client
        self.router_client = router_client
        self.topic_prefix = topic_prefix
        self.router_config = router_config
        self.mqtt_config = mqtt_config
        self.poll_interval = poll_interval
        self.query_timeout = query_timeout
        self._router_factory = router_factory
        self._stopping = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        logger.info(
            "Starting bridge: %s -> %s (interval=%ss)",
            self.router_config.address,
            self.mqtt_config.broker,
            self.poll_interval,
        )
        self._stopping.clear()
        self._task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        logger.info("Stopping bridge")
        self._stopping.set()
        if self._task:
            await self._task
            self._task = None

    def publish(self, subtopic: str, payload: str, retained: bool = False) -> None:
        self.mqtt_client.publish(prefixify(self.topic_prefix, subtopic), payload, retained)

    async def run_cycle(self) -> bool:
        """Query, transform, serialize and publish once.

        Returns False if the router query failed and the session should be
        reconnected, True otherwise.
        """
        try:
            rows = await self._query_registration_table()
        except asyncio.CancelledError:
            raise
        except TimeoutError:
            logger.error(
                "Registration table query timed out after %ss", self.query_timeout
            )
            return False
        except Exception:
            logger.exception("Could not retrieve registration table")
            return False

        records = records_from_rows(rows)
        try:
            payload = serialize_records(records)
        except (TypeError, ValueError):
            logger.exception("Failed to create JSON")
            return True

        logger.debug("Publishing %d wifi clients: %s", len(records), payload)
        try:
            await asyncio.to_thread(self.publish, WIFI_CLIENTS_SUBTOPIC, payload, False)
        except BrokerPublishError:
            logger.exception("Could not publish wifi clients")
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Unexpected error publishing wifi clients")
        return True

    async def _query_registration_table(self) -> list[dict[str, str]]:
        client = self.router_client
        if client is None:
            raise RouterQueryError("No RouterOS session")
        return await asyncio.wait_for(
            asyncio.to_thread(client.print_registration_table),
            timeout=self.query_timeout,
        )

    async def _sleep(self) -> None:
        """Sleep one poll interval, returning early only on stop()."""
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=self.poll_interval)
        except TimeoutError:
            pass

    def _close_router(self) -> None:
        client, self.router_client = self.router_client, None
        if client is None:
            return
        try:
            client.close()
        except Exception:
            logger.exception("Error when closing RouterOS client")

    def _reconnect_router(self) -> None:
        logger.error("Reconnecting RouterOS client")
        self._close_router()
        try:
            self.router_client = self._router_factory(self.router_config)
        except Exception:
            logger.exception("Error when recreating RouterOS client")

    async def _poll_loop(self) -> None:
        try:
            while not self._stopping.is_set():
                reconnect = not await self.run_cycle()
                await self._sleep()
                if reconnect and not self._stopping.is_set():
                    await asyncio.to_thread(self._reconnect_router)
        finally:
            await asyncio.to_thread(self._close_router)
            logger.info("RouterOS client closed")


def create_bridge(
    cfg: Settings,
    mqtt_factory: Callable[[MQTTClientConfig], MQTTPublisher] = create_mqtt_client,
    router_factory: Callable[[RouterOSClientConfig], RouterOSClient] = create_routeros_client,
) -> RouterOSMQTTBridge:
    """Connect to the broker, then the router, and assemble the bridge.

    Raises BrokerConnectionError or RouterConnectionError if either
    initial handshake fails.
    """
    mqtt_config = cfg.broker_config()
    router_config = cfg.router_config()

    mqtt_client = mqtt_factory(mqtt_config)
    try:
        router_client = router_factory(router_config)
    except Exception:
        mqtt_client.close()
        raise

    return RouterOSMQTTBridge(
        mqtt_client=mqtt_client,
        router_client=router_client,
        topic_prefix=cfg.topic_prefix,
        router_config=router_config,
        mqtt_config=mqtt_config,
        poll_interval=cfg.poll_interval,
        query_timeout=cfg.query_timeout,
        router_factory=router_factory,
    )
