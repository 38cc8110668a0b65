"""routeros-mqtt entrypoint."""

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Sequence

from pydantic import ValidationError

from routeros_mqtt.bridge import RouterOSMQTTBridge, create_bridge
from routeros_mqtt.broker.client import BrokerConnectionError
from routeros_mqtt.config import Settings, load_config
from routeros_mqtt.router.client import RouterConnectionError

logger = logging.getLogger(__name__)

# flag -> Settings field
_FLAG_FIELDS = {
    "address": "address",
    "username": "username",
    "password": "password",
    "topicPrefix": "topic_prefix",
    "broker": "broker",
}

# (flag, takes a value, help)
_FLAGS = (
    ("address", True, "Mikrotik TLS address:port"),
    ("username", True, "Username"),
    ("password", True, "Password"),
    ("topicPrefix", True, "MQTT topic prefix to use"),
    ("broker", True, "MQTT broker URL (default tcp://localhost:1883)"),
    ("help", False, "Print help"),
    ("debug", False, "Debug logging"),
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="routeros-mqtt", add_help=False)
    for flag, takes_value, help_text in _FLAGS:
        if takes_value:
            parser.add_argument(f"-{flag}", f"--{flag}", help=help_text)
        else:
            parser.add_argument(f"-{flag}", f"--{flag}", action="store_true", help=help_text)
    return parser


def print_help() -> None:
    print("Usage: routeros-mqtt [OPTIONS]")
    print("Options:")
    for flag, takes_value, help_text in _FLAGS:
        print(f"  -{flag} value" if takes_value else f"  -{flag}")
        print(f"        {help_text}")


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Flags given on the command line override environment and .env values."""
    overrides: dict[str, object] = {}
    for flag, field in _FLAG_FIELDS.items():
        value = getattr(args, flag)
        if value is not None:
            overrides[field] = value
    if args.debug:
        overrides["debug"] = True
    return load_config(**overrides)


def configure_logging(cfg: Settings) -> None:
    level = logging.DEBUG if cfg.debug else getattr(logging, cfg.log_level.upper())
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def serve(bridge: RouterOSMQTTBridge) -> None:
    """Run the bridge until SIGINT, then let it close the router session."""
    interrupted = asyncio.Event()
    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, interrupted.set)
    try:
        await bridge.start()
        print("Started")
        await interrupted.wait()
    finally:
        loop.remove_signal_handler(signal.SIGINT)
        await bridge.stop()
    print("Shut down")


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.help:
        print_help()
        return 0

    try:
        cfg = settings_from_args(args)
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1
    configure_logging(cfg)

    try:
        bridge = create_bridge(cfg)
    except BrokerConnectionError as e:
        logger.error("Error creating mqtt client: %s (broker %s)", e, cfg.broker)
        return 1
    except RouterConnectionError as e:
        logger.error("Error creating RouterOS client: %s (address %s)", e, cfg.address)
        return 1

    asyncio.run(serve(bridge))
    return 0


if __name__ == "__main__":
    sys.exit(main())
