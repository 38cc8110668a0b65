"""RouterOS API session over TLS via routeros_api.

Wraps a single API connection to the router and the one command the
bridge issues: printing the wireless registration table.
"""

import logging
import ssl
from dataclasses import dataclass
from typing import Any

from routeros_api import RouterOsApiPool
from routeros_api.exceptions import RouterOsApiError

logger = logging.getLogger(__name__)

DEFAULT_API_SSL_PORT = 8729
REGISTRATION_TABLE_PATH = "/interface/wireless/registration-table"


class RouterConnectionError(Exception):
    """Opening or logging in to the RouterOS API failed."""


class RouterQueryError(Exception):
    """A RouterOS API command failed or no session is open."""


@dataclass
class RouterOSClientConfig:
    address: str  # host:port of the api-ssl service
    username: str
    password: str
    verify_tls: bool = False


def split_address(address: str) -> tuple[str, int]:
    """Split "host:port" (or "[v6]:port") into host and port.

    The port defaults to the RouterOS api-ssl port when omitted.
    """
    address = address.strip()
    if not address:
        raise ValueError("Router address is empty")

    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        if not sep:
            raise ValueError(f"Invalid router address: {address!r}")
        port_str = rest[1:] if rest.startswith(":") else ""
    elif address.count(":") == 1:
        host, port_str = address.split(":")
    else:
        # Bare hostname, IPv4 or unbracketed IPv6 literal
        host, port_str = address, ""

    if not port_str:
        return host, DEFAULT_API_SSL_PORT
    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"Invalid port in router address: {address!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"Invalid port in router address: {address!r}")
    return host, port


def _ssl_context(verify: bool) -> ssl.SSLContext:
    ssl_context = ssl.create_default_context()
    if not verify:
        # Self-signed router certificate: no chain or hostname validation.
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE
    return ssl_context


class RouterOSClient:
    """An open RouterOS API session."""

    def __init__(self, pool: RouterOsApiPool, api: Any, address: str) -> None:
        self._pool = pool
        self._api = api
        self.address = address

    def print_registration_table(self) -> list[dict[str, str]]:
        """Return every row of the wireless registration table."""
        try:
            return list(self._api.get_resource(REGISTRATION_TABLE_PATH).get())
        except (RouterOsApiError, OSError) as e:
            raise RouterQueryError(f"Registration table query failed: {e}") from e

    def close(self) -> None:
        self._pool.disconnect()


def create_routeros_client(config: RouterOSClientConfig) -> RouterOSClient:
    """Connect and log in to the router. Raises RouterConnectionError."""
    try:
        host, port = split_address(config.address)
    except ValueError as e:
        raise RouterConnectionError(str(e)) from e

    if not config.verify_tls:
        logger.debug("TLS certificate verification disabled for %s", config.address)

    pool = RouterOsApiPool(
        host,
        username=config.username,
        password=config.password,
        port=port,
        use_ssl=True,
        ssl_context=_ssl_context(config.verify_tls),
        plaintext_login=True,
    )
    try:
        api = pool.get_api()
    except (RouterOsApiError, OSError) as e:
        raise RouterConnectionError(f"Could not connect to {config.address}: {e}") from e

    logger.info("Connected to RouterOS API at %s", config.address)
    return RouterOSClient(pool, api, config.address)
