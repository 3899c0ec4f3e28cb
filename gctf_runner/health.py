"""Pre-flight reachability checks of the service under test."""

import asyncio
import logging

log = logging.getLogger(__name__)

DEFAULT_HEALTH_TIMEOUT = 5.0


def split_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``) into its parts.

    Raises:
        ValueError: If the address has no valid port

    """
    address = address.strip()
    for scheme in ("http://", "https://"):
        address = address.removeprefix(scheme)
    host, sep, port = address.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ValueError(f"Invalid address '{address}', expected host:port")
    return host.strip("[]"), int(port)


async def check_reachability(
    address: str, timeout: float = DEFAULT_HEALTH_TIMEOUT
) -> bool:
    """Return whether a TCP connection to the address can be opened."""
    try:
        host, port = split_address(address)
    except ValueError:
        log.warning("Cannot health-check malformed address %s", address)
        return False

    try:
        async with asyncio.timeout(timeout):
            _, writer = await asyncio.open_connection(host, port)
    except (OSError, TimeoutError) as e:
        log.debug("Service at %s is unreachable: %s", address, e)
        return False

    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True
