"""DogStatsD wire client wrapper."""
import logging
import socket
from typing import List, Optional, Tuple

from datadog.dogstatsd import DogStatsd

logger = logging.getLogger(__name__)

# Default protocol (UDP) and address of the DogStatsD service.
DEFAULT_STATS_ADDR = "localhost:8125"

UNIX_SCHEME = "unix://"


class SinkError(Exception):
    """The agent client failed to create, encode or send a datagram."""


def parse_address(addr: str) -> Tuple[Optional[str], Optional[int], Optional[str]]:
    """Split a DogStatsD address into (host, port, socket_path).

    Accepts ``host:port``, ``[ipv6]:port`` and ``unix:///path/to.sock``.
    An empty address means the default UDP address.
    """
    if not addr:
        addr = DEFAULT_STATS_ADDR

    if addr.startswith(UNIX_SCHEME):
        path = addr[len(UNIX_SCHEME):]
        if not path:
            raise ValueError(f"Missing socket path in address: {addr!r}")
        return None, None, path

    host, sep, port = addr.rpartition(":")
    if not sep or not host:
        raise ValueError(f"Address must be host:port, got {addr!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port_num = int(port)
    except ValueError:
        raise ValueError(f"Invalid port in address {addr!r}") from None
    if not 0 < port_num < 65536:
        raise ValueError(f"Port out of range in address {addr!r}")
    return host, port_num, None


class StatsdSink:
    """Blocking gauge/count/histogram/distribution calls against the agent."""

    def __init__(self, address: str = DEFAULT_STATS_ADDR, client=None, disable_telemetry: bool = True):
        self.address = address or DEFAULT_STATS_ADDR
        if client is not None:
            self.client = client
            return

        host, port, socket_path = parse_address(self.address)
        try:
            if socket_path is None:
                socket.getaddrinfo(host, port, type=socket.SOCK_DGRAM)
            self.client = DogStatsd(
                host=host or "localhost",
                port=port or 8125,
                socket_path=socket_path,
                disable_telemetry=disable_telemetry,
            )
        except (OSError, ValueError) as e:
            raise SinkError(f"Failed to create DogStatsD client for {self.address}: {e}") from e

        logger.info(f"DogStatsD sink created for {self.address}")

    def _send(self, method: str, name: str, value, tags: List[str], sample_rate: float):
        try:
            getattr(self.client, method)(name, value, tags=tags, sample_rate=sample_rate)
        except Exception as e:
            raise SinkError(f"Failed to send {method} {name}: {e}") from e

    def gauge(self, name: str, value: float, tags: List[str], sample_rate: float = 1):
        self._send("gauge", name, value, tags, sample_rate)

    def count(self, name: str, value: float, tags: List[str], sample_rate: float = 1):
        self._send("increment", name, value, tags, sample_rate)

    def histogram(self, name: str, value: float, tags: List[str], sample_rate: float = 1):
        self._send("histogram", name, value, tags, sample_rate)

    def distribution(self, name: str, value: float, tags: List[str], sample_rate: float = 1):
        self._send("distribution", name, value, tags, sample_rate)

    def close(self):
        """Flush buffered datagrams and release the socket."""
        try:
            self.client.flush()
            self.client.close_socket()
        except Exception as e:
            raise SinkError(f"Failed to close DogStatsD client: {e}") from e
        logger.info(f"DogStatsD sink for {self.address} closed")
