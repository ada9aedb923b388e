"""
Protocol Client Contract

The game protocol itself (handshake, packets, entity tracking) lives in an
external client library. This module defines the small surface the relay
needs from it, the options used to create one, and how a backend is chosen.

A backend is a factory: factory(options, listener) -> ProtocolClient.
The listener is a required argument so it is attached before the client can
report anything; a factory must never emit events before it returns.
"""

import importlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .events import ClientEvent, Position

logger = logging.getLogger(__name__)

DEFAULT_SERVER_PORT = 25565

EventListener = Callable[[ClientEvent], None]


class AddressError(ValueError):
    """Server address could not be parsed"""


@dataclass(frozen=True)
class ClientOptions:
    """Everything needed to open one bot session"""
    host: str
    port: int
    username: str
    version: str
    auth: str = 'offline'


def parse_server_address(server_ip: str, default_port: int = DEFAULT_SERVER_PORT) -> Tuple[str, int]:
    """
    Split "host[:port]" on the first colon.

    Args:
        server_ip: Address as typed by the user
        default_port: Port used when none is given

    Returns:
        (host, port)

    Raises:
        AddressError: if the host is empty or the port is not a valid number
    """
    host, _, port_text = server_ip.strip().partition(':')
    if not host:
        raise AddressError(f"Invalid server address: '{server_ip}'")
    if not port_text:
        return host, default_port
    try:
        port = int(port_text)
    except ValueError:
        raise AddressError(f"Invalid port in server address: '{server_ip}'") from None
    if not 0 < port < 65536:
        raise AddressError(f"Port out of range in server address: '{server_ip}'")
    return host, port


class ProtocolClient(ABC):
    """
    Live handle on one bot session.

    The session that owns a client is the only thing allowed to quit it.
    """

    @property
    @abstractmethod
    def username(self) -> str:
        """Name the bot is logged in as"""

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        """True once the player is spawned and telemetry can be read"""

    @property
    @abstractmethod
    def ping(self) -> Optional[int]:
        """Last round-trip latency in milliseconds"""

    @property
    @abstractmethod
    def position(self) -> Optional[Position]:
        """Current entity position, None before the entity exists"""

    @abstractmethod
    def chat(self, text: str) -> None:
        """Send a chat line (commands are chat lines starting with '/')"""

    @abstractmethod
    def set_control_state(self, control: str, state: bool) -> None:
        """Press or release a movement control (forward, back, left, right, jump)"""

    @abstractmethod
    def quit(self) -> None:
        """Leave the server; the client reports Ended afterwards"""


ClientFactory = Callable[[ClientOptions, EventListener], ProtocolClient]


def load_client_factory(target: str) -> ClientFactory:
    """
    Resolve a "module:callable" backend name.

    Raises:
        ValueError: if target is not in module:callable form
        ImportError / AttributeError: if the backend cannot be found
    """
    module_name, _, attr = target.partition(':')
    if not module_name or not attr:
        raise ValueError(f"Client factory must look like 'module:callable', got '{target}'")

    module = importlib.import_module(module_name)
    factory = getattr(module, attr)
    logger.info(f"Using protocol client backend {target}")
    return factory
