"""
Engine Package

Session relay for the bot control panel: the protocol client contract, the
session registry and lifecycle controller, the command executor and the
control socket relay.
"""

from .client import (
    AddressError,
    ClientFactory,
    ClientOptions,
    ProtocolClient,
    load_client_factory,
    parse_server_address,
)
from .commands import CommandExecutor
from .journal import BotJournal
from .lifecycle import DisconnectReason, SessionController
from .registry import Session, SessionRegistry
from .relay import FrameError, RelayHandler, SocketIOTransport

__all__ = [
    'AddressError',
    'BotJournal',
    'ClientFactory',
    'ClientOptions',
    'CommandExecutor',
    'DisconnectReason',
    'FrameError',
    'ProtocolClient',
    'RelayHandler',
    'Session',
    'SessionController',
    'SessionRegistry',
    'SocketIOTransport',
    'load_client_factory',
    'parse_server_address',
]
