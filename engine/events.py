"""
Protocol Client Events

Everything a protocol client reports about its session arrives as one of
these typed events, delivered to the listener handed to the client factory.
The session controller consumes them in a single handler.
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Position:
    """Bot entity position in world coordinates"""
    x: float
    y: float
    z: float

    def to_dict(self) -> dict:
        """Fixed two-decimal text, as shown in the panel"""
        return {
            'x': f"{self.x:.2f}",
            'y': f"{self.y:.2f}",
            'z': f"{self.z:.2f}",
        }


@dataclass(frozen=True)
class LoggedIn:
    """Handshake and login completed"""


@dataclass(frozen=True)
class ChatReceived:
    """Chat line from a participant"""
    username: str
    message: str


@dataclass(frozen=True)
class ServerMessage:
    """Any textual message from the server (chat or not)"""
    text: str


@dataclass(frozen=True)
class PlayerJoined:
    username: str


@dataclass(frozen=True)
class PlayerLeft:
    username: str


@dataclass(frozen=True)
class Died:
    """The bot's own entity died"""


@dataclass(frozen=True)
class ClientError:
    """Runtime error reported by the client; may or may not be followed by Ended"""
    message: str


@dataclass(frozen=True)
class Ended:
    """Session is over (kicked, connection lost, or quit)"""
    reason: str = 'Connection closed'


ClientEvent = Union[
    LoggedIn, ChatReceived, ServerMessage, PlayerJoined,
    PlayerLeft, Died, ClientError, Ended,
]
