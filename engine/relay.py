"""
Control Socket Relay

Terminates the browser control sockets. Inbound frames are decoded and
dispatched to the session controller or command executor; outbound events go
back as {"type", "data"} frames on the Socket.IO "message" event.

A bad frame never closes the socket: it is answered with an error frame.
"""

import json
import logging
import threading
from typing import Any, Callable, Dict, Tuple

from .commands import CommandExecutor
from .lifecycle import DisconnectReason, SessionController
from .messages import (
    CONNECT_BOT, DISCONNECT_BOT, ERROR, INVALID_MESSAGE_FORMAT, MOVE_BOT,
    SEND_CHAT, SEND_COMMAND, UNKNOWN_MESSAGE_TYPE, envelope,
)

logger = logging.getLogger(__name__)


class FrameError(ValueError):
    """Inbound frame is not a well-formed {type, data} object"""


def decode_frame(raw: Any) -> Tuple[str, Dict]:
    """
    Decode an inbound frame.

    Args:
        raw: JSON text or an already-decoded object

    Returns:
        (type, data); data defaults to {} when absent

    Raises:
        FrameError: if the frame is not an object with a string type and object data
    """
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            raw = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as e:
            raise FrameError(f"not JSON: {e}") from e

    if not isinstance(raw, dict):
        raise FrameError(f"expected an object, got {type(raw).__name__}")

    message_type = raw.get('type')
    if not isinstance(message_type, str) or not message_type:
        raise FrameError("missing message type")

    data = raw.get('data', {})
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrameError(f"data must be an object, got {type(data).__name__}")
    return message_type, data


def require_fields(data: Dict, *names: str) -> Tuple[str, ...]:
    """Pull required string fields out of a frame's data"""
    values = []
    for name in names:
        value = data.get(name)
        if not isinstance(value, str):
            raise FrameError(f"missing or non-string field '{name}'")
        values.append(value)
    return tuple(values)


class SocketIOTransport:
    """
    Outbound side of the control sockets.

    Tracks which Socket.IO sessions are open; frames for closed sockets are
    dropped.
    """

    EVENT = 'message'

    def __init__(self, socketio, namespace: str = '/'):
        self.socketio = socketio
        self.namespace = namespace
        self._open = set()
        self._lock = threading.Lock()

    def register(self, sid: str) -> None:
        with self._lock:
            self._open.add(sid)

    def unregister(self, sid: str) -> None:
        with self._lock:
            self._open.discard(sid)

    def is_open(self, sid: str) -> bool:
        with self._lock:
            return sid in self._open

    def open_count(self) -> int:
        with self._lock:
            return len(self._open)

    def send(self, sid: str, message_type: str, data: Dict = None) -> bool:
        if not self.is_open(sid):
            logger.debug(f"Dropping {message_type} for closed socket {sid}")
            return False
        try:
            self.socketio.emit(self.EVENT, envelope(message_type, data), to=sid, namespace=self.namespace)
        except Exception as e:
            logger.error(f"Failed to send {message_type} to {sid}: {e}", exc_info=True)
            return False
        return True


class RelayHandler:
    """Decodes control socket frames and routes them to session operations"""

    def __init__(self, controller: SessionController, executor: CommandExecutor, transport):
        self.controller = controller
        self.executor = executor
        self.transport = transport

        self._handlers: Dict[str, Callable[[str, Dict], None]] = {
            CONNECT_BOT: self._handle_connect,
            DISCONNECT_BOT: self._handle_disconnect,
            SEND_CHAT: self._handle_send_chat,
            SEND_COMMAND: self._handle_send_command,
            MOVE_BOT: self._handle_move,
        }

    # =========================================================================
    # Socket lifecycle
    # =========================================================================

    def on_open(self, sid: str) -> None:
        self.transport.register(sid)
        logger.info(f"Control socket connected: {sid}")

    def on_close(self, sid: str) -> None:
        self.transport.unregister(sid)
        closed = self.controller.close_socket(sid)
        logger.info(f"Control socket disconnected: {sid} ({closed} bot session(s) closed)")

    # =========================================================================
    # Inbound frames
    # =========================================================================

    def on_frame(self, sid: str, raw: Any) -> None:
        try:
            message_type, data = decode_frame(raw)
        except FrameError as e:
            logger.warning(f"Malformed frame from {sid}: {e}")
            self.transport.send(sid, ERROR, {'message': INVALID_MESSAGE_FORMAT})
            return

        handler = self._handlers.get(message_type)
        if handler is None:
            logger.warning(f"Unknown message type '{message_type}' from {sid}")
            self.transport.send(sid, ERROR, {'message': UNKNOWN_MESSAGE_TYPE})
            return

        logger.debug(f"Received {message_type} from {sid}: {data}")
        try:
            handler(sid, data)
        except FrameError as e:
            logger.warning(f"Malformed {message_type} from {sid}: {e}")
            self.transport.send(sid, ERROR, {'message': INVALID_MESSAGE_FORMAT})
        except Exception as e:
            logger.error(f"💥 Error handling {message_type} from {sid}: {e}", exc_info=True)
            self.transport.send(sid, ERROR, {'message': str(e) or 'Internal error'})

    def _handle_connect(self, sid: str, data: Dict) -> None:
        connection_id, username, server_ip, version = require_fields(
            data, 'connectionId', 'username', 'serverIp', 'version')
        self.controller.connect(sid, connection_id, username, server_ip, version)

    def _handle_disconnect(self, sid: str, data: Dict) -> None:
        connection_id, = require_fields(data, 'connectionId')
        self.controller.disconnect(connection_id, DisconnectReason.USER)

    def _handle_send_chat(self, sid: str, data: Dict) -> None:
        connection_id, message = require_fields(data, 'connectionId', 'message')
        self.executor.send_chat(connection_id, message)

    def _handle_send_command(self, sid: str, data: Dict) -> None:
        connection_id, command = require_fields(data, 'connectionId', 'command')
        self.executor.send_command(connection_id, command)

    def _handle_move(self, sid: str, data: Dict) -> None:
        connection_id, direction, action = require_fields(data, 'connectionId', 'direction', 'action')
        self.executor.move(connection_id, direction, action)
