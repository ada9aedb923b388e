"""
Session Lifecycle Controller

Drives each connection id through Connecting -> Live -> Terminated:
- connect() creates the protocol client for a request
- handle_event() is the single consumer of that client's event stream
- teardown() ends a live session exactly once, whoever asks first
- telemetry_tick() samples ping/position for the panel every interval

Only one live session exists per connection id. A new connect request for an
id first tears down whatever live session or pending attempt it had.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional

from .chat_filter import is_system_message
from .client import (
    ClientFactory, ClientOptions, DEFAULT_SERVER_PORT, ProtocolClient,
    parse_server_address,
)
from .events import (
    ChatReceived, ClientError, ClientEvent, Died, Ended, LoggedIn,
    PlayerJoined, PlayerLeft, ServerMessage,
)
from .journal import BotJournal
from .messages import (
    BOT_CONNECTED, BOT_DISCONNECTED, BOT_ERROR, CHAT_MESSAGE,
    CONNECTION_ERROR, PING_UPDATE, POSITION_UPDATE,
)
from .registry import Session, SessionRegistry
from .telemetry import TelemetryTimer

logger = logging.getLogger(__name__)

SERVER_USERNAME = 'Server'


class DisconnectReason(Enum):
    """Why a live session is being torn down"""
    ENDED = "ended"                  # the client reported the session is over
    USER = "user"                    # disconnect_bot from the panel
    SOCKET_CLOSED = "socket_closed"  # owning control socket went away
    ADMIN = "admin"                  # terminated through the admin API
    REPLACED = "replaced"            # a new connect request for the same id
    SHUTDOWN = "shutdown"            # process exit


@dataclass
class ConnectAttempt:
    """
    One connect request, from factory call until login or failure.

    Events the client reports before the factory has returned are buffered
    and replayed once the attempt knows its client.
    """
    connection_id: str
    sid: str
    username: str
    client: Optional[ProtocolClient] = None
    bound: bool = False
    backlog: List[ClientEvent] = field(default_factory=list)


class _IdLock:
    """Reentrant lock plus the number of holders and waiters"""

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class SessionController:
    """
    Owns the session registry and every state transition of a bot session.

    Args:
        transport: outbound side of the control sockets (send / is_open)
        journal: persistence wrapper for chat, logs and connection status
        client_factory: backend creating ProtocolClient instances
        start_task: runs a callable on a background task
        sleep: cooperative sleep used by background tasks
        telemetry_interval: seconds between ping/position samples
    """

    def __init__(self, transport, journal: BotJournal, client_factory: ClientFactory,
                 start_task: Callable, sleep: Callable,
                 telemetry_interval: float = 2.0,
                 default_port: int = DEFAULT_SERVER_PORT,
                 auth_mode: str = 'offline'):
        self.transport = transport
        self.journal = journal
        self.client_factory = client_factory
        self.start_task = start_task
        self.sleep = sleep
        self.telemetry_interval = telemetry_interval
        self.default_port = default_port
        self.auth_mode = auth_mode

        self.registry = SessionRegistry()
        self._pending: Dict[str, ConnectAttempt] = {}
        self._locks: Dict[str, _IdLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def lock_for(self, connection_id: str) -> Iterator[None]:
        """
        Hold the lock serializing every operation on one connection id.

        Locks exist only while someone holds or waits on them, so ids that
        come and go (or never had a session) leave nothing behind.
        """
        with self._locks_guard:
            entry = self._locks.get(connection_id)
            if entry is None:
                entry = self._locks[connection_id] = _IdLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[connection_id]

    # =========================================================================
    # Queries
    # =========================================================================

    def get_session(self, connection_id: str) -> Optional[Session]:
        return self.registry.get(connection_id)

    def is_active(self, connection_id: str) -> bool:
        return connection_id in self.registry

    def active_ids(self) -> List[str]:
        return self.registry.ids()

    def is_pending(self, connection_id: str) -> bool:
        return connection_id in self._pending

    # =========================================================================
    # Connecting
    # =========================================================================

    def connect(self, sid: str, connection_id: str, username: str,
                server_ip: str, version: str) -> None:
        """Start a bot for connection_id; the result arrives later as events"""
        with self.lock_for(connection_id):
            self.teardown(connection_id, DisconnectReason.REPLACED)
            self._abort_pending(connection_id)

            attempt = ConnectAttempt(connection_id, sid, username)
            try:
                host, port = parse_server_address(server_ip, self.default_port)
                options = ClientOptions(host, port, username, version, auth=self.auth_mode)
                logger.info(f"🔌 Connecting {username} to {host}:{port} (version {version}) for {connection_id}")

                self._pending[connection_id] = attempt
                client = self.client_factory(options, lambda event: self._receive(attempt, event))
            except Exception as e:
                logger.error(f"Failed to create client for {connection_id}: {e}", exc_info=True)
                if self._pending.get(connection_id) is attempt:
                    del self._pending[connection_id]
                self._report_connect_failure(attempt, str(e) or 'Failed to connect to server')
                return

            attempt.client = client
            attempt.bound = True
            backlog, attempt.backlog = attempt.backlog, []
            for event in backlog:
                self.handle_event(attempt, event)

    def _receive(self, attempt: ConnectAttempt, event: ClientEvent) -> None:
        with self.lock_for(attempt.connection_id):
            if not attempt.bound:
                attempt.backlog.append(event)
                return
            self.handle_event(attempt, event)

    def _abort_pending(self, connection_id: str) -> None:
        attempt = self._pending.pop(connection_id, None)
        if attempt is None:
            return
        logger.info(f"Abandoning pending connect for {connection_id}")
        self._quit_client(attempt.client, connection_id)

    def _report_connect_failure(self, attempt: ConnectAttempt, message: str) -> None:
        logger.warning(f"❌ Connect failed for {attempt.connection_id}: {message}")
        self.journal.log(attempt.connection_id, 'error', f"Failed to connect: {message}")
        self.transport.send(attempt.sid, CONNECTION_ERROR, {'message': message})

    # =========================================================================
    # Event stream
    # =========================================================================

    def handle_event(self, attempt: ConnectAttempt, event: ClientEvent) -> None:
        """Apply one client event to the session state of attempt.connection_id"""
        connection_id = attempt.connection_id
        with self.lock_for(connection_id):
            pending = self._pending.get(connection_id) is attempt
            session = self.registry.get(connection_id)
            live = session is not None and attempt.client is not None and session.client is attempt.client

            if not pending and not live:
                logger.debug(f"Ignoring {type(event).__name__} from stale client for {connection_id}")
                return

            if isinstance(event, ClientError):
                self._on_client_error(attempt, event)
            elif isinstance(event, LoggedIn):
                if pending:
                    self._go_live(attempt)
            elif isinstance(event, Ended):
                if live:
                    self.teardown(connection_id, DisconnectReason.ENDED)
                else:
                    del self._pending[connection_id]
                    self._report_connect_failure(attempt, event.reason)
            elif not live:
                logger.debug(f"Ignoring {type(event).__name__} before login for {connection_id}")
            elif isinstance(event, ChatReceived):
                self._relay_chat(session, event.username, event.message, 'chat')
            elif isinstance(event, ServerMessage):
                if is_system_message(event.text):
                    self._relay_chat(session, SERVER_USERNAME, event.text, 'system')
            elif isinstance(event, PlayerJoined):
                self._relay_chat(session, SERVER_USERNAME, f"{event.username} joined the game", 'join')
            elif isinstance(event, PlayerLeft):
                self._relay_chat(session, SERVER_USERNAME, f"{event.username} left the game", 'leave')
            elif isinstance(event, Died):
                self._relay_chat(session, SERVER_USERNAME, f"{session.client.username} died", 'death')
            else:
                logger.warning(f"Unhandled client event {event!r} for {connection_id}")

    def _go_live(self, attempt: ConnectAttempt) -> None:
        connection_id = attempt.connection_id
        del self._pending[connection_id]

        session = Session(connection_id, attempt.sid, attempt.client, attempt.username)
        session.timer = TelemetryTimer(
            lambda: self.telemetry_tick(connection_id),
            self.telemetry_interval,
            self.start_task,
            self.sleep,
            name=connection_id,
        )
        self.registry.put(connection_id, session)
        logger.info(f"✅ Bot {attempt.username} logged in ({connection_id})")

        self.journal.set_connected(connection_id, True)
        self.journal.log(connection_id, 'info', f"Bot {attempt.username} successfully logged into server")
        self.transport.send(session.sid, BOT_CONNECTED, {
            'connectionId': connection_id,
            'username': attempt.username,
        })

        position = session.client.position
        if position is not None:
            self.transport.send(session.sid, POSITION_UPDATE, position.to_dict())

        # teardown may have run while the writes above were in flight
        if self.registry.get(connection_id) is session:
            session.timer.start()

    def _on_client_error(self, attempt: ConnectAttempt, event: ClientError) -> None:
        logger.warning(f"⚠️ Bot error for {attempt.connection_id}: {event.message}")
        self.journal.log(attempt.connection_id, 'error', f"Bot error: {event.message}")
        self.transport.send(attempt.sid, BOT_ERROR, {'message': event.message})

    def _relay_chat(self, session: Session, username: str, message: str, message_type: str) -> None:
        entry = self.journal.chat(session.connection_id, username, message, message_type=message_type)
        self.transport.send(session.sid, CHAT_MESSAGE, entry)

    # =========================================================================
    # Telemetry
    # =========================================================================

    def telemetry_tick(self, connection_id: str) -> None:
        """Send one ping_update and position_update for a live session"""
        with self.lock_for(connection_id):
            session = self.registry.get(connection_id)
            if session is None:
                return
            if not self.transport.is_open(session.sid) or not session.client.is_ready:
                return

            ping = session.client.ping or 0
            self.journal.record_ping(connection_id, ping)
            self.transport.send(session.sid, PING_UPDATE, {'ping': ping})

            position = session.client.position
            if position is not None:
                self.transport.send(session.sid, POSITION_UPDATE, position.to_dict())

    # =========================================================================
    # Teardown
    # =========================================================================

    def teardown(self, connection_id: str, reason: DisconnectReason,
                 owner_sid: Optional[str] = None) -> bool:
        """
        End the live session for connection_id.

        Safe to call any number of times: only the call that removes the
        session from the registry has side effects.

        Args:
            owner_sid: when given, only a session owned by this socket is
                torn down

        Returns:
            True if a session was torn down by this call
        """
        with self.lock_for(connection_id):
            session = self.registry.get(connection_id)
            if session is None:
                return False
            if owner_sid is not None and session.sid != owner_sid:
                logger.debug(f"{connection_id} now belongs to {session.sid}, not {owner_sid}")
                return False
            self.registry.remove(connection_id)

            logger.info(f"🛑 Tearing down {connection_id} ({reason.value})")
            if session.timer is not None:
                session.timer.cancel()
            if reason is not DisconnectReason.ENDED:
                self._quit_client(session.client, connection_id)

            self.journal.set_connected(connection_id, False)
            if reason is DisconnectReason.ENDED:
                self.journal.log(connection_id, 'warning', f"Bot {session.username} disconnected from server")

            if self.transport.is_open(session.sid):
                self.transport.send(session.sid, BOT_DISCONNECTED, {'connectionId': connection_id})
            return True

    def disconnect(self, connection_id: str, reason: DisconnectReason = DisconnectReason.USER) -> bool:
        """Explicit disconnect: tear down a live session or drop a pending one"""
        with self.lock_for(connection_id):
            torn_down = self.teardown(connection_id, reason)
            self._abort_pending(connection_id)
            return torn_down

    def close_socket(self, sid: str) -> int:
        """
        Control socket closed: end every session and attempt it owned.

        Returns:
            Number of live sessions torn down
        """
        count = 0
        for session in self.registry.find_by_socket(sid):
            if self.teardown(session.connection_id, DisconnectReason.SOCKET_CLOSED, owner_sid=sid):
                count += 1
        for connection_id, attempt in list(self._pending.items()):
            if attempt.sid == sid:
                with self.lock_for(connection_id):
                    if self._pending.get(connection_id) is attempt:
                        self._abort_pending(connection_id)
        return count

    def shutdown(self) -> None:
        """Tear down everything (process exit)"""
        for connection_id in self.registry.ids():
            self.teardown(connection_id, DisconnectReason.SHUTDOWN)
        for connection_id in list(self._pending):
            with self.lock_for(connection_id):
                self._abort_pending(connection_id)

    def _quit_client(self, client: Optional[ProtocolClient], connection_id: str) -> None:
        if client is None:
            return
        try:
            client.quit()
        except Exception as e:
            logger.error(f"Error quitting client for {connection_id}: {e}", exc_info=True)
