"""
Simulated Protocol Client

Offline stand-in for a real game server connection, used as the default
backend so the panel can be exercised without a server. It logs in after a
short delay, reports a wobbling ping, walks while movement controls are held
and answers a couple of slash commands.

Timing goes through the injected start_task/sleep pair so it runs on the
same cooperative loop as the rest of the app.
"""

import logging
import random
from typing import Callable, Dict, Optional

from .client import ClientOptions, EventListener, ProtocolClient
from .events import (
    ChatReceived, Ended, LoggedIn, PlayerJoined, Position, ServerMessage,
)

logger = logging.getLogger(__name__)

# Hostnames that refuse the connection, for trying out the failure path
UNREACHABLE_HOSTS = ('unreachable', 'invalid')

WALK_SPEED = 4.3        # blocks per second
STEP_SECONDS = 0.1


class SimulatedClient(ProtocolClient):
    """Fake server session driven by background tasks"""

    LOGIN_DELAY = 0.5
    SPAWN = Position(0.5, 64.0, 0.5)

    def __init__(self, options: ClientOptions, listener: EventListener,
                 start_task: Callable = None, sleep: Callable = None):
        if start_task is None or sleep is None:
            raise ValueError("SimulatedClient needs start_task and sleep")

        self._options = options
        self._listener = listener
        self._start_task = start_task
        self._sleep = sleep

        self._logged_in = False
        self._ended = False
        self._ping: Optional[int] = None
        self._position: Optional[Position] = None
        self._controls: Dict[str, bool] = {}

        logger.info(f"Simulated client for {options.username} -> {options.host}:{options.port} ({options.version})")
        self._start_task(self._run)

    # ------------------------------------------------------------------
    # ProtocolClient
    # ------------------------------------------------------------------

    @property
    def username(self) -> str:
        return self._options.username

    @property
    def is_ready(self) -> bool:
        return self._logged_in and not self._ended

    @property
    def ping(self) -> Optional[int]:
        return self._ping

    @property
    def position(self) -> Optional[Position]:
        return self._position

    def chat(self, text: str) -> None:
        if not self.is_ready:
            return
        if text.startswith('/'):
            self._start_task(self._answer_command, text)
        else:
            self._emit(ChatReceived(self.username, text))

    def set_control_state(self, control: str, state: bool) -> None:
        self._controls[control] = state

    def quit(self) -> None:
        if self._ended:
            return
        self._start_task(self._finish, 'Quit')

    # ------------------------------------------------------------------
    # Background behaviour
    # ------------------------------------------------------------------

    def _emit(self, event) -> None:
        if not self._ended or isinstance(event, Ended):
            self._listener(event)

    def _finish(self, reason: str) -> None:
        if self._ended:
            return
        self._ended = True
        self._emit(Ended(reason))

    def _run(self) -> None:
        self._sleep(self.LOGIN_DELAY)
        if self._ended:
            return
        if self._options.host.lower() in UNREACHABLE_HOSTS:
            self._finish(f"connect ECONNREFUSED {self._options.host}:{self._options.port}")
            return

        self._position = self.SPAWN
        self._ping = random.randint(20, 60)
        self._logged_in = True
        self._emit(LoggedIn())
        self._emit(ServerMessage(f"{self.username} joined the game"))
        self._emit(PlayerJoined(self.username))

        ticks = 0
        while not self._ended:
            self._sleep(STEP_SECONDS)
            self._walk()
            ticks += 1
            if ticks % 10 == 0:
                self._ping = max(1, self._ping + random.randint(-5, 5))

    def _walk(self) -> None:
        step = WALK_SPEED * STEP_SECONDS
        dx = dz = 0.0
        if self._controls.get('forward'):
            dz -= step
        if self._controls.get('back'):
            dz += step
        if self._controls.get('left'):
            dx -= step
        if self._controls.get('right'):
            dx += step
        dy = 1.0 if self._controls.get('jump') else 0.0
        if dx or dy or dz:
            p = self._position
            self._position = Position(p.x + dx, max(self.SPAWN.y, p.y + dy), p.z + dz)
        elif self._position.y > self.SPAWN.y:
            p = self._position
            self._position = Position(p.x, self.SPAWN.y, p.z)

    def _answer_command(self, text: str) -> None:
        self._sleep(STEP_SECONDS)
        name = text[1:].split(' ', 1)[0].lower()
        if name == 'help':
            for line in ('--- Showing help page 1 of 1 ---',
                         '/help - Shows this list',
                         '/ping - Shows your latency',
                         '/quit - Leaves the server'):
                self._emit(ServerMessage(line))
        elif name == 'ping':
            self._emit(ServerMessage(f"Pong! {self._ping} ms"))
        elif name == 'quit':
            self._finish('Disconnected by command')
        else:
            self._emit(ServerMessage('Unknown command. Type "/help" for help.'))
