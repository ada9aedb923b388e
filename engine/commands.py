"""
Command Executor

Applies chat, console command and movement actions from the panel to a live
bot. Every action is silently ignored when the connection id has no live
session (never connected, still connecting, or already torn down).
"""

import logging
from typing import Callable, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .client import ProtocolClient
    from .journal import BotJournal
    from .lifecycle import SessionController
    from .registry import Session

logger = logging.getLogger(__name__)

WALK_CONTROLS = ('forward', 'back', 'left', 'right')
JUMP = 'jump'
MOVE_ACTIONS = ('start', 'stop')


class CommandExecutor:
    """Chat, command and movement actions against live sessions"""

    def __init__(self, controller: 'SessionController', journal: 'BotJournal',
                 start_task: Callable, sleep: Callable, jump_pulse: float = 0.1):
        self.controller = controller
        self.journal = journal
        self.start_task = start_task
        self.sleep = sleep
        self.jump_pulse = jump_pulse

    def _live_session(self, connection_id: str, action: str) -> Optional['Session']:
        session = self.controller.get_session(connection_id)
        if session is None:
            logger.debug(f"{action} ignored: no live session for {connection_id}")
        return session

    def send_chat(self, connection_id: str, message: str) -> bool:
        """Say message in game chat as the bot"""
        with self.controller.lock_for(connection_id):
            session = self._live_session(connection_id, 'send_chat')
            if session is None:
                return False

            session.client.chat(message)
            logger.info(f"💬 [{connection_id}] {session.client.username}: {message}")
            self.journal.chat(connection_id, session.client.username, message,
                              message_type='chat', is_command=False)
            self.journal.log(connection_id, 'info', f"Sent chat: {message}")
            return True

    def send_command(self, connection_id: str, command: str) -> bool:
        """Run a console command (sent through chat, e.g. "/help")"""
        with self.controller.lock_for(connection_id):
            session = self._live_session(connection_id, 'send_command')
            if session is None:
                return False

            session.client.chat(command)
            logger.info(f"⌨️ [{connection_id}] {session.client.username} ran {command}")
            self.journal.chat(connection_id, session.client.username, command,
                              message_type='console', is_command=True)
            self.journal.log(connection_id, 'info', f"Executed command: {command}")
            return True

    def move(self, connection_id: str, direction: str, action: str) -> bool:
        """
        Press or release a movement control.

        forward/back/left/right follow start/stop. Jump is a momentary press:
        start holds it for jump_pulse seconds, stop does nothing.

        Returns:
            True if a control was changed
        """
        with self.controller.lock_for(connection_id):
            session = self._live_session(connection_id, 'move')
            if session is None:
                return False

            if direction in WALK_CONTROLS:
                session.client.set_control_state(direction, action == 'start')
                return True

            if direction == JUMP:
                if action != 'start':
                    return False
                session.client.set_control_state(JUMP, True)
                self.start_task(self._release_jump, session.client, connection_id)
                return True

            logger.debug(f"Unknown move direction '{direction}' for {connection_id}")
            return False

    def _release_jump(self, client: 'ProtocolClient', connection_id: str) -> None:
        self.sleep(self.jump_pulse)
        try:
            client.set_control_state(JUMP, False)
        except Exception as e:
            logger.error(f"Failed to release jump for {connection_id}: {e}", exc_info=True)
