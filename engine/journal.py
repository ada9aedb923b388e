"""
Bot Journal

Writes chat entries, log lines and connection status through the bot
repository on behalf of the session controller and command executor.
Storage failures are logged to the process log and swallowed: a lost
record must never stop a relay action.
"""

import logging
from typing import Optional, TYPE_CHECKING

from persistence.models import utcnow

if TYPE_CHECKING:
    from persistence.bot_repository import BotRepository

logger = logging.getLogger(__name__)


class BotJournal:
    """Fire-and-forget persistence for session events"""

    def __init__(self, repository: 'BotRepository'):
        self.repository = repository

    def log(self, connection_id: str, level: str, message: str) -> Optional[dict]:
        """Append a bot log line (level: info, warning, error)"""
        try:
            return self.repository.create_log(connection_id, level, message)
        except Exception as e:
            logger.error(f"Failed to store {level} log for {connection_id}: {e}", exc_info=True)
            return None

    def chat(self, connection_id: str, username: str, message: str,
             message_type: str = 'chat', is_command: bool = False) -> dict:
        """
        Append a chat entry.

        Returns:
            The stored entry, or an unsaved entry (id None) if storage failed,
            so the caller can still relay it.
        """
        try:
            return self.repository.create_chat_message(
                connection_id, username, message,
                message_type=message_type, is_command=is_command,
            )
        except Exception as e:
            logger.error(f"Failed to store {message_type} message for {connection_id}: {e}", exc_info=True)
            return {
                'id': None,
                'connectionId': connection_id,
                'username': username,
                'message': message,
                'messageType': message_type,
                'isCommand': is_command,
                'timestamp': utcnow().isoformat(),
            }

    def set_connected(self, connection_id: str, connected: bool) -> None:
        try:
            self.repository.update_connection(connection_id, is_connected=connected)
        except Exception as e:
            logger.error(f"Failed to mark {connection_id} connected={connected}: {e}", exc_info=True)

    def record_ping(self, connection_id: str, ping: int) -> None:
        try:
            self.repository.update_connection(connection_id, last_ping=ping)
        except Exception as e:
            logger.error(f"Failed to store ping for {connection_id}: {e}", exc_info=True)
