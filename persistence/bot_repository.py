"""
Bot Repository - Data Access Layer

Durable storage for bot connection records, chat messages and log lines.
Every method returns plain dicts (the JSON shape sent to the browser) so
callers never hold on to ORM instances outside a session.
"""

import logging
from typing import Optional, List, Dict

from .models import BotConnection, ChatMessage, BotLog
from .database import session_scope

logger = logging.getLogger(__name__)

# Columns a lifecycle update is allowed to touch
_UPDATABLE_CONNECTION_FIELDS = ('is_connected', 'last_ping')


class BotRepository:
    """
    Repository for bot connection, chat and log records.

    Provides methods for:
    - Connection records (create, read, live-field updates, listing)
    - Chat messages (append, list per connection)
    - Bot logs (append, list per connection)
    """

    # =========================================================================
    # Connections
    # =========================================================================

    def create_connection(self, username: str, server_ip: str, version: str) -> Dict:
        """Create a connection record for a requested bot session"""
        with session_scope() as session:
            connection = BotConnection(
                username=username,
                server_ip=server_ip,
                version=version,
                is_connected=False,
            )
            session.add(connection)
            session.flush()
            logger.info(f"Created connection {connection.id} for {username}@{server_ip}")
            return connection.to_dict()

    def get_connection(self, connection_id: str) -> Optional[Dict]:
        """Get a connection record (returns None if not found)"""
        with session_scope() as session:
            connection = session.get(BotConnection, connection_id)
            return connection.to_dict() if connection else None

    def update_connection(self, connection_id: str, **fields) -> Optional[Dict]:
        """
        Update the live fields of a connection record.

        Args:
            connection_id: Connection to update
            **fields: is_connected and/or last_ping

        Returns:
            Updated record, or None if the connection does not exist
        """
        unknown = set(fields) - set(_UPDATABLE_CONNECTION_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update connection fields: {sorted(unknown)}")

        with session_scope() as session:
            connection = session.get(BotConnection, connection_id)
            if connection is None:
                logger.debug(f"update_connection: no record for {connection_id}")
                return None
            for key, value in fields.items():
                setattr(connection, key, value)
            return connection.to_dict()

    def list_all_connections(self) -> List[Dict]:
        """All connection records, newest first"""
        with session_scope() as session:
            rows = session.query(BotConnection).order_by(BotConnection.created_at.desc()).all()
            return [row.to_dict() for row in rows]

    # =========================================================================
    # Chat Messages
    # =========================================================================

    def create_chat_message(self, connection_id: str, username: str, message: str,
                            message_type: str = 'chat', is_command: bool = False) -> Dict:
        """Append a chat message for a connection"""
        with session_scope() as session:
            entry = ChatMessage(
                connection_id=connection_id,
                username=username,
                message=message,
                message_type=message_type,
                is_command=is_command,
            )
            session.add(entry)
            session.flush()
            return entry.to_dict()

    def get_chat_messages(self, connection_id: str) -> List[Dict]:
        """Chat messages for a connection in timestamp order"""
        with session_scope() as session:
            rows = (session.query(ChatMessage)
                    .filter_by(connection_id=connection_id)
                    .order_by(ChatMessage.timestamp)
                    .all())
            return [row.to_dict() for row in rows]

    # =========================================================================
    # Logs
    # =========================================================================

    def create_log(self, connection_id: str, log_level: str, message: str) -> Dict:
        """Append a log line for a connection"""
        with session_scope() as session:
            entry = BotLog(
                connection_id=connection_id,
                log_level=log_level,
                message=message,
            )
            session.add(entry)
            session.flush()
            return entry.to_dict()

    def get_logs(self, connection_id: str) -> List[Dict]:
        """Log lines for a connection in timestamp order"""
        with session_scope() as session:
            rows = (session.query(BotLog)
                    .filter_by(connection_id=connection_id)
                    .order_by(BotLog.timestamp)
                    .all())
            return [row.to_dict() for row in rows]
