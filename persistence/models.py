"""
Database Models for the Bot Control Panel

Tracks:
- Bot connection requests and their live status
- Chat messages seen or sent by each bot
- Per-connection bot log lines
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column, String, Boolean, DateTime, Integer, ForeignKey, Index
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form the DateTime columns store"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


class BotConnection(Base):
    """
    A requested bot session against a game server.

    Created when the user asks for a bot, then updated by the session
    lifecycle (connected flag, last observed ping). Never deleted by the
    relay.
    """
    __tablename__ = 'bot_connections'

    id = Column(String(36), primary_key=True, default=_new_id)
    username = Column(String(100), nullable=False)
    server_ip = Column(String(255), nullable=False)
    version = Column(String(50), nullable=False)
    is_connected = Column(Boolean, default=False, nullable=False)
    last_ping = Column(Integer)
    created_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        state = "connected" if self.is_connected else "disconnected"
        return f"<BotConnection({self.username}@{self.server_ip} {state})>"

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'username': self.username,
            'serverIp': self.server_ip,
            'version': self.version,
            'isConnected': bool(self.is_connected),
            'lastPing': self.last_ping,
            'createdAt': _iso(self.created_at),
        }


class ChatMessage(Base):
    """
    Chat line observed or sent by a bot.

    message_type is one of: 'chat', 'system', 'join', 'leave', 'death', 'console'
    """
    __tablename__ = 'chat_messages'

    id = Column(String(36), primary_key=True, default=_new_id)
    connection_id = Column(String(36), ForeignKey('bot_connections.id'), nullable=False)
    username = Column(String(100), nullable=False)
    message = Column(String(4000), nullable=False)
    message_type = Column(String(20), nullable=False, default='chat')
    is_command = Column(Boolean, default=False, nullable=False)
    timestamp = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index('idx_chat_connection', 'connection_id'),
    )

    def __repr__(self):
        return f"<ChatMessage({self.message_type}: {self.message[:30]}...)>"

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'connectionId': self.connection_id,
            'username': self.username,
            'message': self.message,
            'messageType': self.message_type,
            'isCommand': bool(self.is_command),
            'timestamp': _iso(self.timestamp),
        }


class BotLog(Base):
    """
    Log line attached to a bot connection.

    log_level is one of: 'info', 'warning', 'error'
    """
    __tablename__ = 'bot_logs'

    id = Column(String(36), primary_key=True, default=_new_id)
    connection_id = Column(String(36), ForeignKey('bot_connections.id'), nullable=False)
    log_level = Column(String(10), nullable=False, default='info')
    message = Column(String(4000), nullable=False)
    timestamp = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index('idx_log_connection', 'connection_id'),
    )

    def __repr__(self):
        return f"<BotLog({self.log_level}: {self.message[:30]}...)>"

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'connectionId': self.connection_id,
            'logLevel': self.log_level,
            'message': self.message,
            'timestamp': _iso(self.timestamp),
        }
