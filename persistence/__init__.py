"""
Persistence Module

SQLite database for tracking:
- Bot connection records
- Chat messages per connection
- Bot log lines per connection
"""

from .models import (
    BotConnection,
    ChatMessage,
    BotLog,
)
from .database import init_db, get_session, session_scope, close_db
from .bot_repository import BotRepository

__all__ = [
    # Models
    'BotConnection',
    'ChatMessage',
    'BotLog',
    # Database
    'init_db',
    'get_session',
    'session_scope',
    'close_db',
    # Repository
    'BotRepository',
]
