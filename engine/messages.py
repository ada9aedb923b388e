"""
Control Socket Message Types

Every frame in either direction is {"type": <one of these>, "data": {...}}.
"""

# Browser -> server
CONNECT_BOT = 'connect_bot'
DISCONNECT_BOT = 'disconnect_bot'
SEND_CHAT = 'send_chat'
SEND_COMMAND = 'send_command'
MOVE_BOT = 'move_bot'

# Server -> browser
BOT_CONNECTED = 'bot_connected'
BOT_DISCONNECTED = 'bot_disconnected'
CHAT_MESSAGE = 'chat_message'
PING_UPDATE = 'ping_update'
POSITION_UPDATE = 'position_update'
CONNECTION_ERROR = 'connection_error'
BOT_ERROR = 'bot_error'
ERROR = 'error'

INVALID_MESSAGE_FORMAT = 'Invalid message format'
UNKNOWN_MESSAGE_TYPE = 'Unknown message type'


def envelope(message_type: str, data: dict = None) -> dict:
    return {'type': message_type, 'data': data if data is not None else {}}
