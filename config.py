import os
from dataclasses import dataclass


@dataclass
class Config:
    """Configuration for the bot control panel"""

    # Flask settings
    SECRET_KEY: str = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-prod')
    HOST: str = os.environ.get('BOT_PANEL_HOST', '127.0.0.1')
    PORT: int = int(os.environ.get('BOT_PANEL_PORT', '5000'))
    DEBUG: bool = os.environ.get('FLASK_DEBUG', 'False').lower() == 'true'

    # Game server defaults
    DEFAULT_SERVER_PORT: int = 25565
    AUTH_MODE: str = 'offline'  # no credential verification

    # Session behaviour
    TELEMETRY_INTERVAL: float = 2.0   # seconds between ping/position updates
    JUMP_PULSE_SECONDS: float = 0.1   # how long the jump control stays pressed

    # Protocol client backend, as "module:callable". Empty = built-in simulator.
    BOT_CLIENT_FACTORY: str = os.environ.get('BOT_CLIENT_FACTORY', '')

    # Paths
    BASE_DIR: str = os.path.dirname(os.path.abspath(__file__))
    DATA_DIR: str = os.path.join(BASE_DIR, 'data')
    LOG_DIR: str = os.path.join(BASE_DIR, 'logs')

    # Database
    @property
    def DATABASE_URL(self) -> str:
        override = os.environ.get('BOT_DATABASE_URL')
        if override:
            return override
        return f'sqlite:///{os.path.join(self.DATA_DIR, "bot_panel.db")}'

    def __post_init__(self):
        """Ensure directories exist"""
        os.makedirs(self.DATA_DIR, exist_ok=True)
        os.makedirs(self.LOG_DIR, exist_ok=True)


# Create global config instance
config = Config()
