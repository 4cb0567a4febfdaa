import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Matchmaking service configuration settings"""

    # Discord settings
    DISCORD_TOKEN = os.getenv('DISCORD_TOKEN')
    DISCORD_CHANNEL_ID = int(os.getenv('DISCORD_CHANNEL_ID', 0))  # 0 = listen in every channel
    OWNER_DISCORD_ID = int(os.getenv('OWNER_DISCORD_ID', 0))

    # Store settings
    STORE_BACKEND = os.getenv('STORE_BACKEND', 'sql').lower()  # "sql" or "redis"
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///matchmaking.db')
    DATABASE_BUSY_TIMEOUT = float(os.getenv('DATABASE_BUSY_TIMEOUT', '15'))
    REDIS_URL = os.getenv('REDIS_URL')

    # HTTP API settings
    API_HOST = os.getenv('API_HOST', '0.0.0.0')
    API_PORT = int(os.getenv('API_PORT', '3001'))

    # Bot settings
    COMMAND_PREFIX = os.getenv('COMMAND_PREFIX', '!')
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_DIR = os.getenv('LOG_DIR', 'logs')  # empty string disables file logging

    # Matchmaking settings
    MAX_CLAIM_ATTEMPTS = int(os.getenv('MAX_CLAIM_ATTEMPTS', '5'))
    LOBBY_SCAN_PAGE_SIZE = int(os.getenv('LOBBY_SCAN_PAGE_SIZE', '25'))
    LOBBY_EXPIRY_MINUTES = int(os.getenv('LOBBY_EXPIRY_MINUTES', '0'))  # 0 disables the sweep
    SUBMISSION_RECEIPT_TTL_SECONDS = int(os.getenv('SUBMISSION_RECEIPT_TTL_SECONDS', '3600'))

    @classmethod
    def bot_enabled(cls) -> bool:
        """The Discord gateway only starts when a token is configured"""
        return bool(cls.DISCORD_TOKEN)

    @classmethod
    def validate(cls):
        """Validate that required configuration is present"""
        if cls.STORE_BACKEND not in ('sql', 'redis'):
            raise ValueError("STORE_BACKEND must be either 'sql' or 'redis'")
        if cls.MAX_CLAIM_ATTEMPTS < 1:
            raise ValueError("MAX_CLAIM_ATTEMPTS must be at least 1")
        if cls.LOBBY_SCAN_PAGE_SIZE < 1:
            raise ValueError("LOBBY_SCAN_PAGE_SIZE must be at least 1")
        if cls.bot_enabled() and not cls.OWNER_DISCORD_ID:
            raise ValueError("OWNER_DISCORD_ID is required when DISCORD_TOKEN is set")
