import os
import logging
from dotenv import load_dotenv

from utils.helpers import parse_bool

load_dotenv()

class Config:

    # Application settings
    SECRET_KEY = os.getenv('SECRET_KEY') or 'support-bot-secret-key'

    # Service configuration
    SERVICE_NAME = 'python_support_bot'
    SERVICE_VERSION = '1.0.0'

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_FILE = os.getenv('LOG_FILE')

    # Organization used when a message carries none
    DEFAULT_ORGANIZATION_ID = os.getenv('DEFAULT_ORGANIZATION_ID', 'default')

    # Message limits
    MESSAGE_MAX_LENGTH = int(os.getenv('MESSAGE_MAX_LENGTH', '4000'))
    MESSAGE_STORE_MAX_CONVERSATIONS = int(os.getenv('MESSAGE_STORE_MAX_CONVERSATIONS', '10000'))
    MESSAGE_HISTORY_LIMIT = int(os.getenv('MESSAGE_HISTORY_LIMIT', '500'))

    # Conversation session store
    SESSION_MAX_ENTRIES = int(os.getenv('SESSION_MAX_ENTRIES', '1000'))
    SESSION_TTL_MINUTES = int(os.getenv('SESSION_TTL_MINUTES', '60'))

    # Sentiment memoization
    SENTIMENT_CACHE_SIZE = int(os.getenv('SENTIMENT_CACHE_SIZE', '5000'))

    # Proactive engagement
    PROACTIVE_IDLE_SECONDS = int(os.getenv('PROACTIVE_IDLE_SECONDS', '300'))
    ENABLE_PROACTIVE_SWEEP = parse_bool(os.getenv('ENABLE_PROACTIVE_SWEEP'), default=False)
    PROACTIVE_SWEEP_INTERVAL_SECONDS = int(os.getenv('PROACTIVE_SWEEP_INTERVAL_SECONDS', '60'))

    # Per organization conversation flows (JSON file)
    FLOWS_CONFIG_PATH = os.getenv('FLOWS_CONFIG_PATH')

    # Analytics
    ANALYTICS_MAX_EVENTS = int(os.getenv('ANALYTICS_MAX_EVENTS', '50000'))

    @classmethod
    def validate_config(cls):
        """Validate numeric limits"""
        positive_vars = [
            'MESSAGE_MAX_LENGTH',
            'MESSAGE_STORE_MAX_CONVERSATIONS',
            'MESSAGE_HISTORY_LIMIT',
            'SESSION_MAX_ENTRIES',
            'SESSION_TTL_MINUTES',
            'SENTIMENT_CACHE_SIZE',
            'PROACTIVE_IDLE_SECONDS',
            'PROACTIVE_SWEEP_INTERVAL_SECONDS',
            'ANALYTICS_MAX_EVENTS'
        ]

        invalid_vars = []
        for var in positive_vars:
            if getattr(cls, var) <= 0:
                invalid_vars.append(var)

        if invalid_vars:
            raise ValueError(f"Configuration values must be positive: {invalid_vars}")

        return True

class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False

    # Enable verbose logging in development
    LOG_LEVEL = 'DEBUG'

class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    # Production-specific settings
    SESSION_MAX_ENTRIES = int(os.getenv('SESSION_MAX_ENTRIES', '10000'))

class TestingConfig(Config):
    """Testing configuration"""
    DEBUG = True
    TESTING = True

    # Deterministic, side-effect free defaults for tests
    LOG_FILE = None
    FLOWS_CONFIG_PATH = None
    ENABLE_PROACTIVE_SWEEP = False
    SESSION_MAX_ENTRIES = 100
    SENTIMENT_CACHE_SIZE = 100

# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}

def get_config(config_name=None):
    """Get configuration object"""
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'default')

    config_class = config.get(config_name, config['default'])

    # Validate configuration
    try:
        config_class.validate_config()
    except ValueError as e:
        logging.error(f"Configuration error: {e}")
        raise

    return config_class
