"""
Flask application configuration classes.
Provides configuration for development, production, and testing environments.
"""

import os
import tempfile


class Config:
    """Base configuration class with common settings."""

    # Database configuration
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or 'instance/equipment.db'

    # Seconds a writer waits for the SQLite write lock before giving up
    DATABASE_BUSY_TIMEOUT = float(os.environ.get('DATABASE_BUSY_TIMEOUT', 5.0))

    # Timezone (stored datetimes are naive local time in this zone)
    TIMEZONE = os.environ.get('TIMEZONE') or 'Europe/Stockholm'

    # Reservation lifecycle
    CHECK_IN_BUFFER_MINUTES = int(os.environ.get('CHECK_IN_BUFFER_MINUTES', 15))

    # Alternative slot search defaults
    ALTERNATIVE_SLOT_DAY_START = '06:00'
    ALTERNATIVE_SLOT_DAY_END = '22:00'
    ALTERNATIVE_SLOT_STEP_MINUTES = 30
    ALTERNATIVE_SLOT_MAX_RESULTS = 5

    # Application settings
    APP_NAME = 'Equipment Scheduler'
    APP_VERSION = '1.0.0'


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    TESTING = False


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    TESTING = False

    DATABASE_PATH = os.environ.get('DATABASE_PATH') or Config.DATABASE_PATH

    @classmethod
    def validate(cls) -> None:
        """Validate that required production environment variables are set."""
        if not os.environ.get('DATABASE_PATH'):
            raise ValueError("DATABASE_PATH environment variable must be set in production")


class TestConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    DEBUG = True
    DATABASE_PATH = os.environ.get(
        'DATABASE_PATH',
        os.path.join(tempfile.gettempdir(), 'equipment_test.db')
    )
    DATABASE_BUSY_TIMEOUT = 10.0


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'test': TestConfig,
    'default': DevelopmentConfig
}
