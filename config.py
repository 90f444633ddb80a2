"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_flag(name, default='true'):
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    TESTING = False
    JSON_SORT_KEYS = False

    # Bearer tokens (JWT signed with SECRET_KEY)
    JWT_ALGORITHM = os.getenv('JWT_ALGORITHM', 'HS256')
    JWT_EXPIRATION_HOURS = int(os.getenv('JWT_EXPIRATION_HOURS', '24'))

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        # Try DB_* variables (Docker style)
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'tableorders')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'tableorders')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'tableorders')

        DATABASE_URL = (
            f"postgresql+psycopg://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'
    AUTO_CREATE_SCHEMA = _env_flag('AUTO_CREATE_SCHEMA', 'false')

    # Money
    CURRENCY = os.getenv('CURRENCY', 'gbp')
    CURRENCY_SYMBOL = os.getenv('CURRENCY_SYMBOL', '£')

    # Payments: 'mock' (default) or 'stripe'
    PAYMENT_PROVIDER = os.getenv('PAYMENT_PROVIDER', 'mock')
    STRIPE_SECRET_KEY = os.getenv('STRIPE_SECRET_KEY')
    STRIPE_API_BASE = os.getenv('STRIPE_API_BASE', 'https://api.stripe.com/v1')
    STRIPE_PAYMENT_METHOD = os.getenv('STRIPE_PAYMENT_METHOD', 'pm_card_visa')
    PAYMENT_TIMEOUT_SECONDS = int(os.getenv('PAYMENT_TIMEOUT_SECONDS', '10'))

    # Lifecycle rules
    # Forward-only adjacency for part-order and order status changes.
    # False keeps the looser role-check-only behaviour.
    STRICT_STATUS_TRANSITIONS = _env_flag('STRICT_STATUS_TRANSITIONS', 'true')
    # Discount corrections on a closed session that is not paid yet
    ALLOW_DISCOUNT_AFTER_CLOSE = _env_flag('ALLOW_DISCOUNT_AFTER_CLOSE', 'true')

    # Business Information (for receipts and kitchen tickets)
    BUSINESS_NAME = os.getenv('BUSINESS_NAME', 'Table Orders')
    BUSINESS_ADDRESS = os.getenv('BUSINESS_ADDRESS', '')
    BUSINESS_PHONE = os.getenv('BUSINESS_PHONE', '')


class TestingConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    DEBUG = False
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ECHO = False
    AUTO_CREATE_SCHEMA = True
    PAYMENT_PROVIDER = 'mock'
    STRICT_STATUS_TRANSITIONS = True
    ALLOW_DISCOUNT_AFTER_CLOSE = True
