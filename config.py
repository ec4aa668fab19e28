"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _float_or_none(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '0') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    TESTING = False
    JSON_SORT_KEYS = False

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        # Try DB_* variables (Docker style)
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'storefront')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'storefront')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'storefront')

        DATABASE_URL = (
            f"postgresql+psycopg://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Shared-secret access for the admin console and staff dashboard
    ADMIN_TOKEN = os.getenv('ADMIN_TOKEN')
    STAFF_TOKEN = os.getenv('STAFF_TOKEN')

    # Orders
    ORDER_CODE_PREFIX = os.getenv('ORDER_CODE_PREFIX', 'DCO')
    BUSINESS_NAME = os.getenv('BUSINESS_NAME', 'Decoo Restaurant')
    DEFAULT_CITY_SUFFIX = os.getenv('DEFAULT_CITY_SUFFIX', 'Philadelphia, PA')

    # Delivery geocoding (Mapbox)
    MAPBOX_TOKEN = os.getenv('MAPBOX_TOKEN')
    MAPBOX_BASE_URL = os.getenv('MAPBOX_BASE_URL', 'https://api.mapbox.com')
    RESTAURANT_LAT = _float_or_none(os.getenv('RESTAURANT_LAT'))
    RESTAURANT_LNG = _float_or_none(os.getenv('RESTAURANT_LNG'))

    # Clover eCommerce (card capture)
    CLOVER_ECOMM_BASE_URL = os.getenv('CLOVER_ECOMM_BASE_URL', 'https://scl.clover.com')
    CLOVER_ECOMM_PRIVATE_KEY = os.getenv('CLOVER_ECOMM_PRIVATE_KEY')
    CLOVER_ECOMM_PUBLIC_KEY = os.getenv('CLOVER_ECOMM_PUBLIC_KEY')
    CLOVER_CHARGE_TIMEOUT = int(os.getenv('CLOVER_CHARGE_TIMEOUT', '20'))  # seconds
    CLOVER_FALLBACK_EMAIL = os.getenv('CLOVER_FALLBACK_EMAIL', 'orders@decoorestaurant.com')

    # Clover REST (POS sync, printing)
    CLOVER_REST_BASE_URL = os.getenv('CLOVER_REST_BASE_URL', 'https://api.clover.com')
    CLOVER_REST_API_TOKEN = os.getenv('CLOVER_REST_API_TOKEN')
    CLOVER_MERCHANT_ID = os.getenv('CLOVER_MERCHANT_ID')
    CLOVER_ORDER_TYPE_ID = os.getenv('CLOVER_ORDER_TYPE_ID')
    CLOVER_POS_TIMEOUT = int(os.getenv('CLOVER_POS_TIMEOUT', '15'))

    # Clover OAuth (merchant install)
    CLOVER_OAUTH_BASE_URL = os.getenv('CLOVER_OAUTH_BASE_URL', 'https://www.clover.com')
    CLOVER_CLIENT_ID = os.getenv('CLOVER_CLIENT_ID')
    CLOVER_CLIENT_SECRET = os.getenv('CLOVER_CLIENT_SECRET')
    CLOVER_REDIRECT_URI = os.getenv('CLOVER_REDIRECT_URI')
    CLOVER_OAUTH_SUCCESS_URL = os.getenv('CLOVER_OAUTH_SUCCESS_URL', '/admin.html?clover=connected')
    CLOVER_TOKEN_REFRESH_MARGIN = int(os.getenv('CLOVER_TOKEN_REFRESH_MARGIN', '120'))  # seconds

    # SMS (Twilio)
    TWILIO_ACCOUNT_SID = os.getenv('TWILIO_ACCOUNT_SID')
    TWILIO_AUTH_TOKEN = os.getenv('TWILIO_AUTH_TOKEN')
    TWILIO_PHONE_NUMBER = os.getenv('TWILIO_PHONE_NUMBER')
    TWILIO_BASE_URL = os.getenv('TWILIO_BASE_URL', 'https://api.twilio.com')
    SMS_MAX_ATTEMPTS = int(os.getenv('SMS_MAX_ATTEMPTS', '3'))
    SMS_BACKOFF_BASE = float(os.getenv('SMS_BACKOFF_BASE', '0.4'))  # seconds

    # Background jobs (POS sync, SMS)
    JOBS_BATCH_SIZE = int(os.getenv('JOBS_BATCH_SIZE', '20'))
    JOBS_LEASE_SECONDS = int(os.getenv('JOBS_LEASE_SECONDS', '300'))
    JOBS_POLL_INTERVAL = float(os.getenv('JOBS_POLL_INTERVAL', '2'))

    # Redis (rate limiting)
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    RATE_LIMIT_ENABLED = os.getenv('RATE_LIMIT_ENABLED', 'true').lower() == 'true'
    RATE_LIMIT_KEY_PREFIX = os.getenv('RATE_LIMIT_KEY_PREFIX', 'storefront')
    RATE_LIMIT_ORDERS = int(os.getenv('RATE_LIMIT_ORDERS', '10'))
    RATE_LIMIT_CHARGE = int(os.getenv('RATE_LIMIT_CHARGE', '10'))
    RATE_LIMIT_VALIDATE = int(os.getenv('RATE_LIMIT_VALIDATE', '30'))
    RATE_LIMIT_WINDOW = int(os.getenv('RATE_LIMIT_WINDOW', '60'))  # seconds


class TestingConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ECHO = False

    ADMIN_TOKEN = 'test-admin-token'
    STAFF_TOKEN = 'test-staff-token'

    MAPBOX_TOKEN = 'test-mapbox-token'
    RESTAURANT_LAT = 39.9526
    RESTAURANT_LNG = -75.1652

    CLOVER_ECOMM_PRIVATE_KEY = 'test-ecomm-private-key'
    CLOVER_ECOMM_PUBLIC_KEY = 'test-ecomm-public-key'
    CLOVER_REST_API_TOKEN = None
    CLOVER_MERCHANT_ID = 'TESTMERCHANT'
    CLOVER_CLIENT_ID = 'test-client-id'
    CLOVER_CLIENT_SECRET = 'test-client-secret'
    CLOVER_REDIRECT_URI = 'http://localhost/clover/callback'

    TWILIO_ACCOUNT_SID = 'ACtest'
    TWILIO_AUTH_TOKEN = 'test-twilio-token'
    TWILIO_PHONE_NUMBER = '+12155550100'
    SMS_BACKOFF_BASE = 0.0

    RATE_LIMIT_ENABLED = False
