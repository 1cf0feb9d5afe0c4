import os
from datetime import timedelta


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'plek-dev-secret')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///plek.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Sesiones
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY', SECRET_KEY)
    JWT_TOKEN_LOCATION = ['cookies', 'headers']
    JWT_ACCESS_COOKIE_NAME = os.environ.get('SESSION_COOKIE_NAME', 'plek-token')
    JWT_COOKIE_CSRF_PROTECT = False
    SESSION_DAYS = int(os.environ.get('SESSION_DAYS', 7))
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=SESSION_DAYS)
    JWT_COOKIE_SECURE = _env_bool('SESSION_COOKIE_SECURE', True)
    JWT_COOKIE_SAMESITE = 'Lax'

    # Magic link / OTP
    MAGIC_LINK_MINUTES = int(os.environ.get('MAGIC_LINK_MINUTES', 10))
    MAGIC_LINK_LANDING = os.environ.get('MAGIC_LINK_LANDING', '/bookings')

    # Email
    MAIL_SERVER = os.environ.get('MAIL_SERVER', 'localhost')
    MAIL_PORT = int(os.environ.get('MAIL_PORT', 25))
    MAIL_USE_TLS = _env_bool('MAIL_USE_TLS', False)
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER', 'no-reply@simpleplek.co.za')

    # Precios
    DEFAULT_BASE_RATE = float(os.environ.get('DEFAULT_BASE_RATE', 150))
    PACKAGE_CACHE_MAX_AGE = int(os.environ.get('PACKAGE_CACHE_MAX_AGE', 60))
    PACKAGE_CACHE_S_MAXAGE = int(os.environ.get('PACKAGE_CACHE_S_MAXAGE', 300))

    # Integraciones
    REVENUECAT_API_KEY = os.environ.get('REVENUECAT_API_KEY')
    REVENUECAT_API_URL = os.environ.get('REVENUECAT_API_URL', 'https://api.revenuecat.com')
    REVENUECAT_PRODUCTS_URL = os.environ.get('REVENUECAT_PRODUCTS_URL')
    YOCO_SECRET_KEY = os.environ.get('YOCO_SECRET_KEY')
    YOCO_API_URL = os.environ.get('YOCO_API_URL', 'https://payments.yoco.com/api')
    YOCO_CURRENCY = os.environ.get('YOCO_CURRENCY', 'ZAR')
    GEMINI_API_KEY = os.environ.get('GEMINI_API_KEY')
    GEMINI_MODEL = os.environ.get('GEMINI_MODEL', 'gemini-1.5-flash')
    HTTP_TIMEOUT = float(os.environ.get('HTTP_TIMEOUT', 10))


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    JWT_SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    JWT_COOKIE_SECURE = False
    MAIL_SUPPRESS_SEND = True
    REVENUECAT_API_KEY = None
    YOCO_SECRET_KEY = None
    GEMINI_API_KEY = None
