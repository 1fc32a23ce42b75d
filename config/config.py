"""Configuration settings for QuoteDesk"""
import os
from datetime import timedelta


def get_engine_options():
    """Get database engine options for PostgreSQL connection pooling"""
    return {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'your-secret-key-change-in-production'

    # Database - Handle Render's postgres:// URL format (SQLAlchemy needs postgresql://)
    _db_url = os.environ.get('DATABASE_URL') or 'sqlite:///quotedesk.db'
    if _db_url.startswith('postgres://'):
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)
    SQLALCHEMY_DATABASE_URI = _db_url
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = get_engine_options()

    # JWT
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'jwt-secret-key-change-in-production'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=8)

    # CORS
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'http://localhost:3000').split(',')

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Quotations
    QUOTATION_NUMBER_PREFIX = os.environ.get('QUOTATION_NUMBER_PREFIX', 'QUO-')
    QUOTATION_VALIDITY_DAYS = int(os.environ.get('QUOTATION_VALIDITY_DAYS', 30))
    DEFAULT_CURRENCY = os.environ.get('DEFAULT_CURRENCY', 'USD')
    PUBLIC_ACCESS_TOKEN_BYTES = int(os.environ.get('PUBLIC_ACCESS_TOKEN_BYTES', 32))
    PUBLIC_SHARE_BASE_URL = os.environ.get('PUBLIC_SHARE_BASE_URL', 'http://localhost:3000/share/quotation')
    TEMPLATE_HTML_MAX_LENGTH = 200000  # characters per header/footer/section


class DevelopmentConfig(Config):
    DEBUG = True


class ProductionConfig(Config):
    DEBUG = False


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = 'test-jwt-secret-key-with-enough-length-for-hs256'
    PUBLIC_SHARE_BASE_URL = 'https://quotes.example.test/share'
