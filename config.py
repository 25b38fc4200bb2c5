"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '0') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Database - DATABASE_URL wins; otherwise a local SQLite file
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///pharmabill.db')

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Billing
    BILL_NUMBER_PREFIX = os.getenv('BILL_NUMBER_PREFIX', 'DHS-2024-')
    BILL_NUMBER_PADDING = int(os.getenv('BILL_NUMBER_PADDING', '3'))
    GST_RATE = os.getenv('GST_RATE', '12')  # flat percent on the discounted subtotal
    DEFAULT_CGST_RATE = os.getenv('DEFAULT_CGST_RATE', '6')
    DEFAULT_SGST_RATE = os.getenv('DEFAULT_SGST_RATE', '6')
    FINALIZE_MAX_RETRIES = int(os.getenv('FINALIZE_MAX_RETRIES', '3'))
    FOLLOW_UP_DAYS = int(os.getenv('FOLLOW_UP_DAYS', '30'))
    PRODUCT_SEARCH_LIMIT = int(os.getenv('PRODUCT_SEARCH_LIMIT', '10'))

    # Invoice rendering
    INVOICE_PAGE_FORMAT = os.getenv('INVOICE_PAGE_FORMAT', 'A4')
    INVOICE_DUE_DAYS = int(os.getenv('INVOICE_DUE_DAYS', '10'))

    # Business Information (issuer block on invoices)
    BUSINESS_NAME = os.getenv('BUSINESS_NAME', 'PharmaCare Medical & General Store')
    BUSINESS_ADDRESS = os.getenv('BUSINESS_ADDRESS', '#56, 2nd Floor, 12th Main Road, Sector 6')
    BUSINESS_PHONE = os.getenv('BUSINESS_PHONE', '08472-27537')
    BUSINESS_EMAIL = os.getenv('BUSINESS_EMAIL', 'info@pharmacare.com')
    BUSINESS_DRUG_LICENSE = os.getenv('BUSINESS_DRUG_LICENSE', 'KA/GLB/20B/426/21B/415')
    BUSINESS_GSTIN = os.getenv('BUSINESS_GSTIN', '29ABYPB7940B1ZF')
    BUSINESS_PLACE_OF_SUPPLY = os.getenv('BUSINESS_PLACE_OF_SUPPLY', 'Karnataka (29)')
    INVOICE_FOOTER = os.getenv('INVOICE_FOOTER', 'Thank you for choosing PharmaCare!')


class TestConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    DATABASE_URL = 'sqlite://'
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = False
    BILL_NUMBER_PREFIX = 'DHS-2024-'
