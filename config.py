"""
Application configuration.
This module defines the configuration settings for the Flask application: database connection, secret key,
upload locations and bootstrap credentials. It uses environment variables for sensitive information and defaults
for development. In production, make sure to set the appropriate environment variables and secure the secret key.
"""

import os
from datetime import timedelta
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'catalog.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF protection for forms
    WTF_CSRF_ENABLED = True

    # Sessions expire after a fixed 24 hours
    PERMANENT_SESSION_LIFETIME = timedelta(hours=24)
    SESSION_COOKIE_NAME = "product_catalog_session"
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SECURE = os.environ.get("FLASK_ENV") == "production"

    # Binary assets (logos, product images, certificates, marketing files, package images)
    UPLOAD_ROOT = os.environ.get("UPLOAD_ROOT", str(BASE_DIR / "uploads"))
    # In-flight chunk files, one directory per upload id
    CHUNK_STAGING_ROOT = os.environ.get("CHUNK_STAGING_ROOT", str(BASE_DIR / "temp" / "chunks"))

    # Hard cap per request; per-asset ceilings live in medcatalog.uploads
    MAX_CONTENT_LENGTH = 25 * 1024 * 1024

    # Spreadsheet templates shown on the bulk import pages
    IMPORT_TEMPLATE_LINKS = {
        "country": os.environ.get(
            "LINK_TEMPLATE_COUNTRY",
            "https://docs.google.com/spreadsheets/d/1Z5YX-KwK9UlplEV4l884WX5fu3pl21slR6Ds3wbCglM/edit?usp=sharing",
        ),
        "product_type": os.environ.get(
            "LINK_TEMPLATE_PRODUCT_TYPE",
            "https://docs.google.com/spreadsheets/d/1KLMLkfl45CuUjhCz_fn4XmRr3_nNVTLBZHPur7aihZA/edit?usp=sharing",
        ),
        "category": os.environ.get(
            "LINK_TEMPLATE_CATEGORY",
            "https://docs.google.com/spreadsheets/d/1dgpEkZbMPKc1_WyV8BqVq1_B6DtFbvaQz1H48pXya6o/edit?usp=sharing",
        ),
    }

    # First-run administrator. If no password is given, a random one is generated and logged once.
    BOOTSTRAP_ADMIN_EMAIL = os.environ.get("BOOTSTRAP_ADMIN_EMAIL", "admin@localhost")
    BOOTSTRAP_ADMIN_PASSWORD = os.environ.get("BOOTSTRAP_ADMIN_PASSWORD")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # App UI name and default storefront branding (used in templates)
    APP_NAME = "Product Catalog"
    PUBLIC_BRAND_NAME = os.environ.get("PUBLIC_BRAND_NAME", "QSS Healthcare")
    PUBLIC_BRAND_LOGO = os.environ.get("PUBLIC_BRAND_LOGO", "/static/brand-logo.svg")

    PORT = int(os.environ.get("PORT", "3000"))


class TestConfig(Config):
    """Configuration used by the test-suite. Paths are overridden by fixtures."""

    TESTING = True
    WTF_CSRF_ENABLED = False
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    BOOTSTRAP_ADMIN_PASSWORD = "bootstrap-test-password"
    LOG_LEVEL = "WARNING"
