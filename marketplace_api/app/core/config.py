"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for all fields so the
application can boot against a local MongoDB without any setup.  In a
production deployment override these via environment variables (for
example from a ``.env`` file loaded by the process manager).
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Services Marketplace API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    # ``development`` exposes error details in responses and logs every
    # request; anything else is treated as production.
    environment: str = os.getenv("ENVIRONMENT", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "")

    secret_key: str = os.getenv("SECRET_KEY", "change_me")
    algorithm: str = os.getenv("ALGORITHM", "HS256")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 90)))
    token_cookie_expire_days: int = int(os.getenv("TOKEN_COOKIE_EXPIRE_DAYS", "90"))

    mongo_url: str = os.getenv("MONGO_URL", "mongodb://localhost:27017")
    mongo_db_name: str = os.getenv("MONGO_DB_NAME", "services_marketplace")

    # Base URL used when building links that are mailed to users.
    public_base_url: str = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")

    email_host: str = os.getenv("EMAIL_HOST", "")
    email_port: int = int(os.getenv("EMAIL_PORT", "465"))
    email_username: str = os.getenv("EMAIL_USERNAME", "")
    email_password: str = os.getenv("EMAIL_PASSWORD", "")
    email_from: str = os.getenv("EMAIL_FROM", "Services Marketplace <no-reply@example.com>")

    # HTTP SMS gateway.  When ``sms_api_url`` is empty phone codes are
    # generated and stored but not sent.
    sms_api_url: str = os.getenv("SMS_API_URL", "")
    sms_api_key: str = os.getenv("SMS_API_KEY", "")
    sms_api_secret: str = os.getenv("SMS_API_SECRET", "")
    sms_sender: str = os.getenv("SMS_SENDER", "Services")

    default_page_limit: int = int(os.getenv("DEFAULT_PAGE_LIMIT", "100"))
    # 0 leaves ``limit`` unbounded.
    max_page_limit: int = int(os.getenv("MAX_PAGE_LIMIT", "0"))

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in {"dev", "development"}


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Environment variables must
# therefore be set before this module is imported.
settings = Settings()
