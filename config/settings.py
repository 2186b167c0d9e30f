# config/settings.py
"""
Environment-driven application configuration
"""

import os
from typing import Dict, Type

from config.security import SecurityConfig


def _env_bool(name: str, default: str = 'false') -> bool:
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class BaseConfig(SecurityConfig):
    """Settings shared by every environment"""

    VERSION = os.environ.get('APP_VERSION', '1.0.0')
    ENVIRONMENT = os.environ.get('APP_ENVIRONMENT', 'unknown')
    TESTING = False
    DEBUG = False

    # Email notification
    EMAIL_FROM_ADDRESS = os.environ.get('EMAIL_FROM_ADDRESS', '')
    EMAIL_TO_ADDRESS = os.environ.get('EMAIL_TO_ADDRESS', '')
    SMTP_HOST = os.environ.get('SMTP_HOST', '')
    SMTP_PORT = int(os.environ.get('SMTP_PORT', 587))
    SMTP_USERNAME = os.environ.get('SMTP_USERNAME', '')
    SMTP_PASSWORD = os.environ.get('SMTP_PASSWORD', '')
    SMTP_TIMEOUT = float(os.environ.get('SMTP_TIMEOUT', 10))
    SMTP_VALIDATE_CERTS = _env_bool('SMTP_VALIDATE_CERTS', 'true')

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FILE = os.environ.get('LOG_FILE', '')
    SLOW_REQUEST_THRESHOLD = 20000  # ms; the notifier may legitimately back off

    # Background sweep of expired rate-limit entries
    RATELIMIT_SWEEPER_ENABLED = True

    # Trust one reverse proxy hop (nginx) for scheme and host
    PROXY_FIX = False


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class TestingConfig(BaseConfig):
    TESTING = True
    LOG_LEVEL = 'WARNING'
    LOG_FILE = ''
    RATELIMIT_SWEEPER_ENABLED = False
    EMAIL_FROM_ADDRESS = 'noreply@example.com'
    EMAIL_TO_ADDRESS = 'plans@example.com'
    SMTP_HOST = 'smtp.example.com'
    NOTIFY_BACKOFF_BASE = 0.0


class ProductionConfig(BaseConfig):
    PROXY_FIX = True


CONFIGS: Dict[str, Type[BaseConfig]] = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}


def get_config(config_name: str) -> Type[BaseConfig]:
    """Return the configuration class for an environment name"""
    try:
        return CONFIGS[config_name]
    except KeyError:
        raise ValueError(f"Unknown configuration '{config_name}'") from None
