import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


class Config:
    # Provide a safe development fallback to avoid 500s when SECRET_KEY is missing.
    SECRET_KEY = os.getenv('SECRET_KEY') or 'dev-secret-key-change-me'
    DATABASE_URL = os.getenv('DATABASE_URL')
    SQLALCHEMY_DATABASE_URI = DATABASE_URL or 'sqlite:///sportsfest.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    REMEMBER_COOKIE_SECURE = True
    REMEMBER_COOKIE_HTTPONLY = True
    WTF_CSRF_TIME_LIMIT = None
    BASE_URL = os.getenv('BASE_URL', 'http://localhost:5000')

    # Multi-tenant host/path configuration
    # Example: TENANT_BASE_DOMAIN=".localhost" allows acme.localhost to resolve slug "acme"
    TENANT_BASE_DOMAIN = os.getenv('TENANT_BASE_DOMAIN')
    DEFAULT_ORG_SLUG = os.getenv('DEFAULT_ORG_SLUG')
    # Align tenant to the authenticated user's organization on mismatch (dev convenience)
    ALLOW_ORG_FALLBACK = _env_flag('ALLOW_ORG_FALLBACK', 'true')

    # Email delivery
    EMAIL_ENABLED = _env_flag('EMAIL_ENABLED')
    SMTP_HOST = os.getenv('SMTP_HOST')
    SMTP_PORT = int(os.getenv('SMTP_PORT', 587))
    SMTP_USERNAME = os.getenv('SMTP_USERNAME')
    SMTP_PASSWORD = os.getenv('SMTP_PASSWORD')
    SMTP_USE_TLS = _env_flag('SMTP_USE_TLS', 'true')
    FROM_EMAIL = os.getenv('FROM_EMAIL', 'noreply@sportsfest.local')
    FROM_NAME = os.getenv('FROM_NAME', 'SportsFest')

    # Background jobs
    REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    EMAIL_QUEUE_ENABLED = _env_flag('EMAIL_QUEUE_ENABLED')

    # Payment gateway
    PAYMENT_API_BASE = os.getenv('PAYMENT_API_BASE', 'https://api.stripe.com/v1')
    PAYMENT_SECRET_KEY = os.getenv('PAYMENT_SECRET_KEY')
    PAYMENT_WEBHOOK_SECRET = os.getenv('PAYMENT_WEBHOOK_SECRET')
    PAYMENT_CURRENCY = os.getenv('PAYMENT_CURRENCY', 'usd')

    # Sponsorship card processing fee: rate * base + flat
    SPONSORSHIP_FEE_RATE = os.getenv('SPONSORSHIP_FEE_RATE', '0.029')
    SPONSORSHIP_FEE_FLAT = os.getenv('SPONSORSHIP_FEE_FLAT', '0.30')
    INVOICE_DUE_DAYS = int(os.getenv('INVOICE_DUE_DAYS', 30))

    # Scheduled jobs
    CRON_SECRET = os.getenv('CRON_SECRET')
    DIGEST_RECIPIENTS = [
        addr.strip() for addr in os.getenv('DIGEST_RECIPIENTS', '').split(',') if addr.strip()
    ]

    EXPORT_DIR = os.getenv('EXPORT_DIR', '/tmp/exports')
