"""
Testing settings.
"""
import os

# base.py refuses to start without these outside DEBUG
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("ALLOWED_HOSTS", "testserver,localhost")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
# Replaced by SQLite below, but base.py reads them first
for _name, _value in (
    ("POSTGRES_DB", "course_commerce_test"),
    ("POSTGRES_USER", "postgres"),
    ("POSTGRES_PASSWORD", "postgres"),
    ("POSTGRES_HOST", "localhost"),
    ("POSTGRES_PORT", "5432"),
):
    os.environ.setdefault(_name, _value)

from .base import *

DEBUG = False

# Use in-memory database for testing
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# Disable password validation for testing
AUTH_PASSWORD_VALIDATORS = []

# Faster password hashing for testing
PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

# Disable caching for testing
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.dummy.DummyCache",
    }
}

# Disable email sending
EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

# Disable CORS for testing
CORS_ALLOW_ALL_ORIGINS = True

# Celery runs tasks inline
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

PAYMENT_GATEWAY_SECRET = "test-gateway-secret"

LOGGING["loggers"]["backend"]["level"] = "WARNING"

REST_FRAMEWORK = {**REST_FRAMEWORK, "TEST_REQUEST_DEFAULT_FORMAT": "json"}

# Test runner
TEST_RUNNER = "django.test.runner.DiscoverRunner"
