"""
Production settings for Django.

This file extends base settings with production‑hardened configurations.
"""
from .base import *

# Production security
DEBUG = False

# ALLOWED_HOSTS must be explicitly set in environment.
ALLOWED_HOSTS = env.list("ALLOWED_HOSTS")  # No default – must be set in production

# HTTPS/SSL settings
SECURE_SSL_REDIRECT = env.bool("SECURE_SSL_REDIRECT", default=True)
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_HSTS_SECONDS = env.int("SECURE_HSTS_SECONDS", default=31536000)
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_HSTS_PRELOAD = True
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_REFERRER_POLICY = "strict-origin-when-cross-origin"

# CORS in production
CORS_ALLOWED_ORIGINS = env.list("CORS_ALLOWED_ORIGINS", default=[])
CORS_ALLOW_CREDENTIALS = True

# CSRF trusted origins – required when frontend is on a different domain
CSRF_TRUSTED_ORIGINS = env.list("CSRF_TRUSTED_ORIGINS", default=[])

# Email in production
EMAIL_BACKEND = "django.core.mail.backends.smtp.EmailBackend"

# Database settings
DATABASES["default"]["CONN_MAX_AGE"] = 600
DATABASES["default"]["OPTIONS"]["sslmode"] = "require"

# Celery in production
CELERY_TASK_ALWAYS_EAGER = False

# Payment signature verification cannot run without a secret
PAYMENT_GATEWAY_SECRET = env("PAYMENT_GATEWAY_SECRET")

LOGGING["loggers"]["django"]["level"] = "WARNING"

SECRET_KEY = env("SECRET_KEY")
