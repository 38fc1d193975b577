"""Django settings for the storefront checkout API.

Everything deployment-specific comes from environment variables.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


APP_ENV = os.getenv("APP_ENV", "development")  # development | test | production
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-insecure-secret-key")
DEBUG = _env_bool("DJANGO_DEBUG", "1" if APP_ENV == "development" else "0")
ALLOWED_HOSTS = [h for h in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h]

INSTALLED_APPS = [
    "rest_framework",
    "apps.checkout",
]

MIDDLEWARE = [
    "gateway.middleware.RequestIdMiddleware",
    "gateway.middleware.ApiSizeLimitMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
]

ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"

# Orders live in the commerce backend; this service keeps no tables.
DATABASES = {}

CACHES = {
    "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"},
}

# The cart lives in the session; signed cookies keep it without a database.
SESSION_ENGINE = "django.contrib.sessions.backends.signed_cookies"
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SECURE = APP_ENV == "production"

USE_TZ = True
TIME_ZONE = "UTC"
LANGUAGE_CODE = "es-es"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "UNAUTHENTICATED_USER": None,
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_PARSER_CLASSES": ["rest_framework.parsers.JSONParser"],
    "DEFAULT_THROTTLE_RATES": {
        "checkout": os.getenv("CHECKOUT_THROTTLE_RATE", "30/min"),
    },
}

API_MAX_BYTES = int(os.getenv("API_MAX_BYTES", str(1 * 1024 * 1024)))

# ---- Checkout ----
USE_HTTP_ADAPTERS = _env_bool("USE_HTTP_ADAPTERS", "1")
PAYMENTS_BASE_URL = os.getenv("PAYMENTS_BASE_URL", "https://api.stripe.com/v1")
PAYMENTS_PUBLISHABLE_KEY = os.getenv("PAYMENTS_PUBLISHABLE_KEY", "")
ORDERS_API_URL = os.getenv("ORDERS_API_URL", "http://localhost:1337")
HTTP_TIMEOUT_SECS = float(os.getenv("HTTP_TIMEOUT_SECS", "10"))

CHECKOUT_RETRY_MAX_ATTEMPTS = int(os.getenv("CHECKOUT_RETRY_MAX_ATTEMPTS", "3"))
CHECKOUT_RETRY_BASE_DELAY_MS = int(os.getenv("CHECKOUT_RETRY_BASE_DELAY_MS", "1000"))
CHECKOUT_RETRY_MAX_DELAY_MS = int(os.getenv("CHECKOUT_RETRY_MAX_DELAY_MS", "8000"))
CHECKOUT_CURRENCY = os.getenv("CHECKOUT_CURRENCY", "EUR")
# Upper bound for holding the per-intent checkout lock (retries included).
CHECKOUT_LOCK_TIMEOUT_SECS = int(os.getenv("CHECKOUT_LOCK_TIMEOUT_SECS", "120"))

# Detailed classification logs for payment errors; off in production.
PAYMENT_ERROR_DIAGNOSTICS = _env_bool("PAYMENT_ERROR_DIAGNOSTICS", "1" if DEBUG else "0")

# ---- Logging ----
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "request_id": {"()": "gateway.logging_filters.RequestIdFilter"},
        "sensitive": {"()": "gateway.logging_filters.SensitiveDataFilter"},
    },
    "formatters": {
        "json": {
            "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
            "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "filters": ["request_id", "sensitive"],
        },
    },
    "loggers": {
        "checkout": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": True},
        "checkout.errors": {"level": "DEBUG" if PAYMENT_ERROR_DIAGNOSTICS else LOG_LEVEL},
        "django.request": {"handlers": ["console"], "level": "WARNING", "propagate": False},
    },
}
