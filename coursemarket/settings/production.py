import os

from .base import *

# Production specific settings
DEBUG = False

SECRET_KEY = os.getenv("SECRET_KEY")  # MUST be set in environment
if not SECRET_KEY:
    raise ValueError("No SECRET_KEY set for production environment")

ALLOWED_HOSTS = [host for host in os.getenv("ALLOWED_HOSTS", "").split(",") if host]
if not ALLOWED_HOSTS:
    raise ValueError("No ALLOWED_HOSTS set for production environment")


# Security enhancements
SECURE_BROWSER_XSS_FILTER = True
X_FRAME_OPTIONS = "DENY"
SECURE_SSL_REDIRECT = True  # Ensure HTTPS
SECURE_HSTS_SECONDS = 31536000  # 1 year
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_HSTS_PRELOAD = True
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_PROXY_SSL_HEADER = (
    "HTTP_X_FORWARDED_PROTO",
    "https",
)  # If behind a proxy like Nginx/ELB

# Configure database from DATABASE_URL environment variable
# Already handled in base.py using dj_database_url

# CORS Headers - Ensure specific origins are listed
if not CORS_ALLOWED_ORIGINS:
    raise ValueError("No CORS_ALLOWED_ORIGINS set for production environment")

# Verification links printed on certificates must point at the public client
if "localhost" in CERTIFICATE_VERIFICATION_BASE_URL:
    raise ValueError("CLIENT_URL must be set to the public client URL in production")


# Logging - container logs only, app loggers at INFO unless LOG_LEVEL says otherwise
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {process:d} {thread:d} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {  # Still log to console (e.g., for container logs)
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "INFO",
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "INFO",  # Less verbose than DEBUG
            "propagate": False,
        },
        "apps": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}


# DRF Spectacular - Hide schema in production unless explicitly needed
SPECTACULAR_SETTINGS = {
    **SPECTACULAR_SETTINGS,  # Inherit from base
    "SERVE_INCLUDE_SCHEMA": False,
}

print("LOADED PRODUCTION SETTINGS")
