from .base import *

# Development specific settings
DEBUG = True

ALLOWED_HOSTS = ["localhost", "127.0.0.1"]

# Use console email backend for development
EMAIL_BACKEND = "django.core.mail.backends.console.EmailBackend"

# Certificates and submission files land on the local filesystem
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
}
MEDIA_URL = "/media/"
MEDIA_ROOT = BASE_DIR / "media"

# Disable CORS restrictions for easier local development (use with caution)
# CORS_ALLOW_ALL_ORIGINS = True

LOG_LEVEL = "DEBUG"
LOGGING["loggers"]["apps"]["level"] = LOG_LEVEL

print("LOADED DEVELOPMENT SETTINGS")
