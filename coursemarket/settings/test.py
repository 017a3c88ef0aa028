import tempfile

from .base import *

# Test settings: in-memory database, throwaway media root, fast hashing
DEBUG = False

SECRET_KEY = "coursemarket-test-secret"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

MEDIA_ROOT = Path(tempfile.mkdtemp(prefix="coursemarket-media-"))

CERTIFICATE_VERIFICATION_BASE_URL = "https://courses.example.com"

LOGGING["loggers"]["apps"]["level"] = "CRITICAL"
