import os

# Default to development settings unless DJANGO_SETTINGS_MODULE points at a
# specific module or DJANGO_SETTINGS_ENV selects another environment
SETTINGS_ENV = os.getenv("DJANGO_SETTINGS_ENV", "development")

if SETTINGS_ENV == "production":
    from .production import *
elif SETTINGS_ENV == "test":
    from .test import *
else:
    from .development import *
