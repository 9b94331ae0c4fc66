# config/settings/test.py
from .base import *  # noqa

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

COMMON_IDEMPOTENCY_USE_DB = True

CLINIC_WORKFLOW = {"CONFLICT_RETRY_ATTEMPTS": 3, "PAGE_SIZE": 20}

LOGGING["loggers"]["clinic_core"]["propagate"] = True  # noqa: F405
