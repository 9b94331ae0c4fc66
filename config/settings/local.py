# config/settings/local.py
from .base import *  # noqa

DEBUG = True

CORS_ALLOW_ALL_ORIGINS = True  # Only for development!

COMMON_IDEMPOTENCY_USE_DB = False
