# backend/settings/test.py
"""
PATH: backend/settings/test.py

TEST SETTINGS
- In-memory SQLite
- Fast password hashing
- No throttling (API tests hammer the same endpoints)
- Undersupply policy pinned to "reject"; tests that need "partial" pass it explicitly
"""

from __future__ import annotations

from .base import *  # noqa: F403
from .base import LOGGING, REST_FRAMEWORK

DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

REST_FRAMEWORK = {
    **REST_FRAMEWORK,
    "DEFAULT_THROTTLE_CLASSES": (),
}

INVENTORY_UNDERSUPPLY_POLICY = "reject"
FULFILLMENT_MAX_RETRIES = 3

for _logger in LOGGING["loggers"].values():
    _logger["level"] = "WARNING"
