"""
Django settings for Pointsman tests.
"""

import os
import tempfile

SECRET_KEY = "test-secret-key-for-pointsman-tests"

DEBUG = True

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "django.contrib.sessions",
    "django.contrib.messages",
    "pointsman",
]

# File-backed so contention tests can share the database across threads.
# IMMEDIATE takes the write lock at BEGIN, serializing writers the way row
# locks do on a server database.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.path.join(tempfile.gettempdir(), "pointsman.sqlite3"),
        "OPTIONS": {"transaction_mode": "IMMEDIATE", "timeout": 20},
        "TEST": {"NAME": os.path.join(tempfile.gettempdir(), "test_pointsman.sqlite3")},
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

ROOT_URLCONF = "pointsman.urls"

USE_TZ = True
TIME_ZONE = "America/Sao_Paulo"

POINTSMAN = {
    "CARD_SIGNING_KEY": "test-card-signing-key",
    # No sleeping between conflict retries in tests
    "CONFLICT_BACKOFF_SECONDS": 0,
}

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]
