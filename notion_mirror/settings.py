"""
Django settings for notion_mirror.

Everything deployment specific comes from the environment; a `.env` file in
the working directory is loaded first if present.
"""

import os
from pathlib import Path

from celery.schedules import crontab
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "insecure-dev-key-change-me")
DEBUG = env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [h for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost").split(",") if h]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "mirror.apps.MirrorConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

ROOT_URLCONF = "notion_mirror.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("NOTION_DB_PATH", str(BASE_DIR / "notion.db")),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = "UTC"

STATIC_URL = "static/"

# Notion API
NOTION_TOKEN = os.environ.get("NOTION_TOKEN", "")
NOTION_ROOT_PAGE = os.environ.get("NOTION_ROOT_PAGE", "")
NOTION_API_BASE_URL = os.environ.get("NOTION_API_BASE_URL", "https://api.notion.com/v1/")
NOTION_API_VERSION = os.environ.get("NOTION_API_VERSION", "2022-06-28")
NOTION_REQUEST_TIMEOUT = float(os.environ.get("NOTION_REQUEST_TIMEOUT", "30"))
NOTION_PAGE_SIZE = int(os.environ.get("NOTION_PAGE_SIZE", "100"))
NOTION_RATE_LIMIT_PER_SECOND = float(os.environ.get("NOTION_RATE_LIMIT_PER_SECOND", "3"))

# Sync engine
NOTION_SYNC_CONCURRENCY = int(os.environ.get("NOTION_SYNC_CONCURRENCY", "4"))
NOTION_SYNC_MAX_ATTEMPTS = int(os.environ.get("NOTION_SYNC_MAX_ATTEMPTS", "5"))
NOTION_SYNC_BACKOFF_BASE = float(os.environ.get("NOTION_SYNC_BACKOFF_BASE", "1"))
NOTION_SYNC_BACKOFF_MAX = float(os.environ.get("NOTION_SYNC_BACKOFF_MAX", "60"))
NOTION_SYNC_LEAF_COMMENTS = env_bool("NOTION_SYNC_LEAF_COMMENTS", False)

# Celery
CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_TASK_ALWAYS_EAGER = env_bool("CELERY_TASK_ALWAYS_EAGER", False)
CELERY_BEAT_SCHEDULE = {
    "sync-all-roots": {
        "task": "mirror.tasks.sync_all_roots",
        "schedule": crontab(minute=0, hour="*/6"),
    },
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{asctime} {levelname} {name} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "mirror": {
            "handlers": ["console"],
            "level": os.environ.get("NOTION_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}
