"""
Celery application for scheduled syncs.
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "notion_mirror.settings")

app = Celery("notion_mirror")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
