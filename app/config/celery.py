"""
Celery configuration for the messaging service.

Celery runs the periodic presence sweep (chat.tasks.mark_stale_users_offline)
that marks users offline when their socket process died before its disconnect
hook ran. The beat schedule lives in settings.CELERY_BEAT_SCHEDULE.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
