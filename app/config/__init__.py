# Load the Celery app with Django so beat and workers see chat.tasks.
from config.celery import app as celery_app

__all__ = ("celery_app",)
