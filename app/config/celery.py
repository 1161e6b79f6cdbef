"""
Celery configuration for the school fees backend.

Celery runs the background side of payment reconciliation:
- Periodic gateway polling for PENDING/PROCESSING attempts (every 5 minutes)
- Escalation of attempts that never settle into DISPUTED

Redis is both the message broker and result backend. Tasks are
auto-discovered from the tasks.py module of every installed app, and the
beat schedule is declared in settings.CELERY_BEAT_SCHEDULE.

Usage:
    # Trigger a reconciliation pass by hand:
    from fees.tasks import run_reconciliation
    run_reconciliation.delay()

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("schoolfees")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
