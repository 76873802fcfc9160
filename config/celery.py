import os
from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

# Schedule: sweep paid orders that are still missing a delivery record
from celery.schedules import crontab
app.conf.beat_schedule = {
    "create-missing-deliveries": {
        "task": "apps.orders.tasks.create_missing_deliveries",
        "schedule": crontab(minute="*/15"),
    },
}
