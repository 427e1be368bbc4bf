import os

from celery import Celery
from celery.signals import setup_logging

# Deployed workers default to production settings. pytest sets
# DJANGO_SETTINGS_MODULE explicitly (config.settings.test), so this never
# overrides it.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.production")

app = Celery("agent_marketplace")

# All celery-related configuration keys carry a `CELERY_` prefix in settings.
app.config_from_object("django.conf:settings", namespace="CELERY")


@setup_logging.connect
def config_loggers(*args, **kwargs):
    from logging.config import dictConfig  # noqa: PLC0415

    from django.conf import settings  # noqa: PLC0415

    dictConfig(settings.LOGGING)


# Picks up agent_marketplace.notifications.tasks (promotion broadcasts).
app.autodiscover_tasks()
