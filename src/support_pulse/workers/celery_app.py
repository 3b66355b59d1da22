"""Celery application factory and instance."""

from celery import Celery


def create_celery_app() -> Celery:
    """Create and configure the Celery application."""
    app = Celery("support_pulse")
    app.config_from_object("support_pulse.workers.config")
    app.autodiscover_tasks(["support_pulse.workers"])
    return app


celery_app = create_celery_app()

app = celery_app
