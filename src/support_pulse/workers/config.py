"""Celery configuration from environment variables."""

import os

broker_url = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
result_backend = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0")

task_serializer = "json"
result_serializer = "json"
accept_content = ["json"]

timezone = "UTC"
enable_utc = True

task_track_started = True
task_time_limit = 900
task_soft_time_limit = 840

task_default_retry_delay = 60
task_max_retries = 3

task_default_queue = "default"
task_queues = {
    "default": {},
    "sync": {},
}
