from celery import Celery

from sweetshop.config import get_settings

settings = get_settings()

# Create Celery application
celery_app = Celery(
    "sweetshop",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["sweetshop.tasks.purchase_tasks"]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Run tasks inline (tests, single-process deployments)
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,

    # Task settings
    task_track_started=True,
    task_time_limit=300,  # 5 minutes max
    task_soft_time_limit=240,  # Soft limit 4 minutes

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,

    # Retry settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)
