from celery import Celery
from celery.schedules import crontab

from venue_jobs.core.config import settings

# Celery instance for the job queue workers
celery_app = Celery(
    "venue_jobs",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=[
        'venue_jobs.workers.tasks',
    ]
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,

    task_routes={
        'venue_jobs.workers.tasks.*': {'queue': 'venue_jobs'},
    },

    beat_schedule={
        'process-jobs': {
            'task': 'venue_jobs.workers.tasks.process_jobs',
            'schedule': settings.JOB_PROCESS_INTERVAL_SECONDS,
        },
        'cleanup-old-jobs': {
            'task': 'venue_jobs.workers.tasks.cleanup_old_jobs',
            'schedule': crontab(hour=3, minute=0),
        },
    },

    task_always_eager=False,
    task_eager_propagates=True,

    # One batch at a time per worker; the queue claims rows itself
    worker_concurrency=2,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
)
