import os
from celery import Celery
from celery.schedules import crontab
from kombu import Queue
from django.conf import settings

# Set the default Django settings module; production must override via environment.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'backend.config.settings')

# Create Celery app instance
app = Celery('course_commerce')

# Configure Celery using Django settings
app.config_from_object('django.conf:settings', namespace='CELERY')

# Auto-discover tasks from all registered Django apps
app.autodiscover_tasks(lambda: settings.INSTALLED_APPS)

# Explicitly define queues for routing
app.conf.task_queues = (
    Queue('default'),      # Fallback queue for unmatched tasks
    Queue('emails'),
    Queue('maintenance'),
)

app.conf.task_default_queue = 'default'
app.conf.task_default_exchange = 'default'
app.conf.task_default_routing_key = 'default'

# Enforce JSON serialization for security and compatibility
app.conf.task_serializer = 'json'
app.conf.result_serializer = 'json'
app.conf.accept_content = ['json']

# Periodic tasks (Celery Beat schedule)
app.conf.beat_schedule = {
    # Abandoned checkouts release nothing (usage is only consumed on completion)
    # but are cancelled so they stop blocking a new order for the same course.
    'expire-stale-payments-hourly': {
        'task': 'payments.tasks.expire_stale_payments',
        'schedule': crontab(minute=15),
        'options': {'queue': 'maintenance'}
    },
}

# Task routing – more specific patterns first
app.conf.task_routes = {
    'payments.tasks.send_*': {
        'queue': 'emails'
    },
    'payments.tasks.expire_*': {
        'queue': 'maintenance'
    },
}

# Task time limits
app.conf.task_time_limit = 300  # 5 minutes max
app.conf.task_soft_time_limit = 240  # 4 minutes soft limit

app.conf.result_expires = 3600  # Results expire after 1 hour

# Worker settings
app.conf.worker_prefetch_multiplier = 1
app.conf.worker_max_tasks_per_child = 1000

app.conf.task_acks_late = True
app.conf.task_reject_on_worker_lost = True

