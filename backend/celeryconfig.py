"""
Celery configuration for the USFM export worker.

Loaded by `celery_app.config_from_object("celeryconfig")` in usfm_export/tasks/__init__.py.
All broker/result-backend URLs come from environment variables,
defaulting to localhost for local dev.
"""

import os

# ═══════════════════════════════════════════════════════════
#  Broker & Result Backend
# ═══════════════════════════════════════════════════════════

broker_url = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
result_backend = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

# ═══════════════════════════════════════════════════════════
#  Serialization — JSON only
# ═══════════════════════════════════════════════════════════

task_serializer = "json"
result_serializer = "json"
accept_content = ["json"]

# ═══════════════════════════════════════════════════════════
#  Timezone
# ═══════════════════════════════════════════════════════════

timezone = "UTC"
enable_utc = True

# ═══════════════════════════════════════════════════════════
#  Task Execution
# ═══════════════════════════════════════════════════════════

# Acknowledge after the task returns; a lost worker means redelivery
task_acks_late = True
task_reject_on_worker_lost = True

# One export at a time per worker process
worker_prefetch_multiplier = 1

# Large projects render thousands of verses
task_soft_time_limit = 900    # 15 min: raises SoftTimeLimitExceeded
task_time_limit = 960         # 16 min: hard kill

# ═══════════════════════════════════════════════════════════
#  Retry Policy
# ═══════════════════════════════════════════════════════════

task_default_retry_delay = 30
task_max_retries = 3

# ═══════════════════════════════════════════════════════════
#  Result Expiry — auto-clean after 24h
# ═══════════════════════════════════════════════════════════

result_expires = 86400

# ═══════════════════════════════════════════════════════════
#  Worker Settings
# ═══════════════════════════════════════════════════════════

# Archives are held in memory while assembled
worker_max_tasks_per_child = 50

worker_send_task_events = False
task_send_sent_event = False

# ═══════════════════════════════════════════════════════════
#  Task Routes
# ═══════════════════════════════════════════════════════════
# Run a dedicated export worker:
#   celery -A usfm_export.tasks worker -Q exports

export_queue = os.getenv("EXPORT_QUEUE_NAME", "exports")

task_routes = {
    "usfm_export.tasks.export_tasks.*": {"queue": export_queue},
}

task_default_queue = "default"
