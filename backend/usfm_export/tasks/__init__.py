"""
Celery application factory.
"""

from celery import Celery

celery_app = Celery("usfm_export")
celery_app.config_from_object("celeryconfig")

# Auto-discover tasks in these modules
celery_app.autodiscover_tasks([
    "usfm_export.tasks.export_tasks",
])
