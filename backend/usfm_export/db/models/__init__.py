"""
Models package — re-exports Base and all models.

Import models here so `Base.metadata.create_all` picks up every table
automatically.

When adding a new model:
    1. Create `usfm_export/db/models/<table_name>.py`
    2. Import it here
"""

from usfm_export.db.models.base import Base
from usfm_export.db.models.export_job import ExportJob
from usfm_export.db.models.workflow_step import WorkflowStep

__all__ = [
    "Base",
    "ExportJob",
    "WorkflowStep",
]
