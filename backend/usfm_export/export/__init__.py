"""
USFM artifact production — catalog lookups, USFM rendering, and the
streaming ZIP producer consumed by the export workflow.
"""

from usfm_export.export.archive import ArtifactProducer, ExportStream, UsfmArchiveProducer
from usfm_export.export.catalog import AvailableBook, BookInfo, ProjectCatalog, SqlProjectCatalog, VerseRow

__all__ = [
    "ArtifactProducer",
    "AvailableBook",
    "BookInfo",
    "ExportStream",
    "ProjectCatalog",
    "SqlProjectCatalog",
    "UsfmArchiveProducer",
    "VerseRow",
]
