"""Request/response models for the USFM export endpoints (camelCase on the wire)."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExportRequest(CamelModel):
    book_ids: list[int] | None = Field(default=None, description="Books to export; omit for all books")


class BackgroundExportResponse(CamelModel):
    workflow_id: str
    status_url: str


class ExportableBook(CamelModel):
    book_id: int
    book_code: str
    book_name: str
    verse_count: int
    translated_count: int


class ExportableBooksResponse(CamelModel):
    project_unit_id: int
    books: list[ExportableBook]


class JobStatusResponse(CamelModel):
    workflow_id: str
    project_unit_id: int
    book_ids: list[int] | None = None
    status: str
    progress: int
    project_name: str | None = None
    filename: str | None = None
    file_size: int | None = None
    error: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None
    download_url: str | None = None
