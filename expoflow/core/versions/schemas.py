import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class VersionCreateRequest(BaseModel):
    label: str | None = Field(None, max_length=255)


class VersionResponse(BaseModel):
    id: uuid.UUID
    version_number: int
    label: str | None
    data: dict
    created_by: uuid.UUID | None
    source_updated_at: datetime | None
    materials_version_id: uuid.UUID | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class VersionListResponse(BaseModel):
    versions: list[VersionResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
