from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from marketplace.models.enums import JobStatus


class JobBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    location: Optional[str] = None
    max_applications: Optional[int] = Field(None, ge=1)
    application_deadline: Optional[datetime] = None


class JobCreate(JobBase):
    pass


class JobStatusUpdate(BaseModel):
    status: JobStatus
    reason: Optional[str] = None


class JobResponse(JobBase):
    id: str
    company_id: str
    status: JobStatus
    application_count: int
    moderated_by: Optional[str] = None
    moderated_at: Optional[datetime] = None
    moderation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    total: int
    page: int
    per_page: int
