from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from marketplace.models.enums import ApplicationStatus, InterviewType


class ApplicationCreate(BaseModel):
    cover_letter: str = Field(..., min_length=1, max_length=2000)
    resume_url: Optional[str] = None
    expected_salary: Optional[int] = Field(None, ge=0)
    availability: Optional[str] = None
    years_experience: Optional[int] = Field(None, ge=0)


class StatusTransitionRequest(BaseModel):
    status: ApplicationStatus
    notes: Optional[str] = None


class WithdrawRequest(BaseModel):
    notes: Optional[str] = None


class InterviewScheduleRequest(BaseModel):
    scheduled_for: datetime
    type: InterviewType
    location: Optional[str] = None
    meeting_link: Optional[str] = None
    notes: Optional[str] = None
    interviewers: list[str] = Field(default_factory=list)


class FeedbackCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field("", max_length=2000)


class NoteCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)
    is_private: bool = False


class StatusHistoryEntry(BaseModel):
    status: ApplicationStatus
    actor_id: str
    notes: Optional[str] = None
    changed_at: datetime

    class Config:
        from_attributes = True


class InterviewSchedule(BaseModel):
    scheduled_for: datetime
    type: InterviewType
    location: Optional[str] = None
    meeting_link: Optional[str] = None
    notes: Optional[str] = None
    interviewers: list[str] = []
    reminder_sent_at: Optional[datetime] = None


class Feedback(BaseModel):
    rating: int
    comment: Optional[str] = None
    given_by: str
    given_at: datetime


class NoteEntry(BaseModel):
    author_id: str
    content: str
    is_private: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ApplicationResponse(BaseModel):
    id: str
    job_id: str
    company_id: str
    applicant_id: str
    status: ApplicationStatus
    cover_letter: str
    resume_url: Optional[str] = None
    expected_salary: Optional[int] = None
    availability: Optional[str] = None
    years_experience: Optional[int] = None
    status_history: list[StatusHistoryEntry]
    notes: list[NoteEntry] = []
    interview: Optional[InterviewSchedule] = None
    feedback: Optional[Feedback] = None
    last_status_update: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class ApplicationListResponse(BaseModel):
    applications: list[ApplicationResponse]
    total: int
    page: int
    per_page: int


class ExpiryReport(BaseModel):
    processed: int = 0
    expired: int = 0
    failed: int = 0


class ReminderReport(BaseModel):
    due: int = 0
    sent: int = 0
