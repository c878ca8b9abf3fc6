from marketplace.schemas.auth import Actor, SYSTEM_ACTOR
from marketplace.schemas.job import (
    JobCreate,
    JobStatusUpdate,
    JobResponse,
    JobListResponse,
)
from marketplace.schemas.application import (
    ApplicationCreate,
    StatusTransitionRequest,
    WithdrawRequest,
    StatusHistoryEntry,
    InterviewScheduleRequest,
    InterviewSchedule,
    FeedbackCreate,
    Feedback,
    NoteCreate,
    NoteEntry,
    ApplicationResponse,
    ApplicationListResponse,
    ExpiryReport,
    ReminderReport,
)

__all__ = [
    "Actor",
    "SYSTEM_ACTOR",
    "JobCreate",
    "JobStatusUpdate",
    "JobResponse",
    "JobListResponse",
    "ApplicationCreate",
    "StatusTransitionRequest",
    "WithdrawRequest",
    "StatusHistoryEntry",
    "InterviewScheduleRequest",
    "InterviewSchedule",
    "FeedbackCreate",
    "Feedback",
    "NoteCreate",
    "NoteEntry",
    "ApplicationResponse",
    "ApplicationListResponse",
    "ExpiryReport",
    "ReminderReport",
]
