from marketplace.models.enums import ApplicationStatus, InterviewType, JobStatus, UserRole
from marketplace.models.user import User
from marketplace.models.job import Job
from marketplace.models.application import Application, ApplicationNote, ApplicationStatusHistory

__all__ = [
    "ApplicationStatus",
    "JobStatus",
    "UserRole",
    "User",
    "Job",
    "Application",
    "ApplicationStatusHistory",
    "ApplicationNote",
    "InterviewType",
]
