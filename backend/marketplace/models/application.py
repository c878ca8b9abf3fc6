"""
Application Model - an ambassador's application to a job

One row per (job, applicant). Status changes are recorded as append-only
rows in application_status_history; the current status always equals the
status of the newest history row.

Status Flow:
    Pending → Reviewing → Shortlisted → Interview → Accepted
    (any non-terminal) → Rejected | Withdrawn
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    String,
    Integer,
    Text,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from marketplace.database import Base
from marketplace.models.enums import ApplicationStatus
from typing import Optional
import uuid


class Application(Base):
    """
    Job application entity.

    Attributes:
        id: UUID primary key
        job_id: Target job
        applicant_id: Ambassador who applied
        status: Current status (indexed, compare-and-set target)
        cover_letter/resume_url: Submission payload
        expected_salary/availability/years_experience: Optional details
        last_status_update: Timestamp of the newest history entry
        created_at: Submission time, used by the expiry sweep
    """

    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint("job_id", "applicant_id", name="uq_application_job_applicant"),
        Index("ix_applications_status_created", "status", "created_at"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    job_id = Column(String, ForeignKey("jobs.id"), nullable=False, index=True)
    applicant_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ApplicationStatus.PENDING.value)
    cover_letter = Column(Text, nullable=False, default="")
    resume_url = Column(String(2000), nullable=True)
    expected_salary = Column(Integer, nullable=True)
    availability = Column(String(200), nullable=True)
    years_experience = Column(Integer, nullable=True)
    last_status_update = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False)

    # Set when the application moves to Interview through schedule_interview()
    interview_at = Column(DateTime, nullable=True, index=True)
    interview_type = Column(String(20), nullable=True)
    interview_location = Column(String(500), nullable=True)
    interview_meeting_link = Column(String(2000), nullable=True)
    interview_notes = Column(Text, nullable=True)
    interviewers = Column(JSON, nullable=True)
    interview_reminder_sent_at = Column(DateTime, nullable=True)

    # Written once, on Accepted applications only
    feedback_rating = Column(Integer, nullable=True)
    feedback_comment = Column(Text, nullable=True)
    feedback_by = Column(String, nullable=True)
    feedback_at = Column(DateTime, nullable=True)

    job = relationship("Job", lazy="joined")
    status_history = relationship(
        "ApplicationStatusHistory",
        lazy="selectin",
        order_by="ApplicationStatusHistory.id",
    )
    notes = relationship(
        "ApplicationNote",
        lazy="selectin",
        order_by="ApplicationNote.id",
    )

    @property
    def company_id(self) -> str:
        return self.job.company_id

    @property
    def interview(self) -> Optional[dict]:
        if self.interview_at is None:
            return None
        return {
            "scheduled_for": self.interview_at,
            "type": self.interview_type,
            "location": self.interview_location,
            "meeting_link": self.interview_meeting_link,
            "notes": self.interview_notes,
            "interviewers": self.interviewers or [],
            "reminder_sent_at": self.interview_reminder_sent_at,
        }

    @property
    def feedback(self) -> Optional[dict]:
        if self.feedback_at is None:
            return None
        return {
            "rating": self.feedback_rating,
            "comment": self.feedback_comment,
            "given_by": self.feedback_by,
            "given_at": self.feedback_at,
        }


class ApplicationStatusHistory(Base):
    """Immutable audit entry for one status change."""

    __tablename__ = "application_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    application_id = Column(
        String, ForeignKey("applications.id"), nullable=False, index=True
    )
    status = Column(String(20), nullable=False)
    actor_id = Column(String, nullable=False)
    notes = Column(Text, nullable=True)
    changed_at = Column(DateTime, nullable=False)


class ApplicationNote(Base):
    """Free-text note on an application. Private notes are hidden from the applicant."""

    __tablename__ = "application_notes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    application_id = Column(
        String, ForeignKey("applications.id"), nullable=False, index=True
    )
    author_id = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    is_private = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False)
