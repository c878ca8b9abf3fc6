"""
Job Model - SQLAlchemy ORM model for job postings

Jobs are owned by a company account and pass through moderation before they
accept applications.

Status Flow:
    Draft → Pending → Active ⇄ Paused → Closed/Cancelled
                    ↘ Rejected → Draft
"""

from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from marketplace.database import Base
from marketplace.models.enums import JobStatus
import uuid


class Job(Base):
    """
    Job posting entity with an application capacity counter.

    Attributes:
        id: UUID primary key
        company_id: Owning company account
        title: Job title (max 200 chars)
        status: Lifecycle stage (indexed)
        application_count: Applications received minus withdrawals.
            Written only through the capacity counter.
        max_applications: Optional admission limit
        application_deadline: Optional cutoff for new applications
        moderated_by/moderated_at/moderation_reason: Last moderation decision
    """

    __tablename__ = "jobs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    location = Column(String(200), nullable=True)
    status = Column(String(20), nullable=False, default=JobStatus.DRAFT.value, index=True)
    application_count = Column(Integer, nullable=False, default=0)
    max_applications = Column(Integer, nullable=True)
    application_deadline = Column(DateTime, nullable=True)
    moderated_by = Column(String, nullable=True)
    moderated_at = Column(DateTime, nullable=True)
    moderation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
