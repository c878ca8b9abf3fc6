"""
Canonical status and role enums.

These values are the wire contract shared with existing API clients; do not
rename them.
"""

from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    COMPANY = "company"
    AMBASSADOR = "ambassador"
    # Not an account role: used by scheduled jobs acting on the platform's behalf
    SYSTEM = "system"


class JobStatus(str, Enum):
    DRAFT = "Draft"
    PENDING = "Pending"
    ACTIVE = "Active"
    PAUSED = "Paused"
    CLOSED = "Closed"
    CANCELLED = "Cancelled"
    REJECTED = "Rejected"


class ApplicationStatus(str, Enum):
    PENDING = "Pending"
    REVIEWING = "Reviewing"
    SHORTLISTED = "Shortlisted"
    INTERVIEW = "Interview"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    WITHDRAWN = "Withdrawn"


class InterviewType(str, Enum):
    PHONE = "Phone"
    VIDEO = "Video"
    IN_PERSON = "In-Person"
