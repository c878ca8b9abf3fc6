"""Canonical status graphs and authorization predicates for applications and jobs."""

from __future__ import annotations

from typing import Optional

from marketplace.errors import ForbiddenError, InvalidTransitionError
from marketplace.models.enums import ApplicationStatus, JobStatus, UserRole
from marketplace.schemas.auth import Actor

# ==================== Applications ====================

_APPLICATION_TRANSITIONS: dict[ApplicationStatus, tuple[ApplicationStatus, ...]] = {
    ApplicationStatus.PENDING: (
        ApplicationStatus.REVIEWING,
        ApplicationStatus.REJECTED,
        ApplicationStatus.WITHDRAWN,
    ),
    ApplicationStatus.REVIEWING: (
        ApplicationStatus.SHORTLISTED,
        ApplicationStatus.REJECTED,
        ApplicationStatus.WITHDRAWN,
    ),
    ApplicationStatus.SHORTLISTED: (
        ApplicationStatus.INTERVIEW,
        ApplicationStatus.REJECTED,
        ApplicationStatus.WITHDRAWN,
    ),
    ApplicationStatus.INTERVIEW: (
        ApplicationStatus.ACCEPTED,
        ApplicationStatus.REJECTED,
        ApplicationStatus.WITHDRAWN,
    ),
    ApplicationStatus.ACCEPTED: (),
    ApplicationStatus.REJECTED: (),
    ApplicationStatus.WITHDRAWN: (),
}

INITIAL_APPLICATION_STATUS = ApplicationStatus.PENDING

TERMINAL_APPLICATION_STATUSES: frozenset[ApplicationStatus] = frozenset(
    status for status, targets in _APPLICATION_TRANSITIONS.items() if not targets
)

# Statuses that contribute to Job.application_count
COUNTED_APPLICATION_STATUSES: frozenset[ApplicationStatus] = frozenset(
    status for status in ApplicationStatus if status is not ApplicationStatus.WITHDRAWN
)


def coerce_application_status(value: str | ApplicationStatus) -> ApplicationStatus:
    if isinstance(value, ApplicationStatus):
        return value
    try:
        return ApplicationStatus(value)
    except ValueError as exc:
        raise InvalidTransitionError(f"unknown application status '{value}'") from exc


def application_transition_map() -> dict[str, list[str]]:
    return {
        source.value: [target.value for target in targets]
        for source, targets in _APPLICATION_TRANSITIONS.items()
    }


def is_counted(status: str | ApplicationStatus) -> bool:
    return coerce_application_status(status) in COUNTED_APPLICATION_STATUSES


def _terminal_reason(current: ApplicationStatus, target: ApplicationStatus) -> str:
    if current is ApplicationStatus.ACCEPTED and target is ApplicationStatus.WITHDRAWN:
        return "cannot withdraw an accepted application"
    if current is ApplicationStatus.WITHDRAWN and target is ApplicationStatus.WITHDRAWN:
        return "application is already withdrawn"
    return f"application is {current.value.lower()} and can no longer change status"


def validate_application_transition(
    current: str | ApplicationStatus,
    target: str | ApplicationStatus,
) -> None:
    """
    Raise InvalidTransitionError unless current -> target is an edge of the graph.

    Terminal statuses have no outgoing edges and self-loops are never edges.
    """
    current_status = coerce_application_status(current)
    target_status = coerce_application_status(target)

    if current_status in TERMINAL_APPLICATION_STATUSES:
        raise InvalidTransitionError(_terminal_reason(current_status, target_status))

    if target_status is current_status:
        raise InvalidTransitionError(
            f"application is already {current_status.value.lower()}"
        )

    if target_status not in _APPLICATION_TRANSITIONS[current_status]:
        raise InvalidTransitionError(
            f"cannot move application from {current_status.value} to {target_status.value}"
        )


def authorize_application_transition(
    actor: Actor,
    target: str | ApplicationStatus,
    applicant_id: str,
    company_id: str,
) -> None:
    """
    Raise ForbiddenError unless actor may drive an application to target.

    - Withdrawn: only the applicant.
    - Rejected: the owning company, an admin, or the system (expiry sweep).
    - Anything else: the owning company or an admin.
    """
    target_status = coerce_application_status(target)

    if target_status is ApplicationStatus.WITHDRAWN:
        if actor.role is UserRole.AMBASSADOR and actor.id == applicant_id:
            return
        raise ForbiddenError("only the applicant can withdraw an application")

    if actor.role is UserRole.ADMIN:
        return
    if actor.role is UserRole.COMPANY and actor.id == company_id:
        return
    if actor.role is UserRole.SYSTEM and target_status is ApplicationStatus.REJECTED:
        return

    raise ForbiddenError(
        f"only the job owner or an admin can move an application to {target_status.value}"
    )


# ==================== Jobs ====================

_JOB_TRANSITIONS: dict[JobStatus, tuple[JobStatus, ...]] = {
    JobStatus.DRAFT: (JobStatus.PENDING, JobStatus.CANCELLED),
    JobStatus.PENDING: (JobStatus.ACTIVE, JobStatus.REJECTED),
    JobStatus.REJECTED: (JobStatus.DRAFT,),
    JobStatus.ACTIVE: (JobStatus.PAUSED, JobStatus.CLOSED, JobStatus.CANCELLED),
    JobStatus.PAUSED: (JobStatus.ACTIVE, JobStatus.CLOSED, JobStatus.CANCELLED),
    JobStatus.CLOSED: (),
    JobStatus.CANCELLED: (),
}

# Pending -> Active/Rejected is the moderation decision
_MODERATION_EDGES: frozenset[tuple[JobStatus, JobStatus]] = frozenset(
    {
        (JobStatus.PENDING, JobStatus.ACTIVE),
        (JobStatus.PENDING, JobStatus.REJECTED),
    }
)

ACCEPTING_JOB_STATUSES: frozenset[JobStatus] = frozenset({JobStatus.ACTIVE})


def coerce_job_status(value: str | JobStatus) -> JobStatus:
    if isinstance(value, JobStatus):
        return value
    try:
        return JobStatus(value)
    except ValueError as exc:
        raise InvalidTransitionError(f"unknown job status '{value}'") from exc


def job_transition_map() -> dict[str, list[str]]:
    return {
        source.value: [target.value for target in targets]
        for source, targets in _JOB_TRANSITIONS.items()
    }


def is_moderation_edge(current: str | JobStatus, target: str | JobStatus) -> bool:
    return (coerce_job_status(current), coerce_job_status(target)) in _MODERATION_EDGES


def validate_job_transition(current: str | JobStatus, target: str | JobStatus) -> None:
    current_status = coerce_job_status(current)
    target_status = coerce_job_status(target)

    if not _JOB_TRANSITIONS[current_status]:
        raise InvalidTransitionError(
            f"job is {current_status.value.lower()} and can no longer change status"
        )
    if target_status not in _JOB_TRANSITIONS[current_status]:
        raise InvalidTransitionError(
            f"cannot move job from {current_status.value} to {target_status.value}"
        )


def authorize_job_transition(
    actor: Actor,
    current: str | JobStatus,
    target: str | JobStatus,
    company_id: Optional[str],
) -> None:
    if actor.role is UserRole.ADMIN:
        return
    if is_moderation_edge(current, target):
        raise ForbiddenError("only an admin can moderate a job")
    if actor.role is UserRole.COMPANY and actor.id == company_id:
        return
    raise ForbiddenError("only the job owner or an admin can change this job")
