"""
Tests for the application and job status graphs.

Tests cover:
- Every allowed application edge, and rejection of everything else
- Terminal statuses and self-loops
- Who may drive each application transition
- Job lifecycle edges and admin-only moderation
"""

import pytest

from marketplace.errors import ForbiddenError, InvalidTransitionError
from marketplace.models import ApplicationStatus, JobStatus, UserRole
from marketplace.schemas import SYSTEM_ACTOR, Actor
from marketplace.services.transitions import (
    COUNTED_APPLICATION_STATUSES,
    TERMINAL_APPLICATION_STATUSES,
    application_transition_map,
    authorize_application_transition,
    authorize_job_transition,
    is_counted,
    is_moderation_edge,
    job_transition_map,
    validate_application_transition,
    validate_job_transition,
)

S = ApplicationStatus

ALLOWED_APPLICATION_EDGES = {
    (S.PENDING, S.REVIEWING),
    (S.PENDING, S.REJECTED),
    (S.PENDING, S.WITHDRAWN),
    (S.REVIEWING, S.SHORTLISTED),
    (S.REVIEWING, S.REJECTED),
    (S.REVIEWING, S.WITHDRAWN),
    (S.SHORTLISTED, S.INTERVIEW),
    (S.SHORTLISTED, S.REJECTED),
    (S.SHORTLISTED, S.WITHDRAWN),
    (S.INTERVIEW, S.ACCEPTED),
    (S.INTERVIEW, S.REJECTED),
    (S.INTERVIEW, S.WITHDRAWN),
}

ALL_PAIRS = [(a, b) for a in ApplicationStatus for b in ApplicationStatus]

APPLICANT = Actor(id="amb-1", role=UserRole.AMBASSADOR)
OTHER_APPLICANT = Actor(id="amb-2", role=UserRole.AMBASSADOR)
OWNER = Actor(id="company-1", role=UserRole.COMPANY)
OTHER_COMPANY = Actor(id="company-2", role=UserRole.COMPANY)
ADMIN = Actor(id="admin-1", role=UserRole.ADMIN)


class TestApplicationGraph:
    """Test the application status graph."""

    @pytest.mark.parametrize("current,target", sorted(ALLOWED_APPLICATION_EDGES))
    def test_allowed_edges_pass(self, current, target):
        validate_application_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [pair for pair in ALL_PAIRS if pair not in ALLOWED_APPLICATION_EDGES],
    )
    def test_other_pairs_are_rejected(self, current, target):
        with pytest.raises(InvalidTransitionError):
            validate_application_transition(current, target)

    def test_terminal_statuses(self):
        assert TERMINAL_APPLICATION_STATUSES == {S.ACCEPTED, S.REJECTED, S.WITHDRAWN}

    def test_accepted_cannot_be_withdrawn(self):
        with pytest.raises(InvalidTransitionError, match="cannot withdraw an accepted application"):
            validate_application_transition(S.ACCEPTED, S.WITHDRAWN)

    def test_double_withdraw_message(self):
        with pytest.raises(InvalidTransitionError, match="already withdrawn"):
            validate_application_transition(S.WITHDRAWN, S.WITHDRAWN)

    def test_self_loop_on_open_status(self):
        with pytest.raises(InvalidTransitionError, match="already reviewing"):
            validate_application_transition(S.REVIEWING, S.REVIEWING)

    def test_skipping_a_stage_names_both_statuses(self):
        with pytest.raises(InvalidTransitionError, match="from Pending to Interview"):
            validate_application_transition(S.PENDING, S.INTERVIEW)

    def test_accepts_raw_strings(self):
        validate_application_transition("Pending", "Reviewing")

    def test_unknown_status(self):
        with pytest.raises(InvalidTransitionError, match="unknown application status"):
            validate_application_transition("Pending", "Hired")

    def test_transition_map_is_serializable(self):
        transitions = application_transition_map()
        assert transitions["Interview"] == ["Accepted", "Rejected", "Withdrawn"]
        assert transitions["Accepted"] == []

    def test_withdrawn_is_not_counted(self):
        assert not is_counted(S.WITHDRAWN)
        assert is_counted("Rejected")
        assert S.PENDING in COUNTED_APPLICATION_STATUSES


class TestApplicationAuthorization:
    """Test who may drive each application transition."""

    def test_applicant_can_withdraw(self):
        authorize_application_transition(APPLICANT, S.WITHDRAWN, "amb-1", "company-1")

    @pytest.mark.parametrize("actor", [OTHER_APPLICANT, OWNER, ADMIN, SYSTEM_ACTOR])
    def test_only_applicant_can_withdraw(self, actor):
        with pytest.raises(ForbiddenError, match="only the applicant"):
            authorize_application_transition(actor, S.WITHDRAWN, "amb-1", "company-1")

    @pytest.mark.parametrize("target", [S.REVIEWING, S.SHORTLISTED, S.INTERVIEW, S.ACCEPTED, S.REJECTED])
    def test_owner_and_admin_can_progress(self, target):
        authorize_application_transition(OWNER, target, "amb-1", "company-1")
        authorize_application_transition(ADMIN, target, "amb-1", "company-1")

    @pytest.mark.parametrize("actor", [APPLICANT, OTHER_COMPANY])
    def test_others_cannot_progress(self, actor):
        with pytest.raises(ForbiddenError, match="job owner or an admin"):
            authorize_application_transition(actor, S.REVIEWING, "amb-1", "company-1")

    def test_system_can_only_reject(self):
        authorize_application_transition(SYSTEM_ACTOR, S.REJECTED, "amb-1", "company-1")
        with pytest.raises(ForbiddenError):
            authorize_application_transition(SYSTEM_ACTOR, S.REVIEWING, "amb-1", "company-1")


class TestJobGraph:
    """Test the job lifecycle graph and moderation."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (JobStatus.DRAFT, JobStatus.PENDING),
            (JobStatus.PENDING, JobStatus.ACTIVE),
            (JobStatus.PENDING, JobStatus.REJECTED),
            (JobStatus.REJECTED, JobStatus.DRAFT),
            (JobStatus.ACTIVE, JobStatus.PAUSED),
            (JobStatus.PAUSED, JobStatus.ACTIVE),
            (JobStatus.ACTIVE, JobStatus.CLOSED),
            (JobStatus.PAUSED, JobStatus.CANCELLED),
        ],
    )
    def test_allowed_job_edges(self, current, target):
        validate_job_transition(current, target)

    def test_draft_cannot_go_live_without_moderation(self):
        with pytest.raises(InvalidTransitionError, match="from Draft to Active"):
            validate_job_transition(JobStatus.DRAFT, JobStatus.ACTIVE)

    def test_closed_is_terminal(self):
        with pytest.raises(InvalidTransitionError, match="no longer change status"):
            validate_job_transition(JobStatus.CLOSED, JobStatus.ACTIVE)

    def test_moderation_edges(self):
        assert is_moderation_edge(JobStatus.PENDING, JobStatus.ACTIVE)
        assert is_moderation_edge("Pending", "Rejected")
        assert not is_moderation_edge(JobStatus.ACTIVE, JobStatus.PAUSED)

    def test_only_admin_moderates(self):
        authorize_job_transition(ADMIN, JobStatus.PENDING, JobStatus.ACTIVE, "company-1")
        with pytest.raises(ForbiddenError, match="only an admin can moderate"):
            authorize_job_transition(OWNER, JobStatus.PENDING, JobStatus.ACTIVE, "company-1")

    def test_owner_manages_own_job(self):
        authorize_job_transition(OWNER, JobStatus.ACTIVE, JobStatus.PAUSED, "company-1")
        with pytest.raises(ForbiddenError):
            authorize_job_transition(OTHER_COMPANY, JobStatus.ACTIVE, JobStatus.PAUSED, "company-1")

    def test_job_transition_map(self):
        assert job_transition_map()["Rejected"] == ["Draft"]
