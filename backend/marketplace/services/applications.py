"""
Application Lifecycle State Machine

The only component that creates applications or changes their status.

Operations:
    - submit: create an application in Pending and count it against the job
    - transition: move an application along the status graph
    - withdraw: applicant-initiated transition to Withdrawn
    - schedule_interview: Shortlisted -> Interview with the interview details
    - add_feedback: one-time rating and comment on an Accepted application
    - add_note: public or private note; private notes are hidden from the applicant
    - expire_stale: reject Pending applications older than the expiry window
    - send_interview_reminders: remind applicants of interviews inside a window
    - get_application / list_applications: cached, role-scoped reads

Consistency:
    Each write runs in one database transaction that covers the application
    row, its history entry and the job counter. The status update is a
    compare-and-set on the status read at the start of the transaction; the
    status graph is acyclic, so a status never recurs and the status value
    alone is a sufficient version. Losing the race raises
    InvalidTransitionError.

    Notification dispatch and cache invalidation run only after commit,
    concurrently, and never fail the operation.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.database import to_naive_utc, utcnow
from marketplace.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidTransitionError,
    MarketplaceError,
    NotFoundError,
)
from marketplace.middleware.metrics import (
    record_expired,
    record_transition,
    record_transition_failure,
)
from marketplace.models import (
    Application,
    ApplicationNote,
    ApplicationStatus,
    ApplicationStatusHistory,
    Job,
    JobStatus,
    User,
    UserRole,
)
from marketplace.schemas import (
    Actor,
    ApplicationCreate,
    ApplicationListResponse,
    ApplicationResponse,
    ExpiryReport,
    FeedbackCreate,
    InterviewScheduleRequest,
    NoteCreate,
    ReminderReport,
    SYSTEM_ACTOR,
)
from marketplace.services.cache import (
    APPLICATION_LIST_NAMESPACE,
    EntityCache,
    EntityKind,
    entity_key,
    list_key,
)
from marketplace.services.capacity import JobCapacityCounter
from marketplace.services.notifications import (
    NotificationDispatcher,
    NotificationEvent,
    NotificationKind,
)
from marketplace.services.transitions import (
    INITIAL_APPLICATION_STATUS,
    authorize_application_transition,
    coerce_application_status,
    is_counted,
    validate_application_transition,
)

logger = logging.getLogger(__name__)


def describe_window(window: timedelta) -> str:
    """Human wording for a sweep window: "30 days", "12 hours", "45 minutes"."""
    seconds = int(window.total_seconds())
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size and seconds % size == 0:
            count = seconds // size
            return f"{count} {unit}" + ("s" if count != 1 else "")
    return f"{seconds} seconds"


class ApplicationStateMachine:
    """
    Authority for application creation and status changes.

    Attributes:
        session_factory: Produces one AsyncSession per operation
        cache: Read cache, invalidated after every committed write
        notifier: Fire-and-forget notification sink
        capacity: Job application counter
        clock: Returns the current naive UTC time
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: EntityCache,
        notifier: NotificationDispatcher,
        capacity: Optional[JobCapacityCounter] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.cache = cache
        self.notifier = notifier
        self.capacity = capacity or JobCapacityCounter()
        self.clock = clock

    # ==================== Submit ====================

    async def submit(
        self,
        job_id: str,
        applicant_id: str,
        payload: ApplicationCreate,
    ) -> ApplicationResponse:
        """
        Create an application in Pending and count it against the job.

        Raises:
            NotFoundError: job or applicant does not exist
            ForbiddenError: applicant is not an ambassador account
            ConflictError: duplicate application, or the job is not
                accepting applications
            InternalError: storage failure
        """
        now = self.clock()
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    job = await session.get(Job, job_id)
                    if job is None:
                        raise NotFoundError(f"job {job_id} not found")

                    applicant = await session.get(User, applicant_id)
                    if applicant is None:
                        raise NotFoundError(f"applicant {applicant_id} not found")
                    if applicant.role != UserRole.AMBASSADOR.value:
                        raise ForbiddenError("only ambassadors can apply to jobs")

                    self._ensure_accepting(job, now)

                    existing = await session.scalar(
                        select(Application.id).where(
                            Application.job_id == job_id,
                            Application.applicant_id == applicant_id,
                        )
                    )
                    if existing:
                        raise ConflictError("you have already applied for this job")

                    application = Application(
                        job=job,
                        applicant_id=applicant_id,
                        status=INITIAL_APPLICATION_STATUS.value,
                        cover_letter=payload.cover_letter,
                        resume_url=payload.resume_url,
                        expected_salary=payload.expected_salary,
                        availability=payload.availability,
                        years_experience=payload.years_experience,
                        last_status_update=now,
                        created_at=now,
                        status_history=[
                            ApplicationStatusHistory(
                                status=INITIAL_APPLICATION_STATUS.value,
                                actor_id=applicant_id,
                                notes="Application submitted",
                                changed_at=now,
                            )
                        ],
                    )
                    session.add(application)
                    await session.flush()

                    if not await self.capacity.try_increment(session, job_id):
                        # Status or headroom changed after our read
                        raise ConflictError("job is no longer accepting applications")

                    await session.refresh(application)
                    response = ApplicationResponse.model_validate(application)
                    owner = await session.get(User, job.company_id)
                    job_title = job.title
                    applicant_email = applicant.email
                    applicant_name = applicant.name

        except IntegrityError as e:
            record_transition_failure(ConflictError.code)
            raise ConflictError("you have already applied for this job") from e
        except MarketplaceError as e:
            record_transition_failure(e.code)
            raise
        except SQLAlchemyError as e:
            record_transition_failure(InternalError.code)
            logger.error(f"Storage error submitting application to job {job_id}: {e}")
            raise InternalError("could not store application") from e

        logger.info(f"Application {response.id} submitted to job {job_id} by {applicant_id}")
        record_transition("none", INITIAL_APPLICATION_STATUS.value)

        template_data = {"job_title": job_title, "applicant_name": applicant_name}
        events = [
            NotificationEvent(
                kind=NotificationKind.APPLICATION_SUBMITTED,
                application_id=response.id,
                job_id=job_id,
                actor_id=applicant_id,
                new_status=response.status.value,
                recipient_id=applicant_id,
                recipient_address=applicant_email,
                template_data=template_data,
            )
        ]
        if owner is not None:
            events.append(
                NotificationEvent(
                    kind=NotificationKind.APPLICATION_RECEIVED,
                    application_id=response.id,
                    job_id=job_id,
                    actor_id=applicant_id,
                    new_status=response.status.value,
                    recipient_id=owner.id,
                    recipient_address=owner.email,
                    template_data=template_data,
                )
            )

        await self._after_commit(events, response.id, job_id)
        return response

    def _ensure_accepting(self, job: Job, now: datetime) -> None:
        if job.status != JobStatus.ACTIVE.value:
            raise ConflictError(
                f"job is not accepting applications (status {job.status})"
            )
        if job.application_deadline is not None and now > job.application_deadline:
            raise ConflictError("the application deadline for this job has passed")
        if (
            job.max_applications is not None
            and job.application_count >= job.max_applications
        ):
            raise ConflictError("job has reached its application limit")

    # ==================== Transition ====================

    async def transition(
        self,
        application_id: str,
        actor: Actor,
        target_status: ApplicationStatus | str,
        notes: Optional[str] = None,
    ) -> ApplicationResponse:
        """
        Move an application to target_status.

        Raises:
            NotFoundError: application does not exist
            ForbiddenError: actor may not drive the application to target_status
            InvalidTransitionError: the edge is not in the status graph, or a
                concurrent transition won the race
            InternalError: storage failure
        """
        return await self._transition(application_id, actor, target_status, notes)

    async def _transition(
        self,
        application_id: str,
        actor: Actor,
        target_status: ApplicationStatus | str,
        notes: Optional[str],
        extra_values: Optional[dict] = None,
        kind: NotificationKind = NotificationKind.APPLICATION_STATUS_CHANGED,
    ) -> ApplicationResponse:
        """Compare-and-set the status, writing extra_values in the same UPDATE."""
        now = self.clock()
        try:
            target = coerce_application_status(target_status)
            async with self.session_factory() as session:
                async with session.begin():
                    application = await session.get(Application, application_id)
                    if application is None:
                        raise NotFoundError(f"application {application_id} not found")

                    current = coerce_application_status(application.status)
                    authorize_application_transition(
                        actor,
                        target,
                        applicant_id=application.applicant_id,
                        company_id=application.company_id,
                    )
                    validate_application_transition(current, target)

                    result = await session.execute(
                        update(Application)
                        .where(Application.id == application_id)
                        .where(Application.status == current.value)
                        .values(
                            status=target.value,
                            last_status_update=now,
                            **(extra_values or {}),
                        )
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount != 1:
                        raise InvalidTransitionError(
                            f"application changed status concurrently and is no longer {current.value}"
                        )

                    session.add(
                        ApplicationStatusHistory(
                            application_id=application_id,
                            status=target.value,
                            actor_id=actor.id,
                            notes=notes,
                            changed_at=now,
                        )
                    )

                    if target is ApplicationStatus.WITHDRAWN and is_counted(current):
                        await self.capacity.decrement(session, application.job_id)

                    await session.flush()
                    await session.refresh(application)

                    response = ApplicationResponse.model_validate(application)
                    applicant = await session.get(User, application.applicant_id)
                    job_title = application.job.title

        except MarketplaceError as e:
            record_transition_failure(e.code)
            raise
        except SQLAlchemyError as e:
            record_transition_failure(InternalError.code)
            logger.error(f"Storage error transitioning application {application_id}: {e}")
            raise InternalError("could not update application status") from e

        logger.info(
            f"Application {application_id}: {current.value} -> {target.value} by {actor.role.value}:{actor.id}"
        )
        record_transition(current.value, target.value)

        events = []
        if applicant is not None:
            template_data = {
                "job_title": job_title,
                "applicant_name": applicant.name,
                "previous_status": current.value,
                "notes": notes,
            }
            if response.interview is not None:
                template_data["interview"] = response.interview.model_dump(mode="json")
            events.append(
                NotificationEvent(
                    kind=kind,
                    application_id=application_id,
                    job_id=response.job_id,
                    actor_id=actor.id,
                    new_status=target.value,
                    recipient_id=applicant.id,
                    recipient_address=applicant.email,
                    template_data=template_data,
                )
            )

        await self._after_commit(events, application_id, response.job_id)
        return self._visible_to(actor, response)

    async def withdraw(
        self,
        application_id: str,
        actor: Actor,
        notes: Optional[str] = None,
    ) -> ApplicationResponse:
        return await self.transition(
            application_id,
            actor,
            ApplicationStatus.WITHDRAWN,
            notes=notes or "Application withdrawn by applicant",
        )

    # ==================== Interview, Feedback, Notes ====================

    async def schedule_interview(
        self,
        application_id: str,
        actor: Actor,
        schedule: InterviewScheduleRequest,
    ) -> ApplicationResponse:
        """
        Move a Shortlisted application to Interview and record the interview.

        The details are written by the same compare-and-set UPDATE as the
        status, so they can never be attached to an application that a
        concurrent request moved elsewhere.

        Raises:
            BadRequestError: interview time is not in the future
            plus everything transition() raises
        """
        scheduled_for = to_naive_utc(schedule.scheduled_for)
        if scheduled_for <= self.clock():
            raise BadRequestError("interview must be scheduled in the future")

        return await self._transition(
            application_id,
            actor,
            ApplicationStatus.INTERVIEW,
            notes=schedule.notes or "Interview scheduled",
            extra_values={
                "interview_at": scheduled_for,
                "interview_type": schedule.type.value,
                "interview_location": schedule.location,
                "interview_meeting_link": schedule.meeting_link,
                "interview_notes": schedule.notes,
                "interviewers": list(schedule.interviewers),
                "interview_reminder_sent_at": None,
            },
            kind=NotificationKind.INTERVIEW_SCHEDULED,
        )

    async def add_feedback(
        self,
        application_id: str,
        actor: Actor,
        payload: FeedbackCreate,
    ) -> ApplicationResponse:
        """
        Rate an Accepted application. Feedback can be given once.

        Raises:
            NotFoundError: application does not exist
            ForbiddenError: actor is not the job owner or an admin
            ConflictError: application is not Accepted, or already has feedback
        """
        now = self.clock()
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    application = await session.get(Application, application_id)
                    if application is None:
                        raise NotFoundError(f"application {application_id} not found")

                    if not self._owns_job(actor, application.company_id):
                        raise ForbiddenError("only the job owner or an admin can leave feedback")
                    if application.status != ApplicationStatus.ACCEPTED.value:
                        raise ConflictError("feedback can only be added to accepted applications")
                    if application.feedback_at is not None:
                        raise ConflictError("feedback has already been given for this application")

                    result = await session.execute(
                        update(Application)
                        .where(Application.id == application_id)
                        .where(Application.status == ApplicationStatus.ACCEPTED.value)
                        .where(Application.feedback_at.is_(None))
                        .values(
                            feedback_rating=payload.rating,
                            feedback_comment=payload.comment,
                            feedback_by=actor.id,
                            feedback_at=now,
                        )
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount != 1:
                        raise ConflictError("feedback has already been given for this application")

                    await session.refresh(application)
                    response = ApplicationResponse.model_validate(application)
        except MarketplaceError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Storage error adding feedback to application {application_id}: {e}")
            raise InternalError("could not store feedback") from e

        logger.info(f"Feedback ({payload.rating}/5) added to application {application_id} by {actor.id}")
        await self._after_commit([], application_id, response.job_id)
        return self._visible_to(actor, response)

    async def add_note(
        self,
        application_id: str,
        actor: Actor,
        payload: NoteCreate,
    ) -> ApplicationResponse:
        """
        Append a note. Anyone who can read the application may add one;
        only the job owner and admins may add private notes.

        Raises:
            NotFoundError: application does not exist
            ForbiddenError: actor may not view the application, or an
                applicant tried to add a private note
        """
        now = self.clock()
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    application = await session.get(Application, application_id)
                    if application is None:
                        raise NotFoundError(f"application {application_id} not found")

                    self._authorize_read(actor, application)
                    if payload.is_private and not self._owns_job(actor, application.company_id):
                        raise ForbiddenError("only the job owner or an admin can add private notes")

                    session.add(
                        ApplicationNote(
                            application_id=application_id,
                            author_id=actor.id,
                            content=payload.content,
                            is_private=payload.is_private,
                            created_at=now,
                        )
                    )
                    await session.flush()
                    await session.refresh(application)
                    response = ApplicationResponse.model_validate(application)
        except MarketplaceError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Storage error adding note to application {application_id}: {e}")
            raise InternalError("could not store note") from e

        await self._after_commit([], application_id, response.job_id)
        return self._visible_to(actor, response)

    # ==================== Expiry Sweep ====================

    async def expire_stale(self, expiry_window: timedelta) -> ExpiryReport:
        """
        Reject Pending applications created before now - expiry_window.

        Each application is transitioned independently with the system
        actor; a failure is logged and counted and the sweep moves on.
        Running the sweep twice is harmless: expired applications are no
        longer Pending.

        Args:
            expiry_window: Age after which a Pending application expires

        Returns:
            ExpiryReport with processed/expired/failed counts
        """
        cutoff = self.clock() - expiry_window
        try:
            async with self.session_factory() as session:
                result = await session.scalars(
                    select(Application.id)
                    .where(Application.status == ApplicationStatus.PENDING.value)
                    .where(Application.created_at < cutoff)
                    .order_by(Application.created_at)
                )
                stale_ids = list(result.all())
        except SQLAlchemyError as e:
            logger.error(f"Storage error selecting stale applications: {e}")
            raise InternalError("could not select stale applications") from e

        report = ExpiryReport()
        notes = f"auto-expired after {describe_window(expiry_window)} in Pending"

        for application_id in stale_ids:
            report.processed += 1
            try:
                await self.transition(
                    application_id,
                    SYSTEM_ACTOR,
                    ApplicationStatus.REJECTED,
                    notes=notes,
                )
                report.expired += 1
            except MarketplaceError as e:
                report.failed += 1
                logger.warning(f"Could not expire application {application_id}: {e.message}")
            except Exception as e:
                report.failed += 1
                logger.error(f"Unexpected error expiring application {application_id}: {e!r}")

        record_expired(report.expired)
        logger.info(
            f"Expiry sweep: {report.processed} stale, {report.expired} expired, {report.failed} failed"
        )
        return report

    async def send_interview_reminders(self, reminder_window: timedelta) -> ReminderReport:
        """
        Remind applicants of interviews starting within reminder_window.

        Each interview is reminded at most once: the reminder timestamp is
        claimed with a conditional UPDATE before anything is dispatched, so
        overlapping sweeps cannot both send.

        Args:
            reminder_window: How far ahead of the interview to remind

        Returns:
            ReminderReport with the number of due interviews and reminders sent
        """
        now = self.clock()
        horizon = now + reminder_window
        report = ReminderReport()
        reminders = []

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        select(Application)
                        .where(Application.status == ApplicationStatus.INTERVIEW.value)
                        .where(Application.interview_at > now)
                        .where(Application.interview_at <= horizon)
                        .where(Application.interview_reminder_sent_at.is_(None))
                        .order_by(Application.interview_at)
                    )
                    due = result.unique().scalars().all()
                    report.due = len(due)

                    for application in due:
                        claimed = await session.execute(
                            update(Application)
                            .where(Application.id == application.id)
                            .where(Application.interview_reminder_sent_at.is_(None))
                            .values(interview_reminder_sent_at=now)
                            .execution_options(synchronize_session=False)
                        )
                        if claimed.rowcount != 1:
                            continue

                        applicant = await session.get(User, application.applicant_id)
                        if applicant is None:
                            continue
                        reminders.append(
                            NotificationEvent(
                                kind=NotificationKind.INTERVIEW_REMINDER,
                                application_id=application.id,
                                job_id=application.job_id,
                                actor_id=SYSTEM_ACTOR.id,
                                new_status=application.status,
                                recipient_id=applicant.id,
                                recipient_address=applicant.email,
                                template_data={
                                    "job_title": application.job.title,
                                    "applicant_name": applicant.name,
                                    "interview": {
                                        "scheduled_for": application.interview_at.isoformat(),
                                        "type": application.interview_type,
                                        "location": application.interview_location,
                                        "meeting_link": application.interview_meeting_link,
                                    },
                                },
                            )
                        )
        except SQLAlchemyError as e:
            logger.error(f"Storage error selecting upcoming interviews: {e}")
            raise InternalError("could not select upcoming interviews") from e

        for event in reminders:
            await self._after_commit([event], event.application_id, event.job_id)
            report.sent += 1

        logger.info(f"Interview reminders: {report.sent} sent for {report.due} upcoming interviews")
        return report

    # ==================== Reads ====================

    async def get_application(self, application_id: str, actor: Actor) -> ApplicationResponse:
        """
        Fetch one application, readable by admins, the job owner and the applicant.

        Raises:
            NotFoundError: application does not exist
            ForbiddenError: actor may not view it
        """
        key = entity_key(EntityKind.APPLICATION, application_id)
        cached = await self.cache.get(key)

        if cached is not None:
            response = ApplicationResponse.model_validate(cached)
        else:
            try:
                async with self.session_factory() as session:
                    application = await session.get(Application, application_id)
                    if application is None:
                        raise NotFoundError(f"application {application_id} not found")
                    response = ApplicationResponse.model_validate(application)
            except SQLAlchemyError as e:
                raise InternalError("could not load application") from e
            await self.cache.set(key, response.model_dump(mode="json"))

        self._authorize_read(actor, response)
        return self._visible_to(actor, response)

    def _authorize_read(self, actor: Actor, application) -> None:
        if actor.role in (UserRole.ADMIN, UserRole.SYSTEM):
            return
        if actor.role is UserRole.COMPANY and actor.id == application.company_id:
            return
        if actor.role is UserRole.AMBASSADOR and actor.id == application.applicant_id:
            return
        raise ForbiddenError("not allowed to view this application")

    def _owns_job(self, actor: Actor, company_id: str) -> bool:
        if actor.role is UserRole.ADMIN:
            return True
        return actor.role is UserRole.COMPANY and actor.id == company_id

    def _visible_to(self, actor: Actor, response: ApplicationResponse) -> ApplicationResponse:
        """Strip private notes from what the applicant sees."""
        if actor.role is not UserRole.AMBASSADOR:
            return response
        public = [note for note in response.notes if not note.is_private]
        return response.model_copy(update={"notes": public})

    async def list_applications(
        self,
        actor: Actor,
        job_id: Optional[str] = None,
        status: Optional[ApplicationStatus] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> ApplicationListResponse:
        """
        List applications visible to the actor, newest first.

        Ambassadors see their own applications, companies see applications
        to their jobs, admins see everything.
        """
        params = {
            "scope": self._scope(actor),
            "job_id": job_id,
            "status": status.value if status else None,
            "page": page,
            "per_page": per_page,
        }
        key = list_key(APPLICATION_LIST_NAMESPACE, params)
        cached = await self.cache.get(key)
        if cached is not None:
            return self._visible_list(actor, ApplicationListResponse.model_validate(cached))

        query = select(Application).join(Job, Application.job_id == Job.id)
        count_query = select(func.count(Application.id)).join(Job, Application.job_id == Job.id)

        filters = []
        if actor.role is UserRole.AMBASSADOR:
            filters.append(Application.applicant_id == actor.id)
        elif actor.role is UserRole.COMPANY:
            filters.append(Job.company_id == actor.id)
        if job_id:
            filters.append(Application.job_id == job_id)
        if status:
            filters.append(Application.status == status.value)

        for condition in filters:
            query = query.where(condition)
            count_query = count_query.where(condition)

        query = query.order_by(Application.created_at.desc(), Application.id)
        query = query.offset((page - 1) * per_page).limit(per_page)

        try:
            async with self.session_factory() as session:
                total = (await session.execute(count_query)).scalar() or 0
                applications = (await session.execute(query)).unique().scalars().all()
                response = ApplicationListResponse(
                    applications=[ApplicationResponse.model_validate(a) for a in applications],
                    total=total,
                    page=page,
                    per_page=per_page,
                )
        except SQLAlchemyError as e:
            raise InternalError("could not list applications") from e

        await self.cache.set(
            key,
            response.model_dump(mode="json"),
            namespace=APPLICATION_LIST_NAMESPACE,
        )
        return self._visible_list(actor, response)

    def _visible_list(self, actor: Actor, response: ApplicationListResponse) -> ApplicationListResponse:
        if actor.role is not UserRole.AMBASSADOR:
            return response
        visible = [self._visible_to(actor, a) for a in response.applications]
        return response.model_copy(update={"applications": visible})

    def _scope(self, actor: Actor) -> str:
        if actor.role in (UserRole.AMBASSADOR, UserRole.COMPANY):
            return f"{actor.role.value}:{actor.id}"
        return "all"

    # ==================== Side Effects ====================

    async def _after_commit(
        self,
        events: List[NotificationEvent],
        application_id: str,
        job_id: str,
    ) -> None:
        """Dispatch notifications and invalidate caches concurrently, best-effort."""
        results = await asyncio.gather(
            *(self.notifier.notify(event) for event in events),
            self.cache.invalidate_entity(
                EntityKind.APPLICATION,
                application_id,
                related=[(EntityKind.JOB, job_id)],
            ),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.warning(
                    f"Post-commit side effect failed for application {application_id}: {result!r}"
                )
