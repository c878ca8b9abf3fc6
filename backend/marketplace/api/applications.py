from fastapi import APIRouter, Depends, Query
from typing import Optional
from marketplace.auth import get_current_actor
from marketplace.dependencies import get_application_service
from marketplace.models import ApplicationStatus
from marketplace.schemas import (
    Actor,
    ApplicationListResponse,
    ApplicationResponse,
    FeedbackCreate,
    InterviewScheduleRequest,
    NoteCreate,
    StatusTransitionRequest,
    WithdrawRequest,
)
from marketplace.services.applications import ApplicationStateMachine

router = APIRouter()


@router.get("", response_model=ApplicationListResponse)
async def list_applications(
    job_id: Optional[str] = Query(None),
    status: Optional[ApplicationStatus] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    applications: ApplicationStateMachine = Depends(get_application_service),
    actor: Actor = Depends(get_current_actor),
):
    return await applications.list_applications(
        actor, job_id=job_id, status=status, page=page, per_page=per_page
    )


@router.get("/{application_id}", response_model=ApplicationResponse)
async def get_application(
    application_id: str,
    applications: ApplicationStateMachine = Depends(get_application_service),
    actor: Actor = Depends(get_current_actor),
):
    return await applications.get_application(application_id, actor)


@router.post("/{application_id}/transitions", response_model=ApplicationResponse)
async def transition_application(
    application_id: str,
    request: StatusTransitionRequest,
    applications: ApplicationStateMachine = Depends(get_application_service),
    actor: Actor = Depends(get_current_actor),
):
    return await applications.transition(
        application_id, actor, request.status, notes=request.notes
    )


@router.post("/{application_id}/withdraw", response_model=ApplicationResponse)
async def withdraw_application(
    application_id: str,
    request: Optional[WithdrawRequest] = None,
    applications: ApplicationStateMachine = Depends(get_application_service),
    actor: Actor = Depends(get_current_actor),
):
    notes = request.notes if request else None
    return await applications.withdraw(application_id, actor, notes=notes)


@router.post("/{application_id}/interview", response_model=ApplicationResponse)
async def schedule_interview(
    application_id: str,
    request: InterviewScheduleRequest,
    applications: ApplicationStateMachine = Depends(get_application_service),
    actor: Actor = Depends(get_current_actor),
):
    return await applications.schedule_interview(application_id, actor, request)


@router.post("/{application_id}/feedback", response_model=ApplicationResponse)
async def add_feedback(
    application_id: str,
    request: FeedbackCreate,
    applications: ApplicationStateMachine = Depends(get_application_service),
    actor: Actor = Depends(get_current_actor),
):
    return await applications.add_feedback(application_id, actor, request)


@router.post("/{application_id}/notes", response_model=ApplicationResponse, status_code=201)
async def add_note(
    application_id: str,
    request: NoteCreate,
    applications: ApplicationStateMachine = Depends(get_application_service),
    actor: Actor = Depends(get_current_actor),
):
    return await applications.add_note(application_id, actor, request)
