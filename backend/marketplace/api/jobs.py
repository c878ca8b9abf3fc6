from fastapi import APIRouter, Depends, Query, status
from typing import Optional
from marketplace.auth import get_current_actor
from marketplace.dependencies import get_application_service, get_job_service
from marketplace.models import JobStatus
from marketplace.schemas import (
    Actor,
    ApplicationCreate,
    ApplicationResponse,
    JobCreate,
    JobListResponse,
    JobResponse,
    JobStatusUpdate,
)
from marketplace.services.applications import ApplicationStateMachine
from marketplace.services.jobs import JobService

router = APIRouter()


@router.get("", response_model=JobListResponse)
async def list_jobs(
    status: Optional[JobStatus] = Query(None),
    company_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    jobs: JobService = Depends(get_job_service),
    _: Actor = Depends(get_current_actor),
):
    return await jobs.list_jobs(status=status, company_id=company_id, page=page, per_page=per_page)


@router.post("", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
async def create_job(
    payload: JobCreate,
    jobs: JobService = Depends(get_job_service),
    actor: Actor = Depends(get_current_actor),
):
    return await jobs.create_job(actor, payload)


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: str,
    jobs: JobService = Depends(get_job_service),
    _: Actor = Depends(get_current_actor),
):
    return await jobs.get_job(job_id)


@router.post("/{job_id}/status", response_model=JobResponse)
async def change_job_status(
    job_id: str,
    update: JobStatusUpdate,
    jobs: JobService = Depends(get_job_service),
    actor: Actor = Depends(get_current_actor),
):
    return await jobs.change_status(job_id, actor, update.status, reason=update.reason)


@router.post(
    "/{job_id}/applications",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def apply_to_job(
    job_id: str,
    payload: ApplicationCreate,
    applications: ApplicationStateMachine = Depends(get_application_service),
    actor: Actor = Depends(get_current_actor),
):
    return await applications.submit(job_id, actor.id, payload)
