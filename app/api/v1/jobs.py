"""
Job endpoints
Posting, listing and moving jobs through their lifecycle
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import get_current_user_id
from app.db.base import get_db
from app.schemas.common import SuccessResponse, ok
from app.schemas.job import AcceptJobRequest, CreateJobRequest, JobResponse, UpdateJobRequest
from app.services.job_service import JobService

router = APIRouter()


def get_job_service(db: AsyncSession = Depends(get_db)) -> JobService:
    """Dependency to get job service instance"""
    return JobService(db)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse[JobResponse])
async def create_job(
    data: CreateJobRequest,
    user_id: int = Depends(get_current_user_id),
    job_service: JobService = Depends(get_job_service)
):
    """Post a new open job"""
    job = await job_service.create_job(user_id, data.title, data.description, data.price_cents)
    return ok(JobResponse.model_validate(job))


@router.get("", response_model=SuccessResponse[list[JobResponse]])
async def list_jobs(
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    client_id: Optional[int] = Query(None),
    runner_id: Optional[int] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: int = Depends(get_current_user_id),
    job_service: JobService = Depends(get_job_service)
):
    """List jobs, newest first"""
    jobs = await job_service.list_jobs(
        status=status_filter,
        client_id=client_id,
        runner_id=runner_id,
        limit=limit,
        offset=offset
    )
    return ok([JobResponse.model_validate(job) for job in jobs])


@router.get("/{job_id}", response_model=SuccessResponse[JobResponse])
async def get_job(
    job_id: int,
    user_id: int = Depends(get_current_user_id),
    job_service: JobService = Depends(get_job_service)
):
    job = await job_service.get_job(job_id)
    return ok(JobResponse.model_validate(job))


@router.patch("/{job_id}", response_model=SuccessResponse[JobResponse])
async def update_job(
    job_id: int,
    data: UpdateJobRequest,
    user_id: int = Depends(get_current_user_id),
    job_service: JobService = Depends(get_job_service)
):
    """Edit an open job (client only)"""
    job = await job_service.update_job(job_id, user_id, **data.model_dump(exclude_none=True))
    return ok(JobResponse.model_validate(job))


@router.delete("/{job_id}", response_model=SuccessResponse[dict])
async def delete_job(
    job_id: int,
    user_id: int = Depends(get_current_user_id),
    job_service: JobService = Depends(get_job_service)
):
    """Delete a cancelled job or an open job nobody has accepted"""
    await job_service.delete_job(job_id, user_id)
    return ok({"id": job_id, "deleted": True})


@router.post("/{job_id}/accept", response_model=SuccessResponse[JobResponse])
async def accept_job(
    job_id: int,
    data: Optional[AcceptJobRequest] = None,
    user_id: int = Depends(get_current_user_id),
    job_service: JobService = Depends(get_job_service)
):
    """Accept an open job as its runner"""
    data = data or AcceptJobRequest()
    job = await job_service.assign_runner(job_id, user_id, data.agreed_price_cents, data.agreed_price_sats)
    return ok(JobResponse.model_validate(job))


@router.post("/{job_id}/start", response_model=SuccessResponse[JobResponse])
async def start_job(
    job_id: int,
    user_id: int = Depends(get_current_user_id),
    job_service: JobService = Depends(get_job_service)
):
    job = await job_service.start_job(job_id, user_id)
    return ok(JobResponse.model_validate(job))


@router.post("/{job_id}/complete", response_model=SuccessResponse[JobResponse])
async def complete_job(
    job_id: int,
    user_id: int = Depends(get_current_user_id),
    job_service: JobService = Depends(get_job_service)
):
    """Mark the work done; the job then awaits the client's payment"""
    job = await job_service.complete_job(job_id, user_id)
    return ok(JobResponse.model_validate(job))


@router.post("/{job_id}/cancel", response_model=SuccessResponse[JobResponse])
async def cancel_job(
    job_id: int,
    user_id: int = Depends(get_current_user_id),
    job_service: JobService = Depends(get_job_service)
):
    job = await job_service.cancel_job(job_id, user_id)
    return ok(JobResponse.model_validate(job))
