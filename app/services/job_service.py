"""
Job service
Owns the job lifecycle state machine
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from app.db.models.job import (
    Job,
    JOB_STATUSES,
    JOB_STATUS_OPEN,
    JOB_STATUS_ACCEPTED,
    JOB_STATUS_IN_PROGRESS,
    JOB_STATUS_COMPLETED,
    JOB_STATUS_PAID,
    JOB_STATUS_CANCELLED,
)
from app.db.models.user import User
from app.utils.lightning import cents_to_sats

logger = logging.getLogger(__name__)

VALID_JOB_TRANSITIONS: Dict[str, frozenset] = {
    JOB_STATUS_OPEN: frozenset({JOB_STATUS_ACCEPTED, JOB_STATUS_CANCELLED}),
    JOB_STATUS_ACCEPTED: frozenset({JOB_STATUS_IN_PROGRESS, JOB_STATUS_CANCELLED}),
    JOB_STATUS_IN_PROGRESS: frozenset({JOB_STATUS_COMPLETED, JOB_STATUS_CANCELLED}),
    JOB_STATUS_COMPLETED: frozenset({JOB_STATUS_PAID}),
    JOB_STATUS_PAID: frozenset(),
    JOB_STATUS_CANCELLED: frozenset(),
}

# Timestamp column stamped by the transition into each status
TRANSITION_TIMESTAMPS: Dict[str, str] = {
    JOB_STATUS_ACCEPTED: "accepted_at",
    JOB_STATUS_IN_PROGRESS: "started_at",
    JOB_STATUS_COMPLETED: "completed_at",
    JOB_STATUS_PAID: "paid_at",
    JOB_STATUS_CANCELLED: "cancelled_at",
}

CLIENT_TRANSITIONS = frozenset({JOB_STATUS_CANCELLED, JOB_STATUS_PAID})
RUNNER_TRANSITIONS = frozenset({JOB_STATUS_IN_PROGRESS, JOB_STATUS_COMPLETED})

TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 2000


def can_transition(current_status: str, target_status: str) -> bool:
    """Check the transition table"""
    return target_status in VALID_JOB_TRANSITIONS.get(current_status, frozenset())


def _validate_listing(title: Optional[str], description: Optional[str], price_cents: Optional[int]) -> None:
    if title is not None:
        if len(title.strip()) < TITLE_MIN_LENGTH:
            raise ValidationError(f"Title must be at least {TITLE_MIN_LENGTH} characters", "TITLE_TOO_SHORT")
        if len(title) > TITLE_MAX_LENGTH:
            raise ValidationError(f"Title must be at most {TITLE_MAX_LENGTH} characters", "TITLE_TOO_LONG")
    if description is not None and len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters", "DESCRIPTION_TOO_LONG"
        )
    if price_cents is not None and price_cents <= 0:
        raise ValidationError("Price must be greater than 0", "INVALID_PRICE")


class JobService:
    """Service for job creation and status transitions"""

    def __init__(self, db: AsyncSession, sats_per_usd: Optional[int] = None):
        self.db = db
        self.sats_per_usd = sats_per_usd or settings.SATS_PER_USD

    async def create_job(
        self,
        client_id: int,
        title: str,
        description: Optional[str],
        price_cents: int
    ) -> Job:
        """
        Create a new open job.

        Args:
            client_id: Posting user
            title: 3 to 200 characters
            description: Optional, at most 2000 characters
            price_cents: Asking price, must be positive

        Returns:
            The created Job

        Raises:
            NotFoundError: If the client does not exist
            ValidationError: If the listing is malformed
        """
        _validate_listing(title, description, price_cents)

        client = await self.db.get(User, client_id)
        if not client:
            raise NotFoundError(f"User {client_id} not found", "CLIENT_NOT_FOUND")

        job = Job(
            client_id=client_id,
            title=title.strip(),
            description=description.strip() if description else None,
            price_cents=price_cents,
            status=JOB_STATUS_OPEN
        )
        self.db.add(job)
        await self.db.commit()
        await self.db.refresh(job)

        logger.info(f"Created job {job.id} for client {client_id} ({price_cents} cents)")
        return job

    async def get_job(self, job_id: int, refresh: bool = False) -> Job:
        """
        Get job by ID.

        Raises:
            NotFoundError: If job not found
        """
        stmt = select(Job).where(Job.id == job_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        job = result.scalar_one_or_none()
        if not job:
            raise NotFoundError(f"Job {job_id} not found", "JOB_NOT_FOUND")
        return job

    async def list_jobs(
        self,
        status: Optional[str] = None,
        client_id: Optional[int] = None,
        runner_id: Optional[int] = None,
        limit: int = 20,
        offset: int = 0
    ) -> List[Job]:
        """List jobs newest first with optional filters"""
        if status is not None and status not in JOB_STATUSES:
            raise ValidationError(f"Unknown job status '{status}'", "INVALID_STATUS")

        stmt = select(Job)
        if status is not None:
            stmt = stmt.where(Job.status == status)
        if client_id is not None:
            stmt = stmt.where(Job.client_id == client_id)
        if runner_id is not None:
            stmt = stmt.where(Job.runner_id == runner_id)
        stmt = stmt.order_by(Job.created_at.desc(), Job.id.desc()).limit(limit).offset(offset)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def update_job(self, job_id: int, actor_id: int, **fields: Any) -> Job:
        """
        Edit title, description or price of an open job.

        Raises:
            AuthorizationError: If actor is not the job's client
            ConflictError: If the job is no longer open
        """
        job = await self.get_job(job_id, refresh=True)
        if job.client_id != actor_id:
            raise AuthorizationError("You can only update your own jobs", "NOT_JOB_OWNER")
        if job.status != JOB_STATUS_OPEN:
            raise ConflictError("Can only update open jobs", "JOB_NOT_OPEN")

        allowed = {"title", "description", "price_cents"}
        unknown = set(fields) - allowed
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}", "INVALID_FIELDS")

        _validate_listing(fields.get("title"), fields.get("description"), fields.get("price_cents"))

        for key, value in fields.items():
            if value is None:
                continue
            setattr(job, key, value.strip() if isinstance(value, str) else value)

        await self.db.commit()
        await self.db.refresh(job)
        logger.info(f"Updated job {job_id}")
        return job

    async def delete_job(self, job_id: int, actor_id: int) -> None:
        """
        Delete a job. Only cancelled jobs, or open jobs nobody has taken.

        Raises:
            AuthorizationError: If actor is not the job's client
            ConflictError: If the job is in any other state
        """
        job = await self.get_job(job_id, refresh=True)
        if job.client_id != actor_id:
            raise AuthorizationError("You can only delete your own jobs", "NOT_JOB_OWNER")

        deletable = job.status == JOB_STATUS_CANCELLED or (
            job.status == JOB_STATUS_OPEN and job.runner_id is None
        )
        if not deletable:
            raise ConflictError(f"Cannot delete job in status '{job.status}'", "INVALID_JOB_STATUS")

        await self.db.delete(job)
        await self.db.commit()
        logger.info(f"Deleted job {job_id}")

    async def assign_runner(
        self,
        job_id: int,
        runner_id: int,
        agreed_price_cents: Optional[int] = None,
        agreed_price_sats: Optional[int] = None
    ) -> Job:
        """
        Assign a runner to an open job (open -> accepted).

        The write is a single conditional UPDATE that only matches while the
        job is open and unassigned, so when several runners race for the same
        job exactly one wins and the rest get JOB_NOT_AVAILABLE.

        Args:
            job_id: Job to accept
            runner_id: Accepting runner
            agreed_price_cents: Negotiated price, defaults to the list price
            agreed_price_sats: Negotiated sats, derived from cents when omitted

        Returns:
            The accepted Job

        Raises:
            NotFoundError: If the runner or job does not exist
            AuthorizationError: If the runner is the job's client
            ConflictError: If the job is no longer available
        """
        runner = await self.db.get(User, runner_id)
        if not runner:
            raise NotFoundError(f"Runner {runner_id} not found", "RUNNER_NOT_FOUND")

        job = await self.get_job(job_id, refresh=True)
        if job.client_id == runner_id:
            raise AuthorizationError("You cannot accept your own job", "CANNOT_ACCEPT_OWN_JOB")
        if job.status != JOB_STATUS_OPEN or job.runner_id is not None:
            if job.status not in (JOB_STATUS_OPEN, JOB_STATUS_ACCEPTED):
                raise InvalidTransitionError(job.status, JOB_STATUS_ACCEPTED)
            raise ConflictError(f"Job {job_id} is no longer available", "JOB_NOT_AVAILABLE")

        if agreed_price_cents is not None and agreed_price_cents <= 0:
            raise ValidationError("Agreed price must be greater than 0", "INVALID_PRICE")
        cents = agreed_price_cents if agreed_price_cents is not None else job.price_cents
        sats = agreed_price_sats if agreed_price_sats is not None else cents_to_sats(cents, self.sats_per_usd)

        now = datetime.now(timezone.utc)
        stmt = (
            update(Job)
            .where(Job.id == job_id, Job.status == JOB_STATUS_OPEN, Job.runner_id.is_(None))
            .values(
                runner_id=runner_id,
                status=JOB_STATUS_ACCEPTED,
                agreed_price_cents=cents,
                agreed_price_sats=sats,
                accepted_at=now,
                updated_at=now
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            await self.db.rollback()
            logger.info(f"Runner {runner_id} lost the race for job {job_id}")
            raise ConflictError(f"Job {job_id} is no longer available", "JOB_NOT_AVAILABLE")

        await self.db.commit()
        logger.info(f"Assigned runner {runner_id} to job {job_id}")
        return await self.get_job(job_id, refresh=True)

    async def transition(
        self,
        job_id: int,
        actor_id: int,
        target_status: str,
        agreed_price_cents: Optional[int] = None,
        agreed_price_sats: Optional[int] = None,
        commit: bool = True
    ) -> Job:
        """
        Move a job to target_status on behalf of actor_id.

        The client may cancel and mark paid, the assigned runner may start and
        complete, and any existing user other than the client may accept.
        Exactly one timestamp column is stamped. The UPDATE is guarded on the
        status that was read, so a concurrent writer turns into a conflict
        instead of a skipped state.

        Args:
            job_id: Job to move
            actor_id: Authenticated user requesting the change
            target_status: Requested status
            agreed_price_cents: Only used when accepting
            agreed_price_sats: Only used when accepting
            commit: False to leave the change in the caller's transaction

        Returns:
            The updated Job

        Raises:
            ValidationError: If target_status is not a job status
            AuthorizationError: If actor may not perform this transition
            InvalidTransitionError: If the table does not allow it
        """
        if target_status not in JOB_STATUSES:
            raise ValidationError(f"Unknown job status '{target_status}'", "INVALID_STATUS")

        if target_status == JOB_STATUS_ACCEPTED:
            return await self.assign_runner(job_id, actor_id, agreed_price_cents, agreed_price_sats)

        job = await self.get_job(job_id, refresh=True)

        if target_status in CLIENT_TRANSITIONS and job.client_id != actor_id:
            raise AuthorizationError(
                f"Only the job's client can move it to '{target_status}'", "NOT_JOB_OWNER"
            )
        if target_status in RUNNER_TRANSITIONS and (job.runner_id is None or job.runner_id != actor_id):
            raise AuthorizationError("You are not assigned to this job", "NOT_ASSIGNED_RUNNER")

        if not can_transition(job.status, target_status):
            raise InvalidTransitionError(job.status, target_status)

        now = datetime.now(timezone.utc)
        values = {"status": target_status, "updated_at": now, TRANSITION_TIMESTAMPS[target_status]: now}
        stmt = (
            update(Job)
            .where(Job.id == job_id, Job.status == job.status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            await self.db.rollback()
            current = await self.get_job(job_id, refresh=True)
            raise InvalidTransitionError(current.status, target_status)

        if commit:
            await self.db.commit()
        else:
            await self.db.flush()

        logger.info(f"Job {job_id}: {job.status} -> {target_status} (actor {actor_id})")
        return await self.get_job(job_id, refresh=True)

    async def start_job(self, job_id: int, runner_id: int) -> Job:
        """accepted -> in_progress, assigned runner only"""
        return await self.transition(job_id, runner_id, JOB_STATUS_IN_PROGRESS)

    async def complete_job(self, job_id: int, runner_id: int) -> Job:
        """in_progress -> completed (awaiting payment), assigned runner only"""
        return await self.transition(job_id, runner_id, JOB_STATUS_COMPLETED)

    async def cancel_job(self, job_id: int, client_id: int) -> Job:
        """open/accepted/in_progress -> cancelled, client only"""
        return await self.transition(job_id, client_id, JOB_STATUS_CANCELLED)
