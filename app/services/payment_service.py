"""
Payment service
Records client payments and moves completed jobs to paid
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import (
    AppError,
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from app.db.models.job import JOB_STATUS_COMPLETED, JOB_STATUS_IN_PROGRESS, JOB_STATUS_PAID
from app.db.models.payment import Payment
from app.db.models.user import RunnerProfile
from app.services.job_service import JobService
from app.utils.lightning import (
    cents_to_sats,
    generate_invoice_secret,
    hash_preimage,
    is_valid_preimage,
    verify_preimage,
)

logger = logging.getLogger(__name__)

INVOICE_EXPIRY_SECONDS = 3600


class PaymentService:
    """Service for payment confirmation and lookups"""

    def __init__(self, db: AsyncSession, sats_per_usd: Optional[int] = None):
        self.db = db
        self.sats_per_usd = sats_per_usd or settings.SATS_PER_USD
        self.jobs = JobService(db, sats_per_usd=self.sats_per_usd)

    async def _get_client_job(self, job_id: int, actor_id: int):
        job = await self.jobs.get_job(job_id)
        if job.client_id != actor_id:
            raise AuthorizationError("Only the job's client can pay for it", "NOT_JOB_OWNER")
        return job

    async def get_payment_by_job(self, job_id: int) -> Optional[Payment]:
        result = await self.db.execute(select(Payment).where(Payment.job_id == job_id))
        return result.scalar_one_or_none()

    async def get_payment_by_hash(self, payment_hash: str) -> Optional[Payment]:
        result = await self.db.execute(
            select(Payment).where(Payment.payment_hash == payment_hash.lower())
        )
        return result.scalar_one_or_none()

    async def confirm_payment(
        self,
        job_id: int,
        actor_id: int,
        preimage: Optional[str] = None,
        payment_hash: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Confirm the client's payment and move the job to paid.

        The payment row and the status change are written in one transaction:
        either both land or neither does.

        Args:
            job_id: Job being paid
            actor_id: Authenticated user, must be the job's client
            preimage: Optional 64-hex payment preimage
            payment_hash: Optional 64-hex payment hash

        Returns:
            Dict with job_id, status, payment_id and amount_sats

        Raises:
            NotFoundError: If job not found
            AuthorizationError: If actor is not the client
            ValidationError: If the preimage is malformed or does not match the hash
            ConflictError: If already paid or the job is not awaiting payment
        """
        job = await self._get_client_job(job_id, actor_id)

        if preimage is not None:
            if not is_valid_preimage(preimage):
                raise ValidationError("Preimage must be 64 hex characters", "INVALID_PREIMAGE_FORMAT")
            preimage = preimage.lower()
        if payment_hash is not None:
            if not is_valid_preimage(payment_hash):
                raise ValidationError("Payment hash must be 64 hex characters", "INVALID_PAYMENT_HASH")
            payment_hash = payment_hash.lower()

        if preimage and payment_hash:
            if not verify_preimage(preimage, payment_hash):
                raise ValidationError("Preimage does not match payment hash", "INVALID_PREIMAGE")
        elif preimage:
            payment_hash = hash_preimage(preimage)

        if await self.get_payment_by_job(job_id):
            raise ConflictError("Payment already confirmed for this job", "PAYMENT_ALREADY_CONFIRMED")

        if job.status != JOB_STATUS_COMPLETED:
            raise InvalidTransitionError(job.status, JOB_STATUS_PAID)

        amount_sats = cents_to_sats(job.payable_cents, self.sats_per_usd)
        payment = Payment(
            job_id=job_id,
            payment_hash=payment_hash,
            preimage=preimage,
            amount_sats=amount_sats,
            paid_at=datetime.now(timezone.utc)
        )

        try:
            self.db.add(payment)
            await self.db.flush()
            await self.jobs.transition(job_id, actor_id, JOB_STATUS_PAID, commit=False)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            if await self.get_payment_by_job(job_id):
                raise ConflictError("Payment already confirmed for this job", "PAYMENT_ALREADY_CONFIRMED")
            raise ConflictError("Payment hash has already been used", "PAYMENT_HASH_USED")
        except AppError:
            await self.db.rollback()
            raise
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Payment confirmation for job {job_id} failed: {e}", exc_info=True)
            raise

        logger.info(f"Payment confirmed for job {job_id}: payment {payment.id}, {amount_sats} sats")
        return {
            "job_id": job_id,
            "status": JOB_STATUS_PAID,
            "payment_id": payment.id,
            "amount_sats": amount_sats
        }

    async def create_invoice_for_job(
        self,
        job_id: int,
        actor_id: int,
        amount_sats: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Create a mock invoice for a job.

        No node is involved: the invoice string is a placeholder, but the
        hash/preimage pair is real so the preimage can be fed back into
        confirm_payment.

        Returns:
            Dict with payment_request, payment_hash, amount_sats, expires_at
            and test_preimage
        """
        job = await self._get_client_job(job_id, actor_id)
        if amount_sats is None:
            amount_sats = cents_to_sats(job.payable_cents, self.sats_per_usd)
        if amount_sats <= 0:
            raise ValidationError("Invoice amount must be greater than 0", "INVALID_AMOUNT")

        preimage, payment_hash = generate_invoice_secret()
        logger.info(f"Created mock invoice for job {job_id} ({amount_sats} sats, hash {payment_hash[:10]}...)")
        return {
            "payment_request": f"lnbc{amount_sats}n1mock{payment_hash[:8]}",
            "payment_hash": payment_hash,
            "amount_sats": amount_sats,
            "expires_at": datetime.now(timezone.utc) + timedelta(seconds=INVOICE_EXPIRY_SECONDS),
            "test_preimage": preimage
        }

    async def get_payment_instruction(self, job_id: int, actor_id: int) -> Dict[str, Any]:
        """
        Tell the client how much to pay and where.

        Raises:
            ConflictError: If the job is not in progress or completed
        """
        job = await self._get_client_job(job_id, actor_id)
        if job.status not in (JOB_STATUS_IN_PROGRESS, JOB_STATUS_COMPLETED):
            raise ConflictError(
                f"Payment instructions are not available for a job in status '{job.status}'",
                "INVALID_JOB_STATUS"
            )

        lightning_address = None
        if job.runner_id is not None:
            result = await self.db.execute(
                select(RunnerProfile.lightning_address).where(RunnerProfile.user_id == job.runner_id)
            )
            lightning_address = result.scalar_one_or_none()

        return {
            "job_id": job.id,
            "amount_cents": job.payable_cents,
            "amount_sats": cents_to_sats(job.payable_cents, self.sats_per_usd),
            "runner_id": job.runner_id,
            "lightning_address": lightning_address
        }

    async def get_payment_stats(self) -> Dict[str, Any]:
        """Count, total and average of confirmed payments in sats"""
        result = await self.db.execute(
            select(
                func.count(Payment.id),
                func.coalesce(func.sum(Payment.amount_sats), 0)
            )
        )
        count, total = result.one()
        count = int(count or 0)
        total = int(total or 0)
        return {
            "total_payments": count,
            "total_amount_sats": total,
            "average_amount_sats": total // count if count else 0
        }
