"""
Payout service
Creates runner earnings for paid jobs and pays them out over Lightning
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, func, case, or_, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import AuthorizationError, NotFoundError
from app.db.models.earning import (
    RunnerEarning,
    EARNING_STATUS_PENDING,
    EARNING_STATUS_PROCESSING,
    EARNING_STATUS_COMPLETED,
    EARNING_STATUS_FAILED,
)
from app.db.models.job import Job, JOB_STATUS_PAID
from app.db.models.user import RunnerProfile
from app.services.lightning_service import LightningPayer, get_lightning_payer
from app.utils.lightning import calculate_fee, cents_to_sats

logger = logging.getLogger(__name__)

NO_ADDRESS_ERROR = "No Lightning address configured"
NO_PROOF_ERROR = "Lightning provider returned no payment proof"
INTERRUPTED_ERROR = "Payout interrupted before the Lightning provider answered"

COMPLETION_WRITE_ATTEMPTS = 3


class PayoutService:
    """
    Service for the runner earnings ledger.

    Each paid job gets at most one earning row (unique job_id). An earning is
    paid at most once: only pending or failed rows can be claimed for a
    payout attempt, and the claim is a conditional UPDATE so two concurrent
    attempts cannot both reach the payer. A processing claim older than
    stale_after belongs to an attempt that died mid-flight and can be taken
    over.
    """

    def __init__(
        self,
        db: AsyncSession,
        payer: Optional[LightningPayer] = None,
        fee_percent: Optional[int] = None,
        sats_per_usd: Optional[int] = None,
        stale_after: Optional[timedelta] = None
    ):
        self.db = db
        self.payer = payer or get_lightning_payer()
        self.fee_percent = settings.PLATFORM_FEE_PERCENT if fee_percent is None else fee_percent
        self.sats_per_usd = sats_per_usd or settings.SATS_PER_USD
        self.stale_after = stale_after or timedelta(seconds=settings.PAYOUT_STALE_SECONDS)

    async def get_earning(self, earning_id: int) -> Optional[RunnerEarning]:
        result = await self.db.execute(
            select(RunnerEarning)
            .where(RunnerEarning.id == earning_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_earning_by_job(self, job_id: int) -> Optional[RunnerEarning]:
        result = await self.db.execute(
            select(RunnerEarning)
            .where(RunnerEarning.job_id == job_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _get_lightning_address(self, runner_id: int) -> Optional[str]:
        result = await self.db.execute(
            select(RunnerProfile.lightning_address).where(RunnerProfile.user_id == runner_id)
        )
        return result.scalar_one_or_none()

    async def create_runner_earning(
        self,
        job_id: int,
        runner_id: int,
        amount_cents: int,
        lightning_address: Optional[str] = None
    ) -> RunnerEarning:
        """
        Create the pending earning for a job, or return the one that exists.

        Args:
            job_id: Paid job
            runner_id: Runner owed the payout
            amount_cents: Gross amount before platform fee
            lightning_address: Payout destination, may be None

        Returns:
            The job's RunnerEarning
        """
        existing = await self.get_earning_by_job(job_id)
        if existing:
            logger.info(f"Earning {existing.id} already exists for job {job_id}")
            return existing

        fee_cents, net_cents = calculate_fee(amount_cents, self.fee_percent)
        earning = RunnerEarning(
            runner_id=runner_id,
            job_id=job_id,
            amount_cents=amount_cents,
            amount_sats=cents_to_sats(amount_cents, self.sats_per_usd),
            platform_fee_cents=fee_cents,
            platform_fee_sats=cents_to_sats(fee_cents, self.sats_per_usd),
            net_amount_cents=net_cents,
            net_amount_sats=cents_to_sats(net_cents, self.sats_per_usd),
            status=EARNING_STATUS_PENDING,
            payout_method="lightning",
            lightning_address=lightning_address,
            retry_count=0
        )

        try:
            self.db.add(earning)
            await self.db.commit()
        except IntegrityError:
            # Another request created it between the lookup and the insert
            await self.db.rollback()
            existing = await self.get_earning_by_job(job_id)
            if existing is None:
                raise
            return existing

        await self.db.refresh(earning)
        logger.info(
            f"Created earning {earning.id} for runner {runner_id}, job {job_id}: "
            f"{net_cents} cents net ({earning.net_amount_sats} sats), fee {fee_cents} cents"
        )
        return earning

    async def _claim(self, earning_id: int) -> bool:
        """Move a pending, failed or stale processing earning to processing. False if it was not claimable."""
        now = datetime.now(timezone.utc)
        result = await self.db.execute(
            update(RunnerEarning)
            .where(
                RunnerEarning.id == earning_id,
                or_(
                    RunnerEarning.status.in_([EARNING_STATUS_PENDING, EARNING_STATUS_FAILED]),
                    and_(
                        RunnerEarning.status == EARNING_STATUS_PROCESSING,
                        RunnerEarning.processed_at < now - self.stale_after
                    )
                )
            )
            .values(status=EARNING_STATUS_PROCESSING, processed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            return False
        await self.db.commit()
        return True

    async def _mark_failed(self, earning: RunnerEarning, error: str) -> None:
        now = datetime.now(timezone.utc)
        earning.status = EARNING_STATUS_FAILED
        earning.error_message = error
        earning.failed_at = now
        earning.updated_at = now
        earning.retry_count = (earning.retry_count or 0) + 1
        await self.db.commit()

    async def _mark_completed(self, earning: RunnerEarning, payment_hash: str, payment_preimage: str) -> None:
        now = datetime.now(timezone.utc)
        earning.status = EARNING_STATUS_COMPLETED
        earning.payment_hash = payment_hash
        earning.payment_preimage = payment_preimage
        earning.error_message = None
        earning.completed_at = now
        earning.updated_at = now
        await self.db.commit()

    async def _record_failure(self, earning_id: int, error: str) -> None:
        """Mark a claimed earning failed after an error outside the payer's result"""
        try:
            await self.db.rollback()
            earning = await self.get_earning(earning_id)
            if earning and earning.status == EARNING_STATUS_PROCESSING:
                await self._mark_failed(earning, error)
        except Exception as e:
            logger.error(f"Could not record failure for earning {earning_id}: {e}")

    async def _record_completed(self, earning_id: int, payment_hash: str, payment_preimage: str) -> bool:
        """
        Store the payout proof once the payer has paid.

        The runner has been paid at this point, so a failed write is retried
        and never turned into a retryable failed earning.
        """
        for attempt in range(1, COMPLETION_WRITE_ATTEMPTS + 1):
            try:
                earning = await self.get_earning(earning_id)
                await self._mark_completed(earning, payment_hash, payment_preimage)
                return True
            except Exception as e:
                await self.db.rollback()
                logger.error(f"Could not mark earning {earning_id} completed (attempt {attempt}): {e}")

        logger.critical(
            f"Earning {earning_id} was paid but is still processing, reconcile by hand: "
            f"payment_hash={payment_hash}"
        )
        return False

    async def process_payout(self, earning_id: int) -> bool:
        """
        Attempt the Lightning payout for one earning.

        Failures are recorded on the earning (status failed, error_message,
        retry_count) and reported as False. The only exception that escapes
        is cancellation of the calling task, which is re-raised after an
        unanswered payer call has been recorded as failed.

        Args:
            earning_id: Earning to pay

        Returns:
            True when the payer confirmed the payment with a hash and preimage
        """
        earning = await self.get_earning(earning_id)
        if not earning:
            logger.error(f"Earning {earning_id} not found")
            return False

        if earning.status == EARNING_STATUS_COMPLETED:
            logger.warning(f"Earning {earning_id} is already completed, skipping payout")
            return False

        claimed = False
        result = None
        try:
            if not await self._claim(earning_id):
                logger.warning(f"Earning {earning_id} is {earning.status} and was not claimed, skipping payout")
                return False
            claimed = True
            if earning.status == EARNING_STATUS_PROCESSING:
                logger.warning(f"Taking over stale payout claim for earning {earning_id}")

            earning = await self.get_earning(earning_id)

            # A runner may have added an address since the earning was created
            address = await self._get_lightning_address(earning.runner_id)
            if address and address != earning.lightning_address:
                earning.lightning_address = address
                await self.db.commit()

            if not earning.lightning_address:
                logger.error(f"Payout for earning {earning_id} failed: {NO_ADDRESS_ERROR}")
                await self._mark_failed(earning, NO_ADDRESS_ERROR)
                return False

            logger.info(
                f"Paying {earning.net_amount_sats} sats to {earning.lightning_address} "
                f"for earning {earning_id} (job {earning.job_id})"
            )
            result = await self.payer.pay(
                earning.lightning_address,
                earning.net_amount_sats,
                f"Payout for job #{earning.job_id}"
            )

            if result.success and result.has_proof:
                await asyncio.shield(
                    self._record_completed(earning_id, result.payment_hash, result.payment_preimage)
                )
                logger.info(f"Payout for earning {earning_id} completed (hash {result.payment_hash[:10]}...)")
                return True

            error = result.error or (NO_PROOF_ERROR if result.success else "Payment failed")
            logger.error(f"Payout for earning {earning_id} failed: {error}")
            await self._mark_failed(earning, error)
            return False

        except asyncio.CancelledError:
            if claimed and result is None:
                logger.error(f"Payout for earning {earning_id} was cancelled")
                await asyncio.shield(self._record_failure(earning_id, INTERRUPTED_ERROR))
            raise

        except Exception as e:
            logger.error(f"Unexpected error paying earning {earning_id}: {e}", exc_info=True)
            if claimed:
                await self._record_failure(earning_id, str(e) or e.__class__.__name__)
            else:
                await self.db.rollback()
            return False

    async def process_job_payout(self, job_id: int) -> bool:
        """
        Pay the runner for a paid job.

        Safe to call more than once: the second call finds the same earning
        already completed and returns False without paying again.

        Args:
            job_id: Job that has moved to paid

        Returns:
            True if this call paid the runner
        """
        result = await self.db.execute(
            select(Job).where(Job.id == job_id).execution_options(populate_existing=True)
        )
        job = result.scalar_one_or_none()
        if not job:
            logger.error(f"Cannot pay out job {job_id}: job not found")
            return False
        if job.runner_id is None:
            logger.error(f"Cannot pay out job {job_id}: no runner assigned")
            return False
        if job.status != JOB_STATUS_PAID:
            logger.warning(f"Cannot pay out job {job_id} in status '{job.status}'")
            return False

        try:
            address = await self._get_lightning_address(job.runner_id)
            earning = await self.create_runner_earning(job.id, job.runner_id, job.payable_cents, address)
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Could not create earning for job {job_id}: {e}", exc_info=True)
            return False

        return await self.process_payout(earning.id)

    async def retry_payout(self, earning_id: int, runner_id: int) -> bool:
        """
        Retry a payout on behalf of the runner who owns the earning.

        Raises:
            NotFoundError: If earning not found
            AuthorizationError: If the earning belongs to another runner
        """
        earning = await self.get_earning(earning_id)
        if not earning:
            raise NotFoundError(f"Earning {earning_id} not found", "EARNING_NOT_FOUND")
        if earning.runner_id != runner_id:
            raise AuthorizationError("You can only retry your own payouts", "NOT_EARNING_OWNER")

        logger.info(f"Runner {runner_id} retrying payout for earning {earning_id} (attempt {earning.retry_count + 1})")
        return await self.process_payout(earning_id)

    async def get_runner_earnings(self, runner_id: int) -> Dict[str, Any]:
        """Totals for a runner's earnings"""
        completed = RunnerEarning.status == EARNING_STATUS_COMPLETED
        result = await self.db.execute(
            select(
                func.count(RunnerEarning.id),
                func.coalesce(func.sum(case((completed, RunnerEarning.net_amount_cents), else_=0)), 0),
                func.coalesce(func.sum(case((completed, RunnerEarning.net_amount_sats), else_=0)), 0),
                func.coalesce(func.sum(case(
                    (RunnerEarning.status == EARNING_STATUS_PENDING, RunnerEarning.net_amount_cents),
                    else_=0
                )), 0),
                func.coalesce(func.sum(case((RunnerEarning.status == EARNING_STATUS_FAILED, 1), else_=0)), 0),
            ).where(RunnerEarning.runner_id == runner_id)
        )
        total_payouts, earned_cents, earned_sats, pending_cents, failed_count = result.one()
        return {
            "runner_id": runner_id,
            "total_payouts": int(total_payouts or 0),
            "total_earned_cents": int(earned_cents or 0),
            "total_earned_sats": int(earned_sats or 0),
            "pending_cents": int(pending_cents or 0),
            "failed_count": int(failed_count or 0)
        }

    async def get_runner_payout_history(self, runner_id: int, limit: int = 50) -> List[Dict[str, Any]]:
        """Runner's earnings newest first, each with the job title"""
        result = await self.db.execute(
            select(RunnerEarning, Job.title)
            .outerjoin(Job, RunnerEarning.job_id == Job.id)
            .where(RunnerEarning.runner_id == runner_id)
            .order_by(RunnerEarning.created_at.desc(), RunnerEarning.id.desc())
            .limit(limit)
        )

        history = []
        for earning, job_title in result.all():
            history.append({
                "id": earning.id,
                "job_id": earning.job_id,
                "job_title": job_title,
                "amount_cents": earning.amount_cents,
                "amount_sats": earning.amount_sats,
                "platform_fee_cents": earning.platform_fee_cents,
                "net_amount_cents": earning.net_amount_cents,
                "net_amount_sats": earning.net_amount_sats,
                "status": earning.status,
                "lightning_address": earning.lightning_address,
                "payment_hash": earning.payment_hash,
                "error_message": earning.error_message,
                "retry_count": earning.retry_count,
                "created_at": earning.created_at,
                "completed_at": earning.completed_at
            })
        return history
