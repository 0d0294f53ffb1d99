"""
Payment endpoints
"""

import logging
from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_payer, run_job_payout
from app.core.errors import NotFoundError
from app.core.security import get_current_user_id
from app.db.base import Database, get_database, get_db
from app.schemas.common import SuccessResponse, ok
from app.schemas.payment import (
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    CreateInvoiceRequest,
    InvoiceResponse,
    PaymentInstructionResponse,
    PaymentResponse,
    PaymentStatsResponse,
)
from app.services.lightning_service import LightningPayer
from app.services.payment_service import PaymentService

logger = logging.getLogger(__name__)
router = APIRouter()


def get_payment_service(db: AsyncSession = Depends(get_db)) -> PaymentService:
    """Dependency to get payment service instance"""
    return PaymentService(db)


@router.post("/confirm", response_model=SuccessResponse[ConfirmPaymentResponse])
async def confirm_payment(
    data: ConfirmPaymentRequest,
    background_tasks: BackgroundTasks,
    user_id: int = Depends(get_current_user_id),
    payment_service: PaymentService = Depends(get_payment_service),
    database: Database = Depends(get_database),
    payer: LightningPayer = Depends(get_payer)
):
    """
    Confirm payment for a completed job.

    The runner payout starts after the response is sent; its outcome is
    recorded on the earnings ledger and does not affect this response.
    """
    result = await payment_service.confirm_payment(
        data.job_id, user_id, preimage=data.preimage, payment_hash=data.payment_hash
    )
    logger.info(f"Scheduling runner payout for job {data.job_id}")
    background_tasks.add_task(run_job_payout, database, payer, data.job_id)
    return ok(result)


@router.get("/instruction", response_model=SuccessResponse[PaymentInstructionResponse])
async def get_payment_instruction(
    job_id: int = Query(..., gt=0),
    user_id: int = Depends(get_current_user_id),
    payment_service: PaymentService = Depends(get_payment_service)
):
    """Amount and destination for paying a job"""
    return ok(await payment_service.get_payment_instruction(job_id, user_id))


@router.post("/invoice", response_model=SuccessResponse[InvoiceResponse])
async def create_invoice(
    data: CreateInvoiceRequest,
    user_id: int = Depends(get_current_user_id),
    payment_service: PaymentService = Depends(get_payment_service)
):
    """Create a mock invoice whose preimage can be used to confirm payment"""
    return ok(await payment_service.create_invoice_for_job(data.job_id, user_id, data.amount_sats))


@router.get("/stats", response_model=SuccessResponse[PaymentStatsResponse])
async def get_payment_stats(
    user_id: int = Depends(get_current_user_id),
    payment_service: PaymentService = Depends(get_payment_service)
):
    return ok(await payment_service.get_payment_stats())


@router.get("/job/{job_id}", response_model=SuccessResponse[PaymentResponse])
async def get_payment_by_job(
    job_id: int,
    user_id: int = Depends(get_current_user_id),
    payment_service: PaymentService = Depends(get_payment_service)
):
    payment = await payment_service.get_payment_by_job(job_id)
    if not payment:
        raise NotFoundError(f"No payment found for job {job_id}", "PAYMENT_NOT_FOUND")
    return ok(PaymentResponse.model_validate(payment))


@router.get("/hash/{payment_hash}", response_model=SuccessResponse[PaymentResponse])
async def get_payment_by_hash(
    payment_hash: str,
    user_id: int = Depends(get_current_user_id),
    payment_service: PaymentService = Depends(get_payment_service)
):
    payment = await payment_service.get_payment_by_hash(payment_hash)
    if not payment:
        raise NotFoundError("No payment found for this hash", "PAYMENT_NOT_FOUND")
    return ok(PaymentResponse.model_validate(payment))
