"""
Runner earnings endpoints
"""

from fastapi import APIRouter, Depends, Query

from app.api.v1.deps import get_payout_service
from app.core.errors import ValidationError
from app.core.security import get_current_user_id
from app.schemas.common import SuccessResponse, ok
from app.schemas.earning import EarningsSummaryResponse, PayoutHistoryItem, RetryPayoutResponse
from app.services.payout_service import PayoutService

router = APIRouter()


@router.get("/summary", response_model=SuccessResponse[EarningsSummaryResponse])
async def get_earnings_summary(
    user_id: int = Depends(get_current_user_id),
    payout_service: PayoutService = Depends(get_payout_service)
):
    """Totals over the authenticated runner's earnings"""
    return ok(await payout_service.get_runner_earnings(user_id))


@router.get("/history", response_model=SuccessResponse[list[PayoutHistoryItem]])
async def get_payout_history(
    limit: int = Query(50, ge=1, le=200),
    user_id: int = Depends(get_current_user_id),
    payout_service: PayoutService = Depends(get_payout_service)
):
    return ok(await payout_service.get_runner_payout_history(user_id, limit=limit))


@router.post("/{earning_id}/retry", response_model=SuccessResponse[RetryPayoutResponse])
async def retry_payout(
    earning_id: int,
    user_id: int = Depends(get_current_user_id),
    payout_service: PayoutService = Depends(get_payout_service)
):
    """Retry a pending or failed payout"""
    paid = await payout_service.retry_payout(earning_id, user_id)
    if not paid:
        earning = await payout_service.get_earning(earning_id)
        reason = earning.error_message or f"earning is {earning.status}"
        raise ValidationError(f"Payout failed: {reason}", "PAYOUT_FAILED")
    return ok({"earning_id": earning_id, "status": "completed", "message": "Payout completed"})
