"""
Earnings-related Pydantic schemas
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class EarningsSummaryResponse(BaseModel):
    """Totals over a runner's earnings"""
    runner_id: int
    total_payouts: int
    total_earned_cents: int
    total_earned_sats: int
    pending_cents: int
    failed_count: int


class PayoutHistoryItem(BaseModel):
    """One earning in a runner's payout history"""
    id: int
    job_id: Optional[int] = None
    job_title: Optional[str] = None
    amount_cents: int
    amount_sats: int
    platform_fee_cents: int
    net_amount_cents: int
    net_amount_sats: int
    status: str
    lightning_address: Optional[str] = None
    payment_hash: Optional[str] = None
    error_message: Optional[str] = None
    retry_count: int
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class RetryPayoutResponse(BaseModel):
    earning_id: int
    status: str
    message: str
