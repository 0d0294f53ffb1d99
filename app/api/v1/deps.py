"""
Shared route dependencies
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import Database, get_db
from app.services.lightning_service import LightningPayer, get_lightning_payer
from app.services.payout_service import PayoutService


def get_payer(request: Request) -> LightningPayer:
    """The application's Lightning payer, created at startup"""
    payer = getattr(request.app.state, "lightning_payer", None)
    if payer is None:
        payer = get_lightning_payer()
        request.app.state.lightning_payer = payer
    return payer


def get_payout_service(
    db: AsyncSession = Depends(get_db),
    payer: LightningPayer = Depends(get_payer)
) -> PayoutService:
    """Dependency to get payout service instance"""
    return PayoutService(db, payer=payer)


async def run_job_payout(database: Database, payer: LightningPayer, job_id: int) -> bool:
    """Pay the runner for a job in a session of its own, after the response has been sent"""
    async with database.session() as session:
        return await PayoutService(session, payer=payer).process_job_payout(job_id)
