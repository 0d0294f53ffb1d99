"""
Runner profile endpoints
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.core.security import get_current_user_id
from app.db.base import get_db
from app.schemas.common import SuccessResponse, ok
from app.schemas.runner import RunnerProfileResponse, UpdateLightningAddressRequest
from app.services.runner_service import RunnerService

router = APIRouter()


def get_runner_service(db: AsyncSession = Depends(get_db)) -> RunnerService:
    """Dependency to get runner service instance"""
    return RunnerService(db)


@router.get("/me", response_model=SuccessResponse[RunnerProfileResponse])
async def get_my_profile(
    user_id: int = Depends(get_current_user_id),
    runner_service: RunnerService = Depends(get_runner_service)
):
    profile = await runner_service.get_profile(user_id)
    if not profile:
        raise NotFoundError("Runner profile not found", "RUNNER_PROFILE_NOT_FOUND")
    return ok(RunnerProfileResponse.model_validate(profile))


@router.put("/me/lightning-address", response_model=SuccessResponse[RunnerProfileResponse])
async def set_lightning_address(
    data: UpdateLightningAddressRequest,
    user_id: int = Depends(get_current_user_id),
    runner_service: RunnerService = Depends(get_runner_service)
):
    """Set the Lightning address payouts are sent to"""
    profile = await runner_service.set_lightning_address(user_id, data.lightning_address)
    return ok(RunnerProfileResponse.model_validate(profile))
