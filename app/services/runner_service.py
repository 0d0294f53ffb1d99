"""
Runner profile service
The parts of a runner profile the payout path depends on
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError, ValidationError
from app.db.models.user import RunnerProfile, User
from app.services.lightning_service import is_lightning_address

logger = logging.getLogger(__name__)


class RunnerService:
    """Service for reading and updating runner profiles"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_profile(self, user_id: int) -> Optional[RunnerProfile]:
        result = await self.db.execute(
            select(RunnerProfile)
            .where(RunnerProfile.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def set_lightning_address(self, user_id: int, lightning_address: str) -> RunnerProfile:
        """
        Set where a runner's payouts are sent.

        Creates the runner profile on first use. Failed payouts pick the new
        address up when they are retried.

        Args:
            user_id: Authenticated user
            lightning_address: user@domain Lightning address

        Returns:
            The updated RunnerProfile

        Raises:
            ValidationError: If the address is not a Lightning address
            NotFoundError: If the user does not exist
        """
        address = (lightning_address or "").strip()
        if not is_lightning_address(address):
            raise ValidationError(
                "Lightning address must look like name@domain.com", "INVALID_LIGHTNING_ADDRESS"
            )

        profile = await self.get_profile(user_id)
        if profile is None:
            user = await self.db.get(User, user_id)
            if not user:
                raise NotFoundError(f"User {user_id} not found", "USER_NOT_FOUND")
            profile = RunnerProfile(
                user_id=user_id,
                display_name=user.display_name or f"Runner {user_id}",
                avg_rating=0,
                total_jobs=0
            )
            self.db.add(profile)

        profile.lightning_address = address
        try:
            await self.db.commit()
        except IntegrityError:
            # Profile created concurrently; update that one instead
            await self.db.rollback()
            profile = await self.get_profile(user_id)
            if profile is None:
                raise
            profile.lightning_address = address
            await self.db.commit()

        await self.db.refresh(profile)
        logger.info(f"Runner {user_id} set Lightning address {address}")
        return profile
