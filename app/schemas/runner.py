"""
Runner profile Pydantic schemas
"""

from typing import Optional
from pydantic import BaseModel, Field


class UpdateLightningAddressRequest(BaseModel):
    """Where the runner's payouts should be sent"""
    lightning_address: str = Field(..., min_length=3, max_length=255, description="Lightning address (name@domain)")


class RunnerProfileResponse(BaseModel):
    user_id: int
    display_name: str
    bio: Optional[str] = None
    lightning_address: Optional[str] = None
    avg_rating: float
    total_jobs: int

    class Config:
        from_attributes = True
