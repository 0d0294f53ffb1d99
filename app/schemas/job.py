"""
Job-related Pydantic schemas
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class CreateJobRequest(BaseModel):
    """Request model for posting a job"""
    title: str = Field(..., min_length=3, max_length=200, description="Short job title")
    description: Optional[str] = Field(None, max_length=2000, description="What needs doing")
    price_cents: int = Field(..., gt=0, description="Asking price in USD cents")


class UpdateJobRequest(BaseModel):
    """Request model for editing an open job"""
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    price_cents: Optional[int] = Field(None, gt=0)


class AcceptJobRequest(BaseModel):
    """Optional negotiated price when a runner accepts"""
    agreed_price_cents: Optional[int] = Field(None, gt=0, description="Agreed price in USD cents")
    agreed_price_sats: Optional[int] = Field(None, gt=0, description="Agreed price in sats")


class JobResponse(BaseModel):
    """Job as returned by the API"""
    id: int
    client_id: int
    runner_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    price_cents: int
    agreed_price_cents: Optional[int] = None
    agreed_price_sats: Optional[int] = None
    status: str = Field(..., description="open, accepted, in_progress, completed, paid or cancelled")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    class Config:
        from_attributes = True
