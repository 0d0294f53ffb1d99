"""
Review-related Pydantic schemas
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class CreateReviewRequest(BaseModel):
    """Leave a review for the other party of a paid job"""
    job_id: int = Field(..., gt=0)
    reviewee_id: int = Field(..., gt=0)
    rating: int = Field(..., ge=1, le=5, description="1 to 5 stars")
    comment: Optional[str] = Field(None, max_length=1000)


class UpdateReviewRequest(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)


class ReviewResponse(BaseModel):
    id: int
    job_id: int
    reviewer_id: int
    reviewee_id: int
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AverageRatingResponse(BaseModel):
    user_id: int
    average: float
    count: int
