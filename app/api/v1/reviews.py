"""
Review endpoints
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import get_current_user_id
from app.db.base import get_db
from app.schemas.common import SuccessResponse, ok
from app.schemas.review import AverageRatingResponse, CreateReviewRequest, ReviewResponse, UpdateReviewRequest
from app.services.review_service import ReviewService

router = APIRouter()


def get_review_service(db: AsyncSession = Depends(get_db)) -> ReviewService:
    """Dependency to get review service instance"""
    return ReviewService(db)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse[ReviewResponse])
async def create_review(
    data: CreateReviewRequest,
    user_id: int = Depends(get_current_user_id),
    review_service: ReviewService = Depends(get_review_service)
):
    """Review the other party of a paid job"""
    review = await review_service.create_review(
        data.job_id, user_id, data.reviewee_id, data.rating, data.comment
    )
    return ok(ReviewResponse.model_validate(review))


@router.get("/user/{user_id}", response_model=SuccessResponse[list[ReviewResponse]])
async def get_reviews_for_user(
    user_id: int,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    review_service: ReviewService = Depends(get_review_service)
):
    reviews = await review_service.get_reviews_for_user(user_id, limit=limit, offset=offset)
    return ok([ReviewResponse.model_validate(review) for review in reviews])


@router.get("/user/{user_id}/rating", response_model=SuccessResponse[AverageRatingResponse])
async def get_average_rating(
    user_id: int,
    review_service: ReviewService = Depends(get_review_service)
):
    return ok(await review_service.get_average_rating(user_id))


@router.get("/job/{job_id}", response_model=SuccessResponse[list[ReviewResponse]])
async def get_reviews_for_job(
    job_id: int,
    review_service: ReviewService = Depends(get_review_service)
):
    reviews = await review_service.get_reviews_for_job(job_id)
    return ok([ReviewResponse.model_validate(review) for review in reviews])


@router.patch("/{review_id}", response_model=SuccessResponse[ReviewResponse])
async def update_review(
    review_id: int,
    data: UpdateReviewRequest,
    user_id: int = Depends(get_current_user_id),
    review_service: ReviewService = Depends(get_review_service)
):
    review = await review_service.update_review(review_id, user_id, rating=data.rating, comment=data.comment)
    return ok(ReviewResponse.model_validate(review))


@router.delete("/{review_id}", response_model=SuccessResponse[dict])
async def delete_review(
    review_id: int,
    user_id: int = Depends(get_current_user_id),
    review_service: ReviewService = Depends(get_review_service)
):
    await review_service.delete_review(review_id, user_id)
    return ok({"id": review_id, "deleted": True})
