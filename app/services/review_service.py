"""
Review service
Ratings between the client and runner of a paid job
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.db.models.job import Job, JOB_STATUS_PAID
from app.db.models.review import Review
from app.db.models.user import RunnerProfile

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def _round_average(total: int, count: int, places: str) -> Decimal:
    if not count:
        return Decimal(0).quantize(Decimal(places))
    return (Decimal(total) / Decimal(count)).quantize(Decimal(places), rounding=ROUND_HALF_UP)


class ReviewService:
    """Service for creating reviews and aggregating ratings"""

    def __init__(self, db: AsyncSession, max_comment_length: Optional[int] = None):
        self.db = db
        self.max_comment_length = max_comment_length or settings.MAX_REVIEW_COMMENT_LENGTH

    def _validate_rating(self, rating: Any) -> None:
        if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
            raise ValidationError(
                f"Rating must be an integer between {MIN_RATING} and {MAX_RATING}", "INVALID_RATING"
            )

    def _validate_comment(self, comment: Optional[str]) -> None:
        if comment is not None and len(comment) > self.max_comment_length:
            raise ValidationError(
                f"Comment must be at most {self.max_comment_length} characters", "COMMENT_TOO_LONG"
            )

    async def _get_review(self, review_id: int) -> Review:
        review = await self.db.get(Review, review_id)
        if not review:
            raise NotFoundError(f"Review {review_id} not found", "REVIEW_NOT_FOUND")
        return review

    async def create_review(
        self,
        job_id: int,
        reviewer_id: int,
        reviewee_id: int,
        rating: int,
        comment: Optional[str] = None
    ) -> Review:
        """
        Leave a review for the other party of a paid job.

        Args:
            job_id: Reviewed job
            reviewer_id: Authenticated user, the job's client or runner
            reviewee_id: The other party
            rating: Integer 1..5
            comment: Optional text

        Returns:
            The created Review

        Raises:
            NotFoundError: If job not found
            ConflictError: If the job is not paid or this reviewer already reviewed it
            AuthorizationError: If reviewer is not a party to the job
            ValidationError: If reviewee, rating or comment is invalid
        """
        job = await self.db.get(Job, job_id)
        if not job:
            raise NotFoundError(f"Job {job_id} not found", "JOB_NOT_FOUND")

        if job.status != JOB_STATUS_PAID:
            raise ConflictError("Can only review jobs that have been paid", "JOB_NOT_COMPLETED")

        if reviewer_id not in (job.client_id, job.runner_id):
            raise AuthorizationError("You are not a party to this job", "NOT_JOB_PARTY")

        expected_reviewee = job.runner_id if reviewer_id == job.client_id else job.client_id
        if reviewee_id != expected_reviewee:
            raise ValidationError("Reviewee must be the other party to the job", "INVALID_REVIEWEE")

        existing = await self.db.execute(
            select(Review.id).where(Review.job_id == job_id, Review.reviewer_id == reviewer_id)
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("You have already reviewed this job", "REVIEW_EXISTS")

        self._validate_rating(rating)
        self._validate_comment(comment)

        review = Review(
            job_id=job_id,
            reviewer_id=reviewer_id,
            reviewee_id=reviewee_id,
            rating=rating,
            comment=comment.strip() if comment else None
        )
        try:
            self.db.add(review)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("You have already reviewed this job", "REVIEW_EXISTS")

        await self._refresh_stats_after_write(reviewee_id)
        await self.db.refresh(review)

        logger.info(f"Review {review.id} created for job {job_id}: {reviewer_id} -> {reviewee_id} ({rating}/5)")
        return review

    async def update_review(
        self,
        review_id: int,
        reviewer_id: int,
        rating: Optional[int] = None,
        comment: Optional[str] = None
    ) -> Review:
        """Change the rating or comment of one's own review"""
        review = await self._get_review(review_id)
        if review.reviewer_id != reviewer_id:
            raise AuthorizationError("You can only update your own reviews", "NOT_REVIEW_OWNER")

        if rating is not None:
            self._validate_rating(rating)
            review.rating = rating
        if comment is not None:
            self._validate_comment(comment)
            review.comment = comment.strip() or None

        await self.db.commit()
        reviewee_id = review.reviewee_id
        await self._refresh_stats_after_write(reviewee_id)
        await self.db.refresh(review)
        logger.info(f"Review {review_id} updated")
        return review

    async def delete_review(self, review_id: int, reviewer_id: int) -> None:
        review = await self._get_review(review_id)
        if review.reviewer_id != reviewer_id:
            raise AuthorizationError("You can only delete your own reviews", "NOT_REVIEW_OWNER")

        reviewee_id = review.reviewee_id
        await self.db.delete(review)
        await self.db.commit()
        await self._refresh_stats_after_write(reviewee_id)
        logger.info(f"Review {review_id} deleted")

    async def _refresh_stats_after_write(self, user_id: int) -> None:
        # Runs after the review commit, so a failed refresh is logged and the review stands
        try:
            await self.refresh_runner_stats(user_id)
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Could not refresh runner stats for user {user_id}: {e}", exc_info=True)

    async def get_reviews_for_user(self, user_id: int, limit: int = 20, offset: int = 0) -> List[Review]:
        result = await self.db.execute(
            select(Review)
            .where(Review.reviewee_id == user_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def get_reviews_for_job(self, job_id: int) -> List[Review]:
        result = await self.db.execute(
            select(Review).where(Review.job_id == job_id).order_by(Review.created_at, Review.id)
        )
        return list(result.scalars().all())

    async def get_average_rating(self, user_id: int) -> Dict[str, Any]:
        """
        Average rating received by a user, computed from review rows.

        Returns:
            Dict with user_id, average (one decimal, 0.0 when unreviewed) and count
        """
        result = await self.db.execute(
            select(func.count(Review.id), func.coalesce(func.sum(Review.rating), 0))
            .where(Review.reviewee_id == user_id)
        )
        count, total = result.one()
        count = int(count or 0)
        return {
            "user_id": user_id,
            "average": float(_round_average(int(total or 0), count, "0.1")),
            "count": count
        }

    async def refresh_runner_stats(self, user_id: int) -> None:
        """Recompute the cached avg_rating and total_jobs on a runner profile, if the user has one"""
        result = await self.db.execute(select(RunnerProfile).where(RunnerProfile.user_id == user_id))
        profile = result.scalar_one_or_none()
        if profile is None:
            return

        rating = await self.db.execute(
            select(func.count(Review.id), func.coalesce(func.sum(Review.rating), 0))
            .where(Review.reviewee_id == user_id)
        )
        count, total = rating.one()
        jobs = await self.db.execute(
            select(func.count(Job.id)).where(Job.runner_id == user_id, Job.status == JOB_STATUS_PAID)
        )

        profile.avg_rating = _round_average(int(total or 0), int(count or 0), "0.01")
        profile.total_jobs = int(jobs.scalar_one() or 0)
        await self.db.commit()
