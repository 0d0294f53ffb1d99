"""Tests for reviews and rating aggregation."""

from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from app.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.db.models.job import JOB_STATUS_COMPLETED, JOB_STATUS_PAID
from app.db.models.user import RunnerProfile
from app.services.review_service import ReviewService

from conftest import create_job_in_status


class TestCreateReview:
    @pytest.mark.asyncio
    async def test_rating_above_five_is_rejected_and_five_accepted(self, database, users):
        job_id = await create_job_in_status(database, users["client"], users["runner"], JOB_STATUS_PAID)

        async with database.session() as s:
            service = ReviewService(s)
            with pytest.raises(ValidationError) as exc_info:
                await service.create_review(job_id, users["client"], users["runner"], 6)
            assert exc_info.value.code == "INVALID_RATING"

            review = await service.create_review(job_id, users["client"], users["runner"], 5, "Fast and friendly")

        assert review.rating == 5
        assert review.comment == "Fast and friendly"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rating", [0, -1, 2.5, True])
    async def test_non_integer_or_out_of_range_rating(self, database, users, rating):
        job_id = await create_job_in_status(database, users["client"], users["runner"], JOB_STATUS_PAID)

        async with database.session() as s:
            with pytest.raises(ValidationError):
                await ReviewService(s).create_review(job_id, users["client"], users["runner"], rating)

    @pytest.mark.asyncio
    async def test_job_must_be_paid(self, database, users):
        job_id = await create_job_in_status(database, users["client"], users["runner"], JOB_STATUS_COMPLETED)

        async with database.session() as s:
            with pytest.raises(ConflictError) as exc_info:
                await ReviewService(s).create_review(job_id, users["client"], users["runner"], 5)
        assert exc_info.value.code == "JOB_NOT_COMPLETED"

    @pytest.mark.asyncio
    async def test_outsider_cannot_review(self, database, users):
        job_id = await create_job_in_status(database, users["client"], users["runner"], JOB_STATUS_PAID)

        async with database.session() as s:
            with pytest.raises(AuthorizationError):
                await ReviewService(s).create_review(job_id, users["outsider"], users["runner"], 5)

    @pytest.mark.asyncio
    async def test_reviewee_must_be_other_party(self, database, users):
        job_id = await create_job_in_status(database, users["client"], users["runner"], JOB_STATUS_PAID)

        async with database.session() as s:
            with pytest.raises(ValidationError) as exc_info:
                await ReviewService(s).create_review(job_id, users["client"], users["client"], 5)
        assert exc_info.value.code == "INVALID_REVIEWEE"

    @pytest.mark.asyncio
    async def test_one_review_per_reviewer_per_job(self, database, users):
        job_id = await create_job_in_status(database, users["client"], users["runner"], JOB_STATUS_PAID)

        async with database.session() as s:
            service = ReviewService(s)
            await service.create_review(job_id, users["client"], users["runner"], 4)
            with pytest.raises(ConflictError) as exc_info:
                await service.create_review(job_id, users["client"], users["runner"], 5)
            # The runner can still review the client
            await service.create_review(job_id, users["runner"], users["client"], 5)

        assert exc_info.value.code == "REVIEW_EXISTS"

    @pytest.mark.asyncio
    async def test_comment_too_long(self, database, users):
        job_id = await create_job_in_status(database, users["client"], users["runner"], JOB_STATUS_PAID)

        async with database.session() as s:
            with pytest.raises(ValidationError):
                await ReviewService(s).create_review(job_id, users["client"], users["runner"], 5, "x" * 1001)

    @pytest.mark.asyncio
    async def test_unknown_job(self, session, users):
        with pytest.raises(NotFoundError):
            await ReviewService(session).create_review(9999, users["client"], users["runner"], 5)


class TestAggregation:
    @pytest.mark.asyncio
    async def test_average_rating_rounds_to_one_decimal(self, database, users):
        ratings = [5, 4, 4]
        async with database.session() as s:
            service = ReviewService(s)
            for rating in ratings:
                job_id = await create_job_in_status(database, users["client"], users["runner"], JOB_STATUS_PAID)
                await service.create_review(job_id, users["client"], users["runner"], rating)

            average = await service.get_average_rating(users["runner"])

        assert average == {"user_id": users["runner"], "average": 4.3, "count": 3}

    @pytest.mark.asyncio
    async def test_unreviewed_user_has_zero_average(self, session, users):
        average = await ReviewService(session).get_average_rating(users["outsider"])
        assert average == {"user_id": users["outsider"], "average": 0.0, "count": 0}

    @pytest.mark.asyncio
    async def test_runner_profile_stats_refreshed(self, database, users):
        async with database.session() as s:
            service = ReviewService(s)
            for rating in (5, 2):
                job_id = await create_job_in_status(database, users["client"], users["runner"], JOB_STATUS_PAID)
                await service.create_review(job_id, users["client"], users["runner"], rating)

            result = await s.execute(
                select(RunnerProfile)
                .where(RunnerProfile.user_id == users["runner"])
                .execution_options(populate_existing=True)
            )
            profile = result.scalar_one()

        assert Decimal(str(profile.avg_rating)) == Decimal("3.50")
        assert profile.total_jobs == 2

    @pytest.mark.asyncio
    async def test_failed_stats_refresh_keeps_the_review(self, database, users):
        job_id = await create_job_in_status(database, users["client"], users["runner"], JOB_STATUS_PAID)

        async with database.session() as s:
            service = ReviewService(s)
            with patch.object(service, "refresh_runner_stats", AsyncMock(side_effect=RuntimeError("db went away"))):
                review = await service.create_review(job_id, users["client"], users["runner"], 4)

            assert review.rating == 4
            stored = await service.get_reviews_for_job(job_id)

        assert [r.id for r in stored] == [review.id]

    @pytest.mark.asyncio
    async def test_update_and_delete_own_review(self, database, users):
        job_id = await create_job_in_status(database, users["client"], users["runner"], JOB_STATUS_PAID)

        async with database.session() as s:
            service = ReviewService(s)
            review = await service.create_review(job_id, users["client"], users["runner"], 2)

            with pytest.raises(AuthorizationError):
                await service.update_review(review.id, users["runner"], rating=5)

            updated = await service.update_review(review.id, users["client"], rating=4, comment="Better on reflection")
            assert updated.rating == 4

            await service.delete_review(review.id, users["client"])
            assert await service.get_reviews_for_job(job_id) == []
