"""Tests for the job lifecycle state machine."""

import asyncio

import pytest

from app.core.errors import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from app.db.models.job import (
    JOB_STATUSES,
    JOB_STATUS_ACCEPTED,
    JOB_STATUS_CANCELLED,
    JOB_STATUS_COMPLETED,
    JOB_STATUS_IN_PROGRESS,
    JOB_STATUS_OPEN,
    JOB_STATUS_PAID,
)
from app.services.job_service import VALID_JOB_TRANSITIONS, JobService, can_transition

from conftest import create_job_in_status


class TestTransitionTable:
    def test_every_status_has_an_entry(self):
        assert set(VALID_JOB_TRANSITIONS) == set(JOB_STATUSES)

    def test_terminal_states_have_no_exits(self):
        assert VALID_JOB_TRANSITIONS[JOB_STATUS_PAID] == frozenset()
        assert VALID_JOB_TRANSITIONS[JOB_STATUS_CANCELLED] == frozenset()

    def test_completed_can_only_be_paid(self):
        assert can_transition(JOB_STATUS_COMPLETED, JOB_STATUS_PAID)
        assert not can_transition(JOB_STATUS_COMPLETED, JOB_STATUS_CANCELLED)

    def test_no_skipping_states(self):
        assert not can_transition(JOB_STATUS_OPEN, JOB_STATUS_COMPLETED)
        assert not can_transition(JOB_STATUS_ACCEPTED, JOB_STATUS_COMPLETED)
        assert not can_transition(JOB_STATUS_OPEN, JOB_STATUS_PAID)


class TestCreateJob:
    @pytest.mark.asyncio
    async def test_create_job_is_open(self, session, users):
        job = await JobService(session).create_job(users["client"], "Walk the dog", "30 minutes", 1500)

        assert job.id is not None
        assert job.status == JOB_STATUS_OPEN
        assert job.runner_id is None
        assert job.price_cents == 1500

    @pytest.mark.asyncio
    async def test_rejects_unknown_client(self, session, users):
        with pytest.raises(NotFoundError):
            await JobService(session).create_job(9999, "Walk the dog", None, 1500)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("title,description,price", [
        ("ab", None, 1500),
        ("x" * 201, None, 1500),
        ("Walk the dog", "d" * 2001, 1500),
        ("Walk the dog", None, 0),
        ("Walk the dog", None, -5),
    ])
    async def test_rejects_invalid_listing(self, session, users, title, description, price):
        with pytest.raises(ValidationError):
            await JobService(session).create_job(users["client"], title, description, price)


class TestAssignRunner:
    @pytest.mark.asyncio
    async def test_accept_sets_runner_price_and_timestamp(self, session, users):
        service = JobService(session, sats_per_usd=2000)
        job = await service.create_job(users["client"], "Walk the dog", None, 2500)

        accepted = await service.assign_runner(job.id, users["runner"])

        assert accepted.status == JOB_STATUS_ACCEPTED
        assert accepted.runner_id == users["runner"]
        assert accepted.agreed_price_cents == 2500
        assert accepted.agreed_price_sats == 50000
        assert accepted.accepted_at is not None

    @pytest.mark.asyncio
    async def test_accept_with_negotiated_price(self, session, users):
        service = JobService(session, sats_per_usd=2000)
        job = await service.create_job(users["client"], "Walk the dog", None, 2500)

        accepted = await service.assign_runner(job.id, users["runner"], agreed_price_cents=3000)

        assert accepted.agreed_price_cents == 3000
        assert accepted.agreed_price_sats == 60000

    @pytest.mark.asyncio
    async def test_unknown_runner(self, session, users):
        service = JobService(session)
        job = await service.create_job(users["client"], "Walk the dog", None, 2500)

        with pytest.raises(NotFoundError):
            await service.assign_runner(job.id, 9999)

    @pytest.mark.asyncio
    async def test_unknown_job(self, session, users):
        with pytest.raises(NotFoundError):
            await JobService(session).assign_runner(9999, users["runner"])

    @pytest.mark.asyncio
    async def test_client_cannot_accept_own_job(self, session, users):
        service = JobService(session)
        job = await service.create_job(users["client"], "Walk the dog", None, 2500)

        with pytest.raises(AuthorizationError):
            await service.assign_runner(job.id, users["client"])

    @pytest.mark.asyncio
    async def test_second_runner_gets_not_available(self, session, users):
        service = JobService(session)
        job = await service.create_job(users["client"], "Walk the dog", None, 2500)
        await service.assign_runner(job.id, users["runner"])

        with pytest.raises(ConflictError) as exc_info:
            await service.assign_runner(job.id, users["other_runner"])
        assert exc_info.value.code == "JOB_NOT_AVAILABLE"

    @pytest.mark.asyncio
    async def test_concurrent_accepts_have_exactly_one_winner(self, database, users):
        job_id = await create_job_in_status(database, users["client"], None, JOB_STATUS_OPEN)
        runner_ids = [users["runner"], users["other_runner"], users["outsider"]]

        async def attempt(runner_id):
            async with database.session() as s:
                try:
                    await JobService(s).assign_runner(job_id, runner_id)
                    return runner_id
                except ConflictError as e:
                    assert e.code == "JOB_NOT_AVAILABLE"
                    return None

        results = await asyncio.gather(*(attempt(r) for r in runner_ids))
        winners = [r for r in results if r is not None]
        assert len(winners) == 1

        async with database.session() as s:
            job = await JobService(s).get_job(job_id)
        assert job.runner_id == winners[0]
        assert job.status == JOB_STATUS_ACCEPTED


class TestTransitions:
    @pytest.mark.asyncio
    async def test_full_happy_path_stamps_each_timestamp(self, session, users):
        service = JobService(session)
        job = await service.create_job(users["client"], "Walk the dog", None, 2500)
        await service.assign_runner(job.id, users["runner"])

        started = await service.start_job(job.id, users["runner"])
        assert started.status == JOB_STATUS_IN_PROGRESS
        assert started.started_at is not None
        assert started.completed_at is None

        completed = await service.complete_job(job.id, users["runner"])
        assert completed.status == JOB_STATUS_COMPLETED
        assert completed.completed_at is not None

        paid = await service.transition(job.id, users["client"], JOB_STATUS_PAID)
        assert paid.status == JOB_STATUS_PAID
        assert paid.paid_at is not None
        assert paid.cancelled_at is None

    @pytest.mark.asyncio
    async def test_cannot_skip_to_completed(self, session, users):
        service = JobService(session)
        job = await service.create_job(users["client"], "Walk the dog", None, 2500)
        await service.assign_runner(job.id, users["runner"])

        with pytest.raises(InvalidTransitionError) as exc_info:
            await service.complete_job(job.id, users["runner"])

        error = exc_info.value
        assert error.status_code == 409
        assert error.current_status == JOB_STATUS_ACCEPTED
        assert error.requested_status == JOB_STATUS_COMPLETED
        assert "accepted" in error.message and "completed" in error.message

        job = await service.get_job(job.id, refresh=True)
        assert job.status == JOB_STATUS_ACCEPTED
        assert job.completed_at is None

    @pytest.mark.asyncio
    async def test_only_assigned_runner_can_start(self, session, users):
        service = JobService(session)
        job = await service.create_job(users["client"], "Walk the dog", None, 2500)
        await service.assign_runner(job.id, users["runner"])

        with pytest.raises(AuthorizationError):
            await service.start_job(job.id, users["other_runner"])

    @pytest.mark.asyncio
    async def test_only_client_can_cancel(self, session, users):
        service = JobService(session)
        job = await service.create_job(users["client"], "Walk the dog", None, 2500)

        with pytest.raises(AuthorizationError):
            await service.cancel_job(job.id, users["runner"])

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [JOB_STATUS_OPEN, JOB_STATUS_ACCEPTED, JOB_STATUS_IN_PROGRESS])
    async def test_cancel_from_active_states(self, database, users, status):
        runner_id = None if status == JOB_STATUS_OPEN else users["runner"]
        job_id = await create_job_in_status(database, users["client"], runner_id, status)

        async with database.session() as s:
            job = await JobService(s).cancel_job(job_id, users["client"])
        assert job.status == JOB_STATUS_CANCELLED
        assert job.cancelled_at is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [JOB_STATUS_COMPLETED, JOB_STATUS_PAID, JOB_STATUS_CANCELLED])
    async def test_cannot_cancel_after_completion(self, database, users, status):
        job_id = await create_job_in_status(database, users["client"], users["runner"], status)

        async with database.session() as s:
            with pytest.raises(InvalidTransitionError):
                await JobService(s).cancel_job(job_id, users["client"])

    @pytest.mark.asyncio
    async def test_unknown_target_status(self, session, users):
        service = JobService(session)
        job = await service.create_job(users["client"], "Walk the dog", None, 2500)

        with pytest.raises(ValidationError):
            await service.transition(job.id, users["client"], "disputed")

    @pytest.mark.asyncio
    async def test_transition_accepted_delegates_to_assignment(self, session, users):
        service = JobService(session)
        job = await service.create_job(users["client"], "Walk the dog", None, 2500)

        accepted = await service.transition(job.id, users["runner"], JOB_STATUS_ACCEPTED)

        assert accepted.runner_id == users["runner"]


class TestUpdateAndDelete:
    @pytest.mark.asyncio
    async def test_update_open_job(self, session, users):
        service = JobService(session)
        job = await service.create_job(users["client"], "Walk the dog", None, 2500)

        updated = await service.update_job(job.id, users["client"], title="Walk two dogs", price_cents=3000)

        assert updated.title == "Walk two dogs"
        assert updated.price_cents == 3000

    @pytest.mark.asyncio
    async def test_cannot_update_accepted_job(self, session, users):
        service = JobService(session)
        job = await service.create_job(users["client"], "Walk the dog", None, 2500)
        await service.assign_runner(job.id, users["runner"])

        with pytest.raises(ConflictError):
            await service.update_job(job.id, users["client"], title="Walk two dogs")

    @pytest.mark.asyncio
    async def test_delete_open_job(self, session, users):
        service = JobService(session)
        job = await service.create_job(users["client"], "Walk the dog", None, 2500)

        await service.delete_job(job.id, users["client"])

        with pytest.raises(NotFoundError):
            await service.get_job(job.id)

    @pytest.mark.asyncio
    async def test_cannot_delete_job_in_progress(self, database, users):
        job_id = await create_job_in_status(database, users["client"], users["runner"], JOB_STATUS_IN_PROGRESS)

        async with database.session() as s:
            with pytest.raises(ConflictError):
                await JobService(s).delete_job(job_id, users["client"])

    @pytest.mark.asyncio
    async def test_list_jobs_filters_by_status(self, session, users):
        service = JobService(session)
        first = await service.create_job(users["client"], "Walk the dog", None, 2500)
        await service.create_job(users["client"], "Water plants", None, 1000)
        await service.assign_runner(first.id, users["runner"])

        open_jobs = await service.list_jobs(status=JOB_STATUS_OPEN)
        runner_jobs = await service.list_jobs(runner_id=users["runner"])

        assert [j.title for j in open_jobs] == ["Water plants"]
        assert [j.id for j in runner_jobs] == [first.id]
