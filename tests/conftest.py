"""Pytest configuration and fixtures."""

import os
import secrets
from typing import List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.pool import NullPool

# Settings are read at import time, so configure them before importing app
os.environ.setdefault("JWT_SECRET_KEY", f"test-only-{secrets.token_urlsafe(32)}")
os.environ.pop("LNBITS_ADMIN_KEY", None)
os.environ.setdefault("PLATFORM_FEE_PERCENT", "0")
os.environ.setdefault("SATS_PER_USD", "2000")

from app.db.base import Database  # noqa: E402
from app.db.models.job import Job  # noqa: E402
from app.db.models.user import RunnerProfile, User  # noqa: E402
from app.services.lightning_service import PayoutResult  # noqa: E402
from app.utils.lightning import generate_invoice_secret  # noqa: E402

RUNNER_ADDRESS = "runner@getalby.com"


class FakePayer:
    """Lightning payer that records calls and returns queued results."""

    def __init__(self, results: Optional[List[PayoutResult]] = None, error: Optional[Exception] = None):
        self.results = list(results or [])
        self.error = error
        self.calls = []

    async def pay(self, destination: str, amount_sats: int, memo: str) -> PayoutResult:
        self.calls.append({"destination": destination, "amount_sats": amount_sats, "memo": memo})
        if self.error is not None:
            raise self.error
        if self.results:
            return self.results.pop(0)
        preimage, payment_hash = generate_invoice_secret()
        return PayoutResult(success=True, payment_hash=payment_hash, payment_preimage=preimage)


def make_database(tmp_path) -> Database:
    """File-backed SQLite so separate sessions really are separate connections."""
    return Database(f"sqlite+aiosqlite:///{tmp_path / 'errandbit.db'}", echo=False, poolclass=NullPool)


async def seed_users(database: Database) -> dict:
    """Create a client, two runners (one with a Lightning address) and an outsider."""
    async with database.session() as session:
        client = User(email="client@example.com", display_name="Casey Client", role="client")
        runner = User(email="runner@example.com", display_name="Robin Runner", role="runner")
        other_runner = User(email="other@example.com", display_name="Sam Runner", role="runner")
        outsider = User(email="outsider@example.com", display_name="Olly", role="client")
        session.add_all([client, runner, other_runner, outsider])
        await session.flush()

        session.add_all([
            RunnerProfile(user_id=runner.id, display_name="Robin", lightning_address=RUNNER_ADDRESS),
            RunnerProfile(user_id=other_runner.id, display_name="Sam", lightning_address=None),
        ])
        await session.commit()
        return {
            "client": client.id,
            "runner": runner.id,
            "other_runner": other_runner.id,
            "outsider": outsider.id,
        }


async def create_job_in_status(
    database: Database,
    client_id: int,
    runner_id: Optional[int],
    status: str,
    price_cents: int = 2500,
    agreed_price_cents: Optional[int] = None
) -> int:
    """Insert a job directly in a given status, bypassing the state machine."""
    async with database.session() as session:
        job = Job(
            client_id=client_id,
            runner_id=runner_id,
            title="Pick up groceries",
            description="Two bags from the corner shop",
            price_cents=price_cents,
            agreed_price_cents=agreed_price_cents,
            status=status,
        )
        session.add(job)
        await session.commit()
        return job.id


@pytest_asyncio.fixture
async def database(tmp_path):
    db = make_database(tmp_path)
    await db.create_all()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def session(database):
    async with database.session() as s:
        yield s


@pytest_asyncio.fixture
async def users(database):
    return await seed_users(database)


@pytest.fixture
def fake_payer():
    return FakePayer()
