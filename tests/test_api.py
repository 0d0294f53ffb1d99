"""End-to-end tests for the HTTP API."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from app.core.security import create_access_token
from app.main import app

from conftest import RUNNER_ADDRESS, FakePayer, make_database, seed_users


@pytest.fixture
def api(tmp_path):
    """Test client backed by a fresh SQLite database and a fake payer."""
    database = make_database(tmp_path)

    async def setup():
        await database.create_all()
        return await seed_users(database)

    users = asyncio.run(setup())
    payer = FakePayer()
    app.state.database = database
    app.state.lightning_payer = payer

    client = TestClient(app)
    client.users = users
    client.payer = payer
    yield client

    app.state.database = None
    app.state.lightning_payer = None
    asyncio.run(database.close())


def auth(user_id):
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def post_job(api, price_cents=2500):
    response = api.post(
        "/api/v1/jobs",
        json={"title": "Pick up dry cleaning", "description": "Ticket 42", "price_cents": price_cents},
        headers=auth(api.users["client"]),
    )
    assert response.status_code == 201
    return response.json()["data"]


class TestAuth:
    def test_missing_token(self, api):
        response = api.get("/api/v1/jobs")

        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "error": {"code": "MISSING_TOKEN", "message": "Missing bearer token"},
        }

    def test_invalid_token(self, api):
        response = api.get("/api/v1/jobs", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_TOKEN"


class TestJobsApi:
    def test_create_and_get_job(self, api):
        job = post_job(api)

        response = api.get(f"/api/v1/jobs/{job['id']}", headers=auth(api.users["runner"]))

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["status"] == "open"
        assert body["data"]["price_cents"] == 2500

    def test_invalid_price_is_a_validation_error(self, api):
        response = api.post(
            "/api/v1/jobs",
            json={"title": "Pick up dry cleaning", "price_cents": 0},
            headers=auth(api.users["client"]),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_skipping_a_state_is_a_conflict(self, api):
        job = post_job(api)
        runner = auth(api.users["runner"])
        api.post(f"/api/v1/jobs/{job['id']}/accept", headers=runner)

        response = api.post(f"/api/v1/jobs/{job['id']}/complete", headers=runner)

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "INVALID_TRANSITION"
        assert "accepted" in error["message"] and "completed" in error["message"]

    def test_second_accept_is_rejected(self, api):
        job = post_job(api)
        api.post(f"/api/v1/jobs/{job['id']}/accept", headers=auth(api.users["runner"]))

        response = api.post(f"/api/v1/jobs/{job['id']}/accept", headers=auth(api.users["other_runner"]))

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "JOB_NOT_AVAILABLE"

    def test_unknown_job(self, api):
        response = api.get("/api/v1/jobs/9999", headers=auth(api.users["client"]))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "JOB_NOT_FOUND"


class TestPaymentFlow:
    def test_paying_a_job_pays_the_runner(self, api):
        client, runner = auth(api.users["client"]), auth(api.users["runner"])
        job = post_job(api, price_cents=2500)
        job_id = job["id"]

        assert api.post(f"/api/v1/jobs/{job_id}/accept", headers=runner).status_code == 200
        assert api.post(f"/api/v1/jobs/{job_id}/start", headers=runner).status_code == 200
        assert api.post(f"/api/v1/jobs/{job_id}/complete", headers=runner).status_code == 200

        instruction = api.get(f"/api/v1/payments/instruction?job_id={job_id}", headers=client).json()["data"]
        assert instruction["amount_sats"] == 50000
        assert instruction["lightning_address"] == RUNNER_ADDRESS

        invoice = api.post("/api/v1/payments/invoice", json={"job_id": job_id}, headers=client).json()["data"]
        response = api.post(
            "/api/v1/payments/confirm",
            json={"job_id": job_id, "preimage": invoice["test_preimage"], "payment_hash": invoice["payment_hash"]},
            headers=client,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "paid"
        assert data["amount_sats"] == 50000

        # Payout runs as a background task once the response is sent
        assert api.payer.calls == [
            {"destination": RUNNER_ADDRESS, "amount_sats": 50000, "memo": f"Payout for job #{job_id}"}
        ]
        summary = api.get("/api/v1/earnings/summary", headers=runner).json()["data"]
        assert summary["total_payouts"] == 1
        assert summary["total_earned_cents"] == 2500
        assert summary["total_earned_sats"] == 50000

        history = api.get("/api/v1/earnings/history", headers=runner).json()["data"]
        assert history[0]["job_id"] == job_id
        assert history[0]["status"] == "completed"

        duplicate = api.post("/api/v1/payments/confirm", json={"job_id": job_id}, headers=client)
        assert duplicate.status_code == 409
        assert duplicate.json()["error"]["code"] == "PAYMENT_ALREADY_CONFIRMED"

        review = api.post(
            "/api/v1/reviews",
            json={"job_id": job_id, "reviewee_id": api.users["runner"], "rating": 5, "comment": "Great"},
            headers=client,
        )
        assert review.status_code == 201

        rating = api.get(f"/api/v1/reviews/user/{api.users['runner']}/rating").json()["data"]
        assert rating == {"user_id": api.users["runner"], "average": 5.0, "count": 1}

    def test_retry_failed_payout(self, api):
        client, runner = auth(api.users["client"]), auth(api.users["runner"])
        job_id = post_job(api)["id"]
        for step in ("accept", "start", "complete"):
            api.post(f"/api/v1/jobs/{job_id}/{step}", headers=runner)

        api.payer.error = RuntimeError("node offline")
        api.post("/api/v1/payments/confirm", json={"job_id": job_id}, headers=client)

        history = api.get("/api/v1/earnings/history", headers=runner).json()["data"]
        earning_id = history[0]["id"]
        assert history[0]["status"] == "failed"

        failed_retry = api.post(f"/api/v1/earnings/{earning_id}/retry", headers=runner)
        assert failed_retry.status_code == 400
        assert failed_retry.json()["error"]["code"] == "PAYOUT_FAILED"

        forbidden = api.post(f"/api/v1/earnings/{earning_id}/retry", headers=client)
        assert forbidden.status_code == 403

        api.payer.error = None
        retry = api.post(f"/api/v1/earnings/{earning_id}/retry", headers=runner)
        assert retry.status_code == 200
        assert retry.json()["data"]["status"] == "completed"

    def test_runner_adds_address_then_retries(self, api):
        client, runner = auth(api.users["client"]), auth(api.users["other_runner"])
        job_id = post_job(api)["id"]
        for step in ("accept", "start", "complete"):
            assert api.post(f"/api/v1/jobs/{job_id}/{step}", headers=runner).status_code == 200
        api.post("/api/v1/payments/confirm", json={"job_id": job_id}, headers=client)

        history = api.get("/api/v1/earnings/history", headers=runner).json()["data"]
        earning_id = history[0]["id"]
        assert history[0]["status"] == "failed"
        assert history[0]["error_message"] == "No Lightning address configured"
        assert api.payer.calls == []

        invalid = api.put(
            "/api/v1/runners/me/lightning-address",
            json={"lightning_address": "not-an-address"},
            headers=runner,
        )
        assert invalid.status_code == 400
        assert invalid.json()["error"]["code"] == "INVALID_LIGHTNING_ADDRESS"

        response = api.put(
            "/api/v1/runners/me/lightning-address",
            json={"lightning_address": "sam@walletofsatoshi.com"},
            headers=runner,
        )
        assert response.status_code == 200
        assert response.json()["data"]["lightning_address"] == "sam@walletofsatoshi.com"

        retry = api.post(f"/api/v1/earnings/{earning_id}/retry", headers=runner)
        assert retry.status_code == 200
        assert api.payer.calls == [
            {"destination": "sam@walletofsatoshi.com", "amount_sats": 50000, "memo": f"Payout for job #{job_id}"}
        ]

        profile = api.get("/api/v1/runners/me", headers=runner).json()["data"]
        assert profile["lightning_address"] == "sam@walletofsatoshi.com"


class TestHealth:
    def test_health_reports_database(self, api):
        response = api.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["data"]["database"] == "connected"
