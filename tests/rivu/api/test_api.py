"""
Integration tests for the Rivu Core REST API.

Runs the full request/response cycle with httpx AsyncClient against the
FastAPI app backed by an in-memory database.

Covers:
- Health and metrics endpoints
- Registration and the bearer-token gate
- Score report, recalculation and history
- Nudge listing, creation, check and lifecycle
- Ledger CRUD feeding the score and nudge engines
- Error envelope for domain and request validation errors
"""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from rivu.api import create_app
from rivu.api.auth import AuthService

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def app(settings, session_factory):
    return create_app(settings, session_factory=session_factory)


def _client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


def _auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def _register(client: AsyncClient, username: str = "ana") -> tuple[int, dict[str, str]]:
    response = await client.post(
        "/api/v1/auth/register",
        json={"username": username, "email": f"{username}@example.com"},
    )
    assert response.status_code == 201
    data = response.json()["data"]
    return data["user_id"], _auth_header(data["access_token"])


# ---------------------------------------------------------------------------
# Health / metrics / auth gate
# ---------------------------------------------------------------------------


class TestPlumbing:
    @pytest.mark.asyncio
    async def test_health(self, app) -> None:
        async with _client(app) as client:
            root = await client.get("/health")
            versioned = await client.get("/api/v1/health")

        assert root.json() == {"status": "ok"}
        assert versioned.json() == {"success": True, "data": {"status": "ok"}, "error": None}

    @pytest.mark.asyncio
    async def test_metrics_exposition(self, app) -> None:
        async with _client(app) as client:
            await client.get("/api/v1/health")
            response = await client.get("/metrics")

        assert response.status_code == 200
        assert "rivu_http_requests_total" in response.text

    @pytest.mark.asyncio
    async def test_missing_token(self, app) -> None:
        async with _client(app) as client:
            response = await client.get("/api/v1/rivu-score")

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "AUTH_REQUIRED"

    @pytest.mark.asyncio
    async def test_invalid_token(self, app) -> None:
        async with _client(app) as client:
            response = await client.get("/api/v1/nudges", headers=_auth_header("not-a-jwt"))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_for_unknown_user(self, app, settings) -> None:
        auth = AuthService(settings.api_secret_key)
        token = auth.encode_token(auth.generate_token(user_id=999))

        async with _client(app) as client:
            response = await client.get("/api/v1/rivu-score", headers=_auth_header(token))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_duplicate_registration(self, app) -> None:
        async with _client(app) as client:
            await _register(client)
            response = await client.post(
                "/api/v1/auth/register",
                json={"username": "ana", "email": "ana@example.com"},
            )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


# ---------------------------------------------------------------------------
# Rivu Score
# ---------------------------------------------------------------------------


class TestScoreEndpoints:
    @pytest.mark.asyncio
    async def test_new_user_gets_login_floor(self, app) -> None:
        async with _client(app) as client:
            _, headers = await _register(client)
            response = await client.get("/api/v1/rivu-score", headers=headers)

        assert response.status_code == 200
        report = response.json()["data"]
        assert report["score"] == 10
        assert report["rawFactors"] == {"budgetAdherence": 0, "savingsProgress": 0, "weeklyActivity": 0}
        assert len(report["factors"]) == 3

    @pytest.mark.asyncio
    async def test_ledger_writes_update_score(self, app) -> None:
        async with _client(app) as client:
            _, headers = await _register(client)
            await client.post(
                "/api/v1/budget-categories",
                json={"name": "Rent", "budget_amount": "1000", "spent_amount": "1200"},
                headers=headers,
            )
            response = await client.get("/api/v1/rivu-score", headers=headers)

        assert response.json()["data"]["score"] == 40

    @pytest.mark.asyncio
    async def test_recalculate_and_history(self, app) -> None:
        async with _client(app) as client:
            _, headers = await _register(client)
            await client.post("/api/v1/rivu-score/recalculate", headers=headers)
            await client.post("/api/v1/rivu-score/recalculate", headers=headers)
            history = await client.get(
                "/api/v1/rivu-score/history",
                params={"time_range": "3months", "limit": 1},
                headers=headers,
            )

        data = history.json()["data"]
        assert data["timeRange"] == "3months"
        assert len(data["history"]) == 1

    @pytest.mark.asyncio
    async def test_unknown_time_range(self, app) -> None:
        async with _client(app) as client:
            _, headers = await _register(client)
            response = await client.get(
                "/api/v1/rivu-score/history", params={"time_range": "decade"}, headers=headers
            )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_manual_history_entry(self, app) -> None:
        async with _client(app) as client:
            _, headers = await _register(client)
            missing = await client.post(
                "/api/v1/rivu-score/history",
                json={"reason": "Paid off card", "change": 5},
                headers=headers,
            )
            await client.post("/api/v1/rivu-score/recalculate", headers=headers)
            created = await client.post(
                "/api/v1/rivu-score/history",
                json={"reason": "Paid off card", "change": 5, "notes": "Visa"},
                headers=headers,
            )
            out_of_range = await client.post(
                "/api/v1/rivu-score/history",
                json={"reason": "Huge", "change": 500},
                headers=headers,
            )

        assert missing.status_code == 404
        assert created.status_code == 201
        assert created.json()["data"]["kind"] == "manual"
        assert created.json()["data"]["notes"] == "Visa"
        assert out_of_range.status_code == 422
        assert out_of_range.json()["error"]["code"] == "VALIDATION_ERROR"


# ---------------------------------------------------------------------------
# Nudges
# ---------------------------------------------------------------------------


class TestNudgeEndpoints:
    @pytest.mark.asyncio
    async def test_registration_welcome_nudge_lifecycle(self, app) -> None:
        async with _client(app) as client:
            _, headers = await _register(client)
            listed = await client.get("/api/v1/nudges", headers=headers)
            nudge = listed.json()["data"]["nudges"][0]

            dismissed = await client.patch(f"/api/v1/nudges/{nudge['id']}/dismiss", headers=headers)
            completed = await client.patch(f"/api/v1/nudges/{nudge['id']}/complete", headers=headers)
            active = await client.get("/api/v1/nudges", params={"status": "active"}, headers=headers)

        assert listed.json()["data"]["total"] == 1
        assert nudge["type"] == "onboarding"
        assert nudge["trigger_condition"] == {"type": "new_user"}
        assert dismissed.json()["data"]["status"] == "dismissed"
        assert completed.status_code == 200
        assert completed.json()["data"]["status"] == "dismissed"
        assert active.json()["data"]["total"] == 0

    @pytest.mark.asyncio
    async def test_other_users_nudge(self, app) -> None:
        async with _client(app) as client:
            _, ana = await _register(client, "ana")
            _, bea = await _register(client, "bea")
            listed = await client.get("/api/v1/nudges", headers=ana)
            nudge_id = listed.json()["data"]["nudges"][0]["id"]

            response = await client.patch(f"/api/v1/nudges/{nudge_id}/dismiss", headers=bea)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_manual_nudge_and_check(self, app) -> None:
        async with _client(app) as client:
            _, headers = await _register(client)
            created = await client.post(
                "/api/v1/nudges",
                json={"type": "score_alert", "message": "Score climbed 5 points"},
                headers=headers,
            )
            bad = await client.post(
                "/api/v1/nudges",
                json={"type": "score_alert", "message": "x", "trigger_condition": {"type": "tarot"}},
                headers=headers,
            )
            check = await client.post("/api/v1/nudges/check", headers=headers)

        assert created.status_code == 201
        assert created.json()["data"]["trigger_condition"] == {"type": "manual"}
        assert bad.status_code == 422
        # the welcome nudge from registration is still active
        assert check.json()["data"]["created"] == 0

    @pytest.mark.asyncio
    async def test_invalid_status_filter(self, app) -> None:
        async with _client(app) as client:
            _, headers = await _register(client)
            response = await client.get("/api/v1/nudges", params={"status": "snoozed"}, headers=headers)
        assert response.status_code == 422


# ---------------------------------------------------------------------------
# User and ledger
# ---------------------------------------------------------------------------


class TestUserAndLedgerEndpoints:
    @pytest.mark.asyncio
    async def test_onboarding_flow(self, app) -> None:
        async with _client(app) as client:
            _, headers = await _register(client)
            await client.post(
                "/api/v1/budget-categories",
                json={"name": "Groceries", "budget_amount": "400"},
                headers=headers,
            )
            tx = await client.post(
                "/api/v1/transactions",
                json={"type": "expense", "amount": "42.10", "category": "Groceries"},
                headers=headers,
            )
            categories = await client.get("/api/v1/budget-categories", headers=headers)
            profile = await client.get("/api/v1/user/profile", headers=headers)

        assert tx.status_code == 201
        assert tx.json()["data"]["amount"] == 42.1
        assert categories.json()["data"]["categories"][0]["spentAmount"] == 42.1

        data = profile.json()["data"]
        assert data["onboardingStage"] == "transaction_added"
        triggers = [n["trigger_condition"]["type"] for n in data["nudges"]]
        assert "first_goal" in triggers

    @pytest.mark.asyncio
    async def test_goal_contribution(self, app) -> None:
        async with _client(app) as client:
            _, headers = await _register(client)
            goal = await client.post(
                "/api/v1/goals",
                json={"name": "Trip", "target_amount": "1000"},
                headers=headers,
            )
            goal_id = goal.json()["data"]["id"]
            contributed = await client.post(
                f"/api/v1/goals/{goal_id}/contribute", json={"amount": "250"}, headers=headers
            )
            rejected = await client.post(
                f"/api/v1/goals/{goal_id}/contribute", json={"amount": "-1"}, headers=headers
            )

        data = contributed.json()["data"]
        assert data["currentAmount"] == 250.0
        assert data["progressPercentage"] == 25.0
        assert len(data["monthlySavings"]) == 1
        assert data["monthlySavings"][0]["amount"] == 250.0
        assert rejected.status_code == 422

    @pytest.mark.asyncio
    async def test_login_and_stage_update(self, app) -> None:
        async with _client(app) as client:
            _, headers = await _register(client)
            login = await client.post("/api/v1/user/login", headers=headers)
            stage = await client.patch(
                "/api/v1/user/onboarding-stage", json={"stage": "completed"}, headers=headers
            )
            bad_stage = await client.patch(
                "/api/v1/user/onboarding-stage", json={"stage": "wizard"}, headers=headers
            )

        assert login.json()["data"]["loginCount"] == 2
        assert stage.json()["data"] == {"onboardingStage": "completed", "onboardingCompleted": True}
        assert bad_stage.status_code == 422

    @pytest.mark.asyncio
    async def test_delete_and_not_found(self, app) -> None:
        async with _client(app) as client:
            _, headers = await _register(client)
            tx = await client.post(
                "/api/v1/transactions", json={"type": "income", "amount": "1500"}, headers=headers
            )
            tx_id = tx.json()["data"]["id"]
            deleted = await client.delete(f"/api/v1/transactions/{tx_id}", headers=headers)
            again = await client.delete(f"/api/v1/transactions/{tx_id}", headers=headers)

        assert deleted.json()["data"] == {"deleted": tx_id}
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_request_body_validation(self, app) -> None:
        async with _client(app) as client:
            _, headers = await _register(client)
            response = await client.post("/api/v1/transactions", json={"type": "expense"}, headers=headers)

        assert response.status_code == 422
        body = response.json()
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"]["errors"]
