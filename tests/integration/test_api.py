"""
API Integration Tests
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from conftest import SESSION_ID, auth_headers, make_token, seed_athlete, seed_user
from sportclub.api.deps import get_access_service
from sportclub.config import settings
from sportclub.core.access.service import AccessService
from sportclub.core.roles import Role
from sportclub.db.models import Attendance, LeaveRequest
from sportclub.main import app
from sportclub.monitoring.metrics import api_requests_total

KEY = "550e8400-e29b-41d4-a716-446655440000"


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    @pytest.mark.asyncio
    async def test_health_check(self, async_client: AsyncClient):
        response = await async_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data
        assert "timestamp" in data

    @pytest.mark.asyncio
    async def test_liveness_check(self, async_client: AsyncClient):
        response = await async_client.get("/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    @pytest.mark.asyncio
    async def test_readiness_check(self, async_client: AsyncClient):
        response = await async_client.get("/health/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert data["checks"]["database"]["status"] == "ok"

    @pytest.mark.asyncio
    async def test_correlation_id_echoed(self, async_client: AsyncClient):
        response = await async_client.get("/health", headers={"X-Correlation-ID": "trace-123"})

        assert response.headers["x-correlation-id"] == "trace-123"


class TestLeaveRequestEndpoint:
    """Duplicate submissions of the leave request form."""

    @pytest.mark.asyncio
    async def test_duplicate_submission_is_replayed(self, async_client: AsyncClient, test_db):
        await seed_athlete(test_db, "ath-1")
        headers = auth_headers("ath-1", **{"Idempotency-Key": KEY})
        body = {"sessionId": SESSION_ID, "reason": "sick"}

        first = await async_client.post("/api/athlete/leave-request", json=body, headers=headers)
        second = await async_client.post("/api/athlete/leave-request", json=body, headers=headers)

        assert first.status_code == 200
        first_body = first.json()
        assert first_body["success"] is True
        assert first_body["data"]["leaveRequest"]["status"] == "pending"
        assert first_body["metadata"]["cached"] is False
        assert "x-idempotency-cached" not in first.headers

        assert second.status_code == 200
        second_body = second.json()
        assert second_body["data"] == first_body["data"]
        assert second_body["metadata"]["cached"] is True
        assert second.headers["x-idempotency-cached"] == "true"
        assert second.headers["x-original-timestamp"]
        assert second.headers["x-request-id"] == first.headers["x-request-id"]

        assert await _count(test_db, LeaveRequest) == 1

    @pytest.mark.asyncio
    async def test_without_key_runs_every_time(self, async_client: AsyncClient, test_db):
        await seed_athlete(test_db, "ath-1")
        body = {"sessionId": SESSION_ID, "reason": "sick"}

        first = await async_client.post(
            "/api/athlete/leave-request", json=body, headers=auth_headers("ath-1"),
        )
        second = await async_client.post(
            "/api/athlete/leave-request", json=body, headers=auth_headers("ath-1"),
        )

        assert first.status_code == 200
        assert first.headers["x-request-id"]
        assert second.status_code == 409
        assert second.json()["error"]["code"] == "LEAVE_ALREADY_REQUESTED"

    @pytest.mark.asyncio
    async def test_missing_reason(self, async_client: AsyncClient, test_db):
        await seed_athlete(test_db, "ath-1")

        response = await async_client.post(
            "/api/athlete/leave-request",
            json={"sessionId": SESSION_ID},
            headers=auth_headers("ath-1"),
        )

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["error"]["code"] == "MISSING_REQUIRED_FIELDS"
        assert "reason" in data["error"]["message"]


class TestCheckInEndpoint:

    @pytest.mark.asyncio
    async def test_check_in(self, async_client: AsyncClient, test_db):
        await seed_athlete(test_db, "ath-1")

        response = await async_client.post(
            "/api/athlete/check-in",
            json={"sessionId": SESSION_ID, "method": "qr"},
            headers=auth_headers("ath-1", **{"Idempotency-Key": KEY}),
        )

        assert response.status_code == 200
        attendance = response.json()["data"]["attendance"]
        assert attendance["training_session_id"] == SESSION_ID
        assert attendance["check_in_method"] == "qr"
        assert await _count(test_db, Attendance) == 1

    @pytest.mark.asyncio
    async def test_invalid_key_rejected(self, async_client: AsyncClient, test_db):
        await seed_athlete(test_db, "ath-1")

        response = await async_client.post(
            "/api/athlete/check-in",
            json={"sessionId": SESSION_ID},
            headers=auth_headers("ath-1", **{"Idempotency-Key": "not a uuid!"}),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_IDEMPOTENCY_KEY"
        assert await _count(test_db, Attendance) == 0

    @pytest.mark.asyncio
    async def test_failed_action_releases_key(self, async_client: AsyncClient, test_db):
        await seed_athlete(test_db, "ath-1")
        headers = auth_headers("ath-1", **{"Idempotency-Key": KEY})

        failed = await async_client.post(
            "/api/athlete/check-in", json={"sessionId": "missing"}, headers=headers,
        )

        assert failed.status_code == 400
        assert failed.json()["success"] is False
        assert failed.json()["code"] == "SESSION_NOT_FOUND"

        retried = await async_client.post(
            "/api/athlete/check-in", json={"sessionId": SESSION_ID}, headers=headers,
        )
        assert retried.status_code == 200
        assert retried.json()["metadata"]["cached"] is False

    @pytest.mark.asyncio
    async def test_unauthenticated(self, async_client: AsyncClient):
        response = await async_client.post("/api/athlete/check-in", json={"sessionId": SESSION_ID})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTHENTICATION_REQUIRED"

    @pytest.mark.asyncio
    async def test_expired_token(self, async_client: AsyncClient):
        token = make_token("ath-1", expires_in=-60)

        response = await async_client.post(
            "/api/athlete/check-in",
            json={"sessionId": SESSION_ID},
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_pending_athlete_forbidden(self, async_client: AsyncClient, test_db):
        await seed_user(test_db, "ath-2", membership_status="pending")

        response = await async_client.post(
            "/api/athlete/check-in",
            json={"sessionId": SESSION_ID},
            headers=auth_headers("ath-2"),
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_coach_cannot_check_in(self, async_client: AsyncClient, test_db):
        await seed_user(test_db, "coach-1", role="coach")

        response = await async_client.post(
            "/api/athlete/check-in",
            json={"sessionId": SESSION_ID},
            headers=auth_headers("coach-1"),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_rate_limited(self, async_client: AsyncClient, test_db, monkeypatch):
        await seed_athlete(test_db, "ath-1")
        await seed_athlete(test_db, "ath-3")
        monkeypatch.setattr(settings, "rate_limit_max_requests", 2)
        body = {"sessionId": SESSION_ID}

        first = await async_client.post("/api/athlete/check-in", json=body, headers=auth_headers("ath-1"))
        second = await async_client.post("/api/athlete/check-in", json=body, headers=auth_headers("ath-1"))
        third = await async_client.post("/api/athlete/check-in", json=body, headers=auth_headers("ath-1"))

        assert first.status_code == 200
        assert second.status_code != 429
        assert third.status_code == 429
        assert int(third.headers["retry-after"]) > 0
        assert third.json()["error"]["code"] == "RATE_LIMIT_EXCEEDED"

        # Windows are per user
        other = await async_client.post("/api/athlete/check-in", json=body, headers=auth_headers("ath-3"))
        assert other.status_code == 200


class TestAccessStatusEndpoint:

    @pytest.mark.asyncio
    async def test_pending_status(self, async_client: AsyncClient, test_db):
        await seed_user(test_db, "ath-2", membership_status="pending")

        response = await async_client.get("/api/access/status", headers=auth_headers("ath-2"))

        assert response.status_code == 200
        data = response.json()
        assert data["hasAccess"] is False
        assert data["membershipStatus"] == "pending"
        assert data["redirectPath"] == "/pending-approval"

    @pytest.mark.asyncio
    async def test_coach_status(self, async_client: AsyncClient, test_db):
        await seed_user(test_db, "coach-1", role="coach")

        response = await async_client.get("/api/access/status", headers=auth_headers("coach-1"))

        assert response.json() == {"hasAccess": True, "membershipStatus": "active"}


class TestPageRedirects:

    @pytest.mark.asyncio
    async def test_anonymous_to_login(self, async_client: AsyncClient):
        response = await async_client.get("/dashboard/athlete")

        assert response.status_code == 307
        assert response.headers["location"] == "/login"

    @pytest.mark.asyncio
    async def test_coach_sent_to_own_portal(self, async_client: AsyncClient, test_db):
        await seed_user(test_db, "coach-1", role="coach")

        response = await async_client.get("/dashboard/admin/users", headers=auth_headers("coach-1"))

        assert response.status_code == 307
        assert response.headers["location"] == "/dashboard/coach"

    @pytest.mark.asyncio
    async def test_coach_portal_page(self, async_client: AsyncClient, test_db):
        await seed_user(test_db, "coach-1", role="coach")

        response = await async_client.get(
            "/dashboard/coach/sessions/today", headers=auth_headers("coach-1"),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["portal"] == "coach"
        assert data["page"] == "sessions/today"
        assert "manage_sessions" in data["capabilities"]

    @pytest.mark.asyncio
    async def test_pending_athlete_sent_to_pending_page(self, async_client: AsyncClient, test_db):
        await seed_user(test_db, "ath-2", membership_status="pending")

        response = await async_client.get(
            "/dashboard/athlete/schedule", headers=auth_headers("ath-2"),
        )

        assert response.status_code == 307
        assert response.headers["location"] == "/pending-approval"

    @pytest.mark.asyncio
    async def test_pending_athlete_open_pages(self, async_client: AsyncClient, test_db):
        await seed_user(test_db, "ath-2", membership_status="pending")

        profile = await async_client.get(
            "/dashboard/athlete/profile", headers=auth_headers("ath-2"),
        )
        pending = await async_client.get("/pending-approval", headers=auth_headers("ath-2"))

        assert profile.status_code == 200
        assert pending.status_code == 200
        assert pending.json()["membershipStatus"] == "pending"

    @pytest.mark.asyncio
    async def test_active_athlete_leaves_pending_page(self, async_client: AsyncClient, test_db):
        await seed_user(test_db, "ath-1", membership_status="active")

        response = await async_client.get("/pending-approval", headers=auth_headers("ath-1"))

        assert response.status_code == 307
        assert response.headers["location"] == "/dashboard/athlete"

    @pytest.mark.asyncio
    async def test_session_cookie_accepted(self, async_client: AsyncClient, test_db):
        await seed_user(test_db, "ath-1", membership_status="active")
        async_client.cookies.set("access_token", make_token("ath-1"))

        response = await async_client.get("/dashboard/athlete")

        assert response.status_code == 200
        assert response.json()["role"] == "athlete"

    @pytest.mark.asyncio
    async def test_role_lookup_failure_sends_to_login(self, async_client: AsyncClient, test_db):
        await seed_user(test_db, "coach-1", role="coach")

        class FlakyAccessService(AccessService):
            calls = 0

            async def get_role(self, user_id: str) -> Role:
                FlakyAccessService.calls += 1
                if FlakyAccessService.calls > 1:
                    raise OperationalError("SELECT role", {}, Exception("connection lost"))
                return await super().get_role(user_id)

        app.dependency_overrides[get_access_service] = lambda: FlakyAccessService(test_db)

        response = await async_client.get("/dashboard/coach/sessions", headers=auth_headers("coach-1"))

        assert response.status_code == 307
        assert response.headers["location"] == "/login"


def _endpoint_labels() -> set:
    return {
        sample.labels["endpoint"]
        for metric in api_requests_total.collect()
        for sample in metric.samples
        if "endpoint" in sample.labels
    }


class TestRequestMetadata:

    @pytest.mark.asyncio
    async def test_causation_id_echoed(self, async_client: AsyncClient):
        response = await async_client.get("/health", headers={"X-Causation-ID": "cause-7"})

        assert response.headers["x-causation-id"] == "cause-7"

    @pytest.mark.asyncio
    async def test_causation_id_generated(self, async_client: AsyncClient):
        response = await async_client.get("/health")

        assert response.headers["x-causation-id"]
        assert response.headers["x-causation-id"] != response.headers["x-correlation-id"]

    @pytest.mark.asyncio
    async def test_unknown_paths_share_one_metric_label(self, async_client: AsyncClient):
        for i in range(20):
            response = await async_client.get(f"/no-such-page/{i}")
            assert response.status_code == 404

        labels = _endpoint_labels()
        assert "unmatched" in labels
        assert not any(label.startswith("/no-such-page") for label in labels)

    @pytest.mark.asyncio
    async def test_page_requests_labelled_by_template(self, async_client: AsyncClient, test_db):
        await seed_user(test_db, "coach-1", role="coach")

        await async_client.get("/dashboard/coach/sessions/today", headers=auth_headers("coach-1"))

        labels = _endpoint_labels()
        assert "/dashboard/{portal}/{page:path}" in labels
        assert "/dashboard/coach/sessions/today" not in labels
