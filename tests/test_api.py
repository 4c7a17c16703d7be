import pytest
from fastapi.testclient import TestClient

from conftest import TOKEN, USER_ID
from core.steps import ONBOARDING_STEPS
from dashboard import dependencies
from dashboard.app import create_app
from dashboard.config import DashboardSettings
from database.metadata_store import InMemoryMetadataStore
from models.backfill import RizeUser
from services.backfill import BackfillService
from services.identity import StaticSessionResolver


class WriteFailingStore(InMemoryMetadataStore):
    async def _save(self, user_id, scope, raw):
        raise ConnectionError("metadata service unavailable")


class StubBackfillService(BackfillService):
    async def fetch_profile(self, rize_user_id, letraz_id):
        return RizeUser.model_validate({"id": rize_user_id, "name": "Ada Lovelace", "profiles": []})


def advance(client, auth_headers, step):
    return client.post("/api/onboarding/advance", json={"step": step}, headers=auth_headers)


class TestOnboardingAPI:
    def test_requires_session(self, client):
        response = client.get("/api/onboarding/")

        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"

    def test_unknown_session(self, client):
        response = client.get("/api/onboarding/", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    def test_session_cookie(self, client):
        client.cookies.set("__session", TOKEN)

        assert client.get("/api/onboarding/").status_code == 200

    def test_state_for_new_user(self, client, auth_headers):
        response = client.get("/api/onboarding/", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["current_step"] == "welcome"
        assert body["data"]["progress"] == 0
        assert [item["step"] for item in body["steps"]] == [step.value for step in ONBOARDING_STEPS]
        assert body["steps"][0]["current"] is True

    def test_advance(self, client, auth_headers, analytics):
        response = advance(client, auth_headers, "about")

        assert response.status_code == 200
        assert response.json()["data"]["current_step"] == "about"
        assert response.json()["data"]["completed_steps"] == ["welcome"]
        assert "onboarding_step_advanced" in analytics.names()

    def test_skip_is_conflict(self, client, auth_headers):
        response = advance(client, auth_headers, "resume")

        assert response.status_code == 409
        assert response.json()["error"] == "invalid_transition"
        assert response.json()["current_step"] == "welcome"

    def test_unknown_step_is_bad_request(self, client, auth_headers):
        response = advance(client, auth_headers, "personal_details")

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_step"

    def test_complete_outside_resume(self, client, auth_headers):
        response = client.post("/api/onboarding/complete", headers=auth_headers)

        assert response.status_code == 409

    def test_next_walks_to_completion(self, client, auth_headers, analytics):
        for step in ONBOARDING_STEPS[1:]:
            response = client.post("/api/onboarding/next", headers=auth_headers)
            assert response.json()["data"]["current_step"] == step.value

        response = client.post("/api/onboarding/next", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["data"]["current_step"] == "completed"
        assert response.json()["data"]["progress"] == 100
        assert "onboarding_completed" in analytics.names()

    def test_completion_event_reports_entry_ranges(self, client, auth_headers, seed, analytics):
        seed(
            step="resume",
            completed_steps=[step.value for step in ONBOARDING_STEPS[:5]],
            data={"education": {"entries": [{"institution": "MIT"}, {"institution": "ETH"}]}},
        )

        response = client.post("/api/onboarding/complete", headers=auth_headers)

        assert response.status_code == 200
        event = analytics.events[-1]
        assert event.name == "onboarding_completed"
        assert event.properties == {"education_entries": "1-2", "experience_entries": "0-0"}

    def test_already_completed(self, client, auth_headers, seed):
        seed(step="resume", completed=True)

        response = advance(client, auth_headers, "about")

        assert response.status_code == 409
        assert response.json()["error"] == "already_completed"
        assert response.json()["redirect"] == "/app"

    def test_step_data_then_advance(self, client, auth_headers, seed):
        seed(step="personal-details", completed_steps=["welcome", "about"])

        response = client.put(
            "/api/onboarding/steps/personal-details/data",
            json={"data": {"first_name": "Ada", "email": "ada@example.com"}, "advance": True},
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["current_step"] == "education"
        assert data["data"]["personal-details"]["first_name"] == "Ada"

    def test_step_entry(self, client, auth_headers, seed):
        seed(step="education", completed_steps=["welcome", "about", "personal-details"])

        response = client.put(
            "/api/onboarding/steps/education/data",
            json={"entry": {"institution": "MIT"}},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["data"]["education"]["entries"] == [{"institution": "MIT"}]
        assert response.json()["data"]["current_step"] == "education"

    def test_step_data_for_unreachable_step(self, client, auth_headers):
        response = client.put(
            "/api/onboarding/steps/experience/data",
            json={"data": {"company": "Acme"}},
            headers=auth_headers,
        )

        assert response.status_code == 409

    def test_reset(self, client, auth_headers, seed):
        seed(step="resume", completed=True, completed_steps=[step.value for step in ONBOARDING_STEPS])

        response = client.post("/api/onboarding/reset", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["data"]["current_step"] == "welcome"

    def test_reset_disabled(self, store, tmp_path, auth_headers):
        settings = DashboardSettings(
            _env_file=None,
            ENVIRONMENT="testing",
            METADATA_BACKEND="memory",
            LOG_FILE=None,
            ALLOW_ONBOARDING_RESET=False,
        )
        app = create_app(settings)
        app.dependency_overrides[dependencies.get_metadata_store] = lambda: store
        app.dependency_overrides[dependencies.get_session_resolver] = (
            lambda: StaticSessionResolver({TOKEN: USER_ID})
        )

        response = TestClient(app).post("/api/onboarding/reset", headers=auth_headers)

        assert response.status_code == 404

    def test_persistence_failure_is_retryable(self, app, client, auth_headers):
        app.dependency_overrides[dependencies.get_metadata_store] = lambda: WriteFailingStore()

        response = advance(client, auth_headers, "about")

        assert response.status_code == 503
        assert response.json()["error"] == "persistence_failed"
        assert response.json()["retryable"] is True


class TestRizeAPI:
    def test_status_for_new_user(self, client, auth_headers):
        response = client.get("/api/rize/status", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["rizeUserId"] is None
        assert response.json()["rizeBackfill"]["status"] == "idle"

    def test_backfill_not_configured(self, client, auth_headers):
        response = client.post("/api/rize/backfill", json={"rizeUserId": "rize_1"}, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "backfill_unavailable"

    def test_backfill_runs_in_background(self, app, client, auth_headers, store, controller, analytics):
        service = StubBackfillService(store, controller, "https://rize.test/api/admin", "secret", retry_delay=0)
        app.dependency_overrides[dependencies.get_backfill_service] = lambda: service

        response = client.post("/api/rize/backfill", json={"rizeUserId": "rize_1"}, headers=auth_headers)

        assert response.status_code == 202
        assert response.json()["rizeBackfill"]["status"] == "running"
        assert "rize_backfill_started" in analytics.names()

        status = client.get("/api/rize/status", headers=auth_headers).json()
        assert status["rizeUserId"] == "rize_1"
        assert status["rizeBackfill"]["status"] == "done"

        state = client.get("/api/onboarding/", headers=auth_headers).json()["data"]
        assert state["current_step"] == "welcome"
        assert state["data"]["personal-details"]["first_name"] == "Ada"


class TestServiceRoutes:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["data"]["backend"] == "memory"

    def test_ping_sets_request_headers(self, client):
        response = client.get("/ping", headers={"X-Request-ID": "req-1"})

        assert response.json()["message"] == "pong"
        assert response.headers["X-Request-ID"] == "req-1"
        assert "X-Process-Time" in response.headers

    def test_info(self, client):
        body = client.get("/api/info").json()

        assert body["features"]["metadata_backend"] == "memory"
        assert body["features"]["reset"] is True
