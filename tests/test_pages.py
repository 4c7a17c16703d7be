import asyncio

import pytest

from conftest import TOKEN, USER_ID
from dashboard import dependencies
from database.metadata_store import InMemoryMetadataStore

WALKED = {
    "personal-details": ["welcome", "about"],
    "education": ["welcome", "about", "personal-details"],
    "experience": ["welcome", "about", "personal-details", "education"],
    "resume": ["welcome", "about", "personal-details", "education", "experience"],
}


class WriteFailingStore(InMemoryMetadataStore):
    async def _save(self, user_id, scope, raw):
        raise ConnectionError("metadata service unavailable")


@pytest.fixture
def browser(client):
    client.cookies.set("__session", TOKEN)
    return client


@pytest.fixture
def on_step(seed):
    def _on_step(step):
        seed(step=step, completed_steps=WALKED.get(step, []))
    return _on_step


def submit(browser, step, action="continue", **fields):
    return browser.post("/app/onboarding/submit", data={"_step": step, "_action": action, **fields})


def read(store):
    return asyncio.run(store.read(USER_ID))


class TestGate:
    def test_root_redirects_to_app(self, client):
        response = client.get("/")

        assert response.status_code == 303
        assert response.headers["location"] == "/app"

    def test_anonymous_user_goes_to_sign_in(self, client):
        for url in ("/app", "/app/onboarding"):
            response = client.get(url)
            assert response.status_code == 303
            assert response.headers["location"] == "/signin"

    def test_new_user_is_sent_to_welcome(self, browser):
        response = browser.get("/app")

        assert response.status_code == 303
        assert response.headers["location"] == "/app/onboarding?step=welcome"

    def test_user_resumes_where_they_left_off(self, browser, on_step):
        on_step("education")

        assert browser.get("/app").headers["location"] == "/app/onboarding?step=education"

    def test_completed_user_sees_the_app(self, browser, seed):
        seed(step="resume", completed=True)

        response = browser.get("/app")

        assert response.status_code == 200
        assert "Your resumes" in response.text

    def test_completed_user_leaves_onboarding(self, browser, seed):
        seed(step="resume", completed=True)

        response = browser.get("/app/onboarding?step=about")

        assert response.status_code == 303
        assert response.headers["location"] == "/app"

    def test_signin_lists_dev_sessions(self, client):
        response = client.get("/signin")

        assert response.status_code == 200
        assert TOKEN in response.text


class TestStepPages:
    def test_current_step_is_rendered(self, browser, analytics, store):
        response = browser.get("/app/onboarding")

        assert response.status_code == 200
        assert 'data-step="welcome"' in response.text
        assert "Step 1 of 6" in response.text
        assert analytics.names() == ["onboarding_step_viewed"]
        # просмотр страницы не создает запись
        assert asyncio.run(store.users_count()) == 0

    def test_back_control_only_after_the_first_step(self, browser, on_step):
        assert "data-back=" not in browser.get("/app/onboarding").text

        on_step("education")
        page = browser.get("/app/onboarding").text
        assert 'data-back="personal-details"' in page

    def test_unreachable_step_redirects_to_current(self, browser):
        response = browser.get("/app/onboarding?step=education")

        assert response.status_code == 303
        assert response.headers["location"] == "/app/onboarding?step=welcome&notice=invalid-transition"

    def test_notice_is_shown(self, browser):
        response = browser.get("/app/onboarding?step=welcome&notice=invalid-transition")

        assert "Please finish the previous steps first." in response.text

    def test_unknown_notice_is_ignored(self, browser):
        response = browser.get("/app/onboarding?notice=<script>")

        assert response.status_code == 200
        assert 'role="status"' not in response.text

    def test_unknown_step_renders_error_page(self, browser):
        response = browser.get("/app/onboarding?step=finished")

        assert response.status_code == 400
        assert 'data-error="400"' in response.text

    def test_previous_step_is_viewable_without_moving(self, browser, on_step, store):
        on_step("education")

        response = browser.get("/app/onboarding?step=about")

        assert response.status_code == 200
        assert 'data-step="about"' in response.text
        assert read(store).step.value == "education"

    def test_resume_shows_complete_button_only_when_current(self, browser, on_step):
        on_step("resume")
        assert 'action="/app/onboarding/complete"' in browser.get("/app/onboarding").text

        browser.post("/app/onboarding/advance", data={"step": "experience"})
        page = browser.get("/app/onboarding?step=resume").text
        assert 'action="/app/onboarding/complete"' not in page


class TestNavigation:
    def test_advance_form(self, browser, analytics):
        response = browser.post("/app/onboarding/advance", data={"step": "about"})

        assert response.status_code == 303
        assert response.headers["location"] == "/app/onboarding?step=about"
        assert "onboarding_step_advanced" in analytics.names()

    def test_skipping_redirects_back_with_notice(self, browser, store):
        response = browser.post("/app/onboarding/advance", data={"step": "resume"})

        assert response.status_code == 303
        assert response.headers["location"] == "/app/onboarding?step=welcome&notice=invalid-transition"
        assert read(store).step.value == "welcome"

    def test_continue_from_welcome(self, browser):
        response = submit(browser, "welcome")

        assert response.headers["location"] == "/app/onboarding?step=about"

    def test_complete(self, browser, on_step, store, analytics):
        on_step("resume")

        response = browser.post("/app/onboarding/complete")

        assert response.status_code == 303
        assert response.headers["location"] == "/app"
        assert read(store).completed is True
        assert "onboarding_completed" in analytics.names()

    def test_complete_before_resume(self, browser, on_step):
        on_step("experience")

        response = browser.post("/app/onboarding/complete")

        assert response.headers["location"] == "/app/onboarding?step=experience&notice=invalid-transition"


class TestForms:
    def test_personal_details_requires_fields(self, browser, on_step, store):
        on_step("personal-details")

        response = submit(browser, "personal-details", last_name="Lovelace", email="not-an-email")

        assert response.status_code == 422
        assert 'data-error-for="first_name"' in response.text
        assert 'data-error-for="email"' in response.text
        assert 'value="Lovelace"' in response.text
        assert read(store).data == {}

    def test_personal_details_save_stays(self, browser, on_step, store):
        on_step("personal-details")

        response = submit(browser, "personal-details", "save", first_name="Ada", email="ada@example.com")

        assert response.headers["location"] == "/app/onboarding?step=personal-details&notice=saved"
        metadata = read(store)
        assert metadata.step.value == "personal-details"
        assert metadata.data["personal-details"] == {"first_name": "Ada", "email": "ada@example.com"}

    def test_personal_details_continue(self, browser, on_step, store):
        on_step("personal-details")

        response = submit(browser, "personal-details", first_name="Ada", email="ada@example.com", phone="")

        assert response.headers["location"] == "/app/onboarding?step=education"
        assert "phone" not in read(store).data["personal-details"]

    def test_add_education_entry(self, browser, on_step, store):
        on_step("education")

        response = submit(browser, "education", "add", institution="MIT", degree="BSc", started_from="2019-09")

        assert response.headers["location"] == "/app/onboarding?step=education&notice=entry-added"
        entries = read(store).data["education"]["entries"]
        assert entries == [{"institution": "MIT", "degree": "BSc", "started_from": "2019-09"}]

        page = browser.get("/app/onboarding?step=education").text
        assert 'data-entries="1"' in page

    def test_invalid_education_dates(self, browser, on_step):
        on_step("education")

        response = submit(browser, "education", "add", institution="MIT", finished_at="June 2023")

        assert response.status_code == 422
        assert 'data-error-for="finished_at"' in response.text

    def test_current_experience_has_no_end_date(self, browser, on_step, store):
        on_step("experience")

        submit(
            browser, "experience", "add",
            company="Acme", job_title="Engineer", employment_type="full_time",
            started_from="2021-01", finished_at="2023-01", current="on",
        )

        entry = read(store).data["experience"]["entries"][0]
        assert entry["current"] is True
        assert "finished_at" not in entry
        assert entry["employment_type"] == "full_time"

    def test_continue_from_education_without_entries(self, browser, on_step):
        on_step("education")

        response = submit(browser, "education")

        assert response.headers["location"] == "/app/onboarding?step=experience"

    def test_submit_for_unreachable_step(self, browser):
        response = submit(browser, "experience", "add", company="Acme", job_title="Engineer")

        assert response.headers["location"] == "/app/onboarding?step=welcome&notice=invalid-transition"


class TestPersistenceFailures:
    def test_failed_write_returns_to_the_step(self, app, browser):
        app.dependency_overrides[dependencies.get_metadata_store] = lambda: WriteFailingStore()

        response = browser.post(
            "/app/onboarding/advance",
            data={"step": "about"},
            headers={"referer": "http://testserver/app/onboarding?step=welcome"},
        )

        assert response.status_code == 303
        assert response.headers["location"] == "/app/onboarding?step=welcome&notice=retry"

    def test_failed_write_without_referer(self, app, browser):
        app.dependency_overrides[dependencies.get_metadata_store] = lambda: WriteFailingStore()

        response = browser.post("/app/onboarding/advance", data={"step": "about"})

        assert response.status_code == 503
        assert 'data-error="503"' in response.text

    def test_foreign_referer_is_not_followed(self, app, browser):
        app.dependency_overrides[dependencies.get_metadata_store] = lambda: WriteFailingStore()

        response = browser.post(
            "/app/onboarding/advance",
            data={"step": "about"},
            headers={"referer": "https://evil.example/app/onboarding"},
        )

        assert response.status_code == 503
