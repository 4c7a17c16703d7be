import asyncio

import pytest
from fastapi.testclient import TestClient

from core.onboarding import OnboardingController
from dashboard import dependencies
from dashboard.app import create_app
from dashboard.config import DashboardSettings
from database.metadata_store import InMemoryMetadataStore
from services.analytics import LoggingAnalytics
from services.identity import StaticSessionResolver

USER_ID = "user_123"
TOKEN = "token-123"


@pytest.fixture
def store():
    return InMemoryMetadataStore()


@pytest.fixture
def controller(store):
    return OnboardingController(store)


@pytest.fixture
def settings(tmp_path):
    return DashboardSettings(
        _env_file=None,
        ENVIRONMENT="testing",
        METADATA_BACKEND="memory",
        LOGS_DIR=tmp_path / "logs",
        LOG_FILE=None,
        DATA_DIR=tmp_path / "users",
        ALLOW_ONBOARDING_RESET=True,
        DEV_SESSIONS={TOKEN: USER_ID},
    )


@pytest.fixture
def analytics():
    return LoggingAnalytics()


@pytest.fixture
def app(settings, store, analytics):
    app = create_app(settings)
    app.dependency_overrides[dependencies.get_metadata_store] = lambda: store
    app.dependency_overrides[dependencies.get_session_resolver] = lambda: StaticSessionResolver({TOKEN: USER_ID})
    app.dependency_overrides[dependencies.get_analytics] = lambda: analytics
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app, follow_redirects=False)


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {TOKEN}"}


@pytest.fixture
def seed(store):
    """Записать состояние пользователя до запроса (синхронные тесты API)"""
    def _seed(user_id=USER_ID, **update):
        return asyncio.run(store.write(user_id, update))
    return _seed
