import asyncio
import time

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from core.exceptions import InvalidStepError, PersistenceError, UnauthorizedError
from core.onboarding import OnboardingController
from database import manager
from database.manager import JsonFileMetadataStore, load_user_data
from database.metadata_store import InMemoryMetadataStore
from database.sql_store import SqlMetadataStore
from models.enums import OnboardingStep


class BrokenStore(InMemoryMetadataStore):
    async def _save(self, user_id, scope, raw):
        raise OSError("disk full")


@pytest.fixture(params=["memory", "json", "sql"])
async def any_store(request, tmp_path):
    if request.param == "memory":
        store = InMemoryMetadataStore()
    elif request.param == "json":
        store = JsonFileMetadataStore(tmp_path / "users")
    else:
        engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
        store = SqlMetadataStore(engine=engine)
    await store.initialize()
    yield store
    await store.close()


async def test_missing_record_reads_as_welcome(any_store):
    metadata = await any_store.read("user_new")

    assert metadata.step is OnboardingStep.WELCOME
    assert metadata.completed is False
    assert metadata.completed_steps == []
    assert metadata.data == {}


async def test_write_merges_shallowly_and_keeps_foreign_keys(any_store):
    await any_store.write("user_1", {"theme": "dark", "step": OnboardingStep.ABOUT})
    await any_store.write("user_1", {"completed_steps": [OnboardingStep.WELCOME]})

    metadata = await any_store.read("user_1")
    assert metadata.step is OnboardingStep.ABOUT
    assert metadata.completed_steps == [OnboardingStep.WELCOME]
    assert metadata.to_raw()["theme"] == "dark"


async def test_records_are_stored_with_camel_case_keys(any_store):
    await any_store.write("user_1", {"step": "education", "completed": False})

    raw = await any_store._load("user_1", "public")
    assert raw["currentOnboardingStep"] == "education"
    assert raw["onboardingComplete"] is False


async def test_private_scope_is_separate(any_store):
    await any_store.write("user_1", {"step": "about"})
    await any_store.write_private("user_1", {"rizeUserId": "rize_42"})
    await any_store.write_private("user_1", {"rizeBackfill": {"status": "running"}})

    private = await any_store.read_private("user_1")
    assert private == {"rizeUserId": "rize_42", "rizeBackfill": {"status": "running"}}
    assert "rizeUserId" not in (await any_store.read("user_1")).to_raw()


async def test_users_are_isolated(any_store):
    await any_store.write("user_1", {"step": "resume"})

    assert (await any_store.read("user_2")).step is OnboardingStep.WELCOME
    assert await any_store.users_count() == 1


@pytest.mark.parametrize("user_id", [None, ""])
async def test_missing_user_is_unauthorized(any_store, user_id):
    with pytest.raises(UnauthorizedError):
        await any_store.read(user_id)
    with pytest.raises(UnauthorizedError):
        await any_store.write(user_id, {"step": "about"})


async def test_invalid_step_is_rejected_before_saving():
    store = InMemoryMetadataStore()

    with pytest.raises(InvalidStepError):
        await store.write("user_1", {"currentOnboardingStep": "finished"})
    assert await store._load("user_1", "public") is None


async def test_stored_unknown_step_surfaces_as_invalid_step():
    store = InMemoryMetadataStore()
    await store._save("user_1", "public", {"currentOnboardingStep": "personal_details"})

    with pytest.raises(InvalidStepError) as exc_info:
        await store.read("user_1")
    assert exc_info.value.value == "personal_details"


async def test_backend_failure_becomes_persistence_error():
    store = BrokenStore()

    with pytest.raises(PersistenceError):
        await store.write("user_1", {"step": "about"})


async def test_json_store_writes_one_file_per_user(tmp_path):
    store = JsonFileMetadataStore(tmp_path)
    await store.write("user_1", {"step": "about"})
    await store.write_private("user_1", {"rizeUserId": "rize_1"})

    data = load_user_data(tmp_path, "user_1")
    assert data["public"]["currentOnboardingStep"] == "about"
    assert data["private"] == {"rizeUserId": "rize_1"}
    assert list(tmp_path.glob("*.tmp")) == []


async def test_json_store_rejects_path_like_user_ids(tmp_path):
    store = JsonFileMetadataStore(tmp_path)

    with pytest.raises(UnauthorizedError):
        await store.read("../etc/passwd")


def test_sql_store_requires_url():
    with pytest.raises(ValueError):
        SqlMetadataStore()


async def test_json_store_keeps_public_record_during_concurrent_private_write(tmp_path, monkeypatch):
    store = JsonFileMetadataStore(tmp_path)
    controller = OnboardingController(store)
    await controller.advance("user_1", "about")

    save = manager.save_user_data

    def slow_save(data_dir, user_id, data):
        time.sleep(0.05)
        save(data_dir, user_id, data)

    monkeypatch.setattr(manager, "save_user_data", slow_save)

    await asyncio.gather(
        controller.advance("user_1", "personal-details"),
        store.write_private("user_1", {"rizeBackfill": {"status": "running"}}),
    )

    assert (await store.read("user_1")).step is OnboardingStep.PERSONAL_DETAILS
    assert (await store.read_private("user_1"))["rizeBackfill"] == {"status": "running"}
