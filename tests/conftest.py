import asyncio

import pytest

from base.config import Settings
from schedule.service import ScheduleService
from stores.memory import InMemoryLessonStore
from stores.sqlite import SQLiteLessonStore

from builders import auditoriums, groups, sample_lessons, teacher_infos


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def memory_store():
    return InMemoryLessonStore(
        lessons=sample_lessons(),
        groups=groups(),
        teachers=teacher_infos(),
        auditoriums=auditoriums(),
    )


@pytest.fixture
def service(memory_store, settings):
    return ScheduleService(memory_store, settings)


@pytest.fixture
def sqlite_store(tmp_path):
    store = SQLiteLessonStore(str(tmp_path / "schedule.sqlite"))

    async def prepare():
        await store.init_schema()
        await store.load(groups(), teacher_infos(), auditoriums(), sample_lessons())

    asyncio.run(prepare())
    return store
