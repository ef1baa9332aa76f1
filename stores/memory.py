from base.store import LessonStore
from base.types import (
    Auditorium,
    Building,
    Department,
    EntityKind,
    EntitySelector,
    LessonRecord,
    StudyGroup,
    Teacher,
    TeacherInfo,
)

import aiofiles
import json
import logging
from datetime import date
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class LessonDump(BaseModel):
    """JSON layout read by InMemoryLessonStore.from_json_file"""
    groups: list[StudyGroup] = []
    teachers: list[TeacherInfo] = []
    auditoriums: list[Auditorium] = []
    lessons: list[LessonRecord] = []


async def read_dump(path: str) -> LessonDump:
    async with aiofiles.open(path, encoding="utf-8") as f:
        dump = LessonDump.model_validate(json.loads(await f.read()))

    logger.info(f"[Load] Read {len(dump.lessons)} lessons from {path}")
    return dump


class InMemoryLessonStore(LessonStore):
    @property
    def description(self) -> str:
        return f"In-memory store with {len(self._lessons)} lessons"

    def __init__(
        self,
        lessons: list[LessonRecord] | None = None,
        groups: list[StudyGroup] | None = None,
        teachers: list[TeacherInfo] | None = None,
        auditoriums: list[Auditorium] | None = None
    ):
        self._lessons = sorted(lessons or [], key=lambda l: (l.date, l.id))
        self._groups = {g.number: g for g in groups or []}

        # Participants only mentioned by lessons are known too, catalog entries take precedence
        self._teachers: dict[int, TeacherInfo] = {}
        self._auditoriums: dict[int, Auditorium] = {}
        for lesson in self._lessons:
            for pair in lesson.teacher_auditoriums:
                if pair.teacher:
                    self._teachers.setdefault(pair.teacher.id, TeacherInfo(**pair.teacher.model_dump()))
                if pair.auditorium:
                    self._auditoriums.setdefault(pair.auditorium.id, pair.auditorium)
        self._teachers.update({t.id: t for t in teachers or []})
        self._auditoriums.update({a.id: a for a in auditoriums or []})

    @classmethod
    def from_dump(cls, dump: LessonDump) -> "InMemoryLessonStore":
        return cls(lessons=dump.lessons, groups=dump.groups, teachers=dump.teachers, auditoriums=dump.auditoriums)

    @classmethod
    async def from_json_file(cls, path: str) -> "InMemoryLessonStore":
        return cls.from_dump(await read_dump(path))

    @staticmethod
    def _matches(selector: EntitySelector, lesson: LessonRecord) -> bool:
        if selector.kind is EntityKind.group:
            return lesson.group is not None and lesson.group.number == selector.value

        for pair in lesson.teacher_auditoriums:
            if selector.kind is EntityKind.teacher and pair.teacher and pair.teacher.id == selector.value:
                return True
            if selector.kind is EntityKind.auditorium and pair.auditorium and pair.auditorium.id == selector.value:
                return True

        return False

    async def fetch_lesson_window(self, selector: EntitySelector, start: date, end: date) -> list[LessonRecord]:
        return [l for l in self._lessons if start <= l.date <= end and self._matches(selector, l)]

    async def fetch_nearest_labeled_lesson(
        self,
        selector: EntitySelector,
        *,
        before: date | None = None,
        after: date | None = None
    ) -> LessonRecord | None:
        if (before is None) == (after is None):
            raise ValueError("Exactly one of before and after must be given")

        candidates = [
            l for l in self._lessons
            if l.week_type.resolved() is not None
            and (l.date < before if before is not None else l.date > after)
            and self._matches(selector, l)
        ]
        if not candidates:
            return None

        # Lessons are kept ordered by date
        return candidates[-1] if before is not None else candidates[0]

    async def entity_exists(self, selector: EntitySelector) -> bool:
        if selector.kind is EntityKind.group and selector.value in self._groups:
            return True
        if selector.kind is EntityKind.teacher and selector.value in self._teachers:
            return True
        if selector.kind is EntityKind.auditorium and selector.value in self._auditoriums:
            return True

        return any(self._matches(selector, l) for l in self._lessons)

    async def get_group(self, number: str) -> StudyGroup | None:
        if number in self._groups:
            return self._groups[number]

        return next((l.group for l in self._lessons if l.group and l.group.number == number), None)

    async def get_teacher(self, teacher_id: int) -> TeacherInfo | None:
        return self._teachers.get(teacher_id)

    async def get_auditorium(self, auditorium_id: int) -> Auditorium | None:
        return self._auditoriums.get(auditorium_id)

    async def fetch_groups(self, start: date, end: date) -> list[StudyGroup]:
        groups = {l.group.number: l.group for l in self._lessons if l.group and start <= l.date <= end}
        return [groups[number] for number in sorted(groups)]

    def _departments(self) -> dict[int, Department]:
        return {d.id: d for t in self._teachers.values() for d in t.departments}

    async def get_faculties(self) -> list[str]:
        faculties = {g.faculty for g in self._groups.values()}
        faculties.update(l.group.faculty for l in self._lessons if l.group)
        faculties.update(d.faculty for d in self._departments().values())
        return sorted(faculties)

    async def get_teachers(self, faculty: str | None = None, department_id: int | None = None) -> list[Teacher]:
        def matches(teacher: TeacherInfo) -> bool:
            if faculty is None and department_id is None:
                return True

            return any(
                (faculty is None or d.faculty == faculty) and (department_id is None or d.id == department_id)
                for d in teacher.departments
            )

        teachers = sorted((t for t in self._teachers.values() if matches(t)), key=lambda t: (t.full_name, t.id))
        return [Teacher(id=t.id, short_name=t.short_name, full_name=t.full_name) for t in teachers]

    async def get_departments(self, faculty: str | None = None) -> list[Department]:
        departments = [d for d in self._departments().values() if faculty is None or d.faculty == faculty]
        return sorted(departments, key=lambda d: (d.title, d.id))

    async def get_auditoriums(self, building_id: int | None = None) -> list[Auditorium]:
        auditoriums = [
            a for a in self._auditoriums.values()
            if building_id is None or (a.building is not None and a.building.id == building_id)
        ]
        return sorted(auditoriums, key=lambda a: (a.building.id if a.building else 0, a.number, a.id))

    async def get_buildings(self) -> list[Building]:
        buildings = {a.building.id: a.building for a in self._auditoriums.values() if a.building}
        return [buildings[building_id] for building_id in sorted(buildings)]

    async def get_building(self, building_id: int) -> Building | None:
        return next((b for b in await self.get_buildings() if b.id == building_id), None)
