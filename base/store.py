from abc import ABC, abstractmethod
from datetime import date

from .types import Auditorium, Building, Department, EntitySelector, LessonRecord, StudyGroup, Teacher, TeacherInfo


class LessonStore(ABC):
    @property
    @abstractmethod
    def description(self) -> str:
        """Human readable description"""

    @abstractmethod
    async def fetch_lesson_window(self, selector: EntitySelector, start: date, end: date) -> list[LessonRecord]:
        """All lessons of the entity dated within [start, end], both inclusive"""

    @abstractmethod
    async def fetch_nearest_labeled_lesson(
        self,
        selector: EntitySelector,
        *,
        before: date | None = None,
        after: date | None = None
    ) -> LessonRecord | None:
        """
        The closest lesson of the entity with a known week type label,
        dated strictly before `before` or strictly after `after`
        """

    @abstractmethod
    async def entity_exists(self, selector: EntitySelector) -> bool:
        """Whether the entity is known at all, regardless of dates"""

    @abstractmethod
    async def get_group(self, number: str) -> StudyGroup | None:
        ...

    @abstractmethod
    async def get_teacher(self, teacher_id: int) -> TeacherInfo | None:
        ...

    @abstractmethod
    async def get_auditorium(self, auditorium_id: int) -> Auditorium | None:
        ...

    @abstractmethod
    async def fetch_groups(self, start: date, end: date) -> list[StudyGroup]:
        """Groups having at least one lesson within [start, end]"""

    @abstractmethod
    async def get_faculties(self) -> list[str]:
        """Short titles of all faculties"""

    @abstractmethod
    async def get_teachers(self, faculty: str | None = None, department_id: int | None = None) -> list[Teacher]:
        """
        Teachers working at a department matching both filters, all known
        teachers when no filter is given
        """

    @abstractmethod
    async def get_departments(self, faculty: str | None = None) -> list[Department]:
        ...

    @abstractmethod
    async def get_auditoriums(self, building_id: int | None = None) -> list[Auditorium]:
        ...

    @abstractmethod
    async def get_buildings(self) -> list[Building]:
        ...

    @abstractmethod
    async def get_building(self, building_id: int) -> Building | None:
        ...
