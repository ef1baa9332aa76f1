import asyncio
import logging
import re
from datetime import date, datetime, timedelta
from typing import Awaitable, TypeVar

from base.config import Settings
from base.errors import InvalidInputError, NotFoundError, StoreUnavailableError
from base.store import LessonStore
from base.types import (
    Auditorium,
    AuditoriumSchedule,
    Building,
    CourseFaculties,
    CourseFacultyGroups,
    Day,
    Department,
    EntityKind,
    EntitySelector,
    Faculties,
    FacultyCourses,
    LessonRecord,
    LessonType,
    LessonTypeInfo,
    ScheduleBase,
    StudentSchedule,
    TeacherSchedule,
    TeachersList,
    WeekAssignment,
    WeekType,
)
from .grouping import (
    LESSON_TYPE_DESCRIPTIONS,
    AuditoriumView,
    GroupedLessons,
    LessonView,
    StudentView,
    TeacherView,
    group_lessons,
)
from .padding import fill_empty_week_lessons
from .weeks import (
    WEEK_TYPE_RU,
    get_date_range_bounds,
    get_week_bounds,
    parse_date_or_now,
    resolve_week_types,
)

T = TypeVar("T")

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
SHORT_DAY_NAMES_RU = ["Пн", "Вт", "Ср", "Чт", "Пт", "Сб", "Вс"]
MASTER_GROUP_SUFFIX = "М"


def normalize_group(group: str) -> str:
    group = (group or "").strip().upper()
    if not group:
        raise InvalidInputError("group must not be empty")

    return group


def normalize_id(value: int | str, name: str) -> int:
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{name} must be an integer, got {value!r}")

    if value <= 0:
        raise InvalidInputError(f"{name} must be positive, got {value}")

    return value


def group_sort_key(number: str) -> tuple[int, int, str]:
    """Groups without the master's suffix go first, then by the numeric part"""
    is_master = number.endswith(MASTER_GROUP_SUFFIX)
    digits = re.sub(r"\D", "", number.removesuffix(MASTER_GROUP_SUFFIX))
    return int(is_master), int(digits) if digits else 0, number


async def gather_or_cancel(*aws: Awaitable[T]) -> list[T]:
    """asyncio.gather that cancels the remaining awaitables once one of them fails"""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class ScheduleService:
    def __init__(self, store: LessonStore, settings: Settings | None = None):
        self._logger = logging.getLogger(__name__)
        self.store = store
        self.settings = settings or Settings()

    async def _call(self, awaitable: Awaitable[T], what: str) -> T:
        """Runs a single store request, a timeout fails the whole request"""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.settings.query_timeout)
        except asyncio.TimeoutError:
            self._logger.error(f"[Store] {what} timed out after {self.settings.query_timeout}s")
            raise StoreUnavailableError(f"lesson store timed out: {what}")

    def _parse_date(self, date_str: str | None) -> date:
        return parse_date_or_now(date_str, self.settings.tz)

    async def _fetch_window(self, selector: EntitySelector, reference_date: date) -> tuple[list[LessonRecord], WeekAssignment]:
        start, end = get_week_bounds(reference_date)
        rows = await self._call(self.store.fetch_lesson_window(selector, start, end), f"lessons of {selector}")
        if not rows and not await self._call(self.store.entity_exists(selector), f"existence of {selector}"):
            raise NotFoundError(f"schedule for {selector} not found")

        before, after = await gather_or_cancel(
            self._call(self.store.fetch_nearest_labeled_lesson(selector, before=start), f"reference before {start}"),
            self._call(self.store.fetch_nearest_labeled_lesson(selector, after=end), f"reference after {end}"),
        )
        assignment = resolve_week_types(reference_date, rows, before, after)
        self._logger.debug(
            f"{selector} around {reference_date}: {len(rows)} lessons, "
            f"first week {assignment.first_week.value}, second week {assignment.second_week.value}"
        )
        return rows, assignment

    async def _build(
        self,
        selector: EntitySelector,
        reference_date: date,
        view: LessonView,
        add_empty_lessons: bool
    ) -> tuple[GroupedLessons, WeekAssignment]:
        rows, assignment = await self._fetch_window(selector, reference_date)
        grouped = group_lessons(rows, assignment, view)
        if add_empty_lessons:
            fill_empty_week_lessons(grouped.schedule, grouped.lessons_times, view.slot_type)

        return grouped, assignment

    @staticmethod
    def _header(grouped: GroupedLessons, assignment: WeekAssignment) -> dict:
        return {
            "numerator_period": assignment.numerator_period,
            "denominator_period": assignment.denominator_period,
            "input_week_type": assignment.input_week_type,
            "lessons_times": grouped.lessons_times,
            "schedule": grouped.schedule,
        }

    async def _group_schedule(self, group: str, reference_date: date, add_empty_lessons: bool) -> StudentSchedule:
        selector = EntitySelector.group(group)
        grouped, assignment = await self._build(selector, reference_date, StudentView(), add_empty_lessons)

        info = await self._call(self.store.get_group(group), f"group {group}")
        if info is None:
            raise NotFoundError(f"schedule for group {group} not found")

        return StudentSchedule(
            faculty=info.faculty,
            group=info.number,
            course=info.course,
            **self._header(grouped, assignment),
        )

    async def _teacher_schedule(self, teacher_id: int, reference_date: date, add_empty_lessons: bool) -> TeacherSchedule:
        selector = EntitySelector.teacher(teacher_id)
        grouped, assignment = await self._build(selector, reference_date, TeacherView(teacher_id), add_empty_lessons)

        info = await self._call(self.store.get_teacher(teacher_id), f"teacher {teacher_id}")
        if info is None:
            raise NotFoundError(f"schedule for teacher '{teacher_id}' not found")

        return TeacherSchedule(
            id=info.id,
            full_name=info.full_name,
            short_name=info.short_name,
            link=info.link,
            departments=sorted(info.departments, key=lambda d: (d.title, d.id)),
            **self._header(grouped, assignment),
        )

    async def _auditorium_schedule(
        self,
        auditorium_id: int,
        reference_date: date,
        add_empty_lessons: bool
    ) -> AuditoriumSchedule:
        selector = EntitySelector.auditorium(auditorium_id)
        grouped, assignment = await self._build(
            selector, reference_date, AuditoriumView(auditorium_id), add_empty_lessons
        )

        info = await self._call(self.store.get_auditorium(auditorium_id), f"auditorium {auditorium_id}")
        if info is None:
            raise NotFoundError(f"schedule for auditorium `{auditorium_id}` not found")

        return AuditoriumSchedule(auditorium=info, **self._header(grouped, assignment))

    async def resolve_schedule(
        self,
        selector: EntitySelector,
        reference_date: date,
        add_empty_lessons: bool = False
    ) -> ScheduleBase:
        """Two week schedule of any kind of entity around `reference_date`"""
        if selector.kind is EntityKind.group:
            return await self._group_schedule(normalize_group(str(selector.value)), reference_date, add_empty_lessons)
        if selector.kind is EntityKind.teacher:
            return await self._teacher_schedule(
                normalize_id(selector.value, "teacher id"), reference_date, add_empty_lessons
            )
        return await self._auditorium_schedule(
            normalize_id(selector.value, "auditorium id"), reference_date, add_empty_lessons
        )

    async def get_group_schedule(
        self,
        group: str,
        date_str: str | None = None,
        add_empty_lessons: bool = False
    ) -> StudentSchedule:
        return await self._group_schedule(normalize_group(group), self._parse_date(date_str), add_empty_lessons)

    async def get_teacher_schedule(
        self,
        teacher_id: int | str,
        date_str: str | None = None,
        add_empty_lessons: bool = False
    ) -> TeacherSchedule:
        teacher_id = normalize_id(teacher_id, "teacher id")
        return await self._teacher_schedule(teacher_id, self._parse_date(date_str), add_empty_lessons)

    async def get_auditorium_schedule(
        self,
        auditorium_id: int | str,
        date_str: str | None = None,
        add_empty_lessons: bool = False
    ) -> AuditoriumSchedule:
        auditorium_id = normalize_id(auditorium_id, "auditorium id")
        return await self._auditorium_schedule(auditorium_id, self._parse_date(date_str), add_empty_lessons)

    async def get_groups_schedules(
        self,
        groups: list[str],
        date_str: str | None = None,
        add_empty_lessons: bool = False
    ) -> list[StudentSchedule]:
        reference_date = self._parse_date(date_str)
        numbers = sorted({normalize_group(g) for g in groups})
        if not numbers:
            raise InvalidInputError("at least one group is required")

        async def fetch(number: str) -> StudentSchedule | None:
            try:
                return await self._group_schedule(number, reference_date, add_empty_lessons)
            except NotFoundError:
                self._logger.info(f"Skipping unknown group {number}")
                return None

        # Launch fetching concurrently
        schedules = [s for s in await gather_or_cancel(*[fetch(n) for n in numbers]) if s is not None]
        if not schedules:
            raise NotFoundError(f"schedules for groups `{numbers}` not found")

        return schedules

    async def _listed_groups(self, date_str: str | None):
        start, end = get_date_range_bounds(self._parse_date(date_str), self.settings.listing_months_offset)
        return await self._call(self.store.fetch_groups(start, end), f"groups between {start} and {end}")

    async def get_faculties(self) -> Faculties:
        faculties = await self._call(self.store.get_faculties(), "faculties")
        if not faculties:
            raise NotFoundError("faculties not found")

        return Faculties(faculties=sorted(faculties))

    async def get_faculty_courses(self, faculty: str, date_str: str | None = None) -> FacultyCourses:
        faculty = (faculty or "").strip().lower()
        courses = sorted({g.course for g in await self._listed_groups(date_str) if g.faculty == faculty})
        if not courses:
            raise NotFoundError(f"courses for faculty {faculty} not found")

        return FacultyCourses(faculty=faculty, courses=courses)

    async def get_course_faculties(self, course: int | str, date_str: str | None = None) -> CourseFaculties:
        course = normalize_id(course, "course")
        faculties = sorted({g.faculty for g in await self._listed_groups(date_str) if g.course == course})
        if not faculties:
            raise NotFoundError(f"faculties for course {course} not found")

        return CourseFaculties(course=course, faculties=faculties)

    async def get_course_faculty_groups(
        self,
        faculty: str,
        course: int | str,
        date_str: str | None = None
    ) -> CourseFacultyGroups:
        faculty = (faculty or "").strip().lower()
        course = normalize_id(course, "course")
        groups = {
            g.number for g in await self._listed_groups(date_str)
            if g.faculty == faculty and g.course == course
        }
        if not groups:
            raise NotFoundError(f"groups for faculty {faculty} and course {course} not found")

        return CourseFacultyGroups(faculty=faculty, course=course, groups=sorted(groups, key=group_sort_key))

    async def get_faculties_with_courses(self, date_str: str | None = None) -> list[FacultyCourses]:
        courses: dict[str, set[int]] = {}
        for group in await self._listed_groups(date_str):
            courses.setdefault(group.faculty, set()).add(group.course)

        if not courses:
            raise NotFoundError("no results")

        return [FacultyCourses(faculty=f, courses=sorted(c)) for f, c in sorted(courses.items())]

    async def get_teachers(self, faculty: str | None = None, department_id: int | str | None = None) -> TeachersList:
        """Teachers of a faculty and/or department, all of them without filters"""
        faculty = faculty.strip().lower() if faculty else None
        if department_id is not None:
            department_id = normalize_id(department_id, "department id")

        teachers = await self._call(self.store.get_teachers(faculty, department_id), "teachers")
        if not teachers:
            raise NotFoundError("teachers not found")

        return TeachersList(teachers=sorted(teachers, key=lambda t: (t.full_name, t.id)))

    async def get_teachers_departments(self, faculty: str | None = None) -> list[Department]:
        faculty = faculty.strip().lower() if faculty else None
        departments = await self._call(self.store.get_departments(faculty), "departments")
        if not departments:
            raise NotFoundError("departments not found")

        return departments

    async def get_teachers_faculties(self, department_id: int | str | None = None) -> Faculties:
        if department_id is None:
            return await self.get_faculties()

        department_id = normalize_id(department_id, "department id")
        departments = await self._call(self.store.get_departments(), "departments")
        faculties = sorted({d.faculty for d in departments if d.id == department_id})
        if not faculties:
            raise NotFoundError(f"faculties for department {department_id} not found")

        return Faculties(faculties=faculties)

    async def get_auditorium(self, auditorium_id: int | str) -> Auditorium:
        auditorium_id = normalize_id(auditorium_id, "auditorium id")
        auditorium = await self._call(self.store.get_auditorium(auditorium_id), f"auditorium {auditorium_id}")
        if auditorium is None:
            raise NotFoundError(f"auditorium `{auditorium_id}` not found")

        return auditorium

    async def get_auditoriums(self, building_id: int | str | None = None) -> list[Auditorium]:
        if building_id is not None:
            building_id = normalize_id(building_id, "building id")

        auditoriums = await self._call(self.store.get_auditoriums(building_id), "auditoriums")
        if not auditoriums:
            raise NotFoundError("auditoriums not found")

        return auditoriums

    async def get_buildings(self) -> list[Building]:
        buildings = await self._call(self.store.get_buildings(), "buildings")
        if not buildings:
            raise NotFoundError("buildings not found")

        return buildings

    async def get_building(self, building_id: int | str) -> Building:
        building_id = normalize_id(building_id, "building id")
        building = await self._call(self.store.get_building(building_id), f"building {building_id}")
        if building is None:
            raise NotFoundError(f"building {building_id} not found")

        return building

    def get_day(self, now: datetime | None = None) -> Day:
        now = now.astimezone(self.settings.tz) if now else datetime.now(self.settings.tz)
        # Weeks are counted from the Sunday before the anchor, a Sunday already belongs to the coming week
        weeks = (now.date() - (self.settings.numerator_anchor - timedelta(days=1))).days // 7
        week_type = WeekType.numerator if weeks % 2 == 0 else WeekType.denominator
        return Day(
            week_type=WEEK_TYPE_RU[week_type],
            week_type_eng=week_type,
            day=DAY_NAMES[now.weekday()],
            day_ru=SHORT_DAY_NAMES_RU[now.weekday()],
            time=now.strftime("%H:%M"),
        )

    @staticmethod
    def get_lesson_types() -> list[LessonTypeInfo]:
        return [LessonTypeInfo(type=t, description=LESSON_TYPE_DESCRIPTIONS[t]) for t in LessonType]
