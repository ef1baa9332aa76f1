import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Generic

from base.types import (
    Auditorium,
    AuditoriumLesson,
    LessonRecord,
    LessonType,
    NumeratorDenominator,
    StudentLesson,
    StudyGroup,
    Teacher,
    TeacherAuditorium,
    TeacherLesson,
    TLesson,
    Week,
    WeekAssignment,
    Weekday,
    WeekType,
)
from .weeks import week_type_for_date

logger = logging.getLogger(__name__)


LESSON_TYPE_ABBREVIATIONS = {
    LessonType.lecture: "Лек.",
    LessonType.lab: "Лаб.",
    LessonType.practice: "Упр.",
    LessonType.coursework: "Курс. раб.",
    LessonType.course_project: "Курс. проект",
    LessonType.exam: "Экз.",
    LessonType.zachet: "Зач.",
    LessonType.consultation: "Конс.",
    LessonType.elective: "Факультатив",
    LessonType.unknown: "",
}

LESSON_TYPE_DESCRIPTIONS = {
    LessonType.lecture: "лекция",
    LessonType.lab: "лабораторная работа",
    LessonType.practice: "практика",
    LessonType.coursework: "курсовая работа",
    LessonType.course_project: "курсовой проект",
    LessonType.exam: "экзамен",
    LessonType.zachet: "зачет",
    LessonType.consultation: "консультация",
    LessonType.elective: "факультатив",
    LessonType.unknown: "",
}


@dataclass
class LessonInstance:
    """One logical lesson merged from all rows sharing date, time, title and type"""
    id: int
    week_type: WeekType
    weekday: Weekday
    record: LessonRecord
    pairs: list[TeacherAuditorium] = field(default_factory=list)
    groups: list[StudyGroup] = field(default_factory=list)

    def merge(self, row: LessonRecord):
        for pair in row.teacher_auditoriums:
            if pair not in self.pairs:
                self.pairs.append(pair)

        if row.group is not None and row.group not in self.groups:
            self.groups.append(row.group)

    def sort_key(self) -> tuple[str, int]:
        # Time labels are zero padded, so they sort by start time
        return self.record.time, self.id

    @property
    def faculties(self) -> list[str]:
        return sorted({g.faculty for g in self.groups})

    @property
    def group_numbers(self) -> list[str]:
        return sorted({g.number for g in self.groups})

    @property
    def courses(self) -> list[int]:
        return sorted({g.course for g in self.groups})


@dataclass
class GroupedLessons(Generic[TLesson]):
    schedule: NumeratorDenominator[TLesson]
    lessons_times: list[str]


def format_lesson_text(lesson_type: LessonType | None, title: str, pairs: list[TeacherAuditorium]) -> str:
    """
    "Лек. Высшая математика,\\nКонюхов А.Н. 333 С", the type prefix and the
    teachers part are both optional
    """
    prefix = LESSON_TYPE_ABBREVIATIONS.get(lesson_type, "") if lesson_type else ""
    text = f"{prefix} {title}" if prefix else title

    participants = "\n".join(desc for pair in pairs if (desc := pair.describe()))
    if participants:
        text += ",\n" + participants

    return text


def collect_instances(rows: list[LessonRecord], assignment: WeekAssignment) -> list[LessonInstance]:
    instances: dict[tuple, LessonInstance] = {}
    for row in sorted(rows, key=lambda r: r.id):
        weekday = row.weekday
        if weekday is None:
            logger.debug(f"Skipping lesson {row.id}: {row.date} is a Sunday")
            continue

        key = (row.date, row.time, row.title, row.type)
        instance = instances.get(key)
        if instance is None:
            # The grid follows the assignment, a stored label only feeds the resolver
            week_type = week_type_for_date(assignment, row.date)
            label = row.week_type.resolved()
            if label is not None and label is not week_type:
                logger.debug(f"Lesson {row.id} is labeled {label.value}, placing it into the {week_type.value} week")
            instance = instances[key] = LessonInstance(
                id=row.id,
                week_type=week_type,
                weekday=weekday,
                record=row,
            )

        instance.merge(row)

    for instance in instances.values():
        instance.pairs.sort(key=TeacherAuditorium.sort_key)
        instance.groups.sort(key=lambda g: g.number)

    return sorted(instances.values(), key=LessonInstance.sort_key)


class LessonView(ABC, Generic[TLesson]):
    """Turns merged lesson instances into the slots of one kind of schedule"""

    @property
    @abstractmethod
    def slot_type(self) -> type[TLesson]:
        ...

    @abstractmethod
    def visible_pairs(self, instance: LessonInstance) -> list[TeacherAuditorium]:
        """Participants shown in the display text"""

    @abstractmethod
    def extra_fields(self, instance: LessonInstance) -> dict:
        ...

    def build_slot(self, instance: LessonInstance) -> TLesson:
        record = instance.record
        return self.slot_type(
            time=record.time,
            lesson=format_lesson_text(record.type, record.title, self.visible_pairs(instance)),
            title=record.title,
            type=record.type,
            date=record.date,
            start_time=record.start_time,
            end_time=record.end_time,
            **self.extra_fields(instance),
        )

    def empty_grid(self) -> NumeratorDenominator[TLesson]:
        return NumeratorDenominator[self.slot_type](
            numerator=Week[self.slot_type](),
            denominator=Week[self.slot_type](),
        )


class StudentView(LessonView[StudentLesson]):
    slot_type = StudentLesson

    def visible_pairs(self, instance: LessonInstance) -> list[TeacherAuditorium]:
        return instance.pairs

    def extra_fields(self, instance: LessonInstance) -> dict:
        return {"teacher_auditoriums": instance.pairs}


class TeacherView(LessonView[TeacherLesson]):
    slot_type = TeacherLesson

    def __init__(self, teacher_id: int):
        self.teacher_id = teacher_id

    def _auditoriums(self, instance: LessonInstance) -> list[Auditorium]:
        auditoriums = []
        for pair in instance.pairs:
            if pair.teacher and pair.teacher.id == self.teacher_id and pair.auditorium:
                if pair.auditorium not in auditoriums:
                    auditoriums.append(pair.auditorium)

        return sorted(auditoriums, key=lambda a: (a.number, a.building.letter if a.building else ""))

    def visible_pairs(self, instance: LessonInstance) -> list[TeacherAuditorium]:
        return [TeacherAuditorium(auditorium=a) for a in self._auditoriums(instance)]

    def extra_fields(self, instance: LessonInstance) -> dict:
        return {
            "faculties": instance.faculties,
            "groups": instance.group_numbers,
            "courses": instance.courses,
            "auditoriums": self._auditoriums(instance),
        }


class AuditoriumView(LessonView[AuditoriumLesson]):
    slot_type = AuditoriumLesson

    def __init__(self, auditorium_id: int):
        self.auditorium_id = auditorium_id

    def _teachers(self, instance: LessonInstance) -> list[Teacher]:
        teachers = []
        for pair in instance.pairs:
            if pair.auditorium and pair.auditorium.id == self.auditorium_id and pair.teacher:
                if pair.teacher not in teachers:
                    teachers.append(pair.teacher)

        return sorted(teachers, key=lambda t: (t.short_name, t.id))

    def visible_pairs(self, instance: LessonInstance) -> list[TeacherAuditorium]:
        return [TeacherAuditorium(teacher=t) for t in self._teachers(instance)]

    def extra_fields(self, instance: LessonInstance) -> dict:
        return {
            "faculties": instance.faculties,
            "groups": instance.group_numbers,
            "courses": instance.courses,
            "teachers": self._teachers(instance),
        }


def group_lessons(
    rows: list[LessonRecord],
    assignment: WeekAssignment,
    view: LessonView[TLesson]
) -> GroupedLessons[TLesson]:
    grid = view.empty_grid()
    times = set()
    for instance in collect_instances(rows, assignment):
        grid.week(instance.week_type).day(instance.weekday).append(view.build_slot(instance))
        times.add(instance.record.time)

    return GroupedLessons(schedule=grid, lessons_times=sorted(times))
