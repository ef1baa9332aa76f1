from datetime import date as Date, datetime
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, Field, computed_field


class LessonType(str, Enum):
    lecture = "lecture"
    lab = "lab"
    practice = "practice"
    coursework = "coursework"
    course_project = "course_project"
    exam = "exam"
    zachet = "zachet"
    consultation = "consultation"
    elective = "elective"
    unknown = "unknown"


class WeekType(str, Enum):
    numerator = "numerator"
    denominator = "denominator"

    @property
    def opposite(self) -> "WeekType":
        return WeekType.denominator if self is WeekType.numerator else WeekType.numerator


class WeekTypeLabel(str, Enum):
    """Week tag as stored with a lesson, may be unknown at ingestion time"""
    numerator = "numerator"
    denominator = "denominator"
    unknown = "unknown"

    def resolved(self) -> WeekType | None:
        if self is WeekTypeLabel.unknown:
            return None
        return WeekType(self.value)


class Weekday(str, Enum):
    monday = "monday"
    tuesday = "tuesday"
    wednesday = "wednesday"
    thursday = "thursday"
    friday = "friday"
    saturday = "saturday"

    @classmethod
    def from_date(cls, day: Date) -> "Weekday | None":
        # Sunday is not an academic day
        if day.weekday() == 6:
            return None
        return list(cls)[day.weekday()]


class EntityKind(str, Enum):
    group = "group"
    teacher = "teacher"
    auditorium = "auditorium"


class EntitySelector(BaseModel):
    kind: EntityKind
    value: str | int

    @classmethod
    def group(cls, number: str) -> "EntitySelector":
        return cls(kind=EntityKind.group, value=number)

    @classmethod
    def teacher(cls, teacher_id: int) -> "EntitySelector":
        return cls(kind=EntityKind.teacher, value=teacher_id)

    @classmethod
    def auditorium(cls, auditorium_id: int) -> "EntitySelector":
        return cls(kind=EntityKind.auditorium, value=auditorium_id)

    def __str__(self) -> str:
        return f"{self.kind.value} {self.value}"


class Building(BaseModel):
    id: int
    title: str = ""
    letter: str = ""


class Auditorium(BaseModel):
    id: int
    number: str
    building: Building | None = None

    @computed_field
    @property
    def display_name(self) -> str:
        if self.building is None or not self.building.letter:
            return self.number
        return f"{self.number} {self.building.letter}"


class Teacher(BaseModel):
    id: int
    short_name: str
    full_name: str = ""


class Department(BaseModel):
    id: int
    title: str = ""
    title_short: str
    faculty: str


class TeacherInfo(Teacher):
    link: str = ""
    departments: list[Department] = []


class TeachersList(BaseModel):
    teachers: list[Teacher]


class TeacherAuditorium(BaseModel):
    teacher: Teacher | None = None
    auditorium: Auditorium | None = None

    def sort_key(self) -> tuple[str, str]:
        return (
            self.teacher.short_name if self.teacher else "",
            self.auditorium.display_name if self.auditorium else "",
        )

    def describe(self) -> str:
        return " ".join(part for part in self.sort_key() if part)


class StudyGroup(BaseModel):
    number: str
    course: int
    faculty: str


class LessonRecord(BaseModel):
    id: int
    date: Date
    time: str  # "08.10-09.45"
    title: str
    type: LessonType = LessonType.unknown
    week_type: WeekTypeLabel = WeekTypeLabel.unknown
    start_time: datetime | None = None
    end_time: datetime | None = None
    group: StudyGroup | None = None
    teacher_auditoriums: list[TeacherAuditorium] = []

    @property
    def weekday(self) -> Weekday | None:
        return Weekday.from_date(self.date)


class WeekAssignment(BaseModel):
    first_week_monday: Date
    first_week: WeekType
    second_week: WeekType
    numerator_period: str
    denominator_period: str
    input_week_type: WeekType


class LessonSlot(BaseModel):
    time: str
    lesson: str
    title: str = ""
    type: LessonType | None = None
    date: Date | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None


class StudentLesson(LessonSlot):
    teacher_auditoriums: list[TeacherAuditorium] = []


class TeacherLesson(LessonSlot):
    faculties: list[str] = []
    groups: list[str] = []
    courses: list[int] = []
    auditoriums: list[Auditorium] = []


class AuditoriumLesson(LessonSlot):
    faculties: list[str] = []
    groups: list[str] = []
    courses: list[int] = []
    teachers: list[Teacher] = []


TLesson = TypeVar("TLesson", bound=LessonSlot)


class Week(BaseModel, Generic[TLesson]):
    monday: list[TLesson] = []
    tuesday: list[TLesson] = []
    wednesday: list[TLesson] = []
    thursday: list[TLesson] = []
    friday: list[TLesson] = []
    saturday: list[TLesson] = []

    def day(self, weekday: Weekday) -> list[TLesson]:
        return getattr(self, weekday.value)


class NumeratorDenominator(BaseModel, Generic[TLesson]):
    numerator: Week[TLesson]
    denominator: Week[TLesson]

    def week(self, week_type: WeekType) -> Week[TLesson]:
        return getattr(self, week_type.value)


class ScheduleBase(BaseModel):
    numerator_period: str
    denominator_period: str
    input_week_type: WeekType
    lessons_times: list[str] = Field(default=[], exclude=True)


class StudentSchedule(ScheduleBase):
    faculty: str
    group: str
    course: int
    schedule: NumeratorDenominator[StudentLesson]


class TeacherSchedule(ScheduleBase):
    id: int
    full_name: str
    short_name: str
    link: str = ""
    departments: list[Department] = []
    schedule: NumeratorDenominator[TeacherLesson]


class AuditoriumSchedule(ScheduleBase):
    auditorium: Auditorium
    schedule: NumeratorDenominator[AuditoriumLesson]


class Faculties(BaseModel):
    faculties: list[str]


class FacultyCourses(BaseModel):
    faculty: str
    courses: list[int]


class CourseFaculties(BaseModel):
    course: int
    faculties: list[str]


class CourseFacultyGroups(BaseModel):
    faculty: str
    course: int
    groups: list[str]


class Day(BaseModel):
    week_type: str
    week_type_eng: WeekType
    day: str
    day_ru: str
    time: str


class LessonTypeInfo(BaseModel):
    type: LessonType
    description: str
