from datetime import date

from base.types import (
    Auditorium,
    Building,
    Department,
    LessonRecord,
    LessonType,
    StudyGroup,
    Teacher,
    TeacherAuditorium,
    TeacherInfo,
    WeekTypeLabel,
)

# Wednesday, the window is 02.03-15.03 and the second week starts on 09.03
REFERENCE = "2026-03-04"
REFERENCE_DATE = date(2026, 3, 4)

IVANOV = Teacher(id=1, short_name="Иванов И.И.", full_name="Иванов Иван Иванович")
PETROV = Teacher(id=2, short_name="Петров П.П.", full_name="Петров Петр Петрович")
SIDOROV = Teacher(id=3, short_name="Сидоров С.С.", full_name="Сидоров Семен Семенович")

DEP_VM = Department(id=1, title="Кафедра высшей математики", title_short="ВМ", faculty="фтф")
DEP_PHYS = Department(id=2, title="Кафедра общей физики", title_short="ОФ", faculty="фтф")
DEP_CHEM = Department(id=3, title="Кафедра химии", title_short="Х", faculty="эф")

MAIN_BUILDING = Building(id=1, title="Главный корпус", letter="А")
AUD_101 = Auditorium(id=10, number="101", building=MAIN_BUILDING)
AUD_202 = Auditorium(id=20, number="202")
AUD_303 = Auditorium(id=30, number="303")

G231 = StudyGroup(number="231", course=2, faculty="фтф")
G232 = StudyGroup(number="232", course=2, faculty="фтф")
G211M = StudyGroup(number="211М", course=2, faculty="фтф")
G101 = StudyGroup(number="101", course=1, faculty="эф")
G999 = StudyGroup(number="999", course=5, faculty="юф")

FIRST_PAIR = "08.10-09.45"
SECOND_PAIR = "09.55-11.30"
THIRD_PAIR = "11.40-13.15"


def pair(teacher: Teacher | None = None, auditorium: Auditorium | None = None) -> TeacherAuditorium:
    return TeacherAuditorium(teacher=teacher, auditorium=auditorium)


def lesson(
    id: int,
    day: date,
    time: str = FIRST_PAIR,
    title: str = "Физика",
    type: LessonType = LessonType.lecture,
    week_type: WeekTypeLabel = WeekTypeLabel.unknown,
    group: StudyGroup | None = G231,
    pairs: list[TeacherAuditorium] | None = None,
) -> LessonRecord:
    return LessonRecord(
        id=id,
        date=day,
        time=time,
        title=title,
        type=type,
        week_type=week_type,
        group=group,
        teacher_auditoriums=pairs or [],
    )


def teacher_infos() -> list[TeacherInfo]:
    departments = {IVANOV.id: [DEP_VM], PETROV.id: [DEP_PHYS, DEP_CHEM], SIDOROV.id: []}
    return [
        TeacherInfo(**t.model_dump(), link=f"https://example.edu/teachers/{t.id}", departments=departments[t.id])
        for t in (IVANOV, PETROV, SIDOROV)
    ]


def auditoriums() -> list[Auditorium]:
    return [AUD_101, AUD_202, AUD_303]


def groups() -> list[StudyGroup]:
    return [G231, G232, G211M, G101, G999]


def sample_lessons() -> list[LessonRecord]:
    return [
        lesson(1, date(2026, 3, 2), week_type=WeekTypeLabel.numerator, pairs=[pair(IVANOV, AUD_101)]),
        lesson(2, date(2026, 3, 2), week_type=WeekTypeLabel.numerator, group=G232, pairs=[pair(PETROV, AUD_202)]),
        # Same lesson of the same group as 1, only the teacher differs
        lesson(3, date(2026, 3, 2), pairs=[pair(PETROV, AUD_202)]),
        lesson(
            4, date(2026, 3, 2), time=THIRD_PAIR, title="Математика", type=LessonType.practice,
            pairs=[pair(IVANOV, AUD_101)],
        ),
        lesson(
            5, date(2026, 3, 10), time=SECOND_PAIR, title="Программирование", type=LessonType.lab,
            pairs=[pair(IVANOV, AUD_202)],
        ),
        lesson(6, date(2026, 2, 10), title="Химия", week_type=WeekTypeLabel.numerator, group=G101,
               pairs=[pair(PETROV, AUD_101)]),
        lesson(7, date(2025, 6, 2), title="Право", group=G999),
        lesson(8, date(2026, 3, 5), title="История", group=G211M, pairs=[pair(PETROV)]),
        lesson(9, date(2026, 2, 16), week_type=WeekTypeLabel.numerator, pairs=[pair(IVANOV, AUD_101)]),
        lesson(10, date(2026, 3, 25), week_type=WeekTypeLabel.denominator, pairs=[pair(IVANOV, AUD_101)]),
    ]
