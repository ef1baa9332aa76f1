from datetime import date

from base.types import LessonType, StudentLesson, WeekTypeLabel
from schedule.grouping import (
    AuditoriumView,
    StudentView,
    TeacherView,
    format_lesson_text,
    group_lessons,
)
from schedule.weeks import resolve_week_types

from builders import (
    AUD_101,
    AUD_202,
    FIRST_PAIR,
    G231,
    G232,
    IVANOV,
    PETROV,
    REFERENCE_DATE,
    SECOND_PAIR,
    THIRD_PAIR,
    lesson,
    pair,
)

WEEKDAYS = {"monday", "tuesday", "wednesday", "thursday", "friday", "saturday"}


def cold_assignment():
    return resolve_week_types(REFERENCE_DATE, [])


def test_format_lesson_text():
    assert format_lesson_text(LessonType.lecture, "Физика", []) == "Лек. Физика"
    assert format_lesson_text(LessonType.unknown, "Физика", []) == "Физика"
    assert format_lesson_text(None, "Физика", [pair(IVANOV)]) == "Физика,\nИванов И.И."
    assert format_lesson_text(LessonType.exam, "Физика", [pair(auditorium=AUD_101)]) == "Экз. Физика,\n101 А"
    assert (
        format_lesson_text(LessonType.course_project, "ТАУ", [pair(IVANOV, AUD_101), pair(PETROV, AUD_202)])
        == "Курс. проект ТАУ,\nИванов И.И. 101 А\nПетров П.П. 202"
    )


def test_empty_rows_give_six_empty_days_per_week():
    grouped = group_lessons([], cold_assignment(), StudentView())

    dumped = grouped.schedule.model_dump()
    assert set(dumped) == {"numerator", "denominator"}
    for week in dumped.values():
        assert set(week) == WEEKDAYS
        assert all(day == [] for day in week.values())
    assert grouped.lessons_times == []


def test_rows_with_different_teachers_merge_into_one_slot():
    rows = [
        lesson(2, date(2026, 3, 2), pairs=[pair(PETROV, AUD_202)]),
        lesson(1, date(2026, 3, 2), pairs=[pair(IVANOV, AUD_101)]),
        # Exact duplicate of a pair already seen
        lesson(3, date(2026, 3, 2), pairs=[pair(IVANOV, AUD_101)]),
    ]

    grouped = group_lessons(rows, cold_assignment(), StudentView())

    monday = grouped.schedule.numerator.monday
    assert len(monday) == 1
    slot = monday[0]
    assert isinstance(slot, StudentLesson)
    assert slot.lesson == "Лек. Физика,\nИванов И.И. 101 А\nПетров П.П. 202"
    assert slot.teacher_auditoriums == [pair(IVANOV, AUD_101), pair(PETROV, AUD_202)]
    assert slot.date == date(2026, 3, 2)
    assert slot.type is LessonType.lecture


def test_rows_with_different_types_stay_separate():
    rows = [
        lesson(1, date(2026, 3, 2)),
        lesson(2, date(2026, 3, 2), type=LessonType.practice),
    ]

    grouped = group_lessons(rows, cold_assignment(), StudentView())

    assert [s.lesson for s in grouped.schedule.numerator.monday] == ["Лек. Физика", "Упр. Физика"]


def test_unknown_rows_are_placed_by_date():
    rows = [
        lesson(1, date(2026, 3, 3)),
        lesson(2, date(2026, 3, 10), title="Химия"),
    ]
    before = lesson(9, date(2026, 2, 23), week_type=WeekTypeLabel.numerator)
    assignment = resolve_week_types(REFERENCE_DATE, [], before=before)

    grouped = group_lessons(rows, assignment, StudentView())

    # The first week is a denominator one
    assert [s.title for s in grouped.schedule.denominator.tuesday] == ["Физика"]
    assert [s.title for s in grouped.schedule.numerator.tuesday] == ["Химия"]


def test_rows_follow_forced_week_types():
    # Both weeks are labeled denominator, the second one is forced to numerator
    rows = [
        lesson(1, date(2026, 3, 2), week_type=WeekTypeLabel.denominator),
        lesson(2, date(2026, 3, 9), title="Химия", week_type=WeekTypeLabel.denominator),
    ]
    assignment = resolve_week_types(REFERENCE_DATE, rows)

    grouped = group_lessons(rows, assignment, StudentView())

    assert [s.title for s in grouped.schedule.denominator.monday] == ["Физика"]
    assert [s.title for s in grouped.schedule.numerator.monday] == ["Химия"]


def test_disagreeing_label_is_placed_by_date():
    rows = [
        lesson(1, date(2026, 3, 3), week_type=WeekTypeLabel.numerator),
        # Labeled like the first week, but held in the second one
        lesson(2, date(2026, 3, 10), title="Химия", week_type=WeekTypeLabel.numerator),
    ]
    assignment = resolve_week_types(REFERENCE_DATE, rows[:1])

    grouped = group_lessons(rows, assignment, StudentView())

    assert [s.title for s in grouped.schedule.numerator.tuesday] == ["Физика"]
    assert [s.title for s in grouped.schedule.denominator.tuesday] == ["Химия"]


def test_day_is_ordered_by_time_then_id():
    rows = [
        lesson(5, date(2026, 3, 4), time=THIRD_PAIR, title="C"),
        lesson(4, date(2026, 3, 4), time=FIRST_PAIR, title="B"),
        lesson(3, date(2026, 3, 4), time=FIRST_PAIR, title="A", type=LessonType.lab),
        lesson(6, date(2026, 3, 4), time=SECOND_PAIR, title="D"),
    ]

    grouped = group_lessons(rows, cold_assignment(), StudentView())

    assert [s.title for s in grouped.schedule.numerator.wednesday] == ["A", "B", "D", "C"]
    assert grouped.lessons_times == [FIRST_PAIR, SECOND_PAIR, THIRD_PAIR]


def test_sunday_rows_are_skipped():
    rows = [lesson(1, date(2026, 3, 8), time=THIRD_PAIR)]

    grouped = group_lessons(rows, cold_assignment(), StudentView())

    assert all(day == [] for day in grouped.schedule.numerator.model_dump().values())
    assert grouped.lessons_times == []


def test_teacher_view_shows_own_auditoriums_and_groups():
    rows = [
        lesson(1, date(2026, 3, 2), group=G232, pairs=[pair(IVANOV, AUD_202), pair(PETROV, AUD_101)]),
        lesson(2, date(2026, 3, 2), group=G231, pairs=[pair(IVANOV, AUD_101)]),
    ]

    grouped = group_lessons(rows, cold_assignment(), TeacherView(IVANOV.id))

    (slot,) = grouped.schedule.numerator.monday
    assert slot.lesson == "Лек. Физика,\n101 А\n202"
    assert slot.auditoriums == [AUD_101, AUD_202]
    assert slot.groups == ["231", "232"]
    assert slot.courses == [2]
    assert slot.faculties == ["фтф"]


def test_auditorium_view_shows_teachers_in_that_auditorium():
    rows = [
        lesson(1, date(2026, 3, 2), group=G232, pairs=[pair(PETROV, AUD_202), pair(IVANOV, AUD_101)]),
        lesson(2, date(2026, 3, 2), group=G231, pairs=[pair(PETROV, AUD_202)]),
    ]

    grouped = group_lessons(rows, cold_assignment(), AuditoriumView(AUD_202.id))

    (slot,) = grouped.schedule.numerator.monday
    assert slot.lesson == "Лек. Физика,\nПетров П.П."
    assert slot.teachers == [PETROV]
    assert slot.groups == ["231", "232"]
