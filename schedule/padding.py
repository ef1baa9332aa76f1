from base.types import LessonSlot, NumeratorDenominator, TLesson, Weekday, WeekType

EMPTY_LESSON_TEXT = "—"


def is_empty_lesson(lesson: LessonSlot) -> bool:
    return lesson.lesson == EMPTY_LESSON_TEXT


def fill_empty_lessons(
    lessons: list[TLesson],
    times: list[str],
    slot_type: type[TLesson] = LessonSlot
) -> list[TLesson]:
    """
    Insert a "no lesson" placeholder for every time from `times` missing in
    the day, then drop the placeholders left at the end of the day.
    Leading placeholders and gaps between lessons are kept
    """
    if not times:
        return lessons

    existing = {lesson.time for lesson in lessons}
    filled = lessons + [slot_type(time=time, lesson=EMPTY_LESSON_TEXT) for time in times if time not in existing]
    # Stable, so lessons sharing a time keep their order
    filled.sort(key=lambda lesson: lesson.time)

    while filled and is_empty_lesson(filled[-1]):
        filled.pop()

    return filled


def fill_empty_week_lessons(
    schedule: NumeratorDenominator[TLesson],
    times: list[str],
    slot_type: type[TLesson] = LessonSlot
):
    """Pads every day of both weeks in place against the same set of times"""
    for week_type in WeekType:
        week = schedule.week(week_type)
        for weekday in Weekday:
            setattr(week, weekday.value, fill_empty_lessons(week.day(weekday), times, slot_type))
