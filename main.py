import asyncio
import json
import logging
from typing import Annotated, Awaitable, Callable, Optional, TypeVar

import typer
from pydantic import BaseModel

from base.config import Settings, StoreBackend, load_settings
from base.errors import ScheduleError
from base.store import LessonStore
from schedule.service import ScheduleService
from stores.memory import InMemoryLessonStore, read_dump
from stores.sqlite import SQLiteLessonStore


app = typer.Typer(help="Numerator/denominator schedules of groups, teachers and auditoriums")

T = TypeVar("T")

DateOption = Annotated[Optional[str], typer.Option("--date", "-d", help="Reference date, YYYY-MM-DD, today by default")]
EmptyOption = Annotated[bool, typer.Option("--empty", "-e", help="Pad days with empty lessons")]


async def open_store(settings: Settings) -> LessonStore:
    if settings.store.backend is StoreBackend.json:
        return await InMemoryLessonStore.from_json_file(settings.store.json_path)

    return SQLiteLessonStore(settings.store.sqlite_path)


def echo_json(data: BaseModel | list[BaseModel]):
    if isinstance(data, list):
        payload = [item.model_dump(mode="json") for item in data]
    else:
        payload = data.model_dump(mode="json")

    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


def run_async(main: Callable[[], Awaitable[T]]) -> T:
    try:
        return asyncio.run(main())
    except ScheduleError as e:
        typer.echo(e.to_response().model_dump_json(), err=True)
        # 4xx-like errors are the caller's fault, 5xx-like are ours
        raise typer.Exit(code=1 if e.status_code < 500 else 2)


def run(ctx: typer.Context, handler: Callable[[ScheduleService], Awaitable[BaseModel | list[BaseModel]]]):
    settings: Settings = ctx.obj

    async def main():
        service = ScheduleService(await open_store(settings), settings)
        return await handler(service)

    echo_json(run_async(main))


@app.callback()
def configure(
    ctx: typer.Context,
    config: Annotated[Optional[str], typer.Option("--config", "-c", help="Path to config.yaml")] = None,
    debug: Annotated[bool, typer.Option("--debug")] = False,
):
    settings = load_settings(config)
    logging.basicConfig(level=logging.DEBUG if debug else settings.log_level)
    ctx.obj = settings


@app.command()
def group(ctx: typer.Context, number: str, date: DateOption = None, empty: EmptyOption = False):
    """Schedule of a student group"""
    run(ctx, lambda s: s.get_group_schedule(number, date, empty))


@app.command()
def teacher(ctx: typer.Context, teacher_id: int, date: DateOption = None, empty: EmptyOption = False):
    """Schedule of a teacher"""
    run(ctx, lambda s: s.get_teacher_schedule(teacher_id, date, empty))


@app.command()
def auditorium(ctx: typer.Context, auditorium_id: int, date: DateOption = None, empty: EmptyOption = False):
    """Schedule of an auditorium"""
    run(ctx, lambda s: s.get_auditorium_schedule(auditorium_id, date, empty))


@app.command("groups-sample")
def groups_sample(ctx: typer.Context, numbers: list[str], date: DateOption = None):
    """Schedules of several groups at once"""
    run(ctx, lambda s: s.get_groups_schedules(numbers, date))


@app.command()
def faculties(ctx: typer.Context, date: DateOption = None, with_courses: bool = False):
    """All faculties, optionally with the courses studying around the date"""
    if with_courses:
        run(ctx, lambda s: s.get_faculties_with_courses(date))
    else:
        run(ctx, lambda s: s.get_faculties())


@app.command()
def courses(ctx: typer.Context, faculty: str, date: DateOption = None):
    """Courses of a faculty having lessons around the date"""
    run(ctx, lambda s: s.get_faculty_courses(faculty, date))


@app.command("course-faculties")
def course_faculties(ctx: typer.Context, course: int, date: DateOption = None):
    """Faculties having lessons for the course around the date"""
    run(ctx, lambda s: s.get_course_faculties(course, date))


@app.command()
def groups(ctx: typer.Context, faculty: str, course: int, date: DateOption = None):
    """Groups of a faculty and course having lessons around the date"""
    run(ctx, lambda s: s.get_course_faculty_groups(faculty, course, date))


@app.command()
def day(ctx: typer.Context):
    """Current week type, weekday and time"""
    async def handler(service: ScheduleService):
        return service.get_day()

    run(ctx, handler)


@app.command("lesson-types")
def lesson_types(ctx: typer.Context):
    """Known lesson types"""
    async def handler(service: ScheduleService):
        return service.get_lesson_types()

    run(ctx, handler)


@app.command()
def teachers(
    ctx: typer.Context,
    faculty: Annotated[Optional[str], typer.Option("--faculty", "-f")] = None,
    department: Annotated[Optional[int], typer.Option("--department")] = None,
):
    """Teachers, optionally of a faculty and/or a department"""
    run(ctx, lambda s: s.get_teachers(faculty, department))


@app.command()
def departments(ctx: typer.Context, faculty: Annotated[Optional[str], typer.Option("--faculty", "-f")] = None):
    """Departments teachers belong to"""
    run(ctx, lambda s: s.get_teachers_departments(faculty))


@app.command("teacher-faculties")
def teacher_faculties(ctx: typer.Context, department: Annotated[Optional[int], typer.Option("--department")] = None):
    """Faculties of teachers, or the faculty of one department"""
    run(ctx, lambda s: s.get_teachers_faculties(department))


@app.command("auditorium-info")
def auditorium_info(ctx: typer.Context, auditorium_id: int):
    """Auditorium with its building"""
    run(ctx, lambda s: s.get_auditorium(auditorium_id))


@app.command()
def auditoriums(ctx: typer.Context, building: Annotated[Optional[int], typer.Option("--building", "-b")] = None):
    """Auditoriums, optionally of one building"""
    run(ctx, lambda s: s.get_auditoriums(building))


@app.command()
def buildings(ctx: typer.Context):
    """All buildings"""
    run(ctx, lambda s: s.get_buildings())


@app.command()
def building(ctx: typer.Context, building_id: int):
    """A single building"""
    run(ctx, lambda s: s.get_building(building_id))


@app.command("init-db")
def init_db(
    ctx: typer.Context,
    dump: Annotated[Optional[str], typer.Option("--from", help="JSON dump to import")] = None,
):
    """Create the SQLite tables, optionally filling them from a JSON dump"""
    settings: Settings = ctx.obj
    store = SQLiteLessonStore(settings.store.sqlite_path)

    async def main():
        await store.init_schema()
        if dump:
            data = await read_dump(dump)
            await store.load(data.groups, data.teachers, data.auditoriums, data.lessons)

    run_async(main)
    typer.echo(f"OK: {store.description}")


if __name__ == "__main__":
    app()
