from base.errors import StoreUnavailableError
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
    TeacherAuditorium,
    TeacherInfo,
)

import aiosqlite
import logging
from datetime import date
from typing import Iterable


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS faculty (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL DEFAULT '',
        title_short TEXT NOT NULL UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS "group" (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        number TEXT NOT NULL UNIQUE,
        course INTEGER NOT NULL,
        faculty_id INTEGER NOT NULL REFERENCES faculty(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS building (
        id INTEGER PRIMARY KEY,
        title TEXT NOT NULL DEFAULT '',
        letter TEXT NOT NULL DEFAULT ''
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS auditorium (
        id INTEGER PRIMARY KEY,
        number TEXT NOT NULL,
        building_id INTEGER REFERENCES building(id) ON DELETE SET NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS teacher (
        id INTEGER PRIMARY KEY,
        full_name TEXT NOT NULL DEFAULT '',
        short_name TEXT NOT NULL,
        link TEXT NOT NULL DEFAULT ''
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS department (
        id INTEGER PRIMARY KEY,
        title TEXT NOT NULL DEFAULT '',
        title_short TEXT NOT NULL,
        faculty_id INTEGER NOT NULL REFERENCES faculty(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS teacher_department (
        teacher_id INTEGER NOT NULL REFERENCES teacher(id) ON DELETE CASCADE,
        department_id INTEGER NOT NULL REFERENCES department(id) ON DELETE CASCADE,
        PRIMARY KEY (teacher_id, department_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS lesson (
        id INTEGER PRIMARY KEY,
        group_id INTEGER REFERENCES "group"(id) ON DELETE CASCADE,
        date TEXT NOT NULL,
        time TEXT NOT NULL,
        title TEXT NOT NULL,
        type TEXT NOT NULL DEFAULT 'unknown',
        week_type TEXT NOT NULL DEFAULT 'unknown' CHECK(week_type IN ('numerator', 'denominator', 'unknown')),
        start_time TEXT,
        end_time TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS lesson_auditorium_teacher (
        lesson_id INTEGER NOT NULL REFERENCES lesson(id) ON DELETE CASCADE,
        teacher_id INTEGER REFERENCES teacher(id) ON DELETE CASCADE,
        auditorium_id INTEGER REFERENCES auditorium(id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_lesson_date ON lesson(date)",
    "CREATE INDEX IF NOT EXISTS idx_lesson_group ON lesson(group_id)",
    "CREATE INDEX IF NOT EXISTS idx_lat_lesson ON lesson_auditorium_teacher(lesson_id)",
]

LESSON_QUERY = """
    SELECT
        l.id, l.date, l.time, l.title, l.type, l.week_type, l.start_time, l.end_time,
        g.number AS group_number, g.course, f.title_short AS faculty,
        t.id AS teacher_id, t.short_name, t.full_name,
        a.id AS auditorium_id, a.number AS auditorium_number,
        b.id AS building_id, b.letter AS building_letter, b.title AS building_title
    FROM lesson l
    LEFT JOIN "group" g ON g.id = l.group_id
    LEFT JOIN faculty f ON f.id = g.faculty_id
    LEFT JOIN lesson_auditorium_teacher lat ON lat.lesson_id = l.id
    LEFT JOIN teacher t ON t.id = lat.teacher_id
    LEFT JOIN auditorium a ON a.id = lat.auditorium_id
    LEFT JOIN building b ON b.id = a.building_id
"""

# Restricts lesson l to the selected entity, takes the selector value
ENTITY_FILTERS = {
    EntityKind.group: 'l.group_id = (SELECT id FROM "group" WHERE number = ?)',
    EntityKind.teacher: "l.id IN (SELECT lesson_id FROM lesson_auditorium_teacher WHERE teacher_id = ?)",
    EntityKind.auditorium: "l.id IN (SELECT lesson_id FROM lesson_auditorium_teacher WHERE auditorium_id = ?)",
}

EXISTS_QUERIES = {
    EntityKind.group: 'SELECT EXISTS (SELECT 1 FROM "group" WHERE number = ?)',
    EntityKind.teacher: "SELECT EXISTS (SELECT 1 FROM teacher WHERE id = ?)",
    EntityKind.auditorium: "SELECT EXISTS (SELECT 1 FROM auditorium WHERE id = ?)",
}


def _building(row: aiosqlite.Row) -> Building | None:
    if row["building_id"] is None:
        return None

    return Building(id=row["building_id"], letter=row["building_letter"], title=row["building_title"])


def _records_from_rows(rows: Iterable[aiosqlite.Row]) -> list[LessonRecord]:
    """Collapses one row per teacher/auditorium pair into one record per lesson"""
    records: dict[int, LessonRecord] = {}
    for row in rows:
        record = records.get(row["id"])
        if record is None:
            group = None
            if row["group_number"] is not None:
                group = StudyGroup(number=row["group_number"], course=row["course"], faculty=row["faculty"])

            record = records[row["id"]] = LessonRecord(
                id=row["id"],
                date=row["date"],
                time=row["time"],
                title=row["title"],
                type=row["type"],
                week_type=row["week_type"],
                start_time=row["start_time"],
                end_time=row["end_time"],
                group=group,
            )

        teacher, auditorium = None, None
        if row["teacher_id"] is not None:
            teacher = Teacher(id=row["teacher_id"], short_name=row["short_name"], full_name=row["full_name"])
        if row["auditorium_id"] is not None:
            auditorium = Auditorium(id=row["auditorium_id"], number=row["auditorium_number"], building=_building(row))
        if teacher or auditorium:
            record.teacher_auditoriums.append(TeacherAuditorium(teacher=teacher, auditorium=auditorium))

    return list(records.values())


class SQLiteLessonStore(LessonStore):
    @property
    def description(self) -> str:
        return f"SQLite database {self._path}"

    def __init__(self, path: str):
        self._logger = logging.getLogger(__name__)
        self._path = path

    async def _fetch(self, query: str, params: tuple = ()) -> list[aiosqlite.Row]:
        try:
            async with aiosqlite.connect(self._path) as db:
                db.row_factory = aiosqlite.Row
                cur = await db.execute(query, params)
                rows = await cur.fetchall()
                await cur.close()
        except aiosqlite.Error as e:
            raise self._unavailable("query", e) from e

        return list(rows)

    def _unavailable(self, action: str, e: aiosqlite.Error) -> StoreUnavailableError:
        self._logger.error(f"[{action.capitalize()}] Failed to {action} {self._path}!")
        self._logger.exception(e)
        return StoreUnavailableError(f"lesson store is unavailable: {e}")

    async def _fetch_records(self, where: str, params: tuple) -> list[LessonRecord]:
        rows = await self._fetch(f"{LESSON_QUERY} WHERE {where} ORDER BY l.id", params)
        return _records_from_rows(rows)

    async def init_schema(self):
        try:
            async with aiosqlite.connect(self._path) as db:
                for statement in SCHEMA:
                    await db.execute(statement)
                await db.commit()
        except aiosqlite.Error as e:
            raise self._unavailable("initialize", e) from e

    async def load(
        self,
        groups: Iterable[StudyGroup] = (),
        teachers: Iterable[TeacherInfo] = (),
        auditoriums: Iterable[Auditorium] = (),
        lessons: Iterable[LessonRecord] = ()
    ):
        """Inserts (or replaces) catalog entries and lessons"""
        try:
            async with aiosqlite.connect(self._path) as db:
                await db.execute("PRAGMA foreign_keys = ON")

                for group in groups:
                    await self._upsert_group(db, group)
                for teacher in teachers:
                    await self._upsert_teacher(db, teacher)
                for auditorium in auditoriums:
                    await self._upsert_auditorium(db, auditorium)
                for lesson in lessons:
                    await self._insert_lesson(db, lesson)

                await db.commit()
        except aiosqlite.Error as e:
            raise self._unavailable("load", e) from e

        self._logger.info(f"[Load] Stored {self._path}")

    @staticmethod
    async def _upsert_faculty(db: aiosqlite.Connection, faculty: str):
        await db.execute("INSERT OR IGNORE INTO faculty (title_short) VALUES (?)", (faculty,))

    async def _upsert_group(self, db: aiosqlite.Connection, group: StudyGroup) -> int:
        await self._upsert_faculty(db, group.faculty)
        await db.execute(
            """
            INSERT INTO "group" (number, course, faculty_id)
            VALUES (?, ?, (SELECT id FROM faculty WHERE title_short = ?))
            ON CONFLICT(number) DO UPDATE SET course=excluded.course, faculty_id=excluded.faculty_id
            """,
            (group.number, group.course, group.faculty)
        )
        cur = await db.execute('SELECT id FROM "group" WHERE number = ?', (group.number,))
        (group_id,) = await cur.fetchone()
        await cur.close()
        return group_id

    @staticmethod
    async def _upsert_auditorium(db: aiosqlite.Connection, auditorium: Auditorium):
        building_id = None
        if auditorium.building is not None:
            building_id = auditorium.building.id
            await db.execute(
                "INSERT INTO building (id, title, letter) VALUES (?, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET title=excluded.title, letter=excluded.letter",
                (building_id, auditorium.building.title, auditorium.building.letter)
            )
        await db.execute(
            "INSERT INTO auditorium (id, number, building_id) VALUES (?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET number=excluded.number, building_id=excluded.building_id",
            (auditorium.id, auditorium.number, building_id)
        )

    async def _upsert_teacher(self, db: aiosqlite.Connection, teacher: TeacherInfo):
        await db.execute(
            "INSERT INTO teacher (id, full_name, short_name, link) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET "
            "full_name=excluded.full_name, short_name=excluded.short_name, link=excluded.link",
            (teacher.id, teacher.full_name, teacher.short_name, teacher.link)
        )

        await db.execute("DELETE FROM teacher_department WHERE teacher_id = ?", (teacher.id,))
        for department in teacher.departments:
            await self._upsert_faculty(db, department.faculty)
            await db.execute(
                """
                INSERT INTO department (id, title, title_short, faculty_id)
                VALUES (?, ?, ?, (SELECT id FROM faculty WHERE title_short = ?))
                ON CONFLICT(id) DO UPDATE SET
                    title=excluded.title, title_short=excluded.title_short, faculty_id=excluded.faculty_id
                """,
                (department.id, department.title, department.title_short, department.faculty)
            )
            await db.execute(
                "INSERT OR IGNORE INTO teacher_department (teacher_id, department_id) VALUES (?, ?)",
                (teacher.id, department.id)
            )

    async def _insert_lesson(self, db: aiosqlite.Connection, lesson: LessonRecord):
        group_id = await self._upsert_group(db, lesson.group) if lesson.group else None
        await db.execute("DELETE FROM lesson_auditorium_teacher WHERE lesson_id = ?", (lesson.id,))
        await db.execute(
            """
            INSERT OR REPLACE INTO lesson
                (id, group_id, date, time, title, type, week_type, start_time, end_time)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                lesson.id, group_id, lesson.date.isoformat(), lesson.time, lesson.title,
                lesson.type.value, lesson.week_type.value,
                lesson.start_time.isoformat() if lesson.start_time else None,
                lesson.end_time.isoformat() if lesson.end_time else None,
            )
        )
        for pair in lesson.teacher_auditoriums:
            # Keep catalog rows from the dedicated lists if they were given
            if pair.teacher:
                await db.execute(
                    "INSERT OR IGNORE INTO teacher (id, full_name, short_name) VALUES (?, ?, ?)",
                    (pair.teacher.id, pair.teacher.full_name, pair.teacher.short_name)
                )
            if pair.auditorium:
                cur = await db.execute("SELECT 1 FROM auditorium WHERE id = ?", (pair.auditorium.id,))
                if await cur.fetchone() is None:
                    await self._upsert_auditorium(db, pair.auditorium)
                await cur.close()
            await db.execute(
                "INSERT INTO lesson_auditorium_teacher (lesson_id, teacher_id, auditorium_id) VALUES (?, ?, ?)",
                (
                    lesson.id,
                    pair.teacher.id if pair.teacher else None,
                    pair.auditorium.id if pair.auditorium else None,
                )
            )

    async def fetch_lesson_window(self, selector: EntitySelector, start: date, end: date) -> list[LessonRecord]:
        return await self._fetch_records(
            f"{ENTITY_FILTERS[selector.kind]} AND l.date BETWEEN ? AND ?",
            (selector.value, start.isoformat(), end.isoformat())
        )

    async def fetch_nearest_labeled_lesson(
        self,
        selector: EntitySelector,
        *,
        before: date | None = None,
        after: date | None = None
    ) -> LessonRecord | None:
        if (before is None) == (after is None):
            raise ValueError("Exactly one of before and after must be given")

        if before is not None:
            condition, order, bound = "l.date < ?", "DESC", before
        else:
            condition, order, bound = "l.date > ?", "ASC", after

        rows = await self._fetch(
            f"""
            SELECT l.id FROM lesson l
            WHERE {ENTITY_FILTERS[selector.kind]}
              AND l.week_type != 'unknown'
              AND {condition}
            ORDER BY l.date {order}, l.id {order}
            LIMIT 1
            """,
            (selector.value, bound.isoformat())
        )
        if not rows:
            return None

        records = await self._fetch_records("l.id = ?", (rows[0]["id"],))
        return records[0] if records else None

    async def entity_exists(self, selector: EntitySelector) -> bool:
        rows = await self._fetch(EXISTS_QUERIES[selector.kind], (selector.value,))
        return bool(rows[0][0])

    async def get_group(self, number: str) -> StudyGroup | None:
        rows = await self._fetch(
            """
            SELECT g.number, g.course, f.title_short AS faculty
            FROM "group" g
            JOIN faculty f ON f.id = g.faculty_id
            WHERE g.number = ?
            """,
            (number,)
        )
        return StudyGroup(**dict(rows[0])) if rows else None

    async def get_teacher(self, teacher_id: int) -> TeacherInfo | None:
        rows = await self._fetch("SELECT id, full_name, short_name, link FROM teacher WHERE id = ?", (teacher_id,))
        if not rows:
            return None

        departments = await self._fetch_departments(
            "d.id IN (SELECT department_id FROM teacher_department WHERE teacher_id = ?)", (teacher_id,)
        )
        return TeacherInfo(**dict(rows[0]), departments=departments)

    async def get_auditorium(self, auditorium_id: int) -> Auditorium | None:
        rows = await self._fetch(
            """
            SELECT a.id, a.number, b.id AS building_id, b.letter AS building_letter, b.title AS building_title
            FROM auditorium a
            LEFT JOIN building b ON b.id = a.building_id
            WHERE a.id = ?
            """,
            (auditorium_id,)
        )
        if not rows:
            return None

        return Auditorium(id=rows[0]["id"], number=rows[0]["number"], building=_building(rows[0]))

    async def fetch_groups(self, start: date, end: date) -> list[StudyGroup]:
        rows = await self._fetch(
            """
            SELECT DISTINCT g.number, g.course, f.title_short AS faculty
            FROM lesson l
            JOIN "group" g ON g.id = l.group_id
            JOIN faculty f ON f.id = g.faculty_id
            WHERE l.date BETWEEN ? AND ?
            ORDER BY g.number
            """,
            (start.isoformat(), end.isoformat())
        )
        return [StudyGroup(**dict(row)) for row in rows]

    async def get_faculties(self) -> list[str]:
        rows = await self._fetch("SELECT title_short FROM faculty ORDER BY title_short")
        return [title for (title,) in rows]

    async def _fetch_departments(self, where: str, params: tuple) -> list[Department]:
        rows = await self._fetch(
            f"""
            SELECT d.id, d.title, d.title_short, f.title_short AS faculty
            FROM department d
            JOIN faculty f ON f.id = d.faculty_id
            WHERE {where}
            ORDER BY d.title, d.id
            """,
            params
        )
        return [Department(**dict(row)) for row in rows]

    async def get_teachers(self, faculty: str | None = None, department_id: int | None = None) -> list[Teacher]:
        if faculty is None and department_id is None:
            rows = await self._fetch("SELECT id, short_name, full_name FROM teacher ORDER BY full_name, id")
        else:
            rows = await self._fetch(
                """
                SELECT DISTINCT t.id, t.short_name, t.full_name
                FROM teacher t
                JOIN teacher_department td ON td.teacher_id = t.id
                JOIN department d ON d.id = td.department_id
                JOIN faculty f ON f.id = d.faculty_id
                WHERE (? IS NULL OR f.title_short = ?) AND (? IS NULL OR d.id = ?)
                ORDER BY t.full_name, t.id
                """,
                (faculty, faculty, department_id, department_id)
            )

        return [Teacher(**dict(row)) for row in rows]

    async def get_departments(self, faculty: str | None = None) -> list[Department]:
        return await self._fetch_departments("? IS NULL OR f.title_short = ?", (faculty, faculty))

    async def get_auditoriums(self, building_id: int | None = None) -> list[Auditorium]:
        rows = await self._fetch(
            """
            SELECT a.id, a.number, b.id AS building_id, b.letter AS building_letter, b.title AS building_title
            FROM auditorium a
            LEFT JOIN building b ON b.id = a.building_id
            WHERE ? IS NULL OR b.id = ?
            ORDER BY COALESCE(b.id, 0), a.number, a.id
            """,
            (building_id, building_id)
        )
        return [Auditorium(id=row["id"], number=row["number"], building=_building(row)) for row in rows]

    async def get_buildings(self) -> list[Building]:
        rows = await self._fetch("SELECT id, title, letter FROM building ORDER BY id")
        return [Building(**dict(row)) for row in rows]

    async def get_building(self, building_id: int) -> Building | None:
        rows = await self._fetch("SELECT id, title, letter FROM building WHERE id = ?", (building_id,))
        return Building(**dict(rows[0])) if rows else None
