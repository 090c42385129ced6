import sqlite3
import aiosqlite
import csv
import os
import io
import datetime
import logging
from contextlib import contextmanager, asynccontextmanager
from typing import Any, List, Tuple, Optional

from config import YamlConfig, DEFAULT_DB_PATH, DEFAULT_YAML_PATH
from settings_schema import validate_settings

logger = logging.getLogger(__name__)

ENTRY_COLUMNS = ("id", "date", "weight", "calories", "created_at", "updated_at")
EXERCISE_COLUMNS = (
    "id",
    "date",
    "type",
    "details",
    "entry_id",
    "created_at",
    "updated_at",
)
CSV_HEADER = ["date", "weight", "calories", "exercise_type", "exercise_details"]

EntryRow = Tuple[int, str, Optional[float], Optional[float], str, str]
ExerciseRow = Tuple[int, str, str, str, int, str, str]


class RecordNotFoundError(ValueError):
    """Raised when a requested entry or exercise does not exist."""


class DuplicateEntryError(ValueError):
    """Raised when a daily entry already exists for the requested date."""

    def __init__(self, date: str, entry_id: int) -> None:
        super().__init__("Entry already exists for this date")
        self.date = date
        self.entry_id = entry_id


def validate_date(value: Any) -> str:
    """Return ``value`` normalized to ``YYYY-MM-DD`` or raise ``ValueError``."""
    if not value:
        raise ValueError("date is required")
    try:
        return datetime.date.fromisoformat(str(value)).isoformat()
    except ValueError:
        raise ValueError("date must be in YYYY-MM-DD format")


def validate_measurements(
    weight: Any, calories: Any
) -> Tuple[Optional[float], Optional[float]]:
    """Coerce weight and calories, mapping blank or zero values to ``None``."""
    weight = float(weight) if weight not in (None, "") else None
    calories = float(calories) if calories not in (None, "") else None
    if weight is not None and weight < 0:
        raise ValueError("weight must be positive")
    if calories is not None and calories < 0:
        raise ValueError("calories must not be negative")
    return weight or None, calories or None


def entry_to_dict(row: EntryRow) -> dict:
    return dict(zip(ENTRY_COLUMNS, row))


def exercise_to_dict(row: ExerciseRow) -> dict:
    return dict(zip(EXERCISE_COLUMNS, row))


def _utc_timestamp() -> str:
    return datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "daily_entries": (
            """CREATE TABLE daily_entries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    date TEXT NOT NULL UNIQUE,
                    weight REAL,
                    calories REAL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );""",
            list(ENTRY_COLUMNS),
        ),
        "exercises": (
            """CREATE TABLE exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    date TEXT NOT NULL,
                    type TEXT NOT NULL,
                    details TEXT,
                    entry_id INTEGER NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY(entry_id) REFERENCES daily_entries(id) ON DELETE CASCADE
                );""",
            list(EXERCISE_COLUMNS),
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    _INDEX_DEFINITIONS = (
        "CREATE INDEX IF NOT EXISTS idx_daily_entries_date ON daily_entries(date);",
        "CREATE INDEX IF NOT EXISTS idx_exercises_date ON exercises(date);",
        "CREATE INDEX IF NOT EXISTS idx_exercises_entry_id ON exercises(entry_id);",
    )

    def __init__(self, db_path: str = DEFAULT_DB_PATH) -> None:
        self._db_path = db_path
        directory = os.path.dirname(os.path.abspath(db_path))
        os.makedirs(directory, exist_ok=True)
        self._ensure_schema()
        self._ensure_indexes()
        self._init_settings()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        connection.execute("PRAGMA foreign_keys = ON;")
        try:
            yield connection
            connection.commit()
        except Exception:
            connection.rollback()
            raise
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA foreign_keys=off;")
            conn.execute("PRAGMA legacy_alter_table=on;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            conn.execute("PRAGMA legacy_alter_table=off;")
            conn.execute("PRAGMA foreign_keys=on;")

    def _ensure_indexes(self) -> None:
        with self._connection() as conn:
            for sql in self._INDEX_DEFINITIONS:
                conn.execute(sql)

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        logger.info("rebuilding table %s (columns %s -> %s)", table, existing_cols, columns)
        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col in ("created_at", "updated_at"):
                        return "CURRENT_TIMESTAMP"
                    if col == "details":
                        return "''"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")

    def _init_settings(self) -> None:
        defaults = {
            "weight_unit": "kg",
            "dashboard_days": "30",
            "smoothing_window": "7",
            "api_url": "http://localhost:3200",
            "api_token": "",
            "log_level": "INFO",
            "show_help_tips": "0",
            "app_version": "1.0.0",
        }
        with self._connection() as conn:
            for key, value in defaults.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, value),
                )


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _delete_all(self, table: str) -> None:
        self.execute(f"DELETE FROM {table};")


def _range_query(
    base: str, start_date: Optional[str], end_date: Optional[str]
) -> Tuple[str, list]:
    query = base + " WHERE 1=1"
    params: list[str] = []
    if start_date:
        query += " AND date >= ?"
        params.append(start_date)
    if end_date:
        query += " AND date <= ?"
        params.append(end_date)
    return query, params


_ENTRY_SELECT = (
    "SELECT id, date, weight, calories, created_at, updated_at FROM daily_entries"
)
_EXERCISE_SELECT = (
    "SELECT id, date, type, details, entry_id, created_at, updated_at FROM exercises"
)


class DailyEntryRepository(BaseRepository):
    """Repository for the one-per-day weight and calorie entries."""

    def create(
        self,
        date: str,
        weight: Optional[float] = None,
        calories: Optional[float] = None,
    ) -> int:
        date = validate_date(date)
        weight, calories = validate_measurements(weight, calories)
        existing = self.fetch_by_date(date)
        if existing is not None:
            raise DuplicateEntryError(date, int(existing[0]))
        try:
            entry_id = self.execute(
                "INSERT INTO daily_entries (date, weight, calories) VALUES (?, ?, ?);",
                (date, weight, calories),
            )
        except sqlite3.IntegrityError:
            # another writer created the date between the check and the insert
            existing = self.fetch_by_date(date)
            if existing is None:
                raise
            raise DuplicateEntryError(date, int(existing[0]))
        logger.debug("created daily entry %s for %s", entry_id, date)
        return entry_id

    def fetch_entries(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        descending: bool = True,
    ) -> List[EntryRow]:
        query, params = _range_query(_ENTRY_SELECT, start_date, end_date)
        query += " ORDER BY date DESC;" if descending else " ORDER BY date ASC;"
        return self.fetch_all(query, tuple(params))

    def fetch_by_date(self, date: str) -> Optional[EntryRow]:
        rows = self.fetch_all(_ENTRY_SELECT + " WHERE date = ?;", (date,))
        return rows[0] if rows else None

    def fetch_detail(self, entry_id: int) -> EntryRow:
        rows = self.fetch_all(_ENTRY_SELECT + " WHERE id = ?;", (entry_id,))
        if not rows:
            raise RecordNotFoundError("Entry not found")
        return rows[0]

    def update(
        self,
        entry_id: int,
        weight: Optional[float] = None,
        calories: Optional[float] = None,
    ) -> None:
        weight, calories = validate_measurements(weight, calories)
        self.fetch_detail(entry_id)
        self.execute(
            "UPDATE daily_entries SET weight = ?, calories = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?;",
            (weight, calories, entry_id),
        )

    def delete(self, entry_id: int) -> None:
        self.fetch_detail(entry_id)
        self.execute("DELETE FROM daily_entries WHERE id = ?;", (entry_id,))
        logger.debug("deleted daily entry %s", entry_id)

    def delete_all(self) -> None:
        self._delete_all("daily_entries")

    def count(self) -> int:
        return int(self.fetch_all("SELECT COUNT(*) FROM daily_entries;")[0][0])


class ExerciseRepository(BaseRepository):
    """Repository for exercises attached to a daily entry."""

    def add(
        self,
        entry_id: int,
        exercise_type: str,
        details: Optional[str] = "",
        date: Optional[str] = None,
    ) -> int:
        exercise_type = (exercise_type or "").strip()
        if not exercise_type:
            raise ValueError("Type is required")
        rows = self.fetch_all(
            "SELECT date FROM daily_entries WHERE id = ?;", (entry_id,)
        )
        if not rows:
            raise RecordNotFoundError("Entry not found")
        entry_date = rows[0][0]
        if date is not None and validate_date(date) != entry_date:
            raise ValueError("exercise date must match the entry date")
        return self.execute(
            "INSERT INTO exercises (date, type, details, entry_id) VALUES (?, ?, ?, ?);",
            (entry_date, exercise_type, (details or "").strip(), entry_id),
        )

    def fetch_for_entry(self, entry_id: int) -> List[ExerciseRow]:
        return self.fetch_all(
            _EXERCISE_SELECT + " WHERE entry_id = ? ORDER BY id;", (entry_id,)
        )

    def fetch_for_date(self, date: str) -> List[ExerciseRow]:
        return self.fetch_all(
            _EXERCISE_SELECT + " WHERE date = ? ORDER BY id;", (date,)
        )

    def fetch_range(
        self, start_date: Optional[str] = None, end_date: Optional[str] = None
    ) -> List[ExerciseRow]:
        query, params = _range_query(_EXERCISE_SELECT, start_date, end_date)
        query += " ORDER BY date, id;"
        return self.fetch_all(query, tuple(params))

    def fetch_detail(self, exercise_id: int) -> ExerciseRow:
        rows = self.fetch_all(_EXERCISE_SELECT + " WHERE id = ?;", (exercise_id,))
        if not rows:
            raise RecordNotFoundError("Exercise not found")
        return rows[0]

    def update(
        self, exercise_id: int, exercise_type: str, details: Optional[str] = ""
    ) -> None:
        exercise_type = (exercise_type or "").strip()
        if not exercise_type:
            raise ValueError("Type is required")
        self.fetch_detail(exercise_id)
        self.execute(
            "UPDATE exercises SET type = ?, details = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?;",
            (exercise_type, (details or "").strip(), exercise_id),
        )

    def remove(self, exercise_id: int) -> None:
        self.fetch_detail(exercise_id)
        self.execute("DELETE FROM exercises WHERE id = ?;", (exercise_id,))

    def fetch_types(self) -> List[str]:
        rows = self.fetch_all("SELECT DISTINCT type FROM exercises ORDER BY type;")
        return [r[0] for r in rows]


class DataTransferRepository(BaseRepository):
    """Bulk export and transactional import of all tracker data."""

    def export_data(self) -> list[dict]:
        with self._connection() as conn:
            entries = conn.execute(_ENTRY_SELECT + " ORDER BY date;").fetchall()
            exercises = conn.execute(_EXERCISE_SELECT + " ORDER BY id;").fetchall()
        grouped: dict[int, list[dict]] = {}
        for row in exercises:
            ex = exercise_to_dict(row)
            grouped.setdefault(ex["entry_id"], []).append(ex)
        result = []
        for row in entries:
            entry = entry_to_dict(row)
            entry["exercises"] = grouped.get(entry["id"], [])
            result.append(entry)
        logger.info("exported %d daily entries", len(result))
        return result

    @staticmethod
    def _timestamp(value: Any, now: str) -> str:
        if value is None or value == "":
            return now
        if not isinstance(value, str):
            raise ValueError("timestamps must be strings")
        return value

    @staticmethod
    def _optional_id(value: Any) -> Optional[int]:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise ValueError("id must be an integer")
        return int(value)

    @classmethod
    def _normalize_record(
        cls, item: Any, index: int, now: str
    ) -> tuple[tuple, list[tuple]]:
        if not isinstance(item, dict):
            raise ValueError(f"record {index} is not an object")
        try:
            return cls._normalize_fields(item, now)
        except (TypeError, ValueError) as e:
            raise ValueError(f"record {index}: {e}") from e

    @classmethod
    def _normalize_fields(cls, item: dict, now: str) -> tuple[tuple, list[tuple]]:
        date = validate_date(item.get("date"))
        weight, calories = validate_measurements(
            item.get("weight"), item.get("calories")
        )
        entry = (
            cls._optional_id(item.get("id")),
            date,
            weight,
            calories,
            cls._timestamp(item.get("created_at"), now),
            cls._timestamp(item.get("updated_at"), now),
        )
        nested = item.get("exercises") or []
        if not isinstance(nested, list):
            raise ValueError("exercises must be a list")
        exercises = []
        for ex in nested:
            if not isinstance(ex, dict):
                raise ValueError("exercise is not an object")
            ex_type = str(ex.get("type") or "").strip()
            if not ex_type:
                raise ValueError("exercise type is required")
            ex_date = validate_date(ex["date"]) if ex.get("date") else date
            exercises.append(
                (
                    cls._optional_id(ex.get("id")),
                    ex_date,
                    ex_type,
                    str(ex.get("details") or ""),
                    cls._timestamp(ex.get("created_at"), now),
                    cls._timestamp(ex.get("updated_at"), now),
                )
            )
        return entry, exercises

    def import_data(self, data: Any) -> int:
        """Replace all entries and exercises with ``data`` in one transaction.

        ``data`` is the list produced by :meth:`export_data`. Each exercise
        is attached to the entry it is nested under, so ``entry_id`` and the
        ``entryId`` key of older backups are not consulted. Any invalid
        record aborts the import and the previous rows are kept.
        """
        if not isinstance(data, list):
            raise ValueError("Invalid data format")
        now = _utc_timestamp()
        records = [
            self._normalize_record(item, idx, now) for idx, item in enumerate(data)
        ]
        with self._connection() as conn:
            try:
                conn.execute("DELETE FROM exercises;")
                conn.execute("DELETE FROM daily_entries;")
                for entry, exercises in records:
                    cur = conn.execute(
                        "INSERT INTO daily_entries (id, date, weight, calories, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?);",
                        entry,
                    )
                    entry_id = cur.lastrowid
                    for ex_id, ex_date, ex_type, details, created, updated in exercises:
                        conn.execute(
                            "INSERT INTO exercises (id, date, type, details, entry_id, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?);",
                            (ex_id, ex_date, ex_type, details, entry_id, created, updated),
                        )
            except sqlite3.Error as e:
                conn.rollback()
                raise ValueError(f"import failed: {e}") from e
        logger.info("imported %d daily entries", len(records))
        return len(records)

    def dump(self) -> dict:
        return self.raw_data()

    def raw_data(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        include_metadata: bool = False,
    ) -> dict:
        entry_query, entry_params = _range_query(_ENTRY_SELECT, start_date, end_date)
        ex_query, ex_params = _range_query(_EXERCISE_SELECT, start_date, end_date)
        with self._connection() as conn:
            entries = conn.execute(
                entry_query + " ORDER BY date;", tuple(entry_params)
            ).fetchall()
            exercises = conn.execute(
                ex_query + " ORDER BY date, id;", tuple(ex_params)
            ).fetchall()
        result: dict = {
            "dailyEntries": [entry_to_dict(r) for r in entries],
            "exercises": [exercise_to_dict(r) for r in exercises],
        }
        if include_metadata:
            result["metadata"] = {
                "generated_at": _utc_timestamp(),
                "start_date": start_date,
                "end_date": end_date,
                "daily_entry_count": len(entries),
                "exercise_count": len(exercises),
            }
        return result

    def export_csv(
        self, start_date: Optional[str] = None, end_date: Optional[str] = None
    ) -> str:
        data = self.raw_data(start_date, end_date)
        grouped: dict[int, list[dict]] = {}
        for ex in data["exercises"]:
            grouped.setdefault(ex["entry_id"], []).append(ex)
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(CSV_HEADER)
        for entry in data["dailyEntries"]:
            weight = "" if entry["weight"] is None else entry["weight"]
            calories = "" if entry["calories"] is None else entry["calories"]
            exercises = grouped.get(entry["id"])
            if not exercises:
                writer.writerow([entry["date"], weight, calories, "", ""])
                continue
            for ex in exercises:
                writer.writerow(
                    [entry["date"], weight, calories, ex["type"], ex["details"]]
                )
        return output.getvalue()


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        try:
            await conn.execute("PRAGMA foreign_keys = ON;")
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.lastrowid

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return [tuple(r) for r in rows]


class AsyncDailyEntryRepository(AsyncBaseRepository):
    """Async read access to daily entries."""

    async def fetch_entries(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        descending: bool = True,
    ) -> List[EntryRow]:
        query, params = _range_query(_ENTRY_SELECT, start_date, end_date)
        query += " ORDER BY date DESC;" if descending else " ORDER BY date ASC;"
        return await self.fetch_all(query, tuple(params))

    async def fetch_by_date(self, date: str) -> Optional[EntryRow]:
        rows = await self.fetch_all(_ENTRY_SELECT + " WHERE date = ?;", (date,))
        return rows[0] if rows else None

    async def fetch_detail(self, entry_id: int) -> EntryRow:
        rows = await self.fetch_all(_ENTRY_SELECT + " WHERE id = ?;", (entry_id,))
        if not rows:
            raise RecordNotFoundError("Entry not found")
        return rows[0]


class AsyncExerciseRepository(AsyncBaseRepository):
    """Async read access to exercises."""

    async def fetch_for_entry(self, entry_id: int) -> List[ExerciseRow]:
        return await self.fetch_all(
            _EXERCISE_SELECT + " WHERE entry_id = ? ORDER BY id;", (entry_id,)
        )

    async def fetch_for_date(self, date: str) -> List[ExerciseRow]:
        return await self.fetch_all(
            _EXERCISE_SELECT + " WHERE date = ? ORDER BY id;", (date,)
        )


class SettingsRepository(BaseRepository):
    """Repository for application settings synchronized with YAML."""

    BOOL_KEYS = {"show_help_tips"}
    TEXT_KEYS = {"weight_unit", "api_url", "api_token", "log_level", "app_version"}

    def __init__(
        self, db_path: str = DEFAULT_DB_PATH, yaml_path: str = DEFAULT_YAML_PATH
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict[str, float | str | bool] = {}
        for k, v in rows:
            if k in self.BOOL_KEYS:
                result[k] = v in {"1", "1.0", "true", "True"}
                continue
            if k in self.TEXT_KEYS:
                result[k] = v
                continue
            try:
                number = float(v)
                result[k] = int(number) if number.is_integer() else number
            except ValueError:
                result[k] = v
        return result

    def _sync_from_yaml(self) -> None:
        data = self._yaml.load()
        if not data:
            return
        validate_settings(data)
        with self._connection() as conn:
            for key, value in data.items():
                val = str(value)
                if key in self.BOOL_KEYS:
                    val = "1" if val in {"1", "1.0", "true", "True"} else "0"
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, val),
                )

    def _sync_to_yaml(self) -> None:
        self._yaml.save(self._raw_all_settings())

    def get_text(self, key: str, default: str) -> str:
        self._sync_from_yaml()
        return self.stored_text(key, default)

    def stored_text(self, key: str, default: str) -> str:
        """Return ``key`` from the settings table without reloading YAML."""
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return rows[0][0] if rows else default

    def set_text(self, key: str, value: str) -> None:
        self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )
        self._sync_to_yaml()

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(float(self.get_text(key, str(default))))
        except ValueError:
            return default

    def set_int(self, key: str, value: int) -> None:
        self.set_text(key, str(int(value)))

    def get_bool(self, key: str, default: bool) -> bool:
        return self.get_text(key, "1" if default else "0") in {
            "1",
            "true",
            "True",
            "1.0",
        }

    def set_bool(self, key: str, value: bool) -> None:
        self.set_text(key, "1" if value else "0")

    def all_settings(self) -> dict:
        self._sync_from_yaml()
        return self._raw_all_settings()
