from __future__ import annotations

import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from lessoncraft.errors import PersistenceFailure
from lessoncraft.models import LessonArtifact


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS lessons (
    id TEXT PRIMARY KEY,
    topic TEXT NOT NULL,
    code TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    compile_status TEXT NOT NULL DEFAULT 'pending',
    compile_error TEXT,
    last_runtime_error TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Store:
    """SQLite-backed lesson rows, keyed by artifact id."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        try:
            with self._connect() as conn:
                yield conn
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"Lesson store error: {exc}") from exc

    def init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._session() as conn:
            conn.executescript(SCHEMA_SQL)

    def create_lesson(self, topic: str) -> LessonArtifact:
        lesson_id = uuid.uuid4().hex[:12]
        now = _now()
        with self._session() as conn:
            conn.execute(
                "INSERT INTO lessons(id, topic, created_at, updated_at) VALUES (?, ?, ?, ?)",
                (lesson_id, topic, now, now),
            )
        return self.require_lesson(lesson_id)

    def get_lesson(self, lesson_id: str) -> LessonArtifact | None:
        with self._session() as conn:
            row = conn.execute("SELECT * FROM lessons WHERE id = ?", (lesson_id,)).fetchone()
        return LessonArtifact.model_validate(dict(row)) if row else None

    def require_lesson(self, lesson_id: str) -> LessonArtifact:
        lesson = self.get_lesson(lesson_id)
        if lesson is None:
            raise PersistenceFailure(f"Lesson not found: {lesson_id}")
        return lesson

    def list_lessons(self, limit: int = 50) -> list[LessonArtifact]:
        with self._session() as conn:
            rows = conn.execute(
                "SELECT * FROM lessons ORDER BY created_at DESC LIMIT ?", (limit,)
            ).fetchall()
        return [LessonArtifact.model_validate(dict(r)) for r in rows]

    def _update(self, lesson_id: str, fields: dict[str, Any]) -> LessonArtifact:
        fields = {**fields, "updated_at": _now()}
        assignments = ", ".join(f"{name} = ?" for name in fields)
        with self._session() as conn:
            cursor = conn.execute(
                f"UPDATE lessons SET {assignments} WHERE id = ?",
                (*fields.values(), lesson_id),
            )
            if cursor.rowcount == 0:
                raise PersistenceFailure(f"Lesson not found: {lesson_id}")
        return self.require_lesson(lesson_id)

    def mark_generated(self, lesson_id: str, code: str) -> LessonArtifact:
        """Store validated code; a fresh lesson body resets the runtime loop-breaker."""
        return self._update(
            lesson_id,
            {
                "code": code,
                "status": "generated",
                "compile_status": "success",
                "compile_error": None,
                "last_runtime_error": None,
            },
        )

    def mark_error(self, lesson_id: str, message: str) -> LessonArtifact:
        return self._update(
            lesson_id,
            {"status": "error", "compile_status": "failed", "compile_error": message},
        )

    def save_runtime_repair(self, lesson_id: str, code: str, runtime_error: str) -> LessonArtifact:
        return self._update(
            lesson_id,
            {
                "code": code,
                "status": "generated",
                "compile_status": "success",
                "compile_error": None,
                "last_runtime_error": runtime_error,
            },
        )

    def mark_runtime_failure(self, lesson_id: str, message: str, runtime_error: str) -> LessonArtifact:
        """Record a failed runtime repair, keeping the last validated code in place."""
        return self._update(
            lesson_id,
            {
                "status": "error",
                "compile_status": "failed",
                "compile_error": message,
                "last_runtime_error": runtime_error,
            },
        )
