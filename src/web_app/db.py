from __future__ import annotations

"""SQLite storage for uploaded forms and login sessions."""

from contextlib import contextmanager
from datetime import datetime, timezone
import asyncio
import json
import logging
import sqlite3
import threading
import uuid
from typing import Any, Dict, Iterator, List, Optional

from config import config
from errors import FormAlreadyExistsError
from models import FormDefinition, FormElement, FormSummary

logger = logging.getLogger(__name__)

_conn: sqlite3.Connection | None = None
_lock = threading.Lock()


async def run_db(func, *args, **kwargs):
    """Run a blocking database function in a worker thread.

    The function passed to ``run_db`` must take ``_lock`` itself (directly or
    through :func:`form_session`) so that statements run one at a time.
    """
    return await asyncio.to_thread(func, *args, **kwargs)


def _get_conn() -> sqlite3.Connection:
    if _conn is None:
        raise RuntimeError("DB is not initialized, call init_db() first")
    return _conn


def init_db(path: str | None = None) -> None:
    """Open the database at ``path`` (default ``config.db_path``) and create tables.

    An already open connection is closed first, so calling this with
    ``":memory:"`` starts from an empty database.
    """
    global _conn
    close_db()

    db_path = path or config.db_path
    _conn = sqlite3.connect(db_path, check_same_thread=False)
    _conn.row_factory = sqlite3.Row
    with _lock:
        with _conn:
            _conn.execute(
                """
                CREATE TABLE IF NOT EXISTS forms (
                    form_id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    filename TEXT NOT NULL,
                    xml TEXT NOT NULL,
                    created_by TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    root TEXT NOT NULL
                )
                """
            )
            _conn.execute(
                """
                CREATE TABLE IF NOT EXISTS login_sessions (
                    id TEXT PRIMARY KEY,
                    nickname TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
    logger.debug("Database ready at %s", db_path)


def close_db() -> None:
    """Close the connection and reset the reference."""
    global _conn
    if _conn is not None:
        try:
            _conn.close()
        finally:
            _conn = None


def _serialize_form(form: FormDefinition) -> Dict[str, Any]:
    return {
        "form_id": form.form_id,
        "title": form.title,
        "filename": form.filename,
        "xml": form.xml,
        "created_by": form.created_by,
        "created_at": form.created_at.isoformat(),
        "root": json.dumps(form.root.model_dump(), ensure_ascii=False),
    }


def _row_to_form(row: sqlite3.Row) -> FormDefinition:
    return FormDefinition(
        form_id=row["form_id"],
        title=row["title"],
        filename=row["filename"],
        xml=row["xml"],
        created_by=row["created_by"],
        created_at=datetime.fromisoformat(row["created_at"]),
        root=FormElement(**json.loads(row["root"])),
    )


class FormSession:
    """Unit of work over the shared connection.

    Created by :func:`form_session`, which holds ``_lock`` for the session's
    lifetime and closes it on every exit path.
    """

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn
        self.closed = False

    def _check_open(self) -> sqlite3.Connection:
        if self.closed:
            raise RuntimeError("form session is closed")
        return self._conn

    def exists(self, form_id: str) -> bool:
        row = self._check_open().execute(
            "SELECT 1 FROM forms WHERE form_id=?", (form_id,)
        ).fetchone()
        return row is not None

    def persist(self, form: FormDefinition) -> None:
        conn = self._check_open()
        data = _serialize_form(form)
        columns = ", ".join(data.keys())
        placeholders = ", ".join(["?"] * len(data))
        try:
            conn.execute(
                f"INSERT INTO forms ({columns}) VALUES ({placeholders})",
                tuple(data.values()),
            )
        except sqlite3.IntegrityError as exc:
            raise FormAlreadyExistsError(form.form_id) from exc

    def commit(self) -> None:
        self._check_open().commit()

    def rollback(self) -> None:
        self._check_open().rollback()

    def close(self) -> None:
        self.closed = True


@contextmanager
def form_session() -> Iterator[FormSession]:
    """Open a persistence session: commit on success, roll back on error, always close."""
    conn = _get_conn()
    with _lock:
        session = FormSession(conn)
        try:
            yield session
            session.commit()
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()


def get_form(form_id: str) -> Optional[FormDefinition]:
    conn = _get_conn()
    with _lock:
        row = conn.execute("SELECT * FROM forms WHERE form_id=?", (form_id,)).fetchone()
    if row is None:
        return None
    return _row_to_form(row)


def list_forms() -> List[FormSummary]:
    conn = _get_conn()
    with _lock:
        rows = conn.execute(
            "SELECT form_id, title, filename, created_by, created_at "
            "FROM forms ORDER BY created_at DESC, form_id"
        ).fetchall()
    return [
        FormSummary(
            form_id=row["form_id"],
            title=row["title"],
            filename=row["filename"],
            created_by=row["created_by"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )
        for row in rows
    ]


def create_login_session(nickname: str) -> str:
    session_id = uuid.uuid4().hex
    conn = _get_conn()
    with _lock:
        with conn:
            conn.execute(
                "INSERT INTO login_sessions (id, nickname, created_at) VALUES (?, ?, ?)",
                (session_id, nickname, datetime.now(timezone.utc).isoformat()),
            )
    return session_id


def get_login_user(session_id: str) -> Optional[str]:
    conn = _get_conn()
    with _lock:
        row = conn.execute(
            "SELECT nickname FROM login_sessions WHERE id=?", (session_id,)
        ).fetchone()
    return row["nickname"] if row is not None else None


def delete_login_session(session_id: str) -> None:
    conn = _get_conn()
    with _lock:
        with conn:
            conn.execute("DELETE FROM login_sessions WHERE id=?", (session_id,))
