from __future__ import annotations

import hashlib
import logging
import secrets
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from config.settings import DB_PATH
from models.lifecycle import apply_status
from models.schemas import Hackathon, utcnow


logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parents[1] / "data"
DATA_DIR.mkdir(parents=True, exist_ok=True)

DEFAULT_DB_PATH = DATA_DIR / "app.db"

_DB_PATH: Path = Path(DB_PATH or str(DEFAULT_DB_PATH))


def set_db_path(path: Path | str) -> None:
    global _DB_PATH
    _DB_PATH = Path(path)
    _DB_PATH.parent.mkdir(parents=True, exist_ok=True)


def get_db_path() -> Path:
    return _DB_PATH


def _connect(path: Optional[Path] = None) -> sqlite3.Connection:
    target = Path(path) if path else get_db_path()
    conn = sqlite3.connect(target, check_same_thread=False, timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@contextmanager
def get_connection(path: Optional[Path] = None) -> Iterator[sqlite3.Connection]:
    conn = _connect(path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _ensure_schema_migrations_table(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            applied_at TEXT NOT NULL DEFAULT (datetime('now'))
        );
        """
    )


def _get_applied_versions(conn: sqlite3.Connection) -> set[str]:
    _ensure_schema_migrations_table(conn)
    cur = conn.execute("SELECT version FROM schema_migrations")
    return {row[0] for row in cur.fetchall()}


def _record_applied(conn: sqlite3.Connection, version: str) -> None:
    conn.execute("INSERT OR IGNORE INTO schema_migrations(version) VALUES (?)", (version,))


def _migration_files() -> Sequence[Path]:
    migrations_dir = Path(__file__).resolve().parents[1] / "migrations"
    return sorted(p for p in migrations_dir.iterdir() if p.suffix == ".sql")


def run_migrations(path: Optional[Path] = None) -> None:
    """Run pending SQL migrations found in backend/migrations/*.sql in sorted order."""
    with get_connection(path) as conn:
        applied = _get_applied_versions(conn)
        for sql_file in _migration_files():
            version = sql_file.stem
            if version in applied:
                continue
            conn.executescript(sql_file.read_text(encoding="utf-8"))
            _record_applied(conn, version)
            logger.info(f"Applied migration {version}")


def init_db(path: Optional[Path] = None) -> None:
    """Initialize database by running migrations. Safe to call multiple times."""
    run_migrations(path)


# --- Accounts ---

def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_user(
    email: str,
    name: str,
    role: str = "student",
    mobile: Optional[str] = None,
) -> Tuple[sqlite3.Row, str]:
    """Create a user and return (row, api_token). The token is only stored hashed."""
    user_id = uuid.uuid4().hex
    token = secrets.token_urlsafe(32)
    with get_connection() as conn:
        conn.execute(
            "INSERT INTO users(id, email, name, mobile, role, token_hash) VALUES(?, ?, ?, ?, ?, ?)",
            (user_id, email.strip().lower(), name, mobile, role, hash_token(token)),
        )
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    return row, token


def rotate_user_token(user_id: str) -> Optional[str]:
    token = secrets.token_urlsafe(32)
    with get_connection() as conn:
        cur = conn.execute("UPDATE users SET token_hash = ? WHERE id = ?", (hash_token(token), user_id))
        if cur.rowcount == 0:
            return None
    return token


def get_user(user_id: str) -> Optional[sqlite3.Row]:
    with get_connection() as conn:
        return conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()


def get_user_by_email(email: str) -> Optional[sqlite3.Row]:
    with get_connection() as conn:
        return conn.execute(
            "SELECT * FROM users WHERE email = ?", (email.strip().lower(),)
        ).fetchone()


def get_user_by_token(token: str) -> Optional[sqlite3.Row]:
    with get_connection() as conn:
        return conn.execute(
            "SELECT * FROM users WHERE token_hash = ?", (hash_token(token),)
        ).fetchone()


def list_users(role: Optional[str] = None) -> list[sqlite3.Row]:
    with get_connection() as conn:
        if role:
            cur = conn.execute(
                "SELECT * FROM users WHERE role = ? ORDER BY created_at DESC, rowid DESC", (role,)
            )
        else:
            cur = conn.execute("SELECT * FROM users ORDER BY created_at DESC, rowid DESC")
        return list(cur.fetchall())


def update_user_role(user_id: str, role: str) -> bool:
    with get_connection() as conn:
        cur = conn.execute("UPDATE users SET role = ? WHERE id = ?", (role, user_id))
        return cur.rowcount > 0


def toggle_user_active(user_id: str) -> Optional[bool]:
    """Flip is_active; returns the new value or None when the user does not exist."""
    with get_connection() as conn:
        cur = conn.execute(
            "UPDATE users SET is_active = CASE is_active WHEN 1 THEN 0 ELSE 1 END WHERE id = ?",
            (user_id,),
        )
        if cur.rowcount == 0:
            return None
        row = conn.execute("SELECT is_active FROM users WHERE id = ?", (user_id,)).fetchone()
        return bool(row["is_active"])


def update_user_profile(user_id: str, name: Optional[str] = None, mobile: Optional[str] = None) -> bool:
    fields = []
    params: list[Any] = []
    if name is not None:
        fields.append("name = ?")
        params.append(name)
    if mobile is not None:
        fields.append("mobile = ?")
        params.append(mobile or None)
    if not fields:
        return get_user(user_id) is not None
    params.append(user_id)
    with get_connection() as conn:
        cur = conn.execute("UPDATE users SET " + ", ".join(fields) + " WHERE id = ?", params)
        return cur.rowcount > 0


def delete_user(user_id: str) -> bool:
    with get_connection() as conn:
        cur = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
        return cur.rowcount > 0


# --- Hackathon documents ---

def _hackathon_from_row(row: sqlite3.Row) -> Hackathon:
    hackathon = Hackathon.model_validate_json(row["doc"])
    hackathon.version = int(row["version"])
    return apply_status(hackathon)


def insert_hackathon(hackathon: Hackathon, now: Optional[datetime] = None) -> Hackathon:
    now = now or utcnow()
    hackathon.created_at = hackathon.created_at or now
    hackathon.updated_at = now
    apply_status(hackathon, now)
    with get_connection() as conn:
        conn.execute(
            """
            INSERT INTO hackathons(id, organizer_id, is_approved, status, version, doc, created_at, updated_at)
            VALUES(?, ?, ?, ?, 1, ?, ?, ?)
            """,
            (
                hackathon.id,
                hackathon.organizer,
                int(hackathon.is_approved),
                hackathon.status,
                hackathon.model_dump_json(by_alias=True),
                hackathon.created_at.isoformat(),
                hackathon.updated_at.isoformat(),
            ),
        )
    hackathon.version = 1
    return hackathon


def load_hackathon(hackathon_id: str) -> Optional[Hackathon]:
    with get_connection() as conn:
        row = conn.execute("SELECT * FROM hackathons WHERE id = ?", (hackathon_id,)).fetchone()
    return _hackathon_from_row(row) if row else None


def compare_and_swap_hackathon(
    hackathon_id: str,
    expected_version: int,
    hackathon: Hackathon,
    now: Optional[datetime] = None,
) -> bool:
    """Write ``hackathon`` only if the stored version still equals ``expected_version``.

    Returns False on a version conflict (or if the record was deleted meanwhile).
    On success the in-memory version is bumped to match the stored one.
    """
    now = now or utcnow()
    hackathon.updated_at = now
    apply_status(hackathon, now)
    with get_connection() as conn:
        cur = conn.execute(
            """
            UPDATE hackathons
            SET doc = ?, organizer_id = ?, is_approved = ?, status = ?, updated_at = ?,
                version = version + 1
            WHERE id = ? AND version = ?
            """,
            (
                hackathon.model_dump_json(by_alias=True),
                hackathon.organizer,
                int(hackathon.is_approved),
                hackathon.status,
                now.isoformat(),
                hackathon_id,
                expected_version,
            ),
        )
        if cur.rowcount == 0:
            return False
    hackathon.version = expected_version + 1
    return True


def delete_hackathon(hackathon_id: str) -> bool:
    with get_connection() as conn:
        cur = conn.execute("DELETE FROM hackathons WHERE id = ?", (hackathon_id,))
        return cur.rowcount > 0


def list_hackathons(
    approved_only: bool = True,
    organizer_id: Optional[str] = None,
) -> List[Hackathon]:
    """Newest first. Status filtering happens on the freshly derived value, so callers do it."""
    clauses = []
    params: list[Any] = []
    if approved_only:
        clauses.append("is_approved = 1")
    if organizer_id:
        clauses.append("organizer_id = ?")
        params.append(organizer_id)
    sql = "SELECT * FROM hackathons"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY created_at DESC, rowid DESC"
    with get_connection() as conn:
        rows = conn.execute(sql, params).fetchall()
    return [_hackathon_from_row(row) for row in rows]


# --- Feedback inbox ---

def create_feedback(
    name: str,
    email: str,
    subject: str,
    message: str,
    category: str = "general",
    rating: int = 5,
    user_id: Optional[str] = None,
) -> int:
    with get_connection() as conn:
        cur = conn.execute(
            "INSERT INTO feedback(name, email, subject, message, category, rating, user_id) "
            "VALUES(?, ?, ?, ?, ?, ?, ?)",
            (name, email, subject, message, category, rating, user_id),
        )
        return int(cur.lastrowid)


def get_feedback(feedback_id: int) -> Optional[sqlite3.Row]:
    with get_connection() as conn:
        return conn.execute("SELECT * FROM feedback WHERE id = ?", (feedback_id,)).fetchone()


def list_feedback(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    category: Optional[str] = None,
) -> list[sqlite3.Row]:
    clauses = []
    params: list[Any] = []
    for column, value in (("status", status), ("priority", priority), ("category", category)):
        if value:
            clauses.append(f"{column} = ?")
            params.append(value)
    sql = "SELECT * FROM feedback"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY created_at DESC, id DESC"
    with get_connection() as conn:
        return list(conn.execute(sql, params).fetchall())


def update_feedback(
    feedback_id: int,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    admin_notes: Optional[str] = None,
    resolved_by: Optional[str] = None,
) -> bool:
    """Update triage fields. ``resolved_by`` also stamps resolved_at."""
    fields = []
    params: list[Any] = []
    if status is not None:
        fields.append("status = ?")
        params.append(status)
    if priority is not None:
        fields.append("priority = ?")
        params.append(priority)
    if admin_notes is not None:
        fields.append("admin_notes = ?")
        params.append(admin_notes)
    if resolved_by is not None:
        fields.append("resolved_by = ?")
        params.append(resolved_by)
        fields.append("resolved_at = datetime('now')")
    fields.append("updated_at = datetime('now')")
    params.append(feedback_id)
    with get_connection() as conn:
        cur = conn.execute("UPDATE feedback SET " + ", ".join(fields) + " WHERE id = ?", params)
        return cur.rowcount > 0


def delete_feedback(feedback_id: int) -> bool:
    with get_connection() as conn:
        cur = conn.execute("DELETE FROM feedback WHERE id = ?", (feedback_id,))
        return cur.rowcount > 0


def feedback_stats() -> Dict[str, Any]:
    with get_connection() as conn:
        total = conn.execute("SELECT COUNT(*) FROM feedback").fetchone()[0]
        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for column, key in (("status", "byStatus"), ("priority", "byPriority"), ("category", "byCategory")):
            cur = conn.execute(
                f"SELECT {column} AS value, COUNT(*) AS count FROM feedback GROUP BY {column} ORDER BY {column}"
            )
            grouped[key] = [{"_id": row["value"], "count": row["count"]} for row in cur.fetchall()]
    return {"total": total, **grouped}
