import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

from text_humanizer.config import settings


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _conn() -> sqlite3.Connection:
    Path(settings.database_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(settings.database_path)
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    with _conn() as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
              user_id TEXT PRIMARY KEY,
              credits INTEGER NOT NULL CHECK (credits >= 0),
              created_at TEXT NOT NULL,
              last_seen_at TEXT NOT NULL
            )
            """
        )

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS credit_ledger (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              user_id TEXT NOT NULL,
              type TEXT NOT NULL,
              credits INTEGER NOT NULL,
              job_id TEXT,
              external_ref TEXT,
              note TEXT,
              created_at TEXT NOT NULL
            )
            """
        )

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS projects (
              id TEXT PRIMARY KEY,
              user_id TEXT NOT NULL,
              input_text TEXT NOT NULL,
              output_text TEXT NOT NULL,
              created_at TEXT NOT NULL
            )
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_projects_user ON projects (user_id, created_at)")

        conn.commit()


def _insert_ledger(
    conn: sqlite3.Connection,
    user_id: str,
    entry_type: str,
    credits: int,
    job_id: str | None = None,
    external_ref: str | None = None,
    note: str | None = None,
) -> None:
    conn.execute(
        """
        INSERT INTO credit_ledger (user_id, type, credits, job_id, external_ref, note, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (user_id, entry_type, credits, job_id, external_ref, note, _now()),
    )


def ensure_user(user_id: str, default_credits: int) -> bool:
    """Create the balance row if missing. Returns True only when a row was inserted."""
    ts = _now()
    with _conn() as conn:
        cur = conn.execute(
            """
            INSERT INTO users (user_id, credits, created_at, last_seen_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id) DO NOTHING
            """,
            (user_id, default_credits, ts, ts),
        )
        created = cur.rowcount == 1
        if created:
            _insert_ledger(conn, user_id, "init", default_credits, note="default balance")
        conn.commit()
    return created


def get_user(user_id: str) -> dict | None:
    with _conn() as conn:
        row = conn.execute("SELECT * FROM users WHERE user_id=?", (user_id,)).fetchone()
    return dict(row) if row else None


def set_credits(user_id: str, credits: int, note: str | None = None) -> bool:
    with _conn() as conn:
        cur = conn.execute(
            "UPDATE users SET credits=?, last_seen_at=? WHERE user_id=?",
            (credits, _now(), user_id),
        )
        if cur.rowcount != 1:
            return False
        _insert_ledger(conn, user_id, "adjust", credits, note=note)
        conn.commit()
    return True


def debit_credits(user_id: str, amount: int, job_id: str | None = None) -> int | None:
    """Conditionally decrement in one statement. Returns the new balance, or None if the precondition failed."""
    with _conn() as conn:
        cur = conn.execute(
            """
            UPDATE users
            SET credits = credits - ?, last_seen_at=?
            WHERE user_id=? AND credits >= ?
            """,
            (amount, _now(), user_id, amount),
        )
        if cur.rowcount != 1:
            conn.rollback()
            return None
        _insert_ledger(conn, user_id, "debit", amount, job_id=job_id, note="humanize completed")
        balance = conn.execute("SELECT credits FROM users WHERE user_id=?", (user_id,)).fetchone()["credits"]
        conn.commit()
    return int(balance)


def grant_credits(user_id: str, credits: int, note: str, external_ref: str | None = None) -> None:
    if credits <= 0:
        raise ValueError("credits must be > 0")
    with _conn() as conn:
        conn.execute(
            "UPDATE users SET credits = credits + ?, last_seen_at=? WHERE user_id=?",
            (credits, _now(), user_id),
        )
        _insert_ledger(conn, user_id, "grant", credits, external_ref=external_ref, note=note)
        conn.commit()


def list_ledger(user_id: str, limit: int = 20) -> list[dict]:
    with _conn() as conn:
        rows = conn.execute(
            "SELECT * FROM credit_ledger WHERE user_id=? ORDER BY id DESC LIMIT ?",
            (user_id, limit),
        ).fetchall()
    return [dict(r) for r in rows]


def create_project(user_id: str, input_text: str, output_text: str) -> dict:
    project = {
        "id": str(uuid4()),
        "user_id": user_id,
        "input_text": input_text,
        "output_text": output_text,
        "created_at": _now(),
    }
    with _conn() as conn:
        conn.execute(
            """
            INSERT INTO projects (id, user_id, input_text, output_text, created_at)
            VALUES (:id, :user_id, :input_text, :output_text, :created_at)
            """,
            project,
        )
        conn.commit()
    return project


def list_projects(user_id: str, limit: int = 100) -> list[dict]:
    with _conn() as conn:
        rows = conn.execute(
            "SELECT * FROM projects WHERE user_id=? ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (user_id, limit),
        ).fetchall()
    return [dict(r) for r in rows]


def delete_project(project_id: str, user_id: str) -> bool:
    with _conn() as conn:
        cur = conn.execute("DELETE FROM projects WHERE id=? AND user_id=?", (project_id, user_id))
        conn.commit()
    return cur.rowcount == 1
