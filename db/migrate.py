from pathlib import Path
import sqlite3, hashlib
import logging
from repos.base import Database
from .init import execute_script, migrations_dir

logger = logging.getLogger(__name__)

MIGR_TABLE = """
CREATE TABLE IF NOT EXISTS _migrations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    filename TEXT NOT NULL UNIQUE,
    checksum TEXT NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now','localtime'))
);
"""

def _checksum(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()

def ensure_table(conn: sqlite3.Connection) -> None:
    conn.execute(MIGR_TABLE)

def applied(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT filename FROM _migrations").fetchall()
    return {r["filename"] for r in rows}

def apply_migrations(db: Database, directory: Path | None = None) -> list[str]:
    directory = directory or migrations_dir()
    files = sorted(directory.glob("*.sql")) if directory.exists() else []
    done = []
    with db.reader() as conn:
        ensure_table(conn)
        already = applied(conn)
        for f in files:
            if f.name in already:
                continue
            sql = f.read_text(encoding="utf-8")
            execute_script(conn, sql)
            conn.execute("INSERT INTO _migrations(filename, checksum) VALUES(?, ?)", (f.name, _checksum(sql)))
            logger.info("migración aplicada: %s", f.name)
            done.append(f.name)
    return done
