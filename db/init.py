from pathlib import Path
import logging
import sqlite3
from contextlib import closing
from typing import Iterable
from repos.base import Database

logger = logging.getLogger(__name__)

DB_DIR = Path(__file__).resolve().parent

def execute_script(conn: sqlite3.Connection, sql: str) -> None:
    with closing(conn.cursor()) as cur:
        cur.executescript(sql)
    if conn.in_transaction:
        conn.commit()

def init_db(db: Database, schema_file: Path | None = None) -> None:
    schema_file = schema_file or schema_path()
    sql = schema_file.read_text(encoding="utf-8")
    with db.reader() as conn:
        execute_script(conn, sql)
    logger.info("esquema aplicado en %s", db.path)

def run_sql_files(db: Database, files: Iterable[Path]) -> None:
    with db.reader() as conn:
        for f in files:
            sql = f.read_text(encoding="utf-8")
            execute_script(conn, sql)
            logger.info("ejecutado %s", f.name)

# Helpers para ubicar los .sql junto a este módulo
def schema_path() -> Path:
    return DB_DIR / "schema.sql"

def seed_path() -> Path:
    return DB_DIR / "seed.sql"

def migrations_dir() -> Path:
    return DB_DIR / "migrations"
