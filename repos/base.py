# repos/base.py
from contextlib import contextmanager, closing
from decimal import Decimal
import logging
import sqlite3
from typing import Iterator, Iterable, Mapping, Any
from pathlib import Path
from config import DB_PATH, PRAGMAS_STARTUP, BUSY_TIMEOUT
from errors import InvalidChange, NotFound, StorageFault

logger = logging.getLogger(__name__)

# Montos como TEXT decimal: se leen tal cual se escribieron
sqlite3.register_adapter(Decimal, str)


class Database:
    """Manejador de la base SQLite; se inyecta en los repos y servicios."""

    def __init__(self, path: str | Path = DB_PATH, pragmas: Iterable[str] = PRAGMAS_STARTUP,
                 timeout: float = BUSY_TIMEOUT):
        self.path = str(path)
        self.pragmas = list(pragmas)
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"Database({self.path!r})"

    def connect(self) -> sqlite3.Connection:
        # isolation_level=None: las transacciones se abren explícitamente en tx()
        conn = sqlite3.connect(self.path, timeout=self.timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        for q in self.pragmas:
            conn.execute(q)
        return conn

    @contextmanager
    def reader(self) -> Iterator[sqlite3.Connection]:
        with closing(self.connect()) as conn:
            yield conn

    @contextmanager
    def tx(self) -> Iterator[sqlite3.Connection]:
        conn = self.connect()
        try:
            conn.execute("BEGIN IMMEDIATE")  # bloquea escritura desde la primera lectura
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            _rollback(conn)
            logger.error("transacción revertida en %s: %s", self.path, e)
            raise StorageFault(str(e)) from e
        except BaseException:
            _rollback(conn)
            raise
        finally:
            conn.close()


def _rollback(conn: sqlite3.Connection) -> None:
    if conn.in_transaction:
        conn.rollback()


def one(cur: sqlite3.Cursor) -> dict | None:
    r = cur.fetchone()
    return dict(r) if r else None

def many(cur: sqlite3.Cursor) -> list[dict]:
    return [dict(r) for r in cur.fetchall()]


def convert_fields(table: str, values: Mapping[str, Any], allowed: Mapping[str, Any],
                   nullable: Iterable[str] = ()) -> dict:
    """
    Valida y convierte valores antes de escribirlos.
    allowed: {campo: conversor}; nullable: campos que aceptan None
    """
    unknown = set(values) - set(allowed)
    if unknown:
        raise InvalidChange(f"Campos no editables en {table}: {', '.join(sorted(unknown))}")
    nullable = set(nullable)
    out = {}
    for field, value in values.items():
        if value is None:
            if field not in nullable:
                raise InvalidChange(f"{table}.{field} no puede ser nulo")
            out[field] = None
            continue
        try:
            out[field] = allowed[field](value)
        except (TypeError, ValueError, ArithmeticError) as e:
            raise InvalidChange(f"Valor inválido para {table}.{field}: {value!r}") from e
    return out


def apply_changes(conn: sqlite3.Connection, table: str, record_id: int,
                  changes: Mapping[str, Any], allowed: Mapping[str, Any],
                  nullable: Iterable[str] = ()) -> bool:
    """
    Aplica una actualización parcial campo por campo.
    changes: {campo: valor} solo con lo que cambia
    allowed: {campo: conversor} columnas editables de la tabla
    return: False si el diff viene vacío
    """
    changes = convert_fields(table, changes, allowed, nullable)
    if not changes:
        return False

    if conn.execute(f"SELECT 1 FROM {table} WHERE id=?", (record_id,)).fetchone() is None:
        raise NotFound(table, record_id)
    for field, value in changes.items():
        conn.execute(f'UPDATE {table} SET "{field}"=? WHERE id=?', (value, record_id))
    conn.execute(f"UPDATE {table} SET updatedAt=CURRENT_TIMESTAMP WHERE id=?", (record_id,))
    return True
