# repos/customers.py
import logging
import sqlite3
from decimal import Decimal
from typing import Any, Mapping
from errors import NotFound
from models import Customer, non_negative, to_decimal
from .base import Database, apply_changes, convert_fields, one, many

logger = logging.getLogger(__name__)

EDITABLE = {
    "name": str,
    "phone": str,
    "email": str,
    "creditLimit": non_negative,
    "balance": to_decimal,
}
NULLABLE = {"phone", "email"}


class Ledger:
    """Clientes y saldos de crédito."""

    def __init__(self, db: Database):
        self.db = db

    def find_by_id(self, customer_id: int, conn: sqlite3.Connection | None = None) -> Customer | None:
        sql, params = "SELECT * FROM customers WHERE id=?", (customer_id,)
        if conn is not None:
            row = one(conn.execute(sql, params))
        else:
            with self.db.reader() as c:
                row = one(c.execute(sql, params))
        return Customer.from_row(row) if row else None

    def list_all(self) -> list[Customer]:
        with self.db.reader() as conn:
            return [Customer.from_row(r) for r in many(conn.execute("SELECT * FROM customers ORDER BY name"))]

    def adjust_balance(self, conn: sqlite3.Connection, customer_id: int, delta: Decimal) -> Decimal:
        """Suma delta al saldo dentro de la transacción abierta; devuelve el saldo nuevo."""
        row = conn.execute("SELECT balance FROM customers WHERE id=?", (customer_id,)).fetchone()
        if row is None:
            raise NotFound("cliente", customer_id)
        # suma en Decimal; SQL haría la cuenta en float
        balance = to_decimal(row["balance"]) + to_decimal(delta)
        conn.execute("UPDATE customers SET balance=?, updatedAt=CURRENT_TIMESTAMP WHERE id=?",
                     (balance, customer_id))
        return balance

    def create(self, name: str, phone: str | None = None, email: str | None = None,
               credit_limit: Any = 0) -> Customer:
        v = convert_fields("customers", {"name": name, "phone": phone, "email": email,
                                         "creditLimit": credit_limit}, EDITABLE, NULLABLE)
        with self.db.tx() as conn:
            cur = conn.execute("""
                INSERT INTO customers(name, phone, email, creditLimit, balance)
                VALUES(?,?,?,?,'0')
            """, (v["name"], v["phone"], v["email"], v["creditLimit"]))
            customer = self.find_by_id(cur.lastrowid, conn)
        logger.info("cliente creado id=%s", customer.id)
        return customer

    def update(self, customer_id: int, changes: Mapping[str, Any]) -> Customer | None:
        with self.db.tx() as conn:
            if not apply_changes(conn, "customers", customer_id, changes, EDITABLE, NULLABLE):
                return None
            return self.find_by_id(customer_id, conn)
