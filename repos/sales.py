# repos/sales.py
import sqlite3
from decimal import Decimal
from typing import Iterable
from models import Sale, SaleItem, SaleLine, PaymentMethod, SalesSummary, CENTS
from .base import Database, one, many


def insert_sale(conn: sqlite3.Connection, customer_id: int | None, total: Decimal,
                method: PaymentMethod) -> int:
    cur = conn.execute("""
        INSERT INTO sales (customerId, totalAmount, paymentMethod)
        VALUES (?, ?, ?)
    """, (customer_id, total, method.value))
    return cur.lastrowid

def insert_item(conn: sqlite3.Connection, sale_id: int, line: SaleLine) -> int:
    cur = conn.execute("""
        INSERT INTO sale_items (saleId, productId, quantity, unitPrice, subtotal)
        VALUES (?, ?, ?, ?, ?)
    """, (sale_id, line.product_id, line.quantity, line.unit_price, line.subtotal))
    return cur.lastrowid

def fetch_sale(conn: sqlite3.Connection, sale_id: int) -> Sale | None:
    row = one(conn.execute("SELECT * FROM sales WHERE id=?", (sale_id,)))
    return Sale.from_row(row) if row else None


class SalesHistory:
    """Consultas de solo lectura sobre ventas ya registradas."""

    def __init__(self, db: Database):
        self.db = db

    def list_sales(self) -> list[Sale]:
        with self.db.reader() as conn:
            rows = many(conn.execute("SELECT * FROM sales ORDER BY createdAt DESC, id DESC"))
        return [Sale.from_row(r) for r in rows]

    def list_items_for_sale(self, sale_id: int) -> list[SaleItem]:
        with self.db.reader() as conn:
            rows = many(conn.execute("SELECT * FROM sale_items WHERE saleId=? ORDER BY id", (sale_id,)))
        return [SaleItem.from_row(r) for r in rows]

    def get_sale(self, sale_id: int) -> Sale | None:
        with self.db.reader() as conn:
            return fetch_sale(conn, sale_id)

    def summarize(self, sales: Iterable[Sale] | None = None) -> SalesSummary:
        """Total de ventas, ingresos y ticket promedio sobre la lista completa."""
        sales = list(self.list_sales() if sales is None else sales)
        revenue = sum((s.total_amount for s in sales), Decimal("0"))
        average = (revenue / len(sales)).quantize(CENTS) if sales else Decimal("0.00")
        return SalesSummary(count=len(sales), revenue=revenue, average=average)
