# repos/products.py
import logging
import sqlite3
from typing import Any, Mapping
from errors import NotFound
from models import Product, non_negative, whole_number
from .base import Database, apply_changes, convert_fields, one, many

logger = logging.getLogger(__name__)

# Columnas editables y su conversión antes de guardar
EDITABLE = {
    "barcode": str,
    "name": str,
    "description": str,
    "price": non_negative,
    "stock": whole_number,
}
NULLABLE = {"description"}


def _row(barcode, name, description, price, stock) -> tuple:
    v = convert_fields("products", {"barcode": barcode, "name": name, "description": description,
                                    "price": price, "stock": stock}, EDITABLE, NULLABLE)
    return v["barcode"], v["name"], v["description"], v["price"], v["stock"]


class Catalog:
    """Productos e inventario."""

    def __init__(self, db: Database):
        self.db = db

    def _find(self, sql: str, params: tuple, conn: sqlite3.Connection | None) -> Product | None:
        if conn is not None:
            row = one(conn.execute(sql, params))
        else:
            with self.db.reader() as c:
                row = one(c.execute(sql, params))
        return Product.from_row(row) if row else None

    def find_by_id(self, product_id: int, conn: sqlite3.Connection | None = None) -> Product | None:
        return self._find("SELECT * FROM products WHERE id=?", (product_id,), conn)

    def find_by_barcode(self, barcode: str, conn: sqlite3.Connection | None = None) -> Product | None:
        return self._find("SELECT * FROM products WHERE barcode=?", (barcode,), conn)

    def list_all(self) -> list[Product]:
        with self.db.reader() as conn:
            return [Product.from_row(r) for r in many(conn.execute("SELECT * FROM products ORDER BY name"))]

    def adjust_stock(self, conn: sqlite3.Connection, product_id: int, delta: int) -> int:
        """Suma delta al stock dentro de la transacción abierta; devuelve el stock nuevo."""
        cur = conn.execute(
            "UPDATE products SET stock = stock + ?, updatedAt = CURRENT_TIMESTAMP WHERE id=?",
            (int(delta), product_id),
        )
        if cur.rowcount == 0:
            raise NotFound("producto", product_id)
        return conn.execute("SELECT stock FROM products WHERE id=?", (product_id,)).fetchone()["stock"]

    def create(self, barcode: str, name: str, description: str | None = None,
               price: Any = 0, stock: int = 0) -> Product:
        with self.db.tx() as conn:
            cur = conn.execute("""
                INSERT INTO products(barcode, name, description, price, stock)
                VALUES(?,?,?,?,?)
            """, _row(barcode, name, description, price, stock))
            product = self.find_by_id(cur.lastrowid, conn)
        logger.info("producto creado id=%s barcode=%s", product.id, product.barcode)
        return product

    def upsert(self, barcode: str, name: str, description: str | None = None,
               price: Any = 0, stock: int = 0, conn: sqlite3.Connection | None = None) -> None:
        """Alta o actualización por barcode (usado por la importación de Excel)."""
        sql = """
            INSERT INTO products(barcode, name, description, price, stock)
            VALUES(?,?,?,?,?)
            ON CONFLICT(barcode) DO UPDATE SET
              name=excluded.name, description=excluded.description,
              price=excluded.price, stock=excluded.stock, updatedAt=CURRENT_TIMESTAMP
        """
        params = _row(barcode, name, description, price, stock)
        if conn is not None:
            conn.execute(sql, params)
        else:
            with self.db.tx() as c:
                c.execute(sql, params)

    def update(self, product_id: int, changes: Mapping[str, Any]) -> Product | None:
        with self.db.tx() as conn:
            if not apply_changes(conn, "products", product_id, changes, EDITABLE, NULLABLE):
                return None
            return self.find_by_id(product_id, conn)

    def delete(self, product_id: int) -> bool:
        with self.db.tx() as conn:
            return conn.execute("DELETE FROM products WHERE id=?", (product_id,)).rowcount > 0
