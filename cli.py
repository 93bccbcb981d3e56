# cli.py
from datetime import datetime
import typer
from pathlib import Path
import sqlite3
import openpyxl
from typing import Optional
from config import DB_PATH, setup_logging
from errors import PosError
from db.init import init_db, run_sql_files, seed_path
from db.migrate import apply_migrations
from models import money
from repos.base import Database
from repos.products import Catalog
from repos.sales import SalesHistory
from services.sales_service import SaleEngine

app = typer.Typer(help="Herramientas del punto de venta (SQLite)")


@app.callback()
def main(
    ctx: typer.Context,
    db_path: Path = typer.Option(Path(DB_PATH), "--db", help="Archivo SQLite a usar"),
    log_level: Optional[str] = typer.Option(None, help="Nivel de log (DEBUG, INFO, ...)"),
):
    setup_logging(log_level)
    ctx.obj = Database(db_path)


def _fail(msg: str) -> None:
    typer.secho(msg, fg=typer.colors.RED)
    raise typer.Exit(code=1)


@app.command("init-db")
def init_db_cmd(ctx: typer.Context):
    """Crea la estructura base desde db/schema.sql"""
    db: Database = ctx.obj
    typer.echo(f"DB: {db.path}")
    init_db(db)
    typer.secho("OK: esquema inicial aplicado.", fg=typer.colors.GREEN)

@app.command("migrate")
def migrate_cmd(ctx: typer.Context):
    """Aplica migraciones en db/migrations/*.sql"""
    done = apply_migrations(ctx.obj)
    if done:
        for f in done: typer.echo(f"aplicada: {f}")
    else:
        typer.echo("No hay migraciones pendientes.")

@app.command("seed")
def seed_cmd(ctx: typer.Context, seed_file: Optional[Path] = typer.Option(None, help="Por defecto db/seed.sql")):
    """Ejecuta datos semilla"""
    seed_file = seed_file or seed_path()
    if not seed_file.exists():
        _fail("Seed no encontrado.")
    run_sql_files(ctx.obj, [seed_file])
    typer.secho("OK: seed aplicado.", fg=typer.colors.GREEN)

@app.command("integrity-check")
def integrity_check(ctx: typer.Context):
    """PRAGMA integrity_check"""
    with ctx.obj.reader() as conn:
        res = conn.execute("PRAGMA integrity_check;").fetchone()[0]
    typer.secho(f"integrity_check: {res}", fg=typer.colors.GREEN if res == "ok" else typer.colors.RED)

@app.command("vacuum")
def vacuum(ctx: typer.Context):
    """Compacción y mantenimiento"""
    with ctx.obj.reader() as conn:
        conn.execute("VACUUM;")
    typer.secho("OK: VACUUM.", fg=typer.colors.GREEN)

@app.command("backup")
def backup(ctx: typer.Context, dst: Optional[Path] = typer.Option(
    None,
    help="Ruta del archivo destino. Si se omite, se crea data/backup_YYYY-MM-DD.db",
)):
    """Copia en caliente usando backup API de sqlite3"""
    db: Database = ctx.obj
    if dst is None:
        dst = Path(db.path).parent / f"backup_{datetime.now():%Y-%m-%d}.db"

    dst.parent.mkdir(parents=True, exist_ok=True)

    with db.reader() as src_conn, sqlite3.connect(dst) as dst_conn:
        src_conn.backup(dst_conn)
    dst_conn.close()
    typer.secho(f"Backup creado en: {dst}", fg=typer.colors.GREEN)


@app.command("import-products")
def import_products_xlsx(
    ctx: typer.Context,
    src: Path = typer.Argument(..., help="Ruta al Excel de productos"),
    sheet: Optional[str] = typer.Option(None, help="Nombre de la hoja (por defecto la activa)"),
    dry_run: bool = typer.Option(False, help="Solo mostrar acciones; no escribe en BD"),
):
    """
    Importa/actualiza productos desde Excel.
    Upsert por BARCODE. Columnas: BARCODE, NOMBRE, DESCRIPCION, PRECIO, STOCK.
    """
    if not src.exists():
        _fail(f"No existe: {src}")

    wb = openpyxl.load_workbook(src, data_only=True)
    if sheet and sheet not in wb.sheetnames:
        _fail(f"La hoja '{sheet}' no existe. Hojas: {wb.sheetnames}")
    ws = wb[sheet] if sheet else wb.active

    header_map = {
        "BARCODE": "barcode",
        "NOMBRE": "name",
        "DESCRIPCION": "description",
        "PRECIO": "price",
        "STOCK": "stock",
    }
    headers = [str(ws.cell(row=1, column=c).value or "").strip().upper() for c in range(1, ws.max_column+1)]
    idx = {k_int: (headers.index(k_excel) + 1 if k_excel in headers else None)
           for k_excel, k_int in header_map.items()}
    if not idx["barcode"] or not idx["name"]:
        _fail("Faltan columnas BARCODE y/o NOMBRE")

    def cell(row, key):
        col = idx.get(key)
        if not col: return None
        v = ws.cell(row=row, column=col).value
        if isinstance(v, str): return v.strip() or None
        return v

    catalog = Catalog(ctx.obj)
    inserts = updates = errors = 0

    with ctx.obj.tx() as conn:
        for r in range(2, ws.max_row+1):
            barcode = cell(r, "barcode")
            if barcode is None:
                continue
            # barcode numérico en Excel → texto sin decimales
            if isinstance(barcode, float):
                barcode = str(int(barcode))
            barcode = str(barcode)
            try:
                fields = {
                    "barcode": barcode,
                    "name": cell(r, "name"),
                    "description": cell(r, "description"),
                    "price": cell(r, "price") or 0,
                    "stock": int(cell(r, "stock") or 0),
                }
                if not fields["name"]:
                    raise ValueError("NOMBRE vacío")
                exists = catalog.find_by_barcode(barcode, conn) is not None
                if dry_run:
                    typer.echo(f"[fila {r}] {'UPDATE' if exists else 'INSERT'} {barcode} → {fields}")
                else:
                    catalog.upsert(conn=conn, **fields)
                if exists: updates += 1
                else: inserts += 1
            except (ValueError, ArithmeticError) as e:
                errors += 1
                typer.secho(f"[fila {r}] ERROR: {e}", fg="red")

    if dry_run:
        typer.secho(f"Dry-run: inserts={inserts}, updates={updates}, errores={errors}", fg="yellow")
    else:
        typer.secho(f"Import OK: inserts={inserts}, updates={updates}, errores={errors}", fg="green")


def _parse_line(catalog: Catalog, raw: str) -> dict:
    parts = raw.split(":")
    try:
        if len(parts) not in (2, 3):
            raise ValueError(raw)
        product_id, qty = int(parts[0]), int(parts[1])
    except ValueError:
        raise typer.BadParameter(f"Formato esperado productId:cantidad[:precio], recibido {raw!r}") from None
    if len(parts) == 3:
        price = parts[2]
    else:
        product = catalog.find_by_id(product_id)
        if product is None:
            raise typer.BadParameter(f"Producto {product_id} no existe")
        price = product.price
    return {"productId": product_id, "quantity": qty, "unitPrice": price}


@app.command("record-sale")
def record_sale(
    ctx: typer.Context,
    lines: list[str] = typer.Argument(..., help="Renglones productId:cantidad[:precio]"),
    method: str = typer.Option("cash", "--method", "-m", help="cash | credit | card"),
    customer_id: Optional[int] = typer.Option(None, "--customer", "-c", help="ID del cliente"),
):
    """Registra una venta (precio por defecto: el del catálogo)"""
    engine = SaleEngine(ctx.obj)
    items = [_parse_line(engine.catalog, s) for s in lines]
    try:
        sale = engine.record_sale(items, method, customer_id=customer_id)
    except PosError as e:
        _fail(f"ERROR: {e}")
    typer.secho(f"Venta {sale.id} registrada: {money(sale.total_amount)} ({sale.payment_method.value})",
                fg=typer.colors.GREEN)


@app.command("show-sale")
def show_sale(
    ctx: typer.Context,
    sale_id: int = typer.Option(..., "--sale_id", "-s", help="ID numérico de la venta"),
):
    history = SalesHistory(ctx.obj)
    sale = history.get_sale(sale_id)
    if sale is None:
        _fail(f"Venta {sale_id} no existe")
    typer.echo(f"SALE: {sale.to_dict()}")
    for it in history.list_items_for_sale(sale_id):
        typer.echo(f"ITEM: {it.to_dict()}")


@app.command("list-sales")
def list_sales(ctx: typer.Context):
    """Ventas (más recientes primero) y resumen"""
    history = SalesHistory(ctx.obj)
    sales = history.list_sales()
    for s in sales:
        customer = s.customer_id if s.customer_id is not None else "-"
        typer.echo(f"{s.id:>5}  {s.created_at:%Y-%m-%d %H:%M}  {s.payment_method.value:<6}  "
                   f"cliente={customer}  {money(s.total_amount):>12}")
    summary = history.summarize(sales)
    typer.echo(f"Ventas: {summary.count}  Ingresos: {money(summary.revenue)}  Promedio: {money(summary.average)}")


if __name__ == "__main__":
    app()
