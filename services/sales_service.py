# services/sales_service.py
import logging
from decimal import Decimal
from collections.abc import Iterable, Mapping
from typing import Any
from errors import EmptyCart, InvalidSale, NotFound, CustomerRequired, CreditLimitExceeded
from models import Sale, SaleLine, PaymentMethod, money
from repos.base import Database
from repos.products import Catalog
from repos.customers import Ledger
from repos import sales as sales_repo

logger = logging.getLogger(__name__)

LineInput = SaleLine | Mapping[str, Any]


def _normalize(items: Iterable[LineInput] | None, payment_method) -> tuple[list[SaleLine], PaymentMethod]:
    if items is None:
        items = []
    if isinstance(items, (str, bytes, Mapping)) or not isinstance(items, Iterable):
        raise InvalidSale(f"Se esperaba una lista de renglones: {items!r}")
    items = list(items)
    if not items:
        raise EmptyCart()
    method = PaymentMethod.parse(payment_method)
    return [SaleLine.parse(it) for it in items], method


def compute_total(lines: Iterable[SaleLine]) -> Decimal:
    return sum((ln.subtotal for ln in lines), Decimal("0"))


class SaleEngine:
    """
    Registra una venta como unidad atómica: encabezado, renglones,
    descuento de inventario y, si es a crédito, aumento del saldo del cliente.
    No valida stock negativo ni límite de crédito (ver precheck_sale).
    """

    def __init__(self, db: Database, catalog: Catalog | None = None, ledger: Ledger | None = None):
        self.db = db
        self.catalog = catalog or Catalog(db)
        self.ledger = ledger or Ledger(db)

    def record_sale(self, items: Iterable[LineInput] | None, payment_method: PaymentMethod | str,
                    customer_id: int | None = None) -> Sale:
        """
        items: [{productId, quantity, unitPrice}, ...] o SaleLine
        return: la venta persistida (id y createdAt asignados por la BD)
        """
        lines, method = _normalize(items, payment_method)
        total = compute_total(lines)

        try:
            with self.db.tx() as conn:
                if customer_id is not None:
                    customer = self.ledger.find_by_id(customer_id, conn)
                    if customer is None:
                        raise NotFound("cliente", customer_id)

                sale_id = sales_repo.insert_sale(conn, customer_id, total, method)

                for ln in lines:
                    stock = self.catalog.adjust_stock(conn, ln.product_id, -ln.quantity)
                    if stock < 0:
                        logger.warning("venta %s deja stock negativo: producto=%s stock=%s",
                                       sale_id, ln.product_id, stock)
                    sales_repo.insert_item(conn, sale_id, ln)

                if method is PaymentMethod.CREDIT:
                    if customer_id is None:
                        logger.warning("venta %s a crédito sin cliente; no se registra saldo", sale_id)
                    else:
                        balance = self.ledger.adjust_balance(conn, customer_id, total)
                        if balance > customer.credit_limit:
                            logger.warning("cliente %s excede su límite: saldo=%s límite=%s",
                                           customer_id, money(balance), money(customer.credit_limit))

                sale = sales_repo.fetch_sale(conn, sale_id)
        except Exception as e:
            logger.error("venta revertida (%s líneas, %s): %s", len(lines), method.value, e)
            raise

        logger.info("venta %s registrada: total=%s método=%s líneas=%s",
                    sale.id, money(sale.total_amount), method.value, len(lines))
        return sale


def precheck_sale(ledger: Ledger, items: Iterable[LineInput] | None, payment_method: PaymentMethod | str,
                  customer_id: int | None = None) -> Decimal:
    """
    Validación previa del lado de caja (consultiva, no protege contra carreras).
    Devuelve el total calculado.
    """
    lines, method = _normalize(items, payment_method)
    total = compute_total(lines)
    if method is PaymentMethod.CREDIT:
        if customer_id is None:
            raise CustomerRequired()
        customer = ledger.find_by_id(customer_id)
        if customer is None:
            raise NotFound("cliente", customer_id)
        if customer.balance + total > customer.credit_limit:
            raise CreditLimitExceeded(customer_id, money(customer.available_credit))
    return total
