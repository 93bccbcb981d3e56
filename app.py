import logging
from flask import Flask, request, jsonify, abort
from config import API_HOST, API_PORT, setup_logging
from errors import (PosError, EmptyCart, InvalidSale, InvalidChange, NotFound, StorageFault,
                    CustomerRequired, CreditLimitExceeded)
from repos.base import Database
from repos.products import Catalog
from repos.customers import Ledger
from repos.sales import SalesHistory
from services.sales_service import SaleEngine, precheck_sale

logger = logging.getLogger(__name__)

STATUS = {
    EmptyCart: 400,
    InvalidSale: 400,
    InvalidChange: 400,
    CustomerRequired: 400,
    CreditLimitExceeded: 400,
    NotFound: 404,
    StorageFault: 500,
}


def create_app(db: Database | None = None):
    app = Flask(__name__)
    db = db or Database()
    catalog, ledger = Catalog(db), Ledger(db)
    engine = SaleEngine(db, catalog=catalog, ledger=ledger)
    history = SalesHistory(db)

    @app.errorhandler(PosError)
    def pos_error(e: PosError):
        status = next((code for cls, code in STATUS.items() if isinstance(e, cls)), 500)
        if status >= 500:
            logger.exception("error en %s %s", request.method, request.path)
        return jsonify(error=type(e).__name__, detail=str(e)), status

    def body() -> dict:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            abort(400, "Se esperaba un objeto JSON")
        return data

    # --------- Productos ----------
    @app.get("/api/products")
    def products_all():
        return jsonify([p.to_dict() for p in catalog.list_all()])

    @app.get("/api/products/barcode/<barcode>")
    def products_by_barcode(barcode: str):
        product = catalog.find_by_barcode(barcode)
        if product is None:
            raise NotFound("producto", barcode)
        return jsonify(product.to_dict())

    @app.post("/api/products")
    def products_create():
        data = body()
        try:
            product = catalog.create(
                barcode=data["barcode"], name=data["name"], description=data.get("description"),
                price=data.get("price", 0), stock=data.get("stock", 0),
            )
        except KeyError as e:
            raise InvalidChange(f"Falta el campo {e}") from e
        return jsonify(product.to_dict()), 201

    @app.patch("/api/products/<int:product_id>")
    def products_update(product_id: int):
        product = catalog.update(product_id, body())
        if product is None:
            abort(400, "Sin cambios")
        return jsonify(product.to_dict())

    @app.delete("/api/products/<int:product_id>")
    def products_delete(product_id: int):
        return jsonify(deleted=catalog.delete(product_id))

    # --------- Clientes ----------
    @app.get("/api/customers")
    def customers_all():
        return jsonify([c.to_dict() for c in ledger.list_all()])

    @app.get("/api/customers/<int:customer_id>")
    def customers_get(customer_id: int):
        customer = ledger.find_by_id(customer_id)
        if customer is None:
            raise NotFound("cliente", customer_id)
        return jsonify(customer.to_dict())

    @app.post("/api/customers")
    def customers_create():
        data = body()
        try:
            customer = ledger.create(
                name=data["name"], phone=data.get("phone"), email=data.get("email"),
                credit_limit=data.get("creditLimit", 0),
            )
        except KeyError as e:
            raise InvalidChange(f"Falta el campo {e}") from e
        return jsonify(customer.to_dict()), 201

    @app.patch("/api/customers/<int:customer_id>")
    def customers_update(customer_id: int):
        customer = ledger.update(customer_id, body())
        if customer is None:
            abort(400, "Sin cambios")
        return jsonify(customer.to_dict())

    # --------- Ventas ----------
    @app.post("/api/sales")
    def sales_create():
        data = body()
        customer_id = data.get("customerId")
        items = data.get("items", [])
        if not isinstance(items, list):
            raise InvalidSale("items debe ser una lista de renglones")
        method = data.get("paymentMethod", "cash")
        # misma validación que hacía la pantalla de caja antes de cobrar
        precheck_sale(ledger, items, method, customer_id=customer_id)
        sale = engine.record_sale(items, method, customer_id=customer_id)
        return jsonify(sale.to_dict()), 201

    @app.get("/api/sales")
    def sales_all():
        return jsonify([s.to_dict() for s in history.list_sales()])

    @app.get("/api/sales/summary")
    def sales_summary():
        return jsonify(history.summarize().to_dict())

    @app.get("/api/sales/<int:sale_id>/items")
    def sales_items(sale_id: int):
        return jsonify([it.to_dict() for it in history.list_items_for_sale(sale_id)])

    return app

if __name__ == "__main__":
    setup_logging()
    app = create_app()
    # dev server
    app.run(host=API_HOST, port=API_PORT, debug=True)
