from decimal import Decimal

import pytest

from db.migrate import apply_migrations
from errors import InvalidChange, NotFound, StorageFault
from models import PaymentMethod, Sale


# ----- Catalog -----

def test_catalog_create_and_lookup(catalog):
    p = catalog.create("7501", "Tea 100g", "Black Tea", "120.00", 75)

    assert p.id is not None
    assert p.price == Decimal("120.00")
    assert catalog.find_by_barcode("7501") == p
    assert catalog.find_by_id(p.id) == p
    assert catalog.find_by_barcode("nope") is None
    assert catalog.find_by_id(999) is None


def test_catalog_duplicate_barcode(catalog):
    catalog.create("7501", "Tea", None, "1.00", 1)
    with pytest.raises(StorageFault):
        catalog.create("7501", "Tea again", None, "1.00", 1)


def test_catalog_list_ordered_by_name(catalog):
    catalog.create("2", "Sugar", None, "1", 1)
    catalog.create("1", "Bread", None, "1", 1)

    assert [p.name for p in catalog.list_all()] == ["Bread", "Sugar"]


def test_catalog_update_applies_only_given_fields(catalog):
    p = catalog.create("7501", "Tea", "Black", "120.00", 75)

    updated = catalog.update(p.id, {"price": "125.50", "description": None})

    assert updated.price == Decimal("125.50")
    assert updated.description is None
    assert updated.name == "Tea"
    assert updated.stock == 75


def test_catalog_update_empty_diff(catalog):
    p = catalog.create("7501", "Tea", None, "1", 1)
    assert catalog.update(p.id, {}) is None


def test_catalog_update_rejects_unknown_fields(catalog):
    p = catalog.create("7501", "Tea", None, "1", 1)
    with pytest.raises(InvalidChange):
        catalog.update(p.id, {"price": "2", "id = 0; --": "x"})

    assert catalog.find_by_id(p.id).price == Decimal("1")


@pytest.mark.parametrize("changes", [
    {"price": "abc"},
    {"price": "-9.99"},
    {"price": "Infinity"},
    {"stock": "x"},
    {"stock": 1.7},
    {"name": None},
    {"price": None},
])
def test_catalog_update_rejects_bad_values(catalog, changes):
    p = catalog.create("7501", "Tea", "Black", "1.00", 3)
    with pytest.raises(InvalidChange):
        catalog.update(p.id, changes)

    assert catalog.find_by_id(p.id) == p


@pytest.mark.parametrize("price", ["-5", "abc", None])
def test_catalog_create_rejects_bad_price(catalog, price):
    with pytest.raises(InvalidChange):
        catalog.create("7501", "Tea", None, price, 1)

    assert catalog.list_all() == []


def test_catalog_update_missing(catalog):
    with pytest.raises(NotFound):
        catalog.update(404, {"name": "x"})


def test_catalog_delete(catalog):
    p = catalog.create("7501", "Tea", None, "1", 1)

    assert catalog.delete(p.id) is True
    assert catalog.delete(p.id) is False
    assert catalog.find_by_id(p.id) is None


def test_adjust_stock_inside_scope(db, catalog):
    p = catalog.create("7501", "Tea", None, "1", 3)
    with db.tx() as conn:
        assert catalog.adjust_stock(conn, p.id, -5) == -2

    assert catalog.find_by_id(p.id).stock == -2

    with pytest.raises(NotFound):
        with db.tx() as conn:
            catalog.adjust_stock(conn, 999, 1)


def test_upsert_by_barcode(catalog):
    catalog.upsert("7501", "Tea", None, "1.00", 1)
    catalog.upsert("7501", "Tea Gold", None, "2.00", 4)

    p = catalog.find_by_barcode("7501")
    assert (p.name, p.price, p.stock) == ("Tea Gold", Decimal("2.00"), 4)
    assert len(catalog.list_all()) == 1


# ----- Ledger -----

def test_ledger_create_starts_with_zero_balance(ledger):
    c = ledger.create("Ana", "555-0101", "ana@example.com", "1500")

    assert c.balance == Decimal("0")
    assert c.credit_limit == Decimal("1500")
    assert c.available_credit == Decimal("1500")


def test_ledger_adjust_balance_is_exact(db, ledger):
    c = ledger.create("Ana", credit_limit="100")
    with db.tx() as conn:
        balances = [ledger.adjust_balance(conn, c.id, Decimal("0.10")) for _ in range(3)]

    assert balances == [Decimal("0.10"), Decimal("0.20"), Decimal("0.30")]
    assert ledger.find_by_id(c.id).balance == Decimal("0.30")


def test_ledger_adjust_balance_missing(db, ledger):
    with pytest.raises(NotFound):
        with db.tx() as conn:
            ledger.adjust_balance(conn, 7, Decimal("1"))


def test_ledger_update(ledger):
    c = ledger.create("Ana", credit_limit="100")

    updated = ledger.update(c.id, {"creditLimit": "250.00", "balance": "10.00"})

    assert updated.credit_limit == Decimal("250.00")
    assert updated.balance == Decimal("10.00")
    with pytest.raises(InvalidChange):
        ledger.update(c.id, {"createdAt": "2020-01-01"})


def test_ledger_rejects_negative_credit_limit(ledger):
    with pytest.raises(InvalidChange):
        ledger.create("Ana", credit_limit="-100")
    assert ledger.list_all() == []

    c = ledger.create("Ana", credit_limit="100")
    for changes in ({"creditLimit": "-1"}, {"creditLimit": "x"}, {"name": None}, {"balance": "abc"}):
        with pytest.raises(InvalidChange):
            ledger.update(c.id, changes)

    assert ledger.update(c.id, {"phone": None}).phone is None
    assert ledger.find_by_id(c.id).credit_limit == Decimal("100")


def test_tx_rolls_back_on_error(db, ledger):
    c = ledger.create("Ana", credit_limit="100")
    with pytest.raises(RuntimeError):
        with db.tx() as conn:
            ledger.adjust_balance(conn, c.id, Decimal("50"))
            raise RuntimeError("abort")

    assert ledger.find_by_id(c.id).balance == 0


# ----- Sales history -----

def _insert_sale(db, total, method, created_at):
    with db.tx() as conn:
        conn.execute("INSERT INTO sales (totalAmount, paymentMethod, createdAt) VALUES (?, ?, ?)",
                     (total, method, created_at))


def test_list_sales_newest_first(db, history):
    _insert_sale(db, "10.00", "cash", "2024-01-01 10:00:00")
    _insert_sale(db, "20.00", "card", "2024-03-01 09:00:00")
    _insert_sale(db, "30.00", "credit", "2024-02-01 12:00:00")
    _insert_sale(db, "40.00", "cash", "2024-03-01 09:00:00")

    sales = history.list_sales()

    assert [s.total_amount for s in sales] == [Decimal("40.00"), Decimal("20.00"),
                                               Decimal("30.00"), Decimal("10.00")]
    assert sales[2].payment_method is PaymentMethod.CREDIT


def test_payment_method_constraint(db):
    with pytest.raises(StorageFault):
        _insert_sale(db, "1.00", "cheque", "2024-01-01 00:00:00")


def test_summary(history):
    sales = [Sale(1, None, Decimal("400.00"), PaymentMethod.CREDIT, None),
             Sale(2, None, Decimal("700.00"), PaymentMethod.CASH, None),
             Sale(3, None, Decimal("0.01"), PaymentMethod.CARD, None)]

    summary = history.summarize(sales)

    assert summary.count == 3
    assert summary.revenue == Decimal("1100.01")
    assert summary.average == Decimal("366.67")


def test_summary_without_sales(history):
    summary = history.summarize()

    assert summary.count == 0
    assert summary.revenue == 0
    assert summary.average == Decimal("0.00")


def test_items_for_unknown_sale(history):
    assert history.list_items_for_sale(123) == []
    assert history.get_sale(123) is None


# ----- Migrations -----

def test_migrations_apply_once(db, tmp_path):
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    (migrations / "0001_note.sql").write_text("ALTER TABLE sales ADD COLUMN note TEXT;", encoding="utf-8")

    assert apply_migrations(db, migrations) == ["0001_note.sql"]
    assert apply_migrations(db, migrations) == []
    with db.reader() as conn:
        cols = [r["name"] for r in conn.execute("PRAGMA table_info(sales)")]
    assert "note" in cols


def test_bundled_migrations(db):
    assert "0001_sales_created_index.sql" in apply_migrations(db)
