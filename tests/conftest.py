import pytest

from app import create_app
from db.init import init_db, run_sql_files, seed_path
from repos.base import Database
from repos.customers import Ledger
from repos.products import Catalog
from repos.sales import SalesHistory
from services.sales_service import SaleEngine


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "pos.db")
    init_db(database)
    return database


@pytest.fixture
def seeded_db(db):
    # 1001 Rice 850.00/50, 1002 Sugar 180.00/100, ...
    run_sql_files(db, [seed_path()])
    return db


@pytest.fixture
def catalog(db):
    return Catalog(db)


@pytest.fixture
def ledger(db):
    return Ledger(db)


@pytest.fixture
def history(db):
    return SalesHistory(db)


@pytest.fixture
def engine(db, catalog, ledger):
    return SaleEngine(db, catalog=catalog, ledger=ledger)


@pytest.fixture
def client(seeded_db):
    app = create_app(seeded_db)
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c
