from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

import lotcost.persistence.pg as pg
from lotcost.core.config import get_settings
from lotcost.domain.service import LotCostingService
from lotcost.persistence.models import Base, SupplierOrderItemModel, SupplierOrderModel


@pytest.fixture(scope="session")
def test_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    return tmp_path_factory.mktemp("db") / "test.sqlite"


@pytest.fixture(scope="session", autouse=True)
def configure_test_engine(test_db_path: Path):
    engine = create_engine(
        f"sqlite+pysqlite:///{test_db_path}",
        future=True,
        connect_args={"check_same_thread": False, "timeout": 5},
    )
    pg.engine = engine
    pg.SessionLocal = pg.build_session_factory(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_schema(configure_test_engine):
    Base.metadata.drop_all(bind=configure_test_engine)
    Base.metadata.create_all(bind=configure_test_engine)
    yield


@pytest.fixture()
def service() -> LotCostingService:
    return LotCostingService(session_factory=pg.SessionLocal, settings=get_settings())


@pytest.fixture()
def client():
    from lotcost.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture()
def add_supplier_order():
    def _add(order_id: str, items: list[tuple[str, int, str]], shipping_cost: str = "0", status: str = "shipped"):
        with pg.session_scope() as s:
            order = SupplierOrderModel(
                order_id=order_id,
                supplier_ref="SUP-1",
                status=status,
                shipping_cost=Decimal(shipping_cost),
                updated_at=datetime.now(timezone.utc),
            )
            s.add(order)
            s.flush()
            for product_id, qty, price in items:
                s.add(
                    SupplierOrderItemModel(
                        order_id=order_id,
                        product_id=product_id,
                        quantity=qty,
                        purchase_price=Decimal(price),
                    )
                )
        return order_id

    return _add
