from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

import lotcost.persistence.pg as pg
from lotcost.core.errors import InvalidDelivery, LedgerUnavailable, OrderAlreadyProcessed, OrderNotFound
from lotcost.domain.lots.ledger import LotLedger
from lotcost.persistence.models import DeliveryReceiptModel, InventoryLotModel, SupplierOrderModel

O1_ITEMS = [
    {"product_id": "P1", "quantity": 10, "purchase_price": "2.00"},
    {"product_id": "P2", "quantity": 5, "purchase_price": "8.00"},
]


def _lot_count() -> int:
    with pg.session_scope() as s:
        return int(s.scalar(select(func.count()).select_from(InventoryLotModel)))


def test_delivery_scenario_landed_costs(service):
    received = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    summary = service.process_delivery("O1", O1_ITEMS, shipping_cost=Decimal("12.00"), received_at=received)

    assert summary.total_items_value == Decimal("60.00")
    by_product = {lot.product_id: lot for lot in summary.lots}
    assert by_product["P1"].freight_cost_per_unit == Decimal("0.40")
    assert by_product["P1"].unit_cost == Decimal("2.40")
    assert by_product["P2"].freight_cost_per_unit == Decimal("1.60")
    assert by_product["P2"].unit_cost == Decimal("9.60")

    p1_lots = service.list_lots("P1")
    assert len(p1_lots) == 1
    lot = p1_lots[0]
    assert lot.original_quantity == lot.current_quantity == 10
    assert lot.supplier_order_id == "O1"
    assert lot.received_at == received


def test_delivery_freight_conserved_after_rounding(service):
    items = [
        {"product_id": "A", "quantity": 3, "purchase_price": "1.17"},
        {"product_id": "B", "quantity": 7, "purchase_price": "4.99"},
        {"product_id": "C", "quantity": 11, "purchase_price": "0.33"},
    ]

    summary = service.process_delivery("O-ROUND", items, shipping_cost="9.87")

    allocated = sum(lot.freight_cost_per_unit * lot.original_quantity for lot in summary.lots)
    assert abs(allocated - Decimal("9.87")) <= Decimal("0.0001")


def test_delivery_defaults_received_at_to_now(service):
    before = datetime.now(timezone.utc)
    summary = service.process_delivery("O-NOW", [{"product_id": "P9", "quantity": 1, "purchase_price": "1"}])
    after = datetime.now(timezone.utc)

    assert before <= summary.received_at <= after
    assert summary.lots[0].freight_cost_per_unit == 0


def test_same_order_is_processed_once(service):
    service.process_delivery("O1", O1_ITEMS, shipping_cost="12.00")

    with pytest.raises(OrderAlreadyProcessed) as excinfo:
        service.process_delivery("O1", O1_ITEMS, shipping_cost="12.00")

    assert excinfo.value.order_id == "O1"
    assert _lot_count() == 2
    assert [lot.current_quantity for lot in service.list_lots("P1")] == [10]


def test_duplicate_receipt_rejected_by_unique_constraint(service):
    # Skip the friendly pre-check to exercise the compare-and-create path.
    service.process_delivery("O1", O1_ITEMS, shipping_cost="12.00")

    with pytest.raises(OrderAlreadyProcessed):
        with service.unit_of_work() as ledger:
            ledger.record_delivery(
                order_id="O1",
                shipping_cost=Decimal("0"),
                total_items_value=Decimal("0"),
                lot_count=0,
                received_at=datetime.now(timezone.utc),
                at=datetime.now(timezone.utc),
            )


@pytest.mark.parametrize(
    "items,shipping_cost",
    [
        ([], "0"),
        ([{"product_id": "P1", "quantity": 0, "purchase_price": "1"}], "0"),
        ([{"product_id": "P1", "quantity": 3, "purchase_price": "-1"}], "0"),
        ([{"product_id": "", "quantity": 3, "purchase_price": "1"}], "0"),
        ([{"product_id": "P1", "quantity": 3, "purchase_price": "1"}], "-5"),
        ([{"product_id": "P", "quantity": 1000, "purchase_price": "1e22"}], "5"),
        ([{"product_id": "P", "quantity": 1, "purchase_price": "1.0000001"}], "0"),
        ([{"product_id": "P", "quantity": 10, "purchase_price": "999999999999"}], "0"),
        ([{"product_id": "P", "quantity": 1, "purchase_price": "1"}], "1e15"),
        ([{"product_id": "P" * 65, "quantity": 1, "purchase_price": "1"}], "0"),
        ([{"product_id": "P", "quantity": 1, "purchase_price": "1", "lot_number": "L" * 65}], "0"),
    ],
)
def test_invalid_delivery_rejected_before_ledger(service, items, shipping_cost):
    with pytest.raises(InvalidDelivery):
        service.process_delivery("O-BAD", items, shipping_cost=shipping_cost)

    assert _lot_count() == 0


def test_failed_delivery_writes_nothing(service, monkeypatch):
    def _boom(self, lots, at):
        raise OperationalError("INSERT INTO inventory_lots", {}, Exception("disk I/O error"))

    monkeypatch.setattr(LotLedger, "append_lots", _boom)

    with pytest.raises(LedgerUnavailable):
        service.process_delivery("O1", O1_ITEMS, shipping_cost="12.00")

    monkeypatch.undo()
    assert _lot_count() == 0
    with pg.session_scope() as s:
        assert s.scalar(select(func.count()).select_from(DeliveryReceiptModel)) == 0

    # Nothing committed, so the same order can be delivered for real.
    summary = service.process_delivery("O1", O1_ITEMS, shipping_cost="12.00")
    assert len(summary.lots) == 2


def test_supplier_order_resolved_and_marked_delivered(service, add_supplier_order):
    add_supplier_order("SO-1", [("P1", 10, "2.00"), ("P2", 5, "8.00")], shipping_cost="12.00")

    summary = service.process_supplier_order("SO-1")

    assert {lot.product_id: lot.unit_cost for lot in summary.lots} == {
        "P1": Decimal("2.40"),
        "P2": Decimal("9.60"),
    }
    with pg.session_scope() as s:
        order = s.get(SupplierOrderModel, "SO-1")
        assert order.status == "delivered"
        assert order.delivered_at is not None

    with pytest.raises(OrderAlreadyProcessed):
        service.process_supplier_order("SO-1")


def test_unknown_supplier_order(service):
    with pytest.raises(OrderNotFound):
        service.process_supplier_order("missing")


def test_supplier_order_without_items(service, add_supplier_order):
    add_supplier_order("SO-EMPTY", [])

    with pytest.raises(InvalidDelivery):
        service.process_supplier_order("SO-EMPTY")


def test_cancelled_supplier_order(service, add_supplier_order):
    add_supplier_order("SO-X", [("P1", 1, "1.00")], status="cancelled")

    with pytest.raises(InvalidDelivery):
        service.process_supplier_order("SO-X")
    assert _lot_count() == 0


def test_overlong_order_id_rejected(service):
    with pytest.raises(InvalidDelivery):
        service.process_delivery("O" * 65, O1_ITEMS)

    assert _lot_count() == 0


def test_amounts_and_ids_at_column_limits_accepted(service):
    summary = service.process_delivery(
        "O-MAX",
        [{"product_id": "P" * 64, "quantity": 1, "purchase_price": "12345.123456", "lot_number": "L" * 64}],
        shipping_cost="0.000001",
    )

    lot = summary.lots[0]
    assert lot.purchase_price == Decimal("12345.123456")
    assert lot.unit_cost == Decimal("12345.123457")
