from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from lotcost.domain.lots.aggregates import InventoryLot, plan_fifo_draws, summarize_cost, weighted_average_cost

T0 = datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc)


def _lot(lot_id: str, qty: int, cost: str, day: int, original: int | None = None, seq: int = 0) -> InventoryLot:
    received = T0 + timedelta(days=day)
    return InventoryLot(
        lot_id=lot_id,
        product_id="P",
        supplier_order_id=None,
        original_quantity=original if original is not None else qty,
        current_quantity=qty,
        unit_cost=Decimal(cost),
        purchase_price=Decimal(cost),
        freight_cost_per_unit=Decimal("0"),
        received_at=received,
        created_at=received,
        updated_at=received,
        seq_id=seq,
    )


def test_weighted_average_ignores_depleted_lots():
    lots = [_lot("a", 0, "100.00", 0, original=5), _lot("b", 3, "10.00", 1), _lot("c", 1, "14.00", 2)]

    assert weighted_average_cost(lots) == Decimal("11.00")


def test_average_cost_of_nothing_is_zero():
    assert weighted_average_cost([]) == 0
    assert weighted_average_cost([_lot("a", 0, "9.99", 0, original=3)]) == 0


def test_summary_reports_active_lot_window():
    lots = [_lot("a", 0, "1.00", 0, original=2), _lot("b", 2, "3.00", 3), _lot("c", 2, "5.00", 1)]

    info = summarize_cost("P", lots)

    assert info.average_cost == Decimal("4.00")
    assert info.total_quantity == 4
    assert info.lot_count == 2
    assert info.oldest_lot_date == T0 + timedelta(days=1)
    assert info.newest_lot_date == T0 + timedelta(days=3)


def test_summary_without_stock_has_no_dates():
    info = summarize_cost("P", [_lot("a", 0, "1.00", 0, original=2)])

    assert info.average_cost == 0
    assert info.total_quantity == 0
    assert info.lot_count == 0
    assert info.oldest_lot_date is None
    assert info.newest_lot_date is None


def test_plan_does_not_mutate_and_reports_shortfall():
    lots = [_lot("a", 2, "1.00", 0), _lot("b", 3, "2.00", 1)]

    plan = plan_fifo_draws(lots, 9)

    assert not plan.satisfied
    assert plan.available == 5
    assert [lot.current_quantity for lot in lots] == [2, 3]


def test_plan_orders_by_received_then_sequence():
    lots = [_lot("late", 5, "3.00", 2, seq=1), _lot("tie-b", 1, "2.00", 0, seq=3), _lot("tie-a", 1, "1.00", 0, seq=2)]

    plan = plan_fifo_draws(lots, 3)

    assert [draw.lot_id for draw in plan.draws] == ["tie-a", "tie-b", "late"]
    assert plan.total_cost == Decimal("6.00")


def test_service_cost_info_reflects_ledger(service):
    service.process_delivery(
        "D1",
        [{"product_id": "P3", "quantity": 5, "purchase_price": "10.00"}],
        received_at=T0,
    )
    service.process_delivery(
        "D2",
        [{"product_id": "P3", "quantity": 5, "purchase_price": "12.00"}],
        received_at=T0 + timedelta(days=1),
    )

    info = service.cost_info("P3")
    assert info.average_cost == Decimal("11.00")
    assert info.total_quantity == 10
    assert info.lot_count == 2
    assert info.oldest_lot_date == T0
    assert info.newest_lot_date == T0 + timedelta(days=1)

    service.consume("P3", 7)

    info = service.cost_info("P3")
    assert info.average_cost == Decimal("12.00")
    assert info.total_quantity == 3
    assert info.lot_count == 1
    assert info.oldest_lot_date == info.newest_lot_date == T0 + timedelta(days=1)


def test_service_average_cost_for_unknown_product(service):
    assert service.average_cost("nothing") == 0
    assert service.cost_info("nothing").lot_count == 0
