from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from lotcost.domain.consumption.engine import ConsumptionSummary
from lotcost.domain.delivery.processor import DeliverySummary
from lotcost.domain.lots.aggregates import InventoryLot, ProductCostInfo
from lotcost.domain.lots.ledger import ConsumptionRecord


def isoformat_z(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def money(value: Decimal) -> str:
    return format(value.normalize() if value != 0 else Decimal("0"), "f")


def lot_to_dict(lot: InventoryLot) -> dict[str, Any]:
    return {
        "lot_id": lot.lot_id,
        "product_id": lot.product_id,
        "supplier_order_id": lot.supplier_order_id,
        "original_quantity": lot.original_quantity,
        "current_quantity": lot.current_quantity,
        "unit_cost": money(lot.unit_cost),
        "purchase_price": money(lot.purchase_price),
        "freight_cost_per_unit": money(lot.freight_cost_per_unit),
        "lot_number": lot.lot_number,
        "notes": lot.notes,
        "received_at": isoformat_z(lot.received_at),
        "expiry_date": lot.expiry_date.isoformat() if lot.expiry_date else None,
        "created_at": isoformat_z(lot.created_at),
        "updated_at": isoformat_z(lot.updated_at),
    }


def delivery_to_dict(summary: DeliverySummary) -> dict[str, Any]:
    return {
        "order_id": summary.order_id,
        "shipping_cost": money(summary.shipping_cost),
        "total_items_value": money(summary.total_items_value),
        "received_at": isoformat_z(summary.received_at),
        "lot_count": len(summary.lots),
        "lots": [lot_to_dict(lot) for lot in summary.lots],
    }


def consumption_to_dict(summary: ConsumptionSummary) -> dict[str, Any]:
    return {
        "consumption_id": summary.consumption_id,
        "product_id": summary.product_id,
        "quantity": summary.quantity,
        "purpose": summary.purpose,
        "total_cost": money(summary.total_cost),
        "draws": [
            {
                "lot_id": draw.lot_id,
                "quantity": draw.quantity,
                "unit_cost": money(draw.unit_cost),
                "remaining_quantity": draw.remaining_quantity,
            }
            for draw in summary.draws
        ],
    }


def cost_info_to_dict(info: ProductCostInfo) -> dict[str, Any]:
    return {
        "product_id": info.product_id,
        "average_cost": money(info.average_cost),
        "total_quantity": info.total_quantity,
        "lot_count": info.lot_count,
        "oldest_lot_date": isoformat_z(info.oldest_lot_date),
        "newest_lot_date": isoformat_z(info.newest_lot_date),
    }


def consumption_record_to_dict(record: ConsumptionRecord) -> dict[str, Any]:
    return {
        "consumption_id": record.consumption_id,
        "lot_id": record.lot_id,
        "quantity": record.quantity,
        "unit_cost": money(record.unit_cost),
        "purpose": record.purpose,
        "created_at": isoformat_z(record.created_at),
    }
