from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from lotcost.core.errors import InvalidDelivery, OrderAlreadyProcessed, OrderNotFound
from lotcost.domain.lots.aggregates import ZERO, InventoryLot, quantize_money
from lotcost.domain.lots.commands import DeliveryLineItem, DeliveryRequest, build_delivery_request, to_utc
from lotcost.domain.lots.ledger import LotLedger, NewLot
from lotcost.persistence.models import SupplierOrderModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FreightAllocation:
    item: DeliveryLineItem
    freight_per_unit: Decimal

    @property
    def unit_cost(self) -> Decimal:
        return landed_unit_cost(self.item.purchase_price, self.freight_per_unit)


@dataclass(frozen=True)
class DeliverySummary:
    order_id: str
    shipping_cost: Decimal
    total_items_value: Decimal
    received_at: datetime
    lots: tuple[InventoryLot, ...]


def total_items_value(items: Sequence[DeliveryLineItem]) -> Decimal:
    return sum((item.quantity * item.purchase_price for item in items), ZERO)


def freight_per_unit(
    item_quantity: int,
    item_purchase_price: Decimal,
    items_value: Decimal,
    shipping_cost: Decimal,
) -> Decimal:
    """Freight carried by one unit of a line item.

    The line's share of the shipping cost is proportional to its purchase
    value, then spread evenly over its units. Zero shipping or a zero-value
    delivery has nothing to allocate.
    """
    if shipping_cost == 0 or items_value == 0:
        return ZERO
    item_value = item_quantity * item_purchase_price
    proportion = item_value / items_value
    return (proportion * shipping_cost) / item_quantity


def landed_unit_cost(purchase_price: Decimal, freight: Decimal) -> Decimal:
    return purchase_price + freight


def allocate_freight(items: Sequence[DeliveryLineItem], shipping_cost: Decimal) -> list[FreightAllocation]:
    value = total_items_value(items)
    return [
        FreightAllocation(
            item=item,
            freight_per_unit=freight_per_unit(item.quantity, item.purchase_price, value, shipping_cost),
        )
        for item in items
    ]


class DeliveryProcessor:
    def __init__(self, ledger: LotLedger):
        self.ledger = ledger

    @property
    def session(self) -> Session:
        return self.ledger.session

    def process(self, request: DeliveryRequest, now: datetime | None = None) -> DeliverySummary:
        now = to_utc(now or datetime.now(timezone.utc))
        received_at = request.received_at or now

        if self.ledger.delivery_exists(request.order_id):
            raise OrderAlreadyProcessed(request.order_id)

        value = total_items_value(request.items)
        new_lots = []
        for allocation in allocate_freight(request.items, request.shipping_cost):
            item = allocation.item
            freight = quantize_money(allocation.freight_per_unit)
            new_lots.append(
                NewLot(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    purchase_price=quantize_money(item.purchase_price),
                    freight_cost_per_unit=freight,
                    unit_cost=quantize_money(allocation.unit_cost),
                    received_at=received_at,
                    supplier_order_id=request.order_id,
                    lot_number=item.lot_number,
                    notes=item.notes,
                    expiry_date=item.expiry_date,
                )
            )

        # Receipt first: the unique constraint on the order id is what stops a
        # concurrent duplicate, and it aborts the whole transaction with the lots.
        self.ledger.record_delivery(
            order_id=request.order_id,
            shipping_cost=quantize_money(request.shipping_cost),
            total_items_value=quantize_money(value),
            lot_count=len(new_lots),
            received_at=received_at,
            at=now,
        )
        lots = self.ledger.append_lots(new_lots, at=now)
        logger.info(
            "delivery processed: order_id=%s lots=%s shipping_cost=%s items_value=%s",
            request.order_id,
            len(lots),
            request.shipping_cost,
            value,
        )
        return DeliverySummary(
            order_id=request.order_id,
            shipping_cost=request.shipping_cost,
            total_items_value=value,
            received_at=received_at,
            lots=tuple(lots),
        )

    def process_supplier_order(
        self,
        order_id: str,
        received_at: datetime | None = None,
        now: datetime | None = None,
    ) -> DeliverySummary:
        order = self.session.scalar(
            select(SupplierOrderModel)
            .where(SupplierOrderModel.order_id == order_id)
            .options(selectinload(SupplierOrderModel.items))
        )
        if order is None:
            raise OrderNotFound(f"supplier order not found: {order_id}", order_id=order_id)
        if order.status == "cancelled":
            raise InvalidDelivery(f"supplier order is cancelled: {order_id}", order_id=order_id)
        if not order.items:
            raise InvalidDelivery(f"supplier order has no line items: {order_id}", order_id=order_id)

        if received_at is None and order.delivered_at is not None:
            received_at = order.delivered_at
        request = build_delivery_request(
            order_id=order.order_id,
            items=[
                {
                    "product_id": item.product_id,
                    "quantity": item.quantity,
                    "purchase_price": item.purchase_price,
                }
                for item in order.items
            ],
            shipping_cost=order.shipping_cost,
            received_at=received_at,
        )
        summary = self.process(request, now=now)

        order.status = "delivered"
        order.delivered_at = summary.received_at
        order.updated_at = to_utc(now or datetime.now(timezone.utc))
        self.session.flush()
        return summary
