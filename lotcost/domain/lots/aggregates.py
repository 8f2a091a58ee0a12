from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

MONEY_QUANT = Decimal("0.000001")
ZERO = Decimal("0")


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class InventoryLot:
    lot_id: str
    product_id: str
    supplier_order_id: str | None
    original_quantity: int
    current_quantity: int
    unit_cost: Decimal
    purchase_price: Decimal
    freight_cost_per_unit: Decimal
    received_at: datetime
    created_at: datetime
    updated_at: datetime
    seq_id: int = 0
    lot_number: str | None = None
    notes: str | None = None
    expiry_date: date | None = None

    @property
    def is_active(self) -> bool:
        return self.current_quantity > 0

    def fifo_key(self) -> tuple[datetime, int]:
        return (self.received_at, self.seq_id)


@dataclass(frozen=True)
class ProductCostInfo:
    product_id: str
    average_cost: Decimal
    total_quantity: int
    lot_count: int
    oldest_lot_date: datetime | None = None
    newest_lot_date: datetime | None = None


@dataclass(frozen=True)
class LotDraw:
    lot_id: str
    quantity: int
    unit_cost: Decimal
    remaining_quantity: int

    @property
    def cost(self) -> Decimal:
        return self.unit_cost * self.quantity


@dataclass(frozen=True)
class FifoPlan:
    requested: int
    available: int
    draws: tuple[LotDraw, ...]

    @property
    def satisfied(self) -> bool:
        return self.available >= self.requested

    @property
    def total_cost(self) -> Decimal:
        return sum((draw.cost for draw in self.draws), ZERO)


def plan_fifo_draws(lots: Sequence[InventoryLot], qty: int) -> FifoPlan:
    """Walk lots oldest-first and decide how much to take from each.

    Pure: nothing is mutated. When the lots cannot cover ``qty`` the plan is
    returned unsatisfied and the caller must not apply any of it.
    """
    ordered = sorted((lot for lot in lots if lot.is_active), key=InventoryLot.fifo_key)
    available = sum(lot.current_quantity for lot in ordered)
    remaining = qty
    draws: list[LotDraw] = []
    for lot in ordered:
        if remaining <= 0:
            break
        take = min(lot.current_quantity, remaining)
        remaining -= take
        draws.append(
            LotDraw(
                lot_id=lot.lot_id,
                quantity=take,
                unit_cost=lot.unit_cost,
                remaining_quantity=lot.current_quantity - take,
            )
        )
    return FifoPlan(requested=qty, available=available, draws=tuple(draws))


def weighted_average_cost(lots: Iterable[InventoryLot]) -> Decimal:
    total_qty = 0
    total_value = ZERO
    for lot in lots:
        if not lot.is_active:
            continue
        total_qty += lot.current_quantity
        total_value += lot.unit_cost * lot.current_quantity
    if total_qty == 0:
        return ZERO
    return quantize_money(total_value / total_qty)


def summarize_cost(product_id: str, lots: Iterable[InventoryLot]) -> ProductCostInfo:
    active = [lot for lot in lots if lot.is_active]
    if not active:
        return ProductCostInfo(product_id=product_id, average_cost=ZERO, total_quantity=0, lot_count=0)
    received = sorted(lot.received_at for lot in active)
    return ProductCostInfo(
        product_id=product_id,
        average_cost=weighted_average_cost(active),
        total_quantity=sum(lot.current_quantity for lot in active),
        lot_count=len(active),
        oldest_lot_date=received[0],
        newest_lot_date=received[-1],
    )
