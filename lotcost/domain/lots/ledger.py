from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable

from sqlalchemy import Select, exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lotcost.core.errors import LotConflict, OrderAlreadyProcessed
from lotcost.domain.lots.aggregates import InventoryLot
from lotcost.domain.lots.commands import to_utc
from lotcost.persistence.models import DeliveryReceiptModel, InventoryLotModel, LotConsumptionModel


@dataclass(frozen=True)
class NewLot:
    product_id: str
    quantity: int
    purchase_price: Decimal
    freight_cost_per_unit: Decimal
    unit_cost: Decimal
    received_at: datetime
    supplier_order_id: str | None = None
    lot_number: str | None = None
    notes: str | None = None
    expiry_date: date | None = None


@dataclass(frozen=True)
class ConsumptionRecord:
    consumption_id: str
    lot_id: str
    product_id: str
    quantity: int
    unit_cost: Decimal
    purpose: str
    created_at: datetime


def _to_lot(row: InventoryLotModel) -> InventoryLot:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    return InventoryLot(
        lot_id=row.lot_id,
        product_id=row.product_id,
        supplier_order_id=row.supplier_order_id,
        original_quantity=int(row.original_quantity),
        current_quantity=int(row.current_quantity),
        unit_cost=Decimal(row.unit_cost),
        purchase_price=Decimal(row.purchase_price),
        freight_cost_per_unit=Decimal(row.freight_cost_per_unit),
        received_at=to_utc(row.received_at),
        created_at=to_utc(row.created_at),
        updated_at=to_utc(row.updated_at),
        seq_id=row.seq_id,
        lot_number=row.lot_number,
        notes=row.notes,
        expiry_date=row.expiry_date,
    )


class LotLedger:
    """Sole mutation surface for inventory lots.

    Works inside the caller's session; committing or rolling back is the
    caller's unit of work, so a batch append and a set of decrements are each
    all-or-nothing.
    """

    def __init__(self, session: Session):
        self.session = session

    def _fifo_query(self, product_id: str) -> Select[tuple[InventoryLotModel]]:
        return (
            select(InventoryLotModel)
            .where(InventoryLotModel.product_id == product_id)
            .order_by(InventoryLotModel.received_at.asc(), InventoryLotModel.seq_id.asc())
            .execution_options(populate_existing=True)
        )

    def append_lots(self, lots: Iterable[NewLot], at: datetime) -> list[InventoryLot]:
        at = to_utc(at)
        rows = [
            InventoryLotModel(
                product_id=lot.product_id,
                supplier_order_id=lot.supplier_order_id,
                original_quantity=lot.quantity,
                current_quantity=lot.quantity,
                purchase_price=lot.purchase_price,
                freight_cost_per_unit=lot.freight_cost_per_unit,
                unit_cost=lot.unit_cost,
                lot_number=lot.lot_number,
                notes=lot.notes,
                received_at=to_utc(lot.received_at),
                expiry_date=lot.expiry_date,
                created_at=at,
                updated_at=at,
            )
            for lot in lots
        ]
        self.session.add_all(rows)
        self.session.flush()
        return [_to_lot(row) for row in rows]

    def delivery_exists(self, order_id: str) -> bool:
        stmt = select(exists().where(DeliveryReceiptModel.supplier_order_id == order_id))
        return bool(self.session.scalar(stmt))

    def record_delivery(
        self,
        order_id: str,
        shipping_cost: Decimal,
        total_items_value: Decimal,
        lot_count: int,
        received_at: datetime,
        at: datetime,
    ) -> DeliveryReceiptModel:
        receipt = DeliveryReceiptModel(
            supplier_order_id=order_id,
            shipping_cost=shipping_cost,
            total_items_value=total_items_value,
            lot_count=lot_count,
            received_at=to_utc(received_at),
            created_at=to_utc(at),
        )
        try:
            self.session.add(receipt)
            self.session.flush()
        except IntegrityError as exc:
            raise OrderAlreadyProcessed(order_id) from exc
        return receipt

    def list_lots(self, product_id: str) -> list[InventoryLot]:
        rows = self.session.scalars(self._fifo_query(product_id)).all()
        return [_to_lot(row) for row in rows]

    def list_active_lots(self, product_id: str, for_update: bool = False) -> list[InventoryLot]:
        stmt = self._fifo_query(product_id).where(InventoryLotModel.current_quantity > 0)
        if for_update:
            stmt = stmt.with_for_update()
        rows = self.session.scalars(stmt).all()
        return [_to_lot(row) for row in rows]

    def get_lot(self, lot_id: str) -> InventoryLot | None:
        row = self.session.scalar(
            select(InventoryLotModel)
            .where(InventoryLotModel.lot_id == lot_id)
            .execution_options(populate_existing=True)
        )
        return _to_lot(row) if row is not None else None

    def decrement(self, lot_id: str, quantity: int, at: datetime) -> None:
        stmt = (
            update(InventoryLotModel)
            .where(InventoryLotModel.lot_id == lot_id)
            .where(InventoryLotModel.current_quantity >= quantity)
            .values(
                current_quantity=InventoryLotModel.current_quantity - quantity,
                updated_at=to_utc(at),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount != 1:
            current = self.get_lot(lot_id)
            raise LotConflict(
                f"lot {lot_id} changed concurrently; cannot take {quantity}",
                lot_id=lot_id,
                current_quantity=current.current_quantity if current is not None else None,
            )

    def record_consumption(self, records: Iterable[ConsumptionRecord]) -> None:
        self.session.add_all(
            [
                LotConsumptionModel(
                    consumption_id=record.consumption_id,
                    lot_id=record.lot_id,
                    product_id=record.product_id,
                    quantity=record.quantity,
                    unit_cost=record.unit_cost,
                    purpose=record.purpose,
                    created_at=to_utc(record.created_at),
                )
                for record in records
            ]
        )
        self.session.flush()

    def list_consumptions(self, product_id: str, limit: int = 100) -> list[ConsumptionRecord]:
        rows = self.session.scalars(
            select(LotConsumptionModel)
            .where(LotConsumptionModel.product_id == product_id)
            .order_by(LotConsumptionModel.id.desc())
            .limit(limit)
        ).all()
        return [
            ConsumptionRecord(
                consumption_id=row.consumption_id,
                lot_id=row.lot_id,
                product_id=row.product_id,
                quantity=int(row.quantity),
                unit_cost=Decimal(row.unit_cost),
                purpose=row.purpose,
                created_at=to_utc(row.created_at),
            )
            for row in rows
        ]
