from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# 6 fractional digits keeps freight allocation exact to the cent after rounding.
MONEY = Numeric(18, 6, asdecimal=True)


class Base(DeclarativeBase):
    pass


class InventoryLotModel(Base):
    __tablename__ = "inventory_lots"
    __table_args__ = (
        CheckConstraint("current_quantity >= 0", name="ck_lot_current_non_negative"),
        CheckConstraint("current_quantity <= original_quantity", name="ck_lot_current_le_original"),
        CheckConstraint("purchase_price >= 0", name="ck_lot_purchase_price_non_negative"),
        CheckConstraint("freight_cost_per_unit >= 0", name="ck_lot_freight_non_negative"),
    )

    seq_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lot_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    supplier_order_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    original_quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)
    current_quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)
    purchase_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    freight_cost_per_unit: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    unit_cost: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    lot_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class DeliveryReceiptModel(Base):
    __tablename__ = "delivery_receipts"
    __table_args__ = (
        UniqueConstraint("supplier_order_id", name="uq_delivery_receipt_order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    supplier_order_id: Mapped[str] = mapped_column(String(64), nullable=False)
    shipping_cost: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_items_value: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    lot_count: Mapped[int] = mapped_column(Integer, nullable=False)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class LotConsumptionModel(Base):
    __tablename__ = "lot_consumptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    consumption_id: Mapped[str] = mapped_column(String(36), nullable=False)
    lot_id: Mapped[str] = mapped_column(String(36), ForeignKey("inventory_lots.lot_id"), nullable=False)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    purpose: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class SupplierOrderModel(Base):
    __tablename__ = "supplier_orders"

    order_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    supplier_ref: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(32), default="pending", nullable=False)
    shipping_cost: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    items: Mapped[list["SupplierOrderItemModel"]] = relationship(
        back_populates="order",
        order_by="SupplierOrderItemModel.id",
    )


class SupplierOrderItemModel(Base):
    __tablename__ = "supplier_order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("supplier_orders.order_id", ondelete="CASCADE"),
        nullable=False,
    )
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)
    purchase_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    order: Mapped[SupplierOrderModel] = relationship(back_populates="items")


Index("ix_inventory_lots_product_received", InventoryLotModel.product_id, InventoryLotModel.received_at)
Index("ix_inventory_lots_supplier_order", InventoryLotModel.supplier_order_id)
Index("ix_lot_consumptions_product", LotConsumptionModel.product_id)
Index("ix_lot_consumptions_consumption_id", LotConsumptionModel.consumption_id)
