from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from lotcost.core.errors import InvalidDelivery, InvalidQuantity

# Bounds follow the column types in lotcost.persistence.models.
ID_MAX_LENGTH = 64
PURPOSE_MAX_LENGTH = 32
MAX_QUANTITY = 2**63 - 1
MONEY_MAX_DIGITS = 18
MONEY_DECIMAL_PLACES = 6
MONEY_LIMIT = Decimal(10) ** (MONEY_MAX_DIGITS - MONEY_DECIMAL_PLACES)


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class DeliveryLineItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str = Field(min_length=1, max_length=ID_MAX_LENGTH)
    quantity: int = Field(gt=0, le=MAX_QUANTITY)
    purchase_price: Decimal = Field(ge=0, max_digits=MONEY_MAX_DIGITS, decimal_places=MONEY_DECIMAL_PLACES)
    lot_number: str | None = Field(default=None, max_length=ID_MAX_LENGTH)
    expiry_date: date | None = None
    notes: str | None = None


class DeliveryRequest(BaseModel):
    order_id: str = Field(min_length=1, max_length=ID_MAX_LENGTH)
    items: list[DeliveryLineItem] = Field(min_length=1)
    shipping_cost: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        max_digits=MONEY_MAX_DIGITS,
        decimal_places=MONEY_DECIMAL_PLACES,
    )
    received_at: datetime | None = None

    @field_validator("received_at")
    @classmethod
    def _to_utc(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        return to_utc(value)

    @model_validator(mode="after")
    def _fits_money_columns(self) -> "DeliveryRequest":
        # Landed unit cost never exceeds items value plus shipping, so this
        # bounds every stored amount.
        total = sum((item.quantity * item.purchase_price for item in self.items), Decimal("0"))
        if total + self.shipping_cost >= MONEY_LIMIT:
            raise ValueError(f"items value plus shipping must be below {MONEY_LIMIT}")
        return self


def build_delivery_request(
    order_id: str,
    items: Iterable[DeliveryLineItem | dict[str, Any]],
    shipping_cost: Decimal | int | str = Decimal("0"),
    received_at: datetime | None = None,
) -> DeliveryRequest:
    try:
        return DeliveryRequest(
            order_id=order_id,
            items=list(items),
            shipping_cost=shipping_cost,
            received_at=received_at,
        )
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise InvalidDelivery(f"invalid delivery for order={order_id}: {problems}", order_id=order_id) from exc


def validate_consumption(product_id: str, quantity: Any, purpose: Any = "sale") -> int:
    if not product_id:
        raise InvalidQuantity("product_id is required")
    if len(product_id) > ID_MAX_LENGTH:
        raise InvalidQuantity(f"product_id longer than {ID_MAX_LENGTH} characters")
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantity(f"quantity must be an integer, got {quantity!r}", product_id=product_id)
    if quantity <= 0:
        raise InvalidQuantity(f"quantity must be positive, got {quantity}", product_id=product_id)
    if quantity > MAX_QUANTITY:
        raise InvalidQuantity(f"quantity too large, got {quantity}", product_id=product_id)
    if purpose is not None and not isinstance(purpose, str):
        raise InvalidQuantity(f"purpose must be text, got {purpose!r}", product_id=product_id)
    if purpose and len(purpose) > PURPOSE_MAX_LENGTH:
        raise InvalidQuantity(f"purpose longer than {PURPOSE_MAX_LENGTH} characters", product_id=product_id)
    return quantity
